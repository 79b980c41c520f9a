"""Version information for locsync."""

VERSION = "0.1.0"
