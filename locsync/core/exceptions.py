"""
Custom exceptions for locsync.
"""

class LocSyncError(Exception):
    """Base exception for locsync."""
    pass

class RemoteError(LocSyncError):
    """Raised when the translation platform rejects or fails a request."""
    pass

class AuthenticationError(RemoteError):
    """Raised when logging in to the translation platform fails."""
    pass

class StoreError(LocSyncError):
    """Raised when the local fragment store cannot be read or written."""
    pass

class ScanError(LocSyncError):
    """Raised when a game asset cannot be scanned for localizable strings."""
    pass

class PackConflictError(LocSyncError):
    """Raised when two fragments resolve to the same pack entry."""

    def __init__(self, file: str, json_path: str):
        super().__init__(f"{file} {json_path}: conflicting fragments for the same pack entry")
        self.file = file
        self.json_path = json_path

class ConfigError(LocSyncError):
    """Raised when configuration-related errors occur."""
    pass
