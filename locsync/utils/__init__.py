"""
Utils module for locsync
========================
"""

from .config import ConfigManager, SyncSettings, RemoteSettings, PathSettings

__all__ = [
    'ConfigManager', 'SyncSettings', 'RemoteSettings', 'PathSettings'
]
