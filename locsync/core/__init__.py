"""
Core module for locsync
=======================
"""

from .exceptions import (
    LocSyncError, RemoteError, AuthenticationError, StoreError, ScanError, PackConflictError, ConfigError
)
from .models import ChapterStatus, Fragment, Original, Translation, LocalizableStringData
from .concurrency import limit_concurrency
from .progress import ProgressSink, NullProgressSink, LoggingProgressSink, ConsoleProgressSink
from .fragment_store import FragmentStore
from .corpus import Corpus
from .asset_scanner import AssetScanner, GameAssetsScanner, ScanDbScanner, ScanDb, create_scanner
from .nota_client import BaseNotaClient, NotaHttpClient, ChapterFragmentFetcher
from .sync_engine import SyncEngine
from .reconciler import Reconciler
from .migrations import MigrationEngine, MigrationReport
from .pack_compiler import LocalizeMePacker, PackCompiler, PoExporter

__all__ = [
    'LocSyncError', 'RemoteError', 'AuthenticationError', 'StoreError', 'ScanError',
    'PackConflictError', 'ConfigError',
    'ChapterStatus', 'Fragment', 'Original', 'Translation', 'LocalizableStringData',
    'limit_concurrency',
    'ProgressSink', 'NullProgressSink', 'LoggingProgressSink', 'ConsoleProgressSink',
    'FragmentStore', 'Corpus',
    'AssetScanner', 'GameAssetsScanner', 'ScanDbScanner', 'ScanDb', 'create_scanner',
    'BaseNotaClient', 'NotaHttpClient', 'ChapterFragmentFetcher',
    'SyncEngine', 'Reconciler', 'MigrationEngine', 'MigrationReport',
    'LocalizeMePacker', 'PackCompiler', 'PoExporter',
]
