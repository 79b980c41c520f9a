"""
locsync - Notabenoid translation synchronization tool
=====================================================

Mirrors translation work from the Notabenoid platform into a local
chapter-partitioned store and keeps it consistent with the game assets:
- Incremental chapter download with bounded concurrency
- Drift detection (stale and removed originals, new strings)
- Migration heuristics that salvage translations of moved strings
- Localize Me pack and gettext PO generation
"""

from .version import VERSION

__version__ = VERSION
