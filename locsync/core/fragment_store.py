"""
Local Fragment Store
====================

Per-chapter JSON files plus a manifest of chapter statuses. This is the
recovery point between runs: a chapter file and the manifest are only
written after the chapter's remote work has completed.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Union

from locsync.core.exceptions import StoreError
from locsync.core.models import ChapterStatus, Fragment
from locsync.utils.json_io import read_json_file_optional, write_json_file


CHAPTER_STATUSES_FILE = "chapter-statuses.json"
CHAPTER_FRAGMENTS_DIR = "chapter-fragments"
MIGRATION_LOOKUP_TABLE_FILE = "migration-lookup-table.json"


class FragmentStore:
    """Reads and writes the local mirror of the translation platform."""

    def __init__(self, data_dir: Union[str, Path]):
        self.logger = logging.getLogger(__name__)
        self.data_dir = Path(data_dir)
        self.chapter_statuses_file = self.data_dir / CHAPTER_STATUSES_FILE
        self.chapter_fragments_dir = self.data_dir / CHAPTER_FRAGMENTS_DIR
        self.lookup_table_file = self.data_dir / MIGRATION_LOOKUP_TABLE_FILE

    def chapter_file(self, chapter_name: str) -> Path:
        return self.chapter_fragments_dir / f"{chapter_name}.json"

    async def read_chapter_statuses(self) -> Dict[str, ChapterStatus]:
        """Missing manifest means a first run and yields an empty mapping."""
        data = await self._read(self.chapter_statuses_file)
        if data is None:
            return {}
        return {name: ChapterStatus.from_dict(status) for name, status in data.items()}

    async def write_chapter_statuses(self, statuses: Dict[str, ChapterStatus]) -> None:
        await self._write(
            self.chapter_statuses_file,
            {name: status.to_dict() for name, status in statuses.items()},
        )

    async def read_fragments(self, chapter_name: str) -> List[Fragment]:
        data = await self._read(self.chapter_file(chapter_name))
        if data is None:
            self.logger.debug(f"No local fragments for chapter '{chapter_name}'")
            return []
        return [Fragment.from_dict(f) for f in data]

    async def write_fragments(self, chapter_name: str, fragments: List[Fragment]) -> None:
        await self._write(self.chapter_file(chapter_name), [f.to_dict() for f in fragments])

    async def read_lookup_table(self) -> Dict[str, List[str]]:
        data = await self._read(self.lookup_table_file)
        if data is None:
            raise StoreError(
                f"Migration lookup table not found: {self.lookup_table_file} (compile it first)"
            )
        return {text: list(translations) for text, translations in data.items()}

    async def write_lookup_table(self, table: Dict[str, List[str]]) -> None:
        await self._write(self.lookup_table_file, table)

    async def _read(self, path: Path):
        try:
            return await asyncio.to_thread(read_json_file_optional, path)
        except (OSError, ValueError) as e:
            raise StoreError(f"Could not read {path}: {e}") from e

    async def _write(self, path: Path, data) -> None:
        try:
            await asyncio.to_thread(write_json_file, path, data)
        except (OSError, TypeError, ValueError) as e:
            raise StoreError(f"Could not write {path}: {e}") from e
