"""All chapters of the local store held in memory for a reconciliation pass."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set, Tuple

from locsync.core.fragment_store import FragmentStore
from locsync.core.models import ChapterStatus, Fragment
from locsync.core.progress import ProgressSink


@dataclass
class Corpus:
    statuses: Dict[str, ChapterStatus]
    chapters: Dict[str, List[Fragment]]
    dirty: Set[str] = field(default_factory=set)

    @classmethod
    async def load(cls, store: FragmentStore, progress: Optional[ProgressSink] = None) -> "Corpus":
        progress = progress or ProgressSink()
        statuses = await store.read_chapter_statuses()
        chapters: Dict[str, List[Fragment]] = {}
        for i, name in enumerate(statuses):
            progress.report_progress(f"Reading chapter '{name}' from disk...", i, len(statuses))
            chapters[name] = await store.read_fragments(name)
        progress.done()
        return cls(statuses=statuses, chapters=chapters)

    @property
    def fragment_count(self) -> int:
        return sum(len(fragments) for fragments in self.chapters.values())

    def iter_fragments(self) -> Iterator[Tuple[str, Fragment]]:
        for name, fragments in self.chapters.items():
            for fragment in fragments:
                yield name, fragment

    def chapter_name_by_id(self, chapter_id: str) -> Optional[str]:
        for name, status in self.statuses.items():
            if status.id == chapter_id:
                return name
        return None

    def remove_fragment(self, chapter_name: str, fragment: Fragment) -> None:
        fragments = self.chapters[chapter_name]
        for i, f in enumerate(fragments):
            if f is fragment:
                del fragments[i]
                break
        self.dirty.add(chapter_name)

    def mark_dirty(self, chapter_name: str) -> None:
        self.dirty.add(chapter_name)

    async def save_chapter(self, store: FragmentStore, chapter_name: str) -> None:
        """Write one chapter back once its batch of remote work is complete."""
        if chapter_name not in self.dirty:
            return
        fragments = self.chapters[chapter_name]
        fragments.sort(key=lambda f: f.order_number)
        await store.write_fragments(chapter_name, fragments)
        self.dirty.discard(chapter_name)
        logging.getLogger(__name__).debug(f"Saved chapter '{chapter_name}' ({len(fragments)} fragments)")

    async def save_dirty(self, store: FragmentStore) -> None:
        for name in list(self.dirty):
            await self.save_chapter(store, name)
