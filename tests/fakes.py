import asyncio
import copy
import json
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from locsync.core.corpus import Corpus
from locsync.core.fragment_store import FragmentStore
from locsync.core.models import (
    ChapterStatus, Fragment, Original, parse_fragment_translation, stringify_fragment_original,
)
from locsync.core.nota_client import BaseNotaClient


class FakeNotaClient(BaseNotaClient):
    """In-memory platform that hands out ids and records every mutation."""

    def __init__(self, statuses: Optional[Dict[str, ChapterStatus]] = None,
                 pages: Optional[Dict[Tuple[str, int], List[Fragment]]] = None):
        self.statuses = statuses or {}
        self.pages = pages or {}
        self.fetch_calls: List[Tuple[str, int]] = []
        self.mutations: List[tuple] = []
        self.logged_in: Optional[str] = None
        self._next_id = 1000

    def _new_id(self) -> str:
        self._next_id += 1
        return str(self._next_id)

    async def login(self, username, password):
        self.logged_in = username

    async def fetch_all_chapter_statuses(self):
        return dict(self.statuses)

    async def fetch_chapter_page(self, status, page):
        self.fetch_calls.append((status.name, page))
        await asyncio.sleep(0)
        return copy.deepcopy(self.pages.get((status.id, page), []))

    async def add_fragment_original(self, chapter_id, order_number, raw_content):
        await asyncio.sleep(0)
        fragment_id = self._new_id()
        self.mutations.append(('add_original', chapter_id, fragment_id, order_number, raw_content))
        return fragment_id

    async def edit_fragment_original(self, chapter_id, fragment_id, order_number, raw_content):
        await asyncio.sleep(0)
        self.mutations.append(('edit_original', chapter_id, fragment_id, order_number, raw_content))

    async def delete_fragment_original(self, chapter_id, fragment_id):
        await asyncio.sleep(0)
        self.mutations.append(('delete_original', chapter_id, fragment_id))

    async def add_fragment_translation(self, chapter_id, fragment_id, text):
        await asyncio.sleep(0)
        translation_id = self._new_id()
        self.mutations.append(('add_translation', chapter_id, fragment_id, text))
        return translation_id

    async def delete_fragment_translation(self, chapter_id, fragment_id, translation_id):
        await asyncio.sleep(0)
        self.mutations.append(('delete_translation', chapter_id, fragment_id, translation_id))

    def calls(self, kind: str) -> List[tuple]:
        return [m for m in self.mutations if m[0] == kind]


def make_fragment(fragment_id, chapter_id, order_number, file, json_path, text,
                  lang_uid=0, description='', translations=()) -> Fragment:
    original = Original(
        raw_content='',
        file=file,
        json_path=json_path,
        lang_uid=lang_uid,
        description_text=description,
        text=text,
    )
    original.raw_content = stringify_fragment_original(original)
    return Fragment(
        id=str(fragment_id),
        chapter_id=str(chapter_id),
        order_number=order_number,
        original=original,
        translations=[parse_fragment_translation(tid, raw) for tid, raw in translations],
    )


def make_status(chapter_id, name, timestamp=1, pages=1) -> ChapterStatus:
    return ChapterStatus(id=str(chapter_id), name=name, modification_timestamp=timestamp, pages=pages)


def write_asset(assets_dir: Path, file: str, data) -> None:
    path = Path(assets_dir) / file
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False), encoding='utf-8')


def seed_store(store: FragmentStore, statuses: Dict[str, ChapterStatus],
               chapters: Dict[str, List[Fragment]]) -> None:
    async def seed():
        await store.write_chapter_statuses(statuses)
        for name in statuses:
            await store.write_fragments(name, chapters.get(name, []))
    asyncio.run(seed())


def load_corpus(store: FragmentStore) -> Corpus:
    return asyncio.run(Corpus.load(store))
