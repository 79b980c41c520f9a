import asyncio
import json

import pytest

from locsync.core.exceptions import StoreError
from locsync.core.fragment_store import FragmentStore

from fakes import make_fragment, make_status


def test_missing_manifest_is_empty(store):
    assert asyncio.run(store.read_chapter_statuses()) == {}
    assert asyncio.run(store.read_fragments("nothing")) == []


def test_statuses_and_fragments_round_trip(store):
    statuses = {"lang": make_status(1, "lang", 5, 2), "maps-town": make_status(2, "maps-town", 7, 1)}
    fragments = [
        make_fragment(1, 1, 1, "data/lang/sc/gui.en_US.json", "labels/a", "A", translations=[("t", "А")]),
        make_fragment(2, 1, 2, "data/lang/sc/gui.en_US.json", "labels/b", "B"),
    ]

    async def run():
        await store.write_chapter_statuses(statuses)
        await store.write_fragments("lang", fragments)
        return await store.read_chapter_statuses(), await store.read_fragments("lang")

    read_statuses, read_fragments = asyncio.run(run())
    assert read_statuses == statuses
    assert list(read_statuses) == ["lang", "maps-town"]
    assert read_fragments == fragments
    assert store.chapter_file("lang").exists()


def test_writes_replace_whole_file_without_leftovers(store):
    async def run():
        await store.write_fragments("lang", [make_fragment(1, 1, 1, "data/a.json", "x", "X")])
        await store.write_fragments("lang", [])

    asyncio.run(run())
    assert json.loads(store.chapter_file("lang").read_text(encoding="utf-8")) == []
    assert [p.name for p in store.chapter_fragments_dir.iterdir()] == ["lang.json"]


def test_lookup_table_requires_compilation(store):
    with pytest.raises(StoreError, match="compile it first"):
        asyncio.run(store.read_lookup_table())

    asyncio.run(store.write_lookup_table({"Hi!": ["Привет!"]}))
    assert asyncio.run(store.read_lookup_table()) == {"Hi!": ["Привет!"]}


def test_corrupt_file_raises_store_error(tmp_path):
    store = FragmentStore(tmp_path)
    store.chapter_statuses_file.write_text("{not json", encoding="utf-8")
    with pytest.raises(StoreError):
        asyncio.run(store.read_chapter_statuses())
