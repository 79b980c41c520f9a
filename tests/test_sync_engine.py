import asyncio

from locsync.core.sync_engine import SyncEngine

from fakes import FakeNotaClient, make_fragment, make_status, seed_store


def _platform():
    statuses = {
        "lang": make_status(1, "lang", timestamp=100, pages=2),
        "maps-town": make_status(2, "maps-town", timestamp=200, pages=1),
    }
    pages = {
        ("1", 1): [make_fragment(12, 1, 2, "data/lang/sc/gui.en_US.json", "labels/b", "B")],
        ("1", 2): [make_fragment(11, 1, 1, "data/lang/sc/gui.en_US.json", "labels/a", "A")],
        ("2", 1): [make_fragment(21, 2, 1, "data/maps/town/a.json", "x", "X")],
    }
    return FakeNotaClient(statuses, pages)


def test_first_run_downloads_everything(store):
    client = _platform()
    corpus = asyncio.run(SyncEngine(client, store).download_translations())

    assert sorted(client.fetch_calls) == [("lang", 1), ("lang", 2), ("maps-town", 1)]
    assert [f.id for f in corpus.chapters["lang"]] == ["11", "12"]
    assert list(corpus.statuses) == ["lang", "maps-town"]

    assert asyncio.run(store.read_chapter_statuses()) == client.statuses
    assert [f.id for f in asyncio.run(store.read_fragments("lang"))] == ["11", "12"]


def test_unchanged_chapter_is_read_from_disk(store):
    client = _platform()
    stored = [make_fragment(99, 2, 1, "data/maps/town/a.json", "x", "X", translations=[("t", "Икс")])]
    seed_store(store, {"maps-town": make_status(2, "maps-town", timestamp=200)}, {"maps-town": stored})

    corpus = asyncio.run(SyncEngine(client, store).download_translations(force=False))

    assert all(name == "lang" for name, _ in client.fetch_calls)
    assert corpus.chapters["maps-town"] == stored


def test_changed_timestamp_refetches(store):
    client = _platform()
    seed_store(store, {"maps-town": make_status(2, "maps-town", timestamp=150)}, {"maps-town": []})

    corpus = asyncio.run(SyncEngine(client, store).download_translations())

    assert ("maps-town", 1) in client.fetch_calls
    assert [f.id for f in corpus.chapters["maps-town"]] == ["21"]


def test_force_refetches_unchanged(store):
    client = _platform()
    seed_store(store, dict(client.statuses), {})

    asyncio.run(SyncEngine(client, store).download_translations(force=True))

    assert len(client.fetch_calls) == 3


def test_missing_chapter_file_refetches(store):
    client = _platform()
    seed_store(store, dict(client.statuses), {})
    store.chapter_file("lang").unlink()

    asyncio.run(SyncEngine(client, store).download_translations())

    assert sorted(client.fetch_calls) == [("lang", 1), ("lang", 2)]


def test_deleted_chapters_drop_out_of_manifest(store):
    client = _platform()
    seed_store(store, {"old": make_status(9, "old")}, {"old": []})

    asyncio.run(SyncEngine(client, store).download_translations())

    assert list(asyncio.run(store.read_chapter_statuses())) == ["lang", "maps-town"]
