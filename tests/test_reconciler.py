import asyncio

import pytest

from locsync.core.asset_scanner import GameAssetsScanner
from locsync.core.models import (
    ERR_REMOVED_FROM_GAME, ERR_STALE_ORIGINAL, IGNORE_IN_MOD_TAG, INJECTED_IN_MOD_TAG,
)
from locsync.core.reconciler import Reconciler, compute_word_diff

from fakes import make_fragment, make_status, seed_store, write_asset


FOO = "data/foo.json"
TOWN = "data/maps/town/a.json"


def _statuses():
    return {
        "foo": make_status(1, "foo"),
        "maps-town": make_status(2, "maps-town"),
    }


@pytest.fixture
def assets(assets_dir):
    write_asset(assets_dir, FOO, {
        "bar": {"en_US": "Hello!", "langUid": 1},
        "baz": {"en_US": "Second", "langUid": 2},
    })
    write_asset(assets_dir, TOWN, {
        "event": {"type": "SHOW_MSG", "msg": {"en_US": "In town", "langUid": 3}},
    })
    return assets_dir


def _reconciler(client, store, assets):
    return Reconciler(client, store, GameAssetsScanner(assets))


def test_word_diff():
    assert compute_word_diff("Hello there", "Hello world") == "Hello [-there-] {+world+}"
    assert compute_word_diff("same", "same") == "same"


def test_fresh_fragment_needs_nothing(client, store, assets):
    seed_store(store, _statuses(), {"foo": [make_fragment(10, 1, 1, FOO, "bar", "Hello!", lang_uid=1)]})
    count = asyncio.run(_reconciler(client, store, assets).fix_fragment_originals())
    assert count == 0
    assert client.mutations == []


def test_stale_original(client, store, assets):
    seed_store(store, _statuses(), {"foo": [
        make_fragment(10, 1, 1, FOO, "bar", "Hello", lang_uid=1, translations=[("t1", "Привет")]),
    ]})

    asyncio.run(_reconciler(client, store, assets).fix_fragment_originals())

    assert client.calls("add_translation") == [
        ("add_translation", "1", "10", f"{ERR_STALE_ORIGINAL}\n\nHello"),
    ]
    edits = client.calls("edit_original")
    assert len(edits) == 1
    assert edits[0][4] == "data/foo.json bar #1\n\nHello!"

    stored = asyncio.run(store.read_fragments("foo"))[0]
    assert stored.original.text == "Hello!"
    assert stored.original.raw_content == "data/foo.json bar #1\n\nHello!"
    assert stored.has_error_tag(ERR_STALE_ORIGINAL)


def test_stale_original_with_word_diff(client, store, assets):
    seed_store(store, _statuses(), {"foo": [make_fragment(10, 1, 1, FOO, "baz", "First", lang_uid=2)]})
    asyncio.run(_reconciler(client, store, assets).fix_fragment_originals(word_diff=True))
    assert client.calls("add_translation")[0][3] == f"{ERR_STALE_ORIGINAL}\n\n[-First-] {{+Second+}}"


def test_removed_fragment_is_annotated_once(client, store, assets):
    seed_store(store, _statuses(), {"foo": [
        make_fragment(10, 1, 1, FOO, "gone", "Bye", translations=[("t1", "Пока")]),
    ]})

    asyncio.run(_reconciler(client, store, assets).fix_fragment_originals())
    assert client.calls("add_translation") == [("add_translation", "1", "10", ERR_REMOVED_FROM_GAME)]
    assert client.calls("delete_original") == []

    client.mutations.clear()
    asyncio.run(_reconciler(client, store, assets).fix_fragment_originals())
    assert client.mutations == []


def test_unreadable_asset_counts_as_removed(client, store, assets):
    (assets / "data" / "broken.json").write_text("{oops", encoding="utf-8")
    seed_store(store, _statuses(), {"foo": [make_fragment(10, 1, 1, "data/broken.json", "x", "X")]})
    asyncio.run(_reconciler(client, store, assets).fix_fragment_originals())
    assert client.calls("add_translation") == [("add_translation", "1", "10", ERR_REMOVED_FROM_GAME)]


def test_mod_tagged_fragments_are_skipped(client, store, assets):
    seed_store(store, _statuses(), {"foo": [
        make_fragment(10, 1, 1, FOO, "custom", "Mod text", description=IGNORE_IN_MOD_TAG),
        make_fragment(11, 1, 2, FOO, "injected", "Injected", description=INJECTED_IN_MOD_TAG),
    ]})
    asyncio.run(_reconciler(client, store, assets).fix_fragment_originals())
    assert client.mutations == []


def test_upload_new_fragments(client, store, assets):
    seed_store(store, {"foo": make_status(1, "foo")}, {"foo": [
        make_fragment(10, 1, 5, FOO, "bar", "Hello!", lang_uid=1),
    ]})

    count = asyncio.run(_reconciler(client, store, assets).upload_new_fragments())

    # the town chapter does not exist on the platform, only foo/baz is uploaded
    assert count == 1
    [(_, chapter_id, fragment_id, order_number, raw)] = client.calls("add_original")
    assert (chapter_id, order_number) == ("1", 6)
    assert raw == "data/foo.json baz #2\n\nSecond"

    stored = asyncio.run(store.read_fragments("foo"))
    assert [(f.id, f.order_number) for f in stored] == [("10", 5), (fragment_id, 6)]


def test_fix_fragment_order(client, store, assets):
    seed_store(store, _statuses(), {"foo": [
        make_fragment(11, 1, 1, FOO, "baz", "Second", lang_uid=2),
        make_fragment(12, 1, 2, FOO, "gone", "Old", translations=[("e", ERR_REMOVED_FROM_GAME)]),
        make_fragment(10, 1, 7, FOO, "bar", "Hello!", lang_uid=1),
    ]})

    asyncio.run(_reconciler(client, store, assets).fix_fragment_order())

    stored = asyncio.run(store.read_fragments("foo"))
    assert [(f.id, f.order_number) for f in stored] == [("10", 1), ("11", 2), ("12", 3)]
    edited = sorted((m[2], m[3]) for m in client.calls("edit_original"))
    assert edited == [("10", 1), ("11", 2), ("12", 3)]

    client.mutations.clear()
    asyncio.run(_reconciler(client, store, assets).fix_fragment_order())
    assert client.mutations == []


def test_fix_order_only_pushes_changed(client, store, assets):
    seed_store(store, _statuses(), {"foo": [
        make_fragment(10, 1, 1, FOO, "bar", "Hello!", lang_uid=1),
        make_fragment(11, 1, 3, FOO, "baz", "Second", lang_uid=2),
    ]})
    asyncio.run(_reconciler(client, store, assets).fix_fragment_order())
    assert [(m[2], m[3]) for m in client.calls("edit_original")] == [("11", 2)]


def test_resplit_moves_fragment_with_translations(client, store, assets):
    seed_store(store, _statuses(), {"foo": [
        make_fragment(10, 1, 4, TOWN, "event/msg", "In town", lang_uid=3,
                      description="type: SHOW_MSG", translations=[("t1", "В городе")]),
    ]})

    asyncio.run(_reconciler(client, store, assets).resplit_chapters())

    [(_, chapter_id, new_id, order_number, _raw)] = client.calls("add_original")
    assert (chapter_id, order_number) == ("2", 4)
    assert client.calls("add_translation") == [("add_translation", "2", new_id, "В городе")]
    assert client.calls("delete_original") == [("delete_original", "1", "10")]
    assert client.mutations[-1][0] == "delete_original"

    assert asyncio.run(store.read_fragments("foo")) == []
    [moved] = asyncio.run(store.read_fragments("maps-town"))
    assert (moved.id, moved.chapter_id) == (new_id, "2")
    assert [t.text for t in moved.translations] == ["В городе"]


def test_resplit_without_target_chapter(client, store, assets):
    seed_store(store, {"foo": make_status(1, "foo")}, {"foo": [
        make_fragment(10, 1, 1, TOWN, "event/msg", "In town", lang_uid=3),
    ]})
    asyncio.run(_reconciler(client, store, assets).resplit_chapters())
    assert client.mutations == []


def test_delete_ignored_lang_labels(client, store, assets):
    seed_store(store, _statuses(), {"foo": [
        make_fragment(10, 1, 1, FOO, "bar", "Hello!", lang_uid=1),
        make_fragment(11, 1, 2, FOO, "empty", ""),
        make_fragment(12, 1, 3, "data/enemies/hedgehog.json", "meta/name", "Hedgehog"),
    ]})
    asyncio.run(_reconciler(client, store, assets).delete_ignored_lang_labels())
    assert sorted(m[2] for m in client.calls("delete_original")) == ["11", "12"]
    assert [f.id for f in asyncio.run(store.read_fragments("foo"))] == ["10"]


def test_full_pass_is_idempotent(client, store, assets):
    seed_store(store, _statuses(), {
        "foo": [
            make_fragment(10, 1, 3, FOO, "bar", "Hello", lang_uid=1, translations=[("t1", "Привет")]),
            make_fragment(11, 1, 1, FOO, "gone", "Removed", translations=[("t2", "Удалено")]),
            make_fragment(12, 1, 2, FOO, "empty", ""),
            make_fragment(13, 1, 4, TOWN, "event/msg", "In town", lang_uid=3, description="type: SHOW_MSG"),
        ],
        "maps-town": [],
    })

    first = asyncio.run(_reconciler(client, store, assets).run_full_pass())
    assert first > 0

    for name in ("foo", "maps-town"):
        orders = [f.order_number for f in asyncio.run(store.read_fragments(name))]
        assert orders == list(range(1, len(orders) + 1))

    client.mutations.clear()
    second = asyncio.run(_reconciler(client, store, assets).run_full_pass())
    assert second == 0
    assert client.mutations == []
