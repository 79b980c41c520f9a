import pytest

from locsync.core.models import (
    ERR_REMOVED_FROM_GAME, ERR_STALE_ORIGINAL, Fragment, LocalizableStringData,
    get_chapter_name_of_file, make_original, parse_fragment_original, parse_fragment_translation,
    stringify_fragment_original,
)

from fakes import make_fragment


def test_original_round_trip_is_byte_identical():
    f = make_fragment(1, 10, 1, "data/maps/town/square.json", "entities/3/settings/event/0/message",
                      "Hello\n\nthere", lang_uid=42, description="type: SHOW_MSG\nperson: main.lea@DEFAULT")
    raw = f.original.raw_content
    parsed = parse_fragment_original(raw)
    assert parsed == f.original
    assert stringify_fragment_original(parsed) == raw
    assert stringify_fragment_original(parse_fragment_original(raw)) == raw


def test_original_without_description():
    raw = "data/lang/sc/gui.en_US.json labels/menu/start #0\n\nStart"
    original = parse_fragment_original(raw)
    assert original.file == "data/lang/sc/gui.en_US.json"
    assert original.json_path == "labels/menu/start"
    assert original.lang_uid == 0
    assert original.description_text == ""
    assert original.text == "Start"
    assert stringify_fragment_original(original) == raw


@pytest.mark.parametrize("raw", [
    "no separator at all",
    "data/foo.json bar\n\ntext",
    "data/foo.json bar #x\n\ntext",
])
def test_malformed_original(raw):
    with pytest.raises(ValueError):
        parse_fragment_original(raw)


def test_make_original_derives_raw_content():
    label = LocalizableStringData(json_path=("bar",), lang_uid=7, text="Hello")
    original = make_original("data/foo.json", label, "type: X")
    assert original.raw_content == "data/foo.json bar #7\ntype: X\n\nHello"


def test_translation_text_is_normalized_but_raw_kept():
    t = parse_fragment_translation(5, "  Привет\r\nмир \n")
    assert t.id == "5"
    assert t.text == "Привет\nмир"
    assert t.raw_text == "  Привет\r\nмир \n"
    assert not t.is_error


def test_split_translations_and_error_tags():
    f = make_fragment(1, 10, 1, "data/foo.json", "bar", "Hello", translations=[
        ("t1", "Привет"),
        ("t2", f"{ERR_STALE_ORIGINAL}\n\nHi"),
    ])
    real, errors = f.split_translations()
    assert [t.id for t in real] == ["t1"]
    assert [t.id for t in errors] == ["t2"]
    assert f.has_error_tag(ERR_STALE_ORIGINAL)
    assert not f.has_error_tag(ERR_REMOVED_FROM_GAME)
    assert f.location == "data/foo.json bar"
    assert f.key == ("data/foo.json", "bar")


def test_fragment_dict_round_trip():
    f = make_fragment(1, 10, 3, "data/foo.json", "bar", "Hello", translations=[("t1", "Привет")])
    assert Fragment.from_dict(f.to_dict()) == f


@pytest.mark.parametrize("file_path, chapter", [
    ("extension/fish-gear/data/items.json", "extension-fish-gear"),
    ("data/lang/sc/gui.en_US.json", "lang"),
    ("data/maps/rhombus-dng/room-1.json", "maps-rhombus-dng"),
    ("data/maps/intro.json", "maps"),
    ("data/database.json", "database"),
    ("data/enemies/hedgehog.json", "enemies"),
    ("data\\areas\\autumn.json", "areas"),
])
def test_chapter_name_of_file(file_path, chapter):
    assert get_chapter_name_of_file(file_path) == chapter
