import json

import pytest

from locsync.core.corpus import Corpus
from locsync.core.exceptions import PackConflictError
from locsync.core.models import ERR_STALE_ORIGINAL, IGNORE_IN_MOD_TAG
from locsync.core.pack_compiler import LocalizeMePacker, PackCompiler, PoExporter

from fakes import make_fragment, make_status


FOO = "data/foo.json"


def _corpus():
    return Corpus(
        statuses={"foo": make_status(1, "foo"), "lang": make_status(2, "lang")},
        chapters={
            "foo": [
                make_fragment(1, 1, 1, FOO, "bar", "Hello", lang_uid=3, description="type: SHOW_MSG",
                              translations=[("t1", "Привет"), ("t2", "Привет!")]),
                make_fragment(2, 1, 2, FOO, "stale", "Old", translations=[
                    ("t3", "Старое"), ("e3", f"{ERR_STALE_ORIGINAL}\n\nOld")]),
                make_fragment(3, 1, 3, FOO, "untranslated", "Nothing"),
                make_fragment(4, 1, 4, FOO, "modded", "Mod", description=IGNORE_IN_MOD_TAG,
                              translations=[("t4", "Мод")]),
            ],
            "lang": [
                make_fragment(5, 2, 1, "data/lang/sc/gui.en_US.json", "labels/start", "Start \"now\"",
                              translations=[("t5", "Старт \"сейчас\"")]),
            ],
        },
    )


def test_packs_contain_only_clean_translated_fragments():
    packs = PackCompiler().compile(_corpus())
    assert packs == {
        FOO: {"bar": {"orig": "Hello", "text": "Привет!"}},
        "data/lang/sc/gui.en_US.json": {"labels/start": {"orig": "Start \"now\"", "text": "Старт \"сейчас\""}},
    }


def test_duplicate_pack_entry_is_a_conflict():
    packer = LocalizeMePacker()
    packer.add_fragment(make_fragment(1, 1, 1, FOO, "bar", "Hello", translations=[("t1", "Привет")]))
    with pytest.raises(PackConflictError) as info:
        packer.add_fragment(make_fragment(2, 1, 2, FOO, "bar", "Hello", translations=[("t2", "Хай")]))
    assert info.value.file == FOO
    assert info.value.json_path == "bar"


def test_duplicate_is_a_conflict_even_when_untranslated():
    packer = LocalizeMePacker()
    assert not packer.add_fragment(make_fragment(1, 1, 1, FOO, "bar", "Hello"))
    with pytest.raises(PackConflictError):
        packer.add_fragment(make_fragment(2, 1, 2, FOO, "bar", "Hello", translations=[("t2", "Хай")]))
    assert packer.packs == {}


def test_write_packs_and_mapping(tmp_path):
    compiler = PackCompiler()
    compiler.compile(_corpus())
    mapping = compiler.write(tmp_path / "packs", tmp_path / "mapping.json")

    assert mapping == {FOO: FOO, "data/lang/sc/gui.en_US.json": "data/lang/sc/gui.en_US.json"}
    assert json.loads((tmp_path / "mapping.json").read_text(encoding="utf-8")) == mapping
    pack = json.loads((tmp_path / "packs" / "data" / "foo.json").read_text(encoding="utf-8"))
    assert pack == {"bar": {"orig": "Hello", "text": "Привет!"}}


def test_po_entry_format():
    fragment = _corpus().chapters["foo"][0]
    assert PoExporter.entry(fragment, "Привет!") == (
        "\n"
        "#. data/foo.json bar #3\n"
        "#. type: SHOW_MSG\n"
        "#: data/foo.json%20bar%20%233\n"
        "msgctxt \"data/foo.json//bar\"\n"
        "msgid \"Hello\"\n"
        "msgstr \"Привет!\"\n"
    )


def test_po_export(tmp_path):
    written = PoExporter().export(_corpus(), tmp_path / "po", ["ru", "en_US", "de"], "ru")

    assert sorted(p.relative_to(tmp_path / "po").as_posix() for p in written) == [
        "de/components/foo.po", "de/components/lang.po",
        "en_US/components/foo.po", "en_US/components/lang.po",
        "ru/components/foo.po", "ru/components/lang.po",
    ]

    ru = (tmp_path / "po" / "ru" / "components" / "foo.po").read_text(encoding="utf-8")
    assert ru.startswith('msgid ""\nmsgstr ""\n"Project-Id-Version: crosscode 0.0.0\\n"\n')
    assert '"Language: ru\\n"' in ru
    assert 'msgstr "Привет!"' in ru
    assert 'msgid "Old"\nmsgstr ""' in ru
    assert "modded" not in ru

    en = (tmp_path / "po" / "en_US" / "components" / "lang.po").read_text(encoding="utf-8")
    assert 'msgid "Start \\"now\\""\nmsgstr "Start \\"now\\""' in en

    de = (tmp_path / "po" / "de" / "components" / "foo.po").read_text(encoding="utf-8")
    assert 'msgstr "Привет!"' not in de
