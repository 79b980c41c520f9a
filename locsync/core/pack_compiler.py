"""
Pack Compiler
=============

Turns the reconciled fragment corpus into the artifacts shipped with the mod:

- Localize Me translation packs, one JSON document per asset file, plus a
  mapping table from asset path to pack path.
- gettext PO catalogs, one per chapter and language, for generic catalog
  tooling.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, TextIO, Tuple, Union
from urllib.parse import quote

from locsync.core.asset_scanner import SOURCE_LOCALE, is_lang_label_ignored
from locsync.core.corpus import Corpus
from locsync.core.exceptions import PackConflictError
from locsync.core.models import IGNORE_IN_MOD_TAG, Fragment, LocalizableStringData, Original
from locsync.core.progress import ProgressSink
from locsync.utils.json_io import write_json_file
from locsync.version import VERSION

PackEntry = Dict[str, str]
Pack = Dict[str, PackEntry]


def _is_ignored(original: Original) -> bool:
    if IGNORE_IN_MOD_TAG in original.description_text:
        return True
    label = LocalizableStringData(
        json_path=tuple(original.json_path.split('/')),
        lang_uid=original.lang_uid,
        text=original.text,
    )
    return is_lang_label_ignored(label, original.file)


class LocalizeMePacker:
    """Collects fragments into ``packs[file][json_path] = {orig, text}``."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.packs: Dict[str, Pack] = {}
        self.seen: Set[Tuple[str, str]] = set()

    def add_fragment(self, fragment: Fragment) -> bool:
        """Add a fragment if it is packable. Returns whether it was added."""
        original = fragment.original
        if _is_ignored(original):
            return False

        # duplicates conflict whether or not they are translated
        key = (original.file, original.json_path)
        if key in self.seen:
            raise PackConflictError(original.file, original.json_path)
        self.seen.add(key)

        real, errors = fragment.split_translations()
        if errors or not real:
            return False

        # the newest translation wins
        self.packs.setdefault(original.file, {})[original.json_path] = {
            'orig': original.text, 'text': real[-1].text,
        }
        return True


class PackCompiler:
    def __init__(self, progress: Optional[ProgressSink] = None):
        self.logger = logging.getLogger(__name__)
        self.progress = progress or ProgressSink()
        self.packer = LocalizeMePacker()

    @staticmethod
    def pack_path_for(asset_file: str) -> str:
        return asset_file

    def compile(self, corpus: Corpus) -> Dict[str, Pack]:
        total = corpus.fragment_count
        packed = 0
        for i, (chapter_name, fragment) in enumerate(corpus.iter_fragments()):
            self.progress.report_progress(f"Generating packs for chapter '{chapter_name}'...", i, total)
            if self.packer.add_fragment(fragment):
                packed += 1
        self.logger.info(f"Packed {packed} of {total} fragments into {len(self.packer.packs)} packs")
        return self.packer.packs

    def write(self, packs_dir: Union[str, Path], mapping_file: Union[str, Path]) -> Dict[str, str]:
        packs_dir = Path(packs_dir)
        mapping_table: Dict[str, str] = {}
        total = len(self.packer.packs)
        for i, (asset_file, pack) in enumerate(self.packer.packs.items()):
            self.progress.report_progress(f"Writing pack '{asset_file}'...", i, total + 1)
            pack_path = self.pack_path_for(asset_file)
            mapping_table[asset_file] = pack_path
            write_json_file(packs_dir / pack_path, pack)

        self.progress.report_progress("Writing the pack mapping table...", total, total + 1)
        write_json_file(mapping_file, mapping_table)
        self.progress.done(f"{total} packs written")
        return mapping_table


def _po_string(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


class PoExporter:
    def __init__(self, progress: Optional[ProgressSink] = None):
        self.logger = logging.getLogger(__name__)
        self.progress = progress or ProgressSink()

    @staticmethod
    def header(language: str) -> str:
        fields = [
            "Project-Id-Version: crosscode 0.0.0",
            "Report-Msgid-Bugs-To: ",
            "POT-Creation-Date: ",
            "PO-Revision-Date: ",
            "Last-Translator: ",
            "Language-Team: ",
            f"Language: {language}",
            "MIME-Version: 1.0",
            "Content-Type: text/plain; charset=UTF-8",
            "Content-Transfer-Encoding: 8bit",
            "Plural-Forms: ",
            f"X-Generator: locsync {VERSION}",
        ]
        return 'msgid ""\nmsgstr ""\n' + ''.join(f'"{field}\\n"\n' for field in fields)

    @staticmethod
    def entry(fragment: Fragment, msgstr: str) -> str:
        original = fragment.original
        location = f"{original.file} {original.json_path} #{original.lang_uid}"
        lines: List[str] = ['', f"#. {location}"]
        if original.description_text:
            lines.extend(f"#. {line}" for line in original.description_text.split('\n'))
        lines.extend([
            f"#: {quote(location, safe='/')}",
            f"msgctxt {_po_string(f'{original.file}//{original.json_path}')}",
            f"msgid {_po_string(original.text)}",
            f"msgstr {_po_string(msgstr)}",
        ])
        return '\n'.join(lines) + '\n'

    @staticmethod
    def msgstr_for(fragment: Fragment, language: str, translation_language: str) -> str:
        if language == SOURCE_LOCALE:
            return fragment.original.text
        if language != translation_language:
            return ''
        real, errors = fragment.split_translations()
        if errors or not real:
            return ''
        return real[-1].text

    def write_catalog(self, stream: TextIO, fragments: Iterable[Fragment],
                      language: str, translation_language: str) -> int:
        stream.write(self.header(language))
        count = 0
        for fragment in fragments:
            if _is_ignored(fragment.original):
                continue
            stream.write(self.entry(fragment, self.msgstr_for(fragment, language, translation_language)))
            count += 1
        return count

    def export(self, corpus: Corpus, po_dir: Union[str, Path], languages: Iterable[str],
               translation_language: str) -> List[Path]:
        """Write ``<po_dir>/<lang>/components/<chapter>.po`` for every language."""
        po_dir = Path(po_dir)
        written: List[Path] = []
        languages = list(languages)
        chapters = [(name, fragments) for name, fragments in corpus.chapters.items() if fragments]
        total = len(chapters) * len(languages)

        for lang_index, language in enumerate(languages):
            self.logger.info(f"Generating PO files for language {language}...")
            for chapter_index, (chapter_name, fragments) in enumerate(chapters):
                self.progress.report_progress(
                    f"{language}: {chapter_name}", lang_index * len(chapters) + chapter_index, total
                )
                po_file = po_dir / language / 'components' / f"{chapter_name}.po"
                po_file.parent.mkdir(parents=True, exist_ok=True)
                with open(po_file, 'w', encoding='utf-8', newline='\n') as stream:
                    count = self.write_catalog(stream, fragments, language, translation_language)
                self.logger.debug(f"{po_file}: {count} entries")
                written.append(po_file)

        self.progress.done(f"{len(written)} PO files written")
        return written
