"""
Data model shared by the sync, reconciliation and packing passes.

A fragment is one translatable unit tracked on the translation platform.
Its original side is serialized into ``raw_content`` by a pure function so
that drift can be detected by recomputing and comparing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


ERROR_TAG_PREFIX = "tr_ru:ERR"
ERR_REMOVED_FROM_GAME = "tr_ru:ERR_REMOVED_FROM_GAME"
ERR_STALE_ORIGINAL = "tr_ru:ERR_STALE_ORIGINAL"

# Description markers set by translators on the platform
IGNORE_IN_MOD_TAG = "{ignoreInMod}"
INJECTED_IN_MOD_TAG = "{injectedInMod}"

_EXTENSION_PREFIX_RE = re.compile(r'^extension/([^/]+)/')


@dataclass
class ChapterStatus:
    """Metadata of one chapter on the translation platform."""
    id: str
    name: str
    modification_timestamp: int
    pages: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'modification_timestamp': self.modification_timestamp,
            'pages': self.pages,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChapterStatus":
        return cls(
            id=str(data['id']),
            name=data['name'],
            modification_timestamp=int(data['modification_timestamp']),
            pages=int(data['pages']),
        )


@dataclass
class Translation:
    id: str
    text: str
    raw_text: str

    @property
    def is_error(self) -> bool:
        """Machine-inserted error annotations are stored as translations."""
        return self.text.startswith(ERROR_TAG_PREFIX)

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'text': self.text, 'raw_text': self.raw_text}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Translation":
        return cls(id=str(data['id']), text=data['text'], raw_text=data['raw_text'])


@dataclass
class Original:
    raw_content: str
    file: str
    json_path: str
    lang_uid: int
    description_text: str
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'raw_content': self.raw_content,
            'file': self.file,
            'json_path': self.json_path,
            'lang_uid': self.lang_uid,
            'description_text': self.description_text,
            'text': self.text,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Original":
        return cls(
            raw_content=data['raw_content'],
            file=data['file'],
            json_path=data['json_path'],
            lang_uid=int(data.get('lang_uid') or 0),
            description_text=data.get('description_text', ''),
            text=data['text'],
        )


@dataclass
class Fragment:
    id: str
    chapter_id: str
    order_number: int
    original: Original
    translations: List[Translation] = field(default_factory=list)

    @property
    def location(self) -> str:
        """Human readable address used as the prefix of every log line."""
        return f"{self.original.file} {self.original.json_path}"

    @property
    def key(self) -> Tuple[str, str]:
        return (self.original.file, self.original.json_path)

    def split_translations(self) -> Tuple[List[Translation], List[Translation]]:
        """Return ``(real translations, error annotations)``."""
        real: List[Translation] = []
        errors: List[Translation] = []
        for t in self.translations:
            (errors if t.is_error else real).append(t)
        return real, errors

    def has_error_tag(self, tag: str) -> bool:
        return any(t.text.startswith(tag) for t in self.translations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'chapter_id': self.chapter_id,
            'order_number': self.order_number,
            'original': self.original.to_dict(),
            'translations': [t.to_dict() for t in self.translations],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Fragment":
        return cls(
            id=str(data['id']),
            chapter_id=str(data['chapter_id']),
            order_number=int(data['order_number']),
            original=Original.from_dict(data['original']),
            translations=[Translation.from_dict(t) for t in data.get('translations', [])],
        )


@dataclass
class LocalizableStringData:
    """One localizable string found in the game assets."""
    json_path: Tuple[str, ...]
    lang_uid: int
    text: str
    description: Optional[List[str]] = None

    @property
    def json_path_str(self) -> str:
        return '/'.join(self.json_path)


def stringify_fragment_original(original: Original) -> str:
    """
    Serialize the original side of a fragment in the form posted to the
    platform::

        <file> <json_path> #<lang_uid>
        <description lines>

        <text>
    """
    lines = [f"{original.file} {original.json_path} #{original.lang_uid}"]
    if original.description_text:
        lines.extend(original.description_text.split('\n'))
    return '\n'.join(lines) + '\n\n' + original.text


def parse_fragment_original(raw_content: str) -> Original:
    """Inverse of :func:`stringify_fragment_original`."""
    head, sep, text = raw_content.partition('\n\n')
    if not sep:
        raise ValueError(f"Malformed fragment original: {raw_content[:80]!r}")
    header, *description_lines = head.split('\n')
    file, _, tail = header.partition(' ')
    json_path, sep, lang_uid_str = tail.rpartition(' #')
    if not sep:
        raise ValueError(f"Malformed fragment header: {header!r}")
    try:
        lang_uid = int(lang_uid_str)
    except ValueError:
        raise ValueError(f"Malformed langUid in fragment header: {header!r}") from None
    return Original(
        raw_content=raw_content,
        file=file,
        json_path=json_path,
        lang_uid=lang_uid,
        description_text='\n'.join(description_lines),
        text=text,
    )


def stringify_fragment_translation(translation: Translation) -> str:
    # rawText is what the platform stores, re-posting it keeps flags intact
    return translation.raw_text


def parse_fragment_translation(translation_id: str, raw_text: str) -> Translation:
    text = raw_text.replace('\r\n', '\n').strip()
    return Translation(id=str(translation_id), text=text, raw_text=raw_text)


def make_original(file: str, label: LocalizableStringData, description_text: str) -> Original:
    """Build an ``Original`` for a freshly scanned string with derived raw content."""
    original = Original(
        raw_content='',
        file=file,
        json_path=label.json_path_str,
        lang_uid=label.lang_uid,
        description_text=description_text,
        text=label.text,
    )
    original.raw_content = stringify_fragment_original(original)
    return original


def get_chapter_name_of_file(file_path: str) -> str:
    """
    Map an asset path to the name of the chapter that owns it.

    extension/<ext>/...      -> extension-<ext>
    data/lang/...            -> lang
    data/maps/<area>/...     -> maps-<area>
    data/<dir>/...           -> <dir>
    data/<name>.json         -> <name>
    """
    file_path = file_path.replace('\\', '/')
    ext_match = _EXTENSION_PREFIX_RE.match(file_path)
    if ext_match:
        return f"extension-{ext_match.group(1)}"

    components = file_path.split('/')
    if components[0] == 'data':
        components = components[1:]
    if len(components) == 1:
        name = components[0]
        return name[:-len('.json')] if name.endswith('.json') else name
    if components[0] == 'maps' and len(components) > 2:
        return f"maps-{components[1]}"
    return components[0]
