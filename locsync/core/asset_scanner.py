"""
Game-Asset Scanner
==================

Finds the localizable strings shipped with the game. Two interchangeable
strategies produce identical-shape output:

1. ``GameAssetsScanner`` walks the JSON files under ``assets/data`` and
   ``assets/extension``.
2. ``ScanDbScanner`` reads a precomputed scan database.

Asset JSON is wrapped into tagged nodes (object / array / scalar) so the
recursive discovery below dispatches on node kind instead of probing
properties of arbitrary values.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from locsync.core.exceptions import ScanError
from locsync.core.models import LocalizableStringData
from locsync.utils.encoding import read_text_safely
from locsync.utils.json_io import read_json_file


SOURCE_LOCALE = "en_US"
LANG_DIR_PREFIX = "data/lang/"
LANG_FILE_SUFFIX = f".{SOURCE_LOCALE}.json"
JSON_DIRS = ("data", "extension")

IGNORED_LABELS = frozenset([
    '',
    'en_US',
    'LOL, DO NOT TRANSLATE THIS!',
    'LOL, DO NOT TRANSLATE THIS! (hologram)',
    '\\c[1][DO NOT TRANSLATE THE FOLLOWING]\\c[0]',
    '\\c[1][DO NOT TRANSLATE FOLLOWING TEXTS]\\c[0]',
])

_EXTENSION_PREFIX_RE = re.compile(r'^extension/[^/]+/')
_CREDITS_FILE_RE = re.compile(r'^data/credits/.+\.json$')
_CREDITS_NAME_PATH_RE = re.compile(r'^entries/[^/]+/names/\d+$')
_ENEMIES_FILE_RE = re.compile(r'^data/enemies/.+\.json$')
_ENEMIES_META_PATH_RE = re.compile(r'^meta/.+$')


# ---------------------------------------------------------------------------
# Asset nodes
# ---------------------------------------------------------------------------

@dataclass
class ScalarNode:
    value: Union[str, int, float, bool, None]


@dataclass
class ArrayNode:
    items: List["AssetNode"] = field(default_factory=list)


@dataclass
class ObjectNode:
    entries: Dict[str, "AssetNode"] = field(default_factory=dict)


AssetNode = Union[ObjectNode, ArrayNode, ScalarNode]


def to_asset_node(value: Any) -> AssetNode:
    if isinstance(value, dict):
        return ObjectNode({str(k): to_asset_node(v) for k, v in value.items()})
    if isinstance(value, list):
        return ArrayNode([to_asset_node(v) for v in value])
    if value is None or isinstance(value, (str, int, float, bool)):
        return ScalarNode(value)
    raise TypeError(f"Unsupported JSON value: {type(value).__name__}")


def child_node(node: AssetNode, key: str) -> Optional[AssetNode]:
    if isinstance(node, ObjectNode):
        return node.entries.get(key)
    if isinstance(node, ArrayNode):
        if key.isdigit() and int(key) < len(node.items):
            return node.items[int(key)]
        return None
    return None


def get_node_by_path(node: Optional[AssetNode], json_path: Sequence[str]) -> Optional[AssetNode]:
    for key in json_path:
        if node is None:
            return None
        node = child_node(node, key)
    return node


def _string_value(node: Optional[AssetNode]) -> Optional[str]:
    if isinstance(node, ScalarNode) and isinstance(node.value, str):
        return node.value
    return None


def _children(node: AssetNode) -> Iterator[Tuple[str, AssetNode]]:
    if isinstance(node, ObjectNode):
        yield from node.entries.items()
    elif isinstance(node, ArrayNode):
        for i, item in enumerate(node.items):
            yield str(i), item


# ---------------------------------------------------------------------------
# String discovery
# ---------------------------------------------------------------------------

def is_lang_file(file_path: str) -> bool:
    return file_path.startswith(LANG_DIR_PREFIX)


def is_scannable_file(file_path: str) -> bool:
    """Lang files exist once per locale, only the source locale is scanned."""
    return not is_lang_file(file_path) or file_path.endswith(LANG_FILE_SUFFIX)


def find_lang_labels_in_file(lang_file: bool, root: AssetNode) -> Iterator[LocalizableStringData]:
    if lang_file:
        labels = child_node(root, 'labels')
        if labels is None:
            return iter(())
        return _find_strings_in_lang_file(labels, ('labels',))
    return _find_lang_labels_in_node(root, ())


def _find_strings_in_lang_file(node: AssetNode, json_path: Tuple[str, ...]) -> Iterator[LocalizableStringData]:
    if isinstance(node, ScalarNode):
        if isinstance(node.value, str):
            yield LocalizableStringData(json_path=json_path, lang_uid=0, text=node.value)
        return
    for key, child in _children(node):
        yield from _find_strings_in_lang_file(child, json_path + (key,))


def _read_lang_label(node: ObjectNode, json_path: Tuple[str, ...]) -> LocalizableStringData:
    text = _string_value(node.entries[SOURCE_LOCALE])
    if text is None:
        raise ScanError(f"Invalid LangLabel at {'/'.join(json_path)}")

    lang_uid = 0
    uid_node = node.entries.get('langUid')
    if uid_node is not None:
        if (not isinstance(uid_node, ScalarNode) or isinstance(uid_node.value, bool)
                or not isinstance(uid_node.value, (int, float))):
            raise ScanError(f"Invalid LangLabel at {'/'.join(json_path)}")
        lang_uid = int(uid_node.value)

    return LocalizableStringData(json_path=json_path, lang_uid=lang_uid, text=text)


def _find_lang_labels_in_node(node: AssetNode, json_path: Tuple[str, ...]) -> Iterator[LocalizableStringData]:
    if isinstance(node, ScalarNode):
        return
    if isinstance(node, ObjectNode) and SOURCE_LOCALE in node.entries:
        yield _read_lang_label(node, json_path)
        return
    for key, child in _children(node):
        yield from _find_lang_labels_in_node(child, json_path + (key,))


def is_lang_label_ignored(label: LocalizableStringData, file_path: str) -> bool:
    if label.text.strip() in IGNORED_LABELS:
        return True

    json_path = label.json_path_str
    file_path = _EXTENSION_PREFIX_RE.sub('', file_path)

    if _CREDITS_FILE_RE.match(file_path) and _CREDITS_NAME_PATH_RE.match(json_path):
        return True

    if _ENEMIES_FILE_RE.match(file_path) and _ENEMIES_META_PATH_RE.match(json_path):
        return True

    return False


def generate_fragment_description_text(json_path: Sequence[str], root: AssetNode) -> str:
    """
    Describe where a string sits in an asset: the event types and speakers
    of every object met while walking ``json_path``.
    """
    lines: List[str] = []
    node: Optional[AssetNode] = root
    for key in json_path:
        if isinstance(node, ObjectNode):
            node_type = _string_value(node.entries.get('type'))
            if node_type:
                lines.append(f"type: {node_type}")
            person = node.entries.get('person')
            if isinstance(person, ObjectNode):
                name = _string_value(person.entries.get('person'))
                expression = _string_value(person.entries.get('expression'))
                if name:
                    lines.append(f"person: {name}@{expression or 'DEFAULT'}")
        node = child_node(node, key) if node is not None else None
        if node is None:
            break
    return '\n'.join(lines)


# ---------------------------------------------------------------------------
# Scan database
# ---------------------------------------------------------------------------

@dataclass
class ScanDbFragment:
    file: str
    json_path: str
    lang_uid: int
    description: List[str]
    text: Dict[str, str]


@dataclass
class ScanDbGameFile:
    path: str
    fragments: Dict[str, ScanDbFragment] = field(default_factory=dict)


@dataclass
class ScanDb:
    game_files: Dict[str, ScanDbGameFile] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "ScanDb":
        game_files: Dict[str, ScanDbGameFile] = {}
        for path, file_data in data.get('game_files', {}).items():
            game_file = ScanDbGameFile(path=path)
            for json_path, fragment in file_data.get('fragments', {}).items():
                game_file.fragments[json_path] = ScanDbFragment(
                    file=path,
                    json_path=json_path,
                    lang_uid=int(fragment.get('lang_uid') or 0),
                    description=list(fragment.get('description') or []),
                    text=dict(fragment.get('text') or {}),
                )
            game_files[path] = game_file
        return cls(game_files=game_files)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ScanDb":
        try:
            return cls.from_json(read_json_file(path))
        except (OSError, ValueError) as e:
            raise ScanError(f"Could not read scan database {path}: {e}") from e


# ---------------------------------------------------------------------------
# Scanner strategies
# ---------------------------------------------------------------------------

class AssetScanner(ABC):
    """Source of the authoritative set of localizable strings."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def list_files(self) -> List[str]:
        """All asset files this source knows about, in walk order."""

    @abstractmethod
    def iter_lang_labels(self, file_path: str) -> Iterator[LocalizableStringData]:
        """Strings of one file with ``description`` filled in."""

    @abstractmethod
    def lookup(self, file_path: str, json_path: str) -> Optional[LocalizableStringData]:
        """The current string at an address, None if it is gone from the game."""

    @property
    def checks_injected_strings(self) -> bool:
        """Whether strings injected by the mod can be found by this source."""
        return True

    def scannable_files(self) -> List[str]:
        return [path for path in self.list_files() if is_scannable_file(path)]


class GameAssetsScanner(AssetScanner):
    """Walks the shipped JSON data under ``assets_dir``."""

    def __init__(self, assets_dir: Union[str, Path]):
        super().__init__()
        self.assets_dir = Path(assets_dir)
        self._cache: Dict[str, Optional[AssetNode]] = {}

    @property
    def checks_injected_strings(self) -> bool:
        return False

    def list_files(self) -> List[str]:
        file_paths: List[str] = []
        for json_dir in JSON_DIRS:
            base = self.assets_dir / json_dir
            if not base.is_dir():
                continue
            for path in base.rglob('*.json'):
                if path.is_file():
                    file_paths.append(path.relative_to(self.assets_dir).as_posix())
        file_paths.sort()
        return file_paths

    def load_file(self, file_path: str) -> Optional[AssetNode]:
        """Parsed asset, None when the file does not exist. Results are cached."""
        if file_path in self._cache:
            return self._cache[file_path]
        text = read_text_safely(self.assets_dir / file_path)
        node: Optional[AssetNode] = None
        if text is not None:
            try:
                node = to_asset_node(json.loads(text))
            except ValueError as e:
                raise ScanError(f"{file_path}: invalid JSON: {e}") from e
        self._cache[file_path] = node
        return node

    def iter_lang_labels(self, file_path: str) -> Iterator[LocalizableStringData]:
        root = self.load_file(file_path)
        if root is None:
            raise ScanError(f"{file_path}: file not found")
        lang_file = is_lang_file(file_path)
        for label in find_lang_labels_in_file(lang_file, root):
            description = '' if lang_file else generate_fragment_description_text(label.json_path, root)
            label.description = description.split('\n') if description else []
            yield label

    def lookup(self, file_path: str, json_path: str) -> Optional[LocalizableStringData]:
        root = self.load_file(file_path)
        if root is None:
            return None
        lang_file = file_path.endswith(LANG_FILE_SUFFIX)
        path = tuple(json_path.split('/')) if json_path else ()
        node = get_node_by_path(root, path)
        if node is None:
            return None

        if lang_file:
            text = _string_value(node)
            if text is None:
                return None
            return LocalizableStringData(json_path=path, lang_uid=0, text=text, description=[])

        if not isinstance(node, ObjectNode) or SOURCE_LOCALE not in node.entries:
            return None
        label = _read_lang_label(node, path)
        description = generate_fragment_description_text(path, root)
        label.description = description.split('\n') if description else []
        return label


class ScanDbScanner(AssetScanner):
    """Reads strings from a precomputed scan database."""

    def __init__(self, scan_db: ScanDb):
        super().__init__()
        self.scan_db = scan_db

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ScanDbScanner":
        return cls(ScanDb.from_file(path))

    def list_files(self) -> List[str]:
        return sorted(self.scan_db.game_files)

    @staticmethod
    def _to_label(fragment: ScanDbFragment) -> Optional[LocalizableStringData]:
        text = fragment.text.get(SOURCE_LOCALE)
        if text is None:
            return None
        return LocalizableStringData(
            json_path=tuple(fragment.json_path.split('/')) if fragment.json_path else (),
            lang_uid=fragment.lang_uid,
            text=text,
            description=list(fragment.description),
        )

    def iter_lang_labels(self, file_path: str) -> Iterator[LocalizableStringData]:
        game_file = self.scan_db.game_files.get(file_path)
        if game_file is None:
            raise ScanError(f"{file_path}: file not in the scan database")
        for fragment in game_file.fragments.values():
            label = self._to_label(fragment)
            if label is not None:
                yield label

    def lookup(self, file_path: str, json_path: str) -> Optional[LocalizableStringData]:
        game_file = self.scan_db.game_files.get(file_path)
        if game_file is None:
            return None
        fragment = game_file.fragments.get(json_path)
        if fragment is None:
            return None
        return self._to_label(fragment)


def create_scanner(use_scan_db: bool, assets_dir: Union[str, Path], scan_db_file: Union[str, Path]) -> AssetScanner:
    if use_scan_db:
        return ScanDbScanner.from_file(scan_db_file)
    return GameAssetsScanner(assets_dir)
