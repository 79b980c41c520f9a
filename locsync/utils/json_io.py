"""JSON file helpers with whole-file replacement semantics."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

from locsync.utils.encoding import read_text_safely


PathLike = Union[str, Path]


def read_json_file(path: PathLike) -> Any:
    """Read a JSON document; raises FileNotFoundError if it does not exist."""
    path = Path(path)
    text = read_text_safely(path)
    if text is None:
        raise FileNotFoundError(str(path))
    return json.loads(text)


def read_json_file_optional(path: PathLike) -> Optional[Any]:
    """Like :func:`read_json_file` but returns None for a missing file."""
    path = Path(path)
    if not path.exists():
        return None
    return read_json_file(path)


def write_json_file(path: PathLike, data: Any, indent: Optional[int] = 2) -> None:
    """
    Replace ``path`` with the JSON serialization of ``data``.

    The document is written to a sibling temp file first and moved over the
    target, so readers never observe a half-written file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, 'w', encoding='utf-8', newline='\n') as f:
            json.dump(data, f, indent=indent, ensure_ascii=False)
            f.write('\n')
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
