"""
Encoding helpers to read game asset text without crashing on odd bytes.
"""

from __future__ import annotations

import chardet
from pathlib import Path
from typing import Optional, Tuple


def decode_bytes(raw: bytes, preferred: Tuple[str, ...] = ("utf-8-sig", "utf-8")) -> str:
    """
    Decode bytes with tolerant fallbacks:
    - try preferred encodings first
    - then chardet detection with errors='replace'
    """
    for enc in preferred:
        try:
            return raw.decode(enc)
        except UnicodeDecodeError:
            continue

    detected = chardet.detect(raw)
    enc = detected.get("encoding") or "utf-8"
    try:
        return raw.decode(enc, errors="replace")
    except LookupError:
        return raw.decode("utf-8", errors="replace")


def read_text_safely(path: Path, preferred: Tuple[str, ...] = ("utf-8-sig", "utf-8")) -> Optional[str]:
    """Read file as text; returns None when the file is missing or unreadable."""
    try:
        raw = Path(path).read_bytes()
    except OSError:
        return None
    return decode_bytes(raw, preferred)
