"""
=============================================================================
MIME TYPE REGISTRY
=============================================================================

Maps file extensions to the Content-Type a file-serving handler should
send. The table is process-wide and can be replaced at runtime.

    mime_type_for("index.html")   → "text/html; charset=utf-8"
    mime_type_for("logo.PNG")     → "image/png"
    mime_type_for("blob.xyz")     → "application/octet-stream"

=============================================================================
CONFIGURE, THEN SERVE
=============================================================================

    ┌──────────────────────────┐        ┌──────────────────────────┐
    │  configuration phase     │        │  serving phase           │
    │  set_mime_types(...)     │  ───►  │  mime_type_for(...)      │
    │  (replaces the table)    │        │  (lock-free reads)       │
    └──────────────────────────┘        └──────────────────────────┘

set_mime_types() builds a new dict and swaps the module reference in one
assignment, so a concurrent reader sees either the old table or the new
one, never a half-built mix. Callers are expected to configure the table
before the server starts; changing it later is allowed but a request in
flight may still use the previous table.

Keys are extensions, lower-cased, stored with a leading dot. ".css" and
"css" name the same entry.

=============================================================================
"""

from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Union


DEFAULT_MIME_TYPE = "application/octet-stream"

DEFAULT_MIME_TYPES = {
    # text
    ".html": "text/html; charset=utf-8",
    ".htm": "text/html; charset=utf-8",
    ".css": "text/css; charset=utf-8",
    ".js": "text/javascript; charset=utf-8",
    ".mjs": "text/javascript; charset=utf-8",
    ".txt": "text/plain; charset=utf-8",
    ".csv": "text/csv; charset=utf-8",
    ".md": "text/markdown; charset=utf-8",
    ".xml": "application/xml",
    ".json": "application/json",
    # images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",
    ".ico": "image/x-icon",
    # fonts
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",
    # audio / video
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    # documents and archives
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".gz": "application/gzip",
    ".tar": "application/x-tar",
    ".wasm": "application/wasm",
}


def _normalize_extension(extension: str) -> str:
    extension = extension.strip().lower()
    if not extension.startswith("."):
        extension = "." + extension
    return extension


def _build_table(mapping: Mapping[str, str]) -> Mapping[str, str]:
    table = {}
    for extension, mime_type in mapping.items():
        if not extension or not extension.strip(". "):
            raise ValueError(f"Invalid file extension: {extension!r}")
        table[_normalize_extension(extension)] = str(mime_type)
    return MappingProxyType(table)


_table: Mapping[str, str] = _build_table(DEFAULT_MIME_TYPES)


def mime_types() -> Mapping[str, str]:
    """The current table, as a read-only mapping."""
    return _table


def set_mime_types(mapping: Mapping[str, str]) -> None:
    """
    Replace the whole table.

    Raises:
        ValueError: If a key is empty or just a dot.
    """
    global _table
    _table = _build_table(mapping)


def update_mime_types(mapping: Mapping[str, str]) -> None:
    """Add or override entries, keeping the rest of the current table."""
    merged = dict(_table)
    merged.update(_build_table(mapping))
    set_mime_types(merged)


def reset_mime_types() -> None:
    set_mime_types(DEFAULT_MIME_TYPES)


def mime_type_for(filename: Union[str, Path], default: Optional[str] = None) -> str:
    """
    Content type for *filename*, looked up by its last extension.

    Files without an extension, or with one the table does not know, get
    *default* (application/octet-stream unless given).
    """
    extension = Path(filename).suffix.lower()
    return _table.get(extension, default or DEFAULT_MIME_TYPE)


def is_text_type(mime_type: str) -> bool:
    mime_type = mime_type.split(";")[0].strip().lower()
    return mime_type.startswith("text/") or mime_type in (
        "application/json",
        "application/xml",
        "image/svg+xml",
    )
