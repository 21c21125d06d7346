"""
=============================================================================
HTTP HEADERS
=============================================================================

An ordered, case-insensitive multimap of header fields.

Why not a plain dict?

    1. ORDER      Headers are written back out in the order they were added.
    2. CASE       "Content-Type" and "content-type" are the same field
                  (RFC 7230 §3.2), but we keep the spelling the sender used.
    3. REPEATS    Some fields legitimately appear more than once
                  (Set-Cookie, Via, Warning). A dict would lose all but one.

    ┌──────────────────────────────────────────────────────────┐
    │  _items = [("Content-Type", "text/html"),                │
    │            ("Set-Cookie",   "a=1"),                      │
    │            ("Set-Cookie",   "b=2")]                      │
    │                                                          │
    │  headers["content-type"]       → "text/html"             │
    │  headers.get_list("SET-COOKIE") → ["a=1", "b=2"]         │
    └──────────────────────────────────────────────────────────┘

Request headers are frozen after parsing; response headers stay mutable
until the response is serialized.

=============================================================================
"""

from typing import Iterable, Iterator, List, Optional, Tuple, Union


HeaderItems = Union["Headers", dict, Iterable[Tuple[str, str]]]


class Headers:
    """Ordered, case-insensitive multimap of HTTP header fields."""

    __slots__ = ("_items", "_frozen")

    def __init__(self, items: Optional[HeaderItems] = None, frozen: bool = False):
        self._items: List[Tuple[str, str]] = []
        self._frozen = False
        if items is not None:
            pairs = items.items() if isinstance(items, (dict, Headers)) else items
            for name, value in pairs:
                self.add(name, value)
        self._frozen = frozen

    # =========================================================================
    # READING
    # =========================================================================

    def __getitem__(self, name: str) -> str:
        key = name.lower()
        for item_name, value in self._items:
            if item_name.lower() == key:
                return value
        raise KeyError(name)

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        key = name.lower()
        return any(item_name.lower() == key for item_name, _ in self._items)

    def __iter__(self) -> Iterator[str]:
        seen = set()
        for name, _ in self._items:
            if name.lower() not in seen:
                seen.add(name.lower())
                yield name

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Headers):
            return self._items == other._items
        if isinstance(other, dict):
            return self == Headers(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"Headers({self._items!r})"

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value for *name*, or *default*."""
        try:
            return self[name]
        except KeyError:
            return default

    def get_list(self, name: str) -> List[str]:
        """All values for *name*, in order."""
        key = name.lower()
        return [value for item_name, value in self._items if item_name.lower() == key]

    def items(self) -> List[Tuple[str, str]]:
        """Every (name, value) pair, repeats included."""
        return list(self._items)

    # =========================================================================
    # WRITING
    # =========================================================================

    def _check_mutable(self) -> None:
        if self._frozen:
            raise TypeError("headers are read-only")

    def add(self, name: str, value: str) -> None:
        """Append a field, keeping any existing values for the same name."""
        self._check_mutable()
        self._items.append((str(name), str(value)))

    def __setitem__(self, name: str, value: str) -> None:
        """Replace every value for *name* with a single one."""
        self._check_mutable()
        key = name.lower()
        self._items = [(n, v) for n, v in self._items if n.lower() != key]
        self._items.append((str(name), str(value)))

    def __delitem__(self, name: str) -> None:
        self._check_mutable()
        key = name.lower()
        if name not in self:
            raise KeyError(name)
        self._items = [(n, v) for n, v in self._items if n.lower() != key]

    def setdefault(self, name: str, value: str) -> str:
        if name in self:
            return self[name]
        self.add(name, value)
        return value

    def copy(self, frozen: bool = False) -> "Headers":
        return Headers(self._items, frozen=frozen)

    @property
    def frozen(self) -> bool:
        return self._frozen
