"""Title normalization for cross-source comparison."""

from __future__ import annotations

# Full-width ASCII block (！..～) maps onto printable ASCII by a fixed offset.
_FULLWIDTH_START = 0xFF01
_FULLWIDTH_END = 0xFF5E
_FULLWIDTH_OFFSET = 0xFEE0

_FOLD_TABLE: dict[int, int] = {
    cp: cp - _FULLWIDTH_OFFSET for cp in range(_FULLWIDTH_START, _FULLWIDTH_END + 1)
}
_FOLD_TABLE[0x3000] = 0x20  # ideographic space

_SEPARATOR = " "


def normalize_title(value: str | None) -> str:
    """Fold full-width alphanumerics/punctuation to half-width and lower-case.

    Absorbs differences like "アマカノ２" vs "アマカノ2" between sources.
    """
    if not value:
        return ""
    return value.strip().translate(_FOLD_TABLE).strip().lower()


def titles_match(candidate: str | None, query: str | None) -> bool:
    """Exact match after normalization, or *candidate* is an edition of *query*.

    "Café Stella 初回限定版" matches "Café Stella" because the normalized
    candidate starts with the normalized query followed by a separator.
    """
    wanted = normalize_title(query)
    if not wanted:
        return False
    actual = normalize_title(candidate)
    return actual == wanted or actual.startswith(wanted + _SEPARATOR)
