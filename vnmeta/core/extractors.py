"""Lenient extraction helpers for HTML tables and loosely-structured JSON.

Upstream sources give no schema guarantees, so every helper here answers
"is field X present?" and returns ``None`` / empty instead of raising.
"""

from __future__ import annotations

import json
import re
from typing import Any

from bs4 import BeautifulSoup, Tag

_SIMPLE_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "n": "\n",
    "r": "",
    "t": "\t",
    "b": "\b",
    "f": "\f",
}
_ESCAPE_RE = re.compile(r"\\(u[0-9a-fA-F]{4}|.)")


def parse_first_table(html: str) -> list[dict[str, str]]:
    """Convert the first ``<table>`` of *html* into row mappings.

    The first row supplies the column names; every following row becomes a
    dict. Cells beyond the header count are ignored and short rows simply
    produce fewer keys.
    """
    soup = BeautifulSoup(html, "lxml")
    table = soup.find("table")
    if table is None:
        return []

    rows = table.find_all("tr")
    if not rows:
        return []

    headers = [cell.get_text().strip() for cell in rows[0].find_all(["th", "td"])]
    if not headers:
        return []

    results: list[dict[str, str]] = []
    for row in rows[1:]:
        cells = row.find_all("td")
        if not cells:
            continue
        results.append(
            {header: cell.get_text().strip() for header, cell in zip(headers, cells)}
        )
    return results


def element_text(node: Tag) -> str:
    """Text of *node* with ``<br>`` turned into newlines."""
    for br in node.find_all("br"):
        br.replace_with("\n")
    return node.get_text().strip()


def unescape_slashes(raw: str) -> str:
    return raw.replace("\\/", "/")


def decode_json_string(value: str) -> str:
    """Decode JSON string escapes (``\\n``, ``\\uXXXX``, ...) in a raw fragment."""

    def _replace(match: re.Match[str]) -> str:
        token = match.group(1)
        if token.startswith("u") and len(token) == 5:
            return chr(int(token[1:], 16))
        return _SIMPLE_ESCAPES.get(token, token)

    return _ESCAPE_RE.sub(_replace, value)


def load_json(raw: str) -> Any:
    """Parse *raw* as JSON, returning ``None`` on any syntax error."""
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None


def find_json_string(raw: str, key: str) -> str | None:
    """Find the first ``"key": "value"`` pair in a raw JSON text.

    Used as a fallback when the document as a whole does not parse.
    """
    pattern = rf'"{re.escape(key)}"\s*:\s*"((?:[^"\\]|\\.)*)"'
    match = re.search(pattern, raw)
    if not match:
        return None
    value = decode_json_string(match.group(1))
    return value if value.strip() else None


def find_json_array_names(raw: str, key: str) -> list[str]:
    """Collect ``"name"`` strings from the first ``"key": [...]`` array in raw JSON."""
    section = re.search(rf'"{re.escape(key)}"\s*:\s*\[(.*?)\]', raw, re.DOTALL)
    if not section:
        return []
    names = re.findall(r'"name"\s*:\s*"((?:[^"\\]|\\.)*)"', section.group(1))
    return [decode_json_string(n) for n in names if n]


def get_str(data: Any, key: str) -> str | None:
    """``data[key]`` when *data* is a mapping and the value is a non-blank string."""
    if not isinstance(data, dict):
        return None
    value = data.get(key)
    if isinstance(value, str) and value.strip():
        return value
    return None


def get_float(data: Any, key: str) -> float | None:
    if not isinstance(data, dict):
        return None
    value = data.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def get_list(data: Any, key: str) -> list[Any]:
    if not isinstance(data, dict):
        return []
    value = data.get(key)
    return value if isinstance(value, list) else []


def get_dict(data: Any, key: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        return {}
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def names_of(items: list[Any]) -> list[str]:
    """``name`` values of the mapping items in *items*, skipping anything else."""
    names: list[str] = []
    for item in items:
        name = get_str(item, "name")
        if name:
            names.append(name)
    return names
