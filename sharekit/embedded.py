"""Scrape the JSON state that server-rendered pages assign to a global.

Pages hydrate their client app from ``window.<NAME> = {...}</script>``. The
payload is JavaScript rather than strict JSON, so bare ``undefined`` tokens outside
string literals are mapped to ``null`` before parsing.
"""

import json
import re
from typing import Any, Callable, Iterable, Optional

from .errors import MalformedEmbeddedState, UpstreamFormatChanged

SCRIPT_END = "</script>"
# One bundler emits ``$render_data = [{...}][0] || {}``.
ARRAY_INDEX_END = "[0]"

# String literals are matched first so their contents are never rewritten.
_UNDEFINED_RE = re.compile(r'"(?:[^"\\]|\\.)*"|\bundefined\b')
_SNIPPET_LEN = 100


def _undefined_to_null(m: re.Match) -> str:
    token = m.group(0)
    return token if token.startswith('"') else "null"


def extract_state(html: str, variable: str, terminator: str = SCRIPT_END, platform: str = "") -> Any:
    """Return the parsed value assigned to ``variable`` inside ``html``.

    With ``terminator=ARRAY_INDEX_END`` the captured array is indexed and its
    first element returned.
    """
    pattern = re.escape(variable) + r"\s*=\s*(.*?)" + re.escape(terminator)
    m = re.search(pattern, html or "", re.DOTALL)
    if not m:
        raise UpstreamFormatChanged(f"页面中未找到 {variable}", platform=platform)

    raw = m.group(1).strip().rstrip(";").strip()
    raw = _UNDEFINED_RE.sub(_undefined_to_null, raw)
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedEmbeddedState(
            f"{variable} JSON 解析失败: {e}", snippet=raw[:_SNIPPET_LEN], platform=platform
        ) from e

    if terminator == ARRAY_INDEX_END:
        if not isinstance(value, list) or not value:
            raise UpstreamFormatChanged(f"{variable} 不是非空数组", platform=platform)
        return value[0]
    return value


def _sorted_items(mapping: dict) -> Iterable[tuple[str, Any]]:
    return sorted(mapping.items(), key=lambda kv: str(kv[0]))


def find_node(mapping: Any, predicate: Callable[[str, Any], bool]) -> Optional[tuple[str, Any]]:
    """First ``(key, node)`` satisfying ``predicate``, keys visited in sorted order.

    Iteration order of the upstream map is not meaningful, so the choice
    never depends on it.
    """
    if not isinstance(mapping, dict):
        return None
    for key, node in _sorted_items(mapping):
        if predicate(key, node):
            return key, node
    return None


def find_node_with_keys(mapping: Any, *keys: str) -> Optional[Any]:
    """First object in ``mapping`` that contains every one of ``keys``."""
    found = find_node(mapping, lambda _k, v: isinstance(v, dict) and all(k in v for k in keys))
    return found[1] if found else None


def first_value(mapping: Any, predicate: Optional[Callable[[Any], bool]] = None) -> Optional[Any]:
    """First value of a keyed map (sorted keys) that is an object and passes ``predicate``."""
    found = find_node(
        mapping,
        lambda _k, v: isinstance(v, dict) and (predicate is None or predicate(v)),
    )
    return found[1] if found else None


def dig(value: Any, *path, default: Any = None) -> Any:
    """Nested lookup through dicts (by key) and lists (by index)."""
    cur = value
    for step in path:
        if isinstance(cur, dict):
            if step not in cur:
                return default
            cur = cur[step]
        elif isinstance(cur, list) and isinstance(step, int):
            if not -len(cur) <= step < len(cur):
                return default
            cur = cur[step]
        else:
            return default
    return default if cur is None else cur


def pointer(value: Any, path: str, default: Any = None) -> Any:
    """JSON-pointer style access, e.g. ``pointer(doc, "/data/items/0/url")``."""
    steps = []
    for part in path.strip("/").split("/") if path.strip("/") else []:
        part = part.replace("~1", "/").replace("~0", "~")
        steps.append(int(part) if part.isdigit() else part)
    cur = value
    for step in steps:
        if isinstance(cur, list) and isinstance(step, int):
            cur = dig(cur, step)
        elif isinstance(cur, dict):
            cur = cur.get(str(step)) if str(step) in cur else None
        else:
            cur = None
        if cur is None:
            return default
    return cur


def dig_str(value: Any, *path, default: str = "") -> str:
    v = dig(value, *path)
    return v if isinstance(v, str) else default


def pointer_str(value: Any, path: str, default: str = "") -> str:
    v = pointer(value, path)
    return v if isinstance(v, str) else default
