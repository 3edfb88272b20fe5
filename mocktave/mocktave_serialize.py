"""
JSON and YAML conversion for workspaces, configs and gateway replies.

Interpreter values map onto builtin data through `to_builtin()`. JSON has no
spelling for non-finite floats, so Inf, -Inf and NaN are written as the
strings the interpreter itself prints.
"""
from __future__ import annotations

import json
import math
import re
import collections.abc
from typing import Any, Callable, Dict, Optional, Tuple

import yaml

from mocktave.mocktave_datatypes import Value

_CHARSET_RE = re.compile(r"charset\s*=\s*[\"']?([^\s;\"']+)", re.IGNORECASE)


def _dump_json(data: Any, pretty: bool) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2 if pretty else None)


def _dump_yaml(data: Any, pretty: bool) -> str:
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=not pretty)


# name -> (loader, dumper)
_FORMATS: Dict[str, Tuple[Callable[[str], Any], Callable[[Any, bool], str]]] = {
    "json": (json.loads, _dump_json),
    "yaml": (yaml.safe_load, _dump_yaml),
}


def _decode(data: bytes | bytearray | str, content_type: Optional[str]) -> str:
    if isinstance(data, str):
        return data
    m = _CHARSET_RE.search(content_type or "")
    try:
        return bytes(data).decode(m.group(1) if m else "utf-8", errors="replace")
    except LookupError:
        return bytes(data).decode("utf-8", errors="replace")


def _plain(obj: Any) -> Any:
    if isinstance(obj, Value) or (isinstance(obj, collections.abc.Mapping) and hasattr(obj, "to_builtin")):
        obj = obj.to_builtin()
    match obj:
        case float() if math.isnan(obj):
            return "NaN"
        case float() if math.isinf(obj):
            return "Inf" if obj > 0 else "-Inf"
        case list() | tuple():
            return [_plain(x) for x in obj]
        case collections.abc.Mapping():
            return {k: _plain(v) for k, v in obj.items()}
    return obj


def detect_format(content_type: Optional[str] = None, data_hint: Optional[str] = None) -> Optional[str]:
    """'json' or 'yaml' from a Content-Type, else from the look of the data."""
    ct = (content_type or "").lower()
    for name in _FORMATS:
        if name in ct:
            return name
    if data_hint is not None and data_hint.lstrip()[:1] in ("{", "["):
        return "json"
    return None


def deserialize(data: bytes | bytearray | str,
                *,
                content_type: Optional[str] = None,
                fmt: Optional[str] = None) -> Any:
    """Decodes JSON or YAML. Text in any other format comes back unchanged.

    JSON that fails to load is retried as YAML, which accepts the
    hand-written variants a service may send.
    """
    text = _decode(data, content_type)
    name = fmt or detect_format(content_type, text)
    if name not in _FORMATS:
        return text
    if name == "json":
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            name = "yaml"
    try:
        return _FORMATS[name][0](text)
    except yaml.YAMLError:
        return text


def serialize(value: Any, *, fmt: str, pretty: bool = True) -> str:
    """Writes a Workspace, a Value, or builtin data as 'json' or 'yaml'."""
    name = (fmt or "").lower()
    if name not in _FORMATS:
        raise ValueError(f"Unsupported serialization format: {fmt!r}")
    return _FORMATS[name][1](_plain(value), pretty)


__all__ = ["deserialize", "serialize", "detect_format"]
