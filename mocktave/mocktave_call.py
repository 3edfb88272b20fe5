"""
Synthesizes interpreter source for a function call, and reads it back.

A synthesized call binds every argument to a temporary, then binds the
function's result to the reserved output name:

    mocktave_arg_1 = 100;
    mocktave_out = primes(mocktave_arg_1);
"""
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import pystache
from koine import Parser

from mocktave.mocktave_datatypes import (
    Value, Scalar, Boolean, Text, Matrix, Cell, Undefined, SynthesisError, to_value,
)
from mocktave.mocktave_parser import parse_number, unquote
from mocktave.mocktave_printer import Printer

TEMP_PREFIX = "mocktave_arg_"
OUTPUT_NAME = "mocktave_out"

CALL_TEMPLATE = (
    "{{#assignments}}{{name}} = {{literal}};\n{{/assignments}}"
    "{{output}} = {{function}}({{arguments}});\n"
)

_FUNCTION_RE = re.compile(r"[A-Za-z]\w*(?:\.[A-Za-z]\w*)*")
_ASSIGNMENT_RE = re.compile(r"^\s*(?P<name>[A-Za-z]\w*)\s*=\s*(?P<literal>.*?)\s*;?\s*$")
_CALL_RE = re.compile(
    rf"^\s*{OUTPUT_NAME}\s*=\s*(?P<function>[A-Za-z][\w.]*)\s*\((?P<arguments>[^()]*)\)\s*;?\s*$"
)

_GRAMMAR_PATH = Path(__file__).parent / "grammar" / "mocktave_literal.yaml"
_parser: Optional[Parser] = None

_printer = Printer()


def temporary_name(index: int) -> str:
    """Name of the temporary holding the 1-based argument `index`."""
    return f"{TEMP_PREFIX}{index}"


def build_call(function_name: str, args: Sequence[Any] = ()) -> str:
    """Renders a script that calls `function_name` on `args`.

    Arguments may be Values or native Python values. Undefined arguments
    and malformed function names fail here, before any script exists.
    """
    if not isinstance(function_name, str) or not _FUNCTION_RE.fullmatch(function_name):
        raise SynthesisError(f"Not a valid function name: {function_name!r}")

    assignments = []
    for index, arg in enumerate(args, start=1):
        value = to_value(arg)
        if isinstance(value, Undefined):
            raise SynthesisError(f"Argument {index} of {function_name} is undefined")
        assignments.append({"name": temporary_name(index), "literal": _printer.pformat(value)})

    renderer = pystache.Renderer(escape=lambda u: u)
    return renderer.render(CALL_TEMPLATE, {
        "assignments": assignments,
        "output": OUTPUT_NAME,
        "function": function_name,
        "arguments": ", ".join(a["name"] for a in assignments),
    })


# -----------------------------------------------------------------
# Reading literals back
# -----------------------------------------------------------------

_LEAVES = ("number", "boolean", "sq_string", "dq_string", "sized")
_CONTAINERS = ("matrix", "cell", "row")


def _literal_parser() -> Parser:
    global _parser
    if _parser is None:
        _parser = Parser.from_file(str(_GRAMMAR_PATH))
    return _parser


def _nodes(node) -> Iterator[dict]:
    """Yields the tagged value nodes under `node`, skipping structural wrappers."""
    if isinstance(node, list):
        for child in node:
            yield from _nodes(child)
    elif isinstance(node, dict):
        tag = node.get("tag")
        if tag in _LEAVES or tag in _CONTAINERS:
            yield node
        elif tag is None:
            # Named children.
            for child in node.values():
                yield from _nodes(child)
        else:
            yield from _nodes(node.get("children", []))


def _rows(node: dict) -> List[List[Value]]:
    children = list(_nodes(node.get("children", [])))
    if all(c["tag"] == "row" for c in children):
        rows = [[_build(v) for v in _nodes(c.get("children", []))] for c in children]
    else:
        rows = [[_build(c) for c in children]]
    rows = [row for row in rows if row]
    if rows and any(len(row) != len(rows[0]) for row in rows):
        raise ValueError(f"Ragged rows in literal {node.get('text', '')!r}")
    return rows


def _build(node: dict) -> Value:
    text = node.get("text", "")
    match node["tag"]:
        case "number":
            return Scalar(parse_number(text.strip()))
        case "boolean":
            return Boolean(text.strip() == "true")
        case "sq_string" | "dq_string":
            return Text(unquote(text.strip()))
        case "sized":
            rows, cols = (int(n) for n in re.findall(r"\d+", text))
            if text.lstrip().startswith("cell"):
                return Cell(tuple(() for _ in range(rows)) if cols == 0 else ())
            return Matrix.empty(rows, cols)
        case "matrix":
            rows = _rows(node)
            if any(not isinstance(v, Scalar) for row in rows for v in row):
                raise ValueError(f"Matrix literal holds non-numeric elements: {text!r}")
            return Matrix([[v.value for v in row] for row in rows]) if rows else Matrix.empty()
        case "cell":
            return Cell(_rows(node))
    raise ValueError(f"Unexpected {node['tag']} in literal {text!r}")


def parse_literal(text: str) -> Value:
    """Reads one literal back into a Value. Raises ValueError if malformed."""
    parse_out = _literal_parser().parse(text)
    if parse_out.get('status') != 'success':
        raise ValueError(f"Not a literal: {text!r}: {parse_out.get('error_message')}")
    values = list(_nodes(parse_out.get('ast')))
    if len(values) != 1:
        raise ValueError(f"Expected one value in literal {text!r}, found {len(values)}")
    return _build(values[0])


def parse_assignments(script: str) -> Dict[str, Value]:
    """Reads `name = literal;` statements; other statements are ignored."""
    out: Dict[str, Value] = {}
    for line in script.splitlines():
        if _CALL_RE.match(line):
            continue
        m = _ASSIGNMENT_RE.match(line)
        if not m:
            continue
        try:
            out[m.group("name")] = parse_literal(m.group("literal"))
        except ValueError:
            # An expression, not a literal.
            continue
    return out


def read_call(script: str) -> Tuple[str, List[Value]]:
    """Recovers the function name and arguments of a synthesized call."""
    bound = parse_assignments(script)
    for line in script.splitlines():
        m = _CALL_RE.match(line)
        if not m:
            continue
        names = [n.strip() for n in m.group("arguments").split(",") if n.strip()]
        missing = [n for n in names if n not in bound]
        if missing:
            raise ValueError(f"Call uses unbound temporaries: {', '.join(missing)}")
        return m.group("function"), [bound[n] for n in names]
    raise ValueError(f"No call bound to {OUTPUT_NAME} in script")


__all__ = [
    "TEMP_PREFIX", "OUTPUT_NAME", "temporary_name",
    "build_call", "parse_literal", "parse_assignments", "read_call",
]
