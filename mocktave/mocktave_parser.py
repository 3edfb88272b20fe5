"""
Parses the interpreter's variable display dump into a Workspace.

The dump is a sequence of blocks, each opened by a `name = ...` header at
column 0. Blocks are delimited by headers, never by blank lines, because
matrix and cell payloads carry blank lines of their own. Each payload is
classified into the first matching shape:

    boolean -> scalar -> string -> empty container -> cell -> matrix

Anything else is kept as Undefined with its raw text, so one odd variable
never costs the rest of the dump.
"""
import logging
import math
import re
import textwrap
from typing import Dict, List, Optional, Pattern, Tuple

from mocktave.mocktave_datatypes import (
    Value, Scalar, Boolean, Text, Matrix, Cell, Undefined,
)
from mocktave.mocktave_workspace import Workspace

logger = logging.getLogger(__name__)

NUMBER = r"[+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|[Ii]nf|NaN|nan|NA)"

_NUMBER_RE = re.compile(NUMBER)
_HEADER_RE = re.compile(r"^(?P<name>[A-Za-z_]\w*)\s*=(?!=)(?P<rest>.*)$")
_ELEMENT_RE = re.compile(r"^\[(?P<row>\d+),(?P<col>\d+)\]\s*=(?P<rest>.*)$")
_DIMS_RE = re.compile(r"^\(?(?P<rows>\d+)\s*[x×]\s*(?P<cols>\d+)\)?(?:\s+[A-Za-z]\w*)?$")
_EMPTY_MATRIX_RE = re.compile(r"^\[\]\((?P<rows>\d+)x(?P<cols>\d+)\)$")
_EMPTY_CELL_RE = re.compile(r"^\{\}\((?P<rows>\d+)x(?P<cols>\d+)\)$")
_COLUMNS_RE = re.compile(r"^Columns?\s+\d+(?:\s+(?:through|and|to)\s+\d+)?:?$", re.IGNORECASE)
_SCALE_RE = re.compile(rf"^(?P<scale>{NUMBER})\s*\*$")
_SEPARATOR_RE = re.compile(r"[\s,]+")
_LABELS = frozenset({"Diagonal Matrix", "Permutation Matrix"})
_BOOLEANS = {"true": True, "false": False}
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "a": "\a", "f": "\f", "v": "\v",
            "\\": "\\", '"': '"', "'": "'", "0": "\0"}


def parse_number(token: str) -> Optional[float]:
    """Parses one numeric token, including Inf/NaN/NA. None if not numeric."""
    if not _NUMBER_RE.fullmatch(token):
        return None
    if token.lstrip("+-") == "NA":
        return math.nan
    return float(token)


def unescape_double_quoted(body: str) -> str:
    out = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            if nxt == "x" and re.fullmatch(r"[0-9A-Fa-f]{2}", body[i + 2:i + 4]):
                out.append(chr(int(body[i + 2:i + 4], 16)))
                i += 4
                continue
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        if ch == '"' and body[i + 1:i + 2] == '"':
            out.append('"')
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def unquote(text: str) -> Optional[str]:
    """Returns the content of a quoted string literal, or None."""
    if len(text) < 2 or text[0] != text[-1] or text[0] not in "'\"":
        return None
    body = text[1:-1]
    if text[0] == "'":
        # A lone quote inside means this is not one literal.
        if body.replace("''", "").count("'"):
            return None
        return body.replace("''", "'")
    if re.search(r'(?<!\\)"(?!")', body.replace('""', "")):
        return None
    return unescape_double_quoted(body)


def _trim_blank(lines: List[str]) -> List[str]:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


class DumpParser:
    """Turns raw dump text into a Workspace. Never raises on bad input."""

    def parse(self, raw_text: str) -> Workspace:
        variables: Dict[str, Value] = {}
        for name, rest, body in self.split_blocks(raw_text or "", _HEADER_RE):
            value = self.parse_block(rest, body)
            if isinstance(value, Undefined):
                logger.debug("Degraded block %r: %r", name, value.raw[:80])
            if name in variables:
                logger.debug("Variable %r reported twice; keeping the later one", name)
            variables[name] = value
        return Workspace(variables, raw=raw_text or "")

    def split_blocks(self, text: str, header_re: Pattern) -> List[Tuple[str, str, List[str]]]:
        """Splits text into (key, header rest, body lines) at header lines."""
        blocks: List[Tuple[str, str, List[str]]] = []
        skipped = 0
        for line in text.splitlines():
            m = header_re.match(line)
            if m:
                key = m.group("name") if "name" in header_re.groupindex else (m.group("row"), m.group("col"))
                blocks.append((key, m.group("rest").strip(), []))
            elif blocks:
                blocks[-1][2].append(line.rstrip())
            elif line.strip():
                skipped += 1
        if skipped:
            logger.debug("Skipped %d line(s) before the first header", skipped)
        return blocks

    def parse_block(self, rest: str, body: List[str], in_cell: bool = False) -> Value:
        body = _trim_blank(body)
        dims = None
        if rest and body:
            m = _DIMS_RE.match(rest)
            if m:
                dims = (int(m.group("rows")), int(m.group("cols")))
                payload = body
            else:
                payload = [rest] + body
        elif rest:
            payload = [rest]
        else:
            payload = body

        value = self.classify(payload, bare_text=in_cell)
        if dims is not None and isinstance(value, Matrix) and value.shape != dims:
            logger.debug("Matrix shape %s contradicts annotation %s", value.shape, dims)
            return Undefined("\n".join(payload))
        return value

    def classify(self, lines: List[str], bare_text: bool = False) -> Value:
        content = [line for line in lines if line.strip()]
        raw = "\n".join(lines)
        if not content:
            return Undefined(raw)

        if len(content) == 1:
            text = content[0].strip()
            if text in _BOOLEANS:
                return Boolean(_BOOLEANS[text])
            number = parse_number(text)
            if number is not None:
                return Scalar(number)
            string = unquote(text)
            if string is not None:
                return Text(string)
            m = _EMPTY_MATRIX_RE.match(text)
            if m:
                return Matrix.empty(int(m.group("rows")), int(m.group("cols")))
            m = _EMPTY_CELL_RE.match(text)
            if m:
                rows, cols = int(m.group("rows")), int(m.group("cols"))
                return Cell(tuple(() for _ in range(rows)) if cols == 0 else ())

        if content[0].strip() == "{" and content[-1].strip() == "}" and len(content) >= 2:
            return self.parse_cell(lines) or Undefined(raw)

        matrix = self.parse_matrix(content)
        if matrix is not None:
            return matrix
        if bare_text and len(content) == 1:
            # Cell elements display strings without quotes.
            return Text(content[0].strip())
        return Undefined(raw)

    def parse_cell(self, lines: List[str]) -> Optional[Cell]:
        opened = next(i for i, line in enumerate(lines) if line.strip() == "{")
        closed = max(i for i, line in enumerate(lines) if line.strip() == "}")
        inner = textwrap.dedent("\n".join(lines[opened + 1:closed]))

        elements: Dict[Tuple[int, int], Value] = {}
        for (row, col), rest, body in self.split_blocks(inner, _ELEMENT_RE):
            elements[(int(row), int(col))] = self.parse_block(rest, body, in_cell=True)
        if not elements:
            return Cell(())

        n_rows = max(r for r, _ in elements)
        n_cols = max(c for _, c in elements)
        if len(elements) != n_rows * n_cols:
            logger.debug("Cell elements do not fill a %dx%d grid", n_rows, n_cols)
            return None
        return Cell(tuple(
            tuple(elements[(r, c)] for c in range(1, n_cols + 1))
            for r in range(1, n_rows + 1)
        ))

    def parse_matrix(self, content: List[str]) -> Optional[Matrix]:
        chunks: List[List[List[float]]] = []
        current: Optional[List[List[float]]] = None
        scale = 1.0
        for line in content:
            stripped = line.strip()
            if _COLUMNS_RE.match(stripped):
                current = []
                chunks.append(current)
                continue
            if stripped in _LABELS:
                continue
            m = _SCALE_RE.match(stripped)
            if m:
                scale = parse_number(m.group("scale"))
                continue
            row = [parse_number(tok) for tok in _SEPARATOR_RE.split(stripped) if tok]
            if not row or any(x is None for x in row):
                return None
            if current is None:
                current = []
                chunks.append(current)
            current.append([x * scale for x in row])

        chunks = [chunk for chunk in chunks if chunk]
        if not chunks:
            return None
        height = len(chunks[0])
        if any(len(chunk) != height for chunk in chunks):
            logger.debug("Column chunks disagree on row count")
            return None
        try:
            parts = [Matrix(chunk) for chunk in chunks]
        except ValueError as e:
            logger.debug("Rejected matrix: %s", e)
            return None
        return Matrix(tuple(
            sum((part.rows[i] for part in parts), ())
            for i in range(height)
        ))


_default_parser = DumpParser()


def parse_dump(raw_text: str) -> Workspace:
    """Parses a raw variable dump into a Workspace."""
    return _default_parser.parse(raw_text)


__all__ = ["DumpParser", "parse_dump", "parse_number", "unquote", "NUMBER"]
