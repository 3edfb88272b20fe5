"""
Defines the value types recovered from the interpreter.

Every variable the interpreter reports is classified into one of the
variants below. They are plain frozen records: construction, equality and
conversion back to builtin Python data, nothing more.
"""

import math
import numbers
import collections.abc
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple


class MocktaveError(Exception):
    """Base class for all errors raised by mocktave."""
    pass


class GatewayFailure(MocktaveError):
    """The execution gateway could not run a script."""
    def __init__(self, message: str, *, returncode: Optional[int] = None,
                 stderr: str = "", command: Optional[List[str]] = None):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr
        self.command = list(command) if command else None


class SynthesisError(MocktaveError):
    """A value or name cannot be rendered as interpreter source."""
    pass


class ExtractionError(MocktaveError):
    pass


class VariableNotFound(ExtractionError, KeyError):
    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self):
        return f"Variable not found: {self.name}"


class TypeMismatch(ExtractionError, TypeError):
    def __init__(self, name: str, found: str, requested: str):
        super().__init__(name, found, requested)
        self.name = name
        self.found = found
        self.requested = requested

    def __str__(self):
        return f"Variable '{self.name}' is a {self.found}, not a {self.requested}"


# =================================================================
# Values
# =================================================================

class Value:
    """Base class for everything stored in a Workspace."""
    kind = "value"

    def to_builtin(self) -> Any:
        raise NotImplementedError


def _same_float(a: float, b: float) -> bool:
    return a == b or (math.isnan(a) and math.isnan(b))


def _float_key(x: float):
    # NaN hashes by identity; give every NaN the same key.
    return None if math.isnan(x) else x


@dataclass(frozen=True, eq=False)
class Scalar(Value):
    value: float
    kind = "scalar"

    def __post_init__(self):
        object.__setattr__(self, "value", float(self.value))

    def to_builtin(self) -> float:
        return self.value

    def __eq__(self, other):
        if not isinstance(other, Scalar):
            return NotImplemented
        return _same_float(self.value, other.value)

    def __hash__(self):
        return hash(("scalar", _float_key(self.value)))


@dataclass(frozen=True)
class Boolean(Value):
    value: bool
    kind = "boolean"

    def __post_init__(self):
        object.__setattr__(self, "value", bool(self.value))

    def to_builtin(self) -> bool:
        return self.value


@dataclass(frozen=True)
class Text(Value):
    value: str
    kind = "string"

    def to_builtin(self) -> str:
        return self.value


def _rectangular(rows, convert) -> Tuple[tuple, ...]:
    out = tuple(tuple(convert(x) for x in row) for row in rows)
    if out and any(len(row) != len(out[0]) for row in out):
        widths = sorted({len(row) for row in out})
        raise ValueError(f"Ragged rows (lengths {widths})")
    return out


@dataclass(frozen=True, eq=False)
class Matrix(Value):
    """Rectangular numeric data. A 1xN or Nx1 matrix doubles as a vector."""
    rows: Tuple[Tuple[float, ...], ...]
    kind = "matrix"

    def __post_init__(self):
        object.__setattr__(self, "rows", _rectangular(self.rows, float))

    @classmethod
    def empty(cls, rows: int = 0, columns: int = 0) -> 'Matrix':
        # A 0xN matrix has no rows to carry its width; only Rx0 survives.
        return cls(tuple(() for _ in range(rows)) if columns == 0 else ())

    @property
    def shape(self) -> Tuple[int, int]:
        if not self.rows:
            return (0, 0)
        return (len(self.rows), len(self.rows[0]))

    def is_vector(self) -> bool:
        r, c = self.shape
        return r == 1 or c == 1

    def tolist(self) -> List[List[float]]:
        return [list(row) for row in self.rows]

    def to_builtin(self) -> List[List[float]]:
        return self.tolist()

    def __eq__(self, other):
        if not isinstance(other, Matrix):
            return NotImplemented
        if self.shape != other.shape:
            return False
        return all(
            _same_float(a, b)
            for ra, rb in zip(self.rows, other.rows)
            for a, b in zip(ra, rb)
        )

    def __hash__(self):
        return hash(self.shape)


@dataclass(frozen=True)
class Cell(Value):
    """A rectangular container of arbitrary values."""
    rows: Tuple[Tuple[Value, ...], ...]
    kind = "cell"

    def __post_init__(self):
        object.__setattr__(self, "rows", _rectangular(self.rows, to_value))

    @property
    def shape(self) -> Tuple[int, int]:
        if not self.rows:
            return (0, 0)
        return (len(self.rows), len(self.rows[0]))

    def tolist(self) -> List[List[Value]]:
        return [list(row) for row in self.rows]

    def to_builtin(self) -> List[List[Any]]:
        return [[v.to_builtin() for v in row] for row in self.rows]


@dataclass(frozen=True)
class Undefined(Value):
    """A block that matched no known shape; keeps the raw text."""
    raw: str = ""
    kind = "undefined"

    def to_builtin(self) -> dict:
        return {"undefined": self.raw}


def _is_number(obj: Any) -> bool:
    return isinstance(obj, numbers.Real) and not isinstance(obj, bool)


def to_value(obj: Any) -> Value:
    """Converts a native Python value into the matching Value variant."""
    match obj:
        case Value():
            return obj
        case bool():
            return Boolean(obj)
        case str():
            return Text(obj)
        case _ if _is_number(obj):
            return Scalar(obj)
        case collections.abc.Sequence():
            items = list(obj)
            if all(_is_number(x) for x in items):
                return Matrix((items,)) if items else Matrix.empty()
            if all(isinstance(x, collections.abc.Sequence) and not isinstance(x, str) for x in items):
                try:
                    if all(_is_number(x) for row in items for x in row):
                        return Matrix(items)
                    return Cell(items)
                except ValueError as e:
                    raise SynthesisError(str(e)) from e
            return Cell((items,))
    raise SynthesisError(f"Cannot convert {type(obj).__name__} to an interpreter value")


__all__ = [
    "MocktaveError", "GatewayFailure", "SynthesisError",
    "ExtractionError", "VariableNotFound", "TypeMismatch",
    "Value", "Scalar", "Boolean", "Text", "Matrix", "Cell", "Undefined",
    "to_value",
]
