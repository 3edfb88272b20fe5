"""
The typed store produced by one script execution.
"""
import collections.abc
from typing import Any, Dict, Iterator, List, Optional

from mocktave.mocktave_datatypes import (
    Value, Scalar, Boolean, Text, Matrix, Cell, Undefined,
    VariableNotFound, TypeMismatch,
)

_KINDS = {
    "scalar": Scalar,
    "boolean": Boolean,
    "string": Text,
    "matrix": Matrix,
    "cell": Cell,
    "undefined": Undefined,
}


class Workspace(collections.abc.Mapping):
    """Read-only mapping of variable name to Value, with typed accessors.

    Accessors never coerce between shapes: a 1x1 Matrix is not a scalar,
    and a Scalar is not a 1x1 Matrix. The parser already picked the most
    specific shape.
    """

    def __init__(self, variables: Optional[Dict[str, Value]] = None, raw: str = ""):
        self._variables: Dict[str, Value] = dict(variables or {})
        self.raw = raw

    def __getitem__(self, name: str) -> Value:
        try:
            return self._variables[name]
        except KeyError:
            raise VariableNotFound(name) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._variables)

    def __len__(self) -> int:
        return len(self._variables)

    def __repr__(self):
        inner = ", ".join(f"{k}: {v!r}" for k, v in self._variables.items())
        return f"Workspace({{{inner}}})"

    def get_value(self, name: str) -> Optional[Value]:
        """Returns the stored variant, or None if the name is absent."""
        return self._variables.get(name)

    def lookup(self, name: str, kind: str) -> Value:
        """Returns the stored Value if it is of the requested kind."""
        if kind not in _KINDS:
            raise ValueError(f"Unknown value kind: {kind!r}")
        value = self[name]
        if not isinstance(value, _KINDS[kind]):
            raise TypeMismatch(name, value.kind, kind)
        return value

    def get_scalar(self, name: str) -> float:
        return self.lookup(name, "scalar").value

    def get_boolean(self, name: str) -> bool:
        return self.lookup(name, "boolean").value

    def get_string(self, name: str) -> str:
        return self.lookup(name, "string").value

    def get_matrix(self, name: str) -> List[List[float]]:
        return self.lookup(name, "matrix").tolist()

    def get_vector(self, name: str) -> List[float]:
        """Flattens a 1xN or Nx1 matrix. Anything wider is a mismatch."""
        m = self.lookup(name, "matrix")
        rows, cols = m.shape
        if rows == 1:
            return list(m.rows[0])
        if cols == 1:
            return [row[0] for row in m.rows]
        if rows == 0:
            return []
        raise TypeMismatch(name, f"{rows}x{cols} matrix", "vector")

    def get_cell(self, name: str) -> List[List[Value]]:
        return self.lookup(name, "cell").tolist()

    def degraded(self) -> List[str]:
        """Names whose blocks could not be classified."""
        return [k for k, v in self._variables.items() if isinstance(v, Undefined)]

    def to_builtin(self) -> Dict[str, Any]:
        return {k: v.to_builtin() for k, v in self._variables.items()}
