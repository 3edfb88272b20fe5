"""
Formats values as interpreter source literals and as display dump blocks.
"""
import math

from mocktave.mocktave_datatypes import (
    Value, Scalar, Boolean, Text, Matrix, Cell, Undefined, SynthesisError,
)

# Integral floats below this magnitude print exactly as integers.
_INTEGRAL_LIMIT = 1e15

_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\t": "\\t", "\r": "\\r",
            "\a": "\\a", "\f": "\\f", "\v": "\\v", "\0": "\\0"}


def format_number(x: float) -> str:
    """Shortest text that reads back as the same double."""
    if math.isnan(x):
        return "NaN"
    if math.isinf(x):
        return "Inf" if x > 0 else "-Inf"
    if x == 0 and math.copysign(1.0, x) < 0:
        return "-0"
    if x.is_integer() and abs(x) < _INTEGRAL_LIMIT:
        return str(int(x))
    return repr(x)


class Printer:
    """Formats mocktave values into interpreter source strings."""

    def __init__(self, indent_width=2):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()

    def pformat(self, obj: Value) -> str:
        """Renders a value as a literal the interpreter can evaluate."""
        handler = self._get_handler(obj)
        return handler(obj)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        raise SynthesisError(f"No literal syntax for {obj_type.__name__}")

    def _create_handlers(self):
        return {
            Scalar: self._pformat_scalar,
            Boolean: self._pformat_bool,
            Text: self._pformat_text,
            Matrix: self._pformat_matrix,
            Cell: self._pformat_cell,
            Undefined: self._pformat_undefined,
        }

    def _pformat_scalar(self, obj):
        return format_number(obj.value)

    def _pformat_bool(self, obj):
        return 'true' if obj.value else 'false'

    def _pformat_text(self, obj):
        s = obj.value
        if any(ord(ch) < 32 or ch == "\x7f" for ch in s):
            # Single-quoted strings cannot hold control characters.
            body = "".join(_ESCAPES.get(ch, ch if ord(ch) >= 32 and ch != "\x7f" else f"\\x{ord(ch):02x}") for ch in s)
            return f'"{body}"'
        return "'" + s.replace("'", "''") + "'"

    def _pformat_matrix(self, obj):
        rows, cols = obj.shape
        if rows == 0:
            return "[]"
        if cols == 0:
            return f"zeros({rows}, 0)"
        body = "; ".join(", ".join(format_number(x) for x in row) for row in obj.rows)
        return f"[{body}]"

    def _pformat_cell(self, obj):
        rows, cols = obj.shape
        if rows == 0:
            return "{}"
        if cols == 0:
            return f"cell({rows}, 0)"
        body = "; ".join(", ".join(self.pformat(v) for v in row) for row in obj.rows)
        return f"{{{body}}}"

    def _pformat_undefined(self, obj):
        raise SynthesisError("An undefined value has no literal form")

    # -----------------------------------------------------------------
    # Display form: what the dump directive prints for one variable.
    # -----------------------------------------------------------------

    def pformat_display(self, name: str, obj: Value, level: int = 0) -> str:
        """Renders `name = value` the way the variable dump shows it."""
        indent = self._indent_char * level
        match obj:
            case Scalar() | Boolean() | Text():
                return f"{indent}{name} = {self.pformat(obj)}\n"
            case Matrix():
                rows, cols = obj.shape
                if rows == 0 or cols == 0:
                    return f"{indent}{name} = [](%dx%d)\n" % (rows, cols)
                cells = [[format_number(x) for x in row] for row in obj.rows]
                width = max(len(c) for row in cells for c in row)
                lines = [indent + "".join(c.rjust(width + 3) for c in row) for row in cells]
                return f"{indent}{name} =\n\n" + "\n".join(lines) + "\n\n"
            case Cell():
                rows, cols = obj.shape
                if rows == 0 or cols == 0:
                    return f"{indent}{name} = {{}}(%dx%d)\n" % (rows, cols)
                out = [f"{indent}{name} =\n{indent}{{\n"]
                # Column-major, as the interpreter lists cell elements.
                for c in range(cols):
                    for r in range(rows):
                        out.append(self.pformat_display(f"[{r + 1},{c + 1}]", obj.rows[r][c], level + 1))
                out.append(f"{indent}}}\n")
                return "".join(out) + "\n"
            case Undefined():
                return f"{indent}{name} = {obj.raw}\n"
        raise SynthesisError(f"No display form for {type(obj).__name__}")

    def pformat_workspace(self, workspace) -> str:
        """Renders every variable of a workspace as a dump."""
        return "\n".join(self.pformat_display(name, value) for name, value in workspace.items())
