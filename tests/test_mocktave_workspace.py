import pytest

from mocktave.mocktave_datatypes import (
    Scalar, Boolean, Text, Matrix, Cell, Undefined, VariableNotFound, TypeMismatch,
)
from mocktave.mocktave_workspace import Workspace


@pytest.fixture
def ws():
    return Workspace({
        "x": Scalar(5),
        "flag": Boolean(True),
        "s": Text("hi"),
        "m": Matrix([[1, 2], [3, 4]]),
        "one": Matrix([[7]]),
        "row": Matrix([[1, 2, 3]]),
        "col": Matrix([[1], [2]]),
        "e": Matrix(()),
        "c": Cell([[1, "a"]]),
        "u": Undefined("???"),
    }, raw="raw text")


def test_typed_accessors(ws):
    assert ws.get_scalar("x") == 5.0
    assert ws.get_boolean("flag") is True
    assert ws.get_string("s") == "hi"
    assert ws.get_matrix("m") == [[1.0, 2.0], [3.0, 4.0]]
    assert ws.get_cell("c") == [[Scalar(1), Text("a")]]
    assert ws.raw == "raw text"


def test_missing_variable(ws):
    with pytest.raises(VariableNotFound) as exc:
        ws.get_scalar("nope")
    assert exc.value.name == "nope"
    with pytest.raises(KeyError):
        ws["nope"]
    assert ws.get_value("nope") is None
    assert "nope" not in ws


def test_type_mismatch_reports_kinds(ws):
    with pytest.raises(TypeMismatch) as exc:
        ws.get_scalar("m")
    assert exc.value.found == "matrix"
    assert exc.value.requested == "scalar"


def test_no_coercion_between_shapes(ws):
    # A 1x1 matrix is not a scalar, and a scalar is not a matrix.
    with pytest.raises(TypeMismatch):
        ws.get_scalar("one")
    with pytest.raises(TypeMismatch):
        ws.get_matrix("x")
    with pytest.raises(TypeMismatch):
        ws.get_boolean("x")
    with pytest.raises(TypeMismatch):
        ws.get_string("u")


def test_get_vector(ws):
    assert ws.get_vector("row") == [1.0, 2.0, 3.0]
    assert ws.get_vector("col") == [1.0, 2.0]
    assert ws.get_vector("one") == [7.0]
    assert ws.get_vector("e") == []
    with pytest.raises(TypeMismatch) as exc:
        ws.get_vector("m")
    assert exc.value.found == "2x2 matrix"


def test_lookup_rejects_unknown_kind(ws):
    with pytest.raises(ValueError):
        ws.lookup("x", "complex")
    assert ws.lookup("u", "undefined") == Undefined("???")


def test_mapping_protocol(ws):
    assert len(ws) == 10
    assert list(ws)[:3] == ["x", "flag", "s"]
    assert ws == Workspace(dict(ws))
    assert "Workspace(" in repr(ws)


def test_degraded_and_to_builtin():
    ws = Workspace({"a": Scalar(1), "b": Undefined("zz"), "m": Matrix([[1, 2]])})
    assert ws.degraded() == ["b"]
    assert ws.to_builtin() == {"a": 1.0, "b": {"undefined": "zz"}, "m": [[1.0, 2.0]]}
