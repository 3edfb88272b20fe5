import json
import math

import pytest
import yaml

from mocktave.mocktave_datatypes import Scalar, Text, Matrix, Cell, Undefined
from mocktave.mocktave_serialize import deserialize, detect_format, serialize
from mocktave.mocktave_workspace import Workspace


@pytest.fixture
def ws():
    return Workspace({
        "x": Scalar(5),
        "m": Matrix([[1, math.inf], [math.nan, -math.inf]]),
        "c": Cell([["a", 1]]),
        "u": Undefined("1 + 2i"),
    })


def test_workspace_to_json(ws):
    data = json.loads(serialize(ws, fmt="json"))
    assert data == {
        "x": 5.0,
        "m": [[1.0, "Inf"], ["NaN", "-Inf"]],
        "c": [["a", 1.0]],
        "u": {"undefined": "1 + 2i"},
    }


def test_workspace_to_yaml_keeps_order(ws):
    out = serialize(ws, fmt="yaml")
    assert list(yaml.safe_load(out)) == ["x", "m", "c", "u"]


def test_single_value_and_compact_json():
    assert serialize(Text("hi"), fmt="json") == '"hi"'
    assert serialize(Matrix([[1, 2]]), fmt="json", pretty=False) == "[[1.0, 2.0]]"


def test_unsupported_format():
    with pytest.raises(ValueError):
        serialize({"a": 1}, fmt="toml")


@pytest.mark.parametrize(
    "content_type,hint,expected",
    [
        ("application/json", None, "json"),
        ("application/x-yaml", None, "yaml"),
        ("text/plain", "{\"a\": 1}", "json"),
        ("text/plain", "x = 1", None),
        (None, None, None),
    ],
)
def test_detect_format(content_type, hint, expected):
    assert detect_format(content_type, hint) == expected


def test_deserialize():
    assert deserialize(b'{"output": "x = 1"}', content_type="application/json") == {"output": "x = 1"}
    assert deserialize("backend: docker\n", fmt="yaml") == {"backend": "docker"}
    # Declared JSON that is really YAML.
    assert deserialize("a: 1\n", fmt="json") == {"a": 1}
    assert deserialize("x = 1\n") == "x = 1\n"
    assert deserialize("caf\xe9".encode("latin-1"), content_type="text/plain; charset=latin-1") == "caf\xe9"
