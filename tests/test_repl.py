import importlib.util
import json
import sys
from pathlib import Path
import uuid
import pytest

from mocktave.mocktave_datatypes import GatewayFailure
from mocktave.mocktave_gateway import Gateway
from mocktave.mocktave_runtime import Interpreter


def _load_repl_module():
    """Dynamically load the top-level mocktave.py (REPL) as a module with a unique name."""
    repl_path = Path(__file__).resolve().parents[1] / "mocktave.py"
    mod_name = f"mocktave_repl_for_test_{uuid.uuid4().hex}"
    spec = importlib.util.spec_from_file_location(mod_name, str(repl_path))
    mod = importlib.util.module_from_spec(spec)
    sys.modules[mod_name] = mod
    assert spec.loader is not None
    spec.loader.exec_module(mod)
    return mod


class FailingGateway(Gateway):
    async def run(self, script):
        raise GatewayFailure("parse error: syntax error")


@pytest.fixture
def repl(monkeypatch, echo_gateway):
    mod = _load_repl_module()
    monkeypatch.setattr(sys, "argv", ["mocktave.py"])
    gateway = echo_gateway()
    monkeypatch.setattr(mod, "make_interpreter", lambda config_path=None: Interpreter(gateway))
    mod.gateway = gateway
    return mod


def _feed(monkeypatch, repl, lines):
    lines = iter(lines)

    async def fake_ainput(prompt: str) -> str:
        return next(lines)
    monkeypatch.setattr(repl, "ainput", fake_ainput)


@pytest.mark.asyncio
async def test_repl_exit_immediately(monkeypatch, capsys, repl):
    _feed(monkeypatch, repl, ["exit"])

    await repl.main()
    out = capsys.readouterr().out
    assert "mocktave REPL v0.1" in out
    assert "Type 'exit' or press Ctrl+D to quit." in out


@pytest.mark.asyncio
async def test_repl_prints_changed_variables(monkeypatch, capsys, repl):
    _feed(monkeypatch, repl, ["x = 1;", "y = [1, 2];", "exit"])

    await repl.main()
    out, err = capsys.readouterr()
    assert "x = 1\n" in out
    assert "y =\n\n   1   2\n" in out
    # x is printed once, not again after the second line
    assert out.count("x = 1") == 1
    assert err == ""
    # Each line replays the accepted history
    assert repl.gateway.scripts[1].startswith("x = 1;\ny = [1, 2];\n")


@pytest.mark.asyncio
async def test_repl_errors_print_to_stderr(monkeypatch, capsys):
    repl = _load_repl_module()
    monkeypatch.setattr(sys, "argv", ["mocktave.py"])
    monkeypatch.setattr(repl, "make_interpreter", lambda config_path=None: Interpreter(FailingGateway()))
    _feed(monkeypatch, repl, ["x = ", "exit"])

    await repl.main()
    out, err = capsys.readouterr()
    assert "mocktave REPL v0.1" in out
    assert "GatewayFailure: parse error: syntax error" in err


@pytest.mark.asyncio
async def test_repl_eof_quits(monkeypatch, capsys, repl):
    async def fake_ainput(prompt: str) -> str:
        raise EOFError
    monkeypatch.setattr(repl, "ainput", fake_ainput)

    await repl.main()
    out = capsys.readouterr().out
    assert "mocktave REPL v0.1" in out
    assert "Exiting." in out


@pytest.mark.asyncio
async def test_run_script_file_as_json(tmp_path, capsys, repl):
    script = tmp_path / "calc.m"
    script.write_text("a = 2;\nb = 'two';\n", encoding="utf-8")

    await repl.run_script_file(str(script), fmt="json")
    out = capsys.readouterr().out
    assert json.loads(out) == {"a": 2.0, "b": "two"}


@pytest.mark.asyncio
async def test_run_script_file_missing(capsys, repl):
    with pytest.raises(SystemExit) as exc:
        await repl.run_script_file("/no/such/script.m")
    assert exc.value.code == 1
    assert "file not found" in capsys.readouterr().err


def test_parse_args(repl):
    assert repl.parse_args([]) == (None, "display", None, False)
    assert repl.parse_args(["run.m", "--yaml", "--config", "c.yaml", "-v"]) == ("run.m", "yaml", "c.yaml", True)
