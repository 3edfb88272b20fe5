import pytest

from mocktave.mocktave_call import OUTPUT_NAME, parse_assignments, read_call
from mocktave.mocktave_datatypes import to_value
from mocktave.mocktave_gateway import Gateway
from mocktave.mocktave_printer import Printer
from mocktave.mocktave_runtime import DUMP_DIRECTIVE, DUMP_MARKER


class CannedGateway(Gateway):
    """Returns a fixed output and records every script it was given."""

    def __init__(self, output: str):
        self.output = output
        self.scripts = []
        self.started = 0
        self.closed = 0

    async def start(self):
        self.started += 1

    async def close(self):
        self.closed += 1

    async def run(self, script: str) -> str:
        self.scripts.append(script)
        return self.output


class EchoGateway(Gateway):
    """Stands in for the interpreter on literal-only scripts.

    Binds every `name = literal;` statement, evaluates a synthesized call
    with a Python function from `functions`, then prints the workspace in
    display form after the dump marker.
    """

    def __init__(self, functions=None):
        self.functions = dict(functions or {})
        self.scripts = []

    async def run(self, script: str) -> str:
        self.scripts.append(script)
        user_script = script.split(DUMP_DIRECTIVE)[0]
        bindings = parse_assignments(user_script)
        if f"{OUTPUT_NAME} =" in user_script:
            name, args = read_call(user_script)
            if name in self.functions:
                bindings[OUTPUT_NAME] = to_value(self.functions[name](*args))
        dump = "".join(Printer().pformat_display(k, v) for k, v in bindings.items())
        return f"output printed by the script itself\n{DUMP_MARKER}\n{dump}"


@pytest.fixture
def canned_gateway():
    return CannedGateway


@pytest.fixture
def echo_gateway():
    return EchoGateway
