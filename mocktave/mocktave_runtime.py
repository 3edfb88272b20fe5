import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal, Optional, Sequence

import pystache

from mocktave.mocktave_call import OUTPUT_NAME, build_call
from mocktave.mocktave_config import GatewayConfig, load_config, make_gateway
from mocktave.mocktave_datatypes import MocktaveError, Value
from mocktave.mocktave_gateway import Gateway
from mocktave.mocktave_parser import DumpParser
from mocktave.mocktave_workspace import Workspace

logger = logging.getLogger(__name__)

DUMP_MARKER = "__mocktave_workspace__"

# Appended to every script. Prints the marker, then every bound variable.
# Strings and scalar logicals get explicit literal forms; strings holding
# control characters go out double-quoted and escaped so they stay on one
# line. Everything else uses the interpreter's own display.
_DUMP_TEMPLATE = r"""
format long;
printf("\n%s\n", "{{marker}}");
mocktave_names = who();
for mocktave_i = 1:numel(mocktave_names)
  mocktave_name = mocktave_names{mocktave_i};
  mocktave_value = eval(mocktave_name);
  if ischar(mocktave_value) && rows(mocktave_value) <= 1 && any(mocktave_value < 32 | mocktave_value == 127)
    printf('%s = "%s"\n\n', mocktave_name, undo_string_escapes(mocktave_value));
  elseif ischar(mocktave_value) && rows(mocktave_value) <= 1
    printf("%s = '%s'\n\n", mocktave_name, strrep(mocktave_value, "'", "''"));
  elseif islogical(mocktave_value) && isscalar(mocktave_value)
    printf("%s = %s\n\n", mocktave_name, mat2str(mocktave_value));
  else
    eval(mocktave_name);
  endif
endfor
"""

DUMP_DIRECTIVE = pystache.Renderer(escape=lambda u: u).render(_DUMP_TEMPLATE, {"marker": DUMP_MARKER})


def compose_script(script: str) -> str:
    """Appends the dump directive to a user script."""
    return f"{script}\n{DUMP_DIRECTIVE}"


def extract_dump(output: str) -> str:
    """Returns the part of the output after the last dump marker."""
    lines = output.splitlines()
    for i in range(len(lines) - 1, -1, -1):
        if lines[i].strip() == DUMP_MARKER:
            return "\n".join(lines[i + 1:])
    return output


@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Optional[Workspace] = None
    error_message: Optional[str] = None
    error_type: Optional[str] = None

    def format_error(self) -> str:
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.error_type and not msg.startswith(f"{self.error_type}:"):
            return f"{self.error_type}: {msg}"
        return msg


class Interpreter:
    """Runs scripts through a gateway and parses the resulting workspace."""

    def __init__(self, gateway: Optional[Gateway] = None, config: Optional[GatewayConfig] = None,
                 parser: Optional[DumpParser] = None):
        self.gateway = gateway or make_gateway(config or load_config())
        self.parser = parser or DumpParser()

    async def __aenter__(self):
        await self.gateway.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.gateway.close()
        return False

    async def evaluate(self, script: str) -> Workspace:
        """Runs a script and returns every variable it left bound."""
        output = await self.gateway.run(compose_script(script))
        workspace = self.parser.parse(extract_dump(output))
        degraded = workspace.degraded()
        if degraded:
            logger.debug("Unclassified variables: %s", ", ".join(degraded))
        return workspace

    async def call(self, function_name: str, args: Sequence[Any] = ()) -> Value:
        """Calls an interpreter function and returns its (single) result."""
        script = build_call(function_name, args)
        workspace = await self.evaluate(script)
        return workspace[OUTPUT_NAME]

    def wrap(self, function_name: str) -> Callable[..., Awaitable[Value]]:
        """Returns an async function that forwards its arguments to `function_name`."""
        async def wrapped(*args):
            return await self.call(function_name, args)
        wrapped.__name__ = function_name.replace(".", "_")
        return wrapped

    async def handle_script(self, source: str) -> ExecutionResult:
        """Like evaluate, but reports failures in the result instead of raising."""
        try:
            workspace = await self.evaluate(source)
        except MocktaveError as e:
            return ExecutionResult(status='error', error_message=str(e), error_type=type(e).__name__)
        return ExecutionResult(status='success', value=workspace)


async def _evaluate_once(script: str, gateway: Optional[Gateway]) -> Workspace:
    async with Interpreter(gateway) as interp:
        return await interp.evaluate(script)


async def _call_once(function_name: str, args: Sequence[Any], gateway: Optional[Gateway]) -> Value:
    async with Interpreter(gateway) as interp:
        return await interp.call(function_name, args)


def run_script(script: str, gateway: Optional[Gateway] = None) -> Workspace:
    """Synchronous evaluate: runs `script` and returns its workspace."""
    return asyncio.run(_evaluate_once(script, gateway))


def wrap(function_name: str, gateway: Optional[Gateway] = None) -> Callable[..., Value]:
    """Synchronous wrapper: `wrap("primes")(100)` returns the primes below 100."""
    def wrapped(*args):
        return asyncio.run(_call_once(function_name, args, gateway))
    wrapped.__name__ = function_name.replace(".", "_")
    return wrapped


__all__ = [
    "DUMP_MARKER", "DUMP_DIRECTIVE", "compose_script", "extract_dump",
    "ExecutionResult", "Interpreter", "run_script", "wrap",
]
