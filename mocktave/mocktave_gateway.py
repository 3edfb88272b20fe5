"""
Execution gateways: run a script inside the interpreter, return its stdout.

The parsing engine never talks to a gateway directly; the runtime driver
composes script -> gateway -> parser. Each gateway owns an explicit
lifecycle (start -> run -> close) instead of any global process state.
"""
import asyncio
import contextlib
import logging
import shutil
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

import httpx

from mocktave import mocktave_http
from mocktave.mocktave_datatypes import GatewayFailure
from mocktave.mocktave_serialize import deserialize, detect_format

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = ("octave", "--no-gui", "--quiet", "--eval")
DEFAULT_IMAGE = "gnuoctave/octave:8.1.0"

# Tail of stderr kept on failures.
_STDERR_TAIL = 2000


class Gateway(ABC):
    """Runs interpreter scripts. Usable as an async context manager."""

    async def start(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    async def run(self, script: str) -> str:
        """Runs `script` and returns everything it printed to stdout."""
        ...

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
        return False


async def _exec(argv: List[str], *, timeout: Optional[float]) -> str:
    executable = shutil.which(argv[0])
    if executable is None:
        raise GatewayFailure(f"Executable '{argv[0]}' not found on PATH", command=argv)

    logger.debug("Running %s", argv[:-1] if len(argv) > 1 else argv)
    proc = await asyncio.create_subprocess_exec(
        executable, *argv[1:],
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        out, err = await asyncio.wait_for(
            proc.communicate(),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("%s timed out after %ss", argv[0], timeout)
        raise GatewayFailure(f"'{argv[0]}' timed out after {timeout}s", command=argv) from None
    finally:
        # Timeout or cancellation: never leave the child running.
        if proc.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()

    stdout = out.decode("utf-8", errors="replace")
    stderr = err.decode("utf-8", errors="replace")
    if proc.returncode != 0:
        logger.warning("%s exited with status %s", argv[0], proc.returncode)
        tail = stderr[-_STDERR_TAIL:]
        raise GatewayFailure(
            f"'{argv[0]}' exited with status {proc.returncode}: {tail.strip()}",
            returncode=proc.returncode, stderr=tail, command=argv,
        )
    return stdout


class LocalGateway(Gateway):
    """Runs a locally installed interpreter, one process per script."""

    def __init__(self, command: Sequence[str] = DEFAULT_COMMAND, timeout: Optional[float] = 60.0):
        if not command:
            raise ValueError("command must name an executable")
        self.command = list(command)
        self.timeout = timeout

    async def run(self, script: str) -> str:
        return await _exec(self.command + [script], timeout=self.timeout)


class DockerGateway(Gateway):
    """Runs scripts in a long-lived interpreter container via the docker CLI."""

    def __init__(self, image: str = DEFAULT_IMAGE, docker: str = "docker",
                 command: Sequence[str] = DEFAULT_COMMAND, timeout: Optional[float] = 60.0):
        self.image = image
        self.docker = docker
        self.command = list(command)
        self.timeout = timeout
        self.container_id: Optional[str] = None

    async def start(self) -> None:
        if self.container_id is not None:
            return
        out = await _exec([self.docker, "run", "-d", "-t", self.image], timeout=None)
        self.container_id = out.strip().splitlines()[-1] if out.strip() else None
        if not self.container_id:
            raise GatewayFailure(f"docker run printed no container id for {self.image}")
        logger.debug("Started container %s from %s", self.container_id[:12], self.image)

    async def run(self, script: str) -> str:
        if self.container_id is None:
            await self.start()
        argv = [self.docker, "exec", self.container_id] + self.command + [script]
        return await _exec(argv, timeout=self.timeout)

    async def close(self) -> None:
        if self.container_id is None:
            return
        container_id, self.container_id = self.container_id, None
        await _exec([self.docker, "rm", "-f", container_id], timeout=self.timeout)
        logger.debug("Removed container %s", container_id[:12])


class HttpGateway(Gateway):
    """Posts scripts to a remote execution service.

    The service receives the script as text/plain. A JSON reply carries the
    output under `output` (or `stdout`) and may report `error`; any other
    reply body is taken as the output itself.
    """

    def __init__(self, url: str, timeout: float = 5.0, retries: int = 2,
                 backoff: float = 0.2, headers: Optional[Dict[str, str]] = None):
        self.url = url
        self.config = {
            "timeout": timeout,
            "retries": retries,
            "backoff": backoff,
            "headers": dict(headers or {}),
        }

    async def run(self, script: str) -> str:
        try:
            resp = await mocktave_http.http_post(self.url, script, config=self.config)
        except (httpx.HTTPError, mocktave_http.HttpStatusError) as e:
            logger.warning("POST %s failed: %s", self.url, e)
            raise GatewayFailure(str(e), returncode=getattr(e, "status_code", None)) from e

        ct = resp.headers.get("Content-Type")
        if detect_format(ct) != "json":
            return resp.text
        reply = deserialize(resp.content, content_type=ct)
        if not isinstance(reply, dict):
            raise GatewayFailure(f"Unexpected reply from {self.url}: {str(reply)[:200]}")
        if reply.get("error"):
            raise GatewayFailure(str(reply["error"]), stderr=str(reply.get("stderr", "")))
        output = reply.get("output", reply.get("stdout"))
        if not isinstance(output, str):
            raise GatewayFailure(f"Reply from {self.url} carries no output")
        return output
