"""MCP transport: the stdio communication layer.

A transport satisfies the :class:`MCPTransport` protocol, providing
``connect``, ``send``, ``receive``, and ``close`` methods.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import os
from typing import Any, Protocol, runtime_checkable

# Tool catalogs can be large; asyncio's default 64 KiB line limit is too small.
_LINE_LIMIT = 16 * 1024 * 1024


@runtime_checkable
class MCPTransport(Protocol):
    """Abstract transport for MCP JSON-RPC communication."""

    async def connect(self) -> None: ...
    async def send(self, data: dict[str, Any]) -> None: ...
    async def receive(self) -> dict[str, Any]: ...
    async def close(self) -> None: ...


class StdioTransport:
    """Communicates with an MCP server via subprocess stdin/stdout.

    Sends and receives newline-delimited JSON. The child inherits the
    parent environment overlaid with *env*, and its stderr.
    """

    def __init__(
        self,
        command: str,
        args: list[str] | None = None,
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        kill_timeout: float = 5.0,
    ) -> None:
        self._command = command
        self._args = list(args or [])
        self._cwd = cwd
        self._env = env
        self._kill_timeout = kill_timeout
        self._process: asyncio.subprocess.Process | None = None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    async def connect(self) -> None:
        """Launch the subprocess."""
        env = {**os.environ, **self._env} if self._env else None
        self._process = await asyncio.create_subprocess_exec(
            self._command,
            *self._args,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            cwd=self._cwd,
            env=env,
            limit=_LINE_LIMIT,
        )

    async def send(self, data: dict[str, Any]) -> None:
        """Write a JSON line to stdin."""
        if self._process is None or self._process.stdin is None:
            msg = "Transport not connected"
            raise RuntimeError(msg)
        line = json.dumps(data) + "\n"
        self._process.stdin.write(line.encode())
        await self._process.stdin.drain()

    async def receive(self) -> dict[str, Any]:
        """Read a JSON line from stdout, skipping blank lines."""
        if self._process is None or self._process.stdout is None:
            msg = "Transport not connected"
            raise RuntimeError(msg)
        while True:
            line = await self._process.stdout.readline()
            if not line:
                msg = "Transport closed"
                raise RuntimeError(msg)
            if line.strip():
                return json.loads(line)  # type: ignore[no-any-return]

    async def close(self) -> None:
        """Terminate the subprocess, killing it if it does not exit in time."""
        process = self._process
        if process is None:
            return
        self._process = None

        if process.stdin is not None:
            process.stdin.close()
        if process.returncode is not None:
            return

        with contextlib.suppress(ProcessLookupError):
            process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=self._kill_timeout)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
