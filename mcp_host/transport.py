"""
Transport layer for MCP tool servers.

StdioTransport speaks JSON-RPC 2.0 over stdin/stdout pipes to a
subprocess, one message per line. Responses are read on a background
thread so every request can be bounded by a timeout.
"""

from __future__ import annotations

import collections
import json
import logging
import os
import queue
import subprocess
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping

from mcp_host.errors import ToolServerError, ToolServerTimeout

logger = logging.getLogger(__name__)

_EOF = object()


@dataclass
class JsonRpcRequest:
    """JSON-RPC 2.0 request. A request without an id is a notification."""
    method: str
    params: dict[str, Any]
    id: int | str | None = None

    def to_json(self) -> str:
        payload: dict[str, Any] = {
            "jsonrpc": "2.0",
            "method": self.method,
            "params": self.params,
        }
        if self.id is not None:
            payload["id"] = self.id
        return json.dumps(payload)


@dataclass
class JsonRpcResponse:
    """JSON-RPC 2.0 response."""
    id: int | str | None
    result: Any = None
    error: dict | None = None

    @classmethod
    def from_json(cls, data: str) -> "JsonRpcResponse":
        parsed = json.loads(data)
        if not isinstance(parsed, dict):
            raise ValueError(f"not a JSON-RPC message: {data[:200]}")
        return cls(
            id=parsed.get("id"),
            result=parsed.get("result"),
            error=parsed.get("error"),
        )

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def error_message(self) -> str:
        if not self.error:
            return ""
        return str(self.error.get("message", self.error))


class Transport(ABC):
    """Abstract transport layer for MCP communication."""

    @abstractmethod
    def send(self, request: JsonRpcRequest, timeout: float | None = None) -> JsonRpcResponse:
        """Send a request and return the matching response."""
        ...

    @abstractmethod
    def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Send a notification. No response is expected."""
        ...

    @abstractmethod
    def start(self) -> None:
        """Start the transport (e.g., launch subprocess)."""
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop the transport. Safe to call more than once."""
        ...

    @abstractmethod
    def is_alive(self) -> bool:
        """Check if the transport is active."""
        ...

    @abstractmethod
    def next_id(self) -> int:
        """Generate the next request ID."""
        ...


class StdioTransport(Transport):
    """
    JSON-RPC over stdin/stdout pipes to a subprocess.

    This is MCP's native local transport. The tool server runs as
    a child process. We write JSON-RPC requests to its stdin and
    read responses from its stdout. One line = one message.
    """

    STDERR_TAIL_LINES = 50

    def __init__(self, command: list[str], env: Mapping[str, str] | None = None):
        """
        Args:
            command: Command to launch the tool server process.
                     e.g., ["python", "-m", "mcp_host.servers.echo"]
            env: Extra environment variables, layered over os.environ.
        """
        self.command = command
        self.env = dict(env) if env else {}
        self._process: subprocess.Popen | None = None
        self._request_id = 0
        self._lines: queue.Queue = queue.Queue()
        self._stderr_tail: collections.deque[str] = collections.deque(maxlen=self.STDERR_TAIL_LINES)
        self._send_lock = threading.Lock()

    def start(self) -> None:
        """Launch the tool server subprocess and its reader threads."""
        if self._process and self._process.poll() is None:
            logger.warning("Transport already running, stopping first")
            self.stop()

        logger.info(f"Starting stdio transport: {' '.join(self.command)}")
        self._lines = queue.Queue()
        self._process = subprocess.Popen(
            self.command,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env={**os.environ, **self.env},
            bufsize=1,  # Line-buffered
        )
        threading.Thread(
            target=self._read_stdout, args=(self._process, self._lines), daemon=True
        ).start()
        threading.Thread(target=self._read_stderr, args=(self._process,), daemon=True).start()

    def stop(self) -> None:
        """Terminate the tool server subprocess."""
        process, self._process = self._process, None
        if process is None:
            return
        try:
            process.stdin.close()
        except OSError:
            pass
        process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
        logger.info(f"Stdio transport stopped: {' '.join(self.command)}")

    def is_alive(self) -> bool:
        """Check if the subprocess is running."""
        return self._process is not None and self._process.poll() is None

    def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        with self._send_lock:
            self._write(JsonRpcRequest(method=method, params=params or {}))

    def send(self, request: JsonRpcRequest, timeout: float | None = None) -> JsonRpcResponse:
        """Send a JSON-RPC request via stdin, wait for its response on stdout."""
        with self._send_lock:
            self._write(request)
            while True:
                try:
                    line = self._lines.get(timeout=timeout)
                except queue.Empty:
                    raise ToolServerTimeout(
                        f"No response to '{request.method}' within {timeout}s"
                    ) from None

                if line is _EOF:
                    raise ToolServerError(
                        f"Tool server process died. stderr: {self.stderr_tail()[:500]}"
                    )

                try:
                    response = JsonRpcResponse.from_json(line)
                except ValueError:
                    logger.debug(f"Ignoring non JSON-RPC output: {line[:200]}")
                    continue

                # Server-initiated notifications and stale replies carry another id
                if response.id != request.id:
                    continue
                return response

    def next_id(self) -> int:
        """Generate the next request ID."""
        self._request_id += 1
        return self._request_id

    def stderr_tail(self) -> str:
        return "\n".join(self._stderr_tail)

    def _write(self, request: JsonRpcRequest) -> None:
        if not self.is_alive():
            raise ToolServerError("Transport not running. Call start() first.")
        try:
            self._process.stdin.write(request.to_json() + "\n")
            self._process.stdin.flush()
        except (BrokenPipeError, OSError) as e:
            raise ToolServerError(f"Failed to write to tool server: {e}") from e

    @staticmethod
    def _read_stdout(process: subprocess.Popen, lines: queue.Queue) -> None:
        try:
            for line in process.stdout:
                line = line.strip()
                if line:
                    lines.put(line)
        except (OSError, ValueError):
            pass
        lines.put(_EOF)

    def _read_stderr(self, process: subprocess.Popen) -> None:
        try:
            for line in process.stderr:
                self._stderr_tail.append(line.rstrip())
        except (OSError, ValueError):
            pass
