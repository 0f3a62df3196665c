"""MiniMax MCP session over a stdio subprocess transport."""

from __future__ import annotations

import json
import logging
import os
import subprocess
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Dict, List, Optional

from minimax_mcp import __version__
from minimax_mcp.mcp.schema import (
    PROTOCOL_VERSION,
    RequestId,
    UnderstandImageParams,
    WebSearchParams,
    make_notification,
    make_request,
)
from minimax_mcp.validation.config import MiniMaxConfig, validate_config

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = "uvx"
DEFAULT_ARGS = ["minimax-coding-plan-mcp", "-y"]
MAX_LINE_BYTES = 16 * 1024 * 1024
STOP_GRACE_SECONDS = 5

UNCONNECTED = "unconnected"
CONNECTING = "connecting"
READY = "ready"


class MCPTransportError(Exception):
    """Raised when MCP transport communication fails."""


class MCPStartupError(MCPTransportError):
    """The server process could not be spawned or did not come up in time."""


class MCPProtocolError(MCPTransportError):
    """A JSON-RPC response carried an ``error`` member."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data

    @classmethod
    def from_error(cls, prefix: str, error: Any) -> "MCPProtocolError":
        if isinstance(error, dict):
            return cls(
                f"{prefix}: {error.get('message', 'unknown error')}",
                code=error.get("code"),
                data=error.get("data"),
            )
        return cls(f"{prefix}: {error}")


class MCPInitializeError(MCPProtocolError):
    """The ``initialize`` handshake was rejected."""


class MCPToolCallError(MCPProtocolError):
    """A ``tools/call`` request was rejected."""


class MCPTimeoutError(MCPTransportError):
    """No response arrived within the request timeout."""


class MCPProcessError(MCPTransportError):
    """The server process failed or exited while the session depended on it."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class MiniMaxSession:
    """
    One JSON-RPC conversation with a ``minimax-coding-plan-mcp`` subprocess.

    The subprocess is started lazily by the first call and owned by the
    session until ``disconnect()``. Use the session as a context manager so
    the process is released on every exit path::

        with MiniMaxSession(config) as session:
            result = session.web_search("rust async patterns")

    Requests may be issued from several threads at once; responses are
    matched to callers by JSON-RPC id, in whatever order they arrive.
    """

    def __init__(
        self,
        config: MiniMaxConfig,
        command: str = DEFAULT_COMMAND,
        args: Optional[List[str]] = None,
        startup_timeout: Optional[float] = None,
        max_line_bytes: int = MAX_LINE_BYTES,
    ):
        self.config = config
        self.command = command
        self.args = list(DEFAULT_ARGS) if args is None else list(args)
        self.startup_timeout = startup_timeout
        self.max_line_bytes = max_line_bytes
        self._process: Optional[subprocess.Popen] = None
        self._request_id = 0
        self._pending: Dict[RequestId, Future] = {}
        self._buffer = b""
        self._initialized = False
        self._init_future: Optional[Future] = None
        self._failure: Optional[MCPProcessError] = None
        self._lock = threading.RLock()
        self._write_lock = threading.Lock()

    def __enter__(self) -> "MiniMaxSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    @property
    def state(self) -> str:
        with self._lock:
            if self._initialized:
                return READY
            if self._init_future is not None:
                return CONNECTING
            return UNCONNECTED

    @property
    def is_connected(self) -> bool:
        return self.state == READY

    # ── Lifecycle ─────────────────────────────────────────────────────────

    def connect(self) -> None:
        """
        Spawn the server and perform the MCP handshake.

        Returns immediately when already connected. Concurrent callers share
        a single in-flight attempt and see its outcome.
        """
        with self._lock:
            if self._initialized:
                return
            future = self._init_future
            owner = future is None
            if owner:
                future = self._init_future = Future()

        if not owner:
            future.result()
            return

        try:
            self._do_connect()
            with self._lock:
                if self._init_future is not future:
                    # The process went away between the handshake and here.
                    raise self._lost_process_error()
                self._initialized = True
        except BaseException as exc:
            with self._lock:
                process = self._detach(exc) if self._init_future is future else None
            self._stop_process(process)
            future.set_exception(exc)
            raise
        future.set_result(None)

    def _do_connect(self) -> None:
        validate_config(self.config)

        env = {**os.environ, **self._server_env()}
        try:
            process = subprocess.Popen(
                [self.command] + self.args,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=env,
            )
        except OSError as exc:
            raise MCPStartupError(
                f"Failed to start MCP server command '{self.command}': {exc}. "
                "Make sure uv is installed (uvx minimax-coding-plan-mcp)."
            ) from exc

        with self._lock:
            self._process = process
            self._buffer = b""
            self._failure = None

        threading.Thread(
            target=self._read_stdout, args=(process,), name="minimax-mcp-stdout", daemon=True
        ).start()
        threading.Thread(
            target=self._read_stderr, args=(process,), name="minimax-mcp-stderr", daemon=True
        ).start()

        logger.debug("Started MCP server %s (pid %s)", self.command, process.pid)
        self._initialize(process)

    def _server_env(self) -> Dict[str, str]:
        env = {
            "MINIMAX_API_KEY": self.config.api_key or "",
            "MINIMAX_API_HOST": self.config.api_host,
        }
        if self.config.base_path:
            env["MINIMAX_MCP_BASE_PATH"] = self.config.base_path
        if self.config.resource_mode:
            env["MINIMAX_API_RESOURCE_MODE"] = self.config.resource_mode
        return env

    def _initialize(self, process: subprocess.Popen) -> None:
        """Perform the MCP initialize handshake with ``process``."""
        timeout_ms = None
        if self.startup_timeout is not None:
            timeout_ms = int(self.startup_timeout * 1000)

        try:
            response = self._send_request(
                "initialize",
                {
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": {},
                    "clientInfo": {"name": "minimax-mcp", "version": __version__},
                },
                process=process,
                timeout_ms=timeout_ms,
            )
        except MCPTimeoutError as e:
            raise MCPStartupError(f"MCP server did not answer initialize: {e}") from e
        if response.get("error"):
            raise MCPInitializeError.from_error("MCP initialize failed", response["error"])

        self._send_notification("notifications/initialized", {}, process=process)

    def disconnect(self) -> None:
        """Terminate the server and reset the session. Safe to call repeatedly."""
        process = self._detach(MCPTransportError("MCP session disconnected"))
        with self._lock:
            self._failure = None
        self._stop_process(process)

    def _detach(self, error: BaseException) -> Optional[subprocess.Popen]:
        """Reset all session state, failing pending requests with ``error``."""
        with self._lock:
            process = self._process
            pending = self._pending
            self._process = None
            self._pending = {}
            self._buffer = b""
            self._initialized = False
            self._init_future = None
            for future in pending.values():
                if not future.done():
                    future.set_exception(error)
        return process

    @staticmethod
    def _stop_process(process: Optional[subprocess.Popen]) -> None:
        if process is None:
            return
        if process.poll() is None:
            try:
                process.terminate()
                process.wait(timeout=STOP_GRACE_SECONDS)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait()
        if process.stdin:
            try:
                process.stdin.close()
            except OSError:
                # Unflushed data to a dead child.
                pass

    def _owns(self, process: subprocess.Popen) -> bool:
        with self._lock:
            return self._process is process

    def _lost_process_error(self) -> MCPTransportError:
        with self._lock:
            failure = self._failure
        if failure is not None:
            return MCPProcessError(str(failure), returncode=failure.returncode)
        return MCPTransportError("MCP process not connected")

    # ── Reading ───────────────────────────────────────────────────────────

    def _read_stdout(self, process: subprocess.Popen) -> None:
        stream = process.stdout
        try:
            while True:
                chunk = stream.read1(65536)
                if not chunk:
                    break
                if not self._owns(process):
                    return
                self._feed(chunk)
        except (OSError, ValueError) as exc:
            self._handle_process_failure(process, MCPProcessError(f"MCP process error: {exc}"))
            return
        finally:
            stream.close()

        self._handle_exit(process, process.wait())

    def _read_stderr(self, process: subprocess.Popen) -> None:
        stream = process.stderr
        try:
            for raw in iter(stream.readline, b""):
                msg = raw.decode("utf-8", errors="replace").strip()
                if not msg:
                    continue
                if "error" in msg.lower():
                    logger.error("[minimax-mcp server] %s", msg)
                else:
                    logger.debug("[minimax-mcp server] %s", msg)
        except (OSError, ValueError) as exc:
            logger.debug("Stopped reading MCP server stderr: %s", exc)
        finally:
            stream.close()

    def _feed(self, data: bytes) -> None:
        """Append stdout bytes and dispatch every complete line."""
        with self._lock:
            self._buffer += data
            *lines, self._buffer = self._buffer.split(b"\n")
            if len(self._buffer) > self.max_line_bytes:
                logger.warning(
                    "Dropping %d buffered bytes from MCP server: line exceeds %d bytes",
                    len(self._buffer),
                    self.max_line_bytes,
                )
                self._buffer = b""

        for raw in lines:
            self._handle_line(raw.decode("utf-8", errors="replace").strip())

    def _handle_line(self, line: str) -> None:
        if not line:
            return
        try:
            message = json.loads(line)
        except ValueError:
            message = None

        if not isinstance(message, dict):
            # Not JSON-RPC; servers print banners and logs on stdout too.
            logger.info("[minimax-mcp server] %s", line)
            return
        self._handle_message(message)

    def _handle_message(self, message: Dict[str, Any]) -> None:
        msg_id = message.get("id")
        if "method" in message or not isinstance(msg_id, (int, str)):
            logger.debug("Ignoring server-initiated message: %s", message.get("method"))
            return

        with self._lock:
            future = self._pending.pop(msg_id, None)
            if future is None:
                logger.debug("Ignoring response for unknown request id %r", msg_id)
                return
            future.set_result(message)

    def _handle_exit(self, process: subprocess.Popen, returncode: int) -> None:
        if not self._owns(process):
            return
        if returncode != 0:
            logger.error("MCP process exited with code %s", returncode)
        self._handle_process_failure(
            process,
            MCPProcessError(f"MCP process exited with code {returncode}", returncode=returncode),
        )

    def _handle_process_failure(self, process: subprocess.Popen, error: MCPProcessError) -> None:
        with self._lock:
            if self._process is not process:
                return
            self._failure = error
        self._stop_process(self._detach(error))

    # ── JSON-RPC ──────────────────────────────────────────────────────────

    def _write(self, process: subprocess.Popen, message: Dict[str, Any]) -> None:
        # json.dumps escapes control characters, so the payload holds no newline.
        line = json.dumps(message) + "\n"
        with self._write_lock:
            process.stdin.write(line.encode("utf-8"))
            process.stdin.flush()

    def _write_error(self, process: subprocess.Popen, exc: Exception) -> MCPTransportError:
        try:
            returncode = process.wait(timeout=1)
        except subprocess.TimeoutExpired:
            return MCPTransportError(f"MCP transport error: {exc}")
        return MCPProcessError(f"MCP process exited with code {returncode}", returncode=returncode)

    def _target(self, process: Optional[subprocess.Popen]) -> subprocess.Popen:
        """
        The process to write to: ``process`` when given, else the current one.

        Must be called with ``_lock`` held. A process that is no longer the
        session's own is treated as lost.
        """
        current = self._process
        if process is None:
            process = current
        if process is None or process is not current or process.stdin is None:
            raise self._lost_process_error()
        return process

    def _send_request(
        self,
        method: str,
        params: Dict[str, Any],
        process: Optional[subprocess.Popen] = None,
        timeout_ms: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Send a JSON-RPC request and block until its response arrives."""
        with self._lock:
            process = self._target(process)
            self._request_id += 1
            request_id = self._request_id
            future: Future = Future()
            self._pending[request_id] = future

        try:
            self._write(process, make_request(request_id, method, params))
        except (OSError, ValueError) as exc:
            with self._lock:
                self._pending.pop(request_id, None)
            raise self._write_error(process, exc) from exc

        if timeout_ms is None:
            timeout_ms = self.config.timeout_ms
        try:
            return future.result(timeout=timeout_ms / 1000)
        except FutureTimeoutError:
            with self._lock:
                expired = self._pending.pop(request_id, None) is not None
            if not expired:
                # Completed while the timeout fired; the first completion wins.
                return future.result()
            raise MCPTimeoutError(f"MCP request timeout after {timeout_ms}ms") from None

    def _send_notification(
        self,
        method: str,
        params: Dict[str, Any],
        process: Optional[subprocess.Popen] = None,
    ) -> None:
        with self._lock:
            process = self._target(process)
        try:
            self._write(process, make_notification(method, params))
        except (OSError, ValueError) as exc:
            raise self._write_error(process, exc) from exc

    # ── MCP Tools ─────────────────────────────────────────────────────────

    def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Call a tool on the MCP server and return its ``result`` verbatim."""
        self.connect()

        response = self._send_request("tools/call", {"name": name, "arguments": arguments or {}})
        if response.get("error"):
            raise MCPToolCallError.from_error("Tool call failed", response["error"])

        result = response.get("result")
        return result if result is not None else {"content": []}

    def web_search(
        self,
        query: str,
        num_results: Optional[int] = None,
        recency_days: Optional[int] = None,
    ) -> Dict[str, Any]:
        params = WebSearchParams(query=query, num_results=num_results, recency_days=recency_days)
        return self.call_tool("web_search", params.to_arguments())

    def understand_image(self, image_path: str, prompt: Optional[str] = None) -> Dict[str, Any]:
        params = UnderstandImageParams(image_path=image_path, prompt=prompt)
        return self.call_tool("understand_image", params.to_arguments())
