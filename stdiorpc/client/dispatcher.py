"""Request/response correlation over a line transport."""

from __future__ import annotations

import itertools
import queue
import threading
from collections.abc import Callable
from typing import IO, Any

from loguru import logger

from stdiorpc.core.contracts import LineTransport
from stdiorpc.core.protocol import RpcRequest, RpcResponse
from stdiorpc.core.serialization import decode_message_line, encode_request_line
from stdiorpc.transport.process import write_to_sink
from stdiorpc.utils.exceptions import (
    MalformedMessageError,
    RemoteError,
    StdioRpcError,
    TimeoutError,
    TransportClosedError,
    TransportError,
)

_Outcome = RpcResponse | StdioRpcError


class RequestDispatcher:
    """
    Assigns ids, writes requests and resolves them from a reader thread.

    A single reader thread owns the transport's output side. Callers block
    on a per-call queue until the reader resolves it, the deadline expires,
    or the stream ends. The pending table and id counter are guarded by one
    lock and never leave this object.
    """

    def __init__(
        self,
        transport: LineTransport,
        *,
        name: str = "server",
        default_timeout: float | None = None,
        strict_framing: bool = False,
        serialize_calls: bool = True,
        on_close: Callable[[StdioRpcError], None] | None = None,
    ):
        self.name = name
        self.default_timeout = default_timeout
        self.strict_framing = strict_framing
        self.serialize_calls = serialize_calls
        self._transport = transport
        self._on_close = on_close
        self._pending: dict[int, queue.Queue[_Outcome]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()
        self._call_lock = threading.Lock()
        self._reader_thread: threading.Thread | None = None
        self._closed = False
        self._close_reason = ""
        self._drain_to: IO[Any] | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def pending_ids(self) -> list[int]:
        with self._lock:
            return sorted(self._pending)

    def start(self) -> RequestDispatcher:
        with self._lock:
            if self._reader_thread is None:
                self._reader_thread = threading.Thread(
                    target=self._reader_loop, name=f"{self.name}-reader", daemon=True
                )
                self._reader_thread.start()
        return self

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the reader thread to finish; returns False if it is still running."""
        thread = self._reader_thread
        if thread is None or thread is threading.current_thread():
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def call(self, method: str, params: dict[str, Any] | None = None, *, timeout: float | None = None) -> dict[str, Any]:
        """Send a request and block until its response arrives."""
        if self.serialize_calls:
            with self._call_lock:
                return self._call(method, params, timeout)
        return self._call(method, params, timeout)

    def _call(self, method: str, params: dict[str, Any] | None, timeout: float | None) -> dict[str, Any]:
        deadline = self.default_timeout if timeout is None else timeout
        with self._lock:
            if self._closed:
                raise TransportClosedError(f"[{self.name}] {self._close_reason or 'transport closed'}")
            req_id = next(self._ids)
            waiter: queue.Queue[_Outcome] = queue.Queue(maxsize=1)
            self._pending[req_id] = waiter
        try:
            self._transport.write_line(encode_request_line(RpcRequest(method=method, params=params, id=req_id)))
            logger.debug("[{}] -> {} id={}", self.name, method, req_id)
            try:
                outcome = waiter.get(timeout=deadline)
            except queue.Empty as exc:
                raise TimeoutError(f"{method} (id={req_id})", deadline) from exc
        finally:
            with self._lock:
                self._pending.pop(req_id, None)
        if isinstance(outcome, StdioRpcError):
            raise outcome
        if outcome.error is not None:
            raise RemoteError(outcome.error.code, outcome.error.message, outcome.error.data, method=method)
        return outcome.result if outcome.result is not None else {}

    def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Send a notification; no response is expected."""
        with self._lock:
            if self._closed:
                raise TransportClosedError(f"[{self.name}] {self._close_reason or 'transport closed'}")
        self._transport.write_line(encode_request_line(RpcRequest(method=method, params=params)))
        logger.debug("[{}] -> {} (notification)", self.name, method)

    def close(self, reason: str = "closed by caller", drain_to: IO[Any] | None = None) -> None:
        """Stop accepting calls and fail every pending one. Remaining output goes to drain_to."""
        with self._lock:
            self._drain_to = drain_to
        self._shutdown(lambda: TransportClosedError(f"[{self.name}] {reason}"), reason, notify=False)

    def _shutdown(
        self,
        make_error: Callable[[], StdioRpcError],
        reason: str,
        *,
        notify: bool = True,
    ) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._close_reason = reason
            pending = list(self._pending.items())
            self._pending.clear()
        if pending:
            logger.warning("[{}] failing {} pending call(s): {}", self.name, len(pending), reason)
        for _, waiter in pending:
            try:
                waiter.put_nowait(make_error())
            except queue.Full:
                pass
        if notify and self._on_close is not None:
            try:
                self._on_close(make_error())
            except Exception:
                logger.exception("[{}] close callback failed", self.name)

    def _reader_loop(self) -> None:
        while True:
            try:
                line = self._transport.read_line()
            except EOFError:
                self._shutdown(
                    lambda: TransportClosedError(f"[{self.name}] server closed its output"),
                    "server closed its output",
                )
                return
            except TransportError as exc:
                message = exc.message
                self._shutdown(lambda: TransportError(message), message)
                return
            if self._closed:
                self._discard_after_close(line)
                continue
            if not line.strip():
                continue
            try:
                message = decode_message_line(line)
            except MalformedMessageError as exc:
                self._handle_malformed(exc)
                continue
            if isinstance(message, RpcRequest):
                logger.debug("[{}] discarding server message {} id={}", self.name, message.method, message.id)
                continue
            self._resolve(message)

    def _discard_after_close(self, line: bytes) -> None:
        sink = self._drain_to
        if sink is not None:
            write_to_sink(sink, line)
        else:
            logger.debug("[{}] discarding output after close: {}", self.name, line[:200])

    def _take_sole_pending(self) -> queue.Queue[_Outcome] | None:
        """Pop the only pending slot; callers hold self._lock."""
        if len(self._pending) != 1:
            return None
        _, waiter = self._pending.popitem()
        return waiter

    def _resolve(self, response: RpcResponse) -> None:
        with self._lock:
            if response.id is None:
                waiter = self._take_sole_pending()
            else:
                waiter = self._pending.pop(response.id, None)
        if waiter is None:
            if response.id is None:
                logger.warning(
                    "[{}] unattributed error response dropped: {}",
                    self.name,
                    response.error.message if response.error else "",
                )
            else:
                logger.debug("[{}] discarding response for unknown id={}", self.name, response.id)
            return
        logger.debug("[{}] <- id={} ok={}", self.name, response.id, response.ok)
        waiter.put_nowait(response)

    def _handle_malformed(self, exc: MalformedMessageError) -> None:
        logger.warning("[{}] malformed frame: {} ({})", self.name, exc.message, exc.line[:200])
        if self.strict_framing:
            message, line, req_id = exc.message, exc.line, exc.request_id
            self._shutdown(
                lambda: MalformedMessageError(message, line=line, request_id=req_id),
                f"malformed frame: {message}",
            )
            return
        # Without an id the frame can only be attributed when one call is waiting.
        with self._lock:
            if exc.request_id is None:
                waiter = self._take_sole_pending()
            else:
                waiter = self._pending.pop(exc.request_id, None)
        if waiter is not None:
            waiter.put_nowait(exc)
