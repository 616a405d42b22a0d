"""Session lifecycle: spawn, serve calls, shut down in order."""

from __future__ import annotations

import threading
from enum import Enum
from typing import IO, Any

from loguru import logger

from stdiorpc.client.dispatcher import RequestDispatcher
from stdiorpc.config.schema import ServerConfig
from stdiorpc.transport.process import ProcessTransport
from stdiorpc.utils.exceptions import SessionClosedError, StdioRpcError


class SessionState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    CLOSING = "closing"
    CLOSED = "closed"


class ClientSession:
    """
    One spawned server process paired with its dispatcher.

    States move NOT_STARTED -> RUNNING -> CLOSING -> CLOSED and never back.
    Shutdown closes the server's stdin, lets the reader drain what is left,
    then waits for the process to exit (killing it after shutdown_timeout).
    """

    def __init__(self, config: ServerConfig, *, name: str = "server"):
        self.config = config
        self.name = name
        self._transport = ProcessTransport(
            config.command,
            config.args,
            env=config.env,
            inherit_env=config.inherit_env,
            cwd=config.cwd,
            name=name,
        )
        self._dispatcher: RequestDispatcher | None = None
        self._state = SessionState.NOT_STARTED
        self._lock = threading.RLock()
        self._closed_event = threading.Event()
        self._returncode: int | None = None

    @classmethod
    def from_command(
        cls,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
        *,
        name: str = "server",
        **options: Any,
    ) -> ClientSession:
        config = ServerConfig(command=command, args=list(args or []), env=dict(env or {}), **options)
        return cls(config, name=name)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def returncode(self) -> int | None:
        return self._returncode

    @property
    def pid(self) -> int | None:
        return self._transport.pid

    @property
    def dispatcher(self) -> RequestDispatcher:
        if self._dispatcher is None:
            raise SessionClosedError(f"[{self.name}] session not started")
        return self._dispatcher

    def start(self) -> ClientSession:
        with self._lock:
            if self._state is SessionState.RUNNING:
                return self
            if self._state is not SessionState.NOT_STARTED:
                raise SessionClosedError(f"[{self.name}] session cannot be restarted once closed")
            self._transport.start()
            self._dispatcher = RequestDispatcher(
                self._transport,
                name=self.name,
                default_timeout=self.config.request_timeout,
                strict_framing=self.config.strict_framing,
                serialize_calls=self.config.serialize_calls,
                on_close=self._on_transport_closed,
            ).start()
            self._state = SessionState.RUNNING
        return self

    def _ensure_running(self) -> RequestDispatcher:
        state = self._state
        if state is SessionState.NOT_STARTED:
            raise SessionClosedError(f"[{self.name}] session not started")
        if state is not SessionState.RUNNING or self._dispatcher is None:
            raise SessionClosedError(f"[{self.name}] session is {state.value}")
        return self._dispatcher

    def call(self, method: str, params: dict[str, Any] | None = None, *, timeout: float | None = None) -> dict[str, Any]:
        return self._ensure_running().call(method, params, timeout=timeout)

    def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        self._ensure_running().notify(method, params)

    def close(self, drain_to: IO[Any] | None = None) -> int | None:
        """Shut down; remaining server output is copied to drain_to when given."""
        with self._lock:
            state = self._state
            if state is SessionState.NOT_STARTED:
                self._state = SessionState.CLOSED
                self._closed_event.set()
                return None
            if state is SessionState.RUNNING:
                self._state = SessionState.CLOSING
        if state is not SessionState.RUNNING:
            self._closed_event.wait(self.config.shutdown_timeout * 2)
            return self._returncode

        timeout = self.config.shutdown_timeout
        dispatcher = self.dispatcher
        dispatcher.close("session closed by caller", drain_to=drain_to)
        self._transport.close_input()
        if not dispatcher.join(timeout):
            logger.debug("[{}] reader still running after {}s", self.name, timeout)
        self._finish(self._transport.close(timeout=timeout))
        dispatcher.join(1.0)
        return self._returncode

    def _on_transport_closed(self, error: StdioRpcError) -> None:
        with self._lock:
            if self._state is not SessionState.RUNNING:
                return
            self._state = SessionState.CLOSING
        logger.info("[{}] transport closed: {}", self.name, error.message)
        # Runs on the reader thread, which no longer reads stdout.
        self._finish(self._transport.close(timeout=self.config.shutdown_timeout, log_output=True))

    def _finish(self, returncode: int | None) -> None:
        with self._lock:
            self._returncode = returncode
            self._state = SessionState.CLOSED
        self._closed_event.set()

    def wait_closed(self, timeout: float | None = None) -> bool:
        return self._closed_event.wait(timeout)

    def __enter__(self) -> ClientSession:
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
