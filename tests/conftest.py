"""Pytest hooks and fixtures."""

from __future__ import annotations

import json
import queue
import sys
import threading
from pathlib import Path
from typing import Any, Callable

import pytest

from stdiorpc.config.schema import ServerConfig
from stdiorpc.utils.exceptions import TransportClosedError

FAKE_SERVER = Path(__file__).parent / "fixtures" / "fake_server.py"


class FakeTransport:
    """In-memory line transport: records written frames, replays queued lines."""

    def __init__(self) -> None:
        self.written: list[dict[str, Any]] = []
        self.responder: Callable[[dict[str, Any]], list[Any]] | None = None
        self.input_closed = False
        self._lines: queue.Queue[bytes | None] = queue.Queue()
        self._lock = threading.Lock()

    def write_line(self, data: bytes) -> None:
        if self.input_closed:
            raise TransportClosedError("fake input closed")
        frame = json.loads(data.decode("utf-8"))
        with self._lock:
            self.written.append(frame)
        if self.responder is not None:
            for item in self.responder(frame) or []:
                self.feed(item)

    def feed(self, item: Any) -> None:
        if isinstance(item, dict):
            item = json.dumps(item, ensure_ascii=False)
        if isinstance(item, str):
            item = item.encode("utf-8")
        if not item.endswith(b"\n"):
            item += b"\n"
        self._lines.put(item)

    def end(self) -> None:
        self._lines.put(None)

    def read_line(self) -> bytes:
        item = self._lines.get()
        if item is None:
            raise EOFError("fake output ended")
        return item


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def fake_server_path() -> Path:
    return FAKE_SERVER


@pytest.fixture
def server_config() -> ServerConfig:
    """Config that launches the scripted fake server with the current interpreter."""
    return ServerConfig(
        command=sys.executable,
        args=["-u", str(FAKE_SERVER)],
        request_timeout=10.0,
        shutdown_timeout=5.0,
    )


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a config.json with one fake server and return its path."""
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "defaultServer": "fake",
                "servers": {
                    "fake": {
                        "command": sys.executable,
                        "args": ["-u", str(FAKE_SERVER)],
                        "env": {"FAKE_TOKEN": "s3cr3t-value"},
                        "requestTimeout": 10,
                        "description": "Scripted test server",
                    }
                },
            }
        ),
        encoding="utf-8",
    )
    return path
