"""Runtime contracts for line transports."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class LineTransport(Protocol):
    def write_line(self, data: bytes) -> None: ...
    def read_line(self) -> bytes: ...
