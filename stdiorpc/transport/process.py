"""Subprocess-backed duplex byte stream for line-framed RPC."""

from __future__ import annotations

import io
import os
import re
import subprocess
import threading
from collections.abc import Mapping
from typing import IO, Any

from loguru import logger

from stdiorpc.utils.exceptions import LaunchError, TransportClosedError, TransportError, sanitize_error_message

_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_DRAIN_CHUNK = 64 * 1024


def expand_env_refs(value: str, source: Mapping[str, str]) -> str:
    """Replace ${NAME} references with values from source (missing names become empty)."""
    return _ENV_REF.sub(lambda m: source.get(m.group(1), ""), value)


def build_environment(
    overrides: Mapping[str, str] | None = None,
    *,
    inherit: bool = True,
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """
    Build the child environment.

    Overrides are layered on top of the inherited variables by key; nothing
    inherited is dropped unless inherit is False. Override values may
    reference ambient variables as ${NAME}.
    """
    ambient = dict(os.environ if base is None else base)
    env = dict(ambient) if inherit else {}
    for key, value in (overrides or {}).items():
        env[str(key)] = expand_env_refs(str(value), ambient)
    return env


def write_to_sink(sink: IO[Any], chunk: bytes) -> None:
    """Write raw bytes to a binary or text sink."""
    if isinstance(sink, io.TextIOBase):
        sink.write(chunk.decode("utf-8", errors="replace"))
    else:
        sink.write(chunk)


class ProcessTransport:
    """Owns one child process and its stdin/stdout pipes."""

    def __init__(
        self,
        command: str,
        args: list[str] | None = None,
        *,
        env: Mapping[str, str] | None = None,
        inherit_env: bool = True,
        cwd: str | None = None,
        name: str | None = None,
    ):
        self.command = command
        self.args = list(args or [])
        self.env_overrides = dict(env or {})
        self.inherit_env = inherit_env
        self.cwd = cwd
        self.name = name or os.path.basename(command) or "server"
        self._proc: subprocess.Popen[bytes] | None = None
        self._stderr_thread: threading.Thread | None = None
        self._write_lock = threading.Lock()
        self._input_closed = False
        self._closed = False

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc else None

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode if self._proc else None

    def is_alive(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    def start(self) -> ProcessTransport:
        if self.is_alive():
            return self
        argv = [self.command, *self.args]
        env = build_environment(self.env_overrides, inherit=self.inherit_env)
        logger.debug("[{}] env overrides: {}", self.name, sorted(self.env_overrides))
        try:
            self._proc = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=self.cwd,
                env=env,
            )
        except (OSError, ValueError) as exc:
            raise LaunchError(self.command, sanitize_error_message(str(exc))) from exc
        if not self._proc.stdout or not self._proc.stdin:
            raise LaunchError(self.command, "server stdio is unavailable")
        self._input_closed = False
        self._closed = False
        logger.info("[{}] started pid={} command={}", self.name, self._proc.pid, argv)
        self._stderr_thread = threading.Thread(
            target=self._stderr_loop, name=f"{self.name}-stderr", daemon=True
        )
        self._stderr_thread.start()
        return self

    def _stderr_loop(self) -> None:
        proc = self._proc
        if not proc or not proc.stderr:
            return
        try:
            for line in proc.stderr:
                text = line.decode("utf-8", errors="replace").strip()
                if text:
                    logger.debug("[{}] {}", self.name, text)
        except (OSError, ValueError):
            return

    def write_line(self, data: bytes) -> None:
        """Write one frame; a trailing newline is added when missing."""
        if not data.endswith(b"\n"):
            data += b"\n"
        with self._write_lock:
            proc = self._proc
            if proc is None or proc.stdin is None or self._input_closed:
                raise TransportClosedError(f"[{self.name}] input stream is closed")
            try:
                proc.stdin.write(data)
                proc.stdin.flush()
            except BrokenPipeError as exc:
                raise TransportClosedError(f"[{self.name}] server closed its input: {exc}") from exc
            except (OSError, ValueError) as exc:
                raise TransportError(f"[{self.name}] write failed: {exc}") from exc

    def read_line(self) -> bytes:
        """Block until one newline-terminated record is available."""
        proc = self._proc
        if proc is None or proc.stdout is None:
            raise TransportClosedError(f"[{self.name}] transport not started")
        try:
            line = proc.stdout.readline()
        except (OSError, ValueError) as exc:
            raise TransportError(f"[{self.name}] read failed: {exc}") from exc
        if not line:
            raise EOFError(f"[{self.name}] output stream ended")
        return line

    def close_input(self) -> None:
        """Close the child's stdin, signalling end of requests."""
        with self._write_lock:
            if self._input_closed:
                return
            self._input_closed = True
            proc = self._proc
            if proc and proc.stdin and not proc.stdin.closed:
                try:
                    proc.stdin.close()
                except OSError as exc:
                    logger.debug("[{}] closing stdin failed: {}", self.name, exc)

    def drain(self, sink: IO[Any] | None = None) -> int:
        """
        Copy remaining stdout bytes to sink until end-of-stream; returns byte count.

        Without a sink each remaining line is logged at debug.
        """
        proc = self._proc
        if proc is None or proc.stdout is None:
            return 0
        total = 0
        try:
            while True:
                if sink is None:
                    chunk = proc.stdout.readline()
                else:
                    chunk = proc.stdout.read1(_DRAIN_CHUNK)
                if not chunk:
                    break
                if sink is None:
                    logger.debug("[{}] stdout: {}", self.name, chunk[:200].decode("utf-8", errors="replace").rstrip())
                else:
                    write_to_sink(sink, chunk)
                total += len(chunk)
        except (OSError, ValueError) as exc:
            logger.debug("[{}] drain stopped: {}", self.name, exc)
        return total

    def wait(self, timeout: float | None = None) -> int | None:
        """Wait for exit, killing the child if it outlives timeout."""
        proc = self._proc
        if proc is None:
            return None
        try:
            return proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning("[{}] did not exit within {}s, killing pid={}", self.name, timeout, proc.pid)
            proc.kill()
            return proc.wait()

    def close(
        self,
        drain_to: IO[Any] | None = None,
        timeout: float = 5.0,
        *,
        log_output: bool = False,
    ) -> int | None:
        """
        Close input, drain output while waiting, then reap the child.

        Output goes to drain_to when given, or to the debug log with
        log_output. Pass neither while another thread still reads stdout.
        """
        if self._proc is None or self._closed:
            return self.returncode
        self._closed = True
        self.close_input()
        drainer: threading.Thread | None = None
        if drain_to is not None or log_output:
            drainer = threading.Thread(
                target=self.drain, args=(drain_to,), name=f"{self.name}-drain", daemon=True
            )
            drainer.start()
        code = self.wait(timeout=timeout)
        if drainer is not None:
            drainer.join(timeout)
        for stream in (self._proc.stdout, self._proc.stderr):
            if stream is not None:
                try:
                    stream.close()
                except OSError:
                    pass
        logger.info("[{}] exited pid={} returncode={}", self.name, self._proc.pid, code)
        return code
