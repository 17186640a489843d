"""Event sources: where wire records come from.

``ProcessEventSource`` launches a target under the probe agent and reads
records from a dedicated pipe. ``StreamEventSource`` replays a saved trace
log. Both yield raw wire lines; decoding happens in the recording session.
"""

from __future__ import annotations

import json
import os
import subprocess
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import IO, Iterator, Optional, Union

from ..config import TraceConfig
from ..exceptions import AttachmentError, ErrorCode, RecordingError
from ..logging_config import get_logger
from ..protocol import FD_ENV, PROBE_ENV
from .launch import LaunchSpec

logger = get_logger(__name__)


class EventSource(ABC):
    """A producer of wire lines.

    Lifecycle: ``open()`` once, iterate ``lines()`` from a single consumer
    thread, ``stop()`` from any thread to make ``lines()`` finish, then
    ``close()`` to release resources.
    """

    description: str = "event source"

    @abstractmethod
    def open(self) -> None:
        """Start producing. Raises AttachmentError if that is impossible."""

    @abstractmethod
    def lines(self) -> Iterator[str]:
        """Yield wire lines until the producer ends or is stopped."""

    @abstractmethod
    def stop(self) -> None:
        """Ask the producer to end. Safe to call more than once."""

    def close(self) -> None:
        """Release resources after ``lines()`` has finished."""

    @property
    def exit_code(self) -> Optional[int]:
        """Exit status of the observed process, if known."""
        return None


def agent_pythonpath(existing: Optional[str]) -> str:
    """PYTHONPATH for the child with this package's root directory first."""
    package_root = str(Path(__file__).resolve().parents[2])
    parts = [package_root]
    if existing:
        parts.extend(p for p in existing.split(os.pathsep) if p and p != package_root)
    return os.pathsep.join(parts)


class ProcessEventSource(EventSource):
    """Launch a Python target under the probe agent.

    The probe writes records to an inherited pipe descriptor, leaving the
    target's stdin/stdout/stderr untouched. POSIX only.
    """

    def __init__(
        self,
        spec: LaunchSpec,
        config: Optional[TraceConfig] = None,
        env: Optional[dict[str, str]] = None,
    ) -> None:
        self.spec = spec
        self.config = config or TraceConfig()
        self._env = env
        self._proc: Optional[subprocess.Popen] = None
        self._reader: Optional[IO[str]] = None
        self._stop_lock = threading.Lock()
        self._stopped = False
        self.description = f"process `{spec}`"

    def _child_env(self, write_fd: int) -> dict[str, str]:
        env = dict(os.environ if self._env is None else self._env)
        env[FD_ENV] = str(write_fd)
        env[PROBE_ENV] = json.dumps(self.config.probe_settings())
        env["PYTHONPATH"] = agent_pythonpath(env.get("PYTHONPATH"))
        return env

    def open(self) -> None:
        if self._proc is not None:
            raise RecordingError("Process event source already opened")

        command = self.spec.command(self.config.interpreter)
        read_fd, write_fd = os.pipe()
        try:
            self._proc = subprocess.Popen(
                command,
                cwd=str(self.spec.cwd) if self.spec.cwd is not None else None,
                env=self._child_env(write_fd),
                pass_fds=(write_fd,),
            )
        except OSError as e:
            os.close(read_fd)
            raise AttachmentError(
                f"failed to launch {command[0]}: {e}", code=ErrorCode.BT200, cause=e
            )
        finally:
            # The child owns the write end now; EOF arrives when it exits.
            os.close(write_fd)

        self._reader = os.fdopen(read_fd, "r", encoding="utf-8")
        logger.debug(f"Launched {' '.join(command)} (pid {self._proc.pid})")

    def lines(self) -> Iterator[str]:
        if self._reader is None:
            raise RecordingError("Process event source not opened")
        try:
            for line in self._reader:
                yield line
        except OSError as e:
            raise RecordingError(f"Reading trace pipe failed: {e}", cause=e)

    def stop(self) -> None:
        with self._stop_lock:
            if self._stopped:
                return
            self._stopped = True

        proc = self._proc
        if proc is None or proc.poll() is not None:
            return
        if not self.config.terminate_on_stop:
            logger.info(f"Detaching from pid {proc.pid}; target keeps running")
            return

        logger.info(f"Terminating target pid {proc.pid}")
        proc.terminate()
        try:
            proc.wait(timeout=self.config.stop_timeout_seconds)
        except subprocess.TimeoutExpired:
            logger.warning(f"Target pid {proc.pid} ignored SIGTERM, killing it")
            proc.kill()
            proc.wait()

    def close(self) -> None:
        if self._reader is not None:
            self._reader.close()
            self._reader = None
        if self._proc is not None and self.config.terminate_on_stop:
            self._proc.wait()

    @property
    def exit_code(self) -> Optional[int]:
        if self._proc is None:
            return None
        return self._proc.poll()


class StreamEventSource(EventSource):
    """Replay wire lines from a saved trace log or any text stream."""

    def __init__(self, stream: Union[str, Path, IO[str]]) -> None:
        self._path: Optional[Path] = None
        self._stream: Optional[IO[str]] = None
        if isinstance(stream, (str, Path)):
            self._path = Path(stream)
            self.description = f"trace log {self._path}"
        else:
            self._stream = stream
            self.description = "trace stream"
        self._owns_stream = self._path is not None
        self._stop_requested = threading.Event()

    def open(self) -> None:
        if self._path is None:
            return
        try:
            self._stream = open(self._path, encoding="utf-8")
        except OSError as e:
            raise AttachmentError(f"cannot open trace log {self._path}: {e}", cause=e)

    def lines(self) -> Iterator[str]:
        if self._stream is None:
            raise RecordingError("Stream event source not opened")
        for line in self._stream:
            if self._stop_requested.is_set():
                return
            if line.strip():
                yield line

    def stop(self) -> None:
        self._stop_requested.set()

    def close(self) -> None:
        if self._owns_stream and self._stream is not None:
            self._stream.close()
            self._stream = None
