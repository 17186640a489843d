"""Recording session: the observer side of an observation run.

A session owns every piece of observation state, so independent sessions
never interfere. A background pump thread decodes wire lines from an
EventSource into a capture log; the consumer iterates a lazy stream fed by
the same log.

Cancellation: ``stop()`` closes the capture log under the pump's lock. The
stream still delivers everything captured before that point and nothing
after it. The pump keeps draining (and discarding) records from a target that
is left running, so the probe never blocks on a full pipe.
"""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

from ..exceptions import (
    AttachmentError,
    BoundaryTraceError,
    ErrorCode,
    ProtocolError,
    RecordingError,
)
from ..logging_config import get_logger
from ..models import AccessEvent
from ..protocol import Attached, Detached, decode
from .sources import EventSource

logger = get_logger(__name__)

DEFAULT_ATTACH_TIMEOUT = 30.0

# Extra time granted to the pump thread after the source was told to stop
_JOIN_GRACE_SECONDS = 1.0

_END = object()


class RecorderState(Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPED = "stopped"


@dataclass(frozen=True)
class RecordingResult:
    """What a finished session captured."""

    events: tuple[AccessEvent, ...]
    pid: Optional[int] = None
    exit_code: Optional[int] = None
    stopped_early: bool = False

    @property
    def event_count(self) -> int:
        return len(self.events)

    @property
    def is_empty(self) -> bool:
        return not self.events


class RecordingSession:
    """Attach to an event source and stream its access events.

    Usage::

        with RecordingSession() as session:
            for event in session.start(ProcessEventSource(spec, config)):
                ...
        result = session.stop()
    """

    def __init__(
        self,
        attach_timeout: float = DEFAULT_ATTACH_TIMEOUT,
        stop_timeout: float = 5.0,
    ) -> None:
        self.attach_timeout = attach_timeout
        self.stop_timeout = stop_timeout
        self.state = RecorderState.IDLE

        self._lock = threading.Lock()
        self._captured: list[AccessEvent] = []
        self._queue: queue.Queue = queue.Queue()
        self._closed = False
        self._stopped_early = False
        self._attached = threading.Event()
        self._attach: Optional[Attached] = None
        self._detach: Optional[Detached] = None
        self._error: Optional[BoundaryTraceError] = None
        self._source: Optional[EventSource] = None
        self._thread: Optional[threading.Thread] = None
        self._pump_done = False
        self._abandoned = False
        self._result: Optional[RecordingResult] = None

    # ── lifecycle ────────────────────────────────────────────────────

    def start(self, source: EventSource) -> Iterator[AccessEvent]:
        """Attach to ``source`` and return the lazy event stream.

        Blocks until the probe handshake arrives.

        Raises:
            RecordingError: If the session was already started
            AttachmentError: If the source cannot be opened, ends before the
                handshake, or the handshake times out
        """
        if self.state is not RecorderState.IDLE:
            raise RecordingError(f"Recording session already {self.state.value}")

        self._source = source
        self.state = RecorderState.RECORDING
        try:
            source.open()
        except BoundaryTraceError:
            self.state = RecorderState.STOPPED
            raise

        self._thread = threading.Thread(
            target=self._pump, name="boundary-trace-pump", daemon=True
        )
        self._thread.start()

        if not self._attached.wait(self.attach_timeout):
            self._shutdown()
            raise AttachmentError(
                f"no probe handshake from {source.description} "
                f"within {self.attach_timeout:g}s",
                code=ErrorCode.BT202,
            )

        if self._attach is None:
            cause = self._error
            self._shutdown()
            raise AttachmentError(
                f"{source.description} ended before the probe attached",
                exit_code=source.exit_code,
                code=ErrorCode.BT201,
                cause=cause,
            )

        logger.info(f"Attached to {source.description} (pid {self._attach.pid})")
        return self._stream()

    def stop(self) -> RecordingResult:
        """Finalize the stream and return what was captured.

        Idempotent: later calls return the same result.
        """
        if self.state is RecorderState.IDLE:
            raise RecordingError("Recording session was never started")
        if self._result is not None:
            return self._result

        self._shutdown()
        self._result = RecordingResult(
            events=self.events,
            pid=self._attach.pid if self._attach is not None else None,
            exit_code=self._exit_code(),
            stopped_early=self._stopped_early,
        )
        logger.info(
            f"Recording finished: {self._result.event_count} events"
            + (" (stopped early)" if self._stopped_early else "")
        )
        return self._result

    def __enter__(self) -> RecordingSession:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.state is RecorderState.RECORDING:
            self.stop()

    # ── state ────────────────────────────────────────────────────────

    @property
    def events(self) -> tuple[AccessEvent, ...]:
        """Snapshot of the events captured so far."""
        with self._lock:
            return tuple(self._captured)

    @property
    def captured_count(self) -> int:
        with self._lock:
            return len(self._captured)

    @property
    def is_closed(self) -> bool:
        """True once the capture log accepts no more events."""
        with self._lock:
            return self._closed

    # ── internals ────────────────────────────────────────────────────

    def _stream(self) -> Iterator[AccessEvent]:
        while True:
            item = self._queue.get()
            if item is _END:
                break
            yield item
        if self._error is not None:
            raise self._error

    def _close_log(self, early: bool) -> bool:
        """Close the capture log once; returns True if this call closed it."""
        with self._lock:
            if self._closed:
                return False
            self._closed = True
            self._stopped_early = early
            self._queue.put(_END)
            return True

    def _pump(self) -> None:
        assert self._source is not None
        try:
            for line in self._source.lines():
                record = decode(line)
                if isinstance(record, Attached):
                    if self._attach is None:
                        self._attach = record
                        self._attached.set()
                    else:
                        logger.debug(f"Ignoring repeated handshake from pid {record.pid}")
                    continue
                if self._attach is None:
                    raise ProtocolError(line, "record received before the probe handshake")
                if isinstance(record, Detached):
                    self._detach = record
                    continue
                with self._lock:
                    if self._closed:
                        continue
                    self._captured.append(record)
                    self._queue.put(record)
        except BoundaryTraceError as e:
            self._record_error(e)
        except Exception as e:
            self._record_error(RecordingError(f"Event source failed: {e}", cause=e))
        finally:
            self._close_log(early=False)
            self._attached.set()
            with self._lock:
                self._pump_done = True
                abandoned = self._abandoned
            if abandoned:
                self._source.close()

    def _record_error(self, error: BoundaryTraceError) -> None:
        with self._lock:
            if not self._closed:
                self._error = error

    def _shutdown(self) -> None:
        assert self._source is not None
        self._close_log(early=True)
        self._source.stop()
        if self._thread is not None:
            self._thread.join(self.stop_timeout + _JOIN_GRACE_SECONDS)
            with self._lock:
                done = self._pump_done
                self._abandoned = not done
            if done:
                self._source.close()
            else:
                logger.debug("Target still running; source closes when it exits")
        self.state = RecorderState.STOPPED

    def _exit_code(self) -> Optional[int]:
        if self._detach is not None and self._detach.exit_code is not None:
            return self._detach.exit_code
        return self._source.exit_code if self._source is not None else None
