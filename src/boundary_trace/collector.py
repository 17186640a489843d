"""Collector: drives one observation run from attach to emitted file.

States move strictly forward::

    IDLE -> RECORDING -> NORMALIZING -> [MERGING] -> EMITTED -> IDLE

Any stage failure aborts the run, returns the collector to IDLE and leaves
the output file as it was. A KeyboardInterrupt while recording is treated as
the stop signal: captured events are drained and the run continues.

Usage:
    collector = Collector(load_config(boundary=["ortools"]))
    source = ProcessEventSource(LaunchSpec.parse(["app.py"]), collector.config)
    result = collector.run(source, Path("reachability.json"), existing=Path("reachability.json"))
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from . import emit as emitter
from .config import TraceConfig
from .exceptions import BoundaryTraceError, RecordingError
from .file_ops import atomic_write_text
from .logging_config import get_logger
from .merge import added_members, load_input, merge
from .models import AccessEvent, DescriptorSet, Member
from .normalize import normalize
from .protocol import encode_attached, encode_detached, encode_event
from .recording import EventSource, RecordingResult, RecordingSession

logger = get_logger(__name__)

PathLike = Union[str, Path]


class CollectorState(Enum):
    IDLE = "idle"
    RECORDING = "recording"
    NORMALIZING = "normalizing"
    MERGING = "merging"
    EMITTED = "emitted"


@dataclass(frozen=True)
class CollectionResult:
    """Outcome of a successful run.

    Attributes:
        descriptors: The set written to ``output`` (merged if ``existing`` was given)
        fresh:       The set normalized from this run's events alone
        added:       Members this run contributed that ``existing`` lacked, by symbol
        output:      Path of the emitted descriptor file
        event_count: Number of access events captured
        pid:         Process id reported by the probe
        exit_code:   Exit status of the observed process, if known
        stopped_early: True if recording was stopped before the process exited
        states:      State transitions of the run, starting and ending at IDLE
    """

    descriptors: DescriptorSet
    fresh: DescriptorSet
    output: Path
    event_count: int
    added: dict[str, frozenset[Member]] = field(default_factory=dict)
    pid: Optional[int] = None
    exit_code: Optional[int] = None
    stopped_early: bool = False
    states: tuple[CollectorState, ...] = ()

    @property
    def incomplete(self) -> bool:
        """True when nothing was observed, so the file may miss real accesses."""
        return self.event_count == 0


class Collector:
    """Run the record -> normalize -> merge -> emit pipeline."""

    def __init__(self, config: Optional[TraceConfig] = None) -> None:
        self.config = config or TraceConfig()
        self._state = CollectorState.IDLE
        self._history: list[CollectorState] = [CollectorState.IDLE]

    @property
    def state(self) -> CollectorState:
        return self._state

    @property
    def history(self) -> tuple[CollectorState, ...]:
        return tuple(self._history)

    def _enter(self, state: CollectorState) -> None:
        logger.debug(f"Collector: {self._state.value} -> {state.value}")
        self._state = state
        self._history.append(state)

    def run(
        self,
        source: EventSource,
        output: PathLike,
        existing: Optional[PathLike] = None,
        trace_log: Optional[PathLike] = None,
    ) -> CollectionResult:
        """Observe ``source`` and emit its descriptor set to ``output``.

        Args:
            source: Where access events come from
            output: Descriptor file to write
            existing: Previously emitted descriptor file to merge with; a path
                that does not exist yet counts as an empty set
            trace_log: Optional path to save the raw captured events, written
                only once the descriptor file has been emitted

        Raises:
            BoundaryTraceError: Subclass naming the failing stage
        """
        if self._state is not CollectorState.IDLE:
            raise RecordingError(f"Collector is busy ({self._state.value})")

        self._history = [CollectorState.IDLE]
        try:
            result = self._run(source, Path(output), existing, trace_log)
        except BoundaryTraceError as e:
            logger.debug(f"Run aborted while {self._state.value}: {e}")
            raise
        finally:
            self._enter(CollectorState.IDLE)
        return replace(result, states=self.history)

    def _run(
        self,
        source: EventSource,
        output: Path,
        existing: Optional[PathLike],
        trace_log: Optional[PathLike],
    ) -> CollectionResult:
        self._enter(CollectorState.RECORDING)
        recording = self._record(source)
        if recording.is_empty:
            logger.warning(
                f"No boundary-crossing accesses observed from {source.description}; "
                "the descriptor set may be incomplete"
            )

        self._enter(CollectorState.NORMALIZING)
        fresh = normalize(recording.events, self.config.symbol_filter)

        descriptors = fresh
        previous = DescriptorSet()
        if existing is not None:
            self._enter(CollectorState.MERGING)
            previous = load_input(existing, missing_ok=True)
            descriptors = merge(previous, fresh)

        written = emitter.emit(descriptors, output)
        if trace_log is not None:
            save_trace_log(recording, trace_log)
        self._enter(CollectorState.EMITTED)

        return CollectionResult(
            descriptors=descriptors,
            fresh=fresh,
            output=written,
            event_count=recording.event_count,
            added=added_members(previous, descriptors),
            pid=recording.pid,
            exit_code=recording.exit_code,
            stopped_early=recording.stopped_early,
        )

    def _record(self, source: EventSource) -> RecordingResult:
        session = RecordingSession(
            attach_timeout=self.config.attach_timeout_seconds,
            stop_timeout=self.config.stop_timeout_seconds,
        )
        stream = session.start(source)
        try:
            for count, event in enumerate(stream, 1):
                logger.debug(f"#{count} {event.kind.value} {event.symbol} {event.member or ''}")
        except KeyboardInterrupt:
            logger.info("Interrupted; stopping recording")
        finally:
            result = session.stop()
        return result


def render_trace_log(
    events: tuple[AccessEvent, ...], pid: int = 0, exit_code: Optional[int] = None
) -> str:
    """Wire-format text for ``events``, replayable through a StreamEventSource."""
    lines = [encode_attached(pid)]
    lines.extend(encode_event(event) for event in events)
    lines.append(encode_detached(exit_code))
    return "".join(lines)


def save_trace_log(recording: RecordingResult, path: PathLike) -> Path:
    text = render_trace_log(recording.events, recording.pid or 0, recording.exit_code)
    written = atomic_write_text(path, text)
    logger.info(f"Saved {recording.event_count} raw events to {written}")
    return written
