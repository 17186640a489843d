"""Pipeline exceptions: attach, record, normalize, merge, emit."""

from pathlib import Path
from typing import Dict, Optional, Union

from .base import BoundaryTraceError
from .taxonomy import ErrorCode, Stage


class AttachmentError(BoundaryTraceError):
    """Raised when the observer cannot hook the target process.

    Fatal: raised before any event is captured.
    """

    stage = Stage.ATTACH
    code = ErrorCode.BT200

    def __init__(
        self,
        reason: str,
        exit_code: Optional[int] = None,
        code: ErrorCode = ErrorCode.BT200,
        cause: Optional[BaseException] = None,
    ):
        details: Dict[str, str] = {"reason": reason}
        if exit_code is not None:
            details["exit_code"] = str(exit_code)
        super().__init__("Cannot attach to target process", details=details, cause=cause)
        self.reason = reason
        self.exit_code = exit_code
        self.code = code


class RecordingError(BoundaryTraceError):
    """Raised when the event stream cannot be read."""

    stage = Stage.RECORD
    code = ErrorCode.BT300


class ProtocolError(RecordingError):
    """Raised when a wire record is malformed."""

    code = ErrorCode.BT301

    def __init__(self, line: str, reason: str):
        snippet = line if len(line) <= 120 else line[:117] + "..."
        super().__init__(
            f"Malformed trace record: {reason}",
            details={"record": snippet.strip()},
        )
        self.line = line
        self.reason = reason


class NormalizationError(BoundaryTraceError):
    """Raised when captured events cannot be folded into descriptors."""

    stage = Stage.NORMALIZE
    code = ErrorCode.BT400


class MergeConflictError(BoundaryTraceError):
    """Raised when a descriptor input violates the one-entry-per-symbol schema.

    Merging is a pure union, so this only surfaces for malformed inputs.
    """

    stage = Stage.MERGE
    code = ErrorCode.BT500

    def __init__(self, symbol: str, reason: str, source: Optional[str] = None):
        details = {"symbol": symbol, "reason": reason}
        if source:
            details["source"] = source
        super().__init__(f"Conflicting descriptor for {symbol}", details=details)
        self.symbol = symbol
        self.reason = reason
        self.source = source


class InvalidMergeInputError(MergeConflictError):
    """Raised when a descriptor file given as merge input cannot be read or parsed."""

    code = ErrorCode.BT501

    def __init__(self, path: Union[str, Path], reason: str, cause: Optional[BaseException] = None):
        BoundaryTraceError.__init__(
            self,
            "Invalid merge input",
            details={"path": str(path), "reason": reason},
            cause=cause,
        )
        self.symbol = None
        self.reason = reason
        self.source = str(path)


class SerializationError(BoundaryTraceError):
    """Raised when a descriptor file cannot be written or parsed."""

    stage = Stage.EMIT
    code = ErrorCode.BT600

    def __init__(
        self,
        path: Optional[Union[str, Path]],
        reason: str,
        code: ErrorCode = ErrorCode.BT600,
        cause: Optional[BaseException] = None,
    ):
        details = {"reason": reason}
        if path is not None:
            details["path"] = str(path)
        super().__init__("Descriptor serialization failed", details=details, cause=cause)
        self.path = Path(path) if path is not None else None
        self.reason = reason
        self.code = code
