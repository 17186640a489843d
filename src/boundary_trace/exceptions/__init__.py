"""Exception hierarchy for Boundary Trace."""

from .base import BoundaryTraceError
from .config import (
    ConfigurationError,
    InvalidConfigError,
    InvalidLaunchSpecError,
)
from .pipeline import (
    AttachmentError,
    InvalidMergeInputError,
    MergeConflictError,
    NormalizationError,
    ProtocolError,
    RecordingError,
    SerializationError,
)
from .taxonomy import ErrorCode, Stage

__all__ = [
    "BoundaryTraceError",
    "ErrorCode",
    "Stage",
    "ConfigurationError",
    "InvalidConfigError",
    "InvalidLaunchSpecError",
    "AttachmentError",
    "RecordingError",
    "ProtocolError",
    "NormalizationError",
    "MergeConflictError",
    "InvalidMergeInputError",
    "SerializationError",
]
