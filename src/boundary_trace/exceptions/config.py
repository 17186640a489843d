"""Configuration exceptions: settings and launch specs."""

from typing import Any, Sequence

from .base import BoundaryTraceError
from .taxonomy import ErrorCode, Stage


class ConfigurationError(BoundaryTraceError):
    """Base class for configuration-related errors."""

    stage = Stage.CONFIG
    code = ErrorCode.BT100


class InvalidConfigError(ConfigurationError):
    """Raised when configuration values are invalid."""

    code = ErrorCode.BT101

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration for {key}: {value}",
            details={"key": key, "value": str(value), "reason": reason},
        )
        self.key = key
        self.value = value
        self.reason = reason


class InvalidLaunchSpecError(ConfigurationError):
    """Raised when the target launch spec cannot be turned into a command."""

    code = ErrorCode.BT102

    def __init__(self, argv: Sequence[str], reason: str):
        super().__init__(
            f"Invalid launch spec: {reason}",
            details={"argv": " ".join(argv) or "<empty>"},
        )
        self.argv = list(argv)
        self.reason = reason
