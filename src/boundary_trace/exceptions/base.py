"""Base exception for Boundary Trace."""

from typing import Any, Dict, Optional

from .taxonomy import ErrorCode, Stage


class BoundaryTraceError(Exception):
    """Base exception for all Boundary Trace errors.

    Every error names the pipeline stage it was raised in, so the CLI can
    report which part of an invocation failed.
    """

    stage: Stage = Stage.CONFIG
    code: ErrorCode = ErrorCode.BT100

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, str]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message

    def to_json(self) -> Dict[str, Any]:
        """Structured logging format."""
        return {
            "error_code": self.code.value,
            "stage": self.stage.value,
            "message": self.message,
            "details": dict(self.details),
            "cause": repr(self.cause) if self.cause is not None else None,
        }
