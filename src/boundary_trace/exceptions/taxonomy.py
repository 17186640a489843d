"""Error taxonomy: pipeline stages and structured error codes.

Error Code Convention:
    BT1xx - Configuration errors
    BT2xx - Attachment errors
    BT3xx - Recording errors
    BT4xx - Normalization errors
    BT5xx - Merge errors
    BT6xx - Emission errors
"""

from __future__ import annotations

from enum import Enum


class Stage(Enum):
    """Pipeline stage an error was raised in.

    The value doubles as the user-facing stage name; ``exit_code`` is the
    process exit status the CLI uses when the stage fails.
    """

    CONFIG = "config"
    ATTACH = "attach"
    RECORD = "record"
    NORMALIZE = "normalize"
    MERGE = "merge"
    EMIT = "emit"

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_EXIT_CODES = {
    Stage.CONFIG: 1,
    Stage.ATTACH: 2,
    Stage.RECORD: 3,
    Stage.NORMALIZE: 4,
    Stage.MERGE: 5,
    Stage.EMIT: 6,
}


class ErrorCode(Enum):
    """Structured error codes for observability and debugging."""

    # Configuration errors (BT1xx)
    BT100 = "BT100"  # Generic configuration error
    BT101 = "BT101"  # Invalid configuration value
    BT102 = "BT102"  # Invalid launch spec

    # Attachment errors (BT2xx)
    BT200 = "BT200"  # Target could not be launched
    BT201 = "BT201"  # Target exited before handshake
    BT202 = "BT202"  # Handshake timed out

    # Recording errors (BT3xx)
    BT300 = "BT300"  # Event source read failed
    BT301 = "BT301"  # Malformed wire record

    # Normalization errors (BT4xx)
    BT400 = "BT400"  # Event could not be folded

    # Merge errors (BT5xx)
    BT500 = "BT500"  # Duplicate symbol in descriptor input
    BT501 = "BT501"  # Descriptor input could not be read or parsed

    # Emission errors (BT6xx)
    BT600 = "BT600"  # Descriptor file could not be written
    BT601 = "BT601"  # Descriptor file could not be parsed
