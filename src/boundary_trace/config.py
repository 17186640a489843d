"""Configuration loading and management for Boundary Trace.

Configuration sources are merged in priority order:
    1. Defaults (defined in TraceConfig)
    2. Global config (~/.boundary-trace.toml)
    3. Project config (./boundary-trace.toml)
    4. Explicit config file (--config)
    5. Environment variables (BOUNDARY_TRACE_* prefix)
    6. CLI overrides (passed as kwargs)

Example:
    >>> config = load_config(boundary=["ortools"], verbose=True)
    >>> config.verbosity
    'verbose'
    >>> config.boundary
    ['ortools']
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Optional, get_type_hints

from .exceptions import ConfigurationError, InvalidConfigError
from .filters import SymbolFilter

Verbosity = Literal["quiet", "normal", "verbose"]

ENV_PREFIX = "BOUNDARY_TRACE_"
CONFIG_FILENAME = "boundary-trace.toml"


@dataclass(frozen=True)
class TraceConfig:
    """Configuration for an observation run.

    Attributes:
        Target process:
            python: Interpreter used to launch the target (None = current one)

        What the probe captures:
            boundary: Module patterns whose calls count as boundary crossings
            capture_loads: Record native extension loads and ctypes lookups
            capture_python_calls: Record Python-level calls into boundary modules
            capture_native_calls: Record C-level calls owned by boundary modules

        Filtering:
            include: Only keep symbols matching these patterns (empty = all)
            exclude: Drop symbols matching these patterns

        Session lifecycle:
            attach_timeout_seconds: How long to wait for the probe handshake
            stop_timeout_seconds: Grace period between SIGTERM and SIGKILL
            terminate_on_stop: Terminate a still-running target on stop

        Output control:
            verbosity: Logging verbosity level
    """

    python: Optional[str] = None

    boundary: list[str] = field(default_factory=list)
    capture_loads: bool = True
    capture_python_calls: bool = True
    capture_native_calls: bool = True

    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=lambda: ["boundary_trace"])

    attach_timeout_seconds: float = 30.0
    stop_timeout_seconds: float = 5.0
    terminate_on_stop: bool = True

    verbosity: Verbosity = "normal"

    def __post_init__(self) -> None:
        if self.attach_timeout_seconds <= 0:
            raise InvalidConfigError(
                "attach_timeout_seconds", self.attach_timeout_seconds, "must be positive"
            )
        if self.stop_timeout_seconds < 0:
            raise InvalidConfigError(
                "stop_timeout_seconds", self.stop_timeout_seconds, "must be non-negative"
            )
        if self.verbosity not in ("quiet", "normal", "verbose"):
            raise InvalidConfigError(
                "verbosity", self.verbosity, "expected quiet, normal or verbose"
            )
        for key in ("boundary", "include", "exclude"):
            value = getattr(self, key)
            if not isinstance(value, list) or not all(isinstance(p, str) and p for p in value):
                raise InvalidConfigError(key, value, "expected a list of non-empty strings")

    @property
    def interpreter(self) -> str:
        """Interpreter path for the target process."""
        return self.python or sys.executable

    @property
    def symbol_filter(self) -> SymbolFilter:
        return SymbolFilter(include=tuple(self.include), exclude=tuple(self.exclude))

    def probe_settings(self) -> dict[str, Any]:
        """Settings shipped to the in-process probe (JSON-serializable)."""
        return {
            "boundary": list(self.boundary),
            "exclude": list(self.exclude),
            "capture_loads": self.capture_loads,
            "capture_python_calls": self.capture_python_calls,
            "capture_native_calls": self.capture_native_calls,
        }


def load_config(config_file: Optional[Path] = None, **overrides) -> TraceConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        config_file: Optional explicit config file path
        **overrides: Direct overrides (typically from CLI flags). ``None``
            values are ignored so unset CLI options don't clobber files.

    Returns:
        Validated TraceConfig instance

    Raises:
        ConfigurationError: If a config file is invalid or missing
    """
    merged: dict = {}

    global_config = Path.home() / f".{CONFIG_FILENAME}"
    if global_config.exists():
        merged.update(_load_toml_section(global_config))

    project_config = Path.cwd() / CONFIG_FILENAME
    if project_config.exists():
        merged.update(_load_toml_section(project_config))

    if config_file is not None:
        if not config_file.exists():
            raise ConfigurationError(
                f"Config file not found: {config_file}", details={"path": str(config_file)}
            )
        merged.update(_load_toml_section(config_file))

    merged.update(_load_env_vars())

    if "verbose" in overrides:
        if overrides["verbose"]:
            overrides["verbosity"] = "verbose"
        del overrides["verbose"]
    if "quiet" in overrides:
        if overrides["quiet"]:
            overrides["verbosity"] = "quiet"
        del overrides["quiet"]

    merged.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return TraceConfig(**merged)
    except TypeError as e:
        # Unknown field in config
        raise ConfigurationError(f"Invalid configuration: {e}")


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from BOUNDARY_TRACE_* environment variables.

    List fields accept comma-separated values, e.g.
    ``BOUNDARY_TRACE_BOUNDARY=ortools,mypkg.native``.

    Returns:
        Dict of field_name -> parsed_value for any variables found.
    """
    type_hints = get_type_hints(TraceConfig)

    result: dict[str, Any] = {}

    for field_name in TraceConfig.__dataclass_fields__:
        env_key = f"{ENV_PREFIX}{field_name.upper()}"
        env_value = os.environ.get(env_key)

        if env_value is None:
            continue

        type_hint = type_hints.get(field_name)
        if type_hint is None:
            continue

        try:
            parsed = _parse_env_value(env_value, type_hint)
        except ValueError as e:
            raise InvalidConfigError(env_key, env_value, str(e))
        if parsed is not None:
            result[field_name] = parsed

    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    """Parse environment variable string to the correct type.

    Raises:
        ValueError: If value can't be parsed to expected type
    """
    origin = getattr(type_hint, "__origin__", None)

    # Optional[X] is Union[X, None]
    args = getattr(type_hint, "__args__", ())
    if type(None) in args:
        non_none_types = [t for t in args if t is not type(None)]
        if non_none_types:
            type_hint = non_none_types[0]
            origin = getattr(type_hint, "__origin__", None)

    if origin is list:
        return [part.strip() for part in value.split(",") if part.strip()]

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        elif lower in ("false", "0", "no", "off"):
            return False
        else:
            raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if type_hint is float:
        return float(value)

    if type_hint is str or origin is Literal:
        return value

    return None


def _load_toml_section(path: Path) -> dict:
    """Load a TOML file, returning its ``[tool.boundary-trace]`` table if present."""
    try:
        data = _load_toml_file(path)
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Invalid config file '{path}': {e}", details={"path": str(path)})

    tool = data.get("tool")
    section = tool.get("boundary-trace") if isinstance(tool, dict) else None
    if isinstance(section, dict):
        return dict(section)
    return data


def _load_toml_file(path: Path) -> dict:
    """Load TOML file and return parsed dict.

    Raises:
        ConfigurationError: If tomllib/tomli not available
        Exception: If TOML parsing fails
    """
    try:
        # Python 3.11+ has tomllib in stdlib
        import tomllib
    except ModuleNotFoundError:
        try:
            # Fallback to tomli for Python 3.9-3.10
            import tomli as tomllib  # type: ignore
        except ImportError:
            raise ConfigurationError(
                "TOML support requires Python 3.11+ or 'tomli' package. "
                "Install with: pip install tomli"
            )

    with open(path, "rb") as f:
        return tomllib.load(f)
