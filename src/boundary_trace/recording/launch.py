"""Target launch specs: what to run under the probe, and how."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from ..exceptions import InvalidLaunchSpecError

AGENT_MODULE = "boundary_trace.agent"


@dataclass(frozen=True)
class LaunchSpec:
    """A Python target: a script path or a module run with ``-m``.

    Attributes:
        target: Script path, or module name when ``module`` is set
        args: Arguments passed to the target
        module: Run ``target`` as a module
        cwd: Working directory for the target (None = inherit)
    """

    target: str
    args: tuple[str, ...] = field(default_factory=tuple)
    module: bool = False
    cwd: Optional[Path] = None

    @classmethod
    def parse(cls, argv: Sequence[str], cwd: Optional[Path] = None) -> LaunchSpec:
        """Build a spec from ``script.py args...`` or ``-m package.module args...``.

        Raises:
            InvalidLaunchSpecError: If argv is empty, ``-m`` lacks a module,
                or the script does not exist
        """
        argv = list(argv)
        if not argv:
            raise InvalidLaunchSpecError(argv, "no target given")

        if argv[0] == "-m":
            if len(argv) < 2 or not argv[1] or argv[1].startswith("-"):
                raise InvalidLaunchSpecError(argv, "-m requires a module name")
            return cls(target=argv[1], args=tuple(argv[2:]), module=True, cwd=cwd)

        if argv[0].startswith("-"):
            raise InvalidLaunchSpecError(argv, f"unsupported interpreter option {argv[0]}")

        script = Path(argv[0])
        if not script.is_absolute() and cwd is not None:
            script = cwd / script
        if not script.exists():
            raise InvalidLaunchSpecError(argv, f"script not found: {argv[0]}")
        return cls(target=argv[0], args=tuple(argv[1:]), module=False, cwd=cwd)

    def agent_argv(self) -> list[str]:
        """Arguments understood by the probe agent's entry point."""
        head = ["-m", self.target] if self.module else [self.target]
        return head + list(self.args)

    def command(self, python: str) -> list[str]:
        """Full command line for the child interpreter."""
        return [python, "-m", AGENT_MODULE, *self.agent_argv()]

    def __str__(self) -> str:
        return " ".join(self.agent_argv())
