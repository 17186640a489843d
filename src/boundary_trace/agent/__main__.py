"""Entry point: ``python -m boundary_trace.agent (script | -m module) [args...]``.

Installs the access probe, reports the handshake on the trace pipe named by
``BOUNDARY_TRACE_FD``, then runs the target the way the interpreter would.
"""

from __future__ import annotations

import logging
import os
import runpy
import signal
import sys
from typing import Optional, Sequence

from ..protocol import FD_ENV, PROBE_ENV
from .probe import AccessProbe, ProbeSettings

logger = logging.getLogger(__name__)

USAGE = "usage: python -m boundary_trace.agent (script | -m module) [args...]"


def exit_status(code: object) -> int:
    """Process exit status for a ``SystemExit`` code."""
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    return 1


def _terminate(signum, frame) -> None:
    raise SystemExit(128 + signum)


def run_target(argv: Sequence[str]) -> None:
    """Run ``argv`` as ``python argv...`` would, in this interpreter."""
    if argv[0] == "-m":
        sys.argv = [argv[1], *argv[2:]]
        runpy.run_module(argv[1], run_name="__main__", alter_sys=True)
    else:
        script = argv[0]
        sys.argv = list(argv)
        sys.path[0] = os.path.dirname(os.path.abspath(script))
        runpy.run_path(script, run_name="__main__")


def main(argv: Optional[Sequence[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or (argv[0] == "-m" and len(argv) < 2):
        print(USAGE, file=sys.stderr)
        return 2

    fd_value = os.environ.pop(FD_ENV, None)
    try:
        fd = int(fd_value) if fd_value is not None else -1
        if fd < 0:
            raise ValueError(f"{FD_ENV} is not set")
        writer = os.fdopen(fd, "w", encoding="utf-8", buffering=1)
    except (ValueError, OSError) as e:
        print(f"boundary-trace agent: no trace pipe ({e})", file=sys.stderr)
        return 2
    os.set_inheritable(fd, False)

    try:
        settings = ProbeSettings.from_env()
    except ValueError as e:
        print(f"boundary-trace agent: invalid {PROBE_ENV} ({e})", file=sys.stderr)
        writer.close()
        return 2
    os.environ.pop(PROBE_ENV, None)

    if signal.getsignal(signal.SIGTERM) is signal.SIG_DFL:
        signal.signal(signal.SIGTERM, _terminate)

    probe = AccessProbe(writer, settings)
    probe.install()
    probe.hello()

    status = 0
    try:
        run_target(argv)
    except SystemExit as e:
        status = exit_status(e.code)
        raise
    except BaseException:
        status = 1
        raise
    finally:
        probe.detach(status)
        probe.close()
    return status


if __name__ == "__main__":
    sys.exit(main())
