"""Probe agent that runs inside the observed interpreter.

Started as ``python -m boundary_trace.agent``; depends on the standard
library only.
"""

from .probe import AccessProbe, ProbeSettings

__all__ = ["AccessProbe", "ProbeSettings"]
