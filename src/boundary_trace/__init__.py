"""
Boundary Trace - Runtime Access Metadata Collector

Observes a running Python process, records every boundary-crossing symbol
access (native extension loads, ctypes lookups, calls into declared boundary
modules) and emits a canonical, mergeable descriptor file for ahead-of-time
packagers.

This module stays import-light: the probe agent imports the package inside
the observed interpreter.
"""

__version__ = "0.1.0"

from .models import AccessEvent, AccessKind, Descriptor, DescriptorSet, Member

__all__ = [
    "AccessEvent",
    "AccessKind",
    "Descriptor",
    "DescriptorSet",
    "Member",
]
