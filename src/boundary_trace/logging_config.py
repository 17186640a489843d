"""
Logging for the observer side of Boundary Trace.

Records go to stderr through rich so they never mix with the observed
process's stdout. The in-process probe does not use this module; it logs
through plain ``logging`` and stays silent unless the target configures it.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "boundary_trace"


def _level(verbose: bool, quiet: bool) -> int:
    if quiet:
        return logging.ERROR
    if verbose:
        return logging.DEBUG
    return logging.WARNING


def setup_logging(verbose: bool = False, quiet: bool = False) -> logging.Logger:
    """
    Route log records to a rich stderr handler.

    ``--verbose`` logs every captured event and state transition; ``--quiet``
    keeps errors only. Calling this again replaces the previous handler.

    Returns:
        The ``boundary_trace`` logger
    """
    level = _level(verbose, quiet)
    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        tracebacks_show_locals=verbose,
        markup=False,
        show_time=verbose,
        show_path=verbose,
    )
    logging.basicConfig(level=level, format="%(message)s", datefmt="[%X]", handlers=[handler], force=True)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger under the ``boundary_trace`` namespace (``None`` for the root one)."""
    if name is None:
        return logging.getLogger(ROOT_LOGGER)
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
