"""
Centralized logging using Loguru with context-aware verbosity.

The LOG() function consults the verbosity of whatever program state has been
connected to the current context, so library code (classifier, executors,
renderer) can report progress without having the state passed around.

When nothing is connected, as is the case when yamdr is used as a library,
LOG() stays silent.

Usage:
    from yamdr.lib.log import LOG, state_connectToLogger

    state_connectToLogger(state)

    LOG("Rendering document...", level=1)
    LOG("Block 3 raised ScriptError", level=2, severity="WARNING")
    LOG("Span `_x_` resolved to 4", level=3)
"""

from loguru import logger
from typing import Any, Optional
from contextvars import ContextVar
import sys

_program_state: ContextVar[Optional[Any]] = ContextVar('program_state', default=None)

logger_format = (
    "<green>{time:HH:mm:ss}</green> │ "
    "<level>{level: <7}</level> │ "
    "<cyan>{module: <14}</cyan>:"
    "<cyan>{line: <4}</cyan> ║ "
    "<level>{message}</level>"
)

logger.remove()
logger.add(sys.stderr, format=logger_format, level="DEBUG")


def state_connectToLogger(state: Any) -> None:
    """
    Connect a program state to the logging context.

    Any object with an integer ``verbosity`` attribute works; the CLI
    passes its ProgramState, tests may pass a SimpleNamespace.

    Args:
        state: Object exposing a verbosity level, or None to silence LOG()
    """
    _program_state.set(state)


def verbosity_get() -> int:
    """Verbosity of the connected state, 0 when nothing is connected"""
    state = _program_state.get()
    return getattr(state, 'verbosity', 0) if state is not None else 0


def LOG(message: str, level: int = 1, severity: str = "DEBUG", **kwargs: Any) -> None:
    """
    Log message if the connected state's verbosity allows.

    Args:
        message: Log message to display
        level: Minimum verbosity level required (1=normal, 2=verbose, 3=debug)
        severity: Loguru level name the record is emitted with
        **kwargs: Additional loguru metadata

    Verbosity levels:
        1 = Normal output (default)
        2 = Verbose (-v)
        3 = Debug (-vv or higher)
    """
    if verbosity_get() >= level:
        logger.opt(depth=1).log(severity, message, **kwargs)
