"""
Error types raised by the spiel activation engine.
"""

import os
import sys


class SpielError(RuntimeError):
    """Base class for every error raised by spiel."""
    pass


class MissingCallbackError(SpielError, TypeError):
    """`invoke` was called without a callback."""
    def __init__(self, message: str = "Callback expected"):
        super().__init__(message)


class BlockParameterError(SpielError):
    """The callback declares the wrong number of parameters for the chosen convention."""
    pass


class DslMissingError(SpielError):
    """A class (or the class of a target) was used as a DSL but never declared DSL capability."""
    def __init__(self, subject=None):
        self.subject = subject
        if isinstance(subject, type):
            name = subject.__name__
        elif subject is not None:
            name = type(subject).__name__
        else:
            name = "target"
        super().__init__(f"{name} does not declare DSL capability")


class _TargetMismatch:
    """Sentinel returned by trampoline dispatch when no active target answers a name."""
    __slots__ = ()

    def __repr__(self):
        return "TARGET_MISMATCH"

    def __bool__(self):
        return False


TARGET_MISMATCH = _TargetMismatch()


def _dbg(*parts):
    if os.environ.get("SPIEL_DEBUG"):
        try:
            print("[DBG]", *parts, file=sys.stderr)
        except Exception:
            pass
