"""Custom exception hierarchy for the instrumentation engine."""

from __future__ import annotations


class DexcaliburnError(Exception):
    """Base class for all instrumentation related errors."""


class HookUnavailableError(DexcaliburnError):
    """Raised when an entry point does not exist on the running host."""


class ClassNotFoundError(DexcaliburnError):
    """Raised when a class cannot be resolved in a given loading context."""


class CaptureIOError(DexcaliburnError):
    """Raised when the bytes of a loaded module cannot be read."""


class ProtocolError(DexcaliburnError):
    """Raised when controller traffic does not follow the message protocol."""


class ControllerError(DexcaliburnError):
    """Raised by the host-side controller when a session cannot be driven."""


__all__ = [
    "DexcaliburnError",
    "HookUnavailableError",
    "ClassNotFoundError",
    "CaptureIOError",
    "ProtocolError",
    "ControllerError",
]
