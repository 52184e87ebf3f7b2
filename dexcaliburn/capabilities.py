"""Capability interfaces consumed from the host instrumentation engine.

Nothing in this package talks to a concrete runtime directly.  Hooks are
installed, types resolved and stacks captured through :class:`Instrumentation`,
and bytes are read and hashed through :class:`HostIO`.  Tests substitute a
fake runtime implementing the same protocols.

Every installed handler receives an :class:`Invocation` and follows the
interceptor contract: observe, call :meth:`Invocation.proceed` with the
untouched arguments, and hand back whatever the original returned or raised.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Protocol, Sequence, Tuple, runtime_checkable

from .exceptions import CaptureIOError

__all__ = [
    "Invocation",
    "Handler",
    "StackFrame",
    "MethodInfo",
    "Instrumentation",
    "HostIO",
    "LocalHostIO",
]


@dataclass(frozen=True)
class Invocation:
    """A single intercepted call as seen by a handler."""

    receiver: Any
    args: Tuple[Any, ...]
    original: Callable[..., Any]
    argument_types: Tuple[str, ...] = ()
    method_name: str = ""

    def proceed(self) -> Any:
        """Call the original operation with the unmodified arguments."""

        return self.original(self.receiver, *self.args)


Handler = Callable[[Invocation], Any]


@dataclass(frozen=True)
class StackFrame:
    """One element of a captured call stack, innermost frame first."""

    method_name: str
    file_name: Optional[str]
    line_number: int
    class_name: str = ""


@dataclass(frozen=True)
class MethodInfo:
    """Reflection data read from a method handle."""

    declaring_type: str
    name: str
    return_type: str
    parameter_types: Tuple[str, ...] = ()


@runtime_checkable
class Instrumentation(Protocol):
    """Hooking and introspection primitives provided by the host."""

    def hook_constructor(self, type_name: str, signature: Sequence[str], handler: Handler) -> Any:
        """Replace one constructor overload; raise ``HookUnavailableError`` if absent."""
        ...

    def hook_method(
        self,
        type_name: str,
        method_name: str,
        handler: Handler,
        *,
        overload: Sequence[str] | None = None,
        context: Any = None,
    ) -> Any:
        """Replace ``overload`` of a method, or every overload when it is ``None``."""
        ...

    def resolve_type(self, type_name: str, context: Any = None) -> Any:
        """Return a type handle; raise ``ClassNotFoundError`` when unresolvable."""
        ...

    def enumerate_loading_contexts(self) -> Sequence[Any]: ...

    def current_call_stack(self) -> Sequence[StackFrame]: ...

    def method_info(self, method_handle: Any) -> MethodInfo: ...


@runtime_checkable
class HostIO(Protocol):
    """Filesystem and digest primitives used by the capture encoder."""

    def read_bytes(self, path: str) -> bytes: ...

    def hash_bytes(self, data: bytes) -> str: ...

    def buffer_bytes(self, buffer: Any) -> bytes: ...


class LocalHostIO:
    """:class:`HostIO` backed by the local filesystem and :mod:`hashlib`."""

    def __init__(self, algorithm: str = "sha256") -> None:
        self.algorithm = algorithm

    def read_bytes(self, path: str) -> bytes:
        try:
            return Path(path).read_bytes()
        except OSError as exc:
            raise CaptureIOError(f"unable to read {path}: {exc}") from exc

    def hash_bytes(self, data: bytes) -> str:
        return hashlib.new(self.algorithm, data).hexdigest()

    def buffer_bytes(self, buffer: Any) -> bytes:
        # java.nio.ByteBuffer wrappers expose their backing store via array()
        array = getattr(buffer, "array", None)
        if callable(array):
            buffer = array()
        try:
            return memoryview(buffer).tobytes()
        except TypeError:
            pass
        # Java byte[] elements are signed, -128..127
        return bytes(value & 0xFF for value in buffer)
