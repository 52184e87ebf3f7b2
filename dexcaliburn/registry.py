"""Table of bytecode loading entry points and the dispatcher hooking them.

A runtime may expose several historical overloads of the same loader
constructor, so one loader type can appear in several descriptors.  Each
descriptor is an independent registration: if the running API level lacks it
the descriptor is skipped and the rest still install.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Tuple

from .capabilities import Handler, Instrumentation, Invocation
from .capture import CaptureEncoder
from .exceptions import HookUnavailableError
from .report import RegistrationOutcome

LOGGER = logging.getLogger(__name__)

_PACKAGE = "dalvik.system."


class CaptureStrategy(enum.Enum):
    FILE = "file"
    MEMORY_SINGLE = "memory-single"
    MEMORY_ARRAY = "memory-array"


@dataclass(frozen=True)
class LoaderDescriptor:
    target_type: str
    constructor_signature: Tuple[str, ...]
    strategy: CaptureStrategy
    label: str


LOADER_REGISTRY: Tuple[LoaderDescriptor, ...] = (
    LoaderDescriptor(
        _PACKAGE + "BaseDexClassLoader",
        ("java.lang.String", "java.io.File", "java.lang.String", "java.lang.ClassLoader"),
        CaptureStrategy.FILE,
        "BaseDexClassLoader(String dexPath, File optimizedDirectory, String librarySearchPath, ClassLoader parent)",
    ),
    LoaderDescriptor(
        _PACKAGE + "InMemoryDexClassLoader",
        ("[Ljava.nio.ByteBuffer;", "java.lang.String", "java.lang.ClassLoader"),
        CaptureStrategy.MEMORY_ARRAY,
        "InMemoryDexClassLoader(ByteBuffer[] dexBuffers, String librarySearchPath, ClassLoader parent)",
    ),
    LoaderDescriptor(
        _PACKAGE + "InMemoryDexClassLoader",
        ("[Ljava.nio.ByteBuffer;", "java.lang.ClassLoader"),
        CaptureStrategy.MEMORY_ARRAY,
        "InMemoryDexClassLoader(ByteBuffer[] dexBuffers, ClassLoader parent)",
    ),
    LoaderDescriptor(
        _PACKAGE + "InMemoryDexClassLoader",
        ("java.nio.ByteBuffer", "java.lang.ClassLoader"),
        CaptureStrategy.MEMORY_SINGLE,
        "InMemoryDexClassLoader(ByteBuffer dexBuffer, ClassLoader parent)",
    ),
    LoaderDescriptor(
        _PACKAGE + "DexClassLoader",
        ("java.lang.String", "java.lang.String", "java.lang.String", "java.lang.ClassLoader"),
        CaptureStrategy.FILE,
        "DexClassLoader(String dexPath, String optimizedDirectory, String librarySearchPath, ClassLoader parent)",
    ),
    LoaderDescriptor(
        _PACKAGE + "PathClassLoader",
        ("java.lang.String", "java.lang.ClassLoader"),
        CaptureStrategy.FILE,
        "PathClassLoader(String dexPath, ClassLoader parent)",
    ),
    LoaderDescriptor(
        _PACKAGE + "DelegateLastClassLoader",
        ("java.lang.String", "java.lang.ClassLoader"),
        CaptureStrategy.FILE,
        "DelegateLastClassLoader(String dexPath, ClassLoader parent)",
    ),
    LoaderDescriptor(
        _PACKAGE + "DelegateLastClassLoader",
        ("java.lang.String", "java.lang.String", "java.lang.ClassLoader"),
        CaptureStrategy.FILE,
        "DelegateLastClassLoader(String dexPath, String librarySearchPath, ClassLoader parent)",
    ),
    LoaderDescriptor(
        _PACKAGE + "DelegateLastClassLoader",
        ("java.lang.String", "java.lang.String", "java.lang.ClassLoader", "boolean"),
        CaptureStrategy.FILE,
        "DelegateLastClassLoader(String dexPath, String librarySearchPath, ClassLoader parent, boolean delegateResourceLoading)",
    ),
)


def _capture_file(encoder: CaptureEncoder, first: Any) -> List[str]:
    return encoder.capture_file(str(first))


def _capture_single(encoder: CaptureEncoder, first: Any) -> List[str]:
    return [encoder.capture_buffer(first)]


def _capture_array(encoder: CaptureEncoder, first: Any) -> List[str]:
    return encoder.capture_buffers(first)


_EXTRACTORS: dict[CaptureStrategy, Callable[[CaptureEncoder, Any], List[str]]] = {
    CaptureStrategy.FILE: _capture_file,
    CaptureStrategy.MEMORY_SINGLE: _capture_single,
    CaptureStrategy.MEMORY_ARRAY: _capture_array,
}


def make_loader_handler(descriptor: LoaderDescriptor, encoder: CaptureEncoder) -> Handler:
    """Return the constructor handler for ``descriptor``.

    The capture runs first; whatever it raises is logged and the original
    constructor still runs with the arguments it was given.
    """

    extract = _EXTRACTORS[descriptor.strategy]

    def handler(invocation: Invocation) -> Any:
        try:
            if invocation.args and invocation.args[0] is not None:
                extract(encoder, invocation.args[0])
            else:
                LOGGER.warning("%s called without a dex source", descriptor.label)
        except Exception:  # the host call must proceed regardless
            LOGGER.exception("Capture failed in %s", descriptor.label)
        return invocation.proceed()

    return handler


def install_loader_hooks(
    instrumentation: Instrumentation,
    encoder: CaptureEncoder,
    registry: Iterable[LoaderDescriptor] = LOADER_REGISTRY,
) -> List[RegistrationOutcome]:
    """Hook every descriptor the host supports and report each outcome."""

    outcomes: List[RegistrationOutcome] = []
    for descriptor in registry:
        try:
            instrumentation.hook_constructor(
                descriptor.target_type,
                descriptor.constructor_signature,
                make_loader_handler(descriptor, encoder),
            )
        except HookUnavailableError as exc:
            LOGGER.debug("Unable to override %s: %s", descriptor.label, exc)
            outcomes.append(RegistrationOutcome.skip(descriptor.label, exc))
            continue
        LOGGER.debug("Hooked %s", descriptor.label)
        outcomes.append(RegistrationOutcome.ok(descriptor.label))
    return outcomes


__all__ = [
    "CaptureStrategy",
    "LoaderDescriptor",
    "LOADER_REGISTRY",
    "make_loader_handler",
    "install_loader_hooks",
]
