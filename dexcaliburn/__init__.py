"""Runtime capture of dynamically loaded dex and reflective call sites."""

from __future__ import annotations

from .capabilities import HostIO, Instrumentation, Invocation, LocalHostIO, MethodInfo, StackFrame
from .channel import ProtocolChannel, QueueChannel
from .model import CallLocation, MethodSignature, SourceKind, XrefRecord, parse_hook_config
from .registry import LOADER_REGISTRY, CaptureStrategy, LoaderDescriptor
from .session import Session
from .xrefs import XrefTable

__version__ = "0.1.0"

__all__ = [
    "HostIO",
    "Instrumentation",
    "Invocation",
    "LocalHostIO",
    "MethodInfo",
    "StackFrame",
    "ProtocolChannel",
    "QueueChannel",
    "CallLocation",
    "MethodSignature",
    "SourceKind",
    "XrefRecord",
    "parse_hook_config",
    "LOADER_REGISTRY",
    "CaptureStrategy",
    "LoaderDescriptor",
    "Session",
    "XrefTable",
]
