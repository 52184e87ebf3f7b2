"""Value types shared by the tracker, the xref table and the session."""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional, Sequence, Set, Tuple

LOGGER = logging.getLogger(__name__)

MEMORY_ORIGIN = "memory"

# Frames compiled with debug info report the original source file name.
_SOURCE_FILE_PATTERN = re.compile(r".*\.(java|kt)$")

HookConfig = Mapping[str, FrozenSet[str]]

__all__ = [
    "MEMORY_ORIGIN",
    "SourceKind",
    "MethodSignature",
    "CallLocation",
    "XrefKey",
    "XrefRecord",
    "HookConfig",
    "classify_source",
    "format_prototype",
    "parse_hook_config",
    "origin_label",
    "module_id",
]


class SourceKind(str, enum.Enum):
    DEBUG = "debug"
    BINARY = "binary"


def classify_source(file_name: Optional[str]) -> SourceKind:
    """Return :attr:`SourceKind.DEBUG` when ``file_name`` is a source file."""

    if file_name and _SOURCE_FILE_PATTERN.match(file_name):
        return SourceKind.DEBUG
    return SourceKind.BINARY


def format_prototype(return_type: str, parameter_types: Sequence[str]) -> str:
    return f"{return_type}({', '.join(parameter_types)})"


@dataclass(frozen=True)
class MethodSignature:
    declaring_type: str
    method_name: str
    prototype: str

    def to_json(self) -> Dict[str, str]:
        return {
            "className": self.declaring_type,
            "methodName": self.method_name,
            "prototype": self.prototype,
        }


@dataclass(frozen=True)
class CallLocation:
    calling_method: str
    position: int
    source_kind: SourceKind

    def to_json(self) -> Dict[str, Any]:
        return {
            "callingMethod": self.calling_method,
            "position": self.position,
            "source": self.source_kind.value,
        }


XrefKey = Tuple[MethodSignature, CallLocation]


@dataclass(frozen=True)
class XrefRecord:
    """Aggregated observation of one (method, call site) pair."""

    method: MethodSignature
    location: CallLocation
    count: int

    @property
    def key(self) -> XrefKey:
        return (self.method, self.location)

    def to_json(self) -> Dict[str, Any]:
        return {
            "method": self.method.to_json(),
            "location": self.location.to_json(),
            "count": self.count,
        }


def parse_hook_config(payload: Optional[str]) -> HookConfig:
    """Build a :data:`HookConfig` from newline separated ``Class.method`` lines.

    Each line is split on its final ``.``; method names for the same class
    accumulate.  Blank lines are ignored and lines without a class part are
    dropped with a warning.
    """

    methods: Dict[str, Set[str]] = {}
    for raw_line in (payload or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        class_name, sep, method_name = line.rpartition(".")
        if not sep or not class_name or not method_name:
            LOGGER.warning("Ignoring malformed hook entry %r", line)
            continue
        methods.setdefault(class_name, set()).add(method_name)
    return MappingProxyType({name: frozenset(values) for name, values in methods.items()})


def origin_label(path: str) -> str:
    """Return the base name of ``path``, looking inside ``archive!entry`` paths."""

    name = path.rstrip("/").rsplit("/", 1)[-1]
    return name.rsplit("!", 1)[-1]


def module_id(label: str, digest: str) -> str:
    return f"{label}-{digest}"
