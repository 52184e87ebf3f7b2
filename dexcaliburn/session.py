"""Per-process session state and the controller-facing protocol handlers.

A :class:`Session` is built once when the agent attaches.  It owns the hook
configuration, the xref table and the list of captured module ids, and hands
references to them to every handler it installs.  :meth:`Session.start`
performs the single blocking configuration round-trip before any handler
exists, so the configuration is immutable by the time hooks can fire.
"""

from __future__ import annotations

import logging
import threading
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .capabilities import HostIO, Instrumentation, LocalHostIO
from .capture import CaptureEncoder
from .channel import HOOKS, RUNDATA, SETUP, ProtocolChannel
from .dynamic_hooks import LOADER_TYPES, DynamicHookInstaller
from .exceptions import ProtocolError
from .model import HookConfig, parse_hook_config
from .registry import LOADER_REGISTRY, LoaderDescriptor, install_loader_hooks
from .report import RegistrationReport
from .tracker import CALLER_FRAME_DEPTH, ReflectiveInvocationTracker
from .xrefs import XrefTable

LOGGER = logging.getLogger(__name__)

__all__ = ["Session"]


class Session:
    """Mutable state of one instrumented process."""

    def __init__(
        self,
        instrumentation: Instrumentation,
        channel: ProtocolChannel,
        host_io: Optional[HostIO] = None,
        *,
        caller_depth: int = CALLER_FRAME_DEPTH,
        registry: Iterable[LoaderDescriptor] = LOADER_REGISTRY,
        loader_types: Iterable[str] = LOADER_TYPES,
        config_timeout: float | None = None,
    ) -> None:
        self.instrumentation = instrumentation
        self.channel = channel
        self.host_io = host_io or LocalHostIO()
        self.caller_depth = caller_depth
        self.registry = tuple(registry)
        self.loader_types = tuple(loader_types)
        self.config_timeout = config_timeout

        self.hook_config: HookConfig = MappingProxyType({})
        self.xrefs = XrefTable()
        self._dex_files: List[str] = []
        self._dex_lock = threading.Lock()
        self.encoder = CaptureEncoder(self.host_io, channel, self.add_dex_file)
        self.report: Optional[RegistrationReport] = None
        self._configured = False

    # ------------------------------------------------------------------
    # Controller protocol
    # ------------------------------------------------------------------
    def configure(self) -> HookConfig:
        """Announce the session and block until the controller sends hooks."""

        if self._configured:
            return self.hook_config
        self.channel.send_event(SETUP)
        payload = self.channel.await_message(HOOKS, timeout=self.config_timeout)
        if payload is not None and not isinstance(payload, str):
            raise ProtocolError(f"hooks payload must be text, got {type(payload).__name__}")
        self.hook_config = parse_hook_config(payload)
        self._configured = True
        LOGGER.info("Received %d dynamic hook target(s)", len(self.hook_config))
        return self.hook_config

    def snapshot(self) -> Dict[str, Any]:
        """Return the aggregate run data without resetting it."""

        with self._dex_lock:
            dex_files = list(self._dex_files)
        return {
            "dexFiles": dex_files,
            "xrefs": [record.to_json() for record in self.xrefs.snapshot()],
        }

    def handle_rundata(self, _payload: Any = None) -> None:
        self.channel.send_event(RUNDATA, {"runData": self.snapshot()})

    # ------------------------------------------------------------------
    # Shared state
    # ------------------------------------------------------------------
    def add_dex_file(self, identifier: str) -> None:
        with self._dex_lock:
            self._dex_files.append(identifier)

    @property
    def dex_files(self) -> Tuple[str, ...]:
        with self._dex_lock:
            return tuple(self._dex_files)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def install(self) -> RegistrationReport:
        """Install every interception handler and return what succeeded."""

        if not self._configured:
            raise ProtocolError("session must be configured before hooks are installed")
        report = RegistrationReport()
        self.channel.on_message(RUNDATA, self.handle_rundata)
        installer = DynamicHookInstaller(self.instrumentation, self.hook_config, self.loader_types)
        report.extend(installer.install())
        report.extend(install_loader_hooks(self.instrumentation, self.encoder, self.registry))
        tracker = ReflectiveInvocationTracker(
            self.instrumentation,
            self.xrefs,
            caller_depth=self.caller_depth,
        )
        report.add(tracker.install())
        self.report = report
        LOGGER.info("Installed %d hook(s), skipped %d", len(report.installed), len(report.skipped))
        return report

    def start(self) -> RegistrationReport:
        self.configure()
        return self.install()
