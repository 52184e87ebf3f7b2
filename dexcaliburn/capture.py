"""Content-addressed capture of loaded bytecode modules."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, List, Optional

from .capabilities import HostIO
from .channel import DEX, ProtocolChannel
from .exceptions import CaptureIOError
from .model import MEMORY_ORIGIN, module_id, origin_label

LOGGER = logging.getLogger(__name__)

# Dex path lists handed to BaseDexClassLoader use the runtime path separator.
DEX_PATH_SEPARATOR = ":"

__all__ = ["DEX_PATH_SEPARATOR", "CaptureEncoder"]


class CaptureEncoder:
    """Hash captured bytes, name them and forward them to the controller.

    ``on_capture`` receives every emitted id; the session uses it to keep
    its list of captured modules.
    """

    def __init__(
        self,
        host_io: HostIO,
        channel: ProtocolChannel,
        on_capture: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.host_io = host_io
        self.channel = channel
        self.on_capture = on_capture

    def emit(self, label: str, data: bytes) -> str:
        identifier = module_id(label, self.host_io.hash_bytes(data))
        LOGGER.info("Sending dex as '%s' (%d bytes)", identifier, len(data))
        self.channel.send_event(DEX, {"filename": identifier}, data)
        if self.on_capture is not None:
            self.on_capture(identifier)
        return identifier

    def capture_file(self, dex_path: str) -> List[str]:
        """Capture every element of a dex path list.

        An unreadable element is logged and skipped; the remaining elements
        are still captured.
        """

        LOGGER.info("Loading new dex from file: %s", dex_path)
        identifiers: List[str] = []
        for path in (part for part in dex_path.split(DEX_PATH_SEPARATOR) if part):
            try:
                data = self.host_io.read_bytes(path)
            except CaptureIOError as exc:
                LOGGER.warning("Skipping capture of %s: %s", path, exc)
                continue
            identifiers.append(self.emit(origin_label(path), data))
        return identifiers

    def capture_buffer(self, buffer: Any) -> str:
        LOGGER.info("Loading new dex from memory buffer")
        return self.emit(MEMORY_ORIGIN, self.host_io.buffer_bytes(buffer))

    def capture_buffers(self, buffers: Iterable[Any]) -> List[str]:
        return [self.capture_buffer(buffer) for buffer in buffers]
