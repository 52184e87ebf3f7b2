"""Frida controller driving an instrumentation agent inside an Android app.

The controller answers the agent's ``setup`` announcement with the hook list,
stores every ``dex`` payload under ``<output>/dex`` and, when asked, requests
the run data and writes it to ``<output>/rundata.json``.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import frida

from .channel import DEX, HOOKS, RUNDATA, SETUP
from .exceptions import ControllerError, ProtocolError
from .io_utils import ensure_out, safe_filename, write_bytes, write_json

LOGGER = logging.getLogger(__name__)

DEX_DIRNAME = "dex"
RUNDATA_FILENAME = "rundata.json"


@dataclass(slots=True)
class CaptureResult:
    """Record of a capture session performed via Frida."""

    target: str
    dumps: List[Path]
    run_data: Optional[Dict[str, Any]]
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> dict:
        return {
            "target": self.target,
            "dumps": [path.as_posix() for path in self.dumps],
            "runData": self.run_data,
            "metadata": self.metadata,
        }


def load_hooks(path: Path | None) -> str:
    """Return the hook list text for the agent; ``None`` means no hooks."""

    if path is None:
        return ""
    return path.read_text(encoding="utf-8")


class DexcaliburnController:
    """Host end of the agent protocol for one attached script."""

    def __init__(self, output_dir: Path, hooks: str = "") -> None:
        self.output_dir = Path(output_dir)
        self.dex_dir = Path(ensure_out(self.output_dir, DEX_DIRNAME))
        self.hooks = hooks
        self.script: Any = None
        self.dumps: List[Path] = []
        self.errors: List[dict] = []
        self.run_data: Optional[Dict[str, Any]] = None
        self._seen: set[str] = set()
        self._lock = threading.Lock()
        self._rundata_ready = threading.Event()
        self._setup_done = threading.Event()

    def bind(self, script: Any) -> None:
        self.script = script
        script.on("message", self.on_message)

    def post(self, tag: str, payload: Any = None) -> None:
        if self.script is None:
            raise ControllerError("no script bound to the controller")
        self.script.post({"type": tag, "payload": payload})

    def on_message(self, message: dict, data: Optional[bytes]) -> None:
        if message.get("type") == "error":
            LOGGER.error("Agent error: %s", message.get("description"))
            self.errors.append(message)
            return
        if message.get("type") != "send":
            LOGGER.debug("Ignoring message %r", message)
            return
        payload = message.get("payload")
        if not isinstance(payload, dict):
            LOGGER.info("Agent: %r", payload)
            return
        event_id = payload.get("id")
        try:
            if event_id == SETUP:
                self.handle_setup()
            elif event_id == DEX:
                self.handle_dex(payload, data)
            elif event_id == RUNDATA:
                self.handle_rundata(payload)
            else:
                LOGGER.warning("Unknown event %r from agent", event_id)
        except ProtocolError as exc:
            # frida drops exceptions raised on its message thread
            LOGGER.error("Malformed %s event: %s", event_id, exc)
            self.errors.append({"type": "protocol", "description": str(exc)})

    def handle_setup(self) -> None:
        LOGGER.info("Agent ready, sending %d hook line(s)", len(self.hooks.splitlines()))
        self.post(HOOKS, self.hooks)
        self._setup_done.set()

    def handle_dex(self, payload: dict, data: Optional[bytes]) -> Optional[Path]:
        filename = payload.get("filename")
        if not isinstance(filename, str):
            raise ProtocolError(f"dex event without a filename: {payload!r}")
        if data is None:
            LOGGER.warning("dex event %s carried no bytes", filename)
            return None
        with self._lock:
            if filename in self._seen:
                LOGGER.debug("Already captured %s", filename)
                return None
            self._seen.add(filename)
        path = self.dex_dir / safe_filename(filename)
        write_bytes(path, data)
        with self._lock:
            self.dumps.append(path)
        LOGGER.info("Wrote %s (%d bytes)", path, len(data))
        return path

    def handle_rundata(self, payload: dict) -> None:
        run_data = payload.get("runData")
        if not isinstance(run_data, dict):
            raise ProtocolError(f"rundata event without runData: {payload!r}")
        self.run_data = run_data
        self._rundata_ready.set()

    def wait_for_setup(self, timeout: float) -> bool:
        return self._setup_done.wait(timeout)

    def request_rundata(self, timeout: float = 10.0) -> Dict[str, Any]:
        """Ask the agent for its aggregate state and wait for the reply."""

        self._rundata_ready.clear()
        self.post(RUNDATA)
        if not self._rundata_ready.wait(timeout):
            raise ControllerError(f"agent did not answer rundata within {timeout}s")
        if self.run_data is None:
            raise ControllerError("rundata reply carried no run data")
        return self.run_data

    def write_run_data(self) -> Path:
        path = self.output_dir / RUNDATA_FILENAME
        write_json(path, self.run_data or {"dexFiles": [], "xrefs": []})
        return path


def _get_device(kind: str, timeout: int) -> Any:
    if kind == "usb":
        return frida.get_usb_device(timeout=timeout)
    if kind == "local":
        return frida.get_local_device()
    if kind == "remote":
        return frida.get_remote_device()
    raise ControllerError(f"unknown device kind {kind!r}")


def capture_with_frida(
    target: str,
    *,
    script_source: str,
    output_dir: Path,
    hooks: str = "",
    device: Any = "usb",
    spawn: bool = False,
    duration: float = 30.0,
    timeout: int = 10,
) -> CaptureResult:
    """Instrument ``target`` for ``duration`` seconds and collect its run data.

    ``device`` is either a frida device or one of ``usb``, ``local`` or
    ``remote``.  With ``spawn`` the target is treated as a package name and
    started suspended; otherwise it is attached by pid or process name.
    """

    if isinstance(device, str):
        device = _get_device(device, timeout)

    controller = DexcaliburnController(output_dir, hooks)
    metadata: Dict[str, Any] = {"target": target, "timestamp": time.time()}

    pid: Optional[int] = None
    try:
        if spawn:
            pid = device.spawn([target])
            session = device.attach(pid)
            metadata["spawned_pid"] = pid
        else:
            try:
                session = device.attach(int(target))
            except ValueError:
                session = device.attach(target)
    except frida.InvalidArgumentError as exc:
        raise ControllerError(f"cannot attach to {target}: {exc}") from exc
    except frida.ProcessNotFoundError as exc:
        raise ControllerError(f"process {target} not found") from exc

    script = session.create_script(script_source)
    controller.bind(script)
    script.load()
    if pid is not None:
        device.resume(pid)

    try:
        if not controller.wait_for_setup(timeout):
            LOGGER.warning("Agent never announced itself; hooks were not sent")
        time.sleep(duration)
        try:
            controller.request_rundata(timeout)
        except ControllerError as exc:
            LOGGER.error("%s", exc)
            metadata["rundata_error"] = str(exc)
    finally:
        session.detach()

    manifest = controller.write_run_data()
    metadata["manifest"] = manifest.as_posix()
    if controller.errors:
        metadata["errors"] = controller.errors
    return CaptureResult(target, list(controller.dumps), controller.run_data, metadata)


__all__ = [
    "CaptureResult",
    "DexcaliburnController",
    "load_hooks",
    "capture_with_frida",
]
