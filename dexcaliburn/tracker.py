"""Record reflective method invocations and the call sites behind them."""

from __future__ import annotations

import logging
from typing import Any, Optional, Tuple

from .capabilities import Instrumentation, Invocation
from .exceptions import ClassNotFoundError, HookUnavailableError
from .model import CallLocation, MethodSignature, classify_source, format_prototype
from .report import RegistrationOutcome
from .xrefs import XrefTable

LOGGER = logging.getLogger(__name__)

INVOKE_TYPE = "java.lang.reflect.Method"
INVOKE_METHOD = "invoke"
INVOKE_SIGNATURE: Tuple[str, ...] = ("java.lang.Object", "[Ljava.lang.Object;")

# caller -> Method.invoke -> Thread.getStackTrace -> VMStack.getThreadStackTrace
CALLER_FRAME_DEPTH = 3

__all__ = [
    "INVOKE_TYPE",
    "INVOKE_SIGNATURE",
    "CALLER_FRAME_DEPTH",
    "ReflectiveInvocationTracker",
]


class ReflectiveInvocationTracker:
    """Hooks ``Method.invoke`` and folds each call into an :class:`XrefTable`.

    ``caller_depth`` is the index of the calling frame in the captured
    stack.  It depends on how the host builds that stack and should be checked
    against the target runtime.
    """

    def __init__(
        self,
        instrumentation: Instrumentation,
        xrefs: XrefTable,
        *,
        caller_depth: int = CALLER_FRAME_DEPTH,
    ) -> None:
        self.instrumentation = instrumentation
        self.xrefs = xrefs
        self.caller_depth = caller_depth

    def install(self) -> RegistrationOutcome:
        label = "Method.invoke(Object obj, Object[] args)"
        try:
            self.instrumentation.hook_method(
                INVOKE_TYPE,
                INVOKE_METHOD,
                self._on_invoke,
                overload=INVOKE_SIGNATURE,
            )
        except (HookUnavailableError, ClassNotFoundError) as exc:
            LOGGER.warning("Unable to override %s: %s", label, exc)
            return RegistrationOutcome.skip(label, exc)
        return RegistrationOutcome.ok(label)

    def describe(self, method_handle: Any) -> MethodSignature:
        info = self.instrumentation.method_info(method_handle)
        return MethodSignature(
            info.declaring_type,
            info.name,
            format_prototype(info.return_type, info.parameter_types),
        )

    def caller_location(self) -> Optional[CallLocation]:
        stack = self.instrumentation.current_call_stack()
        if len(stack) <= self.caller_depth:
            LOGGER.debug("Call stack too shallow (%d frames) to locate the caller", len(stack))
            return None
        frame = stack[self.caller_depth]
        return CallLocation(frame.method_name, frame.line_number, classify_source(frame.file_name))

    def observe(self, method_handle: Any) -> Optional[int]:
        """Record one invocation of ``method_handle``; return the updated count."""

        method = self.describe(method_handle)
        LOGGER.debug("Invoked : %s.%s", method.declaring_type, method.method_name)
        location = self.caller_location()
        if location is None:
            return None
        return self.xrefs.record(method, location)

    def _on_invoke(self, invocation: Invocation) -> Any:
        try:
            self.observe(invocation.receiver)
        except Exception:  # the reflective call must proceed regardless
            LOGGER.exception("Failed to record reflective invocation")
        return invocation.proceed()
