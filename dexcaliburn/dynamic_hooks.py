"""Install logging hooks on configured methods as their classes load."""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Tuple

from .capabilities import Handler, Instrumentation, Invocation
from .exceptions import ClassNotFoundError, HookUnavailableError
from .model import HookConfig
from .report import RegistrationOutcome

LOGGER = logging.getLogger(__name__)

LOADER_TYPES: Tuple[str, ...] = (
    "dalvik.system.InMemoryDexClassLoader",
    "dalvik.system.DexClassLoader",
    "dalvik.system.PathClassLoader",
    "dalvik.system.DelegateLastClassLoader",
)
LOAD_CLASS_SIGNATURE: Tuple[str, ...] = ("java.lang.String",)

__all__ = ["LOADER_TYPES", "DynamicHookInstaller", "make_logging_handler"]


def make_logging_handler(class_name: str, method_name: str) -> Handler:
    def handler(invocation: Invocation) -> Any:
        LOGGER.info(
            "Called : %s.%s(%s)",
            class_name,
            method_name,
            ", ".join(invocation.argument_types),
        )
        LOGGER.info("Args : %r", invocation.args)
        return invocation.proceed()

    return handler


class DynamicHookInstaller:
    """Hooks ``loadClass`` on the dex loaders and reacts to configured classes."""

    def __init__(
        self,
        instrumentation: Instrumentation,
        config: HookConfig,
        loader_types: Iterable[str] = LOADER_TYPES,
    ) -> None:
        self.instrumentation = instrumentation
        self.config = config
        self.loader_types = tuple(loader_types)

    def install(self) -> List[RegistrationOutcome]:
        outcomes: List[RegistrationOutcome] = []
        for type_name in self.loader_types:
            label = f"{type_name}.loadClass(String className)"
            try:
                self.instrumentation.hook_method(
                    type_name,
                    "loadClass",
                    self._on_load_class,
                    overload=LOAD_CLASS_SIGNATURE,
                )
            except (HookUnavailableError, ClassNotFoundError) as exc:
                LOGGER.debug("Unable to override %s: %s", label, exc)
                outcomes.append(RegistrationOutcome.skip(label, exc))
                continue
            outcomes.append(RegistrationOutcome.ok(label))
        return outcomes

    def _on_load_class(self, invocation: Invocation) -> Any:
        result = invocation.proceed()
        class_name = invocation.args[0] if invocation.args else None
        if isinstance(class_name, str) and class_name in self.config:
            try:
                self.hook_class(class_name)
            except Exception:  # the loaded class is still returned
                LOGGER.exception("Dynamic hooking of %s failed", class_name)
        return result

    def hook_class(self, class_name: str) -> int:
        """Hook the configured methods of ``class_name`` in every loading context.

        Returns the number of methods hooked.  Contexts that cannot see the
        class or lack a method are skipped.
        """

        hooked = 0
        for context in self.instrumentation.enumerate_loading_contexts():
            try:
                self.instrumentation.resolve_type(class_name, context)
            except ClassNotFoundError:
                LOGGER.debug("%s not visible from %r", class_name, context)
                continue
            for method_name in sorted(self.config[class_name]):
                try:
                    self.instrumentation.hook_method(
                        class_name,
                        method_name,
                        make_logging_handler(class_name, method_name),
                        context=context,
                    )
                except (HookUnavailableError, ClassNotFoundError) as exc:
                    LOGGER.debug("Cannot hook %s.%s in %r: %s", class_name, method_name, context, exc)
                    continue
                hooked += 1
        if hooked:
            LOGGER.info("Hooked %d method(s) of %s", hooked, class_name)
        return hooked
