"""Lifecycle hooks for extending a run.

Extensions register callbacks for ``before_run``, ``after_run``,
``before_loop`` and ``after_loop``. A broken callback is logged and skipped;
it never aborts the run.

Usage:
    hooks = HookRegistry()

    @hooks.on(HookName.AFTER_LOOP)
    def notify(ctx: HookContext) -> None:
        print(ctx.loop, ctx.status)

Installed packages can contribute hooks through the ``codchestra.plugins``
entry-point group. Each entry point is a callable receiving the registry:

    [project.entry-points."codchestra.plugins"]
    slack = "codchestra_slack:register"
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from importlib.metadata import entry_points
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from codchestra.loop.state import ParsedStatus

PLUGIN_ENTRY_POINT_GROUP = "codchestra.plugins"


class HookName(Enum):
    """Points in the run where hooks are invoked."""

    BEFORE_RUN = "before_run"
    AFTER_RUN = "after_run"
    BEFORE_LOOP = "before_loop"
    AFTER_LOOP = "after_loop"


@dataclass
class HookContext:
    """Context passed to hook callbacks.

    ``loop`` is 0 for run-level hooks. ``output`` and ``status`` are set for
    ``after_loop``; ``result`` (a LoopResult) for ``after_run``.
    """

    workspace: Path
    loop: int = 0
    output: str | None = None
    status: ParsedStatus | None = None
    result: Any = None


Hook = Callable[[HookContext], None]


class HookRegistry:
    """Holds registered hook callbacks and invokes them in order."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger(__name__)
        self._hooks: dict[HookName, list[Hook]] = {name: [] for name in HookName}

    def register(self, name: HookName | str, fn: Hook) -> Hook:
        """Register a callback for a hook point."""
        self._hooks[HookName(name)].append(fn)
        return fn

    def on(self, name: HookName | str) -> Callable[[Hook], Hook]:
        """Decorator form of register()."""

        def decorator(fn: Hook) -> Hook:
            return self.register(name, fn)

        return decorator

    def get_hooks(self, name: HookName | str) -> list[Hook]:
        return list(self._hooks[HookName(name)])

    def invoke(self, name: HookName | str, context: HookContext) -> None:
        """Call every callback for the hook point, isolating failures."""
        hook_name = HookName(name)
        for fn in self._hooks[hook_name]:
            try:
                fn(context)
            except Exception:
                self.logger.exception(
                    "Hook %s failed in %s", getattr(fn, "__name__", repr(fn)), hook_name.value
                )

    @classmethod
    def from_entry_points(
        cls,
        logger: logging.Logger | None = None,
        group: str = PLUGIN_ENTRY_POINT_GROUP,
    ) -> HookRegistry:
        """Build a registry populated by installed plugins.

        Plugins that fail to load or register are logged and skipped.
        """
        registry = cls(logger=logger)
        for entry_point in entry_points(group=group):
            try:
                register = entry_point.load()
                register(registry)
                registry.logger.debug("Loaded plugin %s", entry_point.name)
            except Exception as e:
                registry.logger.warning("Skipping plugin %s: %s", entry_point.name, e)
        return registry
