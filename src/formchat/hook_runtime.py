"""Notification dispatch with per-plugin fault isolation."""

from __future__ import annotations

import inspect
from typing import Any

import pluggy
from loguru import logger

from formchat.hookspecs import FORMCHAT_HOOK_NAMESPACE, FormChatHookSpecs


class Notifier:
    """Safe wrapper around pluggy hook execution for session notifications."""

    def __init__(self, plugin_manager: pluggy.PluginManager | None = None) -> None:
        if plugin_manager is None:
            plugin_manager = pluggy.PluginManager(FORMCHAT_HOOK_NAMESPACE)
            plugin_manager.add_hookspecs(FormChatHookSpecs)
        self._plugin_manager = plugin_manager

    def register(self, plugin: object, *, name: str | None = None) -> None:
        self._plugin_manager.register(plugin, name=name)

    async def notify(self, hook_name: str, **kwargs: Any) -> None:
        """Run all implementations; a failing plugin never breaks the caller."""

        for impl in self._iter_hookimpls(hook_name):
            call_kwargs = self._kwargs_for_impl(impl, kwargs)
            try:
                value = impl.function(**call_kwargs)
                if inspect.isawaitable(value):
                    await value
            except Exception as error:
                await self._notify_error(stage=f"{hook_name}:{impl.plugin_name or '<unknown>'}", error=error)

    def hook_report(self) -> dict[str, list[str]]:
        """Build a hook->plugins mapping for diagnostics."""

        report: dict[str, list[str]] = {}
        for hook_name, hook_caller in sorted(self._plugin_manager.hook.__dict__.items()):
            if hook_name.startswith("_") or not hasattr(hook_caller, "get_hookimpls"):
                continue
            plugin_names = [impl.plugin_name for impl in hook_caller.get_hookimpls()]
            if plugin_names:
                report[hook_name] = plugin_names
        return report

    async def _notify_error(self, *, stage: str, error: Exception) -> None:
        logger.opt(exception=error).warning("hook.failed stage={}", stage)
        for impl in self._iter_hookimpls("on_error"):
            call_kwargs = self._kwargs_for_impl(impl, {"stage": stage, "error": error})
            try:
                value = impl.function(**call_kwargs)
                if inspect.isawaitable(value):
                    await value
            except Exception:
                logger.opt(exception=True).warning(
                    "hook.on_error_failed stage={} plugin={}",
                    stage,
                    impl.plugin_name or "<unknown>",
                )

    def _iter_hookimpls(self, hook_name: str) -> list[Any]:
        hook = getattr(self._plugin_manager.hook, hook_name, None)
        if hook is None or not hasattr(hook, "get_hookimpls"):
            return []
        return list(reversed(hook.get_hookimpls()))

    @staticmethod
    def _kwargs_for_impl(impl: Any, kwargs: dict[str, Any]) -> dict[str, Any]:
        return {name: kwargs[name] for name in impl.argnames if name in kwargs}
