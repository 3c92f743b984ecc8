"""
Plugin manager for lungctx region plugins.

Creates pluggy plugin managers with the region plugin hook specifications and
finds registered plugins by name.
"""

from __future__ import annotations

from typing import List

import pluggy

from ..exceptions import UnknownPluginError
from . import hookspecs


def get_plugin_manager() -> pluggy.PluginManager:
    """
    Create a plugin manager configured with the region plugin hooks.

    Returns:
        New PluginManager instance
    """
    pm = pluggy.PluginManager("lungctx")
    pm.add_hookspecs(hookspecs)
    return pm


_plugin_manager = None


def get_global_plugin_manager() -> pluggy.PluginManager:
    """
    Return the process-wide plugin manager, creating it on first use.
    """
    global _plugin_manager
    if _plugin_manager is None:
        _plugin_manager = get_plugin_manager()
    return _plugin_manager


def list_plugin_names(pm: pluggy.PluginManager) -> List[str]:
    """Names reported by all registered plugins, in pluggy call order."""
    return list(pm.hook.region_plugin_name())


def find_plugin(pm: pluggy.PluginManager, name: str):
    """
    Return the registered plugin with the given name.

    Raises:
        UnknownPluginError: If no registered plugin has that name
    """
    for plugin in pm.get_plugins():
        if plugin.region_plugin_name() == name:
            return plugin
    raise UnknownPluginError(name, list_plugin_names(pm))
