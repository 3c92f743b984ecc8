"""
lungctx plugins package.

Region plugins implement the pluggy hooks declared in :mod:`.hookspecs`;
the context hierarchy decides which regions they are run for.
"""

from .analysis import *
from .base import RegionPlugin, hookimpl
from .hookspecs import hookspec
from .plugin_manager import (
    find_plugin,
    get_global_plugin_manager,
    get_plugin_manager,
    list_plugin_names,
)

__all__ = [
    "RegionPlugin",
    "DensityThreshold",
    "OriginalImage",
    "OtsuLungSegmentation",
    "RegionVolume",
    "ORIGINAL_IMAGE_PLUGIN",
    "builtin_plugins",
    "hookimpl",
    "hookspec",
    "find_plugin",
    "get_plugin_manager",
    "get_global_plugin_manager",
    "list_plugin_names",
]
