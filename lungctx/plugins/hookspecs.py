"""
Hook specifications for lungctx region plugins.

Region plugins implement these hooks with the pluggy framework. The context
hierarchy decides for which regions ``run_plugin`` is called, so a plugin
only ever has to handle regions of the set it declares.
"""

from __future__ import annotations

from typing import Any, Hashable, Optional

import pluggy

hookspec = pluggy.HookspecMarker("lungctx")


@hookspec
def region_plugin_name() -> str:
    """
    Return the unique name results of the plugin are requested by.

    Returns:
        String name of the plugin
    """


@hookspec
def region_plugin_description() -> str:
    """
    Return a short human-readable description of the plugin.

    Returns:
        String description
    """


@hookspec
def region_plugin_context_set() -> Optional[Hashable]:
    """
    Return the region set the plugin computes results for.

    Returns:
        A RegionSetId, or None for the default lung ROI set
    """


@hookspec
def run_plugin(dataset: Any, region: Hashable) -> Any:
    """
    Compute the plugin result for one region.

    Args:
        dataset: DatasetResults giving access to images, templates and
            results of other plugins
        region: The region to compute the result for. It always belongs to
            the plugin's region set, unless that set is ``Any``.

    Returns:
        A RegionImage, or any other value which is passed through unchanged
    """


@hookspec
def generate_image_from_results(results: Any, template_callback: Any) -> Any:
    """
    Build an output (preview) image from a plugin result.

    Args:
        results: The plugin result. Image results are a private copy.
        template_callback: Callable returning the template image of a region

    Returns:
        A RegionImage, or None if the result has no image representation
    """
