"""
Base class for region plugins.

This module defines the interface region plugins implement with the pluggy
framework, together with defaults for the optional hooks.
"""

from __future__ import annotations

from typing import Any, Hashable, Optional

import pluggy

from ..image import RegionImage

hookimpl = pluggy.HookimplMarker("lungctx")


class RegionPlugin:
    """
    Base class for plugins computing results for one region set.

    Subclasses implement :meth:`run_plugin` and :meth:`region_plugin_name`,
    and set the class attributes below as needed. Overriding methods must be
    decorated with ``@hookimpl`` to be visible to pluggy.

    Attributes:
        context_set: RegionSetId the plugin computes results for. None means
            the lung ROI.
        generate_preview: Generate an output image whenever the plugin runs
        allow_results_to_be_cached: Whether results may be memoized
        version: Bump to invalidate previously cached results
    """

    context_set: Optional[Hashable] = None
    generate_preview: bool = True
    allow_results_to_be_cached: bool = True
    version: int = 1

    def __init__(self, **kwargs):
        """
        Initialize the plugin.

        Args:
            **kwargs: Plugin-specific parameters
        """
        self.params = kwargs

    @hookimpl
    def region_plugin_name(self) -> str:
        """
        Return the name of the plugin.

        Raises:
            NotImplementedError: If the method is not implemented by the subclass
        """
        raise NotImplementedError(
            f"{self.__class__.__name__} must implement region_plugin_name method"
        )

    @hookimpl
    def region_plugin_description(self) -> str:
        """Return the first line of the class docstring."""
        doc = (self.__class__.__doc__ or "").strip()
        return doc.splitlines()[0] if doc else ""

    @hookimpl
    def region_plugin_context_set(self) -> Optional[Hashable]:
        return self.context_set

    @hookimpl
    def run_plugin(self, dataset: Any, region: Hashable) -> Any:
        """
        Compute the result for one region.

        Raises:
            NotImplementedError: If the method is not implemented by the subclass
        """
        raise NotImplementedError(
            f"{self.__class__.__name__} must implement run_plugin method"
        )

    @hookimpl
    def generate_image_from_results(self, results: Any, template_callback: Any) -> Any:
        """Image results are their own output image; other results have none."""
        if isinstance(results, RegionImage):
            return results
        return None

    @property
    def name(self) -> str:
        return self.region_plugin_name()

    @property
    def description(self) -> str:
        return self.region_plugin_description()

    def __repr__(self) -> str:
        """Return string representation of the plugin."""
        return f"{self.__class__.__name__}({', '.join(f'{k}={v}' for k, v in self.params.items())})"
