"""Entry points for requesting plugin results.

:class:`ContextSession` wires the region registry, template cache, result
cache, plugin manager and context hierarchy together. :class:`DatasetResults`
binds a session to one dataset; it is what callers use to request results
and what plugins receive to request the results they depend on.

Example:
    >>> session = ContextSession()
    >>> results = session.open(dataset)
    >>> volumes = results.get_result("Region Volume", RegionSetId.LOBE)
    >>> mask = results.get_result("Otsu Lung Segmentation", RegionId.LUNGS)
"""

from __future__ import annotations

from typing import Any, Dict, Hashable, List, Optional

from .cache import CallStack, DependencyTracker
from .hierarchy import ContextHierarchy, ResolutionRequest
from .image import RegionImage
from .logging import get_logger
from .plugins import (
    ORIGINAL_IMAGE_PLUGIN,
    builtin_plugins,
    find_plugin,
    get_plugin_manager,
    list_plugin_names,
)
from .registry import RegionRegistry, build_lung_registry
from .results import PluginResult
from .templates import ImageTemplates

logger = get_logger(__name__)


class ContextSession:
    """Resolves named plugins for datasets.

    Args:
        plugin_manager: pluggy PluginManager holding the plugins. A new one is
            created if omitted.
        registry: Region registry, the standard lung hierarchy by default
        template_plugins: Mapping from region set to the name of a plugin
            whose image result serves as template for that set's regions
        register_builtin_plugins: Register the built-in analysis plugins
    """

    def __init__(
        self,
        plugin_manager=None,
        registry: Optional[RegionRegistry] = None,
        template_plugins: Optional[Dict[Hashable, str]] = None,
        register_builtin_plugins: bool = True,
    ):
        self.registry = registry if registry is not None else build_lung_registry()
        self.plugin_manager = (
            plugin_manager if plugin_manager is not None else get_plugin_manager()
        )
        if register_builtin_plugins:
            registered = set(list_plugin_names(self.plugin_manager))
            for plugin in builtin_plugins():
                if plugin.name not in registered:
                    self.plugin_manager.register(plugin)

        self.image_templates = ImageTemplates(self.registry, template_plugins)
        self.image_templates.result_source = self._run_template_plugin
        self.dependency_tracker = DependencyTracker()
        self.hierarchy = ContextHierarchy(
            self.dependency_tracker, self.image_templates, self.registry
        )

    def register_plugin(self, plugin):
        """Register a plugin and return it.

        Raises:
            ValueError: If a plugin with the same name is already registered
        """
        if plugin.name in list_plugin_names(self.plugin_manager):
            raise ValueError(f"A plugin named {plugin.name!r} is already registered")
        self.plugin_manager.register(plugin)
        return plugin

    def get_plugin(self, name: str):
        return find_plugin(self.plugin_manager, name)

    def plugin_names(self) -> List[str]:
        return list_plugin_names(self.plugin_manager)

    def open(self, dataset) -> "DatasetResults":
        """Return a DatasetResults for requesting results of ``dataset``."""
        return DatasetResults(self, dataset)

    def get_result(
        self,
        plugin_name: str,
        dataset,
        region=None,
        force_generate_image: bool = False,
        allow_results_to_be_cached: bool = True,
        call_stack: Optional[CallStack] = None,
    ) -> PluginResult:
        """Resolve a plugin for a region, region set or collection of them.

        Args:
            plugin_name: Name of a registered plugin
            dataset: Dataset to compute on
            region: Requested region(s); the lung ROI if omitted
            force_generate_image: Also produce an output image
            allow_results_to_be_cached: Allow cached results to be used and stored
            call_stack: Call chain to join, when called from a running plugin

        Returns:
            PluginResult

        Raises:
            UnknownPluginError: If no plugin has that name
        """
        plugin = self.get_plugin(plugin_name)
        if call_stack is None:
            call_stack = CallStack()
        request = ResolutionRequest(
            plugin=plugin,
            dataset=dataset,
            dataset_results=DatasetResults(self, dataset, call_stack),
            call_stack=call_stack,
            force_generate_image=force_generate_image,
            allow_results_to_be_cached=allow_results_to_be_cached,
        )
        logger.debug("Requested %s for %s on %s", plugin_name, region, dataset.uid)
        return self.hierarchy.get_result(request, region)

    def _run_template_plugin(
        self, plugin_name: str, region_id: Hashable, dataset, call_stack: Optional[CallStack] = None
    ) -> None:
        self.get_result(plugin_name, dataset, region_id, call_stack=call_stack)

    def clear_cache(self, dataset_uid: Optional[str] = None) -> None:
        """Forget cached results and templates, for one dataset or all."""
        self.dependency_tracker.clear(dataset_uid)
        self.image_templates.invalidate(dataset_uid)


class DatasetResults:
    """Results, images and templates of one dataset.

    Instances handed to running plugins share the call chain of the request
    that started the plugin, so nested requests are recorded as dependencies
    and recursive requests are detected.
    """

    def __init__(self, session: ContextSession, dataset, call_stack: Optional[CallStack] = None):
        self.session = session
        self.dataset = dataset
        self._call_stack = call_stack

    @property
    def uid(self) -> str:
        return self.dataset.uid

    @property
    def original_image(self) -> RegionImage:
        return self.dataset.image

    def get_plugin_result(
        self,
        plugin_name: str,
        region=None,
        force_generate_image: bool = False,
        allow_results_to_be_cached: bool = True,
    ) -> PluginResult:
        """Full PluginResult including output image, run flag and cache info."""
        return self.session.get_result(
            plugin_name,
            self.dataset,
            region,
            force_generate_image=force_generate_image,
            allow_results_to_be_cached=allow_results_to_be_cached,
            call_stack=self._call_stack,
        )

    def get_result(self, plugin_name: str, region=None, allow_results_to_be_cached: bool = True) -> Any:
        """Plugin result for the requested region(s)."""
        return self.get_plugin_result(
            plugin_name, region, allow_results_to_be_cached=allow_results_to_be_cached
        ).result

    def get_result_with_cache_info(self, plugin_name: str, region=None):
        """Tuple of (result, cache_info)."""
        outcome = self.get_plugin_result(plugin_name, region)
        return outcome.result, outcome.cache_info

    def get_image(self, region=None) -> RegionImage:
        """The original image cropped to a region."""
        return self.get_result(ORIGINAL_IMAGE_PLUGIN, region)

    def get_template_image(self, region) -> RegionImage:
        region_id = self.session.registry.resolve_identifier(region)
        return self.session.image_templates.get_template_image(
            region_id, self.dataset, self._call_stack
        )

    def __repr__(self) -> str:
        return f"DatasetResults(uid={self.uid!r})"
