"""Resolution of plugin results across the region hierarchy.

Each plugin declares the region set its results are computed for. A result
may however be requested for any region:

* When the requested region belongs to the plugin's set, or the plugin
  accepts ``Any`` set, the plugin is run directly for that region.
* When the plugin's set is coarser than the requested region's set (a
  ``Lungs`` plugin asked for the left upper lobe), the result is obtained for
  the parent region and cropped to the requested region. This recurses, so
  the lobe result above comes from one run at ``Lungs`` reduced first to the
  left lung and then to the lobe.
* When the plugin's set is finer (a ``SingleLung`` plugin asked for
  ``Lungs``), the plugin is resolved for every child region and the results
  are combined into a :class:`~lungctx.results.CompositeResult`.

Anything else means the plugin and the request live in unrelated parts of
the hierarchy and is reported as an error before any plugin is run.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Hashable, List

from attrs import field, frozen

from .cache import CallStack
from .enums import RegionId, RegionSetId, ResultKind
from .exceptions import (
    MissingAncestorError,
    UnknownRegionError,
    UnknownRequestedRegionError,
    UnrelatedRegionSetsError,
)
from .logging import get_logger
from .results import (
    CompositeResult,
    PluginResult,
    classify_result,
    composite_results,
    reduce_result_to_region,
)
from .templates import TemplateCallback

logger = get_logger(__name__)

# Region returned when the caller does not name one
DEFAULT_REGION = RegionId.LUNG_ROI

# Region set assumed for plugins that do not declare one
DEFAULT_PLUGIN_REGION_SET = RegionSetId.LUNG_ROI


@frozen
class ResolutionRequest:
    """Everything needed to resolve one plugin, shared by all recursive steps.

    Attributes:
        plugin: The RegionPlugin being resolved
        dataset: Dataset the plugin runs on
        dataset_results: Passed to the plugin so it can request other results
        call_stack: Chain of plugin runs this request belongs to
        force_generate_image: Generate an output image even if the plugin
            does not ask for a preview
        allow_results_to_be_cached: Allow cached results to be used and stored
    """

    plugin: Any
    dataset: Any
    dataset_results: Any = None
    call_stack: CallStack = field(factory=CallStack)
    force_generate_image: bool = False
    allow_results_to_be_cached: bool = True


class ContextHierarchy:
    """Resolves plugin results for any region of a registry.

    Args:
        dependency_tracker: Runs plugins and caches their results
        image_templates: Provides region templates used for cropping and
            composition
        registry: Region registry; defaults to the one used by
            ``image_templates``
    """

    def __init__(self, dependency_tracker, image_templates, registry=None):
        self.dependency_tracker = dependency_tracker
        self.image_templates = image_templates
        self.registry = registry if registry is not None else image_templates.registry

    def get_result(self, request: ResolutionRequest, requested=None) -> PluginResult:
        """Resolve a plugin for a region, a region set, or a collection of them.

        Args:
            request: Plugin, dataset and options of this resolution
            requested: Region id, region set id, their string names, or an
                iterable of those. Defaults to the lung ROI.

        Returns:
            PluginResult for a single region. For several regions the result
            is a CompositeResult keyed by region, the cache info a dict of the
            same shape, and no output image is produced.

        Raises:
            UnknownRequestedRegionError: If a requested value is not a region
                or region set
            MissingAncestorError: If a result must be cropped from a parent
                region that does not exist
            UnrelatedRegionSetsError: If the plugin's set cannot be related to
                the requested region's set
        """
        regions = self.expand_requested_regions(requested)

        if len(regions) == 1:
            return self._get_result_recursive(request, regions[0])

        result = CompositeResult()
        cache_info = {}
        plugin_has_been_run = False
        for region_id in regions:
            outcome = self._get_result_recursive(request, region_id)
            result[region_id] = outcome.result
            cache_info[region_id] = outcome.cache_info
            plugin_has_been_run = plugin_has_been_run or outcome.plugin_has_been_run
        return PluginResult(result, None, plugin_has_been_run, cache_info)

    def expand_requested_regions(self, requested=None) -> List[Hashable]:
        """Flatten a request into concrete regions, expanding region sets in registry order."""
        if requested is None:
            requested = DEFAULT_REGION

        if isinstance(requested, Iterable) and not isinstance(requested, str):
            values = list(requested)
        else:
            values = [requested]

        regions: List[Hashable] = []
        for value in values:
            try:
                identifier = self.registry.resolve_identifier(value)
            except UnknownRegionError:
                logger.debug("Requested output %r is not a region or region set", value)
                raise UnknownRequestedRegionError(value) from None
            if self.registry.has_region(identifier):
                regions.append(identifier)
            else:
                regions.extend(r.id for r in self.registry.regions_in_set(identifier))

        if not regions:
            raise UnknownRequestedRegionError(requested)
        return regions

    def plugin_region_set(self, plugin) -> Hashable:
        """Region set a plugin computes its results for."""
        region_set = plugin.region_plugin_context_set()
        return DEFAULT_PLUGIN_REGION_SET if region_set is None else region_set

    def _get_result_recursive(self, request: ResolutionRequest, region_id: Hashable) -> PluginResult:
        plugin_name = request.plugin.name
        self.image_templates.note_attempt_to_run_plugin(plugin_name, region_id, request.dataset)

        outcome = self._get_result_for_region(request, region_id)

        # Lets the template cache derive a template from this result if required
        self.image_templates.update_templates(
            plugin_name,
            region_id,
            request.dataset,
            outcome.result,
            outcome.plugin_has_been_run,
        )
        return outcome

    def _get_result_for_region(self, request: ResolutionRequest, region_id: Hashable) -> PluginResult:
        plugin_set = self.plugin_region_set(request.plugin)
        region = self.registry.region(region_id)
        output_set = region.region_set

        if plugin_set == output_set or plugin_set == RegionSetId.ANY:
            return self._run_plugin(request, region_id)

        # Plugin works on a coarser region: compute there and crop
        if self.registry.is_higher(plugin_set, output_set):
            parent = self.registry.parent_region(region_id)
            if parent is None:
                logger.debug("%s: %s has no parent region", request.plugin.name, region_id)
                raise MissingAncestorError(region_id, plugin_set)
            logger.debug(
                "%s: reducing result for %s from %s",
                request.plugin.name,
                region_id,
                parent.id,
            )
            higher = self._get_result_recursive(request, parent.id)
            template = self.image_templates.get_template_image(
                region_id, request.dataset, request.call_stack
            )
            output_image = higher.output_image
            if output_image is not None:
                output_image = reduce_result_to_region(output_image, template)
            return PluginResult(
                reduce_result_to_region(higher.result, template),
                output_image,
                higher.plugin_has_been_run,
                higher.cache_info,
            )

        # Plugin works on finer regions: run for each child and combine
        if self.registry.is_higher(output_set, plugin_set):
            logger.debug(
                "%s: composing result for %s from %s",
                request.plugin.name,
                region_id,
                [str(c) for c in region.children],
            )
            return composite_results(
                region.children,
                lambda child: self._get_result_recursive(request, child),
                lambda child: self.image_templates.get_template_image(
                    child, request.dataset, request.call_stack
                ),
                self.image_templates.get_template_image(
                    region_id, request.dataset, request.call_stack
                ),
            )

        logger.debug(
            "%s: region sets %s and %s are unrelated", request.plugin.name, plugin_set, output_set
        )
        raise UnrelatedRegionSetsError(plugin_set, output_set)

    def _run_plugin(self, request: ResolutionRequest, region_id: Hashable) -> PluginResult:
        plugin = request.plugin
        result, plugin_has_been_run, cache_info = self.dependency_tracker.get_result(
            plugin,
            region_id,
            request.dataset,
            request.dataset_results,
            request.call_stack,
            request.allow_results_to_be_cached,
        )

        # A fresh run of a previewing plugin needs a new preview image
        generate_image = request.force_generate_image or (
            plugin.generate_preview and plugin_has_been_run
        )

        output_image = None
        if generate_image:
            callback = TemplateCallback(self.image_templates, request.dataset, request.call_stack)
            source = result
            if classify_result(result) is ResultKind.IMAGE:
                source = result.duplicate()
            output_image = plugin.generate_image_from_results(
                results=source, template_callback=callback
            )

        return PluginResult(result, output_image, plugin_has_been_run, cache_info)
