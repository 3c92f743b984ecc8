"""Plugin result values, reduction to sub-regions and composition of children.

A plugin result is one of three kinds (see :class:`lungctx.enums.ResultKind`):
an opaque value that is passed around untouched, a :class:`RegionImage`
that can be cropped and pasted, or a :class:`CompositeResult` gathering
per-region results.
"""

from __future__ import annotations

from typing import Any, Callable, Hashable, Iterable, Optional

from attrs import frozen

from .enums import ResultKind
from .image import RegionImage
from .logging import get_logger

logger = get_logger(__name__)


class CompositeResult(dict):
    """Results of one plugin keyed by region identifier.

    Produced when a plugin has to be run separately for each child of the
    requested region, or when several regions are requested at once.
    """

    def __repr__(self) -> str:
        items = ", ".join(f"{key}: {value!r}" for key, value in self.items())
        return f"CompositeResult({{{items}}})"


@frozen
class PluginResult:
    """Outcome of resolving a plugin for a region.

    Unpacks like the tuple ``(result, output_image, plugin_has_been_run, cache_info)``.

    Attributes:
        result: The plugin result at the requested region
        output_image: Image generated from the result, or None
        plugin_has_been_run: True if any plugin execution happened rather
            than every value coming from the cache
        cache_info: CacheInfo of the underlying run, or a dict of them
            shaped like a CompositeResult
    """

    result: Any
    output_image: Optional[RegionImage] = None
    plugin_has_been_run: bool = False
    cache_info: Any = None

    def __iter__(self):
        return iter(
            (self.result, self.output_image, self.plugin_has_been_run, self.cache_info)
        )


def classify_result(result: Any) -> ResultKind:
    """Return the kind of a plugin result."""
    if isinstance(result, RegionImage):
        return ResultKind.IMAGE
    if isinstance(result, CompositeResult):
        return ResultKind.COMPOSITE
    return ResultKind.OPAQUE


def reduce_result_to_region(result: Any, template: RegionImage) -> Any:
    """Crop a result computed over a broader region down to ``template``.

    Opaque and composite results are returned unchanged. Images are
    duplicated, re-framed to the template's bounding box and, when the
    template is known, blanked outside the template mask. The input is never
    modified.

    Args:
        result: Result computed for an enclosing region
        template: Template image of the target region

    Returns:
        The reduced result
    """
    if classify_result(result) is not ResultKind.IMAGE:
        return result

    reduced = result.duplicate()
    reduced.resize_to_match(template)
    if template.image_exists:
        reduced.clear()
        reduced.change_sub_image_with_mask(result, template, use_mask_as_template=True)
    return reduced


def composite_results(
    children: Iterable[Hashable],
    resolve_child: Callable[[Hashable], PluginResult],
    get_template: Callable[[Hashable], RegionImage],
    parent_template: RegionImage,
) -> PluginResult:
    """Resolve a plugin for every child region and combine the outcomes.

    The output image, if any child produced one, starts as a blank image in
    the parent template's frame. Each child's output image is painted into it
    through that child's template, so children must have disjoint templates.

    Args:
        children: Child region identifiers in declaration order
        resolve_child: Resolves the plugin for one child region
        get_template: Returns the template image of a child region
        parent_template: Template of the region being composed

    Returns:
        PluginResult with a CompositeResult and a matching cache-info dict
    """
    result = CompositeResult()
    cache_info = {}
    plugin_has_been_run = False
    output_image = None

    for child in children:
        child_outcome = resolve_child(child)
        child_image = child_outcome.output_image
        if classify_result(child_image) is not ResultKind.IMAGE:
            child_image = None

        # Seeded from the first child with an image, not only the first child
        if output_image is None and child_image is not None:
            output_image = child_image.duplicate()
            output_image.resize_to_match(parent_template)
            output_image.clear()

        result[child] = child_outcome.result
        if output_image is not None and child_image is not None:
            output_image.change_sub_image_with_mask(child_image, get_template(child))
        cache_info[child] = child_outcome.cache_info
        plugin_has_been_run = plugin_has_been_run or child_outcome.plugin_has_been_run

    logger.debug("Composed results for regions %s", [str(c) for c in result])
    return PluginResult(result, output_image, plugin_has_been_run, cache_info)
