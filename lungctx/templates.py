"""Template images for regions.

A template is a region-shaped uint8 mask positioned in the dataset frame.
Its bounding box defines the frame results are cropped to, and its non-zero
voxels define which voxels belong to the region.

Templates come from two places:

* the region's template factory, which derives it from the dataset's label
  map, and
* a *template plugin* designated for the region's set, whose image result is
  turned into a template the first time it is computed. This is how a region
  can get a template when the dataset carries no labels for it.
"""

from __future__ import annotations

import threading
from typing import Callable, Dict, Hashable, Optional, Set, Tuple

import numpy as np
from attrs import define

from .enums import ResultKind
from .image import RegionImage
from .logging import get_logger
from .results import classify_result

logger = get_logger(__name__)

# Margin kept around the lungs when cropping the lung ROI
ROI_BORDER_VOXELS = 5


def _region_labels(dataset, region, registry):
    ids = [region.id] + [r.id for r in registry.descendants(region.id)]
    return dataset.labels_for_regions(ids)


def _region_mask(dataset, region, registry) -> RegionImage:
    labels = _region_labels(dataset, region, registry)
    mask = dataset.label_mask(labels) if labels else None
    if mask is None or not mask.data.any():
        return RegionImage.empty()
    return mask


def create_template_for_original_image(dataset, region, registry) -> RegionImage:
    """Template covering every voxel of the original image."""
    image = dataset.image
    return RegionImage.from_array(
        np.ones(image.shape, dtype=np.uint8),
        image.voxel_size,
        image.origin,
        name=str(region.id),
    )


def create_template_for_lung_roi(dataset, region, registry) -> RegionImage:
    """Box around all lung labels, grown by ROI_BORDER_VOXELS and clipped to the image."""
    mask = _region_mask(dataset, region, registry)
    roi = mask.crop_to_bounding_box(border=ROI_BORDER_VOXELS)
    if not roi.image_exists:
        return roi
    return RegionImage.from_array(
        np.ones(roi.shape, dtype=np.uint8), roi.voxel_size, roi.origin, name=str(region.id)
    )


def create_template_for_lungs(dataset, region, registry) -> RegionImage:
    """Mask of both lungs in the frame of the enclosing region's template."""
    mask = _region_mask(dataset, region, registry)
    if not mask.image_exists:
        return mask
    parent = registry.parent_region(region.id)
    if parent is not None and parent.template_factory is not None:
        mask.resize_to_match(parent.template_factory(dataset, parent, registry))
    else:
        mask = mask.crop_to_bounding_box()
    return RegionImage.from_array(mask.data, mask.voxel_size, mask.origin, name=str(region.id))


def create_template_for_single_lung(dataset, region, registry) -> RegionImage:
    """Mask of one lung (all of its lobe labels) cropped to its bounding box."""
    return _cropped_region_template(dataset, region, registry)


def create_template_for_lobe(dataset, region, registry) -> RegionImage:
    """Mask of one lobe cropped to its bounding box."""
    return _cropped_region_template(dataset, region, registry)


def _cropped_region_template(dataset, region, registry) -> RegionImage:
    cropped = _region_mask(dataset, region, registry).crop_to_bounding_box()
    if not cropped.image_exists:
        return cropped
    return RegionImage.from_array(
        cropped.data, cropped.voxel_size, cropped.origin, name=str(region.id)
    )


class ImageTemplates:
    """Per-dataset cache of region templates.

    Args:
        registry: RegionRegistry providing regions and template factories
        template_plugins: Optional mapping from region set to the name of a
            plugin whose image result defines the templates of that set's
            regions when the factory cannot build them

    Attributes:
        result_source: Callable ``(plugin_name, region_id, dataset, call_stack)``
            used to run a template plugin on demand. Set by the owning session.
    """

    def __init__(self, registry, template_plugins: Optional[Dict[Hashable, str]] = None):
        self.registry = registry
        self.template_plugins = dict(template_plugins or {})
        self.result_source: Optional[Callable[[str, Hashable, object, object], object]] = None
        self._templates: Dict[Tuple[str, Hashable], RegionImage] = {}
        self._attempted: Set[Tuple[str, str, Hashable]] = set()
        self._lock = threading.RLock()

    def _template_plugin_for(self, region_id: Hashable) -> Optional[str]:
        return self.template_plugins.get(self.registry.region(region_id).region_set)

    def get_template_image(self, region_id: Hashable, dataset, call_stack=None) -> RegionImage:
        """Return the template of a region for a dataset.

        The result may be an empty RegionImage when the template cannot be
        determined yet. Returned templates are shared and must not be modified.
        A template plugin run on demand joins ``call_stack`` when one is given.
        """
        key = (dataset.uid, region_id)
        with self._lock:
            cached = self._templates.get(key)
        if cached is not None:
            return cached

        region = self.registry.region(region_id)
        template = RegionImage.empty()
        if region.template_factory is not None:
            template = region.template_factory(dataset, region, self.registry)
        if not template.image_exists:
            template = self._template_from_plugin(region_id, dataset, call_stack)

        if not template.image_exists:
            logger.debug("No template available yet for %s in %s", region_id, dataset.uid)
            return template

        with self._lock:
            return self._templates.setdefault(key, template)

    def _template_from_plugin(self, region_id: Hashable, dataset, call_stack) -> RegionImage:
        plugin_name = self._template_plugin_for(region_id)
        if plugin_name is None or self.result_source is None:
            return RegionImage.empty()
        with self._lock:
            if (dataset.uid, plugin_name, region_id) in self._attempted:
                return RegionImage.empty()

        logger.debug("Running template plugin %s for %s", plugin_name, region_id)
        self.result_source(plugin_name, region_id, dataset, call_stack)
        with self._lock:
            return self._templates.get((dataset.uid, region_id), RegionImage.empty())

    def note_attempt_to_run_plugin(self, plugin_name: str, region_id: Hashable, dataset) -> None:
        """Record that a plugin is about to be resolved for a region.

        Only attempts of template plugins are remembered; they stop a template
        plugin from being re-entered while its own template is requested.
        """
        if self._template_plugin_for(region_id) == plugin_name:
            with self._lock:
                self._attempted.add((dataset.uid, plugin_name, region_id))

    def update_templates(
        self,
        plugin_name: str,
        region_id: Hashable,
        dataset,
        result,
        plugin_has_been_run: bool,
    ) -> None:
        """Derive a region template from a template plugin's image result.

        An existing template is only replaced when the plugin was actually run.
        """
        if self._template_plugin_for(region_id) != plugin_name:
            return
        if classify_result(result) is not ResultKind.IMAGE or not result.image_exists:
            return

        key = (dataset.uid, region_id)
        with self._lock:
            if key in self._templates and not plugin_has_been_run:
                return
            self._templates[key] = RegionImage.from_array(
                (result.data != 0).astype(np.uint8),
                result.voxel_size,
                result.origin,
                name=str(region_id),
            )
        logger.debug("Updated template for %s from plugin %s", region_id, plugin_name)

    def invalidate(self, dataset_uid: Optional[str] = None) -> None:
        """Forget templates and attempts, for one dataset or for all."""
        with self._lock:
            if dataset_uid is None:
                self._templates.clear()
                self._attempted.clear()
                return
            self._templates = {k: v for k, v in self._templates.items() if k[0] != dataset_uid}
            self._attempted = {a for a in self._attempted if a[0] != dataset_uid}


@define
class TemplateCallback:
    """Template lookup bound to one dataset, handed to plugins generating images."""

    templates: ImageTemplates
    dataset: object
    call_stack: object = None

    def get_template_image(self, region_id: Hashable) -> RegionImage:
        return self.templates.get_template_image(region_id, self.dataset, self.call_stack)

    def __call__(self, region_id: Hashable) -> RegionImage:
        return self.get_template_image(region_id)
