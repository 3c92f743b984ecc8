"""
Original image plugin.

Returns the dataset image. Because its region set is the original image,
requesting it for any finer region yields the image cropped to that region's
template, which is how other plugins read image data for their region.
"""

from __future__ import annotations

from typing import Any, Hashable

from ...enums import RegionSetId
from ..base import RegionPlugin, hookimpl

ORIGINAL_IMAGE_PLUGIN = "Original Image"


class OriginalImage(RegionPlugin):
    """The image the dataset was loaded from."""

    context_set = RegionSetId.ORIGINAL_IMAGE
    generate_preview = False
    # The image is already held by the dataset
    allow_results_to_be_cached = False

    @hookimpl
    def region_plugin_name(self) -> str:
        return ORIGINAL_IMAGE_PLUGIN

    @hookimpl
    def run_plugin(self, dataset: Any, region: Hashable) -> Any:
        return dataset.original_image.duplicate()
