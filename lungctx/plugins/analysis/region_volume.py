"""
Region volume plugin.

Measures the volume of whichever region it is asked for from that region's
template, so it declares the ``Any`` region set.
"""

from __future__ import annotations

from typing import Any, Hashable

import numpy as np

from ...enums import RegionSetId
from ..base import RegionPlugin, hookimpl


class RegionVolume(RegionPlugin):
    """Volume of a region in mm³."""

    context_set = RegionSetId.ANY
    generate_preview = False

    @hookimpl
    def region_plugin_name(self) -> str:
        return "Region Volume"

    @hookimpl
    def run_plugin(self, dataset: Any, region: Hashable) -> Any:
        template = dataset.get_template_image(region)
        if not template.image_exists:
            raise ValueError(f"No template is available for region {region}")
        return float(np.count_nonzero(template.data) * template.voxel_volume)
