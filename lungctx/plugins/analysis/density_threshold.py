"""
Density threshold plugin.

Marks voxels of the lung ROI whose intensity (in Hounsfield units) lies in a
closed range, for example the emphysema range below -950 HU.
"""

from __future__ import annotations

from typing import Any, Hashable

import numpy as np

from ...enums import RegionSetId
from ...image import RegionImage
from ...logging import get_logger
from ..base import RegionPlugin, hookimpl

logger = get_logger(__name__)


class DensityThreshold(RegionPlugin):
    """
    Binary mask of lung ROI voxels within an intensity range.

    Parameters:
        lower: Lowest intensity included (default: -1000)
        upper: Highest intensity included (default: -500)
    """

    context_set = RegionSetId.LUNG_ROI

    def __init__(self, lower: float = -1000.0, upper: float = -500.0, **kwargs):
        if lower > upper:
            raise ValueError(f"lower ({lower}) must not exceed upper ({upper})")
        super().__init__(lower=lower, upper=upper, **kwargs)
        self.lower = float(lower)
        self.upper = float(upper)

    @hookimpl
    def region_plugin_name(self) -> str:
        return "Density Threshold"

    @hookimpl
    def region_plugin_description(self) -> str:
        return (
            f"Voxels of the lung ROI with intensity in [{self.lower}, {self.upper}]"
        )

    @hookimpl
    def run_plugin(self, dataset: Any, region: Hashable) -> Any:
        image = dataset.get_image(region)
        mask = (image.data >= self.lower) & (image.data <= self.upper)
        logger.debug(
            "Density threshold [%s, %s] selected %d voxels",
            self.lower,
            self.upper,
            int(mask.sum()),
        )
        return RegionImage.from_array(
            mask.astype(np.uint8), image.voxel_size, image.origin, name="density_threshold"
        )
