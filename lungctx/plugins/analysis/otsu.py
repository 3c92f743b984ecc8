"""
Otsu lung segmentation plugin.

Separates low density parenchyma from denser structures (vessels, airway
walls) inside each lung with its own Otsu threshold. Lungs are processed
separately because their intensity distributions differ.
"""

from __future__ import annotations

from typing import Any, Hashable

import numpy as np
from skimage.filters import threshold_otsu

from ...enums import RegionSetId
from ...image import RegionImage
from ...logging import get_logger
from ..base import RegionPlugin, hookimpl

logger = get_logger(__name__)


class OtsuLungSegmentation(RegionPlugin):
    """
    Per-lung Otsu segmentation of low density tissue.

    Parameters:
        nbins: Number of histogram bins for the threshold (default: 256)
    """

    context_set = RegionSetId.SINGLE_LUNG

    def __init__(self, nbins: int = 256, **kwargs):
        super().__init__(nbins=nbins, **kwargs)
        self.nbins = nbins

    @hookimpl
    def region_plugin_name(self) -> str:
        return "Otsu Lung Segmentation"

    @hookimpl
    def run_plugin(self, dataset: Any, region: Hashable) -> Any:
        image = dataset.get_image(region)
        template = dataset.get_template_image(region)
        if template.image_exists and template.shape == image.shape:
            inside = template.data != 0
        else:
            inside = np.ones(image.shape, dtype=bool)

        mask = np.zeros(image.shape, dtype=np.uint8)
        values = image.data[inside]
        if values.size == 0 or np.all(values == values.flat[0]):
            logger.debug("No contrast inside %s, returning empty mask", region)
        else:
            threshold = threshold_otsu(values, nbins=self.nbins)
            logger.debug("Otsu threshold for %s: %s", region, threshold)
            mask[inside & (image.data <= threshold)] = 1

        return RegionImage.from_array(mask, image.voxel_size, image.origin, name=str(region))
