#!/usr/bin/env python
"""
Example requesting plugin results at different levels of the lung hierarchy.

This script shows how to:
1. Build a dataset from an image and a lobe label map
2. Request a per-lung plugin for both lungs at once
3. Request a whole-ROI plugin for a single lobe
4. Request a measurement for every lobe
5. Write a custom plugin that uses the results of other plugins
"""

import logging

import numpy as np

from lungctx import ContextSession, Dataset, RegionId, RegionImage, RegionSetId
from lungctx.logging import configure_logging
from lungctx.plugins import RegionPlugin, hookimpl

# Synthetic CT: two box-shaped lungs split into lobes along z
rng = np.random.default_rng(42)
shape = (40, 48, 60)
labels = np.zeros(shape, dtype=np.int16)
labels[10:18, 12:36, 12:26] = 1  # right upper lobe
labels[18:22, 12:36, 12:26] = 2  # right middle lobe
labels[22:30, 12:36, 12:26] = 4  # right lower lobe
labels[10:20, 12:36, 32:46] = 5  # left upper lobe
labels[20:30, 12:36, 32:46] = 6  # left lower lobe

image = rng.normal(40, 10, size=shape).astype(np.int16)
lungs = labels > 0
image[lungs] = rng.normal(-870, 30, size=int(lungs.sum())).astype(np.int16)
# Emphysema-like patch in the left upper lobe
image[12:16, 20:26, 36:40] = -980

voxel_size = (1.25, 0.7, 0.7)
dataset = Dataset(
    uid="demo",
    image=RegionImage.from_array(image, voxel_size, name="ct"),
    label_map=RegionImage.from_array(labels, voxel_size, name="lobes"),
)

configure_logging(level=logging.INFO)

session = ContextSession()
results = session.open(dataset)
print("Registered plugins:", session.plugin_names())
print()

# Otsu runs per lung; asking for Lungs composes both lungs
outcome = results.get_plugin_result("Otsu Lung Segmentation", RegionId.LUNGS)
for region, mask in outcome.result.items():
    print(f"{region}: {int(mask.data.sum())} low density voxels")
print("Combined preview image:", outcome.output_image)
print()

# Density threshold runs once on the ROI and is cropped to the lobe
low_density = results.get_result(
    "Density Threshold", RegionId.LEFT_UPPER_LOBE
)
print("Left upper lobe voxels between -1000 and -500 HU:", int(low_density.data.sum()))
print()

# Region volume is computed directly for each lobe
for region, volume in results.get_result("Region Volume", RegionSetId.LOBE).items():
    print(f"{region}: {volume:.1f} mm³")
print()


class LowDensityFraction(RegionPlugin):
    """Fraction of each lobe within the density threshold range."""

    context_set = RegionSetId.LOBE
    generate_preview = False

    @hookimpl
    def region_plugin_name(self):
        return "Low Density Fraction"

    @hookimpl
    def run_plugin(self, dataset, region):
        mask = dataset.get_result("Density Threshold", region)
        volume = dataset.get_result("Region Volume", region)
        return float(mask.data.sum() * mask.voxel_volume / volume)


session.register_plugin(LowDensityFraction())
fractions, cache_info = results.get_result_with_cache_info(
    "Low Density Fraction", RegionId.LEFT_LUNG
)
for region, fraction in fractions.items():
    print(f"{region}: {fraction:.3f}")
print(
    "Left upper lobe result depends on:",
    [d.plugin_name for d in cache_info[RegionId.LEFT_UPPER_LOBE].dependencies],
)
