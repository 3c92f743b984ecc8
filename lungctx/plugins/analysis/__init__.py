"""
Built-in analysis plugins for lungctx.
"""

from .density_threshold import DensityThreshold
from .original_image import ORIGINAL_IMAGE_PLUGIN, OriginalImage
from .otsu import OtsuLungSegmentation
from .region_volume import RegionVolume


def builtin_plugins():
    """Fresh instances of the plugins registered by default."""
    return [OriginalImage(), DensityThreshold(), OtsuLungSegmentation(), RegionVolume()]


__all__ = [
    "DensityThreshold",
    "ORIGINAL_IMAGE_PLUGIN",
    "OriginalImage",
    "OtsuLungSegmentation",
    "RegionVolume",
    "builtin_plugins",
]
