"""Enumerations identifying region sets, regions and result kinds."""

from enum import Enum, auto


class RegionSetId(Enum):
    """Granularity tiers of the lung hierarchy.

    Attributes:
        ORIGINAL_IMAGE: The full acquired volume
        LUNG_ROI: The box containing both lungs and the airways
        LUNGS: Both lungs together
        SINGLE_LUNG: One lung (left or right)
        LOBE: One pulmonary lobe
        ANY: Matches every requested region; plugins declaring it are always
            called directly
    """

    ORIGINAL_IMAGE = "OriginalImage"
    LUNG_ROI = "LungROI"
    LUNGS = "Lungs"
    SINGLE_LUNG = "SingleLung"
    LOBE = "Lobe"
    ANY = "Any"

    def __str__(self) -> str:
        return self.value


class RegionId(Enum):
    """Concrete anatomical regions."""

    ORIGINAL_IMAGE = "OriginalImage"
    LUNG_ROI = "LungROI"
    LUNGS = "Lungs"
    LEFT_LUNG = "LeftLung"
    RIGHT_LUNG = "RightLung"
    RIGHT_UPPER_LOBE = "RightUpperLobe"
    RIGHT_MIDDLE_LOBE = "RightMiddleLobe"
    RIGHT_LOWER_LOBE = "RightLowerLobe"
    LEFT_UPPER_LOBE = "LeftUpperLobe"
    LEFT_LOWER_LOBE = "LeftLowerLobe"

    def __str__(self) -> str:
        return self.value


class ResultKind(Enum):
    """Variants a plugin result can take.

    Attributes:
        OPAQUE: Any value the hierarchy does not look into (scalars, tables)
        IMAGE: A RegionImage, which can be cropped and composited
        COMPOSITE: A CompositeResult keyed by region
    """

    OPAQUE = auto()
    IMAGE = auto()
    COMPOSITE = auto()
