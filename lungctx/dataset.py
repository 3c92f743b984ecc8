"""Datasets: an image, an optional lung label map and its lookup table.

The label map assigns integer labels to lung voxels. The lookup table maps
labels to regions of the hierarchy in the same way an atlas ``dseg.tsv``
maps labels to region names. Templates for lungs and lobes are derived from
it (see :mod:`lungctx.templates`).
"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import Hashable, Iterable, List, Optional

import numpy as np
import pandas as pd
from attrs import define, field

from .enums import RegionId
from .image import RegionImage

# Lobe labels as written by lobe segmentations
DEFAULT_LABELS = (
    (1, "Right upper lobe", RegionId.RIGHT_UPPER_LOBE),
    (2, "Right middle lobe", RegionId.RIGHT_MIDDLE_LOBE),
    (4, "Right lower lobe", RegionId.RIGHT_LOWER_LOBE),
    (5, "Left upper lobe", RegionId.LEFT_UPPER_LOBE),
    (6, "Left lower lobe", RegionId.LEFT_LOWER_LOBE),
)


def default_labels_df() -> pd.DataFrame:
    """Lookup table for the default lobe labelling."""
    return pd.DataFrame(
        {
            "index": [label for label, _, _ in DEFAULT_LABELS],
            "name": [name for _, name, _ in DEFAULT_LABELS],
            "region": [region.value for _, _, region in DEFAULT_LABELS],
        }
    )


@define(eq=False)
class Dataset:
    """An image together with the label data used to build region templates.

    Attributes:
        uid: Identifier used to key cached results and templates
        image: The original image
        label_map: Integer label image in the frame of ``image``, or None
        labels_df: Lookup table with label, name and region columns
        label_column: Column holding integer labels
        name_column: Column holding readable names
        region_column: Column holding the region identifier (enum value) of
            each label
    """

    uid: str
    image: RegionImage
    label_map: Optional[RegionImage] = field(default=None)
    labels_df: pd.DataFrame = field(factory=default_labels_df)
    label_column: str = field(default="index")
    name_column: str = field(default="name")
    region_column: str = field(default="region")

    def __attrs_post_init__(self):
        if not self.image.image_exists:
            raise ValueError(f"Dataset {self.uid!r} has no image data")
        if self.label_map is not None:
            if self.label_map.shape != self.image.shape:
                raise ValueError(
                    f"Label map shape {self.label_map.shape} does not match "
                    f"image shape {self.image.shape}"
                )
            if self.label_map.origin != self.image.origin:
                raise ValueError(
                    f"Label map origin {self.label_map.origin} does not match "
                    f"image origin {self.image.origin}"
                )
        self._validate_labels()

    def _validate_labels(self):
        required = [self.label_column, self.name_column, self.region_column]
        missing = [col for col in required if col not in self.labels_df.columns]
        if missing:
            raise ValueError(f"Missing required columns in labels DataFrame: {missing}")

        if not pd.api.types.is_integer_dtype(self.labels_df[self.label_column]):
            warnings.warn(
                f"Label column '{self.label_column}' should contain integers. "
                "Converting to int.",
                stacklevel=3,
            )
            self.labels_df[self.label_column] = self.labels_df[self.label_column].astype(
                int
            )

        duplicates = self.labels_df[self.label_column].duplicated()
        if duplicates.any():
            dup_labels = self.labels_df[duplicates][self.label_column].tolist()
            raise ValueError(f"Duplicate labels found in label table: {dup_labels}")

    @classmethod
    def from_files(
        cls,
        image_path: str,
        label_path: Optional[str] = None,
        labels_path: Optional[str] = None,
        uid: Optional[str] = None,
    ) -> "Dataset":
        """Load a dataset from NIfTI images and an optional TSV lookup table.

        Args:
            image_path: NIfTI file with the original image
            label_path: NIfTI label map in the same voxel grid
            labels_path: Tab separated lookup table with ``index``, ``name``
                and ``region`` columns. The default lobe table is used if omitted.
            uid: Dataset identifier, defaulting to the image file name

        Returns:
            Dataset instance
        """
        image = RegionImage.from_nifti(image_path, name="original")
        label_map = None
        if label_path is not None:
            label_map = RegionImage.from_nifti(label_path, name="labels")
        labels_df = (
            default_labels_df()
            if labels_path is None
            else pd.read_csv(labels_path, sep="\t")
        )
        return cls(
            uid=uid or Path(image_path).name,
            image=image,
            label_map=label_map,
            labels_df=labels_df,
        )

    def labels_for_regions(self, region_ids: Iterable[Hashable]) -> List[int]:
        """Integer labels assigned to any of the given regions."""
        wanted = {getattr(r, "value", r) for r in region_ids}
        rows = self.labels_df[self.labels_df[self.region_column].isin(wanted)]
        return [int(label) for label in rows[self.label_column]]

    def label_mask(self, labels: Iterable[int]) -> Optional[RegionImage]:
        """uint8 mask of voxels carrying any of ``labels``, in the image frame.

        Returns None when there is no label map.
        """
        if self.label_map is None:
            return None
        mask = np.isin(self.label_map.data, list(labels)).astype(np.uint8)
        return RegionImage.from_array(
            mask, self.label_map.voxel_size, self.label_map.origin, name="mask"
        )
