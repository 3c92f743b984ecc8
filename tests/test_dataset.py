"""Tests for Dataset construction, validation and loading."""

import numpy as np
import pandas as pd
import pytest

from synthetic_lungs import SHAPE, VOXEL_SIZE, make_image, make_label_map

from lungctx import Dataset, RegionId, RegionImage
from lungctx.dataset import DEFAULT_LABELS, default_labels_df


def image(data=None, origin=(0, 0, 0)):
    if data is None:
        data = make_image()
    return RegionImage.from_array(data, VOXEL_SIZE, origin)


class TestDefaultLabels:
    def test_table_columns(self):
        df = default_labels_df()
        assert list(df.columns) == ["index", "name", "region"]
        assert df["index"].tolist() == [1, 2, 4, 5, 6]
        assert df["region"].tolist() == [region.value for _, _, region in DEFAULT_LABELS]


class TestDatasetValidation:
    """Tests for the checks run when a Dataset is created."""

    def test_requires_image_data(self):
        with pytest.raises(ValueError, match="has no image data"):
            Dataset(uid="x", image=RegionImage.empty())

    def test_label_map_shape_must_match(self):
        with pytest.raises(ValueError, match="shape"):
            Dataset(uid="x", image=image(), label_map=image(np.zeros((2, 2, 2))))

    def test_label_map_origin_must_match(self):
        with pytest.raises(ValueError, match="origin"):
            Dataset(uid="x", image=image(), label_map=image(make_label_map(), origin=(1, 0, 0)))

    def test_missing_columns(self):
        with pytest.raises(ValueError, match="Missing required columns"):
            Dataset(uid="x", image=image(), labels_df=pd.DataFrame({"index": [1]}))

    def test_duplicate_labels(self):
        df = pd.DataFrame({"index": [1, 1], "name": ["a", "b"], "region": ["Lungs", "Lungs"]})
        with pytest.raises(ValueError, match="Duplicate labels"):
            Dataset(uid="x", image=image(), labels_df=df)

    def test_float_labels_are_converted_with_warning(self):
        df = pd.DataFrame({"index": [1.0, 2.0], "name": ["a", "b"], "region": ["LeftLung", "RightLung"]})
        with pytest.warns(UserWarning, match="should contain integers"):
            dataset = Dataset(uid="x", image=image(), labels_df=df)
        assert pd.api.types.is_integer_dtype(dataset.labels_df["index"])

    def test_custom_columns(self):
        df = pd.DataFrame({"label": [3], "desc": ["left"], "structure": ["LeftLung"]})
        dataset = Dataset(
            uid="x",
            image=image(),
            labels_df=df,
            label_column="label",
            name_column="desc",
            region_column="structure",
        )
        assert dataset.labels_for_regions([RegionId.LEFT_LUNG]) == [3]


class TestLabelLookup:
    """Tests for mapping regions to labels and masks."""

    def test_labels_for_regions(self, lung_dataset):
        assert lung_dataset.labels_for_regions([RegionId.LEFT_UPPER_LOBE]) == [5]
        assert lung_dataset.labels_for_regions(
            [RegionId.RIGHT_UPPER_LOBE, RegionId.RIGHT_LOWER_LOBE]
        ) == [1, 4]
        assert lung_dataset.labels_for_regions([RegionId.LUNGS]) == []
        assert lung_dataset.labels_for_regions(["LeftLowerLobe"]) == [6]

    def test_label_mask(self, lung_dataset):
        mask = lung_dataset.label_mask([5, 6])
        assert mask.data.dtype == np.uint8
        assert mask.shape == SHAPE
        assert np.count_nonzero(mask.data) == 10 * 12 * 7

    def test_label_mask_without_label_map(self, unlabelled_dataset):
        assert unlabelled_dataset.label_mask([1]) is None


class TestFromFiles:
    """Tests for Dataset.from_files."""

    def test_load_image_and_labels(self, tmp_path):
        image(make_image()).to_nifti(tmp_path / "ct.nii.gz")
        image(make_label_map()).to_nifti(tmp_path / "lobes.nii.gz")

        dataset = Dataset.from_files(tmp_path / "ct.nii.gz", tmp_path / "lobes.nii.gz")
        assert dataset.uid == "ct.nii.gz"
        assert dataset.image.shape == SHAPE
        np.testing.assert_allclose(dataset.image.voxel_size, VOXEL_SIZE)
        np.testing.assert_array_equal(dataset.label_map.data, make_label_map())
        assert dataset.labels_df.equals(default_labels_df())

    def test_load_label_table(self, tmp_path):
        image(make_image()).to_nifti(tmp_path / "ct.nii.gz")
        image(make_label_map()).to_nifti(tmp_path / "lungs.nii.gz")
        pd.DataFrame(
            {"index": [1, 2, 4, 5, 6], "name": list("abcde"), "region": ["RightLung"] * 3 + ["LeftLung"] * 2}
        ).to_csv(tmp_path / "lungs.tsv", sep="\t", index=False)

        dataset = Dataset.from_files(
            tmp_path / "ct.nii.gz",
            tmp_path / "lungs.nii.gz",
            tmp_path / "lungs.tsv",
            uid="case-7",
        )
        assert dataset.uid == "case-7"
        assert dataset.labels_for_regions([RegionId.LEFT_LUNG]) == [5, 6]

    def test_image_only(self, tmp_path):
        image(make_image()).to_nifti(tmp_path / "ct.nii")
        dataset = Dataset.from_files(tmp_path / "ct.nii")
        assert dataset.label_map is None
