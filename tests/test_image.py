"""
Tests for RegionImage.

Covers construction from arrays, NgffImage and NIfTI, the geometry
properties and the in-place operations used for reduction and composition.
"""

import dask.array as da
import ngff_zarr as nz
import nibabel as nib
import numpy as np
import pytest

from lungctx import RegionImage


def make_image(data, origin=(0, 0, 0), voxel_size=(1.0, 1.0, 1.0)):
    return RegionImage.from_array(np.asarray(data), voxel_size, origin)


class TestConstruction:
    """Tests for creating RegionImages."""

    def test_from_array(self):
        image = RegionImage.from_array(
            np.zeros((4, 5, 6), dtype=np.int16), (2.0, 0.5, 0.5), (1, 2, 3), name="ct"
        )
        assert image.image_exists
        assert image.shape == (4, 5, 6)
        assert image.voxel_size == (2.0, 0.5, 0.5)
        assert image.origin == (1, 2, 3)
        assert image.name == "ct"
        assert image.ngff_image.dims == ["z", "y", "x"]
        assert image.ngff_image.translation == {"z": 2.0, "y": 1.0, "x": 1.5}

    def test_from_dask_array(self):
        image = RegionImage.from_array(da.ones((2, 3, 4), chunks=2))
        assert isinstance(image.data, np.ndarray)
        assert image.data.sum() == 24

    def test_rejects_non_3d(self):
        with pytest.raises(ValueError, match="must be 3D"):
            RegionImage.from_array(np.zeros((4, 4)))

    def test_empty(self):
        image = RegionImage.empty()
        assert not image.image_exists
        assert image.data is None
        assert image.shape == ()
        assert image.origin == ()
        assert repr(image) == "RegionImage(<no data>)"

    def test_from_ngff_image_reorders_and_squeezes(self):
        data = np.arange(2 * 3 * 4).reshape(1, 4, 3, 2)
        ngff = nz.NgffImage(
            data=data,
            dims=["c", "x", "y", "z"],
            scale={"c": 1.0, "x": 0.5, "y": 0.5, "z": 2.0},
            translation={"c": 0.0, "x": 1.0, "y": 0.0, "z": 4.0},
            name="img",
        )
        image = RegionImage.from_ngff_image(ngff)
        assert image.shape == (2, 3, 4)
        assert image.voxel_size == (2.0, 0.5, 0.5)
        assert image.origin == (2, 0, 2)
        np.testing.assert_array_equal(image.data, np.transpose(data[0], (2, 1, 0)))

    def test_from_ngff_image_rejects_channels(self):
        ngff = nz.NgffImage(
            data=np.zeros((2, 3, 3, 3)),
            dims=["c", "z", "y", "x"],
            scale={"c": 1.0, "z": 1.0, "y": 1.0, "x": 1.0},
            translation={"c": 0.0, "z": 0.0, "y": 0.0, "x": 0.0},
            name="img",
        )
        with pytest.raises(ValueError, match="non-spatial axis 'c'"):
            RegionImage.from_ngff_image(ngff)

    def test_nifti_round_trip(self, tmp_path):
        data = np.random.default_rng(0).integers(-1000, 100, size=(4, 5, 6)).astype(np.int16)
        image = RegionImage.from_array(data, (2.0, 0.5, 0.75))
        path = tmp_path / "ct.nii.gz"
        image.to_nifti(path)

        nifti = nib.load(str(path))
        assert nifti.shape == (6, 5, 4)
        np.testing.assert_allclose(nifti.header.get_zooms(), (0.75, 0.5, 2.0))

        loaded = RegionImage.from_nifti(path, name="ct")
        assert loaded.equals(image)
        assert loaded.name == "ct"

    def test_to_nifti_requires_data(self, tmp_path):
        with pytest.raises(ValueError, match="requires an image with data"):
            RegionImage.empty().to_nifti(tmp_path / "x.nii")


class TestGeometry:
    """Tests for bounds and voxel volume."""

    def test_bounds(self):
        image = make_image(np.zeros((2, 3, 4)), origin=(5, 6, 7))
        assert image.bounds == ((5, 6, 7), (7, 9, 11))

    def test_voxel_volume(self):
        image = make_image(np.zeros((2, 2, 2)), voxel_size=(1.5, 0.5, 0.5))
        assert image.voxel_volume == pytest.approx(0.375)


class TestOperations:
    """Tests for the in-place and copying operations."""

    def test_duplicate_is_independent(self):
        image = make_image(np.ones((2, 2, 2)), origin=(1, 1, 1))
        copy = image.duplicate()
        copy.data[0, 0, 0] = 5
        assert image.data[0, 0, 0] == 1
        assert copy.origin == (1, 1, 1)
        assert not RegionImage.empty().duplicate().image_exists

    def test_resize_to_match_grows_and_shrinks(self):
        image = make_image(np.full((2, 2, 2), 7), origin=(1, 1, 1))
        template = make_image(np.ones((3, 3, 3)), origin=(2, 0, 0))
        image.resize_to_match(template)

        assert image.shape == (3, 3, 3)
        assert image.origin == (2, 0, 0)
        expected = np.zeros((3, 3, 3))
        expected[0, 1:3, 1:3] = 7
        np.testing.assert_array_equal(image.data, expected)

    def test_resize_to_match_disjoint_gives_zeros(self):
        image = make_image(np.full((2, 2, 2), 7))
        image.resize_to_match(make_image(np.ones((2, 2, 2)), origin=(10, 10, 10)))
        assert image.origin == (10, 10, 10)
        assert not image.data.any()

    def test_resize_to_match_empty_template_is_noop(self):
        image = make_image(np.full((2, 2, 2), 7))
        image.resize_to_match(RegionImage.empty())
        assert image.shape == (2, 2, 2)
        assert image.data.sum() == 56

    def test_resize_rejects_voxel_size_mismatch(self):
        image = make_image(np.ones((2, 2, 2)))
        with pytest.raises(ValueError, match="Voxel size mismatch"):
            image.resize_to_match(make_image(np.ones((2, 2, 2)), voxel_size=(2, 1, 1)))

    def test_clear(self):
        image = make_image(np.full((2, 2, 2), 3), origin=(4, 4, 4))
        image.clear()
        assert not image.data.any()
        assert image.origin == (4, 4, 4)

    def test_change_sub_image_with_mask(self):
        target = make_image(np.zeros((4, 4, 4)))
        source = make_image(np.full((2, 2, 2), 9), origin=(1, 1, 1))
        mask = make_image(np.ones((4, 4, 4)))
        mask.data[1, 1, 1] = 0

        target.change_sub_image_with_mask(source, mask)
        assert target.data[1:3, 1:3, 1:3].sum() == 9 * 7
        assert target.data[1, 1, 1] == 0
        assert target.data.sum() == 63

    def test_change_sub_image_leaves_unmasked_voxels(self):
        target = make_image(np.full((3, 3, 3), 2))
        source = make_image(np.full((3, 3, 3), 5))
        mask = make_image(np.ones((1, 1, 1)), origin=(1, 1, 1))
        target.change_sub_image_with_mask(source, mask)
        assert target.data[1, 1, 1] == 5
        assert target.data.sum() == 2 * 26 + 5

    def test_mask_as_template_zeros_uncovered_voxels(self):
        target = make_image(np.full((3, 3, 3), 2))
        source = make_image(np.full((1, 3, 3), 5))
        mask = make_image(np.ones((3, 3, 3)))
        target.change_sub_image_with_mask(source, mask, use_mask_as_template=True)
        assert np.all(target.data[0] == 5)
        assert not target.data[1:].any()

    def test_crop_to_bounding_box(self):
        data = np.zeros((10, 10, 10))
        data[3:5, 4:6, 5:8] = 1
        image = make_image(data, origin=(1, 1, 1))

        cropped = image.crop_to_bounding_box()
        assert cropped.shape == (2, 2, 3)
        assert cropped.origin == (4, 5, 6)

        bordered = image.crop_to_bounding_box(border=4)
        assert bordered.shape == (9, 10, 9)
        assert bordered.origin == (1, 1, 2)

    def test_crop_of_all_zero_image_is_empty(self):
        assert not make_image(np.zeros((3, 3, 3))).crop_to_bounding_box().image_exists

    def test_equals(self):
        a = make_image(np.ones((2, 2, 2)))
        assert a.equals(a.duplicate())
        assert not a.equals(make_image(np.ones((2, 2, 2)), origin=(1, 0, 0)))
        assert not a.equals("not an image")
        assert RegionImage.empty().equals(RegionImage.empty())
