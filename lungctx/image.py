"""Region-shaped image values.

RegionImage is the image-like result type understood by the context
hierarchy. It wraps an ``ngff_zarr.NgffImage`` whose dims are ``z, y, x``.
Scale and translation place the array inside the voxel frame of the
dataset's original image, so two images cut from the same dataset can be
aligned by their origins alone.

The mutators (:meth:`RegionImage.resize_to_match`, :meth:`RegionImage.clear`
and :meth:`RegionImage.change_sub_image_with_mask`) modify the image in place.
Callers that must not alter a shared value take a :meth:`RegionImage.duplicate`
first.

An image without data (``image_exists`` is False) stands for a region whose
geometry is not known yet, typically a template that has not been derived.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import ngff_zarr as nz
import nibabel as nib
import numpy as np
from attrs import define, field
from scipy import ndimage

SPATIAL_DIMS = ("z", "y", "x")

Bounds = Tuple[Tuple[int, ...], Tuple[int, ...]]


def _overlap(*bounds: Bounds) -> Optional[Bounds]:
    """Intersect voxel-frame bounding boxes, or return None if they are disjoint."""
    lo = tuple(max(b[0][axis] for b in bounds) for axis in range(3))
    hi = tuple(min(b[1][axis] for b in bounds) for axis in range(3))
    if any(h <= l for l, h in zip(lo, hi)):
        return None
    return lo, hi


@define(eq=False, repr=False)
class RegionImage:
    """3D image positioned in the voxel frame of a dataset.

    Attributes:
        ngff_image: Backing NgffImage, or None for an image with no data
    """

    ngff_image: Optional[nz.NgffImage] = field(default=None)

    # Construction

    @classmethod
    def from_array(
        cls,
        data,
        voxel_size: Sequence[float] = (1.0, 1.0, 1.0),
        origin: Sequence[int] = (0, 0, 0),
        name: str = "image",
    ) -> "RegionImage":
        """Create an image from a z, y, x array.

        Args:
            data: 3D array-like. Dask arrays are computed.
            voxel_size: Voxel spacing in mm, in z, y, x order
            origin: Voxel offset of ``data[0, 0, 0]`` in the dataset frame
            name: Image name stored in the NgffImage

        Returns:
            New RegionImage

        Raises:
            ValueError: If ``data`` is not three dimensional
        """
        if hasattr(data, "compute"):
            data = data.compute()
        data = np.asarray(data)
        if data.ndim != 3:
            raise ValueError(f"RegionImage data must be 3D, got {data.ndim}D")

        scale = {dim: float(size) for dim, size in zip(SPATIAL_DIMS, voxel_size)}
        translation = {
            dim: float(offset) * scale[dim] for dim, offset in zip(SPATIAL_DIMS, origin)
        }
        ngff_image = nz.NgffImage(
            data=data,
            dims=list(SPATIAL_DIMS),
            scale=scale,
            translation=translation,
            name=name,
        )
        return cls(ngff_image=ngff_image)

    @classmethod
    def empty(cls) -> "RegionImage":
        """Return an image with no data, used for not-yet-known templates."""
        return cls()

    @classmethod
    def from_ngff_image(cls, ngff_image: nz.NgffImage) -> "RegionImage":
        """Wrap an NgffImage, dropping singleton non-spatial axes such as ``c``.

        Raises:
            ValueError: If the image lacks a spatial axis or has a non-spatial
                axis longer than one
        """
        dims = [d.lower() for d in ngff_image.dims]
        missing = [d for d in SPATIAL_DIMS if d not in dims]
        if missing:
            raise ValueError(f"NgffImage is missing spatial dims {missing}")

        data = ngff_image.data
        if hasattr(data, "compute"):
            data = data.compute()
        data = np.asarray(data)

        index = []
        for axis, dim in enumerate(dims):
            if dim in SPATIAL_DIMS:
                index.append(slice(None))
            elif data.shape[axis] == 1:
                index.append(0)
            else:
                raise ValueError(
                    f"Cannot convert NgffImage with {data.shape[axis]} entries "
                    f"along non-spatial axis '{dim}'"
                )
        data = data[tuple(index)]
        spatial = [d for d in dims if d in SPATIAL_DIMS]
        data = np.transpose(data, [spatial.index(d) for d in SPATIAL_DIMS])

        voxel_size = tuple(float(ngff_image.scale.get(d, 1.0)) for d in SPATIAL_DIMS)
        origin = tuple(
            int(round(ngff_image.translation.get(d, 0.0) / size))
            for d, size in zip(SPATIAL_DIMS, voxel_size)
        )
        return cls.from_array(data, voxel_size, origin, name=ngff_image.name)

    @classmethod
    def from_nifti(cls, path: str, name: Optional[str] = None) -> "RegionImage":
        """Load a NIfTI file as an image at the origin of the dataset frame.

        NIfTI arrays are stored x, y, z and are transposed to z, y, x.
        """
        img = nib.load(str(path))
        data = np.array(img.dataobj)
        if data.ndim == 4 and data.shape[3] == 1:
            data = data[..., 0]
        zooms = img.header.get_zooms()[:3]
        return cls.from_array(
            np.transpose(data, (2, 1, 0)),
            voxel_size=tuple(float(z) for z in reversed(zooms)),
            name=name or "image",
        )

    def to_nifti(self, path: str) -> None:
        """Save the image as NIfTI with a diagonal affine built from voxel size and origin."""
        self._require_data("to_nifti")
        affine = np.eye(4)
        for i, dim in enumerate(reversed(SPATIAL_DIMS)):
            affine[i, i] = self.ngff_image.scale[dim]
            affine[i, 3] = self.ngff_image.translation[dim]
        nib.save(nib.Nifti1Image(np.transpose(self.data, (2, 1, 0)), affine), str(path))

    # Geometry

    @property
    def image_exists(self) -> bool:
        return self.ngff_image is not None

    @property
    def data(self) -> Optional[np.ndarray]:
        return None if self.ngff_image is None else self.ngff_image.data

    @property
    def name(self) -> Optional[str]:
        return None if self.ngff_image is None else self.ngff_image.name

    @property
    def shape(self) -> Tuple[int, ...]:
        return () if self.ngff_image is None else tuple(self.data.shape)

    @property
    def voxel_size(self) -> Tuple[float, ...]:
        if self.ngff_image is None:
            return ()
        return tuple(float(self.ngff_image.scale[d]) for d in SPATIAL_DIMS)

    @property
    def voxel_volume(self) -> float:
        """Volume of one voxel in mm³."""
        return float(np.prod(self.voxel_size))

    @property
    def origin(self) -> Tuple[int, ...]:
        """Voxel offset of this image in the dataset frame."""
        if self.ngff_image is None:
            return ()
        return tuple(
            int(round(self.ngff_image.translation[d] / self.ngff_image.scale[d]))
            for d in SPATIAL_DIMS
        )

    @property
    def bounds(self) -> Bounds:
        origin = self.origin
        return origin, tuple(o + n for o, n in zip(origin, self.shape))

    def _local_slices(self, region: Bounds) -> Tuple[slice, ...]:
        lo, hi = region
        return tuple(
            slice(l - o, h - o) for l, h, o in zip(lo, hi, self.origin)
        )

    def _require_data(self, operation: str) -> None:
        if self.ngff_image is None:
            raise ValueError(f"{operation} requires an image with data")

    def _check_voxel_size(self, other: "RegionImage") -> None:
        if not np.allclose(self.voxel_size, other.voxel_size):
            raise ValueError(
                f"Voxel size mismatch: {self.voxel_size} vs {other.voxel_size}"
            )

    # Operations

    def duplicate(self) -> "RegionImage":
        """Return a deep copy. The copy never shares its data buffer with self."""
        if self.ngff_image is None:
            return RegionImage()
        return RegionImage(
            ngff_image=nz.NgffImage(
                data=np.array(self.data, copy=True),
                dims=list(self.ngff_image.dims),
                scale=dict(self.ngff_image.scale),
                translation=dict(self.ngff_image.translation),
                name=self.ngff_image.name,
            )
        )

    def resize_to_match(self, template: "RegionImage") -> None:
        """Re-frame this image onto the template's bounding box.

        Voxels inside both frames keep their values, new voxels are zero.
        Does nothing when either image has no data.
        """
        if self.ngff_image is None or not template.image_exists:
            return
        self._check_voxel_size(template)

        resized = np.zeros(template.shape, dtype=self.data.dtype)
        region = _overlap(self.bounds, template.bounds)
        if region is not None:
            resized[template._local_slices(region)] = self.data[
                self._local_slices(region)
            ]

        self.ngff_image = nz.NgffImage(
            data=resized,
            dims=list(SPATIAL_DIMS),
            scale=dict(template.ngff_image.scale),
            translation=dict(template.ngff_image.translation),
            name=self.ngff_image.name,
        )

    def clear(self) -> None:
        """Set every voxel to zero, keeping shape, dtype and position."""
        if self.ngff_image is not None:
            self.data[...] = 0

    def change_sub_image_with_mask(
        self,
        source: "RegionImage",
        mask: "RegionImage",
        use_mask_as_template: bool = False,
    ) -> None:
        """Copy voxels of ``source`` into this image where ``mask`` is non-zero.

        All three images are aligned through their origins. Only voxels lying
        inside this image, the source and the mask are written.

        Args:
            source: Image providing the new voxel values
            mask: Image whose non-zero voxels select what is copied
            use_mask_as_template: Treat the mask as the template of the
                region being written: masked voxels not covered by the source
                are zeroed instead of being left unchanged
        """
        if self.ngff_image is None or not mask.image_exists:
            return
        self._check_voxel_size(mask)

        if use_mask_as_template:
            region = _overlap(self.bounds, mask.bounds)
            if region is not None:
                selected = mask.data[mask._local_slices(region)] != 0
                self.data[self._local_slices(region)][selected] = 0

        if not source.image_exists:
            return
        self._check_voxel_size(source)

        region = _overlap(self.bounds, source.bounds, mask.bounds)
        if region is None:
            return
        selected = mask.data[mask._local_slices(region)] != 0
        target = self.data[self._local_slices(region)]
        target[selected] = source.data[source._local_slices(region)][selected]

    def crop_to_bounding_box(self, border: int = 0) -> "RegionImage":
        """Return a copy cropped to the non-zero voxels, grown by ``border`` voxels.

        The border is clipped to this image's own frame. An image with no
        non-zero voxels gives an empty RegionImage.
        """
        if self.ngff_image is None:
            return RegionImage()
        objects = ndimage.find_objects((self.data != 0).astype(np.int8))
        if not objects or objects[0] is None:
            return RegionImage()

        lo = [max(s.start - border, 0) for s in objects[0]]
        hi = [min(s.stop + border, n) for s, n in zip(objects[0], self.shape)]
        cropped = self.data[tuple(slice(l, h) for l, h in zip(lo, hi))]
        return RegionImage.from_array(
            np.array(cropped, copy=True),
            voxel_size=self.voxel_size,
            origin=tuple(o + l for o, l in zip(self.origin, lo)),
            name=self.name,
        )

    def equals(self, other: "RegionImage") -> bool:
        """True if both images have the same frame and voxel values."""
        if not isinstance(other, RegionImage):
            return False
        if self.ngff_image is None or other.ngff_image is None:
            return self.ngff_image is None and other.ngff_image is None
        return (
            self.origin == other.origin
            and self.shape == other.shape
            and np.allclose(self.voxel_size, other.voxel_size)
            and np.array_equal(self.data, other.data)
        )

    def __repr__(self) -> str:
        if self.ngff_image is None:
            return "RegionImage(<no data>)"
        return (
            f"RegionImage(name={self.name!r}, shape={self.shape}, "
            f"origin={self.origin}, voxel_size={self.voxel_size}, "
            f"dtype={self.data.dtype})"
        )
