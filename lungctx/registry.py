"""Region sets, regions and the hierarchy between them.

Region sets are granularity tiers (lung ROI, single lung, lobe, ...) and form
a forest through their ``parent`` links. Regions are the concrete anatomical
subdivisions; every region belongs to one set and, except for roots, has a
parent region in the parent set.

The registry is built once and never mutated. :func:`build_lung_registry`
returns the standard lung hierarchy::

    OriginalImage
    └── LungROI
        └── Lungs
            ├── LeftLung
            │   ├── LeftUpperLobe
            │   └── LeftLowerLobe
            └── RightLung
                ├── RightUpperLobe
                ├── RightMiddleLobe
                └── RightLowerLobe

plus the standalone ``Any`` set, which has no regions.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Tuple

from attrs import evolve, field, frozen

from .enums import RegionId, RegionSetId
from .exceptions import UnknownRegionError, UnknownRegionSetError


@frozen
class RegionSet:
    """A granularity tier.

    Attributes:
        id: Identifier of the set
        parent: Identifier of the next coarser set, None for roots
    """

    id: Hashable
    parent: Optional[Hashable] = None


@frozen
class Region:
    """A concrete region.

    Attributes:
        id: Identifier of the region
        region_set: Identifier of the set the region belongs to
        parent: Identifier of the enclosing region, None for roots
        template_factory: Callable ``(dataset, region) -> RegionImage``
            building this region's template for a dataset
        children: Identifiers of the regions this one is partitioned into,
            filled in by the registry in declaration order
    """

    id: Hashable
    region_set: Hashable
    parent: Optional[Hashable] = None
    template_factory: Optional[Callable[..., Any]] = field(default=None, eq=False)
    children: Tuple[Hashable, ...] = ()


def is_higher(set_a: RegionSet, set_b: RegionSet, lookup: Callable[[Hashable], RegionSet]) -> bool:
    """Return True if ``set_a`` is a strict ancestor of ``set_b``.

    Walks the parent links upward from ``set_b``. Unrelated sets, including
    the standalone ``Any`` set, give False.

    Args:
        set_a: Candidate ancestor
        set_b: Candidate descendant
        lookup: Resolves a set identifier to its RegionSet
    """
    parent_id = set_b.parent
    while parent_id is not None:
        if parent_id == set_a.id:
            return True
        parent_id = lookup(parent_id).parent
    return False


class RegionRegistry:
    """Validated, read-only lookup of region sets and regions.

    Args:
        region_sets: RegionSet definitions, parents before children
        regions: Region definitions, parents before children. Any
            ``children`` given here are ignored and rebuilt from the
            parent links.

    Raises:
        ValueError: If identifiers are duplicated, a parent is unknown, or a
            region's parent does not belong to the parent of its set
    """

    __slots__ = ("_sets", "_regions")

    def __init__(self, region_sets: Iterable[RegionSet], regions: Iterable[Region]):
        sets: Dict[Hashable, RegionSet] = {}
        for region_set in region_sets:
            if region_set.id in sets:
                raise ValueError(f"Duplicate region set: {region_set.id}")
            if region_set.parent is not None and region_set.parent not in sets:
                raise ValueError(
                    f"Region set {region_set.id} has unknown parent {region_set.parent}"
                )
            sets[region_set.id] = region_set

        declared: Dict[Hashable, Region] = {}
        children: Dict[Hashable, List[Hashable]] = {}
        for region in regions:
            if region.id in declared:
                raise ValueError(f"Duplicate region: {region.id}")
            if region.region_set not in sets:
                raise ValueError(
                    f"Region {region.id} belongs to unknown region set {region.region_set}"
                )
            if region.parent is not None:
                if region.parent not in declared:
                    raise ValueError(
                        f"Region {region.id} has unknown parent {region.parent}"
                    )
                parent_set = declared[region.parent].region_set
                expected_set = sets[region.region_set].parent
                if parent_set != expected_set:
                    raise ValueError(
                        f"Parent {region.parent} of region {region.id} is in set "
                        f"{parent_set}, expected {expected_set}"
                    )
                children.setdefault(region.parent, []).append(region.id)
            declared[region.id] = region

        self._sets = MappingProxyType(sets)
        self._regions = MappingProxyType(
            {
                region_id: evolve(region, children=tuple(children.get(region_id, ())))
                for region_id, region in declared.items()
            }
        )

    # Lookups

    def region_set(self, set_id: Hashable) -> RegionSet:
        try:
            return self._sets[set_id]
        except (KeyError, TypeError):
            raise UnknownRegionSetError(set_id) from None

    def region(self, region_id: Hashable) -> Region:
        try:
            return self._regions[region_id]
        except (KeyError, TypeError):
            raise UnknownRegionError(region_id) from None

    def has_region(self, region_id: Hashable) -> bool:
        try:
            return region_id in self._regions
        except TypeError:
            return False

    def has_region_set(self, set_id: Hashable) -> bool:
        try:
            return set_id in self._sets
        except TypeError:
            return False

    @property
    def region_sets(self) -> Tuple[RegionSet, ...]:
        return tuple(self._sets.values())

    @property
    def regions(self) -> Tuple[Region, ...]:
        return tuple(self._regions.values())

    def region_set_of(self, region_id: Hashable) -> RegionSet:
        return self.region_set(self.region(region_id).region_set)

    def parent_region(self, region_id: Hashable) -> Optional[Region]:
        parent = self.region(region_id).parent
        return None if parent is None else self._regions[parent]

    def child_regions(self, region_id: Hashable) -> Tuple[Region, ...]:
        return tuple(self._regions[c] for c in self.region(region_id).children)

    def descendants(self, region_id: Hashable) -> Tuple[Region, ...]:
        """All regions below ``region_id``, depth first, excluding the region itself."""
        found: List[Region] = []
        for child in self.child_regions(region_id):
            found.append(child)
            found.extend(self.descendants(child.id))
        return tuple(found)

    def template_factory(self, region_id: Hashable) -> Optional[Callable[..., Any]]:
        return self.region(region_id).template_factory

    def regions_in_set(self, set_id: Hashable) -> Tuple[Region, ...]:
        self.region_set(set_id)
        return tuple(r for r in self._regions.values() if r.region_set == set_id)

    def is_higher(self, set_a: Hashable, set_b: Hashable) -> bool:
        """True if region set ``set_a`` is a strict ancestor of ``set_b``."""
        return is_higher(self.region_set(set_a), self.region_set(set_b), self.region_set)

    def resolve_identifier(self, value: Any) -> Hashable:
        """Resolve a region or region-set identifier.

        Registered identifiers are returned as-is. Strings are matched,
        case-insensitively, against the value and then the member name of
        enum identifiers; regions take precedence over region sets.

        Raises:
            UnknownRegionError: If nothing matches
        """
        if self.has_region(value) or self.has_region_set(value):
            return value
        if isinstance(value, str):
            wanted = value.lower()
            for candidates in (self._regions, self._sets):
                for key in candidates:
                    names = {str(key).lower()}
                    if hasattr(key, "name"):
                        names.add(key.name.lower())
                    if wanted in names:
                        return key
        raise UnknownRegionError(value)

    def __repr__(self) -> str:
        return (
            f"RegionRegistry(sets={[str(s) for s in self._sets]}, "
            f"regions={[str(r) for r in self._regions]})"
        )


def build_lung_registry() -> RegionRegistry:
    """Build the standard lung region hierarchy with its template factories."""
    from . import templates

    region_sets = [
        RegionSet(RegionSetId.ORIGINAL_IMAGE),
        RegionSet(RegionSetId.LUNG_ROI, RegionSetId.ORIGINAL_IMAGE),
        RegionSet(RegionSetId.LUNGS, RegionSetId.LUNG_ROI),
        RegionSet(RegionSetId.SINGLE_LUNG, RegionSetId.LUNGS),
        RegionSet(RegionSetId.LOBE, RegionSetId.SINGLE_LUNG),
        RegionSet(RegionSetId.ANY),
    ]

    def lobe(region_id: RegionId, lung: RegionId) -> Region:
        return Region(
            region_id, RegionSetId.LOBE, lung, templates.create_template_for_lobe
        )

    regions = [
        Region(
            RegionId.ORIGINAL_IMAGE,
            RegionSetId.ORIGINAL_IMAGE,
            None,
            templates.create_template_for_original_image,
        ),
        Region(
            RegionId.LUNG_ROI,
            RegionSetId.LUNG_ROI,
            RegionId.ORIGINAL_IMAGE,
            templates.create_template_for_lung_roi,
        ),
        Region(
            RegionId.LUNGS,
            RegionSetId.LUNGS,
            RegionId.LUNG_ROI,
            templates.create_template_for_lungs,
        ),
        Region(
            RegionId.LEFT_LUNG,
            RegionSetId.SINGLE_LUNG,
            RegionId.LUNGS,
            templates.create_template_for_single_lung,
        ),
        Region(
            RegionId.RIGHT_LUNG,
            RegionSetId.SINGLE_LUNG,
            RegionId.LUNGS,
            templates.create_template_for_single_lung,
        ),
        lobe(RegionId.RIGHT_UPPER_LOBE, RegionId.RIGHT_LUNG),
        lobe(RegionId.RIGHT_MIDDLE_LOBE, RegionId.RIGHT_LUNG),
        lobe(RegionId.RIGHT_LOWER_LOBE, RegionId.RIGHT_LUNG),
        lobe(RegionId.LEFT_UPPER_LOBE, RegionId.LEFT_LUNG),
        lobe(RegionId.LEFT_LOWER_LOBE, RegionId.LEFT_LUNG),
    ]
    return RegionRegistry(region_sets, regions)
