from .enums import RegionId, RegionSetId, ResultKind
from .exceptions import (
    ContextHierarchyError,
    MissingAncestorError,
    RecursivePluginCallError,
    UnknownPluginError,
    UnknownRegionError,
    UnknownRegionSetError,
    UnknownRequestedRegionError,
    UnrelatedRegionSetsError,
)
from .image import RegionImage
from .registry import Region, RegionRegistry, RegionSet, build_lung_registry
from .results import CompositeResult, PluginResult, classify_result, reduce_result_to_region
from .dataset import Dataset
from .cache import CacheInfo, CallStack, DependencyTracker
from .templates import ImageTemplates, TemplateCallback
from .hierarchy import ContextHierarchy, ResolutionRequest
from .session import ContextSession, DatasetResults

__all__ = [
    "RegionId",
    "RegionSetId",
    "ResultKind",
    "ContextHierarchyError",
    "MissingAncestorError",
    "RecursivePluginCallError",
    "UnknownPluginError",
    "UnknownRegionError",
    "UnknownRegionSetError",
    "UnknownRequestedRegionError",
    "UnrelatedRegionSetsError",
    "RegionImage",
    "Region",
    "RegionRegistry",
    "RegionSet",
    "build_lung_registry",
    "CompositeResult",
    "PluginResult",
    "classify_result",
    "reduce_result_to_region",
    "Dataset",
    "CacheInfo",
    "CallStack",
    "DependencyTracker",
    "ImageTemplates",
    "TemplateCallback",
    "ContextHierarchy",
    "ResolutionRequest",
    "ContextSession",
    "DatasetResults",
]
