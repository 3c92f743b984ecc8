"""In-memory memoized plugin execution.

:class:`DependencyTracker` runs plugins and remembers their results keyed by
``(plugin name, region, dataset uid)``. At most one computation per key is in
flight: concurrent requests for the same key wait for the first one and then
read its cached result.

While a plugin runs, every result it requests through its dataset is
recorded as a dependency of the run. The chain of running plugins is kept in
a :class:`CallStack`, which also detects plugins that end up requesting
their own result.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Dict, Hashable, List, Optional, Set, Tuple

from attrs import define, field, frozen

from .exceptions import RecursivePluginCallError
from .logging import get_logger

logger = get_logger(__name__)


@frozen
class Dependency:
    """Identity of a result another result was computed from."""

    plugin_name: str
    region: Hashable
    dataset_uid: str
    timestamp: float


@frozen
class CacheInfo:
    """Provenance of a computed result.

    Attributes:
        plugin_name: Name of the plugin that produced the result
        region: Region the plugin was run for
        dataset_uid: Dataset the plugin was run on
        plugin_version: Version of the plugin at the time of the run
        timestamp: Time of the run (seconds since the epoch)
        results_cached: Whether the result was stored for reuse
        dependencies: Results requested by the plugin while it ran
    """

    plugin_name: str
    region: Hashable
    dataset_uid: str
    plugin_version: int = 1
    timestamp: float = field(factory=time.time)
    results_cached: bool = True
    dependencies: Tuple[Dependency, ...] = ()

    def as_dependency(self) -> Dependency:
        return Dependency(self.plugin_name, self.region, self.dataset_uid, self.timestamp)


@define
class _Frame:
    plugin_name: str
    region: Hashable
    dependencies: List[Dependency] = field(factory=list)


class CallStack:
    """Chain of plugin runs in progress for one top-level request."""

    def __init__(self):
        self._frames: List[_Frame] = []

    def __len__(self) -> int:
        return len(self._frames)

    @property
    def chain(self) -> List[Tuple[str, Hashable]]:
        return [(f.plugin_name, f.region) for f in self._frames]

    def push(self, plugin_name: str, region: Hashable) -> None:
        """Enter a plugin run.

        Raises:
            RecursivePluginCallError: If the same plugin is already running for
                the same region further up the chain
        """
        if (plugin_name, region) in self.chain:
            logger.debug("Recursive request for %s at %s", plugin_name, region)
            raise RecursivePluginCallError(
                plugin_name, region, self.chain + [(plugin_name, region)]
            )
        self._frames.append(_Frame(plugin_name, region))

    def pop(self) -> List[Dependency]:
        return self._frames.pop().dependencies

    @property
    def dependencies(self) -> Tuple[Dependency, ...]:
        """Dependencies collected so far by the innermost run."""
        return tuple(self._frames[-1].dependencies) if self._frames else ()

    def add_dependency(self, dependency: Dependency) -> None:
        """Attach a dependency to the innermost running plugin, if any."""
        if not self._frames:
            return
        frame = self._frames[-1]
        if dependency not in frame.dependencies:
            frame.dependencies.append(dependency)


class DependencyTracker:
    """Runs plugins and caches their results in memory."""

    def __init__(self):
        self._results: Dict[Tuple[str, Hashable, str], Tuple[Any, CacheInfo]] = {}
        self._key_locks: Dict[Tuple[str, Hashable, str], threading.RLock] = {}
        self._in_progress: Set[Tuple[str, Hashable, str]] = set()
        self._lock = threading.Lock()

    def _lock_for(self, key) -> threading.RLock:
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.RLock()
            return lock

    def get_result(
        self,
        plugin,
        region_id: Hashable,
        dataset,
        dataset_results,
        call_stack: CallStack,
        allow_results_to_be_cached: bool = True,
    ) -> Tuple[Any, bool, CacheInfo]:
        """Return a plugin result for one region, running the plugin if needed.

        Args:
            plugin: RegionPlugin to run
            region_id: Region to run the plugin for
            dataset: Dataset to run on
            dataset_results: Object passed to the plugin as its ``dataset``
                for reading images, templates and other results
            call_stack: Chain of running plugins for this request
            allow_results_to_be_cached: Set to False to neither read nor
                store a cached value

        Returns:
            Tuple of (result, plugin_has_been_run, cache_info)

        Raises:
            RecursivePluginCallError: If the plugin is already running for the
                same region in this call chain, or on this thread
        """
        key = (plugin.name, region_id, dataset.uid)
        use_cache = allow_results_to_be_cached and plugin.allow_results_to_be_cached

        call_stack.push(plugin.name, region_id)
        try:
            with self._lock_for(key):
                # Only the thread holding the key lock can see its own key here
                with self._lock:
                    if key in self._in_progress:
                        logger.debug("Re-entered %s at %s on the same thread", plugin.name, region_id)
                        raise RecursivePluginCallError(plugin.name, region_id, call_stack.chain)
                    self._in_progress.add(key)
                try:
                    result, plugin_has_been_run, cache_info = self._get_or_run(
                        plugin, region_id, dataset, dataset_results, call_stack, use_cache
                    )
                finally:
                    with self._lock:
                        self._in_progress.discard(key)
        finally:
            call_stack.pop()

        call_stack.add_dependency(cache_info.as_dependency())
        return result, plugin_has_been_run, cache_info

    def _get_or_run(self, plugin, region_id, dataset, dataset_results, call_stack, use_cache):
        key = (plugin.name, region_id, dataset.uid)
        cached = self._results.get(key) if use_cache else None
        if cached is not None and cached[1].plugin_version == plugin.version:
            logger.debug("Cache hit for %s at %s (%s)", plugin.name, region_id, dataset.uid)
            return cached[0], False, cached[1]

        logger.debug("Running %s at %s (%s)", plugin.name, region_id, dataset.uid)
        result = plugin.run_plugin(dataset=dataset_results, region=region_id)
        cache_info = CacheInfo(
            plugin_name=plugin.name,
            region=region_id,
            dataset_uid=dataset.uid,
            plugin_version=plugin.version,
            results_cached=use_cache,
            dependencies=call_stack.dependencies,
        )
        if use_cache:
            self._results[key] = (result, cache_info)
        return result, True, cache_info

    def is_cached(self, plugin_name: str, region_id: Hashable, dataset_uid: str) -> bool:
        with self._lock:
            return (plugin_name, region_id, dataset_uid) in self._results

    def clear(self, dataset_uid: Optional[str] = None) -> None:
        """Drop cached results for one dataset, or all of them."""
        with self._lock:
            if dataset_uid is None:
                self._results.clear()
            else:
                for key in [k for k in self._results if k[2] == dataset_uid]:
                    del self._results[key]
            for key in [k for k in self._key_locks if dataset_uid in (None, k[2])]:
                if key not in self._in_progress:
                    del self._key_locks[key]
