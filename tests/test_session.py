"""
Tests for ContextSession and DatasetResults.

Focus on what happens when plugins request other results while running:
dependency recording, recursion detection and cache clearing.
"""

import pytest

from synthetic_lungs import make_dataset

from lungctx import (
    ContextSession,
    DatasetResults,
    RecursivePluginCallError,
    RegionId,
    RegionSetId,
    UnknownPluginError,
)
from lungctx.plugins import RegionVolume, get_plugin_manager


class TestSessionSetup:
    """Tests for creating sessions and registering plugins."""

    def test_builtin_plugins_registered(self, session):
        assert set(session.plugin_names()) >= {
            "Original Image",
            "Density Threshold",
            "Otsu Lung Segmentation",
            "Region Volume",
        }

    def test_without_builtin_plugins(self):
        assert ContextSession(register_builtin_plugins=False).plugin_names() == []

    def test_existing_plugin_manager_keeps_its_plugins(self):
        pm = get_plugin_manager()
        volume = RegionVolume()
        pm.register(volume)
        session = ContextSession(plugin_manager=pm)
        assert session.get_plugin("Region Volume") is volume
        assert session.plugin_names().count("Region Volume") == 1

    def test_duplicate_name_rejected(self, session):
        with pytest.raises(ValueError, match="already registered"):
            session.register_plugin(RegionVolume())

    def test_unknown_plugin(self, results):
        with pytest.raises(UnknownPluginError) as excinfo:
            results.get_result("Airway Tree", RegionId.LUNGS)
        assert "Region Volume" in excinfo.value.available

    def test_open(self, session, lung_dataset):
        results = session.open(lung_dataset)
        assert isinstance(results, DatasetResults)
        assert results.uid == "synthetic"
        assert results.original_image is lung_dataset.image
        assert repr(results) == "DatasetResults(uid='synthetic')"

    def test_get_template_image_resolves_names(self, results):
        assert results.get_template_image("left_lung").shape == (10, 12, 7)


class TestNestedRequests:
    """Plugins requesting other results while they run."""

    def test_dependencies_recorded(self, make_plugin, results):
        make_plugin("Lobe Plugin", RegionSetId.LOBE)

        def use_lobes(dataset, region):
            return len(dataset.get_result("Lobe Plugin", RegionSetId.LOBE))

        make_plugin("Lobe Count", RegionSetId.LUNGS, make_result=use_lobes)
        count, info = results.get_result_with_cache_info("Lobe Count", RegionId.LUNGS)

        assert count == 5
        assert {d.plugin_name for d in info.dependencies} == {"Lobe Plugin"}
        assert {d.region for d in info.dependencies} == {
            RegionId.RIGHT_UPPER_LOBE,
            RegionId.RIGHT_MIDDLE_LOBE,
            RegionId.RIGHT_LOWER_LOBE,
            RegionId.LEFT_UPPER_LOBE,
            RegionId.LEFT_LOWER_LOBE,
        }
        assert all(d.dataset_uid == "synthetic" for d in info.dependencies)

    def test_image_reads_are_dependencies(self, results):
        _, info = results.get_result_with_cache_info("Density Threshold", RegionId.LUNG_ROI)
        assert [(d.plugin_name, d.region) for d in info.dependencies] == [
            ("Original Image", RegionId.ORIGINAL_IMAGE)
        ]

    def test_top_level_requests_have_no_dependencies(self, make_plugin, results):
        make_plugin("Lobe Plugin", RegionSetId.LOBE)
        _, info = results.get_result_with_cache_info("Lobe Plugin", RegionId.LEFT_UPPER_LOBE)
        assert info.dependencies == ()

    def test_direct_recursion(self, make_plugin, results):
        def ask_self(dataset, region):
            return dataset.get_result("Self Asking", region)

        plugin = make_plugin("Self Asking", RegionSetId.LUNGS, make_result=ask_self)
        with pytest.raises(RecursivePluginCallError) as excinfo:
            results.get_result("Self Asking", RegionId.LUNGS)
        assert excinfo.value.plugin_name == "Self Asking"
        assert plugin.calls == [RegionId.LUNGS]

    def test_indirect_recursion(self, make_plugin, results):
        make_plugin(
            "Ping", RegionSetId.LUNGS, make_result=lambda ds, region: ds.get_result("Pong", region)
        )
        make_plugin(
            "Pong", RegionSetId.LUNGS, make_result=lambda ds, region: ds.get_result("Ping", region)
        )
        with pytest.raises(RecursivePluginCallError) as excinfo:
            results.get_result("Ping", RegionId.LUNGS)
        assert [name for name, _ in excinfo.value.chain] == ["Ping", "Pong", "Ping"]

    def test_same_plugin_for_child_regions_is_allowed(self, make_plugin, results):
        def describe(dataset, region):
            if region == RegionId.LUNGS:
                return "lungs"
            return "lung"

        make_plugin("Any Plugin", RegionSetId.ANY, make_result=describe)

        def combine(dataset, region):
            return [dataset.get_result("Any Plugin", r) for r in (RegionId.LUNGS, RegionId.LEFT_LUNG)]

        make_plugin("Combiner", RegionSetId.LUNGS, make_result=combine)
        assert results.get_result("Combiner", RegionId.LUNGS) == ["lungs", "lung"]

    def test_failed_run_leaves_no_partial_state(self, make_plugin, results):
        attempts = []

        def flaky(dataset, region):
            attempts.append(region)
            if len(attempts) == 1:
                raise RuntimeError("first attempt fails")
            return "ok"

        make_plugin("Flaky", RegionSetId.LUNGS, make_result=flaky)
        with pytest.raises(RuntimeError):
            results.get_result("Flaky", RegionId.LUNGS)
        assert results.get_result("Flaky", RegionId.LUNGS) == "ok"


class TestCacheControl:
    """Tests for bypassing and clearing cached results."""

    def test_bypass_cache(self, make_plugin, results):
        plugin = make_plugin("Lobe Plugin", RegionSetId.LOBE)
        results.get_result("Lobe Plugin", RegionId.LEFT_UPPER_LOBE)
        results.get_result("Lobe Plugin", RegionId.LEFT_UPPER_LOBE, allow_results_to_be_cached=False)
        assert len(plugin.calls) == 2

    def test_clear_cache_for_dataset(self, make_plugin, session, lung_dataset):
        plugin = make_plugin("Lobe Plugin", RegionSetId.LOBE)
        other = make_dataset(uid="other", seed=1)
        for dataset in (lung_dataset, other):
            session.open(dataset).get_result("Lobe Plugin", RegionId.LEFT_UPPER_LOBE)

        session.clear_cache("other")
        for dataset in (lung_dataset, other):
            session.open(dataset).get_result("Lobe Plugin", RegionId.LEFT_UPPER_LOBE)
        assert len(plugin.calls) == 3

        session.clear_cache()
        session.open(lung_dataset).get_result("Lobe Plugin", RegionId.LEFT_UPPER_LOBE)
        assert len(plugin.calls) == 4

    def test_results_are_per_dataset(self, make_plugin, session, lung_dataset):
        plugin = make_plugin("Lobe Plugin", RegionSetId.LOBE)
        session.open(lung_dataset).get_result("Lobe Plugin", RegionId.LEFT_UPPER_LOBE)
        session.open(make_dataset(uid="second")).get_result("Lobe Plugin", RegionId.LEFT_UPPER_LOBE)
        assert len(plugin.calls) == 2
