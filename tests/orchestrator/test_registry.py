"""
Tests for the Helper Registry.

============================================================
TEST COVERAGE
============================================================
1. Descriptor parsing and discovery
2. Namespace resolution and base paths
3. Version gate
4. Failure isolation while loading
5. Factory dependency injection
============================================================
"""

import logging
from unittest.mock import MagicMock

import pytest

from core.constants import DEFAULT_NAMESPACE, THIRD_PARTY_NAMESPACE
from helpers import HelperUnit, UpdateNotificationHelper
from orchestrator.models import ModuleDescriptor, parse_descriptors
from orchestrator.registry import HelperFactory, HelperRegistry, discover_identities


# ============================================================
# TEST HELPERS
# ============================================================

class PlainHelper(HelperUnit):
    pass


class NeedsNewerHost(HelperUnit):
    requires_version = "99.0"


class NeedsOlderHost(HelperUnit):
    requires_version = "0.5.0"


class BadRequirement(HelperUnit):
    requires_version = "two"


class BrokenLoaded(HelperUnit):
    def loaded(self):
        raise RuntimeError("loaded failed")


def exploding_constructor():
    raise RuntimeError("constructor failed")


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def registry(tmp_path):
    return HelperRegistry(modules_root=tmp_path, host_version="1.0.0")


# ============================================================
# DISCOVERY TESTS
# ============================================================

class TestDiscovery:
    """Test descriptor parsing and identity discovery."""

    def test_parse_descriptors(self, caplog):
        descriptors = parse_descriptors({
            "modules": [
                {"module": "clock", "position": "top_left"},
                {"position": "bottom"},
                {"module": "MMM-Foo", "disabled": True, "config": {"a": 1}},
            ]
        })
        assert [d.identity for d in descriptors] == ["clock", "MMM-Foo"]
        assert descriptors[0].extra == {"position": "top_left"}
        assert descriptors[1].disabled is True
        assert descriptors[1].settings == {"a": 1}
        assert "no 'module' key" in caplog.text

    def test_parse_missing_module_list(self):
        assert parse_descriptors({}) == []

    def test_disabled_entries_skipped(self):
        descriptors = [
            ModuleDescriptor("clock"),
            ModuleDescriptor("weather", disabled=True),
        ]
        assert discover_identities(descriptors) == ["clock"]

    def test_first_occurrence_fixes_order(self):
        descriptors = [
            ModuleDescriptor("b"),
            ModuleDescriptor("a"),
            ModuleDescriptor("b"),
            ModuleDescriptor("c"),
            ModuleDescriptor("a"),
        ]
        assert discover_identities(descriptors) == ["b", "a", "c"]

    def test_disabled_duplicate_does_not_hide_enabled(self):
        descriptors = [
            ModuleDescriptor("a", disabled=True),
            ModuleDescriptor("a"),
        ]
        assert discover_identities(descriptors) == ["a"]

    def test_repeated_disabled_identity_yields_nothing(self):
        descriptors = [ModuleDescriptor("a", disabled=True) for _ in range(3)]
        assert discover_identities(descriptors) == []

    def test_mixed_occurrences_yield_one_identity(self):
        descriptors = [
            ModuleDescriptor("a", disabled=True),
            ModuleDescriptor("b"),
            ModuleDescriptor("a"),
            ModuleDescriptor("a", disabled=True),
        ]
        assert discover_identities(descriptors) == ["b", "a"]

    def test_registry_discover(self, registry):
        assert registry.discover([ModuleDescriptor("x"), ModuleDescriptor("x")]) == ["x"]


# ============================================================
# RESOLUTION TESTS
# ============================================================

class TestResolution:
    """Test namespace resolution and base paths."""

    def test_builtin_resolves_to_default_namespace(self, registry, tmp_path):
        registry.register("clock", PlainHelper, namespace=DEFAULT_NAMESPACE)
        instance = registry.load("clock")
        assert instance.namespace == DEFAULT_NAMESPACE
        assert instance.path == (tmp_path / "default" / "clock").resolve()
        assert instance.helper.name == "clock"
        assert instance.helper.path == instance.path

    def test_third_party_resolves_by_identity(self, registry, tmp_path):
        registry.register("vendor/MMM-Foo", PlainHelper)
        instance = registry.load("vendor/MMM-Foo")
        assert instance.namespace == THIRD_PARTY_NAMESPACE
        assert instance.name == "MMM-Foo"
        assert instance.helper.name == "MMM-Foo"
        assert instance.path == (tmp_path / "vendor" / "MMM-Foo").resolve()

    def test_default_namespace_only_for_builtin_names(self, registry):
        registry.register("MMM-Foo", PlainHelper, namespace=DEFAULT_NAMESPACE)
        assert registry.load("MMM-Foo") is None

    def test_third_party_shadowing_a_builtin_name(self, registry, tmp_path):
        registry.register("clock", PlainHelper)
        instance = registry.load("clock")
        assert instance.namespace == THIRD_PARTY_NAMESPACE
        assert instance.path == (tmp_path / "clock").resolve()

    def test_unknown_namespace_rejected(self, registry):
        with pytest.raises(ValueError):
            registry.register("x", PlainHelper, namespace="elsewhere")

    def test_describe(self, registry):
        registry.register_builtins({"updatenotification": UpdateNotificationHelper})
        registry.register("MMM-Foo", PlainHelper)
        assert registry.describe() == {
            DEFAULT_NAMESPACE: ["updatenotification"],
            THIRD_PARTY_NAMESPACE: ["MMM-Foo"],
        }
        assert registry.is_registered("updatenotification")
        assert not registry.is_registered("clock")

    def test_entry_points_registered(self, registry, monkeypatch):
        good = MagicMock()
        good.name = "MMM-Good"
        good.load.return_value = PlainHelper
        bad = MagicMock()
        bad.name = "MMM-Bad"
        bad.load.side_effect = ImportError("missing dependency")
        monkeypatch.setattr(
            "orchestrator.registry.entry_points",
            lambda group: [good, bad],
        )

        assert registry.register_entry_points() == ["MMM-Good"]
        assert registry.is_registered("MMM-Good")
        assert not registry.is_registered("MMM-Bad")


# ============================================================
# VERSION GATE TESTS
# ============================================================

class TestVersionGate:
    """Test the minimum host version check."""

    def test_unsatisfied_requirement_skipped(self, registry, caplog):
        registry.register("MMM-New", NeedsNewerHost)
        assert registry.load("MMM-New") is None
        assert "Version is incorrect. Skip module: 'MMM-New'" in caplog.text

    def test_satisfied_requirement_loaded(self, registry, caplog):
        caplog.set_level(logging.INFO)
        registry.register("MMM-Old", NeedsOlderHost)
        assert registry.load("MMM-Old") is not None
        assert "Version is ok!" in caplog.text

    def test_malformed_requirement_skipped(self, registry, caplog):
        registry.register("MMM-Bad", BadRequirement)
        assert registry.load("MMM-Bad") is None
        assert "Invalid version requirement" in caplog.text

    def test_no_requirement_skips_check(self, registry, caplog):
        caplog.set_level(logging.INFO)
        registry.register("MMM-Plain", PlainHelper)
        assert registry.load("MMM-Plain") is not None
        assert "Check host version" not in caplog.text


# ============================================================
# FAILURE ISOLATION TESTS
# ============================================================

class TestLoadFailures:
    """Test that load() never raises."""

    def test_missing_helper(self, registry, caplog):
        assert registry.load("MMM-Missing") is None
        assert "No helper found for module: MMM-Missing" in caplog.text

    def test_constructor_error(self, registry, caplog):
        registry.register("MMM-Explodes", exploding_constructor)
        assert registry.load("MMM-Explodes") is None
        assert "Could not construct helper: MMM-Explodes" in caplog.text
        assert "constructor failed" in caplog.text

    def test_loaded_error_keeps_helper(self, registry, caplog):
        registry.register("MMM-Loaded", BrokenLoaded)
        assert registry.load("MMM-Loaded") is not None
        assert "Error in loaded() of helper MMM-Loaded" in caplog.text

    def test_helper_rejecting_identity(self, registry):
        helper = MagicMock()
        helper.requires_version = None
        helper.set_name.side_effect = AttributeError("read-only")
        registry.register("MMM-Odd", lambda: helper)
        assert registry.load("MMM-Odd") is None


# ============================================================
# FACTORY TESTS
# ============================================================

class TestHelperFactory:
    """Test dependency injection by parameter name."""

    def test_injects_matching_dependencies(self):
        factory = HelperFactory({"host_version": "3.1", "unused": object()})
        helper = factory.create(UpdateNotificationHelper)
        assert helper.host_version == "3.1"

    def test_var_keyword_receives_everything(self):
        factory = HelperFactory({"a": 1, "b": 2})
        received = factory.create(lambda **kwargs: kwargs)
        assert received == {"a": 1, "b": 2}

    def test_no_parameters(self):
        assert isinstance(HelperFactory({"a": 1}).create(PlainHelper), PlainHelper)

    def test_shared_dependency_accessors(self):
        factory = HelperFactory()
        factory.add_shared_dependency("clock", "tick")
        assert factory.get_shared_dependency("clock") == "tick"
        assert factory.get_shared_dependency("missing") is None

    def test_registry_shares_host_version(self, registry):
        registry.register_builtins({"updatenotification": UpdateNotificationHelper})
        instance = registry.load("updatenotification")
        assert instance.helper.host_version == "1.0.0"
