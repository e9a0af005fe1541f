"""Integration tests for PatchManager."""

from __future__ import annotations

import pytest

from hotpatch.config import Settings
from hotpatch.errors import SourceNotFoundError, StorageUnavailableError
from hotpatch.manager import PatchManager
from hotpatch.store.version_store import MemoryVersionStore

HOST = "host-loader"


class PluginLoader:
    """Stand-in for a plugin's execution context."""


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Create Settings pointing at a temporary patch directory."""
    return Settings(
        patch_dir=str(tmp_path / "apatch"),
        version_store="file",
        version_file=str(tmp_path / "state.json"),
    )


@pytest.fixture
def store() -> MemoryVersionStore:
    """Create an in-memory version store."""
    return MemoryVersionStore()


@pytest.fixture
def manager(fixer, settings, store) -> PatchManager:
    """Create a PatchManager wired with the recording fixer."""
    return PatchManager(fixer, HOST, settings=settings, version_store=store)


def test_startup_then_runtime_add(manager, fixer, make_bundle):
    """Test the host lifecycle: init, bulk apply, then a runtime add."""
    assert manager.init("1.0")
    manager.load_patches()

    entity = manager.add_patch(make_bundle(extra={"Extra-Classes": "com.app.C"}))

    assert entity is not None
    assert [call[1] for call in fixer.applied] == [HOST, HOST]
    assert manager.patches() == (entity,)


def test_restart_same_version_reapplies(fixer, settings, store, make_bundle):
    """Test that a restart with the same version reloads and applies stored bundles."""
    first = PatchManager(fixer, HOST, settings=settings, version_store=store)
    first.init("1.0")
    first.add_patch(make_bundle())

    second = PatchManager(fixer, HOST, settings=settings, version_store=store)
    second.init("1.0")
    report = second.load_patches()

    assert [e.name for e in second.patches()] == ["fix-001"]
    assert len(report.applied) == 1


def test_restart_new_version_discards(fixer, settings, store, make_bundle):
    """Test that upgrading the host drops every stored bundle."""
    first = PatchManager(fixer, HOST, settings=settings, version_store=store)
    first.init("1.0")
    first.add_patch(make_bundle())

    second = PatchManager(fixer, HOST, settings=settings, version_store=store)
    second.init("2.0")

    assert second.patches() == ()
    assert store.get("version") == "2.0"


def test_plugin_binding_after_runtime_add(manager, fixer, make_bundle):
    """Test that a deferred sub-patch is applied once its plugin registers."""
    manager.init("1.0")
    entity = manager.add_patch(make_bundle(extra={"Plugin-Classes": "p.A"}))
    assert fixer.applied == []

    plugin = PluginLoader()
    manager.load_patch("Plugin", plugin)

    assert fixer.applied == [(entity.source_file, plugin, ("p.A",))]


def test_add_patch_already_loaded(manager, make_bundle):
    """Test that adding the same bundle twice yields nothing new."""
    manager.init("1.0")
    src = make_bundle()

    assert manager.add_patch(src) is not None
    assert manager.add_patch(src) is None
    assert len(manager.patches()) == 1


def test_add_patch_missing_source(manager, tmp_path):
    """Test that a missing source propagates SourceNotFoundError."""
    manager.init("1.0")

    with pytest.raises(SourceNotFoundError):
        manager.add_patch(tmp_path / "missing.apatch")


def test_add_patch_before_init(manager, make_bundle):
    """Test that adding before a successful init raises StorageUnavailableError."""
    with pytest.raises(StorageUnavailableError):
        manager.add_patch(make_bundle())


def test_remove_all_patches(manager, fixer, store, settings, make_bundle):
    """Test that remove_all_patches empties storage and clears the marker."""
    manager.init("1.0")
    manager.load_patches()
    entity = manager.add_patch(make_bundle())

    manager.remove_all_patches()

    assert manager.patches() == ()
    assert store.get("version") is None
    assert fixer.cleaned == [entity.source_file]
    assert not manager.coordinator.is_applied(entity.source_file, HOST, "fix-001")


def test_remove_patch_then_readd(manager, fixer, make_bundle):
    """Test that a removed bundle can be added and applied again."""
    manager.init("1.0")
    manager.load_patches()
    src = make_bundle()
    manager.add_patch(src)

    assert manager.remove_patch("fix-001") is True
    assert manager.remove_patch("fix-001") is False

    manager.add_patch(src)
    assert len(fixer.applied) == 2


def test_default_version_store_from_settings(fixer, settings):
    """Test that the manager builds the configured file store when none is given."""
    manager = PatchManager(fixer, HOST, settings=settings)

    manager.init("3.1")

    assert manager.gate.stored_version() == "3.1"
