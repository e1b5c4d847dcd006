"""Tests for dcpkit.orchestrator."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from dcpkit.config import load_config
from dcpkit.errors import MutationError
from dcpkit import registry as registry_module
from dcpkit.orchestrator import Orchestrator
from tests._fixtures.registry_builder import RegistryBuilder, sample_registry


def _orchestrator(builder: RegistryBuilder, config_text: str | None = None) -> Orchestrator:
    if config_text is not None:
        (builder.root / ".dcpkit.yml").write_text(config_text, encoding="utf-8")
    return Orchestrator(load_config(builder.root))


def test_run_query_uses_configured_registry_and_format(registry_builder: RegistryBuilder) -> None:
    registry_builder.write_registry(directory="data")
    orchestrator = _orchestrator(registry_builder, "registry:\n  path: data\nquery:\n  format: list\n")

    run = orchestrator.run_query("components.Icon*")

    assert run.text == "IconButton\nIconLink"
    assert run.result.count == 2
    assert run.output_path is None


def test_run_query_reuses_cached_registry(registry_builder: RegistryBuilder, monkeypatch) -> None:
    registry_builder.write_registry()
    orchestrator = _orchestrator(registry_builder)
    loads: list[Path] = []
    real_load = registry_module.load_registry

    def counting_load(path):
        loads.append(Path(path))
        return real_load(path)

    monkeypatch.setattr(registry_module, "load_registry", counting_load)

    orchestrator.run_query("tokens")
    orchestrator.run_query("components")

    assert len(loads) == 1


def test_run_query_reports_diagnostics(registry_builder: RegistryBuilder, caplog, monkeypatch) -> None:
    monkeypatch.setattr(logging.getLogger("dcpkit"), "propagate", True)
    registry_builder.write_registry()
    orchestrator = _orchestrator(registry_builder)

    with caplog.at_level("WARNING", logger="dcpkit"):
        run = orchestrator.run_query("components where name = 'Button' and broken", fmt="count")

    assert run.text == "1 components found"
    assert [diagnostic.code for diagnostic in run.diagnostics] == ["condition_dropped"]
    assert "broken" in caplog.text


def test_run_query_writes_uncoloured_output(registry_builder: RegistryBuilder) -> None:
    registry_builder.write_registry()
    orchestrator = _orchestrator(registry_builder)

    run = orchestrator.run_query("tokens.color.primary", output=registry_builder.root / "out" / "result.txt")

    assert run.output_path is not None
    text = run.output_path.read_text(encoding="utf-8")
    assert "\033[" not in text
    assert "color.primary: #112233" in text


def test_run_preview_with_patch_file(registry_builder: RegistryBuilder) -> None:
    mutated = sample_registry()
    mutated["components"][0]["props"].append({"name": "disabled"})
    original_path = registry_builder.write("before.json", sample_registry())
    mutated_path = registry_builder.write("after.json", mutated)
    patches_path = registry_builder.write(
        "patches.json",
        [{"op": "add", "path": "/components/0/props/-", "value": {"name": "disabled"}}],
    )
    orchestrator = _orchestrator(registry_builder)

    run = orchestrator.run_preview(
        original_path,
        mutated_path,
        patches_path=patches_path,
        fmt="json",
        output=registry_builder.root / "preview",
    )

    payload = json.loads(run.text)
    assert payload["summary"]["components_affected"] == ["Button"]
    assert run.output_path == registry_builder.root / "preview.json"
    assert run.output_path.exists()


def test_run_mutate_backs_up_and_writes(registry_builder: RegistryBuilder) -> None:
    registry_dir = registry_builder.write_registry()
    patches = registry_builder.write(
        "patches.json",
        [
            {"op": "replace", "path": "/tokens/color/primary/value", "value": "#000000"},
            {"op": "remove", "path": "/components/10"},
        ],
    )
    orchestrator = _orchestrator(registry_builder, "preview:\n  colorize: false\n")
    orchestrator.cache.get(registry_dir)

    run = orchestrator.run_mutate(registry_dir, patches)

    result = run.result
    assert result.successful == 1
    assert len(result.failed) == 1
    assert result.output_path == registry_dir / "registry.json"
    assert result.backup_path is not None
    assert result.backup_path.parent == registry_builder.root.resolve() / ".dcpkit" / "backups"
    assert registry_builder.read(result.backup_path) == sample_registry()
    written = registry_builder.read(result.output_path)
    assert written["tokens"]["color"]["primary"]["value"] == "#000000"
    assert orchestrator.cache.get(registry_dir)["tokens"]["color"]["primary"]["value"] == "#000000"
    assert run.preview.summary.change_types["replace"] == 1
    assert "\033[" not in run.text


def test_run_mutate_dry_run_and_custom_output(registry_builder: RegistryBuilder) -> None:
    registry_dir = registry_builder.write_registry()
    patches = registry_builder.write("patch.json", {"op": "add", "path": "/metadata/reviewed", "value": True})
    orchestrator = _orchestrator(registry_builder)

    dry = orchestrator.run_mutate(registry_dir, patches, dry_run=True)
    assert dry.result.dry_run is True
    assert dry.result.output_path is None
    assert "reviewed" not in registry_builder.read(registry_dir / "registry.json")["metadata"]

    target = registry_builder.root / "out" / "registry.json"
    written = orchestrator.run_mutate(registry_dir, patches, output=target, backup=False)
    assert written.result.output_path == target
    assert written.result.backup_path is None
    assert registry_builder.read(target)["metadata"]["reviewed"] is True


def test_run_mutate_skips_write_when_unchanged(registry_builder: RegistryBuilder) -> None:
    registry_dir = registry_builder.write_registry()
    patches = registry_builder.write("patch.json", [{"op": "test", "path": "/metadata/componentCount", "value": 4}])
    orchestrator = _orchestrator(registry_builder)

    run = orchestrator.run_mutate(registry_dir, patches)

    assert run.result.changed is False
    assert run.result.output_path is None
    assert run.result.backup_path is None


def test_run_mutate_atomic_failure_propagates(registry_builder: RegistryBuilder) -> None:
    registry_dir = registry_builder.write_registry()
    patches = registry_builder.write("patch.json", [{"op": "remove", "path": "/nope"}])
    orchestrator = _orchestrator(registry_builder)
    before = registry_builder.read(registry_dir / "registry.json")

    with pytest.raises(MutationError, match="Patch 1 failed"):
        orchestrator.run_mutate(registry_dir, patches, atomic=True)

    assert registry_builder.read(registry_dir / "registry.json") == before


def test_run_mutate_backs_up_the_file_as_stored(registry_builder: RegistryBuilder) -> None:
    registry_file = registry_builder.root / "registry" / "registry.json"
    registry_file.parent.mkdir()
    registry_file.write_text('{"components":[{"name":"Button","props":[]}]}', encoding="utf-8")
    original_bytes = registry_file.read_bytes()
    patches = registry_builder.write(
        "patch.json",
        [{"op": "add", "path": "/components/0/props/-", "value": {"name": "size"}}],
    )
    orchestrator = _orchestrator(registry_builder)

    run = orchestrator.run_mutate(registry_file.parent, patches)

    assert run.result.backup_path is not None
    assert run.result.backup_path.read_bytes() == original_bytes
    written = registry_builder.read(registry_file)
    assert written == {"components": [{"name": "Button", "props": [{"name": "size"}]}]}


def test_run_rollback_last_restores_previous_state(registry_builder: RegistryBuilder) -> None:
    registry_dir = registry_builder.write_registry()
    registry_file = registry_dir / "registry.json"
    original_bytes = registry_file.read_bytes()
    patches = registry_builder.write("patch.json", [{"op": "remove", "path": "/components/0"}])
    orchestrator = _orchestrator(registry_builder)
    mutation = orchestrator.run_mutate(registry_dir, patches)
    orchestrator.cache.get(registry_dir)

    run = orchestrator.run_rollback(registry_dir, last=True)

    assert run.source_backup == mutation.result.backup_path
    assert run.restored_path == registry_file
    assert registry_file.read_bytes() == original_bytes
    assert run.safety_backup is not None
    assert run.safety_backup.name.startswith("rollback-backup-")
    assert len(registry_builder.read(run.safety_backup)["components"]) == 3
    assert len(orchestrator.cache.get(registry_dir)["components"]) == 4


def test_run_rollback_from_explicit_backup_without_safety_copy(registry_builder: RegistryBuilder) -> None:
    registry_dir = registry_builder.write_registry()
    backup = registry_builder.write("saved.json", {"components": [{"name": "Only"}]})
    orchestrator = _orchestrator(registry_builder)

    run = orchestrator.run_rollback(registry_dir, backup_path=backup, backup=False)

    assert run.safety_backup is None
    assert registry_builder.read(registry_dir / "registry.json") == {"components": [{"name": "Only"}]}
    assert orchestrator.list_rollback_points() == []


def test_run_rollback_requires_a_source(registry_builder: RegistryBuilder) -> None:
    registry_dir = registry_builder.write_registry()
    orchestrator = _orchestrator(registry_builder)

    with pytest.raises(MutationError, match="No backups found"):
        orchestrator.run_rollback(registry_dir, last=True)
    with pytest.raises(MutationError, match="Choose a backup"):
        orchestrator.run_rollback(registry_dir)


def test_list_and_cleanup_rollback_points(registry_builder: RegistryBuilder) -> None:
    registry_dir = registry_builder.write_registry()
    orchestrator = _orchestrator(registry_builder)
    for index in range(3):
        patches = registry_builder.write(
            f"patch{index}.json",
            [{"op": "add", "path": f"/metadata/step{index}", "value": index}],
        )
        orchestrator.run_mutate(registry_dir, patches)

    points = orchestrator.list_rollback_points()
    assert len(points) == 3
    assert all(point.kind == "registry-backup" for point in points)
    assert points[0].created >= points[-1].created

    removed = orchestrator.cleanup_backups(keep=1)
    assert len(removed) == 2
    assert [point.path for point in orchestrator.list_rollback_points()] == [points[0].path]
