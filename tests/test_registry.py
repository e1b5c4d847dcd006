"""Tests for registry loading, caching and output writing."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from dcpkit.errors import OutputWriteError, RegistryLoadError
from dcpkit.registry import (
    RegistryCache,
    load_registry,
    normalize_registry,
    read_registry_document,
    write_output,
)
from tests._fixtures.registry_builder import RegistryBuilder


def test_directory_resolves_to_registry_json(registry_builder: RegistryBuilder) -> None:
    registry_dir = registry_builder.write_registry()
    assert load_registry(registry_dir) == load_registry(registry_dir / "registry.json")


def test_missing_registry_error_carries_path(tmp_path: Path) -> None:
    with pytest.raises(RegistryLoadError) as excinfo:
        load_registry(tmp_path / "absent.json")
    assert excinfo.value.path == tmp_path / "absent.json"
    assert "not found" in str(excinfo.value)


def test_invalid_json_is_a_load_error(tmp_path: Path) -> None:
    path = tmp_path / "registry.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(RegistryLoadError, match="invalid JSON"):
        load_registry(path)


def test_non_object_root_is_rejected(registry_builder: RegistryBuilder) -> None:
    path = registry_builder.write("list.json", [1, 2])
    with pytest.raises(RegistryLoadError, match="JSON object"):
        load_registry(path)


def test_normalize_registry_fills_missing_sections() -> None:
    normalised = normalize_registry({"tokens": {"a": {"value": 1}}, "extra": True})
    assert normalised == {
        "tokens": {"a": {"value": 1}},
        "extra": True,
        "components": [],
        "themeContext": {},
        "metadata": {},
    }


def test_cache_reuses_document_until_invalidated(registry_builder: RegistryBuilder) -> None:
    registry_dir = registry_builder.write_registry()
    cache = RegistryCache()

    first = cache.get(registry_dir)
    second = cache.get(registry_dir / "registry.json")
    assert first is second

    cache.invalidate(registry_dir)
    third = cache.get(registry_dir)
    assert third is not first
    assert third == first

    cache.invalidate()
    assert cache.get(registry_dir) is not third


def test_cache_reloads_when_file_changes(registry_builder: RegistryBuilder) -> None:
    registry_dir = registry_builder.write_registry()
    cache = RegistryCache()
    first = cache.get(registry_dir)

    registry_file = registry_builder.write("registry/registry.json", {"components": [{"name": "Only"}]})
    stat = registry_file.stat()
    os.utime(registry_file, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))

    reloaded = cache.get(registry_dir)
    assert reloaded is not first
    assert [component["name"] for component in reloaded["components"]] == ["Only"]


def test_write_output_creates_parents(tmp_path: Path) -> None:
    target = write_output(tmp_path / "nested" / "out.txt", "hello")
    assert target.read_text(encoding="utf-8") == "hello"


def test_write_output_wraps_os_errors(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    with pytest.raises(OutputWriteError) as excinfo:
        write_output(blocker / "child.txt", "hello")
    assert excinfo.value.path == blocker / "child.txt"


def test_read_registry_document_keeps_absent_sections_absent(registry_builder: RegistryBuilder) -> None:
    path = registry_builder.write("registry.json", {"components": [{"name": "Button", "props": []}]})

    assert read_registry_document(path) == {"components": [{"name": "Button", "props": []}]}
    assert set(load_registry(path)) == {"components", "tokens", "themeContext", "metadata"}
