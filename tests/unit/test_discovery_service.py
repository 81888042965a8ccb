from __future__ import annotations

from pathlib import Path

import pytest

from imgvec.application.services.discovery_service import DiscoveryService
from imgvec.core.errors import FilesystemError
from imgvec.infrastructure.artifacts.store import ArtifactStore


def test_discover_filters_supported_images_sorted_by_name(tmp_path: Path, write_images) -> None:
    write_images(tmp_path, ["b.PNG", "a.jpg", "c.jpeg", "notes.txt", "d.webp", "e.bmp", "f.gif", "g.tiff"])
    nested = tmp_path / "nested"
    write_images(nested, ["z.jpg"])

    assets = DiscoveryService().discover(tmp_path)

    assert [asset.path.name for asset in assets] == ["a.jpg", "b.PNG", "c.jpeg", "d.webp", "e.bmp", "f.gif"]
    assert [asset.name for asset in assets] == ["a", "b", "c", "d", "e", "f"]
    assert all(asset.path.is_absolute() for asset in assets)


def test_discover_missing_directory_raises(tmp_path: Path) -> None:
    with pytest.raises(FilesystemError, match="not found"):
        DiscoveryService().discover(tmp_path / "missing")


def test_discover_empty_directory_returns_nothing(tmp_path: Path) -> None:
    assert DiscoveryService().discover(tmp_path) == []


def test_partition_creates_artifact_dir_and_treats_everything_as_unprocessed(tmp_path: Path, write_images) -> None:
    write_images(tmp_path, ["a.jpg", "b.jpg"])
    service = DiscoveryService()
    store = ArtifactStore(tmp_path / "vector")

    plan = service.partition(service.discover(tmp_path), store)

    assert store.base_dir.is_dir()
    assert [asset.name for asset in plan.unprocessed] == ["a", "b"]
    assert plan.skipped == []


def test_partition_skips_assets_with_existing_artifacts(tmp_path: Path, write_images, write_artifact) -> None:
    write_images(tmp_path, ["a.jpg", "b.png", "c.jpg"])
    write_artifact(tmp_path / "vector", "b", [1.0, 2.0], img_name="b.png")
    service = DiscoveryService()

    plan = service.partition(service.discover(tmp_path), ArtifactStore(tmp_path / "vector"))

    assert [asset.name for asset in plan.unprocessed] == ["a", "c"]
    assert [asset.name for asset in plan.skipped] == ["b"]
