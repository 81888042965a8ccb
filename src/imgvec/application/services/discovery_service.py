from __future__ import annotations

import logging
from pathlib import Path

from imgvec.core.errors import FilesystemError
from imgvec.domain.models.asset import SourceAsset, WorkPlan
from imgvec.infrastructure.artifacts.store import ArtifactStore

logger = logging.getLogger(__name__)


class DiscoveryService:

    ALLOWED_EXTENSIONS = {
        ".jpg",
        ".jpeg",
        ".png",
        ".webp",
        ".bmp",
        ".gif",
    }

    def discover(self, directory: Path) -> list[SourceAsset]:
        """List the images directly inside *directory*, sorted by file name."""
        root = directory.expanduser().resolve()
        if not root.is_dir():
            raise FilesystemError(f"Source directory not found: {root}")
        try:
            entries = list(root.iterdir())
        except OSError as exc:
            raise FilesystemError(f"Cannot list source directory {root}: {exc}") from exc

        matched = [
            path
            for path in entries
            if path.is_file() and path.suffix.lower() in self.ALLOWED_EXTENSIONS
        ]
        return [SourceAsset(path=path, name=path.stem) for path in sorted(matched, key=lambda p: p.name)]

    def partition(self, assets: list[SourceAsset], artifact_store: ArtifactStore) -> WorkPlan:
        """Split assets into those still needing a vector and those already done.

        An asset counts as done when its artifact file exists; contents are
        not inspected.
        """
        artifact_store.ensure_layout()
        plan = WorkPlan()
        for asset in assets:
            if artifact_store.exists(asset.name):
                plan.skipped.append(asset)
            else:
                plan.unprocessed.append(asset)
        logger.info(
            "%d asset(s) found, %d already vectorized, %d to process",
            len(assets),
            len(plan.skipped),
            len(plan.unprocessed),
        )
        return plan
