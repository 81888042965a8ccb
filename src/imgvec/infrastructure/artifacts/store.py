from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ValidationError as PydanticValidationError

from imgvec.core.errors import FilesystemError, ValidationError
from imgvec.core.files import ensure_directory, write_text_atomic
from imgvec.domain.models.vector import VectorRecord

ARTIFACT_SUFFIX = ".json"


class VectorArtifact(BaseModel):
    vector: list[float]
    img_name: str


class ArtifactStore:
    """One JSON file per vectorized image, keyed by the image's base name."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = base_dir

    def ensure_layout(self) -> None:
        try:
            ensure_directory(self.base_dir)
        except OSError as exc:
            raise FilesystemError(f"Cannot create artifact directory {self.base_dir}: {exc}") from exc

    def artifact_path_for(self, name: str) -> Path:
        return self.base_dir / f"{name}{ARTIFACT_SUFFIX}"

    def exists(self, name: str) -> bool:
        return self.artifact_path_for(name).is_file()

    def write_record(self, name: str, vector: list[float], img_name: str) -> Path:
        dst = self.artifact_path_for(name)
        body = VectorArtifact(vector=vector, img_name=img_name)
        try:
            write_text_atomic(dst, body.model_dump_json())
        except OSError as exc:
            raise FilesystemError(f"Cannot write artifact {dst}: {exc}") from exc
        return dst

    def read_record(self, path: Path) -> VectorRecord:
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise FilesystemError(f"Cannot read artifact {path}: {exc}") from exc
        try:
            artifact = VectorArtifact.model_validate(json.loads(raw))
        except (json.JSONDecodeError, PydanticValidationError) as exc:
            raise ValidationError(f"Malformed artifact {path.name}: {exc}") from exc
        if not artifact.vector:
            raise ValidationError(f"Artifact {path.name} has an empty vector")
        return VectorRecord(vector=artifact.vector, name=artifact.img_name)

    def list_artifacts(self) -> list[Path]:
        if not self.base_dir.is_dir():
            raise FilesystemError(f"Artifact directory not found: {self.base_dir}")
        try:
            entries = list(self.base_dir.iterdir())
        except OSError as exc:
            raise FilesystemError(f"Cannot list artifact directory {self.base_dir}: {exc}") from exc
        return sorted(
            (p for p in entries if p.is_file() and p.suffix.lower() == ARTIFACT_SUFFIX and not p.name.startswith(".")),
            key=lambda p: p.name,
        )
