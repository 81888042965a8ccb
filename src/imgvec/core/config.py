from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import dotenv_values

from imgvec.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

ENV_FILE_NAMES = (".env.local", ".env")
PROJECT_MARKER = "pyproject.toml"

DEFAULT_ARK_BASE_URL = "https://ark.cn-beijing.volces.com"
DEFAULT_EMBEDDING_MODEL = "doubao-embedding-vision-250615"

SUMMARY_VARIABLES = (
    "ARK_API_KEY",
    "ARK_BASE_URL",
    "ARK_TIMEOUT",
    "ARK_EMBEDDING_MODEL",
    "IMGVEC_QDRANT_URL",
    "IMGVEC_QDRANT_PATH",
    "IMGVEC_QDRANT_API_KEY",
    "IMGVEC_QDRANT_TIMEOUT_SECONDS",
)


@dataclass(frozen=True)
class EmbeddingSettings:
    api_key: str
    base_url: str = DEFAULT_ARK_BASE_URL
    model: str = DEFAULT_EMBEDDING_MODEL
    timeout_seconds: float = 30.0
    max_retries: int = 2
    retry_delay_seconds: float = 1.0


@dataclass(frozen=True)
class VectorStoreSettings:
    url: str | None = None
    path: str | None = None
    api_key: str | None = None
    prefer_grpc: bool = False
    timeout_seconds: float = 10.0


def find_env_file(start_dir: Path | None = None) -> Path | None:
    """Walk upward from *start_dir* looking for ``.env.local`` or ``.env``.

    The search stops at the first directory holding a ``pyproject.toml``,
    so a checkout never picks up env files from its parent directories.
    """
    current = (start_dir or Path.cwd()).expanduser().resolve()
    while True:
        for name in ENV_FILE_NAMES:
            candidate = current / name
            if candidate.is_file():
                return candidate
        if (current / PROJECT_MARKER).exists() or current.parent == current:
            return None
        current = current.parent


def load_env(env_file: Path | None = None, start_dir: Path | None = None) -> Path | None:
    """Apply an env file to ``os.environ`` without overriding set variables.

    Returns the file that was applied, or ``None`` when nothing was found.
    """
    path = env_file.expanduser().resolve() if env_file else find_env_file(start_dir)
    if path is None:
        logger.info("No .env file found; using process environment only")
        return None
    if not path.is_file():
        raise ConfigurationError(f"Env file not found: {path}")

    loaded = 0
    for key, value in dotenv_values(path).items():
        if value is None or key in os.environ:
            continue
        os.environ[key] = value
        loaded += 1
    logger.info("Loaded %d variable(s) from %s", loaded, path)
    return path


def load_embedding_settings() -> EmbeddingSettings:
    api_key = (os.getenv("ARK_API_KEY") or "").strip()
    if not api_key:
        raise ConfigurationError("ARK_API_KEY is not set. Configure it in .env.local or the environment.")

    base_url = (os.getenv("ARK_BASE_URL") or "").strip() or DEFAULT_ARK_BASE_URL
    model = (os.getenv("ARK_EMBEDDING_MODEL") or "").strip() or DEFAULT_EMBEDDING_MODEL
    return EmbeddingSettings(
        api_key=api_key,
        base_url=base_url.rstrip("/"),
        model=model,
        timeout_seconds=_read_float_env("ARK_TIMEOUT", 30_000.0) / 1000.0,
        max_retries=_read_int_env("ARK_MAX_RETRIES", 2, minimum=0),
        retry_delay_seconds=_read_float_env("ARK_RETRY_DELAY", 1_000.0, allow_zero=True) / 1000.0,
    )


def load_vector_store_settings() -> VectorStoreSettings:
    url = (os.getenv("IMGVEC_QDRANT_URL") or "").strip() or None
    path = (os.getenv("IMGVEC_QDRANT_PATH") or "").strip() or None
    if url is None and path is None:
        raise ConfigurationError(
            "Vector store is not configured. Set IMGVEC_QDRANT_URL (server) or IMGVEC_QDRANT_PATH (embedded)."
        )
    return VectorStoreSettings(
        url=url,
        path=path,
        api_key=(os.getenv("IMGVEC_QDRANT_API_KEY") or "").strip() or None,
        prefer_grpc=_read_bool_env("IMGVEC_QDRANT_PREFER_GRPC", False),
        timeout_seconds=_read_float_env("IMGVEC_QDRANT_TIMEOUT_SECONDS", 10.0),
    )


def environment_summary() -> dict[str, str]:
    summary: dict[str, str] = {}
    for name in SUMMARY_VARIABLES:
        value = os.getenv(name)
        if not value:
            summary[name] = "(unset)"
        elif "KEY" in name or "PASSWORD" in name:
            summary[name] = "***"
        else:
            summary[name] = value
    return summary


def _read_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _read_float_env(name: str, default: float, *, allow_zero: bool = False) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if value > 0 or (allow_zero and value == 0):
        return value
    return default


def _read_int_env(name: str, default: int, *, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default
