from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError as PydanticValidationError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from imgvec.core.config import EmbeddingSettings
from imgvec.core.errors import ExternalServiceError, FilesystemError, ValidationError
from imgvec.domain.models.vector import HealthStatus

logger = logging.getLogger(__name__)

EMBEDDINGS_PATH = "/api/v3/embeddings/multimodal"

IMAGE_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".gif": "image/gif",
}


class _EmbeddingData(BaseModel):
    embedding: list[float]


class EmbeddingResponse(BaseModel):
    data: _EmbeddingData


class _ProviderErrorDetail(BaseModel):
    message: str = ""
    type: str | None = None


class _ProviderErrorBody(BaseModel):
    error: _ProviderErrorDetail


class _TransientServiceError(ExternalServiceError):
    """Network failure, timeout, or 5xx; eligible for another attempt."""


def image_data_uri(path: Path) -> str:
    mime = IMAGE_MIME_TYPES.get(path.suffix.lower(), "application/octet-stream")
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise FilesystemError(f"Cannot read image {path}: {exc}") from exc
    encoded = base64.b64encode(raw).decode("ascii")
    return f"data:{mime};base64,{encoded}"


class ArkEmbeddingClient:
    """Multimodal embedding client for the Volcengine ARK (Doubao) API."""

    def __init__(
        self,
        settings: EmbeddingSettings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self._client = httpx.Client(
            base_url=settings.base_url,
            timeout=httpx.Timeout(settings.timeout_seconds),
            headers={
                "Authorization": f"Bearer {settings.api_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    @property
    def model_name(self) -> str:
        return self.settings.model

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ArkEmbeddingClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def embed(self, image_payload: str, model_id: str | None = None) -> list[float]:
        item = {"type": "image_url", "image_url": {"url": image_payload}}
        return self._embed_inputs([item], model_id or self.settings.model)

    def embed_text(self, text: str, model_id: str | None = None) -> list[float]:
        return self._embed_inputs([{"type": "text", "text": text}], model_id or self.settings.model)

    def health_check(self) -> HealthStatus:
        try:
            vector = self.embed_text("health check")
        except (ExternalServiceError, ValidationError) as exc:
            return HealthStatus(ok=False, message=str(exc))
        return HealthStatus(ok=True, message=f"{self.settings.model} reachable (dimension {len(vector)})")

    def _embed_inputs(self, inputs: list[dict[str, Any]], model_id: str) -> list[float]:
        body = {"model": model_id, "input": inputs}
        retrying = Retrying(
            stop=stop_after_attempt(self.settings.max_retries + 1),
            wait=wait_exponential(multiplier=self.settings.retry_delay_seconds),
            retry=retry_if_exception_type(_TransientServiceError),
            before_sleep=self._log_retry,
            reraise=True,
        )
        response = retrying(self._post, body)
        return self._decode(response)

    def _post(self, body: dict[str, Any]) -> httpx.Response:
        try:
            response = self._client.post(EMBEDDINGS_PATH, json=body)
        except httpx.TimeoutException as exc:
            raise _TransientServiceError(
                f"Embedding request timed out after {self.settings.timeout_seconds:g}s"
            ) from exc
        except httpx.TransportError as exc:
            raise _TransientServiceError(f"Embedding request failed: {exc}") from exc

        if response.status_code >= 500:
            raise _TransientServiceError(self._describe_failure(response))
        if response.status_code >= 400:
            raise ExternalServiceError(self._describe_failure(response))
        return response

    @staticmethod
    def _decode(response: httpx.Response) -> list[float]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise ValidationError("Failed to decode embedding response as JSON.") from exc
        try:
            parsed = EmbeddingResponse.model_validate(payload)
        except PydanticValidationError as exc:
            raise ValidationError(f"Embedding response has an unexpected shape: {exc}") from exc
        if not parsed.data.embedding:
            raise ValidationError("Embedding response contained an empty vector.")
        return parsed.data.embedding

    @staticmethod
    def _describe_failure(response: httpx.Response) -> str:
        prefix = f"Embedding API returned {response.status_code}"
        try:
            body = _ProviderErrorBody.model_validate(response.json())
        except (ValueError, PydanticValidationError):
            text = response.text.strip()
            return f"{prefix}: {text[:200]}" if text else prefix
        detail = body.error.message or "unknown error"
        if body.error.type:
            detail = f"{detail} ({body.error.type})"
        return f"{prefix}: {detail}"

    @staticmethod
    def _log_retry(retry_state) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Embedding attempt %d failed (%s); retrying in %.1fs",
            retry_state.attempt_number,
            exc,
            retry_state.next_action.sleep if retry_state.next_action else 0.0,
        )
