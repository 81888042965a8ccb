from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from imgvec.core.config import EmbeddingSettings
from imgvec.core.errors import ExternalServiceError, FilesystemError, ValidationError
from imgvec.infrastructure.embedding.client import ArkEmbeddingClient, image_data_uri


def _settings(**overrides) -> EmbeddingSettings:
    values = {
        "api_key": "secret-key",
        "base_url": "https://ark.example.test",
        "model": "test-model",
        "timeout_seconds": 5.0,
        "max_retries": 2,
        "retry_delay_seconds": 0.0,
    }
    values.update(overrides)
    return EmbeddingSettings(**values)


def _client(handler, **overrides) -> ArkEmbeddingClient:
    return ArkEmbeddingClient(_settings(**overrides), transport=httpx.MockTransport(handler))


def test_embed_posts_multimodal_request_and_returns_vector() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": {"embedding": [0.1, 0.2, 0.3], "object": "embedding"}})

    with _client(handler) as client:
        vector = client.embed("data:image/jpeg;base64,AAAA")

    assert vector == [0.1, 0.2, 0.3]
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/api/v3/embeddings/multimodal"
    assert request.headers["Authorization"] == "Bearer secret-key"
    assert json.loads(request.content) == {
        "model": "test-model",
        "input": [{"type": "image_url", "image_url": {"url": "data:image/jpeg;base64,AAAA"}}],
    }


def test_embed_uses_explicit_model_id() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"data": {"embedding": [1.0]}})

    with _client(handler) as client:
        client.embed("data:image/png;base64,AA", "other-model")

    assert bodies[0]["model"] == "other-model"


def test_server_errors_are_retried_until_success() -> None:
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        if len(attempts) < 3:
            return httpx.Response(503, json={"error": {"message": "busy", "type": "ServiceUnavailable"}})
        return httpx.Response(200, json={"data": {"embedding": [1.0, 2.0]}})

    with _client(handler) as client:
        assert client.embed("data:image/png;base64,AA") == [1.0, 2.0]

    assert len(attempts) == 3


def test_transport_errors_exhaust_retries() -> None:
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        raise httpx.ConnectError("connection refused", request=request)

    with _client(handler, max_retries=1) as client:
        with pytest.raises(ExternalServiceError, match="connection refused"):
            client.embed("data:image/png;base64,AA")

    assert len(attempts) == 2


def test_client_errors_are_not_retried_and_carry_provider_message() -> None:
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        return httpx.Response(401, json={"error": {"message": "invalid api key", "type": "AuthenticationError"}})

    with _client(handler) as client:
        with pytest.raises(ExternalServiceError) as excinfo:
            client.embed("data:image/png;base64,AA")

    assert "invalid api key (AuthenticationError)" in str(excinfo.value)
    assert "401" in str(excinfo.value)
    assert len(attempts) == 1


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"data": []}),
        httpx.Response(200, json={"data": {"embedding": []}}),
        httpx.Response(200, json={"unexpected": True}),
    ],
)
def test_malformed_responses_raise_validation_error(response: httpx.Response) -> None:
    with _client(lambda request: response) as client:
        with pytest.raises(ValidationError):
            client.embed("data:image/png;base64,AA")


def test_health_check_embeds_text_probe() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"data": {"embedding": [0.0] * 8}})

    with _client(handler) as client:
        status = client.health_check()

    assert status.ok
    assert "dimension 8" in status.message
    assert bodies[0]["input"] == [{"type": "text", "text": "health check"}]


def test_health_check_reports_failure_without_raising() -> None:
    with _client(lambda request: httpx.Response(403, json={"error": {"message": "forbidden"}})) as client:
        status = client.health_check()

    assert not status.ok
    assert "forbidden" in status.message


def test_image_data_uri_uses_suffix_mime_type(tmp_path: Path) -> None:
    image = tmp_path / "photo.WEBP"
    image.write_bytes(b"\x00\x01")

    assert image_data_uri(image) == "data:image/webp;base64,AAE="


def test_image_data_uri_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FilesystemError):
        image_data_uri(tmp_path / "missing.jpg")
