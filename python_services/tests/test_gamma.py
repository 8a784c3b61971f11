import json

import httpx
import pytest

from curriculum_service.gamma import (
    GammaProxyError,
    build_generation_payload,
    enhance_with_gamma,
    map_generation_response,
)
from shared.models import GammaEnhanceRequest


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_payload_renames_client_fields() -> None:
    request = GammaEnhanceRequest(
        content="Slides about cells",
        title="Cells",
        options={"tone": "playful", "imageSource": "noImages", "numCards": 6, "themeId": "chalk"},
    )

    payload = build_generation_payload(request)

    assert payload["inputText"] == "Slides about cells"
    assert payload["textMode"] == "useExisting"
    assert payload["format"] == "presentation"
    assert payload["numCards"] == 6
    assert payload["themeId"] == "chalk"
    assert payload["textOptions"] == {
        "amount": "standard",
        "tone": "playful",
        "audience": "students",
        "language": "en",
    }
    assert payload["imageOptions"] == {"source": "noImages"}


def test_response_mapping_falls_back_across_field_names() -> None:
    mapped = map_generation_response({"generationId": "g1", "previewUrl": "https://gamma.app/p/1"})

    assert mapped == {
        "documentId": "g1",
        "url": "https://gamma.app/p/1",
        "status": "success",
        "message": None,
        "generationId": "g1",
    }


@pytest.mark.asyncio
async def test_enhance_posts_to_generations(settings) -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("X-API-KEY")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "doc-1", "url": "https://gamma.app/docs/1", "status": "pending"})

    async with _client(handler) as client:
        result = await enhance_with_gamma(
            settings, GammaEnhanceRequest(content="c", title="t", format="document"), client=client
        )

    assert seen["url"] == "https://public-api.gamma.app/v1.0/generations"
    assert seen["key"] == "gamma-test-key"
    assert seen["body"]["format"] == "document"
    assert result["documentId"] == "doc-1"
    assert result["status"] == "pending"


@pytest.mark.asyncio
async def test_missing_key_is_server_error(settings) -> None:
    settings.gamma_api_key = None

    with pytest.raises(GammaProxyError) as excinfo:
        await enhance_with_gamma(settings, GammaEnhanceRequest(content="c", title="t"))

    assert excinfo.value.status_code == 500
    assert excinfo.value.message == "GAMMA_API_KEY is not configured on the server"


@pytest.mark.asyncio
async def test_missing_content_is_bad_request(settings) -> None:
    with pytest.raises(GammaProxyError) as excinfo:
        await enhance_with_gamma(settings, GammaEnhanceRequest(title="t"))

    assert excinfo.value.status_code == 400
    assert excinfo.value.message == "Content and title are required"


@pytest.mark.asyncio
async def test_upstream_error_keeps_status(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(402, json={"message": "Out of credits"})

    async with _client(handler) as client:
        with pytest.raises(GammaProxyError) as excinfo:
            await enhance_with_gamma(settings, GammaEnhanceRequest(content="c", title="t"), client=client)

    assert excinfo.value.status_code == 402
    assert excinfo.value.message == "Gamma API error: Out of credits"


@pytest.mark.asyncio
async def test_upstream_error_without_body_uses_reason(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="down")

    async with _client(handler) as client:
        with pytest.raises(GammaProxyError) as excinfo:
            await enhance_with_gamma(settings, GammaEnhanceRequest(content="c", title="t"), client=client)

    assert excinfo.value.status_code == 503
    assert excinfo.value.message == "Gamma API error: Service Unavailable"


@pytest.mark.asyncio
async def test_transport_failure_is_server_error(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(GammaProxyError) as excinfo:
            await enhance_with_gamma(settings, GammaEnhanceRequest(content="c", title="t"), client=client)

    assert excinfo.value.status_code == 500
    assert excinfo.value.message.startswith("Gamma design enhancement failed:")
