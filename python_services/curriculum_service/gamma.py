"""
Server-side proxy for Gamma slide-deck generation. Keeps the API key off the
client.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from shared.config import Settings
from shared.models import GammaEnhanceRequest

logger = logging.getLogger(__name__)


class GammaProxyError(Exception):
    """Carries the HTTP status and message returned to the client."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def build_generation_payload(request: GammaEnhanceRequest) -> Dict[str, Any]:
    """Rename client fields into Gamma's generation request body."""
    options = request.options or {}
    fmt = request.format or "presentation"
    return {
        "inputText": request.content,
        "textMode": "useExisting",
        "format": fmt,
        "title": request.title,
        "themeId": options.get("themeId"),
        "numCards": options.get("numCards", 10),
        "cardSplit": options.get("cardSplit", "auto"),
        "additionalInstructions": options.get("additionalInstructions")
        or f"Create an engaging {fmt} for educational use. Make it visually appealing and student-friendly.",
        "textOptions": {
            "amount": options.get("amount", "standard"),
            "tone": options.get("tone", "educational"),
            "audience": options.get("audience", "students"),
            "language": options.get("language", "en"),
        },
        "imageOptions": {"source": options.get("imageSource", "aiGenerated")},
    }


def map_generation_response(result: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "documentId": result.get("id") or result.get("documentId") or result.get("generationId"),
        "url": result.get("url") or result.get("previewUrl") or result.get("link"),
        "status": result.get("status") or "success",
        "message": result.get("message"),
        "generationId": result.get("generationId") or result.get("id"),
    }


async def enhance_with_gamma(
    settings: Settings,
    request: GammaEnhanceRequest,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, Any]:
    """Forward ``request`` to Gamma and return the normalised response."""
    if not settings.gamma_api_key:
        raise GammaProxyError(500, "GAMMA_API_KEY is not configured on the server")
    if not request.content or not request.title:
        raise GammaProxyError(400, "Content and title are required")

    url = f"{settings.gamma_base_url.rstrip('/')}/generations"
    headers = {"X-API-KEY": settings.gamma_api_key, "Content-Type": "application/json"}
    payload = build_generation_payload(request)

    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=60.0)
    try:
        response = await client.post(url, json=payload, headers=headers)
    except httpx.HTTPError as e:
        logger.error("Gamma API proxy error: %s", e)
        raise GammaProxyError(500, f"Gamma design enhancement failed: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    if response.is_error:
        try:
            body = response.json()
        except ValueError:
            body = None
        detail = (body.get("message") if isinstance(body, dict) else None) or response.reason_phrase
        raise GammaProxyError(response.status_code, f"Gamma API error: {detail}")

    try:
        result = response.json()
    except ValueError as e:
        raise GammaProxyError(500, f"Gamma design enhancement failed: {e}") from e
    return map_generation_response(result)
