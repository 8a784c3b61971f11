"""
Error types shared by the curriculum services, and the mapping from upstream
failures to the messages shown to users.
"""

from typing import Optional


class CurriculumServiceError(Exception):
    """Base class for errors raised by the curriculum services."""


class ProviderNotConfiguredError(CurriculumServiceError):
    """A required API key is missing, or no provider is configured at all."""


class ProviderCallError(CurriculumServiceError):
    """A hosted-model call failed upstream."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{provider} API error: {message}")
        self.provider = provider
        self.status_code = status_code


class ModelResponseError(CurriculumServiceError):
    """The model returned text that is not valid JSON for the expected schema."""


class AllProvidersFailedError(CurriculumServiceError):
    """Every configured provider was tried once and failed."""

    def __init__(self, last_error: Optional[BaseException]):
        super().__init__(f"All providers failed. Last error: {last_error}")
        self.last_error = last_error


class AnalysisFailedError(CurriculumServiceError):
    """The streamed analysis ended with an error chunk."""

    def __init__(self, message: str, partial=None):
        super().__init__(message)
        self.partial = partial


RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again in a moment"
BILLING_MESSAGE = "API key may not have billing enabled or may be invalid"
INVALID_KEY_MESSAGE = "Invalid API key"


def error_status_code(exc: BaseException) -> Optional[int]:
    """Best-effort HTTP status of an upstream error, following wrapped causes."""
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        for attr in ("status_code", "code"):
            value = getattr(current, attr, None)
            if isinstance(value, int):
                return value
        if isinstance(current, AllProvidersFailedError):
            current = current.last_error
        else:
            current = current.__cause__
    return None


def classify_error(exc: BaseException) -> str:
    """Map an exception to the message returned to API clients."""
    message = str(exc)
    lowered = message.lower()
    status = error_status_code(exc)

    if isinstance(exc, ProviderNotConfiguredError) or ("api_key" in lowered and "not configured" in lowered):
        return message
    if status == 403 or "billing" in lowered or "403" in message:
        return BILLING_MESSAGE
    if status == 401 or "401" in message:
        return INVALID_KEY_MESSAGE
    if status == 429 or "429" in message:
        return RATE_LIMIT_MESSAGE
    return message
