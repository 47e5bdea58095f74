"""Classification of vendor API failures into ProviderError kinds."""

import json

import httpx

from chat_voice_bot.interfaces.llm import ErrorKind, ProviderError

# Structured error codes (Gemini status, OpenAI type/code) that mean throttling
THROTTLE_CODES = {"RESOURCE_EXHAUSTED", "insufficient_quota", "rate_limit_exceeded"}
# Free-text markers, trusted only on 403 responses
THROTTLE_MARKERS = ("quota", "rate limit", "rate_limit")


def _error_codes(body: str) -> set[str]:
    """Pull status/type/code strings out of a JSON error body."""
    try:
        data = json.loads(body)
    except ValueError:
        return set()
    if not isinstance(data, dict):
        return set()
    codes = set()
    for source in (data, data.get("error")):
        if isinstance(source, dict):
            for key in ("status", "type", "code"):
                if isinstance(source.get(key), str):
                    codes.add(source[key])
    return codes


def classify_status(status_code: int, body: str = "") -> ErrorKind:
    """Map an HTTP status and response body to an ErrorKind.

    Args:
        status_code: HTTP status code.
        body: Response body text (may be empty).

    Returns:
        The error kind.
    """
    if status_code == 429:
        return ErrorKind.THROTTLED
    if _error_codes(body) & THROTTLE_CODES:
        return ErrorKind.THROTTLED
    if status_code == 403 and any(marker in body.lower() for marker in THROTTLE_MARKERS):
        return ErrorKind.THROTTLED
    if status_code in (401, 403):
        return ErrorKind.MISSING_CREDENTIAL
    if status_code >= 500 or status_code == 408:
        return ErrorKind.TRANSPORT
    return ErrorKind.OTHER


def from_http_error(error: Exception, provider: str) -> ProviderError:
    """Convert an httpx exception into a ProviderError.

    Args:
        error: The exception raised by httpx.
        provider: Provider id for attribution.

    Returns:
        A ProviderError with a classified kind.
    """
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        try:
            body = response.text
        except httpx.ResponseNotRead:
            body = ""
        kind = classify_status(response.status_code, body)
        detail = body.strip()[:200] or response.reason_phrase
        return ProviderError(kind, f"HTTP {response.status_code}: {detail}", provider=provider)
    if isinstance(error, httpx.TimeoutException):
        return ProviderError(ErrorKind.TRANSPORT, f"request timed out: {error}", provider=provider)
    if isinstance(error, httpx.RequestError):
        return ProviderError(ErrorKind.TRANSPORT, f"request failed: {error}", provider=provider)
    return ProviderError(ErrorKind.OTHER, str(error) or type(error).__name__, provider=provider)


def missing_credential(provider: str, env_var: str) -> ProviderError:
    return ProviderError(
        ErrorKind.MISSING_CREDENTIAL,
        f"no API key configured (set {env_var})",
        provider=provider,
    )
