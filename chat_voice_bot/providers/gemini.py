"""Google Gemini text and speech providers (REST API via httpx).

Text:   POST {base}/models/{model}:generateContent
Speech: the same endpoint on a TTS model with responseModalities=["AUDIO"],
        which returns base64 raw 16-bit PCM (24 kHz mono).
"""

import base64
import binascii
import os
import re

import httpx

from chat_voice_bot.interfaces.llm import ErrorKind, ProviderError, TextProvider
from chat_voice_bot.interfaces.tts import DEFAULT_PCM_SAMPLE_RATE, AudioEncoding, AudioItem, SpeechProvider
from chat_voice_bot.logging_config import get_logger
from chat_voice_bot.providers.errors import from_http_error, missing_credential

logger = get_logger(__name__)

GEMINI_API_KEY_ENV = "GEMINI_API_KEY"
GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_TEXT_MODEL = "gemini-3-flash-preview"
DEFAULT_TTS_MODEL = "gemini-2.5-flash-preview-tts"
DEFAULT_VOICE = "Puck"
PREBUILT_VOICES = ("Kore", "Puck", "Charon", "Fenrir", "Zephyr")

_RATE_PATTERN = re.compile(r"rate=(\d+)")


def _resolve_api_key(api_key: str | None) -> str | None:
    return api_key or os.environ.get(GEMINI_API_KEY_ENV) or os.environ.get("API_KEY") or None


class _GeminiClient:
    """Shared request plumbing for the Gemini providers."""

    provider_id: str
    model: str
    api_key: str | None
    endpoint: str
    timeout: float

    def _url(self) -> str:
        return f"{self.endpoint.rstrip('/')}/models/{self.model}:generateContent"

    async def _generate_content(self, body: dict) -> dict:
        if not self.api_key:
            raise missing_credential(self.provider_id, GEMINI_API_KEY_ENV)

        headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key}
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(self._url(), headers=headers, json=body, timeout=self.timeout)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            raise from_http_error(e, self.provider_id) from e

    def _first_parts(self, data: dict) -> list[dict]:
        candidates = data.get("candidates") or []
        if not candidates:
            feedback = data.get("promptFeedback", {})
            reason = feedback.get("blockReason", "no candidates returned")
            raise ProviderError(ErrorKind.EMPTY_RESULT, str(reason), provider=self.provider_id)
        content = candidates[0].get("content") or {}
        return content.get("parts") or []


class GeminiText(_GeminiClient, TextProvider):
    """Text provider backed by Gemini generateContent.

    Attributes:
        model: Gemini model id.
        api_key: API key (falls back to $GEMINI_API_KEY).
        temperature: Sampling temperature (optional).
        max_tokens: Maximum output tokens (optional).
    """

    def __init__(
        self,
        provider_id: str = "gemini",
        model: str | None = None,
        api_key: str | None = None,
        endpoint: str | None = None,
        timeout: float = 30.0,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ):
        self.provider_id = provider_id
        self.model = model or DEFAULT_TEXT_MODEL
        self.api_key = _resolve_api_key(api_key)
        self.endpoint = endpoint or GEMINI_API_BASE
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def is_available(self) -> bool:
        return bool(self.api_key)

    def _build_request_body(self, prompt: str) -> dict:
        body: dict = {"contents": [{"parts": [{"text": prompt}]}]}
        generation_config = {}
        if self.temperature is not None:
            generation_config["temperature"] = self.temperature
        if self.max_tokens is not None:
            generation_config["maxOutputTokens"] = self.max_tokens
        if generation_config:
            body["generationConfig"] = generation_config
        return body

    async def generate(self, prompt: str) -> str:
        data = await self._generate_content(self._build_request_body(prompt))
        text = "".join(part.get("text", "") for part in self._first_parts(data)).strip()
        if not text:
            raise ProviderError(ErrorKind.EMPTY_RESULT, "no text in response", provider=self.provider_id)
        return text


class GeminiSpeech(_GeminiClient, SpeechProvider):
    """Speech provider backed by the Gemini TTS models.

    Returns RAW_PCM AudioItems (16-bit mono, rate taken from the response
    mime type, 24 kHz by default).
    """

    def __init__(
        self,
        provider_id: str = "gemini",
        model: str | None = None,
        api_key: str | None = None,
        endpoint: str | None = None,
        timeout: float = 30.0,
        default_voice: str = DEFAULT_VOICE,
    ):
        self.provider_id = provider_id
        self.model = model or DEFAULT_TTS_MODEL
        self.api_key = _resolve_api_key(api_key)
        self.endpoint = endpoint or GEMINI_API_BASE
        self.timeout = timeout
        self.default_voice = default_voice

    async def is_available(self) -> bool:
        return bool(self.api_key)

    def _build_request_body(self, text: str, voice: str) -> dict:
        return {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice}},
                },
            },
        }

    async def synthesize(self, text: str, voice: str | None = None) -> AudioItem:
        voice = voice or self.default_voice
        if voice not in PREBUILT_VOICES:
            logger.warning(f"Voice '{voice}' is not a known Gemini prebuilt voice")

        data = await self._generate_content(self._build_request_body(text, voice))

        inline = next(
            (part["inlineData"] for part in self._first_parts(data) if part.get("inlineData")),
            None,
        )
        if not inline or not inline.get("data"):
            raise ProviderError(ErrorKind.EMPTY_RESULT, "no audio in response", provider=self.provider_id)

        try:
            pcm = base64.b64decode(inline["data"], validate=True)
        except (binascii.Error, ValueError) as e:
            raise ProviderError(ErrorKind.OTHER, f"invalid audio payload: {e}", provider=self.provider_id) from e

        match = _RATE_PATTERN.search(inline.get("mimeType", ""))
        sample_rate = int(match.group(1)) if match else DEFAULT_PCM_SAMPLE_RATE

        return AudioItem(
            encoding=AudioEncoding.RAW_PCM,
            data=pcm,
            text=text,
            voice=voice,
            sample_rate=sample_rate,
            channels=1,
        )
