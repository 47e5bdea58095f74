"""OpenAI-compatible text and speech providers.

The chat provider works with any service that implements the OpenAI Chat
Completions API:
- OpenAI API
- vLLM
- Ollama (with OpenAI compatibility)
- llama.cpp server
- LiteLLM

The speech provider targets the OpenAI audio/speech endpoint and returns
compressed audio (mp3 by default).
"""

import os

import httpx

from chat_voice_bot.interfaces.llm import ErrorKind, ProviderError, TextProvider
from chat_voice_bot.interfaces.tts import AudioEncoding, AudioItem, SpeechProvider
from chat_voice_bot.logging_config import get_logger
from chat_voice_bot.providers.errors import from_http_error, missing_credential

logger = get_logger(__name__)

OPENAI_API_KEY_ENV = "OPENAI_API_KEY"
DEFAULT_CHAT_ENDPOINT = "https://api.openai.com/v1/chat/completions"
DEFAULT_CHAT_MODEL = "gpt-4o-mini"
DEFAULT_SPEECH_ENDPOINT = "https://api.openai.com/v1/audio/speech"
DEFAULT_SPEECH_MODEL = "tts-1"
DEFAULT_SPEECH_VOICE = "alloy"
SPEECH_VOICES = ("alloy", "ash", "coral", "echo", "fable", "nova", "onyx", "sage", "shimmer")


def _is_local(endpoint: str) -> bool:
    return "localhost" in endpoint or "127.0.0.1" in endpoint


class OpenAIChatText(TextProvider):
    """Text provider for OpenAI-compatible chat completion APIs.

    Sends the prompt as a single user message:

        POST /v1/chat/completions
        {
            "model": "...",
            "messages": [{"role": "user", "content": "..."}]
        }

    Attributes:
        endpoint: The full URL to the chat completions endpoint.
        model: The model identifier to use.
        api_key: API key (required unless the endpoint is local).
        timeout: HTTP request timeout in seconds.
        max_tokens: Maximum tokens in the response (optional).
        temperature: Sampling temperature (optional).
    """

    def __init__(
        self,
        provider_id: str = "openai",
        endpoint: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        timeout: float = 30.0,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ):
        """Initialize the OpenAI-compatible text provider.

        Args:
            provider_id: Identifier used in the provider ring.
            endpoint: Full URL to the chat completions endpoint.
                     e.g., "http://localhost:11434/v1/chat/completions" for Ollama
            model: Model identifier to use (e.g., "llama3.2:3b", "gpt-4o-mini").
            api_key: API key. Falls back to $OPENAI_API_KEY.
            timeout: HTTP request timeout in seconds (default: 30).
            max_tokens: Maximum tokens in the response (optional).
            temperature: Sampling temperature (optional).
        """
        self.provider_id = provider_id
        self.endpoint = endpoint or DEFAULT_CHAT_ENDPOINT
        self.model = model or DEFAULT_CHAT_MODEL
        self.api_key = api_key or os.environ.get(OPENAI_API_KEY_ENV) or None
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature

    def _build_headers(self) -> dict:
        """Build HTTP headers for the request."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _build_request_body(self, prompt: str) -> dict:
        """Build the request body for the API call."""
        body = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
        }

        if self.max_tokens is not None:
            body["max_tokens"] = self.max_tokens

        if self.temperature is not None:
            body["temperature"] = self.temperature

        return body

    async def is_available(self) -> bool:
        return bool(self.api_key) or _is_local(self.endpoint)

    async def generate(self, prompt: str) -> str:
        """Generate a chat completion for the prompt.

        Raises:
            ProviderError: Classified failure (429 maps to THROTTLED).
        """
        if not await self.is_available():
            raise missing_credential(self.provider_id, OPENAI_API_KEY_ENV)

        logger.debug(f'Chat request to {self.endpoint} ({self.model}): "{prompt[:100]}"')

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.endpoint,
                    headers=self._build_headers(),
                    json=self._build_request_body(prompt),
                    timeout=self.timeout,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise from_http_error(e, self.provider_id) from e

        try:
            content = data["choices"][0]["message"].get("content")
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(ErrorKind.OTHER, f"unexpected response shape: {e}", provider=self.provider_id) from e

        if not content or not content.strip():
            raise ProviderError(ErrorKind.EMPTY_RESULT, "empty completion", provider=self.provider_id)
        return content.strip()


class OpenAISpeech(SpeechProvider):
    """Speech provider for the OpenAI audio/speech endpoint.

    Returns COMPRESSED AudioItems; the playback adapter decodes them.
    """

    def __init__(
        self,
        provider_id: str = "openai",
        endpoint: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        default_voice: str = DEFAULT_SPEECH_VOICE,
        response_format: str = "mp3",
        timeout: float = 30.0,
    ):
        self.provider_id = provider_id
        self.endpoint = endpoint or DEFAULT_SPEECH_ENDPOINT
        self.model = model or DEFAULT_SPEECH_MODEL
        self.api_key = api_key or os.environ.get(OPENAI_API_KEY_ENV) or None
        self.default_voice = default_voice
        self.response_format = response_format
        self.timeout = timeout

    async def is_available(self) -> bool:
        return bool(self.api_key) or _is_local(self.endpoint)

    async def synthesize(self, text: str, voice: str | None = None) -> AudioItem:
        if not await self.is_available():
            raise missing_credential(self.provider_id, OPENAI_API_KEY_ENV)

        voice = voice or self.default_voice
        if voice not in SPEECH_VOICES:
            logger.debug(f"Voice '{voice}' is not an OpenAI voice, using {self.default_voice}")
            voice = self.default_voice
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        body = {
            "model": self.model,
            "input": text,
            "voice": voice,
            "response_format": self.response_format,
        }

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(self.endpoint, headers=headers, json=body, timeout=self.timeout)
                response.raise_for_status()
                audio = response.content
        except httpx.HTTPError as e:
            raise from_http_error(e, self.provider_id) from e

        if not audio:
            raise ProviderError(ErrorKind.EMPTY_RESULT, "no audio in response", provider=self.provider_id)
        return AudioItem(encoding=AudioEncoding.COMPRESSED, data=audio, text=text, voice=voice)
