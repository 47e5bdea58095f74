"""Configuration management for Chat Voice Bot.

Supports loading configuration from YAML files with environment variable expansion.
"""

import os
import re
from dataclasses import dataclass, field
from dataclasses import fields as dataclass_fields
from pathlib import Path
from typing import Any

import yaml

from chat_voice_bot.cooldown import DEFAULT_LOCKOUT_DURATION, DEFAULT_RESPONSE_COOLDOWN
from chat_voice_bot.failover import DEFAULT_PROVIDER_TIMEOUT
from chat_voice_bot.interfaces.tts import DEFAULT_PCM_SAMPLE_RATE
from chat_voice_bot.logging_config import get_logger
from chat_voice_bot.prompting import DEFAULT_PERSONALITY

logger = get_logger(__name__)

TEXT_PROVIDER_TYPES = {"gemini", "openai"}
VOICE_PROVIDER_TYPES = {"gemini", "openai", "wyoming", "system"}

GEMINI_VOICES = ("Kore", "Puck", "Charon", "Fenrir", "Zephyr")


def _expand_env_vars(value: Any) -> Any:
    """Recursively expand environment variables in config values.

    Supports ${VAR_NAME} syntax for environment variable expansion.

    Args:
        value: A config value (string, dict, list, or other).

    Returns:
        The value with environment variables expanded.
    """
    if isinstance(value, str):
        pattern = r'\$\{([^}]+)\}'

        def replacer(match):
            var_name = match.group(1)
            return os.environ.get(var_name, '')

        return re.sub(pattern, replacer, value)
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    else:
        return value


@dataclass
class ChatConfig:
    """Configuration for the Twitch chat connection.

    Attributes:
        channel: Channel to join (without '#').
        nickname: Login name. None logs in anonymously as justinfanNNNNNN.
        oauth_token: OAuth token for a named login (ignored when anonymous).
        host: IRC server hostname.
        port: IRC server port.
        tls: Whether to wrap the connection in TLS.
        reconnect_delay: Seconds to wait before reconnecting after a drop.
    """
    channel: str | None = None
    nickname: str | None = None
    oauth_token: str | None = None
    host: str = "irc.chat.twitch.tv"
    port: int = 6697
    tls: bool = True
    reconnect_delay: float = 5.0


@dataclass
class TextProviderConfig:
    """One entry in the text provider ring.

    Attributes:
        id: Unique provider id (used for preference and attribution).
        type: Adapter type ('gemini' or 'openai').
        model: Model identifier (adapter default if unset).
        api_key: API key. Empty means read the adapter's environment variable.
        endpoint: Override for the API endpoint.
        temperature: Sampling temperature (optional).
        max_tokens: Maximum tokens in response (optional).
    """
    id: str
    type: str = "gemini"
    model: str | None = None
    api_key: str | None = None
    endpoint: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None


@dataclass
class VoiceProviderConfig:
    """One registered speech provider.

    Attributes:
        id: Unique provider id.
        type: Adapter type ('gemini', 'openai', 'wyoming' or 'system').
        model: Model identifier (adapter default if unset).
        api_key: API key for hosted providers.
        endpoint: Override for the API endpoint.
        host: Wyoming server host.
        port: Wyoming server port.
        command: Speech command for the system delegate (e.g. 'espeak').
    """
    id: str
    type: str = "gemini"
    model: str | None = None
    api_key: str | None = None
    endpoint: str | None = None
    host: str | None = None
    port: int | None = None
    command: str | None = None


def _default_text_providers() -> list[TextProviderConfig]:
    return [
        TextProviderConfig(id="gemini", type="gemini"),
        TextProviderConfig(id="openai", type="openai"),
    ]


def _default_voice_providers() -> list[VoiceProviderConfig]:
    return [
        VoiceProviderConfig(id="gemini", type="gemini"),
        VoiceProviderConfig(id="system", type="system"),
    ]


@dataclass
class TextConfig:
    """Configuration for text generation.

    Attributes:
        preferred: Provider id to try first (defaults to the first entry).
        timeout: Per-attempt timeout in seconds.
        providers: Ordered provider ring.
    """
    preferred: str | None = None
    timeout: float = DEFAULT_PROVIDER_TIMEOUT
    providers: list[TextProviderConfig] = field(default_factory=_default_text_providers)


@dataclass
class VoiceConfig:
    """Configuration for speech synthesis.

    Attributes:
        provider: Selected provider id (None disables speech).
        voice: Voice selector passed to the provider.
        timeout: Per-attempt timeout in seconds.
        providers: Registered speech providers.
    """
    provider: str | None = "gemini"
    voice: str | None = "Puck"
    timeout: float = DEFAULT_PROVIDER_TIMEOUT
    providers: list[VoiceProviderConfig] = field(default_factory=_default_voice_providers)


@dataclass
class BehaviorConfig:
    """Configuration for bot behavior.

    Attributes:
        personality: Personality description inserted into every prompt.
        auto_reply: Whether admitted chat messages are answered.
        ignored_users: Usernames never answered (case-insensitive).
        response_cooldown: Seconds between a successful reply and the next attempt.
        lockout_duration: Seconds of suspension after quota exhaustion.
        poll_interval: Seconds between queue checks while blocked.
        post_attempt_delay: Seconds to wait after an attempt before the next.
        response_history: Number of response records to retain.
        chat_history: Number of chat messages to retain for display.
    """
    personality: str = DEFAULT_PERSONALITY
    auto_reply: bool = True
    ignored_users: list[str] = field(default_factory=lambda: ["Nightbot", "StreamElements"])
    response_cooldown: float = DEFAULT_RESPONSE_COOLDOWN
    lockout_duration: int = DEFAULT_LOCKOUT_DURATION
    poll_interval: float = 1.0
    post_attempt_delay: float = 1.5
    response_history: int = 50
    chat_history: int = 100


@dataclass
class AudioConfig:
    """Configuration for audio output.

    Attributes:
        enabled: Play audio (False logs replies only).
        sample_rate: Default PCM sample rate.
        channels: Default PCM channel count.
        device: Output device name or index (system default if unset).
    """
    enabled: bool = True
    sample_rate: int = DEFAULT_PCM_SAMPLE_RATE
    channels: int = 1
    device: str | int | None = None


@dataclass
class BotConfig:
    """Complete bot configuration.

    Attributes:
        chat: Chat connection configuration.
        text: Text generation configuration.
        voice: Speech synthesis configuration.
        bot: Bot behavior configuration.
        audio: Audio output configuration.
    """
    chat: ChatConfig = field(default_factory=ChatConfig)
    text: TextConfig = field(default_factory=TextConfig)
    voice: VoiceConfig = field(default_factory=VoiceConfig)
    bot: BehaviorConfig = field(default_factory=BehaviorConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)


@dataclass
class BotSettings:
    """Live settings read by the pipeline on every attempt.

    Changes take effect on the next admission or attempt; nothing in flight
    is affected.
    """
    personality: str = DEFAULT_PERSONALITY
    auto_reply: bool = True
    ignored_users: set[str] = field(default_factory=lambda: {"nightbot", "streamelements"})
    response_cooldown: float = DEFAULT_RESPONSE_COOLDOWN
    preferred_text_provider: str | None = None
    voice_provider: str | None = None
    voice: str | None = None

    def __post_init__(self):
        self.ignored_users = {u.lower() for u in self.ignored_users}

    @classmethod
    def from_config(cls, config: BotConfig) -> "BotSettings":
        return cls(
            personality=config.bot.personality,
            auto_reply=config.bot.auto_reply,
            ignored_users=set(config.bot.ignored_users),
            response_cooldown=config.bot.response_cooldown,
            preferred_text_provider=config.text.preferred,
            voice_provider=config.voice.provider,
            voice=config.voice.voice,
        )

    def is_ignored(self, username: str) -> bool:
        return username.lower() in self.ignored_users

    def ignore(self, username: str) -> None:
        self.ignored_users.add(username.lower())

    def unignore(self, username: str) -> None:
        self.ignored_users.discard(username.lower())


class ConfigValidationError(Exception):
    """Raised when config validation fails."""
    pass


def _get_dataclass_fields(cls) -> set[str]:
    """Get the field names of a dataclass."""
    return {f.name for f in dataclass_fields(cls)}


def validate_config_section(section_name: str, data: dict, config_class) -> list[str]:
    """Validate a config section against its dataclass.

    Args:
        section_name: Name of the section (for error messages).
        data: The config data dict.
        config_class: The dataclass to validate against.

    Returns:
        List of error messages (empty if valid).
    """
    errors = []
    if not isinstance(data, dict):
        return [f"Section {section_name} must be a mapping, got {type(data).__name__}"]
    valid_fields = _get_dataclass_fields(config_class)
    for key in data.keys():
        if key not in valid_fields:
            errors.append(f"Unknown field '{key}' in {section_name}. Valid fields: {sorted(valid_fields)}")
    return errors


def _validate_provider_list(
    section_name: str,
    entries: Any,
    config_class,
    valid_types: set[str],
) -> tuple[list[str], list[str]]:
    """Validate a providers list. Returns (errors, ids)."""
    errors: list[str] = []
    ids: list[str] = []
    if not isinstance(entries, list):
        return [f"{section_name}.providers must be a list"], ids

    for i, entry in enumerate(entries):
        where = f"{section_name}.providers[{i}]"
        if not isinstance(entry, dict):
            errors.append(f"{where} must be a mapping")
            continue
        errors.extend(validate_config_section(where, entry, config_class))
        provider_id = entry.get("id")
        if not provider_id:
            errors.append(f"{where} is missing 'id'")
        elif provider_id in ids:
            errors.append(f"Duplicate provider id '{provider_id}' in {section_name}.providers")
        else:
            ids.append(provider_id)
        provider_type = entry.get("type", "gemini")
        if provider_type not in valid_types:
            errors.append(f"{where} has unknown type '{provider_type}'. Valid types: {sorted(valid_types)}")
    return errors, ids


def validate_config_data(config_data: dict, path: str | Path) -> None:
    """Validate config data and raise ConfigValidationError if invalid.

    Args:
        config_data: The parsed config dict.
        path: Path to the config file (for error messages).

    Raises:
        ConfigValidationError: If any validation errors are found.
    """
    errors = []

    section_mapping = {
        "chat": ChatConfig,
        "text": TextConfig,
        "voice": VoiceConfig,
        "bot": BehaviorConfig,
        "audio": AudioConfig,
    }

    for key in config_data.keys():
        if key not in section_mapping:
            errors.append(f"Unknown top-level section '{key}'. Valid sections: {sorted(section_mapping)}")

    for section_name, config_class in section_mapping.items():
        section_data = config_data.get(section_name, {})
        if section_data:
            errors.extend(validate_config_section(section_name, section_data, config_class))

    text_data = config_data.get("text") or {}
    if isinstance(text_data, dict):
        text_ids = [p.id for p in _default_text_providers()]
        if "providers" in text_data:
            list_errors, text_ids = _validate_provider_list(
                "text", text_data["providers"], TextProviderConfig, TEXT_PROVIDER_TYPES
            )
            errors.extend(list_errors)
            if not text_ids and not list_errors:
                errors.append("text.providers must list at least one provider")
        preferred = text_data.get("preferred")
        if preferred and preferred not in text_ids:
            errors.append(f"text.preferred '{preferred}' is not a configured provider: {text_ids}")

    voice_data = config_data.get("voice") or {}
    if isinstance(voice_data, dict):
        voice_ids = [p.id for p in _default_voice_providers()]
        if "providers" in voice_data:
            list_errors, voice_ids = _validate_provider_list(
                "voice", voice_data["providers"], VoiceProviderConfig, VOICE_PROVIDER_TYPES
            )
            errors.extend(list_errors)
        selected = voice_data.get("provider")
        if selected and selected not in voice_ids:
            errors.append(f"voice.provider '{selected}' is not a configured provider: {voice_ids}")

    if errors:
        error_msg = f"Config validation failed for {path}:\n  - " + "\n  - ".join(errors)
        raise ConfigValidationError(error_msg)


def _build(config_class, data: dict):
    return config_class(**{k: v for k, v in data.items() if v is not None})


def load_config(path: str | Path | None = None) -> BotConfig:
    """Load configuration from a YAML file.

    If no path is provided, looks for config.yaml in the current directory.
    Environment variables in the format ${VAR_NAME} are expanded.

    Args:
        path: Path to the YAML config file.

    Returns:
        BotConfig with loaded settings.

    Raises:
        ConfigValidationError: If the config contains unknown or inconsistent fields.
        yaml.YAMLError: If the config file is invalid YAML.
    """
    if path is None:
        path = Path("config.yaml")
    else:
        path = Path(path)

    if not path.exists():
        logger.info(f"No config file at {path}, using defaults")
        return BotConfig()

    with open(path) as f:
        raw_config = yaml.safe_load(f) or {}

    if not isinstance(raw_config, dict):
        raise ConfigValidationError(f"Config validation failed for {path}: top level must be a mapping")

    config_data = _expand_env_vars(raw_config)

    validate_config_data(config_data, path)

    chat_data = config_data.get("chat") or {}
    text_data = dict(config_data.get("text") or {})
    voice_data = dict(config_data.get("voice") or {})
    bot_data = config_data.get("bot") or {}
    audio_data = config_data.get("audio") or {}

    if "providers" in text_data:
        text_data["providers"] = [_build(TextProviderConfig, p) for p in text_data["providers"]]
    if "providers" in voice_data:
        voice_data["providers"] = [_build(VoiceProviderConfig, p) for p in voice_data["providers"]]

    # An explicit null disables speech; every other None means "use the default"
    voice_disabled = "provider" in voice_data and voice_data["provider"] is None

    config = BotConfig(
        chat=_build(ChatConfig, chat_data),
        text=_build(TextConfig, text_data),
        voice=_build(VoiceConfig, voice_data),
        bot=_build(BehaviorConfig, bot_data),
        audio=_build(AudioConfig, audio_data),
    )
    if voice_disabled:
        config.voice.provider = None

    logger.info(
        f"Loaded config from {path}",
        extra={"extra_data": {
            "text_providers": [p.id for p in config.text.providers],
            "voice_provider": config.voice.provider,
        }},
    )
    return config


def create_example_config(path: str | Path = "config.yaml") -> None:
    """Create an example configuration file.

    Args:
        path: Path where to write the example config.
    """
    example = """\
# Chat Voice Bot Configuration
# Environment variables can be used with ${VAR_NAME} syntax

chat:
  channel: "your_channel"     # Twitch channel to read (without '#')
  nickname: null              # null = anonymous read-only login
  # oauth_token: "${TWITCH_OAUTH_TOKEN}"
  host: "irc.chat.twitch.tv"
  port: 6697
  tls: true

text:
  preferred: "gemini"         # Provider tried first; the rest are failovers
  timeout: 20.0               # Per-attempt timeout in seconds
  providers:
    - id: "gemini"
      type: "gemini"
      model: "gemini-3-flash-preview"
      api_key: "${GEMINI_API_KEY}"
    - id: "openai"
      type: "openai"
      model: "gpt-4o-mini"
      api_key: "${OPENAI_API_KEY}"
    # Any OpenAI-compatible endpoint works (Ollama, vLLM, ...)
    # - id: "local"
    #   type: "openai"
    #   endpoint: "http://localhost:11434/v1/chat/completions"
    #   model: "llama3.2:3b"

voice:
  provider: "gemini"          # null disables speech
  voice: "Puck"               # Gemini voices: Kore, Puck, Charon, Fenrir, Zephyr
  timeout: 20.0
  providers:
    - id: "gemini"
      type: "gemini"
      api_key: "${GEMINI_API_KEY}"
    - id: "openai"
      type: "openai"
      api_key: "${OPENAI_API_KEY}"
    - id: "wyoming"
      type: "wyoming"
      host: "localhost"
      port: 10200
    - id: "system"
      type: "system"          # espeak / say on the local machine

bot:
  auto_reply: true
  ignored_users: ["Nightbot", "StreamElements"]
  response_cooldown: 15       # Seconds between replies (raise this on free tiers)
  lockout_duration: 90        # Seconds to back off after quota exhaustion
  # personality: |
  #   You are a witty, youthful, and high-energy Twitch stream companion named Aura.

audio:
  enabled: true
  sample_rate: 24000
  channels: 1
  device: null                # Output device name or index
"""

    with open(path, "w") as f:
        f.write(example)

    print(f"Created example config at {path}")
