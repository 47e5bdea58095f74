"""Structured logging configuration for the chat voice bot.

Provides consistent, structured logging with:
- JSON output for production (machine-parseable)
- Human-readable output for development
- Provider attribution and latency tracking
- Context-aware log records
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        if hasattr(record, "event_type"):
            log_data["event_type"] = record.event_type
        if hasattr(record, "user"):
            log_data["user"] = record.user
        if hasattr(record, "response_id"):
            log_data["response_id"] = record.response_id
        if hasattr(record, "provider"):
            log_data["provider"] = record.provider
        if hasattr(record, "latency_ms"):
            log_data["latency_ms"] = record.latency_ms
        if hasattr(record, "component"):
            log_data["component"] = record.component
        if hasattr(record, "extra_data"):
            log_data["data"] = record.extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter with colors for console output."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        level = f"{color}{record.levelname:8}{self.RESET}"

        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        msg = f"{timestamp} {level} [{record.name}] {record.getMessage()}"

        context_parts = []
        if hasattr(record, "user"):
            context_parts.append(f"user={record.user}")
        if hasattr(record, "provider"):
            context_parts.append(f"provider={record.provider}")
        if hasattr(record, "latency_ms"):
            context_parts.append(f"latency={record.latency_ms:.0f}ms")

        if context_parts:
            msg += f" ({', '.join(context_parts)})"

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


class BotLogger(logging.LoggerAdapter):
    """Logger adapter with convenience methods for structured logging."""

    def process(self, msg, kwargs):
        # Merge per-call extra with the adapter's extra instead of replacing it
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs

    def event(
        self,
        event_type: str,
        message: str,
        user: str | None = None,
        response_id: str | None = None,
        **kwargs: Any,
    ):
        """Log an event with structured data."""
        extra = {
            "event_type": event_type,
            **kwargs,
        }
        if user:
            extra["user"] = user
        if response_id:
            extra["response_id"] = response_id
        self.info(message, extra=extra)

    def latency(
        self,
        component: str,
        latency_ms: float,
        message: str | None = None,
        **kwargs: Any,
    ):
        """Log a latency measurement."""
        msg = message or f"{component} completed"
        extra = {
            "component": component,
            "latency_ms": latency_ms,
            **kwargs,
        }
        self.info(msg, extra=extra)

    def llm(
        self,
        provider: str,
        prompt_length: int,
        response_length: int,
        latency_ms: float,
        model: str | None = None,
    ):
        """Log a text-generation completion."""
        extra: dict[str, Any] = {
            "component": "llm",
            "provider": provider,
            "latency_ms": latency_ms,
            "extra_data": {
                "prompt_length": prompt_length,
                "response_length": response_length,
                "model": model,
            },
        }
        self.info(f"LLM response ({response_length} chars)", extra=extra)

    def tts(
        self,
        provider: str,
        text_length: int,
        encoding: str,
        latency_ms: float,
    ):
        """Log a speech synthesis."""
        extra = {
            "component": "tts",
            "provider": provider,
            "latency_ms": latency_ms,
            "extra_data": {"text_length": text_length, "encoding": encoding},
        }
        self.info(f"TTS synthesized {encoding} audio", extra=extra)

    def response_complete(
        self,
        user: str,
        response_id: str,
        total_latency_ms: float,
        text_provider: str | None,
        voice_provider: str | None,
    ):
        """Log a completed response with attribution."""
        extra = {
            "event_type": "response_complete",
            "user": user,
            "response_id": response_id,
            "latency_ms": total_latency_ms,
            "extra_data": {
                "text_provider": text_provider,
                "voice_provider": voice_provider,
            },
        }
        self.info(
            f"Response complete (text={text_provider}, voice={voice_provider})",
            extra=extra,
        )


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: str | None = None,
) -> None:
    """Configure logging for the bot.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        json_output: Use JSON format (for production/parsing).
        log_file: Optional file to write logs to.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    if json_output:
        console_handler.setFormatter(StructuredFormatter())
    else:
        console_handler.setFormatter(ConsoleFormatter())
    root_logger.addHandler(console_handler)

    # File handler (always JSON for parsing)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> BotLogger:
    """Get a structured logger for a component.

    Args:
        name: Logger name (typically __name__).

    Returns:
        BotLogger with structured logging methods.
    """
    return BotLogger(logging.getLogger(name), {})
