"""Abstract interface for text-generation providers."""

from abc import ABC, abstractmethod
from enum import Enum


class ErrorKind(Enum):
    """Structured failure kinds returned at the provider boundary."""
    MISSING_CREDENTIAL = "missing_credential"
    EMPTY_RESULT = "empty_result"
    THROTTLED = "throttled"
    TRANSPORT = "transport"
    OTHER = "other"


class ProviderError(Exception):
    """A provider attempt failed.

    Attributes:
        kind: Classified failure kind.
        provider: Identifier of the provider that failed (if known).
        message: Human-readable reason.
    """

    def __init__(self, kind: ErrorKind, message: str = "", provider: str | None = None):
        self.kind = kind
        self.provider = provider
        self.message = message or kind.value
        super().__init__(self.message)

    @property
    def is_throttled(self) -> bool:
        """Check if this failure is a quota/rate-limit condition."""
        return self.kind is ErrorKind.THROTTLED

    def __str__(self) -> str:
        if self.provider:
            return f"[{self.provider}] {self.kind.value}: {self.message}"
        return f"{self.kind.value}: {self.message}"


class TextProvider(ABC):
    """Abstract base class for text-generation providers.

    All LLM implementations (Gemini, OpenAI-compatible, etc.) should inherit
    from this class and implement the generate() method.

    Attributes:
        provider_id: Identifier used in the provider ring and for attribution.
        model: The model identifier used for requests.
    """

    provider_id: str = "unknown"
    model: str | None = None

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Generate a reply for a prompt.

        Args:
            prompt: Fully constructed prompt text.

        Returns:
            Non-empty reply text.

        Raises:
            ProviderError: With a classified kind on any failure.
        """
        pass

    async def is_available(self) -> bool:
        """Check if the provider has what it needs to be attempted.

        Returns:
            True if the provider is configured.
        """
        return True
