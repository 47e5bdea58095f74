"""Chat event payloads and the ingestion adapter interface.

The pipeline only consumes parsed ChatEvents and connection-status
transitions; how they arrive (IRC, websocket, test fixtures) is up to the
ChatSource implementation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable


class ConnectionStatus(Enum):
    """Connection state reported by a chat source."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True)
class ChatEvent:
    """A single chat message delivered by the ingestion adapter.

    Attributes:
        id: Platform message id (or a generated one).
        username: Raw login name (used for ignore-list matching).
        display_name: Name shown to viewers and used in replies.
        message: Message text.
        timestamp: Arrival time.
        color: Optional display color (e.g. "#FF4500").
    """
    id: str
    username: str
    display_name: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    color: str | None = None


ChatEventCallback = Callable[[ChatEvent], None]
StatusCallback = Callable[[ConnectionStatus], None]


class ChatSource(ABC):
    """Abstract base class for chat ingestion adapters."""

    @abstractmethod
    async def run(self, on_event: ChatEventCallback, on_status: StatusCallback) -> None:
        """Deliver chat events until the connection ends or close() is called.

        Args:
            on_event: Called once per parsed chat message.
            on_status: Called on every connection-status transition.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the underlying connection."""
        pass
