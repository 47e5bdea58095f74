"""Response records and their text/voice state machine.

A ResponseRecord is created when the pipeline dequeues a chat event and is
mutated in place as text and audio become available:

    text:  pending -> processing -> done | error
    voice: pending -> done | error        (entered only from text done)

Records are kept in a bounded newest-first history for presentation.
"""

import dataclasses
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from chat_voice_bot.interfaces.events import ChatEvent
from chat_voice_bot.interfaces.tts import AudioItem
from chat_voice_bot.queues import BoundedLog


class TextStatus(Enum):
    """States for reply text generation."""
    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


class VoiceStatus(Enum):
    """States for reply speech synthesis."""
    PENDING = "pending"
    DONE = "done"
    ERROR = "error"


class InvalidTransitionError(RuntimeError):
    """Raised when a record is moved along an edge the state machine lacks."""
    pass


def _new_response_id() -> str:
    return uuid.uuid4().hex[:9]


@dataclass
class ResponseRecord:
    """Observable output unit of the pipeline.

    Attributes:
        user: Display name of the chatter being answered.
        original_message: The chat message text.
        id: Short unique identifier.
        reply_text: Generated reply (or a user-facing failure message).
        text_status: Text generation state.
        voice_status: Synthesis state, None until text is done.
        text_provider: Provider currently attempting, then the one that answered.
        voice_provider: Speech provider used for this reply.
        audio: AudioItem handed to the sequencer, if any.
        error: Last failure reason, if any.
    """
    user: str
    original_message: str
    id: str = field(default_factory=_new_response_id)
    reply_text: str = ""
    text_status: TextStatus = TextStatus.PENDING
    voice_status: Optional[VoiceStatus] = None
    text_provider: Optional[str] = None
    voice_provider: Optional[str] = None
    audio: Optional[AudioItem] = None
    error: Optional[str] = None

    @classmethod
    def from_event(cls, event: ChatEvent) -> "ResponseRecord":
        """Create a pending record for a dequeued chat event."""
        return cls(user=event.display_name, original_message=event.message)

    # -- text transitions -------------------------------------------------

    def start_processing(self) -> None:
        self._require_text(TextStatus.PENDING, "start processing")
        self.text_status = TextStatus.PROCESSING

    def attempt_text(self, provider: str) -> None:
        """Attribute the in-flight text attempt to a provider."""
        self._require_text(TextStatus.PROCESSING, "attempt text")
        self.text_provider = provider

    def complete_text(self, reply_text: str, provider: str) -> None:
        self._require_text(TextStatus.PROCESSING, "complete text")
        self.reply_text = reply_text
        self.text_provider = provider
        self.text_status = TextStatus.DONE
        self.voice_status = VoiceStatus.PENDING

    def fail_text(self, message: str, reason: str | None = None) -> None:
        if self.text_status in (TextStatus.DONE, TextStatus.ERROR):
            raise InvalidTransitionError(
                f"Cannot fail text for {self.id}: already {self.text_status.value}"
            )
        self.reply_text = message
        self.error = reason or message
        self.text_status = TextStatus.ERROR

    # -- voice transitions ------------------------------------------------

    def attempt_voice(self, provider: str) -> None:
        self._require_voice_pending("attempt voice")
        self.voice_provider = provider

    def complete_voice(self, audio: AudioItem | None = None) -> None:
        self._require_voice_pending("complete voice")
        self.audio = audio
        self.voice_status = VoiceStatus.DONE

    def fail_voice(self, reason: str) -> None:
        self._require_voice_pending("fail voice")
        self.error = reason
        self.voice_status = VoiceStatus.ERROR

    # -- helpers ----------------------------------------------------------

    @property
    def is_active(self) -> bool:
        """True while text generation is in flight."""
        return self.text_status is TextStatus.PROCESSING

    @property
    def is_finished(self) -> bool:
        """True once no further transitions can happen."""
        if self.text_status is TextStatus.ERROR:
            return True
        return self.text_status is TextStatus.DONE and self.voice_status in (
            VoiceStatus.DONE,
            VoiceStatus.ERROR,
        )

    def copy(self) -> "ResponseRecord":
        """Detached copy for observers."""
        return dataclasses.replace(self)

    def _require_text(self, expected: TextStatus, action: str) -> None:
        if self.text_status is not expected:
            raise InvalidTransitionError(
                f"Cannot {action} for {self.id}: text is {self.text_status.value}, "
                f"expected {expected.value}"
            )

    def _require_voice_pending(self, action: str) -> None:
        if self.text_status is not TextStatus.DONE or self.voice_status is not VoiceStatus.PENDING:
            voice = self.voice_status.value if self.voice_status else "absent"
            raise InvalidTransitionError(
                f"Cannot {action} for {self.id}: text={self.text_status.value}, voice={voice}"
            )


class ResponseHistory:
    """Bounded newest-first ring of ResponseRecords."""

    def __init__(self, maxlen: int = 50):
        self._log: BoundedLog[ResponseRecord] = BoundedLog(maxlen=maxlen)

    def add(self, record: ResponseRecord) -> None:
        self._log.add(record)

    def active(self) -> list[ResponseRecord]:
        """Records currently in text processing (at most one)."""
        return [r for r in self._log.items() if r.is_active]

    def snapshot(self) -> tuple[ResponseRecord, ...]:
        """Detached newest-first copies of every retained record."""
        return tuple(r.copy() for r in self._log.items())

    def __len__(self) -> int:
        return len(self._log)
