"""Log-based presentation of pipeline state."""

from chat_voice_bot.interfaces.events import ConnectionStatus
from chat_voice_bot.logging_config import get_logger
from chat_voice_bot.pipeline import PipelineSnapshot
from chat_voice_bot.responses import ResponseRecord, TextStatus, VoiceStatus

logger = get_logger(__name__)


class ConsolePresenter:
    """Pipeline observer that logs what changed since the last snapshot.

    Logs record transitions (text and voice status, provider attribution),
    rate-limit notices with the seconds remaining, connection changes,
    pause toggles and the pending queue length.
    """

    def __init__(self, lockout_notice_every: int = 15):
        self.lockout_notice_every = lockout_notice_every
        self._seen: dict[str, tuple] = {}
        self._connection: ConnectionStatus | None = None
        self._locked = False
        self._queue_length = 0
        self._paused: tuple[bool, bool] = (False, False)

    def __call__(self, snapshot: PipelineSnapshot) -> None:
        self.update(snapshot)

    def update(self, snapshot: PipelineSnapshot) -> None:
        self._show_connection(snapshot)
        self._show_pauses(snapshot)
        self._show_lockout(snapshot)
        for record in reversed(snapshot.responses):
            self._show_record(record)
        if snapshot.queue_length != self._queue_length:
            self._queue_length = snapshot.queue_length
            logger.debug(f"Queue length: {snapshot.queue_length}")

    def _show_connection(self, snapshot: PipelineSnapshot) -> None:
        if snapshot.connection is self._connection:
            return
        self._connection = snapshot.connection
        if snapshot.connection is ConnectionStatus.ERROR:
            logger.error("Chat connection error")
        else:
            logger.info(f"Chat {snapshot.connection.value}")

    def _show_pauses(self, snapshot: PipelineSnapshot) -> None:
        paused = (snapshot.feed_paused, snapshot.ai_paused)
        if paused == self._paused:
            return
        self._paused = paused
        if snapshot.feed_paused:
            logger.warning("CHAT FEED PAUSED - no messages being received")
        elif snapshot.ai_paused:
            logger.warning("AI paused - messages are queued but not answered")
        else:
            logger.info("Feed and AI running")

    def _show_lockout(self, snapshot: PipelineSnapshot) -> None:
        state = snapshot.cooldown
        if state.locked:
            remaining = state.lockout_remaining
            if not self._locked or (self.lockout_notice_every and remaining % self.lockout_notice_every == 0):
                logger.warning(f"QUOTA EXCEEDED: cooling down, resuming in {remaining}s")
        elif self._locked:
            logger.info("Rate limit cleared, replies resumed")
        self._locked = state.locked

    def _show_record(self, record: ResponseRecord) -> None:
        key = (record.text_status, record.voice_status, record.text_provider)
        if self._seen.get(record.id) == key:
            return
        self._seen[record.id] = key
        if len(self._seen) > 200:
            for stale in list(self._seen)[:100]:
                del self._seen[stale]

        extra = {"user": record.user, "response_id": record.id}
        if record.text_status is TextStatus.PENDING:
            logger.info(f'{record.user}: "{record.original_message}"', extra=extra)
        elif record.text_status is TextStatus.PROCESSING:
            provider = record.text_provider or "..."
            logger.info(f"Thinking via {provider}", extra=extra)
        elif record.text_status is TextStatus.ERROR:
            logger.error(record.reply_text, extra=extra)
        elif record.voice_status is VoiceStatus.PENDING:
            logger.info(f'Reply ({record.text_provider}): "{record.reply_text}"', extra=extra)
        elif record.voice_status is VoiceStatus.ERROR:
            logger.warning(f"Speech failed ({record.voice_provider}): {record.error}", extra=extra)
        elif record.voice_status is VoiceStatus.DONE and record.audio is not None:
            logger.info(f"Speaking via {record.voice_provider}", extra=extra)
