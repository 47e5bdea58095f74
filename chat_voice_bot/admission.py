"""Admission of incoming chat events into the pending queue."""

from typing import Callable, Optional

from chat_voice_bot.config import BotSettings
from chat_voice_bot.interfaces.events import ChatEvent
from chat_voice_bot.logging_config import get_logger
from chat_voice_bot.queues import BoundedLog, PendingQueue

logger = get_logger(__name__)


class AdmissionFilter:
    """Decides which chat events become reply candidates.

    Every received event is recorded in the display log. Events from
    ignored users, or arriving while auto reply is off, stop there.
    Admitted events replace any waiting backlog in the pending queue.

    While the feed is paused events are treated as not received at all and
    do not reach the display log either.

    Attributes:
        settings: Live settings (ignore list and auto reply are read per call).
        queue: The pending queue fed by this filter.
        display_log: Recently seen chat window.
        feed_paused: Whether incoming events are currently discarded.
    """

    def __init__(
        self,
        settings: BotSettings,
        queue: PendingQueue,
        display_log: BoundedLog[ChatEvent],
        on_admit: Optional[Callable[[ChatEvent], None]] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.settings = settings
        self.queue = queue
        self.display_log = display_log
        self.feed_paused = False
        self._on_admit = on_admit
        self._on_change = on_change

    def admit(self, event: ChatEvent) -> bool:
        """Process one incoming chat event.

        Returns:
            True if the event was queued for a reply.
        """
        if self.feed_paused:
            logger.debug(f"Feed paused, discarding message {event.id} from {event.username}")
            return False

        self.display_log.add(event)

        admitted = False
        if self.settings.is_ignored(event.username):
            logger.debug(f"Ignoring message from {event.username}")
        elif not self.settings.auto_reply:
            logger.debug(f"Auto reply off, not queueing message from {event.username}")
        else:
            dropped = self.queue.qsize()
            admitted = self.queue.put(event)
            if dropped:
                logger.debug(f"Collapsed {dropped} waiting message(s) in favor of {event.id}")
            logger.event("message_admitted", event.message, user=event.display_name)

        if self._on_change is not None:
            self._on_change()
        if admitted and self._on_admit is not None:
            self._on_admit(event)
        return admitted
