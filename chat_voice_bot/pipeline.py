"""Response pipeline for Chat Voice Bot.

The pipeline coordinates:
1. Admission - chat events into a collapse-to-newest pending queue
2. Text (Thinking) - reply generation with provider failover
3. Voice - speech synthesis with the selected provider
4. Playback - hand-off to the audio sequencer

At most one response is in flight at a time. A cooldown governor spaces
successful replies and suspends all work after quota exhaustion.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from chat_voice_bot.admission import AdmissionFilter
from chat_voice_bot.config import BotSettings
from chat_voice_bot.cooldown import CooldownGovernor, CooldownState
from chat_voice_bot.failover import (
    GenerationAborted,
    PromptBuilder,
    ProvidersExhaustedError,
    TextFailoverOrchestrator,
    ThrottledError,
    VoiceSynthesizer,
)
from chat_voice_bot.interfaces.events import ChatEvent, ConnectionStatus
from chat_voice_bot.interfaces.llm import ProviderError
from chat_voice_bot.logging_config import get_logger
from chat_voice_bot.playback import AudioSequencer
from chat_voice_bot.prompting import build_prompt
from chat_voice_bot.queues import BoundedLog, PendingQueue
from chat_voice_bot.responses import ResponseHistory, ResponseRecord

logger = get_logger(__name__)

QUOTA_MESSAGE = "Quota exhausted. System cooling down for {seconds}s..."
PAUSED_MESSAGE = "Generation paused before a provider responded."
FAILED_MESSAGE = "Generation failed: {reason}"


class StepOutcome(Enum):
    """Result of one pipeline step."""
    IDLE = "idle"            # nothing waiting
    BLOCKED = "blocked"      # something waiting, but a gate refused
    PROCESSED = "processed"  # one event was taken and answered (or failed)


@dataclass(frozen=True)
class PipelineSnapshot:
    """Immutable view of the pipeline handed to observers.

    Attributes:
        responses: Newest-first copies of retained response records.
        queue_length: Events waiting in the pending queue.
        chat_log: Newest-first recently seen chat events.
        cooldown: Governor state.
        connection: Chat connection status.
        feed_paused: Whether incoming chat is discarded.
        ai_paused: Whether new attempts are suspended.
        auto_reply: Whether admitted chat is answered.
        audio_active: Whether the audio sequencer is playing.
    """
    responses: tuple[ResponseRecord, ...]
    queue_length: int
    chat_log: tuple[ChatEvent, ...]
    cooldown: CooldownState
    connection: ConnectionStatus
    feed_paused: bool
    ai_paused: bool
    auto_reply: bool
    audio_active: bool

    @property
    def active_response(self) -> Optional[ResponseRecord]:
        for record in self.responses:
            if record.is_active:
                return record
        return None


Observer = Callable[[PipelineSnapshot], None]


class ResponsePipeline:
    """Turns admitted chat events into spoken replies, one at a time.

    Usage:
        pipeline = ResponsePipeline(settings, text, voice, governor, sequencer)
        pipeline.subscribe(presenter.update)
        chat_source.run(pipeline.admit, pipeline.set_connection_status)
        await pipeline.run()
    """

    def __init__(
        self,
        settings: BotSettings,
        text: TextFailoverOrchestrator,
        voice: Optional[VoiceSynthesizer],
        governor: CooldownGovernor,
        sequencer: Optional[AudioSequencer] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        poll_interval: float = 1.0,
        post_attempt_delay: float = 1.5,
        tick_interval: float = 1.0,
        response_history: int = 50,
        chat_history: int = 100,
    ):
        """Initialize the pipeline.

        Args:
            settings: Live settings read on every admission and attempt.
            text: Text failover orchestrator.
            voice: Voice synthesizer (None disables speech).
            governor: Cooldown and lockout governor.
            sequencer: Audio sequencer receiving synthesized items.
            prompt_builder: Prompt builder (defaults to the personality template).
            poll_interval: Seconds between checks while blocked or idle.
            post_attempt_delay: Seconds to wait after each processed step.
            tick_interval: Seconds between lockout countdown ticks.
            response_history: Number of response records to retain.
            chat_history: Number of chat events to retain for display.
        """
        self.settings = settings
        self.text = text
        self.voice = voice
        self.governor = governor
        self.sequencer = sequencer
        self.prompt_builder = prompt_builder or self._default_prompt
        self.poll_interval = poll_interval
        self.post_attempt_delay = post_attempt_delay
        self.tick_interval = tick_interval

        self.queue = PendingQueue()
        self.history = ResponseHistory(maxlen=response_history)
        self.chat_log: BoundedLog[ChatEvent] = BoundedLog(maxlen=chat_history)
        self.admission = AdmissionFilter(
            settings,
            self.queue,
            self.chat_log,
            on_admit=lambda _event: self._wake(),
            on_change=self._notify,
        )

        self.connection_status = ConnectionStatus.DISCONNECTED
        self.ai_paused = False

        self._in_flight = False
        self._running = False
        self._wake_event = asyncio.Event()
        self._observers: list[Observer] = []

        if sequencer is not None:
            sequencer.on_state_change(lambda _active: self._notify())

    def _default_prompt(self, event: ChatEvent) -> str:
        return build_prompt(event, self.settings.personality)

    # -- inputs -------------------------------------------------------------

    def admit(self, event: ChatEvent) -> bool:
        """Entry point for the chat source."""
        return self.admission.admit(event)

    def set_connection_status(self, status: ConnectionStatus) -> None:
        if status is self.connection_status:
            return
        logger.event("connection_status", f"Chat connection {status.value}", status=status.value)
        self.connection_status = status
        self._notify()

    @property
    def feed_paused(self) -> bool:
        return self.admission.feed_paused

    def pause_feed(self) -> None:
        self.admission.feed_paused = True
        logger.info("Chat feed paused")
        self._notify()

    def resume_feed(self) -> None:
        self.admission.feed_paused = False
        logger.info("Chat feed resumed")
        self._wake()
        self._notify()

    def pause_ai(self) -> None:
        self.ai_paused = True
        logger.info("AI replies paused")
        self._notify()

    def resume_ai(self) -> None:
        self.ai_paused = False
        logger.info("AI replies resumed")
        self._wake()
        self._notify()

    # -- observers ----------------------------------------------------------

    def subscribe(self, observer: Observer) -> None:
        """Register an observer and send it the current state."""
        self._observers.append(observer)
        observer(self.snapshot())

    def unsubscribe(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def snapshot(self) -> PipelineSnapshot:
        return PipelineSnapshot(
            responses=self.history.snapshot(),
            queue_length=self.queue.qsize(),
            chat_log=tuple(self.chat_log.items()),
            cooldown=self.governor.state(),
            connection=self.connection_status,
            feed_paused=self.feed_paused,
            ai_paused=self.ai_paused,
            auto_reply=self.settings.auto_reply,
            audio_active=self.sequencer.active if self.sequencer is not None else False,
        )

    def _notify(self) -> None:
        if not self._observers:
            return
        snapshot = self.snapshot()
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception as e:
                logger.error(f"Pipeline observer failed: {e}", exc_info=True)

    # -- processing ---------------------------------------------------------

    def blocked_reason(self) -> Optional[str]:
        """Name of the gate currently refusing new attempts, if any."""
        if self._in_flight or self.history.active():
            return "in_flight"
        if self.feed_paused:
            return "feed_paused"
        if self.ai_paused:
            return "ai_paused"
        if not self.settings.auto_reply:
            return "auto_reply_off"
        if self.governor.locked:
            return "locked"
        if not self.governor.can_start():
            return "cooldown"
        return None

    def _may_continue(self) -> bool:
        return not self.feed_paused and not self.ai_paused

    async def step(self) -> StepOutcome:
        """Take the waiting event (if allowed) and answer it.

        Returns:
            IDLE if nothing was waiting, BLOCKED if a gate refused,
            PROCESSED once an event was taken and its record finished.
        """
        if self.governor.cooldown != self.settings.response_cooldown:
            self.governor.set_cooldown(self.settings.response_cooldown)

        if self.queue.empty():
            return StepOutcome.IDLE
        reason = self.blocked_reason()
        if reason is not None:
            logger.debug(f"Step blocked: {reason}")
            return StepOutcome.BLOCKED

        event = self.queue.get_nowait()
        if event is None:
            return StepOutcome.IDLE

        self._in_flight = True
        try:
            await self._process(event)
        finally:
            self._in_flight = False
            self._notify()
        return StepOutcome.PROCESSED

    async def _process(self, event: ChatEvent) -> None:
        record = ResponseRecord.from_event(event)
        self.history.add(record)
        self._notify()

        record.start_processing()
        self._notify()
        started = time.monotonic()

        try:
            generation = await self.text.generate(
                event,
                record,
                self.prompt_builder,
                preferred=self.settings.preferred_text_provider,
                should_continue=self._may_continue,
                on_attempt=lambda _record: self._notify(),
            )
        except ThrottledError as e:
            seconds = self._enter_lockout()
            record.fail_text(QUOTA_MESSAGE.format(seconds=seconds), reason=str(e))
            return
        except ProvidersExhaustedError as e:
            reason = e.last_error.message if e.last_error else "no text providers configured"
            record.fail_text(FAILED_MESSAGE.format(reason=reason), reason=str(e))
            logger.error(str(e), extra={"response_id": record.id, "user": record.user})
            return
        except GenerationAborted as e:
            record.fail_text(PAUSED_MESSAGE, reason=str(e))
            return
        except Exception as e:
            logger.error(
                f"Text generation crashed for {record.id}: {e}",
                exc_info=True,
                extra={"response_id": record.id, "user": record.user},
            )
            record.fail_text(FAILED_MESSAGE.format(reason=str(e) or type(e).__name__), reason=repr(e))
            return

        record.complete_text(generation.text, generation.provider)
        logger.event(
            "reply_generated",
            generation.text,
            user=record.user,
            response_id=record.id,
            provider=generation.provider,
        )
        self._notify()

        await self._synthesize(record)
        self.governor.record_success()

        logger.response_complete(
            user=record.user,
            response_id=record.id,
            total_latency_ms=(time.monotonic() - started) * 1000,
            text_provider=record.text_provider,
            voice_provider=record.voice_provider,
        )

    async def _synthesize(self, record: ResponseRecord) -> None:
        provider_id = self.settings.voice_provider
        if self.voice is None or not provider_id:
            record.complete_voice(None)
            return

        try:
            item = await self.voice.synthesize(
                record.reply_text,
                record,
                provider_id=provider_id,
                voice=self.settings.voice,
            )
        except ProviderError as e:
            logger.warning(
                f"Voice synthesis failed for {record.id}: {e}",
                extra={"response_id": record.id, "provider": e.provider},
            )
            record.fail_voice(str(e))
            if e.is_throttled:
                self._enter_lockout()
            return
        except Exception as e:
            logger.error(f"Voice synthesis crashed for {record.id}: {e}", exc_info=True)
            record.fail_voice(repr(e))
            return

        try:
            if self.sequencer is not None:
                self.sequencer.enqueue(item)
        except Exception as e:
            logger.error(f"Could not queue audio for {record.id}: {e}", exc_info=True)
            record.fail_voice(repr(e))
            return
        record.complete_voice(item)

    def _enter_lockout(self) -> int:
        seconds = self.governor.enter_lockout()
        dropped = self.queue.clear()
        if dropped:
            logger.info(f"Dropped {dropped} waiting message(s) on lockout")
        self._notify()
        return seconds

    # -- loop ---------------------------------------------------------------

    def _wake(self) -> None:
        self._wake_event.set()

    async def _wait_for_wake(self, timeout: float) -> None:
        try:
            await asyncio.wait_for(self._wake_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        finally:
            self._wake_event.clear()

    async def _countdown(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            if self.governor.locked:
                if self.governor.tick() == 0:
                    self._wake()
                self._notify()

    async def run(self) -> None:
        """Process events until stop() is called."""
        self._running = True
        countdown = asyncio.create_task(self._countdown(), name="lockout-countdown")
        logger.info("Response pipeline started")
        try:
            while self._running:
                try:
                    outcome = await self.step()
                except Exception as e:
                    logger.error(f"Pipeline step failed: {e}", exc_info=True)
                    outcome = StepOutcome.BLOCKED

                if not self._running:
                    break
                if outcome is StepOutcome.PROCESSED:
                    await asyncio.sleep(self.post_attempt_delay)
                elif outcome is StepOutcome.BLOCKED:
                    await asyncio.sleep(self.poll_interval)
                else:
                    await self._wait_for_wake(self.poll_interval)
        finally:
            countdown.cancel()
            await asyncio.gather(countdown, return_exceptions=True)
            logger.info("Response pipeline stopped")

    def stop(self) -> None:
        self._running = False
        self._wake()
