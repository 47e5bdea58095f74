"""ChatVoiceBot - top-level application wiring.

Owns the chat source, the response pipeline and the audio sequencer, and
runs them together on one event loop:

    Twitch chat -> AdmissionFilter -> ResponsePipeline -> AudioSequencer -> speakers
"""

from __future__ import annotations

import asyncio

from chat_voice_bot.config import BotConfig, BotSettings
from chat_voice_bot.interfaces.events import ChatSource
from chat_voice_bot.interfaces.playback import AudioOutput
from chat_voice_bot.logging_config import get_logger
from chat_voice_bot.pipeline import Observer, ResponsePipeline
from chat_voice_bot.playback import AudioSequencer

logger = get_logger(__name__)


class ChatVoiceBot:
    """Runs a chat source, the response pipeline and playback together.

    Usage:
        bot = ChatVoiceBot.from_config(config)
        await bot.run()
    """

    def __init__(
        self,
        pipeline: ResponsePipeline,
        chat_source: ChatSource,
        sequencer: AudioSequencer | None = None,
        output: AudioOutput | None = None,
    ):
        self.pipeline = pipeline
        self.chat_source = chat_source
        self.sequencer = sequencer
        self.output = output
        self._tasks: list[asyncio.Task] = []

    @classmethod
    def from_config(
        cls,
        config: BotConfig,
        settings: BotSettings | None = None,
        observers: list[Observer] | None = None,
    ) -> "ChatVoiceBot":
        """Build the bot and all its collaborators from configuration."""
        from chat_voice_bot import factory

        output = factory.create_audio_output(config) if config.audio.enabled else None
        sequencer = AudioSequencer(output) if output is not None else None
        settings = settings or BotSettings.from_config(config)
        if output is None and settings.voice_provider:
            logger.info("Audio disabled, skipping speech synthesis")
            settings.voice_provider = None

        pipeline = factory.create_pipeline(config, settings=settings, sequencer=sequencer)
        for observer in observers or []:
            pipeline.subscribe(observer)
        return cls(pipeline, factory.create_chat_source(config), sequencer=sequencer, output=output)

    async def check_voice_provider(self) -> bool:
        """Warn at startup if the selected speech provider cannot be reached."""
        provider_id = self.pipeline.settings.voice_provider
        voice = self.pipeline.voice
        if voice is None or not provider_id:
            return True
        provider = voice.providers.get(provider_id)
        if provider is None:
            logger.warning(f"Voice provider {provider_id} is not configured")
            return False
        if not await provider.is_available():
            logger.warning(f"Voice provider {provider_id} is not available; replies will fail to speak until it is")
            return False
        return True

    async def run(self) -> None:
        """Run until the chat source ends or the task is cancelled."""
        await self.check_voice_provider()
        if self.sequencer is not None:
            self.sequencer.start()

        pipeline_task = asyncio.create_task(self.pipeline.run(), name="pipeline")
        chat_task = asyncio.create_task(
            self.chat_source.run(self.pipeline.admit, self.pipeline.set_connection_status),
            name="chat-source",
        )
        self._tasks = [pipeline_task, chat_task]

        try:
            done, _ = await asyncio.wait(self._tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    logger.error(f"{task.get_name()} stopped: {task.exception()}")
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Stop every component. Safe to call more than once."""
        logger.info("Shutting down...")
        self.pipeline.stop()
        await self.chat_source.close()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        if self.sequencer is not None:
            await self.sequencer.stop()
        if self.output is not None:
            await self.output.close()
