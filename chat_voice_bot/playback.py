"""Sequential audio playback.

AudioSequencer plays AudioItems strictly in enqueue order through an
AudioOutput:

- RAW_PCM clips are decoded and scheduled against the output clock at
  max(now, end of the previous clip), without waiting for the previous
  clip to finish. Consecutive clips therefore play back-to-back with no gap
  and no overlap.
- COMPRESSED and DELEGATE items first wait for every scheduled PCM clip
  to finish, then play to completion before the next item is taken.

An item that fails to decode or play is logged and skipped.
"""

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional

from chat_voice_bot.audio import pcm_bytes_to_frames
from chat_voice_bot.interfaces.playback import AudioOutput
from chat_voice_bot.interfaces.tts import AudioEncoding, AudioItem
from chat_voice_bot.logging_config import get_logger

logger = get_logger(__name__)

StateCallback = Callable[[bool], None]


@dataclass(frozen=True)
class ScheduledClip:
    """A PCM clip placed on the output timeline."""
    response_id: Optional[str]
    start: float
    duration: float

    @property
    def end(self) -> float:
        return self.start + self.duration


class AudioSequencer:
    """FIFO audio player with back-to-back PCM scheduling.

    Usage:
        sequencer = AudioSequencer(output)
        sequencer.start()
        sequencer.enqueue(item)
        ...
        await sequencer.drain()
        await sequencer.stop()
    """

    def __init__(self, output: AudioOutput, history_size: int = 100):
        self.output = output
        self.history: deque[ScheduledClip] = deque(maxlen=history_size)
        self._queue: asyncio.Queue[AudioItem] = asyncio.Queue()
        self._scheduled: set[asyncio.Task] = set()
        self._next_start = 0.0
        self._busy = False
        self._active = False
        self._listeners: list[StateCallback] = []
        self._worker: Optional[asyncio.Task] = None

    # -- public API ---------------------------------------------------------

    def enqueue(self, item: AudioItem) -> None:
        """Append an item to the playback queue."""
        self._queue.put_nowait(item)
        self._set_active(True)

    def on_state_change(self, callback: StateCallback) -> None:
        """Register a callback for active/idle transitions."""
        self._listeners.append(callback)

    @property
    def active(self) -> bool:
        return self._active

    def qsize(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        """Start the playback worker on the running loop."""
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="audio-sequencer")

    async def drain(self) -> None:
        """Wait until every queued item has been played or skipped."""
        await self._queue.join()
        await self._wait_for_scheduled()

    async def stop(self) -> None:
        """Stop the worker and cancel outstanding playback."""
        tasks = list(self._scheduled)
        if self._worker is not None:
            tasks.append(self._worker)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._scheduled.clear()
        self._worker = None
        self._busy = False
        self._set_active(False)

    # -- worker -------------------------------------------------------------

    async def _run(self) -> None:
        while True:
            item = await self._queue.get()
            self._busy = True
            try:
                await self._play(item)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    f"Skipping {item.encoding.value} audio for {item.response_id}: {e}",
                    extra={"response_id": item.response_id},
                )
            finally:
                self._busy = False
                self._queue.task_done()
                self._maybe_idle()

    async def _play(self, item: AudioItem) -> None:
        if item.encoding is AudioEncoding.RAW_PCM:
            self._schedule_pcm(item)
            return

        await self._wait_for_scheduled()
        if item.encoding is AudioEncoding.COMPRESSED:
            if not item.data:
                raise ValueError("compressed item has no payload")
            await self.output.play_compressed(item.data)
        elif item.encoding is AudioEncoding.DELEGATE:
            if not item.text:
                raise ValueError("delegate item has no text")
            await self.output.speak(item.text, item.voice)
        else:
            raise ValueError(f"unsupported encoding {item.encoding}")

    def _schedule_pcm(self, item: AudioItem) -> None:
        if not item.data:
            raise ValueError("PCM item has no payload")
        frames = pcm_bytes_to_frames(item.data, item.channels)
        duration = len(frames) / item.sample_rate

        start = max(self.output.clock(), self._next_start)
        self._next_start = start + duration
        clip = ScheduledClip(response_id=item.response_id, start=start, duration=duration)
        self.history.append(clip)
        logger.debug(f"Scheduled {duration:.2f}s clip for {item.response_id} at {start:.3f}")

        task = asyncio.create_task(self.output.play_pcm(frames, item.sample_rate, start))
        self._scheduled.add(task)
        task.add_done_callback(self._on_clip_done)

    def _on_clip_done(self, task: asyncio.Task) -> None:
        self._scheduled.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"PCM playback failed: {task.exception()}")
        self._maybe_idle()

    async def _wait_for_scheduled(self) -> None:
        if self._scheduled:
            await asyncio.gather(*list(self._scheduled), return_exceptions=True)

    # -- state --------------------------------------------------------------

    def _maybe_idle(self) -> None:
        if not self._busy and not self._scheduled and self._queue.empty():
            self._set_active(False)

    def _set_active(self, active: bool) -> None:
        if active == self._active:
            return
        self._active = active
        for callback in list(self._listeners):
            try:
                callback(active)
            except Exception as e:
                logger.error(f"Playback state listener failed: {e}", exc_info=True)
