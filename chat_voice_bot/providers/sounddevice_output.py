"""Local audio output via sounddevice (PortAudio).

All clips go through one long-lived output stream, reopened only when the
sample rate or channel count changes. Writes are serialized, so a clip
scheduled back-to-back with the previous one is appended to the same
device buffer rather than started on a second stream. Compressed clips are
decoded with soundfile on the worker thread; delegate items are spoken by
the system speech command.
"""

import asyncio
import io
import threading
import time

import numpy as np
import sounddevice as sd
import soundfile as sf

from chat_voice_bot.interfaces.playback import AudioOutput
from chat_voice_bot.logging_config import get_logger
from chat_voice_bot.providers.system_speech import speak_with_system

logger = get_logger(__name__)


class SoundDeviceOutput(AudioOutput):
    """AudioOutput backed by a persistent sounddevice OutputStream.

    Attributes:
        device: Output device name or index (None for the system default).
        speech_command: System speech command for delegate items (auto-detected if None).
    """

    def __init__(self, device: str | int | None = None, speech_command: str | None = None):
        self.device = device
        self.speech_command = speech_command
        self._stream: sd.OutputStream | None = None
        self._layout: tuple[int, int] | None = None
        self._output_lock = threading.Lock()

    def clock(self) -> float:
        return time.monotonic()

    def _ensure_stream(self, sample_rate: int, channels: int) -> sd.OutputStream:
        """Return the open stream for this layout, reopening it if needed.

        Caller must hold the output lock.
        """
        layout = (sample_rate, channels)
        if self._stream is not None and self._layout == layout and self._stream.active:
            return self._stream

        self._close_stream()
        stream = sd.OutputStream(
            samplerate=sample_rate,
            channels=channels,
            dtype="float32",
            device=self.device,
        )
        stream.start()
        self._stream = stream
        self._layout = layout
        logger.debug(f"Opened output stream: {sample_rate} Hz, {channels} channel(s)")
        return stream

    def _close_stream(self) -> None:
        if self._stream is None:
            return
        try:
            # stop() lets already-written frames play out
            self._stream.stop()
            self._stream.close()
        finally:
            self._stream = None
            self._layout = None

    def _write_blocking(self, frames: np.ndarray, sample_rate: int) -> None:
        with self._output_lock:
            stream = self._ensure_stream(sample_rate, frames.shape[1])
            stream.write(np.ascontiguousarray(frames, dtype=np.float32))

    def _decode_and_write(self, data: bytes) -> None:
        frames, sample_rate = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
        logger.debug(f"Decoded compressed clip: {len(frames) / sample_rate:.2f}s at {sample_rate} Hz")
        self._write_blocking(frames, sample_rate)

    async def play_pcm(self, frames: np.ndarray, sample_rate: int, start_at: float) -> None:
        delay = start_at - self.clock()
        if delay > 0:
            await asyncio.sleep(delay)
        await asyncio.to_thread(self._write_blocking, frames, sample_rate)

    async def play_compressed(self, data: bytes) -> None:
        await asyncio.to_thread(self._decode_and_write, data)

    async def speak(self, text: str, voice: str | None = None) -> None:
        await speak_with_system(text, voice, command=self.speech_command)

    def _close_blocking(self) -> None:
        with self._output_lock:
            self._close_stream()

    async def close(self) -> None:
        await asyncio.to_thread(self._close_blocking)
