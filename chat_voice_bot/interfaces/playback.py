"""Abstract interface for the local audio output capability."""

from abc import ABC, abstractmethod

import numpy as np


class AudioOutput(ABC):
    """Low-level playback primitives used by the AudioSequencer.

    The sequencer owns ordering and timing; implementations only need to
    start sound at the requested time and report completion.
    """

    @abstractmethod
    def clock(self) -> float:
        """Current output-clock time in seconds (monotonic)."""
        pass

    @abstractmethod
    async def play_pcm(self, frames: np.ndarray, sample_rate: int, start_at: float) -> None:
        """Play decoded PCM frames starting at an output-clock time.

        Returns once playback of the frames has finished.

        Args:
            frames: Float32 array shaped (frames, channels) in [-1.0, 1.0].
            sample_rate: Sample rate in Hz.
            start_at: Output-clock time at which playback must begin.
        """
        pass

    @abstractmethod
    async def play_compressed(self, data: bytes) -> None:
        """Decode and play a compressed clip, returning when it has ended.

        Raises:
            Exception: If the payload cannot be decoded.
        """
        pass

    @abstractmethod
    async def speak(self, text: str, voice: str | None = None) -> None:
        """Speak text with the local speech capability, returning when done."""
        pass

    async def close(self) -> None:
        """Release output resources."""
        return None
