"""Audio utilities for PCM decoding."""

import numpy as np


def pcm_bytes_to_frames(pcm_bytes: bytes, channels: int = 1) -> np.ndarray:
    """Convert interleaved 16-bit PCM bytes to float32 frames.

    Args:
        pcm_bytes: Raw PCM audio data (16-bit signed, little-endian, interleaved).
        channels: Number of interleaved channels.

    Returns:
        Float32 array shaped (frames, channels) normalized to [-1.0, 1.0].

    Raises:
        ValueError: If the payload is not a whole number of frames.
    """
    if channels < 1:
        raise ValueError(f"channels must be >= 1, got {channels}")
    frame_bytes = 2 * channels
    if len(pcm_bytes) % frame_bytes:
        raise ValueError(
            f"PCM payload of {len(pcm_bytes)} bytes is not a whole number of "
            f"{channels}-channel 16-bit frames"
        )
    audio_int16 = np.frombuffer(pcm_bytes, dtype="<i2")
    return (audio_int16.astype(np.float32) / 32768.0).reshape(-1, channels)

