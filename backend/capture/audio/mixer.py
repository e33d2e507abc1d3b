"""Channel downmixing."""
import numpy as np
from capture.audio.models import PCMBuffer


def downmix(buffer: PCMBuffer) -> PCMBuffer:
    """
    Average interleaved channels into a single mono channel.

    Each output sample is the unweighted mean of one frame's channel samples.
    Mono input is returned as-is.
    """
    if buffer.channel_count == 1:
        return buffer

    frames = buffer.samples.reshape(-1, buffer.channel_count)
    mono = frames.mean(axis=1, dtype=np.float64).astype(np.float32)

    return PCMBuffer(
        samples=mono,
        sample_rate=buffer.sample_rate,
        channel_count=1
    )
