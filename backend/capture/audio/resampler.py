"""Linear-interpolation resampling to the transcription sample rate."""
import math
import numpy as np
from capture.audio.errors import ResampleError
from capture.audio.models import PCMBuffer

TARGET_SAMPLE_RATE = 16000


def output_length(input_length: int, source_rate: int, target_rate: int) -> int:
    """Number of samples produced when resampling ``input_length`` samples."""
    ratio = source_rate / target_rate
    # Half-up rounding; Python's round() would round .5 to even
    return int(math.floor(input_length / ratio + 0.5))


def resample(buffer: PCMBuffer, target_rate: int = TARGET_SAMPLE_RATE) -> PCMBuffer:
    """
    Resample mono PCM to ``target_rate`` with linear interpolation.

    Output sample ``i`` reads source position ``s = i * ratio`` and blends
    ``input[floor(s)]`` with the following sample (clamped to the last one).
    No anti-aliasing filter is applied; this is adequate for speech
    recognition input, not for listening.

    Args:
        buffer: Mono PCM buffer
        target_rate: Desired sample rate in Hz

    Returns:
        The same buffer if it is already at ``target_rate``, otherwise a new one

    Raises:
        ResampleError: If the buffer is not mono or the target rate is invalid
    """
    if buffer.channel_count != 1:
        raise ResampleError(f"Resampling expects mono audio, got {buffer.channel_count} channels")
    if target_rate <= 0:
        raise ResampleError(f"Target sample rate must be positive, got {target_rate}")

    if buffer.sample_rate == target_rate:
        return buffer

    old_length = buffer.samples.size
    new_length = output_length(old_length, buffer.sample_rate, target_rate)

    if old_length == 0 or new_length == 0:
        return PCMBuffer(samples=np.zeros(0, dtype=np.float32), sample_rate=target_rate)

    ratio = buffer.sample_rate / target_rate
    positions = np.arange(new_length, dtype=np.float64) * ratio
    lower = np.minimum(np.floor(positions).astype(np.int64), old_length - 1)
    upper = np.minimum(lower + 1, old_length - 1)
    t = positions - lower

    source = buffer.samples.astype(np.float64)
    resampled = source[lower] * (1.0 - t) + source[upper] * t

    return PCMBuffer(samples=resampled.astype(np.float32), sample_rate=target_rate)
