"""Serialize mono PCM into a canonical WAV container."""
import base64
import io
import wave
import numpy as np
from capture.audio.errors import EncodeError
from capture.audio.models import PCMBuffer
from capture.audio.resampler import TARGET_SAMPLE_RATE

SAMPLE_WIDTH_BYTES = 2  # 16-bit PCM


def encode_wav(buffer: PCMBuffer, sample_rate: int = TARGET_SAMPLE_RATE) -> bytes:
    """
    Encode a mono buffer as a 16-bit PCM WAV file.

    The output is a canonical RIFF/WAVE file (44-byte header) and is
    byte-identical for identical input.

    Args:
        buffer: Mono float PCM at ``sample_rate``
        sample_rate: Sample rate the buffer must already be at

    Returns:
        WAV file bytes

    Raises:
        EncodeError: If the buffer is not mono at ``sample_rate`` or serialization fails
    """
    if buffer.channel_count != 1:
        raise EncodeError(f"WAV encoding expects mono audio, got {buffer.channel_count} channels")
    if buffer.sample_rate != sample_rate:
        raise EncodeError(f"WAV encoding expects {sample_rate} Hz audio, got {buffer.sample_rate} Hz")

    pcm_int16 = np.clip(buffer.samples * 32768.0, -32768, 32767).astype("<i2")

    output = io.BytesIO()
    try:
        with wave.open(output, "wb") as wav_file:
            wav_file.setnchannels(1)
            wav_file.setsampwidth(SAMPLE_WIDTH_BYTES)
            wav_file.setframerate(sample_rate)
            wav_file.writeframes(pcm_int16.tobytes())
    except (wave.Error, ValueError, MemoryError) as e:
        raise EncodeError(f"Failed to serialize WAV: {e}") from e

    return output.getvalue()


def encode_base64(buffer: PCMBuffer, sample_rate: int = TARGET_SAMPLE_RATE) -> str:
    """Encode a buffer as WAV and return it as base64 text for JSON payloads."""
    return base64.b64encode(encode_wav(buffer, sample_rate)).decode("ascii")
