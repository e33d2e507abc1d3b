"""Decode uploaded audio bytes into float PCM."""
import io
from typing import Optional
import numpy as np
import soundfile as sf
from capture.audio.errors import DecodeError
from capture.audio.models import PCMBuffer
from capture.core.logging import logger

# Declared MIME types we know how to compare against the detected container
MIME_FORMATS = {
    "audio/wav": "WAV",
    "audio/wave": "WAV",
    "audio/x-wav": "WAV",
    "audio/vnd.wave": "WAV",
    "audio/mpeg": "MP3",
    "audio/mp3": "MP3",
    "audio/flac": "FLAC",
    "audio/x-flac": "FLAC",
    "audio/ogg": "OGG",
}


def detect_format(data: bytes) -> Optional[str]:
    """
    Identify the audio container from its leading bytes.

    Args:
        data: Audio file bytes

    Returns:
        One of "WAV", "MP3", "FLAC", "OGG", or None if no signature matches
    """
    head = bytes(data[:12])
    if len(head) >= 12 and head[:4] in (b"RIFF", b"RF64") and head[8:12] == b"WAVE":
        return "WAV"
    if head[:4] == b"fLaC":
        return "FLAC"
    if head[:4] == b"OggS":
        return "OGG"
    if head[:3] == b"ID3":
        return "MP3"
    # MPEG audio frame sync: 11 set bits, and a layer field that is not reserved
    # (ADTS/AAC shares the sync word but always carries layer 0)
    if len(head) >= 2 and head[0] == 0xFF and (head[1] & 0xE0) == 0xE0 and (head[1] >> 1) & 0x03:
        return "MP3"
    return None


def decode_audio(data: bytes, content_type: Optional[str] = None) -> PCMBuffer:
    """
    Decode an audio file into interleaved float32 PCM.

    The container is detected from the bytes themselves; the declared MIME
    type is only compared against it for diagnostics.

    Args:
        data: Audio file bytes (WAV, MP3, FLAC or Ogg)
        content_type: MIME type declared by the client

    Returns:
        PCMBuffer at the file's own sample rate and channel count

    Raises:
        DecodeError: If the format is unrecognized, decoding fails, no frames
            are produced, or the sample rate / channel count is missing
    """
    detected = detect_format(data)
    if detected is None:
        raise DecodeError("unrecognized_format", "No recognizable audio format signature")

    declared = MIME_FORMATS.get((content_type or "").split(";")[0].strip().lower())
    if declared and declared != detected:
        logger.debug(f"Declared content type {content_type} does not match detected {detected} audio")

    try:
        with sf.SoundFile(io.BytesIO(data)) as audio_file:
            sample_rate = audio_file.samplerate
            channels = audio_file.channels
            samples = audio_file.read(dtype="float32", always_2d=True)
    except sf.LibsndfileError as e:
        raise DecodeError("decode_failed", f"Failed to decode {detected} audio: {e}") from e

    if not sample_rate or sample_rate <= 0 or not channels or channels <= 0:
        raise DecodeError(
            "missing_metadata",
            f"Decoded {detected} audio has no usable format metadata "
            f"(sample rate {sample_rate}, channels {channels})"
        )

    if samples.shape[0] == 0:
        raise DecodeError("no_frames", f"Decoding {detected} audio produced no frames")

    # (frames, channels) -> frame-interleaved 1D
    interleaved = np.ascontiguousarray(samples).reshape(-1)

    return PCMBuffer(
        samples=interleaved,
        sample_rate=int(sample_rate),
        channel_count=int(channels)
    )
