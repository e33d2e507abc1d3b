"""Audio normalization pipeline: decode, downmix, resample, encode."""
import time
from typing import Optional
from capture.audio.decoder import decode_audio
from capture.audio.encoder import encode_base64
from capture.audio.errors import AudioStageError
from capture.audio.mixer import downmix
from capture.audio.models import ConversionResult
from capture.audio.resampler import TARGET_SAMPLE_RATE, resample
from capture.core.errors import ConversionFailed, DurationTooLong
from capture.core.logging import logger


def convert_to_16khz_wav(
    data: bytes,
    content_type: Optional[str] = None,
    target_sample_rate: int = TARGET_SAMPLE_RATE,
    max_duration_seconds: Optional[float] = None
) -> ConversionResult:
    """
    Convert an uploaded recording into base64 mono WAV at the target rate.

    The pipeline applies processing steps in order:
    1. Decode (container detected from the bytes)
    2. Downmix to mono (only if more than one channel)
    3. Resample (only if the decoded rate differs from the target)
    4. Encode as 16-bit WAV and base64

    Holds no state between calls, so it is safe to run concurrently for
    different requests.

    Args:
        data: Uploaded audio bytes
        content_type: MIME type declared by the client
        target_sample_rate: Sample rate of the produced WAV
        max_duration_seconds: Reject decoded audio longer than this (None or 0 disables)

    Returns:
        ConversionResult with the encoded audio and the decoded source format

    Raises:
        ConversionFailed: If any stage fails; no partial output is returned
        DurationTooLong: If the decoded audio exceeds ``max_duration_seconds``
    """
    start_time = time.time()

    try:
        # Step 1: Decode
        decoded = decode_audio(data, content_type)

        duration = decoded.duration_seconds
        if max_duration_seconds and duration > max_duration_seconds:
            raise DurationTooLong(
                f"Audio duration {duration:.1f}s exceeds maximum of {max_duration_seconds:g} seconds"
            )

        # Step 2: Downmix before resampling so the resampler only sees one channel
        processed = downmix(decoded) if decoded.channel_count > 1 else decoded

        # Step 3: Resample
        if processed.sample_rate != target_sample_rate:
            processed = resample(processed, target_sample_rate)

        # Step 4: Encode
        audio_base64 = encode_base64(processed, target_sample_rate)

    except AudioStageError as e:
        raise ConversionFailed(e.stage, str(e)) from e

    processing_time = (time.time() - start_time) * 1000
    logger.debug(
        f"Converted {decoded.sample_rate} Hz/{decoded.channel_count} ch audio "
        f"({duration:.2f}s) to {target_sample_rate} Hz mono in {processing_time:.1f}ms"
    )

    return ConversionResult(
        audio_base64=audio_base64,
        source_sample_rate=decoded.sample_rate,
        source_channels=decoded.channel_count,
        duration_seconds=duration
    )
