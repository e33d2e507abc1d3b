"""Failures raised by the individual audio conversion stages."""


class AudioStageError(Exception):
    """Base class; ``stage`` names the pipeline step that failed."""

    stage = "audio"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class DecodeError(AudioStageError):
    """
    Raised when uploaded bytes cannot be turned into PCM.

    ``reason`` is one of ``unrecognized_format``, ``decode_failed``,
    ``no_frames`` or ``missing_metadata``.
    """

    stage = "decode"

    def __init__(self, reason: str, detail: str):
        super().__init__(detail)
        self.reason = reason

    def __str__(self) -> str:
        return f"{self.detail} ({self.reason})"


class ResampleError(AudioStageError):
    stage = "resample"


class EncodeError(AudioStageError):
    stage = "encode"
