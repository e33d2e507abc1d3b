"""Audio data models and structures."""
from dataclasses import dataclass
import numpy as np


@dataclass
class PCMBuffer:
    """Interleaved float PCM samples with their format."""
    samples: np.ndarray  # float32 samples in [-1.0, 1.0], interleaved
    sample_rate: int
    channel_count: int = 1

    def __post_init__(self):
        """Validate buffer data."""
        if self.samples.ndim != 1:
            raise ValueError(f"Expected interleaved (1D array) samples, got shape {self.samples.shape}")
        if self.sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.sample_rate}")
        if self.channel_count <= 0:
            raise ValueError(f"Channel count must be positive, got {self.channel_count}")
        if self.samples.size % self.channel_count != 0:
            raise ValueError(
                f"{self.samples.size} samples do not divide into {self.channel_count} channels"
            )
        if self.samples.dtype != np.float32:
            self.samples = self.samples.astype(np.float32)

    @property
    def frame_count(self) -> int:
        return self.samples.size // self.channel_count

    @property
    def duration_seconds(self) -> float:
        return self.frame_count / float(self.sample_rate)


def wipe_buffer(buffer: bytearray) -> None:
    """Overwrite a mutable buffer with zeros in place."""
    if buffer:
        np.frombuffer(buffer, dtype=np.uint8)[:] = 0


class AudioArtifact:
    """
    An uploaded recording held in memory until it has been transcribed.

    Both multipart uploads and raw ``audio/*`` bodies become this one type at
    ingress. A ``bytearray`` is adopted as is, not copied, so :meth:`release`
    overwrites the only copy in place before dropping it. Anything else is
    copied into a new ``bytearray``.
    """

    def __init__(self, data, content_type: str):
        self._data = data if isinstance(data, bytearray) else bytearray(data)
        self.content_type = content_type
        self.size = len(self._data)
        self._released = False

    @property
    def data(self) -> bytearray:
        if self._released:
            raise RuntimeError("Audio artifact has already been released")
        return self._data

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> bool:
        """
        Zero the audio bytes and drop them.

        Returns:
            True if this call wiped the data, False if it was already released
        """
        if self._released:
            return False
        wipe_buffer(self._data)
        self._data = bytearray()
        self._released = True
        return True


@dataclass
class ConversionResult:
    """Canonical 16 kHz mono WAV, base64 encoded, plus what was decoded."""
    audio_base64: str
    source_sample_rate: int
    source_channels: int
    duration_seconds: float
