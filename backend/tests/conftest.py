"""Shared fixtures for capture service tests."""
import numpy as np
import pytest
from audio_factory import make_tone, make_wav


@pytest.fixture
def tone_wav() -> bytes:
    """Half a second of 440 Hz at 16 kHz mono."""
    return make_wav(make_tone())


@pytest.fixture
def stereo_wav_44k() -> bytes:
    """Half a second of stereo audio at 44.1 kHz (left tone, right silence)."""
    left = make_tone(sample_rate=44100)
    right = np.zeros_like(left)
    interleaved = np.stack([left, right], axis=1).reshape(-1)
    return make_wav(interleaved, sample_rate=44100, channels=2)
