"""Unit tests for channel downmixing."""
import numpy as np
from capture.audio.mixer import downmix
from capture.audio.models import PCMBuffer


def test_downmix_stereo_averages_pairs():
    """Test that [L0, R0, L1, R1] becomes [(L0+R0)/2, (L1+R1)/2]."""
    buffer = PCMBuffer(
        samples=np.array([0.2, 0.4, -0.6, 0.2], dtype=np.float32),
        sample_rate=44100,
        channel_count=2
    )

    result = downmix(buffer)

    assert result.channel_count == 1
    assert result.sample_rate == 44100
    np.testing.assert_allclose(result.samples, [0.3, -0.2], atol=1e-6)


def test_downmix_mono_is_passthrough():
    """Test that mono input is returned as the same object."""
    buffer = PCMBuffer(samples=np.array([0.1, 0.2], dtype=np.float32), sample_rate=16000)

    assert downmix(buffer) is buffer


def test_downmix_many_channels():
    """Test an unweighted mean across more than two channels."""
    buffer = PCMBuffer(
        samples=np.array([0.3, 0.6, 0.9, -0.3, 0.0, 0.3], dtype=np.float32),
        sample_rate=48000,
        channel_count=3
    )

    result = downmix(buffer)

    np.testing.assert_allclose(result.samples, [0.6, 0.0], atol=1e-6)
