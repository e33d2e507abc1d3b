"""Integration tests for capture request orchestration."""
import asyncio
import pytest
from capture.audio.models import AudioArtifact
from capture.core.errors import (
    ClientNotAllowed,
    ConversionFailed,
    FileTooLarge,
    ForwardingFailed,
    InternalError,
    InvalidAuth,
    RateLimitExceeded,
    TranscriptionFailed,
)
from capture.services.auth import Authenticator
from capture.services.capture_service import CaptureService, RequestContext
from capture.services.forwarder import ForwardResult
from capture.services.rate_limiter import RateLimiter


class FakeTranscriber:
    def __init__(self, text="hello world", error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def transcribe(self, audio_base64):
        self.calls.append(audio_base64)
        if self.error is not None:
            raise self.error
        return self.text


class FakeForwarder:
    def __init__(self, success=True, error=None):
        self.success = success
        self.error = error
        self.calls = []

    async def forward(self, text, client_id, request_id):
        self.calls.append((text, client_id, request_id))
        if isinstance(self.error, Exception):
            raise self.error
        return ForwardResult(success=self.success, error=self.error)


class TrackingArtifact(AudioArtifact):
    """Counts release calls that actually wiped data."""

    def __init__(self, data, content_type="audio/wav"):
        super().__init__(data, content_type)
        self.wipes = 0
        self.buffer = self._data

    def release(self):
        wiped = super().release()
        if wiped:
            self.wipes += 1
        return wiped


def _service(transcriber=None, forwarder=None, limit=100, max_bytes=10 * 1024 * 1024, **kwargs):
    return CaptureService(
        rate_limiter=RateLimiter(limit=limit),
        authenticator=Authenticator(["client-a"], {"client-a": "key-a"}),
        transcriber=transcriber or FakeTranscriber(),
        forwarder=forwarder or FakeForwarder(),
        max_audio_bytes=max_bytes,
        **kwargs
    )


def _context(client_id="client-a"):
    return RequestContext(request_id="req-1", client_id=client_id)


def _assert_wiped_once(artifact):
    assert artifact.released
    assert artifact.wipes == 1
    assert not any(artifact.buffer)


@pytest.mark.asyncio
async def test_successful_capture(tone_wav):
    """Test the happy path: transcribed text is forwarded and audio is released."""
    transcriber = FakeTranscriber()
    forwarder = FakeForwarder()
    service = _service(transcriber, forwarder)
    artifact = TrackingArtifact(tone_wav)
    context = _context()

    outcome = await service.handle(context, artifact, "key-a")

    assert outcome.request_id == "req-1"
    assert outcome.message == "Transcription forwarded successfully"
    assert len(transcriber.calls) == 1
    assert forwarder.calls == [("hello world", "client-a", "req-1")]
    assert context.transcript_length == len("hello world")
    _assert_wiped_once(artifact)


@pytest.mark.asyncio
async def test_audio_is_released_before_forwarding(tone_wav):
    """Test that no audio is held while forwarding is in progress."""
    artifact = TrackingArtifact(tone_wav)

    class CheckingForwarder(FakeForwarder):
        async def forward(self, text, client_id, request_id):
            assert artifact.released
            return await super().forward(text, client_id, request_id)

    forwarder = CheckingForwarder()
    await _service(forwarder=forwarder).handle(_context(), artifact, "key-a")

    assert len(forwarder.calls) == 1
    text, _, _ = forwarder.calls[0]
    assert text == "hello world"


@pytest.mark.asyncio
async def test_rate_limited_request(tone_wav):
    """Test that the request over the limit is rejected with a retry hint."""
    service = _service(limit=1)
    await service.handle(_context(), TrackingArtifact(tone_wav), "key-a")
    artifact = TrackingArtifact(tone_wav)

    with pytest.raises(RateLimitExceeded) as exc_info:
        await service.handle(_context(), artifact, "key-a")

    assert exc_info.value.retry_after >= 1
    assert exc_info.value.status_code == 429
    assert "Maximum 1 requests per minute" in exc_info.value.message
    _assert_wiped_once(artifact)


@pytest.mark.parametrize(
    "client_id,api_key,error",
    [
        ("client-a", None, InvalidAuth),
        ("client-a", "wrong", InvalidAuth),
        (None, "key-a", InvalidAuth),
        ("client-z", "key-a", ClientNotAllowed),
    ],
)
@pytest.mark.asyncio
async def test_auth_failures_release_audio(tone_wav, client_id, api_key, error):
    """Test that rejected credentials never reach transcription."""
    transcriber = FakeTranscriber()
    artifact = TrackingArtifact(tone_wav)

    with pytest.raises(error):
        await _service(transcriber).handle(_context(client_id), artifact, api_key)

    assert transcriber.calls == []
    _assert_wiped_once(artifact)


@pytest.mark.asyncio
async def test_file_too_large(tone_wav):
    """Test that oversized uploads are rejected before conversion."""
    transcriber = FakeTranscriber()
    artifact = TrackingArtifact(tone_wav)

    with pytest.raises(FileTooLarge):
        await _service(transcriber, max_bytes=100).handle(_context(), artifact, "key-a")

    assert transcriber.calls == []
    _assert_wiped_once(artifact)


@pytest.mark.asyncio
async def test_conversion_failure():
    """Test that undecodable audio is a conversion failure."""
    transcriber = FakeTranscriber()
    artifact = TrackingArtifact(b"this is not audio at all", "audio/wav")

    with pytest.raises(ConversionFailed) as exc_info:
        await _service(transcriber).handle(_context(), artifact, "key-a")

    assert exc_info.value.stage == "decode"
    assert exc_info.value.status_code == 400
    assert transcriber.calls == []
    _assert_wiped_once(artifact)


@pytest.mark.asyncio
async def test_transcription_failure(tone_wav):
    """Test that transcription errors stop the request before forwarding."""
    forwarder = FakeForwarder()
    transcriber = FakeTranscriber(error=TranscriptionFailed("Transcription API unavailable"))
    artifact = TrackingArtifact(tone_wav)

    with pytest.raises(TranscriptionFailed):
        await _service(transcriber, forwarder).handle(_context(), artifact, "key-a")

    assert forwarder.calls == []
    _assert_wiped_once(artifact)


@pytest.mark.asyncio
async def test_forwarding_failure(tone_wav):
    """Test that exhausted forwarding surfaces the last error."""
    forwarder = FakeForwarder(success=False, error="Internal endpoint unavailable")
    artifact = TrackingArtifact(tone_wav)

    with pytest.raises(ForwardingFailed) as exc_info:
        await _service(forwarder=forwarder).handle(_context(), artifact, "key-a")

    assert exc_info.value.message == "Internal endpoint unavailable"
    assert exc_info.value.status_code == 503
    _assert_wiped_once(artifact)


@pytest.mark.asyncio
async def test_unexpected_error_becomes_internal_error(tone_wav):
    """Test that an unexpected exception is wrapped without its text, and audio still released."""
    transcriber = FakeTranscriber(error=KeyError("/srv/secret/path token=abc"))
    artifact = TrackingArtifact(tone_wav)

    with pytest.raises(InternalError) as exc_info:
        await _service(transcriber).handle(_context(), artifact, "key-a")

    assert exc_info.value.status_code == 500
    assert exc_info.value.message == "Internal server error"
    assert exc_info.value.to_response() == {
        "success": False,
        "error": "INTERNAL_ERROR",
        "message": "Internal server error",
    }
    _assert_wiped_once(artifact)


@pytest.mark.asyncio
async def test_cancellation_releases_audio(tone_wav):
    """Test that a cancelled request still wipes its audio."""
    started = asyncio.Event()

    class HangingTranscriber(FakeTranscriber):
        async def transcribe(self, audio_base64):
            started.set()
            await asyncio.Event().wait()

    artifact = TrackingArtifact(tone_wav)
    task = asyncio.create_task(_service(HangingTranscriber()).handle(_context(), artifact, "key-a"))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    _assert_wiped_once(artifact)
