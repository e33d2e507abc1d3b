"""Request orchestration: admission, conversion, transcription, forwarding."""
import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional
from capture.audio.ingestion import enforce_size_limit
from capture.audio.models import AudioArtifact, ConversionResult
from capture.audio.pipeline import convert_to_16khz_wav
from capture.audio.resampler import TARGET_SAMPLE_RATE
from capture.core.errors import (
    CaptureError,
    ConversionFailed,
    ForwardingFailed,
    InternalError,
    RateLimitExceeded,
)
from capture.core.logging import log_error, logger
from capture.services.auth import Authenticator
from capture.services.cleanup import artifact_scope
from capture.services.forwarder import Forwarder
from capture.services.rate_limiter import RateLimiter
from capture.services.transcription import TranscriptionClient

SUCCESS_MESSAGE = "Transcription forwarded successfully"
INTERNAL_ERROR_MESSAGE = "Internal server error"


def new_request_id() -> str:
    return str(uuid.uuid4())


@dataclass
class RequestContext:
    """Correlates one inbound call across all stages."""
    request_id: str
    client_id: Optional[str]
    content_type: Optional[str] = None
    size_bytes: int = 0
    received_at: float = field(default_factory=time.time)
    transcript_length: Optional[int] = None  # attached once transcription succeeds


@dataclass
class CaptureOutcome:
    request_id: str
    message: str = SUCCESS_MESSAGE


class CaptureService:
    """Runs one voice capture request end to end."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        authenticator: Authenticator,
        transcriber: TranscriptionClient,
        forwarder: Forwarder,
        max_audio_bytes: int,
        target_sample_rate: int = TARGET_SAMPLE_RATE,
        max_duration_seconds: Optional[float] = None,
        conversion_timeout_seconds: float = 30.0
    ):
        self.rate_limiter = rate_limiter
        self._authenticator = authenticator
        self._transcriber = transcriber
        self._forwarder = forwarder
        self.max_audio_bytes = max_audio_bytes
        self._target_sample_rate = target_sample_rate
        self._max_duration_seconds = max_duration_seconds
        self._conversion_timeout = conversion_timeout_seconds

    async def handle(self, context: RequestContext, artifact: AudioArtifact, api_key: Optional[str]) -> CaptureOutcome:
        """
        Process a capture request.

        Stages run in order: admission, authentication, size check,
        conversion, transcription, forwarding. The audio artifact is released
        right after transcription, or as soon as an earlier stage fails, and
        is never part of the forwarded payload.

        Args:
            context: Request context (request id, client id, upload metadata)
            artifact: Uploaded audio
            api_key: Credential presented by the client

        Returns:
            CaptureOutcome on success

        Raises:
            CaptureError: Exactly one error kind per failed stage; anything
                unexpected is raised as InternalError
        """
        try:
            return await self._run(context, artifact, api_key)
        except CaptureError as e:
            log_error(
                e.code.value,
                e.message,
                request_id=context.request_id,
                client_id=context.client_id,
                level=e.log_level
            )
            raise
        except Exception as e:
            log_error(
                InternalError.code.value,
                f"Unexpected {type(e).__name__} while processing capture",
                request_id=context.request_id,
                client_id=context.client_id,
                exc_info=True
            )
            raise InternalError(INTERNAL_ERROR_MESSAGE) from e

    async def _run(self, context: RequestContext, artifact: AudioArtifact, api_key: Optional[str]) -> CaptureOutcome:
        with artifact_scope(artifact, request_id=context.request_id):
            await self._admit(context)
            self._authenticator.authenticate(context.client_id, api_key)
            enforce_size_limit(artifact, self.max_audio_bytes)
            conversion = await self._convert(context, artifact)
            text = await self._transcriber.transcribe(conversion.audio_base64)

        context.transcript_length = len(text)
        await self._forward(context, text)

        elapsed_ms = (time.time() - context.received_at) * 1000
        logger.info(
            f"Capture {context.request_id} for client {context.client_id} completed in {elapsed_ms:.0f}ms "
            f"({context.size_bytes} bytes in, {context.transcript_length} chars out)"
        )
        return CaptureOutcome(request_id=context.request_id)

    async def _admit(self, context: RequestContext) -> None:
        decision = await self.rate_limiter.admit(context.client_id)
        if not decision.allowed:
            raise RateLimitExceeded(
                f"Rate limit exceeded. Maximum {self.rate_limiter.limit} requests per minute.",
                retry_after=decision.retry_after_seconds
            )

    async def _convert(self, context: RequestContext, artifact: AudioArtifact) -> ConversionResult:
        # Decoding is CPU bound; keep it off the event loop
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(
                    convert_to_16khz_wav,
                    artifact.data,
                    artifact.content_type,
                    self._target_sample_rate,
                    self._max_duration_seconds
                ),
                timeout=self._conversion_timeout
            )
        except asyncio.TimeoutError as e:
            raise ConversionFailed("decode", f"conversion timed out after {self._conversion_timeout:g}s") from e

        logger.debug(
            f"Request {context.request_id}: converted {result.source_sample_rate} Hz/"
            f"{result.source_channels} ch, {result.duration_seconds:.2f}s"
        )
        return result

    async def _forward(self, context: RequestContext, text: str) -> None:
        result = await self._forwarder.forward(text, context.client_id, context.request_id)
        if not result.success:
            raise ForwardingFailed(result.error or "Failed to forward transcription")
