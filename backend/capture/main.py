"""FastAPI application entrypoint."""
import time
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from capture.api import capture, rest_status
from capture.core.config import Settings, settings
from capture.core.errors import CaptureError, ErrorCode, RateLimitExceeded, error_response, status_for
from capture.core.logging import logger, setup_logging
from capture.services.auth import Authenticator
from capture.services.capture_service import INTERNAL_ERROR_MESSAGE, CaptureService, new_request_id
from capture.services.forwarder import Forwarder
from capture.services.rate_limiter import RateLimiter
from capture.services.transcription import TranscriptionClient

# Setup logging
setup_logging()

# Create FastAPI app
app = FastAPI(
    title="Voice Capture Service",
    description="Accepts voice recordings, transcribes them, and forwards the text downstream",
    version=rest_status.SERVICE_VERSION
)

# Include routers
app.include_router(rest_status.router)
app.include_router(capture.router)


def build_capture_service(config: Settings) -> CaptureService:
    """Wire the capture pipeline from settings."""
    rate_limiter = RateLimiter(
        limit=config.rate_limit_requests_per_minute,
        window_seconds=config.rate_limit_window_seconds,
        sweep_interval_seconds=config.rate_limit_sweep_interval_seconds,
        cleanup_every=config.rate_limit_cleanup_every
    )
    return CaptureService(
        rate_limiter=rate_limiter,
        authenticator=Authenticator(config.allowed_clients, config.api_keys()),
        transcriber=TranscriptionClient(
            config.wispr_flow_api_url,
            config.wispr_flow_api_key,
            language=config.transcription_language,
            timeout_seconds=config.transcription_timeout_seconds
        ),
        forwarder=Forwarder(
            config.internal_endpoint_url,
            config.internal_endpoint_auth_token,
            retry_delays=config.forward_retry_delays,
            timeout_seconds=config.forward_timeout_seconds
        ),
        max_audio_bytes=config.max_audio_size_bytes,
        target_sample_rate=config.sample_rate,
        max_duration_seconds=config.max_audio_duration_seconds or None,
        conversion_timeout_seconds=config.conversion_timeout_seconds
    )


@app.exception_handler(CaptureError)
async def capture_error_handler(request: Request, exc: CaptureError):
    """Render a typed failure as the JSON error envelope."""
    headers = None
    if isinstance(exc, RateLimitExceeded) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content=exc.to_response(), headers=headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Last resort: never let a raw exception reach the client."""
    logger.error(f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}", exc_info=exc)
    code = ErrorCode.INTERNAL_ERROR
    return JSONResponse(status_code=status_for(code), content=error_response(code, INTERNAL_ERROR_MESSAGE))


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log each request and response without bodies or credentials."""
    request_id = request.headers.get("x-request-id") or new_request_id()
    request.state.request_id = request_id
    start_time = time.time()

    logger.info(
        f"[REQUEST] {request_id} {request.method} {request.url.path} "
        f"content_type={request.headers.get('content-type', '-')} "
        f"content_length={request.headers.get('content-length', '-')}"
    )

    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        f"[RESPONSE] {request_id} {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration_ms:.0f}ms"
    )
    response.headers["X-Request-ID"] = request_id
    return response


@app.on_event("startup")
async def startup_event():
    """Validate configuration and start background work."""
    logger.info(f"Starting Voice Capture Service on {settings.host}:{settings.port}")

    if getattr(app.state, "capture_service", None) is None:
        missing = settings.missing_required()
        if missing:
            raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")
        app.state.capture_service = build_capture_service(settings)

    logger.info(
        f"Sample rate: {settings.sample_rate} Hz, max size: {settings.max_audio_size_mb} MB, "
        f"rate limit: {settings.rate_limit_requests_per_minute}/min"
    )
    app.state.capture_service.rate_limiter.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    service = getattr(app.state, "capture_service", None)
    if service is not None:
        await service.rate_limiter.stop()
    logger.info("Shutting down Voice Capture Service")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "capture.main:app",
        host=settings.host,
        port=settings.port
    )
