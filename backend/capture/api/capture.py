"""POST /capture: voice recording submission."""
from typing import Optional
from fastapi import APIRouter, Request
from starlette.datastructures import FormData, UploadFile
from capture.audio.ingestion import artifact_from_stream, artifact_from_upload, is_raw_audio
from capture.core.errors import CaptureError, MissingAudio, success_response
from capture.core.logging import log_error
from capture.services.capture_service import CaptureService, RequestContext, new_request_id

CLIENT_ID_HEADERS = ("x-client-id", "client-id", "x-clientid")

router = APIRouter()


def resolve_client_id(request: Request, form: Optional[FormData]) -> Optional[str]:
    """Client identifier from the form body, query string, or headers (first found)."""
    if form is not None:
        client_id = form.get("clientId")
        if isinstance(client_id, str) and client_id:
            return client_id
    client_id = request.query_params.get("clientId")
    if client_id:
        return client_id
    for header in CLIENT_ID_HEADERS:
        client_id = request.headers.get(header)
        if client_id:
            return client_id
    return None


def extract_api_key(request: Request, form: Optional[FormData]) -> Optional[str]:
    """API key from a Bearer Authorization header, falling back to the ``apiKey`` form field."""
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[len("Bearer "):]
    if form is not None:
        api_key = form.get("apiKey")
        if isinstance(api_key, str) and api_key:
            return api_key
    return None
@router.post("/capture")
async def capture(request: Request):
    """
    Accept a voice recording, transcribe it, and forward the text.

    The recording is either the ``audio`` field of a multipart form or a raw
    body sent with ``Content-Type: audio/*``. Either way it is read straight
    into the artifact's own buffer, and reading stops at the size ceiling.
    """
    service: CaptureService = request.app.state.capture_service
    request_id = getattr(request.state, "request_id", None) or new_request_id()
    content_type = request.headers.get("content-type", "")

    form = None
    artifact = None
    try:
        if is_raw_audio(content_type):
            artifact = await artifact_from_stream(request.stream(), content_type, service.max_audio_bytes)
        elif content_type.lower().startswith("multipart/form-data"):
            form = await request.form()
            upload = form.get("audio")
            if isinstance(upload, UploadFile):
                artifact = await artifact_from_upload(upload, service.max_audio_bytes)

        if artifact is None:
            raise MissingAudio("Audio file is required")
    except CaptureError as e:
        log_error(e.code.value, e.message, request_id=request_id, level=e.log_level)
        raise
    finally:
        if form is not None:
            await form.close()

    context = RequestContext(
        request_id=request_id,
        client_id=resolve_client_id(request, form),
        content_type=artifact.content_type,
        size_bytes=artifact.size
    )
    outcome = await service.handle(context, artifact, extract_api_key(request, form))

    return success_response(outcome.message, outcome.request_id)
