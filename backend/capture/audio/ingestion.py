"""Helper functions for turning inbound uploads into audio artifacts."""
import io
from typing import AsyncIterator, BinaryIO, Optional
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from capture.audio.models import AudioArtifact, wipe_buffer
from capture.core.errors import FileTooLarge
from capture.core.logging import logger

DEFAULT_CONTENT_TYPE = "audio/mpeg"
READ_CHUNK_SIZE = 64 * 1024


def is_raw_audio(content_type: Optional[str]) -> bool:
    """True for a raw ``audio/*`` request body (as opposed to multipart)."""
    content_type = (content_type or "").lower()
    return content_type.startswith("audio/") and "multipart" not in content_type


def _too_large(max_bytes: int) -> FileTooLarge:
    max_mb = max_bytes / (1024 * 1024)
    return FileTooLarge(f"Audio file exceeds maximum size of {max_mb:g}MB")


async def artifact_from_stream(
    chunks: AsyncIterator[bytes],
    content_type: Optional[str],
    max_bytes: int
) -> Optional[AudioArtifact]:
    """
    Read a raw request body into an AudioArtifact.

    Chunks are appended to one ``bytearray`` that the artifact then owns, so
    no other copy of the body outlives the read. Reading stops as soon as
    ``max_bytes`` is passed.

    Args:
        chunks: Request body stream (``request.stream()``)
        content_type: Request Content-Type header
        max_bytes: Size ceiling

    Returns:
        AudioArtifact, or None if the body is empty

    Raises:
        FileTooLarge: If the body is larger than ``max_bytes``
    """
    buffer = bytearray()
    try:
        async for chunk in chunks:
            if len(buffer) + len(chunk) > max_bytes:
                raise _too_large(max_bytes)
            buffer.extend(chunk)
    except BaseException:
        wipe_buffer(buffer)
        raise

    if not buffer:
        logger.warning("Received empty audio body")
        return None
    return AudioArtifact(buffer, content_type or DEFAULT_CONTENT_TYPE)


def _drain_file(file: BinaryIO, max_bytes: int) -> bytearray:
    """Copy a spooled upload into a bytearray, then zero the spooled copy."""
    file.seek(0, io.SEEK_END)
    size = file.tell()
    try:
        if size > max_bytes:
            raise _too_large(max_bytes)

        buffer = bytearray(size)
        file.seek(0)
        position = 0
        while position < size:
            chunk = file.read(min(READ_CHUNK_SIZE, size - position))
            if not chunk:
                break
            buffer[position:position + len(chunk)] = chunk
            position += len(chunk)
        del buffer[position:]
        return buffer
    finally:
        # Large uploads are spooled to a temporary file on disk
        file.seek(0)
        zeros = bytes(min(size, READ_CHUNK_SIZE))
        remaining = size
        while remaining > 0:
            step = min(remaining, len(zeros))
            file.write(zeros[:step])
            remaining -= step
        file.flush()


async def artifact_from_upload(upload: UploadFile, max_bytes: int) -> Optional[AudioArtifact]:
    """
    Read a multipart file field into an AudioArtifact.

    The spooled upload is overwritten with zeros and closed once its
    content has been moved into the artifact.

    Args:
        upload: The ``audio`` form field
        max_bytes: Size ceiling

    Returns:
        AudioArtifact, or None if the upload is empty

    Raises:
        FileTooLarge: If the upload is larger than ``max_bytes``
    """
    try:
        buffer = await run_in_threadpool(_drain_file, upload.file, max_bytes)
    finally:
        await upload.close()

    if not buffer:
        logger.warning("Received empty audio upload")
        return None
    return AudioArtifact(buffer, upload.content_type or DEFAULT_CONTENT_TYPE)


def enforce_size_limit(artifact: AudioArtifact, max_bytes: int) -> None:
    """
    Reject artifacts above the configured size ceiling.

    Raises:
        FileTooLarge: If the artifact is larger than ``max_bytes``
    """
    if artifact.size > max_bytes:
        raise _too_large(max_bytes)
