"""Guaranteed release of uploaded audio."""
from contextlib import contextmanager
from typing import Iterator, Optional
from capture.audio.models import AudioArtifact
from capture.core.logging import logger


@contextmanager
def artifact_scope(artifact: AudioArtifact, request_id: Optional[str] = None) -> Iterator[AudioArtifact]:
    """
    Hold an audio artifact for the duration of a block.

    The artifact is zeroed and released when the block exits, whether it
    completes or raises. Releasing twice is a no-op, so the wipe happens
    exactly once.
    """
    try:
        yield artifact
    finally:
        if artifact.release():
            logger.info(f"Audio buffer cleaned up for request {request_id or '-'} ({artifact.size} bytes)")
