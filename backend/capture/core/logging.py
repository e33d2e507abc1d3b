"""Logging configuration for the capture service."""
import logging
import sys
from typing import Optional
from capture.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging() -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
    # httpx logs every outbound request line at INFO, including endpoint URLs
    logging.getLogger("httpx").setLevel(logging.WARNING)


def log_error(
    error_code: str,
    message: str,
    *,
    request_id: Optional[str] = None,
    client_id: Optional[str] = None,
    level: int = logging.ERROR,
    exc_info: bool = False
) -> None:
    """
    Log a failed request stage.

    Only the named fields are ever written, so credentials and audio bytes
    have no way into a log record.

    Args:
        error_code: Error code the failure was mapped to
        message: Human-readable error message
        request_id: Request correlation identifier
        client_id: Client identifier, when known
        level: Logging level to emit at
        exc_info: Attach the active exception's stack trace
    """
    logger.log(
        level,
        f"[{error_code}] {message} (request_id={request_id or '-'}, client_id={client_id or '-'})",
        exc_info=exc_info
    )


logger = logging.getLogger(__name__)
