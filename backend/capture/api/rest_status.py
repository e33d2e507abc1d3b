"""REST endpoint for health checks."""
import time
from fastapi import APIRouter
from capture.core.errors import success_response

SERVICE_VERSION = "1.0.0"

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        Status, timestamp (epoch ms) and version information
    """
    response = success_response("Service is healthy")
    response["status"] = "healthy"
    response["timestamp"] = int(time.time() * 1000)
    response["version"] = SERVICE_VERSION
    return response
