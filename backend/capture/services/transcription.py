"""Client for the remote speech-to-text API."""
from typing import List, Optional
import httpx
from capture.core.errors import TranscriptionFailed
from capture.core.logging import logger


def normalize_api_url(url: str) -> str:
    """Strip trailing slashes and make sure the URL ends with ``/api``."""
    url = url.rstrip("/")
    if not url.endswith("/api"):
        url = f"{url}/api"
    return url


class TranscriptionClient:
    """Sends canonical WAV audio for transcription and validates the text returned."""

    def __init__(
        self,
        api_url: Optional[str],
        api_key: Optional[str],
        language: str = "en",
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._api_url = normalize_api_url(api_url) if api_url else None
        self._api_key = api_key
        self._languages: List[str] = [language]
        self._timeout = timeout_seconds
        self._transport = transport

    async def transcribe(self, audio_base64: str) -> str:
        """
        Transcribe one recording.

        Args:
            audio_base64: Base64 encoded 16 kHz mono WAV

        Returns:
            The transcribed text (never empty)

        Raises:
            TranscriptionFailed: On any API error, timeout, or empty/no-speech result
        """
        if not self._api_url:
            raise TranscriptionFailed("WISPR_FLOW_API_URL is not configured")

        body = {
            "audio": audio_base64,
            "language": self._languages,
            "context": {},
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._api_url, json=body, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            raise TranscriptionFailed("Transcription request timed out") from e
        except httpx.HTTPStatusError as e:
            raise TranscriptionFailed(
                f"Transcription API error: {e.response.status_code} {_error_detail(e.response)}"
            ) from e
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise TranscriptionFailed(f"Transcription failed: {e}") from e
        except httpx.TransportError as e:
            raise TranscriptionFailed("Transcription API unavailable") from e
        except ValueError as e:
            raise TranscriptionFailed("Invalid transcription response: body is not JSON") from e

        text = data.get("text") if isinstance(data, dict) else None

        if text is None:
            raise TranscriptionFailed(
                "No transcription text returned (audio may contain no speech or transcription failed)"
            )
        if not isinstance(text, str):
            raise TranscriptionFailed("Invalid transcription response: text field is not a string")
        if not text.strip():
            raise TranscriptionFailed("Transcription returned empty text (no speech detected in audio)")

        logger.debug(f"Transcription returned {len(text)} characters")
        return text


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or response.reason_phrase)
    return response.reason_phrase
