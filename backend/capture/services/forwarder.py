"""Delivery of transcriptions to the internal endpoint with bounded retries."""
import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence
import httpx
from capture.core.logging import logger

DEFAULT_RETRY_DELAYS = (1.0, 2.0, 4.0)


class ForwardState(str, Enum):
    """States of the forwarding retry state machine."""
    ATTEMPTING = "attempting"
    RETRYABLE = "retryable"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


@dataclass
class ForwardAttempt:
    """One delivery try."""
    number: int  # 1-based
    delay_seconds: float  # backoff slept before this attempt
    error: Optional[str] = None


@dataclass
class ForwardResult:
    success: bool
    error: Optional[str] = None
    attempts: List[ForwardAttempt] = field(default_factory=list)


class Forwarder:
    """
    POSTs transcription payloads to the internal endpoint.

    One initial attempt is made, then one retry per entry of
    ``retry_delays`` after sleeping that many seconds. Every non-2xx status,
    network failure, timeout or local error is retried the same way; the
    error text keeps them apart for the logs.

    Backoff sleeps hold no lock. Cancelling the calling task stops the loop
    where it is: no further attempts are made and an in-flight request is
    abandoned.
    """

    def __init__(
        self,
        endpoint_url: Optional[str],
        auth_token: Optional[str] = None,
        retry_delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time
    ):
        self._endpoint_url = endpoint_url
        self._auth_token = auth_token
        self._retry_delays = tuple(retry_delays)
        self._timeout = timeout_seconds
        self._transport = transport
        self._sleep = sleep
        self._clock = clock

    @property
    def max_attempts(self) -> int:
        return len(self._retry_delays) + 1

    def build_payload(self, text: str, client_id: str, request_id: str) -> dict:
        return {
            "text": text,
            "clientId": client_id,
            "timestamp": int(self._clock() * 1000),
            "requestId": request_id,
        }

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self._auth_token:
            headers["Authorization"] = self._auth_token
        return headers

    async def _attempt(self, client: httpx.AsyncClient, payload: dict) -> Optional[str]:
        """
        Make one POST.

        Returns:
            None on a 2xx response, otherwise the error description
        """
        if not self._endpoint_url:
            return "Forwarding error: internal endpoint URL is not configured"

        try:
            response = await client.post(self._endpoint_url, json=payload, headers=self._headers())
        except httpx.UnsupportedProtocol as e:
            return f"Forwarding error: {e}"
        except httpx.TransportError:
            # Connect/read/write failures and timeouts: no response was received
            return "Internal endpoint unavailable"
        except (httpx.HTTPError, httpx.InvalidURL, TypeError, ValueError) as e:
            return f"Forwarding error: {e}"

        if 200 <= response.status_code < 300:
            return None
        return f"Internal endpoint error: {response.status_code} {response.reason_phrase}"

    def _next_state(self, attempt: ForwardAttempt) -> ForwardState:
        if attempt.error is None:
            return ForwardState.SUCCESS
        if attempt.number >= self.max_attempts:
            return ForwardState.EXHAUSTED
        return ForwardState.RETRYABLE

    async def forward(self, text: str, client_id: str, request_id: str) -> ForwardResult:
        """
        Deliver a transcription.

        Args:
            text: Transcribed text
            client_id: Client that submitted the recording
            request_id: Correlation identifier

        Returns:
            ForwardResult with the outcome and every attempt made
        """
        payload = self.build_payload(text, client_id, request_id)
        attempts: List[ForwardAttempt] = []
        delay = 0.0

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            state = ForwardState.ATTEMPTING
            while state is ForwardState.ATTEMPTING:
                attempt = ForwardAttempt(number=len(attempts) + 1, delay_seconds=delay)
                attempts.append(attempt)
                attempt.error = await self._attempt(client, payload)
                state = self._next_state(attempt)

                if state is ForwardState.RETRYABLE:
                    delay = self._retry_delays[attempt.number - 1]
                    logger.warning(
                        f"Forward attempt {attempt.number}/{self.max_attempts} for request {request_id} "
                        f"failed: {attempt.error}; retrying in {delay:g}s"
                    )
                    await self._sleep(delay)
                    state = ForwardState.ATTEMPTING

        if state is ForwardState.SUCCESS:
            logger.info(f"Forwarded transcription for request {request_id} after {len(attempts)} attempt(s)")
            return ForwardResult(success=True, attempts=attempts)

        error = attempts[-1].error or "Forwarding failed after all retries"
        logger.error(f"Forwarding exhausted for request {request_id} after {len(attempts)} attempts: {error}")
        return ForwardResult(success=False, error=error, attempts=attempts)
