"""API key authentication against the client allowlist."""
import hmac
from typing import Iterable, Mapping, Optional
from capture.core.errors import ClientNotAllowed, InvalidAuth


class Authenticator:
    """Validates a client identifier and its API key."""

    def __init__(self, allowlist: Iterable[str], api_keys: Mapping[str, str]):
        """
        Args:
            allowlist: Client identifiers allowed to submit recordings
            api_keys: Expected API key per client identifier
        """
        self._allowlist = frozenset(allowlist)
        self._api_keys = dict(api_keys)

    def authenticate(self, client_id: Optional[str], api_key: Optional[str]) -> str:
        """
        Check credentials for a request.

        Returns:
            The authenticated client identifier

        Raises:
            InvalidAuth: If a credential is missing, unknown or wrong
            ClientNotAllowed: If the client is not in the allowlist
        """
        if not api_key or not client_id:
            missing = []
            if not api_key:
                missing.append("apiKey (in Authorization header or body)")
            if not client_id:
                missing.append("clientId (in request body, query parameter, or X-Client-Id header)")
            raise InvalidAuth(f"Missing required authentication: {' and '.join(missing)}")

        if client_id not in self._allowlist:
            raise ClientNotAllowed(f"Client {client_id} is not authorized")

        expected = self._api_keys.get(client_id)
        if not expected:
            raise InvalidAuth("No API key configured for client")

        if not hmac.compare_digest(api_key.encode("utf-8"), expected.encode("utf-8")):
            raise InvalidAuth("Invalid API key")

        return client_id
