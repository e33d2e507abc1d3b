"""Configuration settings for the Voice Capture Service."""
import os
from pydantic_settings import BaseSettings
from dotenv import dotenv_values
from typing import Dict, List, Optional

API_KEY_PREFIX = "API_KEY_"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server settings
    host: str = "0.0.0.0"
    port: int = 3000

    # Client access
    client_allowlist: str = ""  # Comma separated client identifiers

    # Admission control
    rate_limit_requests_per_minute: int = 100
    rate_limit_window_seconds: float = 60.0
    rate_limit_sweep_interval_seconds: float = 300.0  # Independent of request traffic
    rate_limit_cleanup_every: int = 100  # Opportunistic sweep every N checks

    # Audio settings
    sample_rate: int = 16000  # Hz, canonical rate sent for transcription
    max_audio_size_mb: int = 10
    max_audio_duration_seconds: float = 300.0  # 0 disables the duration check
    conversion_timeout_seconds: float = 30.0

    # Transcription collaborator
    wispr_flow_api_url: Optional[str] = None
    wispr_flow_api_key: Optional[str] = None
    transcription_language: str = "en"
    transcription_timeout_seconds: float = 60.0

    # Forwarding collaborator
    internal_endpoint_url: Optional[str] = None
    internal_endpoint_auth_token: Optional[str] = None
    forward_retry_delays: List[float] = [1.0, 2.0, 4.0]  # seconds, one entry per retry
    forward_timeout_seconds: float = 10.0  # per attempt

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def allowed_clients(self) -> List[str]:
        """Client identifiers parsed from the comma separated allowlist."""
        return [client_id.strip() for client_id in self.client_allowlist.split(",") if client_id.strip()]

    @property
    def max_audio_size_bytes(self) -> int:
        return self.max_audio_size_mb * 1024 * 1024

    def api_keys(self) -> Dict[str, str]:
        """
        Collect per-client API keys.

        Keys are declared as ``API_KEY_<CLIENT_ID>`` either in the process
        environment or in the ``.env`` file; the environment wins.

        Returns:
            Mapping of client identifier to API key
        """
        sources: Dict[str, Optional[str]] = {}
        env_file = self.model_config.get("env_file")
        if env_file and os.path.exists(env_file):
            sources.update(dotenv_values(env_file))
        sources.update(os.environ)

        keys = {}
        for name, value in sources.items():
            if name.startswith(API_KEY_PREFIX) and value:
                keys[name[len(API_KEY_PREFIX):]] = value
        return keys

    def missing_required(self) -> List[str]:
        """Return the names of required settings that are not configured."""
        required = {
            "CLIENT_ALLOWLIST": self.client_allowlist,
            "WISPR_FLOW_API_URL": self.wispr_flow_api_url,
            "WISPR_FLOW_API_KEY": self.wispr_flow_api_key,
            "INTERNAL_ENDPOINT_URL": self.internal_endpoint_url,
        }
        missing = [name for name, value in required.items() if not value]
        if not self.api_keys():
            missing.append(f"{API_KEY_PREFIX}<CLIENT_ID>")
        return missing


settings = Settings()
