"""LexiCite configuration — loaded from environment variables."""

from __future__ import annotations

from dataclasses import dataclass, replace

from pydantic_settings import BaseSettings

from lexicite.models.verification import VerificationMode


class Settings(BaseSettings):
    model_config = {"env_prefix": "LEXICITE_", "env_file": ".env"}

    # AI verifier
    google_api_key: str = ""
    gemini_model: str = "gemini-3-pro-preview"

    # Authority database
    courtlistener_token: str = ""

    # Archival sync endpoint; empty disables it
    sync_url: str = ""

    # Persistence
    database_path: str = "lexicite.db"
    autosave_interval: float = 30.0
    history_limit: int = 100

    # Transport
    http_timeout: float = 60.0

    # Messages buffered per WebSocket client before the oldest is dropped
    ws_queue_size: int = 256

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"


settings = Settings()


@dataclass(frozen=True)
class VerificationConfig:
    """Configuration snapshot handed to the orchestrator for one batch."""

    mode: VerificationMode = VerificationMode.STANDARD
    search_enabled: bool = False
    court_listener_enabled: bool = True
    court_listener_token: str = ""
    rerun_all: bool = False

    @property
    def effective_mode(self) -> VerificationMode:
        """Research mode needs live search; otherwise fall back to standard."""
        if self.search_enabled:
            return self.mode
        return VerificationMode.STANDARD

    @property
    def lookup_active(self) -> bool:
        return self.court_listener_enabled and bool(self.court_listener_token.strip())

    def updated(self, **changes) -> VerificationConfig:
        return replace(self, **changes)

    @classmethod
    def from_settings(cls, s: Settings) -> VerificationConfig:
        return cls(court_listener_token=s.courtlistener_token)
