"""Environment-driven configuration for the external collaborators."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_PREP_BASE_URL = "https://api-pdfservice.continualengine.com"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: str = "") -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class CheckerConfig:
    api_id: Optional[str] = None
    app_key: Optional[str] = None
    base_url: str = DEFAULT_PREP_BASE_URL
    autotag_base_url: str = DEFAULT_PREP_BASE_URL + "/v1"
    timeout: int = 60
    max_poll_attempts: int = 30
    poll_interval_seconds: float = 5.0

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_id and self.app_key)

    @classmethod
    def from_env(cls) -> "CheckerConfig":
        base_url = os.getenv("PREP_BASE_URL", DEFAULT_PREP_BASE_URL).rstrip("/")
        return cls(
            api_id=os.getenv("PREP_API_ID"),
            app_key=os.getenv("PREP_APP_KEY"),
            base_url=base_url,
            autotag_base_url=os.getenv("PREP_AUTOTAG_BASE_URL", base_url + "/v1").rstrip("/"),
            timeout=_env_int("PREP_TIMEOUT_SECONDS", 60),
            max_poll_attempts=_env_int("AUTOTAG_MAX_POLL_ATTEMPTS", 30),
            poll_interval_seconds=float(_env_int("AUTOTAG_POLL_INTERVAL_SECONDS", 5)),
        )


@dataclass
class AIConfig:
    api_key: Optional[str] = None
    transcribe_model: str = "whisper-1"
    vision_model: str = "gpt-4o-mini"
    timeout: int = 60
    base_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> "AIConfig":
        return cls(
            api_key=os.getenv("OPENAI_API_KEY"),
            transcribe_model=os.getenv("OPENAI_TRANSCRIBE_MODEL", "whisper-1"),
            vision_model=os.getenv("OPENAI_VISION_MODEL", "gpt-4o-mini"),
            timeout=_env_int("OPENAI_TIMEOUT_SECONDS", 60),
            base_url=os.getenv("OPENAI_BASE_URL") or None,
        )


@dataclass
class AuthConfig:
    """Verification settings for identity-provider session tokens."""

    key: Optional[str] = None
    algorithms: List[str] = field(default_factory=lambda: ["HS256"])
    issuer: Optional[str] = None
    audience: Optional[str] = None
    cookie_name: str = "__session"

    @classmethod
    def from_env(cls) -> "AuthConfig":
        key = os.getenv("AUTH_JWT_KEY")
        if key:
            # PEM keys pasted into .env files usually carry literal "\n" sequences.
            key = key.replace("\\n", "\n")
        return cls(
            key=key,
            algorithms=_env_list("AUTH_JWT_ALGORITHMS", "HS256") or ["HS256"],
            issuer=os.getenv("AUTH_JWT_ISSUER") or None,
            audience=os.getenv("AUTH_JWT_AUDIENCE") or None,
            cookie_name=os.getenv("AUTH_SESSION_COOKIE", "__session"),
        )


def cors_origins() -> List[str]:
    origins = ["http://localhost:3000"]
    frontend_url = os.getenv("FRONTEND_URL")
    if frontend_url:
        origins.extend(_env_list("FRONTEND_URL"))
    return origins
