"""
Service configuration.

Built once at startup and passed to the notifier, the AI backend and the
services. Nothing else reads the environment.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    # Twilio (SMS)
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None

    # Resend (email)
    resend_api_key: Optional[str] = None
    resend_from_address: str = "HEMO LINK <onboarding@resend.dev>"

    # Text generation
    ai_provider: str = "openai"
    ai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    google_model: str = "gemini-1.5-flash"
    anthropic_model: str = "claude-3-5-sonnet-20241022"

    # Firebase
    firebase_credentials: str = "hemolink-key.json"

    # Fan-out and HTTP
    max_concurrency: int = 8
    http_timeout: float = 30.0

    @property
    def twilio_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_phone_number)

    @property
    def email_configured(self) -> bool:
        return bool(self.resend_api_key)

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from environment variables."""
        defaults = cls()
        return cls(
            twilio_account_sid=os.getenv("TWILIO_ACCOUNT_SID"),
            twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN"),
            twilio_phone_number=os.getenv("TWILIO_PHONE_NUMBER"),
            resend_api_key=os.getenv("RESEND_API_KEY"),
            resend_from_address=os.getenv("RESEND_FROM_ADDRESS", defaults.resend_from_address),
            ai_provider=os.getenv("AI_PROVIDER", defaults.ai_provider).lower(),
            ai_api_key=os.getenv("HEMO_AI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL", defaults.openai_model),
            google_model=os.getenv("GOOGLE_MODEL", defaults.google_model),
            anthropic_model=os.getenv("ANTHROPIC_MODEL", defaults.anthropic_model),
            firebase_credentials=os.getenv("FIREBASE_CREDENTIALS", defaults.firebase_credentials),
            max_concurrency=int(os.getenv("HEMOLINK_MAX_CONCURRENCY", defaults.max_concurrency)),
            http_timeout=float(os.getenv("HEMOLINK_HTTP_TIMEOUT", defaults.http_timeout)),
        )
