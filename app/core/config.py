"""Application configuration."""
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI
    openai_api_key: str
    openai_model: str = "gpt-4o-mini"

    # Twilio
    twilio_account_sid: str
    twilio_auth_token: str
    twilio_phone_number: Optional[str] = None

    # Only this caller may dial in; also the default outbound destination
    user_phone_number: Optional[str] = None

    # Database
    database_url: str

    # Assistant persona
    user_name: Optional[str] = None
    user_timezone: str = "UTC"
    profile_path: Optional[str] = None

    # Server
    phone_webhook_url: Optional[str] = None
    phone_webhook_host: str = "0.0.0.0"
    phone_webhook_port: int = 3100
    api_key: Optional[str] = None
    # Reject voice webhooks without a valid X-Twilio-Signature
    twilio_validate_signatures: bool = True

    # Call handling
    twiml_voice: str = "Polly.Emma-Generative"
    session_ttl_seconds: int = 30 * 60
    session_sweep_interval_seconds: int = 5 * 60
    recording_grace_seconds: float = 1.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = Settings()
