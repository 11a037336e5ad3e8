"""OTP Gateway — configuration loaded from environment."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, loaded from .env or environment variables."""

    # ── Database ──────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./otp_gateway.db"

    # ── OTP policy ────────────────────────────────────────
    # Defaults seeded into the policy row on first start
    otp_default_length: int = 6
    otp_default_ttl_seconds: int = 300
    # Bounds enforced by the admin boundary
    otp_min_length: int = 4
    otp_max_length: int = 10
    otp_min_ttl_seconds: int = 60
    otp_max_ttl_seconds: int = 86_400

    # ── Background sweeper ────────────────────────────────
    sweep_interval_seconds: float = 60.0

    # ── Session tokens ────────────────────────────────────
    session_token_ttl_seconds: int = 1_800  # 30 minutes

    # ── Identity service (credential checks) ──────────────
    identity_api_base_url: str = "http://localhost:8001/identity/v1"
    identity_timeout_seconds: float = 5.0

    # ── Email delivery (SMTP) ─────────────────────────────
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_start_tls: bool = True
    email_from: str = "no-reply@example.com"

    # ── SMS delivery (HTTP gateway) ───────────────────────
    sms_gateway_url: str = "http://localhost:8080/sms/send"
    sms_api_key: str = ""
    sms_sender: str = "OTP"

    # ── Chat-bot delivery ─────────────────────────────────
    chatbot_api_base_url: str = "https://api.telegram.org"
    chatbot_token: str = ""

    # ── File delivery ─────────────────────────────────────
    delivery_file_dir: str = "./otp_deliveries"

    delivery_timeout_seconds: float = 10.0

    # ── App ───────────────────────────────────────────────
    app_name: str = "OTP Gateway"
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 8000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton settings instance
settings = Settings()
