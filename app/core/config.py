from functools import lru_cache
import os
from typing import Dict, List, Optional

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    debug: bool = False
    project_name: str = "RoadReady API"
    environment: str = "development"

    # Comma-separated list, e.g. "https://app.roadready.io,http://localhost:3000"
    cors_origins_raw: Optional[str] = Field(default=None, alias="CORS_ORIGINS")

    @computed_field
    @property
    def backend_cors_origins(self) -> List[str]:
        raw = self.cors_origins_raw or os.environ.get("BACKEND_CORS_ORIGINS") or ""
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    database_url: str  # Required - no default, must be set in .env

    # Access tokens are issued by the identity provider; we only verify them
    jwt_secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_audience: Optional[str] = "authenticated"

    # Shared secret the external scheduler sends as "Authorization: Bearer <secret>"
    cron_secret: Optional[str] = None
    enable_scheduler: bool = True

    app_base_url: str = "http://localhost:3000"

    # Compliance rules
    required_documents: Dict[str, List[str]] = Field(
        default_factory=lambda: {
            "driver": ["CDL", "Medical Card"],
            "vehicle": ["Registration", "Insurance"],
        }
    )
    expiring_soon_days: int = 30

    # Alert dispatch and retry
    alert_dedup_hours: int = 24
    alert_retry_lookback_hours: int = 24
    alert_retry_batch_size: int = 50
    expiration_sweep_hour: int = 7
    retry_interval_minutes: int = 60

    # Email: SendGrid when an API key is present, otherwise SMTP
    sendgrid_api_key: Optional[str] = None
    email_from_address: Optional[str] = None
    email_from_name: str = "RoadReady"
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None

    sms_twilio_account_sid: Optional[str] = None
    sms_twilio_auth_token: Optional[str] = None
    sms_twilio_from_number: Optional[str] = None

    # Document classification suggestions
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    ai_review_confidence_threshold: float = 0.85

    # Vision OCR for scanned PDFs and photos; pdfplumber stays the fallback
    ocr_enabled: bool = True
    openai_ocr_model: str = "gpt-4o-mini"
    ocr_max_pages: int = 3

    # Cloudflare R2 Storage Configuration
    r2_account_id: Optional[str] = None
    r2_access_key_id: Optional[str] = None
    r2_secret_access_key: Optional[str] = None
    r2_bucket_name: Optional[str] = None
    r2_endpoint_url: Optional[str] = None  # e.g., "https://<account-id>.r2.cloudflarestorage.com"
    signed_url_ttl_seconds: int = 3600

    # Uploads
    max_upload_bytes: int = 10 * 1024 * 1024
    allowed_upload_types: List[str] = Field(
        default_factory=lambda: [
            "application/pdf",
            "image/jpeg",
            "image/jpg",
            "image/png",
            "image/webp",
        ]
    )

    @property
    def email_configured(self) -> bool:
        if self.sendgrid_api_key:
            return True
        return bool(self.smtp_host and self.smtp_username and self.smtp_password)

    @property
    def sms_configured(self) -> bool:
        return bool(
            self.sms_twilio_account_sid
            and self.sms_twilio_auth_token
            and self.sms_twilio_from_number
        )

    @property
    def storage_configured(self) -> bool:
        return all([
            self.r2_access_key_id,
            self.r2_secret_access_key,
            self.r2_bucket_name,
            self.r2_endpoint_url,
        ])


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
