from __future__ import annotations

from typing import ClassVar, final

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [x.strip() for x in value.split(",") if x.strip()]


@final
class Settings(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )
    app_name: str = "Note Keeper API"

    # Environment (ENVIRONMENT): development | production
    environment: str = "development"
    log_level: str = "INFO"

    database_url: str = "sqlite:///./dev.db"

    cors_allow_origins: str = Field(
        default="*",
        validation_alias=AliasChoices("CORS_ALLOW_ORIGINS", "CORS_ORIGINS"),
    )

    # Notes
    # 0 disables the limit.
    max_notes: int = Field(
        default=0,
        validation_alias=AliasChoices("MAX_NOTES", "NOTESETTINGS__MAXNOTES"),
    )

    # Attachments
    max_attachments_per_note: int = Field(
        default=3,
        validation_alias=AliasChoices(
            "MAX_ATTACHMENTS_PER_NOTE", "NOTESETTINGS__MAXATTACHMENTS"
        ),
    )
    attachments_local_dir: str = ".data/attachments"
    attachments_max_size_bytes: int = 25 * 1024 * 1024

    # S3-compatible object storage; local storage is used when incomplete.
    s3_endpoint_url: str = ""
    s3_region: str = ""
    s3_bucket: str = ""
    s3_access_key_id: str = ""
    s3_secret_access_key: str = ""
    s3_force_path_style: bool = False

    # Archive requests
    queue_local_dir: str = ".data/queues"
    sqs_endpoint_url: str = ""
    sqs_region: str = ""
    sqs_access_key_id: str = ""
    sqs_secret_access_key: str = ""
    archive_queue_name: str = "attachment-zip-requests"
    # Where the archive worker publishes finished zip files.
    archive_public_base_url: str = "http://localhost:8000"
    archive_container: str = "attachment-zip-files"

    # Connect/read timeout applied to storage and queue backends.
    backend_timeout_seconds: float = 30.0

    # AI tag generation (OpenAI-compatible chat completions endpoint).
    ai_deployment_uri: str = ""
    ai_api_key: str = ""
    ai_deployment_model_name: str = "gpt-4o-mini"
    ai_temperature: float = 0.7
    ai_top_p: float = 1.0
    ai_max_output_tokens: int = 500
    ai_request_timeout_seconds: float = 15.0

    @model_validator(mode="after")
    def _validate_production_settings(self) -> "Settings":  # pyright: ignore[reportUnusedFunction]
        if self.max_attachments_per_note < 0:
            raise ValueError("MAX_ATTACHMENTS_PER_NOTE must be >= 0")
        if self.max_notes < 0:
            raise ValueError("MAX_NOTES must be >= 0")

        if self.environment.strip().lower() != "production":
            return self

        errors: list[str] = []

        cors_v = self.cors_allow_origins.strip()
        if not cors_v or cors_v == "*":
            errors.append("CORS_ALLOW_ORIGINS must be explicit (not '*') in production")

        # If any S3 setting is provided, require the full set to avoid silently falling back to local storage.
        s3_fields = {
            "S3_BUCKET": self.s3_bucket.strip(),
            "S3_ENDPOINT_URL": self.s3_endpoint_url.strip(),
            "S3_ACCESS_KEY_ID": self.s3_access_key_id.strip(),
            "S3_SECRET_ACCESS_KEY": self.s3_secret_access_key.strip(),
        }
        if any(v for v in s3_fields.values()) and any(not v for v in s3_fields.values()):
            missing = ",".join([k for k, v in s3_fields.items() if not v])
            errors.append(f"S3 config incomplete in production; missing: {missing}")

        sqs_fields = {
            "SQS_ENDPOINT_URL": self.sqs_endpoint_url.strip(),
            "SQS_ACCESS_KEY_ID": self.sqs_access_key_id.strip(),
            "SQS_SECRET_ACCESS_KEY": self.sqs_secret_access_key.strip(),
        }
        if any(v for v in sqs_fields.values()) and any(not v for v in sqs_fields.values()):
            missing = ",".join([k for k, v in sqs_fields.items() if not v])
            errors.append(f"SQS config incomplete in production; missing: {missing}")

        if not self.archive_queue_name.strip():
            errors.append("ARCHIVE_QUEUE_NAME must be set in production")

        if errors:
            raise ValueError("Invalid production settings: " + "; ".join(errors))
        return self

    def cors_origins_list(self) -> list[str]:
        v = self.cors_allow_origins.strip()
        if not v:
            return []
        if v == "*":
            return ["*"]
        return _split_csv(v)

    def s3_configured(self) -> bool:
        return bool(
            self.s3_bucket.strip()
            and self.s3_endpoint_url.strip()
            and self.s3_access_key_id.strip()
            and self.s3_secret_access_key.strip()
        )

    def sqs_configured(self) -> bool:
        return bool(
            self.sqs_endpoint_url.strip()
            and self.sqs_access_key_id.strip()
            and self.sqs_secret_access_key.strip()
        )

    def security_warnings(self) -> list[str]:
        warnings: list[str] = []
        if self.cors_allow_origins.strip() == "*":
            warnings.append("CORS_ALLOW_ORIGINS='*' is permissive")
        if not self.s3_configured():
            warnings.append("S3 is not configured; attachments use local disk storage")
        if not self.sqs_configured():
            warnings.append("SQS is not configured; archive requests are spooled to local disk")
        if not self.ai_deployment_uri.strip():
            warnings.append("AI_DEPLOYMENT_URI is empty; notes are created without tags")
        return warnings


# The validator is invoked by Pydantic at runtime.
_ = Settings._validate_production_settings


settings = Settings()
