"""Environment-driven configuration."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict

from src.directory.lookup import DEFAULT_KEY_COLUMN, DEFAULT_PHONE_COLUMN
from src.documents.fetcher import DEFAULT_MAX_BYTES, DEFAULT_TIMEOUT_SECONDS
from src.documents.locator import DEFAULT_MIME_TYPE

_REQUIRED = (
    "GOOGLE_SERVICE_ACCOUNT_EMAIL",
    "GOOGLE_PRIVATE_KEY",
    "GOOGLE_SHEET_ID",
    "GOOGLE_DRIVE_FOLDER_ID",
    "WATI_BASE_URL",
    "WATI_BEARER_TOKEN",
)


class ConfigError(Exception):
    """Raised when required configuration is missing or malformed."""


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    google_service_account_email: str
    google_private_key: str
    google_sheet_id: str
    google_drive_folder_id: str
    wati_base_url: str
    wati_bearer_token: str

    phone_column: str = DEFAULT_PHONE_COLUMN
    key_column: str = DEFAULT_KEY_COLUMN
    document_mime_type: str = DEFAULT_MIME_TYPE
    download_dir: str | None = None
    download_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    download_max_bytes: int = DEFAULT_MAX_BYTES

    port: int = 3001
    environment: str = "development"
    allowed_origin: str | None = None
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cors_origins(self) -> list[str]:
        if not self.is_production:
            return ["*"]
        return [self.allowed_origin] if self.allowed_origin else []

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        missing = [name for name in _REQUIRED if not env.get(name)]
        if missing:
            raise ConfigError(
                f"Missing required environment variables: {', '.join(missing)}",
            )

        return cls(
            google_service_account_email=env["GOOGLE_SERVICE_ACCOUNT_EMAIL"],
            google_private_key=env["GOOGLE_PRIVATE_KEY"].replace("\\n", "\n"),
            google_sheet_id=env["GOOGLE_SHEET_ID"],
            google_drive_folder_id=env["GOOGLE_DRIVE_FOLDER_ID"],
            wati_base_url=env["WATI_BASE_URL"],
            wati_bearer_token=env["WATI_BEARER_TOKEN"],
            phone_column=env.get("DIRECTORY_PHONE_COLUMN") or DEFAULT_PHONE_COLUMN,
            key_column=env.get("DIRECTORY_KEY_COLUMN") or DEFAULT_KEY_COLUMN,
            document_mime_type=env.get("DOCUMENT_MIME_TYPE") or DEFAULT_MIME_TYPE,
            download_dir=env.get("DOWNLOAD_DIR") or None,
            download_timeout_seconds=_number(
                env, "DOWNLOAD_TIMEOUT_SECONDS", float, DEFAULT_TIMEOUT_SECONDS,
            ),
            download_max_bytes=_number(env, "DOWNLOAD_MAX_BYTES", int, DEFAULT_MAX_BYTES),
            port=_number(env, "PORT", int, 3001),
            environment=env.get("ENVIRONMENT") or "development",
            allowed_origin=env.get("ALLOWED_ORIGIN") or None,
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )


def _number(env: Mapping[str, str], name: str, kind: type, default: float) -> float:
    raw = env.get(name)
    if not raw:
        return default
    try:
        return kind(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
