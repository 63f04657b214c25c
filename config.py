"""
Configuration for sealdrop.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from errors import ConfigurationError
from crypto.passphrase import MIN_PBKDF2_ITERATIONS, PBKDF2_SHA256, KdfParams

# Application version - update this for each release
VERSION = "2.0.0"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Application configuration."""

    # Server settings
    HOST: str = field(default_factory=lambda: os.getenv("SEALDROP_HOST", "127.0.0.1"))
    PORT: int = field(default_factory=lambda: int(os.getenv("SEALDROP_PORT", "18421")))
    ENVIRONMENT: str = field(default_factory=lambda: os.getenv("SEALDROP_ENV", "development"))
    LOG_LEVEL: str = field(default_factory=lambda: os.getenv("SEALDROP_LOG_LEVEL", "INFO"))

    # Storage
    STORAGE_DIR: Path = field(default_factory=lambda: Path(os.getenv("SEALDROP_DATA_DIR", "data")))
    DATABASE_URL: Optional[str] = field(default_factory=lambda: os.getenv("SEALDROP_DATABASE_URL"))

    # Dedupe pepper; leaving it unset needs the explicit flag below
    DEDUPE_PEPPER: Optional[str] = field(default_factory=lambda: os.getenv("SEALDROP_DEDUPE_PEPPER"))
    ALLOW_UNPEPPERED_DEDUPE: bool = field(
        default_factory=lambda: _env_flag("SEALDROP_ALLOW_UNPEPPERED_DEDUPE")
    )

    # Document lifecycle
    EXPIRY_HOURS: float = field(default_factory=lambda: float(os.getenv("SEALDROP_EXPIRY_HOURS", "48")))
    KDF_ITERATIONS: int = field(default_factory=lambda: int(os.getenv("SEALDROP_KDF_ITERATIONS", "310000")))
    KDF_KEY_LENGTH: int = 32
    MAX_CONTENT_BYTES: int = 200 * 1024

    # Bearer secret for the scheduled cleanup endpoint
    CRON_SECRET: Optional[str] = field(default_factory=lambda: os.getenv("SEALDROP_CRON_SECRET"))

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL; defaults to a SQLite file in the storage dir."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        self.STORAGE_DIR.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{self.STORAGE_DIR / 'documents.db'}"

    @property
    def expiry(self) -> timedelta:
        return timedelta(hours=self.EXPIRY_HOURS)

    @property
    def kdf_params(self) -> KdfParams:
        return KdfParams(
            algorithm=PBKDF2_SHA256,
            iterations=self.KDF_ITERATIONS,
            key_length=self.KDF_KEY_LENGTH,
        )

    @property
    def pepper_bytes(self) -> Optional[bytes]:
        return self.DEDUPE_PEPPER.encode("utf-8") if self.DEDUPE_PEPPER else None

    def validate(self) -> None:
        """
        Check the configuration at startup.

        Raises:
            ConfigurationError: On any unsafe or unusable setting
        """
        if self.KDF_ITERATIONS < MIN_PBKDF2_ITERATIONS:
            raise ConfigurationError(
                f"KDF_ITERATIONS must be at least {MIN_PBKDF2_ITERATIONS}"
            )
        if self.EXPIRY_HOURS <= 0:
            raise ConfigurationError("EXPIRY_HOURS must be positive")

        if not self.DEDUPE_PEPPER:
            if self.is_production:
                raise ConfigurationError("SEALDROP_DEDUPE_PEPPER is required in production")
            if not self.ALLOW_UNPEPPERED_DEDUPE:
                raise ConfigurationError(
                    "SEALDROP_DEDUPE_PEPPER is not set; set SEALDROP_ALLOW_UNPEPPERED_DEDUPE=true "
                    "to run with unpeppered dedupe tags outside production"
                )


# Global config instance
config = Config()
