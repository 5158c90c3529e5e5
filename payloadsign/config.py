"""Configuration management with Pydantic and XDG base directory support."""

import os
import sys
from pathlib import Path

from pydantic import Field, PrivateAttr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from payloadsign.format.payload import BRILLO_MAJOR_PAYLOAD_VERSION, SUPPORTED_MAJOR_VERSIONS
from payloadsign.utils.crypto import load_or_create_hmac_key


def get_xdg_data_home() -> Path:
    """Get XDG_DATA_HOME directory, defaulting to ~/.local/share."""
    xdg_data = os.getenv("XDG_DATA_HOME")
    if xdg_data:
        return Path(xdg_data)
    return Path.home() / ".local" / "share"


def get_xdg_config_home() -> Path:
    """Get XDG_CONFIG_HOME directory, defaulting to ~/.config."""
    xdg_config = os.getenv("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config)
    return Path.home() / ".config"


class Settings(BaseSettings):
    """payloadsign configuration settings.

    Precedence: explicit argument > environment variable > .env file > defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="PAYLOADSIGN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Data directories
    data_dir: Path | None = Field(
        default=None,
        description="Override data directory (defaults to XDG_DATA_HOME/payloadsign)",
    )

    config_dir: Path | None = Field(
        default=None,
        description="Override config directory (defaults to XDG_CONFIG_HOME/payloadsign)",
    )

    # Audit settings
    audit_enabled: bool = Field(
        default=True,
        description="Record signing and verification events in an append-only ledger",
    )

    audit_hmac_key_path: Path | None = Field(
        default=None,
        description="Location of the audit ledger HMAC key for tamper detection",
    )

    # Signing settings
    supported_key_sizes: list[int] = Field(
        default_factory=lambda: [2048, 4096],
        description="RSA modulus sizes (bits) accepted by the RSA primitive",
    )

    # Payload layout settings
    major_version: int = Field(
        default=BRILLO_MAJOR_PAYLOAD_VERSION,
        description="Major version used when writing new payloads",
    )

    block_size: int = Field(
        default=4096,
        gt=0,
        description="Block size recorded in payload manifests",
    )

    read_chunk_size: int = Field(
        default=65536,
        ge=4096,
        description="Chunk size used when hashing payload files",
    )

    _resolved_data_dir: Path | None = PrivateAttr(default=None)
    _data_dir_warning_emitted: bool = PrivateAttr(default=False)

    @field_validator("major_version")
    @classmethod
    def _check_major_version(cls, value: int) -> int:
        if value not in SUPPORTED_MAJOR_VERSIONS:
            raise ValueError(
                f"Unsupported payload major version {value}; "
                f"expected one of {SUPPORTED_MAJOR_VERSIONS}"
            )
        return value

    @field_validator("supported_key_sizes")
    @classmethod
    def _check_key_sizes(cls, value: list[int]) -> list[int]:
        if not value:
            raise ValueError("At least one supported RSA key size is required")
        for bits in value:
            if bits < 1024 or bits % 8:
                raise ValueError(f"Invalid RSA key size: {bits}")
        return value

    def get_data_dir(self) -> Path:
        """Get the data directory, creating if necessary."""
        if self._resolved_data_dir is not None:
            return self._resolved_data_dir

        if self.data_dir:
            data_dir = self.data_dir
            data_dir.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = data_dir
            return data_dir

        primary_dir = get_xdg_data_home() / "payloadsign"
        try:
            primary_dir.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = primary_dir
            return primary_dir
        except PermissionError as exc:
            fallback = Path.cwd() / ".payloadsign-data"
            fallback.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = fallback
            if not self._data_dir_warning_emitted:
                print(
                    f"Warning: cannot create data directory at {primary_dir} ({exc}). "
                    f"Using local '{fallback}' instead. Set PAYLOADSIGN_DATA_DIR to override.",
                    file=sys.stderr,
                )
                self._data_dir_warning_emitted = True
            return fallback

    def get_config_dir(self) -> Path:
        """Get the config directory, creating if necessary."""
        if self.config_dir:
            config_dir = self.config_dir
        else:
            config_dir = get_xdg_config_home() / "payloadsign"

        config_dir.mkdir(parents=True, exist_ok=True)
        return config_dir

    def get_audit_path(self) -> Path:
        """Get path to audit ledger file."""
        return self.get_data_dir() / "audit.jsonl"

    def get_audit_hmac_key(self) -> bytes:
        """Return the HMAC key used to seal audit ledger entries."""
        key_path = (
            self.audit_hmac_key_path
            if self.audit_hmac_key_path is not None
            else self.get_config_dir() / "audit-ledger.key"
        )
        return load_or_create_hmac_key(key_path, length=32)


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Set the global settings instance (useful for testing)."""
    global _settings
    _settings = settings
