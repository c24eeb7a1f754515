"""Configuration management for the Firma client.

Settings are loaded from environment variables with the FIRMA_ prefix, or
from a local .env file. The fields present decide which authentication mode
a client is built with:

- credential mode: FIRMA_BASE_URL and FIRMA_API_KEY, optionally
  FIRMA_CERTS_DIR + FIRMA_CA_CRT pointing at the service's public key.
- mutual-TLS mode: additionally FIRMA_CLIENT_CRT and FIRMA_CLIENT_KEY.

Example:
    export FIRMA_BASE_URL=https://firma.example.com
    export FIRMA_API_KEY=my-api-key
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Annotated, Any

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Fixed per-client request timeout (seconds)
DEFAULT_TIMEOUT = 10.0


class AuthMode(str, Enum):
    """Authentication strategy a client is built with."""

    CREDENTIAL = "credential"
    MUTUAL_TLS = "mutual_tls"


class FirmaSettings(BaseSettings):
    """Firma client configuration container.

    Example environment variables:
        FIRMA_BASE_URL=https://firma.example.com
        FIRMA_API_KEY=secret
        FIRMA_CERTS_DIR=/etc/firma/certs
        FIRMA_CA_CRT=ca.crt
    """

    model_config = SettingsConfigDict(
        env_prefix="FIRMA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str | None = Field(
        default=None,
        description="Base URL of the remote signing service",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Plaintext API key (encrypted before use in credential mode)",
    )
    certs_dir: Path | None = Field(
        default=None,
        description="Directory holding the CA certificate / public key and client material",
    )
    ca_crt: str | None = Field(
        default=None,
        description="File name of the CA certificate or service public key",
    )
    client_crt: str | None = Field(
        default=None,
        description="File name of the client certificate (mutual-TLS mode)",
    )
    client_key: str | None = Field(
        default=None,
        description="File name of the client private key (mutual-TLS mode)",
    )
    timeout: Annotated[float, Field(gt=0, le=300)] = Field(
        default=DEFAULT_TIMEOUT,
        description="Request timeout in seconds",
    )
    test_docs_path: Path | None = Field(
        default=None,
        description="Directory with sample documents used by the CLI",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        """Normalize the base URL so endpoint paths join cleanly."""
        if v is None:
            return None
        v = v.strip()
        return v.rstrip("/") or None

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure the log level is one logging understands."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            msg = f"Log level must be one of: {', '.join(sorted(allowed))}"
            raise ValueError(msg)
        return v.upper()

    @property
    def auth_mode(self) -> AuthMode:
        """Authentication mode implied by the fields present.

        Either client certificate field selects mutual TLS; the transport
        factory then names whichever one is missing.
        """
        if self.client_crt or self.client_key:
            return AuthMode.MUTUAL_TLS
        return AuthMode.CREDENTIAL

    def get_api_key(self) -> str | None:
        """Return the plaintext API key, if configured."""
        if self.api_key is None:
            return None
        return self.api_key.get_secret_value()

    def describe(self) -> dict[str, Any]:
        """Non-sensitive snapshot of the configuration, suitable for logging."""
        return {
            "base_url": self.base_url,
            "auth_mode": self.auth_mode.value,
            "certs_dir": str(self.certs_dir) if self.certs_dir else None,
            "ca_crt": self.ca_crt,
            "client_crt": self.client_crt,
            "timeout": self.timeout,
            "api_key_set": self.api_key is not None,
        }
