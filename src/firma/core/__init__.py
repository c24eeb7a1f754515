"""Firma core module.

Shared components used across the client:
- Configuration management
- Error taxonomy
"""

from firma.core.config import DEFAULT_TIMEOUT, AuthMode, FirmaSettings
from firma.core.errors import (
    CertificateInvalidError,
    CertificateUnavailableError,
    ConfigurationInvalidError,
    EncryptionFailedError,
    FirmaError,
    NoThirdPartySignatureError,
    RemoteOperationFailedError,
    TrustAnchorUnavailableError,
)
from firma.core.settings import clear_settings_cache, get_settings

__all__ = [
    "DEFAULT_TIMEOUT",
    "AuthMode",
    "CertificateInvalidError",
    "CertificateUnavailableError",
    "ConfigurationInvalidError",
    "EncryptionFailedError",
    "FirmaError",
    "FirmaSettings",
    "NoThirdPartySignatureError",
    "RemoteOperationFailedError",
    "TrustAnchorUnavailableError",
    "clear_settings_cache",
    "get_settings",
]
