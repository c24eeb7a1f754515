"""Error taxonomy shared by every Firma component.

Construction failures (configuration, trust anchor, certificates, encryption)
are fatal and stop the client from being built. Document operation failures
carry the HTTP status and body so callers can branch on them.
"""

from __future__ import annotations


class FirmaError(Exception):
    """Base exception for Firma client errors."""

    pass


class ConfigurationInvalidError(FirmaError):
    """Required construction parameters are missing or invalid.

    Raised before any filesystem or network activity takes place.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize with error details.

        Args:
            message: Human-readable error description.
            field: Optional name of the offending parameter.
        """
        self.message = message
        self.field = field
        super().__init__(message)


class TrustAnchorUnavailableError(FirmaError):
    """No usable public key could be obtained from file or API."""

    pass


class CertificateUnavailableError(FirmaError):
    """A mutual-TLS certificate or key file is missing or unreadable."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.path = path
        super().__init__(message)


class CertificateInvalidError(FirmaError):
    """Mutual-TLS material could not be parsed or loaded into a TLS context."""

    pass


class EncryptionFailedError(FirmaError):
    """The API credential could not be encrypted with the trust anchor."""

    pass


class RemoteOperationFailedError(FirmaError):
    """A document operation's HTTP exchange failed.

    Attributes:
        operation: Name of the operation that failed (e.g. "sign").
        status_code: HTTP status of the response, None for transport failures.
        body: Response body, None when no response was received.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        status_code: int | None = None,
        body: bytes | None = None,
    ) -> None:
        self.operation = operation
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class NoThirdPartySignatureError(RemoteOperationFailedError):
    """The compare operation found no third-party signature (HTTP 422)."""

    pass
