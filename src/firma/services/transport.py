"""Secure transport construction for the signing service.

Two mutually exclusive authentication strategies are supported, chosen when
the transport is built:

- CredentialAuth: the API key is encrypted with the service's public key
  (see firma.services.credentials) and sent as the Authorization header.
  The TLS connection itself relies on system certificate validation.
- MutualTLSAuth: the client presents a certificate and key on every
  connection and validates the server against a configured CA. The plaintext
  API key is still sent as the authorization header, for the service's
  authorization checks.

IMPORTANT: certificate verification is never disabled in either mode.
"""

from __future__ import annotations

import logging
import ssl
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Union

import httpx
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    load_der_private_key,
    load_pem_private_key,
)

from firma.core.config import DEFAULT_TIMEOUT, AuthMode
from firma.core.errors import (
    CertificateInvalidError,
    CertificateUnavailableError,
    ConfigurationInvalidError,
)
from firma.services.credentials import (
    CredentialEncryptor,
    EncryptedCredential,
    RsaOaepEncryptor,
)
from firma.services.paths import PathValidationError, require_paths, validate_parameters
from firma.services.trust_anchor import PUBLIC_KEY_ENDPOINT, TrustAnchorLoader

if TYPE_CHECKING:
    from firma.core.config import FirmaSettings

logger = logging.getLogger(__name__)


# =============================================================================
# Authentication strategies
# =============================================================================


@dataclass(frozen=True, slots=True)
class CredentialAuth:
    """Encrypted API key sent as the Authorization header."""

    credential: EncryptedCredential

    @property
    def mode(self) -> AuthMode:
        return AuthMode.CREDENTIAL


@dataclass(frozen=True, slots=True)
class MutualTLSAuth:
    """Client certificate authentication plus the plaintext API key header.

    Attributes:
        api_key: Plaintext API key, sent as the authorization header.
        ca_path: CA certificate used to validate the server.
        client_cert_path: Client certificate presented to the server.
        client_key_path: Private key matching client_cert_path.
    """

    api_key: str = field(repr=False)
    ca_path: Path
    client_cert_path: Path
    client_key_path: Path

    @property
    def mode(self) -> AuthMode:
        return AuthMode.MUTUAL_TLS


AuthStrategy = Union[CredentialAuth, MutualTLSAuth]


@dataclass(frozen=True, slots=True)
class TransportConfig:
    """Immutable transport settings held for the lifetime of a client."""

    base_url: str
    auth: AuthStrategy
    timeout: float = DEFAULT_TIMEOUT

    @property
    def mode(self) -> AuthMode:
        return self.auth.mode

    def auth_headers(self) -> dict[str, str]:
        """Authentication header for the configured strategy."""
        if isinstance(self.auth, CredentialAuth):
            return self.auth.credential.as_header()
        if isinstance(self.auth, MutualTLSAuth):
            return {"authorization": self.auth.api_key}
        msg = f"Unsupported authentication strategy: {type(self.auth).__name__}"
        raise TypeError(msg)


class SecureTransport:
    """An httpx.AsyncClient bound to the service, plus its auth strategy.

    Holds no per-request state, so one instance can serve concurrent calls.
    """

    def __init__(self, config: TransportConfig, client: httpx.AsyncClient) -> None:
        self._config = config
        self._client = client

    @property
    def config(self) -> TransportConfig:
        return self._config

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    @property
    def mode(self) -> AuthMode:
        return self._config.mode

    def auth_headers(self) -> dict[str, str]:
        return self._config.auth_headers()

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()


# =============================================================================
# TLS context
# =============================================================================


def _load_certificates(data: bytes) -> list[x509.Certificate]:
    """Parse one or more PEM certificates, or a single DER certificate."""
    if b"-----BEGIN" in data:
        return x509.load_pem_x509_certificates(data)
    return [x509.load_der_x509_certificate(data)]


def build_mutual_tls_context(
    ca_data: bytes,
    client_cert_path: Path,
    client_key_path: Path,
) -> ssl.SSLContext:
    """Build an SSL context for mutual TLS.

    The CA may be PEM (one or more certificates) or DER. The client
    certificate and key must be PEM files, as required by the ssl module.

    Args:
        ca_data: CA certificate bytes used to validate the server.
        client_cert_path: Client certificate file.
        client_key_path: Client private key file (unencrypted).

    Returns:
        SSLContext with CERT_REQUIRED and hostname checking enabled.

    Raises:
        CertificateInvalidError: If any material is malformed or the key does
            not match the certificate.
    """
    try:
        ca_certs = _load_certificates(ca_data)
        _load_certificates(client_cert_path.read_bytes())
        key_data = client_key_path.read_bytes()
        if b"-----BEGIN" in key_data:
            load_pem_private_key(key_data, password=None)
        else:
            load_der_private_key(key_data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise CertificateInvalidError(f"Problem loading certificates: {e}") from e

    ca_pem = "".join(cert.public_bytes(Encoding.PEM).decode("ascii") for cert in ca_certs)
    try:
        context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH, cadata=ca_pem)
        context.load_cert_chain(certfile=str(client_cert_path), keyfile=str(client_key_path))
    except (ssl.SSLError, ValueError) as e:
        raise CertificateInvalidError(f"Problem loading certificates: {e}") from e

    context.verify_mode = ssl.CERT_REQUIRED
    context.check_hostname = True
    return context


# =============================================================================
# Factory
# =============================================================================


class SecureTransportFactory:
    """Build SecureTransport instances in either authentication mode.

    Collaborators are injectable so tests can substitute key sources and
    encryption without patching module state.

    Example:
        factory = SecureTransportFactory()
        transport = await factory.create_credential_transport(
            "https://firma.example.com",
            api_key="my-api-key",
            certs_dir="/etc/firma/certs",
            public_key_file="public.pem",
        )
    """

    def __init__(
        self,
        *,
        encryptor: CredentialEncryptor | None = None,
        anchor_loader: TrustAnchorLoader | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the factory.

        Args:
            encryptor: Credential encryptor, RsaOaepEncryptor by default.
            anchor_loader: Trust anchor loader; when None, a local-then-remote
                chain is built from each call's arguments.
            transport: Optional httpx transport for every client built
                (used for testing with httpx.MockTransport).
        """
        self._encryptor = encryptor or RsaOaepEncryptor()
        self._anchor_loader = anchor_loader
        self._transport = transport

    async def create_credential_transport(
        self,
        base_url: str | None,
        api_key: str | None,
        *,
        certs_dir: str | Path | None = None,
        public_key_file: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> SecureTransport:
        """Build a transport that sends the encrypted API key on every request.

        Raises:
            ConfigurationInvalidError: base_url or api_key missing.
            TrustAnchorUnavailableError: No public key from file or API.
            EncryptionFailedError: The key could not be encrypted.
        """
        if not validate_parameters(base_url, api_key):
            missing = "base_url" if not base_url else "api_key"
            msg = "Provide base_url and api_key to build a credential-mode client"
            raise ConfigurationInvalidError(msg, field=missing)

        loader = self._anchor_loader or TrustAnchorLoader.for_service(
            base_url,
            local_dir=certs_dir,
            local_file_name=public_key_file,
            remote_endpoint_path=PUBLIC_KEY_ENDPOINT,
            timeout=timeout,
            transport=self._transport,
        )
        anchor = await loader.load()
        credential = self._encryptor.encrypt(api_key, anchor)

        config = TransportConfig(
            base_url=base_url,
            auth=CredentialAuth(credential=credential),
            timeout=timeout,
        )
        client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=self._transport,
        )
        logger.info("Credential-mode transport ready for %s", base_url)
        return SecureTransport(config, client)

    async def create_mutual_tls_transport(
        self,
        base_url: str | None,
        api_key: str | None,
        *,
        certs_dir: str | Path | None,
        ca_crt: str | None,
        client_crt: str | None,
        client_key: str | None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> SecureTransport:
        """Build a transport authenticated by a client certificate.

        Raises:
            ConfigurationInvalidError: A required parameter is missing.
            CertificateUnavailableError: A certificate or key file is missing.
            CertificateInvalidError: The material is malformed.
        """
        required = {
            "base_url": base_url,
            "certs_dir": certs_dir,
            "ca_crt": ca_crt,
            "client_crt": client_crt,
            "client_key": client_key,
            "api_key": api_key,
        }
        if not validate_parameters(*required.values()):
            missing = next(name for name, value in required.items() if value in (None, ""))
            msg = f"Missing required parameter for a mutual-TLS client: {missing}"
            raise ConfigurationInvalidError(msg, field=missing)

        directory = Path(certs_dir)
        try:
            ca_path, cert_path, key_path = require_paths(
                str(directory / ca_crt),
                str(directory / client_crt),
                str(directory / client_key),
            )
            ca_data = ca_path.read_bytes()
        except PathValidationError as e:
            raise CertificateUnavailableError(
                f"Certificates not found: {e}", path=str(e.path)
            ) from e
        except OSError as e:
            raise CertificateUnavailableError(f"Cannot read certificates: {e}") from e

        try:
            ssl_context = build_mutual_tls_context(ca_data, cert_path, key_path)
        except OSError as e:
            raise CertificateUnavailableError(f"Cannot read certificates: {e}") from e

        config = TransportConfig(
            base_url=base_url,
            auth=MutualTLSAuth(
                api_key=api_key,
                ca_path=ca_path,
                client_cert_path=cert_path,
                client_key_path=key_path,
            ),
            timeout=timeout,
        )
        client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            verify=ssl_context,
            transport=self._transport,
        )
        logger.info("Mutual-TLS transport ready for %s", base_url)
        return SecureTransport(config, client)

    async def create_transport(self, settings: FirmaSettings) -> SecureTransport:
        """Build a transport in the mode implied by the settings."""
        if settings.auth_mode == AuthMode.MUTUAL_TLS:
            return await self.create_mutual_tls_transport(
                settings.base_url,
                settings.get_api_key(),
                certs_dir=settings.certs_dir,
                ca_crt=settings.ca_crt,
                client_crt=settings.client_crt,
                client_key=settings.client_key,
                timeout=settings.timeout,
            )
        return await self.create_credential_transport(
            settings.base_url,
            settings.get_api_key(),
            certs_dir=settings.certs_dir,
            public_key_file=settings.ca_crt,
            timeout=settings.timeout,
        )
