"""Firma service layer.

- paths: filesystem path and parameter validation
- trust_anchor: public key / CA lookup with local-to-remote fallback
- credentials: RSA-OAEP encryption of the API key
- transport: credential-mode and mutual-TLS httpx clients
- documents: DocumentClient with the five document operations
"""

from firma.services.credentials import (
    CredentialEncryptor,
    EncryptedCredential,
    RsaOaepEncryptor,
    encrypt_credential,
)
from firma.services.documents import DocumentClient, DocumentPayload
from firma.services.paths import (
    PathIssue,
    PathValidationError,
    require_paths,
    validate_parameters,
    validate_paths,
)
from firma.services.transport import (
    CredentialAuth,
    MutualTLSAuth,
    SecureTransport,
    SecureTransportFactory,
    TransportConfig,
    build_mutual_tls_context,
)
from firma.services.trust_anchor import (
    AnchorResult,
    LocalFileSource,
    RemoteEndpointSource,
    TrustAnchor,
    TrustAnchorLoader,
    TrustAnchorSource,
    load_trust_anchor,
)

__all__ = [
    "AnchorResult",
    "CredentialAuth",
    "CredentialEncryptor",
    "DocumentClient",
    "DocumentPayload",
    "EncryptedCredential",
    "LocalFileSource",
    "MutualTLSAuth",
    "PathIssue",
    "PathValidationError",
    "RemoteEndpointSource",
    "RsaOaepEncryptor",
    "SecureTransport",
    "SecureTransportFactory",
    "TransportConfig",
    "TrustAnchor",
    "TrustAnchorLoader",
    "TrustAnchorSource",
    "build_mutual_tls_context",
    "encrypt_credential",
    "load_trust_anchor",
    "require_paths",
    "validate_parameters",
    "validate_paths",
]
