"""API credential encryption with the signing service's public key.

In credential mode the plaintext API key never leaves the process: it is
encrypted once, at client construction, with RSA-OAEP (SHA-256 for both the
padding hash and MGF1) and the base64 ciphertext is sent as the
Authorization header on every request.

IMPORTANT: OAEP padding is randomized. Encrypting the same key twice yields
different ciphertexts; never compare encrypted credentials for equality.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from typing import Protocol

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.serialization import (
    load_der_public_key,
    load_pem_public_key,
)

from firma.core.errors import EncryptionFailedError
from firma.services.trust_anchor import TrustAnchor

logger = logging.getLogger(__name__)

# SHA-256 digest length in bytes, used for the OAEP payload limit
_SHA256_DIGEST_SIZE = 32


@dataclass(frozen=True, slots=True)
class EncryptedCredential:
    """Base64-encoded RSA-OAEP ciphertext of an API key.

    The value is masked in repr() so it never ends up in logs by accident.
    """

    token: str = field(repr=False)

    def __str__(self) -> str:
        return "EncryptedCredential(***)"

    def as_header(self) -> dict[str, str]:
        """Header carrying the credential on every request."""
        return {"Authorization": self.token}


class CredentialEncryptor(Protocol):
    """Turns a plaintext API key into an EncryptedCredential."""

    def encrypt(self, plaintext: str, trust_anchor: TrustAnchor | bytes) -> EncryptedCredential:
        """Encrypt the plaintext credential with the trust anchor."""
        ...


def load_rsa_public_key(data: bytes) -> rsa.RSAPublicKey:
    """Load an RSA public key from PEM/DER key or certificate bytes.

    Raises:
        ValueError: If the bytes hold no RSA public key.
    """
    loaders = (
        load_pem_public_key,
        load_der_public_key,
        lambda d: x509.load_pem_x509_certificate(d).public_key(),
        lambda d: x509.load_der_x509_certificate(d).public_key(),
    )
    public_key = None
    for loader in loaders:
        try:
            public_key = loader(data)
            break
        except (ValueError, TypeError, UnsupportedAlgorithm):
            continue

    if public_key is None:
        msg = "Trust anchor is not a valid PEM/DER public key or certificate"
        raise ValueError(msg)
    if not isinstance(public_key, rsa.RSAPublicKey):
        msg = f"Trust anchor holds a {type(public_key).__name__}, RSA is required"
        raise ValueError(msg)
    return public_key


def max_oaep_payload(public_key: rsa.RSAPublicKey) -> int:
    """Largest plaintext, in bytes, OAEP-SHA256 can carry for this key."""
    key_bytes = (public_key.key_size + 7) // 8
    return key_bytes - 2 * _SHA256_DIGEST_SIZE - 2


class RsaOaepEncryptor:
    """Encrypt credentials with RSA-OAEP / SHA-256.

    Example:
        encryptor = RsaOaepEncryptor()
        credential = encryptor.encrypt("my-api-key", anchor)
        headers = credential.as_header()
    """

    def encrypt(self, plaintext: str, trust_anchor: TrustAnchor | bytes) -> EncryptedCredential:
        """Encrypt the UTF-8 bytes of plaintext.

        Args:
            plaintext: API key in clear text.
            trust_anchor: Service public key (or certificate) bytes.

        Returns:
            EncryptedCredential with the base64 ciphertext.

        Raises:
            EncryptionFailedError: Invalid key, oversized or empty plaintext,
                or a backend failure.
        """
        data = trust_anchor.data if isinstance(trust_anchor, TrustAnchor) else trust_anchor
        if not plaintext:
            msg = "Error encrypting the API key: credential is empty"
            raise EncryptionFailedError(msg)

        try:
            public_key = load_rsa_public_key(data)
        except ValueError as e:
            raise EncryptionFailedError(f"Error encrypting the API key: {e}") from e

        message = plaintext.encode("utf-8")
        limit = max_oaep_payload(public_key)
        if len(message) > limit:
            msg = (
                f"Error encrypting the API key: credential is {len(message)} bytes, "
                f"a {public_key.key_size}-bit key can carry at most {limit}"
            )
            raise EncryptionFailedError(msg)

        try:
            ciphertext = public_key.encrypt(
                message,
                padding.OAEP(
                    mgf=padding.MGF1(algorithm=hashes.SHA256()),
                    algorithm=hashes.SHA256(),
                    label=None,
                ),
            )
        except ValueError as e:
            raise EncryptionFailedError(f"Error encrypting the API key: {e}") from e

        logger.debug("API key encrypted with %d-bit RSA key", public_key.key_size)
        return EncryptedCredential(token=base64.b64encode(ciphertext).decode("ascii"))


def encrypt_credential(plaintext: str, trust_anchor: TrustAnchor | bytes) -> EncryptedCredential:
    """Encrypt an API key with the default RSA-OAEP encryptor."""
    return RsaOaepEncryptor().encrypt(plaintext, trust_anchor)
