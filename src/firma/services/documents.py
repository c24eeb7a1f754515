"""Document operations against the remote signing service.

Every operation is a single multipart POST carrying the document as the
"documento" part; sign also carries "datos", the signature metadata as
compact JSON. Nothing is retried: failures surface as
RemoteOperationFailedError with the HTTP status and body so callers can
decide for themselves.

Endpoints:
    POST /sign-doc              -> signed document bytes
    POST /compare               -> JSON (422: no third-party signature)
    POST /get-data              -> JSON signatures
    POST /get-data/full         -> JSON signature details
    POST /get-data/certificados -> JSON certificates
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx

from firma.core.config import DEFAULT_TIMEOUT
from firma.core.errors import (
    ConfigurationInvalidError,
    NoThirdPartySignatureError,
    RemoteOperationFailedError,
)
from firma.services.transport import SecureTransport, SecureTransportFactory

if TYPE_CHECKING:
    from firma.core.config import FirmaSettings

logger = logging.getLogger(__name__)

SIGN_PATH = "/sign-doc"
COMPARE_PATH = "/compare"
SIGNATURES_PATH = "/get-data"
SIGNATURE_DETAILS_PATH = "/get-data/full"
CERTIFICATES_PATH = "/get-data/certificados"

DOCUMENT_FIELD = "documento"
METADATA_FIELD = "datos"

# Status the service uses when compare finds no third-party signature
NO_THIRD_PARTY_SIGNATURE_STATUS = 422


@dataclass(frozen=True, slots=True)
class DocumentPayload:
    """A document and optional metadata, ready to be sent as multipart."""

    document: bytes
    metadata: Mapping[str, Any] | None = field(default=None)

    def files(self) -> dict[str, tuple[str, bytes, str]]:
        return {DOCUMENT_FIELD: (DOCUMENT_FIELD, self.document, "application/octet-stream")}

    def data(self) -> dict[str, str] | None:
        """Serialize metadata as compact JSON.

        Raises:
            ConfigurationInvalidError: If the metadata is not JSON serializable.
        """
        if self.metadata is None:
            return None
        try:
            encoded = json.dumps(self.metadata, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            raise ConfigurationInvalidError(
                f"Signature metadata is not JSON serializable: {e}",
                field="metadata",
            ) from e
        return {METADATA_FIELD: encoded}


def merge_headers(
    caller_headers: Mapping[str, str] | None,
    auth_headers: Mapping[str, str],
) -> dict[str, str]:
    """Combine caller headers with the authentication header.

    Content-Type is dropped from caller headers: httpx sets it with the
    multipart boundary. Authentication headers override caller values.
    """
    merged: dict[str, str] = {}
    auth_names = {name.lower() for name in auth_headers}
    for name, value in (caller_headers or {}).items():
        lowered = name.lower()
        if lowered == "content-type" or lowered in auth_names:
            continue
        merged[name] = value
    merged.update(auth_headers)
    return merged


class DocumentClient:
    """Client for the signing service's document operations.

    Example usage:
        async with await DocumentClient.build(
            base_url="https://firma.example.com",
            api_key="my-api-key",
            certs_dir="/etc/firma/certs",
            ca_crt="public.pem",
        ) as client:
            signed = await client.sign(pdf_bytes, {"reason": "approval"})
            signatures = await client.fetch_signatures(signed)
    """

    def __init__(self, transport: SecureTransport) -> None:
        """Initialize the client over an already built transport."""
        self._transport = transport

    @classmethod
    async def build(
        cls,
        *,
        base_url: str | None,
        api_key: str | None,
        certs_dir: str | Path | None = None,
        ca_crt: str | None = None,
        client_crt: str | None = None,
        client_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        factory: SecureTransportFactory | None = None,
    ) -> DocumentClient:
        """Build a fully initialized client.

        Mutual-TLS mode is used when client_crt or client_key is given;
        otherwise credential mode, with ca_crt naming the local public key.
        """
        factory = factory or SecureTransportFactory()
        if client_crt or client_key:
            transport = await factory.create_mutual_tls_transport(
                base_url,
                api_key,
                certs_dir=certs_dir,
                ca_crt=ca_crt,
                client_crt=client_crt,
                client_key=client_key,
                timeout=timeout,
            )
        else:
            transport = await factory.create_credential_transport(
                base_url,
                api_key,
                certs_dir=certs_dir,
                public_key_file=ca_crt,
                timeout=timeout,
            )
        return cls(transport)

    @classmethod
    async def from_settings(
        cls,
        settings: FirmaSettings,
        *,
        factory: SecureTransportFactory | None = None,
    ) -> DocumentClient:
        """Build a client from loaded settings."""
        factory = factory or SecureTransportFactory()
        return cls(await factory.create_transport(settings))

    @property
    def transport(self) -> SecureTransport:
        return self._transport

    async def __aenter__(self) -> DocumentClient:
        """Enter async context manager."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Exit async context manager, closing the transport."""
        await self.aclose()

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def _post(
        self,
        operation: str,
        path: str,
        payload: DocumentPayload,
        headers: Mapping[str, str] | None,
    ) -> httpx.Response:
        """Send one multipart POST and return the successful response.

        The client timeout bounds every exchange as a whole, including a
        response body that trickles in slowly.

        Raises:
            ConfigurationInvalidError: Metadata is not JSON serializable.
            RemoteOperationFailedError: Transport failure, timeout or non-2xx status.
        """
        files = payload.files()
        data = payload.data()
        merged = merge_headers(headers, self._transport.auth_headers())
        timeout = self._transport.config.timeout
        try:
            async with asyncio.timeout(timeout):
                response = await self._transport.client.post(
                    path,
                    files=files,
                    data=data,
                    headers=merged,
                )
            response.raise_for_status()
        except TimeoutError as e:
            logger.error("%s timed out after %.1fs", operation, timeout)
            raise RemoteOperationFailedError(
                f"{operation} timed out after {timeout}s",
                operation=operation,
            ) from e
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if operation == "compare" and status_code == NO_THIRD_PARTY_SIGNATURE_STATUS:
                logger.warning("No third-party signature to compare")
                raise NoThirdPartySignatureError(
                    "No third-party signature to compare",
                    operation=operation,
                    status_code=status_code,
                    body=e.response.content,
                ) from e
            logger.error("%s failed: HTTP %d", operation, status_code)
            raise RemoteOperationFailedError(
                f"{operation} failed: HTTP {status_code}",
                operation=operation,
                status_code=status_code,
                body=e.response.content,
            ) from e
        except httpx.TimeoutException as e:
            logger.error("%s timed out", operation)
            raise RemoteOperationFailedError(
                f"{operation} timed out: {e}",
                operation=operation,
            ) from e
        except httpx.HTTPError as e:
            logger.error("%s failed: %s", operation, e)
            raise RemoteOperationFailedError(
                f"{operation} failed: {e}",
                operation=operation,
            ) from e
        return response

    async def _post_json(
        self,
        operation: str,
        path: str,
        document: bytes,
        headers: Mapping[str, str] | None,
    ) -> Any:
        response = await self._post(operation, path, DocumentPayload(document), headers)
        try:
            return response.json()
        except ValueError as e:
            raise RemoteOperationFailedError(
                f"{operation} returned a body that is not JSON",
                operation=operation,
                status_code=response.status_code,
                body=response.content,
            ) from e

    async def sign(
        self,
        document: bytes,
        metadata: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> bytes:
        """Sign a document.

        Args:
            document: Document bytes to sign.
            metadata: Signature data, sent as compact JSON in "datos".
            headers: Additional HTTP headers.

        Returns:
            The signed document bytes.

        Raises:
            RemoteOperationFailedError: If the request fails.
        """
        payload = DocumentPayload(document, metadata if metadata is not None else {})
        response = await self._post("sign", SIGN_PATH, payload, headers)
        logger.info(
            "Document signed (%d bytes in, %d bytes out)",
            len(document),
            len(response.content),
        )
        return response.content

    async def compare(
        self,
        document: bytes,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Compare a document to verify third-party signatures.

        Raises:
            NoThirdPartySignatureError: The document has no third-party
                signature (HTTP 422).
            RemoteOperationFailedError: Any other failure.
        """
        return await self._post_json("compare", COMPARE_PATH, document, headers)

    async def fetch_signatures(
        self,
        document: bytes,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Get the signatures of a document."""
        return await self._post_json("fetch_signatures", SIGNATURES_PATH, document, headers)

    async def fetch_signature_details(
        self,
        document: bytes,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Get the full signature details of a document."""
        return await self._post_json(
            "fetch_signature_details", SIGNATURE_DETAILS_PATH, document, headers
        )

    async def fetch_certificates(
        self,
        document: bytes,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Get the certificates associated with a document's signatures."""
        return await self._post_json("fetch_certificates", CERTIFICATES_PATH, document, headers)
