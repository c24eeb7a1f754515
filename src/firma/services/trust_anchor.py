"""Trust anchor acquisition with local-file to remote-endpoint fallback.

A trust anchor is the service's public key or CA certificate (PEM or DER).
It is looked up through an ordered chain of sources:

1. LocalFileSource - a file in a configured directory. Failures here are
   logged at WARNING and the chain moves on.
2. RemoteEndpointSource - a single GET against the signing service. Failures
   here are fatal and stop client construction.

Each source returns an AnchorResult instead of raising, so the "degrade"
and "fail hard" behaviors are decided by the result, not by nested
exception handling.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import httpx

from firma.core.config import DEFAULT_TIMEOUT
from firma.core.errors import TrustAnchorUnavailableError
from firma.services.paths import PathValidationError, require_paths

logger = logging.getLogger(__name__)

# Endpoint serving the signing service's public key
PUBLIC_KEY_ENDPOINT = "/certs/http/public-key"


@dataclass(frozen=True, slots=True)
class TrustAnchor:
    """Public key or CA certificate bytes, as loaded.

    Attributes:
        data: Raw PEM/DER bytes, never empty.
        source: Where the bytes came from ("file" or "api").
    """

    data: bytes
    source: str

    def __post_init__(self) -> None:
        if not self.data:
            msg = "Trust anchor data cannot be empty"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class AnchorResult:
    """Outcome of one trust anchor source.

    Attributes:
        anchor: The loaded anchor, None on failure.
        error: Failure description, None on success.
        fatal: Whether the failure must stop the chain.
    """

    anchor: TrustAnchor | None = None
    error: str | None = None
    fatal: bool = False

    @property
    def ok(self) -> bool:
        return self.anchor is not None

    @classmethod
    def success(cls, anchor: TrustAnchor) -> AnchorResult:
        return cls(anchor=anchor)

    @classmethod
    def failure(cls, error: str, *, fatal: bool) -> AnchorResult:
        return cls(error=error, fatal=fatal)


class TrustAnchorSource(Protocol):
    """A place a trust anchor can be fetched from."""

    name: str

    async def fetch(self) -> AnchorResult:
        """Attempt to obtain the anchor."""
        ...


class LocalFileSource:
    """Read the trust anchor from a local file. Failures are recoverable."""

    name = "file"

    def __init__(self, directory: str | Path, file_name: str) -> None:
        self._path = Path(directory) / file_name

    @property
    def path(self) -> Path:
        return self._path

    async def fetch(self) -> AnchorResult:
        try:
            (resolved,) = require_paths(str(self._path))
            data = resolved.read_bytes()
        except (PathValidationError, OSError) as e:
            return AnchorResult.failure(str(e), fatal=False)

        if not data:
            return AnchorResult.failure(f"Trust anchor file is empty: {self._path}", fatal=False)
        return AnchorResult.success(TrustAnchor(data=data, source=self.name))


class RemoteEndpointSource:
    """Download the trust anchor from the signing service. Failures are fatal.

    A short-lived httpx.AsyncClient is opened for the single request, which
    must complete within the timeout as a whole.
    """

    name = "api"

    def __init__(
        self,
        base_url: str,
        endpoint_path: str = PUBLIC_KEY_ENDPOINT,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url
        self._endpoint_path = endpoint_path
        self._timeout = timeout
        self._transport = transport

    async def fetch(self) -> AnchorResult:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                async with asyncio.timeout(self._timeout):
                    response = await client.get(self._endpoint_path)
                response.raise_for_status()
                data = response.content
        except TimeoutError:
            return AnchorResult.failure(
                f"Public key endpoint timed out after {self._timeout}s",
                fatal=True,
            )
        except httpx.HTTPStatusError as e:
            return AnchorResult.failure(
                f"Public key endpoint returned HTTP {e.response.status_code}",
                fatal=True,
            )
        except httpx.HTTPError as e:
            return AnchorResult.failure(f"Cannot reach public key endpoint: {e}", fatal=True)

        if not data:
            return AnchorResult.failure("Public key endpoint returned an empty body", fatal=True)
        return AnchorResult.success(TrustAnchor(data=data, source=self.name))


class TrustAnchorLoader:
    """Try each source in order until one yields a trust anchor.

    Example:
        loader = TrustAnchorLoader.for_service(
            "https://firma.example.com",
            local_dir="/etc/firma/certs",
            local_file_name="public.pem",
        )
        anchor = await loader.load()
    """

    def __init__(self, sources: list[TrustAnchorSource]) -> None:
        self._sources = list(sources)

    @property
    def sources(self) -> list[TrustAnchorSource]:
        return list(self._sources)

    @classmethod
    def for_service(
        cls,
        remote_base_url: str,
        *,
        local_dir: str | Path | None = None,
        local_file_name: str | None = None,
        remote_endpoint_path: str = PUBLIC_KEY_ENDPOINT,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> TrustAnchorLoader:
        """Build the standard local-then-remote chain.

        The local source is only included when both directory and file name
        are given.
        """
        sources: list[TrustAnchorSource] = []
        if local_dir and local_file_name:
            sources.append(LocalFileSource(local_dir, local_file_name))
        sources.append(
            RemoteEndpointSource(
                remote_base_url,
                remote_endpoint_path,
                timeout=timeout,
                transport=transport,
            )
        )
        return cls(sources)

    async def load(self) -> TrustAnchor:
        """Return the first anchor a source yields.

        Raises:
            TrustAnchorUnavailableError: A fatal source failed, or every source
                was exhausted without producing an anchor.
        """
        for source in self._sources:
            result = await source.fetch()
            if result.ok:
                logger.info("Trust anchor obtained from %s", source.name)
                return result.anchor  # type: ignore[return-value]

            if result.fatal:
                msg = f"Could not obtain the public key from {source.name}: {result.error}"
                raise TrustAnchorUnavailableError(msg)

            logger.warning(
                "Could not load trust anchor from %s (%s), trying next source",
                source.name,
                result.error,
            )

        msg = "No valid public key could be obtained from file or API"
        raise TrustAnchorUnavailableError(msg)


async def load_trust_anchor(
    remote_base_url: str,
    *,
    local_dir: str | Path | None = None,
    local_file_name: str | None = None,
    remote_endpoint_path: str = PUBLIC_KEY_ENDPOINT,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> TrustAnchor:
    """Load a trust anchor from a local file, falling back to the service.

    Args:
        remote_base_url: Base URL of the signing service.
        local_dir: Directory holding the local key file (optional).
        local_file_name: File name inside local_dir (optional).
        remote_endpoint_path: Path of the public key endpoint.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (used for testing).

    Returns:
        Non-empty TrustAnchor.

    Raises:
        TrustAnchorUnavailableError: If neither source yields a key.
    """
    loader = TrustAnchorLoader.for_service(
        remote_base_url,
        local_dir=local_dir,
        local_file_name=local_file_name,
        remote_endpoint_path=remote_endpoint_path,
        timeout=timeout,
        transport=transport,
    )
    return await loader.load()
