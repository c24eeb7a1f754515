"""Pytest configuration and shared fixtures.

Keys and certificates are generated on the fly with cryptography; HTTP
traffic is served by httpx.MockTransport, so no signing service is needed.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator, Generator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import httpx
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)
from cryptography.x509 import NameOID

from firma.core.settings import clear_settings_cache

# ---------------------------------------------------------------------------
# Key material
# ---------------------------------------------------------------------------
@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    """RSA-2048 key pair standing in for the signing service's key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def public_key_pem(rsa_private_key: rsa.RSAPrivateKey) -> bytes:
    return rsa_private_key.public_key().public_bytes(
        Encoding.PEM, PublicFormat.SubjectPublicKeyInfo
    )


@pytest.fixture(scope="session")
def public_key_der(rsa_private_key: rsa.RSAPrivateKey) -> bytes:
    return rsa_private_key.public_key().public_bytes(
        Encoding.DER, PublicFormat.SubjectPublicKeyInfo
    )


def _name(common_name: str) -> x509.Name:
    return x509.Name(
        [
            x509.NameAttribute(NameOID.COUNTRY_NAME, "CL"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Firma Test"),
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        ]
    )


@dataclass(frozen=True)
class CertificateSet:
    """PEM material for a CA and a client certificate it issued."""

    ca_key: rsa.RSAPrivateKey
    ca_pem: bytes
    client_cert_pem: bytes
    client_key_pem: bytes


@pytest.fixture(scope="session")
def certificate_set() -> CertificateSet:
    """Self-signed CA plus a client certificate signed by it."""
    now = datetime.now(UTC)

    ca_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    ca_cert = (
        x509.CertificateBuilder()
        .subject_name(_name("Firma Test CA"))
        .issuer_name(_name("Firma Test CA"))
        .public_key(ca_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(ca_key, hashes.SHA256())
    )

    client_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    client_cert = (
        x509.CertificateBuilder()
        .subject_name(_name("firma-client"))
        .issuer_name(ca_cert.subject)
        .public_key(client_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(ca_key, hashes.SHA256())
    )

    return CertificateSet(
        ca_key=ca_key,
        ca_pem=ca_cert.public_bytes(Encoding.PEM),
        client_cert_pem=client_cert.public_bytes(Encoding.PEM),
        client_key_pem=client_key.private_bytes(
            Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()
        ),
    )


@pytest.fixture
def certs_dir(tmp_path: Path, certificate_set: CertificateSet, public_key_pem: bytes) -> Path:
    """Directory laid out like a deployed FIRMA_CERTS_DIR."""
    directory = tmp_path / "certs"
    directory.mkdir()
    (directory / "ca.crt").write_bytes(certificate_set.ca_pem)
    (directory / "client.crt").write_bytes(certificate_set.client_cert_pem)
    (directory / "client.key").write_bytes(certificate_set.client_key_pem)
    (directory / "public.pem").write_bytes(public_key_pem)
    return directory


# ---------------------------------------------------------------------------
# HTTP fakes
# ---------------------------------------------------------------------------
@dataclass
class FakeSigningService:
    """Records requests and answers them from a route table."""

    routes: dict[tuple[str, str], httpx.Response]
    requests: list[httpx.Request]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        # Body must be read before the request stream is gone
        request.read()
        template = self.routes.get((request.method, request.url.path))
        if template is None:
            return httpx.Response(404, json={"error": "not found"})
        # Fresh response per request, httpx binds each one to its request
        return httpx.Response(
            template.status_code,
            headers=template.headers,
            content=template.content,
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_service(public_key_pem: bytes) -> FakeSigningService:
    """Signing service fake serving the public key and JSON query endpoints."""
    return FakeSigningService(
        routes={
            ("GET", "/certs/http/public-key"): httpx.Response(200, content=public_key_pem),
            ("POST", "/sign-doc"): httpx.Response(200, content=b"%PDF-signed"),
            ("POST", "/compare"): httpx.Response(200, json={"match": True}),
            ("POST", "/get-data"): httpx.Response(200, json=[{"firmante": "Ana"}]),
            ("POST", "/get-data/full"): httpx.Response(200, json=[{"firmante": "Ana", "ok": 1}]),
            ("POST", "/get-data/certificados"): httpx.Response(200, json=[{"serial": "01"}]),
        },
        requests=[],
    )


class TricklingStream(httpx.AsyncByteStream):
    """Response body that arrives one byte at a time with a pause between."""

    def __init__(self, body: bytes, interval: float) -> None:
        self._body = body
        self._interval = interval

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for byte in self._body:
            await asyncio.sleep(self._interval)
            yield bytes([byte])


@pytest.fixture
def trickling_transport() -> httpx.MockTransport:
    """Transport whose 200 responses take about two seconds to finish.

    Each pause is far shorter than any read timeout, so only a bound on
    the whole exchange stops it.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        request.read()
        return httpx.Response(200, stream=TricklingStream(b'{"ok": true}', 0.15))

    return httpx.MockTransport(handler)


# ---------------------------------------------------------------------------
# Settings isolation
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def isolated_settings(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Generator[None, None, None]:
    """Keep FIRMA_* variables and any .env file out of tests."""
    for name in list(os.environ):
        if name.startswith("FIRMA_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()
