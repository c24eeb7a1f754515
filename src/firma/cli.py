"""Firma command-line entry point.

Commands:
    firma encrypt-api-key --api-key KEY
        Obtain the service public key (local file or API) and print the
        base64 RSA-OAEP encrypted API key.

    firma sign | compare | get-firmas | get-firmas-full | get-certificados
        Build a client from FIRMA_* settings and run one document operation
        on the sample documents in FIRMA_TEST_DOCS_PATH.

Configuration is read from the environment or a .env file
(see firma.core.config).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from firma.core.config import FirmaSettings
from firma.core.errors import (
    ConfigurationInvalidError,
    FirmaError,
    NoThirdPartySignatureError,
)
from firma.core.settings import get_settings
from firma.services.documents import DocumentClient
from firma.services.transport import SecureTransportFactory

logger = logging.getLogger(__name__)

# Sample document names inside FIRMA_TEST_DOCS_PATH
ORIGINAL_DOCUMENT = "document.pdf"
SIGNED_OUTPUT_DOCUMENT = "document_nuevo.pdf"
THIRD_PARTY_SIGNED_DOCUMENT = "document_firmado.pdf"

# command -> (DocumentClient method, input document)
QUERY_COMMANDS: dict[str, tuple[str, str]] = {
    "compare": ("compare", THIRD_PARTY_SIGNED_DOCUMENT),
    "get-firmas": ("fetch_signatures", SIGNED_OUTPUT_DOCUMENT),
    "get-firmas-full": ("fetch_signature_details", THIRD_PARTY_SIGNED_DOCUMENT),
    "get-certificados": ("fetch_certificates", THIRD_PARTY_SIGNED_DOCUMENT),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="firma",
        description="Client for the Firma digital-signature service",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    encrypt_parser = subparsers.add_parser(
        "encrypt-api-key",
        help="Encrypt an API key with the service public key",
    )
    encrypt_parser.add_argument("--api-key", required=True, help="API key to encrypt")

    sign_parser = subparsers.add_parser("sign", help="Sign the sample document")
    sign_parser.add_argument(
        "--datos",
        default='{"test":"ok"}',
        help="Signature metadata as JSON (default: %(default)s)",
    )

    for command in QUERY_COMMANDS:
        subparsers.add_parser(command, help=f"Run {command} on a sample document")

    return parser


def _docs_dir(settings: FirmaSettings) -> Path:
    if settings.test_docs_path is None:
        msg = "FIRMA_TEST_DOCS_PATH is required for document commands"
        raise ConfigurationInvalidError(msg, field="test_docs_path")
    return settings.test_docs_path


async def encrypt_api_key(settings: FirmaSettings, api_key: str) -> str:
    """Run the credential-mode bootstrap and return the encrypted key."""
    factory = SecureTransportFactory()
    transport = await factory.create_credential_transport(
        settings.base_url,
        api_key,
        certs_dir=settings.certs_dir,
        public_key_file=settings.ca_crt,
        timeout=settings.timeout,
    )
    try:
        return transport.auth_headers()["Authorization"]
    finally:
        await transport.aclose()


async def run_document_command(settings: FirmaSettings, args: argparse.Namespace) -> Any:
    """Build a client from settings and run the selected document command."""
    docs_dir = _docs_dir(settings)

    async with await DocumentClient.from_settings(settings) as client:
        if args.command == "sign":
            metadata = json.loads(args.datos)
            document = (docs_dir / ORIGINAL_DOCUMENT).read_bytes()
            signed = await client.sign(document, metadata)
            output = docs_dir / SIGNED_OUTPUT_DOCUMENT
            output.write_bytes(signed)
            return f"Signed document saved to: {output}"

        method_name, document_name = QUERY_COMMANDS[args.command]
        document = (docs_dir / document_name).read_bytes()
        return await getattr(client, method_name)(document)


def main(argv: list[str] | None = None) -> int:
    """Run the CLI.

    Returns:
        Exit code (0 for success, 1 for failures).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except ConfigurationInvalidError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "encrypt-api-key":
            encrypted = asyncio.run(encrypt_api_key(settings, args.api_key))
            print("\n--- Encrypted API Key (Base64) ---")
            print(encrypted)
            print("----------------------------------\n")
            return 0

        result = asyncio.run(run_document_command(settings, args))
    except NoThirdPartySignatureError:
        logger.warning("Compared a document without third-party signature (HTTP 422)")
        return 1
    except FirmaError as e:
        logger.error("Command %s failed: %s", args.command, e)
        return 1
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Command %s failed: %s", args.command, e)
        return 1

    if isinstance(result, str):
        print(result)
    else:
        print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
