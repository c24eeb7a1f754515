"""Firma - client for a remote digital-signature service.

Submits documents for signing, retrieves signature metadata and verifies
third-party signatures. The API credential is protected in transit either by
encrypting it with the service's public key or by carrying authentication on
a mutual-TLS connection.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
