"""Server-side TLS for the webhook listener.

Certificates are issued out of band (e.g. by a secret manager sidecar)
and dropped next to each other as ``<common name>.crt`` and
``<common name>.key`` unless explicit paths are configured.
"""

from __future__ import annotations

import ssl
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nomad_deployer.config import Settings


class TLSConfigError(Exception):
    """Raised when the listener's TLS configuration cannot be loaded."""


def certificate_paths(settings: Settings) -> tuple[Path, Path]:
    """Resolve the PEM certificate and key paths for ``settings.tls_cn``."""
    if not settings.tls_cn:
        raise TLSConfigError("TLS_CN is not set")
    cert_dir = Path(settings.tls_cert_dir)
    cert = cert_dir / f"{settings.tls_cn}.crt"
    key = cert_dir / f"{settings.tls_cn}.key"
    if settings.tls_cert_file:
        cert = Path(settings.tls_cert_file)
    if settings.tls_key_file:
        key = Path(settings.tls_key_file)
    return cert, key


def load_server_context(cert_file: Path, key_file: Path) -> ssl.SSLContext:
    """Build a server SSLContext from a PEM certificate chain and key."""
    for path in (cert_file, key_file):
        if not path.is_file():
            raise TLSConfigError(f"TLS file not found: {path}")

    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    try:
        context.load_cert_chain(certfile=str(cert_file), keyfile=str(key_file))
    except (OSError, ssl.SSLError) as exc:
        raise TLSConfigError(f"cannot load certificate {cert_file}: {exc}") from exc
    return context


def build_ssl_context(settings: Settings) -> ssl.SSLContext:
    cert, key = certificate_paths(settings)
    return load_server_context(cert, key)
