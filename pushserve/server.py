from __future__ import annotations

import functools
import ssl
from dataclasses import dataclass, field
from pathlib import Path

import anyio
from hypercorn.asyncio import serve
from hypercorn.config import Config

from pushserve.app import PushServer
from pushserve.conf import Settings
from pushserve.exceptions import ImproperlyConfigured
from pushserve.logging import logger


@dataclass(frozen=True)
class TLSMaterial:
    keyfile: str
    certfile: str
    key: bytes = field(repr=False)
    cert: bytes = field(repr=False)


def load_tls_material(settings: Settings) -> TLSMaterial:
    """
    Reads the TLS key and certificate and checks they make a usable server
    context.

    Args:
        settings (Settings): Settings naming the key and certificate files.

    Returns:
        TLSMaterial: The key and certificate files and their contents.

    Raises:
        ImproperlyConfigured: If a file cannot be read or the pair is unusable.
    """
    keyfile, certfile = settings.ssl_key_path, settings.ssl_cert_path
    try:
        key = Path(keyfile).read_bytes()
        cert = Path(certfile).read_bytes()
    except OSError as exc:
        raise ImproperlyConfigured(detail=f"Unable to read the TLS material: {exc}") from exc

    try:
        context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
        context.load_cert_chain(certfile=certfile, keyfile=keyfile)
    except (ssl.SSLError, OSError) as exc:
        raise ImproperlyConfigured(
            detail=f"Invalid TLS material '{certfile}' / '{keyfile}': {exc}"
        ) from exc

    return TLSMaterial(keyfile=keyfile, certfile=certfile, key=key, cert=cert)


def build_config(settings: Settings, tls: TLSMaterial) -> Config:
    """
    Builds the hypercorn configuration of a TLS listener speaking HTTP/2 and
    falling back to HTTP/1.1.
    """
    config = Config()
    config.bind = [f"{settings.host}:{settings.port}"]
    config.keyfile = tls.keyfile
    config.certfile = tls.certfile
    config.alpn_protocols = ["h2", "http/1.1"]
    config.loglevel = settings.logging_level
    return config


def run(settings: Settings | None = None) -> None:
    """
    Starts serving until the process is terminated.

    Missing or invalid TLS material stops the start up before anything listens.
    """
    settings = settings if settings is not None else Settings()
    app = PushServer(settings=settings)
    tls = load_tls_material(settings)
    config = build_config(settings, tls)

    logger.info("Listening on https://%s:%s", settings.host, settings.port)
    anyio.run(functools.partial(serve, app, config))
