"""Main entry point for nomad-deployer."""

from __future__ import annotations

import asyncio
import contextlib
import signal
from typing import TYPE_CHECKING

from aiohttp import web

from nomad_deployer import __version__
from nomad_deployer.config import get_settings
from nomad_deployer.logging import logging_session
from nomad_deployer.nomad import NomadClient, NomadConfigError
from nomad_deployer.server import create_app
from nomad_deployer.tls import TLSConfigError, build_ssl_context
from nomad_deployer.updater import ImageUpdater
from nomad_deployer.worker import UpdateWorker

if TYPE_CHECKING:
    import structlog

    from nomad_deployer.config import Settings


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on every platform (e.g. Windows event loops)
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)


async def serve(
    settings: Settings,
    log: structlog.stdlib.BoundLogger,
    stop: asyncio.Event | None = None,
) -> None:
    """Run the listener and the update worker until ``stop`` is set.

    TLS and bind failures propagate; a Nomad client that cannot be built
    is logged and the function returns without serving.
    """
    ssl_context = build_ssl_context(settings) if settings.tls_enabled else None

    try:
        client = NomadClient.from_settings(settings, log=log.bind(component="nomad"))
    except NomadConfigError as exc:
        log.error("nomad_client_failed", error=str(exc))
        return

    updater = ImageUpdater(
        client,
        enforce_index=settings.nomad_enforce_index,
        log=log.bind(component="updater"),
    )
    worker = UpdateWorker(
        updater,
        capacity=settings.queue_capacity,
        log=log.bind(component="worker"),
    )
    app = create_app(
        worker,
        log=log.bind(component="listener"),
        max_body_bytes=settings.max_body_bytes,
    )
    runner = web.AppRunner(app, access_log=None)

    if stop is None:
        stop = asyncio.Event()
        _install_signal_handlers(stop)

    try:
        await runner.setup()
        site = web.TCPSite(
            runner,
            host=settings.bind_host,
            port=settings.listen_port,
            ssl_context=ssl_context,
        )
        await site.start()
        log.info(
            "listener_started",
            transport=settings.transport,
            port=settings.listen_port,
            nomad_addr=client.address,
        )
        worker.start()
        await stop.wait()
        log.info("shutdown_requested", pending=worker.pending)
    finally:
        await worker.stop()
        await runner.cleanup()
        await client.close()
        log.info("nomad_deployer_stopped")


def main() -> None:
    """Run the application."""
    settings = get_settings()
    with logging_session(settings) as log:
        log.info("starting_nomad_deployer", version=__version__, environment=settings.environment)
        try:
            asyncio.run(serve(settings, log))
        except (TLSConfigError, OSError) as exc:
            log.critical("startup_failed", error=str(exc))
            raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
