"""HTTP listener receiving build notifications.

Endpoints (all on ``/``):
    GET   health probe, 200 with an empty body
    POST  build notification, always 200; undecodable fields take zero values
    *     405
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from aiohttp import web

from nomad_deployer.constants import MAX_NOTIFICATION_BYTES
from nomad_deployer.logging import get_logger
from nomad_deployer.models import BuildNotification, decode_partial_notification

if TYPE_CHECKING:
    import structlog

    from nomad_deployer.worker import UpdateWorker

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}


def access_log_middleware(
    log: structlog.stdlib.BoundLogger,
) -> Callable[[web.Request, Handler], Awaitable[web.StreamResponse]]:
    """Build a middleware logging every request, whatever its outcome."""

    @web.middleware
    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        start = time.monotonic()
        status = 500
        try:
            response = await handler(request)
            status = response.status
            return response
        except web.HTTPException as exc:
            status = exc.status
            raise
        finally:
            log.info(
                "served_http_request",
                http_request_method=request.method,
                http_request_url=request.path_qs,
                remote_address=request.remote,
                status=status,
                request_duration_ms=round((time.monotonic() - start) * 1000, 2),
            )

    return middleware


class WebhookListener:
    """Decodes build notifications and hands them to the update worker."""

    def __init__(
        self,
        worker: UpdateWorker,
        *,
        log: structlog.stdlib.BoundLogger | None = None,
        max_body_bytes: int = MAX_NOTIFICATION_BYTES,
    ) -> None:
        self._worker = worker
        self._max_body_bytes = max_body_bytes
        self._log = log or get_logger("nomad_deployer.server")

    def create_app(self) -> web.Application:
        app = web.Application(
            middlewares=[access_log_middleware(self._log)],
            client_max_size=self._max_body_bytes,
        )
        app.router.add_route("*", "/", self.handle)
        return app

    async def handle(self, request: web.Request) -> web.Response:
        if request.method == "GET":
            return web.Response(status=200)
        if request.method != "POST":
            return web.Response(status=405)
        return await self._handle_notification(request)

    async def _handle_notification(self, request: web.Request) -> web.Response:
        try:
            raw = await request.read()
        except web.HTTPRequestEntityTooLarge:
            self._log.error(
                "notification_decode_failed",
                errors=[f"body exceeds {self._max_body_bytes} bytes"],
            )
            notification = BuildNotification()
        else:
            notification, errors = decode_partial_notification(raw)
            if errors:
                # Fields that failed take zero values; the rest are kept
                self._log.error(
                    "notification_decode_failed",
                    errors=errors,
                    docker_url=notification.docker_url,
                )

        # Blocks while the queue is full
        await self._worker.submit(notification)
        self._log.debug(
            "notification_enqueued",
            docker_url=notification.docker_url,
            tags=list(notification.docker_tags),
            pending=self._worker.pending,
        )
        return web.Response(
            status=200,
            content_type="application/json",
            headers=CORS_HEADERS,
        )


def create_app(
    worker: UpdateWorker,
    log: structlog.stdlib.BoundLogger | None = None,
    max_body_bytes: int = MAX_NOTIFICATION_BYTES,
) -> web.Application:
    """Create the aiohttp application serving the webhook endpoint."""
    return WebhookListener(worker, log=log, max_body_bytes=max_body_bytes).create_app()
