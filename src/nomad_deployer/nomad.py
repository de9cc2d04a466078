"""Async client for the Nomad HTTP API.

Only the four calls the updater needs are implemented: job listing,
job read, job plan (dry run) and job register.
"""

from __future__ import annotations

import ssl
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urlparse

import httpx

from nomad_deployer.constants import NOMAD_TOKEN_HEADER
from nomad_deployer.jobs import Job, JobStub
from nomad_deployer.logging import get_logger

if TYPE_CHECKING:
    import structlog

    from nomad_deployer.config import Settings


class NomadError(Exception):
    """Base class for Nomad client errors."""


class NomadConfigError(NomadError):
    """Raised when the client cannot be constructed from its configuration."""


class NomadConnectionError(NomadError):
    """Raised when the Nomad agent cannot be reached."""


class NomadAPIError(NomadError):
    """Raised when Nomad answers with a non-2xx status."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Nomad API error {status_code}: {message}")


class NomadNotFoundError(NomadAPIError):
    """Raised for 404 responses."""


class NomadPermissionError(NomadAPIError):
    """Raised for 401/403 responses (missing or insufficient ACL token)."""


class NomadClient:
    """Async Nomad API client bound to one agent address."""

    def __init__(
        self,
        address: str,
        *,
        token: str | None = None,
        region: str | None = None,
        namespace: str | None = None,
        timeout: float | None = None,
        verify: bool | ssl.SSLContext = True,
        transport: httpx.AsyncBaseTransport | None = None,
        log: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        parsed = urlparse(address)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise NomadConfigError(f"invalid Nomad address: {address!r}")
        self._address = address.rstrip("/")
        self._token = token
        self._region = region
        self._namespace = namespace
        self._timeout = timeout
        self._verify = verify
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._log = log or get_logger("nomad_deployer.nomad")

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        log: structlog.stdlib.BoundLogger | None = None,
    ) -> NomadClient:
        """Build a client from NOMAD_* settings."""
        if bool(settings.nomad_client_cert) != bool(settings.nomad_client_key):
            raise NomadConfigError("nomad_client_cert and nomad_client_key must be set together")

        verify: bool | ssl.SSLContext = True
        if settings.nomad_skip_verify:
            verify = False
        elif settings.nomad_cacert or settings.nomad_client_cert:
            try:
                context = ssl.create_default_context(cafile=settings.nomad_cacert)
                if settings.nomad_client_cert and settings.nomad_client_key:
                    context.load_cert_chain(settings.nomad_client_cert, settings.nomad_client_key)
            except (OSError, ssl.SSLError) as exc:
                raise NomadConfigError(f"cannot load Nomad TLS material: {exc}") from exc
            verify = context

        token = settings.nomad_token.get_secret_value() if settings.nomad_token else None
        return cls(
            settings.nomad_addr,
            token=token,
            region=settings.nomad_region,
            namespace=settings.nomad_namespace,
            timeout=settings.nomad_timeout_seconds,
            verify=verify,
            log=log,
        )

    @property
    def address(self) -> str:
        return self._address

    async def __aenter__(self) -> NomadClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self._token:
                headers[NOMAD_TOKEN_HEADER] = self._token
            self._client = httpx.AsyncClient(
                base_url=self._address,
                headers=headers,
                timeout=httpx.Timeout(self._timeout),
                verify=self._verify,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _params(self, namespace: str | None = None) -> dict[str, str]:
        params: dict[str, str] = {}
        if self._region:
            params["region"] = self._region
        ns = namespace or self._namespace
        if ns:
            params["namespace"] = ns
        return params

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body."""
        client = await self._get_client()
        try:
            response = await client.request(method, path, params=params, json=json_data)
        except httpx.RequestError as exc:
            raise NomadConnectionError(f"Nomad request {method} {path} failed: {exc}") from exc

        if response.status_code == 404:
            raise NomadNotFoundError(404, response.text.strip() or "not found")
        if response.status_code in (401, 403):
            raise NomadPermissionError(response.status_code, response.text.strip())
        if response.status_code >= 400:
            raise NomadAPIError(response.status_code, response.text.strip())

        try:
            return response.json()
        except ValueError as exc:
            raise NomadAPIError(response.status_code, f"invalid JSON response: {exc}") from exc

    # ------------------------------------------------------------------
    # Jobs API
    # ------------------------------------------------------------------

    async def list_jobs(self, *, stale: bool = False) -> list[JobStub]:
        """List job stubs; a non-stale read goes through the cluster leader."""
        params = self._params()
        if stale:
            params["stale"] = "true"
        data = await self._request("GET", "/v1/jobs", params=params)
        if not isinstance(data, list):
            raise NomadAPIError(200, "job listing is not a list")
        return [
            JobStub.from_api(item) for item in data if isinstance(item, dict) and item.get("ID")
        ]

    async def get_job(self, job_id: str, namespace: str | None = None) -> Job:
        data = await self._request(
            "GET", f"/v1/job/{quote(job_id, safe='')}", params=self._params(namespace)
        )
        try:
            return Job(data)
        except ValueError as exc:
            raise NomadAPIError(200, f"malformed job {job_id}: {exc}") from exc

    async def plan_job(self, job: Job, *, diff: bool = False) -> dict[str, Any]:
        """Dry-run a job submission and return the plan response."""
        data = await self._request(
            "POST",
            f"/v1/job/{quote(job.id, safe='')}/plan",
            params=self._params(job.namespace),
            json_data={"Job": job.to_api(), "Diff": diff},
        )
        return data if isinstance(data, dict) else {}

    async def register_job(self, job: Job, *, enforce_index: bool = False) -> dict[str, Any]:
        """Register (apply) a job definition and return the register response."""
        body: dict[str, Any] = {"Job": job.to_api()}
        if enforce_index:
            body["EnforceIndex"] = True
            body["JobModifyIndex"] = job.job_modify_index
        data = await self._request(
            "POST", "/v1/jobs", params=self._params(job.namespace), json_data=body
        )
        result = data if isinstance(data, dict) else {}
        if result.get("Warnings"):
            self._log.warning("nomad_register_warnings", job_id=job.id, warnings=result["Warnings"])
        return result
