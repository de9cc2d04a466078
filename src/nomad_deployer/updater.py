"""Image updater: rolls Nomad service jobs onto a freshly built image.

Lifecycle of one notification:
1. List every job from the cluster leader (non-stale read)
2. Keep service jobs only
3. Read each full job definition
4. Rewrite the tag of every task whose image starts with the docker URL
5. Plan the changed job, then register it

Failures reading, planning or registering one job never stop the others.
A failed listing drops the whole notification; nothing is retried.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from nomad_deployer.logging import get_logger
from nomad_deployer.nomad import NomadError

if TYPE_CHECKING:
    import structlog

    from nomad_deployer.jobs import Job
    from nomad_deployer.models import BuildNotification
    from nomad_deployer.nomad import NomadClient


@dataclass
class UpdateCycleResult:
    """Outcome of processing one build notification."""

    status: str  # success | partial | failed | skipped
    docker_url: str = ""
    tag: str | None = None
    jobs_scanned: int = 0
    updated_jobs: list[str] = field(default_factory=list)
    failed_jobs: dict[str, str] = field(default_factory=dict)
    error: str | None = None
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "docker_url": self.docker_url,
            "tag": self.tag,
            "jobs_scanned": self.jobs_scanned,
            "updated_jobs": self.updated_jobs,
            "failed_jobs": self.failed_jobs,
            "error": self.error,
            "duration_seconds": self.duration_seconds,
        }


def rewrite_images(
    job: Job,
    notification: BuildNotification,
    log: structlog.stdlib.BoundLogger | None = None,
) -> list[str]:
    """Point matching tasks of ``job`` at the notification's image.

    Returns the names of the rewritten tasks; an empty list means the job
    was left untouched. Tasks whose image is not a string are skipped.
    """
    target = notification.target_image
    if target is None:
        return []

    rewritten: list[str] = []
    for group, task in job.tasks():
        if task.has_malformed_image:
            if log:
                log.warning(
                    "task_image_malformed",
                    job_id=job.id,
                    task_group=group.name,
                    task=task.name,
                )
            continue
        image = task.image
        if image is None or not image.startswith(notification.docker_url):
            continue
        task.set_image(target)
        rewritten.append(task.name)
    return rewritten


class ImageUpdater:
    """Scans Nomad service jobs and re-submits the ones using a rebuilt image."""

    def __init__(
        self,
        client: NomadClient,
        *,
        enforce_index: bool = False,
        log: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._client = client
        self._enforce_index = enforce_index
        self._log = log or get_logger("nomad_deployer.updater")

    async def process(self, notification: BuildNotification) -> UpdateCycleResult:
        """Run one full scan/patch/submit cycle for a notification."""
        start = time.monotonic()
        result = UpdateCycleResult(
            status="failed",
            docker_url=notification.docker_url,
            tag=notification.deploy_tag,
        )
        log = self._log.bind(
            docker_url=notification.docker_url,
            tag=notification.deploy_tag,
            build_id=notification.build_id,
        )

        try:
            if notification.target_image is None:
                # An empty docker URL would prefix-match every image
                result.status = "skipped"
                result.error = "notification has no docker_url or no tags"
                log.warning("notification_ignored", reason=result.error)
                return result

            log.info(
                "processing_build_notification",
                repository=notification.repository,
                commit=notification.trigger_metadata.commit,
                author=notification.trigger_metadata.commit_info.author.username,
            )

            try:
                stubs = await self._client.list_jobs(stale=False)
            except NomadError as exc:
                result.error = str(exc)
                log.error("job_list_failed", error=str(exc))
                return result

            for stub in stubs:
                if not stub.is_service:
                    continue
                result.jobs_scanned += 1
                await self._update_job(stub.id, stub.namespace, notification, result, log)

            if result.failed_jobs:
                result.status = "partial" if result.updated_jobs else "failed"
            else:
                result.status = "success"
            log.info(
                "build_notification_processed",
                status=result.status,
                jobs_scanned=result.jobs_scanned,
                updated=len(result.updated_jobs),
                failed=len(result.failed_jobs),
            )
            return result
        finally:
            result.duration_seconds = round(time.monotonic() - start, 3)

    async def _update_job(
        self,
        job_id: str,
        namespace: str | None,
        notification: BuildNotification,
        result: UpdateCycleResult,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        log = log.bind(job_id=job_id)
        try:
            job = await self._client.get_job(job_id, namespace)
        except NomadError as exc:
            result.failed_jobs[job_id] = str(exc)
            log.error("job_read_failed", error=str(exc))
            return

        rewritten = rewrite_images(job, notification, log)
        if not rewritten:
            return
        log.info("scheduling_update", tasks=rewritten, image=notification.target_image)

        try:
            await self._client.plan_job(job)
        except NomadError as exc:
            result.failed_jobs[job_id] = str(exc)
            log.error("job_plan_failed", error=str(exc))
            return

        try:
            response = await self._client.register_job(job, enforce_index=self._enforce_index)
        except NomadError as exc:
            result.failed_jobs[job_id] = str(exc)
            log.error("job_register_failed", error=str(exc))
            return

        result.updated_jobs.append(job_id)
        log.info("image_updated", eval_id=response.get("EvalID"))
