import logging
from typing import Mapping

from src.registry.domain.contracts.runner import RunnerAdapter
from src.registry.domain.contracts.uow import UoW
from src.registry.domain.entities.ingestion_job import IngestionJob
from src.registry.domain.enums import JobStatus
from src.registry.domain.errors import (
    NotFoundError, RunnerError, RunnerUnavailableError, StateError,
)
from src.registry.domain.value_objects import JobSpec
from src.registry.services.lifecycle import JobLifecycleManager
from src.registry.services.runner_retry import call_runner

logger = logging.getLogger(__name__)


def build_job_spec(job: IngestionJob) -> JobSpec:
    return JobSpec(
        job_id=job.id,
        source_type=str(job.source.source_type),
        source_config=dict(job.source.config),
        store_name=job.sink_name(),
        store_type=str(job.store.store_type),
        store_config=dict(job.store.config),
        feature_set_ids=job.feature_set_ids,
    )


class SubmissionService:
    def __init__(
        self,
        uow: UoW,
        runners: Mapping[str, RunnerAdapter],
        retry_attempts: int = 3,
        retry_backoff: float = 1.0,
    ):
        self.uow = uow
        self.runners = runners
        self.lifecycle = JobLifecycleManager(uow)
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff

    def submit(self, job_id: str) -> IngestionJob:
        job = self.uow.jobs.get(job_id)
        if not job:
            raise NotFoundError(f"Job {job_id!r} not found")

        # повторная доставка сообщения: job уже у раннера или уже не ждёт сабмита
        if job.ext_id or job.status is not JobStatus.PENDING:
            logger.info("job %s: nothing to submit (status=%s, ext_id=%s)", job.id, job.status, job.ext_id)
            return job

        runner = self.runners.get(job.runner)
        if runner is None:
            logger.error("job %s: runner %s is not configured", job.id, job.runner)
            return self.lifecycle.fail(job.id)

        try:
            ext_id = call_runner(
                runner.submit,
                build_job_spec(job),
                attempts=self.retry_attempts,
                backoff=self.retry_backoff,
            )
        except RunnerError as e:
            kind = "unavailable" if isinstance(e, RunnerUnavailableError) else "rejected"
            logger.error("job %s: runner %s %s submission: %s", job.id, job.runner, kind, e)
            return self.lifecycle.fail(job.id)

        try:
            return self.lifecycle.attach_external_id(job.id, ext_id)
        except StateError:
            # job успели отменить, пока шёл сабмит – гасим осиротевший job у раннера
            logger.warning("job %s: aborted during submission, cancelling runner job %s", job.id, ext_id)
            try:
                runner.request_abort(ext_id)
            except RunnerError as e:
                logger.error("job %s: failed to cancel orphaned runner job %s: %s", job.id, ext_id, e)
            raise
