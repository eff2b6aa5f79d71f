import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Sequence

from sqlalchemy.orm.exc import StaleDataError

from src.registry.domain.contracts.uow import UoW
from src.registry.domain.entities.ingestion_job import IngestionJob
from src.registry.domain.entities.metrics import Metrics
from src.registry.domain.enums import JobStatus, RunnerState
from src.registry.domain.errors import ConcurrentUpdateError, NotFoundError
from src.registry.domain.services.status_machine import plan_transitions

logger = logging.getLogger(__name__)


class JobLifecycleManager:
    """
    Единственная точка, через которую меняются status / ext_id / metrics job'а.

    Каждая операция – locked read-modify-write одной строки jobs:
    SELECT ... FOR UPDATE, мутация доменной сущности, UPDATE с проверкой version, commit.
    Проигравший гонку писатель получает ConcurrentUpdateError, изменения откатываются.
    """

    def __init__(self, uow: UoW):
        self.uow = uow

    @contextmanager
    def _locked(self, job_id: str) -> Iterator[IngestionJob]:
        try:
            job = self.uow.jobs.get_for_update(job_id)
            if not job:
                raise NotFoundError(f"Job {job_id!r} not found")

            yield job

            self.uow.jobs.save(job)
            self.uow.commit()
        except StaleDataError as e:
            self.uow.rollback()
            raise ConcurrentUpdateError(f"Job {job_id!r} was modified concurrently") from e
        except Exception:
            self.uow.rollback()
            raise

    def _log_transition(self, job: IngestionJob, previous: JobStatus) -> None:
        if job.status is not previous:
            logger.info("job %s: %s -> %s", job.id, previous, job.status)

    def attach_external_id(self, job_id: str, ext_id: str) -> IngestionJob:
        with self._locked(job_id) as job:
            if job.attach_external_id(ext_id):
                logger.info("job %s: attached external id %s (%s)", job.id, ext_id, job.runner)
        return job

    def transition(self, job_id: str, status: JobStatus) -> IngestionJob:
        with self._locked(job_id) as job:
            previous = job.status
            job.transition_to(status)
            self._log_transition(job, previous)
        return job

    def request_abort(self, job_id: str) -> IngestionJob:
        with self._locked(job_id) as job:
            previous = job.status
            job.request_abort()
            self._log_transition(job, previous)
        return job

    def fail(self, job_id: str) -> IngestionJob:
        return self.transition(job_id, JobStatus.ERROR)

    def replace_metrics(self, job_id: str, metrics: Sequence[Metrics]) -> IngestionJob:
        with self._locked(job_id) as job:
            job.replace_metrics(metrics)
            self.uow.jobs.store_metrics(job)
        return job

    def apply_poll(
        self,
        job_id: str,
        runner_state: RunnerState,
        metrics: Sequence[Metrics],
    ) -> IngestionJob:
        """Успешный опрос раннера: метрики и статус меняются в одной критической секции."""
        now = datetime.now(timezone.utc)
        with self._locked(job_id) as job:
            previous = job.status
            job.poll_failures = 0
            # метрики пишем до перехода: после терминального статуса они заморожены
            job.replace_metrics(metrics)
            self.uow.jobs.store_metrics(job)
            for step in plan_transitions(job.status, job.prior_status, runner_state):
                job.transition_to(step, now)
            self._log_transition(job, previous)
        return job

    def record_poll_failure(self, job_id: str, threshold: int) -> IngestionJob:
        with self._locked(job_id) as job:
            previous = job.status
            job.register_poll_failure(threshold)
            if job.status is JobStatus.ERROR:
                logger.error(
                    "job %s: runner unreachable %d times in a row, marking %s",
                    job.id, job.poll_failures, job.status,
                )
            self._log_transition(job, previous)
        return job
