import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Mapping, Optional

from sqlalchemy.orm.exc import StaleDataError

from src.registry.domain.contracts.runner import RunnerAdapter
from src.registry.domain.contracts.uow import UoW
from src.registry.domain.entities.ingestion_job import IngestionJob
from src.registry.domain.entities.metrics import Metrics
from src.registry.domain.enums import JobStatus
from src.registry.domain.errors import (
    ConcurrentUpdateError, NotFoundError, StateError, ValidationError,
)
from src.registry.domain.services.job_ids import new_job_id
from src.registry.services.lifecycle import JobLifecycleManager

logger = logging.getLogger(__name__)


class JobService:
    def __init__(self, uow: UoW, runners: Mapping[str, RunnerAdapter]):
        self.uow = uow
        self.runners = runners
        self.lifecycle = JobLifecycleManager(uow)

    def create_job(
        self,
        source_id: str,
        store_name: str,
        feature_set_ids: Iterable[str] = (),
        runner: Optional[str] = None,
        job_id: Optional[str] = None,
        default_runner: str = "DirectRunner",
    ) -> IngestionJob:
        runner = runner or default_runner
        if runner not in self.runners:
            raise ValidationError(f"Unknown runner type {runner!r}")

        try:
            source = self.uow.catalog.resolve_source(source_id)
            store = self.uow.catalog.resolve_store(store_name)
            feature_sets = [self.uow.catalog.resolve_feature_set(fs) for fs in feature_set_ids]
        except NotFoundError as e:
            raise ValidationError(str(e)) from e

        job = IngestionJob.create(
            id=job_id or new_job_id(source.id, store.name),
            runner=runner,
            source=source,
            store=store,
            feature_sets=feature_sets,
        )

        try:
            job = self.uow.jobs.add(job)
            self.uow.commit()
        except Exception:
            self.uow.rollback()
            raise

        logger.info("job %s created: %s -> %s via %s", job.id, source.id, store.name, runner)
        return job

    def get_job(self, job_id: str) -> IngestionJob:
        job = self.uow.jobs.get(job_id)
        if not job:
            raise NotFoundError(f"Job {job_id!r} not found")
        return job

    def list_jobs(
        self,
        statuses: Optional[Iterable[JobStatus]] = None,
        limit: int = 50,
    ) -> list[IngestionJob]:
        return self.uow.jobs.list_by_status(statuses, limit)

    def list_metrics(self, job_id: str) -> list[Metrics]:
        return self.get_job(job_id).metrics

    def request_abort(self, job_id: str) -> IngestionJob:
        """
        Abort – это запрос: job уходит в ABORTING, раннеру его доставит poller
        в процессе worker'а, он же подтвердит ABORTED.
        """
        return self.lifecycle.request_abort(job_id)

    def retire_job(self, job_id: str) -> None:
        job = self.get_job(job_id)
        if not job.is_terminal:
            raise StateError(f"Job {job_id!r} is {job.status}, only finished jobs can be deleted")
        try:
            self.uow.jobs.delete(job_id)
            self.uow.commit()
        except StaleDataError as e:
            self.uow.rollback()
            raise ConcurrentUpdateError(f"Job {job_id!r} was modified concurrently") from e
        except Exception:
            self.uow.rollback()
            raise
        logger.info("job %s retired", job_id)

    def purge_finished(self, retention: timedelta, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        ids = self.uow.jobs.list_finished_before(now - retention)

        purged = 0
        for job_id in ids:
            try:
                self.retire_job(job_id)
                purged += 1
            except Exception:
                logger.exception("job %s: purge failed", job_id)
        if purged:
            logger.info("purged %d finished jobs older than %s", purged, retention)
        return purged
