import logging
from datetime import datetime, timezone
from typing import Callable, Mapping

from sqlalchemy.orm import Session

from src.registry.domain.contracts.runner import RunnerAdapter
from src.registry.domain.entities.metrics import Metrics
from src.registry.domain.enums import JobStatus, RunnerState
from src.registry.domain.errors import RunnerFatalError, RunnerUnavailableError, StateError
from src.registry.domain.services.status_machine import effective_status
from src.registry.infra.uow import SqlAlchemyUoW
from src.registry.services.lifecycle import JobLifecycleManager
from src.registry.services.runner_retry import call_runner

logger = logging.getLogger(__name__)

_STILL_RUNNING = (RunnerState.STARTING, RunnerState.RUNNING)


class JobPoller:
    """
    Фоновый опрос раннеров: обновляет статус и метрики всех активных job'ов.

    Каждый job обновляется в своей сессии; ошибка одного job'а логируется
    и не останавливает остальные. Ошибки раннера превращаются в статусы
    (UNKNOWN / ERROR), а не в исключения.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        runners: Mapping[str, RunnerAdapter],
        failure_threshold: int = 3,
        retry_attempts: int = 3,
        retry_backoff: float = 1.0,
    ):
        self.session_factory = session_factory
        self.runners = runners
        self.failure_threshold = failure_threshold
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff

    def poll_once(self) -> int:
        db = self.session_factory()
        try:
            job_ids = SqlAlchemyUoW(db).jobs.list_active_ids()
        finally:
            db.close()

        refreshed = 0
        for job_id in job_ids:
            try:
                self.refresh(job_id)
                refreshed += 1
            except Exception:
                logger.exception("job %s: refresh failed", job_id)
        return refreshed

    def refresh(self, job_id: str) -> None:
        db = self.session_factory()
        try:
            uow = SqlAlchemyUoW(db)
            self._refresh(uow, job_id)
        finally:
            db.close()

    def _call(self, fn, *args):
        return call_runner(fn, *args, attempts=self.retry_attempts, backoff=self.retry_backoff)

    def _refresh(self, uow: SqlAlchemyUoW, job_id: str) -> None:
        lifecycle = JobLifecycleManager(uow)

        job = uow.jobs.get(job_id)
        if not job or job.is_terminal or not job.ext_id:
            return

        runner = self.runners.get(job.runner)
        if runner is None:
            logger.error("job %s: runner %s is not configured, skipping", job.id, job.runner)
            return

        # I/O раннера – вне критической секции job'а
        try:
            state = self._call(runner.poll_status, job.ext_id)
            samples = self._call(runner.poll_metrics, job.ext_id)
        except RunnerUnavailableError as e:
            logger.warning("job %s: runner %s unavailable: %s", job.id, job.runner, e)
            self._apply(lifecycle.record_poll_failure, job.id, self.failure_threshold)
            return
        except RunnerFatalError as e:
            logger.error("job %s: runner %s reported fatal error: %s", job.id, job.runner, e)
            self._apply(lifecycle.fail, job.id)
            return

        # abort доставляет только poller: раннер живёт в процессе worker'а
        if effective_status(job.status, job.prior_status) is JobStatus.ABORTING and state in _STILL_RUNNING:
            try:
                self._call(runner.request_abort, job.ext_id)
                logger.info("job %s: abort delivered to runner %s", job.id, job.runner)
            except RunnerUnavailableError as e:
                logger.warning("job %s: abort request not delivered: %s", job.id, e)
            except RunnerFatalError as e:
                logger.error("job %s: runner %s rejected abort: %s", job.id, job.runner, e)
                self._apply(lifecycle.fail, job.id)
                return

        now = datetime.now(timezone.utc)
        metrics = [Metrics(job_id=job.id, name=s.name, value=s.value, timestamp=now) for s in samples]
        self._apply(lifecycle.apply_poll, job.id, state, metrics)

    def _apply(self, op, *args) -> None:
        try:
            op(*args)
        except StateError as e:
            # job стал терминальным параллельно (например, оператор отменил его)
            logger.info("job %s: poll result discarded: %s", args[0], e)
