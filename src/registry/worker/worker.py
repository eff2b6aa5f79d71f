import json
import logging
import asyncio
from datetime import timedelta
from typing import Optional

from faststream import FastStream

from src.registry.core.settings import settings
from src.registry.domain.errors import NotFoundError, StateError
from src.registry.infra.db import SessionLocal
from src.registry.infra.mq import broker
from src.registry.infra.runners import build_runners
from src.registry.infra.uow import SqlAlchemyUoW
from src.registry.services.job_service import JobService
from src.registry.services.poller import JobPoller
from src.registry.services.submission_service import SubmissionService

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastStream(broker)
runners = build_runners(settings)

poller = JobPoller(
    SessionLocal,
    runners,
    failure_threshold=settings.POLL_FAILURE_THRESHOLD,
    retry_attempts=settings.RUNNER_RETRY_ATTEMPTS,
    retry_backoff=settings.RUNNER_RETRY_BACKOFF_SECONDS,
)

_loop_task: Optional[asyncio.Task] = None


def submit_job(job_id: str) -> None:
    db = SessionLocal()
    try:
        svc = SubmissionService(
            SqlAlchemyUoW(db),
            runners,
            retry_attempts=settings.RUNNER_RETRY_ATTEMPTS,
            retry_backoff=settings.RUNNER_RETRY_BACKOFF_SECONDS,
        )
        job = svc.submit(job_id)
        logger.info("ingestion job %s submitted: status=%s ext_id=%s", job.id, job.status, job.ext_id)
    finally:
        db.close()


def purge_finished() -> int:
    db = SessionLocal()
    try:
        svc = JobService(SqlAlchemyUoW(db), runners)
        return svc.purge_finished(timedelta(days=settings.JOB_RETENTION_DAYS))
    finally:
        db.close()


@broker.subscriber(settings.QUEUE_NAME)
async def handle(body: str) -> None:
    payload = json.loads(body)
    job_id = str(payload["job_id"])

    try:
        await asyncio.to_thread(submit_job, job_id)
    except (NotFoundError, StateError) as exc:
        logger.warning("ingestion job %s not submitted: %s", job_id, exc)
    except Exception as exc:
        logger.exception("ingestion job %s submission FAILED: %s", job_id, exc)


async def poll_forever() -> None:
    while True:
        try:
            refreshed = await asyncio.to_thread(poller.poll_once)
            logger.debug("poll round done, %d jobs refreshed", refreshed)
            await asyncio.to_thread(purge_finished)
        except Exception:
            logger.exception("poll round failed")
        await asyncio.sleep(settings.POLL_INTERVAL_SECONDS)


@app.after_startup
async def start_polling() -> None:
    global _loop_task
    _loop_task = asyncio.create_task(poll_forever())


@app.on_shutdown
async def stop_polling() -> None:
    if _loop_task is not None:
        _loop_task.cancel()


if __name__ == "__main__":
    asyncio.run(app.run())
