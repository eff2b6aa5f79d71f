from functools import lru_cache
from typing import Awaitable, Callable, Generator, Mapping

from fastapi import Depends
from sqlalchemy.orm import Session

from src.registry.core.settings import settings
from src.registry.infra.db import SessionLocal
from src.registry.infra.mq import enqueue_job_submission
from src.registry.infra.runners import build_runners

from src.registry.infra.uow import SqlAlchemyUoW
from src.registry.domain.contracts.uow import UoW
from src.registry.domain.contracts.runner import RunnerAdapter

from src.registry.services.job_service import JobService
from src.registry.services.catalog_service import CatalogService


SubmissionPublisher = Callable[[str], Awaitable[None]]


def get_db() -> Generator[Session, None, None]:
    """
    Dependency для SQLAlchemy-сессии.
    Сессия создаётся на запрос и гарантированно закрывается.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_uow(db: Session = Depends(get_db)) -> UoW:
    """
    Dependency для Unit of Work.
    """
    return SqlAlchemyUoW(db)


@lru_cache
def _runners() -> Mapping[str, RunnerAdapter]:
    return build_runners(settings)


def get_runners() -> Mapping[str, RunnerAdapter]:
    return _runners()


def get_submission_publisher() -> SubmissionPublisher:
    return enqueue_job_submission


# Service factories (composition root)
def get_job_service(
    uow: UoW = Depends(get_uow),
    runners: Mapping[str, RunnerAdapter] = Depends(get_runners),
) -> JobService:
    return JobService(uow, runners)

def get_catalog_service(uow: UoW = Depends(get_uow)) -> CatalogService:
    return CatalogService(uow)
