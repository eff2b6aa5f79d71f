from __future__ import annotations

from typing import Iterable, Optional
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from src.registry.infra.models import (
    SourceORM, StoreORM, FeatureSetORM,
    JobORM, JobFeatureSetORM, MetricsORM, RetiredJobORM,
)

from src.registry.domain.enums import JobStatus, SourceType, StoreType, TERMINAL_STATUSES
from src.registry.domain.errors import NotFoundError, ValidationError
from src.registry.domain.entities.source import Source
from src.registry.domain.entities.store import Store
from src.registry.domain.entities.feature_set import FeatureSet
from src.registry.domain.entities.metrics import Metrics
from src.registry.domain.entities.ingestion_job import IngestionJob


# mappers ORM -> Domain
def _source_dom(s: SourceORM) -> Source:
    return Source(
        id=str(s.id),
        source_type=SourceType(str(s.source_type)),
        config=s.config or {},
        created_at=s.created_at,
    )


def _store_dom(s: StoreORM) -> Store:
    return Store(
        name=str(s.name),
        store_type=StoreType(str(s.store_type)),
        config=s.config or {},
        created_at=s.created_at,
    )


def _feature_set_dom(f: FeatureSetORM) -> FeatureSet:
    return FeatureSet(
        id=str(f.id),
        name=str(f.name),
        version=int(f.version),
        created_at=f.created_at,
    )


def _metrics_dom(m: MetricsORM) -> Metrics:
    return Metrics(
        job_id=str(m.job_id),
        name=str(m.name),
        value=float(m.value),
        timestamp=m.timestamp,
    )


def _status_or_none(label: Optional[str]) -> Optional[JobStatus]:
    return JobStatus.from_label(label) if label else None


# repos
class SqlCatalogRepo:
    """
    Каталог source/store/feature set. Владелец данных – каталог,
    реестр job'ов только резолвит ссылки.
    """

    def __init__(self, db: Session):
        self.db = db

    def resolve_source(self, source_id: str) -> Source:
        s = self.db.query(SourceORM).filter(SourceORM.id == source_id).first()
        if not s:
            raise NotFoundError(f"Source {source_id!r} not found")
        return _source_dom(s)

    def resolve_store(self, name: str) -> Store:
        s = self.db.query(StoreORM).filter(StoreORM.name == name).first()
        if not s:
            raise NotFoundError(f"Store {name!r} not found")
        return _store_dom(s)

    def resolve_feature_set(self, feature_set_id: str) -> FeatureSet:
        f = self.db.query(FeatureSetORM).filter(FeatureSetORM.id == feature_set_id).first()
        if not f:
            raise NotFoundError(f"Feature set {feature_set_id!r} not found")
        return _feature_set_dom(f)

    def add_source(self, source: Source) -> Source:
        row = self.db.query(SourceORM).filter(SourceORM.id == source.id).first()
        if row:
            row.source_type = source.source_type.value
            row.config = dict(source.config)
        else:
            row = SourceORM(
                id=source.id,
                source_type=source.source_type.value,
                config=dict(source.config),
            )
            self.db.add(row)
        self.db.flush()
        return _source_dom(row)

    def add_store(self, store: Store) -> Store:
        row = self.db.query(StoreORM).filter(StoreORM.name == store.name).first()
        if row:
            row.store_type = store.store_type.value
            row.config = dict(store.config)
        else:
            row = StoreORM(
                name=store.name,
                store_type=store.store_type.value,
                config=dict(store.config),
            )
            self.db.add(row)
        self.db.flush()
        return _store_dom(row)

    def add_feature_set(self, feature_set: FeatureSet) -> FeatureSet:
        row = self.db.query(FeatureSetORM).filter(FeatureSetORM.id == feature_set.id).first()
        if not row:
            row = FeatureSetORM(
                id=feature_set.id,
                name=feature_set.name,
                version=feature_set.version,
            )
            self.db.add(row)
            self.db.flush()
        return _feature_set_dom(row)

    def list_sources(self) -> list[Source]:
        return [_source_dom(s) for s in self.db.query(SourceORM).order_by(SourceORM.id).all()]

    def list_stores(self) -> list[Store]:
        return [_store_dom(s) for s in self.db.query(StoreORM).order_by(StoreORM.name).all()]

    def list_feature_sets(self) -> list[FeatureSet]:
        rows = (
            self.db.query(FeatureSetORM)
            .order_by(FeatureSetORM.name, FeatureSetORM.version)
            .all()
        )
        return [_feature_set_dom(f) for f in rows]


class SqlJobRepo:
    def __init__(self, db: Session):
        self.db = db

    def _job_dom(self, j: JobORM) -> IngestionJob:
        source = self.db.query(SourceORM).filter(SourceORM.id == j.source_id).first()
        store = self.db.query(StoreORM).filter(StoreORM.name == j.store_name).first()
        feature_sets = (
            self.db.query(FeatureSetORM)
            .join(JobFeatureSetORM, JobFeatureSetORM.feature_set_id == FeatureSetORM.id)
            .filter(JobFeatureSetORM.job_id == j.id)
            .order_by(FeatureSetORM.id)
            .all()
        )
        return IngestionJob(
            id=str(j.id),
            runner=str(j.runner),
            source=_source_dom(source) if source else None,
            store=_store_dom(store) if store else None,
            feature_sets=[_feature_set_dom(f) for f in feature_sets],
            status=JobStatus.from_label(str(j.status)),
            ext_id=j.ext_id,
            metrics=self.list_metrics(str(j.id)),
            prior_status=_status_or_none(j.prior_status),
            poll_failures=int(j.poll_failures or 0),
            created_at=j.created_at,
            last_updated=j.last_updated,
            finished_at=j.finished_at,
        )

    def exists(self, job_id: str) -> bool:
        """Учитывает и удалённые job'ы (retired_jobs)."""
        if self.db.query(JobORM.id).filter(JobORM.id == job_id).first():
            return True
        return self.db.query(RetiredJobORM.id).filter(RetiredJobORM.id == job_id).first() is not None

    def add(self, job: IngestionJob) -> IngestionJob:
        if self.exists(job.id):
            raise ValidationError(f"Job id {job.id!r} is already taken")

        now = datetime.now(timezone.utc)
        row = JobORM(
            id=job.id,
            ext_id=job.ext_id,
            runner=job.runner,
            source_id=job.source.id,
            store_name=job.sink_name(),
            status=job.status.value,
            poll_failures=job.poll_failures,
            created_at=now,
            last_updated=now,
        )
        self.db.add(row)
        self.db.flush()

        for fs in job.feature_sets:
            self.db.add(JobFeatureSetORM(job_id=job.id, feature_set_id=fs.id))
        self.db.flush()

        return self._job_dom(row)

    def get(self, job_id: str) -> Optional[IngestionJob]:
        j = self.db.query(JobORM).filter(JobORM.id == job_id).first()
        return self._job_dom(j) if j else None

    def get_for_update(self, job_id: str) -> Optional[IngestionJob]:
        """
        Блокирует строку job'а до конца транзакции (SELECT ... FOR UPDATE).
        Версия строки запоминается в сессии – save() проверит её при UPDATE.
        """
        j = (
            self.db.query(JobORM)
            .filter(JobORM.id == job_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        return self._job_dom(j) if j else None

    def save(self, job: IngestionJob) -> None:
        j = self.db.get(JobORM, job.id)
        if not j:
            raise NotFoundError(f"Job {job.id!r} not found")

        j.ext_id = job.ext_id
        j.status = job.status.value
        j.prior_status = job.prior_status.value if job.prior_status else None
        j.poll_failures = job.poll_failures
        j.finished_at = job.finished_at
        j.last_updated = datetime.now(timezone.utc)

        self.db.flush()
        job.last_updated = j.last_updated

    def store_metrics(self, job: IngestionJob) -> None:
        """Полная замена: старые метрики удаляются, новые вставляются."""
        self.db.query(MetricsORM).filter(MetricsORM.job_id == job.id).delete(
            synchronize_session=False
        )
        for m in job.metrics:
            self.db.add(
                MetricsORM(
                    job_id=job.id,
                    name=m.name,
                    value=float(m.value),
                    timestamp=m.timestamp,
                )
            )
        self.db.flush()

    def list_metrics(self, job_id: str) -> list[Metrics]:
        rows = (
            self.db.query(MetricsORM)
            .filter(MetricsORM.job_id == job_id)
            .order_by(MetricsORM.name, MetricsORM.id)
            .all()
        )
        return [_metrics_dom(m) for m in rows]

    def list_by_status(
        self,
        statuses: Optional[Iterable[JobStatus]] = None,
        limit: int = 50,
    ) -> list[IngestionJob]:
        q = self.db.query(JobORM)
        if statuses:
            q = q.filter(JobORM.status.in_([s.value for s in statuses]))
        rows = q.order_by(JobORM.created_at.desc(), JobORM.id).limit(limit).all()
        return [self._job_dom(j) for j in rows]

    def list_active_ids(self) -> list[str]:
        """Не терминальные job'ы, уже принятые раннером – их опрашивает poller."""
        rows = (
            self.db.query(JobORM.id)
            .filter(
                JobORM.status.notin_([s.value for s in TERMINAL_STATUSES]),
                JobORM.ext_id.isnot(None),
            )
            .order_by(JobORM.created_at)
            .all()
        )
        return [str(r[0]) for r in rows]

    def list_finished_before(self, cutoff: datetime) -> list[str]:
        rows = (
            self.db.query(JobORM.id)
            .filter(
                JobORM.status.in_([s.value for s in TERMINAL_STATUSES]),
                JobORM.finished_at.isnot(None),
                JobORM.finished_at < cutoff,
            )
            .all()
        )
        return [str(r[0]) for r in rows]

    def delete(self, job_id: str) -> None:
        """Удаляет job вместе с метриками и связями, id уходит в retired_jobs."""
        j = self.db.get(JobORM, job_id)
        if not j:
            raise NotFoundError(f"Job {job_id!r} not found")

        self.db.query(MetricsORM).filter(MetricsORM.job_id == job_id).delete(
            synchronize_session=False
        )
        self.db.query(JobFeatureSetORM).filter(JobFeatureSetORM.job_id == job_id).delete(
            synchronize_session=False
        )
        self.db.delete(j)
        self.db.add(RetiredJobORM(id=job_id))
        self.db.flush()
