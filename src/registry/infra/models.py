from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, DateTime, BigInteger, ForeignKey,
    Float, Integer, JSON,
    UniqueConstraint, Index, CheckConstraint, text as sa_text,
)
from sqlalchemy.sql import func
from sqlalchemy.dialects.postgresql import JSONB

from src.registry.domain.enums import STATUS_LABELS
from src.registry.infra.db import Base

JsonDoc = JSON().with_variant(JSONB(), "postgresql")
# sqlite автоинкрементит только INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SourceORM(Base):
    __tablename__ = "sources"

    id = Column(String(255), primary_key=True)
    source_type = Column(String(32), nullable=False)
    config = Column(JsonDoc, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_sources_type", "source_type"),
    )


class StoreORM(Base):
    __tablename__ = "stores"

    name = Column(String(255), primary_key=True)
    store_type = Column(String(32), nullable=False)
    config = Column(JsonDoc, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)


class FeatureSetORM(Base):
    __tablename__ = "feature_sets"

    id = Column(String(255), primary_key=True)
    name = Column(String(255), nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("name", "version", name="uq_feature_sets_name_version"),
    )


class JobORM(Base):
    """
    Запись реестра ingestion job'ов.
    version – счётчик для optimistic locking, растёт на каждом UPDATE.
    """
    __tablename__ = "jobs"

    id = Column(String(255), primary_key=True)
    ext_id = Column(String(255), nullable=True)
    runner = Column(String(64), nullable=False)

    # каталог переживает job'ы: удалить source/store, на который ссылаются, нельзя
    source_id = Column(
        String(255),
        ForeignKey("sources.id", ondelete="RESTRICT"),
        nullable=False,
    )
    store_name = Column(
        String(255),
        ForeignKey("stores.name", ondelete="RESTRICT"),
        nullable=False,
    )

    status = Column(String(16), nullable=False)
    prior_status = Column(String(16), nullable=True)
    poll_failures = Column(Integer, nullable=False, default=0, server_default=sa_text("0"))
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    last_updated = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    finished_at = Column(DateTime(timezone=True), nullable=True)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("runner", "ext_id", name="uq_jobs_runner_ext_id"),
        CheckConstraint(
            "status IN (%s)" % ", ".join(f"'{s}'" for s in STATUS_LABELS),
            name="status_label",
        ),
        Index("idx_jobs_status", "status"),
        Index("idx_jobs_status_finished", "status", "finished_at"),
    )


class JobFeatureSetORM(Base):
    __tablename__ = "jobs_feature_sets"

    job_id = Column(
        String(255),
        ForeignKey("jobs.id", ondelete="CASCADE"),
        primary_key=True,
    )
    feature_set_id = Column(
        String(255),
        ForeignKey("feature_sets.id", ondelete="RESTRICT"),
        primary_key=True,
    )

    __table_args__ = (
        Index("idx_jobs_feature_sets_feature_set", "feature_set_id"),
    )


class MetricsORM(Base):
    __tablename__ = "metrics"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    job_id = Column(
        String(255),
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
    )
    name = Column(String(255), nullable=False)
    value = Column(Float, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_metrics_job", "job_id"),
    )


class RetiredJobORM(Base):
    """Надгробия удалённых job'ов: внутренний id не переиспользуется никогда."""
    __tablename__ = "retired_jobs"

    id = Column(String(255), primary_key=True)
    retired_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
