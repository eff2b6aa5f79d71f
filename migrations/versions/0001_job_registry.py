"""job registry: catalog, jobs, metrics, retired ids

Revision ID: 0001_job_registry
Revises:
Create Date: 2026-10-19 12:00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "0001_job_registry"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# метки статусов v1; новый статус – новая ревизия с пересозданием ck_jobs_status_label
STATUS_LABELS_V1 = ("PENDING", "RUNNING", "ABORTING", "COMPLETED", "ABORTED", "ERROR", "UNKNOWN")

JsonDoc = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
BigIntPK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "sources",
        sa.Column("id", sa.String(255), nullable=False),
        sa.Column("source_type", sa.String(32), nullable=False),
        sa.Column("config", JsonDoc, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_sources"),
    )
    op.create_index("idx_sources_type", "sources", ["source_type"])

    op.create_table(
        "stores",
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("store_type", sa.String(32), nullable=False),
        sa.Column("config", JsonDoc, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("name", name="pk_stores"),
    )

    op.create_table(
        "feature_sets",
        sa.Column("id", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_feature_sets"),
        sa.UniqueConstraint("name", "version", name="uq_feature_sets_name_version"),
    )

    op.create_table(
        "jobs",
        sa.Column("id", sa.String(255), nullable=False),
        sa.Column("ext_id", sa.String(255), nullable=True),
        sa.Column("runner", sa.String(64), nullable=False),
        sa.Column("source_id", sa.String(255), nullable=False),
        sa.Column("store_name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("prior_status", sa.String(16), nullable=True),
        sa.Column("poll_failures", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_jobs"),
        sa.ForeignKeyConstraint(
            ["source_id"], ["sources.id"],
            name="fk_jobs_source_id_sources", ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["store_name"], ["stores.name"],
            name="fk_jobs_store_name_stores", ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("runner", "ext_id", name="uq_jobs_runner_ext_id"),
        sa.CheckConstraint(
            "status IN (%s)" % ", ".join(f"'{s}'" for s in STATUS_LABELS_V1),
            name="ck_jobs_status_label",
        ),
    )
    op.create_index("idx_jobs_status", "jobs", ["status"])
    op.create_index("idx_jobs_status_finished", "jobs", ["status", "finished_at"])

    op.create_table(
        "jobs_feature_sets",
        sa.Column("job_id", sa.String(255), nullable=False),
        sa.Column("feature_set_id", sa.String(255), nullable=False),
        sa.PrimaryKeyConstraint("job_id", "feature_set_id", name="pk_jobs_feature_sets"),
        sa.ForeignKeyConstraint(
            ["job_id"], ["jobs.id"],
            name="fk_jobs_feature_sets_job_id_jobs", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["feature_set_id"], ["feature_sets.id"],
            name="fk_jobs_feature_sets_feature_set_id_feature_sets", ondelete="RESTRICT",
        ),
    )
    op.create_index("idx_jobs_feature_sets_feature_set", "jobs_feature_sets", ["feature_set_id"])

    op.create_table(
        "metrics",
        sa.Column("id", BigIntPK, autoincrement=True, nullable=False),
        sa.Column("job_id", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_metrics"),
        sa.ForeignKeyConstraint(
            ["job_id"], ["jobs.id"],
            name="fk_metrics_job_id_jobs", ondelete="CASCADE",
        ),
    )
    op.create_index("idx_metrics_job", "metrics", ["job_id"])

    op.create_table(
        "retired_jobs",
        sa.Column("id", sa.String(255), nullable=False),
        sa.Column("retired_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_retired_jobs"),
    )


def downgrade() -> None:
    op.drop_table("retired_jobs")
    op.drop_index("idx_metrics_job", table_name="metrics")
    op.drop_table("metrics")
    op.drop_index("idx_jobs_feature_sets_feature_set", table_name="jobs_feature_sets")
    op.drop_table("jobs_feature_sets")
    op.drop_index("idx_jobs_status_finished", table_name="jobs")
    op.drop_index("idx_jobs_status", table_name="jobs")
    op.drop_table("jobs")
    op.drop_table("feature_sets")
    op.drop_table("stores")
    op.drop_index("idx_sources_type", table_name="sources")
    op.drop_table("sources")
