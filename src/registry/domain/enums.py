from enum import StrEnum

from src.registry.domain.errors import ValidationError

# Версия маппинга label <-> JobStatus. Новый статус = новая версия + миграция CHECK на jobs.status
STATUS_LABELS_VERSION = 1


class SourceType(StrEnum):
    KAFKA = "KAFKA"


class StoreType(StrEnum):
    REDIS = "REDIS"
    BIGQUERY = "BIGQUERY"
    CASSANDRA = "CASSANDRA"


class JobStatus(StrEnum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    ABORTING = "ABORTING"
    COMPLETED = "COMPLETED"
    ABORTED = "ABORTED"
    ERROR = "ERROR"
    UNKNOWN = "UNKNOWN"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @classmethod
    def from_label(cls, label: str) -> "JobStatus":
        try:
            return cls(label)
        except ValueError:
            raise ValidationError(
                f"Unknown job status label {label!r} (labels v{STATUS_LABELS_VERSION})"
            ) from None


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.ABORTED, JobStatus.ERROR})

STATUS_LABELS = tuple(s.value for s in JobStatus)


class RunnerState(StrEnum):
    """Состояние job'а со стороны раннера (то, что отдаёт poll_status)."""
    STARTING = "STARTING"
    RUNNING = "RUNNING"
    DONE = "DONE"
    CANCELLING = "CANCELLING"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, raw: str | None) -> "RunnerState":
        try:
            return cls(str(raw).upper())
        except ValueError:
            return cls.UNKNOWN
