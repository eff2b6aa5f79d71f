from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from src.registry.domain.entities.feature_set import FeatureSet
from src.registry.domain.entities.metrics import Metrics
from src.registry.domain.entities.source import Source
from src.registry.domain.entities.store import Store
from src.registry.domain.enums import JobStatus
from src.registry.domain.errors import NotFoundError, StateError, ValidationError
from src.registry.domain.services.status_machine import check_transition


@dataclass
class IngestionJob:
    """
    Запись реестра ingestion job'а.

    id – внутренний идентификатор (генерируется при создании, не переиспользуется).
    ext_id – идентификатор, выданный раннером; пишется один раз.
    Метрики принадлежат job'у и заменяются целиком, source/store/feature_sets – ссылки в каталог.
    Все мутации идут через JobLifecycleManager.
    """
    id: str
    runner: str
    source: Source
    store: Store
    feature_sets: List[FeatureSet] = field(default_factory=list)
    status: JobStatus = JobStatus.PENDING
    ext_id: Optional[str] = None
    metrics: List[Metrics] = field(default_factory=list)
    prior_status: Optional[JobStatus] = None
    poll_failures: int = 0
    created_at: Optional[datetime] = None
    last_updated: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        id: str,
        runner: str,
        source: Optional[Source],
        store: Optional[Store],
        feature_sets: Iterable[FeatureSet] = (),
        status: JobStatus = JobStatus.PENDING,
    ) -> "IngestionJob":
        if not id:
            raise ValidationError("Job id must not be empty")
        if not runner:
            raise ValidationError("Runner type must not be empty")
        if source is None:
            raise ValidationError("Job source is required")
        if store is None:
            raise ValidationError("Job store is required")
        if status is not JobStatus.PENDING:
            raise ValidationError(f"Job must be created as {JobStatus.PENDING}, got {status}")

        unique: dict[str, FeatureSet] = {}
        for fs in feature_sets:
            unique.setdefault(fs.id, fs)

        return cls(
            id=id,
            runner=runner,
            source=source,
            store=store,
            feature_sets=list(unique.values()),
        )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def feature_set_ids(self) -> list[str]:
        return [fs.id for fs in self.feature_sets]

    def sink_name(self) -> str:
        if self.store is None:
            raise NotFoundError(f"Job {self.id} has no resolved store")
        return self.store.name

    def attach_external_id(self, ext_id: str) -> bool:
        """True – id записан, False – тот же id уже был записан."""
        if not ext_id:
            raise ValidationError("External id must not be empty")
        if self.is_terminal:
            raise StateError(f"Job {self.id} is {self.status}, external id is frozen")
        if self.ext_id == ext_id:
            return False
        if self.ext_id is not None:
            raise StateError(
                f"Job {self.id} already has external id {self.ext_id!r}, refusing {ext_id!r}"
            )
        self.ext_id = ext_id
        return True

    def transition_to(self, target: JobStatus, now: Optional[datetime] = None) -> bool:
        if target is self.status and not self.is_terminal:
            return False

        check_transition(self.status, target, self.prior_status)

        if target is JobStatus.RUNNING and self.ext_id is None:
            raise StateError(f"Job {self.id} cannot run without an external id")

        if target is JobStatus.UNKNOWN:
            self.prior_status = self.status
        else:
            self.prior_status = None

        self.status = target
        if target.is_terminal:
            self.finished_at = now or datetime.now(timezone.utc)
        return True

    def request_abort(self, now: Optional[datetime] = None) -> bool:
        if self.is_terminal:
            raise StateError(f"Job {self.id} is already {self.status}")
        # не дошедший до раннера job останавливать негде
        target = JobStatus.ABORTING if self.ext_id else JobStatus.ABORTED
        return self.transition_to(target, now)

    def register_poll_failure(self, threshold: int, now: Optional[datetime] = None) -> JobStatus:
        if self.is_terminal:
            raise StateError(f"Job {self.id} is already {self.status}")
        self.poll_failures += 1
        if self.poll_failures >= threshold:
            self.transition_to(JobStatus.ERROR, now)
        else:
            self.transition_to(JobStatus.UNKNOWN, now)
        return self.status

    def replace_metrics(self, metrics: Iterable[Metrics]) -> None:
        if self.is_terminal:
            raise StateError(f"Job {self.id} is {self.status}, metrics are frozen")
        self.metrics = [replace(m, job_id=self.id) for m in metrics]
