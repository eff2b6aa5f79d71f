from datetime import datetime
from typing import Iterable, Optional, Protocol

from src.registry.domain.entities.feature_set import FeatureSet
from src.registry.domain.entities.ingestion_job import IngestionJob
from src.registry.domain.entities.metrics import Metrics
from src.registry.domain.entities.source import Source
from src.registry.domain.entities.store import Store
from src.registry.domain.enums import JobStatus


class CatalogRepo(Protocol):
    def resolve_source(self, source_id: str) -> Source: ...
    def resolve_store(self, name: str) -> Store: ...
    def resolve_feature_set(self, feature_set_id: str) -> FeatureSet: ...

    def add_source(self, source: Source) -> Source: ...
    def add_store(self, store: Store) -> Store: ...
    def add_feature_set(self, feature_set: FeatureSet) -> FeatureSet: ...

    def list_sources(self) -> list[Source]: ...
    def list_stores(self) -> list[Store]: ...
    def list_feature_sets(self) -> list[FeatureSet]: ...


class JobRepo(Protocol):
    def exists(self, job_id: str) -> bool: ...
    def add(self, job: IngestionJob) -> IngestionJob: ...
    def get(self, job_id: str) -> Optional[IngestionJob]: ...
    def get_for_update(self, job_id: str) -> Optional[IngestionJob]: ...
    def save(self, job: IngestionJob) -> None: ...
    def store_metrics(self, job: IngestionJob) -> None: ...
    def list_metrics(self, job_id: str) -> list[Metrics]: ...
    def list_by_status(
        self, statuses: Optional[Iterable[JobStatus]] = None, limit: int = 50
    ) -> list[IngestionJob]: ...
    def list_active_ids(self) -> list[str]: ...
    def list_finished_before(self, cutoff: datetime) -> list[str]: ...
    def delete(self, job_id: str) -> None: ...
