from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, ConfigDict

from src.registry.domain.entities.ingestion_job import IngestionJob


# Catalog
class SourceRequest(BaseModel):
    id: str
    source_type: str = Field(..., description="Тип источника, например KAFKA")
    config: dict[str, Any] = Field(default_factory=dict)


class SourceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    source_type: str
    config: dict[str, Any]
    created_at: Optional[datetime] = None


class StoreRequest(BaseModel):
    name: str
    store_type: str = Field(..., description="REDIS / BIGQUERY / CASSANDRA")
    config: dict[str, Any] = Field(default_factory=dict)


class StoreResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    store_type: str
    config: dict[str, Any]
    created_at: Optional[datetime] = None


class FeatureSetRequest(BaseModel):
    name: str
    version: int = Field(..., ge=1)


class FeatureSetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    version: int
    created_at: Optional[datetime] = None


# Jobs
class CreateJobRequest(BaseModel):
    source_id: str
    store_name: str
    feature_set_ids: list[str] = Field(default_factory=list)
    runner: Optional[str] = None
    job_id: Optional[str] = Field(None, description="Внутренний id; по умолчанию генерируется")


class MetricResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    value: float
    timestamp: datetime


class JobResponse(BaseModel):
    id: str
    ext_id: Optional[str] = None
    runner: str
    source_id: str
    sink_name: str
    feature_set_ids: list[str] = Field(default_factory=list)
    status: str
    metrics: list[MetricResponse] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    last_updated: Optional[datetime] = None
    finished_at: Optional[datetime] = None


# Маппер домен -> API DTO
def job_to_response(job: IngestionJob) -> JobResponse:
    return JobResponse(
        id=job.id,
        ext_id=job.ext_id,
        runner=job.runner,
        source_id=job.source.id,
        sink_name=job.sink_name(),
        feature_set_ids=job.feature_set_ids,
        status=str(job.status),
        metrics=[MetricResponse.model_validate(m) for m in job.metrics],
        created_at=job.created_at,
        last_updated=job.last_updated,
        finished_at=job.finished_at,
    )
