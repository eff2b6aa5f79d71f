from dataclasses import dataclass, field
from typing import Any, List


@dataclass(frozen=True)
class MetricSample:
    name: str
    value: float

    def __post_init__(self):
        if not self.name:
            raise ValueError("Metric name must not be empty")


@dataclass(frozen=True)
class JobSpec:
    """То, что уходит раннеру при сабмите."""
    job_id: str
    source_type: str
    source_config: dict[str, Any]
    store_name: str
    store_type: str
    store_config: dict[str, Any]
    feature_set_ids: List[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "source": {"type": self.source_type, "config": dict(self.source_config)},
            "store": {
                "name": self.store_name,
                "type": self.store_type,
                "config": dict(self.store_config),
            },
            "feature_sets": list(self.feature_set_ids),
        }
