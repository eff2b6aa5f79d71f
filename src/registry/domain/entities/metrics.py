from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Metrics:
    job_id: str
    name: str
    value: float
    timestamp: datetime
