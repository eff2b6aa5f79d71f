from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class FeatureSet:
    id: str
    name: str
    version: int
    created_at: Optional[datetime] = None

    @staticmethod
    def make_id(name: str, version: int) -> str:
        return f"{name}:{version}"
