from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from src.registry.domain.enums import StoreType


@dataclass
class Store:
    """Sink, в который пишет ingestion job. Ключ – имя."""
    name: str
    store_type: StoreType
    config: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
