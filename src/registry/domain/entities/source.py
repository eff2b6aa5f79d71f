from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from src.registry.domain.enums import SourceType


@dataclass
class Source:
    id: str
    source_type: SourceType
    config: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
