import re
import uuid
from datetime import datetime, timezone
from typing import Optional

_UNSAFE = re.compile(r"[^a-z0-9]+")


def _slug(s: str) -> str:
    return _UNSAFE.sub("-", s.lower()).strip("-")


def new_job_id(source_id: str, store_name: str, now: Optional[datetime] = None) -> str:
    """
    <source>-to-<store>-<utc timestamp>-<suffix>.
    Суффикс нужен, чтобы два сабмита в одну секунду не столкнулись.
    """
    now = now or datetime.now(timezone.utc)
    ts = now.astimezone(timezone.utc).strftime("%Y%m%d%H%M%S")
    prefix = f"{_slug(source_id)}-to-{_slug(store_name)}"[:200]
    return f"{prefix}-{ts}-{uuid.uuid4().hex[:8]}"
