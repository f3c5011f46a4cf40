"""
Pricing update report models
"""
from pydantic import BaseModel
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime, timezone


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SourceUpdate(BaseModel):
    """Outcome of refreshing one pricing source"""
    source: str
    last_update: str
    items_updated: int = 0
    status: Literal["success", "failed", "no_change"]
    message: Optional[str] = None
    details: List[Dict[str, Any]] = []

    @classmethod
    def failed(cls, source: str, message: str) -> "SourceUpdate":
        return cls(source=source, last_update=utc_now(), status="failed", message=message)


class UpdateResult(BaseModel):
    """One full update cycle across every source"""
    timestamp: str
    updates: List[SourceUpdate]
    next_update_in: str

    def items_updated(self) -> int:
        return sum(u.items_updated for u in self.updates)
