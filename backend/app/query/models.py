"""Value types passed between the query engine stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from app.query.errors import QueryError


class SessionStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"


class OutcomeStatus(str, Enum):
    OK = "ok"
    EMPTY_INPUT = "empty-input"
    FAILED = "failed"
    SUPERSEDED = "superseded"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ResolvedIntent:
    """A capability identifier plus the parameters extracted from the text."""
    capability: str
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Copy so later mutation of the caller's dict cannot leak in
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))


@dataclass(frozen=True)
class QueryResult:
    records: list[Any]
    capability: str
    binding: str
    query: str
    completed_at: datetime = field(default_factory=_utcnow)

    @property
    def count(self) -> int:
        return len(self.records)

    def to_dict(self) -> dict:
        return {
            "records": self.records,
            "capability": self.capability,
            "binding": self.binding,
            "query": self.query,
            "count": self.count,
            "completed_at": self.completed_at.isoformat(),
        }


@dataclass(frozen=True)
class QueryOutcome:
    """What a single submission returns to its caller."""
    status: OutcomeStatus
    query: str
    result: QueryResult | None = None
    error: QueryError | None = None

    @property
    def records(self) -> list[Any]:
        return self.result.records if self.result else []

    @property
    def capability(self) -> str | None:
        return self.result.capability if self.result else None


@dataclass(frozen=True)
class HistoryEntry:
    query: str
    submitted_at: datetime
    result_count: int | None = None
    capability: str | None = None
