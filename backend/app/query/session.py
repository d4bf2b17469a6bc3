"""
Query Session: per-user state around the query engine.

    idle ──submit──▶ pending ──(latest submission completes)──▶ idle

The session holds the last submitted text, the current QueryResult and a
transient error message. A new submission never waits for an in-flight one;
instead each submission takes the next sequence number and its completion
is applied only if that number is still current. A slow earlier query
finishing after a later one is dropped and reported to its caller as
superseded. While pending, the previous result stays in place, tagged with
the text that produced it.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from datetime import datetime, timezone

from app.auth.roles import Role
from app.config import settings
from app.middleware.metrics import (
    nl_queries_total,
    nl_query_duration_seconds,
    nl_superseded_queries_total,
)
from app.query.engine import QueryEngine
from app.query.errors import QueryError
from app.query.models import (
    HistoryEntry,
    OutcomeStatus,
    QueryOutcome,
    QueryResult,
    SessionStatus,
)

logger = logging.getLogger(__name__)


class QuerySession:
    def __init__(self, engine: QueryEngine, history_size: int | None = None):
        self.engine = engine
        self.status = SessionStatus.IDLE
        self.last_query: str | None = None
        self.result: QueryResult | None = None
        self.last_error: QueryError | None = None
        self._seq = 0
        self._history: deque[HistoryEntry] = deque(
            maxlen=history_size if history_size is not None else settings.query_history_size,
        )

    @property
    def sequence(self) -> int:
        return self._seq

    @property
    def history(self) -> list[HistoryEntry]:
        """Successful submissions, newest first."""
        return list(self._history)

    async def submit(self, role: Role | None, text: str) -> QueryOutcome:
        if not text or not text.strip():
            return QueryOutcome(status=OutcomeStatus.EMPTY_INPUT, query=text or "")

        self._seq += 1
        seq = self._seq
        self.status = SessionStatus.PENDING
        self.last_query = text
        submitted_at = datetime.now(timezone.utc)
        start = time.time()

        try:
            result = await self.engine.execute(role, text)
        except QueryError as exc:
            nl_query_duration_seconds.observe(time.time() - start)
            if seq != self._seq:
                return self._superseded(text, seq)
            self.status = SessionStatus.IDLE
            self.last_error = exc
            nl_queries_total.labels(binding="none", outcome=exc.kind.value).inc()
            logger.info(
                "Query %r failed (%s): %s", text, exc.kind.value, exc.detail or exc.message,
                extra={"outcome": exc.kind.value},
            )
            return QueryOutcome(status=OutcomeStatus.FAILED, query=text, error=exc)
        except BaseException:
            # Unexpected failures still release the pending state before propagating
            if seq == self._seq:
                self.status = SessionStatus.IDLE
            raise

        nl_query_duration_seconds.observe(time.time() - start)
        if seq != self._seq:
            return self._superseded(text, seq)

        self.status = SessionStatus.IDLE
        self.result = result
        self.last_error = None
        self._history.appendleft(HistoryEntry(
            query=text,
            submitted_at=submitted_at,
            result_count=result.count,
            capability=result.capability,
        ))
        nl_queries_total.labels(binding=result.binding, outcome="ok").inc()
        return QueryOutcome(status=OutcomeStatus.OK, query=text, result=result)

    def clear(self) -> None:
        # Bumping the sequence makes any in-flight submission stale
        self._seq += 1
        self.status = SessionStatus.IDLE
        self.last_query = None
        self.result = None
        self.last_error = None

    def clear_history(self) -> None:
        self._history.clear()

    def _superseded(self, text: str, seq: int) -> QueryOutcome:
        nl_superseded_queries_total.inc()
        logger.debug("Dropping result of submission %d (current %d)", seq, self._seq)
        return QueryOutcome(status=OutcomeStatus.SUPERSEDED, query=text)

    def snapshot(self) -> dict:
        return {
            "status": self.status.value,
            "last_query": self.last_query,
            "result": self.result.to_dict() if self.result else None,
            "error": (
                {"kind": self.last_error.kind.value, "message": self.last_error.message}
                if self.last_error else None
            ),
        }


class QuerySessionStore:
    """In-process map of user id → QuerySession."""

    def __init__(self, engine: QueryEngine, history_size: int | None = None):
        self.engine = engine
        self.history_size = history_size
        self._sessions: dict[str, QuerySession] = {}

    def get(self, user_id: str) -> QuerySession:
        session = self._sessions.get(user_id)
        if session is None:
            session = QuerySession(self.engine, self.history_size)
            self._sessions[user_id] = session
        return session

    def drop(self, user_id: str) -> None:
        self._sessions.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._sessions)
