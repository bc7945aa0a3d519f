"""Event Log - Append-only notification log for ledger calls.

Every mutating call emits one event string per state transition, e.g.
``autosplit:team.created:7`` or ``autosplit:payment:{...json...}``. The log
is best-effort: the ledger never reads it back. Events are kept in memory
and optionally appended to a JSONL file, and subscribers are notified so the
service can stream them.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from .models import Payment, dumps

logger = logging.getLogger(__name__)

EVENT_PREFIX = "autosplit:"

# ── Event Types ───────────────────────────────────────────────

CONTRACT_INITIALIZED = "init"
TEAM_CREATED = "team.created"
MEMBER_ADDED = "member.added"
TEAM_STATUS = "team.status"
PAYMENT_RECORDED = "payment"
PROPOSAL_CREATED = "proposal.created"
PROPOSAL_VOTE = "proposal.vote"
PROPOSAL_EXECUTED = "proposal.executed"
PROPOSAL_SWEPT = "proposal.swept"

ALL_EVENT_TYPES = (
    CONTRACT_INITIALIZED,
    TEAM_CREATED,
    MEMBER_ADDED,
    TEAM_STATUS,
    PAYMENT_RECORDED,
    PROPOSAL_CREATED,
    PROPOSAL_VOTE,
    PROPOSAL_EXECUTED,
    PROPOSAL_SWEPT,
)


# ── Event Builders ────────────────────────────────────────────

def _event(event_type: str, *parts: object) -> str:
    return ":".join([EVENT_PREFIX + event_type, *(str(part) for part in parts)])


def initialized(owner: str) -> str:
    return _event(CONTRACT_INITIALIZED, owner)


def team_created(team_id: int) -> str:
    return _event(TEAM_CREATED, team_id)


def member_added(team_id: int, wallet: str) -> str:
    return _event(MEMBER_ADDED, team_id, wallet)


def team_status(team_id: int, is_active: bool) -> str:
    return _event(TEAM_STATUS, team_id, "active" if is_active else "paused")


def payment_recorded(payment: Payment) -> str:
    return _event(PAYMENT_RECORDED, dumps(payment.to_json()))


def proposal_created(proposal_id: int) -> str:
    return _event(PROPOSAL_CREATED, proposal_id)


def proposal_vote(proposal_id: int, voter: str) -> str:
    return _event(PROPOSAL_VOTE, proposal_id, voter)


def proposal_executed(proposal_id: int) -> str:
    return _event(PROPOSAL_EXECUTED, proposal_id)


def proposal_swept(proposal_id: int) -> str:
    return _event(PROPOSAL_SWEPT, proposal_id)


def event_type_of(event: str) -> str:
    """Return the event type segment, e.g. ``team.created``."""
    body = event[len(EVENT_PREFIX):] if event.startswith(EVENT_PREFIX) else event
    return body.split(":", 1)[0]


@dataclass
class EventRecord:
    """A single emitted event with the call that produced it."""

    sequence: int
    event: str
    event_type: str
    caller: str
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class EventLog:
    """Append-only event log.

    Events emitted during a call are staged and only published once the call
    commits; a failed call publishes nothing. Publishing is best effort: a
    failed file append or subscriber is logged and the remaining records are
    still published.

    Example:
        log = EventLog(path="data/events.jsonl")
        log.subscribe(lambda record: print(record.event))
    """

    def __init__(
        self,
        path: Path | str | None = None,
        auto_flush: bool = True,
        memory_limit: int = 1000,
    ) -> None:
        """Initialize the event log.

        Args:
            path: Optional JSONL file to append events to
            auto_flush: Whether to flush after each write
            memory_limit: Events retained in memory for reads
        """
        self._path = Path(path) if path is not None else None
        self._auto_flush = auto_flush
        self._memory_limit = memory_limit
        self._records: list[EventRecord] = []
        self._staged: list[EventRecord] = []
        self._sequence = 0
        self._subscribers: list[Callable[[EventRecord], None]] = []

        if self._path is not None:
            self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path | None:
        return self._path

    def subscribe(self, callback: Callable[[EventRecord], None]) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[EventRecord], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def emit(self, event: str, caller: str = "", timestamp: int = 0) -> None:
        """Stage an event for the in-flight call."""
        self._sequence += 1
        self._staged.append(
            EventRecord(
                sequence=self._sequence,
                event=event,
                event_type=event_type_of(event),
                caller=caller,
                timestamp=timestamp,
            )
        )

    def commit(self) -> list[EventRecord]:
        staged, self._staged = self._staged, []
        for record in staged:
            self._publish(record)
        return staged

    def rollback(self) -> None:
        self._sequence -= len(self._staged)
        self._staged = []

    def _publish(self, record: EventRecord) -> None:
        self._records.append(record)
        if len(self._records) > self._memory_limit:
            self._records = self._records[-self._memory_limit:]

        # Publishing runs after the call committed; failures here are logged only
        if self._path is not None:
            try:
                with open(self._path, "a", encoding="utf-8") as f:
                    f.write(record.to_json() + "\n")
                    if self._auto_flush:
                        f.flush()
            except OSError:
                logger.exception("event %d not appended to %s", record.sequence, self._path)

        logger.info("event %s", record.event)
        for callback in list(self._subscribers):
            try:
                callback(record)
            except Exception:
                logger.exception("event subscriber failed for event %d", record.sequence)

    def events(self) -> list[str]:
        return [record.event for record in self._records]

    def recent(self, n: int = 10) -> list[EventRecord]:
        return self._records[-n:] if n > 0 else []

    def count(self) -> int:
        return len(self._records)
