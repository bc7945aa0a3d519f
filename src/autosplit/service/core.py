"""Core AutoSplit service - hosts the ledger behind the HTTP API.

The service plays the hosting environment: it resolves caller identity,
stamps wall-clock time, credits attached coins, serializes calls, and streams
emitted events to subscribers.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator, Callable
from typing import Any, TypeVar

from ..ledger import abi
from ..ledger.core import SplitLedger
from ..ledger.events import EventLog, EventRecord
from ..ledger.host import CallContext, NativeBank, now_millis
from ..ledger.models import Allocation
from ..ledger.queries import LedgerQueries
from ..persistence.database import KVStore, MemoryKVStore, SQLiteKVStore
from .config import AutosplitConfig
from .logging import get_logger, ledger_call

logger = get_logger(__name__)

T = TypeVar("T")


class AutosplitService:
    """Hosting environment for the split ledger.

    Provides:
    - Caller/time/coin context for every entry point
    - One-call-at-a-time execution
    - Query projections
    - Event streaming
    """

    def __init__(
        self,
        config: AutosplitConfig,
        *,
        store: KVStore | None = None,
        bank: NativeBank | None = None,
        event_log: EventLog | None = None,
        time_provider: Callable[[], int] | None = None,
    ) -> None:
        self.config = config

        if store is None:
            store = SQLiteKVStore(config.db_path) if config.db_path else MemoryKVStore()
        self._store = store

        self._time_provider = time_provider or now_millis
        self.events = event_log or EventLog(
            path=config.event_log_path,
            memory_limit=config.event_memory_limit,
        )
        self.ledger = SplitLedger(
            store,
            bank=bank or NativeBank(),
            event_log=self.events,
            native_symbol=config.native_symbol,
            voting_window=config.voting_window_ms,
        )
        self.queries = LedgerQueries(
            self.ledger.storage,
            default_payment_limit=config.payment_page_size,
        )

        # The host runs one call at a time
        self._lock = threading.Lock()

        # Event subscribers: (loop, queue) so worker threads can publish safely
        self._event_queues: list[tuple[asyncio.AbstractEventLoop, asyncio.Queue[str]]] = []
        self.events.subscribe(self._publish_event)

        if not self.ledger.is_initialized:
            self.ledger.initialize(self.context(config.deployer))
            logger.info("contract.initialized", owner=config.deployer)

    @property
    def store(self) -> KVStore:
        return self._store

    @property
    def bank(self) -> NativeBank:
        return self.ledger.bank

    def context(self, caller: str, attached_amount: int = 0) -> CallContext:
        return CallContext(
            caller=caller,
            timestamp=self._time_provider(),
            attached_amount=attached_amount,
        )

    def _run(
        self,
        caller: str,
        operation: str,
        fn: Callable[[CallContext], T],
        attached_amount: int = 0,
    ) -> T:
        with ledger_call(caller, operation), self._lock:
            return fn(self.context(caller, attached_amount))

    # -----------------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------------

    def create_team(
        self,
        caller: str,
        name: str,
        description: str = "",
        currency: str = "",
        avatar: str = "",
        tags: list[str] | None = None,
        slug: str = "",
    ) -> int:
        return self._run(
            caller,
            "createTeam",
            lambda ctx: self.ledger.create_team(
                ctx, name, description, currency, avatar, tags or [], slug
            ),
        )

    def add_member(self, caller: str, team_id: int, wallet: str, role: str, percentage: int) -> None:
        self._run(
            caller,
            "addMember",
            lambda ctx: self.ledger.add_member(ctx, team_id, wallet, role, percentage),
        )

    def set_team_status(self, caller: str, team_id: int, is_active: bool) -> None:
        self._run(
            caller,
            "setTeamStatus",
            lambda ctx: self.ledger.set_team_status(ctx, team_id, is_active),
        )

    def pay_team(self, caller: str, team_id: int, amount: int, reference: str, memo: str = "") -> int:
        return self._run(
            caller,
            "payTeam",
            lambda ctx: self.ledger.pay_team(ctx, team_id, reference, memo),
            attached_amount=amount,
        )

    def create_split_proposal(
        self, caller: str, team_id: int, reason: str, allocations: list[Allocation]
    ) -> int:
        return self._run(
            caller,
            "createSplitProposal",
            lambda ctx: self.ledger.create_split_proposal(ctx, team_id, reason, allocations),
        )

    def vote_on_proposal(self, caller: str, proposal_id: int, support: bool) -> None:
        self._run(
            caller,
            "voteOnProposal",
            lambda ctx: self.ledger.vote_on_proposal(ctx, proposal_id, support),
        )

    def execute_proposal(self, caller: str, proposal_id: int) -> None:
        self._run(
            caller,
            "executeProposal",
            lambda ctx: self.ledger.execute_proposal(ctx, proposal_id),
        )

    def sweep_team_proposals(self, caller: str, team_id: int) -> list[int]:
        return self._run(
            caller,
            "sweepTeamProposals",
            lambda ctx: self.ledger.sweep_team_proposals(ctx, team_id),
        )

    def call(self, caller: str, entry_point: str, payload: bytes, attached_amount: int = 0) -> bytes:
        """Run an Args-encoded entry point by name."""
        return self._run(
            caller,
            entry_point,
            lambda ctx: abi.dispatch(self.ledger, self.queries, ctx, entry_point, payload),
            attached_amount=attached_amount,
        )

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def _read(self, fn: Callable[[], T]) -> T:
        # Reads must not observe a call's buffered writes
        with self._lock:
            return fn()

    def get_team(self, team_id: int) -> dict[str, Any]:
        return self._read(lambda: self.queries.get_team(team_id))

    def get_owner_teams(self, caller: str, owner: str | None = None) -> list[dict[str, Any]]:
        ctx = self.context(caller)
        return self._read(lambda: self.queries.get_owner_teams(ctx, owner))

    def get_member_teams(self, caller: str, wallet: str | None = None) -> list[dict[str, Any]]:
        ctx = self.context(caller)
        return self._read(lambda: self.queries.get_member_teams(ctx, wallet))

    def get_payments_for_team(self, team_id: int, limit: int | None = None) -> list[dict[str, Any]]:
        return self._read(lambda: self.queries.get_payments_for_team(team_id, limit))

    def get_proposals_for_team(self, team_id: int) -> list[dict[str, Any]]:
        return self._read(lambda: self.queries.get_proposals_for_team(team_id))

    def get_config(self) -> dict[str, Any]:
        return self._read(self.queries.get_config)

    def balance_of(self, wallet: str) -> int:
        return self._read(lambda: self.bank.balance_of(wallet))

    # -----------------------------------------------------------------------
    # Event Streaming
    # -----------------------------------------------------------------------

    def _publish_event(self, record: EventRecord) -> None:
        message = f"data: {record.to_json()}\n\n"
        for loop, queue in list(self._event_queues):
            loop.call_soon_threadsafe(self._offer, queue, message)

    @staticmethod
    def _offer(queue: asyncio.Queue[str], message: str) -> None:
        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("event.dropped", reason="subscriber queue full")

    async def subscribe_events(self) -> AsyncIterator[str]:
        """Subscribe to SSE event stream."""
        queue: asyncio.Queue[str] = asyncio.Queue(maxsize=100)
        entry = (asyncio.get_running_loop(), queue)
        self._event_queues.append(entry)

        try:
            while True:
                message = await queue.get()
                yield message
        finally:
            self._event_queues.remove(entry)

    def close(self) -> None:
        self.events.unsubscribe(self._publish_event)
        close = getattr(self._store, "close", None)
        if close is not None:
            close()
