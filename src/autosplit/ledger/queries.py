"""Read-only projections over the ledger.

Queries return JSON-ready dicts (the camelCase projection of each entity).
They never write storage or advance counters.
"""

from __future__ import annotations

from typing import Any

from ..errors import NotFoundError
from ..persistence.storage import LedgerStorage
from .core import require_team
from .host import CallContext

DEFAULT_PAYMENT_LIMIT = 25


class LedgerQueries:
    """Query layer bound to a ``LedgerStorage``."""

    def __init__(
        self,
        storage: LedgerStorage,
        default_payment_limit: int = DEFAULT_PAYMENT_LIMIT,
    ) -> None:
        self._storage = storage
        self.default_payment_limit = default_payment_limit

    def get_team(self, team_id: int) -> dict[str, Any]:
        return require_team(self._storage, team_id).to_json()

    def get_owner_teams(self, ctx: CallContext, owner: str | None = None) -> list[dict[str, Any]]:
        """Teams created by ``owner`` (the caller when omitted)."""
        ids = self._storage.owner_team_ids(owner or ctx.caller)
        return self._list_teams(ids)

    def get_member_teams(self, ctx: CallContext, wallet: str | None = None) -> list[dict[str, Any]]:
        """Teams ``wallet`` has ever been registered in (the caller when omitted)."""
        ids = self._storage.member_team_ids(wallet or ctx.caller)
        return self._list_teams(ids)

    def get_payments_for_team(self, team_id: int, limit: int | None = None) -> list[dict[str, Any]]:
        """Most recent payments, newest first."""
        require_team(self._storage, team_id)
        if limit is None:
            limit = self.default_payment_limit
        if limit <= 0:
            return []
        ids = self._storage.team_payment_ids(team_id)
        return [
            self._storage.load_payment(payment_id).to_json()
            for payment_id in reversed(ids[-limit:])
        ]

    def get_payment(self, payment_id: int) -> dict[str, Any]:
        if not self._storage.payment_exists(payment_id):
            raise NotFoundError(f"Payment not found: {payment_id}")
        return self._storage.load_payment(payment_id).to_json()

    def get_proposals_for_team(self, team_id: int) -> list[dict[str, Any]]:
        """Every proposal of the team in creation order, with the team name."""
        team = require_team(self._storage, team_id)
        return [
            self._storage.load_proposal(proposal_id).to_json(team.name)
            for proposal_id in self._storage.team_proposal_ids(team_id)
        ]

    def get_config(self) -> dict[str, Any]:
        if not self._storage.has_owner():
            raise NotFoundError("Contract not initialized")
        return {"owner": self._storage.load_owner()}

    def _list_teams(self, ids: list[int]) -> list[dict[str, Any]]:
        return [self._storage.load_team(team_id).to_json() for team_id in ids]


__all__ = ["LedgerQueries", "DEFAULT_PAYMENT_LIMIT"]
