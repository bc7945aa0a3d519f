"""Split Ledger - Team, payment and governance state machine.

Each entry point runs as one atomic unit: storage writes are buffered,
transfers are journaled, and events are staged until the call completes.
Any ``LedgerError`` raised along the way discards all three.

Example:
    ledger = SplitLedger(MemoryKVStore())
    owner = CallContext(caller="AU1owner", timestamp=1_000)

    team_id = ledger.create_team(owner, "Studio", "", "", "", [], "")
    ledger.add_member(owner, team_id, "AU1alice", "design", 6000)
    ledger.add_member(owner, team_id, "AU1bob", "dev", 4000)

    payer = CallContext(caller="AU1payer", timestamp=2_000, attached_amount=1000)
    ledger.pay_team(payer, team_id, "invoice-42")
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager

from ..errors import (
    AuthorizationError,
    ConflictError,
    InvariantViolation,
    NotFoundError,
    ProposalRejectedError,
    ValidationError,
)
from ..persistence.database import KVStore, TransactionalStore
from ..persistence.storage import (
    PAYMENT_COUNTER,
    PROPOSAL_COUNTER,
    TEAM_COUNTER,
    LedgerStorage,
)
from . import events
from .events import EventLog
from .host import CallContext, NativeBank
from .models import (
    BASIS_POINTS,
    DEFAULT_CURRENCY,
    Allocation,
    Payment,
    Proposal,
    ProposalVote,
    Team,
    TeamMember,
)

logger = logging.getLogger(__name__)

# 3 days in host time units (milliseconds)
DEFAULT_VOTING_WINDOW = 3 * 24 * 60 * 60 * 1000


# ---------------------------------------------------------------------------
# Shared loads
# ---------------------------------------------------------------------------


def require_team(storage: LedgerStorage, team_id: int) -> Team:
    if not storage.team_exists(team_id):
        raise NotFoundError(f"Team not found: {team_id}")
    return storage.load_team(team_id)


def require_proposal(storage: LedgerStorage, proposal_id: int) -> Proposal:
    if not storage.proposal_exists(proposal_id):
        raise NotFoundError(f"Proposal not found: {proposal_id}")
    return storage.load_proposal(proposal_id)


def require_team_owner(team: Team, ctx: CallContext) -> None:
    if ctx.caller != team.owner:
        raise AuthorizationError("Only team owner allowed")


def split_amount(amount: int, members: Sequence[TeamMember]) -> tuple[list[int], int]:
    """Floor each member's share of ``amount``; return (shares, remainder).

    ``sum(shares) + remainder == amount`` always holds; the remainder is the
    integer-division dust and is smaller than the member count.
    """
    shares = [amount * member.percentage // BASIS_POINTS for member in members]
    return shares, amount - sum(shares)


class SplitLedger:
    """Ledger core owning every team, payment and proposal invariant."""

    def __init__(
        self,
        store: KVStore,
        bank: NativeBank | None = None,
        event_log: EventLog | None = None,
        *,
        native_symbol: str = DEFAULT_CURRENCY,
        voting_window: int = DEFAULT_VOTING_WINDOW,
    ) -> None:
        if isinstance(store, TransactionalStore):
            self._tx = store
        else:
            self._tx = TransactionalStore(store)
        self.storage = LedgerStorage(self._tx)
        self.bank = bank or NativeBank()
        self.events = event_log or EventLog()
        self.native_symbol = native_symbol
        self.voting_window = voting_window

    # -----------------------------------------------------------------------
    # Call boundary
    # -----------------------------------------------------------------------

    @contextmanager
    def _call(self, ctx: CallContext, name: str) -> Iterator[None]:
        self._tx.begin()
        self.bank.begin()
        try:
            self.bank.receive(ctx.attached_amount)
            yield
        except BaseException as exc:
            self._tx.rollback()
            self.bank.rollback()
            self.events.rollback()
            logger.info("%s rejected for %s: %s", name, ctx.caller, exc)
            raise

        # Bank and events follow storage; a failed flush undoes both
        try:
            self._tx.commit()
        except BaseException:
            self._tx.rollback()
            self.bank.rollback()
            self.events.rollback()
            logger.exception("%s storage commit failed for %s", name, ctx.caller)
            raise
        self.bank.commit()
        self.events.commit()

    def _emit(self, ctx: CallContext, event: str) -> None:
        self.events.emit(event, caller=ctx.caller, timestamp=ctx.timestamp)

    # -----------------------------------------------------------------------
    # Contract setup
    # -----------------------------------------------------------------------

    def initialize(self, ctx: CallContext) -> None:
        """Record the deploying wallet as contract owner. Runs once."""
        with self._call(ctx, "initialize"):
            if self.storage.has_owner():
                raise ConflictError("Already deployed")
            self.storage.save_owner(ctx.caller)
            self._emit(ctx, events.initialized(ctx.caller))

    @property
    def is_initialized(self) -> bool:
        return self.storage.has_owner()

    # -----------------------------------------------------------------------
    # Teams
    # -----------------------------------------------------------------------

    def create_team(
        self,
        ctx: CallContext,
        name: str,
        description: str = "",
        currency: str = "",
        avatar: str = "",
        tags: Sequence[str] = (),
        slug: str = "",
    ) -> int:
        with self._call(ctx, "createTeam"):
            if not name:
                raise ValidationError("Team name required")

            team_id = self.storage.increment_counter(TEAM_COUNTER)
            team = Team(
                id=team_id,
                owner=ctx.caller,
                name=name,
                description=description,
                currency=currency or self.native_symbol,
                avatar=avatar,
                tags=list(tags),
                is_active=True,
                created_at=ctx.timestamp,
                pay_link_slug=slug or f"team-{team_id}",
                total_received=0,
                members=[],
            )
            self.storage.save_team(team)
            self.storage.track_owner_team(ctx.caller, team_id)
            self._emit(ctx, events.team_created(team_id))

        logger.info("team %d created by %s", team_id, ctx.caller)
        return team_id

    def add_member(
        self,
        ctx: CallContext,
        team_id: int,
        wallet: str,
        role: str,
        percentage: int,
    ) -> None:
        with self._call(ctx, "addMember"):
            team = require_team(self.storage, team_id)
            require_team_owner(team, ctx)

            if not wallet:
                raise ValidationError("Member wallet required")
            if percentage <= 0:
                raise ValidationError("Share must be greater than zero")
            if percentage > BASIS_POINTS:
                raise InvariantViolation("Total split cannot exceed 100%")
            if team.find_member(wallet) is not None:
                raise ConflictError("Member already exists")
            if team.total_share() + percentage > BASIS_POINTS:
                raise InvariantViolation("Total split cannot exceed 100%")

            team.members.append(TeamMember(wallet=wallet, role=role, percentage=percentage))
            self.storage.save_team(team)
            self.storage.track_member_team(wallet, team_id)
            self._emit(ctx, events.member_added(team_id, wallet))

    def set_team_status(self, ctx: CallContext, team_id: int, is_active: bool) -> None:
        with self._call(ctx, "setTeamStatus"):
            team = require_team(self.storage, team_id)
            require_team_owner(team, ctx)
            team.is_active = is_active
            self.storage.save_team(team)
            self._emit(ctx, events.team_status(team_id, is_active))

    # -----------------------------------------------------------------------
    # Payments
    # -----------------------------------------------------------------------

    def pay_team(
        self,
        ctx: CallContext,
        team_id: int,
        reference: str,
        memo: str = "",
    ) -> int:
        """Split the attached amount across the team and record the payment.

        Each member receives ``floor(amount * percentage / 10000)``; the
        truncation remainder goes to the team owner so the full amount is
        always disbursed.
        """
        with self._call(ctx, "payTeam"):
            team = require_team(self.storage, team_id)
            if not team.is_active:
                raise ConflictError("Team inactive")
            if not team.members:
                raise InvariantViolation("No members configured")
            if team.total_share() != BASIS_POINTS:
                raise InvariantViolation("Member percentages must total 100%")

            amount = ctx.attached_amount
            if amount <= 0:
                raise ValidationError("You must send native coins")

            shares, remainder = split_amount(amount, team.members)
            for member, share in zip(team.members, shares):
                if share == 0:
                    continue
                self.bank.transfer(member.wallet, share, ctx.timestamp)
                member.total_earned += share
                member.last_paid_at = ctx.timestamp

            if remainder > 0:
                self.bank.transfer(team.owner, remainder, ctx.timestamp)

            team.total_received += amount
            self.storage.save_team(team)

            payment_id = self.storage.increment_counter(PAYMENT_COUNTER)
            payment = Payment(
                id=payment_id,
                team_id=team_id,
                payer=ctx.caller,
                amount=amount,
                timestamp=ctx.timestamp,
                reference=reference,
                memo=memo,
            )
            self.storage.save_payment(payment)
            self._emit(ctx, events.payment_recorded(payment))

        logger.info(
            "payment %d: %d split across %d members of team %d (dust %d)",
            payment_id, amount, len(shares), team_id, remainder,
        )
        return payment_id

    # -----------------------------------------------------------------------
    # Governance
    # -----------------------------------------------------------------------

    def create_split_proposal(
        self,
        ctx: CallContext,
        team_id: int,
        reason: str,
        allocations: Sequence[Allocation],
    ) -> int:
        with self._call(ctx, "createSplitProposal"):
            if not allocations:
                raise ValidationError("Allocations required")

            team = require_team(self.storage, team_id)
            require_team_owner(team, ctx)

            seen: set[str] = set()
            for allocation in allocations:
                if not allocation.member:
                    raise ValidationError("Allocation member required")
                if allocation.member in seen:
                    raise ValidationError(f"Duplicate allocation for {allocation.member}")
                if not 0 <= allocation.percentage <= BASIS_POINTS:
                    raise ValidationError(f"Invalid percentage: {allocation.percentage}")
                seen.add(allocation.member)

            total = sum(allocation.percentage for allocation in allocations)
            if total != BASIS_POINTS:
                raise InvariantViolation(f"Allocations must total 100% (got {total} bp)")

            proposal_id = self.storage.increment_counter(PROPOSAL_COUNTER)
            proposal = Proposal(
                id=proposal_id,
                team_id=team_id,
                creator=ctx.caller,
                reason=reason,
                end_time=ctx.timestamp + self.voting_window,
                executed=False,
                yes_votes=0,
                no_votes=0,
                created_at=ctx.timestamp,
                allocations=list(allocations),
                votes=[],
            )
            self.storage.save_proposal(proposal)
            self._emit(ctx, events.proposal_created(proposal_id))

        return proposal_id

    def vote_on_proposal(self, ctx: CallContext, proposal_id: int, support: bool) -> None:
        with self._call(ctx, "voteOnProposal"):
            proposal = require_proposal(self.storage, proposal_id)
            if proposal.executed:
                raise ConflictError("Proposal executed")
            if ctx.timestamp >= proposal.end_time:
                raise ConflictError("Voting closed")

            team = require_team(self.storage, proposal.team_id)
            member = team.find_member(ctx.caller)
            if member is None:
                raise AuthorizationError("Only team members can vote")
            if proposal.has_voted(ctx.caller):
                raise ConflictError("Already voted")

            weight = member.percentage
            proposal.votes.append(ProposalVote(voter=ctx.caller, support=support, weight=weight))
            if support:
                proposal.yes_votes += weight
            else:
                proposal.no_votes += weight

            self.storage.save_proposal(proposal)
            self._emit(ctx, events.proposal_vote(proposal_id, ctx.caller))

    def execute_proposal(self, ctx: CallContext, proposal_id: int) -> None:
        with self._call(ctx, "executeProposal"):
            proposal = require_proposal(self.storage, proposal_id)
            if proposal.executed:
                raise ConflictError("Proposal executed")
            if ctx.timestamp < proposal.end_time:
                raise ConflictError("Voting not ended")
            if not proposal.is_accepted():
                raise ProposalRejectedError("Proposal rejected")

            team = require_team(self.storage, proposal.team_id)
            self._finalize(team, proposal)
            self._emit(ctx, events.proposal_executed(proposal_id))

        logger.info("proposal %d executed for team %d", proposal_id, proposal.team_id)

    def sweep_team_proposals(self, ctx: CallContext, team_id: int) -> list[int]:
        """Finalize every closed, unexecuted proposal of a team.

        Returns the ids finalized by this call, accepted or not.
        """
        swept: list[int] = []
        with self._call(ctx, "sweepTeamProposals"):
            team = require_team(self.storage, team_id)
            for proposal_id in self.storage.team_proposal_ids(team_id):
                proposal = self.storage.load_proposal(proposal_id)
                if proposal.executed or ctx.timestamp < proposal.end_time:
                    continue
                self._finalize(team, proposal)
                swept.append(proposal_id)
                self._emit(ctx, events.proposal_swept(proposal_id))

        if swept:
            logger.info("swept proposals %s for team %d", swept, team_id)
        return swept

    def _finalize(self, team: Team, proposal: Proposal) -> bool:
        """Apply a closed proposal's outcome and mark it executed.

        Accepted proposals replace the team's membership; rejected ones
        change nothing but the executed flag. Returns acceptance.
        """
        accepted = proposal.is_accepted()
        if accepted:
            team.members = self._rebuild_members(team, proposal.allocations)
            self.storage.save_team(team)
        proposal.executed = True
        self.storage.save_proposal(proposal)
        return accepted

    def _rebuild_members(
        self, team: Team, allocations: Sequence[Allocation]
    ) -> list[TeamMember]:
        # Members absent from the allocation set are dropped.
        updated: list[TeamMember] = []
        for allocation in allocations:
            existing = team.find_member(allocation.member)
            if existing is not None:
                existing.percentage = allocation.percentage
                existing.role = allocation.role
                updated.append(existing)
            else:
                updated.append(
                    TeamMember(
                        wallet=allocation.member,
                        role=allocation.role,
                        percentage=allocation.percentage,
                    )
                )
            self.storage.track_member_team(allocation.member, team.id)
        return updated


__all__ = [
    "SplitLedger",
    "DEFAULT_VOTING_WINDOW",
    "require_team",
    "require_proposal",
    "split_amount",
]
