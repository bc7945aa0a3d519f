"""Entry-point ABI - Args-encoded calls into the ledger.

Existing callers invoke entry points by name with an Args payload. Calls that
create an entity return its id as Args u64, reads return UTF-8 JSON, and the
remaining calls return an empty payload.
"""

from __future__ import annotations

from collections.abc import Callable

from ..errors import NotFoundError
from .codec import ArgsReader, ArgsWriter
from .core import SplitLedger
from .host import CallContext
from .models import Allocation, dumps, encode_u64
from .queries import LedgerQueries

Handler = Callable[[SplitLedger, LedgerQueries, CallContext, ArgsReader], bytes]


def _json(payload: object) -> bytes:
    return dumps(payload).encode("utf-8")


def _optional_string(args: ArgsReader, field: str) -> str:
    return args.next_string(field) if args.has_more() else ""


# ── Mutations ─────────────────────────────────────────────────

def _create_team(ledger, queries, ctx, args):
    name = args.next_string("team name")
    description = args.next_string("team description")
    currency = args.next_string("currency")
    avatar = args.next_string("avatar")
    tags = args.next_string_array("tags")
    slug = args.next_string("slug")
    return encode_u64(ledger.create_team(ctx, name, description, currency, avatar, tags, slug))


def _add_member(ledger, queries, ctx, args):
    team_id = args.next_u64("team id")
    wallet = args.next_string("member wallet")
    role = args.next_string("role")
    percentage = args.next_u16("share")
    ledger.add_member(ctx, team_id, wallet, role, percentage)
    return b""


def _set_team_status(ledger, queries, ctx, args):
    team_id = args.next_u64("team id")
    is_active = args.next_bool("status")
    ledger.set_team_status(ctx, team_id, is_active)
    return b""


def _pay_team(ledger, queries, ctx, args):
    team_id = args.next_u64("team id")
    reference = args.next_string("reference")
    memo = _optional_string(args, "memo")
    return encode_u64(ledger.pay_team(ctx, team_id, reference, memo))


def _create_split_proposal(ledger, queries, ctx, args):
    team_id = args.next_u64("team id")
    reason = args.next_string("reason")
    count = args.next_u32("allocation size")
    allocations = [
        Allocation(
            member=args.next_string("member"),
            role=args.next_string("role"),
            percentage=args.next_u16("percentage"),
        )
        for _ in range(count)
    ]
    return encode_u64(ledger.create_split_proposal(ctx, team_id, reason, allocations))


def _vote_on_proposal(ledger, queries, ctx, args):
    proposal_id = args.next_u64("proposal id")
    support = args.next_bool("vote")
    ledger.vote_on_proposal(ctx, proposal_id, support)
    return b""


def _execute_proposal(ledger, queries, ctx, args):
    ledger.execute_proposal(ctx, args.next_u64("proposal id"))
    return b""


def _sweep_team_proposals(ledger, queries, ctx, args):
    ledger.sweep_team_proposals(ctx, args.next_u64("team id"))
    return b""


# ── Reads ─────────────────────────────────────────────────────

def _get_team(ledger, queries, ctx, args):
    return _json(queries.get_team(args.next_u64("team id")))


def _get_owner_teams(ledger, queries, ctx, args):
    return _json(queries.get_owner_teams(ctx, _optional_string(args, "owner")))


def _get_member_teams(ledger, queries, ctx, args):
    return _json(queries.get_member_teams(ctx, _optional_string(args, "member")))


def _get_payments_for_team(ledger, queries, ctx, args):
    team_id = args.next_u64("team id")
    limit = args.next_u32("limit") if args.has_more() else None
    return _json(queries.get_payments_for_team(team_id, limit))


def _get_proposals_for_team(ledger, queries, ctx, args):
    return _json(queries.get_proposals_for_team(args.next_u64("team id")))


def _get_config(ledger, queries, ctx, args):
    return _json(queries.get_config())


ENTRY_POINTS: dict[str, Handler] = {
    "createTeam": _create_team,
    "addMember": _add_member,
    "setTeamStatus": _set_team_status,
    "payTeam": _pay_team,
    "createSplitProposal": _create_split_proposal,
    "voteOnProposal": _vote_on_proposal,
    "executeProposal": _execute_proposal,
    "sweepTeamProposals": _sweep_team_proposals,
    "getTeam": _get_team,
    "getOwnerTeams": _get_owner_teams,
    "getMemberTeams": _get_member_teams,
    "getPaymentsForTeam": _get_payments_for_team,
    "getProposalsForTeam": _get_proposals_for_team,
    "getConfig": _get_config,
}

READ_ENTRY_POINTS = frozenset({
    "getTeam",
    "getOwnerTeams",
    "getMemberTeams",
    "getPaymentsForTeam",
    "getProposalsForTeam",
    "getConfig",
})


def dispatch(
    ledger: SplitLedger,
    queries: LedgerQueries,
    ctx: CallContext,
    name: str,
    payload: bytes,
) -> bytes:
    """Decode ``payload`` for entry point ``name`` and run it."""
    handler = ENTRY_POINTS.get(name)
    if handler is None:
        raise NotFoundError(f"Unknown entry point: {name}")
    return handler(ledger, queries, ctx, ArgsReader(payload))


# ── Caller-side helpers ───────────────────────────────────────

def create_team_args(
    name: str,
    description: str = "",
    currency: str = "",
    avatar: str = "",
    tags: list[str] | None = None,
    slug: str = "",
) -> bytes:
    return (
        ArgsWriter()
        .add_string(name)
        .add_string(description)
        .add_string(currency)
        .add_string(avatar)
        .add_string_array(tags or [])
        .add_string(slug)
        .serialize()
    )


def create_split_proposal_args(
    team_id: int, reason: str, allocations: list[Allocation]
) -> bytes:
    args = ArgsWriter().add_u64(team_id).add_string(reason).add_u32(len(allocations))
    for allocation in allocations:
        allocation.write(args)
    return args.serialize()


__all__ = [
    "ENTRY_POINTS",
    "READ_ENTRY_POINTS",
    "dispatch",
    "create_team_args",
    "create_split_proposal_args",
]
