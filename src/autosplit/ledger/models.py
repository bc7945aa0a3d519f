"""Ledger entities and their canonical encodings.

Each entity has two representations:
- ``encode()``/``decode()``: Args binary, fixed field order, used for storage
- ``to_json()``: camelCase JSON projection used for external reads and events

u64 quantities are projected as decimal strings so that JavaScript callers
never lose precision; basis points and vote tallies are plain numbers.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from .codec import ArgsReader, ArgsWriter

BASIS_POINTS = 10000
DEFAULT_CURRENCY = "MASSA"


def dumps(payload: Any) -> str:
    """Serialize a JSON projection in the compact wire form."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


@dataclass
class TeamMember:
    """A wallet's share of a team's incoming payments."""

    wallet: str
    role: str = ""
    percentage: int = 0
    total_earned: int = 0
    last_paid_at: int = 0

    def write(self, args: ArgsWriter) -> None:
        (
            args.add_string(self.wallet)
            .add_string(self.role)
            .add_u16(self.percentage)
            .add_u64(self.total_earned)
            .add_u64(self.last_paid_at)
        )

    @classmethod
    def read(cls, args: ArgsReader) -> TeamMember:
        return cls(
            wallet=args.next_string("member wallet"),
            role=args.next_string("member role"),
            percentage=args.next_u16("member share"),
            total_earned=args.next_u64("member total earned"),
            last_paid_at=args.next_u64("member last paid"),
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "wallet": self.wallet,
            "role": self.role,
            "percentage": self.percentage,
            "totalEarned": str(self.total_earned),
            "lastPaidAt": str(self.last_paid_at),
        }


@dataclass
class Team:
    """A payable team and its current split."""

    id: int
    owner: str
    name: str
    description: str = ""
    currency: str = DEFAULT_CURRENCY
    avatar: str = ""
    tags: list[str] = field(default_factory=list)
    is_active: bool = True
    created_at: int = 0
    pay_link_slug: str = ""
    total_received: int = 0
    members: list[TeamMember] = field(default_factory=list)

    def total_share(self) -> int:
        return sum(member.percentage for member in self.members)

    def find_member(self, wallet: str) -> TeamMember | None:
        for member in self.members:
            if member.wallet == wallet:
                return member
        return None

    def encode(self) -> bytes:
        args = (
            ArgsWriter()
            .add_u64(self.id)
            .add_string(self.owner)
            .add_string(self.name)
            .add_string(self.description)
            .add_string(self.currency)
            .add_string(self.avatar)
            .add_string_array(self.tags)
            .add_bool(self.is_active)
            .add_u64(self.created_at)
            .add_string(self.pay_link_slug)
            .add_u64(self.total_received)
            .add_u32(len(self.members))
        )
        for member in self.members:
            member.write(args)
        return args.serialize()

    @classmethod
    def decode(cls, data: bytes) -> Team:
        args = ArgsReader(data)
        team = cls(
            id=args.next_u64("team id"),
            owner=args.next_string("owner"),
            name=args.next_string("name"),
            description=args.next_string("description"),
            currency=args.next_string("currency"),
            avatar=args.next_string("avatar"),
            tags=args.next_string_array("tags"),
            is_active=args.next_bool("status"),
            created_at=args.next_u64("createdAt"),
            pay_link_slug=args.next_string("slug"),
            total_received=args.next_u64("totalReceived"),
        )
        count = args.next_u32("members length")
        team.members = [TeamMember.read(args) for _ in range(count)]
        args.expect_end("team")
        return team

    def to_json(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "owner": self.owner,
            "name": self.name,
            "description": self.description,
            "currency": self.currency,
            "avatar": self.avatar,
            "tags": list(self.tags),
            "isActive": self.is_active,
            "createdAt": str(self.created_at),
            "payLinkSlug": self.pay_link_slug,
            "totalReceived": str(self.total_received),
            "members": [member.to_json() for member in self.members],
        }


@dataclass(frozen=True)
class Payment:
    """One disbursed payment. Immutable once recorded."""

    id: int
    team_id: int
    payer: str
    amount: int
    timestamp: int
    reference: str = ""
    memo: str = ""

    def encode(self) -> bytes:
        return (
            ArgsWriter()
            .add_u64(self.id)
            .add_u64(self.team_id)
            .add_string(self.payer)
            .add_u64(self.amount)
            .add_u64(self.timestamp)
            .add_string(self.reference)
            .add_string(self.memo)
            .serialize()
        )

    @classmethod
    def decode(cls, data: bytes) -> Payment:
        args = ArgsReader(data)
        payment = cls(
            id=args.next_u64("payment id"),
            team_id=args.next_u64("payment teamId"),
            payer=args.next_string("payer"),
            amount=args.next_u64("amount"),
            timestamp=args.next_u64("timestamp"),
            reference=args.next_string("reference"),
            memo=args.next_string("memo"),
        )
        args.expect_end("payment")
        return payment

    def to_json(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "teamId": str(self.team_id),
            "payer": self.payer,
            "amount": str(self.amount),
            "timestamp": str(self.timestamp),
            "reference": self.reference,
            "memo": self.memo,
        }


@dataclass(frozen=True)
class Allocation:
    """A proposed replacement membership entry."""

    member: str
    role: str = ""
    percentage: int = 0

    def write(self, args: ArgsWriter) -> None:
        args.add_string(self.member).add_string(self.role).add_u16(self.percentage)

    @classmethod
    def read(cls, args: ArgsReader) -> Allocation:
        return cls(
            member=args.next_string("allocation member"),
            role=args.next_string("allocation role"),
            percentage=args.next_u16("allocation percentage"),
        )

    def to_json(self) -> dict[str, Any]:
        return {"member": self.member, "role": self.role, "percentage": self.percentage}


@dataclass(frozen=True)
class ProposalVote:
    """A cast vote; weight is the voter's percentage when the vote was cast."""

    voter: str
    support: bool
    weight: int

    def write(self, args: ArgsWriter) -> None:
        args.add_string(self.voter).add_bool(self.support).add_u16(self.weight)

    @classmethod
    def read(cls, args: ArgsReader) -> ProposalVote:
        return cls(
            voter=args.next_string("voter"),
            support=args.next_bool("support"),
            weight=args.next_u16("vote weight"),
        )

    def to_json(self) -> dict[str, Any]:
        return {"voter": self.voter, "support": self.support, "weight": self.weight}


@dataclass
class Proposal:
    """A governance proposal replacing a team's split."""

    id: int
    team_id: int
    creator: str
    reason: str
    end_time: int
    executed: bool = False
    yes_votes: int = 0
    no_votes: int = 0
    created_at: int = 0
    allocations: list[Allocation] = field(default_factory=list)
    votes: list[ProposalVote] = field(default_factory=list)

    def has_voted(self, wallet: str) -> bool:
        return any(vote.voter == wallet for vote in self.votes)

    def is_accepted(self) -> bool:
        """Strict majority of cast weight; a tie is a rejection."""
        return self.yes_votes > self.no_votes

    def is_open(self, now: int) -> bool:
        return not self.executed and now < self.end_time

    def encode(self) -> bytes:
        args = (
            ArgsWriter()
            .add_u64(self.id)
            .add_u64(self.team_id)
            .add_string(self.creator)
            .add_string(self.reason)
            .add_u64(self.end_time)
            .add_bool(self.executed)
            .add_u32(self.yes_votes)
            .add_u32(self.no_votes)
            .add_u64(self.created_at)
            .add_u32(len(self.allocations))
        )
        for allocation in self.allocations:
            allocation.write(args)
        args.add_u32(len(self.votes))
        for vote in self.votes:
            vote.write(args)
        return args.serialize()

    @classmethod
    def decode(cls, data: bytes) -> Proposal:
        args = ArgsReader(data)
        proposal = cls(
            id=args.next_u64("proposal id"),
            team_id=args.next_u64("proposal teamId"),
            creator=args.next_string("creator"),
            reason=args.next_string("reason"),
            end_time=args.next_u64("endTime"),
            executed=args.next_bool("executed flag"),
            yes_votes=args.next_u32("yesVotes"),
            no_votes=args.next_u32("noVotes"),
            created_at=args.next_u64("createdAt"),
        )
        count = args.next_u32("allocations length")
        proposal.allocations = [Allocation.read(args) for _ in range(count)]
        count = args.next_u32("votes length")
        proposal.votes = [ProposalVote.read(args) for _ in range(count)]
        args.expect_end("proposal")
        return proposal

    def to_json(self, team_name: str) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "teamId": str(self.team_id),
            "teamName": team_name,
            "creator": self.creator,
            "reason": self.reason,
            "endTime": str(self.end_time),
            "executed": self.executed,
            "yesVotes": self.yes_votes,
            "noVotes": self.no_votes,
            "createdAt": str(self.created_at),
            "allocations": [allocation.to_json() for allocation in self.allocations],
            "votes": [vote.to_json() for vote in self.votes],
        }


def decode_u64(data: bytes, what: str = "u64") -> int:
    """Decode a bare Args u64 (counter values, id returns)."""
    args = ArgsReader(data)
    value = args.next_u64(what)
    args.expect_end(what)
    return value


def encode_u64(value: int) -> bytes:
    return ArgsWriter().add_u64(value).serialize()


__all__ = [
    "BASIS_POINTS",
    "DEFAULT_CURRENCY",
    "TeamMember",
    "Team",
    "Payment",
    "Allocation",
    "ProposalVote",
    "Proposal",
    "dumps",
    "decode_u64",
    "encode_u64",
]
