"""Pydantic models backing the AutoSplit API.

Wire models use camelCase field names (``isActive``, ``totalReceived``) to
stay interoperable with existing callers; u64 quantities travel as strings.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Entity Projections
# ---------------------------------------------------------------------------


class TeamMemberOut(WireModel):
    wallet: str
    role: str
    percentage: int
    total_earned: str
    last_paid_at: str


class TeamOut(WireModel):
    """JSON projection of a team with its current split."""

    id: str
    owner: str
    name: str
    description: str
    currency: str
    avatar: str
    tags: list[str] = Field(default_factory=list)
    is_active: bool
    created_at: str
    pay_link_slug: str
    total_received: str
    members: list[TeamMemberOut] = Field(default_factory=list)


class PaymentOut(WireModel):
    id: str
    team_id: str
    payer: str
    amount: str
    timestamp: str
    reference: str
    memo: str


class AllocationModel(WireModel):
    """A proposed membership entry (request and response)."""

    member: str = Field(..., min_length=1)
    role: str = ""
    percentage: int = Field(..., ge=0, le=10000)


class ProposalVoteOut(WireModel):
    voter: str
    support: bool
    weight: int


class ProposalOut(WireModel):
    """JSON projection of a proposal, annotated with the team name."""

    id: str
    team_id: str
    team_name: str
    creator: str
    reason: str
    end_time: str
    executed: bool
    yes_votes: int
    no_votes: int
    created_at: str
    allocations: list[AllocationModel] = Field(default_factory=list)
    votes: list[ProposalVoteOut] = Field(default_factory=list)


class ConfigOut(WireModel):
    owner: str


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class CreateTeamRequest(WireModel):
    name: str = Field(default="", max_length=256)
    description: str = Field(default="", max_length=4096)
    currency: str = Field(default="", max_length=32)
    avatar: str = Field(default="", max_length=2048)
    tags: list[str] = Field(default_factory=list, max_length=32)
    slug: str = Field(default="", max_length=128)


class AddMemberRequest(WireModel):
    wallet: str = Field(default="", max_length=256)
    role: str = Field(default="", max_length=256)
    percentage: int = Field(..., ge=0, le=0xFFFF, description="Share in basis points")


class SetTeamStatusRequest(WireModel):
    is_active: bool


class PayTeamRequest(WireModel):
    """Payment with the native coins attached to the call."""

    amount: int = Field(..., ge=0, le=0xFFFFFFFFFFFFFFFF)
    reference: str = Field(default="", max_length=512)
    memo: str = Field(default="", max_length=2048)


class CreateProposalRequest(WireModel):
    reason: str = Field(default="", max_length=4096)
    allocations: list[AllocationModel] = Field(default_factory=list, max_length=256)


class VoteRequest(WireModel):
    support: bool


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class IdResponse(WireModel):
    """Id of the entity created by the call."""

    id: str


class SweepResponse(WireModel):
    swept: list[str] = Field(default_factory=list)


class BalanceResponse(WireModel):
    wallet: str
    balance: str


class EventPayload(WireModel):
    """Event payload for SSE streaming."""

    sequence: int
    event: str
    event_type: str
    caller: str
    timestamp: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    reason: str | None = None
    correlation_id: str | None = None
