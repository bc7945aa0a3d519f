"""Ledger layer - Entities, binary codec, and the split state machine."""

from .codec import ArgsReader, ArgsWriter
from .models import (
    BASIS_POINTS,
    Allocation,
    Payment,
    Proposal,
    ProposalVote,
    Team,
    TeamMember,
)

__all__ = [
    "ArgsReader",
    "ArgsWriter",
    "BASIS_POINTS",
    "Allocation",
    "Payment",
    "Proposal",
    "ProposalVote",
    "Team",
    "TeamMember",
]
