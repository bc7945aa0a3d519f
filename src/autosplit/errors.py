"""Error taxonomy shared by the ledger, persistence and service layers.

Every failure is a rejected call: errors propagate synchronously and the
surrounding atomic unit discards everything the call wrote.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all rejected ledger calls."""

    reason = "ledger_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Malformed or missing required input."""

    reason = "validation"


class DecodeError(ValidationError):
    """Binary payload is truncated or malformed."""

    reason = "decode"


class NotFoundError(LedgerError):
    """Referenced team, proposal or payment does not exist."""

    reason = "not_found"


class MissingKeyError(NotFoundError):
    """Storage key is absent (distinct from an empty value)."""

    reason = "missing_key"


class AuthorizationError(LedgerError):
    """Caller lacks the required role (team owner or team member)."""

    reason = "authorization"


class InvariantViolation(LedgerError):
    """Operation would break the 100% split or exact allocation invariant."""

    reason = "invariant"


class InsufficientBalanceError(InvariantViolation):
    """Contract balance cannot cover a transfer."""

    reason = "insufficient_balance"


class ConflictError(LedgerError):
    """Duplicate member, duplicate vote, or a proposal in the wrong state."""

    reason = "conflict"


class ProposalRejectedError(ConflictError):
    """Proposal did not reach a strict majority of cast weight."""

    reason = "proposal_rejected"


__all__ = [
    "LedgerError",
    "ValidationError",
    "DecodeError",
    "NotFoundError",
    "MissingKeyError",
    "AuthorizationError",
    "InvariantViolation",
    "InsufficientBalanceError",
    "ConflictError",
    "ProposalRejectedError",
]
