"""Ledger Storage - Typed access to the namespaced key layout.

Every key is scoped under ``autosplit:`` so the ledger can share a host
store with other users. Key layout:

    counter:<name>            Args u64
    team:<id>                 Team.encode()
    owner-teams:<owner>       Args Array<u64>
    member-teams:<wallet>     Args Array<u64>
    payment:<id>              Payment.encode()
    team-payments:<teamId>    Args Array<u64>
    proposal:<id>             Proposal.encode()
    team-proposals:<teamId>   Args Array<u64>
    owner                     Args string

No other component touches the underlying store directly.
"""

from __future__ import annotations

from ..ledger.codec import ArgsReader, ArgsWriter
from ..ledger.models import Payment, Proposal, Team, decode_u64, encode_u64
from .database import KVStore

PREFIX = "autosplit:"

TEAM_COUNTER = "team"
PAYMENT_COUNTER = "payment"
PROPOSAL_COUNTER = "proposal"


def team_key(team_id: int) -> str:
    return f"team:{team_id}"


def owner_teams_key(owner: str) -> str:
    return f"owner-teams:{owner}"


def member_teams_key(wallet: str) -> str:
    return f"member-teams:{wallet}"


def payment_key(payment_id: int) -> str:
    return f"payment:{payment_id}"


def team_payments_key(team_id: int) -> str:
    return f"team-payments:{team_id}"


def proposal_key(proposal_id: int) -> str:
    return f"proposal:{proposal_id}"


def team_proposals_key(team_id: int) -> str:
    return f"team-proposals:{team_id}"


OWNER_KEY = "owner"


class LedgerStorage:
    """Typed read/write layer over a host ``KVStore``."""

    def __init__(self, store: KVStore, prefix: str = PREFIX) -> None:
        self._store = store
        self._prefix = prefix

    @property
    def store(self) -> KVStore:
        return self._store

    # -----------------------------------------------------------------------
    # Raw access
    # -----------------------------------------------------------------------

    def _key(self, key: str) -> str:
        return self._prefix + key

    def get(self, key: str) -> bytes:
        return self._store.get(self._key(key))

    def set(self, key: str, value: bytes) -> None:
        self._store.set(self._key(key), value)

    def has(self, key: str) -> bool:
        return self._store.has(self._key(key))

    # -----------------------------------------------------------------------
    # Counters
    # -----------------------------------------------------------------------

    def read_counter(self, name: str) -> int:
        key = f"counter:{name}"
        if not self.has(key):
            return 0
        return decode_u64(self.get(key), "counter")

    def write_counter(self, name: str, value: int) -> None:
        self.set(f"counter:{name}", encode_u64(value))

    def increment_counter(self, name: str) -> int:
        value = self.read_counter(name) + 1
        self.write_counter(name, value)
        return value

    # -----------------------------------------------------------------------
    # Id indexes
    # -----------------------------------------------------------------------

    def read_ids(self, key: str) -> list[int]:
        if not self.has(key):
            return []
        args = ArgsReader(self.get(key))
        ids = args.next_u64_array("id array")
        args.expect_end("id array")
        return ids

    def append_unique_id(self, key: str, value: int) -> bool:
        """Append ``value`` to the index unless present. Returns True if added."""
        ids = self.read_ids(key)
        if value in ids:
            return False
        ids.append(value)
        self.set(key, ArgsWriter().add_u64_array(ids).serialize())
        return True

    # -----------------------------------------------------------------------
    # Teams
    # -----------------------------------------------------------------------

    def save_team(self, team: Team) -> None:
        self.set(team_key(team.id), team.encode())

    def load_team(self, team_id: int) -> Team:
        return Team.decode(self.get(team_key(team_id)))

    def team_exists(self, team_id: int) -> bool:
        return self.has(team_key(team_id))

    def track_owner_team(self, owner: str, team_id: int) -> None:
        self.append_unique_id(owner_teams_key(owner), team_id)

    def owner_team_ids(self, owner: str) -> list[int]:
        return self.read_ids(owner_teams_key(owner))

    def track_member_team(self, wallet: str, team_id: int) -> None:
        self.append_unique_id(member_teams_key(wallet), team_id)

    def member_team_ids(self, wallet: str) -> list[int]:
        return self.read_ids(member_teams_key(wallet))

    # -----------------------------------------------------------------------
    # Payments
    # -----------------------------------------------------------------------

    def save_payment(self, payment: Payment) -> None:
        self.set(payment_key(payment.id), payment.encode())
        self.append_unique_id(team_payments_key(payment.team_id), payment.id)

    def load_payment(self, payment_id: int) -> Payment:
        return Payment.decode(self.get(payment_key(payment_id)))

    def payment_exists(self, payment_id: int) -> bool:
        return self.has(payment_key(payment_id))

    def team_payment_ids(self, team_id: int) -> list[int]:
        return self.read_ids(team_payments_key(team_id))

    # -----------------------------------------------------------------------
    # Proposals
    # -----------------------------------------------------------------------

    def save_proposal(self, proposal: Proposal) -> None:
        self.set(proposal_key(proposal.id), proposal.encode())
        self.append_unique_id(team_proposals_key(proposal.team_id), proposal.id)

    def load_proposal(self, proposal_id: int) -> Proposal:
        return Proposal.decode(self.get(proposal_key(proposal_id)))

    def proposal_exists(self, proposal_id: int) -> bool:
        return self.has(proposal_key(proposal_id))

    def team_proposal_ids(self, team_id: int) -> list[int]:
        return self.read_ids(team_proposals_key(team_id))

    # -----------------------------------------------------------------------
    # Contract owner
    # -----------------------------------------------------------------------

    def save_owner(self, owner: str) -> None:
        self.set(OWNER_KEY, ArgsWriter().add_string(owner).serialize())

    def load_owner(self) -> str:
        args = ArgsReader(self.get(OWNER_KEY))
        owner = args.next_string("owner")
        args.expect_end("owner")
        return owner

    def has_owner(self) -> bool:
        return self.has(OWNER_KEY)
