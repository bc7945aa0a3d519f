"""Host boundary - Call context and native currency movements.

The hosting environment supplies caller identity, wall-clock time, the
native currency attached to a call, and transfers out of the contract
balance. These are passed explicitly so that tests can inject fakes.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, replace

from ..errors import InsufficientBalanceError, ValidationError

logger = logging.getLogger(__name__)

CONTRACT_ACCOUNT = "contract"


def now_millis() -> int:
    """Host time: milliseconds since the epoch."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CallContext:
    """Identity, time and attached coins for a single entry-point call."""

    caller: str
    timestamp: int
    attached_amount: int = 0

    def __post_init__(self) -> None:
        if not self.caller:
            raise ValidationError("Caller identity required")
        if self.timestamp < 0:
            raise ValidationError("Timestamp must be >= 0")
        if self.attached_amount < 0:
            raise ValidationError("Attached amount must be >= 0")

    def at(self, timestamp: int) -> CallContext:
        return replace(self, timestamp=timestamp)

    def with_amount(self, amount: int) -> CallContext:
        return replace(self, attached_amount=amount)


@dataclass(frozen=True)
class Transfer:
    """A native currency movement out of the contract balance."""

    recipient: str
    amount: int
    timestamp: int


class NativeBank:
    """Native coin balances held by the contract and paid out to wallets.

    Mutations are journaled while a call is in flight so that a failed call
    can be unwound together with its storage writes.
    """

    def __init__(self) -> None:
        self._balances: dict[str, int] = defaultdict(int)
        self._transfers: list[Transfer] = []
        self._journal: tuple[dict[str, int], int] | None = None

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    @property
    def contract_balance(self) -> int:
        return self.balance_of(CONTRACT_ACCOUNT)

    @property
    def transfers(self) -> list[Transfer]:
        return list(self._transfers)

    def receive(self, amount: int) -> None:
        """Credit coins attached to a call to the contract balance."""
        if amount:
            self._balances[CONTRACT_ACCOUNT] += amount

    def transfer(self, recipient: str, amount: int, timestamp: int = 0) -> None:
        if amount <= 0:
            return
        available = self._balances[CONTRACT_ACCOUNT]
        if available < amount:
            raise InsufficientBalanceError(
                f"Contract balance {available} cannot cover transfer of {amount}"
            )
        self._balances[CONTRACT_ACCOUNT] = available - amount
        self._balances[recipient] += amount
        self._transfers.append(Transfer(recipient, amount, timestamp))
        logger.debug("transfer %d to %s", amount, recipient)

    def begin(self) -> None:
        self._journal = (dict(self._balances), len(self._transfers))

    def commit(self) -> None:
        self._journal = None

    def rollback(self) -> None:
        if self._journal is None:
            return
        balances, transfer_count = self._journal
        self._balances = defaultdict(int, balances)
        del self._transfers[transfer_count:]
        self._journal = None


__all__ = ["CallContext", "Transfer", "NativeBank", "CONTRACT_ACCOUNT", "now_millis"]
