"""Unit tests for payTeam split and disbursement."""

import json
import random
import sqlite3

import pytest

from conftest import ALICE, BOB, CAROL, OWNER, PAYER, T0, ctx

from autosplit.errors import (
    ConflictError,
    InsufficientBalanceError,
    InvariantViolation,
    NotFoundError,
    ValidationError,
)
from autosplit.ledger.core import SplitLedger, split_amount
from autosplit.ledger.events import EventLog
from autosplit.ledger.models import TeamMember


def make_team(ledger, shares: dict[str, int]) -> int:
    team_id = ledger.create_team(ctx(OWNER), "Studio")
    for wallet, percentage in shares.items():
        ledger.add_member(ctx(OWNER), team_id, wallet, "", percentage)
    return team_id


@pytest.mark.unit
class TestSplitAmount:
    """Tests for the floor-and-remainder split."""

    def test_exact_split(self):
        members = [TeamMember("a", percentage=6000), TeamMember("b", percentage=4000)]
        assert split_amount(1000, members) == ([600, 400], 0)

    def test_remainder(self):
        members = [TeamMember(w, percentage=p) for w, p in (("a", 3333), ("b", 3333), ("c", 3334))]
        assert split_amount(100, members) == ([33, 33, 33], 1)

    def test_full_disbursement_for_random_splits(self):
        rng = random.Random(1234)
        for _ in range(200):
            count = rng.randint(1, 12)
            cuts = sorted(rng.sample(range(1, 10000), count - 1))
            bounds = [0, *cuts, 10000]
            members = [
                TeamMember(f"m{i}", percentage=bounds[i + 1] - bounds[i]) for i in range(count)
            ]
            amount = rng.randint(0, 10**18)
            shares, remainder = split_amount(amount, members)
            assert sum(shares) + remainder == amount
            assert 0 <= remainder < count


@pytest.mark.unit
class TestPayTeam:
    """Tests for payTeam."""

    def test_scenario_two_members(self, ledger, bank, team_id, queries):
        payment_id = ledger.pay_team(ctx(PAYER, T0 + 5, amount=1000), team_id, "invoice-1")
        assert payment_id == 1
        assert bank.balance_of(ALICE) == 600
        assert bank.balance_of(BOB) == 400
        assert bank.balance_of(OWNER) == 0
        assert bank.contract_balance == 0

        team = queries.get_team(team_id)
        assert team["totalReceived"] == "1000"
        assert team["members"][0]["totalEarned"] == "600"
        assert team["members"][0]["lastPaidAt"] == str(T0 + 5)

    def test_scenario_remainder_to_owner(self, ledger, bank):
        team_id = make_team(ledger, {ALICE: 3333, BOB: 3333, CAROL: 3334})
        ledger.pay_team(ctx(PAYER, amount=100), team_id, "")
        assert [bank.balance_of(w) for w in (ALICE, BOB, CAROL)] == [33, 33, 33]
        assert bank.balance_of(OWNER) == 1
        assert bank.contract_balance == 0

    def test_zero_share_member_is_skipped(self, ledger, bank, team_id, queries):
        ledger.pay_team(ctx(PAYER, amount=1), team_id, "")
        # floor(0.6) and floor(0.4) are both zero
        assert bank.balance_of(ALICE) == 0
        assert bank.balance_of(OWNER) == 1
        team = queries.get_team(team_id)
        assert team["members"][0]["lastPaidAt"] == "0"
        assert team["totalReceived"] == "1"

    def test_records_payment_and_event(self, ledger, team_id, queries, event_log):
        ledger.pay_team(ctx(PAYER, amount=500), team_id, "ref", "thanks")
        payments = queries.get_payments_for_team(team_id)
        assert payments == [
            {
                "id": "1",
                "teamId": str(team_id),
                "payer": PAYER,
                "amount": "500",
                "timestamp": str(T0),
                "reference": "ref",
                "memo": "thanks",
            }
        ]
        last = event_log.events()[-1]
        assert last.startswith("autosplit:payment:")
        assert json.loads(last[len("autosplit:payment:"):]) == payments[0]

    def test_missing_team(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.pay_team(ctx(PAYER, amount=1), 7, "")

    def test_paused_team(self, ledger, bank, team_id):
        ledger.set_team_status(ctx(OWNER), team_id, False)
        with pytest.raises(ConflictError):
            ledger.pay_team(ctx(PAYER, amount=100), team_id, "")
        assert bank.transfers == []

    def test_team_without_members(self, ledger, bank):
        team_id = make_team(ledger, {})
        with pytest.raises(InvariantViolation):
            ledger.pay_team(ctx(PAYER, amount=100), team_id, "")
        assert bank.contract_balance == 0

    def test_incomplete_split(self, ledger, bank):
        team_id = make_team(ledger, {ALICE: 5000, BOB: 4999})
        with pytest.raises(InvariantViolation):
            ledger.pay_team(ctx(PAYER, amount=100), team_id, "")
        assert bank.transfers == []

    def test_zero_amount(self, ledger, bank, team_id):
        with pytest.raises(ValidationError):
            ledger.pay_team(ctx(PAYER, amount=0), team_id, "")
        assert bank.transfers == []

    def test_failed_call_leaves_no_trace(self, ledger, bank, team_id, store, event_log):
        snapshot = {key: store.get(key) for key in store.keys()}
        events_before = event_log.events()

        with pytest.raises(ValidationError):
            ledger.pay_team(ctx(PAYER, amount=0), team_id, "")

        assert {key: store.get(key) for key in store.keys()} == snapshot
        assert event_log.events() == events_before
        assert bank.contract_balance == 0

    def test_insufficient_balance_rolls_back_transfers(self, ledger, bank, team_id, store):
        snapshot = {key: store.get(key) for key in store.keys()}

        real_transfer = bank.transfer
        calls = []

        def flaky_transfer(recipient, amount, timestamp=0):
            calls.append(recipient)
            if recipient == BOB:
                raise InsufficientBalanceError("drained")
            real_transfer(recipient, amount, timestamp)

        bank.transfer = flaky_transfer
        with pytest.raises(InvariantViolation):
            ledger.pay_team(ctx(PAYER, amount=1000), team_id, "")

        assert calls == [ALICE, BOB]
        assert bank.balance_of(ALICE) == 0
        assert bank.contract_balance == 0
        assert bank.transfers == []
        assert {key: store.get(key) for key in store.keys()} == snapshot

    def test_payment_ids_are_global(self, ledger, team_id):
        other = make_team(ledger, {CAROL: 10000})
        assert ledger.pay_team(ctx(PAYER, amount=10), team_id, "") == 1
        assert ledger.pay_team(ctx(PAYER, amount=10), other, "") == 2
        assert ledger.pay_team(ctx(PAYER, amount=10), team_id, "") == 3
        assert ledger.storage.team_payment_ids(team_id) == [1, 3]

    def test_total_earned_accumulates(self, ledger, team_id):
        for amount in (1000, 333, 7):
            ledger.pay_team(ctx(PAYER, amount=amount), team_id, "")
        team = ledger.storage.load_team(team_id)
        assert team.total_received == 1340
        assert team.members[0].total_earned == 600 + 199 + 4
        assert team.members[1].total_earned == 400 + 133 + 2


@pytest.mark.unit
class TestCommitFailures:
    """A call either lands in storage, bank and events together or not at all."""

    def test_storage_flush_failure_undoes_transfers(
        self, ledger, bank, team_id, store, event_log, monkeypatch
    ):
        snapshot = {key: store.get(key) for key in store.keys()}
        events_before = event_log.events()

        def failing_set_many(items):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(store, "set_many", failing_set_many)
        with pytest.raises(sqlite3.OperationalError):
            ledger.pay_team(ctx(PAYER, amount=500), team_id, "inv-1")

        assert bank.balance_of(ALICE) == 0
        assert bank.balance_of(BOB) == 0
        assert bank.contract_balance == 0
        assert bank.transfers == []
        assert {key: store.get(key) for key in store.keys()} == snapshot
        assert event_log.events() == events_before

        monkeypatch.undo()
        ledger.set_team_status(ctx(OWNER), team_id, True)
        assert event_log.events() == events_before + [f"autosplit:team.status:{team_id}:active"]
        assert ledger.pay_team(ctx(PAYER, amount=500), team_id, "inv-1") == 1

    def test_event_file_failure_does_not_fail_call(self, store, bank, tmp_path):
        # A directory cannot be opened for appending
        log = EventLog(path=tmp_path)
        ledger = SplitLedger(store, bank=bank, event_log=log)

        team_id = ledger.create_team(ctx(OWNER), "Studio")
        ledger.add_member(ctx(OWNER), team_id, ALICE, "", 10000)
        payment_id = ledger.pay_team(ctx(PAYER, amount=100), team_id, "")

        assert ledger.storage.team_exists(team_id)
        assert payment_id == 1
        assert bank.balance_of(ALICE) == 100
        assert log.count() == 3

    def test_failing_subscriber_does_not_fail_call(self, ledger, bank, team_id, event_log):
        received = []

        def broken(record):
            raise RuntimeError("subscriber gone")

        event_log.subscribe(broken)
        event_log.subscribe(received.append)

        assert ledger.pay_team(ctx(PAYER, amount=100), team_id, "inv-1") == 1
        assert bank.balance_of(ALICE) == 60
        assert [record.event_type for record in received] == ["payment"]

    def test_remaining_records_published_after_failure(self):
        log = EventLog()
        received = []

        def fail_first(record):
            if record.sequence == 1:
                raise RuntimeError("boom")
            received.append(record.event)

        log.subscribe(fail_first)
        log.emit("autosplit:team.created:1")
        log.emit("autosplit:member.added:1:AU1alice")
        log.commit()

        assert log.events() == ["autosplit:team.created:1", "autosplit:member.added:1:AU1alice"]
        assert received == ["autosplit:member.added:1:AU1alice"]
