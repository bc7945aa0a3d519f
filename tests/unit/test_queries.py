"""Unit tests for the read-only query layer."""

import pytest

from conftest import ALICE, BOB, CAROL, OWNER, PAYER, T0, ctx

from autosplit.errors import NotFoundError
from autosplit.ledger.models import Allocation
from autosplit.ledger.queries import LedgerQueries


@pytest.mark.unit
class TestTeamQueries:
    """Tests for team lookups."""

    def test_get_team_missing(self, queries):
        with pytest.raises(NotFoundError):
            queries.get_team(1)

    def test_owner_teams_default_to_caller(self, ledger, queries):
        ledger.create_team(ctx(OWNER), "One")
        ledger.create_team(ctx(ALICE), "Two")
        ledger.create_team(ctx(OWNER), "Three")

        names = [team["name"] for team in queries.get_owner_teams(ctx(OWNER))]
        assert names == ["One", "Three"]
        assert [t["name"] for t in queries.get_owner_teams(ctx(OWNER), ALICE)] == ["Two"]
        assert queries.get_owner_teams(ctx(CAROL)) == []

    def test_member_teams(self, ledger, queries, team_id):
        other = ledger.create_team(ctx(CAROL), "Other")
        ledger.add_member(ctx(CAROL), other, ALICE, "", 10000)

        ids = [team["id"] for team in queries.get_member_teams(ctx(ALICE))]
        assert ids == [str(team_id), str(other)]
        assert [t["id"] for t in queries.get_member_teams(ctx(OWNER), BOB)] == [str(team_id)]


@pytest.mark.unit
class TestPaymentQueries:
    """Tests for getPaymentsForTeam."""

    def pay(self, ledger, team_id, count):
        for i in range(count):
            ledger.pay_team(ctx(PAYER, T0 + i, amount=100 + i), team_id, f"ref-{i}")

    def test_newest_first_with_default_limit(self, ledger, queries, team_id):
        self.pay(ledger, team_id, 30)
        payments = queries.get_payments_for_team(team_id)
        assert len(payments) == 25
        assert payments[0]["id"] == "30"
        assert payments[-1]["id"] == "6"

    def test_explicit_limit(self, ledger, queries, team_id):
        self.pay(ledger, team_id, 5)
        assert [p["reference"] for p in queries.get_payments_for_team(team_id, 2)] == [
            "ref-4",
            "ref-3",
        ]
        assert len(queries.get_payments_for_team(team_id, 100)) == 5
        assert queries.get_payments_for_team(team_id, 0) == []

    def test_configured_default_limit(self, ledger, team_id):
        self.pay(ledger, team_id, 4)
        queries = LedgerQueries(ledger.storage, default_payment_limit=3)
        assert len(queries.get_payments_for_team(team_id)) == 3

    def test_missing_team(self, queries):
        with pytest.raises(NotFoundError):
            queries.get_payments_for_team(9)

    def test_get_payment(self, ledger, queries, team_id):
        self.pay(ledger, team_id, 1)
        assert queries.get_payment(1)["amount"] == "100"
        with pytest.raises(NotFoundError):
            queries.get_payment(2)


@pytest.mark.unit
class TestProposalQueries:
    """Tests for getProposalsForTeam."""

    def test_oldest_first_with_team_name(self, ledger, queries, team_id):
        allocations = [Allocation(ALICE, "", 10000)]
        first = ledger.create_split_proposal(ctx(OWNER), team_id, "first", allocations)
        second = ledger.create_split_proposal(ctx(OWNER), team_id, "second", allocations)

        proposals = queries.get_proposals_for_team(team_id)
        assert [p["id"] for p in proposals] == [str(first), str(second)]
        assert {p["teamName"] for p in proposals} == {"Studio"}

    def test_missing_team(self, queries):
        with pytest.raises(NotFoundError):
            queries.get_proposals_for_team(1)


@pytest.mark.unit
class TestConfigQuery:
    """Tests for getConfig."""

    def test_requires_initialization(self, ledger, queries):
        with pytest.raises(NotFoundError):
            queries.get_config()
        ledger.initialize(ctx(OWNER))
        assert queries.get_config() == {"owner": OWNER}


@pytest.mark.unit
def test_reads_never_mutate(ledger, queries, team_id, store):
    snapshot = {key: store.get(key) for key in store.keys()}
    queries.get_team(team_id)
    queries.get_owner_teams(ctx(OWNER))
    queries.get_member_teams(ctx(ALICE))
    queries.get_payments_for_team(team_id)
    queries.get_proposals_for_team(team_id)
    assert {key: store.get(key) for key in store.keys()} == snapshot
