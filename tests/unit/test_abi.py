"""Unit tests for Args-encoded entry-point dispatch."""

import json

import pytest

from conftest import ALICE, BOB, OWNER, PAYER, T0, ctx

from autosplit.errors import DecodeError, NotFoundError
from autosplit.ledger import abi
from autosplit.ledger.codec import ArgsWriter
from autosplit.ledger.core import DEFAULT_VOTING_WINDOW
from autosplit.ledger.models import Allocation, decode_u64


def call(ledger, queries, context, name, payload=b""):
    return abi.dispatch(ledger, queries, context, name, payload)


def add_member_args(team_id, wallet, role, percentage):
    return (
        ArgsWriter()
        .add_u64(team_id)
        .add_string(wallet)
        .add_string(role)
        .add_u16(percentage)
        .serialize()
    )


@pytest.fixture
def abi_team(ledger, queries):
    team_id = decode_u64(
        call(ledger, queries, ctx(OWNER), "createTeam", abi.create_team_args("Studio", tags=["x"]))
    )
    call(ledger, queries, ctx(OWNER), "addMember", add_member_args(team_id, ALICE, "a", 6000))
    call(ledger, queries, ctx(OWNER), "addMember", add_member_args(team_id, BOB, "b", 4000))
    return team_id


@pytest.mark.unit
class TestDispatch:
    """Tests for binary entry points matching direct calls."""

    def test_entry_point_table(self):
        assert set(abi.READ_ENTRY_POINTS) <= set(abi.ENTRY_POINTS)
        assert len(abi.ENTRY_POINTS) == 14

    def test_unknown_entry_point(self, ledger, queries):
        with pytest.raises(NotFoundError):
            call(ledger, queries, ctx(OWNER), "withdrawAll")

    def test_create_team_returns_id(self, ledger, queries, abi_team):
        team = json.loads(call(ledger, queries, ctx(OWNER), "getTeam", ArgsWriter().add_u64(abi_team).serialize()))
        assert team["name"] == "Studio"
        assert team["tags"] == ["x"]
        assert [m["wallet"] for m in team["members"]] == [ALICE, BOB]

    def test_missing_argument_is_decode_error(self, ledger, queries):
        payload = ArgsWriter().add_string("Studio").serialize()
        with pytest.raises(DecodeError, match="Missing team description"):
            call(ledger, queries, ctx(OWNER), "createTeam", payload)
        assert not ledger.storage.team_exists(1)

    def test_pay_team_with_and_without_memo(self, ledger, queries, bank, abi_team):
        base = ArgsWriter().add_u64(abi_team).add_string("inv-1")
        first = call(ledger, queries, ctx(PAYER, amount=1000), "payTeam", base.serialize())
        second = call(
            ledger,
            queries,
            ctx(PAYER, amount=10),
            "payTeam",
            ArgsWriter().add_u64(abi_team).add_string("inv-2").add_string("memo").serialize(),
        )
        assert decode_u64(first) == 1
        assert decode_u64(second) == 2
        assert bank.balance_of(ALICE) == 606

        raw = call(
            ledger,
            queries,
            ctx(OWNER),
            "getPaymentsForTeam",
            ArgsWriter().add_u64(abi_team).add_u32(1).serialize(),
        )
        payments = json.loads(raw.decode("utf-8"))
        assert [(p["reference"], p["memo"]) for p in payments] == [("inv-2", "memo")]

    def test_set_team_status(self, ledger, queries, abi_team):
        payload = ArgsWriter().add_u64(abi_team).add_bool(False).serialize()
        assert call(ledger, queries, ctx(OWNER), "setTeamStatus", payload) == b""
        assert not ledger.storage.load_team(abi_team).is_active

    def test_proposal_lifecycle(self, ledger, queries, abi_team):
        allocations = [Allocation(ALICE, "lead", 10000)]
        proposal_id = decode_u64(
            call(
                ledger,
                queries,
                ctx(OWNER),
                "createSplitProposal",
                abi.create_split_proposal_args(abi_team, "solo", allocations),
            )
        )
        vote = ArgsWriter().add_u64(proposal_id).add_bool(True).serialize()
        assert call(ledger, queries, ctx(ALICE), "voteOnProposal", vote) == b""

        closed = T0 + DEFAULT_VOTING_WINDOW
        execute = ArgsWriter().add_u64(proposal_id).serialize()
        assert call(ledger, queries, ctx(PAYER, closed), "executeProposal", execute) == b""

        proposals = json.loads(
            call(
                ledger,
                queries,
                ctx(OWNER),
                "getProposalsForTeam",
                ArgsWriter().add_u64(abi_team).serialize(),
            )
        )
        assert proposals[0]["executed"] is True
        assert proposals[0]["yesVotes"] == 6000

        sweep = ArgsWriter().add_u64(abi_team).serialize()
        assert call(ledger, queries, ctx(PAYER, closed), "sweepTeamProposals", sweep) == b""

    def test_owner_and_member_teams_default_to_caller(self, ledger, queries, abi_team):
        owned = json.loads(call(ledger, queries, ctx(OWNER), "getOwnerTeams"))
        assert [t["id"] for t in owned] == [str(abi_team)]

        member = json.loads(
            call(ledger, queries, ctx(OWNER), "getMemberTeams", ArgsWriter().add_string(BOB).serialize())
        )
        assert [t["id"] for t in member] == [str(abi_team)]

    def test_get_config(self, ledger, queries):
        ledger.initialize(ctx(OWNER))
        assert call(ledger, queries, ctx(ALICE), "getConfig") == b'{"owner":"AU1owner"}'
