"""FastAPI router for the AutoSplit service.

Implements all API endpoints for:
- Teams and members (/teams/*)
- Payments (/teams/{id}/payments)
- Split proposals (/teams/{id}/proposals, /proposals/*)
- Binary entry points (/call/{entrypoint})
- Balances and configuration (/balances/*, /config)
- Event streaming (/events/*)
"""

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from ..ledger.abi import READ_ENTRY_POINTS
from ..ledger.models import Allocation
from .auth import CallerInfo, make_caller_dependency
from .core import AutosplitService
from .models import (
    AddMemberRequest,
    BalanceResponse,
    ConfigOut,
    CreateProposalRequest,
    CreateTeamRequest,
    IdResponse,
    PaymentOut,
    PayTeamRequest,
    ProposalOut,
    SetTeamStatusRequest,
    SweepResponse,
    TeamOut,
    VoteRequest,
)


def build_router(service: AutosplitService) -> APIRouter:
    """Build the AutoSplit API router.

    Args:
        service: The AutosplitService instance

    Returns:
        Configured APIRouter
    """
    router = APIRouter()

    # Scope dependencies
    reader = make_caller_dependency("read")
    writer = make_caller_dependency("write")

    # -----------------------------------------------------------------------
    # Team Endpoints
    # -----------------------------------------------------------------------

    @router.post("/teams", response_model=IdResponse, status_code=status.HTTP_201_CREATED)
    def create_team(
        request: CreateTeamRequest,
        caller: Annotated[CallerInfo, Depends(writer)],
    ) -> IdResponse:
        """Create a team owned by the caller."""
        team_id = service.create_team(
            caller.wallet,
            request.name,
            request.description,
            request.currency,
            request.avatar,
            request.tags,
            request.slug,
        )
        return IdResponse(id=str(team_id))

    @router.get("/teams/{team_id}", response_model=TeamOut)
    def get_team(
        team_id: int,
        caller: Annotated[CallerInfo, Depends(reader)],
    ):
        return service.get_team(team_id)

    @router.post("/teams/{team_id}/members", status_code=status.HTTP_204_NO_CONTENT)
    def add_member(
        team_id: int,
        request: AddMemberRequest,
        caller: Annotated[CallerInfo, Depends(writer)],
    ) -> Response:
        service.add_member(
            caller.wallet, team_id, request.wallet, request.role, request.percentage
        )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.put("/teams/{team_id}/status", status_code=status.HTTP_204_NO_CONTENT)
    def set_team_status(
        team_id: int,
        request: SetTeamStatusRequest,
        caller: Annotated[CallerInfo, Depends(writer)],
    ) -> Response:
        """Pause or resume incoming payments."""
        service.set_team_status(caller.wallet, team_id, request.is_active)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.get("/owners/{owner}/teams", response_model=list[TeamOut])
    def get_owner_teams(
        owner: str,
        caller: Annotated[CallerInfo, Depends(reader)],
    ):
        return service.get_owner_teams(caller.wallet, owner)

    @router.get("/members/{wallet}/teams", response_model=list[TeamOut])
    def get_member_teams(
        wallet: str,
        caller: Annotated[CallerInfo, Depends(reader)],
    ):
        return service.get_member_teams(caller.wallet, wallet)

    @router.get("/me/teams/owned", response_model=list[TeamOut])
    def get_my_owned_teams(caller: Annotated[CallerInfo, Depends(reader)]):
        """Teams created by the calling wallet."""
        return service.get_owner_teams(caller.wallet)

    @router.get("/me/teams/member", response_model=list[TeamOut])
    def get_my_member_teams(caller: Annotated[CallerInfo, Depends(reader)]):
        """Teams the calling wallet has been registered in."""
        return service.get_member_teams(caller.wallet)

    # -----------------------------------------------------------------------
    # Payment Endpoints
    # -----------------------------------------------------------------------

    @router.post(
        "/teams/{team_id}/payments",
        response_model=IdResponse,
        status_code=status.HTTP_201_CREATED,
    )
    def pay_team(
        team_id: int,
        request: PayTeamRequest,
        caller: Annotated[CallerInfo, Depends(writer)],
    ) -> IdResponse:
        """Pay a team; the amount is attached to the call and split at once."""
        payment_id = service.pay_team(
            caller.wallet, team_id, request.amount, request.reference, request.memo
        )
        return IdResponse(id=str(payment_id))

    @router.get("/teams/{team_id}/payments", response_model=list[PaymentOut])
    def get_payments_for_team(
        team_id: int,
        caller: Annotated[CallerInfo, Depends(reader)],
        limit: int | None = Query(default=None),
    ):
        """Most recent payments, newest first.

        Args:
            limit: Maximum number of payments (default from configuration)
        """
        return service.get_payments_for_team(team_id, limit)

    # -----------------------------------------------------------------------
    # Proposal Endpoints
    # -----------------------------------------------------------------------

    @router.post(
        "/teams/{team_id}/proposals",
        response_model=IdResponse,
        status_code=status.HTTP_201_CREATED,
    )
    def create_split_proposal(
        team_id: int,
        request: CreateProposalRequest,
        caller: Annotated[CallerInfo, Depends(writer)],
    ) -> IdResponse:
        allocations = [
            Allocation(member=a.member, role=a.role, percentage=a.percentage)
            for a in request.allocations
        ]
        proposal_id = service.create_split_proposal(
            caller.wallet, team_id, request.reason, allocations
        )
        return IdResponse(id=str(proposal_id))

    @router.get("/teams/{team_id}/proposals", response_model=list[ProposalOut])
    def get_proposals_for_team(
        team_id: int,
        caller: Annotated[CallerInfo, Depends(reader)],
    ):
        return service.get_proposals_for_team(team_id)

    @router.post("/teams/{team_id}/proposals/sweep", response_model=SweepResponse)
    def sweep_team_proposals(
        team_id: int,
        caller: Annotated[CallerInfo, Depends(writer)],
    ) -> SweepResponse:
        """Finalize every expired, unexecuted proposal of the team."""
        swept = service.sweep_team_proposals(caller.wallet, team_id)
        return SweepResponse(swept=[str(proposal_id) for proposal_id in swept])

    @router.post("/proposals/{proposal_id}/votes", status_code=status.HTTP_204_NO_CONTENT)
    def vote_on_proposal(
        proposal_id: int,
        request: VoteRequest,
        caller: Annotated[CallerInfo, Depends(writer)],
    ) -> Response:
        service.vote_on_proposal(caller.wallet, proposal_id, request.support)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.post("/proposals/{proposal_id}/execute", status_code=status.HTTP_204_NO_CONTENT)
    def execute_proposal(
        proposal_id: int,
        caller: Annotated[CallerInfo, Depends(writer)],
    ) -> Response:
        service.execute_proposal(caller.wallet, proposal_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # -----------------------------------------------------------------------
    # Binary Entry Points
    # -----------------------------------------------------------------------

    @router.post("/call/{entrypoint}")
    async def call_entrypoint(
        entrypoint: str,
        request: Request,
        caller: Annotated[CallerInfo, Depends(reader)],
        amount: int = Query(default=0, ge=0, le=0xFFFFFFFFFFFFFFFF),
    ) -> Response:
        """Run an entry point with an Args-encoded body.

        Args:
            amount: Native coins attached to the call
        """
        if entrypoint not in READ_ENTRY_POINTS and not caller.has_scope("write"):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient scope: requires 'write'",
            )
        payload = await request.body()
        result = await run_in_threadpool(
            service.call, caller.wallet, entrypoint, payload, attached_amount=amount
        )
        return Response(content=result, media_type="application/octet-stream")

    # -----------------------------------------------------------------------
    # Host Endpoints
    # -----------------------------------------------------------------------

    @router.get("/balances/{wallet}", response_model=BalanceResponse)
    def get_balance(
        wallet: str,
        caller: Annotated[CallerInfo, Depends(reader)],
    ) -> BalanceResponse:
        return BalanceResponse(wallet=wallet, balance=str(service.balance_of(wallet)))

    @router.get("/config", response_model=ConfigOut)
    def get_config(caller: Annotated[CallerInfo, Depends(reader)]):
        return service.get_config()

    @router.get("/events/stream")
    async def events_stream(
        caller: Annotated[CallerInfo, Depends(reader)],
    ) -> StreamingResponse:
        """Stream emitted ledger events (Server-Sent Events)."""

        async def event_iterator() -> AsyncIterator[str]:
            async for message in service.subscribe_events():
                yield message

        return StreamingResponse(event_iterator(), media_type="text/event-stream")

    return router


__all__ = ["build_router"]
