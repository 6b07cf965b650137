"""Session lifecycle endpoints: mount and logout."""

from fastapi import APIRouter, Depends, Header, status

from netprophet.models.session import SessionStartRequest, SessionState, SlipState
from netprophet.services.session_service import SessionRegistry, SessionServices, get_registry

router = APIRouter(prefix="/api/session", tags=["session"])


def slip_state(services: SessionServices) -> SlipState:
    slip = services.slip
    return SlipState(
        predictions=slip.predictions,
        outrights_predictions=slip.outrights_predictions,
        is_collapsed=slip.is_collapsed,
        total_stake=slip.total_stake(),
        total_potential_winnings=slip.total_potential_winnings(),
        parlay=slip.get_parlay_eligibility(),
    )


@router.post("", response_model=SessionState, status_code=status.HTTP_201_CREATED)
async def start_session(
    body: SessionStartRequest,
    x_session_id: str | None = Header(None, alias="X-Session-ID"),
    registry: SessionRegistry = Depends(get_registry),
):
    """Mount a session. Re-mounting an existing id reloads its persisted state."""
    services = await registry.start(
        user_id=body.user_id,
        claimed_player_id=body.claimed_player_id,
        access_token=body.access_token,
        session_id=x_session_id,
    )
    return SessionState(
        session_id=services.session_id,
        wallet=services.wallet.wallet,
        slip=slip_state(services),
    )


@router.delete("")
async def end_session(
    x_session_id: str = Header(..., alias="X-Session-ID"),
    registry: SessionRegistry = Depends(get_registry),
):
    registry.end(x_session_id)
    return {"message": "Session ended."}
