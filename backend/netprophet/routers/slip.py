"""Prediction slip endpoints: match predictions, outrights, stakes, parlay quote."""

from fastapi import APIRouter, Depends, Query

from netprophet.exceptions import BetValidationError, EntryNotFoundError
from netprophet.models.prediction import BetAmountUpdate, OutrightsEntry, SlipEntry
from netprophet.models.session import SlipCollapseUpdate, SlipState
from netprophet.routers.session import slip_state
from netprophet.services import parlay_service
from netprophet.services.session_service import SessionServices, get_session

router = APIRouter(prefix="/api/slip", tags=["slip"])


@router.get("", response_model=SlipState)
async def get_slip(services: SessionServices = Depends(get_session)):
    return slip_state(services)


@router.put("/collapsed", response_model=SlipState)
async def set_collapsed(body: SlipCollapseUpdate, services: SessionServices = Depends(get_session)):
    services.slip.set_collapsed(body.collapsed)
    return slip_state(services)


# ---------- Match predictions ----------

@router.post("/predictions", response_model=SlipEntry)
async def add_prediction(entry: SlipEntry, services: SessionServices = Depends(get_session)):
    """Add or replace the prediction for a match. Multiplier is recomputed server-side."""
    return await services.slip.add_prediction(entry)


@router.delete("/predictions", response_model=SlipState)
async def clear_predictions(services: SessionServices = Depends(get_session)):
    services.slip.clear_predictions()
    return slip_state(services)


@router.delete("/predictions/{match_id}", response_model=SlipState)
async def remove_prediction(match_id: str, services: SessionServices = Depends(get_session)):
    if not services.slip.remove_prediction(match_id):
        raise EntryNotFoundError(f"No prediction for match {match_id} in the slip.")
    return slip_state(services)


@router.put("/predictions/{match_id}/bet-amount", response_model=SlipEntry)
async def update_bet_amount(
    match_id: str, body: BetAmountUpdate, services: SessionServices = Depends(get_session),
):
    return services.slip.update_prediction_bet_amount(match_id, body.amount)


@router.post("/predictions/{match_id}/settled", response_model=SlipState)
async def acknowledge_settlement(match_id: str, services: SessionServices = Depends(get_session)):
    services.slip.acknowledge_settlement(match_id)
    return slip_state(services)


# ---------- Outrights ----------

@router.post("/outrights", response_model=OutrightsEntry)
async def add_outrights_prediction(entry: OutrightsEntry, services: SessionServices = Depends(get_session)):
    return services.slip.add_outrights_prediction(entry)


@router.delete("/outrights", response_model=SlipState)
async def clear_outrights_predictions(services: SessionServices = Depends(get_session)):
    services.slip.clear_outrights_predictions()
    return slip_state(services)


@router.delete("/outrights/{tournament_id}", response_model=SlipState)
async def remove_outrights_prediction(
    tournament_id: str,
    category: str = Query(""),
    services: SessionServices = Depends(get_session),
):
    if not services.slip.remove_outrights_prediction(tournament_id, category):
        raise EntryNotFoundError(f"No outrights prediction for tournament {tournament_id}.")
    return slip_state(services)


@router.put("/outrights/{tournament_id}/bet-amount", response_model=OutrightsEntry)
async def update_outrights_bet_amount(
    tournament_id: str,
    body: BetAmountUpdate,
    category: str = Query(""),
    services: SessionServices = Depends(get_session),
):
    return services.slip.update_outrights_bet_amount(tournament_id, category, body.amount)


# ---------- Parlay ----------

@router.get("/parlay")
async def parlay_quote(
    stake: float = Query(0.0, ge=0),
    streak: int = Query(0, ge=0),
    services: SessionServices = Depends(get_session),
):
    """Combined odds for the current match predictions, validated against the mirrored balance."""
    entries = services.slip.predictions
    calculation = parlay_service.calculate_parlay(entries, stake, streak)
    error = None
    try:
        parlay_service.validate_parlay_bet(entries, stake, services.wallet.wallet.balance)
    except BetValidationError as exc:
        error = exc.message
    return {
        "is_valid": error is None,
        "error": error,
        "calculation": calculation.model_dump(),
        "bonuses": parlay_service.bonus_descriptions(len(entries), streak),
        "safe_bet_cost": parlay_service.safe_bet_cost(len(entries)),
    }
