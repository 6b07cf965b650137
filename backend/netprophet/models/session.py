"""Session mount and aggregate views exposed over HTTP."""

from typing import Optional

from pydantic import Field

from netprophet.models.prediction import (
    CamelModel,
    MatchSnapshot,
    OutrightsEntry,
    ParlayEligibility,
    SlipEntry,
)
from netprophet.models.wallet import Wallet


class SessionStartRequest(CamelModel):
    user_id: Optional[str] = None
    claimed_player_id: Optional[str] = None
    access_token: Optional[str] = None  # forwarded to the ledger as bearer token


class SlipState(CamelModel):
    predictions: list[SlipEntry]
    outrights_predictions: list[OutrightsEntry]
    is_collapsed: bool
    total_stake: float
    total_potential_winnings: float
    parlay: ParlayEligibility


class SessionState(CamelModel):
    session_id: str
    wallet: Wallet
    slip: SlipState


class SlipCollapseUpdate(CamelModel):
    collapsed: bool


class FormSubmitRequest(CamelModel):
    """Move the current form draft for a match into the slip."""
    match: MatchSnapshot
    bet_amount: Optional[float] = Field(default=None, ge=0)
