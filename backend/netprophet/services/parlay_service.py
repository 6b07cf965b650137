"""
backend/netprophet/services/parlay_service.py

Purpose:
    Parlay (combo bet) math over the slip: combined odds from the entry
    multipliers, a pick-count bonus, a win-streak booster and pre-placement
    validation. Pure functions, nothing is persisted or charged here.

Dependencies:
    - netprophet.config
"""

import logging
from typing import Sequence

from pydantic import BaseModel

from netprophet.config import settings
from netprophet.exceptions import BetValidationError, InsufficientBalanceError
from netprophet.models.prediction import SlipEntry
from netprophet.utils import round_coins

logger = logging.getLogger("netprophet.parlay_service")


class ParlayCalculation(BaseModel):
    base_odds: float = 1.0
    bonus_multiplier: float = 1.0
    streak_booster: float = 1.0
    final_odds: float = 1.0
    potential_winnings: float = 0.0
    bonus_percentage: float = 0.0
    is_eligible_for_bonus: bool = False


def calculate_streak_booster(user_streak: int) -> float:
    """1 + 2% per win from the threshold streak on, capped at +20%."""
    threshold = settings.STREAK_BOOSTER_THRESHOLD
    if user_streak < threshold:
        return 1.0
    boost = min(
        (user_streak - threshold + 1) * settings.STREAK_BOOSTER_PERCENTAGE,
        settings.MAX_STREAK_BOOSTER,
    )
    return 1.0 + boost


def calculate_parlay(entries: Sequence[SlipEntry], stake: float, user_streak: int = 0) -> ParlayCalculation:
    if not entries:
        return ParlayCalculation()

    base_odds = 1.0
    for entry in entries:
        base_odds *= entry.multiplier

    eligible = len(entries) >= settings.PARLAY_BONUS_THRESHOLD
    bonus_multiplier = 1.0 + settings.PARLAY_BONUS_PERCENTAGE if eligible else 1.0
    streak_booster = calculate_streak_booster(user_streak)
    final_odds = base_odds * bonus_multiplier * streak_booster

    return ParlayCalculation(
        base_odds=base_odds,
        bonus_multiplier=bonus_multiplier,
        streak_booster=streak_booster,
        final_odds=final_odds,
        potential_winnings=float(round_coins(stake * final_odds)),
        bonus_percentage=settings.PARLAY_BONUS_PERCENTAGE * 100 if eligible else 0.0,
        is_eligible_for_bonus=eligible,
    )


def bonus_descriptions(pick_count: int, user_streak: int) -> list[str]:
    """Short labels for the bonuses a parlay currently earns."""
    descriptions = []
    if pick_count >= settings.PARLAY_BONUS_THRESHOLD:
        descriptions.append(
            f"{settings.PARLAY_BONUS_PERCENTAGE * 100:.0f}% bonus for {pick_count} picks"
        )
    if user_streak >= settings.STREAK_BOOSTER_THRESHOLD:
        boost = calculate_streak_booster(user_streak) - 1.0
        descriptions.append(f"+{boost * 100:.1f}% streak booster ({user_streak} wins)")
    return descriptions


def safe_bet_cost(prediction_count: int) -> float:
    return settings.SAFE_BET_COST * prediction_count


def validate_parlay_bet(entries: Sequence[SlipEntry], stake: float, balance: float) -> None:
    """Raise BetValidationError when the parlay cannot be placed as-is."""
    if len(entries) < settings.PARLAY_MIN_PICKS:
        raise BetValidationError(
            f"Parlay requires at least {settings.PARLAY_MIN_PICKS} predictions.",
            {"prediction_count": len(entries)},
        )
    if stake <= 0:
        raise BetValidationError("Stake must be greater than 0.", {"stake": stake})
    if stake > balance:
        raise InsufficientBalanceError("Insufficient balance.", {"stake": stake, "balance": balance})
    locked = [entry.match_id for entry in entries if entry.match.is_locked]
    if locked:
        raise BetValidationError("Some matches are already locked.", {"locked_match_ids": locked})
