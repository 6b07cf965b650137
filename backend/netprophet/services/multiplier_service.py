"""
backend/netprophet/services/multiplier_service.py

Purpose:
    Odds multiplier for a structured match prediction. The base is the odds of
    the predicted winner; every prediction dimension the user filled in adds a
    fixed bonus. Match results are parsed into tagged variants and each variant
    decides which set-level fields count.

Dependencies:
    - netprophet.config
    - netprophet.models.prediction
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from netprophet.config import settings
from netprophet.models.prediction import (
    TIEBREAK_SET_NUMBERS,
    TIEBREAK_SET_SCORES,
    MatchFormat,
    PlayerLine,
    PredictionOptions,
)

logger = logging.getLogger("netprophet.multiplier_service")

NEUTRAL_MULTIPLIER = 1.0


# ---------- Match result variants ----------

@dataclass(frozen=True)
class StraightSets:
    """3-0 / 2-0 and mirrors. Set winners are implied, only scores are predicted."""
    sets: int

    @property
    def sets_in_play(self) -> int:
        return self.sets

    def set_winner_dimensions(self, prediction: PredictionOptions) -> int:
        return 0

    def set_score_dimensions(self, prediction: PredictionOptions) -> int:
        return _count_filled(prediction.set_score, self.sets_in_play)

    def max_set_dimensions(self) -> int:
        return self.sets


@dataclass(frozen=True)
class DecidingSet:
    """2-1 / 1-2. Picking one of the first two set winners fixes the other."""

    @property
    def sets_in_play(self) -> int:
        return 2

    def set_winner_dimensions(self, prediction: PredictionOptions) -> int:
        return 1 if _count_filled(prediction.set_winner, self.sets_in_play) else 0

    def set_score_dimensions(self, prediction: PredictionOptions) -> int:
        return _count_filled(prediction.set_score, self.sets_in_play)

    def max_set_dimensions(self) -> int:
        return 1 + self.sets_in_play


@dataclass(frozen=True)
class MultiSet:
    """3-1 / 3-2 and mirrors. Every set winner is an independent pick."""
    sets: int

    @property
    def sets_in_play(self) -> int:
        return self.sets

    def set_winner_dimensions(self, prediction: PredictionOptions) -> int:
        return _count_filled(prediction.set_winner, self.sets_in_play)

    def set_score_dimensions(self, prediction: PredictionOptions) -> int:
        return _count_filled(prediction.set_score, self.sets_in_play)

    def max_set_dimensions(self) -> int:
        return 2 * self.sets


MatchResultVariant = Union[StraightSets, DecidingSet, MultiSet]


def _count_filled(getter, sets: int) -> int:
    return sum(1 for n in range(1, sets + 1) if getter(n))


def split_match_result(match_result: str) -> Optional[tuple[int, int]]:
    """'3-1' -> (3, 1). None when the value is not a set-count pair."""
    parts = match_result.strip().split("-") if match_result else []
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        return None
    return int(parts[0]), int(parts[1])


def valid_match_results(match_format: MatchFormat) -> tuple[str, ...]:
    """All set-count outcomes for a format, player1's sets first."""
    need = match_format.sets_to_win
    results = []
    for loser_sets in range(need):
        results.append(f"{need}-{loser_sets}")
        results.append(f"{loser_sets}-{need}")
    return tuple(results)


def parse_match_result(
    match_result: str, match_format: MatchFormat = MatchFormat.best_of_3,
) -> Optional[MatchResultVariant]:
    """Parse a result string into its variant. Unknown or off-format results -> None."""
    if match_result not in valid_match_results(match_format):
        return None
    sets1, sets2 = split_match_result(match_result)
    if min(sets1, sets2) == 0:
        return StraightSets(sets1 + sets2)
    if (sets1, sets2) in ((2, 1), (1, 2)):
        return DecidingSet()
    return MultiSet(sets1 + sets2)


# ---------- Multiplier ----------

@dataclass(frozen=True)
class MultiplierBreakdown:
    base: float
    match_result: int = 0
    set_winners: int = 0
    set_scores: int = 0
    tiebreaks: int = 0
    super_tiebreak: int = 0
    dimension_bonus: float = 0.2

    @property
    def dimensions(self) -> int:
        return (
            self.match_result + self.set_winners + self.set_scores
            + self.tiebreaks + self.super_tiebreak
        )

    @property
    def bonus(self) -> float:
        return self.dimensions * self.dimension_bonus

    @property
    def total(self) -> float:
        if self.base <= 0:
            return NEUTRAL_MULTIPLIER
        return self.base + self.bonus


def winner_odds(winner: str, player1: PlayerLine | None, player2: PlayerLine | None) -> float:
    """Odds of the named winner, 0.0 when the name matches neither player."""
    if not winner:
        return 0.0
    for player in (player1, player2):
        if player is not None and player.name == winner:
            return player.odds
    return 0.0


def multiplier_breakdown(
    winner: str,
    player1: PlayerLine | None,
    player2: PlayerLine | None,
    prediction: PredictionOptions,
    match_format: MatchFormat,
) -> MultiplierBreakdown:
    """Per-dimension view of the multiplier (what the bonus display renders)."""
    bonus = settings.MULTIPLIER_DIMENSION_BONUS
    odds = winner_odds(winner, player1, player2)
    if odds < 1.0:
        if winner:
            logger.debug("No usable odds for winner %r (odds=%s), neutral multiplier", winner, odds)
        return MultiplierBreakdown(base=0.0, dimension_bonus=bonus)

    variant = parse_match_result(prediction.match_result, match_format)
    if variant is None:
        return MultiplierBreakdown(base=odds, dimension_bonus=bonus)

    return MultiplierBreakdown(
        base=odds,
        match_result=1,
        set_winners=variant.set_winner_dimensions(prediction),
        set_scores=variant.set_score_dimensions(prediction),
        tiebreaks=_tiebreak_dimensions(prediction),
        super_tiebreak=1 if isinstance(variant, DecidingSet) and prediction.super_tie_break_score else 0,
        dimension_bonus=bonus,
    )


def _tiebreak_dimensions(prediction: PredictionOptions) -> int:
    # A tiebreak detail only counts behind a 7-6 / 6-7 set score
    return sum(
        1 for n in TIEBREAK_SET_NUMBERS
        if prediction.tiebreak_score(n) and prediction.set_score(n) in TIEBREAK_SET_SCORES
    )


def compute_multiplier(
    winner: str,
    player1: PlayerLine | None,
    player2: PlayerLine | None,
    prediction: PredictionOptions,
    match_format: MatchFormat,
) -> float:
    """Odds multiplier for a prediction. Never rounded; 1.0 when no bet is possible."""
    return multiplier_breakdown(winner, player1, player2, prediction, match_format).total


def max_bonus(prediction: PredictionOptions, match_format: MatchFormat) -> float:
    """Largest bonus still reachable with the current match result."""
    bonus = settings.MULTIPLIER_DIMENSION_BONUS
    variant = parse_match_result(prediction.match_result, match_format)
    if variant is None:
        return bonus  # only the result itself is on offer
    dimensions = 1 + variant.max_set_dimensions() + len(TIEBREAK_SET_NUMBERS)
    if isinstance(variant, DecidingSet):
        dimensions += 1
    return dimensions * bonus
