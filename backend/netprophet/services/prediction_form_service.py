"""
backend/netprophet/services/prediction_form_service.py

Purpose:
    Dependent-field editing of a single match prediction. Each edit returns a
    new PredictionOptions record; the form stage is always re-derived from the
    record so only raw field values need persisting.

    Rules:
    - winner change clears match result and every set-level field
    - match result change clears set-level fields, keeps winner
    - straight-set results fill all implied set winners with the match winner
    - deciding-set results mirror set 1/2 winners; amateur format pre-seeds
      the super tiebreak winner
    - a 7-6 / 6-7 set score unlocks that set's tiebreak detail (sets 1-2)

Dependencies:
    - netprophet.models.prediction
    - netprophet.services.multiplier_service
"""

from __future__ import annotations

import logging
import re
from enum import Enum

from netprophet.exceptions import InvalidSuperTiebreakScoreError, PredictionValidationError
from netprophet.models.prediction import (
    DOWNSTREAM_FIELDS,
    SET_NUMBERS,
    TIEBREAK_SET_NUMBERS,
    TIEBREAK_SET_SCORES,
    MatchSnapshot,
    PredictionOptions,
)
from netprophet.services.multiplier_service import (
    DecidingSet,
    StraightSets,
    parse_match_result,
    split_match_result,
    valid_match_results,
)
from netprophet.utils import camel_alias

logger = logging.getLogger("netprophet.prediction_form_service")

SUPER_TIEBREAK_MIN_POINTS = 10
_SCORE_RE = re.compile(r"^\d+-\d+$")

# Side-market fields edited directly, no dependencies.
_FREE_FIELDS = ("tie_break", "total_games", "aces_leader", "double_faults", "break_points")

_FIELD_NAMES = {camel_alias(name): name for name in PredictionOptions.model_fields}
_FIELD_NAMES.update({name: name for name in PredictionOptions.model_fields})


class PredictionStage(str, Enum):
    EMPTY = "empty"
    WINNER_CHOSEN = "winner_chosen"
    RESULT_CHOSEN = "result_chosen"
    STRAIGHT_SETS_AUTO_FILLED = "straight_sets_auto_filled"
    SET_WINNERS_PARTIAL = "set_winners_partial"
    SET_WINNERS_COMPLETE = "set_winners_complete"
    SCORES_PARTIAL = "scores_partial"
    SCORES_COMPLETE = "scores_complete"
    TIEBREAKS_PENDING = "tiebreaks_pending"
    TIEBREAKS_COMPLETE = "tiebreaks_complete"
    SUPER_TIEBREAK_PENDING = "super_tiebreak_pending"
    SUPER_TIEBREAK_COMPLETE = "super_tiebreak_complete"


# ---------- Score validation ----------

def _parse_score(score: str) -> tuple[int, int] | None:
    if not score or not _SCORE_RE.match(score.strip()):
        return None
    left, right = score.strip().split("-")
    return int(left), int(right)


def validate_super_tiebreak_score(score: str, player1_wins: bool) -> bool:
    """First to 10, win by 2, and the higher side must be the expected winner.

    An empty score is valid (the field is optional).
    """
    if not score or not score.strip():
        return True
    parsed = _parse_score(score)
    if parsed is None:
        return False
    score1, score2 = parsed
    if max(score1, score2) < SUPER_TIEBREAK_MIN_POINTS:
        return False
    if abs(score1 - score2) < 2:
        return False
    if player1_wins and score1 <= score2:
        return False
    if not player1_wins and score2 <= score1:
        return False
    return True


def is_valid_set_score(score: str) -> bool:
    """6-0..6-4, 7-5, 7-6 and mirrors."""
    parsed = _parse_score(score)
    if parsed is None:
        return False
    high, low = max(parsed), min(parsed)
    if high == 6:
        return low <= 4
    if high == 7:
        return low in (5, 6)
    return False


def is_valid_tiebreak_score(score: str) -> bool:
    """7-0..7-5, then extended tiebreaks won by exactly two (8-6, 9-7, ...)."""
    parsed = _parse_score(score)
    if parsed is None:
        return False
    high, low = max(parsed), min(parsed)
    if high == 7:
        return low <= 5
    return high > 7 and high - low == 2


# ---------- Derived views ----------

def sets_to_show(match_result: str, amateur: bool = False) -> int:
    """Number of set rows the form shows for a result (amateur 2-1 -> 2, 3rd is a super tiebreak)."""
    pair = split_match_result(match_result)
    if pair is None:
        return 0
    if amateur and pair in ((2, 1), (1, 2)):
        return 2
    return sum(pair)


def set_winners_from_result(match_result: str, winner: str, player1: str, player2: str) -> list[str]:
    """Winner's sets first, then the loser's."""
    pair = split_match_result(match_result)
    if pair is None or not winner:
        return []
    winner_is_player1 = winner == player1
    winner_sets, loser_sets = pair if winner_is_player1 else (pair[1], pair[0])
    loser = player2 if winner_is_player1 else player1
    return [winner] * winner_sets + [loser] * loser_sets


def derive_stage(prediction: PredictionOptions, match: MatchSnapshot) -> PredictionStage:
    """Re-derive the form stage from raw field values."""
    if not prediction.winner:
        return PredictionStage.EMPTY
    variant = parse_match_result(prediction.match_result, match.format)
    if variant is None:
        return PredictionStage.WINNER_CHOSEN

    in_play = variant.sets_in_play
    scores = sum(1 for n in range(1, in_play + 1) if prediction.set_score(n))
    if isinstance(variant, StraightSets):
        stage = PredictionStage.STRAIGHT_SETS_AUTO_FILLED
    else:
        winners = sum(1 for n in range(1, in_play + 1) if prediction.set_winner(n))
        if winners == 0:
            stage = PredictionStage.RESULT_CHOSEN
        elif winners < in_play:
            stage = PredictionStage.SET_WINNERS_PARTIAL
        else:
            stage = PredictionStage.SET_WINNERS_COMPLETE
    if scores:
        stage = PredictionStage.SCORES_COMPLETE if scores == in_play else PredictionStage.SCORES_PARTIAL

    tiebreak_sets = [n for n in TIEBREAK_SET_NUMBERS if prediction.set_score(n) in TIEBREAK_SET_SCORES]
    tiebreaks_done = bool(tiebreak_sets) and all(prediction.tiebreak_score(n) for n in tiebreak_sets)
    if tiebreak_sets and not tiebreaks_done:
        return PredictionStage.TIEBREAKS_PENDING

    if isinstance(variant, DecidingSet) and match.format.is_amateur:
        if prediction.super_tie_break_score:
            return PredictionStage.SUPER_TIEBREAK_COMPLETE
        if tiebreaks_done or stage == PredictionStage.SCORES_COMPLETE:
            return PredictionStage.SUPER_TIEBREAK_PENDING

    return PredictionStage.TIEBREAKS_COMPLETE if tiebreaks_done else stage


def prediction_count(prediction: PredictionOptions) -> int:
    return len(prediction.filled_fields())


def has_predictions(prediction: PredictionOptions) -> bool:
    return prediction_count(prediction) > 0


def build_prediction_text(prediction: PredictionOptions) -> str:
    """Human summary used in slip cards and bet descriptions."""
    parts: list[str] = []
    if prediction.winner:
        parts.append(f"Winner: {prediction.winner}")
    if prediction.match_result:
        parts.append(f"Result: {prediction.match_result}")
    set_scores = [prediction.set_score(n) for n in SET_NUMBERS if prediction.set_score(n)]
    if set_scores:
        parts.append(f"Sets: {', '.join(set_scores)}")
    for n in TIEBREAK_SET_NUMBERS:
        flag = getattr(prediction, f"set{n}_tie_break")
        if flag:
            parts.append(f"Set {n} TB: {flag}")
            if flag == "yes" and prediction.tiebreak_score(n):
                parts.append(f"Set {n} TB Score: {prediction.tiebreak_score(n)}")
    if prediction.super_tie_break_winner:
        parts.append(f"Super TB Winner: {prediction.super_tie_break_winner}")
        if prediction.super_tie_break_score:
            parts.append(f"Super TB Score: {prediction.super_tie_break_score}")
    for label, value in (
        ("Tie-break", prediction.tie_break),
        ("Total Games", prediction.total_games),
        ("Most Aces", prediction.aces_leader),
        ("Double Faults", prediction.double_faults),
        ("Break Points", prediction.break_points),
    ):
        if value:
            parts.append(f"{label}: {value}")
    return " | ".join(parts)


# ---------- Edits ----------

def _player_names(match: MatchSnapshot) -> tuple[str, str]:
    return match.player1.name, match.player2.name


def _other_player(match: MatchSnapshot, player: str) -> str:
    player1, player2 = _player_names(match)
    return player2 if player == player1 else player1


def _require_player(match: MatchSnapshot, player: str) -> None:
    if player not in _player_names(match):
        raise PredictionValidationError(
            f"Unknown player '{player}'.", {"match_id": match.id, "player": player},
        )


def _cleared(prediction: PredictionOptions, **changes: str) -> PredictionOptions:
    reset = {name: "" for name in DOWNSTREAM_FIELDS if name not in _FREE_FIELDS}
    reset.update(changes)
    return prediction.model_copy(update=reset)


def set_winner(prediction: PredictionOptions, winner: str, match: MatchSnapshot) -> PredictionOptions:
    if winner:
        _require_player(match, winner)
    return _cleared(prediction, winner=winner, match_result="")


def set_match_result(prediction: PredictionOptions, match_result: str, match: MatchSnapshot) -> PredictionOptions:
    if not match_result:
        return _cleared(prediction, match_result="")
    if not prediction.winner:
        raise PredictionValidationError("Pick a winner before the match result.")
    if match_result not in valid_match_results(match.format):
        raise PredictionValidationError(
            f"Result '{match_result}' is not possible in {match.format.value}.",
            {"allowed": list(valid_match_results(match.format))},
        )
    sets1, sets2 = split_match_result(match_result)
    player1_wins = prediction.winner == match.player1.name
    if (sets1 > sets2) != player1_wins:
        raise PredictionValidationError(
            f"Result '{match_result}' contradicts the predicted winner {prediction.winner}.",
        )

    updated = _cleared(prediction, match_result=match_result)
    variant = parse_match_result(match_result, match.format)
    changes: dict[str, str] = {}
    if isinstance(variant, StraightSets):
        for n in range(1, variant.sets + 1):
            changes[f"set{n}_winner"] = prediction.winner
    elif isinstance(variant, DecidingSet) and match.format.is_amateur:
        changes["super_tie_break_winner"] = prediction.winner
    return updated.model_copy(update=changes) if changes else updated


def set_set_winner(
    prediction: PredictionOptions, set_number: int, player: str, match: MatchSnapshot,
) -> PredictionOptions:
    variant = parse_match_result(prediction.match_result, match.format)
    if variant is None:
        raise PredictionValidationError("Pick a match result before set winners.")
    if isinstance(variant, StraightSets):
        raise PredictionValidationError("Set winners are implied by a straight-sets result.")
    if not 1 <= set_number <= variant.sets_in_play:
        raise PredictionValidationError(f"Set {set_number} is not part of a {prediction.match_result} result.")
    if player:
        _require_player(match, player)

    if isinstance(variant, DecidingSet):
        other_set = 2 if set_number == 1 else 1
        other = _other_player(match, player) if player else ""
        return prediction.model_copy(update={
            f"set{set_number}_winner": player,
            f"set{other_set}_winner": other,
        })

    updated = prediction.model_copy(update={f"set{set_number}_winner": player})
    if player:
        sets1, sets2 = split_match_result(prediction.match_result)
        won = sum(1 for n in range(1, variant.sets_in_play + 1) if updated.set_winner(n) == player)
        allowed = sets1 if player == match.player1.name else sets2
        if won > allowed:
            raise PredictionValidationError(
                f"{player} only wins {allowed} sets in a {prediction.match_result} result.",
            )
    return updated


def set_set_score(
    prediction: PredictionOptions, set_number: int, score: str, match: MatchSnapshot,
) -> PredictionOptions:
    variant = parse_match_result(prediction.match_result, match.format)
    if variant is None:
        raise PredictionValidationError("Pick a match result before set scores.")
    if not 1 <= set_number <= variant.sets_in_play:
        raise PredictionValidationError(f"Set {set_number} is not part of a {prediction.match_result} result.")

    changes = {f"set{set_number}_score": score}
    if score:
        if not is_valid_set_score(score):
            raise PredictionValidationError(f"'{score}' is not a valid set score.")
        set_winner_name = prediction.set_winner(set_number)
        if set_winner_name:
            left, right = _parse_score(score)
            if (left > right) != (set_winner_name == match.player1.name):
                raise PredictionValidationError(
                    f"Set {set_number} score '{score}' contradicts set winner {set_winner_name}.",
                )
    if set_number in TIEBREAK_SET_NUMBERS:
        if score in TIEBREAK_SET_SCORES:
            changes[f"set{set_number}_tie_break"] = "yes"
        elif prediction.set_score(set_number) != score:
            changes[f"set{set_number}_tie_break"] = ""
            changes[f"set{set_number}_tie_break_score"] = ""
    return prediction.model_copy(update=changes)


def set_tiebreak_score(prediction: PredictionOptions, set_number: int, score: str) -> PredictionOptions:
    if set_number not in TIEBREAK_SET_NUMBERS:
        raise PredictionValidationError("Tiebreak details are only predicted for sets 1 and 2.")
    set_score = prediction.set_score(set_number)
    if set_score not in TIEBREAK_SET_SCORES:
        raise PredictionValidationError(f"Set {set_number} is not predicted to end in a tiebreak.")
    if score:
        if not is_valid_tiebreak_score(score):
            raise PredictionValidationError(f"'{score}' is not a valid tiebreak score.")
        left, right = _parse_score(score)
        if (left > right) != (set_score == "7-6"):
            raise PredictionValidationError(
                f"Tiebreak score '{score}' contradicts the set score {set_score}.",
            )
    return prediction.model_copy(update={f"set{set_number}_tie_break_score": score})


def set_super_tiebreak_score(
    prediction: PredictionOptions, score: str, match: MatchSnapshot,
) -> PredictionOptions:
    """Rejects invalid scores without touching the record."""
    variant = parse_match_result(prediction.match_result, match.format)
    if not isinstance(variant, DecidingSet):
        raise PredictionValidationError("A super tiebreak only decides a 2-1 / 1-2 result.")
    if not score:
        return prediction.model_copy(update={"super_tie_break_score": "", "super_tie_break": ""})

    seeded = prediction.super_tie_break_winner or prediction.winner
    if not validate_super_tiebreak_score(score, seeded == match.player1.name):
        raise InvalidSuperTiebreakScoreError(
            f"Invalid super tiebreak score '{score}'.",
            {"expected_winner": seeded, "rule": "first to 10, win by 2"},
        )
    return prediction.model_copy(update={
        "super_tie_break_score": score.strip(),
        "super_tie_break_winner": seeded,
        "super_tie_break": "yes",
    })


_SET_FIELD_RE = re.compile(r"^set([1-5])_(winner|score|tie_break_score)$")


def apply_edit(prediction: PredictionOptions, field: str, value: str, match: MatchSnapshot) -> PredictionOptions:
    """Route a raw form edit (snake_case or legacy camelCase name) to its rule."""
    name = _FIELD_NAMES.get(field)
    if name is None:
        raise PredictionValidationError(f"Unknown prediction field '{field}'.")
    value = (value or "").strip()

    if name == "winner":
        return set_winner(prediction, value, match)
    if name == "match_result":
        return set_match_result(prediction, value, match)
    if name == "super_tie_break_score":
        return set_super_tiebreak_score(prediction, value, match)
    if name in _FREE_FIELDS:
        return prediction.model_copy(update={name: value})

    set_field = _SET_FIELD_RE.match(name)
    if set_field:
        set_number, kind = int(set_field.group(1)), set_field.group(2)
        if kind == "winner":
            return set_set_winner(prediction, set_number, value, match)
        if kind == "score":
            return set_set_score(prediction, set_number, value, match)
        return set_tiebreak_score(prediction, set_number, value)

    # Flags and the seeded super tiebreak winner are derived, never typed in.
    raise PredictionValidationError(f"Field '{field}' is set automatically.")
