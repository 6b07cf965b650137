"""
backend/tests/test_prediction_form_service.py

Purpose:
    Dependent-field rules of the prediction form: downstream clearing,
    straight-set auto-fill, deciding-set mirroring, tiebreak unlocking, super
    tiebreak validation and stage derivation.
"""

from __future__ import annotations

import pytest

from netprophet.exceptions import InvalidSuperTiebreakScoreError, PredictionValidationError
from netprophet.models.prediction import MatchFormat, MatchSnapshot, PlayerLine, PredictionOptions
from netprophet.services import prediction_form_service as form
from netprophet.services.multiplier_service import compute_multiplier
from netprophet.services.prediction_form_service import PredictionStage


def _match(match_format: MatchFormat = MatchFormat.best_of_3) -> MatchSnapshot:
    return MatchSnapshot(
        id="42",
        format=match_format,
        player1=PlayerLine(name="Alcaraz", odds=1.8),
        player2=PlayerLine(name="Sinner", odds=2.1),
    )


def _edit(prediction: PredictionOptions, match: MatchSnapshot, **fields: str) -> PredictionOptions:
    for field, value in fields.items():
        prediction = form.apply_edit(prediction, field, value, match)
    return prediction


# ---------- Validators ----------

def test_super_tiebreak_score_rules():
    assert form.validate_super_tiebreak_score("10-8", player1_wins=True)
    assert form.validate_super_tiebreak_score("12-10", player1_wins=True)
    assert form.validate_super_tiebreak_score("8-10", player1_wins=False)
    assert form.validate_super_tiebreak_score("", player1_wins=True)
    assert not form.validate_super_tiebreak_score("9-7", player1_wins=True)
    assert not form.validate_super_tiebreak_score("10-9", player1_wins=True)
    assert not form.validate_super_tiebreak_score("8-10", player1_wins=True)
    assert not form.validate_super_tiebreak_score("ten-8", player1_wins=True)


def test_set_and_tiebreak_score_rules():
    assert form.is_valid_set_score("6-4")
    assert form.is_valid_set_score("5-7")
    assert form.is_valid_set_score("7-6")
    assert not form.is_valid_set_score("6-5")
    assert not form.is_valid_set_score("8-6")
    assert form.is_valid_tiebreak_score("7-5")
    assert form.is_valid_tiebreak_score("10-8")
    assert not form.is_valid_tiebreak_score("7-6")
    assert not form.is_valid_tiebreak_score("9-6")


# ---------- Edits ----------

def test_winner_change_clears_downstream_fields():
    match = _match()
    prediction = _edit(PredictionOptions(), match, winner="Alcaraz", matchResult="2-0", set1Score="6-4")
    prediction = prediction.model_copy(update={"total_games": "over 22.5"})

    changed = form.apply_edit(prediction, "winner", "Sinner", match)

    assert changed.winner == "Sinner"
    assert changed.match_result == ""
    assert changed.set1_winner == "" and changed.set1_score == ""
    # side markets are independent of the winner
    assert changed.total_games == "over 22.5"


def test_match_result_change_keeps_winner():
    match = _match()
    prediction = _edit(PredictionOptions(), match, winner="Alcaraz", match_result="2-1", set1_winner="Alcaraz")
    changed = form.apply_edit(prediction, "match_result", "2-0", match)
    assert changed.winner == "Alcaraz"
    assert changed.set1_winner == "Alcaraz" and changed.set2_winner == "Alcaraz"
    assert changed.set3_winner == ""


def test_result_requires_winner_and_orientation():
    match = _match()
    with pytest.raises(PredictionValidationError):
        form.apply_edit(PredictionOptions(), "match_result", "2-0", match)

    prediction = form.apply_edit(PredictionOptions(), "winner", "Sinner", match)
    with pytest.raises(PredictionValidationError):
        form.apply_edit(prediction, "match_result", "2-0", match)
    with pytest.raises(PredictionValidationError):
        form.apply_edit(prediction, "match_result", "0-3", match)
    assert form.apply_edit(prediction, "match_result", "0-2", match).match_result == "0-2"


def test_unknown_player_rejected():
    with pytest.raises(PredictionValidationError):
        form.apply_edit(PredictionOptions(), "winner", "Federer", _match())


def test_straight_sets_fill_set_winners_and_reject_manual_pick():
    match = _match(MatchFormat.best_of_5)
    prediction = _edit(PredictionOptions(), match, winner="Sinner", match_result="0-3")
    assert [prediction.set_winner(n) for n in (1, 2, 3)] == ["Sinner"] * 3
    assert prediction.set4_winner == ""
    with pytest.raises(PredictionValidationError):
        form.apply_edit(prediction, "set1_winner", "Alcaraz", match)


def test_deciding_set_winner_mirrors_and_clears_together():
    match = _match()
    prediction = _edit(PredictionOptions(), match, winner="Alcaraz", match_result="2-1")
    picked = form.apply_edit(prediction, "set2Winner", "Alcaraz", match)
    assert picked.set2_winner == "Alcaraz"
    assert picked.set1_winner == "Sinner"

    cleared = form.apply_edit(picked, "set1_winner", "", match)
    assert cleared.set1_winner == "" and cleared.set2_winner == ""


def test_amateur_deciding_set_seeds_super_tiebreak_winner():
    match = _match(MatchFormat.best_of_3_super_tiebreak)
    prediction = _edit(PredictionOptions(), match, winner="Alcaraz", match_result="2-1")
    assert prediction.super_tie_break_winner == "Alcaraz"
    assert form.sets_to_show("2-1", amateur=True) == 2


def test_multi_set_winner_count_is_bounded():
    match = _match(MatchFormat.best_of_5)
    prediction = _edit(
        PredictionOptions(), match,
        winner="Alcaraz", match_result="3-1", set1_winner="Sinner",
    )
    with pytest.raises(PredictionValidationError):
        form.apply_edit(prediction, "set2_winner", "Sinner", match)


def test_tiebreak_score_unlocks_on_seven_six_and_clears_on_change():
    match = _match()
    prediction = _edit(PredictionOptions(), match, winner="Alcaraz", match_result="2-0")

    with pytest.raises(PredictionValidationError):
        form.apply_edit(prediction, "set1_tie_break_score", "7-5", match)

    prediction = _edit(prediction, match, set1_score="7-6", set1_tie_break_score="7-5")
    assert prediction.set1_tie_break == "yes"
    assert prediction.set1_tie_break_score == "7-5"

    changed = form.apply_edit(prediction, "set1_score", "6-4", match)
    assert changed.set1_tie_break == ""
    assert changed.set1_tie_break_score == ""


def test_set_score_must_agree_with_set_winner():
    match = _match()
    prediction = _edit(PredictionOptions(), match, winner="Alcaraz", match_result="2-0")
    with pytest.raises(PredictionValidationError):
        form.apply_edit(prediction, "set1_score", "4-6", match)


def test_invalid_super_tiebreak_score_leaves_record_unchanged():
    match = _match(MatchFormat.best_of_3_super_tiebreak)
    prediction = _edit(PredictionOptions(), match, winner="Alcaraz", match_result="2-1")
    with pytest.raises(InvalidSuperTiebreakScoreError):
        form.apply_edit(prediction, "super_tie_break_score", "8-10", match)
    assert prediction.super_tie_break_score == ""

    accepted = form.apply_edit(prediction, "superTieBreakScore", "10-8", match)
    assert accepted.super_tie_break_score == "10-8"
    assert accepted.super_tie_break == "yes"


def test_derived_fields_cannot_be_typed_in():
    with pytest.raises(PredictionValidationError):
        form.apply_edit(PredictionOptions(), "set1_tie_break", "yes", _match())
    with pytest.raises(PredictionValidationError):
        form.apply_edit(PredictionOptions(), "noSuchField", "x", _match())


def test_form_scenario_reaches_expected_multiplier():
    match = _match()
    prediction = _edit(
        PredictionOptions(), match,
        winner="Alcaraz",
        match_result="2-1",
        set1_winner="Alcaraz",
        set1_score="7-6",
        set1_tie_break_score="7-5",
        super_tie_break_score="10-8",
    )
    assert prediction.set2_winner == "Sinner"
    multiplier = compute_multiplier(prediction.winner, match.player1, match.player2, prediction, match.format)
    assert multiplier == pytest.approx(2.80)


# ---------- Derived views ----------

def test_stage_progression_for_amateur_deciding_set():
    match = _match(MatchFormat.best_of_3_super_tiebreak)
    prediction = PredictionOptions()
    assert form.derive_stage(prediction, match) is PredictionStage.EMPTY

    prediction = _edit(prediction, match, winner="Alcaraz")
    assert form.derive_stage(prediction, match) is PredictionStage.WINNER_CHOSEN

    prediction = _edit(prediction, match, match_result="2-1")
    assert form.derive_stage(prediction, match) is PredictionStage.RESULT_CHOSEN

    prediction = _edit(prediction, match, set1_winner="Alcaraz")
    assert form.derive_stage(prediction, match) is PredictionStage.SET_WINNERS_COMPLETE

    prediction = _edit(prediction, match, set1_score="7-6")
    assert form.derive_stage(prediction, match) is PredictionStage.TIEBREAKS_PENDING

    prediction = _edit(prediction, match, set1_tie_break_score="7-3")
    assert form.derive_stage(prediction, match) is PredictionStage.SUPER_TIEBREAK_PENDING

    prediction = _edit(prediction, match, super_tie_break_score="10-6")
    assert form.derive_stage(prediction, match) is PredictionStage.SUPER_TIEBREAK_COMPLETE


def test_straight_sets_stage():
    match = _match()
    prediction = _edit(PredictionOptions(), match, winner="Sinner", match_result="0-2")
    assert form.derive_stage(prediction, match) is PredictionStage.STRAIGHT_SETS_AUTO_FILLED
    prediction = _edit(prediction, match, set1_score="4-6", set2_score="3-6")
    assert form.derive_stage(prediction, match) is PredictionStage.SCORES_COMPLETE


def test_prediction_text_and_counts():
    prediction = PredictionOptions(
        winner="Alcaraz", match_result="2-0", set1_score="6-4", set2_score="7-6",
        set2_tie_break="yes", set2_tie_break_score="7-5",
    )
    assert form.build_prediction_text(prediction) == (
        "Winner: Alcaraz | Result: 2-0 | Sets: 6-4, 7-6 | Set 2 TB: yes | Set 2 TB Score: 7-5"
    )
    assert form.prediction_count(prediction) == 6
    assert form.has_predictions(prediction)
    assert not form.has_predictions(PredictionOptions())


def test_set_winners_from_result_orders_winner_first():
    assert form.set_winners_from_result("1-2", "Sinner", "Alcaraz", "Sinner") == ["Sinner", "Sinner", "Alcaraz"]
    assert form.set_winners_from_result("", "Sinner", "Alcaraz", "Sinner") == []
