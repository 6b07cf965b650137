"""Prediction slip models: match snapshots, structured predictions, slip entries."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from netprophet.utils import camel_alias, utcnow

# Match ids arrive as ints from older clients and as strings from newer ones.
MatchId = Annotated[str, BeforeValidator(lambda v: str(v) if v is not None else v)]


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase keys on the wire and in session storage."""
    model_config = ConfigDict(alias_generator=camel_alias, populate_by_name=True)


# ---------- Match ----------

class MatchFormat(str, Enum):
    best_of_3 = "best_of_3"
    best_of_5 = "best_of_5"
    best_of_3_super_tiebreak = "best_of_3_super_tiebreak"  # amateur: 3rd set is a super tiebreak

    @property
    def sets_to_win(self) -> int:
        return 3 if self is MatchFormat.best_of_5 else 2

    @property
    def is_amateur(self) -> bool:
        return self is MatchFormat.best_of_3_super_tiebreak


class PlayerLine(CamelModel):
    """A player (or doubles pair) as shown on the match card."""
    name: str
    odds: float = 0.0


class MatchSnapshot(CamelModel):
    """Match data captured when the prediction was added to the slip."""
    id: MatchId
    tournament: str = ""
    category: str = ""
    format: MatchFormat = MatchFormat.best_of_3
    player_a_id: Optional[str] = None   # profile/player id behind player1
    player_b_id: Optional[str] = None   # profile/player id behind player2
    player1: PlayerLine
    player2: PlayerLine
    is_locked: bool = False


# ---------- Predictions ----------

SET_NUMBERS = (1, 2, 3, 4, 5)
TIEBREAK_SET_NUMBERS = (1, 2)
TIEBREAK_SET_SCORES = ("7-6", "6-7")  # set scores that unlock a tiebreak detail


class PredictionOptions(CamelModel):
    """Structured prediction for one match. Empty string means "not filled"."""
    winner: str = ""
    match_result: str = ""                 # "2-1", "3-0", ... (player1 sets first)
    set1_score: str = ""
    set2_score: str = ""
    set3_score: str = ""
    set4_score: str = ""
    set5_score: str = ""
    set1_winner: str = ""
    set2_winner: str = ""
    set3_winner: str = ""
    set4_winner: str = ""
    set5_winner: str = ""
    # Legacy side markets: persisted and displayed, no multiplier weight
    tie_break: str = ""
    total_games: str = ""
    aces_leader: str = ""
    double_faults: str = ""
    break_points: str = ""
    set1_tie_break: str = ""               # "yes" | "no"
    set2_tie_break: str = ""
    set1_tie_break_score: str = ""         # e.g. "7-5"
    set2_tie_break_score: str = ""
    super_tie_break: str = ""              # "yes" | "no"
    super_tie_break_score: str = ""        # e.g. "10-8"
    super_tie_break_winner: str = ""

    def set_winner(self, set_number: int) -> str:
        return getattr(self, f"set{set_number}_winner")

    def set_score(self, set_number: int) -> str:
        return getattr(self, f"set{set_number}_score")

    def tiebreak_score(self, set_number: int) -> str:
        return getattr(self, f"set{set_number}_tie_break_score")

    def filled_fields(self) -> dict[str, str]:
        return {k: v for k, v in self.model_dump().items() if v != ""}


# Set-level fields wiped whenever winner or match_result changes.
DOWNSTREAM_FIELDS: tuple[str, ...] = tuple(
    name for name in PredictionOptions.model_fields if name not in ("winner", "match_result")
)


class OutrightsOptions(CamelModel):
    """Tournament-level prediction, independent of any single match."""
    tournament_winner: str = ""
    finals_pair: str = ""


# ---------- Slip entries ----------

class SlipEntry(CamelModel):
    """One match prediction in the slip. potential_winnings = round(bet_amount * multiplier)."""
    match_id: MatchId
    match: MatchSnapshot
    prediction: PredictionOptions = Field(default_factory=PredictionOptions)
    bet_amount: float = Field(default=0.0, ge=0)
    multiplier: float = Field(default=1.0, ge=1.0)
    potential_winnings: float = Field(default=0.0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)


class OutrightsEntry(CamelModel):
    """One outrights prediction, keyed by tournament and category."""
    tournament_id: MatchId
    tournament_name: str = ""
    category: str = ""
    prediction: OutrightsOptions = Field(default_factory=OutrightsOptions)
    bet_amount: float = Field(default=0.0, ge=0)
    multiplier: float = Field(default=1.0, ge=1.0)
    potential_winnings: float = Field(default=0.0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)


# ---------- Request / Response models ----------

class BetAmountUpdate(CamelModel):
    amount: float


class ParlayEligibility(CamelModel):
    eligible: bool
    prediction_count: int
    required: int


class FormEditRequest(CamelModel):
    """A single form edit (field name in either spelling) against the match card being edited."""
    match: MatchSnapshot
    field: str
    value: str = ""


class FormView(CamelModel):
    match_id: str
    prediction: PredictionOptions
    stage: str
    multiplier: float
    max_bonus: float
    prediction_count: int
    prediction_text: str
