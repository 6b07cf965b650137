"""
backend/netprophet/services/prediction_slip_service.py

Purpose:
    The prediction slip: match predictions and outrights predictions the user
    intends to bet on, with the collapsed/open flag of the slip panel. State is
    mirrored into session storage after every change and migrated on load.

    A user may not predict a match they play in. The participant check is an
    injected coroutine so the rule can be answered locally (claimed player id)
    or by the remote ledger.

Dependencies:
    - netprophet.services.session_storage_service
    - netprophet.services.prediction_migration_service
    - netprophet.services.multiplier_service
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from netprophet.config import settings
from netprophet.exceptions import (
    EntryNotFoundError,
    ParticipantConflictError,
    PredictionValidationError,
)
from netprophet.models.prediction import (
    MatchSnapshot,
    OutrightsEntry,
    ParlayEligibility,
    SlipEntry,
)
from netprophet.providers.base import BaseLedgerProvider
from netprophet.services.multiplier_service import compute_multiplier
from netprophet.services.prediction_form_service import has_predictions
from netprophet.services.prediction_migration_service import (
    migrate_outrights_entries,
    migrate_slip_entries,
)
from netprophet.services.session_storage_service import DraftStore, SessionKeys, SessionStorage
from netprophet.utils import round_coins

logger = logging.getLogger("netprophet.prediction_slip")

ParticipantChecker = Callable[[MatchSnapshot], Awaitable[bool]]


# ---------- Participant checks ----------

class ClaimedPlayerChecker:
    """Conflict when the user's claimed player profile is one of the match players."""

    def __init__(self, claimed_player_id: Optional[str] = None):
        self.claimed_player_id = claimed_player_id

    async def __call__(self, match: MatchSnapshot) -> bool:
        if not self.claimed_player_id:
            return False
        return self.claimed_player_id in (match.player_a_id, match.player_b_id)


class RemoteParticipantChecker:
    """Ask the ledger backend whether the user plays in the match."""

    def __init__(self, provider: BaseLedgerProvider, user_id: Optional[str]):
        self._provider = provider
        self._user_id = user_id

    async def __call__(self, match: MatchSnapshot) -> bool:
        if not self._user_id:
            return False
        return await self._provider.is_participant(match.id, self._user_id)


# ---------- Slip ----------

class PredictionSlip:
    def __init__(
        self,
        storage: SessionStorage,
        keys: SessionKeys | None = None,
        participant_checker: ParticipantChecker | None = None,
    ):
        self._storage = storage
        self._keys = keys or SessionKeys.for_prefix()
        self._drafts = DraftStore(storage, self._keys)
        self._check_participant = participant_checker or ClaimedPlayerChecker()
        self._predictions: list[SlipEntry] = []
        self._outrights: list[OutrightsEntry] = []
        self._collapsed = False
        self.closed = False
        self.load()

    # ---------- Persistence ----------

    def load(self) -> None:
        """Read the slip back from session storage, migrating older shapes."""
        self._predictions = migrate_slip_entries(self._storage.get(self._keys.predictions, []))
        self._outrights = migrate_outrights_entries(
            self._storage.get(self._keys.outrights_predictions, []),
        )
        self._collapsed = bool(self._storage.get(self._keys.slip_collapsed, False))

    def _persist(self) -> None:
        self._storage.set(
            self._keys.predictions,
            [entry.model_dump(mode="json", by_alias=True) for entry in self._predictions],
        )
        self._storage.set(
            self._keys.outrights_predictions,
            [entry.model_dump(mode="json", by_alias=True) for entry in self._outrights],
        )
        self._storage.set(self._keys.slip_collapsed, self._collapsed)

    def close(self) -> None:
        self.closed = True

    # ---------- Views ----------

    @property
    def predictions(self) -> list[SlipEntry]:
        return list(self._predictions)

    @property
    def outrights_predictions(self) -> list[OutrightsEntry]:
        return list(self._outrights)

    @property
    def is_collapsed(self) -> bool:
        return self._collapsed

    def get_prediction(self, match_id: str) -> Optional[SlipEntry]:
        return next((e for e in self._predictions if e.match_id == str(match_id)), None)

    def get_parlay_eligibility(self) -> ParlayEligibility:
        count = len(self._predictions)
        return ParlayEligibility(
            eligible=count >= settings.PARLAY_MIN_PICKS,
            prediction_count=count,
            required=settings.PARLAY_MIN_PICKS,
        )

    def total_stake(self) -> float:
        return sum(e.bet_amount for e in self._predictions) + sum(e.bet_amount for e in self._outrights)

    def total_potential_winnings(self) -> float:
        return (
            sum(e.potential_winnings for e in self._predictions)
            + sum(e.potential_winnings for e in self._outrights)
        )

    # ---------- Match predictions ----------

    async def add_prediction(self, entry: SlipEntry) -> SlipEntry:
        """Insert or replace the prediction for entry.match_id and open the slip.

        The multiplier is always recomputed from the prediction and the match
        odds. A bet amount already on the slip survives a replace unless the
        new entry carries its own.
        """
        if not has_predictions(entry.prediction):
            raise PredictionValidationError(
                "Prediction has no filled fields.", {"match_id": entry.match_id},
            )

        if await self._check_participant(entry.match):
            logger.info("Rejected self-prediction on match %s", entry.match_id)
            raise ParticipantConflictError(
                "You cannot predict a match you are playing in.",
                {"match_id": entry.match_id},
            )
        if self.closed:
            logger.debug("Session closed, dropping late prediction for match %s", entry.match_id)
            return entry

        match = entry.match
        multiplier = compute_multiplier(
            entry.prediction.winner, match.player1, match.player2, entry.prediction, match.format,
        )
        existing = self.get_prediction(entry.match_id)
        bet_amount = entry.bet_amount
        if "bet_amount" not in entry.model_fields_set and existing is not None:
            bet_amount = existing.bet_amount

        stored = entry.model_copy(update={
            "multiplier": multiplier,
            "bet_amount": bet_amount,
            "potential_winnings": float(round_coins(bet_amount * multiplier)),
        })
        if existing is not None:
            self._predictions = [stored if e.match_id == stored.match_id else e for e in self._predictions]
        else:
            self._predictions.append(stored)
        self._collapsed = False
        self._persist()

        logger.info(
            "Slip %s match %s (multiplier=%.2f, stake=%.0f)",
            "updated" if existing else "added", stored.match_id, multiplier, bet_amount,
        )
        return stored

    def remove_prediction(self, match_id: str) -> bool:
        """Drop the entry for match_id. Returns False when there was none."""
        before = len(self._predictions)
        self._predictions = [e for e in self._predictions if e.match_id != str(match_id)]
        if len(self._predictions) == before:
            return False
        self._persist()
        return True

    def clear_predictions(self) -> None:
        """Empty the match predictions and purge every in-progress form draft."""
        self._predictions = []
        self._drafts.clear_all()
        if not self._outrights and not self._drafts.has_any():
            self._collapsed = True
        self._persist()
        logger.info("Slip cleared")

    def update_prediction_bet_amount(self, match_id: str, amount: float) -> SlipEntry:
        """Set the stake. Balance is checked when the bet is placed, not here."""
        if amount < 0:
            raise PredictionValidationError("Bet amount cannot be negative.", {"amount": amount})
        entry = self.get_prediction(match_id)
        if entry is None:
            raise EntryNotFoundError(f"No prediction for match {match_id} in the slip.")
        updated = entry.model_copy(update={
            "bet_amount": float(amount),
            "potential_winnings": float(round_coins(amount * entry.multiplier)),
        })
        self._predictions = [updated if e.match_id == updated.match_id else e for e in self._predictions]
        self._persist()
        return updated

    def acknowledge_settlement(self, match_id: str) -> None:
        """Drop an entry whose bet has been placed and settled."""
        if not self.remove_prediction(match_id):
            raise EntryNotFoundError(f"No prediction for match {match_id} in the slip.")

    def set_collapsed(self, collapsed: bool) -> None:
        self._collapsed = collapsed
        self._storage.set(self._keys.slip_collapsed, collapsed)

    # ---------- Outrights ----------

    def _outrights_index(self, tournament_id: str, category: str) -> Optional[int]:
        for i, entry in enumerate(self._outrights):
            if entry.tournament_id == str(tournament_id) and entry.category == category:
                return i
        return None

    def add_outrights_prediction(self, entry: OutrightsEntry) -> OutrightsEntry:
        if not (entry.prediction.tournament_winner or entry.prediction.finals_pair):
            raise PredictionValidationError(
                "Outrights prediction has no filled fields.", {"tournament_id": entry.tournament_id},
            )
        index = self._outrights_index(entry.tournament_id, entry.category)
        bet_amount = entry.bet_amount
        if index is not None and "bet_amount" not in entry.model_fields_set:
            bet_amount = self._outrights[index].bet_amount
        stored = entry.model_copy(update={
            "bet_amount": bet_amount,
            "potential_winnings": float(round_coins(bet_amount * entry.multiplier)),
        })
        if index is None:
            self._outrights.append(stored)
        else:
            self._outrights[index] = stored
        self._collapsed = False
        self._persist()
        return stored

    def remove_outrights_prediction(self, tournament_id: str, category: str = "") -> bool:
        index = self._outrights_index(tournament_id, category)
        if index is None:
            return False
        del self._outrights[index]
        self._persist()
        return True

    def clear_outrights_predictions(self) -> None:
        self._outrights = []
        if not self._predictions and not self._drafts.has_any():
            self._collapsed = True
        self._persist()

    def update_outrights_bet_amount(self, tournament_id: str, category: str, amount: float) -> OutrightsEntry:
        if amount < 0:
            raise PredictionValidationError("Bet amount cannot be negative.", {"amount": amount})
        index = self._outrights_index(tournament_id, category)
        if index is None:
            raise EntryNotFoundError(f"No outrights prediction for tournament {tournament_id}.")
        entry = self._outrights[index]
        updated = entry.model_copy(update={
            "bet_amount": float(amount),
            "potential_winnings": float(round_coins(amount * entry.multiplier)),
        })
        self._outrights[index] = updated
        self._persist()
        return updated
