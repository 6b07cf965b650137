"""
backend/netprophet/services/session_service.py

Purpose:
    Per-session service container and its registry. Mounting a session wires
    storage, prediction slip, form drafts and wallet mirror for one user and
    refreshes the bet aggregates. Remounting an id re-hydrates from the
    backing store kept for that id. Ending a session marks the services
    closed (late ledger results are ignored) and drops the wallet snapshot.

Dependencies:
    - netprophet.services.prediction_slip_service
    - netprophet.services.wallet_ledger_service
    - netprophet.providers.base
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import MutableMapping
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, Header, Request

from netprophet.exceptions import SessionNotFoundError
from netprophet.models.prediction import FormView, MatchSnapshot, PredictionOptions
from netprophet.providers.base import BaseLedgerProvider
from netprophet.services.multiplier_service import compute_multiplier, max_bonus
from netprophet.services.prediction_form_service import (
    apply_edit,
    build_prediction_text,
    derive_stage,
    prediction_count,
)
from netprophet.services.prediction_migration_service import normalize_prediction
from netprophet.services.prediction_slip_service import (
    ClaimedPlayerChecker,
    ParticipantChecker,
    PredictionSlip,
    RemoteParticipantChecker,
)
from netprophet.services.session_storage_service import DraftStore, SessionKeys, SessionStorage
from netprophet.services.wallet_ledger_service import WalletLedger

logger = logging.getLogger("netprophet.session_service")

ProviderFactory = Callable[[Optional[str]], BaseLedgerProvider]


@dataclass
class SessionServices:
    session_id: str
    storage: SessionStorage
    keys: SessionKeys
    slip: PredictionSlip
    wallet: WalletLedger
    drafts: DraftStore
    user_id: Optional[str] = None
    claimed_player_id: Optional[str] = None

    @property
    def closed(self) -> bool:
        return self.slip.closed or self.wallet.closed

    def close(self) -> None:
        self.slip.close()
        self.wallet.close()

    # ---------- Form drafts ----------

    def get_draft(self, match_id: str) -> PredictionOptions:
        return normalize_prediction(self.drafts.load(match_id))

    def edit_draft(self, match: MatchSnapshot, field: str, value: str) -> PredictionOptions:
        """Apply one form edit to the match draft and persist the result."""
        prediction = apply_edit(self.get_draft(match.id), field, value, match)
        self.drafts.save(match.id, prediction.model_dump(by_alias=True))
        return prediction

    def clear_draft(self, match_id: str) -> None:
        self.drafts.clear(match_id)

    def form_view(self, match: MatchSnapshot, prediction: PredictionOptions | None = None) -> FormView:
        prediction = prediction if prediction is not None else self.get_draft(match.id)
        return FormView(
            match_id=match.id,
            prediction=prediction,
            stage=derive_stage(prediction, match).value,
            multiplier=compute_multiplier(
                prediction.winner, match.player1, match.player2, prediction, match.format,
            ),
            max_bonus=max_bonus(prediction, match.format),
            prediction_count=prediction_count(prediction),
            prediction_text=build_prediction_text(prediction),
        )


class SessionRegistry:
    """In-memory registry of mounted sessions, keyed by session id."""

    def __init__(self, provider_factory: ProviderFactory):
        self._provider_factory = provider_factory
        self._sessions: dict[str, SessionServices] = {}
        self._backends: dict[str, MutableMapping[str, str]] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def start(
        self,
        user_id: Optional[str] = None,
        claimed_player_id: Optional[str] = None,
        access_token: Optional[str] = None,
        backend: Optional[MutableMapping[str, str]] = None,
        session_id: Optional[str] = None,
    ) -> SessionServices:
        """Mount a session: hydrate slip and wallet from storage, refresh bet stats.

        Each session id keeps its backing store across mounts, so remounting
        an id (a page reload) re-hydrates what the previous mount persisted.
        """
        session_id = session_id or uuid.uuid4().hex
        previous = self._sessions.pop(session_id, None)
        if previous is not None:
            previous.close()
            logger.info("Session %s remounted", session_id)

        if backend is not None:
            self._backends[session_id] = backend
        storage = SessionStorage(self._backends.setdefault(session_id, {}))
        keys = SessionKeys.for_prefix()
        provider = self._provider_factory(access_token)

        checker: Optional[ParticipantChecker] = None
        if claimed_player_id:
            checker = ClaimedPlayerChecker(claimed_player_id)
        elif user_id:
            checker = RemoteParticipantChecker(provider, user_id)

        services = SessionServices(
            session_id=session_id,
            storage=storage,
            keys=keys,
            slip=PredictionSlip(storage, keys, participant_checker=checker),
            wallet=WalletLedger(storage, provider, keys),
            drafts=DraftStore(storage, keys),
            user_id=user_id,
            claimed_player_id=claimed_player_id,
        )
        self._sessions[session_id] = services
        await services.wallet.reconcile()
        logger.info("Session %s mounted (user=%s)", session_id, user_id or "anonymous")
        return services

    def get(self, session_id: str) -> SessionServices:
        services = self._sessions.get(session_id)
        if services is None:
            raise SessionNotFoundError(f"Session {session_id} not found.", {"session_id": session_id})
        return services

    def end(self, session_id: str) -> None:
        """Logout: close the services and drop the wallet snapshot.

        The rest of the session store (slip, drafts) stays with the id.
        """
        services = self._sessions.pop(session_id, None)
        if services is None:
            raise SessionNotFoundError(f"Session {session_id} not found.", {"session_id": session_id})
        services.close()
        services.wallet.reset()
        logger.info("Session %s ended", session_id)

    def end_all(self) -> None:
        for session_id in list(self._sessions):
            self.end(session_id)


# ---------- FastAPI dependencies ----------

def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_session(
    x_session_id: str = Header(..., alias="X-Session-ID"),
    registry: SessionRegistry = Depends(get_registry),
) -> SessionServices:
    """Resolve the mounted session named by the X-Session-ID header."""
    return registry.get(x_session_id)
