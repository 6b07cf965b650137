"""
backend/netprophet/services/session_storage_service.py

Purpose:
    Per-session keyed JSON store (the browser sessionStorage contract): get,
    set and remove JSON blobs synchronously. Each session owns its own backing
    mapping; there is no cross-session locking and the last write wins.

    Also hosts DraftStore, which keeps in-progress prediction forms under two
    keys (a consolidated map and one key per match) that are always read and
    cleared together.

Dependencies:
    - json
    - netprophet.config
"""

from __future__ import annotations

import json
import logging
from collections.abc import MutableMapping
from dataclasses import dataclass
from typing import Any, Optional

from netprophet.config import settings

logger = logging.getLogger("netprophet.session_storage")


@dataclass(frozen=True)
class SessionKeys:
    predictions: str
    outrights_predictions: str
    slip_collapsed: str
    form_predictions: str
    wallet: str

    @classmethod
    def for_prefix(cls, prefix: str | None = None) -> "SessionKeys":
        prefix = prefix or settings.SESSION_KEY_PREFIX
        return cls(
            predictions=f"{prefix}_predictions",
            outrights_predictions=f"{prefix}_outrights_predictions",
            slip_collapsed=f"{prefix}_slip_collapsed",
            form_predictions=f"{prefix}_form_predictions",
            wallet=f"{prefix}_wallet",
        )

    def draft_key(self, match_id: str) -> str:
        return f"{self.form_predictions}_{match_id}"

    def all(self) -> tuple[str, ...]:
        return (
            self.predictions, self.outrights_predictions, self.slip_collapsed,
            self.form_predictions, self.wallet,
        )


class SessionStorage:
    """Synchronous JSON blob store over a per-session mapping.

    Read failures fall back to the default, write failures are logged and
    dropped; neither is ever raised to the caller.
    """

    def __init__(self, backend: Optional[MutableMapping[str, str]] = None):
        self._backend: MutableMapping[str, str] = backend if backend is not None else {}

    def get(self, key: str, default: Any = None) -> Any:
        raw = self._backend.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("Failed to load %s from session storage: %s", key, exc)
            return default

    def set(self, key: str, value: Any) -> None:
        try:
            self._backend[key] = json.dumps(value)
        except (TypeError, ValueError) as exc:
            logger.warning("Failed to save %s to session storage: %s", key, exc)

    def remove(self, key: str) -> None:
        self._backend.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._backend.keys())

    def __contains__(self, key: str) -> bool:
        return key in self._backend

    def clear(self, keys: tuple[str, ...] | None = None) -> None:
        """Remove the given keys, or everything when no keys are given."""
        if keys is None:
            self._backend.clear()
            return
        for key in keys:
            self.remove(key)


class DraftStore:
    """In-progress prediction forms, one per match.

    Drafts live both in the consolidated map (`<prefix>_form_predictions`) and
    under a per-match key (`<prefix>_form_predictions_<matchId>`). Outrights
    drafts share the prefix but carry `_outrights_` and are left alone.
    """

    def __init__(self, storage: SessionStorage, keys: SessionKeys):
        self._storage = storage
        self._keys = keys

    def _consolidated(self) -> dict[str, Any]:
        stored = self._storage.get(self._keys.form_predictions, {})
        return stored if isinstance(stored, dict) else {}

    def _individual_keys(self) -> list[str]:
        prefix = f"{self._keys.form_predictions}_"
        return [
            key for key in self._storage.keys()
            if key.startswith(prefix) and "_outrights_" not in key
        ]

    def save(self, match_id: str, draft: dict[str, Any]) -> None:
        self._storage.set(self._keys.draft_key(match_id), draft)
        consolidated = self._consolidated()
        consolidated[str(match_id)] = draft
        self._storage.set(self._keys.form_predictions, consolidated)

    def load(self, match_id: str) -> Any:
        """Raw draft payload (individual key first), or None."""
        draft = self._storage.get(self._keys.draft_key(match_id))
        if draft is not None:
            return draft
        return self._consolidated().get(str(match_id))

    def clear(self, match_id: str) -> None:
        consolidated = self._consolidated()
        if str(match_id) in consolidated:
            del consolidated[str(match_id)]
            self._storage.set(self._keys.form_predictions, consolidated)
        self._storage.remove(self._keys.draft_key(match_id))

    def clear_all(self) -> None:
        self._storage.remove(self._keys.form_predictions)
        for key in self._individual_keys():
            self._storage.remove(key)

    def has_any(self) -> bool:
        return bool(self._consolidated()) or bool(self._individual_keys())
