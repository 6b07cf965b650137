"""
backend/netprophet/services/prediction_migration_service.py

Purpose:
    Normalize persisted slip, outrights and wallet payloads written by older
    client versions into the current schema. Never raises: rows that cannot be
    read at all are dropped and logged, everything else is coerced.

    Known legacy shapes:
    - prediction stored as a display string ("Winner: Nadal | Result: 3-1")
    - prediction object from before tiebreak/super tiebreak fields existed
    - numeric match ids, missing multiplier / potentialWinnings

Dependencies:
    - pydantic
    - netprophet.models.prediction
    - netprophet.models.wallet
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from netprophet.models.prediction import OutrightsEntry, OutrightsOptions, PredictionOptions, SlipEntry
from netprophet.models.wallet import Transaction, Wallet
from netprophet.utils import camel_alias

logger = logging.getLogger("netprophet.prediction_migration")

# A prediction object without these keys predates the structured form.
REQUIRED_PREDICTION_KEYS = ("winner",)

_PREDICTION_KEYS = {camel_alias(name): name for name in PredictionOptions.model_fields}
_PREDICTION_KEYS.update({name: name for name in PredictionOptions.model_fields})

_WALLET_KEYS = {camel_alias(name): name for name in Wallet.model_fields}
_WALLET_KEYS.update({name: name for name in Wallet.model_fields})


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value if isinstance(value, str) else ""


def _non_negative(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value) if value >= 0 else default


def normalize_prediction(raw: Any) -> PredictionOptions:
    """Any persisted prediction payload -> canonical PredictionOptions."""
    if isinstance(raw, PredictionOptions):
        return raw
    if not isinstance(raw, dict) or not all(key in raw for key in REQUIRED_PREDICTION_KEYS):
        return PredictionOptions()
    fields = {
        _PREDICTION_KEYS[key]: _as_text(value)
        for key, value in raw.items()
        if key in _PREDICTION_KEYS
    }
    return PredictionOptions(**fields)


def normalize_outrights_prediction(raw: Any) -> OutrightsOptions:
    if not isinstance(raw, dict):
        return OutrightsOptions()
    return OutrightsOptions(
        tournament_winner=_as_text(raw.get("tournamentWinner", raw.get("tournament_winner"))),
        finals_pair=_as_text(raw.get("finalsPair", raw.get("finals_pair"))),
    )


def _stake_fields(raw: dict) -> dict[str, float]:
    fields = {}
    bet_amount = raw.get("betAmount", raw.get("bet_amount"))
    if bet_amount is not None:
        fields["bet_amount"] = _non_negative(bet_amount)
    potential = raw.get("potentialWinnings", raw.get("potential_winnings"))
    if potential is not None:
        fields["potential_winnings"] = _non_negative(potential)
    multiplier = raw.get("multiplier")
    if isinstance(multiplier, (int, float)) and not isinstance(multiplier, bool) and multiplier >= 1.0:
        fields["multiplier"] = float(multiplier)
    return fields


def migrate_slip_entries(raw_entries: Any) -> list[SlipEntry]:
    """Persisted regular-prediction list -> SlipEntry list, one per match id (last wins)."""
    if not isinstance(raw_entries, list):
        return []
    by_match: dict[str, SlipEntry] = {}
    for raw in raw_entries:
        if not isinstance(raw, dict):
            logger.debug("Dropping non-object slip row: %r", raw)
            continue
        match_id = raw.get("matchId", raw.get("match_id"))
        try:
            entry = SlipEntry(
                match_id=match_id,
                match=raw.get("match"),
                prediction=normalize_prediction(raw.get("prediction")),
                **_stake_fields(raw),
            )
        except ValidationError as exc:
            logger.debug("Dropping unreadable slip row for match %s: %s", match_id, exc)
            continue
        by_match[entry.match_id] = entry
    return list(by_match.values())


def migrate_outrights_entries(raw_entries: Any) -> list[OutrightsEntry]:
    if not isinstance(raw_entries, list):
        return []
    by_key: dict[tuple[str, str], OutrightsEntry] = {}
    for raw in raw_entries:
        if not isinstance(raw, dict):
            continue
        try:
            entry = OutrightsEntry(
                tournament_id=raw.get("tournamentId", raw.get("tournament_id")),
                tournament_name=_as_text(raw.get("tournamentName", raw.get("tournament_name"))),
                category=_as_text(raw.get("category")),
                prediction=normalize_outrights_prediction(raw.get("prediction")),
                **_stake_fields(raw),
            )
        except ValidationError as exc:
            logger.debug("Dropping unreadable outrights row: %s", exc)
            continue
        by_key[(entry.tournament_id, entry.category)] = entry
    return list(by_key.values())


def migrate_wallet_snapshot(raw: Any) -> Wallet:
    """Persisted wallet blob -> Wallet.

    Missing or malformed fields fall back to their defaults one by one; the
    readable rest of the snapshot is kept.
    """
    if not isinstance(raw, dict):
        return Wallet()
    defaults = Wallet()
    default_data = defaults.model_dump()
    data = dict(default_data)
    for name in Wallet.model_fields:
        if name == "recent_transactions":
            continue
        for key in (camel_alias(name), name):
            if key in raw and raw[key] is not None:
                data[name] = raw[key]
                break

    transactions = []
    for tx in raw.get("recentTransactions", raw.get("recent_transactions")) or []:
        try:
            transactions.append(Transaction.model_validate(tx))
        except ValidationError:
            logger.debug("Dropping unreadable wallet transaction: %r", tx)
    data["recent_transactions"] = transactions

    try:
        return Wallet.model_validate(data)
    except ValidationError as exc:
        bad = {
            _WALLET_KEYS[err["loc"][0]] for err in exc.errors()
            if err["loc"] and err["loc"][0] in _WALLET_KEYS
        }
        logger.warning("Wallet snapshot fields unreadable, using defaults for %s", sorted(bad))

    data.update({name: default_data[name] for name in bad})
    try:
        return Wallet.model_validate(data)
    except ValidationError as exc:
        logger.warning("Wallet snapshot unreadable, starting from defaults: %s", exc)
        return defaults.model_copy(update={"recent_transactions": transactions})
