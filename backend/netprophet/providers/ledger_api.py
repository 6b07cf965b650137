"""
backend/netprophet/providers/ledger_api.py

Purpose:
    HTTP adapter for the remote coin ledger (wallet-operations and
    daily-rewards functions, bet stats, match participants). Normalizes the
    `{success, data, error}` envelopes into LedgerResult & co. and turns every
    transport or HTTP failure into LedgerOperationError.

    Bet and spend actions go out exactly once; balance reads and bonus claims
    use LEDGER_READ_RETRIES.

Dependencies:
    - httpx
    - netprophet.providers.http_client
    - netprophet.config
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ValidationError

from netprophet.config import settings
from netprophet.exceptions import LedgerOperationError
from netprophet.models.wallet import BetStats, DailyRewardClaim, DailyRewardStatus, LedgerResult
from netprophet.providers.base import BaseLedgerProvider
from netprophet.providers.http_client import CircuitOpenError, ResilientClient

logger = logging.getLogger("netprophet.ledger_api")

PROVIDER_NAME = "ledger"

# Actions the ledger treats as idempotent per user (safe to retry)
_RETRYABLE_ACTIONS = {"claim_welcome_bonus", "add_referral_bonus", "add_leaderboard_prize"}


def build_client() -> ResilientClient:
    return ResilientClient(
        PROVIDER_NAME,
        timeout=settings.LEDGER_TIMEOUT_SECONDS,
        base_delay=settings.LEDGER_RETRY_BASE_DELAY,
    )


def _parse(model: type[BaseModel], raw: Any, action: str):
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Ledger %s returned an unreadable payload: %s", action, exc)
        raise LedgerOperationError("Invalid response from server.", {"action": action}) from exc


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


class HttpLedgerProvider(BaseLedgerProvider):
    def __init__(
        self,
        client: ResilientClient,
        access_token: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        self._client = client
        self._token = access_token or settings.LEDGER_API_TOKEN
        self._base_url = (base_url or settings.LEDGER_BASE_URL).rstrip("/")

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _call(
        self, method: str, path: str, action: str, retries: int = 0,
        params: Optional[dict[str, str]] = None, body: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}/{path}"
        try:
            resp = await self._client.request(
                method, url, retries=retries, params=params, json=body, headers=self._headers(),
            )
        except (httpx.HTTPError, CircuitOpenError) as exc:
            logger.warning("Ledger %s unreachable: %s", action, exc)
            raise LedgerOperationError(f"Failed to {action.replace('_', ' ')}.", {"action": action}) from exc

        try:
            payload = resp.json() if resp.content else {}
        except ValueError:
            payload = {"error": resp.text}
        if not isinstance(payload, dict):
            payload = {"data": payload}

        if resp.status_code >= 400:
            message = payload.get("error") or f"Failed to {action.replace('_', ' ')}."
            logger.warning("Ledger %s rejected (%d): %s", action, resp.status_code, message)
            raise LedgerOperationError(message, {"action": action, "status": resp.status_code})
        return payload

    async def _wallet_operation(self, action: str, body: Optional[dict[str, Any]] = None) -> LedgerResult:
        retries = settings.LEDGER_READ_RETRIES if action in _RETRYABLE_ACTIONS else 0
        payload = await self._call(
            "POST", "wallet-operations", action, retries=retries,
            params={"action": action}, body=body or {},
        )
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        return _parse(LedgerResult, {
            "success": bool(payload.get("success", False)),
            "new_balance": _first(data, "newBalance", "new_balance"),
            "bonus": _first(data, "bonus", "amount"),
            "error": payload.get("error"),
            "data": data,
        }, action)

    async def place_bet(self, amount: float, match_id: str, description: str) -> LedgerResult:
        return await self._wallet_operation(
            "place_bet", {"amount": amount, "matchId": match_id, "description": description},
        )

    async def record_win(self, stake: float, odds: float, description: str) -> LedgerResult:
        return await self._wallet_operation(
            "record_win", {"stake": stake, "odds": odds, "description": description},
        )

    async def record_loss(self, stake: float, description: str) -> LedgerResult:
        return await self._wallet_operation("record_loss", {"stake": stake, "description": description})

    async def claim_welcome_bonus(self) -> LedgerResult:
        return await self._wallet_operation("claim_welcome_bonus")

    async def add_referral_bonus(self, amount: float) -> LedgerResult:
        return await self._wallet_operation("add_referral_bonus", {"amount": amount})

    async def add_leaderboard_prize(self, amount: float) -> LedgerResult:
        return await self._wallet_operation("add_leaderboard_prize", {"amount": amount})

    async def purchase_item(self, cost: float, item_name: str) -> LedgerResult:
        return await self._wallet_operation("purchase_item", {"cost": cost, "itemName": item_name})

    async def enter_tournament(self, cost: float, tournament_name: str) -> LedgerResult:
        return await self._wallet_operation(
            "enter_tournament", {"cost": cost, "tournamentName": tournament_name},
        )

    async def unlock_insight(self, cost: float, insight_name: str) -> LedgerResult:
        return await self._wallet_operation("unlock_insight", {"cost": cost, "insightName": insight_name})

    # ---------- Daily rewards ----------

    async def check_daily_reward(self) -> DailyRewardStatus:
        payload = await self._call(
            "GET", "daily-rewards", "check_daily_reward",
            retries=settings.LEDGER_READ_RETRIES, params={"action": "check"},
        )
        return _parse(DailyRewardStatus, payload.get("data") or {"can_claim": False}, "check_daily_reward")

    async def claim_daily_reward(self) -> DailyRewardClaim:
        payload = await self._call(
            "POST", "daily-rewards", "claim_daily_reward",
            retries=settings.LEDGER_READ_RETRIES, params={"action": "claim"},
        )
        return _parse(DailyRewardClaim, payload.get("data") or {"success": False}, "claim_daily_reward")

    # ---------- Reads ----------

    async def get_user_bet_stats(self) -> BetStats:
        payload = await self._call(
            "GET", "bets/stats", "load_bet_stats", retries=settings.LEDGER_READ_RETRIES,
        )
        return _parse(BetStats, payload.get("data") or payload, "load_bet_stats")

    async def is_participant(self, match_id: str, user_id: str) -> bool:
        payload = await self._call(
            "GET", f"matches/{match_id}/participants/{user_id}", "validate_participant",
            retries=settings.LEDGER_READ_RETRIES,
        )
        data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
        return bool(_first(data, "isParticipant", "is_participant"))
