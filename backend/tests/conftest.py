"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap: puts backend/ on sys.path so tests import the
    `netprophet` package without an install, pins economy settings that
    individual tests rely on and provides an in-memory ledger fake.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

_THIS_FILE = Path(__file__).resolve()
_BACKEND_DIR = _THIS_FILE.parents[1]

if str(_BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(_BACKEND_DIR))

from netprophet.config import settings  # noqa: E402
from netprophet.exceptions import LedgerOperationError  # noqa: E402
from netprophet.models.wallet import (  # noqa: E402
    BetStats,
    DailyRewardClaim,
    DailyRewardStatus,
    LedgerResult,
)
from netprophet.providers.base import BaseLedgerProvider  # noqa: E402


@pytest.fixture(autouse=True)
def _default_economy(monkeypatch):
    """Tests assume the stock coin economy regardless of a local .env."""
    monkeypatch.setattr(settings, "STARTING_BALANCE", 1000.0)
    monkeypatch.setattr(settings, "MIN_BET", 10.0)
    monkeypatch.setattr(settings, "MAX_BET", 1000.0)
    monkeypatch.setattr(settings, "WELCOME_BONUS", 250.0)
    monkeypatch.setattr(settings, "REFERRAL_BONUS", 250.0)
    monkeypatch.setattr(settings, "TRANSACTION_LOG_LIMIT", 10)
    monkeypatch.setattr(settings, "MULTIPLIER_DIMENSION_BONUS", 0.2)
    monkeypatch.setattr(settings, "PARLAY_BONUS_PERCENTAGE", 0.05)
    monkeypatch.setattr(settings, "STREAK_BOOSTER_PERCENTAGE", 0.02)
    monkeypatch.setattr(settings, "SAFE_BET_COST", 50.0)
    monkeypatch.setattr(settings, "SESSION_KEY_PREFIX", "netprophet")
    monkeypatch.setattr(settings, "LEDGER_READ_RETRIES", 2)
    monkeypatch.setattr(settings, "LEDGER_RETRY_BASE_DELAY", 0.0)


class FakeLedger(BaseLedgerProvider):
    """Server-side balance with a call log.

    `fail` raises LedgerOperationError for every action, `fail_actions` only
    for the named ones. `refuse` answers success=False with that message,
    `gate` holds every wallet operation until it is set.
    """

    def __init__(self, balance: float = 1000.0):
        self.balance = balance
        self.calls: list[tuple] = []
        self.fail = False
        self.fail_actions: set[str] = set()
        self.refuse: str | None = None
        self.gate: asyncio.Event | None = None
        self.stats = BetStats()
        self.daily = DailyRewardClaim(success=True, reward_amount=30, new_streak=2, message="ok")
        self.participants: set[tuple[str, str]] = set()

    async def _apply(self, action: str, delta: float, *args) -> LedgerResult:
        self.calls.append((action, *args))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail or action in self.fail_actions:
            raise LedgerOperationError(f"Failed to {action}.")
        if self.refuse:
            return LedgerResult(success=False, error=self.refuse)
        self.balance += delta
        return LedgerResult(success=True, new_balance=self.balance)

    async def place_bet(self, amount, match_id, description):
        return await self._apply("place_bet", -amount, amount, match_id)

    async def record_win(self, stake, odds, description):
        return await self._apply("record_win", round(stake * odds), stake, odds)

    async def record_loss(self, stake, description):
        return await self._apply("record_loss", 0, stake)

    async def claim_welcome_bonus(self):
        result = await self._apply("claim_welcome_bonus", 250)
        return result.model_copy(update={"bonus": 250.0}) if result.success else result

    async def check_daily_reward(self):
        self.calls.append(("check_daily_reward",))
        return DailyRewardStatus(can_claim=True, current_streak=1, next_reward_amount=30)

    async def claim_daily_reward(self):
        self.calls.append(("claim_daily_reward",))
        return self.daily

    async def add_referral_bonus(self, amount):
        return await self._apply("add_referral_bonus", amount, amount)

    async def add_leaderboard_prize(self, amount):
        return await self._apply("add_leaderboard_prize", amount, amount)

    async def purchase_item(self, cost, item_name):
        return await self._apply("purchase_item", -cost, cost, item_name)

    async def enter_tournament(self, cost, tournament_name):
        return await self._apply("enter_tournament", -cost, cost, tournament_name)

    async def unlock_insight(self, cost, insight_name):
        return await self._apply("unlock_insight", -cost, cost, insight_name)

    async def get_user_bet_stats(self):
        self.calls.append(("get_user_bet_stats",))
        if self.fail:
            raise LedgerOperationError("Failed to load bet stats.")
        return self.stats

    async def is_participant(self, match_id, user_id):
        self.calls.append(("is_participant", match_id, user_id))
        return (str(match_id), user_id) in self.participants


@pytest.fixture
def fake_ledger() -> FakeLedger:
    return FakeLedger()
