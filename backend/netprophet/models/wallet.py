"""Wallet mirror models: balance snapshot, local transaction log, ledger responses."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from netprophet.config import settings
from netprophet.models.prediction import CamelModel
from netprophet.utils import utcnow


# ---------- Local mirror ----------

class TransactionType(str, Enum):
    BET = "bet"
    WIN = "win"
    LOSS = "loss"
    WELCOME_BONUS = "welcome_bonus"
    DAILY_LOGIN = "daily_login"
    REFERRAL = "referral"
    LEADERBOARD = "leaderboard"
    PURCHASE = "purchase"
    TOURNAMENT_ENTRY = "tournament_entry"
    INSIGHT_UNLOCK = "insight_unlock"


class Transaction(CamelModel):
    """Display-only record of a coin movement. Full history lives in the remote ledger."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: TransactionType
    amount: float  # positive = credit, negative = debit
    description: str
    timestamp: datetime = Field(default_factory=utcnow)


class Wallet(CamelModel):
    """Session mirror of the server-authoritative wallet."""
    balance: float = Field(default_factory=lambda: settings.STARTING_BALANCE, ge=0)
    total_winnings: float = 0.0
    total_losses: float = 0.0
    net_profit: float = 0.0
    win_rate: float = 0.0
    total_bets: int = 0
    won_bets: int = 0
    lost_bets: int = 0
    recent_transactions: list[Transaction] = Field(default_factory=list)  # most recent first
    daily_login_streak: int = Field(default=0, ge=0)
    total_coins_earned: float = 0.0
    total_coins_spent: float = 0.0
    referral_bonus_earned: float = 0.0
    leaderboard_prizes_earned: float = 0.0
    has_received_welcome_bonus: bool = False
    # Settled outcome operation ids already applied to the aggregates
    applied_operation_ids: list[str] = Field(default_factory=list)


# ---------- Remote ledger contracts ----------

class LedgerResult(BaseModel):
    """Normalized response of a wallet-operations call."""
    success: bool
    new_balance: Optional[float] = None
    bonus: Optional[float] = None
    error: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)


class DailyRewardStatus(BaseModel):
    can_claim: bool
    current_streak: int = 0
    next_reward_amount: float = 0.0


class DailyRewardClaim(BaseModel):
    success: bool
    reward_amount: float = 0.0
    new_streak: int = 0
    message: str = ""


class BetStats(BaseModel):
    total_bets: int = 0
    won_bets: int = 0
    lost_bets: int = 0
    total_winnings: float = 0.0
    total_losses: float = 0.0
    win_rate: float = 0.0


# ---------- Request / Response models ----------

class PlaceBetRequest(CamelModel):
    amount: float
    match_id: str
    description: str = ""


class SettleBetRequest(CamelModel):
    stake: float
    odds: float = 1.0
    description: str = ""
    operation_id: Optional[str] = None


class AmountRequest(CamelModel):
    amount: float


class SpendRequest(CamelModel):
    cost: float
    name: str
