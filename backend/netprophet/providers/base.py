from abc import ABC, abstractmethod

from netprophet.models.wallet import BetStats, DailyRewardClaim, DailyRewardStatus, LedgerResult


class BaseLedgerProvider(ABC):
    """Abstract remote ledger: the server-authoritative side of the wallet.

    Implementations return a LedgerResult with success=False (and an error
    message) when the server refuses an operation, and raise
    LedgerOperationError when the call itself fails.
    """

    @abstractmethod
    async def place_bet(self, amount: float, match_id: str, description: str) -> LedgerResult:
        """Debit a stake. new_balance is the authoritative balance after the debit."""
        ...

    @abstractmethod
    async def record_win(self, stake: float, odds: float, description: str) -> LedgerResult:
        ...

    @abstractmethod
    async def record_loss(self, stake: float, description: str) -> LedgerResult:
        ...

    @abstractmethod
    async def claim_welcome_bonus(self) -> LedgerResult:
        """One-time bonus. bonus is the credited amount."""
        ...

    @abstractmethod
    async def check_daily_reward(self) -> DailyRewardStatus:
        ...

    @abstractmethod
    async def claim_daily_reward(self) -> DailyRewardClaim:
        """Streak continuity is decided server-side from the last claim date."""
        ...

    @abstractmethod
    async def add_referral_bonus(self, amount: float) -> LedgerResult:
        ...

    @abstractmethod
    async def add_leaderboard_prize(self, amount: float) -> LedgerResult:
        ...

    @abstractmethod
    async def purchase_item(self, cost: float, item_name: str) -> LedgerResult:
        ...

    @abstractmethod
    async def enter_tournament(self, cost: float, tournament_name: str) -> LedgerResult:
        ...

    @abstractmethod
    async def unlock_insight(self, cost: float, insight_name: str) -> LedgerResult:
        ...

    @abstractmethod
    async def get_user_bet_stats(self) -> BetStats:
        ...

    @abstractmethod
    async def is_participant(self, match_id: str, user_id: str) -> bool:
        """True when the user plays in the match (self-betting guard)."""
        ...
