"""
backend/netprophet/services/wallet_ledger_service.py

Purpose:
    Session mirror of the server-authoritative coin wallet. Every coin movement
    is validated locally, sent to the remote ledger, then reconciled with the
    server response:

    - nothing changes locally while the request is in flight
    - on success the result is applied to the CURRENT wallet and the balance
      is SET to the server's new balance
    - on failure (transport error or success=False) LedgerOperationError is
      raised and the wallet is left as it was

    Bet outcomes carry an optional operation id; replaying an id already
    applied to the aggregates is a no-op. sync_bet_stats() replaces the
    aggregates wholesale from the ledger.

Dependencies:
    - netprophet.providers.base
    - netprophet.services.session_storage_service
    - netprophet.services.prediction_migration_service
"""

from __future__ import annotations

import logging
from typing import Awaitable, Optional

from netprophet.config import settings
from netprophet.exceptions import (
    BetValidationError,
    InsufficientBalanceError,
    LedgerOperationError,
)
from netprophet.models.wallet import (
    DailyRewardStatus,
    LedgerResult,
    Transaction,
    TransactionType,
    Wallet,
)
from netprophet.providers.base import BaseLedgerProvider
from netprophet.services.prediction_migration_service import migrate_wallet_snapshot
from netprophet.services.session_storage_service import SessionKeys, SessionStorage
from netprophet.utils import round_coins

logger = logging.getLogger("netprophet.wallet_ledger")

# Applied outcome ids kept for replay detection
_APPLIED_OPERATION_LIMIT = 200


def _win_rate(won: int, lost: int) -> float:
    settled = won + lost
    return won / settled * 100 if settled else 0.0


def _with_transaction(
    wallet: Wallet, tx_type: TransactionType, amount: float, description: str, **changes,
) -> Wallet:
    """Prepend a transaction (log bounded) and track earned/spent coin flows."""
    tx = Transaction(type=tx_type, amount=amount, description=description)
    recent = [tx, *wallet.recent_transactions][: settings.TRANSACTION_LOG_LIMIT]
    update = {"recent_transactions": recent}
    if tx_type is TransactionType.LOSS:
        pass  # stake already counted as spent when the bet was placed
    elif amount > 0:
        update["total_coins_earned"] = wallet.total_coins_earned + amount
    else:
        update["total_coins_spent"] = wallet.total_coins_spent + abs(amount)
    update.update(changes)
    return wallet.model_copy(update=update)


class WalletLedger:
    def __init__(
        self,
        storage: SessionStorage,
        provider: BaseLedgerProvider,
        keys: SessionKeys | None = None,
    ):
        self._storage = storage
        self._provider = provider
        self._keys = keys or SessionKeys.for_prefix()
        self.wallet = Wallet()
        self.closed = False
        self.hydrate()

    # ---------- Lifecycle ----------

    def hydrate(self) -> Wallet:
        """Load the persisted snapshot, defaults for anything missing."""
        self.wallet = migrate_wallet_snapshot(self._storage.get(self._keys.wallet))
        return self.wallet

    def persist(self) -> None:
        self._storage.set(self._keys.wallet, self.wallet.model_dump(mode="json", by_alias=True))

    def reset(self) -> None:
        """Logout: drop the persisted snapshot and start from defaults."""
        self._storage.remove(self._keys.wallet)
        self.wallet = Wallet()

    def close(self) -> None:
        self.closed = True

    async def reconcile(self) -> Wallet:
        """Mount-time refresh of the bet aggregates. A failed refresh keeps the mirror."""
        try:
            return await self.sync_bet_stats()
        except LedgerOperationError as exc:
            logger.warning("Bet stats refresh failed, keeping mirrored aggregates: %s", exc.message)
            return self.wallet

    async def sync_bet_stats(self) -> Wallet:
        stats = await self._provider.get_user_bet_stats()
        if self.closed:
            return self.wallet
        self.wallet = self.wallet.model_copy(update={
            "total_bets": stats.total_bets,
            "won_bets": stats.won_bets,
            "lost_bets": stats.lost_bets,
            "total_winnings": stats.total_winnings,
            "total_losses": stats.total_losses,
            "net_profit": stats.total_winnings - stats.total_losses,
            "win_rate": stats.win_rate,
        })
        self.persist()
        return self.wallet

    # ---------- Remote call protocol ----------

    async def _execute(self, operation: str, call: Awaitable[LedgerResult]) -> Optional[LedgerResult]:
        """Await a ledger call; None when the session closed meanwhile.

        The mirror is not touched while the call is in flight, so a failure
        leaves nothing to roll back and concurrent operations never overwrite
        each other.
        """
        try:
            result = await call
        except LedgerOperationError as exc:
            logger.warning("Ledger %s failed: %s", operation, exc.message)
            raise
        if not result.success:
            logger.warning("Ledger refused %s: %s", operation, result.error)
            raise LedgerOperationError(
                result.error or f"Ledger refused {operation}.", {"operation": operation},
            )
        if self.closed:
            logger.info("Session closed while %s was in flight, result ignored", operation)
            return None
        return result

    def _confirmed_balance(self, result: LedgerResult, delta: float) -> float:
        if result.new_balance is not None:
            return result.new_balance
        logger.debug("Ledger response without newBalance, applying delta %.0f", delta)
        return max(self.wallet.balance + delta, 0.0)

    def _commit(self, wallet: Wallet) -> Wallet:
        self.wallet = wallet
        self.persist()
        return wallet

    # ---------- Validation ----------

    def _require_positive(self, amount: float, label: str) -> None:
        if amount <= 0:
            raise BetValidationError(f"{label} must be greater than 0.", {label.lower(): amount})

    def _require_affordable(self, amount: float) -> None:
        if amount > self.wallet.balance:
            raise InsufficientBalanceError(
                f"Insufficient balance. You have {self.wallet.balance:.0f} but need {amount:.0f}.",
                {"balance": self.wallet.balance, "required": amount},
            )

    # ---------- Bets ----------

    async def place_bet(self, amount: float, match_id: str, description: str) -> Wallet:
        if amount < settings.MIN_BET:
            raise BetValidationError(
                f"Minimum bet amount is {settings.MIN_BET:.0f}.", {"amount": amount},
            )
        if amount > settings.MAX_BET:
            raise BetValidationError(
                f"Maximum bet amount is {settings.MAX_BET:.0f}.", {"amount": amount},
            )
        self._require_affordable(amount)

        result = await self._execute(
            "place_bet", self._provider.place_bet(amount, str(match_id), description),
        )
        if result is None:
            return self.wallet
        wallet = _with_transaction(
            self.wallet, TransactionType.BET, -amount, description,
            balance=self._confirmed_balance(result, -amount),
            total_bets=self.wallet.total_bets + 1,
        )
        logger.info("Bet placed on match %s: %.0f coins", match_id, amount)
        return self._commit(wallet)

    def _already_applied(self, operation_id: Optional[str]) -> bool:
        if operation_id and operation_id in self.wallet.applied_operation_ids:
            logger.info("Outcome %s already applied, skipping", operation_id)
            return True
        return False

    def _applied_ids(self, operation_id: Optional[str]) -> list[str]:
        ids = list(self.wallet.applied_operation_ids)
        if operation_id:
            ids.append(operation_id)
        return ids[-_APPLIED_OPERATION_LIMIT:]

    async def record_win(
        self, stake: float, odds: float, description: str, operation_id: Optional[str] = None,
    ) -> Wallet:
        if self._already_applied(operation_id):
            return self.wallet
        self._require_positive(stake, "Stake")

        result = await self._execute("record_win", self._provider.record_win(stake, odds, description))
        if result is None or self._already_applied(operation_id):
            return self.wallet
        winnings = float(round_coins(stake * odds))
        won = self.wallet.won_bets + 1
        wallet = _with_transaction(
            self.wallet, TransactionType.WIN, winnings, description,
            balance=self._confirmed_balance(result, winnings),
            total_winnings=self.wallet.total_winnings + winnings,
            won_bets=won,
            net_profit=self.wallet.net_profit + winnings,
            win_rate=_win_rate(won, self.wallet.lost_bets),
            applied_operation_ids=self._applied_ids(operation_id),
        )
        logger.info("Win recorded: +%.0f coins", winnings)
        return self._commit(wallet)

    async def record_loss(self, stake: float, description: str, operation_id: Optional[str] = None) -> Wallet:
        if self._already_applied(operation_id):
            return self.wallet
        self._require_positive(stake, "Stake")

        result = await self._execute("record_loss", self._provider.record_loss(stake, description))
        if result is None or self._already_applied(operation_id):
            return self.wallet
        lost = self.wallet.lost_bets + 1
        # The stake already left the balance when the bet was placed.
        wallet = _with_transaction(
            self.wallet, TransactionType.LOSS, -stake, description,
            balance=self._confirmed_balance(result, 0.0),
            total_losses=self.wallet.total_losses + stake,
            lost_bets=lost,
            net_profit=self.wallet.net_profit - stake,
            win_rate=_win_rate(self.wallet.won_bets, lost),
            applied_operation_ids=self._applied_ids(operation_id),
        )
        logger.info("Loss recorded: %.0f coins", stake)
        return self._commit(wallet)

    # ---------- Bonuses ----------

    async def claim_welcome_bonus(self) -> float:
        """Credit the one-time welcome bonus. Returns 0 when already received."""
        if self.wallet.has_received_welcome_bonus:
            return 0.0

        result = await self._execute("claim_welcome_bonus", self._provider.claim_welcome_bonus())
        if result is None:
            return 0.0
        bonus = result.bonus if result.bonus is not None else settings.WELCOME_BONUS
        wallet = _with_transaction(
            self.wallet, TransactionType.WELCOME_BONUS, bonus, "Welcome bonus",
            balance=self._confirmed_balance(result, bonus),
            has_received_welcome_bonus=True,
        )
        logger.info("Welcome bonus credited: %.0f coins", bonus)
        self._commit(wallet)
        return bonus

    async def check_daily_login(self) -> DailyRewardStatus:
        """Read-only check, nothing is credited."""
        return await self._provider.check_daily_reward()

    async def claim_daily_login(self) -> float:
        """Claim today's reward. Amount and streak are whatever the ledger says."""
        claim = await self._provider.claim_daily_reward()
        if self.closed:
            return 0.0
        if not claim.success:
            logger.info("Daily reward not claimed: %s", claim.message)
            return 0.0
        wallet = _with_transaction(
            self.wallet, TransactionType.DAILY_LOGIN, claim.reward_amount,
            f"Daily login bonus ({claim.new_streak} day streak)",
            balance=self.wallet.balance + claim.reward_amount,
            daily_login_streak=claim.new_streak,
        )
        logger.info("Daily reward claimed: %.0f coins, streak %d", claim.reward_amount, claim.new_streak)
        self._commit(wallet)
        return claim.reward_amount

    async def add_referral_bonus(self, amount: float | None = None) -> Wallet:
        amount = settings.REFERRAL_BONUS if amount is None else amount
        self._require_positive(amount, "Amount")
        result = await self._execute("add_referral_bonus", self._provider.add_referral_bonus(amount))
        if result is None:
            return self.wallet
        wallet = _with_transaction(
            self.wallet, TransactionType.REFERRAL, amount, "Referral bonus",
            balance=self._confirmed_balance(result, amount),
            referral_bonus_earned=self.wallet.referral_bonus_earned + amount,
        )
        return self._commit(wallet)

    async def add_leaderboard_prize(self, amount: float) -> Wallet:
        self._require_positive(amount, "Amount")
        result = await self._execute("add_leaderboard_prize", self._provider.add_leaderboard_prize(amount))
        if result is None:
            return self.wallet
        wallet = _with_transaction(
            self.wallet, TransactionType.LEADERBOARD, amount, "Leaderboard prize",
            balance=self._confirmed_balance(result, amount),
            leaderboard_prizes_earned=self.wallet.leaderboard_prizes_earned + amount,
        )
        return self._commit(wallet)

    # ---------- Spending ----------

    async def _spend(
        self, operation: str, call_factory, cost: float, tx_type: TransactionType, description: str,
    ) -> Wallet:
        self._require_positive(cost, "Cost")
        self._require_affordable(cost)
        result = await self._execute(operation, call_factory())
        if result is None:
            return self.wallet
        wallet = _with_transaction(
            self.wallet, tx_type, -cost, description,
            balance=self._confirmed_balance(result, -cost),
        )
        logger.info("%s: -%.0f coins", description, cost)
        return self._commit(wallet)

    async def purchase_item(self, cost: float, item_name: str) -> Wallet:
        return await self._spend(
            "purchase_item", lambda: self._provider.purchase_item(cost, item_name),
            cost, TransactionType.PURCHASE, f"Purchased {item_name}",
        )

    async def enter_tournament(self, cost: float, tournament_name: str) -> Wallet:
        return await self._spend(
            "enter_tournament", lambda: self._provider.enter_tournament(cost, tournament_name),
            cost, TransactionType.TOURNAMENT_ENTRY, f"Tournament entry: {tournament_name}",
        )

    async def unlock_insight(self, cost: float, insight_name: str) -> Wallet:
        return await self._spend(
            "unlock_insight", lambda: self._provider.unlock_insight(cost, insight_name),
            cost, TransactionType.INSIGHT_UNLOCK, f"Unlocked insight: {insight_name}",
        )
