"""Wallet mirror endpoints: balance, bets, bonuses, spending."""

from fastapi import APIRouter, Depends

from netprophet.models.wallet import (
    AmountRequest,
    DailyRewardStatus,
    PlaceBetRequest,
    SettleBetRequest,
    SpendRequest,
    Wallet,
)
from netprophet.services.session_service import SessionServices, get_session

router = APIRouter(prefix="/api/wallet", tags=["wallet"])


@router.get("", response_model=Wallet)
async def get_wallet(services: SessionServices = Depends(get_session)):
    return services.wallet.wallet


@router.post("/sync", response_model=Wallet)
async def sync_bet_stats(services: SessionServices = Depends(get_session)):
    """Replace bet aggregates with the ledger's figures."""
    return await services.wallet.sync_bet_stats()


# ---------- Bets ----------

@router.post("/bets", response_model=Wallet)
async def place_bet(body: PlaceBetRequest, services: SessionServices = Depends(get_session)):
    return await services.wallet.place_bet(body.amount, body.match_id, body.description)


@router.post("/bets/win", response_model=Wallet)
async def record_win(body: SettleBetRequest, services: SessionServices = Depends(get_session)):
    return await services.wallet.record_win(body.stake, body.odds, body.description, body.operation_id)


@router.post("/bets/loss", response_model=Wallet)
async def record_loss(body: SettleBetRequest, services: SessionServices = Depends(get_session)):
    return await services.wallet.record_loss(body.stake, body.description, body.operation_id)


# ---------- Bonuses ----------

@router.post("/welcome-bonus")
async def claim_welcome_bonus(services: SessionServices = Depends(get_session)):
    bonus = await services.wallet.claim_welcome_bonus()
    return {"bonus": bonus, "balance": services.wallet.wallet.balance}


@router.get("/daily-login", response_model=DailyRewardStatus)
async def check_daily_login(services: SessionServices = Depends(get_session)):
    return await services.wallet.check_daily_login()


@router.post("/daily-login")
async def claim_daily_login(services: SessionServices = Depends(get_session)):
    reward = await services.wallet.claim_daily_login()
    return {
        "reward": reward,
        "streak": services.wallet.wallet.daily_login_streak,
        "balance": services.wallet.wallet.balance,
    }


@router.post("/referral-bonus", response_model=Wallet)
async def add_referral_bonus(body: AmountRequest, services: SessionServices = Depends(get_session)):
    return await services.wallet.add_referral_bonus(body.amount)


@router.post("/leaderboard-prize", response_model=Wallet)
async def add_leaderboard_prize(body: AmountRequest, services: SessionServices = Depends(get_session)):
    return await services.wallet.add_leaderboard_prize(body.amount)


# ---------- Spending ----------

@router.post("/purchases", response_model=Wallet)
async def purchase_item(body: SpendRequest, services: SessionServices = Depends(get_session)):
    return await services.wallet.purchase_item(body.cost, body.name)


@router.post("/tournament-entries", response_model=Wallet)
async def enter_tournament(body: SpendRequest, services: SessionServices = Depends(get_session)):
    return await services.wallet.enter_tournament(body.cost, body.name)


@router.post("/insights", response_model=Wallet)
async def unlock_insight(body: SpendRequest, services: SessionServices = Depends(get_session)):
    return await services.wallet.unlock_insight(body.cost, body.name)
