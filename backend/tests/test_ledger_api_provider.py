"""
backend/tests/test_ledger_api_provider.py

Purpose:
    HTTP ledger adapter contract: request shape (action param, camelCase
    body, bearer token), envelope normalization, error mapping and the
    retry policy split between money-moving actions and reads.
"""

from __future__ import annotations

import json

import httpx
import pytest

from netprophet.exceptions import LedgerOperationError
from netprophet.providers.http_client import ResilientClient
from netprophet.providers.ledger_api import HttpLedgerProvider

BASE_URL = "https://ledger.test/functions/v1"


def _provider(handler, token: str | None = "tok-123") -> tuple[HttpLedgerProvider, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = ResilientClient("ledger", base_delay=0.0, transport=httpx.MockTransport(_record))
    return HttpLedgerProvider(client, access_token=token, base_url=BASE_URL), seen


@pytest.mark.asyncio
async def test_place_bet_request_shape_and_balance():
    provider, seen = _provider(
        lambda r: httpx.Response(200, json={"success": True, "data": {"newBalance": 880}}),
    )

    result = await provider.place_bet(120, "m42", "Winner: Sinner")

    assert result.success is True
    assert result.new_balance == 880
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/functions/v1/wallet-operations"
    assert request.url.params["action"] == "place_bet"
    assert request.headers["Authorization"] == "Bearer tok-123"
    assert json.loads(request.content) == {"amount": 120, "matchId": "m42", "description": "Winner: Sinner"}


@pytest.mark.asyncio
async def test_spend_bodies_use_camel_case_names():
    provider, seen = _provider(lambda r: httpx.Response(200, json={"success": True, "data": {}}))

    await provider.purchase_item(100, "Avatar")
    await provider.enter_tournament(200, "Weekly Cup")
    await provider.unlock_insight(50, "H2H")

    bodies = [json.loads(r.content) for r in seen]
    assert bodies == [
        {"cost": 100, "itemName": "Avatar"},
        {"cost": 200, "tournamentName": "Weekly Cup"},
        {"cost": 50, "insightName": "H2H"},
    ]
    assert [r.url.params["action"] for r in seen] == ["purchase_item", "enter_tournament", "unlock_insight"]


@pytest.mark.asyncio
async def test_refusal_in_envelope_is_returned_not_raised():
    provider, _ = _provider(
        lambda r: httpx.Response(200, json={"success": False, "error": "Insufficient balance"}),
    )
    result = await provider.place_bet(100, "m1", "bet")
    assert result.success is False
    assert result.error == "Insufficient balance"
    assert result.new_balance is None


@pytest.mark.asyncio
async def test_http_error_raises_with_server_message():
    provider, _ = _provider(lambda r: httpx.Response(400, json={"error": "Bet amount too low"}))
    with pytest.raises(LedgerOperationError, match="Bet amount too low") as excinfo:
        await provider.place_bet(1, "m1", "bet")
    assert excinfo.value.details["status"] == 400


@pytest.mark.asyncio
async def test_place_bet_is_never_retried():
    provider, seen = _provider(lambda r: httpx.Response(503, json={"error": "Unavailable"}))
    with pytest.raises(LedgerOperationError):
        await provider.place_bet(100, "m1", "bet")
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_daily_reward_check_is_retried():
    responses = iter([
        httpx.Response(503),
        httpx.Response(200, json={"success": True, "data": {
            "can_claim": True, "current_streak": 4, "next_reward_amount": 50,
        }}),
    ])
    provider, seen = _provider(lambda r: next(responses))

    status = await provider.check_daily_reward()

    assert len(seen) == 2
    assert seen[0].url.params["action"] == "check"
    assert status.can_claim is True
    assert status.current_streak == 4


@pytest.mark.asyncio
async def test_network_error_maps_to_ledger_error():
    def _boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    provider, seen = _provider(_boom)
    with pytest.raises(LedgerOperationError, match="Failed to record win"):
        await provider.record_win(100, 2.0, "Won")
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_welcome_bonus_amount_parsed():
    provider, _ = _provider(
        lambda r: httpx.Response(200, json={"success": True, "data": {"newBalance": 1250, "bonus": 250}}),
    )
    result = await provider.claim_welcome_bonus()
    assert result.bonus == 250
    assert result.new_balance == 1250


@pytest.mark.asyncio
async def test_bet_stats_and_participant_reads():
    def _handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/bets/stats"):
            return httpx.Response(200, json={"data": {"total_bets": 4, "won_bets": 3, "lost_bets": 1, "win_rate": 75}})
        return httpx.Response(200, json={"data": {"isParticipant": True}})

    provider, seen = _provider(_handler, token=None)

    stats = await provider.get_user_bet_stats()
    assert stats.won_bets == 3
    assert stats.win_rate == 75
    assert await provider.is_participant("m7", "u1") is True
    assert seen[1].url.path.endswith("/matches/m7/participants/u1")


@pytest.mark.asyncio
async def test_unreadable_payload_raises_ledger_error():
    provider, _ = _provider(lambda r: httpx.Response(200, json={"data": {"can_claim": "maybe"}}))
    with pytest.raises(LedgerOperationError, match="Invalid response"):
        await provider.check_daily_reward()


@pytest.mark.asyncio
async def test_circuit_opens_after_repeated_failures():
    provider, seen = _provider(lambda r: httpx.Response(503, json={"error": "Unavailable"}))

    for _ in range(3):
        with pytest.raises(LedgerOperationError):
            await provider.place_bet(100, "m1", "bet")
    with pytest.raises(LedgerOperationError, match="Failed to place bet"):
        await provider.place_bet(100, "m1", "bet")

    assert len(seen) == 3
    assert provider._client.circuit.state == "open"
