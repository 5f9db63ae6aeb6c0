from __future__ import annotations

import asyncio
import json
from decimal import Decimal

import pytest
import websockets
from aiohttp import test_utils, web

from volume_bot.config import ExchangeSettings
from volume_bot.core.errors import GatewayError, OrderRejected
from volume_bot.core.types import Environment, OrderRequest, OrderSide
from volume_bot.execution.http_gateway import HttpExchangeGateway, sign_request

SECRET = "test-secret"


def test_signature_is_deterministic() -> None:
    first = sign_request(SECRET, "1700000000000", "post", "/api/v2/order/market", '{"a":1}')
    second = sign_request(SECRET, "1700000000000", "POST", "/api/v2/order/market", '{"a":1}')

    assert first == second
    assert len(first) == 64
    assert first != sign_request("other", "1700000000000", "POST", "/api/v2/order/market", '{"a":1}')


async def check_signature(request: web.Request) -> web.Response | None:
    body = await request.text()
    expected = sign_request(SECRET, request.headers["X-Timestamp"], request.method, request.path, body)
    if request.headers.get("X-Signature") != expected:
        return web.json_response({"message": "bad signature"}, status=401)
    return None


def build_app(received: list[dict]) -> web.Application:
    async def me(request: web.Request) -> web.Response:
        return await check_signature(request) or web.json_response({"id": 42})

    async def deep(request: web.Request) -> web.Response:
        assert request.query["maxLevel"] == "1"
        return web.json_response(
            {
                "bids": [{"price": "49999.5", "quantity": "1.2"}],
                "asks": [{"price": "50000.5", "quantity": "0.8"}],
            }
        )

    async def recent_trades(request: web.Request) -> web.Response:
        return web.json_response({"list": [{"price": "50001", "quantity": "0.01"}]})

    async def balance(request: web.Request) -> web.Response:
        return web.json_response({"availableBalance": "1234.5", "currency": "USDT"})

    async def market_order(request: web.Request) -> web.Response:
        denied = await check_signature(request)
        if denied:
            return denied
        body = json.loads(await request.text())
        received.append(body)
        if Decimal(body["cashQuantity"]) > 1000:
            return web.json_response(
                {"message": "insufficient margin", "required": body["cashQuantity"]},
                status=400,
            )
        return web.json_response({"id": f"ord-{len(received)}"})

    async def leverage(request: web.Request) -> web.Response:
        body = json.loads(await request.text())
        if body["leverage"] > 50:
            return web.json_response({"message": "leverage too high"}, status=422)
        return web.json_response({})

    app = web.Application()
    app.router.add_get("/api/user/me", me)
    app.router.add_get("/api/market/{instrument}/deep", deep)
    app.router.add_get("/api/market/{instrument}/recent-trades", recent_trades)
    app.router.add_get("/api/user/balance", balance)
    app.router.add_post("/api/v2/order/market", market_order)
    app.router.add_put("/api/position/{instrument}", leverage)
    return app


async def start_gateway(
    received: list[dict], **overrides
) -> tuple[test_utils.TestServer, HttpExchangeGateway]:
    server = test_utils.TestServer(build_app(received))
    await server.start_server()
    settings = ExchangeSettings(_env_file=None, demo_rest_url=str(server.make_url("/")), **overrides)
    gateway = HttpExchangeGateway(Environment.DEMO, settings, private_key=SECRET)
    await gateway.connect()
    return server, gateway


@pytest.mark.asyncio()
async def test_connect_resolves_account() -> None:
    server, gateway = await start_gateway([])
    try:
        assert gateway.is_connected
        assert gateway.account_id == "42"
    finally:
        await gateway.close_connection()
        await server.close()


@pytest.mark.asyncio()
async def test_market_data_is_parsed() -> None:
    server, gateway = await start_gateway([])
    try:
        book = await gateway.fetch_top_of_book("BTCUSD")
        trades = await gateway.fetch_recent_trades("BTCUSD")
        balance = await gateway.get_available_balance()
    finally:
        await gateway.close_connection()
        await server.close()

    assert book.bids[0].price == Decimal("49999.5")
    assert book.asks[0].price == Decimal("50000.5")
    assert trades[0].price == Decimal("50001")
    assert balance.available_balance == Decimal("1234.5")


@pytest.mark.asyncio()
async def test_market_order_is_signed_and_sent_as_ioc() -> None:
    received: list[dict] = []
    server, gateway = await start_gateway(received)
    try:
        request = OrderRequest(instrument="BTCUSD", side=OrderSide.BUY, leverage=5, notional=Decimal("50.000000"))
        order_id = await gateway.submit_market_order(request)
    finally:
        await gateway.close_connection()
        await server.close()

    assert order_id == "ord-1"
    assert received == [
        {
            "instrument": "BTCUSD",
            "side": "BUY",
            "leverage": 5,
            "timeInForce": "IOC",
            "cashQuantity": "50.000000",
        }
    ]


@pytest.mark.asyncio()
async def test_rejected_order_carries_venue_payload() -> None:
    server, gateway = await start_gateway([])
    try:
        request = OrderRequest(instrument="BTCUSD", side=OrderSide.SELL, leverage=5, notional=Decimal("5000"))
        with pytest.raises(OrderRejected) as exc_info:
            await gateway.submit_market_order(request)
    finally:
        await gateway.close_connection()
        await server.close()

    assert exc_info.value.side == OrderSide.SELL
    assert exc_info.value.code == "400"
    assert exc_info.value.payload == {"message": "insufficient margin", "required": "5000"}


@pytest.mark.asyncio()
async def test_leverage_error_surfaces_as_gateway_error() -> None:
    server, gateway = await start_gateway([])
    try:
        await gateway.set_leverage("BTCUSD", 5)
        with pytest.raises(GatewayError, match="leverage too high"):
            await gateway.set_leverage("BTCUSD", 100)
    finally:
        await gateway.close_connection()
        await server.close()


@pytest.mark.asyncio()
async def test_connect_without_private_key_fails() -> None:
    settings = ExchangeSettings(_env_file=None, demo_rest_url="http://127.0.0.1:1")
    gateway = HttpExchangeGateway(Environment.DEMO, settings, private_key=None)

    with pytest.raises(GatewayError, match="PRIVATE_KEY"):
        await gateway.connect()


@pytest.mark.asyncio()
async def test_connect_without_url_fails() -> None:
    gateway = HttpExchangeGateway(Environment.PROD, ExchangeSettings(_env_file=None), private_key=SECRET)

    with pytest.raises(GatewayError, match="REST URL"):
        await gateway.connect()


@pytest.mark.asyncio()
async def test_subscribe_without_ws_url_fails() -> None:
    server, gateway = await start_gateway([])
    try:
        with pytest.raises(GatewayError, match="WebSocket URL"):
            await gateway.subscribe_balance()
    finally:
        await gateway.close_connection()
        await server.close()


def balance_stream(subscriptions: list[dict], replies: list[str]):
    """WebSocket handler: record the SUBSCRIBE request, send the replies, hold the stream open."""

    async def handler(ws) -> None:
        subscriptions.append(json.loads(await ws.recv()))
        for reply in replies:
            await ws.send(reply)
        await ws.wait_closed()

    return handler


def ws_url(server) -> str:
    port = server.sockets[0].getsockname()[1]
    return f"ws://127.0.0.1:{port}"


async def wait_for_balance(gateway: HttpExchangeGateway, expected: Decimal) -> None:
    for _ in range(200):
        balance = await gateway.get_available_balance()
        if balance.available_balance == expected:
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"balance never reached {expected}")


@pytest.mark.asyncio()
async def test_subscription_waits_for_ack_and_caches_balance() -> None:
    subscriptions: list[dict] = []
    ack = json.dumps({"id": 1, "result": {"availableBalance": "100", "currency": "USDT"}})
    async with websockets.serve(balance_stream(subscriptions, [ack]), "127.0.0.1", 0) as ws_server:
        server, gateway = await start_gateway([], demo_ws_url=ws_url(ws_server))
        try:
            await gateway.subscribe_balance()
            balance = await gateway.get_available_balance()
        finally:
            await gateway.close_connection()
            await server.close()

    assert balance.available_balance == Decimal("100")
    request = subscriptions[0]
    assert request["method"] == "SUBSCRIBE"
    assert request["params"] == ["balance:42"]
    assert request["signature"] == sign_request(SECRET, request["timestamp"], "SUBSCRIBE", "balance:42")


@pytest.mark.asyncio()
async def test_refused_subscription_raises() -> None:
    refusal = json.dumps({"id": 1, "error": {"code": 401, "msg": "bad signature"}})
    async with websockets.serve(balance_stream([], [refusal]), "127.0.0.1", 0) as ws_server:
        server, gateway = await start_gateway([], demo_ws_url=ws_url(ws_server))
        try:
            with pytest.raises(GatewayError, match="refused") as exc_info:
                await gateway.subscribe_balance()
        finally:
            await gateway.close_connection()
            await server.close()

    assert exc_info.value.payload["error"]["msg"] == "bad signature"


@pytest.mark.asyncio()
async def test_unacknowledged_subscription_times_out() -> None:
    async with websockets.serve(balance_stream([], []), "127.0.0.1", 0) as ws_server:
        server, gateway = await start_gateway(
            [], demo_ws_url=ws_url(ws_server), subscribe_timeout_seconds=0.2
        )
        try:
            with pytest.raises(GatewayError, match="TimeoutError"):
                await gateway.subscribe_balance()
        finally:
            await gateway.close_connection()
            await server.close()


@pytest.mark.asyncio()
async def test_pushed_balance_and_positions_replace_rest_reads() -> None:
    push = json.dumps(
        {
            "data": {
                "availableBalance": "75.25",
                "positions": [
                    {"instrument": "BTCUSD", "side": "long", "quantity": "0.001", "avgPrice": "50000"},
                ],
            }
        }
    )
    replies = [json.dumps({"id": 1, "result": {}}), push]
    async with websockets.serve(balance_stream([], replies), "127.0.0.1", 0) as ws_server:
        server, gateway = await start_gateway([], demo_ws_url=ws_url(ws_server))
        try:
            await gateway.subscribe_balance()
            await wait_for_balance(gateway, Decimal("75.25"))
            positions = await gateway.get_open_positions()
        finally:
            await gateway.close_connection()
            await server.close()

    assert len(positions) == 1
    assert positions[0].instrument == "BTCUSD"
    assert positions[0].avg_price == Decimal("50000")


@pytest.mark.asyncio()
async def test_non_object_push_keeps_stream_alive_and_close_releases_session() -> None:
    replies = [
        json.dumps({"id": 1, "result": {"availableBalance": "100"}}),
        "[1, 2]",
        '"ok"',
        json.dumps({"data": {"availableBalance": "90"}}),
    ]
    async with websockets.serve(balance_stream([], replies), "127.0.0.1", 0) as ws_server:
        server, gateway = await start_gateway([], demo_ws_url=ws_url(ws_server))
        try:
            await gateway.subscribe_balance()
            await wait_for_balance(gateway, Decimal("90"))
            session = gateway._session

            await gateway.close_connection()
        finally:
            await server.close()

    assert session.closed
    assert gateway._ws is None
    assert not gateway.is_connected


@pytest.mark.asyncio()
async def test_close_releases_session_when_stream_task_failed() -> None:
    server, gateway = await start_gateway([])
    session = gateway._session

    async def broken_stream() -> None:
        raise AttributeError("stream handler crashed")

    gateway._receive_task = asyncio.create_task(broken_stream())
    await asyncio.sleep(0)
    try:
        await gateway.close_connection()
    finally:
        await server.close()

    assert session.closed
    assert gateway._receive_task is None
