"""
HTTP Exchange Gateway
REST order/market-data client plus WebSocket balance stream.

REST layout (relative to the environment base URL):
- GET  /api/market/{instrument}/deep?maxLevel=N
- GET  /api/market/{instrument}/recent-trades?limit=N
- GET  /api/user/me
- GET  /api/user/balance
- GET  /api/position
- POST /api/v2/order/market
- PUT  /api/position/{instrument}
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
import time
from typing import Any

import aiohttp
import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed

from volume_bot.config import ExchangeSettings
from volume_bot.core.errors import GatewayError, OrderRejected
from volume_bot.core.types import (
    BalanceSnapshot,
    Environment,
    OrderBook,
    OrderRequest,
    Position,
    TradePrint,
)
from volume_bot.execution.base import ExchangeGateway

logger = logging.getLogger(__name__)


def sign_request(secret: str, timestamp: str, method: str, path: str, body: str = "") -> str:
    """HMAC-SHA256 signature over timestamp, method, path and body."""
    message = f"{timestamp}{method.upper()}{path}{body}"
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


class HttpExchangeGateway(ExchangeGateway):
    """
    Exchange gateway over HTTP and WebSocket.

    Every REST call is signed with the private key. The balance stream keeps
    the latest balance and position list in memory; reads fall back to REST
    until the first push arrives.
    """

    def __init__(
        self,
        environment: Environment,
        settings: ExchangeSettings,
        private_key: str | None,
        api_key: str | None = None,
    ) -> None:
        """
        Initialize HTTP gateway.

        Args:
            environment: DEMO or PROD, selects the endpoints
            settings: Endpoint and timeout settings
            private_key: Signing secret (required)
            api_key: Optional API key; when set the account is resolved through it
        """
        super().__init__()
        self._environment = environment
        self._settings = settings
        self._private_key = private_key
        self._api_key = api_key
        self._base_url = settings.rest_url(environment).rstrip("/")
        self._ws_url = settings.ws_url(environment)
        self._session: aiohttp.ClientSession | None = None
        self._ws: Any = None
        self._receive_task: asyncio.Task | None = None
        self._balance: BalanceSnapshot | None = None
        self._positions: list[Position] | None = None

    async def connect(self) -> None:
        """Open the HTTP session and resolve the trading account."""
        if not self._private_key:
            raise GatewayError("PRIVATE_KEY not configured")
        if not self._base_url:
            raise GatewayError(f"REST URL not configured for {self._environment.value}")

        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self._settings.request_timeout_seconds)
        )
        try:
            me = await self._request("GET", "/api/user/me")
        except Exception:
            await self.close_connection()
            raise

        account_id = me.get("id") if isinstance(me, dict) else None
        if not account_id:
            await self.close_connection()
            raise GatewayError("Account resolution returned no account id", payload=me)

        self._account_id = str(account_id)
        self._connected = True
        via = "API key" if self._api_key else "wallet key"
        logger.info(f"Connected to {self._environment.value} exchange via {via}: account {self._account_id}")

    async def fetch_top_of_book(self, instrument: str, depth: int = 1) -> OrderBook | None:
        data = await self._request("GET", f"/api/market/{instrument}/deep", params={"maxLevel": depth})
        if not data:
            return None
        return self._parse(OrderBook, data)

    async def fetch_recent_trades(self, instrument: str, limit: int = 1) -> list[TradePrint]:
        data = await self._request("GET", f"/api/market/{instrument}/recent-trades", params={"limit": limit})
        if isinstance(data, dict):
            data = data.get("list") or []
        return [self._parse(TradePrint, item) for item in data or []]

    async def submit_market_order(self, request: OrderRequest) -> str:
        body = {
            "instrument": request.instrument,
            "side": request.side.value.upper(),
            "leverage": request.leverage,
            "timeInForce": request.time_in_force.value,
            "cashQuantity": str(request.notional),
        }
        try:
            data = await self._request("POST", "/api/v2/order/market", json_body=body)
        except OrderRejected:
            raise
        except GatewayError as e:
            raise OrderRejected(str(e), side=request.side, payload=e.payload, code=e.code) from e

        order_id = data.get("id") if isinstance(data, dict) else None
        if not order_id:
            raise OrderRejected("Order response carried no order id", side=request.side, payload=data)
        return str(order_id)

    async def subscribe_balance(self) -> None:
        """Open the balance stream and wait for the subscription ack."""
        if not self._ws_url:
            raise GatewayError(f"WebSocket URL not configured for {self._environment.value}")
        if self._account_id is None:
            raise GatewayError("Cannot subscribe before the account is resolved")

        try:
            self._ws = await websockets.connect(self._ws_url, ping_interval=20, ping_timeout=10)
            timestamp = str(int(time.time() * 1000))
            channel = f"balance:{self._account_id}"
            await self._ws.send(
                json.dumps(
                    {
                        "method": "SUBSCRIBE",
                        "params": [channel],
                        "id": 1,
                        "timestamp": timestamp,
                        "signature": sign_request(self._private_key or "", timestamp, "SUBSCRIBE", channel),
                    }
                )
            )
            ack = json.loads(
                await asyncio.wait_for(self._ws.recv(), timeout=self._settings.subscribe_timeout_seconds)
            )
        except GatewayError:
            raise
        except Exception as e:
            raise GatewayError(f"Balance subscription failed: {type(e).__name__}: {e}") from e

        if not isinstance(ack, dict) or ack.get("error"):
            raise GatewayError("Balance subscription refused", payload=ack)

        self._handle_balance_message(ack.get("result") or {})
        self._receive_task = asyncio.create_task(self._receive_loop())

    async def get_available_balance(self) -> BalanceSnapshot:
        if self._balance is not None:
            return self._balance
        data = await self._request("GET", "/api/user/balance")
        self._balance = self._parse(BalanceSnapshot, data)
        return self._balance

    async def get_open_positions(self) -> list[Position]:
        if self._positions is not None:
            return list(self._positions)
        data = await self._request("GET", "/api/position")
        if isinstance(data, dict):
            data = data.get("list") or []
        return [self._parse(Position, item) for item in data or []]

    async def set_leverage(self, instrument: str, leverage: int) -> None:
        await self._request("PUT", f"/api/position/{instrument}", json_body={"leverage": leverage})

    async def close_connection(self) -> None:
        """Close the stream and the HTTP session."""
        self._connected = False

        try:
            if self._receive_task:
                self._receive_task.cancel()
                try:
                    await self._receive_task
                except asyncio.CancelledError:
                    pass
                except Exception as e:
                    logger.warning(f"Balance stream task ended with error: {type(e).__name__}: {e}")
                self._receive_task = None

            if self._ws is not None:
                ws, self._ws = self._ws, None
                await ws.close()
        finally:
            if self._session and not self._session.closed:
                await self._session.close()
            self._session = None

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        """Send a signed request; HTTP errors become GatewayError with the decoded payload."""
        if self._session is None or self._session.closed:
            raise GatewayError("HTTP session is not open")

        body = json.dumps(json_body, separators=(",", ":")) if json_body is not None else ""
        timestamp = str(int(time.time() * 1000))
        headers = {
            "Content-Type": "application/json",
            "X-Timestamp": timestamp,
            "X-Signature": sign_request(self._private_key or "", timestamp, method, path, body),
        }
        if self._api_key:
            headers["X-API-Key"] = self._api_key

        url = f"{self._base_url}{path}"
        try:
            async with self._session.request(
                method, url, params=params, data=body or None, headers=headers
            ) as response:
                text = await response.text()
                payload = self._decode(text)
                if response.status >= 400:
                    message = payload.get("message") if isinstance(payload, dict) else None
                    raise GatewayError(
                        f"{method} {path} failed with HTTP {response.status}: {message or text[:200]}",
                        payload=payload,
                        code=str(response.status),
                    )
                return payload
        except aiohttp.ClientError as e:
            raise GatewayError(f"{method} {path} network error: {type(e).__name__}: {e}") from e
        except asyncio.TimeoutError as e:
            raise GatewayError(f"{method} {path} timed out") from e

    async def _receive_loop(self) -> None:
        """Apply balance stream pushes until the stream closes."""
        try:
            async for message in self._ws:
                try:
                    self._handle_balance_message(json.loads(message))
                except (json.JSONDecodeError, ValidationError) as e:
                    logger.warning(f"Ignoring malformed balance message: {e}")
        except ConnectionClosed:
            logger.warning("Balance stream closed")

    def _handle_balance_message(self, msg: Any) -> None:
        if not isinstance(msg, dict):
            return
        data = msg.get("data", msg)
        if not isinstance(data, dict):
            return
        if "availableBalance" in data:
            self._balance = BalanceSnapshot.model_validate(data)
        if "positions" in data:
            self._positions = [Position.model_validate(p) for p in data["positions"] or []]

    @staticmethod
    def _decode(text: str) -> Any:
        if not text:
            return {}
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return {"message": text}

    @staticmethod
    def _parse(model: Any, data: Any) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise GatewayError(f"Unexpected {model.__name__} payload", payload=data) from e
