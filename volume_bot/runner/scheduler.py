"""
Cycle Scheduler
Runs buy-then-sell trade cycles on a fixed cadence until stopped.
"""

from __future__ import annotations

import asyncio
import logging
import time

from volume_bot.core.errors import OrderRejected, PriceUnavailable
from volume_bot.core.types import (
    BotConfig,
    CycleOutcome,
    OrderSide,
    RunState,
    RunSummary,
    VolumeState,
)
from volume_bot.execution.base import ExchangeGateway
from volume_bot.execution.executor import OrderExecutor
from volume_bot.market.price_oracle import PriceOracle
from volume_bot.runner.accounting import VolumeAccountant

logger = logging.getLogger(__name__)

SEPARATOR = "━" * 50


class CycleScheduler:
    """
    Owns the trade loop.

    States: IDLE -> RUNNING -> STOPPED. One cycle runs at a time. A stop
    request is observed at the top of the next iteration or during the
    inter-cycle sleep; an in-flight cycle always runs to completion.

    Accounting is committed only after the sell leg succeeds. A failed buy
    skips the sell; a failed sell leaves the account unbalanced until a later
    cycle and is not retried.
    """

    def __init__(
        self,
        config: BotConfig,
        gateway: ExchangeGateway,
        oracle: PriceOracle | None = None,
        executor: OrderExecutor | None = None,
        accountant: VolumeAccountant | None = None,
    ) -> None:
        self._config = config
        self._gateway = gateway
        self._oracle = oracle or PriceOracle(gateway)
        self._executor = executor or OrderExecutor(gateway, config)
        self._accountant = accountant or VolumeAccountant()

        self._state = RunState.IDLE
        self._stop_event = asyncio.Event()
        self._stopped_event = asyncio.Event()
        self._stop_reason: str | None = None

        self._cycles_attempted = 0
        self._cycles_skipped = 0
        self._cycles_failed = 0

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def volume_state(self) -> VolumeState:
        return self._accountant.state

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def request_stop(self, reason: str = "stop requested") -> None:
        """Ask the loop to exit at its next checkpoint. Safe to call repeatedly."""
        if self._stop_event.is_set():
            return
        self._stop_reason = reason
        self._stop_event.set()
        logger.info(f"Stop requested: {reason}")

    async def wait_stopped(self) -> None:
        """Wait until the loop has exited."""
        await self._stopped_event.wait()

    def summary(self) -> RunSummary:
        state = self._accountant.state
        return RunSummary(
            trades_executed=state.trades_executed,
            total_volume=state.total_volume,
            cycles_attempted=self._cycles_attempted,
            cycles_skipped=self._cycles_skipped,
            cycles_failed=self._cycles_failed,
            stop_reason=self._stop_reason,
        )

    async def run(self) -> RunSummary:
        """Loop trade cycles until max trades is reached or a stop is requested."""
        if self._state != RunState.IDLE:
            raise RuntimeError(f"Scheduler cannot start from state {self._state.value}")

        self._state = RunState.RUNNING
        logger.info("Bot started! Generating trading volume...")
        logger.info(SEPARATOR)

        try:
            while not self._stop_event.is_set():
                await self.run_cycle()

                if self._max_trades_reached():
                    logger.info(f"Reached maximum trades ({self._config.max_trades}). Stopping bot.")
                    self.request_stop("max trades reached")
                    break

                if await self._sleep_until_next_cycle():
                    break
        finally:
            self._state = RunState.STOPPED
            self._stopped_event.set()

        return self.summary()

    async def run_cycle(self) -> CycleOutcome:
        """
        Run one cycle: price -> buy -> pause -> sell -> accounting.

        Returns:
            How the cycle ended. Only COMPLETED changes the volume state.
        """
        self._cycles_attempted += 1
        started = time.monotonic()
        instrument = self._config.instrument

        quote = await self._oracle.get_current_price(instrument)
        if quote is None:
            logger.warning("Skipping cycle - no market price available")
            self._cycles_skipped += 1
            return CycleOutcome.SKIPPED

        logger.info(f"Current price: {quote.mid:.2f} (Bid: {quote.bid}, Ask: {quote.ask})")

        try:
            notional = self._executor.resolve_notional(quote)
        except PriceUnavailable as e:
            logger.warning(f"Skipping cycle - {e}")
            self._cycles_skipped += 1
            return CycleOutcome.SKIPPED

        try:
            await self._executor.execute_order(OrderSide.BUY, instrument, self._config.leverage, notional)
        except OrderRejected as e:
            logger.error(f"Trade cycle failed: buy leg rejected ({e}); sell leg not attempted")
            self._cycles_failed += 1
            return CycleOutcome.BUY_FAILED

        # Keep the legs apart so the venue sees two separate trades.
        await asyncio.sleep(self._config.leg_delay_ms / 1000)

        try:
            await self._executor.execute_order(OrderSide.SELL, instrument, self._config.leverage, notional)
        except OrderRejected as e:
            logger.error(
                f"Trade cycle failed: sell leg rejected ({e}); "
                f"buy leg of {notional} may remain open"
            )
            self._cycles_failed += 1
            return CycleOutcome.SELL_FAILED

        state = self._accountant.record_cycle(notional)
        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"Trade cycle #{state.trades_executed} completed in {elapsed_ms}ms")
        logger.info(f"Total volume generated: {state.total_volume:.2f} USDT")
        logger.info(SEPARATOR)

        await self._log_open_positions()
        return CycleOutcome.COMPLETED

    def _max_trades_reached(self) -> bool:
        max_trades = self._config.max_trades
        return max_trades > 0 and self._accountant.state.trades_executed >= max_trades

    async def _sleep_until_next_cycle(self) -> bool:
        """Sleep the inter-cycle delay. Returns True if a stop arrived meanwhile."""
        delay = self._config.trade_delay_ms / 1000
        if delay <= 0:
            # Yield so signal handlers and other tasks can run.
            await asyncio.sleep(0)
            return self._stop_event.is_set()
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            return True
        except asyncio.TimeoutError:
            return False

    async def _log_open_positions(self) -> None:
        """Log open positions. Informational only; failures never abort the cycle."""
        try:
            positions = await self._gateway.get_open_positions()
        except Exception as e:
            logger.warning(f"Could not fetch open positions: {type(e).__name__}: {e}")
            return

        if positions:
            logger.info(f"Open positions: {len(positions)}")
            for pos in positions:
                logger.info(f"   {pos.instrument}: {pos.side} {pos.quantity} @ {pos.avg_price}")
