"""
Lifecycle Controller
Startup and shutdown sequencing around the cycle scheduler.
"""

from __future__ import annotations

import asyncio
import logging

from volume_bot.core.errors import InitializationFault, ShutdownFault
from volume_bot.core.types import BotConfig, RunState, RunSummary, VolumeState
from volume_bot.execution.base import ExchangeGateway
from volume_bot.runner.scheduler import SEPARATOR, CycleScheduler

logger = logging.getLogger(__name__)


class LifecycleController:
    """
    Owns the run state of the bot.

    Startup must complete fully before the scheduler starts; any failure is
    an InitializationFault. Leverage setup is the one non-fatal step, since
    leverage may already be set from a prior run.

    Shutdown is idempotent: the first call logs final totals and releases the
    gateway, later or concurrent calls wait for it and return.
    """

    def __init__(
        self,
        config: BotConfig,
        gateway: ExchangeGateway,
        scheduler: CycleScheduler | None = None,
    ) -> None:
        self._config = config
        self._gateway = gateway
        self._scheduler = scheduler or CycleScheduler(config, gateway)
        self._run_state = RunState.IDLE
        self._shutdown_lock = asyncio.Lock()
        self._shutdown_done = False

    @property
    def run_state(self) -> RunState:
        return self._run_state

    @property
    def volume_state(self) -> VolumeState:
        return self._scheduler.volume_state

    @property
    def scheduler(self) -> CycleScheduler:
        return self._scheduler

    async def run(self) -> RunSummary:
        """
        Start, loop until stopped, then shut down.

        Raises:
            InitializationFault: If startup fails (the loop never starts)
        """
        await self.start()
        try:
            if self._run_state == RunState.INITIALIZING:
                self._run_state = RunState.RUNNING
            await self._scheduler.run()
        finally:
            await self.shutdown(self._scheduler.summary().stop_reason or "loop exited")
        return self._scheduler.summary()

    async def start(self) -> None:
        """
        Run the startup sequence.

        Raises:
            InitializationFault: If any mandatory step fails
        """
        if self._run_state != RunState.IDLE:
            raise InitializationFault(f"Cannot start from state {self._run_state.value}")

        self._run_state = RunState.INITIALIZING
        self._log_banner()

        try:
            await self._gateway.connect()
            logger.info(f"Connected to exchange (account: {self._gateway.account_id})")

            await self._gateway.subscribe_balance()
            logger.info("Balance subscription active")

            await self._setup_leverage()

            balance = await self._gateway.get_available_balance()
            logger.info(f"Available Balance: {balance.available_balance} {balance.currency}")
            logger.info(SEPARATOR)
        except Exception as e:
            self._run_state = RunState.STOPPED
            await self._release_connection()
            raise InitializationFault(f"Initialization failed: {type(e).__name__}: {e}") from e

    def request_shutdown(self, reason: str = "shutdown requested") -> None:
        """
        Flip to STOPPING so the loop exits at its next checkpoint.

        Synchronous so it can be installed directly as a signal handler. The
        in-flight cycle, including any order submission, is allowed to finish.
        """
        if self._run_state in {RunState.STOPPING, RunState.STOPPED}:
            return
        logger.warning(f"Received {reason}. Shutting down gracefully...")
        self._run_state = RunState.STOPPING
        self._scheduler.request_stop(reason)

    async def shutdown(self, reason: str = "shutdown requested") -> None:
        """Stop the loop, report totals, release the connection. Idempotent."""
        async with self._shutdown_lock:
            if self._shutdown_done:
                return

            if self._run_state != RunState.STOPPED:
                self._run_state = RunState.STOPPING
            self._scheduler.request_stop(reason)
            if self._scheduler.state == RunState.RUNNING:
                await self._scheduler.wait_stopped()

            summary = self._scheduler.summary()
            logger.info(SEPARATOR)
            logger.info("Bot stopped")
            logger.info(f"Total trades executed: {summary.trades_executed}")
            logger.info(f"Total volume generated: {summary.total_volume:.2f} USDT")
            if summary.cycles_skipped or summary.cycles_failed:
                logger.info(
                    f"Cycles attempted: {summary.cycles_attempted} "
                    f"(skipped: {summary.cycles_skipped}, failed: {summary.cycles_failed})"
                )

            await self._release_connection()
            self._run_state = RunState.STOPPED
            self._shutdown_done = True

    async def _setup_leverage(self) -> None:
        try:
            await self._gateway.set_leverage(self._config.instrument, self._config.leverage)
            logger.info(f"Position leverage set to {self._config.leverage}x")
        except Exception as e:
            logger.error(f"Error setting position leverage: {e}")

    async def _release_connection(self) -> None:
        """Close the gateway. Failures are logged and never block exit."""
        try:
            await self._close_gateway()
        except ShutdownFault as e:
            logger.error(str(e))

    async def _close_gateway(self) -> None:
        try:
            await self._gateway.close_connection()
        except Exception as e:
            raise ShutdownFault(f"Failed to close exchange connection: {type(e).__name__}: {e}") from e
        logger.info("Exchange connection closed")

    def _log_banner(self) -> None:
        cfg = self._config
        cash = f"{cfg.cash_quantity} USDT" if cfg.uses_cash_quantity else "Using order size"
        logger.info("Initializing Volume Bot...")
        logger.info(f"Environment: {cfg.environment.value}")
        logger.info(f"Instrument: {cfg.instrument}")
        logger.info(f"Order Size: {cfg.order_size}")
        logger.info(f"Cash Quantity: {cash}")
        logger.info(f"Leverage: {cfg.leverage}x")
        logger.info(f"Trade Delay: {cfg.trade_delay_ms}ms")
        logger.info(f"Max Trades: {cfg.max_trades or 'unbounded'}")
        logger.info(SEPARATOR)
