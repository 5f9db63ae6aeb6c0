"""
Volume Bot Runner
Composition root: settings -> gateway -> lifecycle, with signal handling and exit codes.

Usage:
    volume-bot                      # settings from environment / .env
    volume-bot --max-trades 10      # stop after 10 completed cycles
    volume-bot --gateway http       # trade against the live REST gateway
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from dataclasses import replace

from dotenv import load_dotenv
from pydantic import ValidationError

from volume_bot.config import GatewayKind, VolumeBotSettings, reload_settings
from volume_bot.core.errors import InitializationFault
from volume_bot.core.types import BotConfig
from volume_bot.execution.base import ExchangeGateway
from volume_bot.execution.factory import create_gateway
from volume_bot.logging_setup import configure_logging
from volume_bot.runner.lifecycle import LifecycleController

logger = logging.getLogger("volume_bot")

EXIT_OK = 0
EXIT_INIT_FAILURE = 1


def install_signal_handlers(controller: LifecycleController) -> list[signal.Signals]:
    """Route SIGINT/SIGTERM to a graceful shutdown request."""
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, controller.request_shutdown, f"{sig.name} signal")
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Windows: SIGINT arrives as KeyboardInterrupt instead
            logger.debug(f"Signal handler for {sig.name} not supported on this platform")
    return installed


async def run_bot(config: BotConfig, gateway: ExchangeGateway) -> int:
    """Run the bot to completion and return the process exit code."""
    controller = LifecycleController(config, gateway)
    installed = install_signal_handlers(controller)
    try:
        await controller.run()
    except InitializationFault as e:
        logger.error(f"Fatal error: {e}", exc_info=e.__cause__ or e)
        return EXIT_INIT_FAILURE
    finally:
        loop = asyncio.get_running_loop()
        for sig in installed:
            loop.remove_signal_handler(sig)
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Volume generator: repeatedly buys then sells a small position",
    )
    parser.add_argument("--env-file", help="Load environment variables from this file first")
    parser.add_argument("--max-trades", type=int, help="Override MAX_TRADES (0 = unbounded)")
    parser.add_argument(
        "--gateway",
        choices=[kind.value for kind in GatewayKind],
        help="Override GATEWAY adapter",
    )
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    return parser


def load_runtime(args: argparse.Namespace) -> tuple[VolumeBotSettings, BotConfig]:
    """
    Load settings and apply CLI overrides.

    Raises:
        ValidationError: If settings fail validation
        ValueError: If an override is invalid
    """
    if args.env_file:
        load_dotenv(args.env_file, override=True)
    settings = reload_settings()
    config = settings.to_bot_config()
    if args.max_trades is not None:
        config = replace(config, max_trades=args.max_trades)
    return settings, config


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings, config = load_runtime(args)
    except (ValidationError, ValueError) as e:
        configure_logging(args.log_level or "INFO")
        logger.error(f"Fatal error: invalid configuration: {e}")
        return EXIT_INIT_FAILURE

    configure_logging(args.log_level or settings.logging.log_level, settings.logging.log_format)

    kind = GatewayKind(args.gateway) if args.gateway else None
    gateway = create_gateway(settings, kind)

    try:
        return asyncio.run(run_bot(config, gateway))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
