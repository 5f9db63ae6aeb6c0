"""Cumulative trade count and generated volume."""

from __future__ import annotations

import logging
from decimal import Decimal

from volume_bot.core.types import VolumeState

logger = logging.getLogger(__name__)


class VolumeAccountant:
    """
    Credits volume for completed cycles only.

    A cycle is atomic for accounting: both legs must have executed before
    record_cycle is called, and partial cycles are never credited.
    """

    def __init__(self, state: VolumeState | None = None) -> None:
        self._state = state or VolumeState()

    @property
    def state(self) -> VolumeState:
        return self._state

    def record_cycle(self, notional_per_leg: Decimal) -> VolumeState:
        """Credit one completed cycle (buy leg plus sell leg)."""
        if notional_per_leg <= 0:
            raise ValueError(f"notional_per_leg must be positive, got {notional_per_leg}")
        self._state = self._state.credit(notional_per_leg)
        logger.debug(
            f"Recorded cycle #{self._state.trades_executed}: "
            f"+{notional_per_leg * 2} (total {self._state.total_volume})"
        )
        return self._state
