"""Trade loop, lifecycle and process entrypoint."""

from volume_bot.runner.accounting import VolumeAccountant
from volume_bot.runner.lifecycle import LifecycleController
from volume_bot.runner.scheduler import CycleScheduler

__all__ = ["VolumeAccountant", "CycleScheduler", "LifecycleController"]
