"""Exchange gateway adapters and order execution."""

from volume_bot.execution.base import ExchangeGateway
from volume_bot.execution.executor import OrderExecutor
from volume_bot.execution.paper_gateway import PaperGateway

__all__ = ["ExchangeGateway", "OrderExecutor", "PaperGateway"]
