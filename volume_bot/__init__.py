"""Volume generator bot: repeatedly opens and closes a small position to produce trading volume."""

__version__ = "0.1.0"
