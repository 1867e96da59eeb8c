"""TaperPath: taper schedule generation and check-in reconciliation."""

__version__ = "0.1.0"
