"""RegTruth: regulatory truth pipeline (evidence -> grounded rules -> releases)."""

__version__ = "0.1.0"
