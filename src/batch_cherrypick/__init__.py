"""Resumable batch cherry-picking with a progress ledger."""

__version__ = "0.1.0"

__all__ = ["__version__"]
