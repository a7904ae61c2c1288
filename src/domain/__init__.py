"""Lot-accounting engine for exchange account histories.

This package holds the parsed event models and the FIFO bookkeeping
(funds, cost-basis lots, per-account monies and the ledger that drives them).
Nothing in here touches files, databases or the network.
"""

__all__ = [
    "activity",
    "base_types",
    "errors",
    "events",
    "ledger",
    "lots",
    "monies",
]
