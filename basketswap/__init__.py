"""Allowance reconciliation and transaction execution for quoted swaps and rebalances."""

__version__ = "0.1.0"
