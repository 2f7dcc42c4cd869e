from .requests import BaseEntry, RebalanceRequest, SwapQuoteRequest, TargetEntry

__all__ = ["BaseEntry", "RebalanceRequest", "SwapQuoteRequest", "TargetEntry"]
