from .base import Provider, QuoteProvider
from .thirtyone import ThirtyOneThirdConfig, ThirtyOneThirdProvider

__all__ = ["Provider", "QuoteProvider", "ThirtyOneThirdConfig", "ThirtyOneThirdProvider"]
