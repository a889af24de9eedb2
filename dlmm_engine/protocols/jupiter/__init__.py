"""
Jupiter price oracle and swap quote router
"""

from .api import JupiterPriceAPI, JupiterQuoteAPI

__all__ = [
    "JupiterPriceAPI",
    "JupiterQuoteAPI",
]
