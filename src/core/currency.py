"""
Currency helpers: purchasers quote in RMB, sales talks to customers in USD.

USD_TO_RMB_RATE can be overridden from the environment when the rate moves.
"""

import os

USD_TO_RMB_RATE = float(os.environ.get("USD_TO_RMB_RATE", "7.25"))


def rmb_to_usd(amount: float, rate: float = None) -> float:
    """RMB → USD rounded to cents."""
    rate = rate or USD_TO_RMB_RATE
    return round(amount / rate, 2)


def usd_to_rmb(amount: float, rate: float = None) -> float:
    """USD → RMB rounded to fen."""
    rate = rate or USD_TO_RMB_RATE
    return round(amount * rate, 2)


def format_rmb(amount: float) -> str:
    return f"¥{amount:,.2f}"


def format_usd(amount: float) -> str:
    return f"${amount:,.2f}"
