# vanguard_sync/symbol_mapper.py
"""
Fund name to ticker symbol resolution using a static mapping.

The Funds table of the export lists mutual funds by their full name only,
so the ticker has to be looked up here.
"""

from typing import Optional, Tuple


# Exact fund names as they appear in the export
FUND_SYMBOL_MAP = {
    "Vanguard Balanced Index Fund Investor Shares": "VBINX",
    "Vanguard High Dividend Yield Index Fund Investor Shares": "VHDYX",
    "Vanguard Inflation-Protected Securities Fund Investor Shares": "VIPSX",
}

# Investment rows without a symbol that are still tracked under a fixed name
CASH_NAME = "CASH"
CASH_SYMBOL = "CASH"


def symbol_for_fund_name(fund_name: str) -> str:
    """Return the ticker for an exact fund name, or "" if the fund is unknown."""
    return FUND_SYMBOL_MAP.get(fund_name, "")


def resolve_fund_symbol(fund_name: str) -> Tuple[str, Optional[str]]:
    """
    Resolve a fund name to its ticker symbol.

    Args:
        fund_name: Fund name exactly as written in the export

    Returns:
        Tuple of (symbol, error_message)
        - symbol: The ticker, or "" if unresolved
        - error_message: None if successful, error message if unresolved
    """
    if not fund_name:
        return "", "Empty fund name"

    symbol = symbol_for_fund_name(fund_name)
    if not symbol:
        return "", f"No symbol for fund name {fund_name}"

    return symbol, None
