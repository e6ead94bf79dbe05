# vanguard_sync/column_detector.py
"""
Header detection for allocation sheets.

Row 1 of each sheet names the columns; row 2 holds whole-portfolio totals and,
under the "account" header, the brokerage account number the sheet tracks.
"""

import logging
from typing import Any, List, Optional, Sequence, Tuple

from .models import Cell, ColumnRef, SheetColumnMap

logger = logging.getLogger(__name__)


# Canonical (lowercased) column names
COL_ACCOUNT = "account"
COL_ACTUAL = "actual"
COL_CURRENT = "current"
COL_OVER = "over"
COL_PCT_OVER = "pctover"
COL_PCT_90 = "pct90"
COL_PCT_95 = "pct95"
COL_PCT_975 = "pct975"
COL_PRICE = "price"
COL_SYMBOL = "symbol"
COL_TARGET = "target"
COL_TGT_AMT = "tgtamt"

# Columns written for every matched row
WRITTEN_COLUMNS = (
    COL_ACTUAL,
    COL_CURRENT,
    COL_OVER,
    COL_PCT_OVER,
    COL_PCT_90,
    COL_PCT_95,
    COL_PCT_975,
    COL_PRICE,
    COL_TGT_AMT,
)

# Columns that must be present before a sheet can be updated
REQUIRED_COLUMNS = (COL_SYMBOL, COL_TARGET) + WRITTEN_COLUMNS


def col_to_alpha(index: int) -> str:
    """
    Convert a zero-based column index to its A1 letter(s): 0 -> A, 25 -> Z, 26 -> AA.
    """
    if index < 0:
        raise ValueError(f"column index must be >= 0, got {index}")
    letters = ""
    n = index + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def inspect_headers(header_row: Sequence[Any],
                    value_row: Sequence[Any],
                    title: str = "") -> Tuple[Optional[str], SheetColumnMap]:
    """
    Derive the account number and column map of a sheet from its first two rows.

    Args:
        header_row: Row 1 cells (column names)
        value_row: Row 2 cells (account number and portfolio totals)
        title: Sheet title, for diagnostics only

    Returns:
        Tuple of (account, column_map)
        - account: Account number, or None if the sheet has no usable "account" column
        - column_map: lowercased column name -> ColumnRef(index, letter)
    """
    account: Optional[str] = None
    column_map: SheetColumnMap = {}

    for index, raw in enumerate(header_row):
        header = Cell.of(raw).as_string()
        if header is None:
            logger.debug("> %-32s column header %r not string", title, raw)
            continue
        header = header.lower()

        if header == COL_ACCOUNT:
            value = Cell.of(value_row[index] if index < len(value_row) else None).as_string()
            if value is None:
                logger.debug("> %-32s account %r not string", title,
                             value_row[index] if index < len(value_row) else None)
                continue
            account = value
        else:
            column_map[header] = ColumnRef(index=index, letter=col_to_alpha(index))

    return account, column_map


def missing_columns(column_map: SheetColumnMap) -> List[str]:
    """Return the required columns absent from the map, in a stable order."""
    return [name for name in REQUIRED_COLUMNS if name not in column_map]
