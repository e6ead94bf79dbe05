# vanguard_sync/reconciler.py
import logging
from typing import AbstractSet, Any, Mapping, Sequence

from .column_detector import COL_SYMBOL
from .models import ZERO_POSITION, Cell, Position, RowUpdate, SheetColumnMap, SheetReconciliation

logger = logging.getLogger(__name__)

# Sheet rows: 1 = headers, 2 = totals, data starts at 3
FIRST_DATA_ROW = 3


def reconcile_rows(title: str,
                   rows: Sequence[Sequence[Any]],
                   column_map: SheetColumnMap,
                   account_positions: Mapping[str, Position],
                   first_row: int = FIRST_DATA_ROW,
                   already_consumed: AbstractSet[str] = frozenset()) -> SheetReconciliation:
    """
    Match each sheet row to a parsed position by its symbol.

    Rows without a symbol are skipped. Each position is used by the first row that
    names it; a later row with the same symbol, or a symbol with no parsed position,
    gets an update with the empty Position so stale values are cleared.

    Positions are never removed from ``account_positions``. Symbols this sheet used
    are returned in ``consumed``; ``already_consumed`` holds the ones earlier sheets
    of the same account used. ``unmatched`` lists what neither has claimed.
    """
    result = SheetReconciliation(title=title)
    symbol_idx = column_map[COL_SYMBOL].index

    for row_num, row in enumerate(rows, start=first_row):
        if symbol_idx >= len(row):
            continue

        symbol = Cell.of(row[symbol_idx]).as_string()
        if not symbol:
            continue

        position = None
        if symbol not in result.consumed and symbol not in already_consumed:
            position = account_positions.get(symbol)
        matched = position is not None
        if matched:
            result.consumed.add(symbol)
        else:
            position = ZERO_POSITION

        logger.debug(">        # %3d %8s %s", row_num, symbol, position)
        result.updates.append(RowUpdate(
            title=title,
            row=row_num,
            symbol=symbol,
            position=position,
            matched=matched,
        ))

    result.unmatched = sorted(s for s in account_positions
                              if s not in result.consumed and s not in already_consumed)
    return result
