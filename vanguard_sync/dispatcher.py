# vanguard_sync/dispatcher.py
"""
Writes reconciled positions back into the allocation spreadsheet.

Each sheet tracks one account. For every row whose symbol is known the
dispatcher writes the current value and price as literals plus the formula
cells (actual share, target amount, over/under and price thresholds) in a
single batch request. All remote calls pass through one RateLimiter.
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Set

from .column_detector import (
    COL_ACTUAL, COL_CURRENT, COL_OVER, COL_PCT_90, COL_PCT_95, COL_PCT_975,
    COL_PCT_OVER, COL_PRICE, COL_TARGET, COL_TGT_AMT,
    col_to_alpha, inspect_headers, missing_columns,
)
from .errors import RemoteCallError, SheetStructureError
from .models import (
    PositionTable, RowUpdate, RunReport, SheetColumnMap, SheetReport, SheetStatus,
)
from .rate_limiter import RateLimiter
from .reconciler import FIRST_DATA_ROW, reconcile_rows
from .sheets_client import SheetInfo, SheetsClient, sheet_row_col

logger = logging.getLogger(__name__)

HEADER_RANGE = "A1:Z2"
TOTALS_ROW = 2

ACCOUNT_FORMAT = "> %-12s %-32s %s"


def build_row_values(update: RowUpdate, column_map: SheetColumnMap) -> List[Dict[str, Any]]:
    """
    Build the ValueRange list for one row. Depends only on the row number,
    the position and the column layout, so rewriting a row is idempotent.
    """
    r = update.row
    t = TOTALS_ROW
    a1 = {name: ref.letter for name, ref in column_map.items()}

    values = {
        COL_ACTUAL: f"={a1[COL_CURRENT]}{r}/{a1[COL_CURRENT]}${t}",
        COL_CURRENT: update.position.total,
        COL_OVER: f"={a1[COL_CURRENT]}{r}-{a1[COL_TGT_AMT]}{r}",
        COL_PCT_OVER: (f"=IF({a1[COL_TGT_AMT]}{r}>0,"
                       f"{a1[COL_OVER]}{r}/{a1[COL_TGT_AMT]}{r},0)"),
        COL_PCT_90: f"=0.9*{a1[COL_PRICE]}{r}",
        COL_PCT_95: f"=0.95*{a1[COL_PRICE]}{r}",
        COL_PCT_975: f"=0.975*{a1[COL_PRICE]}{r}",
        COL_PRICE: update.position.share,
        COL_TGT_AMT: f"={a1[COL_CURRENT]}${t}*{a1[COL_TARGET]}{r}",
    }

    return [
        {
            "majorDimension": "ROWS",
            "range": sheet_row_col(update.title, r, column_map[name].index),
            "values": [[value]],
        }
        for name, value in values.items()
    ]


def rows_range(sheet: SheetInfo) -> str:
    """Data rows of a sheet: from row 3 through the last grid row and column."""
    last_col = col_to_alpha(max(sheet.column_count - 1, 0))
    return f"A{FIRST_DATA_ROW}:{last_col}{max(sheet.row_count, FIRST_DATA_ROW)}"


class UpdateDispatcher:
    def __init__(self, client: SheetsClient, spreadsheet_id: str, limiter: RateLimiter,
                 fail_fast: bool = False, cancel: Optional[threading.Event] = None):
        self.client = client
        self.spreadsheet_id = spreadsheet_id
        self.limiter = limiter
        self.fail_fast = fail_fast
        self.cancel = cancel

    def _throttle(self) -> None:
        self.limiter.wait(cancel=self.cancel)

    def dispatch(self, update: RowUpdate, column_map: SheetColumnMap) -> None:
        """Write one reconciled row. Raises RemoteCallError naming the sheet and row."""
        data = build_row_values(update, column_map)
        self._throttle()
        try:
            self.client.batch_update(self.spreadsheet_id, data)
        except RemoteCallError as e:
            logger.debug(">        # %3d %8s update error", update.row, update.symbol)
            raise e.at(title=update.title, row=update.row) from e

    def sync_sheet(self, sheet: SheetInfo, positions: PositionTable,
                   consumed: Optional[Dict[str, Set[str]]] = None) -> SheetReport:
        """
        Reconcile and update one sheet.

        ``consumed`` maps each account to the symbols earlier sheets already used;
        it is updated with the symbols this sheet uses.

        Raises:
            SheetStructureError: the sheet can't be matched to an account or lacks columns
            RemoteCallError: a read or write against the sheet failed
        """
        title = sheet.title
        logger.debug(ACCOUNT_FORMAT, "", title, "")

        self._throttle()
        try:
            headers = self.client.get_values(self.spreadsheet_id, title, HEADER_RANGE)
        except RemoteCallError as e:
            raise e.at(title=title) from e

        header_row = headers[0] if headers else []
        value_row = headers[1] if len(headers) > 1 else []
        account, column_map = inspect_headers(header_row, value_row, title=title)

        if not account:
            raise SheetStructureError(title, "no account number")

        account_positions = positions.get(account)
        if not account_positions:
            raise SheetStructureError(title, f"no account data in file for {account}")

        if not sheet.has_grid:
            raise SheetStructureError(title, "no grid")

        missing = missing_columns(column_map)
        if missing:
            raise SheetStructureError(title, f"missing columns {', '.join(missing)}")

        logger.info(ACCOUNT_FORMAT, account, title, "")

        self._throttle()
        try:
            rows = self.client.get_values(self.spreadsheet_id, title, rows_range(sheet))
        except RemoteCallError as e:
            raise e.at(title=title) from e

        used = consumed.setdefault(account, set()) if consumed is not None else set()
        reconciliation = reconcile_rows(title, rows, column_map, account_positions,
                                        already_consumed=used)
        used |= reconciliation.consumed

        report = SheetReport(title=title, status=SheetStatus.UPDATED, account=account)
        for update in reconciliation.updates:
            self.dispatch(update, column_map)
            report.rows_written += 1

        logger.info(ACCOUNT_FORMAT, account, title, "done")

        report.unmatched = reconciliation.unmatched
        return report

    def sync_spreadsheet(self, positions: PositionTable) -> RunReport:
        """
        Update every sheet of the spreadsheet from the parsed position table.

        Sheets with structural problems are skipped. A failed remote call marks
        that sheet failed and moves on to the next one, unless fail_fast is set,
        in which case the RemoteCallError aborts the run. Symbols that no sheet of
        their account used are reported once per account at the end.
        """
        logger.info("Update Spreadsheet starting")
        run = RunReport()
        consumed: Dict[str, Set[str]] = {}

        self._throttle()
        sheets = self.client.list_sheets(self.spreadsheet_id)

        for sheet in sheets:
            try:
                report = self.sync_sheet(sheet, positions, consumed)
            except SheetStructureError as e:
                logger.info(ACCOUNT_FORMAT, "", sheet.title, e.reason)
                report = SheetReport(title=sheet.title, status=SheetStatus.SKIPPED, error=e.reason)
            except RemoteCallError as e:
                logger.error("!!! %s", e)
                if self.fail_fast:
                    raise
                report = SheetReport(title=sheet.title, status=SheetStatus.FAILED, error=str(e))
            run.sheets.append(report)

        for account, used in sorted(consumed.items()):
            leftover = sorted(s for s in positions[account] if s not in used)
            if leftover:
                run.unmatched[account] = leftover
                logger.warning("!!! Unused symbols for account %s: %s", account, ", ".join(leftover))

        logger.info("Update Spreadsheet finished: %d rows written, %d sheets failed",
                    run.rows_written, len(run.failed))
        return run
