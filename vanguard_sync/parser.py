# vanguard_sync/parser.py
import logging
from pathlib import Path
from typing import Iterable, List, Tuple, Union

import pandas as pd

from .errors import MalformedInput, UnresolvedSymbol
from .models import ParseResult, ParseState, Position
from .symbol_mapper import CASH_NAME, CASH_SYMBOL, resolve_fund_symbol

logger = logging.getLogger(__name__)


# Section markers in the export
FUND_TABLE_MARKER = "Fund Account Number"
INVESTMENT_TABLE_MARKER = "Account Number"
TRADE_TABLE_MARKER = "Trade Date"
HEADER_NAME_TOKEN = "Name"

ACCOUNT_SEPARATOR = "-"

# Field positions per table: (share, total)
FUND_FIELDS = (2, 4)
INVESTMENT_FIELDS = (4, 5)


def _field(fields: List[str], index: int, line_no: int, line: str) -> str:
    if index >= len(fields):
        raise MalformedInput(
            f"expected at least {index + 1} fields, got {len(fields)}", line_no, line)
    return fields[index]


def _marker_state(fields: List[str]) -> Union[ParseState, None]:
    """Return the state a marker/header line switches to, or None for a data line."""
    if len(fields) > 1 and fields[1] == TRADE_TABLE_MARKER:
        logger.info("- Skipping Trade Table")
        return ParseState.START

    if fields[0] == FUND_TABLE_MARKER:
        if len(fields) > 1 and HEADER_NAME_TOKEN in fields[1]:
            logger.info("> Funds Table")
            return ParseState.FUNDS
        return ParseState.START

    if fields[0] == INVESTMENT_TABLE_MARKER:
        if len(fields) > 1 and HEADER_NAME_TOKEN in fields[1]:
            logger.info("> Investments Table")
            return ParseState.INVESTMENTS
        return ParseState.START

    return None


def parse_fund_line(fields: List[str], line_no: int, line: str) -> Tuple[str, str, Position]:
    """Interpret one line of the Funds table as (account, symbol, position)."""
    account_field = fields[0]
    if ACCOUNT_SEPARATOR not in account_field:
        raise MalformedInput(f"fund account {account_field!r} has no '{ACCOUNT_SEPARATOR}'", line_no, line)
    account = account_field.split(ACCOUNT_SEPARATOR, 1)[1]

    fund_name = _field(fields, 1, line_no, line)
    symbol, error = resolve_fund_symbol(fund_name)
    if error:
        raise UnresolvedSymbol(fund_name, line_no)

    share_idx, total_idx = FUND_FIELDS
    return account, symbol, Position(
        share=_field(fields, share_idx, line_no, line),
        total=_field(fields, total_idx, line_no, line),
    )


def parse_investment_line(fields: List[str], line_no: int, line: str) -> Tuple[str, str, Position]:
    """Interpret one line of the Investments table as (account, symbol, position)."""
    account = fields[0]
    name = _field(fields, 1, line_no, line)
    symbol = _field(fields, 2, line_no, line)
    if symbol == "":
        if name != CASH_NAME:
            raise UnresolvedSymbol(name, line_no)
        symbol = CASH_SYMBOL

    share_idx, total_idx = INVESTMENT_FIELDS
    return account, symbol, Position(
        share=_field(fields, share_idx, line_no, line),
        total=_field(fields, total_idx, line_no, line),
    )


def parse_lines(lines: Iterable[str]) -> ParseResult:
    """
    Read the export line by line and build the account -> symbol -> Position table.

    The export is a series of self-describing tables. Header lines switch the
    parse state, data lines are interpreted under the current state, and
    anything outside a known table is ignored. Problems with a single line are
    recorded in the validation report and the parse continues.
    """
    result = ParseResult()
    report = result.validation_report
    positions = result.positions
    state = ParseState.START

    for line_no, raw in enumerate(lines, start=1):
        report.lines_read += 1
        line = raw.rstrip("\r\n")
        if line.strip() == "":
            continue

        fields = line.split(",")

        new_state = _marker_state(fields)
        if new_state is not None:
            state = new_state
            continue

        if state is ParseState.START:
            continue

        try:
            if state is ParseState.FUNDS:
                account, symbol, position = parse_fund_line(fields, line_no, line)
            elif state is ParseState.INVESTMENTS:
                account, symbol, position = parse_investment_line(fields, line_no, line)
            else:
                # Only marker lines change state, so this cannot be reached from a data line.
                raise MalformedInput(f"improper parse state {state}", line_no, line)
        except UnresolvedSymbol as e:
            logger.warning("! %s (line %d)", e, line_no)
            report.unresolved_names.append(e.name)
            continue
        except MalformedInput as e:
            if state not in (ParseState.FUNDS, ParseState.INVESTMENTS):
                raise
            logger.warning("! Skipping malformed %s %s", state.value, e)
            report.parse_errors.append(str(e))
            continue

        positions.setdefault(account, {})[symbol] = position

    report.positions_parsed = sum(len(symbols) for symbols in positions.values())
    for account in positions:
        logger.debug("# %s", account)

    return result


def parse_file(file_path: Union[str, Path]) -> ParseResult:
    """
    Read a brokerage export file and return the parsed position table.
    """
    p = Path(file_path).expanduser()
    if not p.exists():
        raise FileNotFoundError(str(p))

    logger.info("Load Data starting")
    with p.open("r", encoding="utf-8-sig", newline="") as fh:
        result = parse_lines(fh)
    logger.info("Load Data finished: %d positions in %d accounts",
                result.validation_report.positions_parsed, len(result.positions))
    return result


def positions_frame(positions: dict) -> pd.DataFrame:
    """
    Flatten the position table into one row per (account, symbol):

        account   symbol  share    total
        12345678  AAPL    150.00   1500.00
    """
    records = [
        {"account": account, "symbol": symbol, "share": p.share, "total": p.total}
        for account, symbols in positions.items()
        for symbol, p in symbols.items()
    ]
    df = pd.DataFrame.from_records(records, columns=["account", "symbol", "share", "total"])
    return df.sort_values(["account", "symbol"]).reset_index(drop=True)
