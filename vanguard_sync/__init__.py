# vanguard_sync/__init__.py
from .models import Position, ParseResult, ValidationReport, RowUpdate, SheetReconciliation, RunReport, SheetReport
from .parser import parse_file, parse_lines, positions_frame
from .column_detector import inspect_headers, col_to_alpha
from .symbol_mapper import resolve_fund_symbol, symbol_for_fund_name
from .reconciler import reconcile_rows
from .dispatcher import UpdateDispatcher, build_row_values
from .rate_limiter import RateLimiter
from .config import SyncConfig, load_config

__all__ = [
    "Position",
    "ParseResult",
    "ValidationReport",
    "RowUpdate",
    "SheetReconciliation",
    "RunReport",
    "SheetReport",
    "parse_file",
    "parse_lines",
    "positions_frame",
    "inspect_headers",
    "col_to_alpha",
    "resolve_fund_symbol",
    "symbol_for_fund_name",
    "reconcile_rows",
    "UpdateDispatcher",
    "build_row_values",
    "RateLimiter",
    "SyncConfig",
    "load_config",
]
