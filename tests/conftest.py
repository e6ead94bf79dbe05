# tests/conftest.py - Pytest configuration and fixtures

import os

import pytest
from unittest.mock import MagicMock

from vanguard_sync.column_detector import inspect_headers
from vanguard_sync.config import ENV_VARS
from vanguard_sync.models import Cell, Position
from vanguard_sync.rate_limiter import RateLimiter
from vanguard_sync.sheets_client import SheetInfo, SheetsClient


HEADER_ROW = ["Symbol", "Account", "Target", "Actual", "Current", "TgtAmt",
              "Over", "PctOver", "Price", "Pct90", "Pct95", "Pct975"]


# Sample data fixtures
@pytest.fixture
def export_lines():
    """A small export with a Funds table, an Investments table and a trade table."""
    return [
        "Fund Account Number,Fund Name,Price,Shares,Total Value,",
        "0987-11111111,Vanguard Balanced Index Fund Investor Shares,45.67,100.000,4567.00,",
        "0987-11111111,Vanguard Mystery Fund Investor Shares,10.00,5.000,50.00,",
        "",
        "Account Number,Investment Name,Symbol,Shares,Share Price,Total Value,",
        "22222222,APPLE INC,AAPL,10,150.00,1500.00,",
        "22222222,CASH,,0,1.00,250.00,",
        "22222222,SOME BOND,,5,99.00,495.00,",
        "",
        "Account Number,Trade Date,Settlement Date,Transaction Type,",
        "22222222,2024-01-02,2024-01-03,Buy,MSFT,5,300.00,1500.00",
    ]


@pytest.fixture
def position_table():
    return {
        "123": {
            "AAPL": Position(share="150.00", total="1500.00"),
            "VTI": Position(share="220.00", total="2200.00"),
        }
    }


@pytest.fixture
def header_grid():
    """Rows 1-2 of a sheet tracking account 123."""
    return [
        [Cell.of(v) for v in HEADER_ROW],
        [Cell.of(v) for v in ["", "123", "", "", "10000"]],
    ]


@pytest.fixture
def column_map(header_grid):
    _, cmap = inspect_headers(header_grid[0], header_grid[1])
    return cmap


# Environment fixtures
@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Isolate configuration tests from the real environment and any .env file."""
    # load_dotenv writes straight into os.environ
    monkeypatch.setattr(os, "environ", dict(os.environ))
    for var in ENV_VARS.values():
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


# Mock fixtures
@pytest.fixture
def limiter():
    """Limiter generous enough never to block in tests."""
    return RateLimiter(rate=1_000_000, burst=1_000)


@pytest.fixture
def mock_client(header_grid):
    """SheetsClient stand-in with one sheet, "Brokerage", for account 123."""
    client = MagicMock(spec=SheetsClient)
    client.list_sheets.return_value = [
        SheetInfo(title="Brokerage", sheet_id=1, row_count=20, column_count=12),
    ]

    def get_values(spreadsheet_id, title, rng):
        if rng == "A1:Z2":
            return header_grid
        return [[Cell.of("AAPL")]]

    client.get_values.side_effect = get_values
    client.batch_update.return_value = {}
    return client
