# tests/test_dispatcher.py - Sheet update tests against a mocked Sheets client

import logging
import threading

import pytest

from vanguard_sync.dispatcher import UpdateDispatcher, build_row_values, rows_range
from vanguard_sync.errors import LimiterCancelled, RemoteCallError
from vanguard_sync.models import Cell, Position, RowUpdate, SheetStatus
from vanguard_sync.rate_limiter import RateLimiter
from vanguard_sync.sheets_client import SheetInfo


def _by_range(data):
    return {d["range"]: d["values"][0][0] for d in data}


class TestBuildRowValues:

    def test_brokerage_aapl_row(self, column_map):
        update = RowUpdate(title="Brokerage", row=3, symbol="AAPL",
                           position=Position(share="150.00", total="1500.00"))

        data = build_row_values(update, column_map)

        assert all(d["majorDimension"] == "ROWS" for d in data)
        assert _by_range(data) == {
            "'Brokerage'!D3": "=E3/E$2",
            "'Brokerage'!E3": "1500.00",
            "'Brokerage'!G3": "=E3-F3",
            "'Brokerage'!H3": "=IF(F3>0,G3/F3,0)",
            "'Brokerage'!J3": "=0.9*I3",
            "'Brokerage'!K3": "=0.95*I3",
            "'Brokerage'!L3": "=0.975*I3",
            "'Brokerage'!I3": "150.00",
            "'Brokerage'!F3": "=E$2*C3",
        }

    def test_unmatched_row_writes_empty_literals(self, column_map):
        update = RowUpdate(title="Brokerage", row=9, symbol="GONE",
                           position=Position(), matched=False)
        values = _by_range(build_row_values(update, column_map))

        assert values["'Brokerage'!E9"] == ""
        assert values["'Brokerage'!I9"] == ""
        assert values["'Brokerage'!D9"] == "=E9/E$2"

    def test_same_input_same_output(self, column_map):
        update = RowUpdate(title="Brokerage", row=5, symbol="AAPL",
                           position=Position(share="1", total="2"))
        assert build_row_values(update, column_map) == build_row_values(update, column_map)

    def test_quotes_in_title_are_escaped(self, column_map):
        update = RowUpdate(title="Joe's IRA", row=3, symbol="X", position=Position())
        assert build_row_values(update, column_map)[0]["range"] == "'Joe''s IRA'!D3"


def test_rows_range():
    assert rows_range(SheetInfo(title="t", sheet_id=0, row_count=100, column_count=26)) == "A3:Z100"
    assert rows_range(SheetInfo(title="t", sheet_id=0, row_count=1, column_count=28)) == "A3:AB3"


class TestSyncSpreadsheet:

    @pytest.fixture
    def dispatcher(self, mock_client, limiter):
        return UpdateDispatcher(mock_client, "sheet-id", limiter)

    def test_end_to_end_brokerage(self, dispatcher, mock_client, position_table):
        run = dispatcher.sync_spreadsheet(position_table)

        assert run.ok
        [sheet] = run.sheets
        assert sheet.status is SheetStatus.UPDATED
        assert sheet.account == "123"
        assert sheet.rows_written == 1
        assert sheet.unmatched == ["VTI"]
        assert run.unmatched == {"123": ["VTI"]}

        mock_client.get_values.assert_any_call("sheet-id", "Brokerage", "A1:Z2")
        mock_client.get_values.assert_any_call("sheet-id", "Brokerage", "A3:L20")
        spreadsheet_id, data = mock_client.batch_update.call_args.args
        assert spreadsheet_id == "sheet-id"
        values = _by_range(data)
        assert values["'Brokerage'!E3"] == "1500.00"
        assert values["'Brokerage'!I3"] == "150.00"
        assert values["'Brokerage'!F3"] == "=E$2*C3"

    def test_unused_symbols_reported_across_sheets_of_one_account(
            self, dispatcher, mock_client, header_grid, position_table, caplog):
        mock_client.list_sheets.return_value = [
            SheetInfo(title="A", sheet_id=1, row_count=20, column_count=12),
            SheetInfo(title="B", sheet_id=2, row_count=20, column_count=12),
        ]
        symbols = {"A": "AAPL", "B": "VTI"}

        def get_values(spreadsheet_id, title, rng):
            if rng == "A1:Z2":
                return header_grid
            return [[Cell.of(symbols[title])]]

        mock_client.get_values.side_effect = get_values

        with caplog.at_level(logging.WARNING, logger="vanguard_sync"):
            run = dispatcher.sync_spreadsheet(position_table)

        assert run.unmatched == {}
        assert [s.unmatched for s in run.sheets] == [["VTI"], []]
        assert not any("Unused symbols" in r.getMessage() for r in caplog.records)

    def test_symbol_on_two_sheets_is_written_once(self, dispatcher, mock_client, position_table):
        mock_client.list_sheets.return_value = [
            SheetInfo(title="A", sheet_id=1, row_count=20, column_count=12),
            SheetInfo(title="B", sheet_id=2, row_count=20, column_count=12),
        ]

        run = dispatcher.sync_spreadsheet(position_table)

        first, second = (_by_range(c.args[1]) for c in mock_client.batch_update.call_args_list)
        assert first["'A'!E3"] == "1500.00"
        assert second["'B'!E3"] == ""
        assert run.unmatched == {"123": ["VTI"]}

    def test_rerun_writes_identical_values(self, dispatcher, mock_client, position_table):
        dispatcher.sync_spreadsheet(position_table)
        first = mock_client.batch_update.call_args.args
        dispatcher.sync_spreadsheet(position_table)
        assert mock_client.batch_update.call_args.args == first
        # the position table is not consumed between runs
        assert set(position_table["123"]) == {"AAPL", "VTI"}

    def test_sheet_without_account_is_skipped(self, dispatcher, mock_client, position_table):
        mock_client.get_values.side_effect = None
        mock_client.get_values.return_value = [[Cell.of("Symbol"), Cell.of("Current")]]

        run = dispatcher.sync_spreadsheet(position_table)

        assert run.sheets[0].status is SheetStatus.SKIPPED
        assert run.sheets[0].error == "no account number"
        mock_client.batch_update.assert_not_called()
        assert set(position_table["123"]) == {"AAPL", "VTI"}

    def test_unknown_account_is_skipped(self, dispatcher, mock_client):
        run = dispatcher.sync_spreadsheet({"999": {"AAPL": Position()}})
        assert run.sheets[0].status is SheetStatus.SKIPPED
        assert "no account data" in run.sheets[0].error
        assert run.ok

    def test_sheet_without_grid_is_skipped(self, dispatcher, mock_client, position_table):
        mock_client.list_sheets.return_value = [SheetInfo(title="Chart", sheet_id=2)]
        run = dispatcher.sync_spreadsheet(position_table)
        assert run.sheets[0].status is SheetStatus.SKIPPED
        assert run.sheets[0].error == "no grid"

    def test_missing_columns_skip_sheet(self, dispatcher, mock_client, position_table):
        mock_client.get_values.side_effect = None
        mock_client.get_values.return_value = [
            [Cell.of("Symbol"), Cell.of("Account")],
            [Cell.of(""), Cell.of("123")],
        ]
        run = dispatcher.sync_spreadsheet(position_table)
        assert run.sheets[0].status is SheetStatus.SKIPPED
        assert run.sheets[0].error.startswith("missing columns target")

    def test_write_failure_isolated_to_sheet(self, dispatcher, mock_client, position_table):
        mock_client.list_sheets.return_value = [
            SheetInfo(title="Brokerage", sheet_id=1, row_count=20, column_count=12),
            SheetInfo(title="Brokerage 2", sheet_id=2, row_count=20, column_count=12),
        ]
        mock_client.batch_update.side_effect = [RemoteCallError("batch update", OSError("down")), {}]

        run = dispatcher.sync_spreadsheet(position_table)

        assert not run.ok
        assert [s.status for s in run.sheets] == [SheetStatus.FAILED, SheetStatus.UPDATED]
        assert "sheet 'Brokerage' row 3" in run.sheets[0].error

    def test_fail_fast_aborts_run(self, mock_client, limiter, position_table):
        mock_client.batch_update.side_effect = RemoteCallError("batch update", OSError("down"))
        dispatcher = UpdateDispatcher(mock_client, "sheet-id", limiter, fail_fast=True)

        with pytest.raises(RemoteCallError) as exc:
            dispatcher.sync_spreadsheet(position_table)
        assert exc.value.title == "Brokerage"
        assert exc.value.row == 3

    def test_read_failure_marks_sheet_failed(self, dispatcher, mock_client, position_table):
        mock_client.get_values.side_effect = RemoteCallError("get values A1:Z2", OSError("down"))
        run = dispatcher.sync_spreadsheet(position_table)
        assert run.sheets[0].status is SheetStatus.FAILED
        assert "Brokerage" in run.sheets[0].error

    def test_every_call_waits_on_limiter(self, mock_client, position_table):
        limiter = RateLimiter(rate=1_000_000, burst=1_000)
        calls = []
        original = limiter.wait
        limiter.wait = lambda cancel=None, timeout=None: (calls.append(cancel), original(cancel, timeout))

        UpdateDispatcher(mock_client, "sheet-id", limiter).sync_spreadsheet(position_table)

        # spreadsheet metadata, headers, rows, one row write
        assert len(calls) == 4

    def test_cancelled_run_stops_before_calling_api(self, mock_client, limiter, position_table):
        cancel = threading.Event()
        cancel.set()
        dispatcher = UpdateDispatcher(mock_client, "sheet-id", limiter, cancel=cancel)

        with pytest.raises(LimiterCancelled):
            dispatcher.sync_spreadsheet(position_table)
        mock_client.list_sheets.assert_not_called()
