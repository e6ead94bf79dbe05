# vanguard_sync/sync_agent.py
"""
SyncAgent - load a Vanguard position export and publish it to the allocation spreadsheet.

Usage:
    python -m vanguard_sync --id <sheetID>
    python -m vanguard_sync --data ~/Downloads/ofxdownload.csv --dry-run

Environment:
    VANGUARD_ID=<sheet id>                 (instead of --id)
    GOOGLE_APPLICATION_CREDENTIALS=<path>  service account key or authorized-user token

This script:
    - Parses the export into account -> symbol -> (price, total)
    - Updates every sheet whose "account" cell matches an account in the export
    - Warns about positions no sheet row asked for
    - Deletes the export afterwards unless --no-delete is given or a sheet failed
"""

from __future__ import annotations

import argparse
import logging
import sys
import threading
from pathlib import Path
from typing import Callable, List, Optional

from .config import SyncConfig, load_config
from .dispatcher import UpdateDispatcher
from .errors import ConfigError, RemoteCallError, SyncError
from .models import ParseResult, RunReport
from .parser import parse_file, positions_frame
from .rate_limiter import RateLimiter
from .sheets_client import SheetsClient, build_client

logger = logging.getLogger("vanguard_sync")


def configure_logging(debug: int) -> None:
    """Map the debug level onto logging: 0 warnings only, 1 progress, 2+ details."""
    if not logger.handlers:
        ch = logging.StreamHandler(sys.stdout)
        ch.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
        logger.addHandler(ch)
    if debug <= 0:
        logger.setLevel(logging.WARNING)
    elif debug == 1:
        logger.setLevel(logging.INFO)
    else:
        logger.setLevel(logging.DEBUG)
    # Per-row traces are only wanted at the highest level
    logging.getLogger("vanguard_sync.reconciler").setLevel(
        logging.DEBUG if debug >= 3 else logging.INFO)


class SyncAgent:
    def __init__(self, config: SyncConfig,
                 client_factory: Optional[Callable[[SyncConfig], SheetsClient]] = None,
                 cancel: Optional[threading.Event] = None):
        self.config = config
        self.client_factory = client_factory or (
            lambda cfg: build_client(cfg.credentials_file, num_retries=cfg.num_retries))
        self.cancel = cancel

    def load(self) -> ParseResult:
        result = parse_file(self.config.data_file)
        report = result.validation_report
        if report.unresolved_names:
            logger.warning("Unresolved names (%d): %s",
                           len(report.unresolved_names), report.unresolved_names)
        if report.parse_errors:
            logger.warning("Malformed lines (%d):", len(report.parse_errors))
            for error in report.parse_errors[:5]:
                logger.warning("  - %s", error)
        return result

    def update(self, result: ParseResult) -> RunReport:
        dispatcher = UpdateDispatcher(
            client=self.client_factory(self.config),
            spreadsheet_id=self.config.sheet_id,
            limiter=RateLimiter.per_minute(self.config.requests_per_minute),
            fail_fast=self.config.fail_fast,
            cancel=self.cancel,
        )
        return dispatcher.sync_spreadsheet(result.positions)

    def cleanup(self) -> None:
        path = self.config.data_file
        logger.info("> Deleting %s", path)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("!!! Error deleting %s: %s", path, e)

    def run(self) -> RunReport:
        report = self.update(self.load())
        if self.config.delete_after and report.ok:
            self.cleanup()
        return report


def display_results(report: RunReport) -> None:
    print("=" * 60)
    print("Sheets")
    print("=" * 60)
    for sheet in report.sheets:
        detail = sheet.error or f"{sheet.rows_written} rows"
        print(f"{sheet.status.value:8s} {sheet.title:32s} {detail}")
    for account, symbols in report.unmatched.items():
        print(f"unused symbols for account {account}: {', '.join(symbols)}")


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vanguard_sync",
        description="Publish Vanguard position data to an allocation spreadsheet")
    parser.add_argument("--id", dest="sheet_id", default=None, help="sheet ID (required)")
    parser.add_argument("--data", dest="data_path", type=Path, default=None,
                        help="position export file (default: ~/Downloads/ofxdownload.csv)")
    parser.add_argument("--delete", dest="delete_after", action=argparse.BooleanOptionalAction,
                        default=None, help="delete data file after successful insertion (default: true)")
    parser.add_argument("--debug", type=int, default=None, help="debug level (default: 1)")
    parser.add_argument("--credentials", dest="credentials_file", type=Path, default=None,
                        help="Google credentials JSON file")
    parser.add_argument("--fail-fast", dest="fail_fast", action="store_true", default=None,
                        help="abort the run on the first failed Sheets API call")
    parser.add_argument("--dry-run", action="store_true",
                        help="parse the export and print positions without touching the sheet")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    overrides = {k: v for k, v in vars(args).items() if k != "dry_run"}

    if args.dry_run and not overrides.get("sheet_id"):
        overrides["sheet_id"] = "-"

    try:
        config = load_config(**overrides)
    except ConfigError as e:
        print(f"**** {e}", file=sys.stderr)
        return 2

    configure_logging(config.debug)
    logger.info("Vanguard starting")
    agent = SyncAgent(config)

    try:
        if args.dry_run:
            result = agent.load()
            print(positions_frame(result.positions).to_string(index=False))
            return 0
        report = agent.run()
    except FileNotFoundError as e:
        logger.error("Unable to open %s", e)
        return 1
    except RemoteCallError as e:
        logger.error("Unable to update spreadsheet: %s", e)
        return 1
    except SyncError as e:
        logger.error("%s", e)
        return 1

    display_results(report)
    logger.info("Vanguard finished")
    return 0 if report.ok else 1
