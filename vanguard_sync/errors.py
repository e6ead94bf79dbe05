# vanguard_sync/errors.py
"""
Exceptions raised while syncing a brokerage export into the allocation spreadsheet.

Line-level problems (MalformedInput, UnresolvedSymbol) are logged and skipped by the
parser, sheet-level problems (SheetStructureError) skip one sheet, and RemoteCallError
is isolated to the sheet unless the run is configured to fail fast.
"""

from typing import Optional


class SyncError(Exception):
    """Base class for all vanguard_sync errors."""


class ConfigError(SyncError):
    pass


class MalformedInput(SyncError, ValueError):
    def __init__(self, message: str, line_no: Optional[int] = None, line: Optional[str] = None):
        self.line_no = line_no
        self.line = line
        if line_no is not None:
            message = f"line {line_no}: {message}"
        super().__init__(message)


class UnresolvedSymbol(SyncError):
    def __init__(self, name: str, line_no: Optional[int] = None):
        self.name = name
        self.line_no = line_no
        super().__init__(f"no symbol for {name!r}")


class SheetStructureError(SyncError):
    def __init__(self, title: str, reason: str):
        self.title = title
        self.reason = reason
        super().__init__(f"sheet {title!r}: {reason}")


class RemoteCallError(SyncError):
    def __init__(self, operation: str, cause: Optional[BaseException] = None,
                 title: Optional[str] = None, row: Optional[int] = None):
        self.operation = operation
        self.cause = cause
        self.title = title
        self.row = row
        where = ""
        if title is not None:
            where += f" sheet {title!r}"
        if row is not None:
            where += f" row {row}"
        super().__init__(f"{operation} failed{where}: {cause}")

    def at(self, title: Optional[str] = None, row: Optional[int] = None) -> "RemoteCallError":
        """Return a copy of this error annotated with the sheet/row being processed."""
        return RemoteCallError(
            self.operation,
            self.cause,
            title=title if title is not None else self.title,
            row=row if row is not None else self.row,
        )


class LimiterCancelled(SyncError):
    pass
