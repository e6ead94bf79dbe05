# vanguard_sync/models.py
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field


class Position(BaseModel):
    """
    Per-share price and total dollar value of one instrument in one account.
    Both values are kept exactly as they appear in the export (no coercion).
    """
    model_config = ConfigDict(frozen=True)

    share: str = ""     # price per share / fund unit value
    total: str = ""     # total holding value


ZERO_POSITION = Position()

# account -> symbol -> Position
PositionTable = Dict[str, Dict[str, Position]]


class ParseState(str, Enum):
    START = "start"
    INVESTMENTS = "investments"
    FUNDS = "funds"


class CellKind(str, Enum):
    STRING = "string"
    NUMBER = "number"
    ABSENT = "absent"


class Cell(BaseModel):
    """
    A single value read back from the spreadsheet.
    Build with Cell.of() so every raw value is classified exactly once.
    """
    model_config = ConfigDict(frozen=True)

    kind: CellKind
    value: Any = None

    @classmethod
    def of(cls, raw: Any) -> "Cell":
        if isinstance(raw, Cell):
            return raw
        if raw is None:
            return cls(kind=CellKind.ABSENT)
        if isinstance(raw, str):
            return cls(kind=CellKind.STRING, value=raw)
        if isinstance(raw, (int, float)):
            return cls(kind=CellKind.NUMBER, value=raw)
        return cls(kind=CellKind.ABSENT, value=raw)

    def as_string(self) -> Optional[str]:
        if self.kind is CellKind.STRING:
            return self.value
        return None


class ColumnRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int      # zero-based
    letter: str     # A1 column letter(s)


# lowercased column name -> ColumnRef
SheetColumnMap = Dict[str, ColumnRef]


class ValidationReport(BaseModel):
    """
    Report of problems found while reading the export file.
    """
    lines_read: int = 0
    positions_parsed: int = 0
    unresolved_names: List[str] = Field(default_factory=list)   # Fund/investment names without a ticker
    parse_errors: List[str] = Field(default_factory=list)       # Lines that could not be interpreted


class ParseResult(BaseModel):
    positions: Dict[str, Dict[str, Position]] = Field(default_factory=dict)
    validation_report: ValidationReport = Field(default_factory=ValidationReport)


class RowUpdate(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    row: int
    symbol: str
    position: Position
    matched: bool = True


class SheetReconciliation(BaseModel):
    title: str
    updates: List[RowUpdate] = Field(default_factory=list)
    consumed: Set[str] = Field(default_factory=set)
    unmatched: List[str] = Field(default_factory=list)   # Parsed but never found in the sheet


class SheetStatus(str, Enum):
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


class SheetReport(BaseModel):
    title: str
    status: SheetStatus
    account: Optional[str] = None
    rows_written: int = 0
    unmatched: List[str] = Field(default_factory=list)   # Left over for the account after this sheet
    error: Optional[str] = None


class RunReport(BaseModel):
    sheets: List[SheetReport] = Field(default_factory=list)
    unmatched: Dict[str, List[str]] = Field(default_factory=dict)   # Account -> symbols no sheet used

    @property
    def ok(self) -> bool:
        return all(s.status is not SheetStatus.FAILED for s in self.sheets)

    @property
    def failed(self) -> List[SheetReport]:
        return [s for s in self.sheets if s.status is SheetStatus.FAILED]

    @property
    def rows_written(self) -> int:
        return sum(s.rows_written for s in self.sheets)
