"""
Prepared statements on top of a DB-API cursor.

A :class:`Statement` follows the prepare / bind / step / finalize lifecycle:
parameters are bound by 1-based position, :meth:`Statement.step` executes the
query on its first call and then advances one row at a time, and result
columns are read by 0-based index from the current row. Use it as a context
manager so the cursor is released on every exit path::

    with db.prepare("SELECT * FROM users WHERE id = ?;") as statement:
        statement.bind_int(1, 7)
        if statement.step() is StepResult.ROW:
            name = statement.column_text(1)
"""

import logging
import re
from enum import Enum
from typing import Any, Dict, List, Optional

from miniorm.exceptions import StatementError

logger = logging.getLogger("miniorm.statement")

NUMERIC_PREFIX = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def _numeric_prefix(value: Any) -> Optional[str]:
    """Return the leading numeric text of a str/bytes value, as SQLite reads it."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        value = bytes(value).decode("utf-8", errors="replace")
    match = NUMERIC_PREFIX.match(str(value))
    return match.group(1) if match else None


def to_int(value: Any) -> int:
    """Convert a stored value to int the way SQLite does; non-numeric text reads as 0."""
    if value is None:
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    prefix = _numeric_prefix(value)
    if prefix is None:
        return 0
    try:
        return int(prefix)
    except ValueError:
        return int(float(prefix))


def to_float(value: Any) -> float:
    """Convert a stored value to float the way SQLite does; non-numeric text reads as 0.0."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    prefix = _numeric_prefix(value)
    return float(prefix) if prefix is not None else 0.0


class StepResult(Enum):
    """Outcome of :meth:`Statement.step`."""

    ROW = "ROW"
    DONE = "DONE"


class Statement:
    """
    A single parameterized SQL statement bound to one cursor.

    ``sql`` uses ``?`` placeholders; ``query`` is the same text adapted to the
    driver's parameter style. Unbound parameters are sent as NULL.
    """

    def __init__(self, cursor: Any, sql: str, query: Optional[str] = None):
        self.sql = sql
        self.query = query if query is not None else sql
        self.parameter_count = sql.count("?")
        self._cursor = cursor
        self._params: Dict[int, Any] = {}
        self._row: Optional[tuple] = None
        self._executed = False
        self._finalized = False

    def __enter__(self) -> "Statement":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.finalize()

    @property
    def finalized(self) -> bool:
        return self._finalized

    def _check_open(self) -> None:
        if self._finalized:
            raise StatementError("Statement already finalized")

    def _bind(self, index: int, value: Any) -> None:
        self._check_open()
        if self._executed:
            raise StatementError("Cannot bind after the statement was stepped")
        if not 1 <= index <= self.parameter_count:
            raise StatementError(
                f"Bind index {index} out of range (1..{self.parameter_count})"
            )
        self._params[index] = value

    def bind_int(self, index: int, value: int) -> None:
        self._bind(index, int(value))

    def bind_double(self, index: int, value: float) -> None:
        self._bind(index, float(value))

    def bind_text(self, index: int, value: str) -> None:
        """Bind a private copy of ``value`` so later edits to the source do not leak in."""
        self._bind(index, str(value))

    def bind_blob(self, index: int, value: bytes) -> None:
        self._bind(index, bytes(value))

    def bind_null(self, index: int) -> None:
        self._bind(index, None)

    def parameters(self) -> List[Any]:
        """Bound values in placeholder order, ``None`` for unbound slots."""
        return [self._params.get(i) for i in range(1, self.parameter_count + 1)]

    def step(self) -> StepResult:
        """
        Execute on first call, then advance to the next row.

        Returns :attr:`StepResult.ROW` when a row is available, otherwise
        :attr:`StepResult.DONE`. Driver errors propagate unchanged.
        """
        self._check_open()
        if not self._executed:
            self._executed = True
            if self.parameter_count:
                self._cursor.execute(self.query, tuple(self.parameters()))
            else:
                self._cursor.execute(self.query)

        if self._cursor.description is None:
            self._row = None
            return StepResult.DONE

        self._row = self._cursor.fetchone()
        if self._row is None:
            return StepResult.DONE
        return StepResult.ROW

    def column_count(self) -> int:
        self._check_open()
        if not self._executed or self._cursor.description is None:
            return 0
        return len(self._cursor.description)

    def column_name(self, index: int) -> str:
        self._check_open()
        return self._cursor.description[index][0]

    def _column(self, index: int) -> Any:
        self._check_open()
        if self._row is None:
            raise StatementError("No current row to read from")
        if not 0 <= index < len(self._row):
            raise StatementError(
                f"Column index {index} out of range (0..{len(self._row) - 1})"
            )
        return self._row[index]

    def column_int(self, index: int) -> int:
        return to_int(self._column(index))

    def column_double(self, index: int) -> float:
        return to_float(self._column(index))

    def column_text(self, index: int) -> str:
        """Read a text column; NULL reads as an empty string, bytes are decoded as UTF-8."""
        value = self._column(index)
        if value is None:
            return ""
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value).decode("utf-8", errors="replace")
        return str(value)

    def column_blob(self, index: int) -> bytes:
        value = self._column(index)
        if value is None:
            return b""
        if isinstance(value, str):
            return value.encode("utf-8")
        return bytes(value)

    def finalize(self) -> None:
        """Release the cursor. Safe to call more than once."""
        if self._finalized:
            return
        self._finalized = True
        self._row = None
        try:
            self._cursor.close()
        except Exception:
            logger.warning("Statement: error closing cursor", exc_info=True)
