"""
Typed columns for :class:`~miniorm.model.Model`.

Every column exposes the same small interface (name, SQL definition, bind,
load) so a model can treat heterogeneous fields uniformly. There is one
concrete class per supported scalar type; :func:`Column` picks the right one
from a Python type::

    user_id = Column("id", int, "PRIMARY KEY")
    name = Column("name", str, "NOT NULL")
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict

from miniorm.statement import Statement

T = TypeVar("T")

SQL_TYPE_MAPPING: Dict[type, str] = {
    int: "INTEGER",
    float: "REAL",
    str: "TEXT",
}
DEFAULT_SQL_TYPE = "BLOB"


def get_sql_type(python_type: Any) -> str:
    """Map a Python type to its SQL column type; unknown types map to BLOB."""
    return SQL_TYPE_MAPPING.get(python_type, DEFAULT_SQL_TYPE)


class ColumnMetadata(BaseModel):
    """Immutable description of a column, used for DDL and introspection."""

    model_config = ConfigDict(frozen=True)

    name: str
    sql_type: str
    constraints: str = ""


class BaseColumn(ABC, Generic[T]):
    """
    A named, typed value cell that can describe, bind and load itself.

    Subclasses set ``python_type`` and ``empty_value`` and implement the
    binding and loading primitives for their type.
    """

    python_type: Type = object
    empty_value: Any = None

    def __init__(self, name: str, constraints: str = "", value: Optional[T] = None):
        self.metadata = ColumnMetadata(
            name=name,
            sql_type=get_sql_type(self.python_type),
            constraints=constraints or "",
        )
        self._value: T = self.empty_value
        if value is not None:
            self.set_value(value)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.metadata.name!r}, value={self._value!r})"

    def get_name(self) -> str:
        return self.metadata.name

    def get_sql_type(self) -> str:
        return self.metadata.sql_type

    def get_constraints(self) -> str:
        return self.metadata.constraints

    def get_definition(self) -> str:
        """Return ``"<name> <sql_type>[ <constraints>]"`` for CREATE TABLE."""
        definition = f"{self.metadata.name} {self.metadata.sql_type}"
        if self.metadata.constraints:
            definition += f" {self.metadata.constraints}"
        return definition

    def get_value(self) -> T:
        return self._value

    def set_value(self, value: T) -> None:
        self._value = self.coerce(value)

    def coerce(self, value: Any) -> T:
        """Validate ``value`` for this column; raise TypeError on a mismatch."""
        if isinstance(value, bool) or not isinstance(value, self.python_type):
            raise TypeError(
                f"Column {self.metadata.name!r} expects {self.python_type.__name__}, "
                f"got {type(value).__name__}"
            )
        return value

    def is_integer_key(self) -> bool:
        return False

    @abstractmethod
    def bind_value(self, statement: Statement, index: int) -> None:
        """Bind the current value at 1-based parameter ``index``."""

    @abstractmethod
    def load_value(self, statement: Statement, index: int) -> None:
        """Overwrite the value from 0-based column ``index`` of the current row."""


class IntegerColumn(BaseColumn[int]):
    python_type = int
    empty_value = 0

    def is_integer_key(self) -> bool:
        return True

    def bind_value(self, statement: Statement, index: int) -> None:
        statement.bind_int(index, self._value)

    def load_value(self, statement: Statement, index: int) -> None:
        self._value = statement.column_int(index)


class FloatColumn(BaseColumn[float]):
    python_type = float
    empty_value = 0.0

    def coerce(self, value: Any) -> float:
        # ints widen to float; anything else is rejected
        if isinstance(value, int) and not isinstance(value, bool):
            return float(value)
        return super().coerce(value)

    def bind_value(self, statement: Statement, index: int) -> None:
        statement.bind_double(index, self._value)

    def load_value(self, statement: Statement, index: int) -> None:
        self._value = statement.column_double(index)


class TextColumn(BaseColumn[str]):
    """Text column. A NULL in the database loads as an empty string."""

    python_type = str
    empty_value = ""

    def bind_value(self, statement: Statement, index: int) -> None:
        statement.bind_text(index, self._value)

    def load_value(self, statement: Statement, index: int) -> None:
        self._value = statement.column_text(index)


class BlobColumn(BaseColumn[bytes]):
    """Opaque byte column, the fallback for types without a dedicated mapping."""

    python_type = bytes
    empty_value = b""

    def coerce(self, value: Any) -> bytes:
        if isinstance(value, (bytearray, memoryview)):
            return bytes(value)
        return super().coerce(value)

    def bind_value(self, statement: Statement, index: int) -> None:
        statement.bind_blob(index, self._value)

    def load_value(self, statement: Statement, index: int) -> None:
        self._value = statement.column_blob(index)


COLUMN_TYPES: Dict[type, Type[BaseColumn]] = {
    int: IntegerColumn,
    float: FloatColumn,
    str: TextColumn,
}


def Column(
    name: str,
    python_type: Any = int,
    constraints: str = "",
    value: Optional[Any] = None,
) -> BaseColumn:
    """
    Declare a column of ``python_type`` with optional SQL constraints.

    Returns the concrete column class for the type (``int``, ``float``,
    ``str``); any other type gets a :class:`BlobColumn`. Example::

        age = Column("age", int, "NOT NULL", value=30)
        age.get_definition()  # "age INTEGER NOT NULL"
    """
    column_class = COLUMN_TYPES.get(python_type, BlobColumn)
    return column_class(name, constraints=constraints, value=value)
