"""
Single-table models with generated DDL, DQL and DML.

A model is one row of one table. Subclasses build their columns in
``__init__`` and hand them to :class:`Model` in declaration order; the first
column is the integer primary key used by :meth:`Model.find`,
:meth:`Model.update` and :meth:`Model.remove`::

    class User(Model):
        def __init__(self):
            self.id = Column("id", int, "PRIMARY KEY")
            self.name = Column("name", str, "NOT NULL")
            self.age = Column("age", int)
            super().__init__("users", [self.id, self.name, self.age])

Every operation takes an open :class:`DbUtil`, runs exactly one statement and
returns a bool. Engine errors are logged, kept in ``db_conn.last_error`` and
reported as False; layout problems raise :class:`ModelConfigurationError`.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd

from miniorm.column import BaseColumn
from miniorm.db_util import DbUtil
from miniorm.exceptions import ENGINE_ERRORS, ModelConfigurationError
from miniorm.statement import Statement, StepResult

logger = logging.getLogger("miniorm.model")

DEFAULT_TABLE_NAME = "DefaultTable"


class Model:
    """
    Base class for table-backed entities.

    Holds the table name and the ordered column list. Column order is the
    order of the CREATE TABLE definition, of INSERT parameters and of the
    ``SELECT *`` result, so it must not change after construction.
    """

    def __init__(
        self,
        table_name: str = DEFAULT_TABLE_NAME,
        columns: Optional[Iterable[BaseColumn]] = None,
    ):
        self.table_name = table_name
        self.columns: List[BaseColumn] = []
        for column in columns or []:
            self.register_column(column)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.table_name!r}, {self.to_dict()!r})"

    def get_table_name(self) -> str:
        return self.table_name

    def set_table_name(self, table_name: str) -> None:
        self.table_name = table_name

    def register_column(self, column: BaseColumn) -> None:
        """
        Append ``column``. Registration order matters: index 0 is the primary key.
        """
        name = column.get_name()
        if any(existing.get_name() == name for existing in self.columns):
            raise ModelConfigurationError(
                f"Duplicate column {name!r} in table {self.table_name}"
            )
        self.columns.append(column)

    def get_columns(self) -> List[str]:
        """Return the column names in registration order."""
        return [column.get_name() for column in self.columns]

    def get_column(self, name: str) -> BaseColumn:
        for column in self.columns:
            if column.get_name() == name:
                return column
        raise KeyError(name)

    def get_primary_key(self) -> BaseColumn:
        self._require_columns(1, "primary key lookup")
        return self.columns[0]

    def get_column_breakdown(self) -> List[Dict[str, Any]]:
        """Return per-column metadata: name, sql_type, constraints, position, is_primary_key."""
        breakdown = []
        for position, column in enumerate(self.columns):
            entry = column.metadata.model_dump()
            entry["position"] = position
            entry["is_primary_key"] = position == 0
            breakdown.append(entry)
        return breakdown

    def to_dict(self) -> Dict[str, Any]:
        """Return the current column values keyed by name."""
        return {column.get_name(): column.get_value() for column in self.columns}

    def _require_columns(self, minimum: int, operation: str) -> None:
        if len(self.columns) < minimum:
            raise ModelConfigurationError(
                f"{operation} on {self.table_name} needs at least {minimum} "
                f"column(s), found {len(self.columns)}"
            )

    def _require_integer_key(self, operation: str) -> BaseColumn:
        key_column = self.get_primary_key()
        if not key_column.is_integer_key():
            raise ModelConfigurationError(
                f"{operation} on {self.table_name} needs an integer primary key, "
                f"column {key_column.get_name()!r} is {key_column.get_sql_type()}"
            )
        return key_column

    # SQL generation

    def generate_ddl_query(self) -> str:
        definitions = ", ".join(column.get_definition() for column in self.columns)
        return f"CREATE TABLE IF NOT EXISTS {self.table_name} ({definitions});"

    def generate_insert_query(self) -> str:
        names = ", ".join(self.get_columns())
        placeholders = ", ".join("?" for _ in self.columns)
        return f"INSERT INTO {self.table_name} ({names}) VALUES ({placeholders});"

    def generate_select_query(self) -> str:
        key_name = self.get_primary_key().get_name()
        return f"SELECT * FROM {self.table_name} WHERE {key_name} = ?;"

    def generate_update_query(self) -> str:
        key_name = self.get_primary_key().get_name()
        set_clause = ", ".join(f"{column.get_name()} = ?" for column in self.columns[1:])
        return f"UPDATE {self.table_name} SET {set_clause} WHERE {key_name} = ?;"

    def generate_delete_query(self) -> str:
        key_name = self.get_primary_key().get_name()
        return f"DELETE FROM {self.table_name} WHERE {key_name} = ?;"

    # Operations

    def create_table(self, db_conn: DbUtil) -> bool:
        """
        Create the table if it does not exist.

        Returns False if the engine rejects the DDL; the reason is in
        ``db_conn.last_error``.
        """
        self._require_columns(1, "create_table")
        query = self.generate_ddl_query()
        logger.debug("create_table: %s", query)
        if not db_conn.execute(query):
            logger.error("Create Table Error: %s", db_conn.last_error)
            return False
        return True

    def _run(
        self,
        db_conn: DbUtil,
        query: str,
        bind_order: List[BaseColumn],
        operation: str,
        self_commit: bool,
    ) -> bool:
        """Prepare ``query``, bind ``bind_order`` at 1..n, step once and finalize."""
        logger.debug("%s: %s", operation, query)
        db_conn.last_error = None
        try:
            with db_conn.prepare(query) as statement:
                for index, column in enumerate(bind_order, start=1):
                    column.bind_value(statement, index)
                success = statement.step() is StepResult.DONE
            if success and self_commit:
                db_conn.commit()
            return success
        except ENGINE_ERRORS as error:
            db_conn.last_error = str(error)
            logger.error("%s Error: %s", operation.capitalize(), db_conn.last_error)
            db_conn.rollback()
            return False

    def save(self, db_conn: DbUtil, self_commit: bool = True) -> bool:
        """Insert the current values as a new row. Returns True when the INSERT completed."""
        self._require_columns(1, "save")
        return self._run(
            db_conn, self.generate_insert_query(), self.columns, "save", self_commit
        )

    def _load_row(self, statement: Statement) -> None:
        """Load every column from the current row; on failure restore the previous values."""
        previous = [column.get_value() for column in self.columns]
        try:
            # SELECT * returns columns in table-definition order
            for index, column in enumerate(self.columns):
                column.load_value(statement, index)
        except Exception:
            for column, value in zip(self.columns, previous):
                column.set_value(value)
            raise

    def find(self, db_conn: DbUtil, key: int) -> bool:
        """
        Load the row whose primary key equals ``key`` into this instance.

        Returns True if a row was found and loaded. On no match (or an engine
        error) returns False and leaves every column value untouched.
        """
        if isinstance(key, bool) or not isinstance(key, int):
            raise ModelConfigurationError(
                f"find on {self.table_name} needs an integer key, got {type(key).__name__}"
            )
        self._require_integer_key("find")
        query = self.generate_select_query()
        logger.debug("find: %s", query)
        db_conn.last_error = None
        try:
            with db_conn.prepare(query) as statement:
                statement.bind_int(1, key)
                if statement.step() is not StepResult.ROW:
                    return False
                self._load_row(statement)
                return True
        except ENGINE_ERRORS as error:
            db_conn.last_error = str(error)
            logger.error("Find Error: %s", db_conn.last_error)
            db_conn.rollback()
            return False

    def update(self, db_conn: DbUtil, self_commit: bool = True) -> bool:
        """
        Write every non-key column to the row identified by the primary key.

        Returns True when the UPDATE completed, even if no row matched.
        """
        self._require_columns(2, "update")
        key_column = self._require_integer_key("update")
        return self._run(
            db_conn,
            self.generate_update_query(),
            self.columns[1:] + [key_column],
            "update",
            self_commit,
        )

    def remove(self, db_conn: DbUtil, self_commit: bool = True) -> bool:
        """
        Delete the row identified by the primary key.

        Returns True when the DELETE completed, even if no row matched.
        """
        key_column = self._require_integer_key("remove")
        return self._run(
            db_conn, self.generate_delete_query(), [key_column], "remove", self_commit
        )

    def select_all(
        self, db_conn: DbUtil, as_pd: bool = False
    ) -> Union[List[Dict[str, Any]], pd.DataFrame]:
        """Return every row of the table as dicts, or as a DataFrame if ``as_pd``."""
        query = f"SELECT * FROM {self.table_name};"
        return db_conn.execute_query(query, as_pd=as_pd, get_column_names=not as_pd)
