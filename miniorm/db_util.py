"""
SQL engine connection and statement utilities.

This module provides :class:`DbUtil`, the engine handle every model operation
receives. It manages one connection (SQLite through :mod:`sqlite3` or
PostgreSQL through psycopg2), runs non-parameterized statements, prepares
:class:`~miniorm.statement.Statement` objects and executes ad-hoc queries.
Connection parameters can be passed explicitly or read from environment
variables (e.g. ``DATABASE_DRIVER``, ``DATABASE_NAME``).
"""

import logging
import os
import sqlite3
from contextlib import closing
from typing import Dict, Optional, Union

import pandas as pd
import psycopg2 as psycopg

from miniorm.exceptions import ENGINE_ERRORS
from miniorm.statement import Statement

logger = logging.getLogger("miniorm.db_util")

SQLITE = "sqlite"
POSTGRES = "postgres"
SUPPORTED_DRIVERS = (SQLITE, POSTGRES)


class DbUtil:
    """
    Engine handle: one open connection plus statement helpers.

    Parameters not provided in ``params`` fall back to environment variables:
    ``DATABASE_DRIVER`` (``sqlite`` by default, or ``postgres``),
    ``DATABASE_NAME``, ``DATABASE_HOST``, ``DATABASE_USER``, ``DATABASE_PASS``,
    ``DATABASE_PORT``. A SQLite database without a name is opened in memory.

    All SQL handed to :meth:`prepare` and :meth:`execute_query` uses ``?``
    placeholders; they are converted for drivers with another parameter style.
    The handle is not thread-safe; callers serialize access to it.
    """

    def __init__(self, params: Dict = None):
        """
        Build connection params from ``params`` and env (e.g. DATABASE_*).
        """
        params = params or {}
        self.driver = (
            params.get("driver") or os.getenv("DATABASE_DRIVER") or SQLITE
        ).lower()
        if self.driver not in SUPPORTED_DRIVERS:
            raise ValueError(f"Unsupported database driver: {self.driver}")

        if self.driver == SQLITE:
            self.connection_params = {
                "database": params.get("database")
                or os.getenv("DATABASE_NAME")
                or ":memory:",
            }
        else:
            self.connection_params = {
                "host": params.get("host") or os.getenv("DATABASE_HOST"),
                "database": params.get("database") or os.getenv("DATABASE_NAME"),
                "user": params.get("user") or os.getenv("DATABASE_USER"),
                "password": params.get("password") or os.getenv("DATABASE_PASS"),
                "port": params.get("port") or os.getenv("DATABASE_PORT"),
            }
        self.connection = None
        self.last_error: Optional[str] = None

    def __enter__(self) -> "DbUtil":
        if not self.connection:
            self.connect()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.disconnect(do_commit=exc_type is None)

    def connect(self) -> None:
        """
        Open a connection for the configured driver. Raises on failure.
        """
        try:
            if self.driver == SQLITE:
                self.connection = sqlite3.connect(self.connection_params["database"])
            else:
                self.connection = psycopg.connect(**self.connection_params)
        except Exception as error:
            logger.error("DB: Error creating connection", exc_info=True)
            raise RuntimeError("Failed to create DB Connection") from error

    def disconnect(self, do_commit: bool = False) -> None:
        """
        Close the connection. If ``do_commit`` is True, commit before closing.
        """
        if not self.connection:
            return
        try:
            if do_commit:
                self.commit()
            self.connection.close()
        except Exception:
            logger.warning("DB: Error closing connection", exc_info=True)
        finally:
            self.connection = None

    def commit(self) -> None:
        """
        Commit the current transaction. Raises if there is no connection or commit fails.
        """
        if not self.connection:
            raise RuntimeError("No connection found to commit")
        try:
            self.connection.commit()
        except Exception:
            logger.error("DB: Error committing", exc_info=True)
            raise

    def rollback(self) -> None:
        """Roll back the current transaction, if a connection is open."""
        if self.connection:
            self.connection.rollback()

    def adapt_query(self, query: str) -> str:
        """Convert ``?`` placeholders to the driver's parameter style."""
        if self.driver == POSTGRES:
            return query.replace("?", "%s")
        return query

    def execute(self, query: str) -> bool:
        """
        Run a single non-parameterized statement and commit it.

        Returns True on success. On failure the engine's error text is logged
        and kept in :attr:`last_error`, the transaction is rolled back and
        False is returned.
        """
        if not self.connection:
            self.connect()

        self.last_error = None
        try:
            with closing(self.connection.cursor()) as cursor:
                cursor.execute(query)
            self.connection.commit()
            return True
        except ENGINE_ERRORS as error:
            self.last_error = str(error)
            logger.error("DB: Error executing statement: %s", self.last_error)
            self.rollback()
            return False

    def prepare(self, query: str) -> Statement:
        """
        Prepare ``query`` (``?`` placeholders) on a fresh cursor.

        The caller owns the returned statement and must finalize it, usually
        with ``with db.prepare(sql) as statement:``.
        """
        if not self.connection:
            self.connect()
        return Statement(self.connection.cursor(), query, self.adapt_query(query))

    def execute_query(
        self,
        query: str,
        as_pd: bool = False,
        data: tuple = None,
        commit: bool = False,
        no_fetch: bool = False,
        get_column_names: bool = False,
        hide_query_execution_log: bool = True,
    ) -> Union[None, list, pd.DataFrame]:
        """
        Execute a query with optional parameters and return format options.

        Args:
            query: SQL string; use ``?`` placeholders when passing ``data``.
            data: Tuple of values for placeholders (parameterized execution).
            commit: If True, commit after execution.
            no_fetch: If True, do not fetch results (e.g. INSERT/UPDATE); returns None.
            as_pd: If True, return result as a :class:`pandas.DataFrame`.
            get_column_names: If True, return list of dicts (column name -> value).
            hide_query_execution_log: If False, log the executed query.

        Returns:
            Rows as list, list of dicts, or DataFrame per options; None if no_fetch.
        Raises:
            Exception: On execution or commit failure.
        """
        if not self.connection:
            self.connect()

        adapted = self.adapt_query(query)
        try:
            with closing(self.connection.cursor()) as cursor:
                if data is not None:
                    cursor.execute(adapted, data)
                else:
                    cursor.execute(adapted)

                if not hide_query_execution_log:
                    logger.info("Query executed: %s", adapted)

                if commit:
                    self.commit()

                if no_fetch:
                    return None

                result = cursor.fetchall()
                column_names = [desc[0] for desc in cursor.description or []]

                if as_pd:
                    return pd.DataFrame(result, columns=column_names)

                if get_column_names:
                    return [dict(zip(column_names, row)) for row in result]

                return result

        except Exception:
            logger.error("DB: Error executing query", exc_info=True)
            raise
