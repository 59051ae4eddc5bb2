"""
Exception types raised by miniorm.

Engine failures are not wrapped: model operations catch the driver's own
exception classes (grouped in :data:`ENGINE_ERRORS`) and report them as a
``False`` result plus :attr:`DbUtil.last_error`.
"""

import sqlite3

import psycopg2


class MiniOrmError(Exception):
    """Base class for all miniorm errors."""


class ModelConfigurationError(MiniOrmError, ValueError):
    """A model's column layout cannot support the requested operation."""


class StatementError(MiniOrmError):
    """A prepared statement was used out of order (bad index, no row, finalized)."""


# For except clauses only: a tuple of driver base classes, not an exception type.
ENGINE_ERRORS = (
    sqlite3.Error,
    psycopg2.Error,
)
