"""
miniorm: a minimal single-table ORM with typed columns and explicit DbUtil connections.

Example::

    from miniorm import Column, DbUtil, Model

    class User(Model):
        def __init__(self):
            self.id = Column("id", int, "PRIMARY KEY")
            self.name = Column("name", str, "NOT NULL")
            self.age = Column("age", int)
            super().__init__("users", [self.id, self.name, self.age])

    db = DbUtil({"database": "example.db"})
    db.connect()
    user = User()
    user.create_table(db)
    user.id.set_value(1)
    user.name.set_value("Alice")
    user.save(db)
"""

__version__ = "0.1.0"

from miniorm.column import (
    BaseColumn,
    BlobColumn,
    Column,
    ColumnMetadata,
    FloatColumn,
    IntegerColumn,
    TextColumn,
    get_sql_type,
)
from miniorm.db_util import DbUtil
from miniorm.exceptions import (
    ENGINE_ERRORS,
    MiniOrmError,
    ModelConfigurationError,
    StatementError,
)
from miniorm.model import Model
from miniorm.statement import Statement, StepResult

__all__ = [
    "DbUtil",
    "Model",
    "Column",
    "BaseColumn",
    "IntegerColumn",
    "FloatColumn",
    "TextColumn",
    "BlobColumn",
    "ColumnMetadata",
    "get_sql_type",
    "Statement",
    "StepResult",
    "MiniOrmError",
    "ModelConfigurationError",
    "StatementError",
    "ENGINE_ERRORS",
    "__version__",
]
