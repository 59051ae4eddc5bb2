"""Tests for miniorm.statement."""

import sqlite3
from unittest.mock import MagicMock

import pytest

from miniorm.exceptions import StatementError
from miniorm.statement import Statement, StepResult, to_float, to_int


@pytest.fixture
def connection():
    conn = sqlite3.connect(":memory:")
    conn.execute("CREATE TABLE items (id INTEGER, label TEXT, price REAL, data BLOB);")
    conn.execute("INSERT INTO items VALUES (1, 'pen', 1.5, x'0102');")
    conn.execute("INSERT INTO items VALUES (2, NULL, NULL, NULL);")
    conn.commit()
    yield conn
    conn.close()


class TestStatementBinding:
    """Tests for parameter binding."""

    def test_parameter_count(self, connection):
        """Test placeholders are counted."""
        statement = Statement(connection.cursor(), "SELECT * FROM items WHERE id = ? AND label = ?;")
        assert statement.parameter_count == 2

    def test_bind_in_order(self, connection):
        """Test bound values are sent in placeholder order."""
        statement = Statement(connection.cursor(), "SELECT ?, ?, ?, ?;")
        statement.bind_text(2, "two")
        statement.bind_int(1, 1)
        statement.bind_blob(4, bytearray(b"\x00"))
        statement.bind_double(3, 2)
        assert statement.parameters() == [1, "two", 2.0, b"\x00"]

    def test_unbound_parameters_are_null(self, connection):
        """Test unbound parameters are sent as NULL."""
        statement = Statement(connection.cursor(), "SELECT ?, ?;")
        statement.bind_int(1, 5)
        assert statement.parameters() == [5, None]

    def test_bind_null(self, connection):
        """Test bind_null clears an earlier binding."""
        statement = Statement(connection.cursor(), "SELECT ?;")
        statement.bind_int(1, 5)
        statement.bind_null(1)
        assert statement.parameters() == [None]

    @pytest.mark.parametrize("index", [0, 3])
    def test_bind_out_of_range(self, connection, index):
        """Test binding outside 1..n raises StatementError."""
        statement = Statement(connection.cursor(), "SELECT ?, ?;")
        with pytest.raises(StatementError, match="out of range"):
            statement.bind_int(index, 1)

    def test_bind_after_step(self, connection):
        """Test binding after execution raises StatementError."""
        statement = Statement(connection.cursor(), "SELECT ?;")
        statement.bind_int(1, 1)
        statement.step()
        with pytest.raises(StatementError, match="after the statement was stepped"):
            statement.bind_int(1, 2)


class TestStatementStep:
    """Tests for stepping and reading rows."""

    def test_step_row_then_done(self, connection):
        """Test one row is returned per step, then DONE."""
        with Statement(connection.cursor(), "SELECT * FROM items WHERE id = ?;") as statement:
            statement.bind_int(1, 1)
            assert statement.step() is StepResult.ROW
            assert statement.column_count() == 4
            assert statement.column_name(1) == "label"
            assert statement.column_int(0) == 1
            assert statement.column_text(1) == "pen"
            assert statement.column_double(2) == 1.5
            assert statement.column_blob(3) == b"\x01\x02"
            assert statement.step() is StepResult.DONE

    def test_step_no_match(self, connection):
        """Test a query without rows steps straight to DONE."""
        with Statement(connection.cursor(), "SELECT * FROM items WHERE id = ?;") as statement:
            statement.bind_int(1, 99)
            assert statement.step() is StepResult.DONE

    def test_null_reads(self, connection):
        """Test NULL maps to the empty value of each type."""
        with Statement(connection.cursor(), "SELECT * FROM items WHERE id = 2;") as statement:
            assert statement.step() is StepResult.ROW
            assert statement.column_text(1) == ""
            assert statement.column_double(2) == 0.0
            assert statement.column_blob(3) == b""

    def test_dml_is_done(self, connection):
        """Test DML statements step to DONE."""
        with Statement(connection.cursor(), "DELETE FROM items WHERE id = ?;") as statement:
            statement.bind_int(1, 2)
            assert statement.step() is StepResult.DONE
        assert connection.execute("SELECT COUNT(*) FROM items;").fetchone() == (1,)

    def test_read_without_row(self, connection):
        """Test reading before a row is available raises StatementError."""
        statement = Statement(connection.cursor(), "SELECT * FROM items;")
        with pytest.raises(StatementError, match="No current row"):
            statement.column_int(0)

    def test_read_column_out_of_range(self, connection):
        """Test reading past the last column raises StatementError."""
        statement = Statement(connection.cursor(), "SELECT id FROM items;")
        statement.step()
        with pytest.raises(StatementError, match="out of range"):
            statement.column_int(1)

    def test_engine_error_propagates(self, connection):
        """Test engine errors propagate from step."""
        statement = Statement(connection.cursor(), "SELECT * FROM missing;")
        with pytest.raises(sqlite3.OperationalError):
            statement.step()


class TestStatementFinalize:
    """Tests for finalize and the context manager."""

    def test_finalize_closes_cursor_once(self):
        """Test finalize is idempotent."""
        cursor = MagicMock()
        statement = Statement(cursor, "SELECT 1;")
        statement.finalize()
        statement.finalize()
        cursor.close.assert_called_once()
        assert statement.finalized

    def test_use_after_finalize(self):
        """Test a finalized statement cannot be used."""
        statement = Statement(MagicMock(), "SELECT ?;")
        statement.finalize()
        with pytest.raises(StatementError, match="already finalized"):
            statement.bind_int(1, 1)
        with pytest.raises(StatementError, match="already finalized"):
            statement.step()

    def test_context_manager_finalizes_on_error(self):
        """Test the context manager finalizes when step raises."""
        cursor = MagicMock()
        cursor.execute.side_effect = sqlite3.IntegrityError("UNIQUE constraint failed")
        with pytest.raises(sqlite3.IntegrityError):
            with Statement(cursor, "INSERT INTO t VALUES (?);") as statement:
                statement.bind_int(1, 1)
                statement.step()
        cursor.close.assert_called_once()

    def test_query_text_sent_to_cursor(self):
        """Test the adapted query text and a parameter tuple reach the cursor."""
        cursor = MagicMock()
        cursor.description = None
        statement = Statement(cursor, "DELETE FROM t WHERE id = ?;", "DELETE FROM t WHERE id = %s;")
        statement.bind_int(1, 3)
        assert statement.step() is StepResult.DONE
        cursor.execute.assert_called_once_with("DELETE FROM t WHERE id = %s;", (3,))


class TestNumericConversion:
    """Tests for SQLite-style conversion of loosely typed values."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, 0),
            (7, 7),
            (3.9, 3),
            ("42", 42),
            ("  12abc", 12),
            ("2.5e2", 250),
            ("thirty", 0),
            ("", 0),
            (b"17", 17),
        ],
    )
    def test_to_int(self, value, expected):
        """Test integer reads use the leading number and fall back to 0."""
        assert to_int(value) == expected

    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, 0.0),
            (2, 2.0),
            ("1.5kg", 1.5),
            (".25", 0.25),
            ("-3", -3.0),
            ("n/a", 0.0),
        ],
    )
    def test_to_float(self, value, expected):
        """Test real reads use the leading number and fall back to 0.0."""
        assert to_float(value) == expected

    def test_column_reads_mistyped_values(self):
        """Test typed reads of text values in numeric columns do not raise."""
        conn = sqlite3.connect(":memory:")
        with Statement(conn.cursor(), "SELECT 'thirty', 'x1.5', x'6869';") as statement:
            assert statement.step() is StepResult.ROW
            assert statement.column_int(0) == 0
            assert statement.column_double(1) == 0.0
            assert statement.column_text(2) == "hi"
        conn.close()

    def test_column_text_decodes_invalid_utf8(self):
        """Test undecodable bytes are replaced rather than raising."""
        conn = sqlite3.connect(":memory:")
        with Statement(conn.cursor(), "SELECT x'ff';") as statement:
            statement.step()
            assert statement.column_text(0) == "�"
        conn.close()
