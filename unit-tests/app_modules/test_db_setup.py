# Test the schema bootstrap, the MySQL connection is mocked

import sys
import os
from unittest.mock import MagicMock, PropertyMock, patch
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'app'))
import database
import db_setup

def fake_connection(databases, tables):
    cursor = MagicMock()
    cursor.fetchall.side_effect = [[(name,) for name in databases], [(name,) for name in tables]]
    connection = MagicMock()
    connection.cursor.return_value = cursor
    return connection, cursor

def executed(cursor):
    return [c.args[0] for c in cursor.execute.call_args_list]

def test_check_db_missing_database():
    connection, cursor = fake_connection(["mysql"], [])
    with patch("database.get_connection", return_value=connection):
        assert db_setup.check_db_is_setup() is False
    assert executed(cursor) == ["SHOW DATABASES"]

def test_check_db_missing_table():
    connection, _ = fake_connection([database.MYSQL_DATABASE], db_setup.REQUIRED_TABLES[:-1])
    with patch("database.get_connection", return_value=connection):
        assert db_setup.check_db_is_setup() is False

def test_check_db_complete():
    connection, _ = fake_connection([database.MYSQL_DATABASE], db_setup.REQUIRED_TABLES + ["extra"])
    with patch("database.get_connection", return_value=connection):
        assert db_setup.check_db_is_setup() is True

def test_create_db_and_scheme_runs_every_statement():
    connection, cursor = fake_connection([], [])
    with patch("database.get_connection", return_value=connection):
        db_setup.create_db_and_scheme()
    statements = executed(cursor)
    assert statements[0] == f"CREATE DATABASE IF NOT EXISTS {database.MYSQL_DATABASE}"
    assert statements[2:] == db_setup.SCHEMA_STATEMENTS
    connection.commit.assert_called_once()

def test_setup_database():
    with patch("db_setup.check_db_is_setup", return_value=False), patch("db_setup.create_db_and_scheme") as create:
        assert db_setup.setup_database() is True
        create.assert_called_once()
    with patch("db_setup.check_db_is_setup", return_value=True), patch("db_setup.create_db_and_scheme") as create:
        assert db_setup.setup_database() is False
        create.assert_not_called()

def test_get_cursor_selects_schema_once_per_connection(monkeypatch):
    monkeypatch.setattr(database, "_connection", None)
    monkeypatch.setattr(database, "_schema_selected", False)
    connection = MagicMock()
    connection.is_connected.return_value = True
    schema = PropertyMock()
    type(connection).database = schema

    with patch("database.mysql.connector.connect", return_value=connection) as connect:
        first = database.get_cursor(dictionary=True)
        database.get_cursor()
    connect.assert_called_once()
    schema.assert_called_once_with(database.MYSQL_DATABASE)
    connection.cursor.assert_any_call(dictionary=True)
    first.execute.assert_not_called()

    # a new connection selects the schema again
    connection.is_connected.return_value = False
    with patch("database.mysql.connector.connect", return_value=connection):
        database.get_cursor()
    assert schema.call_count == 2
