"""Tests for the SQLAlchemy database connector."""

from datetime import date
from decimal import Decimal

import pytest

from dataprep_suite.connectors.sqlalchemy_connector import SQLAlchemyConnector, _plain, build_url
from dataprep_suite.errors import ConnectorError, ValidationFailedError


@pytest.fixture
def connector(shop_db):
    connector = SQLAlchemyConnector(build_url("sqlite", shop_db), "sqlite")
    yield connector
    connector.disconnect()


class TestBuildUrl:
    def test_postgres_defaults(self):
        url = build_url("postgresql", "crm", host="db.local", username="app", password="pw")
        assert url.drivername == "postgresql+psycopg"
        assert url.port == 5432
        assert url.host == "db.local"
        assert url.database == "crm"

    def test_ssl_query(self):
        assert build_url("postgresql", "crm", host="h", ssl=True).query == {"sslmode": "require"}
        assert build_url("mysql", "crm", host="h", ssl=True).query == {"ssl": "true"}
        assert build_url("mysql", "crm", host="h").port == 3306

    def test_sqlite(self):
        assert build_url("sqlite", "/tmp/x.db").database == "/tmp/x.db"

    def test_unsupported(self):
        with pytest.raises(ValidationFailedError):
            build_url("oracle", "crm")


def test_plain_values():
    assert _plain(Decimal("3.00")) == 3
    assert _plain(Decimal("2.5")) == 2.5
    assert _plain(date(2024, 2, 1)) == "2024-02-01"
    assert _plain(b"\x01\xff") == "01ff"
    assert _plain("text") == "text"


class TestSQLAlchemyConnector:
    def test_connection(self, connector):
        assert connector.test_connection() is True

    def test_unreachable_database(self, tmp_path):
        missing = tmp_path / "missing" / "nested" / "x.db"
        connector = SQLAlchemyConnector(build_url("sqlite", str(missing)), "sqlite")
        assert connector.test_connection() is False

    def test_schema(self, connector):
        schema = connector.get_database_schema()
        assert [t.name for t in schema.tables] == ["customers", "order_items", "orders"]

        orders = schema.get_table("orders")
        assert orders.primary_key == ["id"]
        assert orders.row_count == 3
        assert [c.name for c in orders.columns] == ["id", "customer_id", "total"]
        assert orders.columns[0].is_primary_key
        fk = orders.foreign_keys[0]
        assert (fk.column_name, fk.referenced_table, fk.referenced_column) == ("customer_id", "customers", "id")
        assert schema.get_table("missing") is None

    def test_schema_without_counts(self, connector):
        schema = connector.get_database_schema(include_row_counts=False)
        assert schema.to_dict()["tables"][0]["row_count"] is None

    def test_execute_query(self, connector):
        result = connector.execute_query("SELECT name FROM customers WHERE id = :id", {"id": 2})
        assert result.columns == ["name"]
        assert result.rows == [["Bob"]]
        assert result.records() == [{"name": "Bob"}]
        assert result.execution_time_ms is not None

    def test_query_error(self, connector):
        with pytest.raises(ConnectorError) as exc:
            connector.execute_query("SELECT * FROM missing")
        assert exc.value.operation == "execute_query"
        assert exc.value.message.startswith("execute_query failed:")
        assert exc.value.status_code == 502

    def test_table_helpers(self, connector):
        assert connector.get_table_count("orders") == 3
        assert [r["id"] for r in connector.get_table_data("orders", limit=2, offset=1)] == [11, 12]
        assert len(connector.get_related_rows("orders", "customer_id", 1)) == 2
        assert len(connector.get_related_rows("orders", "customer_id", 1, limit=1)) == 1

    def test_escape_identifier(self, connector):
        assert connector.escape_identifier('we"ird') == '"we""ird"'
        assert SQLAlchemyConnector("mysql+pymysql://u@h/db", "mysql").escape_identifier("a`b") == "`a``b`"

    def test_context_manager_disposes(self, shop_db):
        with SQLAlchemyConnector(build_url("sqlite", shop_db), "sqlite") as connector:
            assert connector.test_connection()
        assert connector._engine is None
