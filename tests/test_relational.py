"""Tests for relational import and saved database connections."""

import pytest
from pydantic import ValidationError

from dataprep_suite.connectors.sqlalchemy_connector import SQLAlchemyConnector, build_url
from dataprep_suite.db.models import MASKED
from dataprep_suite.errors import ConflictError, ValidationFailedError
from dataprep_suite.schemas.connections import (
    DatabaseConnectionCreate,
    DatabaseConnectionUpdate,
    RelationalImportRequest,
)
from dataprep_suite.services.database_connections import DatabaseConnectionService, check_read_only
from dataprep_suite.services.relational import (
    MANY_TO_ONE,
    ONE_TO_MANY,
    RelationalDataService,
    RelationalImportOptions,
)


@pytest.fixture
def relational(shop_db):
    connector = SQLAlchemyConnector(build_url("sqlite", shop_db), "sqlite")
    yield RelationalDataService(connector)
    connector.disconnect()


@pytest.fixture
def service(db, storage):
    return DatabaseConnectionService(db, storage)


@pytest.fixture
def connection(service, shop_db):
    return service.create(DatabaseConnectionCreate(name="Shop", type="sqlite", database=shop_db))


def by_id(records):
    return sorted(records, key=lambda r: r["id"])


class TestRelationalDataService:
    def test_analyze_schema(self, relational):
        schema = relational.analyze_schema(RelationalImportOptions(primary_table="customers"))
        pairs = {(r.from_table, r.to_table, r.relationship_type) for r in schema.relationships}
        assert pairs == {
            ("orders", "customers", MANY_TO_ONE),
            ("customers", "orders", ONE_TO_MANY),
            ("order_items", "orders", MANY_TO_ONE),
            ("orders", "order_items", ONE_TO_MANY),
        }

    def test_forward_only(self, relational):
        schema = relational.analyze_schema(
            RelationalImportOptions(primary_table="orders", follow_reverse=False)
        )
        assert {r.relationship_type for r in schema.relationships} == {MANY_TO_ONE}

    def test_excluded_tables_drop_relationships(self, relational):
        schema = relational.analyze_schema(
            RelationalImportOptions(primary_table="customers", excluded_tables=["orders"])
        )
        assert sorted(schema.tables) == ["customers", "order_items"]
        assert schema.relationships == []

    def test_discover_related_tables(self, relational):
        schema = relational.analyze_schema(RelationalImportOptions(primary_table="customers"))
        assert relational.discover_related_tables(schema, "customers") == [
            {"table": "customers", "depth": 0},
            {"table": "orders", "depth": 1},
            {"table": "order_items", "depth": 2},
        ]
        assert relational.discover_related_tables(schema, "customers", max_depth=1) == [
            {"table": "customers", "depth": 0},
            {"table": "orders", "depth": 1},
        ]
        with pytest.raises(ValidationFailedError):
            relational.discover_related_tables(schema, "missing")

    def test_import_children_with_back_references(self, relational):
        records = by_id(relational.import_relational_data(RelationalImportOptions(primary_table="customers")))

        alice = records[0]
        assert alice["name"] == "Alice"
        orders = by_id(alice["_orders_list"])
        assert [o["id"] for o in orders] == [10, 11]
        # the parent customer is already on this branch
        assert orders[0]["_customers"] == {"id": 1, "_ref": "customers"}
        # child rows do not expand their own children
        assert "_order_items_list" not in orders[0]
        assert "_orders_count" not in alice

    def test_import_parent_chain(self, relational):
        records = by_id(relational.import_relational_data(RelationalImportOptions(primary_table="order_items")))

        item = records[0]
        order = item["_orders"]
        assert order["id"] == 10
        assert order["_customers"]["name"] == "Alice"
        assert by_id(order["_order_items_list"]) == [
            {"id": 100, "_ref": "order_items"},
            {"id": 101, "_ref": "order_items"},
        ]

    def test_import_depth_limit(self, relational):
        records = relational.import_relational_data(
            RelationalImportOptions(primary_table="customers", max_depth=1)
        )
        alice = by_id(records)[0]
        assert by_id(alice["_orders_list"]) == [
            {"id": 10, "_ref": "orders"},
            {"id": 11, "_ref": "orders"},
        ]

    def test_import_depth_zero_keeps_primary_columns(self, relational):
        records = relational.import_relational_data(
            RelationalImportOptions(primary_table="customers", max_depth=0)
        )
        assert by_id(records) == [
            {"id": 1, "name": "Alice", "email": "alice@example.com"},
            {"id": 2, "name": "Bob", "email": "bob@example.com"},
        ]

    def test_import_max_records(self, relational):
        records = relational.import_relational_data(
            RelationalImportOptions(primary_table="orders", max_records=2)
        )
        assert len(records) == 2

    def test_import_unknown_table(self, relational):
        with pytest.raises(ValidationFailedError) as exc:
            relational.import_relational_data(RelationalImportOptions(primary_table="missing"))
        assert exc.value.details["available_tables"] == ["customers", "order_items", "orders"]

    def test_diagram(self, relational):
        schema = relational.analyze_schema(RelationalImportOptions(primary_table="customers"))
        diagram = relational.get_relationship_diagram(schema).splitlines()
        assert diagram[0] == "Primary Table: customers"
        assert "  orders.customer_id --> customers.id" in diagram
        assert "  customers.id -->> orders.customer_id" in diagram


class TestCheckReadOnly:
    def test_select_and_with(self):
        assert check_read_only("SELECT 1;") == "SELECT 1"
        assert check_read_only("-- note\nWITH x AS (SELECT 1) SELECT * FROM x") == (
            "WITH x AS (SELECT 1) SELECT * FROM x"
        )

    @pytest.mark.parametrize(
        "sql",
        ["", "  -- only a comment", "DELETE FROM customers", "SELECT 1; DROP TABLE customers", "/* x */ UPDATE t SET a = 1"],
    )
    def test_rejected(self, sql):
        with pytest.raises(ValidationFailedError):
            check_read_only(sql)


class TestDatabaseConnectionService:
    def test_host_required_for_servers(self):
        with pytest.raises(ValidationError):
            DatabaseConnectionCreate(name="pg", type="postgresql", database="crm")

    def test_duplicate_name(self, service, connection, shop_db):
        with pytest.raises(ConflictError):
            service.create(DatabaseConnectionCreate(name="Shop", type="sqlite", database=shop_db))

    def test_password_masking(self, service):
        created = service.create(
            DatabaseConnectionCreate(name="pg", type="postgresql", host="h", database="crm", password="s3cret")
        )
        assert created.to_dict()["password"] == MASKED
        updated = service.update(created.id, DatabaseConnectionUpdate(password=MASKED, username="app"))
        assert updated.password == "s3cret"
        assert updated.username == "app"

    def test_connection_test(self, service, connection, tmp_path):
        result = service.test(connection.id)
        assert result == {"success": True, "message": "Connection successful", "status": "active"}
        assert service.get_or_raise(connection.id).last_tested_at is not None

        broken = service.create(
            DatabaseConnectionCreate(
                name="Broken", type="sqlite", database=str(tmp_path / "missing" / "x.db")
            )
        )
        result = service.test(broken.id)
        assert result["success"] is False
        assert service.get_or_raise(broken.id).status == "error"

    def test_query_params_and_truncation(self, service, connection):
        result = service.query(connection.id, "SELECT name FROM customers WHERE id = :id", {"id": 1})
        assert result["rows"] == [["Alice"]]
        assert result["truncated"] is False

        result = service.query(connection.id, "SELECT id FROM orders ORDER BY id", limit=2)
        assert result["rows"] == [[10], [11]]
        assert result["row_count"] == 2
        assert result["truncated"] is True

    def test_query_rejects_writes(self, service, connection):
        with pytest.raises(ValidationFailedError):
            service.query(connection.id, "DELETE FROM customers")

    def test_relationships(self, service, connection):
        body = service.relationships(connection.id, primary_table="orders", max_depth=1)
        assert {t["table"] for t in body["related_tables"]} == {"orders", "customers", "order_items"}
        assert body["diagram"].startswith("Primary Table: orders")
        assert "related_tables" not in service.relationships(connection.id)

    def test_import_relational(self, service, connection):
        source = service.import_relational(
            connection.id, RelationalImportRequest(primary_table="customers")
        )
        assert source.type == "database"
        assert source.name == "Shop - customers"
        assert source.record_count == 2
        assert source.configuration["relational"] is True

        tables = service.sources.list_tables(source.id)
        assert [(t.table_name, t.record_count, t.meta["depth"]) for t in tables] == [
            ("customers", 2, 0),
            ("orders", 3, 1),
            ("order_items", 3, 2),
        ]
        assert tables[1].meta["foreign_keys"] == [
            {"column": "customer_id", "referenced_table": "customers", "referenced_column": "id"}
        ]


class TestDatabaseConnectionAPI:
    def test_flow(self, client, shop_db):
        response = client.post(
            "/api/database-connections", json={"name": "Shop", "type": "sqlite", "database": shop_db}
        )
        assert response.status_code == 201
        connection_id = response.json()["id"]

        assert client.post(f"/api/database-connections/{connection_id}/test").json()["success"] is True
        schema = client.get(f"/api/database-connections/{connection_id}/schema").json()
        assert [t["name"] for t in schema["tables"]] == ["customers", "order_items", "orders"]

        response = client.post(
            f"/api/database-connections/{connection_id}/query", json={"sql": "SELECT COUNT(*) AS n FROM orders"}
        )
        assert response.json()["rows"] == [[3]]

        response = client.post(
            f"/api/database-connections/{connection_id}/query", json={"sql": "DROP TABLE orders"}
        )
        assert response.status_code == 422
        assert response.json()["detail"]["details"] == {"statement_type": "DROP"}

        response = client.post(
            f"/api/database-connections/{connection_id}/import",
            json={"primary_table": "orders", "data_source_name": "Orders"},
        )
        assert response.status_code == 201
        source = response.json()
        assert source["record_count"] == 3
        tables = client.get(f"/api/data-sources/{source['id']}/tables").json()
        assert [t["table_name"] for t in tables][0] == "orders"

    def test_duplicate_and_missing(self, client, shop_db):
        body = {"name": "Shop", "type": "sqlite", "database": shop_db}
        client.post("/api/database-connections", json=body)
        response = client.post("/api/database-connections", json=body)
        assert response.status_code == 409
        assert response.json()["detail"] == "Database connection 'Shop' already exists"
        assert client.get("/api/database-connections/missing").status_code == 404
