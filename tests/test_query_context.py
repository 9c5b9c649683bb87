"""Tests for natural-language query context building."""

import pytest

from dataprep_suite.schemas.data_sources import DataSourceCreate
from dataprep_suite.services.data_sources import DataSourceService
from dataprep_suite.services.query_context import (
    TRUNCATION_MARKER,
    QueryContextService,
    analyze_source_pair,
    build_context_prompt,
    extract_keywords,
    is_id_like,
    relevance_score,
)


@pytest.fixture
def sources(db, storage):
    return DataSourceService(db, storage)


@pytest.fixture
def service(db):
    return QueryContextService(db)


def add_source(sources, name, records, **extra):
    return sources.create(DataSourceCreate(name=name, type="json", records=records, **extra))


@pytest.fixture
def shop_tables(sources):
    source = sources.create(DataSourceCreate(name="Shop DB", type="database"))
    sources.replace_tables(
        source,
        [
            {
                "table_name": "customers",
                "record_count": 2,
                "schema_info": [{"name": "id", "type": "INTEGER"}, {"name": "name", "type": "TEXT"}],
                "metadata": {"primary_key": ["id"], "foreign_keys": []},
            },
            {
                "table_name": "orders",
                "record_count": 3,
                "schema_info": [
                    {"name": "id", "type": "INTEGER"},
                    {"name": "customer_id", "type": "INTEGER"},
                    {"name": "total", "type": "NUMERIC"},
                ],
                "metadata": {
                    "primary_key": ["id"],
                    "foreign_keys": [
                        {"column": "customer_id", "referenced_table": "customers", "referenced_column": "id"}
                    ],
                },
            },
        ],
    )
    return source


class TestHelpers:
    def test_extract_keywords(self):
        assert extract_keywords("What is the average order total per customer?") == [
            "order", "total", "per", "customer",
        ]
        assert extract_keywords(None) == []
        assert extract_keywords("Show me!") == []

    @pytest.mark.parametrize(
        "name, expected",
        [("id", True), ("Customer_ID", True), ("order_id", True), ("idea", False), ("paid", False)],
    )
    def test_is_id_like(self, name, expected):
        assert is_id_like(name) is expected

    def test_source_pair_strength(self):
        a = {"id": "a", "name": "A"}
        b = {"id": "b", "name": "B"}

        strong = analyze_source_pair(a, b, {"a": {"customer_id", "order_id", "total"}, "b": {"customer_id", "order_id"}})
        assert strong["relationship_type"] == "strong"
        assert strong["allow_join"] is True
        assert strong["reason"] == "2 shared fields (2 identifiers): customer_id, order_id"

        many = analyze_source_pair(a, b, {"a": {"city", "state", "zip"}, "b": {"city", "state", "zip"}})
        assert many["relationship_type"] == "strong"

        weak = analyze_source_pair(a, b, {"a": {"customer_id", "name"}, "b": {"customer_id"}})
        assert weak["relationship_type"] == "weak"
        assert weak["allow_join"] is False

        none = analyze_source_pair(a, b, {"a": {"x"}})
        assert none["relationship_type"] == "unrelated"
        assert none["reason"] == "No shared fields"

    def test_relevance_score(self):
        source = {
            "name": "Orders",
            "ai_keywords": ["order", "sales"],
            "summary": "All orders placed online",
            "record_count": 500,
        }
        assert relevance_score(source, "orders by region") == 5.5
        assert relevance_score({"name": "Weather"}, "orders by region") == 0

    def test_prompt_sections(self):
        context = {
            "data_sources": [{"name": "Shop", "type": "database", "record_count": 5, "summary": "Online shop"}],
            "tables": [
                {
                    "data_source_name": "Shop",
                    "table_name": "orders",
                    "record_count": 3,
                    "columns": [{"name": f"c{i}", "type": "TEXT"} for i in range(7)],
                }
            ],
            "fields": [{"field_name": "c0", "table_name": "orders", "data_type": "TEXT"}],
            "relationships": [
                {"source_table": "orders", "source_field": "customer_id", "target_table": "customers", "target_field": "id"}
            ],
        }
        prompt = build_context_prompt(context).splitlines()
        assert prompt[0] == "Data catalog context:"
        assert "- Shop (database): 5 records" in prompt
        assert "  Summary: Online shop" in prompt
        assert "  Columns: c0 (TEXT), c1 (TEXT), c2 (TEXT), c3 (TEXT), c4 (TEXT) ... +2 more" in prompt
        assert "- c0 [orders]: TEXT" in prompt
        assert "- orders.customer_id -> customers.id" in prompt

    def test_prompt_truncation(self):
        context = {"data_sources": [{"name": "Big", "type": "json", "summary": "x" * 500}]}
        prompt = build_context_prompt(context, max_tokens=10)
        assert prompt.endswith(TRUNCATION_MARKER)
        assert len(prompt) == 40 + len(TRUNCATION_MARKER)


class TestQueryContextService:
    def test_full_context_reads_table_metadata(self, service, shop_tables):
        context = service.gather_full_context()

        orders = next(t for t in context["tables"] if t["table_name"] == "orders")
        customer_id = orders["columns"][1]
        assert customer_id["is_foreign_key"] is True
        assert customer_id["references"] == {"table": "customers", "column": "id"}
        assert orders["columns"][0]["is_primary_key"] is True

        assert context["relationships"] == [
            {
                "source_table": "orders",
                "source_field": "customer_id",
                "target_table": "customers",
                "target_field": "id",
                "type": "foreign_key",
                "data_source_id": shop_tables.id,
            }
        ]
        assert {f["description"] for f in context["fields"]} == {"Field in customers", "Field in orders"}

    def test_relevant_context_matches_by_name_and_summary(self, service, sources):
        add_source(sources, "Customer Orders", [{"customer_id": 1, "total": 5}])
        add_source(sources, "Weather", [{"city": "Oslo"}], user_summary="Daily temperature readings")

        context = service.get_relevant_context("temperature trends")
        assert [s["name"] for s in context["data_sources"]] == ["Weather"]

        context = service.get_relevant_context("nothing matches here")
        assert len(context["data_sources"]) == 2

    def test_strongly_related_sources_are_recommended_together(self, service, sources):
        orders = add_source(sources, "Customer Orders", [{"customer_id": 1, "order_id": 7, "total": 5}])
        profiles = add_source(sources, "Customer Profiles", [{"customer_id": 1, "order_id": 7, "email": "a@b.c"}])
        add_source(sources, "Weather", [{"city": "Oslo"}])

        result = service.ask("customer spend")
        assert result["keywords"] == ["customer", "spend"]
        assert set(result["recommended_sources"]) == {orders.id, profiles.id}
        assert result["relationship_analysis"]["allowed_pairs"][0]["reason"].startswith("2 shared fields")
        assert "Weather" not in result["prompt"]

    def test_weak_relationships_fall_back_to_relevance(self, service, sources, db):
        east = add_source(sources, "Sales East", [{"region": "e", "amount": 1}])
        add_source(sources, "Sales North", [{"region": "n", "units": 2}])
        west = add_source(sources, "Sales West", [{"region": "w", "revenue": 3}])
        west.ai_keywords = ["amount"]
        db.commit()

        result = service.ask("sales amount")
        analysis = result["relationship_analysis"]
        assert analysis["allowed_pairs"] == []
        assert analysis["suggestions"] == ["Sources share no strong keys; query them separately"]
        assert result["recommended_sources"] == [west.id, east.id]
        assert [s["name"] for s in result["context"]["data_sources"]] == ["Sales East", "Sales West"]

    def test_ask_respects_token_limit(self, service, sources):
        add_source(sources, "Notes", [{"text": "a"}], user_summary="notes " * 100)
        result = service.ask("notes", max_tokens=20)
        assert result["prompt"].endswith(TRUNCATION_MARKER)


class TestQueryAPI:
    def test_ask(self, client, shop_tables):
        response = client.post("/api/query/ask", json={"query": "Which orders belong to each customer?"})
        assert response.status_code == 200
        body = response.json()
        assert body["keywords"] == ["orders", "belong", "each", "customer"]
        assert body["recommended_sources"] == [shop_tables.id]
        assert "## Relationships" in body["prompt"]

    def test_keywords_and_context(self, client, shop_tables):
        assert client.get("/api/query/keywords", params={"q": "Show the revenue"}).json() == {
            "query": "Show the revenue",
            "keywords": ["revenue"],
        }
        full = client.get("/api/query/context", params={"full": True}).json()
        assert len(full["tables"]) == 2
        assert set(full) == {"data_sources", "tables", "fields", "patterns", "annotations", "relationships"}

    def test_validation(self, client):
        assert client.post("/api/query/ask", json={"query": ""}).status_code == 422
