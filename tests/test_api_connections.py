"""Tests for API connections and the httpx-backed client."""

import functools
import json

import httpx
import pytest

from dataprep_suite.connectors.api_client import ApiClient, _as_records, extract_path
from dataprep_suite.db.models import MASKED
from dataprep_suite.errors import ConnectorError
from dataprep_suite.routes import api_connections as api_routes
from dataprep_suite.schemas.connections import ApiConnectionCreate, ApiConnectionUpdate
from dataprep_suite.services.api_connections import ApiConnectionService

ENDPOINT = "https://api.example.com/customers"
CUSTOMERS = [{"id": i, "name": f"Customer {i}"} for i in range(1, 6)]


def offset_handler(request: httpx.Request) -> httpx.Response:
    offset = int(request.url.params.get("offset", 0))
    limit = int(request.url.params.get("limit", 100))
    return httpx.Response(200, json={"data": {"items": CUSTOMERS[offset:offset + limit]}})


def cursor_handler(request: httpx.Request) -> httpx.Response:
    if request.url.params.get("cursor") == "page2":
        return httpx.Response(200, json={"items": CUSTOMERS[3:], "next": None})
    return httpx.Response(200, json={"items": CUSTOMERS[:3], "next": "page2"})


def make_service(db, storage, handler) -> ApiConnectionService:
    return ApiConnectionService(db, storage, transport=httpx.MockTransport(handler))


def create(service, **overrides):
    data = {"name": "Customers API", "endpoint": ENDPOINT, "data_path": "data.items"}
    data.update(overrides)
    return service.create(ApiConnectionCreate(**data))


class TestHelpers:
    def test_extract_path(self):
        body = {"data": {"items": [{"a": 1}], "meta": None}}
        assert extract_path(body, None) is body
        assert extract_path(body, "data.items") == [{"a": 1}]
        assert extract_path(body, "data.items.0.a") == 1
        assert extract_path(body, "data.items.3") is None
        assert extract_path(body, "data.meta.next") is None

    def test_as_records(self):
        assert _as_records([{"a": 1}, 2]) == [{"a": 1}, {"value": 2}]
        assert _as_records({"a": 1}) == [{"a": 1}]
        assert _as_records(None) == []

    @pytest.mark.parametrize(
        "auth_type, auth_config, header, value",
        [
            ("api-key", {"api_key": "k1"}, "X-API-Key", "k1"),
            ("api-key", {"api_key": "k1", "header_name": "X-Token"}, "X-Token", "k1"),
            ("bearer", {"token": "t1"}, "Authorization", "Bearer t1"),
            ("basic", {"username": "u", "password": "p"}, "Authorization", "Basic dTpw"),
        ],
    )
    def test_auth_headers(self, db, auth_type, auth_config, header, value):
        connection = create(ApiConnectionService(db), auth_type=auth_type, auth_config=auth_config)
        headers = ApiClient(connection).build_headers()
        assert headers[header] == value
        assert headers["Accept"] == "application/json"


class TestApiClient:
    async def test_offset_pagination(self, db, storage):
        seen = []

        def handler(request):
            seen.append(dict(request.url.params))
            return offset_handler(request)

        service = make_service(db, storage, handler)
        connection = create(service, pagination_config={"type": "offset", "page_size": 2})

        result = await service.fetch(connection.id, max_pages=10)
        assert result["pages"] == 3
        assert result["records"] == CUSTOMERS
        assert seen[1] == {"offset": "2", "limit": "2"}
        assert service.get_or_raise(connection.id).status == "active"

    async def test_page_pagination_respects_max_pages(self, db, storage):
        def handler(request):
            page = int(request.url.params["page"])
            return httpx.Response(200, json=CUSTOMERS[(page - 1) * 2:page * 2])

        service = make_service(db, storage, handler)
        connection = create(
            service, data_path=None, pagination_config={"type": "page", "page_size": 2}
        )
        result = await service.fetch(connection.id, max_pages=2)
        assert result["pages"] == 2
        assert [r["id"] for r in result["records"]] == [1, 2, 3, 4]

    async def test_cursor_pagination(self, db, storage):
        service = make_service(db, storage, cursor_handler)
        connection = create(
            service, data_path="items", pagination_config={"type": "cursor", "cursor_path": "next"}
        )

        result = await service.fetch(connection.id, max_pages=10)
        assert result["pages"] == 2
        assert len(result["records"]) == 5
        assert result["next_cursor"] is None

        result = await service.fetch(connection.id, max_pages=1)
        assert result["next_cursor"] == "page2"

    async def test_post_body(self, db, storage):
        def handler(request):
            assert request.method == "POST"
            assert json.loads(request.content) == {"segment": "vip"}
            return httpx.Response(200, json={"data": {"items": CUSTOMERS[:1]}})

        service = make_service(db, storage, handler)
        connection = create(service, method="POST", request_body={"segment": "vip"})
        assert (await service.fetch(connection.id))["records"] == CUSTOMERS[:1]

    async def test_http_error_marks_connection(self, db, storage):
        service = make_service(db, storage, lambda request: httpx.Response(500, text="boom"))
        connection = create(service)

        with pytest.raises(ConnectorError) as exc:
            await service.fetch(connection.id)
        assert exc.value.details == {"status_code": 500, "page": 1}
        stored = service.get_or_raise(connection.id)
        assert stored.status == "error"
        assert stored.error_message == "fetch failed: API returned status 500"

    async def test_invalid_json(self, db, storage):
        service = make_service(db, storage, lambda request: httpx.Response(200, text="<html>"))
        connection = create(service)
        with pytest.raises(ConnectorError, match="not valid JSON"):
            await service.fetch(connection.id)

    async def test_test_reports_outcomes(self, db, storage):
        service = make_service(db, storage, offset_handler)
        connection = create(service)
        result = await service.test(connection.id)
        assert result["success"] is True
        assert result["status"] == "active"
        assert len(result["sample"]) == 3

        service = make_service(db, storage, lambda request: httpx.Response(404, text="missing"))
        result = await service.test(connection.id)
        assert result["success"] is False
        assert result["message"] == "API returned status 404"
        assert result["status"] == "error"

    async def test_connection_failure(self, db, storage):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        service = make_service(db, storage, handler)
        connection = create(service)
        result = await service.test(connection.id)
        assert result["success"] is False
        assert "connection refused" in result["message"]
        with pytest.raises(ConnectorError):
            await service.fetch(connection.id)


class TestApiConnectionService:
    async def test_import_creates_then_refreshes_source(self, db, storage):
        service = make_service(db, storage, offset_handler)
        connection = create(service, pagination_config={"type": "offset", "page_size": 2})

        source = await service.import_data(connection.id, max_pages=1, data_source_name="CRM")
        assert source.type == "api"
        assert source.name == "CRM"
        assert source.record_count == 2
        assert source.configuration["api_connection_id"] == connection.id

        again = await service.import_data(connection.id, max_pages=10)
        assert again.id == source.id
        assert again.record_count == 5
        assert service.get_or_raise(connection.id).data_source_id == source.id

    def test_masked_secret_survives_update(self, db):
        service = ApiConnectionService(db)
        connection = create(service, auth_type="bearer", auth_config={"token": "secret"})
        assert connection.to_dict()["auth_config"] == {"token": MASKED}

        updated = service.update(connection.id, ApiConnectionUpdate(auth_config={"token": MASKED}))
        assert updated.auth_config == {"token": "secret"}
        updated = service.update(connection.id, ApiConnectionUpdate(auth_config={"token": "new"}))
        assert updated.auth_config == {"token": "new"}


class TestApiConnectionAPI:
    @pytest.fixture(autouse=True)
    def mock_transport(self, monkeypatch):
        monkeypatch.setattr(
            api_routes,
            "ApiConnectionService",
            functools.partial(ApiConnectionService, transport=httpx.MockTransport(offset_handler)),
        )

    def test_flow(self, client):
        response = client.post(
            "/api/api-connections",
            json={"name": "Customers API", "endpoint": ENDPOINT, "data_path": "data.items",
                  "auth_type": "bearer", "auth_config": {"token": "secret"}},
        )
        assert response.status_code == 201
        connection = response.json()
        assert connection["auth_config"] == {"token": MASKED}

        assert client.post(f"/api/api-connections/{connection['id']}/test").json()["success"] is True
        preview = client.post(f"/api/api-connections/{connection['id']}/fetch").json()
        assert preview["records"] == CUSTOMERS

        response = client.post(f"/api/api-connections/{connection['id']}/import", json={})
        assert response.status_code == 201
        assert response.json()["record_count"] == 5

        assert client.delete(f"/api/api-connections/{connection['id']}").status_code == 204
        assert client.get(f"/api/api-connections/{connection['id']}").status_code == 404

    def test_rejects_non_http_endpoint(self, client):
        response = client.post("/api/api-connections", json={"name": "x", "endpoint": "ftp://example.com"})
        assert response.status_code == 422
