"""Tests for system endpoints, error bodies, logging setup and the CLI."""

from __future__ import annotations

import logging

import structlog
from typer.testing import CliRunner

from dataprep_suite.cli import app as cli_app
from dataprep_suite.errors import ConflictError, ConnectorError, NotFoundError
from dataprep_suite.logging_config import bind_context, clear_context, configure_logging

runner = CliRunner()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_healthz(client):
    """/healthz runs a query against the configured database."""
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"ok": True, "db": True}


def test_version(client):
    response = client.get("/version")
    assert response.status_code == 200
    assert isinstance(response.json()["version"], str)


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"x-request-id": "req-123"})
    assert response.headers["x-request-id"] == "req-123"
    assert client.get("/health").headers["x-request-id"]


def test_empty_dashboard(client):
    summary = client.get("/api/dashboard/summary").json()
    assert summary["data_sources"] == {"total": 0, "total_records": 0}
    assert summary["patterns"] == {"total": 0, "active": 0}
    assert summary["quality_rules"]["recent_executions"] == []
    assert summary["synthetic"] == {"total": 0, "by_status": {}}


def test_dashboard_counts(client, sample_records):
    client.post("/api/data-sources", json={"name": "Customers", "type": "json", "records": sample_records})
    client.post("/api/synthetic", json={"name": "Users", "data_type": "users", "record_count": 3})

    summary = client.get("/api/dashboard/summary").json()
    assert summary["data_sources"] == {"total": 1, "total_records": 3}
    assert summary["synthetic"]["by_status"] == {"pending": 1}


def test_error_bodies():
    assert NotFoundError("Pattern", "p1").to_dict() == {
        "error": "NOT_FOUND",
        "message": "Pattern 'p1' not found",
        "details": {"object_type": "Pattern", "object_id": "p1"},
    }
    assert ConflictError("taken").to_dict() == {"error": "CONFLICT", "message": "taken"}
    error = ConnectorError("timed out", "fetch")
    assert error.message == "fetch failed: timed out"
    assert error.status_code == 502


def test_configure_logging(monkeypatch):
    from dataprep_suite import logging_config

    monkeypatch.setattr(logging_config.get_settings(), "log_format", "json")
    configure_logging()
    formatter = logging.root.handlers[0].formatter
    assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)

    bind_context(request_id="abc")
    assert structlog.contextvars.get_contextvars() == {"request_id": "abc"}
    clear_context()
    assert structlog.contextvars.get_contextvars() == {}


class TestCLI:
    def test_version(self):
        result = runner.invoke(cli_app, ["version"])
        assert result.exit_code == 0
        assert "Data Preparedness Suite v" in result.output

    def test_init_seed_and_list(self):
        assert runner.invoke(cli_app, ["init-db"]).exit_code == 0

        result = runner.invoke(cli_app, ["seed-catalog"])
        assert result.exit_code == 0
        assert "categories and" in result.output

        result = runner.invoke(cli_app, ["sources"])
        assert result.exit_code == 0
        assert "No data sources found" in result.output

    def test_generate_missing_dataset(self):
        runner.invoke(cli_app, ["init-db"])
        result = runner.invoke(cli_app, ["generate", "missing"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_ask(self):
        runner.invoke(cli_app, ["init-db"])
        result = runner.invoke(cli_app, ["ask", "Where are customer emails?", "--json"])
        assert result.exit_code == 0
        assert '"keywords"' in result.output
