"""Tests for data-quality rules: validation, testing and execution history."""

import pytest

from dataprep_suite.errors import NotFoundError, ValidationFailedError
from dataprep_suite.schemas.data_sources import DataSourceCreate
from dataprep_suite.schemas.enums import DataSourceType
from dataprep_suite.schemas.quality_rules import QualityRuleCreate, QualityRuleUpdate
from dataprep_suite.services.data_sources import DataSourceService
from dataprep_suite.services.quality_rules import QualityRuleService

EMAIL_CONDITIONS = {
    "operator": "AND",
    "conditions": [
        {"field": "email", "operator": "is_not_empty"},
        {"field": "email", "operator": "not_contains", "value": "@"},
    ],
}


def email_rule(**overrides) -> QualityRuleCreate:
    data = {
        "name": "Email format",
        "category": "validity",
        "conditions": EMAIL_CONDITIONS,
        "actions": [
            {"type": "flag_violation", "config": {"severity": "warning"}},
            {"type": "log_issue"},
        ],
    }
    data.update(overrides)
    return QualityRuleCreate(**data)


@pytest.fixture
def source(db, storage, sample_records):
    return DataSourceService(db, storage).create(
        DataSourceCreate(name="Customers", type=DataSourceType.JSON, records=sample_records)
    )


@pytest.fixture
def service(db, storage):
    return QualityRuleService(db, storage)


class TestRuleCrud:
    def test_create_stores_json(self, service):
        rule = service.create(email_rule())
        assert rule.status == "active"
        assert rule.version == 1
        assert rule.conditions["conditions"][1] == {
            "field": "email",
            "operator": "not_contains",
            "value": "@",
            "case_sensitive": False,
        }
        assert rule.config == {"stop_on_failure": False}

    def test_create_rejects_invalid_conditions(self, service):
        with pytest.raises(ValidationFailedError) as exc:
            service.create(
                email_rule(conditions={"conditions": [{"field": "age", "operator": "between", "values": [1]}]})
            )
        assert exc.value.details["errors"] == ["conditions[0]: 'between' requires exactly two values"]

    def test_update_bumps_version_on_logic_change(self, service):
        rule = service.create(email_rule())
        rule = service.update(rule.id, QualityRuleUpdate(description="Checks @"))
        assert rule.version == 1
        rule = service.update(
            rule.id,
            QualityRuleUpdate(conditions={"conditions": [{"field": "email", "operator": "is_null"}]}),
        )
        assert rule.version == 2

    def test_list_filters(self, service):
        service.create(email_rule())
        service.create(email_rule(name="Draft rule", status="draft", category="completeness"))
        assert [r.name for r in service.list(status="draft")] == ["Draft rule"]
        assert [r.name for r in service.list(category="validity")] == ["Email format"]

    def test_delete(self, service):
        rule_id = service.create(email_rule()).id
        service.delete(rule_id)
        with pytest.raises(NotFoundError):
            service.get_or_raise(rule_id)


class TestRuleTesting:
    def test_sample_data(self, service, sample_records):
        rule = email_rule().model_dump(mode="json", exclude_none=True)
        result = service.test_rule(rule, sample_data=sample_records)

        assert result["records_tested"] == 3
        assert result["records_passed"] == 2
        assert result["records_failed"] == 1
        assert result["warnings"] == []
        violation = result["violations"][0]
        assert violation["record_index"] == 2
        assert violation["line_number"] == 3
        assert violation["field"] == "email"
        assert violation["value"] == {"email": "not-an-email"}
        assert violation["condition"] == "email is_not_empty AND email not_contains '@'"
        assert violation["severity"] == "warning"
        assert violation["message"] == 'Rule "Email format" violated'

    def test_data_source_and_field_warnings(self, service, source):
        rule = {
            "name": "City",
            "conditions": {"conditions": [{"field": "address.city", "operator": "equals", "value": "Shelbyville"}]},
            "actions": [],
        }
        result = service.test_rule(rule, data_source_id=source.id)
        assert result["records_failed"] == 1
        assert result["violations"][0]["value"] == {"address.city": "Shelbyville"}
        assert result["warnings"] == ["Rule has no actions"]

        rule["conditions"]["conditions"][0]["field"] = "town"
        warnings = service.test_rule(rule, data_source_id=source.id)["warnings"]
        assert "conditions[0]: field 'town' not found in data" in warnings

    def test_alert_rules_do_not_produce_violations(self, service, sample_records):
        rule = email_rule(type="alert").model_dump(mode="json", exclude_none=True)
        assert service.test_rule(rule, sample_data=sample_records)["records_failed"] == 0

    def test_requires_data(self, service):
        with pytest.raises(ValidationFailedError):
            service.test_rule(email_rule().model_dump(mode="json"))


class TestRuleExecution:
    def test_execute_records_history(self, service, source):
        rule = service.create(email_rule())
        execution = service.execute_rule(rule.id, source.id)

        assert execution.status == "success"
        assert execution.rule_name == "Email format"
        assert execution.data_source_name == "Customers"
        assert execution.records_processed == 3
        assert execution.records_passed == 2
        assert execution.records_failed == 1
        assert execution.actions_executed == 2
        assert execution.violations[0]["record_index"] == 2
        assert execution.execution_metadata["triggered_by"] == "manual"

        assert [e.id for e in service.list_executions(rule_id=rule.id)] == [execution.id]

    def test_dry_run_skips_actions(self, service, source):
        rule = service.create(email_rule())
        execution = service.execute_rule(rule.id, source.id, dry_run=True)
        assert execution.records_failed == 1
        assert execution.actions_executed == 0

    def test_offset_and_limit(self, service, source):
        rule = service.create(email_rule())
        execution = service.execute_rule(rule.id, source.id, offset=2, limit=1)
        assert execution.records_processed == 1
        assert execution.violations[0]["record_index"] == 2

    def test_max_violations_stops_early(self, service, source):
        rule = service.create(
            email_rule(
                name="Has id",
                conditions={"conditions": [{"field": "customer_id", "operator": "is_not_empty"}]},
                config={"max_violations": 1},
            )
        )
        execution = service.execute_rule(rule.id, source.id)
        assert execution.records_processed == 1
        assert execution.records_skipped == 2
        assert len(execution.violations) == 1

    def test_unknown_source(self, service):
        rule = service.create(email_rule())
        with pytest.raises(NotFoundError):
            service.execute_rule(rule.id, "missing")


class TestQualityRuleAPI:
    def test_flow(self, client, sample_records):
        source = client.post(
            "/api/data-sources", json={"name": "C", "type": "json", "records": sample_records}
        ).json()
        response = client.post("/api/quality-rules", json=email_rule().model_dump(mode="json"))
        assert response.status_code == 201
        rule = response.json()

        response = client.post(f"/api/quality-rules/{rule['id']}/execute", json={"data_source_id": source["id"]})
        assert response.status_code == 200
        assert response.json()["records_failed"] == 1

        executions = client.get("/api/quality-rules/executions", params={"rule_id": rule["id"]}).json()
        assert len(executions) == 1

        summary = client.get("/api/dashboard/summary").json()
        assert summary["quality_rules"]["total"] == 1
        assert summary["quality_rules"]["recent_executions"][0]["rule_name"] == "Email format"

        response = client.put(f"/api/quality-rules/{rule['id']}", json={"status": "inactive"})
        assert response.json()["status"] == "inactive"

        assert client.delete(f"/api/quality-rules/{rule['id']}").status_code == 204
        assert client.get(f"/api/quality-rules/{rule['id']}").status_code == 404

    def test_invalid_operator_is_422(self, client):
        body = email_rule().model_dump(mode="json")
        body["conditions"]["conditions"][0]["operator"] = "resembles"
        assert client.post("/api/quality-rules", json=body).status_code == 422

    def test_inline_test(self, client, sample_records):
        response = client.post(
            "/api/quality-rules/test",
            json={"rule": email_rule().model_dump(mode="json"), "sample_data": sample_records},
        )
        assert response.status_code == 200
        assert response.json()["records_failed"] == 1

    def test_test_requires_rule(self, client):
        response = client.post("/api/quality-rules/test", json={"sample_data": []})
        assert response.status_code == 422
        assert response.json()["detail"] == "Provide rule_id or rule"

    def test_templates(self, client):
        templates = client.get("/api/quality-rules/templates").json()
        assert [t["id"] for t in templates] == ["not-null", "email-format", "range", "allowed-values"]

    def test_validate_endpoint(self, client):
        rule = {
            "conditions": {
                "operator": "AND",
                "conditions": [
                    {"field": "age", "operator": "between", "value": [1]},
                    {"field": "loyalty_tier", "operator": "is_null"},
                ],
            }
        }
        response = client.post(
            "/api/quality-rules/validate", json={"rule": rule, "available_fields": ["age"]}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["is_valid"] is False
        assert body["errors"] == ["conditions[0]: 'between' requires exactly two values"]
        assert body["warnings"] == [
            "conditions[1]: field 'loyalty_tier' not found in data",
            "Rule has no actions",
        ]
