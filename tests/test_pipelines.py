"""Tests for pipeline graphs and the status lifecycle."""

import pytest

from dataprep_suite.errors import ConflictError, ValidationFailedError
from dataprep_suite.schemas.pipelines import PipelineCreate, PipelineUpdate
from dataprep_suite.services.pipelines import PipelineService, topological_order, validate_graph

NODES = [
    {"id": "load", "type": "source", "config": {"data_source_id": "ds-1"}},
    {"id": "clean", "type": "transform"},
    {"id": "score", "type": "analyze"},
    {"id": "export", "type": "output"},
]
EDGES = [
    {"id": "e1", "source": "load", "target": "clean"},
    {"id": "e2", "source": "clean", "target": "score"},
    {"id": "e3", "source": "clean", "target": "export"},
    {"id": "e4", "source": "score", "target": "export"},
]


class TestGraph:
    def test_topological_order(self):
        assert topological_order(NODES, EDGES) == ["load", "clean", "score", "export"]

    def test_cycle(self):
        edges = EDGES + [{"source": "export", "target": "clean"}]
        assert topological_order(NODES, edges) is None
        assert validate_graph(NODES, edges) == ["Pipeline graph contains a cycle"]

    def test_structural_errors(self):
        nodes = [{"id": "a", "type": "transform"}, {"id": "a", "type": "output"}]
        edges = [{"id": "e1", "source": "a", "target": "ghost"}]
        assert validate_graph(nodes, edges) == [
            "Duplicate node ids: a",
            "Edge e1 references unknown target node 'ghost'",
            "Pipeline must contain at least one source node",
        ]

    def test_empty_graph_is_valid(self):
        assert validate_graph([], []) == []


class TestPipelineService:
    def test_create_starts_as_draft(self, db):
        pipeline = PipelineService(db).create(PipelineCreate(name="Nightly", nodes=NODES, edges=EDGES))
        assert pipeline.status == "draft"
        assert pipeline.version == 1
        assert pipeline.nodes[0]["config"] == {"data_source_id": "ds-1"}

    def test_graph_change_bumps_version(self, db):
        service = PipelineService(db)
        pipeline = service.create(PipelineCreate(name="Nightly", nodes=NODES, edges=EDGES))
        pipeline = service.update(pipeline.id, PipelineUpdate(description="renamed"))
        assert pipeline.version == 1
        pipeline = service.update(pipeline.id, PipelineUpdate(edges=EDGES[:2]))
        assert pipeline.version == 2

    def test_status_transitions(self, db):
        service = PipelineService(db)
        pipeline = service.create(PipelineCreate(name="Nightly", nodes=NODES, edges=EDGES))

        with pytest.raises(ConflictError):
            service.set_status(pipeline.id, "completed")

        assert service.set_status(pipeline.id, "active").status == "active"
        assert service.set_status(pipeline.id, "active").status == "active"
        assert service.set_status(pipeline.id, "paused").status == "paused"
        assert service.set_status(pipeline.id, "draft").status == "draft"

    def test_invalid_graph_cannot_be_activated(self, db):
        service = PipelineService(db)
        pipeline = service.create(
            PipelineCreate(name="Broken", nodes=[{"id": "x", "type": "transform"}])
        )
        with pytest.raises(ValidationFailedError):
            service.set_status(pipeline.id, "active")
        with pytest.raises(ValidationFailedError):
            service.execution_order(pipeline.id)


class TestPipelineAPI:
    def test_flow(self, client):
        response = client.post("/api/pipelines", json={"name": "Nightly", "nodes": NODES, "edges": EDGES})
        assert response.status_code == 201
        pipeline = response.json()

        response = client.post(f"/api/pipelines/{pipeline['id']}/validate")
        assert response.json() == {"pipeline_id": pipeline["id"], "is_valid": True, "errors": []}

        response = client.get(f"/api/pipelines/{pipeline['id']}/execution-order")
        assert response.json()["order"] == ["load", "clean", "score", "export"]

        response = client.patch(f"/api/pipelines/{pipeline['id']}/status", json={"status": "active"})
        assert response.json()["status"] == "active"

        response = client.patch(f"/api/pipelines/{pipeline['id']}/status", json={"status": "draft"})
        assert response.status_code == 409
        assert response.json()["detail"]["details"] == {"from": "active", "to": "draft"}

        assert client.get("/api/pipelines", params={"status": "active"}).json()[0]["id"] == pipeline["id"]
        assert client.get("/api/dashboard/summary").json()["pipelines"]["by_status"] == {"active": 1}

        assert client.delete(f"/api/pipelines/{pipeline['id']}").status_code == 204
        assert client.get(f"/api/pipelines/{pipeline['id']}").status_code == 404

    def test_unknown_status(self, client):
        pipeline = client.post("/api/pipelines", json={"name": "P"}).json()
        response = client.patch(f"/api/pipelines/{pipeline['id']}/status", json={"status": "exploded"})
        assert response.status_code == 422
