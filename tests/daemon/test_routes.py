"""Tests for daemon HTTP routes.

Covers:
- /health and /status
- /api/ingest, /api/query, /api/projects, /api/item
- Error bodies and status codes
- Request id header
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from starlette.applications import Starlette
from starlette.testclient import TestClient

from docplane.config.models import DocPlaneConfig
from docplane.core.errors import EmbeddingInitFailure, ProjectNotFound
from docplane.daemon.app import create_app
from docplane.daemon.lifecycle import ServerController
from docplane.daemon.middleware import REQUEST_ID_HEADER, RequestIdMiddleware
from docplane.daemon.routes import create_routes, error_response
from docplane.index.embedding import EmbeddingProvider
from docplane.index.ops import DocIndexOps
from docplane.index.store import IndexStore
from docplane.mcp.context import AppContext


class TreeExtractor:
    def __init__(self, tree: dict[str, Any]) -> None:
        self.tree = tree

    def extract(self, project_dir: Path) -> dict[str, Any]:
        return self.tree


def _controller(provider: EmbeddingProvider, tree: dict[str, Any]) -> ServerController:
    config = DocPlaneConfig()
    ops = DocIndexOps(IndexStore(), provider, TreeExtractor(tree))
    return ServerController(config=config, context=AppContext(config=config, ops=ops))


@pytest.fixture
def controller(ready_provider: EmbeddingProvider, tree_factory: Any) -> ServerController:
    tree = tree_factory(
        "k",
        [
            {"id": "1", "name": "hello", "docs": "A test function"},
            {"id": "2", "name": "Socket", "kind": "struct", "docs": "A network socket"},
        ],
    )
    return _controller(ready_provider, tree)


@pytest.fixture
def client(controller: ServerController) -> TestClient:
    return TestClient(Starlette(routes=create_routes(controller)))


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data
        assert data["uptime_seconds"] >= 0

    def test_status(self, client: TestClient, tmp_path: Path) -> None:
        client.post("/api/ingest", json={"path": str(tmp_path)})

        data = client.get("/status").json()

        assert data["index"] == {"projects": 1, "items": 3, "embedded": 2}
        assert data["embedding"]["state"] == "ready"
        assert data["embedding"]["model"] == "stub"
        assert data["runtime"]["pid"] > 0
        assert "error" not in data["embedding"]

    def test_status_reports_init_failure(self, tree_factory: Any) -> None:
        def load() -> Any:
            raise RuntimeError("no model")

        provider = EmbeddingProvider(load, model_name="broken")
        with pytest.raises(EmbeddingInitFailure):
            provider.initialize()
        client = TestClient(
            Starlette(routes=create_routes(_controller(provider, tree_factory())))
        )

        data = client.get("/status").json()

        assert data["embedding"]["state"] == "failed"
        assert "no model" in data["embedding"]["error"]


class TestIngestRoute:
    def test_ingest(self, client: TestClient, tmp_path: Path) -> None:
        response = client.post("/api/ingest", json={"path": str(tmp_path)})

        assert response.status_code == 200
        data = response.json()
        assert data["embedded_count"] == 2
        assert data["total_projects"] == 1
        assert data["message"].startswith("Successfully processed project")

    def test_ingest_missing_directory(self, client: TestClient, tmp_path: Path) -> None:
        response = client.post("/api/ingest", json={"path": str(tmp_path / "nope")})

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_INPUT"

    def test_ingest_requires_path(self, client: TestClient) -> None:
        response = client.post("/api/ingest", json={})
        assert response.status_code == 400

    def test_ingest_rejects_non_json(self, client: TestClient) -> None:
        response = client.post(
            "/api/ingest", content=b"not json", headers={"content-type": "application/json"}
        )
        assert response.status_code == 400

    def test_ingest_rejects_non_object(self, client: TestClient) -> None:
        response = client.post("/api/ingest", json=["a"])
        assert response.status_code == 400

    def test_schema_error_is_500(self, ready_provider: EmbeddingProvider, tmp_path: Path) -> None:
        client = TestClient(
            Starlette(routes=create_routes(_controller(ready_provider, {"index": {}})))
        )

        response = client.post("/api/ingest", json={"path": str(tmp_path)})

        assert response.status_code == 500
        assert response.json()["error"] == "SCHEMA_MISSING_SECTION"


class TestQueryRoute:
    def test_query(self, client: TestClient, tmp_path: Path) -> None:
        client.post("/api/ingest", json={"path": str(tmp_path)})

        response = client.post("/api/query", json={"query": "network socket", "num_results": 1})

        assert response.status_code == 200
        (hit,) = response.json()["results"]
        assert hit["item_full_path"] == "k::Socket"
        assert hit["project_path"] == str(tmp_path)

    def test_query_filter_unknown_project(self, client: TestClient, tmp_path: Path) -> None:
        client.post("/api/ingest", json={"path": str(tmp_path)})

        response = client.post("/api/query", json={"query": "socket", "project_path": "/x"})

        assert response.json() == {"results": []}

    def test_query_bad_k(self, client: TestClient) -> None:
        response = client.post("/api/query", json={"query": "socket", "num_results": "ten"})
        assert response.status_code == 400

    def test_query_missing_text(self, client: TestClient) -> None:
        assert client.post("/api/query", json={}).status_code == 400

    def test_query_embedding_unavailable(
        self, tree_factory: Any, loading_provider: EmbeddingProvider
    ) -> None:
        client = TestClient(
            Starlette(routes=create_routes(_controller(loading_provider, tree_factory())))
        )

        response = client.post("/api/query", json={"query": "socket"})

        assert response.status_code == 503
        assert response.json()["retryable"] is True


class TestProjectAndItemRoutes:
    def test_projects(self, client: TestClient, tmp_path: Path) -> None:
        assert client.get("/api/projects").json() == {"projects": []}

        client.post("/api/ingest", json={"path": str(tmp_path)})

        assert client.get("/api/projects").json() == {"projects": [str(tmp_path)]}

    def test_item(self, client: TestClient, tmp_path: Path) -> None:
        client.post("/api/ingest", json={"path": str(tmp_path)})

        response = client.get(
            "/api/item", params={"project_path": str(tmp_path), "item_path": "k::hello"}
        )

        assert response.status_code == 200
        assert response.json()["item"]["description"] == "A test function"

    def test_item_unknown_project(self, client: TestClient) -> None:
        response = client.get("/api/item", params={"project_path": "/x", "item_path": "k::a"})

        assert response.status_code == 404
        assert response.json()["error"] == "PROJECT_NOT_FOUND"

    def test_item_missing_params(self, client: TestClient) -> None:
        assert client.get("/api/item").status_code == 400


class TestErrorHandling:
    def test_error_response_body(self) -> None:
        response = error_response(ProjectNotFound.for_path("/x"))

        assert response.status_code == 404
        assert b'"PROJECT_NOT_FOUND"' in response.body

    def test_unexpected_exception_is_internal_error(
        self, controller: ServerController, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def boom() -> list[str]:
            raise RuntimeError("store exploded")

        monkeypatch.setattr(controller.context.ops, "list_projects", boom)
        client = TestClient(Starlette(routes=create_routes(controller)))

        response = client.get("/api/projects")

        assert response.status_code == 500
        assert response.json()["error"] == "INTERNAL_ERROR"


class TestRequestId:
    def test_generated_and_echoed(self, controller: ServerController) -> None:
        app = Starlette(routes=create_routes(controller))
        app.add_middleware(RequestIdMiddleware)
        client = TestClient(app)

        generated = client.get("/health").headers[REQUEST_ID_HEADER]
        supplied = client.get("/health", headers={REQUEST_ID_HEADER: "abc123"})

        assert generated
        assert supplied.headers[REQUEST_ID_HEADER] == "abc123"


class TestCreateApp:
    def test_routes_and_mcp_mount(self, controller: ServerController) -> None:
        client = TestClient(create_app(controller))

        response = client.get("/health")

        assert response.status_code == 200
        assert REQUEST_ID_HEADER in response.headers
