"""
Tests for the chart data HTTP API.
"""

import pytest
from fastapi.testclient import TestClient

from chartdata.main import app
from chartdata.routes.charts import get_chart_client
from chartdata.services import transport as transport_module
from chartdata.services.plugins import (
    DEFAULT_PLUGINS,
    build_query_context,
    register_default_plugins,
)
from chartdata.services.registries import (
    ChartBuildQueryRegistry,
    ChartMetadataRegistry,
    get_chart_metadata_registry,
)

DATASOURCE_PATH = "/superset/fetch_datasource_metadata"
QUERY_PATH = "/api/v1/query/"


@pytest.fixture
def api(chart_client):
    app.dependency_overrides[get_chart_client] = lambda: chart_client
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


class TestChartDataRoute:
    """Test POST /api/charts/data."""

    def test_bundle(self, api, backend):
        backend.add("GET", DATASOURCE_PATH, {"id": 5, "type": "table"})
        backend.add("POST", QUERY_PATH, {"result": [{"data": []}]})
        form_data = {"datasource": "5__table", "viz_type": "bar"}

        response = api.post("/api/charts/data", json={"form_data": form_data})

        assert response.status_code == 200
        assert response.json() == {
            "annotation_data": {},
            "datasource": {"id": 5, "type": "table"},
            "form_data": form_data,
            "query_data": {"result": [{"data": []}]},
        }

    def test_missing_configuration(self, api):
        response = api.post("/api/charts/data", json={})

        assert response.status_code == 400
        assert "slice_id" in response.json()["detail"]

    def test_unknown_viz_type(self, api, backend):
        backend.add("GET", DATASOURCE_PATH, {"id": 5})

        response = api.post("/api/charts/data", json={
            "form_data": {"datasource": "5__table", "viz_type": "unknown_viz"},
        })

        assert response.status_code == 400
        assert "unknown_viz" in response.json()["detail"]

    def test_sourced_annotation(self, api, backend):
        backend.add("GET", DATASOURCE_PATH, {"id": 5})
        backend.add("POST", QUERY_PATH, {"result": []})

        response = api.post("/api/charts/data", json={"form_data": {
            "datasource": "5__table",
            "viz_type": "bar",
            "annotation_layers": [{"name": "e", "sourceType": "NATIVE"}],
        }})

        assert response.status_code == 501

    def test_upstream_failure(self, api, backend):
        backend.add("GET", DATASOURCE_PATH, {"message": "boom"}, status=500)
        backend.add("POST", QUERY_PATH, {"result": []})

        response = api.post("/api/charts/data", json={
            "form_data": {"datasource": "5__table", "viz_type": "bar"},
        })

        assert response.status_code == 502
        assert "500" in response.json()["detail"]

    def test_invalid_body(self, api):
        response = api.post("/api/charts/data", json={"slice_id": "abc"})

        assert response.status_code == 422

    def test_form_data_missing_builder_field(self, api, backend):
        """A builder needing ``datasource`` rejects form data without it."""
        backend.add("GET", DATASOURCE_PATH, {})

        response = api.post("/api/charts/data", json={
            "form_data": {"viz_type": "table", "metrics": ["count"]},
        })

        assert response.status_code == 400
        assert "datasource" in response.json()["detail"]

    def test_invalid_datasource_key(self, api, backend, build_query_registry):
        build_query_registry.register_value("table", build_query_context)
        backend.add("GET", DATASOURCE_PATH, {})

        response = api.post("/api/charts/data", json={
            "form_data": {"datasource": "bogus", "viz_type": "table"},
        })

        assert response.status_code == 400
        assert "bogus" in response.json()["detail"]

    def test_invalid_annotation_layer(self, api, backend):
        backend.add("GET", DATASOURCE_PATH, {})
        backend.add("POST", QUERY_PATH, {"result": []})

        response = api.post("/api/charts/data", json={"form_data": {
            "datasource": "5__table",
            "viz_type": "bar",
            "annotation_layers": [{"sourceType": "NATIVE"}],
        }})

        assert response.status_code == 400


class TestAppLifecycle:
    """Test startup and shutdown hooks."""

    def test_transport_built_on_startup_and_closed(self, monkeypatch):
        registered = []
        monkeypatch.setattr(
            "chartdata.main.register_default_plugins",
            lambda: registered.append(True),
        )
        transport_module.set_transport(None)

        with TestClient(app):
            shared = transport_module._transport
            assert shared is not None
            assert registered == [True]

        assert transport_module._transport is None
        assert shared._client.is_closed


class TestMiscRoutes:
    """Test chart type listing and health check."""

    def test_chart_types(self, api):
        """Chart types come from the injected registry only."""
        metadata_registry = ChartMetadataRegistry()
        register_default_plugins(metadata_registry, ChartBuildQueryRegistry())
        app.dependency_overrides[get_chart_metadata_registry] = (
            lambda: metadata_registry
        )

        response = api.get("/api/charts/types")

        assert response.status_code == 200
        by_key = {item["key"]: item["metadata"] for item in response.json()}
        assert list(by_key) == list(DEFAULT_PLUGINS)
        assert by_key["bar"]["use_legacy_api"] is True
        assert by_key["table"]["use_legacy_api"] is False
        assert get_chart_metadata_registry().keys() == []

    def test_health(self, api):
        response = api.get("/api/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
