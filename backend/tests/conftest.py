"""
Shared fixtures: a fake Superset backend behind httpx.MockTransport,
isolated registries and a chart client wired to both.
"""

import asyncio
import json
from urllib.parse import parse_qs

import httpx
import pytest

from chartdata.schemas import ChartMetadata
from chartdata.services.chart_client import ChartClient
from chartdata.services.registries import (
    ChartBuildQueryRegistry,
    ChartMetadataRegistry,
)
from chartdata.services.transport import SupersetTransport

BASE_URL = "http://superset.test"


def run(coro):
    """Drive a coroutine to completion."""
    return asyncio.run(coro)


def form_fields(request: httpx.Request) -> dict:
    """Decode a form-encoded request body into single values."""
    parsed = parse_qs(request.content.decode())
    return {key: values[0] for key, values in parsed.items()}


def json_field(request: httpx.Request, name: str):
    """Decode one JSON-stringified form field."""
    return json.loads(form_fields(request)[name])


class FakeBackend:
    """Answers requests by (method, path) and records them."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method: str, path: str, body, status: int = 200):
        self.routes[(method, path)] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "Not found"})
        status, body = route
        return httpx.Response(status, json=body)

    def requests_to(self, path: str) -> list:
        return [r for r in self.requests if r.url.path == path]


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def transport(backend):
    client = httpx.AsyncClient(
        base_url=BASE_URL,
        transport=httpx.MockTransport(backend.handler),
    )
    return SupersetTransport(base_url=BASE_URL, client=client)


@pytest.fixture
def metadata_registry():
    registry = ChartMetadataRegistry()
    registry.register_value("bar", ChartMetadata(name="Bar"))
    registry.register_value(
        "dist_bar",
        ChartMetadata(name="Dist Bar", use_legacy_api=True),
    )
    registry.register_value("table", ChartMetadata(name="Table"))
    return registry


@pytest.fixture
def build_query_registry():
    registry = ChartBuildQueryRegistry()
    registry.register_value(
        "table",
        lambda form_data: {
            "datasource": form_data["datasource"],
            "queries": [{"metrics": form_data.get("metrics", [])}],
        },
    )
    return registry


@pytest.fixture
def chart_client(transport, metadata_registry, build_query_registry):
    return ChartClient(
        client=transport,
        metadata_registry=metadata_registry,
        build_query_registry=build_query_registry,
    )
