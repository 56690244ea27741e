"""
Tests for the chart registries.
"""

import logging

import pytest

from chartdata.schemas import ChartMetadata
from chartdata.services.registries import (
    ChartBuildQueryRegistry,
    ChartMetadataRegistry,
    OverwritePolicy,
    Registry,
    get_chart_build_query_registry,
    get_chart_metadata_registry,
)

from conftest import run


class TestRegistry:
    """Test the generic registry."""

    def test_register_value(self):
        registry = Registry(name="test")
        registry.register_value("a", 1)

        assert registry.has("a")
        assert registry.get("a") == 1
        assert registry.keys() == ["a"]

    def test_unknown_key(self):
        registry = Registry()

        assert not registry.has("missing")
        assert not registry.has(None)
        assert registry.get("missing") is None
        assert run(registry.get_as_promise("missing")) is None

    def test_loader_called_once(self):
        calls = []

        def loader():
            calls.append(1)
            return "value"

        registry = Registry().register_loader("a", loader)

        assert calls == []
        assert registry.get("a") == "value"
        assert registry.get("a") == "value"
        assert calls == [1]

    def test_async_loader(self):
        async def loader():
            return "async value"

        registry = Registry().register_loader("a", loader)

        assert run(registry.get_as_promise("a")) == "async value"
        # Cached after the first await.
        assert registry.get("a") == "async value"

    def test_async_loader_sync_get_rejected(self):
        async def loader():
            return "async value"

        registry = Registry().register_loader("a", loader)

        with pytest.raises(TypeError):
            registry.get("a")

    def test_remove_and_clear(self):
        registry = Registry().register_value("a", 1).register_value("b", 2)

        registry.remove("a")
        assert registry.keys() == ["b"]
        registry.remove("missing")
        registry.clear()
        assert registry.keys() == []

    def test_overwrite_allowed_by_default(self):
        registry = Registry().register_value("a", 1).register_value("a", 2)

        assert registry.get("a") == 2

    def test_overwrite_prohibited(self):
        registry = Registry(overwrite_policy=OverwritePolicy.PROHIBIT)
        registry.register_value("a", 1)

        with pytest.raises(ValueError):
            registry.register_value("a", 2)

    def test_overwrite_warns(self, caplog):
        registry = Registry(name="warned", overwrite_policy="warn")
        registry.register_value("a", 1)

        with caplog.at_level(logging.WARNING):
            registry.register_value("a", 2)

        assert "overwriting" in caplog.text
        assert registry.get("a") == 2


class TestChartRegistries:
    """Test the chart-specific registries."""

    def test_metadata_registry(self):
        registry = ChartMetadataRegistry()
        metadata = ChartMetadata(name="Bar", use_legacy_api=True)
        registry.register_value("bar", metadata)

        assert registry.get("bar").use_legacy_api is True
        assert registry.name == "ChartMetadata"

    def test_build_query_registry_is_awaitable(self):
        registry = ChartBuildQueryRegistry()

        def build_query(form_data):
            return {"queries": []}

        registry.register_value("table", build_query)

        assert run(registry.get("table")) is build_query
        assert run(registry.get("missing")) is None

    def test_singletons(self):
        assert get_chart_metadata_registry() is get_chart_metadata_registry()
        assert (
            get_chart_build_query_registry()
            is get_chart_build_query_registry()
        )
