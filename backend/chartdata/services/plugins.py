"""
Chart plugins and the default query-context builder.

A ``ChartPlugin`` pairs ``ChartMetadata`` with an optional
``build_query`` function and registers both under a viz type
key.  Legacy charts post their form data to
``/superset/explore_json/`` unchanged, so they ship no builder;
charts on the current API turn form data into a query context
with ``build_query_context``.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from chartdata.schemas import ChartMetadata
from chartdata.services.registries import (
    ChartBuildQueryRegistry,
    ChartMetadataRegistry,
    get_chart_build_query_registry,
    get_chart_metadata_registry,
)

logger = logging.getLogger(__name__)

# Form data fields copied verbatim into a query object.
_QUERY_FIELDS = (
    "time_range",
    "since",
    "until",
    "granularity",
    "row_limit",
    "order_desc",
    "timeseries_limit",
)

_EXTRA_FIELDS = (
    "time_grain_sqla",
    "time_range_endpoints",
    "having",
    "where",
)


def parse_datasource_key(datasource_key: str) -> Dict[str, Any]:
    """
    Split a ``"<id>__<type>"`` datasource key.

    Parameters:
        datasource_key (str): Key such as ``"5__table"``.

    Returns:
        dict: ``{"id": 5, "type": "table"}``.

    Raises:
        ValueError: If the key is not in ``<id>__<type>`` form.
    """
    ds_id, sep, ds_type = str(datasource_key).partition("__")
    if not sep or not ds_type:
        raise ValueError(
            f"Invalid datasource key '{datasource_key}', "
            "expected '<id>__<type>'"
        )
    try:
        parsed_id: Any = int(ds_id)
    except ValueError:
        parsed_id = ds_id
    return {"id": parsed_id, "type": ds_type}


def build_query_object(form_data: Dict[str, Any]) -> Dict[str, Any]:
    """Build the default query object for one chart query."""
    groupby = list(form_data.get("groupby") or [])
    query: Dict[str, Any] = {
        "metrics": list(form_data.get("metrics") or []),
        "columns": groupby,
        "groupby": groupby,
        "filters": list(form_data.get("adhoc_filters") or []),
    }
    for field in _QUERY_FIELDS:
        if form_data.get(field) is not None:
            query[field] = form_data[field]
    extras = {
        field: form_data[field]
        for field in _EXTRA_FIELDS
        if form_data.get(field) is not None
    }
    if extras:
        query["extras"] = extras
    return query


def build_query_context(
    form_data: Dict[str, Any],
    build_queries: Optional[
        Callable[[Dict[str, Any]], List[Dict[str, Any]]]
    ] = None,
) -> Dict[str, Any]:
    """
    Turn form data into a current-API query context.

    Parameters:
        form_data (dict): Chart form data; must carry a
            ``datasource`` key.
        build_queries (callable, optional): Produces the list of
            query objects; defaults to a single
            ``build_query_object``.

    Returns:
        dict: Query context payload for ``/api/v1/query/``.
    """
    queries = (
        build_queries(form_data) if build_queries
        else [build_query_object(form_data)]
    )
    return {
        "datasource": parse_datasource_key(form_data["datasource"]),
        "force": bool(form_data.get("force", False)),
        "queries": queries,
        "result_format": form_data.get("result_format", "json"),
        "result_type": form_data.get("result_type", "full"),
    }


class ChartPlugin:
    """
    Metadata plus optional query builder for one chart type.

    Parameters:
        metadata (ChartMetadata): Static chart description.
        build_query (callable, optional): Form data → payload.
    """

    def __init__(
        self,
        metadata: ChartMetadata,
        build_query: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ):
        self.metadata = metadata
        self.build_query = build_query

    def configure(
        self,
        key: str,
        metadata_registry: Optional[ChartMetadataRegistry] = None,
        build_query_registry: Optional[ChartBuildQueryRegistry] = None,
    ) -> "ChartPlugin":
        """Register this plugin under *key*."""
        metadata_registry = (
            metadata_registry or get_chart_metadata_registry()
        )
        build_query_registry = (
            build_query_registry or get_chart_build_query_registry()
        )
        metadata_registry.register_value(key, self.metadata)
        if self.build_query is not None:
            build_query_registry.register_value(key, self.build_query)
        return self

    def unconfigure(
        self,
        key: str,
        metadata_registry: Optional[ChartMetadataRegistry] = None,
        build_query_registry: Optional[ChartBuildQueryRegistry] = None,
    ) -> "ChartPlugin":
        """Remove *key* from both registries."""
        (metadata_registry or get_chart_metadata_registry()).remove(key)
        (
            build_query_registry or get_chart_build_query_registry()
        ).remove(key)
        return self


def _nvd3_plugin(name: str, description: str) -> ChartPlugin:
    return ChartPlugin(
        ChartMetadata(
            name=name,
            description=description,
            use_legacy_api=True,
            supported_annotation_types=["EVENT", "INTERVAL"],
        ),
    )


DEFAULT_PLUGINS: Dict[str, ChartPlugin] = {
    "bar": _nvd3_plugin("Time-series Bar Chart", "NVD3 bar chart"),
    "dist_bar": _nvd3_plugin("Bar Chart", "NVD3 distribution bar"),
    "line": _nvd3_plugin("Line Chart", "NVD3 line chart"),
    "pie": ChartPlugin(
        ChartMetadata(
            name="Pie Chart",
            description="NVD3 pie chart",
            use_legacy_api=True,
        ),
    ),
    "table": ChartPlugin(
        ChartMetadata(name="Table", description="Tabular results"),
        build_query=build_query_context,
    ),
    "big_number_total": ChartPlugin(
        ChartMetadata(
            name="Big Number",
            description="Single aggregated metric",
        ),
        build_query=build_query_context,
    ),
}


def register_default_plugins(
    metadata_registry: Optional[ChartMetadataRegistry] = None,
    build_query_registry: Optional[ChartBuildQueryRegistry] = None,
) -> List[str]:
    """
    Register the preset chart plugins.

    Returns:
        list[str]: The viz type keys that were registered.
    """
    for key, plugin in DEFAULT_PLUGINS.items():
        plugin.configure(key, metadata_registry, build_query_registry)
    logger.info(
        "[plugins] registered %d chart types: %s",
        len(DEFAULT_PLUGINS),
        ", ".join(DEFAULT_PLUGINS),
    )
    return list(DEFAULT_PLUGINS)
