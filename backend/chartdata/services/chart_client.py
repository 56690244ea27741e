"""
Chart data client.

Assembles everything a chart needs to render:

1. **Form data**  → stored slice config, explicit overrides, or both.
2. **Annotations** → one result per annotation layer.
3. **Datasource**  → datasource metadata.
4. **Query data**  → results from the legacy or current query API.

Steps 2-4 run concurrently once the form data is known and are
merged into a single ``ChartData`` bundle.  Nothing is retried
or cached, and any failure fails the whole bundle.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from chartdata.exceptions import (
    AnnotationNotImplementedError,
    MissingConfigurationError,
    UnknownVisualizationTypeError,
)
from chartdata.schemas import (
    AnnotationLayer,
    ChartData,
    ExplicitOnly,
    coerce_selector,
)
from chartdata.services.registries import (
    ChartBuildQueryRegistry,
    ChartMetadataRegistry,
    get_chart_build_query_registry,
    get_chart_metadata_registry,
)
from chartdata.services.transport import get_transport

logger = logging.getLogger(__name__)

LEGACY_QUERY_ENDPOINT = "/superset/explore_json/"
QUERY_ENDPOINT = "/api/v1/query/"


def _form_value(form_data: Dict[str, Any], *keys: str) -> Any:
    """First non-missing value among *keys* (snake_case, then camelCase)."""
    for key in keys:
        if key in form_data:
            return form_data[key]
    return None


_KEY_SPELLINGS = (
    ("viz_type", "vizType"),
    ("annotation_layers", "annotationLayers"),
)


def _merge_form_data(
    stored: Dict[str, Any],
    explicit: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Lay *explicit* fields over *stored* ones.

    A key given explicitly in either spelling also drops the
    other spelling from the stored data, so the explicit value
    is the one later lookups see.
    """
    form_data = dict(stored)
    for snake, camel in _KEY_SPELLINGS:
        if snake in explicit:
            form_data.pop(camel, None)
        elif camel in explicit:
            form_data.pop(snake, None)
    form_data.update(explicit)
    return form_data


def _viz_type(form_data: Dict[str, Any]) -> Optional[str]:
    return _form_value(form_data, "viz_type", "vizType")


def _annotation_layers(form_data: Dict[str, Any]) -> Optional[list]:
    return _form_value(form_data, "annotation_layers", "annotationLayers")


class ChartClient:
    """
    Loads form data, datasource, annotations and query results.

    Parameters:
        client: Transport exposing async ``get(endpoint, **opts)``
            and ``post(endpoint, payload, **opts)`` that return an
            object with a ``json`` attribute.  Defaults to the
            shared ``SupersetTransport``.
        metadata_registry (ChartMetadataRegistry, optional)
        build_query_registry (ChartBuildQueryRegistry, optional)
    """

    def __init__(
        self,
        client=None,
        metadata_registry: Optional[ChartMetadataRegistry] = None,
        build_query_registry: Optional[ChartBuildQueryRegistry] = None,
    ):
        self.client = client if client is not None else get_transport()
        self.metadata_registry = (
            metadata_registry or get_chart_metadata_registry()
        )
        self.build_query_registry = (
            build_query_registry or get_chart_build_query_registry()
        )

    # ----- form data -------------------------------------------------

    async def resolve_configuration(
        self,
        selector,
        **options,
    ) -> Dict[str, Any]:
        """
        Resolve the effective form data for a selector.

        With a slice id the stored form data is fetched and any
        explicit fields are laid over it; explicit fields win on
        key collision.  Without one, explicit form data is
        returned unchanged.

        Parameters:
            selector: ``StoredOnly``, ``ExplicitOnly``, ``Both`` or
                a mapping with ``slice_id`` / ``form_data``.
            **options: Passed through to the transport.

        Returns:
            dict: The effective form data.

        Raises:
            MissingConfigurationError: Neither field was given.
        """
        if selector is None:
            raise MissingConfigurationError()
        selector = coerce_selector(selector)

        if isinstance(selector, ExplicitOnly):
            return selector.form_data

        logger.debug(
            "[chart_client] loading form data for slice %s",
            selector.slice_id,
        )
        response = await self.client.get(
            f"/api/v1/formData/?slice_id={selector.slice_id}",
            **options,
        )
        return _merge_form_data(
            response.json.get("form_data") or {},
            getattr(selector, "form_data", None) or {},
        )

    # ----- query data ------------------------------------------------

    async def resolve_query_results(
        self,
        form_data: Dict[str, Any],
        **options,
    ) -> Any:
        """
        Query the backend for the chart's results.

        The viz type's metadata decides the API variant: legacy
        charts post ``form_data`` to ``/superset/explore_json/``,
        others post ``query_context`` to ``/api/v1/query/``.  The
        payload is ``build_query(form_data)``, or the form data
        itself when no builder is registered.

        The response body is returned as-is; its shape is not
        validated.

        Raises:
            UnknownVisualizationTypeError: No metadata registered
                for the viz type.
        """
        viz_type = _viz_type(form_data)
        if not self.metadata_registry.has(viz_type):
            raise UnknownVisualizationTypeError(viz_type)

        metadata = self.metadata_registry.get(viz_type)
        use_legacy_api = metadata.use_legacy_api
        build_query = await self.build_query_registry.get(viz_type)
        if build_query is None:
            payload = form_data
        else:
            payload = build_query(form_data)

        endpoint = LEGACY_QUERY_ENDPOINT if use_legacy_api else QUERY_ENDPOINT
        payload_key = "form_data" if use_legacy_api else "query_context"
        logger.debug(
            "[chart_client] querying %s for viz_type=%s",
            endpoint,
            viz_type,
        )
        response = await self.client.post(
            endpoint,
            {payload_key: payload},
            **options,
        )
        return response.json

    # ----- datasource ------------------------------------------------

    async def resolve_datasource_metadata(
        self,
        datasource_key: str,
        **options,
    ) -> Any:
        """Fetch metadata for a ``"<id>__<type>"`` datasource key."""
        response = await self.client.get(
            "/superset/fetch_datasource_metadata"
            f"?datasourceKey={datasource_key}",
            **options,
        )
        return response.json

    # ----- annotations -----------------------------------------------

    async def resolve_annotation_layer(
        self,
        layer: Union[AnnotationLayer, Dict[str, Any]],
    ) -> Dict[str, Any]:
        """
        Load data for one annotation layer.

        Layers without a source type need no query and resolve to
        an empty dict.  Querying sourced layers is not supported.

        Raises:
            AnnotationNotImplementedError: The layer has a source type.
        """
        if not isinstance(layer, AnnotationLayer):
            layer = AnnotationLayer.model_validate(layer)
        if layer.source_type is None:
            return {}
        raise AnnotationNotImplementedError(layer.name)

    async def resolve_annotations(
        self,
        layers: Optional[Iterable[Any]] = None,
    ) -> Dict[str, Dict[str, Any]]:
        """
        Load all annotation layers concurrently, keyed by layer name.

        Results are assembled in input order, so a repeated name
        keeps the last layer's data.  One failing layer fails the
        whole call.  Anything other than a non-empty list resolves
        to an empty mapping.
        """
        if not isinstance(layers, (list, tuple)) or not layers:
            return {}
        parsed: List[AnnotationLayer] = [
            layer if isinstance(layer, AnnotationLayer)
            else AnnotationLayer.model_validate(layer)
            for layer in layers
        ]
        results = await asyncio.gather(
            *(self.resolve_annotation_layer(layer) for layer in parsed)
        )
        annotation_data: Dict[str, Dict[str, Any]] = {}
        for layer, result in zip(parsed, results):
            annotation_data[layer.name] = result
        return annotation_data

    # ----- bundle ----------------------------------------------------

    async def resolve_chart_data_bundle(self, selector) -> ChartData:
        """
        Load everything a chart needs for *selector*.

        Form data is resolved first; annotations, datasource and
        query results are then fetched concurrently and merged.

        Returns:
            ChartData: The merged bundle.
        """
        form_data = await self.resolve_configuration(selector)

        annotation_data, datasource, query_data = await asyncio.gather(
            self.resolve_annotations(_annotation_layers(form_data)),
            self.resolve_datasource_metadata(form_data.get("datasource")),
            self.resolve_query_results(form_data),
        )
        logger.debug(
            "[chart_client] bundle ready: viz_type=%s annotations=%d",
            _viz_type(form_data),
            len(annotation_data),
        )
        return ChartData(
            annotation_data=annotation_data,
            datasource=datasource,
            form_data=form_data,
            query_data=query_data,
        )
