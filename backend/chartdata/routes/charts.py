"""
API routes for chart data.

Exposes the chart client over HTTP so a browser widget can
fetch its form data, datasource, annotations and query results
in a single request.
"""

import logging
from typing import List

import httpx
from fastapi import APIRouter, Depends, HTTPException

from chartdata.exceptions import (
    AnnotationNotImplementedError,
    MissingConfigurationError,
    UnknownVisualizationTypeError,
)
from chartdata.schemas import (
    ChartData,
    ChartDataRequest,
    ChartTypeResponse,
)
from chartdata.services.chart_client import ChartClient
from chartdata.services.registries import (
    ChartMetadataRegistry,
    get_chart_metadata_registry,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/charts", tags=["charts"])


def get_chart_client() -> ChartClient:
    """
    Dependency that provides a chart client.

    Returns:
        ChartClient: Client bound to the shared transport and
            registries.
    """
    return ChartClient()


@router.get(
    "/types",
    response_model=List[ChartTypeResponse],
    summary="List registered chart types",
)
def list_chart_types(
    registry: ChartMetadataRegistry = Depends(get_chart_metadata_registry),
):
    """Return every viz type with registered metadata."""
    return [
        {"key": key, "metadata": registry.get(key)}
        for key in registry.keys()
    ]


@router.post(
    "/data",
    response_model=ChartData,
    summary="Load everything a chart needs to render",
)
async def load_chart_data(
    data: ChartDataRequest,
    client: ChartClient = Depends(get_chart_client),
):
    """
    Resolve the chart's form data, then fetch annotations,
    datasource metadata and query results concurrently.

    Accepts a ``slice_id``, explicit ``form_data``, or both;
    explicit fields override the stored ones.
    """
    try:
        return await client.resolve_chart_data_bundle(
            data.to_selector()
        )
    except (
        MissingConfigurationError,
        UnknownVisualizationTypeError,
    ) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except AnnotationNotImplementedError as exc:
        raise HTTPException(status_code=501, detail=str(exc))
    except (ValueError, KeyError) as exc:
        # Malformed form data: bad datasource key, missing
        # field a query builder needs, invalid annotation layer.
        logger.warning("Rejected chart form data: %s", exc)
        raise HTTPException(
            status_code=400,
            detail=f"Invalid form data: {exc}",
        )
    except httpx.HTTPStatusError as exc:
        logger.warning(
            "Upstream %s %s returned %d",
            exc.request.method,
            exc.request.url,
            exc.response.status_code,
        )
        raise HTTPException(
            status_code=502,
            detail=(
                f"Upstream request failed with status "
                f"{exc.response.status_code}"
            ),
        )
    except httpx.RequestError as exc:
        logger.exception("Upstream request failed: %s", exc)
        raise HTTPException(
            status_code=502,
            detail=f"Upstream request failed: {exc}",
        )
