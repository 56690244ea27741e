"""
Pydantic schemas for chart data requests and responses.

Covers the selector that picks which form data to load,
annotation layer descriptors, chart metadata kept in the
registries, and the merged ``ChartData`` bundle.
"""

from typing import Optional, List, Any, Dict, Mapping, Union, Literal, Annotated
from pydantic import BaseModel, Field

from chartdata.exceptions import MissingConfigurationError


# --- Selector variants ---------------------------------

class StoredOnly(BaseModel):
    """Load the form data stored for a saved chart (slice)."""

    kind: Literal["stored"] = "stored"
    slice_id: int


class ExplicitOnly(BaseModel):
    """Use caller-supplied form data as-is."""

    kind: Literal["explicit"] = "explicit"
    form_data: Dict[str, Any]


class Both(BaseModel):
    """Load stored form data, then override it with explicit fields."""

    kind: Literal["both"] = "both"
    slice_id: int
    form_data: Dict[str, Any]


Selector = Annotated[
    Union[StoredOnly, ExplicitOnly, Both],
    Field(discriminator="kind"),
]

SELECTOR_TYPES = (StoredOnly, ExplicitOnly, Both)


def make_selector(
    slice_id: Optional[int] = None,
    form_data: Optional[Dict[str, Any]] = None,
):
    """
    Build the selector variant matching the supplied fields.

    Parameters:
        slice_id (int, optional): Id of a saved chart.
        form_data (dict, optional): Explicit form data.

    Returns:
        StoredOnly | ExplicitOnly | Both: The selector.

    Raises:
        MissingConfigurationError: If both fields are absent.
    """
    if slice_id is not None and form_data is not None:
        return Both(slice_id=slice_id, form_data=form_data)
    if slice_id is not None:
        return StoredOnly(slice_id=slice_id)
    if form_data is not None:
        return ExplicitOnly(form_data=form_data)
    raise MissingConfigurationError()


def coerce_selector(value) -> Union[StoredOnly, ExplicitOnly, Both]:
    """
    Turn a selector or a plain mapping into a selector.

    Mappings may use ``slice_id`` / ``form_data`` or the
    camelCase ``sliceId`` / ``formData`` keys.
    """
    if isinstance(value, SELECTOR_TYPES):
        return value
    if isinstance(value, Mapping):
        slice_id = value.get("slice_id", value.get("sliceId"))
        form_data = value.get("form_data", value.get("formData"))
        return make_selector(slice_id=slice_id, form_data=form_data)
    raise TypeError(
        f"Cannot build a chart selector from {type(value).__name__}"
    )


# --- Annotations ---------------------------------------

class AnnotationLayer(BaseModel):
    """
    An annotation layer attached to a chart's form data.

    Layers without a ``source_type`` are static and need no
    query.  Layer-specific parameters are kept as extra fields.
    """

    name: str
    source_type: Optional[str] = Field(
        default=None, alias="sourceType",
    )

    model_config = {"extra": "allow", "populate_by_name": True}


# --- Registry metadata ---------------------------------

class ChartMetadata(BaseModel):
    """Static description of a chart plugin."""

    name: str
    description: str = ""
    use_legacy_api: bool = False
    show: bool = True
    supported_annotation_types: List[str] = []
    can_be_annotation_types: List[str] = []


class ChartTypeResponse(BaseModel):
    """Schema for a registered viz type in API responses."""

    key: str
    metadata: ChartMetadata


# --- Chart data ----------------------------------------

class ChartData(BaseModel):
    """Everything a chart needs to render, loaded in one go."""

    annotation_data: Dict[str, Dict[str, Any]] = {}
    datasource: Any = None
    form_data: Dict[str, Any]
    query_data: Any = None


class ChartDataRequest(BaseModel):
    """Schema for requesting a chart data bundle over HTTP."""

    slice_id: Optional[int] = Field(default=None, ge=1)
    form_data: Optional[Dict[str, Any]] = None

    def to_selector(self):
        """Convert the request body into a selector variant."""
        return make_selector(
            slice_id=self.slice_id,
            form_data=self.form_data,
        )
