"""
Error types raised by the chart data client.

Transport failures (``httpx.HTTPStatusError`` and
``httpx.RequestError``) are not listed here: they reach the
caller unwrapped.
"""


class ChartClientError(Exception):
    """Base class for errors raised by the chart client itself."""


class MissingConfigurationError(ChartClientError, ValueError):
    """Neither a slice id nor explicit form data was supplied."""

    def __init__(self, message: str = (
        "At least one of slice_id or form_data must be specified"
    )):
        super().__init__(message)


class UnknownVisualizationTypeError(ChartClientError, LookupError):
    """
    The form data names a viz type with no registered metadata.

    Attributes:
        viz_type (str | None): The offending visualization key.
    """

    def __init__(self, viz_type):
        self.viz_type = viz_type
        super().__init__(f"Unknown chart type: {viz_type}")


class AnnotationNotImplementedError(ChartClientError, NotImplementedError):
    """Querying annotation layers that carry a source type."""

    def __init__(self, layer_name: str = ""):
        self.layer_name = layer_name
        super().__init__("This feature is not implemented yet.")
