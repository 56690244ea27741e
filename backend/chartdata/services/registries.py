"""
Registries mapping a viz type key to chart capabilities.

Two registries are kept per process:

- ``ChartMetadataRegistry``   → ``ChartMetadata`` (which API
  variant the chart queries).
- ``ChartBuildQueryRegistry`` → optional ``build_query``
  callable turning form data into a query payload.

Items are registered either as values or as loaders.  A loader
is called lazily on first lookup and may be a plain function or
a coroutine function; the build-query registry is therefore
read asynchronously.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from chartdata.schemas import ChartMetadata

logger = logging.getLogger(__name__)


class OverwritePolicy(str, Enum):
    """What happens when a key is registered twice."""

    ALLOW = "allow"
    WARN = "warn"
    PROHIBIT = "prohibit"


class _Item:
    """Registered value or loader, with its resolved value cached."""

    __slots__ = ("value", "loader", "loaded")

    def __init__(self, value=None, loader=None):
        self.value = value
        self.loader = loader
        self.loaded = loader is None


class Registry:
    """
    Keyed store of values and lazily evaluated loaders.

    Parameters:
        name (str): Label used in log messages.
        overwrite_policy (OverwritePolicy): Behaviour on
            duplicate registration.
    """

    def __init__(
        self,
        name: str = "",
        overwrite_policy: OverwritePolicy = OverwritePolicy.ALLOW,
    ):
        self.name = name
        self.overwrite_policy = OverwritePolicy(overwrite_policy)
        self._items: Dict[str, _Item] = {}

    # ----- registration ----------------------------------------------

    def _check_overwrite(self, key: str) -> None:
        if key not in self._items:
            return
        if self.overwrite_policy == OverwritePolicy.PROHIBIT:
            raise ValueError(
                f"Item with key '{key}' already exists in "
                f"registry '{self.name}'"
            )
        if self.overwrite_policy == OverwritePolicy.WARN:
            logger.warning(
                "[registry:%s] overwriting item with key '%s'",
                self.name,
                key,
            )

    def register_value(self, key: str, value: Any) -> "Registry":
        """Register a ready value under *key*."""
        self._check_overwrite(key)
        self._items[key] = _Item(value=value)
        return self

    def register_loader(
        self,
        key: str,
        loader: Callable[[], Any],
    ) -> "Registry":
        """Register a loader that produces the value on first use."""
        self._check_overwrite(key)
        self._items[key] = _Item(loader=loader)
        return self

    def remove(self, key: str) -> "Registry":
        """Drop *key* if present."""
        self._items.pop(key, None)
        return self

    def clear(self) -> "Registry":
        """Drop every registered item."""
        self._items.clear()
        return self

    # ----- lookup ----------------------------------------------------

    def has(self, key: Optional[str]) -> bool:
        """Whether *key* has a registered value or loader."""
        return key is not None and key in self._items

    def keys(self) -> List[str]:
        """Registered keys, in registration order."""
        return list(self._items)

    def get(self, key: str) -> Any:
        """
        Return the value for *key*, running a sync loader if needed.

        Returns ``None`` for unknown keys.  Loaders that return an
        awaitable must be read through ``get_as_promise``.
        """
        item = self._items.get(key)
        if item is None:
            return None
        if not item.loaded:
            result = item.loader()
            if inspect.isawaitable(result):
                # Sync callers cannot resolve it; leave it for
                # get_as_promise.
                if asyncio.iscoroutine(result):
                    result.close()
                raise TypeError(
                    f"Loader for '{key}' in registry '{self.name}' "
                    "is asynchronous; use get_as_promise()"
                )
            item.value, item.loaded = result, True
        return item.value

    async def get_as_promise(self, key: str) -> Any:
        """Return the value for *key*, awaiting an async loader."""
        item = self._items.get(key)
        if item is None:
            return None
        if not item.loaded:
            result = item.loader()
            if inspect.isawaitable(result):
                result = await result
            item.value, item.loaded = result, True
        return item.value


class ChartMetadataRegistry(Registry):
    """Viz type key → ``ChartMetadata``."""

    def __init__(self, **kwargs):
        kwargs.setdefault("name", "ChartMetadata")
        super().__init__(**kwargs)

    def get(self, key: str) -> Optional[ChartMetadata]:
        return super().get(key)


BuildQuery = Callable[[Dict[str, Any]], Any]


class ChartBuildQueryRegistry(Registry):
    """Viz type key → ``build_query`` callable, read asynchronously."""

    def __init__(self, **kwargs):
        kwargs.setdefault("name", "ChartBuildQuery")
        super().__init__(**kwargs)

    async def get(self, key: str) -> Optional[BuildQuery]:
        return await self.get_as_promise(key)


# Process-wide registries populated at startup.
_chart_metadata_registry = ChartMetadataRegistry()
_chart_build_query_registry = ChartBuildQueryRegistry()


def get_chart_metadata_registry() -> ChartMetadataRegistry:
    """Return the shared chart metadata registry."""
    return _chart_metadata_registry


def get_chart_build_query_registry() -> ChartBuildQueryRegistry:
    """Return the shared build-query registry."""
    return _chart_build_query_registry
