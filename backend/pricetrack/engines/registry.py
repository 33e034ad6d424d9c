"""Engine registry — maps engine ids to engine classes."""

import logging
from typing import Type

import httpx

from pricetrack.engines.base import BaseEngine, ExtractResult
from pricetrack.exceptions import EngineNotImplemented

logger = logging.getLogger(__name__)

# Engine id -> engine class mapping
_REGISTRY: dict[int, Type[BaseEngine]] = {}


def register_engine(engine_id: int, name: str):
    """Decorator to register an engine class under an id."""
    def decorator(cls: Type[BaseEngine]):
        cls.engine_id = engine_id
        cls.name = name
        _REGISTRY[engine_id] = cls
        logger.debug(f"Registered engine {engine_id}: {name}")
        return cls
    return decorator


def get_engine_class(engine_id: int) -> Type[BaseEngine] | None:
    """Look up the engine class for a given id."""
    return _REGISTRY.get(engine_id)


def list_engines() -> dict[int, str]:
    """List all registered engines as id -> name."""
    return {engine_id: cls.name for engine_id, cls in _REGISTRY.items()}


def get_engine(engine_id: int, client: httpx.Client | None = None) -> BaseEngine:
    # Import engines package to trigger @register_engine decorators
    import pricetrack.engines  # noqa: F401

    engine_class = get_engine_class(engine_id)
    if engine_class is None:
        raise EngineNotImplemented(engine_id)
    return engine_class(client=client)


def extract(engine_id: int, url: str, client: httpx.Client | None = None) -> ExtractResult:
    """Run one engine against one URL."""
    return get_engine(engine_id, client=client).extract(url)
