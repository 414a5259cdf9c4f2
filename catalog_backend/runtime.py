"""
Process-wide wiring for the Book Catalog API

Settings are read and the storage mode selected once, on first use; handlers
receive the resulting Runtime instead of consulting the environment again.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from catalog_backend.config import Settings, load_settings
from catalog_backend.services.catalog import CatalogService
from catalog_backend.storage.mode import Backends, select_mode


@dataclass(frozen=True)
class Runtime:
    settings: Settings
    backends: Backends
    catalog: CatalogService


def build_runtime(settings: Settings) -> Runtime:
    backends = select_mode(settings)
    return Runtime(settings=settings, backends=backends, catalog=CatalogService(backends))


@lru_cache(maxsize=1)
def get_runtime() -> Runtime:
    """The Runtime for this process, built from the environment on first call."""
    return build_runtime(load_settings())
