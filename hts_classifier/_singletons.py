# hts_classifier/_singletons.py
from functools import lru_cache
from typing import Tuple

from .catalog_build import load_catalog
from .pipeline_types import CatalogEntry


@lru_cache(maxsize=1)
def get_catalog() -> Tuple[CatalogEntry, ...]:
    return load_catalog()

