"""
Data Preparedness Suite

Catalogs data sources, detects sensitive fields, maps fields to a canonical
schema, runs data-quality rules and generates synthetic datasets.
"""

import importlib.metadata

try:
    __version__ = importlib.metadata.version("dataprep-suite")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"

from .config import Settings, get_settings
from .errors import (
    ConflictError,
    ConnectorError,
    DataPrepError,
    NotFoundError,
    StorageError,
    ValidationFailedError,
)

__all__ = [
    "ConflictError",
    "ConnectorError",
    "DataPrepError",
    "NotFoundError",
    "Settings",
    "StorageError",
    "ValidationFailedError",
    "get_settings",
]
