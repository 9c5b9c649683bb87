"""
Connectors to external databases and HTTP APIs.
"""

from .api_client import ApiClient, extract_path
from .base import (
    ColumnInfo,
    DatabaseConnector,
    DatabaseSchema,
    ForeignKeyInfo,
    QueryResult,
    TableInfo,
)
from .sqlalchemy_connector import SQLAlchemyConnector, build_url, create_connector

__all__ = [
    "ApiClient",
    "ColumnInfo",
    "DatabaseConnector",
    "DatabaseSchema",
    "ForeignKeyInfo",
    "QueryResult",
    "SQLAlchemyConnector",
    "TableInfo",
    "build_url",
    "create_connector",
    "extract_path",
]
