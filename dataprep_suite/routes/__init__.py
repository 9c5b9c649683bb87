"""
API routers. Each module exposes ``router``, mounted under ``/api``.
"""

from . import (
    annotations,
    api_connections,
    catalog,
    dashboard,
    data_sources,
    database_connections,
    patterns,
    pipelines,
    quality_rules,
    query,
    synthetic,
)

ROUTERS = [
    data_sources.router,
    patterns.router,
    catalog.router,
    annotations.router,
    api_connections.router,
    database_connections.router,
    pipelines.router,
    synthetic.router,
    quality_rules.router,
    query.router,
    dashboard.router,
]

__all__ = ["ROUTERS"]
