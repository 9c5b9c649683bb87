"""
SQLAlchemy-backed connector for PostgreSQL, MySQL and SQLite.
"""

from __future__ import annotations

import logging
import time
from datetime import date, datetime, time as dt_time
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError

from ..errors import ConnectorError, ValidationFailedError
from .base import ColumnInfo, DatabaseConnector, DatabaseSchema, ForeignKeyInfo, QueryResult, TableInfo

logger = logging.getLogger(__name__)

DRIVERS = {
    "postgresql": "postgresql+psycopg",
    "mysql": "mysql+pymysql",
    "sqlite": "sqlite",
}

DEFAULT_PORTS = {"postgresql": 5432, "mysql": 3306}


def build_url(
    db_type: str,
    database: str,
    host: Optional[str] = None,
    port: Optional[int] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    ssl: bool = False,
) -> URL:
    if db_type not in DRIVERS:
        raise ValidationFailedError(
            f"Unsupported database type: {db_type}", {"supported": sorted(DRIVERS)}
        )
    if db_type == "sqlite":
        return URL.create("sqlite", database=database)

    query: Dict[str, str] = {}
    if ssl:
        query = {"sslmode": "require"} if db_type == "postgresql" else {"ssl": "true"}
    return URL.create(
        DRIVERS[db_type],
        username=username,
        password=password,
        host=host,
        port=port or DEFAULT_PORTS.get(db_type),
        database=database,
        query=query,
    )


def _plain(value: Any) -> Any:
    """Convert driver values into JSON-friendly Python values."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (datetime, date, dt_time)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return value


class SQLAlchemyConnector(DatabaseConnector):
    """Connector over a SQLAlchemy engine."""

    def __init__(self, url: URL | str, db_type: str, timeout: float = 30.0):
        self.url = url
        self.db_type = db_type
        self.timeout = timeout
        self._engine: Optional[Engine] = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self.connect()
        return self._engine

    def connect(self) -> None:
        if self._engine is not None:
            return
        if self.db_type == "sqlite":
            connect_args: Dict[str, Any] = {"timeout": self.timeout}
        else:
            connect_args = {"connect_timeout": int(self.timeout)}
        try:
            self._engine = create_engine(self.url, connect_args=connect_args, pool_pre_ping=True)
        except (SQLAlchemyError, ImportError) as e:
            raise ConnectorError(str(e), "connect") from e

    def disconnect(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def test_connection(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning(f"Connection test failed: {e}")
            return False

    def escape_identifier(self, identifier: str) -> str:
        if self.db_type == "mysql":
            return "`" + identifier.replace("`", "``") + "`"
        return '"' + identifier.replace('"', '""') + '"'

    def get_database_schema(self, include_row_counts: bool = True) -> DatabaseSchema:
        try:
            inspector = inspect(self.engine)
            tables = []
            for name in sorted(inspector.get_table_names()):
                pk = inspector.get_pk_constraint(name).get("constrained_columns") or []
                columns = [
                    ColumnInfo(
                        name=col["name"],
                        type=str(col["type"]),
                        nullable=bool(col.get("nullable", True)),
                        default=None if col.get("default") is None else str(col["default"]),
                        is_primary_key=col["name"] in pk,
                    )
                    for col in inspector.get_columns(name)
                ]
                foreign_keys = []
                for fk in inspector.get_foreign_keys(name):
                    pairs = zip(fk.get("constrained_columns") or [], fk.get("referred_columns") or [])
                    for local, remote in pairs:
                        foreign_keys.append(
                            ForeignKeyInfo(
                                column_name=local,
                                referenced_table=fk["referred_table"],
                                referenced_column=remote,
                                constraint_name=fk.get("name"),
                            )
                        )
                tables.append(
                    TableInfo(
                        name=name,
                        columns=columns,
                        primary_key=list(pk),
                        foreign_keys=foreign_keys,
                        row_count=self.get_table_count(name) if include_row_counts else None,
                    )
                )
            return DatabaseSchema(tables=tables)
        except SQLAlchemyError as e:
            raise ConnectorError(str(e), "get_database_schema") from e

    def execute_query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> QueryResult:
        started = time.perf_counter()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(text(sql), params or {})
                if not result.returns_rows:
                    return QueryResult(columns=[], rows=[], row_count=result.rowcount or 0)
                columns = list(result.keys())
                rows = [[_plain(v) for v in row] for row in result.fetchall()]
        except SQLAlchemyError as e:
            raise ConnectorError(str(e.orig if getattr(e, "orig", None) else e), "execute_query") from e
        return QueryResult(
            columns=columns,
            rows=rows,
            row_count=len(rows),
            execution_time_ms=round((time.perf_counter() - started) * 1000, 2),
        )


def create_connector(connection: Any, timeout: float = 30.0) -> SQLAlchemyConnector:
    """Build a connector from a ``DatabaseConnectionModel`` (or anything shaped like one)."""
    url = build_url(
        connection.type,
        connection.database,
        host=connection.host,
        port=connection.port,
        username=connection.username,
        password=connection.password,
        ssl=bool(connection.ssl),
    )
    return SQLAlchemyConnector(url, connection.type, timeout=timeout)
