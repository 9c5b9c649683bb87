"""
Database connector interface.

Connectors expose schema introspection and parameterized queries so the
relational importer does not depend on a specific database driver.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ColumnInfo:
    name: str
    type: str
    nullable: bool = True
    default: Optional[str] = None
    is_primary_key: bool = False


@dataclass
class ForeignKeyInfo:
    column_name: str
    referenced_table: str
    referenced_column: str
    constraint_name: Optional[str] = None


@dataclass
class TableInfo:
    name: str
    schema: Optional[str] = None
    columns: List[ColumnInfo] = field(default_factory=list)
    primary_key: List[str] = field(default_factory=list)
    foreign_keys: List[ForeignKeyInfo] = field(default_factory=list)
    row_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DatabaseSchema:
    tables: List[TableInfo] = field(default_factory=list)

    def get_table(self, name: str) -> Optional[TableInfo]:
        for table in self.tables:
            if table.name == name:
                return table
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {"tables": [t.to_dict() for t in self.tables]}


@dataclass
class QueryResult:
    """Rows are lists aligned with ``columns``."""

    columns: List[str]
    rows: List[List[Any]]
    row_count: int
    execution_time_ms: Optional[float] = None
    truncated: bool = False

    def records(self) -> List[Dict[str, Any]]:
        return [dict(zip(self.columns, row)) for row in self.rows]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DatabaseConnector(ABC):
    """Abstract base class for database connectors."""

    @abstractmethod
    def connect(self) -> None:
        """Open the underlying connection pool."""

    @abstractmethod
    def disconnect(self) -> None:
        """Release the connection pool."""

    @abstractmethod
    def test_connection(self) -> bool:
        """Return True when a trivial query succeeds."""

    @abstractmethod
    def get_database_schema(self, include_row_counts: bool = True) -> DatabaseSchema:
        ...

    @abstractmethod
    def execute_query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> QueryResult:
        ...

    @abstractmethod
    def escape_identifier(self, identifier: str) -> str:
        ...

    def get_table_count(self, table: str) -> int:
        result = self.execute_query(f"SELECT COUNT(*) FROM {self.escape_identifier(table)}")
        return int(result.rows[0][0]) if result.rows else 0

    def get_table_data(self, table: str, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        result = self.execute_query(
            f"SELECT * FROM {self.escape_identifier(table)} LIMIT :limit OFFSET :offset",
            {"limit": int(limit), "offset": int(offset)},
        )
        return result.records()

    def get_sample_data(self, table: str, limit: int = 100) -> List[Dict[str, Any]]:
        return self.get_table_data(table, limit=limit)

    def get_related_rows(
        self, table: str, column: str, value: Any, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Rows of ``table`` whose ``column`` equals ``value``."""
        sql = (
            f"SELECT * FROM {self.escape_identifier(table)} "
            f"WHERE {self.escape_identifier(column)} = :value"
        )
        params: Dict[str, Any] = {"value": value}
        if limit is not None:
            sql += " LIMIT :limit"
            params["limit"] = int(limit)
        return self.execute_query(sql, params).records()

    def __enter__(self) -> "DatabaseConnector":
        self.connect()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.disconnect()
