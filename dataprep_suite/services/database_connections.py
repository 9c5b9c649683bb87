"""
Database connection service: saved connections, read-only queries and
relational import into data sources.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.orm import Session

from ..config import get_settings
from ..connectors.base import DatabaseConnector
from ..connectors.sqlalchemy_connector import create_connector
from ..db.models import MASKED, DataSourceModel, DatabaseConnectionModel
from ..errors import ConflictError, ConnectorError, NotFoundError, ValidationFailedError
from ..primitives import utc_now
from ..schemas.connections import (
    DatabaseConnectionCreate,
    DatabaseConnectionUpdate,
    RelationalImportRequest,
)
from ..schemas.data_sources import DataSourceCreate
from ..schemas.enums import DataSourceType
from ..storage import StorageProvider
from .data_sources import DataSourceService
from .relational import RelationalDataService, RelationalImportOptions

logger = structlog.get_logger()

_COMMENT_RE = re.compile(r"(--[^\n]*\n?)|(/\*.*?\*/)", re.DOTALL)


def check_read_only(sql: str) -> str:
    """Return the statement if it is a single SELECT/WITH query.

    Raises:
        ValidationFailedError: For anything else
    """
    statement = _COMMENT_RE.sub(" ", sql).strip().rstrip(";").strip()
    if not statement:
        raise ValidationFailedError("Query is empty")
    if ";" in statement:
        raise ValidationFailedError("Only a single statement is allowed")
    first_word = statement.split(None, 1)[0].lower()
    if first_word not in ("select", "with"):
        raise ValidationFailedError(
            "Only SELECT queries are allowed", {"statement_type": first_word.upper()}
        )
    return statement


class DatabaseConnectionService:
    """Service for external database connections."""

    def __init__(self, db: Session, storage: Optional[StorageProvider] = None):
        self.db = db
        self.settings = get_settings()
        self.sources = DataSourceService(db, storage)

    def get_by_name(self, name: str) -> Optional[DatabaseConnectionModel]:
        return (
            self.db.query(DatabaseConnectionModel)
            .filter(DatabaseConnectionModel.name == name)
            .first()
        )

    def get_or_raise(self, connection_id: str) -> DatabaseConnectionModel:
        connection = (
            self.db.query(DatabaseConnectionModel)
            .filter(DatabaseConnectionModel.id == connection_id)
            .first()
        )
        if not connection:
            raise NotFoundError("DatabaseConnection", connection_id)
        return connection

    def list(self) -> List[DatabaseConnectionModel]:
        return self.db.query(DatabaseConnectionModel).order_by(DatabaseConnectionModel.name).all()

    def create(self, connection: DatabaseConnectionCreate) -> DatabaseConnectionModel:
        if self.get_by_name(connection.name):
            raise ConflictError(f"Database connection '{connection.name}' already exists")
        data = connection.model_dump()
        data["type"] = connection.type.value
        db_connection = DatabaseConnectionModel(**data)
        self.db.add(db_connection)
        self.db.commit()
        self.db.refresh(db_connection)
        logger.info("Database connection created", connection_id=db_connection.id, type=db_connection.type)
        return db_connection

    def update(self, connection_id: str, update: DatabaseConnectionUpdate) -> DatabaseConnectionModel:
        connection = self.get_or_raise(connection_id)
        changes = update.model_dump(exclude_unset=True)
        if "name" in changes and changes["name"] != connection.name and self.get_by_name(changes["name"]):
            raise ConflictError(f"Database connection '{changes['name']}' already exists")
        if changes.get("password") == MASKED:
            changes.pop("password")
        for key, value in changes.items():
            setattr(connection, key, value)
        connection.status = "inactive"
        self.db.commit()
        self.db.refresh(connection)
        return connection

    def delete(self, connection_id: str) -> None:
        connection = self.get_or_raise(connection_id)
        self.db.delete(connection)
        self.db.commit()

    def connector(self, connection: DatabaseConnectionModel) -> DatabaseConnector:
        return create_connector(connection, timeout=self.settings.connector_timeout_seconds)

    def test(self, connection_id: str) -> Dict[str, Any]:
        connection = self.get_or_raise(connection_id)
        try:
            with self.connector(connection) as connector:
                success = connector.test_connection()
            message = "Connection successful" if success else "Connection test query failed"
        except ConnectorError as e:
            success, message = False, e.message

        connection.status = "active" if success else "error"
        connection.error_message = None if success else message
        connection.last_tested_at = utc_now()
        self.db.commit()
        logger.info("Database connection tested", connection_id=connection.id, success=success)
        return {"success": success, "message": message, "status": connection.status}

    def schema(self, connection_id: str) -> Dict[str, Any]:
        connection = self.get_or_raise(connection_id)
        with self.connector(connection) as connector:
            return connector.get_database_schema().to_dict()

    def query(
        self,
        connection_id: str,
        sql: str,
        params: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Run a read-only query with a row limit."""
        connection = self.get_or_raise(connection_id)
        statement = check_read_only(sql)
        row_limit = min(limit or self.settings.query_row_limit, self.settings.query_row_limit)

        bound = dict(params or {})
        bound["_row_limit"] = row_limit + 1
        wrapped = f"SELECT * FROM ({statement}) AS limited_query LIMIT :_row_limit"
        with self.connector(connection) as connector:
            result = connector.execute_query(wrapped, bound)

        if result.row_count > row_limit:
            result.rows = result.rows[:row_limit]
            result.row_count = row_limit
            result.truncated = True
        return result.to_dict()

    def relationships(
        self,
        connection_id: str,
        primary_table: Optional[str] = None,
        max_depth: Optional[int] = None,
    ) -> Dict[str, Any]:
        connection = self.get_or_raise(connection_id)
        with self.connector(connection) as connector:
            service = RelationalDataService(connector)
            schema = service.analyze_schema(
                RelationalImportOptions(primary_table=primary_table or "", follow_reverse=True)
            )
            body = schema.to_dict()
            if primary_table:
                body["related_tables"] = service.discover_related_tables(
                    schema, primary_table, max_depth
                )
                body["diagram"] = service.get_relationship_diagram(schema)
        return body

    def import_relational(self, connection_id: str, request: RelationalImportRequest) -> DataSourceModel:
        """Import nested records from a primary table into a new data source."""
        connection = self.get_or_raise(connection_id)
        options = RelationalImportOptions(
            primary_table=request.primary_table,
            max_depth=request.max_depth,
            max_records=request.max_records,
            included_tables=request.included_tables,
            excluded_tables=request.excluded_tables,
            follow_reverse=request.follow_reverse,
        )

        with self.connector(connection) as connector:
            service = RelationalDataService(connector)
            records = service.import_relational_data(options)
            schema = service.analyze_schema(options)
            related = service.discover_related_tables(schema, request.primary_table, options.max_depth)
            tables = []
            for entry in related:
                info = schema.tables[entry["table"]]
                tables.append(
                    {
                        "table_name": info.name,
                        "record_count": connector.get_table_count(info.name),
                        "schema_info": [
                            {"name": c.name, "type": c.type, "nullable": c.nullable}
                            for c in info.columns
                        ],
                        "metadata": {
                            "depth": entry["depth"],
                            "primary_key": info.primary_key,
                            "foreign_keys": [
                                {
                                    "column": fk.column_name,
                                    "referenced_table": fk.referenced_table,
                                    "referenced_column": fk.referenced_column,
                                }
                                for fk in info.foreign_keys
                            ],
                        },
                    }
                )

        source = self.sources.create(
            DataSourceCreate(
                name=request.data_source_name or f"{connection.name} - {request.primary_table}",
                type=DataSourceType.DATABASE,
                configuration={
                    "database_connection_id": connection.id,
                    "database_type": connection.type,
                    "primary_table": request.primary_table,
                    "max_depth": options.max_depth,
                    "follow_reverse": request.follow_reverse,
                    "relational": True,
                },
                records=records,
            )
        )
        self.sources.replace_tables(source, tables)
        self.db.refresh(source)
        logger.info(
            "Relational data imported",
            connection_id=connection.id,
            data_source_id=source.id,
            records=len(records),
            tables=len(tables),
        )
        return source
