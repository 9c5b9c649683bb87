"""
API connection service: saved HTTP endpoints and importing their records.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import structlog
from sqlalchemy.orm import Session

from ..connectors.api_client import ApiClient
from ..db.models import MASKED, ApiConnectionModel, DataSourceModel
from ..errors import ConnectorError, NotFoundError
from ..primitives import utc_now
from ..schemas.connections import ApiConnectionCreate, ApiConnectionUpdate
from ..schemas.data_sources import DataSourceCreate
from ..schemas.enums import DataSourceType
from ..storage import StorageProvider
from .data_sources import DataSourceService

logger = structlog.get_logger()


class ApiConnectionService:
    """Service for API connections."""

    def __init__(
        self,
        db: Session,
        storage: Optional[StorageProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.db = db
        self.transport = transport
        self.sources = DataSourceService(db, storage)

    def get_or_raise(self, connection_id: str) -> ApiConnectionModel:
        connection = (
            self.db.query(ApiConnectionModel)
            .filter(ApiConnectionModel.id == connection_id)
            .first()
        )
        if not connection:
            raise NotFoundError("ApiConnection", connection_id)
        return connection

    def list(self, status: Optional[str] = None) -> List[ApiConnectionModel]:
        query = self.db.query(ApiConnectionModel)
        if status:
            query = query.filter(ApiConnectionModel.status == status)
        return query.order_by(ApiConnectionModel.name).all()

    def create(self, connection: ApiConnectionCreate) -> ApiConnectionModel:
        data = connection.model_dump(mode="json")
        db_connection = ApiConnectionModel(**data)
        self.db.add(db_connection)
        self.db.commit()
        self.db.refresh(db_connection)
        logger.info("API connection created", connection_id=db_connection.id, endpoint=db_connection.endpoint)
        return db_connection

    def update(self, connection_id: str, update: ApiConnectionUpdate) -> ApiConnectionModel:
        connection = self.get_or_raise(connection_id)
        changes = update.model_dump(mode="json", exclude_unset=True)
        if changes.get("auth_config") is not None:
            # Masked values echoed back from a read keep the stored secret
            existing = connection.auth_config or {}
            changes["auth_config"] = {
                k: existing.get(k, v) if v == MASKED else v
                for k, v in changes["auth_config"].items()
            }
        for key, value in changes.items():
            setattr(connection, key, value)
        self.db.commit()
        self.db.refresh(connection)
        return connection

    def delete(self, connection_id: str) -> None:
        connection = self.get_or_raise(connection_id)
        self.db.delete(connection)
        self.db.commit()

    def client(self, connection: ApiConnectionModel) -> ApiClient:
        return ApiClient(connection, transport=self.transport)

    def _record_status(self, connection: ApiConnectionModel, error: Optional[str]) -> None:
        connection.status = "error" if error else "active"
        connection.error_message = error
        connection.last_tested_at = utc_now()
        self.db.commit()

    async def test(self, connection_id: str) -> Dict[str, Any]:
        connection = self.get_or_raise(connection_id)
        result = await self.client(connection).test()
        self._record_status(connection, None if result["success"] else result["message"])
        logger.info("API connection tested", connection_id=connection.id, success=result["success"])
        return {**result, "status": connection.status}

    async def fetch(self, connection_id: str, max_pages: int = 10) -> Dict[str, Any]:
        connection = self.get_or_raise(connection_id)
        try:
            result = await self.client(connection).fetch(max_pages=max_pages)
        except ConnectorError as e:
            self._record_status(connection, e.message)
            raise
        self._record_status(connection, None)
        return result

    async def import_data(
        self,
        connection_id: str,
        max_pages: int = 10,
        data_source_name: Optional[str] = None,
    ) -> DataSourceModel:
        """Fetch records and store them in the connection's data source.

        The source is created on first import and refreshed afterwards.
        """
        connection = self.get_or_raise(connection_id)
        result = await self.fetch(connection_id, max_pages=max_pages)
        records = result["records"]

        source = self.sources.get(connection.data_source_id) if connection.data_source_id else None
        if source is None:
            source = self.sources.create(
                DataSourceCreate(
                    name=data_source_name or connection.name,
                    type=DataSourceType.API,
                    path=connection.endpoint,
                    configuration={
                        "api_connection_id": connection.id,
                        "endpoint": connection.endpoint,
                        "data_path": connection.data_path,
                    },
                    records=records,
                )
            )
            connection.data_source_id = source.id
            self.db.commit()
        else:
            source = self.sources.upload_records(source.id, records=records)

        logger.info(
            "API data imported",
            connection_id=connection.id,
            data_source_id=source.id,
            records=len(records),
            pages=result["pages"],
        )
        return source
