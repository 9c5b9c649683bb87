"""
Data source service: CRUD, record storage, tables and profiling.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import desc
from sqlalchemy.orm import Session

from ..db.models import DataSourceModel, DataSourceTableModel
from ..errors import NotFoundError, ValidationFailedError
from ..primitives import utc_now
from ..schemas.data_sources import DataSourceCreate, DataSourceUpdate
from ..storage import StorageProvider, get_storage
from .profiling import profile_records
from .records import field_names, parse_csv

logger = structlog.get_logger()


def records_key(data_source_id: str) -> str:
    return f"data-sources/{data_source_id}/records.json"


def transformed_key(data_source_id: str) -> str:
    return f"data-sources/{data_source_id}/transformed.json"


class DataSourceService:
    """Service for managing data sources and their stored records."""

    def __init__(self, db: Session, storage: Optional[StorageProvider] = None):
        self.db = db
        self.storage = storage or get_storage()

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self, source: DataSourceCreate) -> DataSourceModel:
        """Create a data source, uploading initial records if given."""
        db_source = DataSourceModel(
            name=source.name,
            type=source.type.value,
            path=source.path,
            configuration=source.configuration,
            meta=source.metadata,
            tags=source.tags,
            user_summary=source.user_summary,
            record_count=0,
        )
        self.db.add(db_source)
        self.db.commit()
        self.db.refresh(db_source)
        logger.info("Data source created", data_source_id=db_source.id, type=db_source.type)

        if source.records is not None:
            self.upload_records(db_source.id, records=source.records)
        return db_source

    def get(self, data_source_id: str) -> Optional[DataSourceModel]:
        return (
            self.db.query(DataSourceModel)
            .filter(DataSourceModel.id == data_source_id)
            .first()
        )

    def get_or_raise(self, data_source_id: str) -> DataSourceModel:
        source = self.get(data_source_id)
        if not source:
            raise NotFoundError("DataSource", data_source_id)
        return source

    def list(
        self,
        source_type: Optional[str] = None,
        tag: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[DataSourceModel]:
        """List data sources, newest first."""
        query = self.db.query(DataSourceModel)
        if source_type:
            query = query.filter(DataSourceModel.type == source_type)
        query = query.order_by(desc(DataSourceModel.created_at))

        if tag:
            # tags live in a JSON column; filter portably in Python
            matching = [s for s in query.all() if tag in (s.tags or [])]
            return matching[offset : offset + limit]

        return query.offset(offset).limit(limit).all()

    def list_all(self) -> List[DataSourceModel]:
        return self.db.query(DataSourceModel).order_by(DataSourceModel.name).all()

    def update(self, data_source_id: str, update: DataSourceUpdate) -> DataSourceModel:
        source = self.get_or_raise(data_source_id)
        changes = update.model_dump(exclude_unset=True)
        if "metadata" in changes:
            source.meta = changes.pop("metadata")
        if "user_summary" in changes or "ai_summary" in changes:
            source.summary_updated_at = utc_now()
        for key, value in changes.items():
            setattr(source, key, value)
        self.db.commit()
        self.db.refresh(source)
        return source

    def delete(self, data_source_id: str) -> None:
        source = self.get_or_raise(data_source_id)
        if source.storage_key:
            self.storage.delete(source.storage_key)
        self.storage.delete(transformed_key(source.id))
        self.db.delete(source)
        self.db.commit()
        logger.info("Data source deleted", data_source_id=data_source_id)

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def upload_records(
        self,
        data_source_id: str,
        records: Optional[List[Dict[str, Any]]] = None,
        csv_text: Optional[str] = None,
    ) -> DataSourceModel:
        """Persist records as a JSON blob and refresh the source's counters."""
        source = self.get_or_raise(data_source_id)
        if csv_text is not None:
            records = parse_csv(csv_text)
        if records is None:
            raise ValidationFailedError("No records supplied")
        if any(not isinstance(r, dict) for r in records):
            raise ValidationFailedError("Every record must be a JSON object")

        key = self.storage.put_json(records_key(source.id), records)
        self.storage.delete(transformed_key(source.id))
        source.storage_key = key
        source.storage_provider = self.storage.name
        source.record_count = len(records)
        source.original_field_names = field_names(records)
        self.db.commit()
        self.db.refresh(source)
        logger.info(
            "Records uploaded",
            data_source_id=source.id,
            record_count=source.record_count,
        )
        return source

    def load_records(self, source: DataSourceModel) -> List[Dict[str, Any]]:
        """All stored records for a source (empty if none were uploaded)."""
        if not source.storage_key:
            return []
        data = self.storage.get_json(source.storage_key)
        return data if isinstance(data, list) else []

    def get_records(
        self, data_source_id: str, limit: int = 100, offset: int = 0
    ) -> Dict[str, Any]:
        source = self.get_or_raise(data_source_id)
        records = self.load_records(source)
        return {
            "data_source_id": source.id,
            "total": len(records),
            "limit": limit,
            "offset": offset,
            "records": records[offset : offset + limit],
        }

    # ------------------------------------------------------------------
    # Summaries and tables
    # ------------------------------------------------------------------

    def update_summary(self, data_source_id: str, user_summary: Optional[str]) -> DataSourceModel:
        source = self.get_or_raise(data_source_id)
        source.user_summary = user_summary
        source.summary_updated_at = utc_now()
        self.db.commit()
        self.db.refresh(source)
        return source

    def list_tables(self, data_source_id: str) -> List[DataSourceTableModel]:
        self.get_or_raise(data_source_id)
        return (
            self.db.query(DataSourceTableModel)
            .filter(DataSourceTableModel.data_source_id == data_source_id)
            .order_by(DataSourceTableModel.table_index)
            .all()
        )

    def replace_tables(
        self, source: DataSourceModel, tables: List[Dict[str, Any]]
    ) -> List[DataSourceTableModel]:
        """Replace a source's table entries.

        Each table dict carries ``table_name``, ``record_count``,
        ``schema_info`` and optional ``metadata``.
        """
        for existing in list(source.tables):
            self.db.delete(existing)
        self.db.flush()

        created = []
        for index, table in enumerate(tables):
            db_table = DataSourceTableModel(
                data_source_id=source.id,
                table_name=table["table_name"],
                table_index=index,
                record_count=table.get("record_count", 0),
                schema_info=table.get("schema_info", []),
                meta=table.get("metadata", {}),
            )
            self.db.add(db_table)
            created.append(db_table)
        self.db.commit()
        return created

    def update_table_summary(
        self, data_source_id: str, table_id: str, user_summary: Optional[str]
    ) -> DataSourceTableModel:
        table = (
            self.db.query(DataSourceTableModel)
            .filter(
                DataSourceTableModel.id == table_id,
                DataSourceTableModel.data_source_id == data_source_id,
            )
            .first()
        )
        if not table:
            raise NotFoundError("DataSourceTable", table_id)
        table.user_summary = user_summary
        table.summary_updated_at = utc_now()
        self.db.commit()
        self.db.refresh(table)
        return table

    def profile(self, data_source_id: str) -> Dict[str, Any]:
        source = self.get_or_raise(data_source_id)
        profile = profile_records(self.load_records(source))
        profile["data_source_id"] = source.id
        profile["data_source_name"] = source.name
        return profile

    # ------------------------------------------------------------------
    # Query routing
    # ------------------------------------------------------------------

    def relevant_sources(self, query: str, top_n: int = 3) -> List[str]:
        """Ids of the data sources whose keywords and name best match a query.

        Each keyword scores +10 on an exact term match, else +5 on partial
        containment either way; a term contained in the name adds +8.
        """
        terms = [t for t in query.lower().split() if len(t) > 2]
        scores = []
        for source in self.list_all():
            if not source.ai_keywords:
                continue
            score = 0
            for keyword in source.ai_keywords:
                keyword_lower = str(keyword).lower()
                if keyword_lower in terms:
                    score += 10
                elif any(keyword_lower in t or t in keyword_lower for t in terms):
                    score += 5
            name_lower = source.name.lower()
            if any(t in name_lower for t in terms):
                score += 8
            if score > 0:
                scores.append((score, source.id))

        scores.sort(key=lambda item: item[0], reverse=True)
        relevant = [source_id for _, source_id in scores[:top_n]]
        logger.info("Relevant sources ranked", query=query, matched=len(relevant))
        return relevant
