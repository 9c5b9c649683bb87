"""
Relational import: follow foreign keys from a primary table and build
nested JSON records.
"""

from __future__ import annotations

from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Set

import structlog

from ..config import get_settings
from ..connectors.base import DatabaseConnector, TableInfo
from ..errors import ConnectorError, ValidationFailedError

logger = structlog.get_logger()

MANY_TO_ONE = "many-to-one"
ONE_TO_MANY = "one-to-many"

TOP_LEVEL_CHILD_LIMIT = 100
NESTED_CHILD_LIMIT = 10
REVERSE_MAX_DEPTH = 2


@dataclass
class RelationalImportOptions:
    primary_table: str
    max_depth: Optional[int] = None
    max_records: Optional[int] = None
    included_tables: List[str] = field(default_factory=list)
    excluded_tables: List[str] = field(default_factory=list)
    follow_reverse: bool = True


@dataclass
class TableRelationship:
    from_table: str
    from_column: str
    to_table: str
    to_column: str
    relationship_type: str


@dataclass
class RelationalSchema:
    tables: Dict[str, TableInfo]
    relationships: List[TableRelationship]
    primary_table: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_table": self.primary_table,
            "tables": sorted(self.tables),
            "relationships": [asdict(r) for r in self.relationships],
        }


class RelationalDataService:
    """Builds nested records by walking a database's foreign keys."""

    def __init__(self, connector: DatabaseConnector):
        self.connector = connector
        settings = get_settings()
        self.default_max_depth = settings.relational_max_depth
        self.default_max_records = settings.relational_max_records

    def analyze_schema(self, options: RelationalImportOptions) -> RelationalSchema:
        db_schema = self.connector.get_database_schema(include_row_counts=False)
        excluded = set(options.excluded_tables)
        included = set(options.included_tables)

        tables: Dict[str, TableInfo] = {}
        for table in db_schema.tables:
            if table.name in excluded:
                continue
            if included and table.name not in included:
                continue
            tables[table.name] = table

        relationships: List[TableRelationship] = []
        for table in tables.values():
            for fk in table.foreign_keys:
                if fk.referenced_table not in tables:
                    continue
                relationships.append(
                    TableRelationship(
                        from_table=table.name,
                        from_column=fk.column_name,
                        to_table=fk.referenced_table,
                        to_column=fk.referenced_column,
                        relationship_type=MANY_TO_ONE,
                    )
                )
                if options.follow_reverse:
                    relationships.append(
                        TableRelationship(
                            from_table=fk.referenced_table,
                            from_column=fk.referenced_column,
                            to_table=table.name,
                            to_column=fk.column_name,
                            relationship_type=ONE_TO_MANY,
                        )
                    )

        logger.info(
            "Schema analyzed",
            primary_table=options.primary_table,
            tables=len(tables),
            relationships=len(relationships),
        )
        return RelationalSchema(
            tables=tables, relationships=relationships, primary_table=options.primary_table
        )

    def discover_related_tables(
        self, schema: RelationalSchema, primary_table: str, max_depth: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Tables reachable from ``primary_table`` with their breadth-first depth."""
        max_depth = self.default_max_depth if max_depth is None else max_depth
        if primary_table not in schema.tables:
            raise ValidationFailedError(f"Primary table '{primary_table}' not found in schema")

        depths = {primary_table: 0}
        queue = deque([primary_table])
        while queue:
            current = queue.popleft()
            if depths[current] >= max_depth:
                continue
            for rel in schema.relationships:
                if rel.from_table == current and rel.to_table not in depths:
                    depths[rel.to_table] = depths[current] + 1
                    queue.append(rel.to_table)
        return [{"table": name, "depth": depth} for name, depth in depths.items()]

    def import_relational_data(self, options: RelationalImportOptions) -> List[Dict[str, Any]]:
        schema = self.analyze_schema(options)
        if options.primary_table not in schema.tables:
            raise ValidationFailedError(
                f"Primary table '{options.primary_table}' not found in schema",
                {"available_tables": sorted(schema.tables)},
            )

        max_depth = self.default_max_depth if options.max_depth is None else options.max_depth
        max_records = options.max_records or self.default_max_records
        rows = self.connector.get_sample_data(options.primary_table, max_records)
        logger.info(
            "Relational import started",
            primary_table=options.primary_table,
            rows=len(rows),
            max_depth=max_depth,
        )

        results = [
            self._build_nested(options.primary_table, row, schema, 0, max_depth, set(), False)
            for row in rows
        ]
        logger.info("Relational import finished", records=len(results))
        return results

    def _build_nested(
        self,
        table: str,
        record: Dict[str, Any],
        schema: RelationalSchema,
        depth: int,
        max_depth: int,
        visited: Set[str],
        reverse: bool,
    ) -> Dict[str, Any]:
        info = schema.tables.get(table)
        pk = info.primary_key[0] if info and info.primary_key else "id"
        record_key = f"{table}_{record.get(pk)}"
        effective_max = min(max_depth, REVERSE_MAX_DEPTH) if reverse else max_depth

        if depth > 0 and (depth >= effective_max or record_key in visited):
            return {pk: record.get(pk), "_ref": table}

        branch_visited = visited | {record_key}
        result = dict(record)
        if depth >= max_depth:
            return result

        for rel in schema.relationships:
            if rel.from_table != table:
                continue
            if reverse and rel.relationship_type == ONE_TO_MANY:
                continue
            value = record.get(rel.from_column)
            if value is None:
                continue

            try:
                if rel.relationship_type == MANY_TO_ONE:
                    related = self.connector.get_related_rows(rel.to_table, rel.to_column, value, limit=1)
                    if related:
                        result[f"_{rel.to_table}"] = self._build_nested(
                            rel.to_table, related[0], schema, depth + 1, max_depth, branch_visited, False
                        )
                else:
                    limit = TOP_LEVEL_CHILD_LIMIT if depth == 0 else NESTED_CHILD_LIMIT
                    children = self.connector.get_related_rows(rel.to_table, rel.to_column, value, limit=limit)
                    if children:
                        result[f"_{rel.to_table}_list"] = [
                            self._build_nested(
                                rel.to_table, child, schema, depth + 1, max_depth, branch_visited, True
                            )
                            for child in children
                        ]
                        if len(children) == limit:
                            result[f"_{rel.to_table}_count"] = f"{limit}+"
            except ConnectorError as e:
                logger.warning(
                    "Skipping relationship",
                    from_table=rel.from_table,
                    to_table=rel.to_table,
                    error=str(e),
                )
        return result

    def get_relationship_diagram(self, schema: RelationalSchema) -> str:
        lines = [f"Primary Table: {schema.primary_table}", "", "Relationships:"]
        for rel in schema.relationships:
            arrow = "-->>" if rel.relationship_type == ONE_TO_MANY else "-->"
            lines.append(f"  {rel.from_table}.{rel.from_column} {arrow} {rel.to_table}.{rel.to_column}")
        return "\n".join(lines)
