"""
Database package for the Data Preparedness Suite.
"""

from .base import Base, get_db, get_engine, get_session_local, init_database
from .models import (
    ApiConnectionModel,
    CatalogCategoryModel,
    CatalogFieldModel,
    DatabaseConnectionModel,
    DataSourceModel,
    DataSourceTableModel,
    FieldAnnotationModel,
    FieldMappingModel,
    PatternModel,
    PipelineModel,
    QualityRuleModel,
    RuleExecutionModel,
    SyntheticDataJobModel,
    SyntheticDatasetModel,
)

__all__ = [
    "Base",
    "get_db",
    "get_engine",
    "get_session_local",
    "init_database",
    "ApiConnectionModel",
    "CatalogCategoryModel",
    "CatalogFieldModel",
    "DatabaseConnectionModel",
    "DataSourceModel",
    "DataSourceTableModel",
    "FieldAnnotationModel",
    "FieldMappingModel",
    "PatternModel",
    "PipelineModel",
    "QualityRuleModel",
    "RuleExecutionModel",
    "SyntheticDataJobModel",
    "SyntheticDatasetModel",
]
