"""
Canonical enums for the Data Preparedness Suite.

Stored as plain strings on the models; these enums define the allowed values
accepted by the API.
"""

from enum import Enum


class DataSourceType(str, Enum):
    """Where a data source's records come from."""

    DATABASE = "database"
    API = "api"
    FILE = "file"
    JSON = "json"
    SYNTHETIC = "synthetic"


class PatternType(str, Enum):
    """Sensitive-data pattern families."""

    PII = "PII"
    FINANCIAL = "FINANCIAL"
    MEDICAL = "MEDICAL"
    CLASSIFICATION = "CLASSIFICATION"
    CUSTOM = "CUSTOM"


class FeedbackType(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


class FeedbackContext(str, Enum):
    """Where the judged match was shown to the user."""

    DETECTION = "detection"
    ANNOTATION = "annotation"
    REDACTION = "redaction"
    SCAN = "scan"


class RedactionStyle(str, Enum):
    FULL = "full"
    PARTIAL = "partial"
    TOKEN = "token"
    MASK = "mask"


class CatalogDataType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    EMAIL = "email"
    PHONE = "phone"
    CURRENCY = "currency"
    ENUM = "enum"
    OBJECT = "object"
    ARRAY = "array"


class TransformationType(str, Enum):
    DIRECT = "direct"
    FORMAT = "format"
    LOOKUP = "lookup"
    CALCULATION = "calculation"
    CONDITIONAL = "conditional"


class SemanticType(str, Enum):
    IDENTIFIER = "identifier"
    TIMESTAMP = "timestamp"
    METRIC = "metric"
    CATEGORY = "category"
    TEXT = "text"
    PII = "pii"
    OTHER = "other"


class SensitivityLevel(str, Enum):
    PUBLIC = "public"
    INTERNAL = "internal"
    CONFIDENTIAL = "confidential"
    RESTRICTED = "restricted"


class AuthType(str, Enum):
    NONE = "none"
    API_KEY = "api-key"
    BEARER = "bearer"
    BASIC = "basic"


class PaginationType(str, Enum):
    NONE = "none"
    OFFSET = "offset"
    PAGE = "page"
    CURSOR = "cursor"


class ConnectionStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"


class DatabaseType(str, Enum):
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    SQLITE = "sqlite"


class PipelineStatus(str, Enum):
    """Pipeline lifecycle states."""

    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


class OutputFormat(str, Enum):
    JSON = "json"
    CSV = "csv"
    SQL = "sql"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RuleType(str, Enum):
    """A validation rule flags records that satisfy its conditions."""

    VALIDATION = "validation"
    TRANSFORMATION = "transformation"
    ALERT = "alert"


class RuleStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DRAFT = "draft"


class RulePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class LogicalOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class ConditionOperator(str, Enum):
    """Operators understood by the quality rule evaluator."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    REGEX_MATCH = "regex_match"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_OR_EQUAL = "greater_or_equal"
    LESS_OR_EQUAL = "less_or_equal"
    BETWEEN = "between"
    IN_LIST = "in_list"
    NOT_IN_LIST = "not_in_list"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    DATE_BEFORE = "date_before"
    DATE_AFTER = "date_after"
    DATE_BETWEEN = "date_between"


class RuleActionType(str, Enum):
    FLAG_VIOLATION = "flag_violation"
    LOG_ISSUE = "log_issue"
    SEND_ALERT = "send_alert"
