"""Shared constants and enums used across the application."""

from enum import StrEnum


class ExecutionStatus(StrEnum):
    """Overall status of a workflow execution."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class StepStatus(StrEnum):
    """Status of an individual step attempt."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class StepType(StrEnum):
    """Step types a workflow can be configured with."""

    API_CALL = "api_call"
    API_ENDPOINT = "api_endpoint"
    EMAIL = "email"
    CONDITIONAL_CHECK = "conditional_check"
    MULTIPART_FORM_UPLOAD = "multipart_form_upload"
    RENAME_FILE = "rename_file"


# Older configurations still carry these names.
LEGACY_STEP_TYPES: dict[str, StepType] = {
    "rename_pdf": StepType.RENAME_FILE,
    "email_action": StepType.EMAIL,
}


class ConditionOperator(StrEnum):
    """Operators understood by the conditional check step."""

    EXISTS = "exists"
    IS_NOT_NULL = "is_not_null"
    IS_NULL = "is_null"
    NOT_EXISTS = "not_exists"
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"


OPERATOR_ALIASES: dict[str, ConditionOperator] = {
    "isNotNull": ConditionOperator.IS_NOT_NULL,
    "isNull": ConditionOperator.IS_NULL,
    "notExists": ConditionOperator.NOT_EXISTS,
    "eq": ConditionOperator.EQUALS,
    "notEquals": ConditionOperator.NOT_EQUALS,
    "ne": ConditionOperator.NOT_EQUALS,
    "notContains": ConditionOperator.NOT_CONTAINS,
    "gt": ConditionOperator.GREATER_THAN,
    "lt": ConditionOperator.LESS_THAN,
    "gte": ConditionOperator.GREATER_THAN_OR_EQUAL,
    "lte": ConditionOperator.LESS_THAN_OR_EQUAL,
}


class FormatType(StrEnum):
    """Declared output format of a document type."""

    JSON = "JSON"
    CSV = "CSV"
    XML = "XML"


class ApiSourceType(StrEnum):
    """Where an API step takes its base URL and credentials from."""

    MAIN = "main"
    SECONDARY = "secondary"
    AUTH_CONFIG = "auth_config"
    INLINE = "inline"


class AttachmentSource(StrEnum):
    """Which filename the email step gives the PDF attachment."""

    RENAMED_PDF_STEP = "renamed_pdf_step"
    TRANSFORM_SETUP_PDF = "transform_setup_pdf"
    ORIGINAL_PDF = "original_pdf"
    EXTRACTION_TYPE_FILENAME = "extraction_type_filename"
    LEGACY = "legacy"


class PdfEmailStrategy(StrEnum):
    ALL_PAGES_IN_GROUP = "all_pages_in_group"
    SPECIFIC_PAGE_IN_GROUP = "specific_page_in_group"


class EmailProvider(StrEnum):
    OFFICE365 = "office365"
    GMAIL = "gmail"


class NotificationType(StrEnum):
    """Execution outcome a notification template is written for."""

    SUCCESS = "success"
    FAILURE = "failure"


class NotificationSendStatus(StrEnum):
    SENT = "sent"
    FAILED = "failed"


# Executions started from the UI; notification email steps only run otherwise
MANUAL_TRIGGER = "manual"


class TimestampFormat(StrEnum):
    """Suffix formats the rename step can append."""

    YYYYMMDD = "YYYYMMDD"
    YYYY_MM_DD = "YYYY-MM-DD"
    YYYYMMDD_HHMMSS = "YYYYMMDD_HHMMSS"
    YYYY_MM_DD_HH_MM_SS = "YYYY-MM-DD_HH-MM-SS"


TIMESTAMP_STRFTIME: dict[str, str] = {
    TimestampFormat.YYYYMMDD: "%Y%m%d",
    TimestampFormat.YYYY_MM_DD: "%Y-%m-%d",
    TimestampFormat.YYYYMMDD_HHMMSS: "%Y%m%d_%H%M%S",
    TimestampFormat.YYYY_MM_DD_HH_MM_SS: "%Y-%m-%d_%H-%M-%S",
}


# ─── Context keys ─────────────────────────────────────────

EXTRACTED_DATA_KEY = "extractedData"
ORDERS_KEY = "orders"

# Top-level keys never mirrored into extractedData
SYNC_EXCLUDED_KEYS: frozenset[str] = frozenset({
    "extractedData",
    "originalExtractedData",
    "formatType",
    "pdfFilename",
    "originalPdfFilename",
    "pdfStoragePath",
    "pdfBase64",
})

DEFAULT_RENAME_TEMPLATE = "Remit_{{pdfFilename}}"
DEFAULT_ATTACHMENT_FILENAME = "attachment.pdf"
DEFAULT_UPLOAD_FILENAME = "document.pdf"

# Upper bound on step visits in one execution (guards branch cycles)
MAX_STEP_VISITS = 1000
