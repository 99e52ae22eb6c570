"""Pydantic models and closed enums for pipeline form state and validation.

Raw form state from the dashboard is parsed into these models before any
generation happens.  Form fields the generators do not read are kept in
``model_extra``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field


# ---------------------------------------------------------------------------
# Closed vocabularies
# ---------------------------------------------------------------------------

class ScheduleType(str, Enum):
    MANUAL = "manual"
    EVERY_MINUTES = "every_minutes"
    EVERY_HOURS = "every_hours"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"
    EVENT_DRIVEN = "event_driven"

    @property
    def is_cron_driven(self) -> bool:
        return self in _CRON_DRIVEN

    @property
    def requires_cron(self) -> bool:
        """Presets (hourly, daily, ...) carry their own trigger."""
        return self in _CRON_REQUIRED

    @classmethod
    def parse(cls, value: Any) -> ScheduleType | None:
        """Return the member for *value*, or ``None`` when unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


_CRON_DRIVEN = frozenset({
    ScheduleType.EVERY_MINUTES,
    ScheduleType.EVERY_HOURS,
    ScheduleType.HOURLY,
    ScheduleType.DAILY,
    ScheduleType.WEEKLY,
    ScheduleType.MONTHLY,
    ScheduleType.CUSTOM,
})

_CRON_REQUIRED = frozenset({
    ScheduleType.EVERY_MINUTES,
    ScheduleType.EVERY_HOURS,
    ScheduleType.CUSTOM,
})


class SensorType(str, Enum):
    FILE_WATCHER = "file_watcher"
    S3_EVENT = "s3_event"
    DB_SENSOR = "db_sensor"
    SFTP_SENSOR = "sftp_sensor"
    API_WEBHOOK = "api_webhook"
    UPSTREAM_JOB = "upstream_job"


class OperatorKind(str, Enum):
    PYTHON = "PythonOperator"
    SPARK_SUBMIT = "SparkSubmitOperator"
    CUSTOM_TEMPLATE = "custom_template"


class LoadMethod(str, Enum):
    APPEND = "append"
    REPLACE = "replace"
    UPSERT = "upsert"
    MERGE = "merge"


class TemplateSourceType(str, Enum):
    ANY = "any"
    FLAT_FILE = "flat_file"
    DATABASE = "database"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


def enum_values(enum_cls: type[Enum]) -> list[str]:
    """Values of *enum_cls* in declaration order."""
    return [member.value for member in enum_cls]


# ---------------------------------------------------------------------------
# Connections
# ---------------------------------------------------------------------------

class Connection(BaseModel):
    """A saved source/target connection as stored in the entity store."""

    model_config = ConfigDict(extra="allow")

    id: str | int | None = None
    name: str = ""
    platform: str = ""
    status: str = "active"
    host: str | None = None
    port: str | int | None = None
    database: str | None = None
    username: str | None = None
    auth_method: str | None = None
    region: str | None = None
    bucket_container: str | None = None
    file_config: dict[str, Any] = {}
    notes: str | None = None


# ---------------------------------------------------------------------------
# Pipeline form state
# ---------------------------------------------------------------------------

class DatasetSelection(BaseModel):
    """One selected table (or file unit) in the pipeline form."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    # ``schema`` would shadow a BaseModel attribute
    schema_: str | None = Field(default=None, alias="schema")
    table: str | None = None
    target_path: str | None = None
    filter_query: str | None = None
    incremental_column: str | None = None
    load_method: str | None = None


class RetryConfig(BaseModel):
    max_retries: int | None = None
    retry_delay_seconds: int | None = None
    retry_exponential_backoff: bool = False


class EventConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    watch_path: str | None = None
    sql_condition: str | None = None
    upstream_job: str | None = None
    poll_interval: str | int | None = None
    timeout_hours: str | int | None = None
    sensor_mode: str | None = None
    soft_fail: bool = False


class SparkConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    application: str | None = None
    executor_memory: str | None = None
    executor_cores: str | int | None = None
    driver_memory: str | None = None
    py_files: str | None = None


class PythonConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    callable: str | None = None
    module: str | None = None


class SourceFile(BaseModel):
    model_config = ConfigDict(extra="allow")

    file_name: str | None = None


class PipelineState(BaseModel):
    """Pipeline form state as sent by the dashboard.

    Only the fields the generators read are declared; anything else the
    form sends is preserved in ``model_extra``.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str | int | None = None
    name: str | None = None
    description: str | None = None

    source_connection_id: str | int | None = None
    target_connection_id: str | int | None = None
    selected_datasets: list[DatasetSelection] = Field(
        default_factory=list, alias="selected_objects"
    )
    load_method: str | None = None
    column_mappings: dict[str, Any] = {}
    dq_rules: dict[str, Any] = {}
    advanced_features: dict[str, Any] | None = None

    # -- schedule ------------------------------------------------------------
    schedule_type: str | None = None
    cron_expression: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    catchup: bool = False
    is_paused_upon_creation: bool = True
    max_active_runs: int | None = None
    concurrency: int | None = None
    dagrun_timeout: int | None = None
    use_custom_calendar: bool = False
    include_calendar_id: str | None = None
    exclude_calendar_id: str | None = None
    custom_include_dates: str | None = None
    custom_exclude_dates: str | None = None
    event_sensor_type: str | None = None
    event_config: EventConfig | None = None

    # -- failure handling / ownership ---------------------------------------
    retry_config: RetryConfig | None = None
    email: str | None = None
    email_on_retry: bool = False
    sla_seconds: int | None = None
    execution_timeout: int | None = None
    depends_on_past: bool = False
    wait_for_downstream: bool = False
    assignment_group: str | None = None
    priority_weight: int | None = None
    pool: str | None = None
    dag_tags: list[str] = []

    # -- execution -----------------------------------------------------------
    operator_type: str | None = None
    spark_config: SparkConfig | None = None
    python_config: PythonConfig | None = None
    custom_template: str | None = None
    dag_callable_base_path: str | None = None
    dag_template_id: str | None = None

    # -- flat-file sourcing --------------------------------------------------
    file_source_mode: str | None = None
    file_source_folder: str | None = None
    file_source_wildcard: str | None = None
    file_source_list: list[SourceFile] = []


# ---------------------------------------------------------------------------
# Validation results
# ---------------------------------------------------------------------------

class ValidationIssue(BaseModel):
    path: str
    message: str
    severity: Severity


class ValidationResult(BaseModel):
    """Errors block validity; warnings are surfaced but never block."""

    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    @computed_field  # type: ignore[prop-decorator]
    @property
    def valid(self) -> bool:
        return not self.errors

    def add_error(self, path: str, message: str) -> None:
        self.errors.append(
            ValidationIssue(path=path, message=message, severity=Severity.ERROR)
        )

    def add_warning(self, path: str, message: str) -> None:
        self.warnings.append(
            ValidationIssue(path=path, message=message, severity=Severity.WARNING)
        )
