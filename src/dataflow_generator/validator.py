"""Structural validation of the canonical pipeline spec document.

``validate_spec`` walks the document depth-first and records one
``ValidationIssue`` per problem, each with a JSONPath-like ``path`` to the
offending field.  Structural problems are errors; empty-but-optional and
risky-but-legal settings are warnings.  The function is pure and never
raises on malformed input.
"""

from __future__ import annotations

from typing import Any

from dataflow_generator.cron import get_cron_minute_interval, validate_cron
from dataflow_generator.models import (
    LoadMethod,
    OperatorKind,
    ScheduleType,
    SensorType,
    ValidationResult,
    enum_values,
)

API_VERSION = "dataflow/v1"
KIND = "IngestionPipeline"

_LOAD_METHODS = enum_values(LoadMethod)
_OPERATORS = enum_values(OperatorKind)
_SCHEDULE_TYPES = enum_values(ScheduleType)
_SENSOR_TYPES = enum_values(SensorType)

# sensor type -> (config field, warning message)
_SENSOR_REQUIRED_CONFIG: dict[SensorType, tuple[str, str]] = {
    SensorType.FILE_WATCHER: (
        "watch_path", "Watch path is empty — sensor may not trigger correctly"
    ),
    SensorType.SFTP_SENSOR: (
        "watch_path", "Watch path is empty — sensor may not trigger correctly"
    ),
    SensorType.S3_EVENT: (
        "watch_path", "Watch path is empty — sensor may not trigger correctly"
    ),
    SensorType.DB_SENSOR: (
        "sql_condition", "SQL condition is empty — sensor may not trigger correctly"
    ),
    SensorType.UPSTREAM_JOB: ("upstream_job", "Upstream job name is empty"),
}


def _is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _one_of(values: list[str]) -> str:
    return "Must be one of: " + ", ".join(values)


def validate_spec(spec: Any) -> ValidationResult:
    """Validate a canonical pipeline spec document."""
    result = ValidationResult()

    if not isinstance(spec, dict):
        result.add_error("", "Spec must be a non-null object")
        return result

    if spec.get("apiVersion") != API_VERSION:
        result.add_error(
            "apiVersion",
            f"Must be {API_VERSION}, got {spec.get('apiVersion') or '(missing)'}",
        )
    if spec.get("kind") != KIND:
        result.add_error(
            "kind", f"Must be {KIND}, got {spec.get('kind') or '(missing)'}"
        )

    _check_metadata(spec.get("metadata"), result)

    body = spec.get("spec")
    if not isinstance(body, dict):
        result.add_error("spec", "Spec body is required")
        return result

    _check_connections(body, result)
    _check_datasets(body.get("datasets"), result)
    _check_schedule(body.get("schedule"), result)
    _check_execution(body.get("execution"), result)
    _check_retry(body.get("retry"), result)

    if not body.get("column_mappings"):
        result.add_warning(
            "spec.column_mappings",
            "No column mappings defined — source columns will pass through unchanged",
        )

    return result


# ---------------------------------------------------------------------------
# Section checks
# ---------------------------------------------------------------------------

def _check_metadata(meta: Any, result: ValidationResult) -> None:
    if not isinstance(meta, dict):
        result.add_error("metadata", "Metadata section is required")
        return
    if not _is_non_empty_string(meta.get("name")):
        result.add_error("metadata.name", "Pipeline name is required")
    if not _is_non_empty_string(meta.get("description")):
        result.add_warning(
            "metadata.description",
            "Description is empty — consider adding one for documentation",
        )


def _connection_id(section: Any) -> Any:
    if isinstance(section, dict):
        return section.get("connection_id")
    return None


def _check_connections(body: dict[str, Any], result: ValidationResult) -> None:
    source_id = _connection_id(body.get("source"))
    target_id = _connection_id(body.get("target"))

    if not source_id:
        result.add_error("spec.source.connection_id", "Source connection ID is required")
    if not target_id:
        result.add_error("spec.target.connection_id", "Target connection ID is required")
    if source_id and target_id and source_id == target_id:
        result.add_error(
            "spec.target.connection_id",
            "Source and target connections must be different",
        )


def _check_datasets(datasets: Any, result: ValidationResult) -> None:
    if not isinstance(datasets, list) or not datasets:
        result.add_error("spec.datasets", "At least one dataset is required")
        return

    for i, ds in enumerate(datasets):
        prefix = f"spec.datasets[{i}]"
        if not isinstance(ds, dict):
            result.add_error(prefix, "Dataset must be an object")
            continue

        if not _is_non_empty_string(ds.get("schema")):
            result.add_error(f"{prefix}.schema", "Schema is required")
        if not _is_non_empty_string(ds.get("table")):
            result.add_error(f"{prefix}.table", "Table name is required")

        load_method = ds.get("load_method")
        if load_method and load_method not in _LOAD_METHODS:
            result.add_error(f"{prefix}.load_method", _one_of(_LOAD_METHODS))

        if not ds.get("target_path"):
            result.add_warning(
                f"{prefix}.target_path",
                "Target path is empty — will use default destination",
            )
        if not ds.get("filter_query"):
            result.add_warning(
                f"{prefix}.filter_query",
                "No filter query — full table will be ingested",
            )

        execution = ds.get("execution")
        if isinstance(execution, dict):
            operator = execution.get("operator")
            if operator and operator not in _OPERATORS:
                result.add_error(f"{prefix}.execution.operator", _one_of(_OPERATORS))


def _check_schedule(schedule: Any, result: ValidationResult) -> None:
    if not isinstance(schedule, dict):
        result.add_error("spec.schedule", "Schedule section is required")
        return

    kind = ScheduleType.parse(schedule.get("type"))
    if kind is None:
        result.add_error("spec.schedule.type", _one_of(_SCHEDULE_TYPES))
        return

    if kind.is_cron_driven:
        _check_cron(schedule.get("cron_expression"), kind, result)
    elif kind is ScheduleType.EVENT_DRIVEN:
        _check_event_sensor(schedule.get("event_sensor"), result)


def _check_cron(expression: Any, kind: ScheduleType, result: ValidationResult) -> None:
    path = "spec.schedule.cron_expression"
    if not _is_non_empty_string(expression):
        if kind.requires_cron:
            result.add_error(path, "Cron expression is required for this schedule type")
        return

    cron = validate_cron(expression)
    if not cron.valid:
        result.add_error(path, f"Invalid cron: {cron.error}")
        return

    interval = get_cron_minute_interval(expression)
    if interval is not None and interval <= 1:
        result.add_warning(
            path,
            "Cron runs every minute or more frequently — this may cause excessive load",
        )


def _check_event_sensor(sensor: Any, result: ValidationResult) -> None:
    if not isinstance(sensor, dict):
        result.add_error(
            "spec.schedule.event_sensor",
            "Event sensor configuration is required for event-driven schedules",
        )
        return

    sensor_type: SensorType | None
    try:
        sensor_type = SensorType(sensor.get("sensor_type"))
    except ValueError:
        sensor_type = None
        result.add_error(
            "spec.schedule.event_sensor.sensor_type", _one_of(_SENSOR_TYPES)
        )

    config = sensor.get("config")
    if sensor_type is None or not isinstance(config, dict):
        return

    # Advisory only: a sensor may be left unconfigured while drafting.
    required = _SENSOR_REQUIRED_CONFIG.get(sensor_type)
    if required is not None:
        field, message = required
        if not _is_non_empty_string(config.get(field)):
            result.add_warning(f"spec.schedule.event_sensor.config.{field}", message)


def _check_execution(execution: Any, result: ValidationResult) -> None:
    if not isinstance(execution, dict):
        result.add_error("spec.execution", "Execution section is required")
        return

    operator = execution.get("operator")
    if operator not in _OPERATORS:
        result.add_error("spec.execution.operator", _one_of(_OPERATORS))
        return

    if operator == OperatorKind.SPARK_SUBMIT.value:
        spark = execution.get("spark_config")
        if not isinstance(spark, dict) or not _is_non_empty_string(spark.get("application")):
            result.add_error(
                "spec.execution.spark_config.application",
                "Spark application script is required for SparkSubmitOperator",
            )
    elif operator == OperatorKind.CUSTOM_TEMPLATE.value:
        if not _is_non_empty_string(execution.get("custom_template")):
            result.add_error(
                "spec.execution.custom_template",
                "Custom template content is required when using custom_template operator",
            )


def _check_retry(retry: Any, result: ValidationResult) -> None:
    if not isinstance(retry, dict):
        return
    max_retries = retry.get("max_retries")
    if _is_number(max_retries) and max_retries < 0:
        result.add_error("spec.retry.max_retries", "Must be 0 or greater")
    delay = retry.get("retry_delay_seconds")
    if _is_number(delay) and delay <= 0:
        result.add_error("spec.retry.retry_delay_seconds", "Must be greater than 0")
