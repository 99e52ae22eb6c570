"""Assemble the canonical pipeline spec document from form state.

The result is a plain JSON-shaped ``dict``: the input of
``validate_spec`` and the "pipeline spec" artifact committed next to the
generated DAG.  It is rebuilt from scratch on every call.

Connection details embedded in the document never include secrets
(passwords, tokens, keys): the spec ends up in source control.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from dataflow_generator.builders.base import find_connection, sanitize_identifier
from dataflow_generator.models import (
    Connection,
    OperatorKind,
    PipelineState,
    PythonConfig,
    SparkConfig,
)
from dataflow_generator.platforms import is_flat_file
from dataflow_generator.validator import API_VERSION, KIND

AUTO_OPERATOR = "auto"
DEFAULT_SPARK_APPLICATION = "dataflow_spark_ingestion.py"
DEFAULT_PY_FILES = "dataflow_utils.zip"
DEFAULT_PYTHON_CALLABLE = "run_ingestion"

# Structural fields that are safe to commit, in output order.
_SAFE_CONNECTION_FIELDS = (
    "host",
    "port",
    "database",
    "username",
    "auth_method",
    "region",
    "bucket_container",
)


def resolve_operator(
    source_platform: str | None,
    target_platform: str | None,
    override: str | None = None,
    platforms: Mapping[str, Mapping[str, Any]] | None = None,
) -> str:
    """Explicit override wins; flat-file involvement means PythonOperator."""
    if override and override != AUTO_OPERATOR:
        return override
    if is_flat_file(source_platform, platforms) or is_flat_file(target_platform, platforms):
        return OperatorKind.PYTHON.value
    return OperatorKind.SPARK_SUBMIT.value


def connection_details(conn: Connection | None) -> dict[str, Any]:
    """Structural connection fields only, never secret-bearing ones."""
    if conn is None:
        return {}
    details: dict[str, Any] = {"name": conn.name, "platform": conn.platform}
    for field in _SAFE_CONNECTION_FIELDS:
        value = getattr(conn, field)
        if value:
            details[field] = value
    if conn.file_config:
        details["file_config"] = dict(conn.file_config)
    if conn.notes:
        details["notes"] = conn.notes
    return details


def _spark_section(cfg: SparkConfig) -> dict[str, Any]:
    return {
        "executor_memory": cfg.executor_memory or "4g",
        "executor_cores": str(cfg.executor_cores or "2"),
        "driver_memory": cfg.driver_memory or "2g",
        "application": cfg.application or DEFAULT_SPARK_APPLICATION,
        "py_files": [
            f.strip() for f in (cfg.py_files or DEFAULT_PY_FILES).split(",") if f.strip()
        ],
    }


def _schedule_section(pipeline: PipelineState) -> dict[str, Any]:
    section: dict[str, Any] = {
        "type": pipeline.schedule_type or "manual",
        "cron_expression": pipeline.cron_expression or "",
        "start_date": pipeline.start_date or "2024-01-01",
        "end_date": pipeline.end_date or None,
        "catchup": bool(pipeline.catchup),
        "is_paused_upon_creation": pipeline.is_paused_upon_creation is not False,
        "max_active_runs": 1 if pipeline.max_active_runs is None else pipeline.max_active_runs,
        "concurrency": 16 if pipeline.concurrency is None else pipeline.concurrency,
        "dagrun_timeout_minutes": pipeline.dagrun_timeout or 0,
        "use_custom_calendar": bool(pipeline.use_custom_calendar),
        "include_calendar_id": pipeline.include_calendar_id or "",
        "exclude_calendar_id": pipeline.exclude_calendar_id or "",
        "custom_include_dates": pipeline.custom_include_dates or "",
        "custom_exclude_dates": pipeline.custom_exclude_dates or "",
    }
    if pipeline.schedule_type == "event_driven":
        event = pipeline.event_config
        section["event_sensor"] = {
            "sensor_type": pipeline.event_sensor_type or "",
            "config": {
                "watch_path": (event.watch_path if event else None) or "",
                "sql_condition": (event.sql_condition if event else None) or "",
                "upstream_job": (event.upstream_job if event else None) or "",
                "poll_interval": (event.poll_interval if event else None) or "60",
                "timeout_hours": (event.timeout_hours if event else None) or "24",
                "sensor_mode": (event.sensor_mode if event else None) or "reschedule",
                "soft_fail": bool(event.soft_fail) if event else False,
            },
        }
    return section


def build_job_spec(
    pipeline: PipelineState,
    connections: Sequence[Connection] = (),
    *,
    platforms: Mapping[str, Mapping[str, Any]] | None = None,
    generated_at: datetime | None = None,
) -> dict[str, Any]:
    """Return the canonical ``dataflow/v1`` spec document for *pipeline*."""
    source = find_connection(connections, pipeline.source_connection_id)
    target = find_connection(connections, pipeline.target_connection_id)
    override = pipeline.operator_type or AUTO_OPERATOR
    operator = resolve_operator(
        source.platform if source else "",
        target.platform if target else "",
        override,
        platforms,
    )
    is_spark = operator == OperatorKind.SPARK_SUBMIT.value
    is_custom = operator == OperatorKind.CUSTOM_TEMPLATE.value
    spark = _spark_section(pipeline.spark_config or SparkConfig())
    python_cfg = pipeline.python_config or PythonConfig()

    datasets = []
    for ds in pipeline.selected_datasets:
        task_id = sanitize_identifier(
            f"{pipeline.name or 'pipeline'}__{ds.schema_ or ''}__{ds.table or ''}"
        )
        execution: dict[str, Any] = {"task_id": task_id, "operator": operator}
        if is_custom:
            execution["template_override"] = True
        elif is_spark:
            execution["application"] = spark["application"]
            execution["spark_conf"] = {
                "executor_memory": spark["executor_memory"],
                "executor_cores": spark["executor_cores"],
                "driver_memory": spark["driver_memory"],
            }
            execution["py_files"] = list(spark["py_files"])
        else:
            execution["python_callable"] = python_cfg.callable or DEFAULT_PYTHON_CALLABLE
            if python_cfg.module:
                execution["module"] = python_cfg.module

        datasets.append({
            "schema": ds.schema_,
            "table": ds.table,
            "target_path": ds.target_path or "",
            "filter_query": ds.filter_query or "",
            "incremental_column": ds.incremental_column or "",
            "load_method": ds.load_method or pipeline.load_method or "append",
            "execution": execution,
        })

    execution_section: dict[str, Any] = {
        "operator": operator,
        "operator_override": override,
        "task_parallelism": "parallel",
        "tags": [
            "dataflow",
            "custom" if is_custom else "pyspark" if is_spark else "python",
            pipeline.schedule_type or "manual",
        ],
    }
    if is_custom:
        if pipeline.custom_template:
            execution_section["custom_template"] = pipeline.custom_template
    elif is_spark:
        execution_section["spark_config"] = spark
    else:
        execution_section["python_config"] = {
            "callable": python_cfg.callable or DEFAULT_PYTHON_CALLABLE,
            "module": python_cfg.module or "",
        }

    retry = pipeline.retry_config
    stamp = generated_at or datetime.now(timezone.utc)

    return {
        "apiVersion": API_VERSION,
        "kind": KIND,
        "metadata": {
            "name": pipeline.name,
            "description": pipeline.description or "",
            "id": pipeline.id,
            "generated_at": stamp.isoformat(),
        },
        "spec": {
            "source": {
                "connection_id": pipeline.source_connection_id,
                **connection_details(source),
            },
            "target": {
                "connection_id": pipeline.target_connection_id,
                **connection_details(target),
            },
            "datasets": datasets,
            "schedule": _schedule_section(pipeline),
            "retry": {
                "max_retries": 3 if not retry or retry.max_retries is None else retry.max_retries,
                "retry_delay_seconds": (
                    60 if not retry or retry.retry_delay_seconds is None
                    else retry.retry_delay_seconds
                ),
                "exponential_backoff": bool(retry and retry.retry_exponential_backoff),
            },
            "failure_handling": {
                "email": pipeline.email or "",
                "email_on_retry": bool(pipeline.email_on_retry),
                "sla_seconds": pipeline.sla_seconds or None,
                "execution_timeout": pipeline.execution_timeout or None,
                "depends_on_past": bool(pipeline.depends_on_past),
                "wait_for_downstream": bool(pipeline.wait_for_downstream),
            },
            "ownership": {
                "owner": pipeline.assignment_group or "data-eng",
                "priority_weight": 1 if pipeline.priority_weight is None else pipeline.priority_weight,
                "pool": pipeline.pool or "",
                "tags": ["dataflow", *pipeline.dag_tags],
            },
            "execution": execution_section,
            "advanced_features": (
                dict(pipeline.advanced_features)
                if pipeline.advanced_features is not None
                else {"column_mapping": True}
            ),
            "column_mappings": dict(pipeline.column_mappings),
            "data_quality_rules": dict(pipeline.dq_rules),
            "dag_callable_base_path": pipeline.dag_callable_base_path or "/data/dags/",
        },
    }
