"""Shared fixtures for the test suite."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from dataflow_generator.models import Connection, PipelineState

GENERATED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def generated_at() -> datetime:
    return GENERATED_AT


@pytest.fixture()
def connections() -> list[Connection]:
    """One file source, two databases.  Secrets included on purpose."""
    return [
        Connection(
            id="1",
            name="Orders SFTP",
            platform="sftp",
            host="sftp.example.com",
            port=22,
            username="svc_orders",
            password="hunter2",
        ),
        Connection(
            id="2",
            name="Warehouse",
            platform="snowflake",
            host="acme.snowflakecomputing.com",
            database="RAW",
            token="secret-token",
        ),
        Connection(
            id="3",
            name="Orders DB",
            platform="postgresql",
            host="db.internal",
            port=5432,
            database="orders",
            status="inactive",
        ),
    ]


def _pipeline_state(**overrides: Any) -> PipelineState:
    raw: dict[str, Any] = {
        "id": "pl-42",
        "name": "Orders Feed",
        "description": "Daily orders landing",
        "source_connection_id": "3",
        "target_connection_id": "2",
        "selected_datasets": [
            {"schema": "sales", "table": "orders", "target_path": "/raw/orders"},
        ],
        "schedule_type": "manual",
    }
    raw.update(overrides)
    return PipelineState.model_validate(raw)


@pytest.fixture()
def make_pipeline():
    """Factory for pipeline form state with defaults, overridable per test."""
    return _pipeline_state


@pytest.fixture()
def pipeline() -> PipelineState:
    return _pipeline_state()


@pytest.fixture()
def valid_spec() -> dict[str, Any]:
    """A complete spec with no errors and no warnings."""
    return {
        "apiVersion": "dataflow/v1",
        "kind": "IngestionPipeline",
        "metadata": {
            "name": "orders",
            "description": "Orders feed",
            "id": 7,
            "generated_at": "2024-05-01T12:00:00+00:00",
        },
        "spec": {
            "source": {"connection_id": "1"},
            "target": {"connection_id": "2"},
            "datasets": [
                {
                    "schema": "sales",
                    "table": "orders",
                    "target_path": "/raw/orders",
                    "filter_query": "WHERE order_date >= CURRENT_DATE - 1",
                    "load_method": "append",
                    "execution": {"task_id": "orders__sales__orders", "operator": "PythonOperator"},
                }
            ],
            "schedule": {"type": "daily", "cron_expression": ""},
            "retry": {"max_retries": 3, "retry_delay_seconds": 60},
            "execution": {"operator": "PythonOperator"},
            "column_mappings": {"sales.orders": [{"source": "id", "target": "order_id"}]},
        },
    }
