"""Tests for canonical spec assembly."""

from __future__ import annotations

import pytest

from dataflow_generator.job_spec import (
    build_job_spec,
    connection_details,
    resolve_operator,
)
from dataflow_generator.models import PipelineState
from dataflow_generator.schedule import resolve_schedule
from dataflow_generator.validator import validate_spec


class TestResolveOperator:
    @pytest.mark.parametrize(
        "source, target, operator",
        [
            ("sftp", "snowflake", "PythonOperator"),
            ("postgresql", "local_fs", "PythonOperator"),
            ("postgresql", "snowflake", "SparkSubmitOperator"),
            ("", "", "SparkSubmitOperator"),
        ],
    )
    def test_auto(self, source, target, operator):
        assert resolve_operator(source, target, "auto") == operator

    def test_override_wins(self):
        assert resolve_operator("sftp", "snowflake", "SparkSubmitOperator") == "SparkSubmitOperator"
        assert resolve_operator("postgresql", "mysql", "custom_template") == "custom_template"

    def test_custom_platform_catalog(self):
        platforms = {"mainframe_drop": {"category": "file"}}
        assert resolve_operator("mainframe_drop", "snowflake", None, platforms) == "PythonOperator"
        # sftp is not a file platform in this catalog
        assert resolve_operator("sftp", "snowflake", None, platforms) == "SparkSubmitOperator"


class TestConnectionDetails:
    def test_secrets_are_never_copied(self, connections):
        details = connection_details(connections[0])
        assert details == {
            "name": "Orders SFTP",
            "platform": "sftp",
            "host": "sftp.example.com",
            "port": 22,
            "username": "svc_orders",
        }

    def test_missing_connection(self):
        assert connection_details(None) == {}


class TestBuildJobSpec:
    def test_round_trip_is_valid_for_file_pipeline(self, make_pipeline, connections, generated_at):
        pipeline = make_pipeline(
            source_connection_id="1",
            column_mappings={"sales.orders": [{"source": "id", "target": "order_id"}]},
        )
        spec = build_job_spec(pipeline, connections, generated_at=generated_at)
        assert spec["spec"]["execution"]["operator"] == "PythonOperator"
        assert validate_spec(spec).valid is True

    def test_round_trip_is_valid_for_database_pipeline(self, pipeline, connections, generated_at):
        spec = build_job_spec(pipeline, connections, generated_at=generated_at)
        assert spec["spec"]["execution"]["operator"] == "SparkSubmitOperator"
        assert validate_spec(spec).valid is True

    @pytest.mark.parametrize(
        "schedule_type, cron",
        [
            ("every_minutes", "*/15 * * * *"),
            ("every_hours", "0 */2 * * *"),
            ("hourly", "*/30 * * * *"),
            ("custom", "0,30 */4 * * 1-5"),
        ],
    )
    def test_round_trip_is_valid_for_stepped_cron(self, make_pipeline, connections, schedule_type, cron):
        pipeline = make_pipeline(schedule_type=schedule_type, cron_expression=cron)
        spec = build_job_spec(pipeline, connections)
        assert spec["spec"]["schedule"]["cron_expression"] == cron
        assert validate_spec(spec).valid is True

    def test_round_trip_with_resolver_defaults(self, make_pipeline, connections):
        for schedule_type in ("every_minutes", "every_hours"):
            pipeline = make_pipeline(
                schedule_type=schedule_type, cron_expression=resolve_schedule(schedule_type)
            )
            assert validate_spec(build_job_spec(pipeline, connections)).valid is True

    def test_envelope(self, pipeline, connections, generated_at):
        spec = build_job_spec(pipeline, connections, generated_at=generated_at)
        assert spec["apiVersion"] == "dataflow/v1"
        assert spec["kind"] == "IngestionPipeline"
        assert spec["metadata"] == {
            "name": "Orders Feed",
            "description": "Daily orders landing",
            "id": "pl-42",
            "generated_at": "2024-05-01T12:00:00+00:00",
        }

    def test_connections_are_embedded_without_secrets(self, pipeline, connections):
        spec = build_job_spec(pipeline, connections)
        target = spec["spec"]["target"]
        assert target["connection_id"] == "2"
        assert target["host"] == "acme.snowflakecomputing.com"
        assert "token" not in target
        assert "password" not in spec["spec"]["source"]

    def test_python_execution(self, make_pipeline, connections):
        pipeline = make_pipeline(
            source_connection_id="1",
            python_config={"callable": "land_orders", "module": "orders.tasks"},
        )
        spec = build_job_spec(pipeline, connections)
        execution = spec["spec"]["execution"]
        assert execution["python_config"] == {"callable": "land_orders", "module": "orders.tasks"}
        assert "spark_config" not in execution
        assert execution["tags"] == ["dataflow", "python", "manual"]
        ds_exec = spec["spec"]["datasets"][0]["execution"]
        assert ds_exec == {
            "task_id": "orders_feed__sales__orders",
            "operator": "PythonOperator",
            "python_callable": "land_orders",
            "module": "orders.tasks",
        }

    def test_spark_execution_defaults(self, pipeline, connections):
        spec = build_job_spec(pipeline, connections)
        spark = spec["spec"]["execution"]["spark_config"]
        assert spark == {
            "executor_memory": "4g",
            "executor_cores": "2",
            "driver_memory": "2g",
            "application": "dataflow_spark_ingestion.py",
            "py_files": ["dataflow_utils.zip"],
        }
        ds_exec = spec["spec"]["datasets"][0]["execution"]
        assert ds_exec["application"] == "dataflow_spark_ingestion.py"
        assert ds_exec["spark_conf"]["executor_cores"] == "2"

    def test_py_files_are_split(self, make_pipeline, connections):
        pipeline = make_pipeline(spark_config={"py_files": " a.zip, b.zip ,"})
        spec = build_job_spec(pipeline, connections)
        assert spec["spec"]["execution"]["spark_config"]["py_files"] == ["a.zip", "b.zip"]

    def test_custom_template_operator(self, make_pipeline, connections):
        pipeline = make_pipeline(operator_type="custom_template", custom_template="dag: {}")
        spec = build_job_spec(pipeline, connections)
        execution = spec["spec"]["execution"]
        assert execution["operator"] == "custom_template"
        assert execution["custom_template"] == "dag: {}"
        assert spec["spec"]["datasets"][0]["execution"]["template_override"] is True
        assert validate_spec(spec).valid is True

    def test_event_sensor_only_for_event_driven(self, make_pipeline, connections):
        spec = build_job_spec(make_pipeline(), connections)
        assert "event_sensor" not in spec["spec"]["schedule"]

        pipeline = make_pipeline(
            schedule_type="event_driven",
            event_sensor_type="file_watcher",
            event_config={"watch_path": "/landing/*.csv"},
        )
        sensor = build_job_spec(pipeline, connections)["spec"]["schedule"]["event_sensor"]
        assert sensor["sensor_type"] == "file_watcher"
        assert sensor["config"]["watch_path"] == "/landing/*.csv"
        assert sensor["config"]["poll_interval"] == "60"
        assert sensor["config"]["timeout_hours"] == "24"
        assert sensor["config"]["sensor_mode"] == "reschedule"

    def test_schedule_defaults(self, pipeline):
        schedule = build_job_spec(pipeline)["spec"]["schedule"]
        assert schedule["type"] == "manual"
        assert schedule["start_date"] == "2024-01-01"
        assert schedule["max_active_runs"] == 1
        assert schedule["concurrency"] == 16
        assert schedule["is_paused_upon_creation"] is True

    def test_retry(self, make_pipeline):
        assert build_job_spec(make_pipeline())["spec"]["retry"] == {
            "max_retries": 3,
            "retry_delay_seconds": 60,
            "exponential_backoff": False,
        }
        pipeline = make_pipeline(retry_config={"max_retries": 0})
        assert build_job_spec(pipeline)["spec"]["retry"]["max_retries"] == 0

    def test_dataset_load_method_falls_back_to_pipeline(self, make_pipeline):
        pipeline = make_pipeline(
            load_method="merge",
            selected_datasets=[{"schema": "a", "table": "b"}, {"schema": "a", "table": "c", "load_method": "replace"}],
        )
        datasets = build_job_spec(pipeline)["spec"]["datasets"]
        assert [ds["load_method"] for ds in datasets] == ["merge", "replace"]

    def test_ownership(self, make_pipeline):
        pipeline = make_pipeline(assignment_group="finance-data", dag_tags=["finance"])
        ownership = build_job_spec(pipeline)["spec"]["ownership"]
        assert ownership == {
            "owner": "finance-data",
            "priority_weight": 1,
            "pool": "",
            "tags": ["dataflow", "finance"],
        }

    def test_selected_objects_alias(self):
        pipeline = PipelineState.model_validate(
            {"name": "Legacy", "selected_objects": [{"schema": "x", "table": "y"}]}
        )
        assert build_job_spec(pipeline)["spec"]["datasets"][0]["table"] == "y"
