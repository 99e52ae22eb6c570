"""Flat-file ingest builders — one PythonOperator task per dataset.

The sensor variant makes the ingest stage wait on ``wait_for_source_file``
(the file-arrival sensor declared by the landing template).
"""

from __future__ import annotations

from dataflow_generator.builders.base import (
    PYTHON_OPERATOR,
    BaseGroupBuilder,
    dataset_key,
)
from dataflow_generator.models import DatasetSelection
from dataflow_generator.registry import register_group_builder

SENSOR_TASK_ID = "wait_for_source_file"
DEFAULT_SOURCE_FOLDER = "/data/inbound/"


@register_group_builder("ingest_with_sensor")
class IngestGroupBuilder(BaseGroupBuilder):
    """Ingest tasks gated on the file-arrival sensor."""

    group_id = "ingest_datasets"
    with_sensor = True

    def tooltip(self, count: int) -> str:
        return f"Parallel ingestion of {count} datasets"

    def group_dependencies(self) -> list[str]:
        return [SENSOR_TASK_ID] if self.with_sensor else []

    def source_path(self) -> str:
        p = self._pipeline
        if p.file_source_mode == "wildcard":
            return p.file_source_wildcard or "/data/inbound/*"
        if p.file_source_mode == "file_list":
            first = p.file_source_list[0].file_name if p.file_source_list else None
            return first or "input_file"
        return p.file_source_folder or DEFAULT_SOURCE_FOLDER

    def build_empty(self, pad: str) -> str:
        p = self._pipeline
        source = p.file_source_folder or p.file_source_wildcard or DEFAULT_SOURCE_FOLDER
        lines = [
            "",
            f"{pad}ingest_files:",
            f"{pad}  operator: {PYTHON_OPERATOR}",
            f"{pad}  python_callable_name: ingest_function",
            f"{pad}  python_callable_file: {self.callable_file}",
            f"{pad}  op_args:",
            f'{pad}    - "{source}"',
            f'{pad}    - "{self._pipeline_name}"',
            f'{pad}    - "{p.load_method or "append"}"',
        ]
        if self.with_sensor:
            lines.append(f"{pad}  dependencies:")
            lines.append(f"{pad}    - {SENSOR_TASK_ID}")
        return "\n".join(lines)

    def build_task(
        self, ds: DatasetSelection, idx: int, pad: str, *, grouped: bool
    ) -> str:
        key = dataset_key_for_files(ds, idx)
        lines = [
            f"{pad}ingest_{key}:",
            f"{pad}  operator: {PYTHON_OPERATOR}",
            f"{pad}  python_callable_name: ingest_function",
            f"{pad}  python_callable_file: {self.callable_file}",
            f"{pad}  op_args:",
            f'{pad}    - "{self.source_path()}"',
            f'{pad}    - "{key}"',
            f'{pad}    - "{self.load_method_for(ds)}"',
            f'{pad}    - "{ds.target_path or ""}"',
        ]
        # Inside a group the envelope carries the sensor dependency.
        if self.with_sensor and not grouped:
            lines.append(f"{pad}  dependencies:")
            lines.append(f"{pad}    - {SENSOR_TASK_ID}")
        return "\n".join(lines)


@register_group_builder("ingest_no_sensor")
class IngestNoSensorGroupBuilder(IngestGroupBuilder):
    """Ingest tasks for pre-staged files on a fixed schedule."""

    with_sensor = False


def dataset_key_for_files(ds: DatasetSelection, idx: int) -> str:
    return dataset_key(ds, idx, schema_fallback="default", table_prefix="file")
