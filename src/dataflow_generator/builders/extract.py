"""Database extract builder — one SparkSubmitOperator task per table."""

from __future__ import annotations

from dataflow_generator.builders.base import (
    SPARK_CONF_LINES,
    SPARK_SUBMIT_OPERATOR,
    BaseGroupBuilder,
    dataset_key,
    find_connection,
)
from dataflow_generator.models import DatasetSelection
from dataflow_generator.registry import register_group_builder


@register_group_builder("extract")
class ExtractGroupBuilder(BaseGroupBuilder):
    group_id = "extract_datasets"

    def tooltip(self, count: int) -> str:
        return f"Parallel extraction of {count} datasets"

    def _platform(self, connection_id: object) -> str:
        conn = find_connection(self._connections, connection_id)
        return conn.platform if conn else ""

    def build_empty(self, pad: str) -> str:
        lines = [
            "",
            f"{pad}extract_data:",
            f"{pad}  operator: {SPARK_SUBMIT_OPERATOR}",
            f"{pad}  application: {self.spark_app}",
            f"{pad}  conf:",
        ]
        lines.extend(f"{pad}    {conf}" for conf in SPARK_CONF_LINES)
        return "\n".join(lines)

    def build_task(
        self, ds: DatasetSelection, idx: int, pad: str, *, grouped: bool
    ) -> str:
        key = dataset_key(ds, idx, schema_fallback="public", table_prefix="table")
        args = [
            ("--source_platform", self._platform(self._pipeline.source_connection_id)),
            ("--target_platform", self._platform(self._pipeline.target_connection_id)),
            ("--schema", ds.schema_ or "public"),
            ("--table", ds.table or f"table_{idx}"),
            ("--load_method", self.load_method_for(ds)),
        ]
        # optional arguments are only passed when set
        for flag, value in (
            ("--filter_query", ds.filter_query),
            ("--incremental_column", ds.incremental_column),
            ("--target_path", ds.target_path),
        ):
            if value:
                args.append((flag, value))

        lines = [
            f"{pad}extract_{key}:",
            f"{pad}  operator: {SPARK_SUBMIT_OPERATOR}",
            f"{pad}  application: {self.spark_app}",
            f"{pad}  application_args:",
        ]
        for flag, value in args:
            lines.append(f'{pad}    - "{flag}"')
            lines.append(f'{pad}    - "{value}"')
        lines.append(f"{pad}  conf:")
        lines.extend(f"{pad}    {conf}" for conf in SPARK_CONF_LINES)
        return "\n".join(lines)
