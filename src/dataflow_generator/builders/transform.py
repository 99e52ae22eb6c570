"""Transform builder — Spark column-mapping stage after ingestion.

Only datasets with a non-empty column-mapping list keyed ``"<schema>.<table>"``
get a transform task.  When none qualify the stage is omitted entirely.
"""

from __future__ import annotations

from dataflow_generator.builders.base import (
    SPARK_CONF_LINES,
    SPARK_SUBMIT_OPERATOR,
    BaseGroupBuilder,
)
from dataflow_generator.builders.ingest import dataset_key_for_files
from dataflow_generator.models import DatasetSelection
from dataflow_generator.registry import register_group_builder


@register_group_builder("transform")
class TransformGroupBuilder(BaseGroupBuilder):
    group_id = "transform_datasets"

    def select(
        self, datasets: list[DatasetSelection]
    ) -> list[tuple[int, DatasetSelection]]:
        mappings = self._pipeline.column_mappings or {}
        selected = []
        for idx, ds in enumerate(datasets):
            entry = mappings.get(f"{ds.schema_}.{ds.table}")
            if isinstance(entry, list) and entry:
                selected.append((idx, ds))
        return selected

    def tooltip(self, count: int) -> str:
        return f"Parallel transformation of {count} datasets with column mappings"

    def group_dependencies(self) -> list[str]:
        return ["ingest_datasets"]

    def build_empty(self, pad: str) -> str:
        return ""

    def build_task(
        self, ds: DatasetSelection, idx: int, pad: str, *, grouped: bool
    ) -> str:
        key = dataset_key_for_files(ds, idx)
        mapping_file = (
            f"{self._base_path}/mappings/{self._pipeline_name}_{key}_mapping.json"
        )
        lines = [
            f"{pad}transform_{key}:",
            f"{pad}  operator: {SPARK_SUBMIT_OPERATOR}",
            f"{pad}  application: {self.spark_app}",
            f"{pad}  application_args:",
            f'{pad}    - "--schema"',
            f'{pad}    - "{ds.schema_ or "default"}"',
            f'{pad}    - "--table"',
            f'{pad}    - "{ds.table or f"file_{idx}"}"',
            f'{pad}    - "--load_method"',
            f'{pad}    - "{self.load_method_for(ds)}"',
            f'{pad}    - "--mapping_file"',
            f'{pad}    - "{mapping_file}"',
        ]
        if ds.target_path:
            lines.append(f'{pad}    - "--target_path"')
            lines.append(f'{pad}    - "{ds.target_path}"')
        lines.append(f"{pad}  conf:")
        lines.extend(f"{pad}    {conf}" for conf in SPARK_CONF_LINES)
        lines.append(f"{pad}  dependencies:")
        lines.append(f"{pad}    - ingest_{key}")
        return "\n".join(lines)
