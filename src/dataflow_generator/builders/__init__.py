"""Builder subpackage — imports trigger @register_group_builder decorators."""

from __future__ import annotations

from collections.abc import Sequence

from dataflow_generator.builders.ingest import IngestGroupBuilder, IngestNoSensorGroupBuilder  # noqa: F401
from dataflow_generator.builders.transform import TransformGroupBuilder  # noqa: F401
from dataflow_generator.builders.extract import ExtractGroupBuilder  # noqa: F401
from dataflow_generator.models import Connection, DatasetSelection, PipelineState
from dataflow_generator.registry import get_group_builder


def build_group(
    mode: str,
    pipeline: PipelineState,
    connections: Sequence[Connection] = (),
    *,
    datasets: Sequence[DatasetSelection] | None = None,
    indent: int = 4,
) -> str:
    """Render the task block for *mode* (``"extract"``, ``"transform"``, ...)."""
    builder_cls = get_group_builder(mode)
    return builder_cls(pipeline, connections).build(datasets, indent)
