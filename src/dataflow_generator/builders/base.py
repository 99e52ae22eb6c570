"""Base task-group builder interface.

A builder turns a pipeline's dataset list into the dag-factory YAML block
for one generation mode.  The cardinality policy is shared by every mode
and lives here:

* 0 datasets — one synthetic task built from pipeline-level fallbacks;
* 1 dataset  — one task block, no task-group envelope;
* N datasets — a task-group envelope holding one block per dataset at
  ``indent + 2``, blocks separated by a blank line.

Every non-empty block starts with a newline so a template can place the
placeholder on its own line.
"""

from __future__ import annotations

import abc
import re
from collections.abc import Sequence

from dataflow_generator.models import Connection, DatasetSelection, PipelineState

DEFAULT_CALLABLE_BASE_PATH = "/data/dags/"
DEFAULT_LOAD_METHOD = "append"

SPARK_SUBMIT_OPERATOR = (
    "airflow.providers.apache.spark.operators.spark_submit.SparkSubmitOperator"
)
PYTHON_OPERATOR = "airflow.providers.standard.operators.python.PythonOperator"
SPARK_CONF_LINES = (
    "spark.executor.memory: 4g",
    'spark.executor.cores: "2"',
    "spark.driver.memory: 2g",
)

_UNSAFE_ID_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def sanitize_identifier(value: str) -> str:
    """Replace anything outside ``[A-Za-z0-9_]`` with ``_`` and lower-case."""
    return _UNSAFE_ID_CHARS.sub("_", value).lower()


def clean_pipeline_name(pipeline: PipelineState) -> str:
    return sanitize_identifier(pipeline.name or "pipeline")


def callable_base_path(pipeline: PipelineState) -> str:
    return (pipeline.dag_callable_base_path or DEFAULT_CALLABLE_BASE_PATH).rstrip("/")


def dataset_key(
    ds: DatasetSelection, idx: int, *, schema_fallback: str, table_prefix: str
) -> str:
    """Deterministic task-id suffix ``<schema>__<table>`` for *ds*.

    Duplicate schema/table pairs in one pipeline produce duplicate keys;
    callers are expected to keep them unique.
    """
    schema = ds.schema_ or schema_fallback
    table = ds.table or f"{table_prefix}_{idx}"
    return sanitize_identifier(f"{schema}__{table}")


def find_connection(
    connections: Sequence[Connection], connection_id: object
) -> Connection | None:
    if connection_id is None:
        return None
    for conn in connections:
        if conn.id == connection_id or str(conn.id) == str(connection_id):
            return conn
    return None


class BaseGroupBuilder(abc.ABC):
    """Render the task block(s) for a pipeline's datasets.

    Lifecycle:
        1. __init__(pipeline, connections) — receive the form state.
        2. build(datasets, indent)         — return the YAML text block.
    """

    #: task id used for the envelope when more than one dataset is present
    group_id: str = ""

    def __init__(
        self,
        pipeline: PipelineState,
        connections: Sequence[Connection] = (),
    ) -> None:
        self._pipeline = pipeline
        self._connections = list(connections)
        self._pipeline_name = clean_pipeline_name(pipeline)
        self._base_path = callable_base_path(pipeline)

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @property
    def callable_file(self) -> str:
        return f"{self._base_path}/{self._pipeline_name}_tasks.py"

    @property
    def spark_app(self) -> str:
        return f"{self._base_path}/{self._pipeline_name}_spark.py"

    def load_method_for(self, ds: DatasetSelection) -> str:
        return ds.load_method or self._pipeline.load_method or DEFAULT_LOAD_METHOD

    # -- shared cardinality policy -------------------------------------------

    def build(
        self,
        datasets: Sequence[DatasetSelection] | None = None,
        indent: int = 4,
    ) -> str:
        """Return the text block for *datasets* (default: the pipeline's)."""
        all_datasets = list(
            self._pipeline.selected_datasets if datasets is None else datasets
        )
        selected = self.select(all_datasets)
        pad = " " * indent

        if not all_datasets:
            return self.build_empty(pad)
        if not selected:
            return ""
        if len(selected) == 1:
            idx, ds = selected[0]
            return "\n" + self.build_task(ds, idx, pad, grouped=False)

        inner_pad = " " * (indent + 2)
        blocks = [
            self.build_task(ds, idx, inner_pad, grouped=True)
            for idx, ds in selected
        ]
        lines = [
            "",
            f"{pad}{self.group_id}:",
            f"{pad}  task_group:",
            f'{pad}    tooltip: "{self.tooltip(len(selected))}"',
        ]
        dependencies = self.group_dependencies()
        if dependencies:
            lines.append(f"{pad}  dependencies:")
            lines.extend(f"{pad}    - {dep}" for dep in dependencies)
        lines.append(f"{pad}  tasks:")
        lines.append("\n\n".join(blocks))
        return "\n".join(lines)

    # -- hooks ---------------------------------------------------------------

    def select(
        self, datasets: list[DatasetSelection]
    ) -> list[tuple[int, DatasetSelection]]:
        """Pick the datasets this mode emits, keeping their original index.

        Default keeps every dataset.
        """
        return list(enumerate(datasets))

    def group_dependencies(self) -> list[str]:
        """Upstream task ids of the task-group envelope.  Default: none."""
        return []

    @abc.abstractmethod
    def tooltip(self, count: int) -> str:
        ...

    @abc.abstractmethod
    def build_empty(self, pad: str) -> str:
        """Block emitted when the pipeline has no datasets at all."""
        ...

    @abc.abstractmethod
    def build_task(
        self, ds: DatasetSelection, idx: int, pad: str, *, grouped: bool
    ) -> str:
        """One task block (without a leading newline)."""
        ...
