"""Connection existence check against the entity store.

``validate_spec_with_db`` runs the structural validator and then verifies
that the source/target connection ids refer to stored, active connections.
The lookup is advisory: any failure (timeout, driver error, malformed row)
is reported as a single warning and never raised.

Connection ids arrive as client-supplied strings that are either the
table's numeric surrogate key or the domain id embedded in the JSON
``data`` column, so ids are split into two buckets and each bucket is
matched on its own column.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from sqlalchemy import JSON, Engine, column, create_engine, select, table

from dataflow_generator.models import ValidationResult
from dataflow_generator.validator import validate_spec

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0

ENTITY_TABLES = (
    "pipeline",
    "connection",
    "pipeline_run",
    "activity_log",
    "audit_log",
    "ingestion_job",
    "airflow_dag",
    "custom_function",
    "connection_profile",
    "connection_prerequisite",
    "pipeline_version",
    "data_catalog_entry",
    "dag_template",
)

_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_WORD_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")


def entity_name_to_table(entity_name: str) -> str:
    """``"PipelineRun"`` -> ``"pipeline_run"``; unknown entities raise."""
    name = _ACRONYM_BOUNDARY.sub(r"\1_\2", entity_name)
    name = _WORD_BOUNDARY.sub(r"\1_\2", name).lower()
    if name not in ENTITY_TABLES:
        raise ValueError(f"Unknown entity: {entity_name}")
    return name


@dataclass(frozen=True)
class ConnectionQuery:
    """One batched lookup: rows of *table* whose *match* column is in *ids*."""

    table: str
    match: Literal["id", "data_id"]
    ids: tuple[Any, ...]


#: ``await executor(query)`` returns rows with ``id``, ``data_id``, ``name``, ``status``
QueryExecutor = Callable[[ConnectionQuery], Awaitable[Sequence[Mapping[str, Any]]]]


def _looks_numeric(value: Any) -> bool:
    return str(value).strip().isdigit()


async def _lookup_connections(
    ids: list[Any],
    query_executor: QueryExecutor,
    table_name: str,
) -> dict[str, Mapping[str, Any]]:
    numeric = tuple(int(str(i).strip()) for i in ids if _looks_numeric(i))
    other = tuple(str(i) for i in ids if not _looks_numeric(i))

    queries = []
    if numeric:
        queries.append(ConnectionQuery(table_name, "id", numeric))
    if other:
        queries.append(ConnectionQuery(table_name, "data_id", other))

    # no ordering dependency between the two buckets
    results = await asyncio.gather(*(query_executor(q) for q in queries))

    found: dict[str, Mapping[str, Any]] = {}
    for query, rows in zip(queries, results):
        for row in rows:
            key = row["id"] if query.match == "id" else row["data_id"]
            found[str(key)] = row
    return found


def _connection_id(section: Any) -> Any:
    if isinstance(section, dict):
        return section.get("connection_id")
    return None


def _check_role(
    result: ValidationResult,
    found: Mapping[str, Mapping[str, Any]],
    role: str,
    connection_id: Any,
) -> None:
    if not connection_id:
        return
    path = f"spec.{role.lower()}.connection_id"
    if _looks_numeric(connection_id):
        key = str(int(str(connection_id).strip()))
    else:
        key = str(connection_id)
    row = found.get(key)
    if row is None:
        result.add_error(
            path, f"{role} connection (ID: {connection_id}) not found in database"
        )
    elif row.get("status") == "inactive":
        result.add_warning(path, f'{role} connection "{row.get("name")}" is inactive')


async def validate_spec_with_db(
    spec: Any,
    query_executor: QueryExecutor,
    table_name_resolver: Callable[[str], str] = entity_name_to_table,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> ValidationResult:
    """Structural validation plus a batched connection existence check."""
    result = validate_spec(spec)

    body = spec.get("spec") if isinstance(spec, dict) else None
    if not isinstance(body, dict):
        return result
    source_id = _connection_id(body.get("source"))
    target_id = _connection_id(body.get("target"))
    ids = [i for i in (source_id, target_id) if i]
    if not ids:
        return result

    try:
        table_name = table_name_resolver("Connection")
        found = await asyncio.wait_for(
            _lookup_connections(ids, query_executor, table_name), timeout
        )
        _check_role(result, found, "Source", source_id)
        _check_role(result, found, "Target", target_id)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Connection lookup failed: %s", exc)
        message = str(exc) or exc.__class__.__name__
        result.add_warning("database", f"Could not verify connections: {message}")

    return result


class SQLAlchemyQueryExecutor:
    """Run ``ConnectionQuery`` lookups against a JSON-in-column entity table.

    Entity tables have an integer ``id`` primary key and a JSON ``data``
    column.  Queries are blocking and run in a worker thread.
    """

    def __init__(self, connection_string: str | None = None, *, engine: Engine | None = None) -> None:
        if engine is None and connection_string is None:
            raise ValueError("Either connection_string or engine is required")
        self._connection_string = connection_string
        self._engine = engine
        self._owns_engine = engine is None

    def connect(self) -> None:
        if self._engine is None:
            connect_args: dict[str, Any] = {}
            # queries run in worker threads
            if self._connection_string.startswith("sqlite"):
                connect_args["check_same_thread"] = False
            self._engine = create_engine(self._connection_string, connect_args=connect_args)
            logger.info("Connected to entity store")

    def disconnect(self) -> None:
        if self._engine is not None and self._owns_engine:
            self._engine.dispose()
            self._engine = None
            logger.info("Disposed SQLAlchemy engine")

    def __enter__(self) -> SQLAlchemyQueryExecutor:
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.disconnect()

    async def __call__(self, query: ConnectionQuery) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._run, query)

    def _run(self, query: ConnectionQuery) -> list[dict[str, Any]]:
        if self._engine is None:
            self.connect()
        assert self._engine is not None

        entity = table(query.table, column("id"), column("data", JSON))
        data = entity.c.data
        stmt = select(
            entity.c.id,
            data["id"].as_string().label("data_id"),
            data["name"].as_string().label("name"),
            data["status"].as_string().label("status"),
        )
        if query.match == "id":
            stmt = stmt.where(entity.c.id.in_(query.ids))
        else:
            stmt = stmt.where(data["id"].as_string().in_(query.ids))

        with self._engine.connect() as conn:
            rows = [dict(row._mapping) for row in conn.execute(stmt)]
        logger.debug(
            "Matched %d/%d connection ids on %s", len(rows), len(query.ids), query.match
        )
        return rows
