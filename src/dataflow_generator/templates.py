"""dag-factory template catalog and placeholder substitution.

A template is dag-factory YAML text with ``{{placeholder}}`` tokens.  The
built-in templates live in this module; user-defined templates are loaded
by the caller and passed in on every call.  ``fill_template`` computes the
placeholder map for a pipeline, substitutes it in one pass and prepends a
descriptive header.

Unknown placeholders are left verbatim so that user templates written for a
newer placeholder vocabulary still render.  Pass ``strict=True`` to turn
them into an error instead.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

# Importing the subpackage triggers the @register_group_builder decorators
from dataflow_generator.builders import build_group
from dataflow_generator.builders.base import (
    callable_base_path,
    clean_pipeline_name,
    find_connection,
)
from dataflow_generator.models import Connection, PipelineState, TemplateSourceType
from dataflow_generator.platforms import is_flat_file, sensor_callable_name
from dataflow_generator.schedule import resolve_schedule

logger = logging.getLogger(__name__)

NO_TEMPLATE_SELECTED = "# No template selected"
PLACEHOLDER_VOCABULARY_VERSION = "1"

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


class Template(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str
    description: str = ""
    source_type: TemplateSourceType = TemplateSourceType.ANY
    template: str
    builtin: bool = False

    @model_validator(mode="before")
    @classmethod
    def _accept_stored_shape(cls, data: Any) -> Any:
        """Accept records as the dashboard stores them.

        Stored templates use ``templateId`` and ``sourceType`` keys.
        """
        if isinstance(data, dict):
            data = dict(data)
            if data.get("templateId"):
                data["id"] = data.pop("templateId")
            if "sourceType" in data and "source_type" not in data:
                data["source_type"] = data.pop("sourceType") or TemplateSourceType.ANY
        return data


_DEFAULT_ARGS_HEADER = """{{dag_id}}:
  default_args:
    owner: {{owner}}
    email:
      - {{email}}
    email_on_failure: {{email_on_failure}}
    retries: {{retries}}
    retry_delay_sec: {{retry_delay_sec}}
    start_date: {{start_date}}
  schedule: {{schedule}}
  catchup: false
  description: "{{description}}"

  tasks:
"""

BUILTIN_TEMPLATES: tuple[Template, ...] = (
    Template(
        id="flat_file_landing_to_raw",
        name="Flat File — Landing to Raw",
        description=(
            "Sensor waits for file arrival, task group ingests N datasets in "
            "parallel, optional transform group if column mappings exist"
        ),
        source_type=TemplateSourceType.FLAT_FILE,
        builtin=True,
        template=_DEFAULT_ARGS_HEADER + """
    wait_for_source_file:
      operator: airflow.providers.standard.sensors.python.PythonSensor
      python_callable_name: {{sensor_callable}}
      python_callable_file: {{callable_file}}
      poke_interval: {{poke_interval}}
      timeout: {{sensor_timeout}}
      soft_fail: false
      mode: reschedule
{{dataset_ingest_group}}
{{dataset_transform_group}}""",
    ),
    Template(
        id="db_extract_to_dwh",
        name="Database — Extract to Data Warehouse",
        description=(
            "Task group with N parallel SparkSubmitOperator tasks — one per "
            "dataset table"
        ),
        source_type=TemplateSourceType.DATABASE,
        builtin=True,
        template=_DEFAULT_ARGS_HEADER + "{{dataset_extract_group}}",
    ),
    Template(
        id="flat_file_simple_ingest",
        name="Flat File — Simple Ingest (No Sensor)",
        description=(
            "Task group with N parallel PythonOperator ingestion tasks — no "
            "file sensor, for pre-staged files on a fixed schedule"
        ),
        source_type=TemplateSourceType.FLAT_FILE,
        builtin=True,
        template=_DEFAULT_ARGS_HEADER + "{{dataset_ingest_group_no_sensor}}",
    ),
)

AVAILABLE_PLACEHOLDERS: dict[str, str] = {
    "dag_id": "Auto-generated DAG ID (dataflow__<pipeline_name>)",
    "description": "Pipeline description",
    "schedule": "Cron or @daily/@hourly/etc",
    "owner": "Assignment group or 'data-eng'",
    "email": "Alert email address",
    "email_on_failure": "true/false",
    "retries": "Number of retries",
    "retry_delay_sec": "Retry delay in seconds",
    "start_date": "DAG start date (YYYY-MM-DD)",
    "callable_file": "Python callable file path",
    "spark_app": "Spark application file path",
    "source_platform": "Source connection platform",
    "target_platform": "Target connection platform",
    "source_name": "Source connection name",
    "target_name": "Target connection name",
    "sensor_callable": "Sensor function name (sftp_file_exists, etc.)",
    "poke_interval": "Sensor poke interval in seconds",
    "sensor_timeout": "Sensor timeout in seconds",
    "dataset_count": "Number of datasets",
    "pipeline_name": "Cleaned pipeline name",
    "dag_callable_base_path": "Base path for DAG callable files",
    "dataset_ingest_group": "Ingest task group (with sensor dependency)",
    "dataset_ingest_group_no_sensor": "Ingest task group (no sensor)",
    "dataset_transform_group": "Transform task group (only if column mappings)",
    "dataset_extract_group": "DB extract task group (SparkSubmit per dataset)",
}


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

def _as_templates(custom_templates: Sequence[Any]) -> list[Template]:
    templates = []
    for raw in custom_templates:
        tmpl = raw if isinstance(raw, Template) else Template.model_validate(raw)
        templates.append(tmpl.model_copy(update={"builtin": False}))
    return templates


def get_all_templates(custom_templates: Sequence[Any] = ()) -> list[Template]:
    """Built-ins first, then user templates (always marked non-builtin)."""
    return [*BUILTIN_TEMPLATES, *_as_templates(custom_templates)]


def get_templates_for_source(
    source_platform: str | None,
    custom_templates: Sequence[Any] = (),
    platforms: Mapping[str, Mapping[str, Any]] | None = None,
) -> list[Template]:
    """Templates applicable to a pipeline reading from *source_platform*."""
    wanted = (
        TemplateSourceType.FLAT_FILE
        if is_flat_file(source_platform, platforms)
        else TemplateSourceType.DATABASE
    )
    builtin = [t for t in BUILTIN_TEMPLATES if t.source_type is wanted]
    custom = [
        t for t in _as_templates(custom_templates)
        if t.source_type in (TemplateSourceType.ANY, wanted)
    ]
    return builtin + custom


def get_default_template_id(
    source_platform: str | None,
    platforms: Mapping[str, Mapping[str, Any]] | None = None,
) -> str:
    if is_flat_file(source_platform, platforms):
        return "flat_file_landing_to_raw"
    return "db_extract_to_dwh"


def find_template(
    template_id: str | None, custom_templates: Sequence[Any] = ()
) -> Template | None:
    for tmpl in get_all_templates(custom_templates):
        if tmpl.id == template_id:
            return tmpl
    return None


# ---------------------------------------------------------------------------
# Placeholders
# ---------------------------------------------------------------------------

def _int_or(value: Any, default: int) -> int:
    try:
        return int(value) or default
    except (TypeError, ValueError):
        return default


def build_placeholder_map(
    pipeline: PipelineState, connections: Sequence[Connection] = ()
) -> dict[str, str]:
    """Compute the value of every placeholder for *pipeline*.

    No value may contain a ``{{token}}`` of its own; substitution is a
    single pass and would not expand it.
    """
    source = find_connection(connections, pipeline.source_connection_id)
    target = find_connection(connections, pipeline.target_connection_id)
    source_platform = source.platform if source else ""
    base_path = callable_base_path(pipeline)
    pipeline_name = clean_pipeline_name(pipeline)
    retry = pipeline.retry_config
    event = pipeline.event_config

    description = pipeline.description or f"DataFlow pipeline: {pipeline.name or 'untitled'}"
    max_retries = retry.max_retries if retry and retry.max_retries is not None else 2
    retry_delay = (
        retry.retry_delay_seconds
        if retry and retry.retry_delay_seconds is not None
        else 60
    )

    return {
        "dag_id": f"dataflow__{pipeline_name}",
        "description": description.replace('"', '\\"'),
        "schedule": resolve_schedule(pipeline.schedule_type, pipeline.cron_expression),
        "owner": pipeline.assignment_group or "data-eng",
        "email": pipeline.email or "alerts@example.com",
        "email_on_failure": "true" if pipeline.email else "false",
        "retries": str(max_retries),
        "retry_delay_sec": str(retry_delay),
        "start_date": "2024-01-01",
        "callable_file": f"{base_path}/{pipeline_name}_tasks.py",
        "spark_app": f"{base_path}/{pipeline_name}_spark.py",
        "source_platform": source_platform,
        "target_platform": target.platform if target else "",
        "source_name": source.name if source else "",
        "target_name": target.name if target else "",
        "sensor_callable": sensor_callable_name(source_platform),
        "poke_interval": str(_int_or(event.poll_interval if event else None, 60)),
        "sensor_timeout": str(_int_or(event.timeout_hours if event else None, 10) * 3600),
        "dataset_count": str(len(pipeline.selected_datasets)),
        "pipeline_name": pipeline_name,
        "dag_callable_base_path": base_path,
        "dataset_ingest_group": build_group("ingest_with_sensor", pipeline, connections),
        "dataset_ingest_group_no_sensor": build_group("ingest_no_sensor", pipeline, connections),
        "dataset_transform_group": build_group("transform", pipeline, connections),
        "dataset_extract_group": build_group("extract", pipeline, connections),
    }


def find_unresolved_placeholders(body: str, values: Mapping[str, str]) -> list[str]:
    """Placeholder names in *body* that *values* does not define, in order."""
    missing: list[str] = []
    for match in _PLACEHOLDER.finditer(body):
        name = match.group(1)
        if name not in values and name not in missing:
            missing.append(name)
    return missing


def substitute(body: str, values: Mapping[str, str]) -> str:
    """Replace every known ``{{key}}`` token in one pass.

    Values are inserted verbatim; unknown tokens are kept as they are.
    """

    def _replace(match: re.Match[str]) -> str:
        value = values.get(match.group(1))
        return match.group(0) if value is None else str(value)

    return _PLACEHOLDER.sub(_replace, body)


def render_header(
    template: Template,
    pipeline: PipelineState,
    connections: Sequence[Connection],
    generated_at: datetime,
) -> str:
    source = find_connection(connections, pipeline.source_connection_id)
    target = find_connection(connections, pipeline.target_connection_id)
    lines = [
        "# dag-factory YAML — Generated by DataFlow",
        f"# Template: {template.name}",
        f"# Pipeline: {pipeline.name or 'untitled'}",
        f"# Source: {source.name if source else 'unknown'} "
        f"({source.platform if source else ''})",
        f"# Target: {target.name if target else 'unknown'} "
        f"({target.platform if target else ''})",
        f"# Datasets: {len(pipeline.selected_datasets)}",
        f"# Generated: {generated_at.isoformat()}",
        "",
    ]
    return "\n".join(lines)


def fill_template(
    template_id: str | None,
    pipeline: PipelineState,
    connections: Sequence[Connection] = (),
    custom_templates: Sequence[Any] = (),
    *,
    generated_at: datetime | None = None,
    strict: bool = False,
) -> str:
    """Render the dag-factory YAML for *pipeline* with the chosen template.

    Returns ``NO_TEMPLATE_SELECTED`` when *template_id* is unknown.  Raises
    ``ValueError`` for unknown placeholders only when *strict* is set.
    """
    tmpl = find_template(template_id, custom_templates)
    if tmpl is None:
        logger.warning("Template %r not found — nothing rendered", template_id)
        return NO_TEMPLATE_SELECTED

    values = build_placeholder_map(pipeline, connections)
    unresolved = find_unresolved_placeholders(tmpl.template, values)
    if unresolved:
        if strict:
            raise ValueError(
                f"Template {tmpl.id!r} uses unknown placeholders: "
                + ", ".join(unresolved)
            )
        logger.warning(
            "Template %r leaves unknown placeholders verbatim: %s",
            tmpl.id,
            ", ".join(unresolved),
        )

    body = substitute(tmpl.template, values)
    header = render_header(
        tmpl, pipeline, connections, generated_at or datetime.now(timezone.utc)
    )
    logger.info(
        "Rendered template %r for pipeline %r (%d datasets)",
        tmpl.id,
        pipeline.name,
        len(pipeline.selected_datasets),
    )
    return header + body
