"""Orchestrates one generation run from input files to written artifacts.

Reads pipeline form state (plus connections and user templates), builds
the canonical spec, validates it, renders the DAG from the selected
template and writes the artifact pair.

The engine never imports a concrete task-group builder; templates resolve
builders through the registry.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from dataflow_generator.artifacts import ArtifactBundle, build_bundle, write_artifacts
from dataflow_generator.builders.base import find_connection
from dataflow_generator.connections import (
    SQLAlchemyQueryExecutor,
    entity_name_to_table,
    validate_spec_with_db,
)
from dataflow_generator.job_spec import build_job_spec
from dataflow_generator.models import Connection, PipelineState, ValidationResult
from dataflow_generator.settings import GeneratorSettings
from dataflow_generator.templates import (
    Template,
    fill_template,
    find_template,
    get_default_template_id,
)
from dataflow_generator.validator import validate_spec

logger = logging.getLogger(__name__)


@dataclass
class GenerationReport:
    """Outcome of one engine run."""

    validation: ValidationResult
    spec: dict[str, Any]
    template_id: str | None = None
    bundle: ArtifactBundle | None = None
    written: list[Path] = field(default_factory=list)


def load_document(path: str | Path) -> Any:
    """Parse a YAML or JSON file (by suffix)."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def _as_list(raw: Any, key: str) -> list[Any]:
    """Accept either a bare list or a mapping holding the list under *key*."""
    if raw is None:
        return []
    if isinstance(raw, dict):
        raw = raw.get(key) or []
    if not isinstance(raw, list):
        raise ValueError(f"Expected a list of {key}, got {type(raw).__name__}")
    return raw


class GeneratorEngine:
    """Load a pipeline definition and produce its DAG + spec artifacts.

    The pipeline file may be the bare form state, or a mapping with
    ``pipeline``, ``connections`` and ``templates`` sections.
    """

    def __init__(
        self,
        pipeline_path: str | Path,
        *,
        connections_path: str | Path | None = None,
        templates_path: str | Path | None = None,
        settings: GeneratorSettings | None = None,
    ) -> None:
        self._pipeline_path = Path(pipeline_path)
        self._connections_path = Path(connections_path) if connections_path else None
        self._templates_path = Path(templates_path) if templates_path else None
        self._settings = settings or GeneratorSettings()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def load(self) -> tuple[PipelineState, list[Connection], list[Template]]:
        """Parse and validate every input file.  Fails fast on bad input."""
        raw = load_document(self._pipeline_path)
        if not isinstance(raw, dict):
            raise ValueError(
                f"Pipeline root must be a mapping, got {type(raw).__name__}"
            )

        raw_connections: list[Any] = []
        raw_templates: list[Any] = []
        if isinstance(raw.get("pipeline"), dict):
            raw_connections = _as_list(raw.get("connections"), "connections")
            raw_templates = _as_list(raw.get("templates"), "templates")
            raw = raw["pipeline"]

        if self._connections_path is not None:
            raw_connections = _as_list(load_document(self._connections_path), "connections")
        if self._templates_path is not None:
            raw_templates = _as_list(load_document(self._templates_path), "templates")

        pipeline = PipelineState.model_validate(raw)
        connections = [Connection.model_validate(c) for c in raw_connections]
        templates = [Template.model_validate(t) for t in raw_templates]
        return pipeline, connections, templates

    def run(
        self,
        *,
        template_id: str | None = None,
        out_dir: str | Path | None = None,
        validate_only: bool = False,
        allow_invalid: bool = False,
        check_connections: bool | None = None,
    ) -> GenerationReport:
        """Execute the build → validate → render → write sequence.

        Nothing is written when the spec is invalid, unless *allow_invalid*
        is set.
        """
        settings = self._settings
        logging.basicConfig(
            level=settings.log_level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )

        pipeline, connections, templates = self.load()
        logger.info(
            "Pipeline %r loaded — %d datasets, %d connections, %d custom templates",
            pipeline.name,
            len(pipeline.selected_datasets),
            len(connections),
            len(templates),
        )

        generated_at = datetime.now(timezone.utc)
        spec = build_job_spec(
            pipeline,
            connections,
            platforms=settings.platforms,
            generated_at=generated_at,
        )

        if check_connections is None:
            check_connections = settings.check_connections
        validation = self._validate(spec, check_connections)
        self._log_validation(validation)

        report = GenerationReport(validation=validation, spec=spec)
        if validate_only:
            return report
        if not validation.valid and not allow_invalid:
            logger.error(
                "Spec for %r is invalid (%d errors) — no artifacts written",
                pipeline.name,
                len(validation.errors),
            )
            return report

        report.template_id = self._select_template(
            template_id, pipeline, connections, templates
        )
        dag = fill_template(
            report.template_id,
            pipeline,
            connections,
            templates,
            generated_at=generated_at,
            strict=settings.strict_placeholders,
        )
        report.bundle = build_bundle(pipeline.name, dag, spec, settings.spec_format)
        report.written = write_artifacts(
            report.bundle, out_dir if out_dir is not None else settings.output_dir
        )
        logger.info("Pipeline %r generated with template %r", pipeline.name, report.template_id)
        return report

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _select_template(
        self,
        template_id: str | None,
        pipeline: PipelineState,
        connections: list[Connection],
        templates: list[Template],
    ) -> str:
        """Explicit choice, then the pipeline's saved choice, then the default."""
        chosen = template_id or pipeline.dag_template_id
        if chosen and find_template(chosen, templates) is not None:
            return chosen
        if chosen:
            logger.warning("Template %r not found — falling back to default", chosen)
        source = find_connection(connections, pipeline.source_connection_id)
        return get_default_template_id(
            source.platform if source else None, self._settings.platforms
        )

    def _validate(self, spec: dict[str, Any], check_connections: bool) -> ValidationResult:
        if not check_connections:
            return validate_spec(spec)
        if not self._settings.database_url:
            logger.warning("Connection check requested but no database_url is configured")
            return validate_spec(spec)

        with SQLAlchemyQueryExecutor(self._settings.database_url) as executor:
            return asyncio.run(
                validate_spec_with_db(
                    spec,
                    executor,
                    entity_name_to_table,
                    timeout=self._settings.db_timeout_seconds,
                )
            )

    @staticmethod
    def _log_validation(validation: ValidationResult) -> None:
        for issue in validation.errors:
            logger.error("%s: %s", issue.path or "(root)", issue.message)
        for issue in validation.warnings:
            logger.warning("%s: %s", issue.path or "(root)", issue.message)
