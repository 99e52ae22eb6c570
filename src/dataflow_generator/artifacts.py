"""The generated artifact pair (DAG YAML and pipeline spec) and its files.

Both artifacts are plain text handed unchanged to the commit/deploy step.
They are laid out as ``specs/<name>/<name>-airflow-dag.yaml`` and
``specs/<name>/<name>-pipelinespec.{yaml,json}``.  Files are written
atomically (temp file then rename) so a crash never leaves a half-written
DAG where the scheduler can pick it up.
"""

from __future__ import annotations

import json
import logging
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import yaml

logger = logging.getLogger(__name__)

SpecFormat = Literal["yaml", "json"]
REPO_ROOT = "specs"

_UNSAFE_FILE_CHARS = re.compile(r"[^a-z0-9_-]", re.IGNORECASE)


def clean_name(name: str | None) -> str:
    """File-safe pipeline name: ``"Sales Daily!"`` -> ``"sales_daily_"``."""
    return _UNSAFE_FILE_CHARS.sub("_", name or "pipeline").lower()


def render_spec(spec: dict[str, Any], fmt: SpecFormat = "yaml") -> str:
    """Serialise the canonical spec as JSON or (commented) YAML."""
    if fmt == "json":
        return json.dumps(spec, indent=2, ensure_ascii=False, default=str)
    if fmt != "yaml":
        raise ValueError(f"Unsupported spec format {fmt!r}; expected 'yaml' or 'json'")
    name = (spec.get("metadata") or {}).get("name") or "untitled"
    body = yaml.safe_dump(
        spec, sort_keys=False, allow_unicode=True, default_flow_style=False
    )
    return f"# DataFlow Pipeline Spec — {name}\n{body}"


@dataclass(frozen=True)
class ArtifactBundle:
    """DAG text and spec text for one pipeline, with their repo paths."""

    pipeline_name: str
    dag_content: str
    spec_content: str
    spec_format: SpecFormat = "yaml"

    @property
    def repo_path(self) -> str:
        return f"{REPO_ROOT}/{clean_name(self.pipeline_name)}/"

    @property
    def dag_filename(self) -> str:
        return f"{clean_name(self.pipeline_name)}-airflow-dag.yaml"

    @property
    def spec_filename(self) -> str:
        return f"{clean_name(self.pipeline_name)}-pipelinespec.{self.spec_format}"

    def files(self) -> list[dict[str, str]]:
        """Commit payload: ``[{"path": ..., "content": ...}, ...]``."""
        return [
            {"path": self.repo_path + self.dag_filename, "content": self.dag_content},
            {"path": self.repo_path + self.spec_filename, "content": self.spec_content},
        ]


def build_bundle(
    pipeline_name: str | None,
    dag_content: str,
    spec: dict[str, Any],
    spec_format: SpecFormat = "yaml",
) -> ArtifactBundle:
    return ArtifactBundle(
        pipeline_name=pipeline_name or "pipeline",
        dag_content=dag_content,
        spec_content=render_spec(spec, spec_format),
        spec_format=spec_format,
    )


def _atomic_write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with open(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        Path(tmp_path).replace(path)
    except BaseException:
        Path(tmp_path).unlink(missing_ok=True)
        raise


def write_artifacts(bundle: ArtifactBundle, out_dir: str | Path) -> list[Path]:
    """Write both artifacts under *out_dir*; return the written paths."""
    root = Path(out_dir)
    written = []
    for item in bundle.files():
        path = root / item["path"]
        _atomic_write(path, item["content"])
        written.append(path)
        logger.info("Wrote %s (%d bytes)", path, len(item["content"]))
    return written
