"""CLI entry point — ``python -m dataflow_generator``."""

from __future__ import annotations

import argparse
import sys

from dotenv import load_dotenv

load_dotenv()

from dataflow_generator.engine import GeneratorEngine
from dataflow_generator.models import ValidationResult
from dataflow_generator.registry import list_registered
from dataflow_generator.settings import load_settings
from dataflow_generator.templates import AVAILABLE_PLACEHOLDERS, BUILTIN_TEMPLATES


def _print_templates() -> None:
    """Print built-in templates and the registered task-group builders."""
    print("\nTEMPLATES")
    print("---------")
    for tmpl in BUILTIN_TEMPLATES:
        print(f"  {tmpl.id:30s} [{tmpl.source_type.value}] {tmpl.name}")
    print("\nGROUP BUILDERS")
    print("--------------")
    for key, class_name in list_registered().items():
        print(f"  {key:30s} {class_name}")
    print()


def _print_placeholders() -> None:
    for key, desc in AVAILABLE_PLACEHOLDERS.items():
        print(f"  {{{{{key}}}}}".ljust(36) + desc)


def _print_validation(validation: ValidationResult) -> None:
    status = "VALID" if validation.valid else "INVALID"
    print(
        f"{status}: {len(validation.errors)} error(s), "
        f"{len(validation.warnings)} warning(s)"
    )
    for issue in [*validation.errors, *validation.warnings]:
        print(f"  [{issue.severity.value}] {issue.path or '(root)'}: {issue.message}")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="dataflow-generator",
        description="Validate a pipeline definition and generate its DAG and spec.",
    )
    parser.add_argument(
        "-p", "--pipeline",
        help="Path to the pipeline form-state file (YAML or JSON).",
    )
    parser.add_argument(
        "-c", "--connections",
        help="Path to a YAML/JSON list of connections.",
    )
    parser.add_argument(
        "--templates-file",
        help="Path to a YAML/JSON list of user-defined DAG templates.",
    )
    parser.add_argument(
        "-t", "--template",
        help="Template id to render (default: the pipeline's, else by source platform).",
    )
    parser.add_argument(
        "-o", "--out-dir",
        help="Directory the artifact pair is written under.",
    )
    parser.add_argument(
        "--format",
        choices=("yaml", "json"),
        help="Pipeline spec artifact format.",
    )
    parser.add_argument(
        "--settings",
        help="Path to a YAML settings file.",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the spec and print the issues; write nothing.",
    )
    parser.add_argument(
        "--check-connections",
        action="store_true",
        default=None,
        help="Also verify the connections exist in the entity store.",
    )
    parser.add_argument(
        "--db-url",
        help="SQLAlchemy URL of the entity store (overrides settings).",
    )
    parser.add_argument(
        "--strict-placeholders",
        action="store_true",
        default=None,
        help="Fail when a template uses a placeholder the generator does not define.",
    )
    parser.add_argument(
        "--allow-invalid",
        action="store_true",
        default=False,
        help="Write artifacts even when the spec has errors.",
    )
    parser.add_argument(
        "-l", "--list-templates",
        action="store_true",
        default=False,
        help="List built-in templates and group builders, then exit.",
    )
    parser.add_argument(
        "--list-placeholders",
        action="store_true",
        default=False,
        help="List the template placeholder vocabulary, then exit.",
    )

    args = parser.parse_args(argv)

    if args.list_templates:
        _print_templates()
        return
    if args.list_placeholders:
        _print_placeholders()
        return

    if args.pipeline is None:
        parser.error("the following argument is required: -p/--pipeline")

    settings = load_settings(args.settings)
    updates = {
        "spec_format": args.format,
        "database_url": args.db_url,
        "strict_placeholders": args.strict_placeholders,
    }
    settings = settings.model_copy(
        update={k: v for k, v in updates.items() if v is not None}
    )

    engine = GeneratorEngine(
        args.pipeline,
        connections_path=args.connections,
        templates_path=args.templates_file,
        settings=settings,
    )
    report = engine.run(
        template_id=args.template,
        out_dir=args.out_dir,
        validate_only=args.validate_only,
        allow_invalid=args.allow_invalid,
        check_connections=args.check_connections,
    )

    _print_validation(report.validation)
    for path in report.written:
        print(f"Wrote {path}")

    if not report.validation.valid:
        sys.exit(1)


if __name__ == "__main__":
    main()
