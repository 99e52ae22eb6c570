"""Decorator-based registry for dataset task-group builders.

Concrete builders register themselves at import time via
``@register_group_builder("extract")``.  The template engine resolves the
generation mode to a class via ``get_group_builder("extract")`` and never
imports a concrete builder directly.
"""

from __future__ import annotations

_group_builder_registry: dict[str, type] = {}


def register_group_builder(name: str):
    """Class decorator that registers a task-group builder under *name*."""

    def decorator(cls: type) -> type:
        if name in _group_builder_registry:
            raise ValueError(
                f"Duplicate group builder registration: {name!r} is already "
                f"registered to {_group_builder_registry[name].__name__}"
            )
        _group_builder_registry[name] = cls
        return cls

    return decorator


def get_group_builder(name: str) -> type:
    """Return the builder class registered under *name*."""
    try:
        return _group_builder_registry[name]
    except KeyError:
        available = ", ".join(sorted(_group_builder_registry)) or "(none)"
        raise KeyError(
            f"Unknown group builder {name!r}. Available: {available}"
        ) from None


def list_registered() -> dict[str, str]:
    """Return registered builders as ``{"extract": "ExtractGroupBuilder", ...}``."""
    return {k: v.__name__ for k, v in sorted(_group_builder_registry.items())}
