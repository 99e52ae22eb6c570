"""Catalog of connection platforms and their category.

Flat-file involvement drives operator selection (Python vs. Spark) and the
built-in template picked for a pipeline.  The catalog is passed explicitly
to every function that needs it; ``DEFAULT_PLATFORMS`` is only the default.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

FILE_CATEGORY = "file"

DEFAULT_PLATFORMS: Mapping[str, Mapping[str, str]] = MappingProxyType({
    "flat_file_delimited": {"label": "Delimited Flat File", "category": "file"},
    "flat_file_fixed_width": {"label": "Fixed-Width Flat File", "category": "file"},
    "cobol_ebcdic": {"label": "COBOL / EBCDIC", "category": "file"},
    "sftp": {"label": "SFTP", "category": "file"},
    "nas": {"label": "NAS Share", "category": "file"},
    "local_fs": {"label": "Local Filesystem", "category": "file"},
    "postgresql": {"label": "PostgreSQL", "category": "database"},
    "mysql": {"label": "MySQL", "category": "database"},
    "sql_server": {"label": "SQL Server", "category": "database"},
    "oracle": {"label": "Oracle", "category": "database"},
    "db2": {"label": "IBM Db2", "category": "database"},
    "snowflake": {"label": "Snowflake", "category": "database"},
    "adls2": {"label": "Azure Data Lake Gen2", "category": "cloud"},
    "s3": {"label": "Amazon S3", "category": "cloud"},
})

# Sensor callable per file platform; anything else polls ADLS.
_SENSOR_CALLABLES = {
    "sftp": "sftp_file_exists",
    "local_fs": "local_file_exists",
    "nas": "nas_file_exists",
}
DEFAULT_SENSOR_CALLABLE = "adls_file_exists"


def flat_file_platforms(
    platforms: Mapping[str, Mapping[str, Any]] | None = None,
) -> list[str]:
    catalog = DEFAULT_PLATFORMS if platforms is None else platforms
    return [
        key for key, info in catalog.items()
        if info.get("category") == FILE_CATEGORY
    ]


def is_flat_file(
    platform: str | None,
    platforms: Mapping[str, Mapping[str, Any]] | None = None,
) -> bool:
    return bool(platform) and platform in flat_file_platforms(platforms)


def sensor_callable_name(platform: str | None) -> str:
    return _SENSOR_CALLABLES.get(platform or "", DEFAULT_SENSOR_CALLABLE)
