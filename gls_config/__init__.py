"""
gls_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains settings.
    It reads the packaged ``defaults.yaml``, overlays the file named by the
    ``GLS_CONFIG`` environment variable (or the ``path`` argument), and
    finally applies ``GLS_DATABASE_URL``.

Architecture position:
    Configuration -- sits above ``gls_engines`` and below ``gls_modules``.
    The kernel never imports from ``gls_config``.

Audit relevance:
    Every call emits a ``GLS_CONFIG_TRACE`` log entry carrying the checksum
    of the merged configuration.
"""

from __future__ import annotations

import os
from pathlib import Path

from gls_config.loader import load_yaml_file, merge_config, parse_settings
from gls_config.schema import (
    DatabaseSettings,
    GlsSettings,
    LoggingSettings,
    WorkflowSettings,
)
from gls_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"

CONFIG_ENV_VAR = "GLS_CONFIG"
DATABASE_URL_ENV_VAR = "GLS_DATABASE_URL"

__all__ = [
    "DatabaseSettings",
    "GlsSettings",
    "LoggingSettings",
    "WorkflowSettings",
    "get_active_config",
]


def get_active_config(
    path: Path | str | None = None,
    environ: dict[str, str] | None = None,
) -> GlsSettings:
    """Load and validate the active configuration.

    Args:
        path: Override file; defaults to ``$GLS_CONFIG`` when set.
        environ: Environment mapping (``os.environ`` when omitted).

    Raises:
        FileNotFoundError: override file does not exist.
        ValueError: unknown keys or invalid values.
    """
    env = os.environ if environ is None else environ
    data = load_yaml_file(DEFAULTS_FILE)

    override_path = path or env.get(CONFIG_ENV_VAR)
    if override_path:
        data = merge_config(data, load_yaml_file(Path(override_path)))

    database_url = env.get(DATABASE_URL_ENV_VAR)
    if database_url:
        data = merge_config(data, {"database": {"url": database_url}})

    settings = parse_settings(data)
    logger.info(
        "GLS_CONFIG_TRACE",
        extra={
            "trace_type": "GLS_CONFIG_TRACE",
            "checksum": settings.checksum,
            "override_file": str(override_path) if override_path else None,
            "database_dialect": settings.database.url.split(":", 1)[0],
        },
    )
    return settings
