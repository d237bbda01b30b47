"""
sales_config -- single public entrypoint for sales-cycle configuration.

Responsibility:
    Provides the way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``SalesConfig``.

Architecture position:
    Configuration.  Sits above ``sales_kernel`` and below
    ``sales_services`` / ``sales_modules``.  The kernel and the engines never
    import from ``sales_config``; the orchestrator hands them plain values.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``SALES_CONFIG_TRACE`` log entry with the config id, version and
    checksum of the loaded file.
"""

from __future__ import annotations

import os
from pathlib import Path

from sales_config.loader import load_config_file
from sales_config.schema import DocumentNumbering, SalesConfig
from sales_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"

CONFIG_PATH_ENV = "SALES_CONFIG_PATH"


def get_active_config(config_path: Path | None = None) -> SalesConfig:
    """
    Load the active configuration.

    Resolution order: explicit ``config_path``, then the
    ``SALES_CONFIG_PATH`` environment variable, then the bundled
    ``sets/default.yaml``.

    Raises:
        FileNotFoundError: If the selected file does not exist.
        ValueError: If the file fails validation.
    """
    env_path = os.environ.get(CONFIG_PATH_ENV)
    path = config_path or (Path(env_path) if env_path else _DEFAULT_CONFIG_FILE)
    config = load_config_file(path)

    _logger.info(
        "SALES_CONFIG_TRACE",
        extra={
            "trace_type": "SALES_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
        },
    )
    return config


__all__ = [
    "DocumentNumbering",
    "SalesConfig",
    "get_active_config",
]
