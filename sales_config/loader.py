"""
Configuration Loader (``sales_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``SalesConfig`` dataclass.  The public entry point for runtime config is
``sales_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from sales_config.schema import DOCUMENT_TYPES, DocumentNumbering, SalesConfig

_SCALAR_FIELDS = {
    f.name for f in fields(SalesConfig) if f.name not in ("numbering", "checksum")
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a Decimal from YAML without passing through float arithmetic."""
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field_name} is not a decimal: {value!r}") from exc


def parse_numbering(data: dict[str, Any]) -> MappingProxyType:
    """Parse the ``numbering`` section, filling unspecified types with defaults."""
    defaults = SalesConfig().numbering
    parsed: dict[str, DocumentNumbering] = dict(defaults)
    for doc_type, spec in (data or {}).items():
        if doc_type not in DOCUMENT_TYPES:
            raise ValueError(f"numbering: unknown document type '{doc_type}'")
        base = defaults[doc_type]
        parsed[doc_type] = DocumentNumbering(
            prefix=str(spec.get("prefix", base.prefix)),
            width=int(spec.get("width", base.width)),
            include_year=bool(spec.get("include_year", base.include_year)),
        )
    return MappingProxyType(parsed)


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_sales_config(data: dict[str, Any]) -> SalesConfig:
    """Build a ``SalesConfig`` from a parsed YAML dict."""
    unknown = set(data) - _SCALAR_FIELDS - {"numbering"}
    if unknown:
        raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

    kwargs: dict[str, Any] = {k: v for k, v in data.items() if k in _SCALAR_FIELDS}
    if "return_quantity_tolerance" in kwargs:
        kwargs["return_quantity_tolerance"] = parse_decimal(
            kwargs["return_quantity_tolerance"], "return_quantity_tolerance"
        )
    if "default_site_code" in kwargs:
        kwargs["default_site_code"] = str(kwargs["default_site_code"])
    if "config_id" in kwargs:
        kwargs["config_id"] = str(kwargs["config_id"])

    return SalesConfig(
        **kwargs,
        numbering=parse_numbering(data.get("numbering", {})),
        checksum=compute_checksum(data),
    )


def load_config_file(path: Path) -> SalesConfig:
    """Load and parse one configuration file."""
    return parse_sales_config(load_yaml_file(path))
