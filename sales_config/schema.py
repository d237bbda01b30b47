"""
Configuration schema (``sales_config.schema``).

Frozen dataclasses describing one sales-cycle configuration set.  Values
are parsed from YAML by ``sales_config.loader``; field defaults are the
values the legacy system hard-coded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

DOCUMENT_TYPES = ("quotation", "order", "delivery", "invoice", "credit_note")


@dataclass(frozen=True)
class DocumentNumbering:
    """How numbers of one document type are rendered.

    ``FC`` + width 6 renders consecutive 42 as ``FC-000042``; with
    ``include_year`` it renders ``NC-2024-000042``.
    """
    prefix: str
    width: int = 6
    include_year: bool = False

    def __post_init__(self) -> None:
        if self.width <= 0:
            raise ValueError(f"numbering width must be positive, got {self.width}")

    def render(self, value: int, year: int | None = None) -> str:
        parts = [self.prefix] if self.prefix else []
        if self.include_year and year is not None:
            parts.append(str(year))
        parts.append(str(value).zfill(self.width))
        return "-".join(parts)


def _default_numbering() -> Mapping[str, DocumentNumbering]:
    return MappingProxyType({
        "quotation": DocumentNumbering("COT"),
        "order": DocumentNumbering("PED"),
        "delivery": DocumentNumbering("REM"),
        "invoice": DocumentNumbering("FC"),
        "credit_note": DocumentNumbering("NC", include_year=True),
    })


@dataclass(frozen=True)
class SalesConfig:
    """
    Sales-cycle configuration.

    Validation happens at construction; an invalid value raises
    ``ValueError`` naming the field.
    """
    config_id: str = "default"
    version: int = 1
    currency: str = "COP"
    default_credit_term_days: int = 30
    activity_log_capacity: int = 100
    site_code_width: int = 3
    default_site_code: str = "001"
    stamping_timeout_seconds: float = 30.0
    invoice_notes_max_length: int = 150
    return_quantity_tolerance: Decimal = Decimal("0.0001")
    numbering: Mapping[str, DocumentNumbering] = field(default_factory=_default_numbering)
    checksum: str | None = None

    def __post_init__(self) -> None:
        if self.default_credit_term_days <= 0:
            raise ValueError("default_credit_term_days must be positive")
        if self.activity_log_capacity <= 0:
            raise ValueError("activity_log_capacity must be positive")
        if self.site_code_width <= 0:
            raise ValueError("site_code_width must be positive")
        if not self.default_site_code.strip():
            raise ValueError("default_site_code cannot be empty")
        if self.stamping_timeout_seconds <= 0:
            raise ValueError("stamping_timeout_seconds must be positive")
        if self.invoice_notes_max_length < 10:
            raise ValueError("invoice_notes_max_length must be at least 10")
        if self.return_quantity_tolerance < 0:
            raise ValueError("return_quantity_tolerance cannot be negative")
        if len(self.currency) != 3 or not self.currency.isalpha():
            raise ValueError(f"currency must be a 3-letter code, got '{self.currency}'")
        missing = [t for t in DOCUMENT_TYPES if t not in self.numbering]
        if missing:
            raise ValueError(f"numbering missing document types: {missing}")

    def numbering_for(self, document_type: str) -> DocumentNumbering:
        return self.numbering[document_type]
