"""
Legacy row import: raw legacy-store rows -> canonical domain objects.

Rows read from the legacy store spell fields three ways (camelCase,
snake_case, old relational names) and states as single letters.  Every row
goes through the alias table in ``sales_kernel.domain.field_aliases`` once,
here; nothing downstream reads a legacy name.

``LegacyImporter`` promotes the mapped objects into the SQL repository,
skipping reference entities whose code already exists.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime
from typing import Any

from sales_kernel.domain.amounts import ZERO, to_decimal
from sales_kernel.domain.documents import (
    Delivery,
    DeliveryItem,
    DeliveryState,
    DocumentItem,
    EntityType,
    ShipmentStatus,
)
from sales_kernel.domain.field_aliases import (
    canonical_value,
    parse_flag,
    state_from_legacy,
)
from sales_kernel.domain.parties import Party, PartyKind, Product, Site
from sales_kernel.logging_config import get_logger

logger = get_logger("services.legacy_import")


def _str(row: Mapping[str, Any], canonical: str, default: str = "") -> str:
    v = canonical_value(row, canonical)
    return str(v).strip() if v is not None else default


def _optional_str(row: Mapping[str, Any], canonical: str) -> str | None:
    v = canonical_value(row, canonical)
    if v is None:
        return None
    return str(v).strip() or None


def _optional_int(row: Mapping[str, Any], canonical: str) -> int | None:
    v = canonical_value(row, canonical)
    if v is None:
        return None
    if isinstance(v, int):
        return v
    try:
        return int(str(v).strip())
    except (TypeError, ValueError):
        return None


def _optional_date(row: Mapping[str, Any], canonical: str) -> date | None:
    v = canonical_value(row, canonical)
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    if isinstance(v, str):
        try:
            return date.fromisoformat(v.strip()[:10])
        except ValueError:
            return None
    return None


# -----------------------------------------------------------------------------
# Reference entities
# -----------------------------------------------------------------------------


def party_from_row(row: Mapping[str, Any], kind: PartyKind) -> Party:
    """Map a legacy client or salesperson row."""
    code = _str(row, "legacy_code")
    if not code:
        raise ValueError(f"{kind.value} row without a code: {dict(row)!r}")
    return Party(
        id=_str(row, "id"),
        kind=kind,
        legacy_code=code,
        display_name=_str(row, "display_name", code),
        active=parse_flag(canonical_value(row, "active")),
        credit_term_days=_optional_int(row, "credit_term_days"),
    )


def site_from_row(row: Mapping[str, Any]) -> Site:
    """Map a legacy warehouse row; the code is kept as stored."""
    code = _optional_str(row, "site_id") or _str(row, "legacy_code")
    if not code:
        raise ValueError(f"site row without a code: {dict(row)!r}")
    return Site(id=_str(row, "id"), code=code, display_name=_str(row, "display_name", code))


def product_from_row(row: Mapping[str, Any]) -> Product:
    code = _optional_str(row, "product_code") or _str(row, "legacy_code")
    if not code:
        raise ValueError(f"product row without a code: {dict(row)!r}")
    return Product(
        id=_str(row, "id"),
        code=code,
        display_name=_str(row, "display_name", code),
        last_cost=to_decimal(canonical_value(row, "last_cost")),
    )


# -----------------------------------------------------------------------------
# Documents
# -----------------------------------------------------------------------------


def item_from_row(row: Mapping[str, Any]) -> DocumentItem:
    return DocumentItem(
        product_id=_optional_str(row, "product_id"),
        quantity=to_decimal(canonical_value(row, "quantity"), ZERO),
        unit_price=to_decimal(canonical_value(row, "unit_price"), ZERO),
        discount_percent=to_decimal(canonical_value(row, "discount_percent"), ZERO),
        tax_percent=to_decimal(canonical_value(row, "tax_percent"), ZERO),
        product_code=_optional_str(row, "product_code"),
        description=_optional_str(row, "description"),
    )


def delivery_item_from_row(row: Mapping[str, Any]) -> DeliveryItem:
    base = item_from_row(row)
    return DeliveryItem(
        product_id=base.product_id,
        quantity=base.quantity,
        unit_price=base.unit_price,
        discount_percent=base.discount_percent,
        tax_percent=base.tax_percent,
        product_code=base.product_code,
        description=base.description,
        quantity_shipped=to_decimal(canonical_value(row, "quantity_shipped")),
        quantity_invoiced=to_decimal(canonical_value(row, "quantity_invoiced"), ZERO),
        quantity_returned=to_decimal(canonical_value(row, "quantity_returned"), ZERO),
    )


def delivery_from_row(
    row: Mapping[str, Any], item_rows: Iterable[Mapping[str, Any]] = ()
) -> Delivery:
    """Map a legacy remission header plus its item rows."""
    number = _str(row, "number")
    client_id = _str(row, "client_id")
    if not number or not client_id:
        raise ValueError(f"delivery row needs a number and a client: {dict(row)!r}")
    state_value = canonical_value(row, "state")
    items = tuple(delivery_item_from_row(item) for item in item_rows)
    partial = any(
        item.quantity_shipped is not None and item.quantity_shipped < item.quantity
        for item in items
    )
    return Delivery(
        id=_str(row, "id"),
        number=number,
        client_id=client_id,
        items=items,
        state=(
            state_from_legacy(EntityType.DELIVERY, state_value)
            if state_value is not None
            else DeliveryState.DRAFT
        ),
        order_id=_optional_str(row, "order_id"),
        vendor_id=_optional_str(row, "vendor_id"),
        site_id=_optional_str(row, "site_id"),
        invoice_id=_optional_str(row, "invoice_id"),
        shipment_status=ShipmentStatus.PARTIAL if partial else ShipmentStatus.TOTAL,
        issue_date=_optional_date(row, "issue_date"),
        notes=_optional_str(row, "notes"),
    )


# -----------------------------------------------------------------------------
# Promotion into the repository
# -----------------------------------------------------------------------------


class LegacyImporter:
    """
    Promotes legacy reference rows into a ``SqlSalesRepository``.

    Duplicate check by code: a row whose code already exists is skipped.
    Returns the number of rows inserted.
    """

    def __init__(self, repository: Any):
        self._repository = repository

    def import_parties(self, rows: Iterable[Mapping[str, Any]], kind: PartyKind) -> int:
        existing = {p.legacy_code for p in self._repository.load_parties(kind)}
        inserted = 0
        for row in rows:
            party = party_from_row(row, kind)
            if party.legacy_code in existing:
                continue
            self._repository.add_party(party)
            existing.add(party.legacy_code)
            inserted += 1
        logger.info(
            "legacy_parties_imported",
            extra={"kind": kind.value, "inserted": inserted},
        )
        return inserted

    def import_sites(self, rows: Iterable[Mapping[str, Any]]) -> int:
        existing = {s.code for s in self._repository.load_sites()}
        inserted = 0
        for row in rows:
            site = site_from_row(row)
            if site.code in existing:
                continue
            self._repository.add_site(site)
            existing.add(site.code)
            inserted += 1
        logger.info("legacy_sites_imported", extra={"inserted": inserted})
        return inserted

    def import_products(self, rows: Iterable[Mapping[str, Any]]) -> int:
        existing = {p.code for p in self._repository.load_products()}
        inserted = 0
        for row in rows:
            product = product_from_row(row)
            if product.code in existing:
                continue
            self._repository.add_product(product)
            existing.add(product.code)
            inserted += 1
        logger.info("legacy_products_imported", extra={"inserted": inserted})
        return inserted

    def import_delivery(
        self, row: Mapping[str, Any], item_rows: Iterable[Mapping[str, Any]] = ()
    ) -> Delivery:
        delivery = delivery_from_row(row, item_rows)
        stored = self._repository.persist_delivery(delivery)
        logger.info(
            "legacy_delivery_imported",
            extra={"delivery_number": stored.number, "item_count": len(stored.items)},
        )
        return stored
