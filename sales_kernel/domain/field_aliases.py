"""
Legacy field aliases (``sales_kernel.domain.field_aliases``).

The legacy store and its clients spell the same field several ways
(``clienteId`` / ``cliente_id`` / ``codter``, ``facturaId`` / ``factura_id``)
and store states as single-letter codes.  This table maps every alias to one
canonical field, once, at the persistence boundary; nothing downstream reads
a legacy name.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any

from sales_kernel.domain.documents import (
    STATE_ENUMS,
    DeliveryState,
    EntityType,
    InvoiceState,
    OrderState,
    QuotationState,
)

# canonical field -> accepted legacy spellings, in priority order
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("id", "ID"),
    "number": (
        "number", "numero", "numeroRemision", "numero_remision",
        "numeroPedido", "numero_pedido", "numeroCotizacion",
        "numero_cotizacion", "numeroFactura", "numero_factura",
    ),
    "client_id": ("client_id", "clienteId", "cliente_id", "codter", "codcli"),
    "vendor_id": ("vendor_id", "vendedorId", "vendedor_id", "codVendedor", "codi_emple"),
    "order_id": ("order_id", "pedidoId", "pedido_id"),
    "invoice_id": ("invoice_id", "facturaId", "factura_id"),
    "site_id": ("site_id", "codalm", "almacenId", "almacen_id", "empresaId"),
    "state": ("state", "estado"),
    "legacy_code": (
        "legacy_code", "codter", "numeroDocumento", "numero_documento", "nit",
        "codiEmple", "codi_emple", "codigoVendedor", "codigo",
    ),
    "display_name": (
        "display_name", "razonSocial", "razon_social", "nomter", "nombre",
        "nombreCompleto", "nomalm",
    ),
    "active": ("active", "activo", "estado_activo"),
    "credit_term_days": ("credit_term_days", "diasCredito", "dias_credito", "plazo"),
    "product_id": ("product_id", "productoId", "producto_id"),
    "product_code": ("product_code", "codProducto", "cod_producto", "codins", "referencia"),
    "description": ("description", "descripcion", "nombre"),
    "quantity": ("quantity", "cantidad"),
    "quantity_shipped": ("quantity_shipped", "cantidadEnviada", "cantidad_enviada"),
    "quantity_invoiced": ("quantity_invoiced", "cantidadFacturada", "cantidad_facturada"),
    "quantity_returned": ("quantity_returned", "cantidadDevuelta", "cantidad_devuelta"),
    "unit_price": ("unit_price", "precioUnitario", "precio_unitario", "valorUnitario"),
    "discount_percent": (
        "discount_percent", "descuentoPorcentaje", "descuento_porcentaje",
    ),
    "tax_percent": ("tax_percent", "ivaPorcentaje", "iva_porcentaje", "porcentajeIva"),
    "last_cost": ("last_cost", "ultimoCosto", "ultimo_costo", "costo"),
    "issue_date": (
        "issue_date", "fecha", "fechaRemision", "fecha_remision", "fechaPedido",
        "fecha_pedido", "fechaCotizacion", "fecha_cotizacion",
    ),
    "notes": ("notes", "observaciones", "observacion"),
}

# Legacy single-letter and long-form state spellings per document type.
_LEGACY_STATES: dict[EntityType, dict[str, Enum]] = {
    EntityType.QUOTATION: {
        "B": QuotationState.DRAFT, "BORRADOR": QuotationState.DRAFT,
        "E": QuotationState.SENT, "ENVIADA": QuotationState.SENT,
        "A": QuotationState.APPROVED, "APROBADA": QuotationState.APPROVED,
        "R": QuotationState.REJECTED, "RECHAZADA": QuotationState.REJECTED,
        "V": QuotationState.EXPIRED, "VENCIDA": QuotationState.EXPIRED,
    },
    EntityType.ORDER: {
        "B": OrderState.DRAFT, "BORRADOR": OrderState.DRAFT,
        "E": OrderState.SENT, "ENVIADA": OrderState.SENT,
        "C": OrderState.CONFIRMED, "CONFIRMADO": OrderState.CONFIRMED,
        "P": OrderState.IN_PROCESS, "EN_PROCESO": OrderState.IN_PROCESS,
        "L": OrderState.PARTIALLY_DELIVERED,
        "PARCIALMENTE_REMITIDO": OrderState.PARTIALLY_DELIVERED,
        "M": OrderState.DELIVERED, "REMITIDO": OrderState.DELIVERED,
        "X": OrderState.CANCELLED, "CANCELADO": OrderState.CANCELLED,
    },
    EntityType.DELIVERY: {
        "B": DeliveryState.DRAFT, "BORRADOR": DeliveryState.DRAFT,
        "T": DeliveryState.IN_TRANSIT, "EN_TRANSITO": DeliveryState.IN_TRANSIT,
        "D": DeliveryState.DELIVERED, "ENTREGADO": DeliveryState.DELIVERED,
    },
    EntityType.INVOICE: {
        "B": InvoiceState.DRAFT, "BORRADOR": InvoiceState.DRAFT,
        "E": InvoiceState.ISSUED, "EMITIDA": InvoiceState.ISSUED,
        "ENVIADA": InvoiceState.ISSUED,
        "X": InvoiceState.VOID, "ANULADA": InvoiceState.VOID,
    },
}

_TRUE_FLAGS = frozenset({"1", "true", "t", "s", "si", "y", "yes", "a", "activo"})


def canonical_value(row: Mapping[str, Any], canonical: str, default: Any = None) -> Any:
    """Return the first non-empty value among ``canonical``'s aliases."""
    for alias in FIELD_ALIASES.get(canonical, (canonical,)):
        value = row.get(alias)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return default


def canonicalize(row: Mapping[str, Any], fields: tuple[str, ...]) -> dict[str, Any]:
    """Map a legacy row to a dict keyed by canonical field names."""
    return {name: canonical_value(row, name) for name in fields}


def parse_flag(value: Any, default: bool = True) -> bool:
    """Interpret legacy active flags (``1``, ``'S'``, ``True``, ``'activo'``)."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in _TRUE_FLAGS


def state_from_legacy(entity_type: EntityType, value: Any) -> Enum:
    """
    Map a stored state to the state enum of ``entity_type``.

    Accepts canonical values (``"draft"``), long legacy names
    (``"BORRADOR"``) and single-letter codes (``"B"``).

    Raises:
        ValueError: if the value is not a known spelling.
    """
    enum_cls = STATE_ENUMS[entity_type]
    if isinstance(value, enum_cls):
        return value
    text = str(value).strip()
    for member in enum_cls:
        if member.value == text.lower():
            return member
    legacy = _LEGACY_STATES.get(entity_type, {})
    key = text.upper().replace(" ", "_")
    if key in legacy:
        return legacy[key]
    raise ValueError(f"Unknown {entity_type.value} state: {value!r}")


def state_to_legacy(entity_type: EntityType, state: Enum) -> str:
    """Return the single-letter legacy code for ``state``."""
    for code, member in _LEGACY_STATES.get(entity_type, {}).items():
        if member is state and len(code) == 1:
            return code
    raise ValueError(f"No legacy code for {entity_type.value} state {state.value}")
