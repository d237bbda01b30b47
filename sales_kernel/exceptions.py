"""
Typed Exception Hierarchy for the Sales Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A sales cycle touches several documents per operation (quotation, order,
deliveries, invoice).  Callers must be able to tell a mixed-client
consolidation from an inactive client or a stamping timeout without parsing
message strings:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA, including the human-readable
     document number when one is known

Example:
    try:
        service.consolidate_deliveries_into_invoice(ids, actor)
    except AlreadyConsolidatedError as e:
        show(f"Delivery {e.delivery_number} is already on invoice {e.invoice_id}")
    except ConsolidationError as e:
        api_response(code=e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SalesKernelError (base)
    |
    +-- ResolutionError
    |   +-- NotFoundError
    |
    +-- PartyError
    |   +-- InactivePartyError
    |       +-- InactiveClientError
    |
    +-- LineError
    |   +-- InvalidLineError
    |   +-- EmptyDocumentError
    |
    +-- ConsolidationError
    |   +-- MixedClientError
    |   +-- MissingPriceError
    |   +-- AlreadyConsolidatedError
    |   +-- EmptyConsolidationError
    |
    +-- WorkflowError
    |   +-- IllegalTransitionError
    |   +-- UnauthorizedTransitionError
    |   +-- TransitionGuardError
    |
    +-- DeliveryError
    |   +-- OrderLineNotFoundError
    |   +-- ShipmentExceedsOrderError
    |
    +-- CreditNoteError
    |   +-- CreditNoteAgainstVoidInvoiceError
    |   +-- ProductNotOnInvoiceError
    |   +-- ReturnQuantityExceededError
    |   +-- ClientMismatchError
    |
    +-- DuplicateDocumentNumberError
    |
    +-- ExternalServiceError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                          | When Raised
--------------|-------------------------------|-------------------------------------
Resolution    | NOT_FOUND                     | No strategy matched the identifier
Party         | INACTIVE_PARTY                | Party blocked for billable states
              | INACTIVE_CLIENT               | Client blocked for invoicing
Line          | INVALID_LINE                  | Quantity/price/discount/tax invalid
              | EMPTY_DOCUMENT                | Document would have no items
Consolidation | MIXED_CLIENT                  | Deliveries belong to >1 client
              | MISSING_PRICE                 | No price on delivery or order line
              | ALREADY_CONSOLIDATED          | Delivery already carries an invoice
              | EMPTY_CONSOLIDATION           | Nothing left to invoice
Workflow      | ILLEGAL_TRANSITION            | Edge not in the state graph
              | UNAUTHORIZED_TRANSITION       | Actor role may not trigger edge
              | TRANSITION_GUARD_FAILED       | Guard condition not satisfied
Delivery      | ORDER_LINE_NOT_FOUND          | Product not on the order
              | SHIPMENT_EXCEEDS_ORDER        | Shipping more than remains
Credit note   | CREDIT_NOTE_AGAINST_VOID      | Invoice is void
              | PRODUCT_NOT_ON_INVOICE        | Returned product not invoiced
              | RETURN_QUANTITY_EXCEEDED      | Cumulative return > invoiced
              | CLIENT_MISMATCH               | Client differs from invoice client
Numbering     | DUPLICATE_DOCUMENT_NUMBER     | Document number already exists
External      | EXTERNAL_SERVICE_ERROR        | Collaborator failed or timed out
"""

from decimal import Decimal


class SalesKernelError(Exception):
    """
    Base exception for all sales kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SALES_KERNEL_ERROR"


def _label(document_number: str | None) -> str:
    return f" ({document_number})" if document_number else ""


# Resolution exceptions


class ResolutionError(SalesKernelError):
    """Base exception for identifier resolution errors."""

    code: str = "RESOLUTION_ERROR"


class NotFoundError(ResolutionError):
    """No entity of the given kind matched the identifier."""

    code: str = "NOT_FOUND"

    def __init__(self, kind: str, identifier: str | None):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier!r}")


# Party exceptions


class PartyError(SalesKernelError):
    """Base exception for party errors."""

    code: str = "PARTY_ERROR"


class InactivePartyError(PartyError):
    """Party is inactive and cannot take part in a billable document."""

    code: str = "INACTIVE_PARTY"

    def __init__(self, kind: str, party_id: str, party_code: str | None = None):
        self.kind = kind
        self.party_id = party_id
        self.party_code = party_code
        super().__init__(
            f"{kind} {party_code or party_id} is inactive"
        )


class InactiveClientError(InactivePartyError):
    """Client is inactive; invoicing and stamping are blocked."""

    code: str = "INACTIVE_CLIENT"

    def __init__(self, party_id: str, party_code: str | None = None):
        super().__init__("client", party_id, party_code)


# Line exceptions


class LineError(SalesKernelError):
    """Base exception for document line errors."""

    code: str = "LINE_ERROR"


class InvalidLineError(LineError):
    """A line value is outside its permitted range."""

    code: str = "INVALID_LINE"

    def __init__(self, field: str, value: object, product_id: str | None = None):
        self.field = field
        self.value = value
        self.product_id = product_id
        product = f" for product {product_id}" if product_id else ""
        super().__init__(f"Invalid {field}{product}: {value}")


class EmptyDocumentError(LineError):
    """An operation would produce a document without items."""

    code: str = "EMPTY_DOCUMENT"

    def __init__(self, entity_type: str, document_number: str | None = None):
        self.entity_type = entity_type
        self.document_number = document_number
        super().__init__(
            f"{entity_type}{_label(document_number)} has no items"
        )


# Consolidation exceptions


class ConsolidationError(SalesKernelError):
    """Base exception for delivery consolidation errors."""

    code: str = "CONSOLIDATION_ERROR"


class MixedClientError(ConsolidationError):
    """Deliveries selected for one invoice belong to different clients."""

    code: str = "MIXED_CLIENT"

    def __init__(self, client_ids: list[str], delivery_numbers: list[str]):
        self.client_ids = client_ids
        self.delivery_numbers = delivery_numbers
        super().__init__(
            f"Deliveries {', '.join(delivery_numbers)} belong to "
            f"different clients: {', '.join(client_ids)}"
        )


class MissingPriceError(ConsolidationError):
    """No positive unit price on the delivery line nor on its order line."""

    code: str = "MISSING_PRICE"

    def __init__(self, product_id: str, delivery_number: str | None = None):
        self.product_id = product_id
        self.delivery_number = delivery_number
        super().__init__(
            f"Product {product_id} on delivery{_label(delivery_number)} has no unit price"
        )


class AlreadyConsolidatedError(ConsolidationError):
    """Delivery is already linked to an invoice."""

    code: str = "ALREADY_CONSOLIDATED"

    def __init__(self, delivery_number: str, invoice_id: str):
        self.delivery_number = delivery_number
        self.invoice_id = invoice_id
        super().__init__(
            f"Delivery {delivery_number} is already invoiced on invoice {invoice_id}"
        )


class EmptyConsolidationError(ConsolidationError):
    """No deliveries, or no billable lines left after filtering."""

    code: str = "EMPTY_CONSOLIDATION"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Nothing to consolidate: {reason}")


# Workflow exceptions


class WorkflowError(SalesKernelError):
    """Base exception for document state machine errors."""

    code: str = "WORKFLOW_ERROR"


class IllegalTransitionError(WorkflowError):
    """The requested edge is not in the entity's state graph."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        from_state: str,
        to_state: str,
        document_number: str | None = None,
    ):
        self.entity_type = entity_type
        self.from_state = from_state
        self.to_state = to_state
        self.document_number = document_number
        super().__init__(
            f"{entity_type}{_label(document_number)} cannot move "
            f"from '{from_state}' to '{to_state}'"
        )


class UnauthorizedTransitionError(WorkflowError):
    """The actor's role may not trigger this edge."""

    code: str = "UNAUTHORIZED_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        action: str,
        actor_role: str,
        document_number: str | None = None,
    ):
        self.entity_type = entity_type
        self.action = action
        self.actor_role = actor_role
        self.document_number = document_number
        super().__init__(
            f"Role '{actor_role}' may not {action} "
            f"{entity_type}{_label(document_number)}"
        )


class TransitionGuardError(WorkflowError):
    """The edge exists but its guard condition is not satisfied."""

    code: str = "TRANSITION_GUARD_FAILED"

    def __init__(
        self,
        entity_type: str,
        guard_name: str,
        document_number: str | None = None,
    ):
        self.entity_type = entity_type
        self.guard_name = guard_name
        self.document_number = document_number
        super().__init__(
            f"{entity_type}{_label(document_number)}: guard '{guard_name}' not satisfied"
        )


# Delivery exceptions


class DeliveryError(SalesKernelError):
    """Base exception for delivery creation errors."""

    code: str = "DELIVERY_ERROR"


class OrderLineNotFoundError(DeliveryError):
    """The selected product is not a line of the order."""

    code: str = "ORDER_LINE_NOT_FOUND"

    def __init__(self, order_number: str, product_id: str):
        self.order_number = order_number
        self.product_id = product_id
        super().__init__(f"Product {product_id} is not on order {order_number}")


class ShipmentExceedsOrderError(DeliveryError):
    """Requested shipment quantity exceeds what remains on the order line."""

    code: str = "SHIPMENT_EXCEEDS_ORDER"

    def __init__(
        self,
        order_number: str,
        product_id: str,
        requested: Decimal,
        remaining: Decimal,
    ):
        self.order_number = order_number
        self.product_id = product_id
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Cannot ship {requested} of product {product_id} on order "
            f"{order_number}: only {remaining} remaining"
        )


# Credit note exceptions


class CreditNoteError(SalesKernelError):
    """Base exception for credit note errors."""

    code: str = "CREDIT_NOTE_ERROR"


class CreditNoteAgainstVoidInvoiceError(CreditNoteError):
    """Credit notes cannot reference a void invoice."""

    code: str = "CREDIT_NOTE_AGAINST_VOID"

    def __init__(self, invoice_number: str):
        self.invoice_number = invoice_number
        super().__init__(f"Invoice {invoice_number} is void; no credit note allowed")


class ProductNotOnInvoiceError(CreditNoteError):
    """A returned product does not appear on the invoice."""

    code: str = "PRODUCT_NOT_ON_INVOICE"

    def __init__(self, invoice_number: str, product_id: str):
        self.invoice_number = invoice_number
        self.product_id = product_id
        super().__init__(
            f"Product {product_id} does not belong to invoice {invoice_number}"
        )


class ReturnQuantityExceededError(CreditNoteError):
    """Cumulative credited quantity would exceed the invoiced quantity."""

    code: str = "RETURN_QUANTITY_EXCEEDED"

    def __init__(
        self,
        invoice_number: str,
        product_id: str,
        invoiced: Decimal,
        already_returned: Decimal,
        requested: Decimal,
    ):
        self.invoice_number = invoice_number
        self.product_id = product_id
        self.invoiced = invoiced
        self.already_returned = already_returned
        self.requested = requested
        super().__init__(
            f"Returning {requested} of product {product_id} on invoice "
            f"{invoice_number} exceeds invoiced {invoiced} "
            f"(already returned {already_returned})"
        )


class ClientMismatchError(CreditNoteError):
    """The credit note client differs from the invoice client."""

    code: str = "CLIENT_MISMATCH"

    def __init__(self, invoice_number: str, expected_client_id: str, client_id: str):
        self.invoice_number = invoice_number
        self.expected_client_id = expected_client_id
        self.client_id = client_id
        super().__init__(
            f"Client {client_id} does not match client {expected_client_id} "
            f"of invoice {invoice_number}"
        )


# Numbering exceptions


class DuplicateDocumentNumberError(SalesKernelError):
    """A document with this number already exists."""

    code: str = "DUPLICATE_DOCUMENT_NUMBER"

    def __init__(self, entity_type: str, document_number: str):
        self.entity_type = entity_type
        self.document_number = document_number
        super().__init__(f"{entity_type} number {document_number} already exists")


# Collaborator exceptions


class ExternalServiceError(SalesKernelError):
    """
    A collaborator (persistence store, stamping service) failed.

    ``timed_out`` distinguishes a timeout from an explicit rejection.
    Callers decide whether to retry; the kernel never retries on its own.
    """

    code: str = "EXTERNAL_SERVICE_ERROR"

    def __init__(
        self,
        service: str,
        operation: str,
        reason: str,
        timed_out: bool = False,
        document_number: str | None = None,
    ):
        self.service = service
        self.operation = operation
        self.reason = reason
        self.timed_out = timed_out
        self.document_number = document_number
        super().__init__(
            f"{service}.{operation} failed{_label(document_number)}: {reason}"
        )
