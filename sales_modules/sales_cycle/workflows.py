"""
Sales-Cycle Workflows.

State machines for quotations, orders, deliveries, invoices and credit
notes.  Every edge names the roles allowed to trigger it; ``admin`` may
trigger any edge.  Anything not listed here is an illegal transition.
"""

from sales_kernel.domain.documents import EntityType
from sales_kernel.domain.workflow import Guard, Transition, Workflow
from sales_kernel.logging_config import get_logger

logger = get_logger("modules.sales_cycle.workflows")

SALES = ("sales",)
LOGISTICS = ("logistics",)
BILLING = ("billing",)
SALES_OR_LOGISTICS = ("sales", "logistics")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

STAMPING_ACCEPTED = Guard(
    name="stamping_accepted",
    description="Tax authority accepted the invoice while its parties are active",
)

logger.info(
    "sales_cycle_workflow_guards_defined",
    extra={
        "guards": [
            STAMPING_ACCEPTED.name,
        ],
    },
)


# -----------------------------------------------------------------------------
# Quotation Workflow
# -----------------------------------------------------------------------------

QUOTATION_WORKFLOW = Workflow(
    name="sales_quotation",
    description="Quotation lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "sent",
        "approved",
        "rejected",
        "expired",
    ),
    transitions=(
        Transition("draft", "sent", action="send", allowed_roles=SALES),
        Transition("sent", "approved", action="approve", allowed_roles=SALES),
        Transition("sent", "rejected", action="reject", allowed_roles=SALES),
        Transition("sent", "expired", action="expire", allowed_roles=SALES),
        # re-open is explicit, never implied by another action
        Transition("rejected", "draft", action="reopen", allowed_roles=SALES),
        Transition("expired", "draft", action="reopen", allowed_roles=SALES),
    ),
    terminal_states=("approved",),
)

logger.info(
    "sales_quotation_workflow_registered",
    extra={
        "workflow_name": QUOTATION_WORKFLOW.name,
        "state_count": len(QUOTATION_WORKFLOW.states),
        "transition_count": len(QUOTATION_WORKFLOW.transitions),
        "initial_state": QUOTATION_WORKFLOW.initial_state,
    },
)


# -----------------------------------------------------------------------------
# Order Workflow
# -----------------------------------------------------------------------------

ORDER_WORKFLOW = Workflow(
    name="sales_order",
    description="Sales order lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "sent",
        "confirmed",
        "in_process",
        "partially_delivered",
        "delivered",
        "cancelled",
    ),
    transitions=(
        Transition("draft", "sent", action="send", allowed_roles=SALES),
        Transition("draft", "confirmed", action="confirm", allowed_roles=SALES),
        Transition("sent", "confirmed", action="confirm", allowed_roles=SALES),
        Transition("confirmed", "in_process", action="start_processing", allowed_roles=SALES_OR_LOGISTICS),
        Transition("confirmed", "partially_delivered", action="record_delivery", allowed_roles=SALES_OR_LOGISTICS),
        Transition("in_process", "partially_delivered", action="record_delivery", allowed_roles=SALES_OR_LOGISTICS),
        Transition("confirmed", "delivered", action="record_delivery", allowed_roles=SALES_OR_LOGISTICS),
        Transition("in_process", "delivered", action="record_delivery", allowed_roles=SALES_OR_LOGISTICS),
        Transition("partially_delivered", "delivered", action="record_delivery", allowed_roles=SALES_OR_LOGISTICS),
        Transition("draft", "cancelled", action="cancel", allowed_roles=SALES),
        Transition("sent", "cancelled", action="cancel", allowed_roles=SALES),
        Transition("confirmed", "cancelled", action="cancel", allowed_roles=SALES),
    ),
    terminal_states=("delivered", "cancelled"),
)

logger.info(
    "sales_order_workflow_registered",
    extra={
        "workflow_name": ORDER_WORKFLOW.name,
        "state_count": len(ORDER_WORKFLOW.states),
        "transition_count": len(ORDER_WORKFLOW.transitions),
        "initial_state": ORDER_WORKFLOW.initial_state,
    },
)


# -----------------------------------------------------------------------------
# Delivery Workflow
# -----------------------------------------------------------------------------

DELIVERY_WORKFLOW = Workflow(
    name="sales_delivery",
    description="Delivery (remission) lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "in_transit",
        "delivered",
    ),
    transitions=(
        Transition("draft", "in_transit", action="dispatch", allowed_roles=LOGISTICS),
        Transition("in_transit", "delivered", action="mark_delivered", allowed_roles=LOGISTICS),
        Transition("draft", "delivered", action="mark_delivered", allowed_roles=LOGISTICS),
    ),
    terminal_states=("delivered",),
)

logger.info(
    "sales_delivery_workflow_registered",
    extra={
        "workflow_name": DELIVERY_WORKFLOW.name,
        "state_count": len(DELIVERY_WORKFLOW.states),
        "transition_count": len(DELIVERY_WORKFLOW.transitions),
        "initial_state": DELIVERY_WORKFLOW.initial_state,
    },
)


# -----------------------------------------------------------------------------
# Invoice Workflow
# -----------------------------------------------------------------------------

INVOICE_WORKFLOW = Workflow(
    name="sales_invoice",
    description="Consolidated invoice lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "issued",
        "void",
    ),
    transitions=(
        Transition("draft", "issued", action="stamp", guard=STAMPING_ACCEPTED, allowed_roles=BILLING),
        Transition("issued", "void", action="void", allowed_roles=BILLING),
    ),
    terminal_states=("void",),
)

logger.info(
    "sales_invoice_workflow_registered",
    extra={
        "workflow_name": INVOICE_WORKFLOW.name,
        "state_count": len(INVOICE_WORKFLOW.states),
        "transition_count": len(INVOICE_WORKFLOW.transitions),
        "initial_state": INVOICE_WORKFLOW.initial_state,
    },
)


# -----------------------------------------------------------------------------
# Credit Note Workflow
# -----------------------------------------------------------------------------

CREDIT_NOTE_WORKFLOW = Workflow(
    name="sales_credit_note",
    description="Credit notes are recorded once and never transition",
    initial_state="recorded",
    states=("recorded",),
    transitions=(),
    terminal_states=("recorded",),
)


WORKFLOWS: dict[EntityType, Workflow] = {
    EntityType.QUOTATION: QUOTATION_WORKFLOW,
    EntityType.ORDER: ORDER_WORKFLOW,
    EntityType.DELIVERY: DELIVERY_WORKFLOW,
    EntityType.INVOICE: INVOICE_WORKFLOW,
    EntityType.CREDIT_NOTE: CREDIT_NOTE_WORKFLOW,
}
