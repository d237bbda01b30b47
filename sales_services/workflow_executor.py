"""
sales_services.workflow_executor -- Document state transition execution.

Responsibility:
    Validates and applies state transitions for sales documents.  Reads the
    document fresh from the repository, looks the edge up in its workflow,
    checks the actor's role and any guard, then persists the new state.

Architecture position:
    Services layer.  May import from sales_kernel/ (domain, exceptions,
    ports) and sales_modules/ workflow definitions.

Invariants enforced:
    - The current state always comes from a fresh repository read, never
      from a copy the caller holds.
    - Only whitelisted edges are applied; anything else raises
      ``IllegalTransitionError`` naming the document.
    - Re-applying a transition the document already went through (for
      example confirming twice) is an error, never a silent success.
    - The state is re-checked under the row lock when it is written, so two
      callers racing on the same edge cannot both succeed.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from sales_kernel.domain.clock import Clock, SystemClock
from sales_kernel.domain.documents import STATE_ENUMS, EntityType
from sales_kernel.domain.field_aliases import state_from_legacy
from sales_kernel.domain.parties import Actor
from sales_kernel.domain.workflow import Guard, Transition, Workflow
from sales_kernel.exceptions import (
    IllegalTransitionError,
    NotFoundError,
    TransitionGuardError,
    UnauthorizedTransitionError,
)
from sales_kernel.logging_config import LogContext, get_logger
from sales_kernel.ports import SalesRepository
from sales_modules.sales_cycle.workflows import WORKFLOWS

logger = get_logger("services.workflow_executor")

TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_SUCCESS = "success"
OUTCOME_GUARD_FAILED = "guard_failed"
OUTCOME_NO_TRANSITION = "no_transition"
OUTCOME_UNAUTHORIZED = "unauthorized"


def _emit_workflow_trace(
    clock: Clock,
    workflow_name: str,
    action: str,
    entity_type: str,
    entity_id: str,
    from_state: str,
    outcome: str,
    reason: str,
    duration_ms: float,
    to_state: str | None = None,
    document_number: str | None = None,
    actor_role: str | None = None,
) -> None:
    """Emit a structured workflow transition record."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
        "ts": clock.now_utc().isoformat(),
        "workflow": workflow_name,
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "from_state": from_state,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
    }
    if to_state is not None:
        record["to_state"] = to_state
    if document_number is not None:
        record["document_number"] = document_number
    if actor_role is not None:
        record["actor_role"] = actor_role
    record.update(LogContext.get_all())
    logger.info("workflow_transition", extra=record)


# ---------------------------------------------------------------------------
# Guard evaluation
# ---------------------------------------------------------------------------


def _get_attr(context: Any, key: str, default: Any = None) -> Any:
    """Get attribute from context (object or dict)."""
    if context is None:
        return default
    if hasattr(context, "get") and callable(getattr(context, "get")):
        return context.get(key, default)
    return getattr(context, key, default)


def _stamping_accepted(context: Any) -> bool:
    """Invoice stamp: receipt accepted with a reference, parties active."""
    receipt = _get_attr(context, "receipt")
    if receipt is None or not getattr(receipt, "accepted", False):
        return False
    if not getattr(receipt, "reference", None):
        return False
    return bool(_get_attr(context, "parties_active", False))


class GuardExecutor:
    """Evaluates workflow guards against context.

    Guards are declared on transitions (name + description).  This executor
    holds the evaluation logic per guard name and is called by
    WorkflowExecutor before a transition is applied.
    """

    def __init__(self) -> None:
        self._evaluators: dict[str, Callable[[Any], bool]] = {}

    def register(self, guard_name: str, evaluator: Callable[[Any], bool]) -> None:
        """Register an evaluator for a guard by name."""
        self._evaluators[guard_name] = evaluator

    def evaluate(self, guard: Guard, context: Any = None) -> bool:
        """Evaluate a guard against context. Returns True if guard passes."""
        fn = self._evaluators.get(guard.name)
        if fn is None:
            logger.warning(
                "guard_no_evaluator",
                extra={"guard_name": guard.name},
            )
            return False
        try:
            return fn(context)
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "guard_evaluation_error",
                extra={"guard_name": guard.name, "error": str(e)},
            )
            return False


def default_guard_executor() -> GuardExecutor:
    """Return a GuardExecutor with built-in evaluators registered."""
    ex = GuardExecutor()
    ex.register("stamping_accepted", _stamping_accepted)
    return ex


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlannedTransition:
    """A validated edge for one document, ready to be applied."""
    entity_type: EntityType
    entity_id: str
    document_number: str
    from_state: Enum
    to_state: Enum
    transition: Transition
    workflow: Workflow


def coerce_state(entity_type: EntityType, value: Enum | str) -> Enum:
    """Accept a state enum, its value or a legacy spelling."""
    return state_from_legacy(entity_type, value)


class WorkflowExecutor:
    """
    Applies document state transitions through the repository.

    Usage:
        executor = WorkflowExecutor(repository)
        order = executor.execute(EntityType.ORDER, "12", OrderState.CONFIRMED, actor)
    """

    def __init__(
        self,
        repository: SalesRepository,
        guard_executor: GuardExecutor | None = None,
        workflows: dict[EntityType, Workflow] | None = None,
        clock: Clock | None = None,
    ):
        self._repository = repository
        self._clock = clock or SystemClock()
        self._guards = guard_executor or default_guard_executor()
        self._workflows = workflows or WORKFLOWS

    def _load(self, entity_type: EntityType, entity_id: str) -> Any:
        loaders = {
            EntityType.QUOTATION: self._repository.get_quotation,
            EntityType.ORDER: self._repository.get_order,
            EntityType.DELIVERY: self._repository.get_delivery,
            EntityType.INVOICE: self._repository.get_invoice,
            EntityType.CREDIT_NOTE: self._repository.get_credit_note,
        }
        document = loaders[entity_type](entity_id)
        if document is None:
            raise NotFoundError(entity_type.value, entity_id)
        return document

    def validate(
        self,
        entity_type: EntityType,
        entity_id: str,
        target_state: Enum | str,
        actor: Actor,
        context: Any = None,
    ) -> PlannedTransition:
        """
        Check an edge against a fresh read of the document.

        Raises:
            NotFoundError: the document does not exist.
            IllegalTransitionError: the edge is not in the workflow.
            UnauthorizedTransitionError: the actor's role may not trigger it.
            TransitionGuardError: the edge's guard is not satisfied.
        """
        start = time.monotonic()
        workflow = self._workflows[entity_type]
        target = coerce_state(entity_type, target_state)
        document = self._load(entity_type, entity_id)
        current = document.state
        role = actor.role.value

        transition = workflow.find(current.value, target.value)
        if transition is None:
            _emit_workflow_trace(
                self._clock, workflow.name, "", entity_type.value, entity_id, current.value,
                OUTCOME_NO_TRANSITION,
                f"no edge {current.value} -> {target.value}",
                (time.monotonic() - start) * 1000,
                to_state=target.value,
                document_number=document.number,
                actor_role=role,
            )
            raise IllegalTransitionError(
                entity_type.value, current.value, target.value, document.number
            )

        if not transition.permits(role):
            _emit_workflow_trace(
                self._clock, workflow.name, transition.action, entity_type.value, entity_id,
                current.value, OUTCOME_UNAUTHORIZED,
                f"role {role} not in {list(transition.allowed_roles)}",
                (time.monotonic() - start) * 1000,
                to_state=target.value,
                document_number=document.number,
                actor_role=role,
            )
            raise UnauthorizedTransitionError(
                entity_type.value, transition.action, role, document.number
            )

        if transition.guard is not None and not self._guards.evaluate(
            transition.guard, context
        ):
            _emit_workflow_trace(
                self._clock, workflow.name, transition.action, entity_type.value, entity_id,
                current.value, OUTCOME_GUARD_FAILED,
                f"guard {transition.guard.name} not satisfied",
                (time.monotonic() - start) * 1000,
                to_state=target.value,
                document_number=document.number,
                actor_role=role,
            )
            raise TransitionGuardError(
                entity_type.value, transition.guard.name, document.number
            )

        return PlannedTransition(
            entity_type=entity_type,
            entity_id=entity_id,
            document_number=document.number,
            from_state=current,
            to_state=target,
            transition=transition,
            workflow=workflow,
        )

    def execute(
        self,
        entity_type: EntityType,
        entity_id: str,
        target_state: Enum | str,
        actor: Actor,
        context: Any = None,
        **changes: Any,
    ) -> Any:
        """Validate the edge, then persist the new state with ``changes``."""
        start = time.monotonic()
        planned = self.validate(entity_type, entity_id, target_state, actor, context)
        try:
            updated = self._repository.update_state(
                entity_type,
                entity_id,
                planned.to_state,
                expected_state=planned.from_state,
                updated_by=actor.id,
                **changes,
            )
        except IllegalTransitionError as exc:
            _emit_workflow_trace(
                self._clock,
                planned.workflow.name,
                planned.transition.action,
                entity_type.value,
                entity_id,
                planned.from_state.value,
                OUTCOME_NO_TRANSITION,
                f"state changed to {exc.from_state} before the update",
                (time.monotonic() - start) * 1000,
                to_state=planned.to_state.value,
                document_number=planned.document_number,
                actor_role=actor.role.value,
            )
            raise
        _emit_workflow_trace(
            self._clock,
            planned.workflow.name,
            planned.transition.action,
            entity_type.value,
            entity_id,
            planned.from_state.value,
            OUTCOME_SUCCESS,
            "transition applied",
            (time.monotonic() - start) * 1000,
            to_state=planned.to_state.value,
            document_number=planned.document_number,
            actor_role=actor.role.value,
        )
        return updated

    def allowed_targets(self, entity_type: EntityType, state: Enum) -> tuple[Enum, ...]:
        """States reachable from ``state`` in one step."""
        enum_cls = STATE_ENUMS[entity_type]
        return tuple(
            enum_cls(value) for value in self._workflows[entity_type].targets(state.value)
        )
