"""Turns a desired/observed diff into an ordered OperationPlan.

Ordering rules applied on top of plain field diffs:
- Create flows start with a single Create op carrying the create payload
- Reference fields detach from the old target before attaching to the new one
- Gated resources are disabled before any other change and re-enabled last
- Remaining ops are ordered by tier, then by rule declaration order
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from .classifiers import ErrorClassifier
from .models import ObservedState, ResourceSpec
from .operations import MutationOp, OperationPlan, OpKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldRule:
    """Maps one or more spec fields to a mutation kind.

    Attributes:
        fields: Spec fields handled together. Grouped rules emit a single op
            whose value is a dict of every field (desired if set, else observed).
        kind: Op kind emitted when any set field differs.
        reference: Field points at another resource; changes detach then attach.
        detach_kind: Op kind emitted to release the old target of a reference.
        default: Value a freshly created resource has for these fields.
        tier: Ordering tier; lower tiers run first.
        in_flux: The resource must be polled for readiness after the op.
        retry_on: Classifier for transient failures (attach only for references).
        when: Optional predicate on the desired spec; rule is skipped when false.
    """

    fields: tuple[str, ...]
    kind: OpKind
    reference: bool = False
    detach_kind: OpKind = OpKind.DETACH_NETWORK
    default: Any = None
    tier: int = 0
    in_flux: bool = False
    retry_on: ErrorClassifier | None = None
    when: Callable[[ResourceSpec], bool] | None = None


class MutationPlanner:
    """Pure diff-to-plan function configured with per-type field rules."""

    def __init__(
        self,
        field_rules: Sequence[FieldRule],
        gate_field: str | None = None,
        create_fields: Sequence[str] = (),
    ) -> None:
        self._rules = tuple(field_rules)
        self._gate_field = gate_field
        self._create_fields = tuple(create_fields)

    def plan(self, desired: ResourceSpec, observed: ObservedState | None) -> OperationPlan:
        """Compute the ordered ops that move `observed` to `desired`.

        Args:
            desired: Target configuration.
            observed: Current remote state, or None for a create flow.

        Returns:
            Ordered plan. Empty when nothing differs.
        """
        creating = observed is None

        ranked: list[tuple[int, MutationOp]] = []
        for rule in self._rules:
            if rule.when is not None and not rule.when(desired):
                continue
            if creating and set(rule.fields) <= set(self._create_fields):
                continue
            ranked.extend((rule.tier, op) for op in self._diff(rule, desired, observed))

        # sorted() is stable, ties keep rule declaration order
        ops = [op for _, op in sorted(ranked, key=lambda item: item[0])]

        if self._gate_field is not None:
            ops = self._apply_gate(ops, desired, observed)

        if creating:
            payload = self._create_payload(desired)
            ops.insert(0, MutationOp(OpKind.CREATE, "", payload, in_flux=True))

        plan = OperationPlan(ops)
        logger.debug(
            "Computed plan",
            extra={"creating": creating, "ops": [str(op) for op in plan]},
        )
        return plan

    def _create_payload(self, desired: ResourceSpec) -> dict[str, Any]:
        return {
            name: getattr(desired, name) for name in self._create_fields if desired.is_set(name)
        }

    def _diff(
        self, rule: FieldRule, desired: ResourceSpec, observed: ObservedState | None
    ) -> list[MutationOp]:
        set_fields = [name for name in rule.fields if desired.is_set(name)]
        if not set_fields:
            return []

        def current(name: str) -> Any:
            if observed is None:
                return rule.default
            return getattr(observed, name, None)

        if not any(getattr(desired, name) != current(name) for name in set_fields):
            return []

        first = rule.fields[0]

        if rule.reference:
            old = current(first)
            new = getattr(desired, first)
            ops = []
            if old is not None:
                ops.append(MutationOp(rule.detach_kind, first, old, in_flux=rule.in_flux))
            if new is not None:
                ops.append(
                    MutationOp(rule.kind, first, new, in_flux=rule.in_flux, retry_on=rule.retry_on)
                )
            return ops

        if len(rule.fields) == 1:
            value = getattr(desired, first)
        else:
            value = {
                name: getattr(desired, name) if desired.is_set(name) else current(name)
                for name in rule.fields
            }
        return [MutationOp(rule.kind, first, value, in_flux=rule.in_flux, retry_on=rule.retry_on)]

    def _apply_gate(
        self, ops: list[MutationOp], desired: ResourceSpec, observed: ObservedState | None
    ) -> list[MutationOp]:
        gate = self._gate_field
        # A resource that does not exist yet is never enabled
        currently_enabled = bool(getattr(observed, gate, False)) if observed is not None else False

        desired_enabled = currently_enabled
        if desired.is_set(gate) and getattr(desired, gate) is not None:
            desired_enabled = bool(getattr(desired, gate))

        if not ops:
            if desired_enabled != currently_enabled:
                return [MutationOp(OpKind.SET_ENABLED, gate, desired_enabled)]
            return []

        gated = list(ops)
        if currently_enabled:
            gated.insert(0, MutationOp(OpKind.SET_ENABLED, gate, False))
        if desired_enabled:
            gated.append(MutationOp(OpKind.SET_ENABLED, gate, True))
        return gated
