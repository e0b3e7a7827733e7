"""
Eligibility and activation markers.

Eligible and activated role bindings are ordinary conditional bindings
whose condition follows a fixed convention. The functions here recognize
that convention. Each takes the resource being inspected and a binding,
and returns a typed result if the binding carries the marker, or ``None``
if it does not. They never raise for bindings that merely look odd.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from shared.errors import InvalidArgument
from ..conditions.expression import ConditionExpression
from .models import Activation, ActivationType, Binding, ResourceId, ResourceRole


JIT_CONDITION = "has({}.jitAccessConstraint)"
MPA_CONDITION = "has({}.multiPartyApprovalConstraint)"
ACTIVATION_CONDITION_TITLE = "JIT access activation"

_TEMPORARY_CONDITION = re.compile(
    r'^\s*request\.time\s*>=\s*timestamp\("([^"]+)"\)\s*&&'
    r'\s*request\.time\s*<\s*timestamp\("([^"]+)"\)\s*$'
)


@dataclass(frozen=True)
class EligibleRole:
    """Result of matching an eligibility marker."""
    resource_role: ResourceRole
    activation_type: ActivationType


@dataclass(frozen=True)
class ActivatedRole:
    """Result of matching an activation marker."""
    resource_role: ResourceRole
    activation: Activation


EligibilityMatcher = Callable[[ResourceId, Binding], Optional[EligibleRole]]
ActivationMatcher = Callable[[ResourceId, Binding], Optional[ActivatedRole]]


def _normalize(expression: str) -> str:
    return "".join(expression.split()).lower()


def _matches_constraint(binding: Binding, constraint: str) -> bool:
    return (binding.condition is not None
            and _normalize(binding.condition.expression) == _normalize(constraint))


def match_jit_eligible(resource_id: ResourceId, binding: Binding) -> Optional[EligibleRole]:
    if _matches_constraint(binding, JIT_CONDITION):
        return EligibleRole(ResourceRole(resource_id, binding.role), ActivationType.JIT)
    return None


def match_mpa_eligible(resource_id: ResourceId, binding: Binding) -> Optional[EligibleRole]:
    if _matches_constraint(binding, MPA_CONDITION):
        return EligibleRole(ResourceRole(resource_id, binding.role), ActivationType.MPA)
    return None


def _parse_timestamp(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    timestamp = datetime.fromisoformat(value)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp


def parse_activation_window(condition: ConditionExpression) -> Optional[Activation]:
    """Extract the activation window from a temporary condition.

    The window clause may be AND-ed with further clauses, either as a
    parenthesized clause or as two adjacent top-level comparisons; the
    other clauses are ignored.
    """
    top_level = condition.split_on_top_level_and()
    adjacent_pairs = [
        ConditionExpression(f"{first.expression}&&{second.expression}")
        for first, second in zip(top_level, top_level[1:])
    ]

    for clause in [condition] + top_level + adjacent_pairs:
        text = clause.expression.strip()
        while text.startswith("(") and text.endswith(")"):
            text = text[1:-1].strip()

        match = _TEMPORARY_CONDITION.match(text)
        if match is None:
            continue

        try:
            return Activation(_parse_timestamp(match.group(1)), _parse_timestamp(match.group(2)))
        except (ValueError, InvalidArgument):
            # Unparseable timestamps or an inverted window
            return None

    return None


def match_activation(resource_id: ResourceId, binding: Binding) -> Optional[ActivatedRole]:
    if binding.condition is None or binding.condition_title != ACTIVATION_CONDITION_TITLE:
        return None

    activation = parse_activation_window(binding.condition)
    if activation is None:
        return None

    return ActivatedRole(ResourceRole(resource_id, binding.role), activation)


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def activation_condition(activation: Activation) -> ConditionExpression:
    """Temporary condition that encodes an activation window."""
    return ConditionExpression(
        f'request.time >= timestamp("{_format_timestamp(activation.start_time)}") && '
        f'request.time < timestamp("{_format_timestamp(activation.end_time)}")'
    )


@dataclass(frozen=True)
class EligibilityMarkers:
    """The set of marker functions used to classify bindings."""
    jit: EligibilityMatcher = match_jit_eligible
    mpa: EligibilityMatcher = match_mpa_eligible
    activation: ActivationMatcher = match_activation

    def for_type(self, activation_type: ActivationType) -> EligibilityMatcher:
        if activation_type == ActivationType.JIT:
            return self.jit
        return self.mpa


def default_markers() -> EligibilityMarkers:
    return EligibilityMarkers()
