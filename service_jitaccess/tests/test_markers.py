"""
Unit tests for eligibility and activation markers.
"""

import pytest
from datetime import datetime, timezone

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_jitaccess.app.catalog.markers import (
    ACTIVATION_CONDITION_TITLE, EligibilityMarkers, activation_condition, default_markers,
    match_activation, match_jit_eligible, match_mpa_eligible, parse_activation_window
)
from service_jitaccess.app.catalog.models import (
    Activation, ActivationType, Binding, ResourceId, ResourceRole
)
from service_jitaccess.app.conditions.expression import ConditionExpression


PROJECT = ResourceId("project-1")
START = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
END = datetime(2024, 3, 1, 13, 0, 0, tzinfo=timezone.utc)


def binding(expression, title=None, role="roles/compute.viewer"):
    condition = ConditionExpression(expression) if expression is not None else None
    return Binding(role, {"user:alice@example.com"}, condition, title)


class TestEligibilityMarkers:

    @pytest.mark.parametrize("expression", [
        "has({}.jitAccessConstraint)",
        "  has( {}.jitAccessConstraint )\n",
        "HAS({}.JITACCESSCONSTRAINT)",
    ])
    def test_jit_marker(self, expression):
        eligible = match_jit_eligible(PROJECT, binding(expression))

        assert eligible is not None
        assert eligible.resource_role == ResourceRole(PROJECT, "roles/compute.viewer")
        assert eligible.activation_type == ActivationType.JIT

    def test_mpa_marker(self):
        eligible = match_mpa_eligible(PROJECT, binding("has({}.multiPartyApprovalConstraint)"))

        assert eligible is not None
        assert eligible.activation_type == ActivationType.MPA

    @pytest.mark.parametrize("expression", [
        None,
        "",
        "true",
        "has({}.multiPartyApprovalConstraint)",
        "has({}.jitAccessConstraint) && true",
    ])
    def test_other_conditions_are_not_jit(self, expression):
        assert match_jit_eligible(PROJECT, binding(expression)) is None

    def test_jit_marker_is_not_mpa(self):
        assert match_mpa_eligible(PROJECT, binding("has({}.jitAccessConstraint)")) is None

    def test_for_type(self):
        markers = default_markers()

        assert markers.for_type(ActivationType.JIT) is match_jit_eligible
        assert markers.for_type(ActivationType.MPA) is match_mpa_eligible

    def test_markers_are_pluggable(self):
        markers = EligibilityMarkers(jit=lambda resource_id, b: None)

        assert markers.for_type(ActivationType.JIT)(PROJECT, binding("has({}.jitAccessConstraint)")) is None
        assert markers.mpa is match_mpa_eligible


class TestActivationMarker:

    def test_round_trip_window(self):
        condition = activation_condition(Activation(START, END))

        assert condition.expression == (
            'request.time >= timestamp("2024-03-01T12:00:00Z") && '
            'request.time < timestamp("2024-03-01T13:00:00Z")'
        )
        assert parse_activation_window(condition) == Activation(START, END)

    def test_activation_binding(self):
        condition = activation_condition(Activation(START, END))

        activated = match_activation(PROJECT, binding(condition.expression, ACTIVATION_CONDITION_TITLE))

        assert activated is not None
        assert activated.resource_role == ResourceRole(PROJECT, "roles/compute.viewer")
        assert activated.activation == Activation(START, END)

    def test_window_combined_with_other_clauses(self):
        window = activation_condition(Activation(START, END))
        condition = ConditionExpression.and_all([
            window,
            ConditionExpression("resource.name.startsWith('projects/_/buckets/a')")
        ])

        assert parse_activation_window(condition) == Activation(START, END)

    def test_unparenthesized_window_followed_by_other_clause(self):
        condition = ConditionExpression(
            'request.time >= timestamp("2024-01-01T00:00:00Z") && '
            'request.time < timestamp("2024-01-02T00:00:00Z") && '
            'resource.name == "x"'
        )

        assert parse_activation_window(condition) == Activation(
            datetime(2024, 1, 1, tzinfo=timezone.utc),
            datetime(2024, 1, 2, tzinfo=timezone.utc)
        )

    def test_unparenthesized_window_after_other_clause(self):
        condition = ConditionExpression(
            'resource.name == "x" && '
            'request.time >= timestamp("2024-01-01T00:00:00Z") && '
            'request.time < timestamp("2024-01-02T00:00:00Z")'
        )

        assert parse_activation_window(condition) == Activation(
            datetime(2024, 1, 1, tzinfo=timezone.utc),
            datetime(2024, 1, 2, tzinfo=timezone.utc)
        )

    def test_title_is_required(self):
        condition = activation_condition(Activation(START, END))

        assert match_activation(PROJECT, binding(condition.expression, "Other title")) is None
        assert match_activation(PROJECT, binding(condition.expression)) is None

    @pytest.mark.parametrize("expression", [
        None,
        "true",
        'request.time >= timestamp("not-a-time") && request.time < timestamp("2024-03-01T13:00:00Z")',
        'request.time >= timestamp("2024-03-01T13:00:00Z") && request.time < timestamp("2024-03-01T12:00:00Z")',
    ])
    def test_malformed_activation_is_ignored(self, expression):
        assert match_activation(PROJECT, binding(expression, ACTIVATION_CONDITION_TITLE)) is None
