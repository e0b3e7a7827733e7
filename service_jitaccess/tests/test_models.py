"""
Unit tests for entitlement data models.
"""

import pytest
from datetime import datetime, timedelta, timezone

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_jitaccess.app.catalog.models import (
    Activation, ActivationType, Binding, EligibleEntitlement, EntitlementSet,
    GroupId, ResourceId, ResourceRole, UserId
)
from service_jitaccess.app.conditions.expression import ConditionExpression
from shared.errors import InvalidArgument


NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def entitlement(resource: str, role: str, activation_type: ActivationType) -> EligibleEntitlement:
    return EligibleEntitlement(ResourceRole(ResourceId(resource), role), role, activation_type)


class TestPrincipalIds:

    def test_email_is_lower_cased(self):
        assert UserId("Alice@Example.COM").email == "alice@example.com"

    def test_principal_prefixes(self):
        assert UserId("alice@example.com").principal == "user:alice@example.com"
        assert GroupId("admins@example.com").principal == "group:admins@example.com"

    def test_user_and_group_are_distinct(self):
        assert UserId("x@example.com") != GroupId("x@example.com")
        assert UserId("X@example.com") == UserId("x@example.com")

    def test_empty_email_rejected(self):
        with pytest.raises(InvalidArgument):
            UserId("")


class TestResourceId:

    def test_full_resource_name(self):
        assert ResourceId("project-1").full_resource_name == \
            "//cloudresourcemanager.googleapis.com/projects/project-1"


class TestBinding:

    def test_members_are_frozen(self):
        binding = Binding("roles/viewer", ["user:a@example.com"], ConditionExpression("true"))

        assert binding.members == frozenset({"user:a@example.com"})
        assert hash(binding) == hash(Binding("roles/viewer", {"user:a@example.com"}, ConditionExpression("true")))


class TestEligibleEntitlement:

    def test_id_is_resource_role(self):
        e = entitlement("project-1", "roles/viewer", ActivationType.JIT)
        assert e.id == ResourceRole(ResourceId("project-1"), "roles/viewer")

    def test_ordering_by_resource_role_type(self):
        entitlements = [
            entitlement("project-2", "roles/a", ActivationType.JIT),
            entitlement("project-1", "roles/b", ActivationType.MPA),
            entitlement("project-1", "roles/b", ActivationType.JIT),
            entitlement("project-1", "roles/a", ActivationType.MPA),
        ]

        assert [e.sort_key() for e in sorted(entitlements)] == [
            ("project-1", "roles/a", "MPA"),
            ("project-1", "roles/b", "JIT"),
            ("project-1", "roles/b", "MPA"),
            ("project-2", "roles/a", "JIT"),
        ]

    def test_identity_is_resource_role(self):
        jit = entitlement("project-1", "roles/viewer", ActivationType.JIT)
        mpa = entitlement("project-1", "roles/viewer", ActivationType.MPA)

        assert jit == mpa
        assert hash(jit) == hash(mpa)
        assert len({jit, mpa}) == 1
        assert jit != entitlement("project-2", "roles/viewer", ActivationType.JIT)

    def test_sorted_entitlements_removes_duplicates(self):
        e = entitlement("project-1", "roles/a", ActivationType.JIT)

        assert EntitlementSet.sorted_entitlements([e, e]) == (e,)


class TestActivation:

    def test_end_before_start_rejected(self):
        with pytest.raises(InvalidArgument):
            Activation(NOW, NOW - timedelta(seconds=1))

    def test_validity_is_inclusive(self):
        activation = Activation(NOW, NOW + timedelta(minutes=5))

        assert activation.is_valid(NOW)
        assert activation.is_valid(NOW + timedelta(minutes=5))
        assert not activation.is_valid(NOW - timedelta(seconds=1))
        assert not activation.is_valid(NOW + timedelta(minutes=5, seconds=1))
