"""
Entitlement resolution based on effective IAM policies.

Entitlements are role bindings annotated with a marker condition that
makes them "eligible". Activations are temporary bindings annotated with
an activation condition. Both are discovered by inspecting the policies
that apply to a resource, including the policies of its ancestry.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Set
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from shared.errors import AccessDenied, UnsupportedOperation
from shared.logging import get_logger
from .clients import DirectoryClient, PolicyClient
from .markers import EligibilityMarkers, default_markers
from .models import (
    Activation, ActivationType, Binding, EligibleEntitlement, EntitlementSet,
    GROUP_PREFIX, ResourceId, ResourceRole, USER_PREFIX, UserId
)
from .principals import PrincipalResolver, filter_applicable_bindings


ALL_ACTIVATION_TYPES = frozenset(ActivationType)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def classify_eligible(resource_id: ResourceId,
                      bindings: Iterable[Binding],
                      activation_type: ActivationType,
                      markers: EligibilityMarkers) -> Set[EligibleEntitlement]:
    """Entitlements of one activation type among the given bindings."""
    match = markers.for_type(activation_type)
    entitlements = set()
    for binding in bindings:
        eligible = match(resource_id, binding)
        if eligible is not None:
            entitlements.add(EligibleEntitlement(
                resource_role=eligible.resource_role,
                granted_role=eligible.resource_role.role,
                activation_type=activation_type
            ))
    return entitlements


def merge_available(jit: Iterable[EligibleEntitlement],
                    mpa: Iterable[EligibleEntitlement]) -> List[EligibleEntitlement]:
    """Combine JIT and MPA entitlements; JIT wins for a role eligible both ways."""
    jit = list(jit)
    jit_ids = {entitlement.id for entitlement in jit}
    return jit + [entitlement for entitlement in mpa if entitlement.id not in jit_ids]


def partition_activations(resource_id: ResourceId,
                          bindings: Iterable[Binding],
                          markers: EligibilityMarkers,
                          now: datetime):
    """Split activation bindings into current and expired ones."""
    current: Dict[ResourceRole, Activation] = {}
    expired: Dict[ResourceRole, Activation] = {}

    for binding in bindings:
        activated = markers.activation(resource_id, binding)
        if activated is None:
            continue

        if activated.activation.is_valid(now):
            current[activated.resource_role] = activated.activation
        else:
            expired[activated.resource_role] = activated.activation

    # A role with a valid activation is not reported as expired
    for resource_role in current:
        expired.pop(resource_role, None)

    return current, expired


class EntitlementResolver:
    """Finds entitlements by inspecting effective IAM policies."""

    def __init__(self,
                 directory_client: DirectoryClient,
                 policy_client: PolicyClient,
                 scope: str,
                 markers: Optional[EligibilityMarkers] = None,
                 clock: Callable[[], datetime] = _utcnow):
        self.directory_client = directory_client
        self.policy_client = policy_client
        self.scope = scope
        self.markers = markers or default_markers()
        self.clock = clock
        self.principal_resolver = PrincipalResolver(directory_client)
        self.logger = get_logger("jitaccess.resolver")

    async def find_resource_bindings(self, user: UserId, resource_id: ResourceId) -> List[Binding]:
        """Bindings on the resource and its ancestry that apply to the user."""
        # Group memberships and policies are independent lookups
        principal_set, policies = await asyncio.gather(
            self.principal_resolver.resolve(user),
            self.policy_client.get_effective_policies(self.scope, resource_id)
        )

        return filter_applicable_bindings(policies, principal_set)

    async def find_projects_with_entitlements(self, user: UserId):
        raise UnsupportedOperation(
            "Feature is not supported. Use search to determine available projects"
        )

    async def find_entitlements(self,
                                user: UserId,
                                resource_id: ResourceId,
                                types_to_include: Iterable[ActivationType] = ALL_ACTIVATION_TYPES) -> EntitlementSet:
        """Entitlements of a user on a resource."""
        types_to_include = frozenset(types_to_include)
        bindings = await self.find_resource_bindings(user, resource_id)

        jit_eligible = set()
        if ActivationType.JIT in types_to_include:
            jit_eligible = classify_eligible(resource_id, bindings, ActivationType.JIT, self.markers)

        mpa_eligible = set()
        if ActivationType.MPA in types_to_include:
            mpa_eligible = classify_eligible(resource_id, bindings, ActivationType.MPA, self.markers)

        available = EntitlementSet.sorted_entitlements(merge_available(jit_eligible, mpa_eligible))
        current, expired = partition_activations(resource_id, bindings, self.markers, self.clock())

        self.logger.info(
            "Entitlements resolved",
            user=user.email,
            resource=resource_id.id,
            available=len(available),
            current=len(current),
            expired=len(expired)
        )

        return EntitlementSet(
            available=available,
            current=current,
            expired=expired,
            warnings=frozenset()
        )

    async def find_entitlement_holders(self,
                                       resource_role: ResourceRole,
                                       activation_type: ActivationType) -> Set[UserId]:
        """Users that are eligible to activate a role, directly or through a group."""
        policies = await self.policy_client.get_effective_policies(self.scope, resource_role.resource_id)
        match = self.markers.for_type(activation_type)

        principals = set()
        for policy in policies:
            for binding in policy.bindings:
                if binding.role != resource_role.role:
                    continue

                eligible = match(resource_role.resource_id, binding)
                if eligible is None or eligible.resource_role != resource_role:
                    continue

                principals.update(member.lower() for member in binding.members)

        holders = {
            UserId(principal[len(USER_PREFIX):])
            for principal in principals
            if principal.startswith(USER_PREFIX)
        }

        group_emails = sorted({
            principal[len(GROUP_PREFIX):]
            for principal in principals
            if principal.startswith(GROUP_PREFIX)
        })

        members_per_group = await asyncio.gather(
            *[self._list_group_members(group_email) for group_email in group_emails]
        )
        for members in members_per_group:
            holders.update(members)

        self.logger.info(
            "Entitlement holders resolved",
            resource=resource_role.resource_id.id,
            role=resource_role.role,
            activation_type=activation_type.value,
            groups=len(group_emails),
            holders=len(holders)
        )

        return holders

    async def _list_group_members(self, group_email: str) -> List[UserId]:
        try:
            return list(await self.directory_client.list_direct_members(group_email))
        except AccessDenied:
            # External groups cannot be inspected
            self.logger.warning("Access to group members denied", group=group_email)
            return []
