"""
Collaborator interfaces used by entitlement discovery.
"""

from typing import List, Protocol

from .models import GroupId, PolicyBindingSet, ResourceId, UserId


class DirectoryClient(Protocol):
    """Looks up group memberships."""

    async def list_direct_groups(self, user: UserId) -> List[GroupId]:
        """Groups that ``user`` is a direct member of."""
        ...

    async def list_direct_members(self, group_email: str) -> List[UserId]:
        """Direct members of a group; raises AccessDenied for groups the caller cannot inspect."""
        ...


class PolicyClient(Protocol):
    """Looks up IAM policies."""

    async def get_effective_policies(self, scope: str, resource_id: ResourceId) -> List[PolicyBindingSet]:
        """Policies of the resource and its ancestry."""
        ...
