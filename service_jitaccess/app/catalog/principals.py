"""
Principal resolution and binding filtering.
"""

from typing import FrozenSet, Iterable, List
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from shared.logging import get_logger
from .clients import DirectoryClient
from .models import Binding, GroupId, PolicyBindingSet, UserId


class PrincipalSet:
    """Principal identifiers of a user and their groups.

    Identifiers use binding-member form (``user:email``, ``group:email``)
    with the email in lower case.
    """

    def __init__(self, user: UserId, groups: Iterable[GroupId]):
        self.user = user
        self.principals: FrozenSet[str] = frozenset(
            [user.principal] + [group.principal for group in groups]
        )

    def is_applicable(self, binding: Binding) -> bool:
        """Whether any member of the binding is in this set."""
        return any(member.lower() in self.principals for member in binding.members)

    def __contains__(self, principal: str) -> bool:
        return principal.lower() in self.principals

    def __len__(self) -> int:
        return len(self.principals)


class PrincipalResolver:
    """Resolves the principals a user acts as."""

    def __init__(self, directory_client: DirectoryClient):
        self.directory_client = directory_client
        self.logger = get_logger("jitaccess.principals")

    async def resolve(self, user: UserId) -> PrincipalSet:
        groups = await self.directory_client.list_direct_groups(user)
        principal_set = PrincipalSet(user, groups)

        self.logger.debug("Resolved principals", user=user.email, groups=len(groups))
        return principal_set


def filter_applicable_bindings(policies: Iterable[PolicyBindingSet],
                               principal_set: PrincipalSet) -> List[Binding]:
    """Bindings across all policies of the ancestry that apply to the principal set."""
    return [
        binding
        for policy in policies
        for binding in policy.bindings
        if principal_set.is_applicable(binding)
    ]
