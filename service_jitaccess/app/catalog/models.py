"""
Entitlement data models.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Tuple
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from shared.errors import InvalidArgument
from ..conditions.expression import ConditionExpression


USER_PREFIX = "user:"
GROUP_PREFIX = "group:"


@dataclass(frozen=True, order=True)
class PrincipalId:
    """Email-based principal identifier, kept in lower case."""
    email: str

    prefix = ""

    def __post_init__(self):
        if not self.email:
            raise InvalidArgument("Principal email must not be empty")
        object.__setattr__(self, "email", self.email.strip().lower())

    @property
    def principal(self) -> str:
        """Binding-member form, e.g. ``user:alice@example.com``."""
        return f"{self.prefix}{self.email}"

    def __str__(self) -> str:
        return self.email


@dataclass(frozen=True, order=True)
class UserId(PrincipalId):
    prefix = USER_PREFIX


@dataclass(frozen=True, order=True)
class GroupId(PrincipalId):
    prefix = GROUP_PREFIX


@dataclass(frozen=True, order=True)
class ResourceId:
    """Identifier of a resource that policies are attached to, e.g. a project."""
    id: str

    @property
    def full_resource_name(self) -> str:
        return f"//cloudresourcemanager.googleapis.com/projects/{self.id}"

    def __str__(self) -> str:
        return self.id


@dataclass(frozen=True)
class Binding:
    """A role binding as found in an IAM policy."""
    role: str
    members: FrozenSet[str] = field(default_factory=frozenset)
    condition: Optional[ConditionExpression] = None
    condition_title: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "members", frozenset(self.members))


@dataclass(frozen=True)
class PolicyBindingSet:
    """Bindings of one IAM policy in a resource's ancestry."""
    attached_resource: str
    bindings: Tuple[Binding, ...] = ()


class ActivationType(str, Enum):
    """How an entitlement is activated."""
    JIT = "JIT"
    MPA = "MPA"


@dataclass(frozen=True, order=True)
class ResourceRole:
    """A role on a specific resource."""
    resource_id: ResourceId
    role: str

    def __str__(self) -> str:
        return f"{self.role} on {self.resource_id}"


@dataclass(frozen=True)
class EligibleEntitlement:
    """A role that a principal is eligible to activate.

    Identified by its resource role alone; the activation type only affects
    ordering.
    """
    resource_role: ResourceRole
    granted_role: str = field(compare=False)
    activation_type: ActivationType = field(compare=False)

    @property
    def id(self) -> ResourceRole:
        return self.resource_role

    def sort_key(self) -> Tuple[str, str, str]:
        return (
            self.resource_role.resource_id.id,
            self.resource_role.role,
            self.activation_type.value
        )

    def __lt__(self, other: "EligibleEntitlement") -> bool:
        return self.sort_key() < other.sort_key()


@dataclass(frozen=True)
class Activation:
    """Time window of an activated entitlement."""
    start_time: datetime
    end_time: datetime

    def __post_init__(self):
        if self.start_time > self.end_time:
            raise InvalidArgument(
                "Activation must not end before it starts",
                details={"start_time": self.start_time.isoformat(), "end_time": self.end_time.isoformat()}
            )

    def is_valid(self, time: datetime) -> bool:
        """Whether the activation is in effect at ``time``, inclusive at both ends."""
        return self.start_time <= time <= self.end_time


@dataclass(frozen=True)
class EntitlementSet:
    """Entitlements of a principal on a resource."""
    available: Tuple[EligibleEntitlement, ...] = ()
    current: Dict[ResourceRole, Activation] = field(default_factory=dict)
    expired: Dict[ResourceRole, Activation] = field(default_factory=dict)
    warnings: FrozenSet[str] = frozenset()

    @staticmethod
    def sorted_entitlements(entitlements: Iterable[EligibleEntitlement]) -> Tuple[EligibleEntitlement, ...]:
        return tuple(sorted(set(entitlements), key=EligibleEntitlement.sort_key))
