"""
Activation requests.

An activation request asks for one or more entitlements to be activated
for a time window. JIT requests are self-approved; MPA requests name one
or more reviewers who must approve them.
"""

import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import FrozenSet, Iterable, Optional
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from shared.config import JitAccessConfig
from shared.errors import InvalidArgument
from ..catalog.models import ActivationType, EligibleEntitlement, UserId


class RequestStatus(str, Enum):
    """Lifecycle status of an activation request."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DENIED = "DENIED"
    EXPIRED = "EXPIRED"


@dataclass(frozen=True)
class ActivationId:
    """Opaque, process-unique identifier of an activation request."""
    value: str

    @classmethod
    def new(cls, activation_type: ActivationType) -> "ActivationId":
        return cls(f"{activation_type.value.lower()}-{uuid.uuid4().hex}")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ActivationRequest:
    """A request to activate entitlements for a time window."""
    id: ActivationId
    activation_type: ActivationType
    requesting_user: UserId
    entitlements: FrozenSet[EligibleEntitlement]
    reviewers: FrozenSet[UserId]
    justification: str
    start_time: datetime
    end_time: datetime
    status: RequestStatus = RequestStatus.PENDING

    def __post_init__(self):
        object.__setattr__(self, "entitlements", frozenset(self.entitlements))
        object.__setattr__(self, "reviewers", frozenset(self.reviewers))

        if self.start_time > self.end_time:
            raise InvalidArgument("Activation must not end before it starts")
        if self.requesting_user in self.reviewers:
            raise InvalidArgument(
                "The requesting user cannot review their own request",
                details={"user": self.requesting_user.email}
            )
        if self.activation_type == ActivationType.JIT and self.reviewers:
            raise InvalidArgument("JIT requests cannot have reviewers")

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    def with_status(self, status: RequestStatus) -> "ActivationRequest":
        return replace(self, status=status)


class JustificationPolicy:
    """Checks justifications against a regular expression."""

    def __init__(self, pattern: str = ".*", hint: str = ""):
        self.pattern = re.compile(pattern)
        self.hint = hint

    def check(self, justification: str) -> None:
        if not self.pattern.fullmatch(justification):
            raise InvalidArgument(
                f"Justification does not meet criteria: {self.hint}",
                details={"hint": self.hint}
            )


@dataclass(frozen=True)
class ActivationPolicy:
    """Limits that activation requests must stay within."""
    justification_policy: JustificationPolicy = field(default_factory=JustificationPolicy)
    min_duration: timedelta = timedelta(minutes=1)
    max_duration: timedelta = timedelta(hours=2)
    max_reviewers: int = 10

    @classmethod
    def from_config(cls, config: JitAccessConfig) -> "ActivationPolicy":
        return cls(
            justification_policy=JustificationPolicy(config.justification_pattern, config.justification_hint),
            min_duration=timedelta(minutes=config.min_activation_duration_minutes),
            max_duration=timedelta(minutes=config.max_activation_duration_minutes),
            max_reviewers=config.max_reviewers
        )

    def check(self, request: ActivationRequest) -> None:
        self.justification_policy.check(request.justification)

        if not (self.min_duration <= request.duration <= self.max_duration):
            raise InvalidArgument(
                "Activation duration is out of range",
                details={
                    "duration_seconds": int(request.duration.total_seconds()),
                    "min_seconds": int(self.min_duration.total_seconds()),
                    "max_seconds": int(self.max_duration.total_seconds())
                }
            )

        if len(request.reviewers) > self.max_reviewers:
            raise InvalidArgument(
                f"At most {self.max_reviewers} reviewers can be specified",
                details={"reviewers": len(request.reviewers)}
            )


def _create_request(activation_type: ActivationType,
                    user: UserId,
                    entitlements: Iterable[EligibleEntitlement],
                    reviewers: Iterable[UserId],
                    justification: str,
                    start_time: datetime,
                    duration: timedelta,
                    policy: Optional[ActivationPolicy]) -> ActivationRequest:
    entitlements = frozenset(entitlements)
    if not entitlements:
        raise InvalidArgument("At least one entitlement must be requested")

    mismatched = sorted(str(e.resource_role) for e in entitlements if e.activation_type != activation_type)
    if mismatched:
        raise InvalidArgument(
            f"Entitlements cannot be activated as {activation_type.value}",
            details={"entitlements": mismatched}
        )

    if not justification or not justification.strip():
        raise InvalidArgument("A justification is required")

    if duration <= timedelta(0):
        raise InvalidArgument("Duration must be positive")

    request = ActivationRequest(
        id=ActivationId.new(activation_type),
        activation_type=activation_type,
        requesting_user=user,
        entitlements=entitlements,
        reviewers=frozenset(reviewers),
        justification=justification,
        start_time=start_time,
        end_time=start_time + duration
    )

    if policy is not None:
        policy.check(request)

    return request


def create_jit_request(user: UserId,
                       entitlements: Iterable[EligibleEntitlement],
                       justification: str,
                       start_time: datetime,
                       duration: timedelta,
                       policy: Optional[ActivationPolicy] = None) -> ActivationRequest:
    """Create a self-approved activation request."""
    return _create_request(
        ActivationType.JIT, user, entitlements, (), justification, start_time, duration, policy
    )


def create_mpa_request(user: UserId,
                       entitlements: Iterable[EligibleEntitlement],
                       reviewers: Iterable[UserId],
                       justification: str,
                       start_time: datetime,
                       duration: timedelta,
                       policy: Optional[ActivationPolicy] = None) -> ActivationRequest:
    """Create an activation request that needs approval by one of the reviewers."""
    reviewers = frozenset(reviewers)
    if not reviewers:
        raise InvalidArgument("At least one reviewer is required")
    if user in reviewers:
        raise InvalidArgument(
            "The requesting user cannot be a reviewer",
            details={"user": user.email}
        )

    return _create_request(
        ActivationType.MPA, user, entitlements, reviewers, justification, start_time, duration, policy
    )
