"""
Introspection of activation tokens.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from pydantic import BaseModel, Field

from shared.errors import AccessDenied
from shared.logging import get_logger
from ..catalog.models import ActivationType, EligibleEntitlement, UserId
from .request import ActivationRequest, RequestStatus
from .tokens import ActivationTokenCodec


logger = get_logger("jitaccess.introspection")


class ActivationStatus(str, Enum):
    """Status of an activation, as shown to the requester and reviewers."""
    NOT_STARTED = "NOT_STARTED"
    ACTIVATION_PENDING = "ACTIVATION_PENDING"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"


class ActivationItem(BaseModel):
    activation_id: str
    resource_id: str
    role: str
    status: ActivationStatus
    start_time: int = Field(..., description="Epoch seconds")
    end_time: int = Field(..., description="Epoch seconds")


class ActivationRequestView(BaseModel):
    """An activation request as seen by a participant."""
    beneficiary: str
    reviewers: List[str]
    is_beneficiary: bool
    is_reviewer: bool
    justification: str
    items: List[ActivationItem]


def derive_status(request: ActivationRequest, now: datetime) -> ActivationStatus:
    """Status of a request's activations, based only on the request and ``now``."""
    if now > request.end_time or request.status in (RequestStatus.DENIED, RequestStatus.EXPIRED):
        return ActivationStatus.EXPIRED
    if request.activation_type == ActivationType.MPA and request.status == RequestStatus.PENDING:
        return ActivationStatus.ACTIVATION_PENDING
    if now < request.start_time:
        return ActivationStatus.NOT_STARTED
    return ActivationStatus.ACTIVE


def introspect_activation_request(caller: UserId,
                                  token: str,
                                  codec: ActivationTokenCodec,
                                  now: Optional[datetime] = None) -> ActivationRequestView:
    """Verify an activation token and describe the request it carries.

    Only the requesting user and the reviewers may introspect a request.
    InvalidToken from verification propagates unchanged.
    """
    request = codec.verify(token)

    is_beneficiary = caller == request.requesting_user
    is_reviewer = caller in request.reviewers
    if not (is_beneficiary or is_reviewer):
        logger.warning(
            "Introspection denied",
            caller=caller.email,
            activation_id=request.id.value
        )
        raise AccessDenied(
            "The calling user is not authorized to access this approval request",
            details={"activation_id": request.id.value}
        )

    status = derive_status(request, now or datetime.now(timezone.utc))
    items = [
        ActivationItem(
            activation_id=request.id.value,
            resource_id=entitlement.resource_role.resource_id.id,
            role=entitlement.resource_role.role,
            status=status,
            start_time=int(request.start_time.timestamp()),
            end_time=int(request.end_time.timestamp())
        )
        for entitlement in sorted(request.entitlements, key=EligibleEntitlement.sort_key)
    ]

    return ActivationRequestView(
        beneficiary=request.requesting_user.email,
        reviewers=sorted(reviewer.email for reviewer in request.reviewers),
        is_beneficiary=is_beneficiary,
        is_reviewer=is_reviewer,
        justification=request.justification,
        items=items
    )
