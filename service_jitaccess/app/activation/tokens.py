"""
Signed activation tokens.

An activation token carries an MPA request from the requester to the
reviewers. The token is self-contained: the reviewer's side verifies the
signature and rebuilds the request from the token, so no server-side
state is needed between the two.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Protocol
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from jose import JWTError, jwt
from pydantic import BaseModel, Field, ValidationError

from shared.config import JitAccessConfig
from shared.errors import InvalidArgument, InvalidToken
from shared.logging import get_logger
from ..catalog.models import (
    ActivationType, EligibleEntitlement, ResourceId, ResourceRole, UserId
)
from .request import ActivationId, ActivationRequest, RequestStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ActivationToken:
    """A signed token and its validity window."""
    token: str
    issue_time: datetime
    expiry_time: datetime


class TokenSigner(Protocol):
    """Signs and verifies token payloads."""

    def sign(self, payload: Dict[str, Any]) -> ActivationToken:
        ...

    def verify(self, token: str) -> Dict[str, Any]:
        """Return the payload of a valid token; raise InvalidToken otherwise."""
        ...


class JoseTokenSigner:
    """Token signer that issues HS256 JWTs."""

    ALGORITHM = "HS256"

    def __init__(self,
                 signing_key: str,
                 issuer: str,
                 validity: timedelta = timedelta(hours=1),
                 audience: str = "jitaccess-activation",
                 clock: Callable[[], datetime] = _utcnow):
        self.signing_key = signing_key
        self.issuer = issuer
        self.audience = audience
        self.validity = validity
        self.clock = clock
        self.logger = get_logger("jitaccess.tokens")

    @classmethod
    def from_config(cls, config: JitAccessConfig) -> "JoseTokenSigner":
        return cls(
            signing_key=config.token_signing_key,
            issuer=config.token_issuer,
            validity=timedelta(minutes=config.token_validity_minutes)
        )

    def sign(self, payload: Dict[str, Any]) -> ActivationToken:
        issue_time = self.clock().replace(microsecond=0)
        expiry_time = issue_time + self.validity

        claims = dict(payload)
        claims.update({
            "iss": self.issuer,
            "aud": self.audience,
            "iat": int(issue_time.timestamp()),
            "exp": int(expiry_time.timestamp())
        })

        token = jwt.encode(claims, self.signing_key, algorithm=self.ALGORITHM)
        return ActivationToken(token=token, issue_time=issue_time, expiry_time=expiry_time)

    def verify(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(
                token,
                self.signing_key,
                algorithms=[self.ALGORITHM],
                audience=self.audience,
                issuer=self.issuer
            )
        except JWTError as e:
            self.logger.warning("Token verification failed", error=str(e))
            raise InvalidToken(f"Token verification failed: {e}") from e


class EntitlementPayload(BaseModel):
    resource: str
    role: str
    type: ActivationType


class ActivationRequestPayload(BaseModel):
    """Wire form of an activation request inside a token."""
    id: str
    type: ActivationType
    beneficiary: str
    reviewers: List[str] = Field(default_factory=list)
    entitlements: List[EntitlementPayload]
    justification: str
    start: datetime
    end: datetime

    @classmethod
    def from_request(cls, request: ActivationRequest) -> "ActivationRequestPayload":
        return cls(
            id=request.id.value,
            type=request.activation_type,
            beneficiary=request.requesting_user.email,
            reviewers=sorted(reviewer.email for reviewer in request.reviewers),
            entitlements=[
                EntitlementPayload(
                    resource=entitlement.resource_role.resource_id.id,
                    role=entitlement.resource_role.role,
                    type=entitlement.activation_type
                )
                for entitlement in sorted(request.entitlements, key=EligibleEntitlement.sort_key)
            ],
            justification=request.justification,
            start=request.start_time,
            end=request.end_time
        )

    def to_request(self) -> ActivationRequest:
        return ActivationRequest(
            id=ActivationId(self.id),
            activation_type=self.type,
            requesting_user=UserId(self.beneficiary),
            entitlements=frozenset(
                EligibleEntitlement(
                    resource_role=ResourceRole(ResourceId(item.resource), item.role),
                    granted_role=item.role,
                    activation_type=item.type
                )
                for item in self.entitlements
            ),
            reviewers=frozenset(UserId(email) for email in self.reviewers),
            justification=self.justification,
            start_time=self.start,
            end_time=self.end,
            status=RequestStatus.PENDING
        )


class ActivationTokenCodec:
    """Converts activation requests to signed tokens and back."""

    def __init__(self, signer: TokenSigner):
        self.signer = signer
        self.logger = get_logger("jitaccess.tokens")

    def sign(self, request: ActivationRequest) -> ActivationToken:
        payload = ActivationRequestPayload.from_request(request).model_dump(mode="json")
        token = self.signer.sign(payload)

        self.logger.info(
            "Activation token issued",
            activation_id=request.id.value,
            beneficiary=request.requesting_user.email,
            expiry_time=token.expiry_time.isoformat()
        )
        return token

    def verify(self, token: str) -> ActivationRequest:
        claims = self.signer.verify(token)
        try:
            return ActivationRequestPayload.model_validate(claims).to_request()
        except (ValidationError, InvalidArgument) as e:
            raise InvalidToken(f"Token does not contain a valid activation request: {e}") from e
