"""
JIT Access service composition.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.config import JitAccessConfig, get_config
from shared.logging import configure_logging, get_logger

from .activation.introspection import ActivationRequestView, introspect_activation_request
from .activation.request import (
    ActivationPolicy, ActivationRequest, create_jit_request, create_mpa_request
)
from .activation.tokens import ActivationToken, ActivationTokenCodec, JoseTokenSigner
from .adapters.asset_inventory_client import AssetInventoryClient
from .adapters.directory_client import DirectoryGroupsClient
from .catalog.clients import DirectoryClient, PolicyClient
from .catalog.models import EligibleEntitlement, UserId
from .catalog.resolver import EntitlementResolver


class JitAccessService:
    """Wires the resolver, request policy and token codec from configuration."""

    def __init__(self,
                 config: Optional[JitAccessConfig] = None,
                 directory_client: Optional[DirectoryClient] = None,
                 policy_client: Optional[PolicyClient] = None):
        self.config = config or get_config()
        configure_logging("jitaccess", self.config.log_level)
        self.logger = get_logger("jitaccess.service")

        self._owned_clients = []
        if directory_client is None:
            directory_client = DirectoryGroupsClient.from_config(self.config)
            self._owned_clients.append(directory_client)
        if policy_client is None:
            policy_client = AssetInventoryClient.from_config(self.config)
            self._owned_clients.append(policy_client)
        self.directory_client = directory_client
        self.policy_client = policy_client

        self.resolver = EntitlementResolver(
            self.directory_client,
            self.policy_client,
            scope=self.config.resource_scope
        )
        self.activation_policy = ActivationPolicy.from_config(self.config)
        self.token_codec = ActivationTokenCodec(JoseTokenSigner.from_config(self.config))

        self.logger.info("JIT Access service initialized", env=self.config.env, scope=self.config.resource_scope)

    def request_jit_activation(self,
                               user: UserId,
                               entitlements: Iterable[EligibleEntitlement],
                               justification: str,
                               duration: timedelta,
                               start_time: Optional[datetime] = None) -> ActivationRequest:
        return create_jit_request(
            user, entitlements, justification,
            start_time or datetime.now(timezone.utc), duration,
            policy=self.activation_policy
        )

    def request_mpa_activation(self,
                               user: UserId,
                               entitlements: Iterable[EligibleEntitlement],
                               reviewers: Iterable[UserId],
                               justification: str,
                               duration: timedelta,
                               start_time: Optional[datetime] = None) -> ActivationToken:
        """Create an MPA request and the token to send to its reviewers."""
        request = create_mpa_request(
            user, entitlements, reviewers, justification,
            start_time or datetime.now(timezone.utc), duration,
            policy=self.activation_policy
        )
        return self.token_codec.sign(request)

    def introspect(self, caller: UserId, token: str) -> ActivationRequestView:
        return introspect_activation_request(caller, token, self.token_codec)

    async def aclose(self) -> None:
        """Close the API clients created by this service; injected clients are left open."""
        for client in self._owned_clients:
            await client.close()
        self._owned_clients = []
        self.logger.info("JIT Access service closed")
