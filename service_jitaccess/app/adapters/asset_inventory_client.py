"""
Cloud Asset Inventory client.
"""

from typing import Any, Dict, List, Optional
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

import httpx

from shared.config import JitAccessConfig
from ..catalog.models import Binding, PolicyBindingSet, ResourceId
from ..conditions.expression import ConditionExpression
from .base import GoogleApiClient


def parse_binding(data: Dict[str, Any]) -> Binding:
    condition = data.get("condition") or {}
    expression = condition.get("expression")
    return Binding(
        role=data["role"],
        members=frozenset(data.get("members", [])),
        condition=ConditionExpression(expression) if expression is not None else None,
        condition_title=condition.get("title")
    )


class AssetInventoryClient(GoogleApiClient):
    """Looks up effective IAM policies using the Cloud Asset Inventory API."""

    def __init__(self, base_url: str = "https://cloudasset.googleapis.com", **kwargs):
        super().__init__("cloudasset", base_url, **kwargs)

    @classmethod
    def from_config(cls, config: JitAccessConfig,
                    http_client: Optional[httpx.AsyncClient] = None) -> "AssetInventoryClient":
        return cls(
            config.asset_inventory_api_url,
            access_token=config.api_access_token,
            timeout=config.http_timeout_seconds,
            http_client=http_client
        )

    async def get_effective_policies(self, scope: str, resource_id: ResourceId) -> List[PolicyBindingSet]:
        """Policies of the resource and its ancestry (folders, organization)."""
        response = await self._get_json(
            f"v1/{scope}/effectiveIamPolicies:batchGet",
            {"names": resource_id.full_resource_name}
        )

        policies = [
            PolicyBindingSet(
                attached_resource=policy.get("attachedResource", ""),
                bindings=tuple(
                    parse_binding(binding)
                    for binding in policy.get("policy", {}).get("bindings", [])
                )
            )
            for result in response.get("policyResults", [])
            for policy in result.get("policies", [])
        ]

        self.logger.debug(
            "Fetched effective policies",
            resource=resource_id.id,
            policies=len(policies)
        )
        return policies
