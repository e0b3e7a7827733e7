"""
Cloud Identity groups client.
"""

from typing import Any, Dict, List, Optional
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

import httpx

from shared.config import JitAccessConfig
from ..catalog.models import GroupId, UserId
from .base import GoogleApiClient


class DirectoryGroupsClient(GoogleApiClient):
    """Looks up group memberships using the Cloud Identity API."""

    def __init__(self, base_url: str = "https://cloudidentity.googleapis.com", **kwargs):
        super().__init__("cloudidentity", base_url, **kwargs)

    @classmethod
    def from_config(cls, config: JitAccessConfig,
                    http_client: Optional[httpx.AsyncClient] = None) -> "DirectoryGroupsClient":
        return cls(
            config.directory_api_url,
            access_token=config.api_access_token,
            timeout=config.http_timeout_seconds,
            http_client=http_client
        )

    async def _list_pages(self, path: str, params: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        page_token = None
        while True:
            page_params = dict(params)
            if page_token:
                page_params["pageToken"] = page_token

            page = await self._get_json(path, page_params)
            items.extend(page.get(key, []))

            page_token = page.get("nextPageToken")
            if not page_token:
                return items

    async def list_direct_groups(self, user: UserId) -> List[GroupId]:
        memberships = await self._list_pages(
            "v1/groups/-/memberships:searchDirectGroups",
            {"query": f"member_key_id == '{user.email}'"},
            "memberships"
        )

        groups = [
            GroupId(membership["groupKey"]["id"])
            for membership in memberships
            if membership.get("groupKey", {}).get("id")
        ]
        self.logger.debug("Listed direct groups", user=user.email, groups=len(groups))
        return groups

    async def list_direct_members(self, group_email: str) -> List[UserId]:
        group = await self._get_json("v1/groups:lookup", {"groupKey.id": group_email})

        memberships = await self._list_pages(
            f"v1/{group['name']}/memberships",
            {"view": "BASIC"},
            "memberships"
        )

        # Nested groups and service accounts are not expanded
        members = [
            UserId(membership["preferredMemberKey"]["id"])
            for membership in memberships
            if membership.get("type", "USER") == "USER"
            and membership.get("preferredMemberKey", {}).get("id")
        ]
        self.logger.debug("Listed direct members", group=group_email, members=len(members))
        return members
