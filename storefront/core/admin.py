"""Identity-gated administration: admin check and identity listing."""
from typing import FrozenSet, Iterable, List, Optional

import structlog

from storefront.config import get_settings
from storefront.core.exceptions import AuthenticationError, AuthorizationError
from storefront.integrations.firebase_auth import FirebaseIdentityProvider, IdentitySummary

logger = structlog.get_logger(__name__)


class AdminService:
    """
    Gates admin operations on a configured set of privileged identity ids.

    Every admin call verifies the caller token first; any failure, and any
    verified identity outside the set, is an ``AuthorizationError``.
    """

    def __init__(
        self,
        identity_provider: Optional[FirebaseIdentityProvider] = None,
        admin_uids: Optional[Iterable[str]] = None,
    ):
        self.settings = get_settings()
        self.identity_provider = identity_provider or FirebaseIdentityProvider()
        self.admin_uids: FrozenSet[str] = frozenset(
            admin_uids if admin_uids is not None else self.settings.get_admin_uids()
        )

    async def require_admin(self, caller_token: Optional[str]) -> str:
        """
        Verify that the caller is an administrator.

        Args:
            caller_token: Bearer identity token

        Returns:
            str: The administrator's uid

        Raises:
            AuthorizationError: Missing, invalid, expired or non-admin token
        """
        if not caller_token:
            raise AuthorizationError("Unauthorized: No token provided.")

        try:
            uid = await self.identity_provider.verify_token(caller_token)
        except AuthenticationError as e:
            raise AuthorizationError("Unauthorized: Invalid token.") from e

        if uid not in self.admin_uids:
            logger.warning("admin_access_denied", uid=uid)
            raise AuthorizationError("Unauthorized: Not an admin.")

        return uid

    async def list_identities(self, caller_token: Optional[str]) -> List[IdentitySummary]:
        """
        List identities for the admin dashboard.

        Args:
            caller_token: Bearer identity token of the caller

        Returns:
            List[IdentitySummary]: Up to ``identity_page_size`` identities

        Raises:
            AuthorizationError: Caller is not an administrator
            IdentityListingError: The identity provider failed
        """
        uid = await self.require_admin(caller_token)
        identities = await self.identity_provider.list_identities(
            max_results=self.settings.identity_page_size
        )
        logger.info("identities_listed", admin_uid=uid, count=len(identities))
        return identities
