"""Firebase Authentication adapter: token verification and identity listing."""
import asyncio
import functools
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional

import firebase_admin
import structlog
from firebase_admin import auth, credentials
from firebase_admin import exceptions as firebase_exceptions

from storefront.config import get_settings
from storefront.core.exceptions import AuthenticationError, IdentityListingError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class IdentitySummary:
    """Public fields of an authenticated identity."""

    uid: str
    email: Optional[str]
    display_name: Optional[str]
    creation_time: Optional[datetime]
    last_sign_in_time: Optional[datetime]


def _from_millis(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


class FirebaseIdentityProvider:
    """
    Wraps ``firebase_admin.auth``.

    The Admin SDK app is initialized lazily on first use, from a service
    account file when one is configured and from application default
    credentials otherwise.
    """

    def __init__(self, app: Optional[firebase_admin.App] = None) -> None:
        self.settings = get_settings()
        self._app = app

    def _get_app(self) -> firebase_admin.App:
        """Get or initialize the Firebase Admin app."""
        if self._app is not None:
            return self._app

        try:
            self._app = firebase_admin.get_app()
            return self._app
        except ValueError:
            pass

        if self.settings.firebase_credentials_path:
            cred = credentials.Certificate(self.settings.firebase_credentials_path)
        else:
            cred = credentials.ApplicationDefault()

        options = {}
        if self.settings.firebase_project_id:
            options["projectId"] = self.settings.firebase_project_id

        self._app = firebase_admin.initialize_app(cred, options or None)
        logger.info("firebase_admin_initialized", project_id=self.settings.firebase_project_id)
        return self._app

    async def _run(self, func: Any, *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    async def verify_token(self, id_token: str) -> str:
        """
        Verify a Firebase ID token.

        Args:
            id_token: Bearer token issued by Firebase Authentication

        Returns:
            str: The verified identity id (uid)

        Raises:
            AuthenticationError: If the token is malformed, expired, revoked or
                otherwise fails verification
        """
        if not id_token:
            raise AuthenticationError("No token provided")

        try:
            decoded = await self._run(auth.verify_id_token, id_token, app=self._get_app())
        except (ValueError, firebase_exceptions.FirebaseError) as e:
            logger.warning("identity_token_rejected", error=str(e))
            raise AuthenticationError(f"Invalid token: {e}") from e

        uid = decoded.get("uid")
        if not uid:
            raise AuthenticationError("Token carries no uid")
        return uid

    async def list_identities(self, max_results: int = 1000) -> List[IdentitySummary]:
        """
        List one page of identities.

        Args:
            max_results: Page size (Firebase caps this at 1000)

        Returns:
            List[IdentitySummary]: Identity summaries

        Raises:
            IdentityListingError: If the provider call fails
        """
        try:
            page = await self._run(
                auth.list_users, max_results=max_results, app=self._get_app()
            )
        except (ValueError, firebase_exceptions.FirebaseError) as e:
            logger.error("identity_listing_failed", error=str(e))
            raise IdentityListingError(f"Failed to list users: {e}") from e

        return [
            IdentitySummary(
                uid=user.uid,
                email=user.email,
                display_name=user.display_name,
                creation_time=_from_millis(user.user_metadata.creation_timestamp),
                last_sign_in_time=_from_millis(user.user_metadata.last_sign_in_timestamp),
            )
            for user in page.users
        ]
