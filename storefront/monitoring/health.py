"""
Health checks for readiness/liveness probes.

The database is the only critical dependency: without it no order can be
written. Stripe and SMTP outages degrade the service (checkout or welcome
emails fail) but do not take it out of rotation.
"""
import asyncio
import smtplib
from typing import Any, Awaitable, Callable, Dict, Optional

import stripe
import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.config import get_settings
from storefront.database.connection import get_session_factory

logger = structlog.get_logger(__name__)

STATUS_HEALTHY = "healthy"
STATUS_DEGRADED = "degraded"
STATUS_UNHEALTHY = "unhealthy"


class HealthCheckError(Exception):
    """Raised when health check fails."""

    pass


class HealthCheck:
    """
    Dependency probes for the storefront.

    Provides:
    - Database connectivity check (critical)
    - Stripe API reachability check
    - SMTP reachability check (only when an SMTP login is configured)
    """

    def __init__(
        self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    ) -> None:
        self.settings = get_settings()
        self._session_factory = session_factory

    async def check_database(self) -> Dict[str, Any]:
        """
        Run ``SELECT 1`` on a fresh session.

        Raises:
            HealthCheckError: If the database cannot be reached
        """
        factory = self._session_factory or get_session_factory()
        try:
            async with factory() as db:
                await db.execute(text("SELECT 1"))
        except Exception as e:
            logger.error("database_health_check_failed", error=str(e))
            raise HealthCheckError(f"Database health check failed: {e}") from e

        return {"status": STATUS_HEALTHY, "service": "database"}

    async def check_stripe(self) -> Dict[str, Any]:
        """
        List one checkout session to prove the API key works.

        Raises:
            HealthCheckError: If Stripe rejects the key or is unreachable
        """
        stripe.api_key = self.settings.stripe_secret_key
        try:
            await asyncio.get_running_loop().run_in_executor(
                None, lambda: stripe.checkout.Session.list(limit=1)
            )
        except stripe.StripeError as e:
            logger.error("stripe_health_check_failed", error=str(e))
            raise HealthCheckError(f"Stripe health check failed: {e}") from e

        return {
            "status": STATUS_HEALTHY,
            "service": "stripe",
            "test_mode": self.settings.is_test_mode,
        }

    def _smtp_noop(self) -> None:
        s = self.settings
        with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=s.smtp_timeout_seconds) as smtp:
            smtp.noop()

    async def check_smtp(self) -> Dict[str, Any]:
        """
        Open an SMTP connection and send NOOP.

        Raises:
            HealthCheckError: If the mail server is unreachable
        """
        if not self.settings.smtp_username:
            return {"status": STATUS_HEALTHY, "service": "smtp", "message": "not configured"}

        try:
            await asyncio.get_running_loop().run_in_executor(None, self._smtp_noop)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("smtp_health_check_failed", error=str(e))
            raise HealthCheckError(f"SMTP health check failed: {e}") from e

        return {"status": STATUS_HEALTHY, "service": "smtp"}

    async def _probe(
        self, name: str, check: Callable[[], Awaitable[Dict[str, Any]]]
    ) -> Dict[str, Any]:
        try:
            return await check()
        except HealthCheckError as e:
            return {"status": STATUS_UNHEALTHY, "service": name, "error": str(e)}

    async def check_all(self) -> Dict[str, Any]:
        """
        Run every probe concurrently.

        Returns:
            Dict[str, Any]: ``unhealthy`` if the database is down, ``degraded``
            if another dependency is down, ``healthy`` otherwise
        """
        names = ("database", "stripe", "smtp")
        results = await asyncio.gather(
            self._probe("database", self.check_database),
            self._probe("stripe", self.check_stripe),
            self._probe("smtp", self.check_smtp),
        )
        checks = dict(zip(names, results))

        if checks["database"]["status"] != STATUS_HEALTHY:
            status = STATUS_UNHEALTHY
        elif any(c["status"] != STATUS_HEALTHY for c in results):
            status = STATUS_DEGRADED
        else:
            status = STATUS_HEALTHY

        return {"status": status, "checks": checks}

    async def liveness(self) -> Dict[str, Any]:
        """Process is up; no dependency is touched."""
        return {"status": "alive", "message": "Application is running"}

    async def readiness(self) -> Dict[str, Any]:
        """Ready to take traffic when the database answers."""
        database = await self._probe("database", self.check_database)
        return {"status": database["status"], "checks": {"database": database}}
