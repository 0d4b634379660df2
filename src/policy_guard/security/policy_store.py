# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Active security policy, derived once from settings and shared read-only."""

import logging

from beartype import beartype

from ..core.config import Settings
from ..core.errors import SecurityError
from ..core.storage import PersistenceGateway, StoreKeys
from ..models.security import SecurityPolicy

logger = logging.getLogger(__name__)


class PolicyStore:
    """Holds the process-wide :class:`SecurityPolicy`."""

    def __init__(self, settings: Settings, persistence: PersistenceGateway) -> None:
        self._settings = settings
        self._persistence = persistence
        self._policy: SecurityPolicy | None = None

    @staticmethod
    @beartype
    def derive(settings: Settings) -> SecurityPolicy:
        """Build the policy for the configured environment and overrides."""
        profile = settings.security_profile
        return SecurityPolicy(
            encryption_required=profile.encryption_enabled,
            certificate_pinning_enabled=profile.certificate_pinning_enabled,
            integrity_check_enabled=profile.integrity_check_enabled,
            network_security_enabled=profile.network_security_enabled,
            debugging_allowed=settings.debug,
            max_session_duration=profile.session_timeout_minutes,
            rate_limit_enabled=profile.rate_limiting_enabled,
            max_requests_per_minute=profile.max_requests_per_minute,
        )

    @property
    def loaded(self) -> bool:
        """Whether :meth:`load` has completed."""
        return self._policy is not None

    @property
    def policy(self) -> SecurityPolicy:
        """The active policy.

        Raises:
            SecurityError: If accessed before :meth:`load`.
        """
        if self._policy is None:
            raise SecurityError("Security policy accessed before it was loaded")
        return self._policy

    @beartype
    async def load(self) -> SecurityPolicy:
        """Derive and persist the policy; later calls return the same instance."""
        if self._policy is not None:
            return self._policy

        policy = self.derive(self._settings)
        self._policy = policy

        result = await self._persistence.write_json(
            StoreKeys.POLICY, policy.to_record()
        )
        if result.is_err():
            logger.warning("Security policy not persisted: %s", result.err_value)

        logger.info(
            "Security policy loaded for %s (encryption_required=%s, "
            "rate_limit_enabled=%s)",
            self._settings.environment,
            policy.encryption_required,
            policy.rate_limit_enabled,
        )
        return policy
