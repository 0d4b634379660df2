"""Application identity fingerprinting against a stored baseline."""

import hashlib
import logging

from beartype import beartype

from ..core.errors import PersistenceError
from ..core.storage import PersistenceGateway, StoreKeys
from ..models.security import Severity, ViolationType
from .policy_store import PolicyStore
from .violations import ViolationLedger

logger = logging.getLogger(__name__)


class IntegrityVerifier:
    """Detects drift in version, bundle id or environment between runs."""

    def __init__(
        self,
        *,
        app_version: str,
        bundle_id: str,
        environment: str,
        policy_store: PolicyStore,
        persistence: PersistenceGateway,
        ledger: ViolationLedger,
    ) -> None:
        self._app_version = app_version
        self._bundle_id = bundle_id
        self._environment = environment
        self._policy_store = policy_store
        self._persistence = persistence
        self._ledger = ledger

    @beartype
    def compute_fingerprint(self) -> str:
        """SHA-256 hex digest of ``<app_version>:<bundle_id>:<environment>``."""
        identity = f"{self._app_version}:{self._bundle_id}:{self._environment}"
        return hashlib.sha256(identity.encode("utf-8")).hexdigest()

    @beartype
    async def establish_baseline(self) -> bool:
        """Seed the stored fingerprint if none exists.

        Returns True when a new baseline was written.

        Raises:
            PersistenceError: If the store cannot be read or written.
        """
        if not self._policy_store.policy.integrity_check_enabled:
            return False

        stored = await self._persistence.read_text(StoreKeys.FINGERPRINT)
        if stored.is_err():
            raise PersistenceError(stored.err_value)
        if stored.unwrap() is not None:
            return False

        written = await self._persistence.write_text(
            StoreKeys.FINGERPRINT, self.compute_fingerprint()
        )
        if written.is_err():
            raise PersistenceError(written.err_value)
        logger.info("Integrity baseline established")
        return True

    @beartype
    async def verify(self) -> bool:
        """Compare the current fingerprint with the stored baseline.

        The first call with no baseline stores one and trusts it. A mismatch is
        recorded as a critical INTEGRITY_MISMATCH violation.
        """
        if not self._policy_store.policy.integrity_check_enabled:
            return True

        current = self.compute_fingerprint()
        stored = await self._persistence.read_text(StoreKeys.FINGERPRINT)
        if stored.is_err():
            logger.error("Integrity baseline unreadable: %s", stored.err_value)
            return False

        baseline = stored.unwrap()
        if baseline is None:
            written = await self._persistence.write_text(StoreKeys.FINGERPRINT, current)
            if written.is_err():
                logger.warning("Integrity baseline not persisted: %s", written.err_value)
            return True

        if baseline == current:
            return True

        await self._ledger.record(
            ViolationType.INTEGRITY_MISMATCH,
            {
                "expected": baseline,
                "actual": current,
                "app_version": self._app_version,
                "environment": self._environment,
            },
            severity=Severity.CRITICAL,
        )
        return False

    @beartype
    async def reseed(self) -> str:
        """Overwrite the baseline with the current fingerprint."""
        current = self.compute_fingerprint()
        written = await self._persistence.write_text(StoreKeys.FINGERPRINT, current)
        if written.is_err():
            raise PersistenceError(written.err_value)
        logger.info("Integrity baseline re-seeded")
        return current
