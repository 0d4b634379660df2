# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Configuration management using Pydantic Settings.

Every knob the engine reads lives here. Environment-dependent security
defaults (encryption, session timeout, rate limiting, pinning) are left as
``None`` and resolved through :attr:`Settings.security_profile` so an operator
can override any single flag without restating the whole profile.
"""

from attrs import field, frozen
from beartype import beartype
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


@frozen
class SecurityProfile:
    """Resolved environment security profile."""

    security_level: str = field()
    encryption_enabled: bool = field()
    session_timeout_enabled: bool = field()
    session_timeout_minutes: int = field()
    rate_limiting_enabled: bool = field()
    max_requests_per_minute: int = field()
    certificate_pinning_enabled: bool = field()
    integrity_check_enabled: bool = field()
    network_security_enabled: bool = field()
    https_enforced: bool = field()
    cleartext_disabled: bool = field()


_ENVIRONMENT_PROFILES: dict[str, dict[str, object]] = {
    "production": {
        "security_level": "HIGH",
        "encryption_enabled": True,
        "session_timeout_enabled": True,
        "session_timeout_minutes": 30,
        "rate_limiting_enabled": True,
        "max_requests_per_minute": 100,
    },
    "staging": {
        "security_level": "MEDIUM",
        "encryption_enabled": True,
        "session_timeout_enabled": True,
        "session_timeout_minutes": 60,
        "rate_limiting_enabled": True,
        "max_requests_per_minute": 200,
    },
    "development": {
        "security_level": "LOW",
        "encryption_enabled": False,
        "session_timeout_enabled": False,
        "session_timeout_minutes": 480,
        "rate_limiting_enabled": False,
        "max_requests_per_minute": 1000,
    },
}


class ControlPosture(BaseModel):
    """Declared deployment controls the auditor cannot probe at runtime."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        validate_default=True,
    )

    password_hashing: bool = Field(default=True)
    role_based_access: bool = Field(default=True)
    authorization: bool = Field(default=True)
    log_protection: bool = Field(default=True)
    monitoring_integration: bool = Field(default=True)
    csrf_protection: bool = Field(default=True)
    dependency_vulnerabilities_clear: bool = Field(default=True)
    sensitive_data_handling: bool = Field(default=True)
    data_retention: bool = Field(default=True)
    gdpr_compliance: bool = Field(default=True)
    security_logging: bool = Field(default=True)
    backup_exclusions: bool = Field(
        default=False,
        description="Platform backup/data-extraction rules exclude sensitive data",
    )
    network_security_config: bool = Field(
        default=False,
        description="Platform network security configuration is shipped",
    )


class Settings(BaseSettings):
    """Application settings with immutable configuration."""

    model_config = SettingsConfigDict(
        env_prefix="POLICY_GUARD_",
        env_nested_delimiter="__",
        env_file=None,
        env_file_encoding="utf-8",
        frozen=True,
        validate_default=True,
        extra="forbid",
    )

    # Application identity
    app_name: str = Field(default="PolicyGuard", min_length=1)
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Deployment environment",
    )
    debug: bool = Field(default=False, description="Debug build")
    app_version: str = Field(default="1.0.0", min_length=1)
    bundle_id: str = Field(default="com.carenow.app", min_length=1)

    # Encryption
    encryption_enabled: bool | None = Field(default=None)
    encryption_key: str = Field(
        default="test-encryption-key-for-development-only",
        description="Envelope encryption key",
    )
    encryption_salt: str = Field(default="policy_guard_envelope_salt", min_length=8)
    encryption_kdf_iterations: int = Field(default=100000, ge=10000)
    envelope_max_age_hours: int = Field(default=24, ge=1, le=720)

    # Session policy
    session_timeout_enabled: bool | None = Field(default=None)
    session_timeout_minutes: int | None = Field(default=None, ge=1, le=1440)
    max_session_duration_hours: int = Field(default=8, ge=1, le=72)
    max_failed_attempts: int = Field(default=5, ge=1, le=50)
    lockout_duration_minutes: int = Field(default=15, ge=1, le=1440)

    # Network / rate limiting
    rate_limiting_enabled: bool | None = Field(default=None)
    max_requests_per_minute: int | None = Field(default=None, ge=1)
    certificate_pinning_enabled: bool | None = Field(default=None)
    integrity_check_enabled: bool | None = Field(default=None)
    network_security_enabled: bool | None = Field(default=None)
    https_enforced: bool | None = Field(default=None)
    cleartext_disabled: bool | None = Field(default=None)
    certificate_pins: dict[str, list[str]] = Field(
        default_factory=dict,
        description="SHA-256 certificate pins per host",
    )

    controls: ControlPosture = Field(default_factory=ControlPosture)

    # Monitoring
    monitoring_interval_seconds: float = Field(default=120.0, ge=1.0, le=86400.0)
    persistence_timeout_seconds: float = Field(default=2.0, gt=0.0, le=60.0)
    violation_log_limit: int = Field(default=100, ge=1, le=10000)
    report_history_limit: int = Field(default=10, ge=1, le=1000)
    ssl_expiry_warning_days: int = Field(default=7, ge=1, le=365)
    ssl_probe_host: str | None = Field(default=None)
    ssl_probe_port: int = Field(default=443, ge=1, le=65535)
    ssl_static_expiry_days: int = Field(default=30, ge=0)
    ssl_issuer: str = Field(default="Firebase Hosting")

    # Persistence
    store_backend: str = Field(default="memory", pattern="^(memory|redis)$")
    redis_url: str = Field(default="redis://localhost:6379/0", min_length=1)
    store_key_prefix: str = Field(default="policy_guard:")

    # Operator API
    api_host: str = Field(
        default="0.0.0.0",  # nosec B104 - containerized deployment
    )
    api_port: int = Field(default=8000, ge=1, le=65535)

    @field_validator("encryption_key")
    @classmethod
    def validate_encryption_key(
        cls: type["Settings"], v: str, info: ValidationInfo
    ) -> str:
        """Ensure test keys are not used in production."""
        if info.data.get("environment") == "production" and v.startswith("test-"):
            raise ValueError(
                "Test encryption key cannot be used in production. "
                "Set POLICY_GUARD_ENCRYPTION_KEY environment variable."
            )
        return v

    @field_validator("certificate_pins")
    @classmethod
    def validate_certificate_pins(
        cls: type["Settings"], v: dict[str, list[str]]
    ) -> dict[str, list[str]]:
        """Pins must use the sha256/<base64> form."""
        for host, pins in v.items():
            for pin in pins:
                if not pin.startswith("sha256/"):
                    raise ValueError(f"Invalid certificate pin for {host}: {pin}")
        return v

    @property
    @beartype
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    @beartype
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    @beartype
    def effective_app_version(self) -> str:
        """Version string tagged with the environment outside production."""
        if self.is_production:
            return self.app_version
        return f"{self.app_version}-{self.environment.upper()}"

    @property
    @beartype
    def effective_bundle_id(self) -> str:
        """Bundle identifier with the environment suffix outside production."""
        if self.is_production:
            return self.bundle_id
        suffix = "staging" if self.environment == "staging" else "dev"
        return f"{self.bundle_id}.{suffix}"

    @property
    @beartype
    def security_profile(self) -> SecurityProfile:
        """Resolve environment defaults with explicit overrides applied."""
        base = _ENVIRONMENT_PROFILES[self.environment]

        def pick(value: bool | int | None, default: object) -> object:
            return default if value is None else value

        return SecurityProfile(
            security_level=str(base["security_level"]),
            encryption_enabled=bool(
                pick(self.encryption_enabled, base["encryption_enabled"])
            ),
            session_timeout_enabled=bool(
                pick(self.session_timeout_enabled, base["session_timeout_enabled"])
            ),
            session_timeout_minutes=int(
                pick(self.session_timeout_minutes, base["session_timeout_minutes"])
            ),
            rate_limiting_enabled=bool(
                pick(self.rate_limiting_enabled, base["rate_limiting_enabled"])
            ),
            max_requests_per_minute=int(
                pick(self.max_requests_per_minute, base["max_requests_per_minute"])
            ),
            certificate_pinning_enabled=bool(
                pick(self.certificate_pinning_enabled, self.is_production)
            ),
            integrity_check_enabled=bool(
                pick(self.integrity_check_enabled, self.is_production)
            ),
            network_security_enabled=bool(
                pick(self.network_security_enabled, self.is_production)
            ),
            https_enforced=bool(pick(self.https_enforced, self.is_production)),
            cleartext_disabled=bool(pick(self.cleartext_disabled, self.is_production)),
        )


_settings: Settings | None = None


@beartype
def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


@beartype
def clear_settings_cache() -> None:
    """Clear settings cache (for testing)."""
    global _settings
    _settings = None
