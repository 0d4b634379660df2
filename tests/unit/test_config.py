"""Unit tests for settings and environment security profiles."""

import pytest
from pydantic import ValidationError

from policy_guard.core.config import ControlPosture, Settings, get_settings


class TestSecurityProfile:
    """Test environment profile resolution."""

    def test_development_profile_defaults(self) -> None:
        """Test development relaxes every control."""
        profile = Settings(environment="development").security_profile

        assert profile.security_level == "LOW"
        assert profile.encryption_enabled is False
        assert profile.session_timeout_enabled is False
        assert profile.session_timeout_minutes == 480
        assert profile.rate_limiting_enabled is False
        assert profile.max_requests_per_minute == 1000
        assert profile.certificate_pinning_enabled is False
        assert profile.integrity_check_enabled is False
        assert profile.https_enforced is False

    def test_staging_profile_defaults(self) -> None:
        """Test staging enables encryption and rate limiting."""
        profile = Settings(environment="staging").security_profile

        assert profile.security_level == "MEDIUM"
        assert profile.encryption_enabled is True
        assert profile.session_timeout_minutes == 60
        assert profile.max_requests_per_minute == 200
        assert profile.integrity_check_enabled is False

    def test_production_profile_defaults(self) -> None:
        """Test production enables everything."""
        settings = Settings(environment="production", encryption_key="prod-secret")
        profile = settings.security_profile

        assert profile.security_level == "HIGH"
        assert profile.encryption_enabled is True
        assert profile.session_timeout_enabled is True
        assert profile.session_timeout_minutes == 30
        assert profile.rate_limiting_enabled is True
        assert profile.max_requests_per_minute == 100
        assert profile.certificate_pinning_enabled is True
        assert profile.integrity_check_enabled is True
        assert profile.network_security_enabled is True
        assert profile.cleartext_disabled is True

    def test_single_flag_override(self) -> None:
        """Test one override leaves the rest of the profile intact."""
        settings = Settings(
            environment="production",
            encryption_key="prod-secret",
            rate_limiting_enabled=False,
        )
        profile = settings.security_profile

        assert profile.rate_limiting_enabled is False
        assert profile.encryption_enabled is True
        assert profile.max_requests_per_minute == 100


class TestSettingsValidation:
    """Test settings validators."""

    def test_production_rejects_test_key(self) -> None:
        """Test the development key cannot ship to production."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(environment="production")

        assert "Test encryption key cannot be used in production" in str(
            exc_info.value
        )

    def test_unknown_environment_rejected(self) -> None:
        """Test the environment must be one of the three profiles."""
        with pytest.raises(ValidationError):
            Settings(environment="qa")

    def test_invalid_certificate_pin_rejected(self) -> None:
        """Test pins must use the sha256/ prefix."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(certificate_pins={"api.example.com": ["md5/abc"]})

        assert "Invalid certificate pin" in str(exc_info.value)

    def test_settings_are_frozen(self) -> None:
        """Test settings cannot be mutated after creation."""
        settings = Settings()

        with pytest.raises(ValidationError):
            settings.debug = True  # type: ignore[misc]


class TestIdentity:
    """Test environment-tagged identity values."""

    def test_development_identity_is_tagged(self) -> None:
        """Test non-production identity carries the environment."""
        settings = Settings(environment="development", app_version="2.1.0")

        assert settings.effective_app_version == "2.1.0-DEVELOPMENT"
        assert settings.effective_bundle_id == "com.carenow.app.dev"

    def test_staging_bundle_suffix(self) -> None:
        """Test staging uses its own bundle suffix."""
        settings = Settings(environment="staging")

        assert settings.effective_bundle_id == "com.carenow.app.staging"

    def test_production_identity_is_plain(self) -> None:
        """Test production identity is used as configured."""
        settings = Settings(environment="production", encryption_key="prod-secret")

        assert settings.effective_app_version == "1.0.0"
        assert settings.effective_bundle_id == "com.carenow.app"


class TestControlPosture:
    """Test declared deployment controls."""

    def test_platform_controls_default_off(self) -> None:
        """Test platform-level controls must be declared explicitly."""
        posture = ControlPosture()

        assert posture.backup_exclusions is False
        assert posture.network_security_config is False
        assert posture.password_hashing is True

    def test_nested_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test controls can be declared through nested environment variables."""
        monkeypatch.setenv("POLICY_GUARD_CONTROLS__BACKUP_EXCLUSIONS", "true")

        assert get_settings().controls.backup_exclusions is True
