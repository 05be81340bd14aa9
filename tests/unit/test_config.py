"""Unit tests for access control configuration."""

import json

import pytest
import yaml

from access_control_sdk.exceptions import ConfigurationError
from access_control_sdk.security.config import (
    AccessControlConfig,
    RoleStoreConfig,
    SecurityLoggingConfig,
    SessionSettings,
)


class TestConfigSections:
    """Test section validation."""

    def test_defaults(self):
        config = AccessControlConfig()
        assert config.roles.use_default_roles
        assert config.roles.roles_file is None
        assert not config.restrictions.strict_context
        assert config.sessions.refresh_threshold == 0.8
        assert config.sessions.default_mfa_method == "EMAIL"
        assert config.security_logging.log_level == "INFO"

    def test_invalid_log_level(self):
        with pytest.raises(ConfigurationError):
            SecurityLoggingConfig(log_level="LOUD")

    def test_log_level_case_insensitive(self):
        assert SecurityLoggingConfig(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_format(self):
        with pytest.raises(ConfigurationError):
            SecurityLoggingConfig(log_format="xml")

    def test_invalid_refresh_threshold(self):
        with pytest.raises(ConfigurationError):
            SessionSettings(refresh_threshold=1.5)

    def test_invalid_mfa_method(self):
        with pytest.raises(ConfigurationError):
            SessionSettings(default_mfa_method="CARRIER_PIGEON")

    def test_missing_role_source_warns(self):
        config = AccessControlConfig(roles=RoleStoreConfig(use_default_roles=False))
        assert any("No role source" in w for w in config.validate_configuration())

    def test_nested_dict_sections(self):
        config = AccessControlConfig(
            restrictions={"strict_context": True},
            sessions={"refresh_threshold": 0.5, "default_mfa_method": "totp"},
        )
        assert config.restrictions.strict_context
        assert config.sessions.default_mfa_method == "TOTP"

    def test_unknown_section_rejected(self):
        with pytest.raises(ConfigurationError):
            AccessControlConfig(threat_detection={"enabled": True})


class TestConfigLoading:
    """Test file and environment loaders."""

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "access.yaml"
        path.write_text(yaml.safe_dump({
            "restrictions": {"strict_context": True},
            "security_logging": {"log_format": "text"},
        }))

        config = AccessControlConfig.from_file(path)

        assert config.restrictions.strict_context
        assert config.security_logging.log_format == "text"

    def test_from_json(self, tmp_path):
        path = tmp_path / "access.json"
        path.write_text(json.dumps({"sessions": {"refresh_threshold": 0.9}}))
        assert AccessControlConfig.from_file(path).sessions.refresh_threshold == 0.9

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "access.yaml"
        path.write_text("")
        assert AccessControlConfig.from_file(path) == AccessControlConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            AccessControlConfig.from_file(tmp_path / "missing.yaml")

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "access.ini"
        path.write_text("[roles]")
        with pytest.raises(ConfigurationError):
            AccessControlConfig.from_file(path)

    def test_invalid_values_in_file(self, tmp_path):
        path = tmp_path / "access.yaml"
        path.write_text("security_logging:\n  log_level: LOUD\n")
        with pytest.raises(ConfigurationError):
            AccessControlConfig.from_file(path)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ACCESS_CONTROL_STRICT_CONTEXT", "true")
        monkeypatch.setenv("ACCESS_CONTROL_SESSION_REFRESH_THRESHOLD", "0.6")
        monkeypatch.setenv("ACCESS_CONTROL_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("ACCESS_CONTROL_AUDIT_TRAIL_ENABLED", "1")

        config = AccessControlConfig.from_env()

        assert config.restrictions.strict_context
        assert config.sessions.refresh_threshold == 0.6
        assert config.security_logging.log_level == "WARNING"
        assert config.security_logging.enable_audit_trail

    def test_from_env_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("ACME_DEFAULT_MFA_METHOD", "SMS")
        assert AccessControlConfig.from_env(prefix="ACME_").sessions.default_mfa_method == "SMS"

    def test_from_env_bad_number(self, monkeypatch):
        monkeypatch.setenv("ACCESS_CONTROL_SESSION_REFRESH_THRESHOLD", "most")
        with pytest.raises(ConfigurationError):
            AccessControlConfig.from_env()

    @pytest.mark.parametrize("fmt,suffix", [("yaml", ".yaml"), ("json", ".json")])
    def test_to_file_round_trip(self, tmp_path, fmt, suffix):
        config = AccessControlConfig(
            restrictions={"strict_context": True},
            security_logging={"enable_audit_trail": True, "audit_secret_key": "k"},
        )
        path = tmp_path / f"saved{suffix}"

        config.to_file(path, format=fmt)

        assert AccessControlConfig.from_file(path) == config

    def test_to_file_unsupported_format(self, tmp_path):
        with pytest.raises(ConfigurationError):
            AccessControlConfig().to_file(tmp_path / "x.toml", format="toml")

    def test_validate_configuration_warnings(self, tmp_path):
        config = AccessControlConfig(
            roles={"roles_file": str(tmp_path / "missing.yaml")},
            security_logging={"enable_audit_trail": True},
        )
        warnings = config.validate_configuration()
        assert len(warnings) == 2
