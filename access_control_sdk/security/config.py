"""
Access Control Configuration for the Access Control SDK.
This module provides configuration management for the access-control
engine: role templates, restriction evaluation, session policy defaults
and security logging.
"""
import os
from pathlib import Path
from typing import Dict, List, Optional, Any, Union
from dataclasses import dataclass
import json
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from ..exceptions import ConfigurationError


LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
MFA_METHODS = ["TOTP", "SMS", "EMAIL", "HARDWARE_KEY"]


@dataclass
class RoleStoreConfig:
    """Where role permission templates come from."""
    roles_file: Optional[str] = None
    # Fall back to the bundled templates when no roles_file is set
    use_default_roles: bool = True


@dataclass
class RestrictionSettings:
    """Configuration for contextual restriction evaluation."""
    # Deny instead of skip when the request context lacks a restriction's input
    strict_context: bool = False


@dataclass
class SessionSettings:
    """Defaults for session policy enforcement."""
    refresh_threshold: float = 0.8
    default_mfa_method: str = "EMAIL"

    def __post_init__(self):
        """Validate session settings."""
        if not 0 < self.refresh_threshold <= 1:
            raise ConfigurationError("refresh_threshold must be between 0 (exclusive) and 1")
        self.default_mfa_method = self.default_mfa_method.upper()
        if self.default_mfa_method not in MFA_METHODS:
            raise ConfigurationError(f"Invalid default_mfa_method: {self.default_mfa_method}")


@dataclass
class SecurityLoggingConfig:
    """Configuration for Security Logging."""
    enabled: bool = True
    log_level: str = "INFO"
    log_format: str = "json"  # json, text
    log_file: Optional[str] = None
    max_file_size: int = 100 * 1024 * 1024  # 100MB
    backup_count: int = 5

    # Audit trail settings
    enable_audit_trail: bool = False
    audit_secret_key: Optional[str] = None

    def __post_init__(self):
        """Validate security logging configuration."""
        self.log_level = self.log_level.upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log_level: {self.log_level}")
        if self.log_format not in ["json", "text"]:
            raise ConfigurationError(f"Invalid log_format: {self.log_format}")
        if self.max_file_size < 1024:  # Minimum 1KB
            raise ConfigurationError("max_file_size must be at least 1024 bytes")
        if self.backup_count < 0:
            raise ConfigurationError("backup_count cannot be negative")


class AccessControlConfig(BaseModel):
    """
    Configuration for the access-control engine.
    Groups role store, restriction, session and security logging settings.
    """
    roles: RoleStoreConfig = Field(default_factory=RoleStoreConfig)
    restrictions: RestrictionSettings = Field(default_factory=RestrictionSettings)
    sessions: SessionSettings = Field(default_factory=SessionSettings)
    security_logging: SecurityLoggingConfig = Field(default_factory=SecurityLoggingConfig)

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    def __init__(self, **data):
        """Initialize access control configuration."""
        try:
            super().__init__(**data)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid access control configuration: {e}", details={"errors": e.errors()})

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> 'AccessControlConfig':
        """Load configuration from file (JSON or YAML)."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                if config_path.suffix.lower() in ['.yaml', '.yml']:
                    data = yaml.safe_load(f) or {}
                elif config_path.suffix.lower() == '.json':
                    data = json.load(f)
                else:
                    raise ConfigurationError(f"Unsupported configuration file format: {config_path.suffix}")
        except ConfigurationError:
            raise
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to load configuration from {config_path}: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file must contain a mapping: {config_path}")
        return cls(**data)

    @classmethod
    def from_env(cls, prefix: str = "ACCESS_CONTROL_") -> 'AccessControlConfig':
        """Load configuration from environment variables."""
        config_data: Dict[str, Any] = {}

        env_mappings = {
            f"{prefix}ROLES_FILE": ("roles.roles_file", str),
            f"{prefix}USE_DEFAULT_ROLES": ("roles.use_default_roles", bool),
            f"{prefix}STRICT_CONTEXT": ("restrictions.strict_context", bool),
            f"{prefix}SESSION_REFRESH_THRESHOLD": ("sessions.refresh_threshold", float),
            f"{prefix}DEFAULT_MFA_METHOD": ("sessions.default_mfa_method", str),
            f"{prefix}LOGGING_ENABLED": ("security_logging.enabled", bool),
            f"{prefix}LOG_LEVEL": ("security_logging.log_level", str),
            f"{prefix}LOG_FORMAT": ("security_logging.log_format", str),
            f"{prefix}LOG_FILE": ("security_logging.log_file", str),
            f"{prefix}AUDIT_TRAIL_ENABLED": ("security_logging.enable_audit_trail", bool),
            f"{prefix}AUDIT_SECRET_KEY": ("security_logging.audit_secret_key", str),
        }

        for env_var, (config_path, config_type) in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                # Convert value to appropriate type
                try:
                    if config_type == bool:
                        value = value.lower() in ('true', '1', 'yes', 'on')
                    elif config_type == float:
                        value = float(value)
                except ValueError as e:
                    raise ConfigurationError(f"Invalid value for {env_var}: {value!r}") from e

                cls._set_nested_value(config_data, config_path, value)

        return cls(**config_data)

    @staticmethod
    def _set_nested_value(data: dict, path: str, value: Any):
        """Set a nested dictionary value using dot notation."""
        keys = path.split('.')
        current = data
        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]
        current[keys[-1]] = value

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump(mode="json")

    def to_file(self, config_path: Union[str, Path], format: str = "yaml"):
        """Save configuration to file."""
        config_path = Path(config_path)
        config_data = self.to_dict()

        if format.lower() not in ['yaml', 'yml', 'json']:
            raise ConfigurationError(f"Unsupported format: {format}")

        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                if format.lower() == 'json':
                    json.dump(config_data, f, indent=2)
                else:
                    yaml.safe_dump(config_data, f, default_flow_style=False, indent=2)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration to {config_path}: {e}")

    def validate_configuration(self) -> List[str]:
        """Validate the entire configuration and return any warnings."""
        warnings = []

        if self.roles.roles_file and not Path(self.roles.roles_file).exists():
            warnings.append("roles_file configured but not found")

        if not self.roles.roles_file and not self.roles.use_default_roles:
            warnings.append("No role source configured; a role_store must be passed to the engine factory")

        if self.security_logging.enable_audit_trail and not self.security_logging.audit_secret_key:
            warnings.append("Audit trail enabled without audit_secret_key; records will only verify within this process")

        if not self.security_logging.enabled and self.security_logging.enable_audit_trail:
            warnings.append("Audit trail has no effect while security logging is disabled")

        return warnings
