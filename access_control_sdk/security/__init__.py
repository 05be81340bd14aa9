"""
Access control features for the Access Control SDK.
This module provides:
- Permission resolution with role templates, groups, overrides and conditions
- Field-level security (removal and masking)
- Contextual restrictions (IP/CIDR, geography, time of day, device)
- Session policy enforcement (duration, inactivity, IP affinity, MFA, concurrency)
- Security logging and auditing
- FastAPI integration
"""
from .config import (
    AccessControlConfig,
    RoleStoreConfig,
    RestrictionSettings,
    SessionSettings,
    SecurityLoggingConfig
)
from .exceptions import (
    AccessControlError,
    RoleStoreError,
    RuleDataError,
    AccessDeniedError,
    SecurityLoggingError,
    AuditTrailError
)
from .models import ContextValue, CheckResult, AccessCheckResult, parse_rules
from .permissions import (
    PermissionAction,
    ConditionOperator,
    PermissionCondition,
    Permission,
    PermissionOverride,
    PermissionGroup,
    PermissionResolver,
    permission_key,
    parse_permission_key
)
from .role_store import (
    RolePermissionStore,
    InMemoryRolePermissionStore,
    FileRolePermissionStore,
    load_default_role_store
)
from .field_security import AccessType, MaskingType, FieldSecurityRule, FieldSecurityFilter, load_field_rules
from .restrictions import (
    RestrictionType,
    IpRestrictionConfig,
    GeoRestrictionConfig,
    TimeRestrictionConfig,
    DeviceRestrictionConfig,
    AllowedHours,
    AccessRestriction,
    RestrictionContext,
    AccessRestrictionEvaluator,
    load_restrictions
)
from .sessions import (
    MfaMethod,
    SessionPolicy,
    Session,
    SessionValidationResult,
    SessionPolicyEnforcer
)
from .logging import (
    SecurityLogger,
    SecurityEvent,
    AuthzEvent,
    RestrictionEvent,
    SessionEvent,
    SecurityEventType,
    SecurityEventSeverity,
    get_security_logger,
    configure_security_logger,
    shutdown_security_logger
)
from .engine import (
    AccessDecision,
    AccessControlEngine,
    AccessControlEngineBuilder,
    create_access_control_engine
)
from .middleware import create_access_dependency, extract_request_context, get_access_decision

__all__ = [
    # Configuration
    "AccessControlConfig",
    "RoleStoreConfig",
    "RestrictionSettings",
    "SessionSettings",
    "SecurityLoggingConfig",

    # Exceptions
    "AccessControlError",
    "RoleStoreError",
    "RuleDataError",
    "AccessDeniedError",
    "SecurityLoggingError",
    "AuditTrailError",

    # Results
    "ContextValue",
    "CheckResult",
    "AccessCheckResult",
    "parse_rules",

    # Permissions
    "PermissionAction",
    "ConditionOperator",
    "PermissionCondition",
    "Permission",
    "PermissionOverride",
    "PermissionGroup",
    "PermissionResolver",
    "permission_key",
    "parse_permission_key",
    "RolePermissionStore",
    "InMemoryRolePermissionStore",
    "FileRolePermissionStore",
    "load_default_role_store",

    # Field security
    "AccessType",
    "MaskingType",
    "FieldSecurityRule",
    "FieldSecurityFilter",
    "load_field_rules",

    # Restrictions
    "RestrictionType",
    "IpRestrictionConfig",
    "GeoRestrictionConfig",
    "TimeRestrictionConfig",
    "DeviceRestrictionConfig",
    "AllowedHours",
    "AccessRestriction",
    "RestrictionContext",
    "AccessRestrictionEvaluator",
    "load_restrictions",

    # Sessions
    "MfaMethod",
    "SessionPolicy",
    "Session",
    "SessionValidationResult",
    "SessionPolicyEnforcer",

    # Logging
    "SecurityLogger",
    "SecurityEvent",
    "AuthzEvent",
    "RestrictionEvent",
    "SessionEvent",
    "SecurityEventType",
    "SecurityEventSeverity",
    "get_security_logger",
    "configure_security_logger",
    "shutdown_security_logger",

    # Engine
    "AccessDecision",
    "AccessControlEngine",
    "AccessControlEngineBuilder",
    "create_access_control_engine",

    # FastAPI integration
    "create_access_dependency",
    "extract_request_context",
    "get_access_decision",
]
