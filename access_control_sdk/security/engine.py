"""
Access control engine.

Composes the four evaluators behind one explicitly constructed object:
permission gate, restriction gate and session gate run in that order and
their outcomes are aggregated into an ``AccessDecision``. The field
security filter is exposed for shaping response payloads afterwards.

Example:
    engine = create_access_control_engine(AccessControlConfig())
    decision = engine.authorize("MANAGER", "documents", PermissionAction.READ)
    if decision.allowed:
        payload = engine.filter_fields(record, "client", field_rules, "MANAGER")
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, Field

from ..exceptions import ConfigurationError
from .config import AccessControlConfig
from .exceptions import AccessDeniedError
from .field_security import FieldSecurityFilter, FieldSecurityRule
from .logging import SecurityLogger, get_security_logger
from .models import AccessCheckResult, ContextValue
from .permissions import (
    Permission,
    PermissionAction,
    PermissionGroup,
    PermissionOverride,
    PermissionResolver,
    permission_key,
)
from .restrictions import AccessRestriction, AccessRestrictionEvaluator, RestrictionContext
from .role_store import FileRolePermissionStore, RolePermissionStore, load_default_role_store
from .sessions import (
    DEFAULT_REFRESH_THRESHOLD,
    MfaMethod,
    Session,
    SessionPolicy,
    SessionPolicyEnforcer,
    SessionValidationResult,
)


class AccessDecision(BaseModel):
    """Aggregated outcome of the permission, restriction and session gates."""

    allowed: bool
    reasons: List[str] = Field(default_factory=list)
    should_refresh_session: bool = False
    permission: AccessCheckResult
    restrictions: Optional[AccessCheckResult] = None
    session: Optional[SessionValidationResult] = None
    effective_permissions: List[Permission] = Field(default_factory=list)

    @property
    def session_invalid(self) -> bool:
        return self.session is not None and not self.session.valid

    def raise_for_denial(self, user_id: Optional[str] = None) -> None:
        """Raise ``AccessDeniedError`` carrying every reason when access is denied."""
        if not self.allowed:
            raise AccessDeniedError(user_id=user_id, reasons=self.reasons)


class AccessControlEngine:
    """
    Facade over the permission resolver, restriction evaluator, session
    enforcer and field security filter.

    Every gate is evaluated even after an earlier one denies, so the
    decision carries every reason at once.
    """

    def __init__(
        self,
        role_store: RolePermissionStore,
        logger: Optional[SecurityLogger] = None,
        strict_context: bool = False,
        refresh_threshold: float = DEFAULT_REFRESH_THRESHOLD,
        default_mfa_method: MfaMethod = MfaMethod.EMAIL
    ):
        self.role_store = role_store
        self.logger = logger or get_security_logger()
        self.permissions = PermissionResolver(role_store, logger=self.logger)
        self.restrictions = AccessRestrictionEvaluator(strict_context=strict_context, logger=self.logger)
        self.sessions = SessionPolicyEnforcer(
            refresh_threshold=refresh_threshold,
            default_mfa_method=default_mfa_method,
            logger=self.logger
        )
        self.field_security = FieldSecurityFilter(logger=self.logger)

    def authorize(
        self,
        role: str,
        resource: str,
        action: Union[PermissionAction, str],
        *,
        user_id: Optional[str] = None,
        firm_id: Optional[str] = None,
        groups: Iterable[PermissionGroup] = (),
        overrides: Iterable[PermissionOverride] = (),
        condition_context: Optional[Mapping[str, ContextValue]] = None,
        restrictions: Iterable[AccessRestriction] = (),
        restriction_context: Optional[Union[RestrictionContext, Mapping[str, Any]]] = None,
        session_policy: Optional[SessionPolicy] = None,
        session: Optional[Session] = None,
        now: Optional[datetime] = None
    ) -> AccessDecision:
        """Run the permission, restriction and session gates for one request."""
        if not isinstance(action, PermissionAction):
            try:
                action = PermissionAction(str(action).upper())
            except ValueError:
                pass

        effective = self.permissions.resolve_effective_permissions(role, groups, overrides)
        permission_result = self._check_permission(effective, resource, action, condition_context)

        if restriction_context is None:
            restriction_context = RestrictionContext(current_time=now)
        elif not isinstance(restriction_context, RestrictionContext):
            restriction_context = RestrictionContext.model_validate(restriction_context)
        if now is not None and restriction_context.current_time is None:
            restriction_context = restriction_context.model_copy(update={"current_time": now})

        applicable = self.restrictions.applicable_restrictions(restrictions, user_id)
        restriction_result = None
        if applicable:
            restriction_result = self.restrictions.check_all_restrictions(applicable, restriction_context)

        session_result = None
        if session_policy is not None and session is not None:
            session_result = self.sessions.validate_session(session_policy, session, now)

        reasons = list(permission_result.reasons)
        if restriction_result is not None:
            reasons.extend(restriction_result.reasons)
        if session_result is not None and not session_result.valid and session_result.reason:
            reasons.append(session_result.reason)

        allowed = (
            permission_result.allowed
            and (restriction_result is None or restriction_result.allowed)
            and (session_result is None or session_result.valid)
        )

        decision = AccessDecision(
            allowed=allowed,
            reasons=reasons,
            should_refresh_session=bool(session_result and session_result.should_refresh),
            permission=permission_result,
            restrictions=restriction_result,
            session=session_result,
            effective_permissions=effective
        )

        self.logger.log_authz_event(
            resource=resource,
            action=str(getattr(action, "value", action)),
            decision="ALLOW" if allowed else "DENY",
            user_id=user_id,
            role=role,
            firm_id=firm_id,
            ip_address=restriction_context.ip,
            details={"reasons": reasons}
        )
        return decision

    def _check_permission(
        self,
        permissions: Sequence[Permission],
        resource: str,
        action: Union[PermissionAction, str],
        context: Optional[Mapping[str, ContextValue]]
    ) -> AccessCheckResult:
        missing = self.permissions.missing_permissions(permissions, [(resource, action)], context)
        if not missing:
            return AccessCheckResult(allowed=True)
        return AccessCheckResult(
            allowed=False,
            reason=f"Missing permission: {permission_key(resource, action)}",
            missing_permissions=missing
        )

    def filter_fields(
        self,
        data: Mapping[str, Any],
        entity_type: str,
        rules: Sequence[FieldSecurityRule],
        role: str
    ) -> Dict[str, Any]:
        return self.field_security.apply_field_security(data, entity_type, rules, role)

    def writable_fields(
        self,
        entity_type: str,
        rules: Sequence[FieldSecurityRule],
        role: str,
        all_fields: Iterable[str]
    ) -> List[str]:
        return self.field_security.get_writable_fields(entity_type, rules, role, all_fields)


class AccessControlEngineBuilder:
    """Builder pattern for creating access control engines."""

    def __init__(self):
        self._role_store: Optional[RolePermissionStore] = None
        self._logger: Optional[SecurityLogger] = None
        self._strict_context = False
        self._refresh_threshold = DEFAULT_REFRESH_THRESHOLD
        self._default_mfa_method = MfaMethod.EMAIL

    def with_role_store(self, role_store: RolePermissionStore) -> 'AccessControlEngineBuilder':
        """Set role permission store."""
        self._role_store = role_store
        return self

    def with_roles_file(self, path: str) -> 'AccessControlEngineBuilder':
        """Load role permission templates from a YAML or JSON file."""
        self._role_store = FileRolePermissionStore(path)
        return self

    def with_logger(self, logger: SecurityLogger) -> 'AccessControlEngineBuilder':
        """Set security logger."""
        self._logger = logger
        return self

    def with_strict_context(self, strict: bool = True) -> 'AccessControlEngineBuilder':
        """Deny restrictions whose context input is missing."""
        self._strict_context = strict
        return self

    def with_refresh_threshold(self, threshold: float) -> 'AccessControlEngineBuilder':
        self._refresh_threshold = threshold
        return self

    def with_default_mfa_method(self, method: Union[MfaMethod, str]) -> 'AccessControlEngineBuilder':
        self._default_mfa_method = MfaMethod(method)
        return self

    def build(self) -> AccessControlEngine:
        """Build the engine, falling back to the bundled role templates."""
        return AccessControlEngine(
            role_store=self._role_store or load_default_role_store(),
            logger=self._logger,
            strict_context=self._strict_context,
            refresh_threshold=self._refresh_threshold,
            default_mfa_method=self._default_mfa_method
        )


def create_access_control_engine(
    config: Optional[AccessControlConfig] = None,
    role_store: Optional[RolePermissionStore] = None,
    logger: Optional[SecurityLogger] = None
) -> AccessControlEngine:
    """
    Factory function to create an access control engine from configuration.

    Args:
        config: Engine configuration (defaults apply when omitted)
        role_store: Role store overriding ``config.roles``
        logger: Security logger overriding ``config.security_logging``

    Returns:
        Configured access control engine

    Raises:
        ConfigurationError: If no role source is configured or passed
    """
    config = config or AccessControlConfig()
    builder = AccessControlEngineBuilder()

    if role_store is not None:
        builder.with_role_store(role_store)
    elif config.roles.roles_file:
        builder.with_roles_file(config.roles.roles_file)
    elif config.roles.use_default_roles:
        builder.with_role_store(load_default_role_store())
    else:
        raise ConfigurationError(
            "No role source: set roles.roles_file, enable roles.use_default_roles or pass role_store"
        )

    if logger is None:
        logging_config = config.security_logging
        logger = SecurityLogger(
            log_level=logging_config.log_level,
            log_format=logging_config.log_format,
            log_file=logging_config.log_file,
            max_file_size=logging_config.max_file_size,
            backup_count=logging_config.backup_count,
            enable_audit_trail=logging_config.enable_audit_trail,
            audit_secret_key=logging_config.audit_secret_key,
            enabled=logging_config.enabled
        )
    builder.with_logger(logger)

    return (
        builder
        .with_strict_context(config.restrictions.strict_context)
        .with_refresh_threshold(config.sessions.refresh_threshold)
        .with_default_mfa_method(config.sessions.default_mfa_method)
        .build()
    )
