"""
Session policy enforcement.

Validates a live session against a firm's policy: absolute duration,
inactivity, IP affinity, MFA requirements and concurrent-session limits.
All durations in a policy are minutes; an unset limit is unconstrained.
"""
import ipaddress
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .logging import SecurityEventType, SecurityLogger, get_security_logger
from .models import CheckResult


DEFAULT_REFRESH_THRESHOLD = 0.8


class MfaMethod(str, Enum):
    """Second factors a policy can allow."""
    TOTP = "TOTP"
    SMS = "SMS"
    EMAIL = "EMAIL"
    HARDWARE_KEY = "HARDWARE_KEY"


class SessionPolicy(BaseModel):
    """Firm-level constraints on the session lifecycle."""

    firm_id: Optional[str] = None
    name: Optional[str] = None
    max_session_duration: Optional[float] = Field(default=None, ge=0, description="Minutes")
    idle_timeout: Optional[float] = Field(default=None, ge=0, description="Minutes")
    max_concurrent_sessions: Optional[int] = Field(default=None, ge=0)
    require_mfa: Optional[bool] = None
    mfa_methods: Optional[List[MfaMethod]] = None
    ip_whitelist: Optional[List[str]] = None


class Session(BaseModel):
    """The live session being validated."""

    created_at: datetime
    last_activity_at: datetime
    ip_address: Optional[str] = None

    @field_validator("created_at", "last_activity_at")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class SessionValidationResult(BaseModel):
    valid: bool
    reason: Optional[str] = None
    should_refresh: bool = False


def _minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60


def _same_ip(a: str, b: str) -> bool:
    if a == b:
        return True
    try:
        return ipaddress.ip_address(a.strip()) == ipaddress.ip_address(b.strip())
    except ValueError:
        return False


class SessionPolicyEnforcer:
    """
    Enforces session policies.

    ``refresh_threshold`` is the fraction of ``idle_timeout`` after which a
    still-valid session is flagged for refresh.
    """

    def __init__(
        self,
        refresh_threshold: float = DEFAULT_REFRESH_THRESHOLD,
        default_mfa_method: MfaMethod = MfaMethod.EMAIL,
        logger: Optional[SecurityLogger] = None
    ):
        if not 0 < refresh_threshold <= 1:
            raise ValueError("refresh_threshold must be in (0, 1]")
        self.refresh_threshold = refresh_threshold
        self.default_mfa_method = MfaMethod(default_mfa_method)
        self.logger = logger or get_security_logger()

    def validate_session(
        self,
        policy: SessionPolicy,
        session: Session,
        now: Optional[datetime] = None
    ) -> SessionValidationResult:
        """
        Check a session against a policy.

        Checks run in order: maximum duration, inactivity, refresh window,
        IP whitelist. A session past the refresh threshold still goes through
        the whitelist check. A session without a known IP fails a non-empty
        whitelist.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        if policy.max_session_duration is not None:
            age = _minutes_between(session.created_at, now)
            if age > policy.max_session_duration:
                return self._invalid(policy, session, "Session has exceeded maximum duration")

        should_refresh = False
        if policy.idle_timeout is not None:
            idle = _minutes_between(session.last_activity_at, now)
            if idle > policy.idle_timeout:
                return self._invalid(policy, session, "Session has timed out due to inactivity")
            should_refresh = idle > policy.idle_timeout * self.refresh_threshold

        if policy.ip_whitelist:
            ip = session.ip_address
            if ip is None or not any(_same_ip(ip, allowed) for allowed in policy.ip_whitelist):
                return self._invalid(policy, session, "Session IP not in whitelist")

        if should_refresh:
            self.logger.log_session_event(
                "Session approaching idle timeout",
                event_type=SecurityEventType.SESSION_REFRESH,
                policy_name=policy.name,
                firm_id=policy.firm_id,
                ip_address=session.ip_address
            )

        return SessionValidationResult(valid=True, should_refresh=should_refresh)

    def is_mfa_required(self, policy: SessionPolicy) -> bool:
        return policy.require_mfa is True

    def get_allowed_mfa_methods(self, policy: SessionPolicy) -> List[MfaMethod]:
        """Policy methods, or the configured default when none are set."""
        if policy.mfa_methods:
            return list(policy.mfa_methods)
        return [self.default_mfa_method]

    def check_concurrent_sessions(self, policy: SessionPolicy, active_session_count: int) -> CheckResult:
        """Deny opening another session once the limit is reached."""
        limit = policy.max_concurrent_sessions
        if limit is None:
            return CheckResult.allow()

        if active_session_count >= limit:
            reason = f"Maximum concurrent sessions ({limit}) exceeded"
            self.logger.log_session_event(
                reason,
                event_type=SecurityEventType.SESSION_LIMIT,
                policy_name=policy.name,
                firm_id=policy.firm_id,
                details={"active_sessions": active_session_count, "limit": limit}
            )
            return CheckResult.deny(reason)

        return CheckResult.allow()

    def _invalid(self, policy: SessionPolicy, session: Session, reason: str) -> SessionValidationResult:
        self.logger.log_session_event(
            reason,
            policy_name=policy.name,
            firm_id=policy.firm_id,
            ip_address=session.ip_address
        )
        return SessionValidationResult(valid=False, reason=reason)
