"""
Security Logging Infrastructure for the Access Control SDK.
This module provides structured logging of authorization decisions,
restriction violations and session policy outcomes, with an optional
tamper-evident audit trail.
"""
import json
import logging
import hashlib
import hmac
import secrets
import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field, asdict
from enum import Enum
from pathlib import Path
from logging.handlers import RotatingFileHandler

from .exceptions import SecurityLoggingError, AuditTrailError


LOGGER_NAME = "access_control.security"


class SecurityEventType(Enum):
    """Types of security events."""
    AUTHORIZATION = "authorization"
    ACCESS_DENIED = "access_denied"
    PERMISSION_GRANTED = "permission_granted"
    PERMISSION_DENIED = "permission_denied"
    FIELD_REDACTED = "field_redacted"
    RESTRICTION_VIOLATION = "restriction_violation"
    RESTRICTION_SKIPPED = "restriction_skipped"
    SESSION_INVALID = "session_invalid"
    SESSION_REFRESH = "session_refresh"
    SESSION_LIMIT = "session_limit"
    MALFORMED_RULE = "malformed_rule"
    CONFIGURATION_CHANGE = "configuration_change"
    AUDIT_EVENT = "audit_event"


class SecurityEventSeverity(Enum):
    """Security event severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class SecurityEvent:
    """Base security event data model."""
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_type: SecurityEventType = SecurityEventType.AUDIT_EVENT
    severity: SecurityEventSeverity = SecurityEventSeverity.LOW
    source: str = "unknown"
    user_id: Optional[str] = None
    firm_id: Optional[str] = None
    ip_address: Optional[str] = None
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)
    correlation_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        data['event_type'] = self.event_type.value
        data['severity'] = self.severity.value
        return data

    def to_json(self) -> str:
        """Convert event to JSON string."""
        return json.dumps(self.to_dict(), default=str)


@dataclass
class AuthzEvent(SecurityEvent):
    """Authorization decision event."""
    event_type: SecurityEventType = SecurityEventType.AUTHORIZATION
    resource: Optional[str] = None
    action: Optional[str] = None
    role: Optional[str] = None
    decision: str = "DENY"

    def __post_init__(self):
        """Set severity based on authorization decision."""
        if self.decision == "DENY":
            self.severity = SecurityEventSeverity.MEDIUM
        else:
            self.severity = SecurityEventSeverity.LOW


@dataclass
class RestrictionEvent(SecurityEvent):
    """Contextual restriction event (IP, GEO, TIME, DEVICE)."""
    event_type: SecurityEventType = SecurityEventType.RESTRICTION_VIOLATION
    restriction_type: Optional[str] = None
    violations: List[str] = field(default_factory=list)

    def __post_init__(self):
        """Skipped checks are surfaced as warnings alongside violations."""
        if self.event_type in (SecurityEventType.RESTRICTION_VIOLATION, SecurityEventType.RESTRICTION_SKIPPED):
            self.severity = SecurityEventSeverity.MEDIUM
        elif self.event_type == SecurityEventType.MALFORMED_RULE:
            self.severity = SecurityEventSeverity.HIGH


@dataclass
class SessionEvent(SecurityEvent):
    """Session policy event."""
    event_type: SecurityEventType = SecurityEventType.SESSION_INVALID
    policy_name: Optional[str] = None
    reason: Optional[str] = None

    def __post_init__(self):
        """Set severity based on session outcome."""
        if self.event_type in (SecurityEventType.SESSION_INVALID, SecurityEventType.SESSION_LIMIT):
            self.severity = SecurityEventSeverity.MEDIUM
        else:
            self.severity = SecurityEventSeverity.LOW


class AuditTrail:
    """Tamper-evident audit trail for security events."""

    def __init__(self, secret_key: str):
        """Initialize audit trail with secret key for HMAC."""
        self.secret_key = secret_key.encode('utf-8')
        self.previous_hash = "0" * 64  # Genesis hash

    def _sign(self, record: Dict[str, Any]) -> str:
        record_data = json.dumps(record, sort_keys=True, default=str)
        return hmac.new(
            self.secret_key,
            record_data.encode('utf-8'),
            hashlib.sha256
        ).hexdigest()

    def create_audit_record(self, event: SecurityEvent) -> Dict[str, Any]:
        """Create a tamper-evident audit record chained to the previous one."""
        audit_record = {
            "audit_id": str(uuid.uuid4()),
            "audit_timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event.to_dict(),
            "previous_hash": self.previous_hash
        }

        current_hash = self._sign(audit_record)
        audit_record["hash"] = current_hash
        self.previous_hash = current_hash

        return audit_record

    def verify_audit_record(self, audit_record: Dict[str, Any]) -> bool:
        """Verify integrity of a single audit record."""
        record = dict(audit_record)
        stored_hash = record.pop("hash", None)
        if not isinstance(stored_hash, str):
            return False
        return hmac.compare_digest(stored_hash, self._sign(record))


class SecurityLogger:
    """
    Security logging system with structured events and an optional
    tamper-evident audit trail.
    """

    def __init__(
        self,
        log_level: str = "INFO",
        log_format: str = "json",
        log_file: Optional[str] = None,
        max_file_size: int = 100 * 1024 * 1024,  # 100MB
        backup_count: int = 5,
        enable_audit_trail: bool = False,
        audit_secret_key: Optional[str] = None,
        logger_name: str = LOGGER_NAME,
        enabled: bool = True,
        propagate: bool = True
    ):
        """
        Initialize security logger. A disabled logger drops every event.

        Each instance writes through its own child of ``logger_name`` and owns
        its handlers, so building or shutting down one logger never touches
        another. With ``propagate`` set, records also reach handlers the
        application installs on ``logger_name`` or the root logger.
        """
        self.enabled = enabled
        level = getattr(logging, log_level.upper(), None)
        if not isinstance(level, int):
            raise SecurityLoggingError(f"Invalid log level: {log_level}")
        self.log_level = level
        self.log_format = log_format

        self.logger = logging.getLogger(logger_name).getChild(uuid.uuid4().hex[:8])
        self.logger.setLevel(self.log_level)
        self.logger.propagate = propagate
        # Chain order and emission order must agree
        self._lock = threading.Lock()

        if log_format == "json":
            formatter = logging.Formatter('%(message)s')
        else:
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )

        if log_file:
            try:
                Path(log_file).parent.mkdir(parents=True, exist_ok=True)
                file_handler = RotatingFileHandler(
                    log_file,
                    maxBytes=max_file_size,
                    backupCount=backup_count
                )
            except OSError as e:
                raise SecurityLoggingError(f"Failed to setup file handler: {e}", cause=e)
            file_handler.setLevel(self.log_level)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        if enable_audit_trail:
            if not audit_secret_key:
                # Records signed with an ephemeral key only verify within this process
                audit_secret_key = secrets.token_hex(32)
            self.audit_trail: Optional[AuditTrail] = AuditTrail(audit_secret_key)
        else:
            self.audit_trail = None

    def _write_log_entry(self, log_entry: Dict[str, Any]) -> None:
        """Write log entry at the level matching its severity."""
        if self.log_format == "json":
            message = json.dumps(log_entry, default=str)
        else:
            message = f"Security Event: {log_entry.get('message', 'Unknown')}"

        severity = log_entry.get('severity', 'low')
        if severity == 'critical':
            self.logger.critical(message)
        elif severity == 'high':
            self.logger.error(message)
        elif severity == 'medium':
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_event(self, event: SecurityEvent) -> Optional[Dict[str, Any]]:
        """Log a security event. Returns the audit record when the trail is on."""
        if not self.enabled:
            return None
        log_entry = event.to_dict()
        audit_record = None
        with self._lock:
            if self.audit_trail:
                audit_record = self.audit_trail.create_audit_record(event)
                log_entry["audit"] = audit_record
            self._write_log_entry(log_entry)
        return audit_record

    def log_authz_event(
        self,
        resource: str,
        action: str,
        decision: str,
        user_id: Optional[str] = None,
        role: Optional[str] = None,
        **kwargs
    ):
        """Log an authorization decision."""
        event = AuthzEvent(
            user_id=user_id,
            resource=resource,
            action=action,
            decision=decision,
            role=role,
            message=f"Authorization {decision} for role {role} on {resource}:{action}",
            **kwargs
        )
        return self.log_event(event)

    def log_restriction_event(
        self,
        restriction_type: str,
        violations: List[str],
        event_type: SecurityEventType = SecurityEventType.RESTRICTION_VIOLATION,
        **kwargs
    ):
        """Log a restriction violation, skip or malformed restriction."""
        event = RestrictionEvent(
            event_type=event_type,
            restriction_type=restriction_type,
            violations=violations,
            message=f"{restriction_type} restriction: {'; '.join(violations) or event_type.value}",
            **kwargs
        )
        return self.log_event(event)

    def log_session_event(
        self,
        reason: str,
        event_type: SecurityEventType = SecurityEventType.SESSION_INVALID,
        policy_name: Optional[str] = None,
        **kwargs
    ):
        """Log a session policy outcome."""
        event = SessionEvent(
            event_type=event_type,
            policy_name=policy_name,
            reason=reason,
            message=f"Session policy {policy_name or 'default'}: {reason}",
            **kwargs
        )
        return self.log_event(event)

    def log_malformed_rule(self, rule_type: str, description: str, **kwargs):
        """Log rule data that was treated as a denial because it is malformed."""
        event = SecurityEvent(
            event_type=SecurityEventType.MALFORMED_RULE,
            severity=SecurityEventSeverity.HIGH,
            message=f"Malformed {rule_type} rule: {description}",
            details={"rule_type": rule_type, "description": description},
            **kwargs
        )
        return self.log_event(event)

    def verify_audit_trail(self, audit_records: List[Dict[str, Any]]) -> bool:
        """Verify integrity and chaining of a sequence of audit records."""
        if not self.audit_trail:
            raise AuditTrailError("Audit trail not enabled")

        verifier = AuditTrail(self.audit_trail.secret_key.decode('utf-8'))
        previous_hash = "0" * 64
        for record in audit_records:
            if record.get("previous_hash") != previous_hash:
                return False
            if not verifier.verify_audit_record(record):
                return False
            previous_hash = record.get("hash", "")
        return True

    def shutdown(self):
        """Flush and close handlers."""
        for handler in list(self.logger.handlers):
            handler.flush()
            handler.close()
            self.logger.removeHandler(handler)


# Process-level logger; engines accept an injected instance instead.
_security_logger: Optional[SecurityLogger] = None


def get_security_logger() -> SecurityLogger:
    """Get the process-level security logger, creating it on first use."""
    global _security_logger
    if _security_logger is None:
        _security_logger = SecurityLogger()
    return _security_logger


def configure_security_logger(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    **kwargs
) -> SecurityLogger:
    """Configure the process-level security logger."""
    global _security_logger
    if _security_logger:
        _security_logger.shutdown()

    _security_logger = SecurityLogger(
        log_level=log_level,
        log_format=log_format,
        log_file=log_file,
        **kwargs
    )
    return _security_logger


def shutdown_security_logger():
    """Shutdown the process-level security logger."""
    global _security_logger
    if _security_logger:
        _security_logger.shutdown()
        _security_logger = None
