"""Unit tests for security logging and the audit trail."""

import json
import logging
import threading

import pytest

from access_control_sdk.security.exceptions import AuditTrailError, SecurityLoggingError
from access_control_sdk.security.logging import (
    AuthzEvent,
    RestrictionEvent,
    SecurityEvent,
    SecurityEventSeverity,
    SecurityEventType,
    SecurityLogger,
    SessionEvent,
    configure_security_logger,
    get_security_logger,
    shutdown_security_logger,
)


LOGGER_NAME = "access_control.tests.logging"


@pytest.fixture
def audit_logger():
    logger = SecurityLogger(logger_name=LOGGER_NAME, enable_audit_trail=True, audit_secret_key="test-key")
    yield logger
    logger.shutdown()


class TestSecurityEvents:
    """Test event models."""

    def test_to_dict(self):
        event = SecurityEvent(message="hello", user_id="u1")
        data = event.to_dict()
        assert data["event_type"] == "audit_event"
        assert data["severity"] == "low"
        assert data["user_id"] == "u1"
        assert json.loads(event.to_json())["message"] == "hello"

    def test_authz_severity(self):
        assert AuthzEvent(decision="DENY").severity == SecurityEventSeverity.MEDIUM
        assert AuthzEvent(decision="ALLOW").severity == SecurityEventSeverity.LOW

    def test_restriction_severity(self):
        assert RestrictionEvent().severity == SecurityEventSeverity.MEDIUM
        skipped = RestrictionEvent(event_type=SecurityEventType.RESTRICTION_SKIPPED)
        assert skipped.severity == SecurityEventSeverity.MEDIUM

    def test_session_severity(self):
        assert SessionEvent().severity == SecurityEventSeverity.MEDIUM
        refresh = SessionEvent(event_type=SecurityEventType.SESSION_REFRESH)
        assert refresh.severity == SecurityEventSeverity.LOW


class TestSecurityLogger:
    """Test log output."""

    def test_json_output(self, caplog):
        logger = SecurityLogger(logger_name=LOGGER_NAME)
        with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
            logger.log_authz_event("clients", "READ", "DENY", user_id="u1", role="TRAINEE")

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        payload = json.loads(record.getMessage())
        assert payload["resource"] == "clients"
        assert payload["decision"] == "DENY"

    def test_malformed_rule_logged_as_error(self, caplog):
        logger = SecurityLogger(logger_name=LOGGER_NAME)
        logger.log_malformed_rule("IP", "unparsable CIDR")
        assert caplog.records[-1].levelno == logging.ERROR

    def test_text_output(self, caplog):
        logger = SecurityLogger(logger_name=LOGGER_NAME, log_format="text")
        logger.log_session_event("Session has timed out due to inactivity", policy_name="strict")
        assert "Session policy strict" in caplog.text

    def test_disabled_logger(self, caplog):
        logger = SecurityLogger(logger_name=LOGGER_NAME, enabled=False)
        assert logger.log_authz_event("clients", "READ", "ALLOW") is None
        assert not caplog.records

    def test_file_output(self, tmp_path):
        log_file = tmp_path / "logs" / "security.log"
        logger = SecurityLogger(logger_name=LOGGER_NAME, log_file=str(log_file))
        logger.log_restriction_event("IP", ["IP address is blocked"])
        logger.shutdown()

        assert "IP address is blocked" in log_file.read_text()

    def test_invalid_level(self):
        with pytest.raises(SecurityLoggingError):
            SecurityLogger(logger_name=LOGGER_NAME, log_level="LOUD")

    def test_loggers_keep_their_own_handlers(self, tmp_path):
        log_file = tmp_path / "engine.log"
        engine_logger = SecurityLogger(log_file=str(log_file))
        shutdown_security_logger()
        other = get_security_logger()
        shutdown_security_logger()

        engine_logger.log_authz_event("clients", "READ", "DENY", role="TRAINEE")
        engine_logger.shutdown()

        assert engine_logger.logger is not other.logger
        assert "clients:READ" in log_file.read_text()


class TestAuditTrail:
    """Test tamper-evident audit records."""

    def test_chain_verifies(self, audit_logger):
        records = [
            audit_logger.log_authz_event("clients", "READ", "ALLOW"),
            audit_logger.log_restriction_event("GEO", ["Access not allowed from this country"]),
            audit_logger.log_session_event("Session IP not in whitelist"),
        ]
        assert records[1]["previous_hash"] == records[0]["hash"]
        assert audit_logger.verify_audit_trail(records)

    def test_tampered_record_fails(self, audit_logger):
        records = [
            audit_logger.log_authz_event("clients", "DELETE", "DENY", user_id="u1"),
            audit_logger.log_authz_event("clients", "READ", "ALLOW", user_id="u1"),
        ]
        records[0]["event"]["decision"] = "ALLOW"
        assert not audit_logger.verify_audit_trail(records)

    def test_reordered_records_fail(self, audit_logger):
        records = [
            audit_logger.log_authz_event("clients", "READ", "ALLOW"),
            audit_logger.log_authz_event("tasks", "READ", "ALLOW"),
        ]
        assert not audit_logger.verify_audit_trail(list(reversed(records)))

    def test_wrong_key_fails(self, audit_logger):
        records = [audit_logger.log_authz_event("clients", "READ", "ALLOW")]
        other = SecurityLogger(logger_name=LOGGER_NAME, enable_audit_trail=True, audit_secret_key="other")
        assert not other.verify_audit_trail(records)

    def test_requires_audit_trail(self):
        logger = SecurityLogger(logger_name=LOGGER_NAME)
        with pytest.raises(AuditTrailError):
            logger.verify_audit_trail([])

    def test_chain_survives_concurrent_logging(self, tmp_path):
        log_file = tmp_path / "audit.log"
        logger = SecurityLogger(
            logger_name=LOGGER_NAME, log_file=str(log_file), propagate=False,
            enable_audit_trail=True, audit_secret_key="test-key"
        )

        def worker(n):
            for i in range(100):
                logger.log_authz_event("clients", "READ", "ALLOW", user_id=f"u{n}-{i}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        logger.shutdown()

        records = [json.loads(line)["audit"] for line in log_file.read_text().splitlines()]
        assert len(records) == 800
        assert len({r["previous_hash"] for r in records}) == 800
        assert logger.verify_audit_trail(records)


class TestGlobalLogger:
    """Test process-level accessors."""

    def test_configure_and_shutdown(self):
        configured = configure_security_logger(log_level="WARNING", log_format="text")
        assert get_security_logger() is configured
        assert configured.log_level == logging.WARNING

        shutdown_security_logger()
        assert get_security_logger() is not configured
        shutdown_security_logger()
