"""
Field-level security for entity payloads.

Rules restrict which roles may read or write a field and optionally mask
the value. Rules are applied in list order, so when several rules target
the same field the last one applied decides the outcome.
"""
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from pydantic import BaseModel, Field

from .logging import SecurityEventType, SecurityEvent, SecurityLogger, get_security_logger
from .models import parse_rules


class AccessType(str, Enum):
    """Kind of access a field rule governs."""
    READ = "READ"
    WRITE = "WRITE"
    BOTH = "BOTH"


class MaskingType(str, Enum):
    """Masking transform applied to readable fields."""
    NONE = "NONE"
    PARTIAL = "PARTIAL"
    FULL = "FULL"


PARTIAL_MASK = "****"
FULL_MASK = "********"


class FieldSecurityRule(BaseModel):
    """Per-field read/write restriction with an optional masking transform."""

    firm_id: Optional[str] = None
    entity_type: str
    field_name: str
    roles: List[str] = Field(default_factory=list, description="Roles allowed to access the field")
    access_type: AccessType = AccessType.BOTH
    masking_type: MaskingType = MaskingType.NONE


def load_field_rules(records: Iterable[Any]) -> List[FieldSecurityRule]:
    """Validate field security rule rows loaded from storage."""
    return parse_rules(FieldSecurityRule, records, "field_security")


class FieldSecurityFilter:
    """Removes or masks fields a role may not see, and lists writable fields."""

    def __init__(self, logger: Optional[SecurityLogger] = None):
        self.logger = logger or get_security_logger()

    def can_access_field(
        self,
        rule: Optional[FieldSecurityRule],
        role: str,
        access_type: AccessType
    ) -> bool:
        """No rule means no restriction. WRITE is denied on READ-only rules."""
        if rule is None:
            return True

        if role not in rule.roles:
            return False

        if access_type == AccessType.WRITE and rule.access_type == AccessType.READ:
            return False

        return True

    def mask_field(self, value: Any, masking_type: MaskingType) -> Any:
        """
        Mask a value.

        PARTIAL keeps the first and last two characters of the string form
        (``"1234567890"`` -> ``"12****90"``) and hides values of four
        characters or fewer entirely. FULL always yields ``"********"``.
        ``None`` is returned unchanged.
        """
        if value is None:
            return value

        if masking_type == MaskingType.PARTIAL:
            str_value = str(value)
            if len(str_value) <= 4:
                return PARTIAL_MASK
            return str_value[:2] + PARTIAL_MASK + str_value[-2:]

        if masking_type == MaskingType.FULL:
            return FULL_MASK

        return value

    def apply_field_security(
        self,
        data: Mapping[str, Any],
        entity_type: str,
        rules: Sequence[FieldSecurityRule],
        role: str
    ) -> Dict[str, Any]:
        """Return a copy of ``data`` with denied fields removed and masked fields masked."""
        result = dict(data)
        removed: List[str] = []
        masked: List[str] = []

        for rule in rules:
            if rule.entity_type != entity_type:
                continue

            field_name = rule.field_name
            if field_name not in result:
                continue

            if not self.can_access_field(rule, role, AccessType.READ):
                del result[field_name]
                removed.append(field_name)
            elif rule.masking_type != MaskingType.NONE:
                result[field_name] = self.mask_field(result[field_name], rule.masking_type)
                masked.append(field_name)

        if removed or masked:
            self.logger.log_event(SecurityEvent(
                event_type=SecurityEventType.FIELD_REDACTED,
                source="field_security",
                message=f"Redacted {len(removed)} and masked {len(masked)} field(s) of {entity_type} for role {role}",
                details={"entity_type": entity_type, "role": role, "removed": removed, "masked": masked}
            ))

        return result

    def apply_field_security_many(
        self,
        records: Iterable[Mapping[str, Any]],
        entity_type: str,
        rules: Sequence[FieldSecurityRule],
        role: str
    ) -> List[Dict[str, Any]]:
        """Apply field security to every record of a list payload."""
        return [self.apply_field_security(record, entity_type, rules, role) for record in records]

    def get_writable_fields(
        self,
        entity_type: str,
        rules: Sequence[FieldSecurityRule],
        role: str,
        all_fields: Iterable[str]
    ) -> List[str]:
        """``all_fields`` minus every field a matching rule denies for WRITE."""
        restricted = {
            rule.field_name
            for rule in rules
            if rule.entity_type == entity_type
            and not self.can_access_field(rule, role, AccessType.WRITE)
        }
        return [f for f in all_fields if f not in restricted]
