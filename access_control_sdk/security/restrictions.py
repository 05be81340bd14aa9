"""
Contextual access restrictions for the Access Control SDK.

This module validates where, when and from what a request originates:
- IP restrictions: blocklist, allowlist and CIDR ranges (IPv4 and IPv6)
- Geographic restrictions: blocked/allowed countries and allowed states
- Time restrictions: allowed weekdays and hours in a configured timezone
- Device restrictions: allowed device types and trusted-device requirement

Restriction configs are a tagged union discriminated by ``type``. Malformed
rule data (missing config, mismatched tag, unparsable CIDR, unknown
timezone) is evaluated as a violation rather than ignored.
"""
import ipaddress
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Iterable, List, Literal, Mapping, Optional, Sequence, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from .logging import SecurityEventType, SecurityLogger, get_security_logger
from .models import AccessCheckResult, CheckResult, parse_rules


IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def _load_zone(name: str) -> Optional[ZoneInfo]:
    # Directory names in the tz database such as "Asia" raise IsADirectoryError
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return None


class RestrictionType(str, Enum):
    """Capabilities a restriction can gate on."""
    IP = "IP"
    GEO = "GEO"
    TIME = "TIME"
    DEVICE = "DEVICE"


# =============================================================================
# Restriction configs (tagged union)
# =============================================================================

class IpRestrictionConfig(BaseModel):
    type: Literal["IP"] = "IP"
    allowed_ips: List[str] = Field(default_factory=list)
    blocked_ips: List[str] = Field(default_factory=list)
    allowed_cidrs: List[str] = Field(default_factory=list)


class GeoRestrictionConfig(BaseModel):
    type: Literal["GEO"] = "GEO"
    allowed_countries: List[str] = Field(default_factory=list)
    blocked_countries: List[str] = Field(default_factory=list)
    allowed_states: List[str] = Field(default_factory=list)


class AllowedHours(BaseModel):
    """Half-open local hour window ``[start, end)``."""
    start: int = Field(..., ge=0, le=24)
    end: int = Field(..., ge=0, le=24)


class TimeRestrictionConfig(BaseModel):
    type: Literal["TIME"] = "TIME"
    allowed_days: List[int] = Field(..., description="0 = Sunday ... 6 = Saturday")
    allowed_hours: AllowedHours
    timezone: str = "UTC"

    @field_validator("allowed_days")
    @classmethod
    def validate_days(cls, v):
        for day in v:
            if not 0 <= day <= 6:
                raise ValueError(f"Invalid weekday {day}; expected 0 (Sunday) to 6 (Saturday)")
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        if _load_zone(v) is None:
            raise ValueError(f"Unknown timezone: {v}")
        return v


class DeviceRestrictionConfig(BaseModel):
    type: Literal["DEVICE"] = "DEVICE"
    allowed_device_types: List[str] = Field(default_factory=list)
    require_trusted_device: bool = False


RestrictionConfig = Annotated[
    Union[IpRestrictionConfig, GeoRestrictionConfig, TimeRestrictionConfig, DeviceRestrictionConfig],
    Field(discriminator="type"),
]


class AccessRestriction(BaseModel):
    """A contextual gate scoped to a firm and optionally to one user."""

    firm_id: Optional[str] = None
    user_id: Optional[str] = None
    restriction_type: RestrictionType
    config: Optional[RestrictionConfig] = None


class RestrictionContext(BaseModel):
    """Request-time facts the restrictions are evaluated against."""

    ip: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    device_type: Optional[str] = None
    trusted_device: Optional[bool] = None
    current_time: Optional[datetime] = None


def load_restrictions(records: Iterable[Union[AccessRestriction, Mapping]]) -> List[AccessRestriction]:
    """Validate restriction rows loaded from storage."""
    return parse_rules(AccessRestriction, records, "access_restriction")


# =============================================================================
# Evaluator
# =============================================================================

class AccessRestrictionEvaluator:
    """
    Validates request origin, geography, time of day and device against
    restriction rules.

    When the context lacks the input a restriction needs, the restriction is
    skipped and reported in ``skipped_restrictions``. With
    ``strict_context=True`` it is reported as a violation instead.
    """

    def __init__(
        self,
        strict_context: bool = False,
        logger: Optional[SecurityLogger] = None
    ):
        self.strict_context = strict_context
        self.logger = logger or get_security_logger()

    # ------------------------------------------------------------------
    # IP
    # ------------------------------------------------------------------

    def check_ip_restriction(self, config: IpRestrictionConfig, client_ip: str) -> CheckResult:
        """Blocklist, then allowlist, then CIDR ranges."""
        address = self._parse_ip(client_ip)

        if self._ip_in_list(client_ip, address, config.blocked_ips):
            return CheckResult.deny("IP address is blocked")

        if config.allowed_ips and not self._ip_in_list(client_ip, address, config.allowed_ips):
            return CheckResult.deny("IP address not in allowed list")

        if config.allowed_cidrs:
            in_range = address is not None and any(
                self._ip_in_cidr(address, cidr) for cidr in config.allowed_cidrs
            )
            if not in_range:
                return CheckResult.deny("IP address not in allowed range")

        return CheckResult.allow()

    @staticmethod
    def _parse_ip(value: str) -> Optional[IPAddress]:
        try:
            return ipaddress.ip_address(value.strip())
        except (ValueError, AttributeError):
            return None

    def _ip_in_list(self, raw: str, address: Optional[IPAddress], entries: Sequence[str]) -> bool:
        for entry in entries:
            if entry == raw:
                return True
            if address is not None and self._parse_ip(entry) == address:
                return True
        return False

    def _ip_in_cidr(self, address: IPAddress, cidr: str) -> bool:
        try:
            network = ipaddress.ip_network(cidr.strip(), strict=False)
        except (ValueError, AttributeError):
            self.logger.log_malformed_rule("IP", f"unparsable CIDR {cidr!r}", source="access_restrictions")
            return False
        if network.version != address.version:
            return False
        return address in network

    # ------------------------------------------------------------------
    # GEO
    # ------------------------------------------------------------------

    def check_geo_restriction(
        self,
        config: GeoRestrictionConfig,
        country: str,
        state: Optional[str] = None
    ) -> CheckResult:
        """Blocked countries, then allowed countries, then allowed states."""
        if country in config.blocked_countries:
            return CheckResult.deny("Access from this country is blocked")

        if config.allowed_countries and country not in config.allowed_countries:
            return CheckResult.deny("Access not allowed from this country")

        if state and config.allowed_states and state not in config.allowed_states:
            return CheckResult.deny("Access not allowed from this state")

        return CheckResult.allow()

    # ------------------------------------------------------------------
    # TIME
    # ------------------------------------------------------------------

    def check_time_restriction(
        self,
        config: TimeRestrictionConfig,
        now: Optional[datetime] = None
    ) -> CheckResult:
        """
        Check the local weekday and hour in the configured timezone.

        The conversion goes through the tz database so DST transitions are
        honoured. Naive datetimes are taken as UTC.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        tz = _load_zone(config.timezone)
        if tz is None:
            self.logger.log_malformed_rule(
                "TIME", f"unknown timezone {config.timezone!r}", source="access_restrictions"
            )
            return CheckResult.deny(f"Invalid timezone configured: {config.timezone}")

        local = now.astimezone(tz)
        day = local.isoweekday() % 7

        if day not in config.allowed_days:
            return CheckResult.deny("Access not allowed on this day")

        start, end = config.allowed_hours.start, config.allowed_hours.end
        if local.hour < start or local.hour >= end:
            return CheckResult.deny(f"Access only allowed between {start}:00 and {end}:00")

        return CheckResult.allow()

    # ------------------------------------------------------------------
    # DEVICE
    # ------------------------------------------------------------------

    def check_device_restriction(
        self,
        config: DeviceRestrictionConfig,
        device_type: Optional[str],
        trusted_device: bool = False
    ) -> CheckResult:
        """Allowed device types (case-insensitive), then trusted-device requirement."""
        if config.allowed_device_types:
            allowed = {d.lower() for d in config.allowed_device_types}
            if device_type is None or device_type.lower() not in allowed:
                return CheckResult.deny("Device type not allowed")

        if config.require_trusted_device and not trusted_device:
            return CheckResult.deny("Access requires a trusted device")

        return CheckResult.allow()

    # ------------------------------------------------------------------
    # Aggregate
    # ------------------------------------------------------------------

    @staticmethod
    def applicable_restrictions(
        restrictions: Iterable[AccessRestriction],
        user_id: Optional[str] = None
    ) -> List[AccessRestriction]:
        """Firm-wide restrictions plus those scoped to ``user_id``."""
        return [r for r in restrictions if r.user_id is None or r.user_id == user_id]

    def check_all_restrictions(
        self,
        restrictions: Iterable[AccessRestriction],
        context: Union[RestrictionContext, Mapping]
    ) -> AccessCheckResult:
        """Evaluate every restriction independently and aggregate the violations."""
        if not isinstance(context, RestrictionContext):
            context = RestrictionContext.model_validate(context)

        violations: List[str] = []
        skipped: List[str] = []

        for restriction in restrictions:
            restriction_type = restriction.restriction_type
            config = restriction.config

            if config is None:
                self._record_malformed(restriction_type, "restriction has no configuration", violations)
                continue
            if config.type != restriction_type.value:
                self._record_malformed(
                    restriction_type,
                    f"configuration type {config.type} does not match restriction type",
                    violations
                )
                continue

            result = self._evaluate(restriction_type, config, context)
            if result is None:
                if self.strict_context:
                    reason = f"{restriction_type.value} restriction requires context that was not provided"
                    violations.append(reason)
                    self.logger.log_restriction_event(restriction_type.value, [reason], firm_id=restriction.firm_id)
                else:
                    skipped.append(restriction_type.value)
                    self.logger.log_restriction_event(
                        restriction_type.value,
                        [],
                        event_type=SecurityEventType.RESTRICTION_SKIPPED,
                        firm_id=restriction.firm_id,
                        details={"reason": "context missing required field"}
                    )
                continue

            if not result.allowed:
                violations.append(result.reason or f"{restriction_type.value} restriction violated")
                self.logger.log_restriction_event(
                    restriction_type.value,
                    [violations[-1]],
                    firm_id=restriction.firm_id,
                    user_id=restriction.user_id,
                    ip_address=context.ip
                )

        return AccessCheckResult(
            allowed=not violations,
            restriction_violations=violations or None,
            skipped_restrictions=skipped or None
        )

    def _evaluate(
        self,
        restriction_type: RestrictionType,
        config: RestrictionConfig,
        context: RestrictionContext
    ) -> Optional[CheckResult]:
        """Run one restriction; None means the context lacked its input."""
        if restriction_type == RestrictionType.IP:
            if not context.ip:
                return None
            return self.check_ip_restriction(config, context.ip)

        if restriction_type == RestrictionType.GEO:
            if not context.country:
                return None
            return self.check_geo_restriction(config, context.country, context.state)

        if restriction_type == RestrictionType.TIME:
            return self.check_time_restriction(config, context.current_time)

        if restriction_type == RestrictionType.DEVICE:
            if context.device_type is None and context.trusted_device is None:
                return None
            return self.check_device_restriction(config, context.device_type, bool(context.trusted_device))

        return CheckResult.deny(f"Unsupported restriction type: {restriction_type}")

    def _record_malformed(self, restriction_type: RestrictionType, description: str, violations: List[str]) -> None:
        violations.append(f"Invalid {restriction_type.value} restriction: {description}")
        self.logger.log_malformed_rule(restriction_type.value, description, source="access_restrictions")
