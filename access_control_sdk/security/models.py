"""
Shared decision models for the access-control evaluators.

Every evaluator reports its outcome with one of these result objects
instead of raising, so a caller cannot fail open through an uncaught
exception. Rule tables are validated once, when they are loaded.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Type, TypeVar, Union

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from .exceptions import RuleDataError


# Values a condition context may carry.
ContextValue = Union[str, int, float, bool, None, Sequence[str]]

RuleModel = TypeVar("RuleModel", bound=BaseModel)


class CheckResult(BaseModel):
    """Outcome of a single restriction or limit check."""

    allowed: bool = Field(..., description="Whether the check passed")
    reason: Optional[str] = Field(default=None, description="Human-readable denial reason")

    @classmethod
    def allow(cls) -> "CheckResult":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> "CheckResult":
        return cls(allowed=False, reason=reason)


class AccessCheckResult(BaseModel):
    """Aggregated outcome of a gate that can produce several reasons."""

    allowed: bool
    reason: Optional[str] = None
    missing_permissions: Optional[List[str]] = None
    restriction_violations: Optional[List[str]] = None
    skipped_restrictions: Optional[List[str]] = Field(
        default=None,
        description="Restriction types not evaluated because the context lacked their input",
    )

    @property
    def reasons(self) -> List[str]:
        """All human-readable reasons carried by this result."""
        reasons: List[str] = []
        if self.reason:
            reasons.append(self.reason)
        if self.restriction_violations:
            reasons.extend(self.restriction_violations)
        return reasons


def parse_rules(model: Type[RuleModel], records: Iterable[Any], rule_type: str) -> List[RuleModel]:
    """
    Validate raw rule records loaded from storage.

    Raises ``RuleDataError`` listing every invalid record, so a bad rule
    table is rejected at load time instead of being half-applied.
    """
    rules: List[RuleModel] = []
    errors: List[Dict[str, Any]] = []
    for index, record in enumerate(records):
        if isinstance(record, model):
            rules.append(record)
            continue
        try:
            rules.append(model.model_validate(record))
        except PydanticValidationError as e:
            errors.append({"index": index, "errors": e.errors(include_url=False)})

    if errors:
        raise RuleDataError(
            f"{len(errors)} invalid {rule_type} rule(s)",
            rule_type=rule_type,
            validation_errors=errors
        )
    return rules
