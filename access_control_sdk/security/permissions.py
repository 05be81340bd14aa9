# -*- coding: utf-8 -*-
"""
Permission resolution for the Access Control SDK.

This module provides:
- Permission, condition, group and override models
- Effective permission set computation (role ⊕ groups ⊕ overrides)
- Point-in-time permission checks with attribute conditions
- Role seniority helpers backed by the role permission store

Conditions are evaluated against an explicit ``Mapping[str, ContextValue]``
with a closed set of operators. Malformed conditions never match.
"""

from __future__ import annotations

import operator
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field, field_validator

from .logging import SecurityLogger, get_security_logger
from .models import ContextValue

if TYPE_CHECKING:
    from .role_store import RolePermissionStore


# =============================================================================
# Enums
# =============================================================================

class PermissionAction(str, Enum):
    """Actions a permission can grant."""
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    EXPORT = "EXPORT"
    APPROVE = "APPROVE"
    ADMIN = "ADMIN"


class ConditionOperator(str, Enum):
    """Comparison operators for permission conditions."""
    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    IN = "IN"
    NOT_IN = "NOT_IN"
    CONTAINS = "CONTAINS"


WILDCARD_RESOURCE = "*"

_COLLECTION_TYPES = (list, tuple, set, frozenset)


def _same_value(actual: Any, expected: Any) -> bool:
    # Booleans never equal numbers: True matches only True
    if isinstance(actual, bool) or isinstance(expected, bool):
        return type(actual) is type(expected) and actual == expected
    return operator.eq(actual, expected)


def _contains_value(collection: Any, value: Any) -> bool:
    return any(_same_value(item, value) for item in collection)


# =============================================================================
# Models
# =============================================================================

class PermissionCondition(BaseModel):
    """
    Attribute condition attached to a permission.

    ``operator`` keeps unknown operator names as plain strings so rule data
    can always be loaded; only ``ConditionOperator`` members can match.
    """

    field: str = Field(..., description="Context key to compare")
    operator: Union[ConditionOperator, str] = Field(..., description="Comparison operator")
    value: Any = Field(default=None, description="Expected value")

    @field_validator("operator", mode="before")
    @classmethod
    def normalize_operator(cls, v):
        if isinstance(v, str):
            try:
                return ConditionOperator(v.strip().upper())
            except ValueError:
                return v
        return v


class Permission(BaseModel):
    """A (resource, action, conditions) triple granting a capability."""

    resource: str = Field(..., description="Resource name or '*'")
    action: PermissionAction = Field(..., description="Granted action")
    conditions: List[PermissionCondition] = Field(default_factory=list)

    @field_validator("resource")
    @classmethod
    def validate_resource(cls, v):
        if not v or not v.strip():
            raise ValueError("Resource cannot be empty")
        return v.strip()

    @property
    def key(self) -> str:
        return permission_key(self.resource, self.action)

    def matches_resource(self, resource: str) -> bool:
        return self.resource == resource or self.resource == WILDCARD_RESOURCE

    def matches_action(self, action: PermissionAction) -> bool:
        return self.action == action or self.action == PermissionAction.ADMIN

    def __str__(self) -> str:
        return self.key


class PermissionOverride(BaseModel):
    """Per-user grant or revoke keyed by ``"resource:action"``."""

    permission: str = Field(..., description="Permission key, e.g. 'clients:DELETE'")
    granted: bool = Field(..., description="True grants, False revokes")


class PermissionGroup(BaseModel):
    """A named, reusable bundle of permissions assignable on top of a role."""

    firm_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    permissions: List[Permission] = Field(default_factory=list)


def permission_key(resource: str, action: Union[PermissionAction, str]) -> str:
    """Build the ``"resource:action"`` key used to merge permission sources."""
    action_value = action.value if isinstance(action, PermissionAction) else str(action)
    return f"{resource}:{action_value}"


def parse_permission_key(key: str) -> Optional[Tuple[str, PermissionAction]]:
    """Split a ``"resource:action"`` key. Returns None when it is malformed."""
    parts = key.split(":")
    if len(parts) != 2:
        return None
    resource, action = parts[0].strip(), parts[1].strip().upper()
    if not resource:
        return None
    try:
        return resource, PermissionAction(action)
    except ValueError:
        return None


# =============================================================================
# Permission Resolver
# =============================================================================

class PermissionResolver:
    """
    Computes effective permission sets and answers permission queries.

    The role baseline comes from an injected ``RolePermissionStore`` so that
    tenants can change role templates without a code change.
    """

    _SIMPLE_OPERATORS = {
        ConditionOperator.EQUALS: _same_value,
        ConditionOperator.NOT_EQUALS: lambda actual, expected: not _same_value(actual, expected),
    }

    def __init__(
        self,
        role_store: RolePermissionStore,
        logger: Optional[SecurityLogger] = None
    ):
        self.role_store = role_store
        self.logger = logger or get_security_logger()

    # ------------------------------------------------------------------
    # Role baseline
    # ------------------------------------------------------------------

    def get_role_permissions(self, role: str) -> List[Permission]:
        """Return the baseline permissions of a role, or ``[]`` if unknown."""
        return list(self.role_store.get_role_permissions(role))

    def get_role_level(self, role: str) -> int:
        """
        Seniority index of a role (0 is the most senior).

        Roles outside the hierarchy rank below every hierarchical role.
        """
        hierarchy = list(self.role_store.role_hierarchy)
        try:
            return hierarchy.index(role)
        except ValueError:
            return len(hierarchy)

    def is_role_at_least(self, role: str, required_role: str) -> bool:
        """Check if ``role`` is as senior as ``required_role`` or more."""
        return self.get_role_level(role) <= self.get_role_level(required_role)

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def has_permission(
        self,
        permissions: Sequence[Permission],
        resource: str,
        action: Union[PermissionAction, str],
        context: Optional[Mapping[str, ContextValue]] = None
    ) -> bool:
        """
        Check whether ``permissions`` allow ``action`` on ``resource``.

        The first permission matching resource, action and all of its
        conditions grants access. Conditions never hold without a context.
        """
        if not isinstance(action, PermissionAction):
            try:
                action = PermissionAction(str(action).upper())
            except ValueError:
                return False

        for permission in permissions:
            if not permission.matches_resource(resource):
                continue
            if not permission.matches_action(action):
                continue
            if permission.conditions and not self.evaluate_conditions(permission.conditions, context):
                continue
            return True

        return False

    def missing_permissions(
        self,
        permissions: Sequence[Permission],
        required: Iterable[Tuple[str, Union[PermissionAction, str]]],
        context: Optional[Mapping[str, ContextValue]] = None
    ) -> List[str]:
        """Return the ``"resource:action"`` keys in ``required`` that are not granted."""
        return [
            permission_key(resource, action)
            for resource, action in required
            if not self.has_permission(permissions, resource, action, context)
        ]

    def evaluate_conditions(
        self,
        conditions: Sequence[PermissionCondition],
        context: Optional[Mapping[str, ContextValue]]
    ) -> bool:
        """All conditions must hold (AND). A missing context fails."""
        if context is None:
            return False
        return all(self._evaluate_condition(condition, context) for condition in conditions)

    def _evaluate_condition(
        self,
        condition: PermissionCondition,
        context: Mapping[str, ContextValue]
    ) -> bool:
        op = condition.operator
        if not isinstance(op, ConditionOperator):
            self.logger.log_malformed_rule(
                "permission_condition",
                f"unknown operator {op!r} on field {condition.field!r}",
                source="permission_resolver"
            )
            return False

        if condition.field not in context:
            return False

        actual = context[condition.field]
        expected = condition.value

        try:
            if op in self._SIMPLE_OPERATORS:
                return bool(self._SIMPLE_OPERATORS[op](actual, expected))
            if op == ConditionOperator.IN:
                return isinstance(expected, _COLLECTION_TYPES) and _contains_value(expected, actual)
            if op == ConditionOperator.NOT_IN:
                return isinstance(expected, _COLLECTION_TYPES) and not _contains_value(expected, actual)
            if op == ConditionOperator.CONTAINS:
                if actual is None:
                    return False
                if isinstance(actual, _COLLECTION_TYPES):
                    return _contains_value(actual, expected)
                return str(expected) in str(actual)
        except TypeError:
            return False

        return False

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def merge_permissions(
        self,
        role_permissions: Iterable[Permission],
        group_permissions: Iterable[Permission],
        overrides: Iterable[PermissionOverride]
    ) -> List[Permission]:
        """
        Merge role, group and override sources keyed by ``"resource:action"``.

        Group entries overwrite role entries. Overrides apply in order: a
        grant inserts a bare permission, a revoke removes the key even when
        a role or group granted it.
        """
        permission_set: Dict[str, Permission] = {}

        for permission in role_permissions:
            permission_set[permission.key] = permission

        for permission in group_permissions:
            permission_set[permission.key] = permission

        for override in overrides:
            parsed = parse_permission_key(override.permission)

            if override.granted:
                if parsed is None:
                    self.logger.log_malformed_rule(
                        "permission_override",
                        f"cannot grant malformed permission key {override.permission!r}",
                        source="permission_resolver"
                    )
                    continue
                resource, action = parsed
                key = permission_key(resource, action)
                permission_set[key] = Permission(resource=resource, action=action)
            else:
                key = permission_key(*parsed) if parsed else override.permission
                permission_set.pop(key, None)

        return list(permission_set.values())

    def resolve_effective_permissions(
        self,
        role: str,
        groups: Iterable[PermissionGroup] = (),
        overrides: Iterable[PermissionOverride] = ()
    ) -> List[Permission]:
        """Effective permission set of a principal: role ⊕ groups ⊕ overrides."""
        group_permissions = [
            permission
            for group in groups
            for permission in group.permissions
        ]
        return self.merge_permissions(
            self.get_role_permissions(role),
            group_permissions,
            overrides
        )
