"""
Role permission stores.

Role baselines are data, not code: the resolver asks an injected
``RolePermissionStore`` for the permissions of a role. Stores are read-only
for the duration of an evaluation; caching and invalidation belong to the
caller.
"""
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import yaml
from pydantic import ValidationError as PydanticValidationError

from .exceptions import RoleStoreError
from .permissions import Permission


DEFAULT_ROLES_FILE = Path(__file__).parent / "data" / "default_roles.yaml"


class RolePermissionStore(ABC):
    """Abstract source of role baseline permissions."""

    @abstractmethod
    def get_role_permissions(self, role: str) -> List[Permission]:
        """Get the baseline permissions of a role ([] when unknown)."""
        pass

    @abstractmethod
    def list_roles(self) -> List[str]:
        """List the roles known to this store."""
        pass

    @property
    def role_hierarchy(self) -> Sequence[str]:
        """Hierarchical roles ordered from most to least senior."""
        return ()


class InMemoryRolePermissionStore(RolePermissionStore):
    """Role store backed by a mapping, for tests and programmatic setup."""

    def __init__(
        self,
        role_permissions: Optional[Mapping[str, Iterable[Union[Permission, Dict[str, Any]]]]] = None,
        role_hierarchy: Iterable[str] = ()
    ):
        self._roles: Dict[str, List[Permission]] = {}
        self._hierarchy = tuple(role_hierarchy)
        for role, permissions in (role_permissions or {}).items():
            self._roles[role] = [
                p if isinstance(p, Permission) else Permission.model_validate(p)
                for p in permissions
            ]

    def get_role_permissions(self, role: str) -> List[Permission]:
        return list(self._roles.get(role, []))

    def list_roles(self) -> List[str]:
        return list(self._roles)

    @property
    def role_hierarchy(self) -> Sequence[str]:
        return self._hierarchy


class FileRolePermissionStore(InMemoryRolePermissionStore):
    """
    Role store loaded from a YAML or JSON document.

    Expected layout::

        hierarchy: [SUPER_ADMIN, ADMIN, ...]
        roles:
          ADMIN:
            - {resource: clients, action: ADMIN}
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        data = self._read(self.path)

        roles = data.get("roles") or {}
        if not isinstance(roles, dict):
            raise RoleStoreError("'roles' must be a mapping of role name to permissions", source=str(self.path))

        try:
            super().__init__(roles, data.get("hierarchy") or ())
        except PydanticValidationError as e:
            raise RoleStoreError(
                f"Invalid permission entry in {self.path}: {e}",
                source=str(self.path),
                cause=e
            )

    @staticmethod
    def _read(path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise RoleStoreError(f"Role permissions file not found: {path}", source=str(path))

        try:
            with open(path, 'r', encoding='utf-8') as f:
                if path.suffix.lower() in ['.yaml', '.yml']:
                    data = yaml.safe_load(f)
                elif path.suffix.lower() == '.json':
                    data = json.load(f)
                else:
                    raise RoleStoreError(f"Unsupported role file format: {path.suffix}", source=str(path))
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise RoleStoreError(f"Failed to load role permissions from {path}: {e}", source=str(path), cause=e)

        if not isinstance(data, dict):
            raise RoleStoreError(f"Role permissions file must contain a mapping: {path}", source=str(path))
        return data


def load_default_role_store() -> FileRolePermissionStore:
    """Load the role templates bundled with the SDK."""
    return FileRolePermissionStore(DEFAULT_ROLES_FILE)
