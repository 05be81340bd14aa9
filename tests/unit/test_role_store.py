"""Unit tests for role permission stores."""

import json

import pytest

from access_control_sdk.security.exceptions import RoleStoreError
from access_control_sdk.security.permissions import Permission, PermissionAction
from access_control_sdk.security.role_store import (
    DEFAULT_ROLES_FILE,
    FileRolePermissionStore,
    InMemoryRolePermissionStore,
    load_default_role_store,
)


class TestInMemoryRolePermissionStore:
    """Test the mapping-backed store."""

    def test_accepts_models_and_dicts(self):
        store = InMemoryRolePermissionStore({
            "A": [Permission(resource="clients", action=PermissionAction.READ)],
            "B": [{"resource": "tasks", "action": "UPDATE"}],
        })

        assert store.list_roles() == ["A", "B"]
        assert store.get_role_permissions("B")[0].key == "tasks:UPDATE"

    def test_unknown_role(self):
        store = InMemoryRolePermissionStore()
        assert store.get_role_permissions("GHOST") == []
        assert store.role_hierarchy == ()

    def test_returns_copies(self):
        store = InMemoryRolePermissionStore({"A": [{"resource": "clients", "action": "READ"}]})
        store.get_role_permissions("A").clear()
        assert len(store.get_role_permissions("A")) == 1


class TestFileRolePermissionStore:
    """Test loading role templates from files."""

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "roles.yaml"
        path.write_text(
            "hierarchy: [OWNER, STAFF]\n"
            "roles:\n"
            "  OWNER:\n"
            "    - {resource: '*', action: ADMIN}\n"
            "  STAFF:\n"
            "    - resource: clients\n"
            "      action: READ\n"
            "      conditions:\n"
            "        - {field: firm_id, operator: EQUALS, value: f1}\n"
        )

        store = FileRolePermissionStore(path)

        assert store.role_hierarchy == ("OWNER", "STAFF")
        staff = store.get_role_permissions("STAFF")
        assert staff[0].conditions[0].value == "f1"

    def test_load_json(self, tmp_path):
        path = tmp_path / "roles.json"
        path.write_text(json.dumps({"roles": {"STAFF": [{"resource": "tasks", "action": "READ"}]}}))

        store = FileRolePermissionStore(path)

        assert store.list_roles() == ["STAFF"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(RoleStoreError) as exc_info:
            FileRolePermissionStore(tmp_path / "nope.yaml")
        assert exc_info.value.details["source"].endswith("nope.yaml")

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "roles.txt"
        path.write_text("roles: {}")
        with pytest.raises(RoleStoreError):
            FileRolePermissionStore(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "roles.yaml"
        path.write_text("roles: [unclosed")
        with pytest.raises(RoleStoreError):
            FileRolePermissionStore(path)

    def test_invalid_permission_entry(self, tmp_path):
        path = tmp_path / "roles.yaml"
        path.write_text("roles:\n  STAFF:\n    - {resource: clients, action: FLY}\n")
        with pytest.raises(RoleStoreError) as exc_info:
            FileRolePermissionStore(path)
        assert exc_info.value.cause is not None

    def test_roles_must_be_mapping(self, tmp_path):
        path = tmp_path / "roles.yaml"
        path.write_text("roles: [a, b]\n")
        with pytest.raises(RoleStoreError):
            FileRolePermissionStore(path)


class TestDefaultRoles:
    """Test the bundled role templates."""

    def test_bundled_file_exists(self):
        assert DEFAULT_ROLES_FILE.exists()

    def test_templates(self):
        store = load_default_role_store()

        assert store.role_hierarchy[0] == "SUPER_ADMIN"
        assert store.role_hierarchy[-1] == "TRAINEE"
        for role in ["ADMIN", "PARTNER", "SALES", "FINANCE_MANAGER", "DELIVERY_MANAGER"]:
            assert store.get_role_permissions(role)
        assert [p.key for p in store.get_role_permissions("SUPER_ADMIN")] == ["*:ADMIN"]
