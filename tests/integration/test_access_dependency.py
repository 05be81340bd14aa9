"""Integration tests for the FastAPI access dependency."""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from access_control_sdk.security.engine import AccessControlEngine, AccessDecision
from access_control_sdk.security.logging import SecurityLogger
from access_control_sdk.security.middleware import (
    SESSION_REFRESH_HEADER,
    create_access_dependency,
    extract_request_context,
    get_access_decision,
)
from access_control_sdk.security.permissions import PermissionAction
from access_control_sdk.security.restrictions import (
    AccessRestriction,
    DeviceRestrictionConfig,
    GeoRestrictionConfig,
    RestrictionType,
)
from access_control_sdk.security.role_store import load_default_role_store


class TestAccessDependency:
    """Test cases for the access dependency."""

    @pytest.fixture
    def engine(self):
        logger = SecurityLogger(logger_name="access_control.tests.integration")
        return AccessControlEngine(load_default_role_store(), logger=logger)

    @pytest.fixture
    def restrictions(self):
        return [
            AccessRestriction(
                firm_id="f1",
                restriction_type=RestrictionType.GEO,
                config=GeoRestrictionConfig(allowed_countries=["IN"]),
            ),
            AccessRestriction(
                firm_id="f1",
                user_id="mobile-blocked",
                restriction_type=RestrictionType.DEVICE,
                config=DeviceRestrictionConfig(allowed_device_types=["desktop"]),
            ),
        ]

    @pytest.fixture
    def test_app(self, engine, restrictions):
        """Create test FastAPI app with a fake authentication layer."""
        app = FastAPI()

        @app.middleware("http")
        async def fake_auth(request: Request, call_next):
            role = request.headers.get("X-Test-Role")
            if role:
                request.state.user = {
                    "user_id": request.headers.get("X-Test-User", "u1"),
                    "firm_id": "f1",
                    "role": role,
                    "overrides": [
                        {"permission": p, "granted": True}
                        for p in filter(None, request.headers.get("X-Test-Grant", "").split(","))
                    ],
                }
            malformed = request.headers.get("X-Test-Malformed")
            if role and malformed == "groups":
                request.state.user["groups"] = ["not-a-group"]
            if malformed == "session":
                request.state.session_policy = {"idle_timeout": 30}
                request.state.session = {"created_at": "yesterday"}
            idle = request.headers.get("X-Test-Idle-Minutes")
            if idle is not None:
                now = datetime.now(timezone.utc)
                request.state.session_policy = {"idle_timeout": 30}
                request.state.session = {
                    "created_at": now - timedelta(minutes=60),
                    "last_activity_at": now - timedelta(minutes=float(idle)),
                }
            return await call_next(request)

        read_documents = create_access_dependency(
            engine,
            "documents",
            PermissionAction.READ,
            restrictions_provider=lambda request: restrictions,
        )
        delete_documents = create_access_dependency(engine, "documents", PermissionAction.DELETE)

        @app.get("/documents")
        async def list_documents(decision: AccessDecision = Depends(read_documents)):
            return {"allowed": decision.allowed, "permissions": len(decision.effective_permissions)}

        @app.delete("/documents/{doc_id}")
        async def delete_document(doc_id: str, request: Request, _=Depends(delete_documents)):
            return {"deleted": doc_id, "allowed": get_access_decision(request).allowed}

        @app.get("/context")
        async def context(request: Request):
            return extract_request_context(request, trust_forwarded_for=True).model_dump(mode="json")

        return app

    @pytest.fixture
    def client(self, test_app):
        return TestClient(test_app)

    def test_unauthenticated(self, client):
        response = client.get("/documents")
        assert response.status_code == 401
        assert response.json()["detail"] == "Authentication required"

    def test_allowed(self, client):
        response = client.get("/documents", headers={"X-Test-Role": "TRAINEE", "X-Country": "IN"})
        assert response.status_code == 200
        assert response.json()["allowed"] is True

    def test_missing_permission(self, client):
        response = client.delete("/documents/42", headers={"X-Test-Role": "TRAINEE"})
        assert response.status_code == 403
        assert response.json()["detail"]["reasons"] == ["Missing permission: documents:DELETE"]

    def test_override_grants(self, client):
        response = client.delete(
            "/documents/42",
            headers={"X-Test-Role": "TRAINEE", "X-Test-Grant": "documents:DELETE"},
        )
        assert response.status_code == 200
        assert response.json() == {"deleted": "42", "allowed": True}

    def test_geo_restriction(self, client):
        response = client.get("/documents", headers={"X-Test-Role": "PARTNER", "X-Country": "US"})
        assert response.status_code == 403
        assert "Access not allowed from this country" in response.json()["detail"]["reasons"]

    def test_geo_restriction_skipped_without_header(self, client):
        response = client.get("/documents", headers={"X-Test-Role": "PARTNER"})
        assert response.status_code == 200

    def test_user_scoped_device_restriction(self, client):
        headers = {
            "X-Test-Role": "PARTNER",
            "X-Test-User": "mobile-blocked",
            "X-Country": "IN",
            "X-Device-Type": "mobile",
        }
        assert client.get("/documents", headers=headers).status_code == 403

        headers["X-Test-User"] = "someone-else"
        assert client.get("/documents", headers=headers).status_code == 200

    def test_idle_session_rejected(self, client):
        response = client.get(
            "/documents",
            headers={"X-Test-Role": "PARTNER", "X-Country": "IN", "X-Test-Idle-Minutes": "45"},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Session has timed out due to inactivity"

    def test_malformed_groups_rejected(self, client):
        response = client.get(
            "/documents",
            headers={"X-Test-Role": "PARTNER", "X-Country": "IN", "X-Test-Malformed": "groups"},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid user information"

    def test_malformed_session_rejected(self, client):
        response = client.get(
            "/documents",
            headers={"X-Test-Role": "PARTNER", "X-Country": "IN", "X-Test-Malformed": "session"},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid session"

    def test_session_refresh_header(self, client):
        response = client.get(
            "/documents",
            headers={"X-Test-Role": "PARTNER", "X-Country": "IN", "X-Test-Idle-Minutes": "27"},
        )
        assert response.status_code == 200
        assert response.headers[SESSION_REFRESH_HEADER] == "true"

    def test_request_context_extraction(self, client):
        response = client.get(
            "/context",
            headers={
                "X-Forwarded-For": "203.0.113.9, 10.0.0.1",
                "X-Country": "IN",
                "X-Region": "MH",
                "X-Device-Type": "desktop",
                "X-Trusted-Device": "true",
            },
        )
        assert response.json() == {
            "ip": "203.0.113.9",
            "country": "IN",
            "state": "MH",
            "device_type": "desktop",
            "trusted_device": True,
            "current_time": None,
        }
