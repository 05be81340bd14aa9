"""
FastAPI integration for the access control engine.

The dependency expects an upstream authentication layer to have stored the
principal on ``request.state.user`` as a mapping with at least ``role``
(and usually ``user_id``, ``firm_id``, ``groups`` and ``overrides``).
Optionally ``request.state.session`` and ``request.state.session_policy``
enable the session gate.
"""
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from fastapi import HTTPException, Request, Response
from pydantic import ValidationError as PydanticValidationError

from .engine import AccessControlEngine, AccessDecision
from .models import ContextValue
from .permissions import PermissionAction, PermissionGroup, PermissionOverride
from .restrictions import AccessRestriction, RestrictionContext
from .sessions import Session, SessionPolicy


COUNTRY_HEADER = "X-Country"
REGION_HEADER = "X-Region"
DEVICE_TYPE_HEADER = "X-Device-Type"
TRUSTED_DEVICE_HEADER = "X-Trusted-Device"
SESSION_REFRESH_HEADER = "X-Session-Refresh"

RestrictionsProvider = Callable[[Request], List[AccessRestriction]]
ConditionContextExtractor = Callable[[Request], Mapping[str, ContextValue]]


def _parse_bool_header(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    return value.strip().lower() in ("true", "1", "yes", "on")


def extract_request_context(request: Request, trust_forwarded_for: bool = False) -> RestrictionContext:
    """
    Build a restriction context from the request.

    The client address comes from the socket unless ``trust_forwarded_for``
    is set, in which case the first ``X-Forwarded-For`` hop is used. Geo and
    device facts come from headers set by the edge proxy.
    """
    ip = request.client.host if request.client else None
    if trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            ip = forwarded.split(",")[0].strip() or ip

    return RestrictionContext(
        ip=ip,
        country=request.headers.get(COUNTRY_HEADER),
        state=request.headers.get(REGION_HEADER),
        device_type=request.headers.get(DEVICE_TYPE_HEADER),
        trusted_device=_parse_bool_header(request.headers.get(TRUSTED_DEVICE_HEADER))
    )


def _as_model(value: Any, model):
    if value is None or isinstance(value, model):
        return value
    return model.model_validate(value)


def create_access_dependency(
    engine: AccessControlEngine,
    resource: str,
    action: Union[PermissionAction, str],
    restrictions_provider: Optional[RestrictionsProvider] = None,
    condition_context_extractor: Optional[ConditionContextExtractor] = None,
    trust_forwarded_for: bool = False
):
    """
    Create a FastAPI dependency enforcing ``action`` on ``resource``.

    Args:
        engine: Access control engine instance
        resource: Resource the endpoint operates on
        action: Action required on the resource
        restrictions_provider: Returns the restrictions that apply to the request
        condition_context_extractor: Returns attribute context for permission conditions
        trust_forwarded_for: Take the client IP from ``X-Forwarded-For``

    Returns:
        FastAPI dependency function returning the ``AccessDecision``
    """
    async def access_dependency(request: Request, response: Response) -> AccessDecision:
        """FastAPI dependency that authorizes the current principal."""
        user_info = getattr(request.state, "user", None)

        if not user_info or not isinstance(user_info, Mapping):
            raise HTTPException(
                status_code=401,
                detail="Authentication required"
            )

        role = user_info.get("role")
        if not role:
            raise HTTPException(
                status_code=401,
                detail="Invalid user information"
            )

        try:
            groups = [_as_model(g, PermissionGroup) for g in user_info.get("groups") or []]
            overrides = [_as_model(o, PermissionOverride) for o in user_info.get("overrides") or []]
        except (PydanticValidationError, TypeError):
            engine.logger.log_malformed_rule("principal", "invalid groups or overrides", source="access_dependency")
            raise HTTPException(
                status_code=401,
                detail="Invalid user information"
            )

        try:
            session_policy = _as_model(getattr(request.state, "session_policy", None), SessionPolicy)
            session = _as_model(getattr(request.state, "session", None), Session)
        except PydanticValidationError:
            engine.logger.log_malformed_rule("session", "invalid session or session policy", source="access_dependency")
            raise HTTPException(
                status_code=401,
                detail="Invalid session"
            )

        condition_context: Dict[str, ContextValue] = {
            "user_id": user_info.get("user_id"),
            "firm_id": user_info.get("firm_id"),
        }
        if condition_context_extractor:
            condition_context.update(condition_context_extractor(request))

        decision = engine.authorize(
            role,
            resource,
            action,
            user_id=user_info.get("user_id"),
            firm_id=user_info.get("firm_id"),
            groups=groups,
            overrides=overrides,
            condition_context=condition_context,
            restrictions=restrictions_provider(request) if restrictions_provider else (),
            restriction_context=extract_request_context(request, trust_forwarded_for),
            session_policy=session_policy,
            session=session
        )
        request.state.access_decision = decision

        if decision.session_invalid:
            raise HTTPException(
                status_code=401,
                detail=decision.session.reason or "Session invalid"
            )

        if not decision.allowed:
            raise HTTPException(
                status_code=403,
                detail={"message": "Access denied", "reasons": decision.reasons}
            )

        if decision.should_refresh_session:
            response.headers[SESSION_REFRESH_HEADER] = "true"

        return decision

    return access_dependency


def get_access_decision(request: Request) -> AccessDecision:
    """Get the decision stored by the access dependency for this request."""
    decision = getattr(request.state, "access_decision", None)
    if decision is None:
        raise RuntimeError("Access dependency has not run for this request")
    return decision
