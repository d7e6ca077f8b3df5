"""Caller identity supplied by the upstream auth collaborator.

The gateway in front of the service authenticates the user and forwards the
result as headers. WebSocket clients that cannot set headers may pass the
same values as query parameters.
"""

from fastapi import Depends, Request
from starlette.requests import HTTPConnection

from src.domains.fraud.errors import AuthenticationRequired, AuthorizationDenied
from src.domains.fraud.models import Principal, Role

USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"
USER_NAME_HEADER = "X-User-Name"


def _build_principal(user_id: str | None, role: str | None, name: str | None) -> Principal:
    if not user_id:
        raise AuthenticationRequired("Authentication required")
    try:
        parsed_role = Role((role or Role.VIEWER.value).lower())
    except ValueError:
        raise AuthorizationDenied(f"Unknown role: {role}") from None
    return Principal(user_id=user_id, role=parsed_role, display_name=name or user_id)


def principal_from_connection(conn: HTTPConnection) -> Principal:
    """Resolve identity from headers, falling back to query params."""
    headers = conn.headers
    params = conn.query_params
    return _build_principal(
        headers.get(USER_ID_HEADER) or params.get("user_id"),
        headers.get(USER_ROLE_HEADER) or params.get("role"),
        headers.get(USER_NAME_HEADER) or params.get("name"),
    )


async def get_principal(request: Request) -> Principal:
    return _build_principal(
        request.headers.get(USER_ID_HEADER),
        request.headers.get(USER_ROLE_HEADER),
        request.headers.get(USER_NAME_HEADER),
    )


async def require_admin(principal: Principal = Depends(get_principal)) -> Principal:  # noqa: B008
    if not principal.is_admin:
        raise AuthorizationDenied("Admin role required")
    return principal
