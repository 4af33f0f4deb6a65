from __future__ import annotations

from functools import wraps
from typing import Callable, Optional

from flask import g, request

from ..audit.model import AuditInfo
from ..core.enums import Role
from ..core.exceptions import AuthenticationError, AuthorizationError
from .service import AuthService


def bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Missing bearer token")
    return token.strip()


def client_ip() -> Optional[str]:
    """First hop of X-Forwarded-For, else the socket peer."""

    forwarded = request.headers.get("X-Forwarded-For", "")
    first = forwarded.split(",")[0].strip()
    return first or request.remote_addr


def audit_info_from_request() -> AuditInfo:
    return AuditInfo(
        ip_address=client_ip(),
        user_agent=request.headers.get("User-Agent"),
        session_id=request.headers.get("X-Session-Id"),
    )


def make_auth_required(auth_service: AuthService) -> Callable:
    """Build the route decorator bound to one AuthService.

    ``@auth_required(Role.ADMIN, Role.TEACHER)`` resolves the principal into
    ``flask.g.principal``; with no roles any authenticated user passes.
    """

    def auth_required(*roles: Role):
        allowed = set(roles)

        def decorator(view):
            @wraps(view)
            def wrapper(*args, **kwargs):
                principal = auth_service.resolve_principal(bearer_token())
                if allowed and principal.role not in allowed:
                    raise AuthorizationError(
                        "Insufficient role for this endpoint",
                        details={"required": sorted(r.value for r in allowed), "role": principal.role.value},
                    )
                g.principal = principal
                return view(*args, **kwargs)

            return wrapper

        return decorator

    return auth_required
