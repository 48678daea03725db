"""Access control utilities for role-based authorization."""

from __future__ import annotations

from functools import wraps
from typing import Callable

from .responses import error_response


def role_required(*roles: str) -> Callable:
    """Restrict a view to the provided roles.

    Admin users automatically bypass role checks. With no roles given only
    admins pass. Unauthenticated callers get 401, others 403.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            from ..session_context import get_session_context

            context = get_session_context()
            if not context.is_authenticated:
                return error_response("auth_required")
            if not roles:
                if context.role == "admin":
                    return func(*args, **kwargs)
                return error_response("forbidden")
            if not context.has_role(*roles):
                return error_response("forbidden")
            return func(*args, **kwargs)

        return wrapper

    return decorator


admin_required = role_required("admin")

__all__ = ["admin_required", "role_required"]
