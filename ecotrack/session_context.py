"""Per-request view of who is calling: identity, profile and role."""

from __future__ import annotations

from flask import g, session
from flask_login import logout_user

from .utils.auth import get_current_user


class SessionContext:
    """Explicit session state handed to views.

    ``load()`` resolves it from the signed session once per request and
    ``teardown()`` clears it on sign out.
    """

    def __init__(self, user=None) -> None:
        self.user = user

    @classmethod
    def load(cls) -> "SessionContext":
        return cls(get_current_user())

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def profile(self):
        return self.user.profile if self.user is not None else None

    @property
    def role(self) -> str | None:
        return self.user.role if self.user is not None else None

    @property
    def user_id(self) -> int | None:
        return self.user.id if self.user is not None else None

    def has_role(self, *roles: str) -> bool:
        return self.user is not None and self.user.has_role(*roles)

    def teardown(self) -> None:
        logout_user()
        session.pop("user_id", None)
        self.user = None

    def to_dict(self) -> dict:
        if self.user is None:
            return {"authenticated": False, "user": None, "profile": None, "role": None}
        return {
            "authenticated": True,
            "user": {"id": self.user.id, "email": self.user.email},
            "profile": self.profile.to_dict() if self.profile else None,
            "role": self.role,
        }


def get_session_context() -> SessionContext:
    context = g.get("session_context")
    if context is None:
        context = SessionContext.load()
        g.session_context = context
    return context


def reset_session_context() -> None:
    g.pop("session_context", None)


__all__ = ["SessionContext", "get_session_context", "reset_session_context"]
