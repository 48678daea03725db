"""Request generation tokens for discarding superseded lookups."""

from __future__ import annotations

from typing import Hashable

from ..extensions import cache

# A lookup older than this is finished or abandoned; its counter can lapse.
GENERATION_TIMEOUT = 10 * 60


class RequestGeneration:
    """Hand out increasing tokens per purpose, kept in the shared cache.

    A caller takes a token before starting slow work and checks it is still
    current before using the result; any later ``next()`` for the same purpose
    makes earlier tokens stale. With Redis configured every worker sees the
    same counters.
    """

    def __init__(self, namespace: str, timeout: int = GENERATION_TIMEOUT) -> None:
        self.namespace = namespace
        self.timeout = timeout

    def key_for(self, purpose: Hashable) -> str:
        parts = purpose if isinstance(purpose, tuple) else (purpose,)
        return ":".join(["generation", self.namespace, *(str(part) for part in parts)])

    def next(self, purpose: Hashable = "default") -> int:
        key = self.key_for(purpose)
        # add only writes a missing key, so the expiry starts with the first lookup.
        cache.add(key, 0, timeout=self.timeout)
        return int(cache.cache.inc(key) or 0)

    def is_current(self, purpose: Hashable, token: int) -> bool:
        latest = cache.get(self.key_for(purpose))
        return latest is not None and int(latest) == token


def purpose_key(purpose: str | None, allowed: frozenset) -> tuple | None:
    """Scope superseding to the signed-in caller.

    Anonymous callers and requests without a purpose are never superseded.
    Raises ``ValueError`` for a purpose outside ``allowed``.
    """

    if not purpose:
        return None
    if purpose not in allowed:
        raise ValueError(f"unknown purpose: {purpose}")
    from ..session_context import get_session_context

    context = get_session_context()
    if not context.is_authenticated:
        return None
    return (context.user_id, purpose)


__all__ = ["GENERATION_TIMEOUT", "RequestGeneration", "purpose_key"]
