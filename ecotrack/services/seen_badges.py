"""Per-user memory of which badge unlocks were already celebrated.

This is a presentation cache. It never decides whether a badge is unlocked;
losing it (new device, cleared cookies) only replays the celebration once.
"""

from __future__ import annotations

from typing import Iterable, MutableMapping

from flask import session


class SeenBadgeStore:
    KEY_PREFIX = "seen_badges_"
    KEY_TEMPLATE = KEY_PREFIX + "{user_id}"

    def __init__(self, backend: MutableMapping | None = None) -> None:
        # Default to the signed session cookie: survives reloads, stays on the device.
        self._backend = backend

    @property
    def backend(self) -> MutableMapping:
        return self._backend if self._backend is not None else session

    def key_for(self, user_id) -> str:
        return self.KEY_TEMPLATE.format(user_id=user_id)

    def seen(self, user_id) -> list:
        raw = self.backend.get(self.key_for(user_id)) or []
        if not isinstance(raw, list):
            return []
        return list(raw)

    def detect_new(self, user_id, unlocked_ids: Iterable) -> list:
        """Return unlocked ids not celebrated yet and remember them."""

        unlocked = list(unlocked_ids)
        already = set(self.seen(user_id))
        new_ids = [badge_id for badge_id in unlocked if badge_id not in already]
        if new_ids:
            merged = sorted(already.union(unlocked), key=str)
            self.backend[self.key_for(user_id)] = merged
        return new_ids

    def forget(self, user_id) -> None:
        self.backend.pop(self.key_for(user_id), None)

    def snapshot(self) -> dict:
        """Every seen-badge record in the backend, for carrying across a session reset."""

        return {
            key: list(value)
            for key, value in self.backend.items()
            if isinstance(key, str) and key.startswith(self.KEY_PREFIX) and isinstance(value, list)
        }

    def restore(self, records: dict) -> None:
        self.backend.update(records)


__all__ = ["SeenBadgeStore"]
