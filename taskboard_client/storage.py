from __future__ import annotations

import json
import logging
import os
from typing import Any

from msal_extensions import FilePersistence, FilePersistenceWithDataProtection
from msal_extensions.persistence import PersistenceNotFound

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class StateStore:
    def __init__(self, directory: str, protected_keys: tuple[str, ...] = ()):
        self._directory = directory
        self._protected_keys = set(protected_keys)
        self._persistences: dict[str, Any] = {}
        if directory:
            os.makedirs(directory, exist_ok=True)

    @property
    def directory(self) -> str:
        return self._directory

    def load(self, key: str) -> dict[str, Any] | None:
        try:
            raw = self._persistence(key).load()
        except PersistenceNotFound:
            return None

        if not raw:
            return None

        try:
            envelope = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring unreadable state snapshot %r", key)
            return None

        if not isinstance(envelope, dict) or envelope.get("version") != SNAPSHOT_VERSION:
            logger.warning("Ignoring state snapshot %r with unsupported version", key)
            return None

        state = envelope.get("state")
        if not isinstance(state, dict):
            logger.warning("Ignoring state snapshot %r without a state object", key)
            return None
        return state

    def save(self, key: str, state: dict[str, Any]) -> None:
        envelope = {"version": SNAPSHOT_VERSION, "state": state}
        self._persistence(key).save(json.dumps(envelope, sort_keys=True))

    def clear(self, key: str) -> None:
        self._persistence(key).save("")

    def _persistence(self, key: str):
        persistence = self._persistences.get(key)
        if persistence is None:
            path = os.path.join(self._directory, f"{key}.json")
            if key in self._protected_keys:
                persistence = self._build_protected_persistence(path)
            else:
                persistence = FilePersistence(path)
            self._persistences[key] = persistence
        return persistence

    @staticmethod
    def _build_protected_persistence(path: str):
        try:
            return FilePersistenceWithDataProtection(path)
        except Exception as exc:
            logger.debug("Data protection unavailable for %s (%s), using plain file", path, exc)
            return FilePersistence(path)
