"""
Realtime Database abstraction with an in-memory implementation for tests.
"""

from __future__ import annotations

import copy
import time
import uuid
from typing import Any, Optional, Protocol

from firebase_admin import db as firebase_db


class RealtimeDatabase(Protocol):
    """Path-addressed JSON tree, as exposed by the Firebase Realtime Database."""

    def set(self, path: str, value: Any) -> None:
        ...

    def get(self, path: str) -> Any:
        ...

    def push(self, path: str, value: Any) -> str:
        ...

    def increment(self, path: str, field: str = "count") -> int:
        ...


def _split(path: str) -> list[str]:
    return [part for part in path.strip("/").split("/") if part]


def _push_key() -> str:
    # Millisecond prefix keeps keys in creation order, like Firebase push ids.
    return f"{int(time.time() * 1000):013d}-{uuid.uuid4().hex[:8]}"


class InMemoryRealtimeDatabase:
    """Nested-dict tree for development and tests."""

    def __init__(self):
        self.root: dict = {}

    def set(self, path: str, value: Any) -> None:
        parts = _split(path)
        if not parts:
            self.root = copy.deepcopy(value) if isinstance(value, dict) else {}
            return
        node = self.root
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        if value is None:
            node.pop(parts[-1], None)
        else:
            node[parts[-1]] = copy.deepcopy(value)

    def get(self, path: str) -> Any:
        node: Any = self.root
        for part in _split(path):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return copy.deepcopy(node)

    def push(self, path: str, value: Any) -> str:
        key = _push_key()
        self.set(f"{path}/{key}", value)
        return key

    def increment(self, path: str, field: str = "count") -> int:
        current = self.get(path)
        if not isinstance(current, dict):
            current = {}
        current[field] = (current.get(field) or 0) + 1
        self.set(path, current)
        return current[field]

    def reset(self) -> None:
        self.root = {}


class FirebaseRealtimeDatabase:
    """Realtime Database client backed by the Firebase Admin SDK."""

    def __init__(self, app=None):
        if app is None:
            from portal.firebase import get_firebase_app

            app = get_firebase_app()
        self.app = app

    def _ref(self, path: str):
        return firebase_db.reference(path, app=self.app)

    def set(self, path: str, value: Any) -> None:
        self._ref(path).set(value)

    def get(self, path: str) -> Any:
        return self._ref(path).get()

    def push(self, path: str, value: Any) -> str:
        return self._ref(path).push(value).key

    def increment(self, path: str, field: str = "count") -> int:
        def _bump(current: Optional[dict]) -> dict:
            current = current if isinstance(current, dict) else {}
            return {**current, field: (current.get(field) or 0) + 1}

        result = self._ref(path).transaction(_bump)
        return result[field]
