"""
Remote store gateway for the Firebase Realtime Database and an in-memory
test implementation.

Paths are slash-separated and address nodes of one JSON tree. Writing None
anywhere removes that node, as the hosted database does.
"""

from __future__ import annotations

import copy
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import firebase_admin
from firebase_admin import db as firebase_db
from firebase_admin import exceptions as firebase_exceptions

from backoffice.errors import StoreError

logger = logging.getLogger(__name__)

KEY_ORDER = "$key"

_PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"


@dataclass(frozen=True)
class RangeQuery:
    """
    Ordered range read over the children of one path.

    order_by is "$key" or the name of a child field. Bounds are inclusive.
    Only one of limit_to_first / limit_to_last may be set.
    """

    order_by: str = KEY_ORDER
    start_at: Any = None
    end_at: Any = None
    equal_to: Any = None
    limit_to_first: Optional[int] = None
    limit_to_last: Optional[int] = None

    def __post_init__(self):
        if self.limit_to_first is not None and self.limit_to_last is not None:
            raise ValueError("limit_to_first and limit_to_last are exclusive")


class StoreGateway(Protocol):
    """Operations the controllers need from the realtime database."""

    def read(self, path: str) -> Any:
        ...

    def read_range(self, path: str, query: RangeQuery) -> Dict[str, Any]:
        ...

    def write(self, path: str, value: Any) -> None:
        ...

    def patch(self, path: str, fields: Dict[str, Any]) -> None:
        ...

    def patch_many(self, updates: Dict[str, Any]) -> None:
        ...

    def delete(self, path: str) -> None:
        ...

    def push_key(self, path: str) -> str:
        ...


def split_path(path: str) -> list[str]:
    return [part for part in path.strip("/").split("/") if part]


def join_path(*parts: str) -> str:
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))


def _type_rank(value: Any) -> int:
    if value is None:
        return 0
    if value is False:
        return 1
    if value is True:
        return 2
    if isinstance(value, (int, float)):
        return 3
    if isinstance(value, str):
        return 4
    return 5


def _key_sort_key(key: str):
    # Keys that parse as 32-bit integers sort numerically before string keys.
    if key.lstrip("-").isdigit() and -(2**31) <= int(key) < 2**31:
        return (0, int(key), "")
    return (1, 0, key)


def _value_sort_key(value: Any):
    rank = _type_rank(value)
    if rank in (3, 4):
        return (rank, value)
    return (rank, 0)


def _child_value(record: Any, child: str) -> Any:
    node = record
    for part in split_path(child):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


def _prune(value: Any) -> Any:
    """Drop None leaves and empty containers, mirroring how nodes vanish."""
    if isinstance(value, dict):
        pruned = {}
        for k, v in value.items():
            v = _prune(v)
            if v is not None:
                pruned[str(k)] = v
        return pruned or None
    if isinstance(value, list):
        # Lists are stored as index-keyed objects by the hosted database;
        # keep them as lists here so round-trips stay natural.
        items = [_prune(v) for v in value]
        return items if any(v is not None for v in items) else None
    return value


def apply_range(children: Dict[str, Any], query: RangeQuery) -> Dict[str, Any]:
    """Order, bound and limit a mapping of children like the hosted database."""
    if query.order_by == KEY_ORDER:
        ordered = sorted(children.items(), key=lambda kv: _key_sort_key(kv[0]))

        def position(item):
            return _key_sort_key(item[0])

        def bound(value):
            return _key_sort_key(str(value))

    else:
        ordered = sorted(
            children.items(),
            key=lambda kv: (
                _value_sort_key(_child_value(kv[1], query.order_by)),
                _key_sort_key(kv[0]),
            ),
        )

        def position(item):
            return _value_sort_key(_child_value(item[1], query.order_by))

        def bound(value):
            return _value_sort_key(value)

    if query.equal_to is not None:
        ordered = [i for i in ordered if position(i) == bound(query.equal_to)]
    if query.start_at is not None:
        ordered = [i for i in ordered if position(i) >= bound(query.start_at)]
    if query.end_at is not None:
        ordered = [i for i in ordered if position(i) <= bound(query.end_at)]
    if query.limit_to_first is not None:
        ordered = ordered[: query.limit_to_first]
    if query.limit_to_last is not None:
        ordered = ordered[-query.limit_to_last :] if query.limit_to_last else []
    return dict(ordered)


def generate_push_key(now_ms: Optional[int] = None) -> str:
    """Chronologically sortable 20-character key in the hosted database's alphabet."""
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    stamp = []
    for _ in range(8):
        stamp.append(_PUSH_CHARS[now_ms % 64])
        now_ms //= 64
    suffix = "".join(secrets.choice(_PUSH_CHARS) for _ in range(12))
    return "".join(reversed(stamp)) + suffix


class InMemoryStore:
    """Dictionary-backed tree for development and tests."""

    def __init__(self, data: Optional[dict] = None):
        self.root: dict = copy.deepcopy(data) if data else {}
        self.fail_paths: set[str] = set()

    def reset(self) -> None:
        self.root.clear()
        self.fail_paths.clear()

    def _check(self, path: str) -> None:
        for failing in self.fail_paths:
            if path == failing or path.startswith(failing + "/") or failing == "*":
                raise StoreError(path, f"Permission denied: {path}")

    def _node(self, path: str) -> Any:
        node: Any = self.root
        for part in split_path(path):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def _set(self, path: str, value: Any) -> None:
        parts = split_path(path)
        value = _prune(copy.deepcopy(value))
        if not parts:
            self.root = value if isinstance(value, dict) else {}
            return
        parents = [self.root]
        node = self.root
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                if value is None:
                    return
                child = {}
                node[part] = child
            node = child
            parents.append(node)
        if value is None:
            node.pop(parts[-1], None)
            # Remove parents left empty by the deletion.
            for depth in range(len(parts) - 1, 0, -1):
                if parents[depth]:
                    break
                parents[depth - 1].pop(parts[depth - 1], None)
        else:
            node[parts[-1]] = value

    def read(self, path: str) -> Any:
        self._check(path)
        return copy.deepcopy(self._node(path))

    def read_range(self, path: str, query: RangeQuery) -> Dict[str, Any]:
        self._check(path)
        node = self._node(path)
        if not isinstance(node, dict):
            return {}
        return copy.deepcopy(apply_range(node, query))

    def write(self, path: str, value: Any) -> None:
        self._check(path)
        self._set(path, value)

    def patch(self, path: str, fields: Dict[str, Any]) -> None:
        self._check(path)
        for key, value in fields.items():
            self._set(join_path(path, key), value)

    def patch_many(self, updates: Dict[str, Any]) -> None:
        for path in updates:
            self._check(path)
        for path, value in updates.items():
            self._set(path, value)

    def delete(self, path: str) -> None:
        self._check(path)
        self._set(path, None)

    def push_key(self, path: str) -> str:
        return generate_push_key()


class FirebaseRealtimeStore:
    """
    Firebase Realtime Database implementation backed by firebase_admin.db.

    Expects firebase_admin.initialize_app() to have been called with a
    databaseURL option, or accepts an explicit app.
    """

    def __init__(self, app: Optional[firebase_admin.App] = None, url: Optional[str] = None):
        self._app = app
        self._url = url

    def _ref(self, path: str):
        return firebase_db.reference(
            "/" + "/".join(split_path(path)), app=self._app, url=self._url
        )

    def _call(self, path: str, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (firebase_exceptions.FirebaseError, ValueError, OSError) as e:
            logger.error("Realtime Database call failed at %s: %s", path, e)
            raise StoreError(path, str(e)) from e

    def read(self, path: str) -> Any:
        return self._call(path, self._ref(path).get)

    def read_range(self, path: str, query: RangeQuery) -> Dict[str, Any]:
        ref = self._ref(path)
        if query.order_by == KEY_ORDER:
            q = ref.order_by_key()
        else:
            q = ref.order_by_child(query.order_by)
        if query.equal_to is not None:
            q = q.equal_to(query.equal_to)
        if query.start_at is not None:
            q = q.start_at(query.start_at)
        if query.end_at is not None:
            q = q.end_at(query.end_at)
        if query.limit_to_first is not None:
            q = q.limit_to_first(query.limit_to_first)
        if query.limit_to_last is not None:
            q = q.limit_to_last(query.limit_to_last)
        result = self._call(path, q.get)
        if not result:
            return {}
        # The admin SDK returns an OrderedDict for ordered queries; list
        # results appear when keys are small integers.
        if isinstance(result, list):
            result = {str(i): v for i, v in enumerate(result) if v is not None}
        return dict(result)

    def write(self, path: str, value: Any) -> None:
        if value is None:
            self._call(path, self._ref(path).delete)
        else:
            self._call(path, self._ref(path).set, value)

    def patch(self, path: str, fields: Dict[str, Any]) -> None:
        self._call(path, self._ref(path).update, fields)

    def patch_many(self, updates: Dict[str, Any]) -> None:
        if not updates:
            return
        self._call("/", self._ref("/").update, updates)

    def delete(self, path: str) -> None:
        self._call(path, self._ref(path).delete)

    def push_key(self, path: str) -> str:
        # Keys are minted locally; Reference.push() would write an empty value.
        return generate_push_key()

