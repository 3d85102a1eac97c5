"""In-memory stand-in for the ``sloth.slok.dev/v1`` client, for use in tests.

Every call is recorded as an :class:`Action` and passed through a chain of
reactors. Reactors added with :meth:`FakeSlothV1.prepend_reactor` run first;
the last one keeps the objects in memory much like an API server would.
"""

from __future__ import annotations

import copy
import json
import queue
import re
import threading
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from .client import PatchType, WatchEvent
from .k8s_register import (
    KIND_SERVICE_LEVEL,
    RESOURCE_SERVICE_LEVELS,
    SCHEME_GROUP_VERSION,
    GroupVersionResource,
    known_kinds,
)
from .k8s_types import (
    PrometheusServiceLevel,
    PrometheusServiceLevelList,
    service_level_from_dict,
)

SERVICE_LEVELS_RESOURCE = SCHEME_GROUP_VERSION.with_resource(RESOURCE_SERVICE_LEVELS)
SERVICE_LEVELS_KIND = SCHEME_GROUP_VERSION.with_kind(KIND_SERVICE_LEVEL)

_KNOWN = {(f"{gvk.group}/{gvk.version}", gvk.kind) for gvk in known_kinds()}


class NotFoundError(LookupError):
    """The requested object does not exist."""

    def __init__(self, resource: GroupVersionResource, name: str) -> None:
        self.resource = resource
        self.name = name
        super().__init__(f'{resource.group_resource()} "{name}" not found')


class AlreadyExistsError(ValueError):
    """An object with the same name already exists."""

    def __init__(self, resource: GroupVersionResource, name: str) -> None:
        self.resource = resource
        self.name = name
        super().__init__(f'{resource.group_resource()} "{name}" already exists')


@dataclass(frozen=True)
class Action:
    """One call made against the fake client."""

    verb: str
    resource: GroupVersionResource
    namespace: str
    name: str = ""
    subresource: str = ""
    object: Any = None
    label_selector: str = ""
    patch_type: str = ""
    patch: bytes = b""


Reactor = Callable[[Action], "tuple[bool, Any]"]


# Label selectors.

_KEY = r"[A-Za-z0-9][A-Za-z0-9_.\-/]*"
_VALUE = r"[A-Za-z0-9_.\-]*"
_NOT_EXISTS = re.compile(rf"!\s*({_KEY})")
_EQUALITY = re.compile(rf"({_KEY})\s*(==|!=|=)\s*({_VALUE})")
_SET = re.compile(rf"({_KEY})\s+(in|notin)\s*\(([^()]*)\)")
_EXISTS = re.compile(_KEY)

LabelPredicate = Callable[[Mapping[str, str]], bool]


def _split_requirements(selector: str) -> list[str]:
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    for char in selector:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if char == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def _requirement(text: str) -> LabelPredicate:
    text = text.strip()
    if m := _NOT_EXISTS.fullmatch(text):
        key = m.group(1)
        return lambda labels: key not in labels
    if m := _EQUALITY.fullmatch(text):
        key, op, value = m.groups()
        if op == "!=":
            return lambda labels: labels.get(key) != value
        return lambda labels: key in labels and labels[key] == value
    if m := _SET.fullmatch(text):
        key, op, raw = m.groups()
        values = {v.strip() for v in raw.split(",") if v.strip()}
        if not values:
            raise ValueError(f"invalid label selector requirement {text!r}: empty value set")
        if op == "in":
            return lambda labels: labels.get(key) in values
        return lambda labels: labels.get(key) not in values
    if _EXISTS.fullmatch(text):
        return lambda labels: text in labels
    raise ValueError(f"invalid label selector requirement {text!r}")


def _parse_selector(selector: str | None) -> LabelPredicate:
    if selector is None or not selector.strip():
        return lambda labels: True
    requirements = [_requirement(part) for part in _split_requirements(selector)]
    return lambda labels: all(req(labels) for req in requirements)


# Patches.


def _merge_patch(target: Any, patch: Any) -> Any:
    if not isinstance(patch, dict):
        return copy.deepcopy(patch)
    result = dict(target) if isinstance(target, dict) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = _merge_patch(result.get(key), value)
    return result


def _pointer(path: Any) -> list[str]:
    if not isinstance(path, str):
        raise ValueError(f"invalid JSON pointer {path!r}")
    if path == "":
        return []
    if not path.startswith("/"):
        raise ValueError(f"invalid JSON pointer {path!r}")
    return [token.replace("~1", "/").replace("~0", "~") for token in path[1:].split("/")]


def _index(items: list[Any], token: str, allow_end: bool) -> int:
    if allow_end and token == "-":
        return len(items)
    if not token.isdigit():
        raise ValueError(f"invalid array index {token!r}")
    index = int(token)
    if index > (len(items) if allow_end else len(items) - 1):
        raise ValueError(f"array index {index} out of range")
    return index


def _walk(doc: Any, tokens: list[str]) -> Any:
    for token in tokens:
        if isinstance(doc, dict):
            if token not in doc:
                raise ValueError(f"path element {token!r} not found")
            doc = doc[token]
        elif isinstance(doc, list):
            doc = doc[_index(doc, token, False)]
        else:
            raise ValueError(f"cannot descend into {type(doc).__name__} at {token!r}")
    return doc


def _add(doc: Any, tokens: list[str], value: Any) -> Any:
    if not tokens:
        return value
    parent = _walk(doc, tokens[:-1])
    key = tokens[-1]
    if isinstance(parent, dict):
        parent[key] = value
    elif isinstance(parent, list):
        parent.insert(_index(parent, key, True), value)
    else:
        raise ValueError(f"cannot add to {type(parent).__name__}")
    return doc


def _remove(doc: Any, tokens: list[str]) -> Any:
    if not tokens:
        raise ValueError("cannot remove the document root")
    parent = _walk(doc, tokens[:-1])
    key = tokens[-1]
    if isinstance(parent, dict):
        if key not in parent:
            raise ValueError(f"path element {key!r} not found")
        return parent.pop(key)
    if isinstance(parent, list):
        return parent.pop(_index(parent, key, False))
    raise ValueError(f"cannot remove from {type(parent).__name__}")


def _json_patch(doc: Any, operations: Any) -> Any:
    if not isinstance(operations, list):
        raise ValueError("a JSON patch must be a list of operations")
    doc = copy.deepcopy(doc)
    for operation in operations:
        if not isinstance(operation, dict):
            raise ValueError("a JSON patch operation must be an object")
        op = operation.get("op")
        path = _pointer(operation.get("path"))
        if op == "add":
            doc = _add(doc, path, copy.deepcopy(operation.get("value")))
        elif op == "remove":
            _remove(doc, path)
        elif op == "replace":
            if path:
                _remove(doc, path)
            doc = _add(doc, path, copy.deepcopy(operation.get("value")))
        elif op == "move":
            value = _walk(doc, _pointer(operation.get("from")))
            if _pointer(operation.get("from")):
                _remove(doc, _pointer(operation.get("from")))
            doc = _add(doc, path, value)
        elif op == "copy":
            value = copy.deepcopy(_walk(doc, _pointer(operation.get("from"))))
            doc = _add(doc, path, value)
        elif op == "test":
            if _walk(doc, path) != operation.get("value"):
                raise ValueError(f"test operation failed at {operation.get('path')!r}")
        else:
            raise ValueError(f"unknown JSON patch operation {op!r}")
    return doc


def _patch_bytes(data: Any) -> bytes:
    if isinstance(data, str):
        return data.encode()
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    return json.dumps(data).encode()


# Watching.


class _Watcher:
    """Receives change events of one namespace ("" for all) until stopped."""

    def __init__(self, owner: FakeSlothV1, namespace: str) -> None:
        self._owner = owner
        self.namespace = namespace
        self._queue: queue.Queue[WatchEvent | None] = queue.Queue()
        self._stopped = False

    def _send(self, event: WatchEvent) -> None:
        if not self._stopped:
            self._queue.put(event)

    def stop(self) -> None:
        """Stop receiving events; iteration ends after the queued ones."""
        if not self._stopped:
            self._stopped = True
            self._owner._remove_watcher(self)
            self._queue.put(None)

    def next_event(self, timeout: float | None = None) -> WatchEvent | None:
        """The next event, or None when stopped or nothing came in time."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def __iter__(self) -> Iterator[WatchEvent]:
        while (event := self._queue.get()) is not None:
            yield event

    def __enter__(self) -> _Watcher:
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()


# Fake clients.


class FakeSlothV1:
    """Fake ``sloth.slok.dev/v1`` client holding its objects in memory."""

    def __init__(self, *objects: PrometheusServiceLevel) -> None:
        self._lock = threading.RLock()
        self._objects: dict[tuple[str, str], PrometheusServiceLevel] = {}
        self._watchers: list[_Watcher] = []
        self._reactors: list[tuple[str, Reactor]] = []
        self.actions: list[Action] = []
        for obj in objects:
            self._store_new(obj, obj.metadata.namespace)

    def prometheus_service_levels(self, namespace: str) -> FakePrometheusServiceLevels:
        """Access PrometheusServiceLevel resources in a namespace ("" for all)."""
        return FakePrometheusServiceLevels(self, namespace)

    def prepend_reactor(self, verb: str, reactor: Reactor) -> None:
        """Run ``reactor`` before the others for ``verb`` ("*" for every verb).

        A reactor returns ``(handled, result)``; raising an exception fails the call.
        """
        with self._lock:
            self._reactors.insert(0, (verb, reactor))

    def clear_actions(self) -> None:
        """Forget the recorded actions."""
        with self._lock:
            self.actions.clear()

    def invokes(self, action: Action) -> Any:
        """Record an action and return what the first handling reactor gives."""
        with self._lock:
            self.actions.append(action)
            chain = [*self._reactors, ("*", self._react)]
        for verb, reactor in chain:
            if verb not in ("*", action.verb):
                continue
            handled, result = reactor(action)
            if handled:
                return result
        return None

    # Object tracking.

    def _notify(self, event_type: str, obj: PrometheusServiceLevel) -> None:
        for watcher in list(self._watchers):
            if watcher.namespace in ("", obj.metadata.namespace):
                watcher._send(WatchEvent(event_type, copy.deepcopy(obj)))

    def _remove_watcher(self, watcher: _Watcher) -> None:
        with self._lock:
            if watcher in self._watchers:
                self._watchers.remove(watcher)

    @staticmethod
    def _prepare(obj: Any, namespace: str) -> PrometheusServiceLevel:
        if not isinstance(obj, PrometheusServiceLevel):
            raise TypeError(f"expected a PrometheusServiceLevel, got {type(obj).__name__}")
        if (obj.api_version, obj.kind) not in _KNOWN:
            raise ValueError(f"unknown object type {obj.api_version}, Kind={obj.kind}")
        obj = copy.deepcopy(obj)
        if not obj.metadata.name:
            raise ValueError("object name is required")
        if not obj.metadata.namespace:
            obj.metadata.namespace = namespace
        elif namespace and obj.metadata.namespace != namespace:
            raise ValueError(
                f"request namespace {namespace!r} does not match object namespace "
                f"{obj.metadata.namespace!r}"
            )
        return obj

    def _store_new(self, obj: Any, namespace: str) -> PrometheusServiceLevel:
        obj = self._prepare(obj, namespace)
        key = (obj.metadata.namespace, obj.metadata.name)
        with self._lock:
            if key in self._objects:
                raise AlreadyExistsError(SERVICE_LEVELS_RESOURCE, obj.metadata.name)
            self._objects[key] = obj
            self._notify("ADDED", obj)
        return copy.deepcopy(obj)

    def _replace(self, obj: Any, namespace: str) -> PrometheusServiceLevel:
        obj = self._prepare(obj, namespace)
        key = (obj.metadata.namespace, obj.metadata.name)
        with self._lock:
            if key not in self._objects:
                raise NotFoundError(SERVICE_LEVELS_RESOURCE, obj.metadata.name)
            self._objects[key] = obj
            self._notify("MODIFIED", obj)
        return copy.deepcopy(obj)

    def _lookup(self, namespace: str, name: str) -> PrometheusServiceLevel:
        try:
            return self._objects[(namespace, name)]
        except KeyError:
            raise NotFoundError(SERVICE_LEVELS_RESOURCE, name) from None

    def _in_namespace(self, namespace: str) -> list[PrometheusServiceLevel]:
        return [
            obj
            for (ns, _), obj in self._objects.items()
            if namespace in ("", ns)
        ]

    def _patch(self, action: Action) -> PrometheusServiceLevel:
        with self._lock:
            current = self._lookup(action.namespace, action.name)
            patch = json.loads(action.patch.decode() or "null")
            if action.patch_type in (PatchType.MERGE.value, PatchType.STRATEGIC_MERGE.value):
                doc = _merge_patch(current.to_dict(), patch)
            elif action.patch_type == PatchType.JSON.value:
                doc = _json_patch(current.to_dict(), patch)
            else:
                raise ValueError(f"patch type {action.patch_type!r} is not supported")
            patched = service_level_from_dict(doc)
            patched.metadata.name = current.metadata.name
            patched.metadata.namespace = current.metadata.namespace
            self._objects[(action.namespace, action.name)] = patched
            self._notify("MODIFIED", patched)
            return copy.deepcopy(patched)

    def _react(self, action: Action) -> tuple[bool, Any]:
        verb = action.verb
        if verb == "get":
            with self._lock:
                return True, copy.deepcopy(self._lookup(action.namespace, action.name))
        if verb == "list":
            with self._lock:
                items = copy.deepcopy(self._in_namespace(action.namespace))
            return True, PrometheusServiceLevelList(items=items)
        if verb == "watch":
            watcher = _Watcher(self, action.namespace)
            with self._lock:
                self._watchers.append(watcher)
            return True, watcher
        if verb == "create":
            return True, self._store_new(action.object, action.namespace)
        if verb == "update":
            return True, self._replace(action.object, action.namespace)
        if verb == "delete":
            with self._lock:
                obj = self._lookup(action.namespace, action.name)
                del self._objects[(action.namespace, action.name)]
                self._notify("DELETED", obj)
            return True, None
        if verb == "delete-collection":
            matches = _parse_selector(action.label_selector)
            with self._lock:
                for obj in self._in_namespace(action.namespace):
                    if matches(obj.metadata.labels):
                        del self._objects[(obj.metadata.namespace, obj.metadata.name)]
                        self._notify("DELETED", obj)
            return True, None
        if verb == "patch":
            return True, self._patch(action)
        return False, None


class FakePrometheusServiceLevels:
    """Fake operations on PrometheusServiceLevel resources of one namespace."""

    def __init__(self, fake: FakeSlothV1, namespace: str) -> None:
        self.fake = fake
        self.namespace = namespace

    def _action(self, verb: str, **fields: Any) -> Action:
        return Action(verb, SERVICE_LEVELS_RESOURCE, self.namespace, **fields)

    def get(self, name: str) -> PrometheusServiceLevel:
        """Fetch a resource by name."""
        return self.fake.invokes(self._action("get", name=name))

    def list(self, label_selector: str | None = None) -> PrometheusServiceLevelList | None:
        """List the resources whose labels match the selector."""
        matches = _parse_selector(label_selector)
        result = self.fake.invokes(self._action("list", label_selector=label_selector or ""))
        if result is None:
            return None
        return PrometheusServiceLevelList(
            metadata=copy.deepcopy(result.metadata),
            items=[item for item in result.items if matches(item.metadata.labels)],
        )

    def watch(self) -> _Watcher:
        """Start receiving change events of the namespace."""
        return self.fake.invokes(self._action("watch"))

    def create(self, service_level: PrometheusServiceLevel) -> PrometheusServiceLevel:
        """Create a resource."""
        return self.fake.invokes(
            self._action("create", object=copy.deepcopy(service_level))
        )

    def update(self, service_level: PrometheusServiceLevel) -> PrometheusServiceLevel:
        """Replace a resource."""
        return self.fake.invokes(
            self._action(
                "update", name=service_level.metadata.name, object=copy.deepcopy(service_level)
            )
        )

    def update_status(self, service_level: PrometheusServiceLevel) -> PrometheusServiceLevel:
        """Replace the status subresource of a resource."""
        return self.fake.invokes(
            self._action(
                "update",
                name=service_level.metadata.name,
                subresource="status",
                object=copy.deepcopy(service_level),
            )
        )

    def delete(self, name: str) -> None:
        """Delete a resource by name."""
        self.fake.invokes(self._action("delete", name=name))

    def delete_collection(self, label_selector: str | None = None) -> None:
        """Delete the resources whose labels match the selector."""
        _parse_selector(label_selector)
        self.fake.invokes(
            self._action("delete-collection", label_selector=label_selector or "")
        )

    def patch(
        self, name: str, patch_type: PatchType | str, data: Any, *args: str
    ) -> PrometheusServiceLevel:
        """Apply a patch, optionally to subresources, and return the result."""
        content_type = patch_type.value if isinstance(patch_type, PatchType) else str(patch_type)
        return self.fake.invokes(
            self._action(
                "patch",
                name=name,
                subresource="/".join(args),
                patch_type=content_type,
                patch=_patch_bytes(data),
            )
        )