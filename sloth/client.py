"""Typed REST client for ``PrometheusServiceLevel`` resources."""

from __future__ import annotations

import json
import platform
import threading
import time
from collections.abc import Iterator
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Protocol
from urllib.parse import quote

import requests

from .k8s_register import RESOURCE_SERVICE_LEVELS, SCHEME_GROUP_VERSION
from .k8s_types import (
    PrometheusServiceLevel,
    PrometheusServiceLevelList,
    service_level_from_dict,
    service_level_list_from_dict,
)

API_PATH = "/apis"


class RateLimiter(Protocol):
    """Anything that can block until a request may be sent."""

    def accept(self) -> None: ...


class _TokenBucketRateLimiter:
    """Token bucket refilled at ``qps`` tokens per second, holding at most ``burst``."""

    def __init__(self, qps: float, burst: int) -> None:
        self._qps = qps
        self._burst = float(burst)
        self._tokens = float(burst)
        self._last = time.monotonic()
        self._lock = threading.Lock()

    def accept(self) -> None:
        with self._lock:
            now = time.monotonic()
            self._tokens = min(self._burst, self._tokens + (now - self._last) * self._qps)
            self._last = now
            self._tokens -= 1
            wait = -self._tokens / self._qps if self._tokens < 0 else 0.0
        if wait > 0:
            time.sleep(wait)


def default_user_agent() -> str:
    """The user agent sent when the configuration does not set one."""
    return f"sloth ({platform.system().lower()}/{platform.machine().lower()})"


@dataclass
class RestConfig:
    """How to reach and authenticate against the Kubernetes API server."""

    host: str = ""
    bearer_token: str = ""
    verify: bool | str = True
    cert: str | tuple[str, str] | None = None
    user_agent: str = ""
    qps: float = 0.0
    burst: int = 0
    rate_limiter: RateLimiter | None = None
    timeout: float | None = None


class ApiError(Exception):
    """An error response returned by the API server."""

    def __init__(self, status_code: int, reason: str = "", message: str = "", body: Any = None):
        self.status_code = status_code
        self.reason = reason
        self.message = message
        self.body = body
        text = message or reason or "request failed"
        super().__init__(f"{status_code}: {text}")

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404 or self.reason == "NotFound"

    @property
    def is_already_exists(self) -> bool:
        return self.reason == "AlreadyExists"

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409

    @classmethod
    def from_status(cls, status: Any, default_code: int = 500) -> ApiError:
        """Build from a Kubernetes ``Status`` object."""
        if not isinstance(status, dict):
            return cls(default_code, body=status)
        code = status.get("code")
        return cls(
            code if isinstance(code, int) else default_code,
            reason=str(status.get("reason") or ""),
            message=str(status.get("message") or ""),
            body=status,
        )

    @classmethod
    def from_response(cls, response: requests.Response) -> ApiError:
        """Build from a failed HTTP response."""
        try:
            body = response.json()
        except ValueError:
            return cls(response.status_code, reason=response.reason or "", message=response.text)
        error = cls.from_status(body, response.status_code)
        error.status_code = response.status_code
        return error


class PatchType(str, Enum):
    """Content types of the supported patch formats."""

    JSON = "application/json-patch+json"
    MERGE = "application/merge-patch+json"
    STRATEGIC_MERGE = "application/strategic-merge-patch+json"
    APPLY = "application/apply-patch+yaml"


@dataclass(frozen=True)
class WatchEvent:
    """One change notification from a watch."""

    type: str
    object: PrometheusServiceLevel


def _base_url(config: RestConfig) -> str:
    host = (config.host or "localhost").rstrip("/")
    if "://" not in host:
        secure = isinstance(config.verify, str) or config.cert is not None
        host = ("https://" if secure else "http://") + host
    return f"{host}{API_PATH}/{SCHEME_GROUP_VERSION.group}/{SCHEME_GROUP_VERSION.version}"


def _with_defaults(config: RestConfig) -> RestConfig:
    return replace(config, user_agent=config.user_agent or default_user_agent())


class SlothV1Client:
    """Client of the ``sloth.slok.dev/v1`` API group."""

    def __init__(self, config: RestConfig, session: requests.Session | None = None) -> None:
        self.config = _with_defaults(config)
        self.base_url = _base_url(self.config)
        self.session = session if session is not None else requests.Session()
        self.session.headers["User-Agent"] = self.config.user_agent
        self.session.headers["Accept"] = "application/json"
        if self.config.bearer_token:
            self.session.headers["Authorization"] = f"Bearer {self.config.bearer_token}"
        self.session.verify = self.config.verify
        if self.config.cert is not None:
            self.session.cert = self.config.cert

    def prometheus_service_levels(self, namespace: str) -> PrometheusServiceLevels:
        """Access PrometheusServiceLevel resources in a namespace ("" for all)."""
        return PrometheusServiceLevels(self, namespace)

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: Any = None,
        data: bytes | None = None,
        content_type: str | None = None,
        timeout: float | None = None,
        stream: bool = False,
    ) -> requests.Response:
        """Send a request below the group's base URL, raising ApiError on failure."""
        if self.config.rate_limiter is not None:
            self.config.rate_limiter.accept()
        headers = {}
        if body is not None:
            data = json.dumps(body).encode()
            content_type = content_type or "application/json"
        if content_type is not None:
            headers["Content-Type"] = content_type
        response = self.session.request(
            method,
            self.base_url + path,
            params=params or None,
            data=data,
            headers=headers,
            timeout=timeout if timeout is not None else self.config.timeout,
            stream=stream,
        )
        if not 200 <= response.status_code < 300:
            error = ApiError.from_response(response)
            response.close()
            raise error
        return response


def _list_params(label_selector: str | None, timeout_seconds: int | None) -> dict[str, Any]:
    params: dict[str, Any] = {}
    if label_selector:
        params["labelSelector"] = label_selector
    if timeout_seconds is not None:
        params["timeoutSeconds"] = timeout_seconds
    return params


class PrometheusServiceLevels:
    """Operations on PrometheusServiceLevel resources of one namespace."""

    def __init__(self, client: SlothV1Client, namespace: str) -> None:
        self.client = client
        self.namespace = namespace

    def _path(self, name: str = "", *subresources: str) -> str:
        parts = []
        if self.namespace:
            parts += ["namespaces", self.namespace]
        parts.append(RESOURCE_SERVICE_LEVELS)
        if name:
            parts.append(name)
        parts.extend(subresources)
        return "/" + "/".join(quote(part, safe="") for part in parts)

    def get(self, name: str) -> PrometheusServiceLevel:
        """Fetch a resource by name."""
        response = self.client.request("GET", self._path(name))
        return service_level_from_dict(response.json())

    def list(
        self, label_selector: str | None = None, timeout_seconds: int | None = None
    ) -> PrometheusServiceLevelList:
        """List the resources matching a label selector."""
        response = self.client.request(
            "GET",
            self._path(),
            params=_list_params(label_selector, timeout_seconds),
            timeout=timeout_seconds,
        )
        return service_level_list_from_dict(response.json())

    def watch(
        self, label_selector: str | None = None, timeout_seconds: int | None = None
    ) -> Iterator[WatchEvent]:
        """Stream changes of the matching resources."""
        params = _list_params(label_selector, timeout_seconds)
        params["watch"] = "true"
        response = self.client.request(
            "GET", self._path(), params=params, timeout=timeout_seconds, stream=True
        )
        with response:
            for line in response.iter_lines():
                if not line:
                    continue
                event = json.loads(line)
                event_type = event.get("type", "")
                if event_type == "ERROR":
                    raise ApiError.from_status(event.get("object"))
                yield WatchEvent(event_type, service_level_from_dict(event.get("object")))

    def create(self, service_level: PrometheusServiceLevel) -> PrometheusServiceLevel:
        """Create a resource and return the server's representation."""
        response = self.client.request("POST", self._path(), body=service_level.to_dict())
        return service_level_from_dict(response.json())

    def update(self, service_level: PrometheusServiceLevel) -> PrometheusServiceLevel:
        """Replace a resource and return the server's representation."""
        response = self.client.request(
            "PUT", self._path(service_level.metadata.name), body=service_level.to_dict()
        )
        return service_level_from_dict(response.json())

    def update_status(self, service_level: PrometheusServiceLevel) -> PrometheusServiceLevel:
        """Replace the status subresource of a resource."""
        response = self.client.request(
            "PUT",
            self._path(service_level.metadata.name, "status"),
            body=service_level.to_dict(),
        )
        return service_level_from_dict(response.json())

    def delete(self, name: str) -> None:
        """Delete a resource by name."""
        self.client.request("DELETE", self._path(name), body={}).close()

    def delete_collection(
        self, label_selector: str | None = None, timeout_seconds: int | None = None
    ) -> None:
        """Delete all resources matching a label selector."""
        self.client.request(
            "DELETE",
            self._path(),
            params=_list_params(label_selector, timeout_seconds),
            body={},
            timeout=timeout_seconds,
        ).close()

    def patch(
        self, name: str, patch_type: PatchType | str, data: Any, *args: str
    ) -> PrometheusServiceLevel:
        """Apply a patch, optionally to subresources, and return the result."""
        if isinstance(data, str):
            payload = data.encode()
        elif isinstance(data, (bytes, bytearray)):
            payload = bytes(data)
        else:
            payload = json.dumps(data).encode()
        content_type = patch_type.value if isinstance(patch_type, PatchType) else str(patch_type)
        response = self.client.request(
            "PATCH", self._path(name, *args), data=payload, content_type=content_type
        )
        return service_level_from_dict(response.json())


class Clientset:
    """The clients of every API group this package knows."""

    def __init__(self, sloth_v1: SlothV1Client) -> None:
        self._sloth_v1 = sloth_v1

    def sloth_v1(self) -> SlothV1Client:
        """The ``sloth.slok.dev/v1`` client."""
        return self._sloth_v1


def new_for_config(config: RestConfig) -> Clientset:
    """Create a Clientset, adding a token-bucket rate limiter when QPS is set."""
    config = replace(config)
    if config.rate_limiter is None and config.qps > 0:
        if config.burst <= 0:
            raise ValueError(
                "burst is required to be greater than 0 when RateLimiter is not set "
                "and QPS is set to greater than 0"
            )
        config.rate_limiter = _TokenBucketRateLimiter(config.qps, config.burst)
    return Clientset(SlothV1Client(config))