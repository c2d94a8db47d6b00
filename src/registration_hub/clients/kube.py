"""Hub API server client.

Wraps the blocking `kubernetes` client so that every call runs in a worker
thread, carries a deadline, and fails with the hub error taxonomy:
409 -> ConflictError, 404 -> NotFoundError, anything else -> TransientIOError.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, TypeVar

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException

from hub_shared.config import KubeSettings
from hub_shared.observability import get_logger, log_external_call_end, log_external_call_start

from ..errors import ConflictError, NotFoundError, TransientIOError

logger = get_logger(__name__)

T = TypeVar("T")

_JSON_HEADERS = {"Accept": "application/json", "Content-Type": "application/json"}

# Keyword arguments kubernetes.watch.Watch passes to a list function
_WATCH_QUERY_PARAMS = {
    "watch": "watch",
    "resource_version": "resourceVersion",
    "timeout_seconds": "timeoutSeconds",
    "allow_watch_bookmarks": "allowWatchBookmarks",
}


def translate_api_error(exc: Exception, operation: str) -> Exception:
    """Map a client failure onto the hub error taxonomy."""
    if isinstance(exc, ApiException):
        if exc.status == 409:
            return ConflictError(f"{operation}: {exc.reason}")
        if exc.status == 404:
            return NotFoundError(f"{operation}: {exc.reason}")
        return TransientIOError(f"{operation} failed: {exc.status} {exc.reason}", status=exc.status)
    return TransientIOError(f"{operation} failed: {exc}")


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp as served by the API server."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class KubeClient:
    """Async facade over the hub's Kubernetes API."""

    def __init__(self, settings: KubeSettings, api_client: client.ApiClient | None = None):
        self.settings = settings
        self._api_client = api_client

    @property
    def api_client(self) -> client.ApiClient:
        """Get or create the underlying API client."""
        if self._api_client is None:
            configuration = client.Configuration()
            try:
                # Try in-cluster config first
                config.load_incluster_config(client_configuration=configuration)
            except config.ConfigException:
                # Fall back to kubeconfig
                config.load_kube_config(
                    config_file=self.settings.kubeconfig,
                    context=self.settings.context,
                    client_configuration=configuration,
                )
            self._api_client = client.ApiClient(configuration)
        return self._api_client

    def close(self) -> None:
        if self._api_client is not None:
            self._api_client.close()
            self._api_client = None

    async def _run(self, operation: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        log_external_call_start(logger, "kube-apiserver", operation)
        started = time.monotonic()
        try:
            result = await asyncio.to_thread(fn, *args, **kwargs)
        except (ApiException, config.ConfigException, urllib3.exceptions.HTTPError, OSError) as e:
            log_external_call_end(
                logger,
                "kube-apiserver",
                operation,
                success=False,
                duration_ms=(time.monotonic() - started) * 1000,
                error=str(e),
            )
            raise translate_api_error(e, operation) from e
        log_external_call_end(
            logger,
            "kube-apiserver",
            operation,
            success=True,
            duration_ms=(time.monotonic() - started) * 1000,
        )
        return result

    # =========================================================================
    # Raw REST access (schema independent)
    # =========================================================================

    def _call(
        self,
        method: str,
        path: str,
        query: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        return self.api_client.call_api(
            path,
            method,
            query_params=list((query or {}).items()),
            header_params=dict(_JSON_HEADERS),
            body=body,
            response_type="object",
            auth_settings=["BearerToken"],
            _return_http_data_only=True,
            _request_timeout=self.settings.request_timeout_seconds,
        )

    async def get(self, path: str, query: dict[str, Any] | None = None) -> dict[str, Any]:
        """GET an object or list as a plain dict."""
        return await self._run(f"GET {path}", self._call, "GET", path, query)

    async def put(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        """Replace an object.

        Conditional when `body.metadata.resourceVersion` is set; a stale
        version raises ConflictError.
        """
        return await self._run(f"PUT {path}", self._call, "PUT", path, None, body)

    def list_function(self, path: str, **fixed_query: Any) -> Callable[..., Any]:
        """Build a list callable usable with `kubernetes.watch.Watch.stream`.

        Objects are returned as plain dicts so both request schemas share
        one code path.
        """

        def list_objects(**kwargs: Any) -> Any:
            query = dict(fixed_query)
            for arg, param in _WATCH_QUERY_PARAMS.items():
                value = kwargs.get(arg)
                if value is not None:
                    query[param] = str(value).lower() if isinstance(value, bool) else value
            return self.api_client.call_api(
                path,
                "GET",
                query_params=list(query.items()),
                header_params={"Accept": "application/json"},
                response_type="object",
                auth_settings=["BearerToken"],
                _return_http_data_only=True,
                _preload_content=kwargs.get("_preload_content", True),
                _request_timeout=kwargs.get("_request_timeout"),
            )

        return list_objects

    # =========================================================================
    # Typed APIs
    # =========================================================================

    async def get_api_groups(self) -> client.V1APIGroupList:
        """List served API groups and versions."""

        def get_api_versions() -> client.V1APIGroupList:
            return client.ApisApi(self.api_client).get_api_versions(
                _request_timeout=self.settings.request_timeout_seconds
            )

        return await self._run("discovery", get_api_versions)

    async def create_subject_access_review(
        self, body: client.V1SubjectAccessReview
    ) -> client.V1SubjectAccessReview:
        """Ask the hub authorizer whether a user may perform an action."""

        def create() -> client.V1SubjectAccessReview:
            return client.AuthorizationV1Api(self.api_client).create_subject_access_review(
                body, _request_timeout=self.settings.request_timeout_seconds
            )

        return await self._run("subjectaccessreview", create)
