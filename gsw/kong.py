from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx


class KongError(Exception):
    """A Kong Admin API call failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class KongNotFound(KongError):
    pass


def _seg(value: str) -> str:
    return quote(value, safe=":")


class KongAdmin:
    """Thin client for the parts of the Kong Admin API the watcher uses.

    Entities are plain dicts as returned by Kong. 404 raises KongNotFound,
    any other failure (HTTP status or transport) raises KongError.
    """

    def __init__(self, base_url: str, timeout_s: float = 10.0, transport: httpx.BaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self._http = httpx.Client(
            base_url=self.base_url,
            timeout=timeout_s,
            follow_redirects=False,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    @property
    def is_closed(self) -> bool:
        return self._http.is_closed

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any] | None:
        try:
            resp = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise KongError(f"{method} {path}: {type(e).__name__}: {e}") from e
        if resp.status_code == 404:
            raise KongNotFound(f"{method} {path}: not found", 404)
        if resp.status_code >= 400:
            raise KongError(f"{method} {path}: HTTP {resp.status_code}: {resp.text}", resp.status_code)
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise KongError(f"{method} {path}: invalid JSON response", resp.status_code) from e

    def _list(self, path: str, tag: str | None = None) -> list[dict[str, Any]]:
        """Collect every page of a Kong list endpoint."""
        out: list[dict[str, Any]] = []
        params = {"tags": tag} if tag else None
        next_path: str | None = path
        while next_path:
            page = self._request("GET", next_path, params=params) or {}
            out.extend(page.get("data") or [])
            next_path = page.get("next")
            # "next" already carries the query string
            params = None
        return out

    # Plugins
    def list_plugins(self) -> list[dict[str, Any]]:
        return self._list("/plugins")

    def create_plugin(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/plugins", json=payload) or {}

    # Upstreams
    def list_upstreams(self, tag: str | None = None) -> list[dict[str, Any]]:
        return self._list("/upstreams", tag)

    def get_upstream(self, name_or_id: str) -> dict[str, Any]:
        return self._request("GET", f"/upstreams/{_seg(name_or_id)}") or {}

    def create_upstream(self, name: str, tags: list[str]) -> dict[str, Any]:
        return self._request("POST", "/upstreams", json={"name": name, "tags": tags}) or {}

    # Targets
    def list_targets(self, upstream: str, tag: str | None = None) -> list[dict[str, Any]]:
        return self._list(f"/upstreams/{_seg(upstream)}/targets", tag)

    def create_target(self, upstream: str, target: str, tags: list[str]) -> dict[str, Any]:
        return self._request("POST", f"/upstreams/{_seg(upstream)}/targets", json={"target": target, "tags": tags}) or {}

    def delete_target(self, upstream: str, target: str) -> None:
        self._request("DELETE", f"/upstreams/{_seg(upstream)}/targets/{_seg(target)}")

    # Services
    def get_service(self, name_or_id: str) -> dict[str, Any]:
        return self._request("GET", f"/services/{_seg(name_or_id)}") or {}

    def create_service(self, name: str, host: str, tags: list[str]) -> dict[str, Any]:
        return self._request("POST", "/services", json={"name": name, "host": host, "tags": tags}) or {}

    def update_service(self, name_or_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        return self._request("PATCH", f"/services/{_seg(name_or_id)}", json=changes) or {}

    # Routes
    def list_routes(self, service: str) -> list[dict[str, Any]]:
        return self._list(f"/services/{_seg(service)}/routes")

    def create_route(self, service: str, paths: list[str], tags: list[str]) -> dict[str, Any]:
        return self._request("POST", f"/services/{_seg(service)}/routes", json={"paths": paths, "tags": tags}) or {}

    def delete_route(self, route_id: str) -> None:
        self._request("DELETE", f"/routes/{_seg(route_id)}")
