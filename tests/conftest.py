import copy
import itertools
import json
import os as _os
import sys
from types import SimpleNamespace

import httpx
import pytest
from docker.errors import DockerException, NotFound

# Ensure project root is importable (so `import main` / `import cli` work without installing)
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from gsw import db  # noqa: E402
from gsw.kong import KongAdmin  # noqa: E402
from gsw.settings import Settings  # noqa: E402

PREFIX = "wisdom-oss"
TAG = "wisdom"


def service_labels(name="svc", upstream="up", path="/api", marker="true"):
    labels = {f"{PREFIX}.isService": marker}
    if name is not None:
        labels[f"{PREFIX}.service.name"] = name
    if upstream is not None:
        labels[f"{PREFIX}.service.upstream-name"] = upstream
    if path is not None:
        labels[f"{PREFIX}.service.path"] = path
    return labels


class FakeKong:
    """In-memory Kong Admin API, mounted through httpx.MockTransport."""

    def __init__(self, page_size=100):
        self.page_size = page_size
        self.upstreams = {}  # id -> entity
        self.targets = {}  # upstream id -> [entity]
        self.services = {}  # id -> entity
        self.routes = {}  # id -> entity
        self.plugins = []
        self.calls = []
        self.fail = {}  # (method, path) -> status
        self._ids = itertools.count(1)

    # helpers for tests
    def _new_id(self, kind):
        return f"{kind}-{next(self._ids)}"

    def add_upstream(self, name, tags=(TAG,)):
        uid = self._new_id("upstream")
        self.upstreams[uid] = {"id": uid, "name": name, "tags": list(tags)}
        self.targets[uid] = []
        return uid

    def add_target(self, upstream, target, tags=(TAG,)):
        u = self._find_upstream(upstream)
        entity = {"id": self._new_id("target"), "target": target, "weight": 100, "tags": list(tags), "upstream": {"id": u["id"]}}
        self.targets[u["id"]].append(entity)
        return entity

    def add_service(self, name, host, tags=(TAG,)):
        sid = self._new_id("service")
        self.services[sid] = {"id": sid, "name": name, "host": host, "port": 80, "protocol": "http", "tags": list(tags)}
        return sid

    def target_strings(self, upstream):
        u = self._find_upstream(upstream)
        if u is None:
            return []
        return sorted(t["target"] for t in self.targets[u["id"]])

    def routes_for(self, service):
        s = self._find_service(service)
        if s is None:
            return []
        return [r for r in self.routes.values() if r["service"]["id"] == s["id"]]

    def mutations(self):
        return [c for c in self.calls if c[0] != "GET"]

    def _find_upstream(self, key):
        for u in self.upstreams.values():
            if key in (u["id"], u["name"]):
                return u
        return None

    def _find_service(self, key):
        for s in self.services.values():
            if key in (s["id"], s["name"]):
                return s
        return None

    # transport
    def _page(self, path, items, params):
        tag = params.get("tags")
        if tag:
            items = [i for i in items if tag in (i.get("tags") or [])]
        offset = int(params.get("offset", 0))
        chunk = items[offset:offset + self.page_size]
        nxt = None
        if offset + self.page_size < len(items):
            nxt = f"{path}?offset={offset + self.page_size}"
            if tag:
                nxt += f"&tags={tag}"
        return httpx.Response(200, json={"data": copy.deepcopy(chunk), "next": nxt})

    def __call__(self, request):
        method = request.method
        path = request.url.path
        self.calls.append((method, path))
        if (method, path) in self.fail:
            return httpx.Response(self.fail[(method, path)], json={"message": "injected failure"})
        params = request.url.params
        body = json.loads(request.content) if request.content else {}
        parts = [p for p in path.split("/") if p]
        not_found = httpx.Response(404, json={"message": "Not found"})

        if parts == ["plugins"]:
            if method == "GET":
                return self._page(path, self.plugins, params)
            entity = {"id": self._new_id("plugin"), "service": None, "route": None, "consumer": None, **body}
            self.plugins.append(entity)
            return httpx.Response(201, json=entity)

        if parts[0] == "upstreams":
            if len(parts) == 1:
                if method == "GET":
                    return self._page(path, list(self.upstreams.values()), params)
                if self._find_upstream(body["name"]):
                    return httpx.Response(409, json={"message": "unique constraint violation"})
                uid = self.add_upstream(body["name"], body.get("tags") or [])
                return httpx.Response(201, json=self.upstreams[uid])
            u = self._find_upstream(parts[1])
            if u is None:
                return not_found
            if len(parts) == 2:
                return httpx.Response(200, json=u)
            targets = self.targets[u["id"]]
            if len(parts) == 3:
                if method == "GET":
                    return self._page(path, targets, params)
                target = body["target"] if ":" in body["target"] else f"{body['target']}:8000"
                if any(t["target"] == target for t in targets):
                    return httpx.Response(409, json={"message": "unique constraint violation"})
                return httpx.Response(201, json=self.add_target(u["id"], target, body.get("tags") or []))
            for t in list(targets):
                if parts[3] in (t["id"], t["target"]):
                    targets.remove(t)
                    return httpx.Response(204)
            return not_found

        if parts[0] == "services":
            if len(parts) == 1:
                if self._find_service(body["name"]):
                    return httpx.Response(409, json={"message": "unique constraint violation"})
                sid = self.add_service(body["name"], body["host"], body.get("tags") or [])
                return httpx.Response(201, json=self.services[sid])
            s = self._find_service(parts[1])
            if s is None:
                return not_found
            if len(parts) == 2:
                if method == "PATCH":
                    s.update(body)
                return httpx.Response(200, json=s)
            if method == "GET":
                return self._page(path, self.routes_for(s["id"]), params)
            rid = self._new_id("route")
            self.routes[rid] = {"id": rid, "paths": body["paths"], "tags": body.get("tags") or [], "service": {"id": s["id"]}}
            return httpx.Response(201, json=self.routes[rid])

        if parts[0] == "routes" and len(parts) == 2 and method == "DELETE":
            if self.routes.pop(parts[1], None) is None:
                return not_found
            return httpx.Response(204)

        return httpx.Response(405, json={"message": "Method not allowed"})


class _FakeContainers:
    def __init__(self, owner):
        self.owner = owner

    def list(self, all=False, filters=None):
        if self.owner.fail_list:
            raise DockerException("daemon unreachable")
        label = (filters or {}).get("label")
        out = []
        for cid, attrs in self.owner.attrs.items():
            if not all and attrs["State"]["Status"] != "running":
                continue
            if label:
                key, _, value = label.partition("=")
                labels = attrs["Config"]["Labels"] or {}
                if key not in labels or (value and labels[key] != value):
                    continue
            out.append(SimpleNamespace(id=cid))
        return out


class _FakeAPI:
    def __init__(self, owner):
        self.owner = owner

    def inspect_container(self, container_id):
        if container_id in self.owner.fail_inspect:
            raise DockerException("inspect failed")
        if container_id in self.owner.vanished or container_id not in self.owner.attrs:
            raise NotFound(f"No such container: {container_id}")
        return copy.deepcopy(self.owner.attrs[container_id])


class FakeDocker:
    """Just enough of docker.DockerClient for discovery and the reverse search."""

    def __init__(self):
        self.attrs = {}
        self.fail_list = False
        self.fail_inspect = set()
        self.vanished = set()  # listed, but gone by the time it is inspected
        self.containers = _FakeContainers(self)
        self.api = _FakeAPI(self)

    def add(self, cid, hostname=None, labels=None, status="running", health=None):
        state = {"Status": status}
        if health:
            state["Health"] = {"Status": health}
        self.attrs[cid] = {
            "Id": cid,
            "Name": f"/{cid}",
            "Config": {"Hostname": hostname or f"{cid}-hostname", "Labels": dict(labels or {})},
            "State": state,
        }
        return cid

    def set_state(self, cid, status=None, health=None):
        state = self.attrs[cid]["State"]
        if status:
            state["Status"] = status
        if health:
            state["Health"] = {"Status": health}

    def remove(self, cid):
        self.attrs.pop(cid, None)


@pytest.fixture(autouse=True)
def event_journal(tmp_path, monkeypatch):
    """Give every test its own event journal."""
    monkeypatch.setattr(db, "settings", Settings(db_path=str(tmp_path / "events.db")))
    db.init_db()
    return tmp_path / "events.db"


@pytest.fixture
def fake_kong():
    return FakeKong()


@pytest.fixture
def kong(fake_kong):
    client = KongAdmin("http://kong:8001", transport=httpx.MockTransport(fake_kong))
    yield client
    client.close()


@pytest.fixture
def fake_docker():
    return FakeDocker()
