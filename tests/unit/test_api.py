"""Unit tests for the tenants API."""

from unittest.mock import MagicMock

import pytest
import yaml
from httpx import ASGITransport, AsyncClient

from tenant_rbac.api.routes.tenants import get_applier
from tenant_rbac.config import Settings, get_settings
from tenant_rbac.main import app
from tenant_rbac.services.kube_apply import ClusterApplier


@pytest.fixture(autouse=True)
def override_settings(settings):
    app.dependency_overrides[get_settings] = lambda: settings
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    transport = ASGITransport(app=app)
    return AsyncClient(transport=transport, base_url="http://test")


def _missing_list_doc():
    return {
        "tenant": "team1",
        "namespaces": {"install": ["ns-1"]},
        "groups": [{"name": "g1", "id": "gid", "bindings": [{"role": "admin", "scope": "namespace", "namespaces": []}]}],
    }


class TestExpand:
    @pytest.mark.asyncio
    async def test_expand_returns_manifests(self, client, scenario_a):
        async with client as c:
            resp = await c.post("/api/v1/tenants/expand", json=scenario_a)
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert resp.headers["X-Request-ID"] == body["request_id"]
        data = body["data"]
        assert data["tenant"] == "team1"
        assert len(data["objects"]) == 7
        assert data["objects"][2]["kind"] == "ClusterRoleBinding"
        assert data["diagnostics"] == []

    @pytest.mark.asyncio
    async def test_expand_rejects_invalid_tenant(self, client):
        async with client as c:
            resp = await c.post("/api/v1/tenants/expand", json=_missing_list_doc())
        assert resp.status_code == 422
        body = resp.json()
        assert body["success"] is False
        assert body["error"]["code"] == "TENANT_VALIDATION_ERROR"
        diagnostics = body["error"]["details"]["diagnostics"]
        assert [d["kind"] for d in diagnostics] == ["MissingNamespaceScopeList"]
        assert diagnostics[0]["path"] == "groups[0].bindings[0].namespaces"

    @pytest.mark.asyncio
    async def test_malformed_body(self, client):
        async with client as c:
            resp = await c.post("/api/v1/tenants/expand", json={"tenant": "t", "groups": "nope"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"
        errors = resp.json()["error"]["details"]["errors"]
        assert [e["path"] for e in errors] == ["groups"]

    @pytest.mark.asyncio
    async def test_malformed_nested_field_uses_document_path(self, client, scenario_a):
        scenario_a["groups"][1]["bindings"][0]["namespaces"] = {"ns-1": True}
        async with client as c:
            resp = await c.post("/api/v1/tenants/expand", json=scenario_a)
        assert resp.status_code == 422
        errors = resp.json()["error"]["details"]["errors"]
        assert errors[0]["path"] == "groups[1].bindings[0].namespaces"


class TestValidate:
    @pytest.mark.asyncio
    async def test_reports_without_failing(self, client):
        async with client as c:
            resp = await c.post("/api/v1/tenants/validate", json=_missing_list_doc())
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["valid"] is False
        assert data["diagnostics"][0]["severity"] == "error"

    @pytest.mark.asyncio
    async def test_valid(self, client, scenario_a):
        async with client as c:
            resp = await c.post("/api/v1/tenants/validate", json=scenario_a)
        assert resp.json()["data"] == {"tenant": "team1", "valid": True, "diagnostics": []}


class TestRender:
    @pytest.mark.asyncio
    async def test_render_yaml(self, client, scenario_a):
        async with client as c:
            resp = await c.post("/api/v1/tenants/render", json=scenario_a)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/yaml")
        docs = list(yaml.safe_load_all(resp.text))
        assert len(docs) == 7


class TestApply:
    @pytest.mark.asyncio
    async def test_disabled_by_default(self, client, scenario_a):
        async with client as c:
            resp = await c.post("/api/v1/tenants/apply", json=scenario_a)
        assert resp.status_code == 404
        assert resp.json()["error"]["message"] == "Cluster apply disabled"

    @pytest.mark.asyncio
    async def test_apply_when_enabled(self, client, scenario_a):
        enabled = Settings(_env_file=None, apply_enabled=True)
        core_v1, rbac_v1 = MagicMock(), MagicMock()
        app.dependency_overrides[get_settings] = lambda: enabled
        app.dependency_overrides[get_applier] = lambda: ClusterApplier(enabled, core_v1=core_v1, rbac_v1=rbac_v1)

        async with client as c:
            resp = await c.post("/api/v1/tenants/apply", params={"dry_run": "true"}, json=scenario_a)

        assert resp.status_code == 200
        outcomes = resp.json()["data"]
        assert len(outcomes) == 7
        assert {o["action"] for o in outcomes} == {"created"}
        assert core_v1.create_namespace.call_args.kwargs["dry_run"] == "All"


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        async with client as c:
            resp = await c.get("/health")
        assert resp.json()["data"] == {"status": "healthy"}
