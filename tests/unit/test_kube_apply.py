"""Unit tests for the cluster applier, with the Kubernetes APIs faked out."""

import json
import logging
from unittest.mock import MagicMock

import pytest
import structlog
from kubernetes.client.rest import ApiException
from urllib3.exceptions import MaxRetryError

from tenant_rbac.core.logging import JSONFormatter, _configure_structlog
from tenant_rbac.exceptions import TenantValidationError
from tenant_rbac.schemas.values import TenantConfig
from tenant_rbac.services import kube_apply
from tenant_rbac.services.expander import expand
from tenant_rbac.services.kube_apply import ClusterApplier


@pytest.fixture
def core_v1():
    return MagicMock(name="CoreV1Api")


@pytest.fixture
def rbac_v1():
    return MagicMock(name="RbacAuthorizationV1Api")


@pytest.fixture
def applier(settings, core_v1, rbac_v1):
    return ClusterApplier(settings, core_v1=core_v1, rbac_v1=rbac_v1)


class TestApply:
    @pytest.mark.asyncio
    async def test_creates_everything_in_order(self, applier, core_v1, rbac_v1, scenario_a_config, settings):
        outcomes = await applier.apply(expand(scenario_a_config, settings))

        assert [o.action for o in outcomes] == ["created"] * 7
        result = expand(scenario_a_config, settings)
        assert [(o.kind, o.namespace, o.name) for o in outcomes] == [
            (obj.kind, getattr(obj, "namespace", None), obj.name) for obj in result.objects
        ]
        assert outcomes[2].kind == "ClusterRoleBinding"
        assert outcomes[2].name.startswith("team1-team1-sg-view-")
        assert core_v1.create_namespace.call_count == 2
        assert rbac_v1.create_cluster_role_binding.call_count == 1
        assert rbac_v1.create_namespaced_role_binding.call_count == 4

        first_rb = rbac_v1.create_namespaced_role_binding.call_args_list[0].kwargs
        assert first_rb["namespace"] == "ns-1"
        assert first_rb["body"]["kind"] == "RoleBinding"
        assert first_rb["field_manager"] == "tenant-rbac"
        assert "dry_run" not in first_rb

    @pytest.mark.asyncio
    async def test_conflict_replaces(self, applier, core_v1, scenario_a_config, settings):
        core_v1.create_namespace.side_effect = ApiException(status=409, reason="Conflict")

        outcomes = await applier.apply(expand(scenario_a_config, settings))

        assert [o.action for o in outcomes[:2]] == ["replaced", "replaced"]
        assert core_v1.replace_namespace.call_count == 2
        assert core_v1.replace_namespace.call_args_list[1].kwargs["name"] == "ns-2"

    @pytest.mark.asyncio
    async def test_failure_is_reported_and_rest_continue(self, applier, rbac_v1, scenario_a_config, settings):
        rbac_v1.create_cluster_role_binding.side_effect = ApiException(status=403, reason="Forbidden")

        outcomes = await applier.apply(expand(scenario_a_config, settings))

        failed = [o for o in outcomes if o.action == "failed"]
        assert len(failed) == 1
        assert failed[0].kind == "ClusterRoleBinding"
        assert failed[0].message == "403 Forbidden"
        assert sum(1 for o in outcomes if o.action == "created") == 6

    @pytest.mark.asyncio
    async def test_dry_run(self, applier, core_v1, scenario_a_config, settings):
        await applier.apply(expand(scenario_a_config, settings), dry_run=True)
        assert core_v1.create_namespace.call_args.kwargs["dry_run"] == "All"

    @pytest.mark.asyncio
    async def test_refuses_invalid_result(self, applier, core_v1, settings):
        config = TenantConfig.model_validate(
            {"tenant": "t", "namespaces": {"install": ["ns-1"], "exists": ["ns-1"]}}
        )
        with pytest.raises(TenantValidationError) as info:
            await applier.apply(expand(config, settings))
        assert info.value.status_code == 422
        assert info.value.details["diagnostics"][0]["kind"] == "DuplicateNamespace"
        core_v1.create_namespace.assert_not_called()


@pytest.fixture
def json_logging(monkeypatch):
    _configure_structlog(json_output=True)
    monkeypatch.setattr(kube_apply, "logger", structlog.get_logger(kube_apply.__name__))
    yield
    _configure_structlog(json_output=False)


class TestFailures:
    @pytest.mark.asyncio
    async def test_api_error_with_json_logging(self, json_logging, applier, rbac_v1, scenario_a_config, settings, caplog):
        rbac_v1.create_cluster_role_binding.side_effect = ApiException(status=403, reason="Forbidden")

        with caplog.at_level(logging.WARNING):
            outcomes = await applier.apply(expand(scenario_a_config, settings))

        failed = [o for o in outcomes if o.action == "failed"]
        assert len(failed) == 1
        assert len(outcomes) == 7
        records = [r for r in caplog.records if r.getMessage() == "applier.object_failed"]
        assert len(records) == 1
        line = json.loads(JSONFormatter().format(records[0]))
        assert line["object_name"] == failed[0].name
        assert line["kind"] == "ClusterRoleBinding"
        assert line["error"] == "403 Forbidden"

    @pytest.mark.asyncio
    async def test_unreachable_api_server(self, applier, core_v1, rbac_v1, scenario_a_config, settings):
        core_v1.create_namespace.side_effect = MaxRetryError(None, "/api/v1/namespaces")
        rbac_v1.create_namespaced_role_binding.side_effect = ConnectionRefusedError(111, "Connection refused")

        outcomes = await applier.apply(expand(scenario_a_config, settings))

        assert [o.action for o in outcomes] == ["failed", "failed", "created", "failed", "failed", "failed", "failed"]
        assert outcomes[0].message.startswith("MaxRetryError: ")
        assert outcomes[3].message.startswith("ConnectionRefusedError: ")
        core_v1.replace_namespace.assert_not_called()
