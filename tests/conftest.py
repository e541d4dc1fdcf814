"""
Shared test fixtures for tenant-rbac tests.
"""

import copy

import pytest

from tenant_rbac.config import Settings
from tenant_rbac.schemas.values import TenantConfig


TEAM1_SG_ID = "48102a86-5b1e-4f0a-9c2d-7e3f1a2b4c5d"
TEAM2_SG_ID = "39857f96-1c2d-4e3f-8a9b-0c1d2e3f4a5b"

SCENARIO_A = {
    "tenant": "team1",
    "namespaces": {"install": ["ns-1", "ns-2"], "exists": ["ns-3"]},
    "groups": [
        {
            "name": "team1-sg",
            "id": TEAM1_SG_ID,
            "bindings": [
                {"role": "view", "scope": "cluster"},
                {"role": "admin", "scope": "namespace", "namespaces": ["ns-1", "ns-2", "ns-3"]},
            ],
        },
        {
            "name": "team2-sg",
            "id": TEAM2_SG_ID,
            "bindings": [
                {"role": "view", "scope": "namespace", "namespaces": ["ns-1"]},
            ],
        },
    ],
}


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults only, independent of any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def scenario_a() -> dict:
    """The worked example from the multi-tenancy write-up, as a raw document."""
    return copy.deepcopy(SCENARIO_A)


@pytest.fixture
def scenario_a_config(scenario_a) -> TenantConfig:
    return TenantConfig.model_validate(scenario_a)
