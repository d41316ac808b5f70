"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from inventory_api.dependencies import get_identity_provider, get_inventory_manager, get_permission_checker
from inventory_api.main import app
from inventory_api.models import ClusterRef, ClusterType, Identity
from inventory_api.schemas.inventory import (
    ClusterFeatureSummary,
    ClusterInfo,
    ClusterProfileStatus,
    HelmRelease,
    Resource,
)
from inventory_api.services.collaborators import CollaboratorError, TokenRejected
from inventory_api.services.inventory import ClusterInventory

ADMIN_TOKEN = "admin-token"
TENANT_TOKEN = "tenant-token"
NOBODY_TOKEN = "nobody-token"
BROKEN_TOKEN = "broken-token"


class FakeIdentityProvider:
    def __init__(self, identities: dict[str, Identity]) -> None:
        self.identities = identities
        self.calls: list[str] = []

    async def whoami(self, token: str) -> Identity:
        self.calls.append(token)
        if token == BROKEN_TOKEN:
            raise CollaboratorError("connection refused")
        if token not in self.identities:
            raise TokenRejected("unknown token")
        return self.identities[token]


class FakePermissionChecker:
    """Grants ``list`` per (user, kind) and ``get`` per (user, kind, namespace, name)."""

    def __init__(self) -> None:
        self.list_grants: set[tuple[str, ClusterType]] = set()
        self.get_grants: set[tuple[str, ClusterType, str, str]] = set()
        self.calls: list[tuple[str, str, ClusterType, str | None, str | None]] = []
        self.fail = False

    def allow_list(self, username: str, cluster_type: ClusterType) -> None:
        self.list_grants.add((username, cluster_type))

    def allow_get(self, username: str, ref: ClusterRef) -> None:
        self.get_grants.add((username, ref.cluster_type, ref.namespace, ref.name))

    async def is_allowed(self, identity, verb, cluster_type, namespace=None, name=None) -> bool:
        self.calls.append((identity.username, verb, cluster_type, namespace, name))
        if self.fail:
            raise CollaboratorError("permission system unavailable")
        if verb == "list":
            return (identity.username, cluster_type) in self.list_grants
        if verb == "get":
            if (identity.username, cluster_type) in self.list_grants:
                return True
            return (identity.username, cluster_type, namespace, name) in self.get_grants
        return False


TEAM_A_C1 = ClusterRef("team-a", "c1", ClusterType.SVELTOS)
TEAM_B_C2 = ClusterRef("team-b", "c2", ClusterType.SVELTOS)
PRODUCTION = ClusterRef("production", "prod-eu", ClusterType.CAPI)
STAGING = ClusterRef("staging", "stage-eu", ClusterType.CAPI)


@pytest.fixture
def identities() -> dict[str, Identity]:
    return {
        ADMIN_TOKEN: Identity("admin", ("system:masters",)),
        TENANT_TOKEN: Identity("tenant"),
        NOBODY_TOKEN: Identity("nobody"),
    }


@pytest.fixture
def identity_provider(identities) -> FakeIdentityProvider:
    return FakeIdentityProvider(identities)


@pytest.fixture
def permissions() -> FakePermissionChecker:
    checker = FakePermissionChecker()
    checker.allow_list("admin", ClusterType.SVELTOS)
    checker.allow_list("admin", ClusterType.CAPI)
    checker.allow_get("tenant", TEAM_A_C1)
    checker.allow_get("tenant", PRODUCTION)
    return checker


@pytest.fixture
def inventory(permissions) -> ClusterInventory:
    inv = ClusterInventory(permissions)
    inv.replace_clusters(
        ClusterType.SVELTOS,
        {
            TEAM_A_C1: ClusterInfo(labels={"env": "prod", "region": "eu"}, version="v1.29.0", ready=True),
            TEAM_B_C2: ClusterInfo(labels={"env": "dev"}, version="v1.28.3", ready=True),
        },
    )
    inv.replace_clusters(
        ClusterType.CAPI,
        {
            PRODUCTION: ClusterInfo(labels={"env": "prod"}, version="v1.30.1", ready=True),
            STAGING: ClusterInfo(labels={"env": "staging"}, version="v1.30.1", ready=False),
        },
    )
    inv.replace_deployments(
        helm_releases={
            TEAM_A_C1: [
                HelmRelease(release_name="kyverno", namespace="kyverno", chart_version="3.1.4", profile_name="ClusterProfile/kyverno"),
                HelmRelease(release_name="cert-manager", namespace="cert-manager", chart_version="v1.14.0", profile_name="ClusterProfile/base"),
                HelmRelease(release_name="prometheus", namespace="monitoring", chart_version="25.0.0", profile_name="ClusterProfile/base"),
            ],
        },
        resources={
            TEAM_A_C1: [
                Resource(name="deny-latest", kind="ClusterPolicy", group="kyverno.io", version="v1"),
                Resource(name="nginx", namespace="web", kind="Deployment", group="apps", version="v1"),
                Resource(name="web", namespace="web", kind="Namespace", group="", version="v1"),
                Resource(name="api", namespace="web", kind="Deployment", group="apps", version="v1"),
            ],
        },
    )
    inv.replace_profile_statuses(
        {
            TEAM_A_C1: [
                ClusterProfileStatus(
                    profile_name="kyverno",
                    profile_type="ClusterProfile",
                    cluster_type=ClusterType.SVELTOS,
                    cluster_namespace="team-a",
                    cluster_name="c1",
                    summary=[
                        ClusterFeatureSummary(feature_id="Resources", status="Provisioned"),
                        ClusterFeatureSummary(feature_id="Helm", status="Failed", failure_message="chart not found"),
                    ],
                ),
                ClusterProfileStatus(
                    profile_name="base",
                    profile_type="ClusterProfile",
                    cluster_type=ClusterType.SVELTOS,
                    cluster_namespace="team-a",
                    cluster_name="c1",
                    summary=[
                        ClusterFeatureSummary(feature_id="Helm", status="FailedNonRetriable", failure_message="conflict"),
                        ClusterFeatureSummary(feature_id="Kustomize", status="Provisioning"),
                    ],
                ),
            ],
        }
    )
    return inv


@pytest.fixture
def client(identity_provider, permissions, inventory):
    app.dependency_overrides[get_identity_provider] = lambda: identity_provider
    app.dependency_overrides[get_permission_checker] = lambda: permissions
    app.dependency_overrides[get_inventory_manager] = lambda: inventory
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
