"""Tests for inventory population from custom resources."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from inventory_api.models import ClusterRef, ClusterType, Unrestricted
from inventory_api.services.inventory import ClusterInventory
from inventory_api.services.inventory_refresher import (
    InventoryRefresher,
    capi_cluster_info,
    deployments_from_configuration,
    profile_status_from_summary,
    sveltos_cluster_info,
)

from .conftest import FakePermissionChecker

SVELTOS_CLUSTER = {
    "metadata": {"namespace": "team-a", "name": "c1", "labels": {"env": "prod"}},
    "status": {"version": "v1.29.0", "ready": True},
}

CAPI_CLUSTER = {
    "metadata": {"namespace": "production", "name": "prod-eu", "labels": {"env": "prod"}},
    "spec": {"topology": {"version": "v1.30.1"}},
    "status": {"controlPlaneReady": False, "failureMessage": "machine provisioning failed"},
}

CLUSTER_CONFIGURATION = {
    "metadata": {
        "namespace": "team-a",
        "name": "sveltos--c1",
        "labels": {"projectsveltos.io/cluster-name": "c1", "projectsveltos.io/cluster-type": "Sveltos"},
    },
    "status": {
        "clusterProfileResources": [
            {
                "clusterProfileName": "base",
                "Features": [
                    {
                        "featureID": "Helm",
                        "charts": [
                            {
                                "repoURL": "https://charts.jetstack.io",
                                "releaseName": "cert-manager",
                                "namespace": "cert-manager",
                                "chartVersion": "v1.14.0",
                                "lastAppliedTime": "2024-03-01T10:00:00Z",
                            }
                        ],
                    },
                    {
                        "featureID": "Resources",
                        "resources": [
                            {"name": "web", "kind": "Namespace", "group": "", "version": "v1"},
                        ],
                    },
                ],
            }
        ],
        "profileResources": [
            {
                "profileName": "web",
                "features": [
                    {
                        "featureID": "Resources",
                        "resources": [
                            {"name": "web", "kind": "Namespace", "group": "", "version": "v1"},
                            {"name": "nginx", "namespace": "web", "kind": "Deployment", "group": "apps", "version": "v1"},
                        ],
                    }
                ],
            }
        ],
    },
}

CLUSTER_SUMMARY = {
    "metadata": {
        "namespace": "team-a",
        "name": "base-sveltos-c1",
        "labels": {"projectsveltos.io/cluster-profile-name": "base"},
    },
    "spec": {"clusterNamespace": "team-a", "clusterName": "c1", "clusterType": "Sveltos"},
    "status": {
        "featureSummaries": [
            {"featureID": "Helm", "status": "Provisioned"},
            {"featureID": "Resources", "status": "Failed", "failureMessage": "conflict"},
        ]
    },
}


class TestParsing:
    def test_sveltos_cluster_info(self) -> None:
        info = sveltos_cluster_info(SVELTOS_CLUSTER)
        assert info.version == "v1.29.0"
        assert info.ready is True
        assert info.labels == {"env": "prod"}

    def test_capi_cluster_info(self) -> None:
        info = capi_cluster_info(CAPI_CLUSTER)
        assert info.version == "v1.30.1"
        assert info.ready is False
        assert info.failure_message == "machine provisioning failed"

    def test_deployments(self) -> None:
        releases, resources = deployments_from_configuration(CLUSTER_CONFIGURATION)
        (release,) = releases
        assert release.release_name == "cert-manager"
        assert release.repo_url == "https://charts.jetstack.io"
        assert release.profile_name == "ClusterProfile/base"

        by_name = {r.name: r for r in resources}
        assert set(by_name) == {"web", "nginx"}
        assert by_name["web"].profile_names == ["ClusterProfile/base", "Profile/web"]
        assert by_name["nginx"].profile_names == ["Profile/web"]

    def test_empty_configuration(self) -> None:
        assert deployments_from_configuration({"metadata": {}}) == ([], [])

    def test_profile_status(self) -> None:
        ref, status = profile_status_from_summary(CLUSTER_SUMMARY)
        assert ref == ClusterRef("team-a", "c1", ClusterType.SVELTOS)
        assert (status.profile_type, status.profile_name) == ("ClusterProfile", "base")
        assert [(s.feature_id, s.status) for s in status.summary] == [("Helm", "Provisioned"), ("Resources", "Failed")]

    def test_profile_status_without_owner_label(self) -> None:
        summary = {**CLUSTER_SUMMARY, "metadata": {"namespace": "team-a", "name": "x", "labels": {}}}
        assert profile_status_from_summary(summary) is None


@pytest.fixture
def custom_objects(monkeypatch) -> MagicMock:
    listed = {
        "sveltosclusters": [SVELTOS_CLUSTER],
        "clusters": [CAPI_CLUSTER],
        "clusterconfigurations": [CLUSTER_CONFIGURATION],
        "clustersummaries": [CLUSTER_SUMMARY],
    }

    def _list(group, version, plural, **kwargs):
        return {"items": listed[plural]}

    api = MagicMock(name="CustomObjectsApi")
    api.list_cluster_custom_object.side_effect = _list
    monkeypatch.setattr(client, "CustomObjectsApi", MagicMock(return_value=api))
    return api


async def _api_client() -> MagicMock:
    return MagicMock(name="ApiClient")


def test_refresh_once_populates_inventory(custom_objects) -> None:
    inventory = ClusterInventory(FakePermissionChecker())
    asyncio.run(InventoryRefresher(inventory, _api_client).refresh_once())

    sveltos = asyncio.run(inventory.get_clusters(ClusterType.SVELTOS, Unrestricted()))
    capi = asyncio.run(inventory.get_clusters(ClusterType.CAPI, Unrestricted()))
    ref = ClusterRef("team-a", "c1", ClusterType.SVELTOS)
    assert list(sveltos) == [ref]
    assert list(capi) == [ClusterRef("production", "prod-eu", ClusterType.CAPI)]
    assert len(asyncio.run(inventory.get_helm_releases(ref))) == 1
    assert len(asyncio.run(inventory.get_resources(ref))) == 2
    assert len(asyncio.run(inventory.get_profile_statuses(ref))) == 1


def test_missing_kind_is_skipped(custom_objects) -> None:
    def _list(group, version, plural, **kwargs):
        if plural == "clusters":
            raise ApiException(status=404, reason="Not Found")
        return {"items": []}

    custom_objects.list_cluster_custom_object.side_effect = _list
    inventory = ClusterInventory(FakePermissionChecker())
    asyncio.run(InventoryRefresher(inventory, _api_client).refresh_once())
    assert asyncio.run(inventory.get_clusters(ClusterType.CAPI, Unrestricted())) == {}


def test_failed_poll_keeps_previous_snapshot(custom_objects) -> None:
    inventory = ClusterInventory(FakePermissionChecker())
    refresher = InventoryRefresher(inventory, _api_client)
    asyncio.run(refresher.refresh_once())

    custom_objects.list_cluster_custom_object.side_effect = ApiException(status=500)
    with pytest.raises(ApiException):
        asyncio.run(refresher.refresh_once())
    assert len(asyncio.run(inventory.get_clusters(ClusterType.SVELTOS, Unrestricted()))) == 1


def test_run_stops_on_event(custom_objects) -> None:
    inventory = ClusterInventory(FakePermissionChecker())
    refresher = InventoryRefresher(inventory, _api_client, interval_seconds=60)

    async def _run_once() -> None:
        stop = asyncio.Event()
        task = asyncio.create_task(refresher.run(stop))
        await asyncio.sleep(0.2)
        stop.set()
        await asyncio.wait_for(task, timeout=1)

    asyncio.run(_run_once())
    assert custom_objects.list_cluster_custom_object.call_count == 4
