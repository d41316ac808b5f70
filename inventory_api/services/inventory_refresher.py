"""Periodic population of ``ClusterInventory`` from the control plane.

Reads SveltosClusters, CAPI Clusters, ClusterConfigurations and
ClusterSummaries with the service credential and swaps in fresh snapshots.
A failed poll keeps the previous snapshot.
"""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from kubernetes import client
from kubernetes.client.rest import ApiException

from inventory_api.models import ClusterRef, ClusterType
from inventory_api.schemas.inventory import (
    ClusterFeatureSummary,
    ClusterInfo,
    ClusterProfileStatus,
    HelmRelease,
    Resource,
)
from inventory_api.services.inventory import ClusterInventory

logger = structlog.get_logger(__name__)

SVELTOS_GROUP = "lib.projectsveltos.io"
CAPI_GROUP = "cluster.x-k8s.io"
CONFIG_GROUP = "config.projectsveltos.io"
API_VERSION = "v1beta1"

CLUSTER_NAME_LABEL = "projectsveltos.io/cluster-name"
CLUSTER_TYPE_LABEL = "projectsveltos.io/cluster-type"
CLUSTER_PROFILE_NAME_LABEL = "projectsveltos.io/cluster-profile-name"
PROFILE_NAME_LABEL = "projectsveltos.io/profile-name"


def _metadata(obj: dict[str, Any]) -> dict[str, Any]:
    return obj.get("metadata") or {}


def sveltos_cluster_info(obj: dict[str, Any]) -> ClusterInfo:
    status = obj.get("status") or {}
    return ClusterInfo(
        labels=_metadata(obj).get("labels") or {},
        version=status.get("version") or "",
        ready=bool(status.get("ready")),
        failure_message=status.get("failureMessage"),
    )


def capi_cluster_info(obj: dict[str, Any]) -> ClusterInfo:
    spec = obj.get("spec") or {}
    status = obj.get("status") or {}
    topology = spec.get("topology") or {}
    return ClusterInfo(
        labels=_metadata(obj).get("labels") or {},
        version=topology.get("version") or "",
        ready=bool(status.get("controlPlaneReady")),
        failure_message=status.get("failureMessage"),
    )


def _cluster_ref_from_labels(obj: dict[str, Any]) -> ClusterRef | None:
    meta = _metadata(obj)
    labels = meta.get("labels") or {}
    name = labels.get(CLUSTER_NAME_LABEL)
    cluster_type = ClusterType.parse(labels.get(CLUSTER_TYPE_LABEL) or "")
    if not name or cluster_type is None or not meta.get("namespace"):
        return None
    return ClusterRef(namespace=meta["namespace"], name=name, cluster_type=cluster_type)


def _features(entry: dict[str, Any]) -> list[dict[str, Any]]:
    return entry.get("features") or entry.get("Features") or []


def deployments_from_configuration(obj: dict[str, Any]) -> tuple[list[HelmRelease], list[Resource]]:
    """Helm releases and resources recorded in one ClusterConfiguration."""
    status = obj.get("status") or {}
    owners: list[tuple[str, dict[str, Any]]] = []
    for entry in status.get("clusterProfileResources") or []:
        owners.append((f"ClusterProfile/{entry.get('clusterProfileName', '')}", entry))
    for entry in status.get("profileResources") or []:
        owners.append((f"Profile/{entry.get('profileName', '')}", entry))

    releases: list[HelmRelease] = []
    resources: dict[tuple[str, str, str, str], Resource] = {}
    for profile_name, entry in owners:
        for feature in _features(entry):
            for chart in feature.get("charts") or []:
                releases.append(
                    HelmRelease(
                        repo_url=chart.get("repoURL", ""),
                        release_name=chart.get("releaseName", ""),
                        namespace=chart.get("namespace", ""),
                        chart_version=chart.get("chartVersion", ""),
                        icon=chart.get("icon", ""),
                        last_applied_time=chart.get("lastAppliedTime"),
                        profile_name=profile_name,
                    )
                )
            for res in feature.get("resources") or []:
                key = (res.get("group", ""), res.get("kind", ""), res.get("namespace", ""), res.get("name", ""))
                existing = resources.get(key)
                if existing is not None:
                    if profile_name not in existing.profile_names:
                        existing.profile_names.append(profile_name)
                    continue
                resources[key] = Resource(
                    name=res.get("name", ""),
                    namespace=res.get("namespace", ""),
                    group=res.get("group", ""),
                    kind=res.get("kind", ""),
                    version=res.get("version", ""),
                    last_applied_time=res.get("lastAppliedTime"),
                    profile_names=[profile_name],
                )
    return releases, list(resources.values())


def profile_status_from_summary(obj: dict[str, Any]) -> tuple[ClusterRef, ClusterProfileStatus] | None:
    spec = obj.get("spec") or {}
    cluster_type = ClusterType.parse(spec.get("clusterType") or "")
    if cluster_type is None or not spec.get("clusterNamespace") or not spec.get("clusterName"):
        return None
    ref = ClusterRef(namespace=spec["clusterNamespace"], name=spec["clusterName"], cluster_type=cluster_type)

    labels = _metadata(obj).get("labels") or {}
    if CLUSTER_PROFILE_NAME_LABEL in labels:
        profile_type, profile_name = "ClusterProfile", labels[CLUSTER_PROFILE_NAME_LABEL]
    elif PROFILE_NAME_LABEL in labels:
        profile_type, profile_name = "Profile", labels[PROFILE_NAME_LABEL]
    else:
        return None

    summaries = [
        ClusterFeatureSummary(
            feature_id=item.get("featureID", ""),
            status=item.get("status", ""),
            failure_message=item.get("failureMessage"),
        )
        for item in (obj.get("status") or {}).get("featureSummaries") or []
    ]
    return ref, ClusterProfileStatus(
        profile_name=profile_name,
        profile_type=profile_type,
        cluster_type=cluster_type,
        cluster_namespace=ref.namespace,
        cluster_name=ref.name,
        summary=summaries,
    )


class InventoryRefresher:
    def __init__(
        self,
        inventory: ClusterInventory,
        api_client_provider: Callable[[], Awaitable[client.ApiClient]],
        interval_seconds: int = 30,
        request_timeout_seconds: float = 10.0,
    ) -> None:
        self._inventory = inventory
        self._api_client_provider = api_client_provider
        self._interval = max(1, interval_seconds)
        self._timeout = request_timeout_seconds

    async def _list(self, group: str, plural: str) -> list[dict[str, Any]]:
        api = client.CustomObjectsApi(await self._api_client_provider())

        def _do() -> list[dict[str, Any]]:
            resp = api.list_cluster_custom_object(group, API_VERSION, plural, _request_timeout=self._timeout)
            return list(resp.get("items") or [])

        try:
            return await asyncio.to_thread(_do)
        except ApiException as exc:
            if exc.status == 404:
                # CRD not installed on this management cluster
                logger.info("inventory.kind_missing", group=group, plural=plural)
                return []
            raise

    async def refresh_once(self) -> None:
        sveltos = await self._list(SVELTOS_GROUP, "sveltosclusters")
        capi = await self._list(CAPI_GROUP, "clusters")
        configurations = await self._list(CONFIG_GROUP, "clusterconfigurations")
        summaries = await self._list(CONFIG_GROUP, "clustersummaries")

        for cluster_type, items, to_info in (
            (ClusterType.SVELTOS, sveltos, sveltos_cluster_info),
            (ClusterType.CAPI, capi, capi_cluster_info),
        ):
            clusters = {
                ClusterRef(namespace=_metadata(obj)["namespace"], name=_metadata(obj)["name"], cluster_type=cluster_type): to_info(obj)
                for obj in items
                if _metadata(obj).get("namespace") and _metadata(obj).get("name")
            }
            self._inventory.replace_clusters(cluster_type, clusters)

        helm_releases: dict[ClusterRef, list[HelmRelease]] = {}
        resources: dict[ClusterRef, list[Resource]] = {}
        for obj in configurations:
            ref = _cluster_ref_from_labels(obj)
            if ref is None:
                continue
            releases, deployed = deployments_from_configuration(obj)
            helm_releases.setdefault(ref, []).extend(releases)
            resources.setdefault(ref, []).extend(deployed)
        self._inventory.replace_deployments(helm_releases, resources)

        statuses: dict[ClusterRef, list[ClusterProfileStatus]] = {}
        for obj in summaries:
            parsed = profile_status_from_summary(obj)
            if parsed is None:
                continue
            ref, status = parsed
            statuses.setdefault(ref, []).append(status)
        self._inventory.replace_profile_statuses(statuses)

        logger.info(
            "inventory.refreshed",
            sveltos_clusters=len(sveltos),
            capi_clusters=len(capi),
            cluster_configurations=len(configurations),
            cluster_summaries=len(summaries),
        )

    async def run(self, stop_event: asyncio.Event) -> None:
        logger.info("inventory.refresher_started", interval_seconds=self._interval)
        while not stop_event.is_set():
            try:
                await self.refresh_once()
            except Exception as exc:
                logger.exception("inventory.refresh_failed", error=str(exc))

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                continue
        logger.info("inventory.refresher_stopped")
