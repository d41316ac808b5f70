from __future__ import annotations

import asyncio
import threading
from collections.abc import Mapping, Sequence

import structlog

from inventory_api.models import ClusterRef, ClusterType, ListAccess, RestrictedTo, Unrestricted
from inventory_api.schemas.inventory import ClusterInfo, ClusterProfileStatus, HelmRelease, Resource
from inventory_api.services.collaborators import PermissionChecker

logger = structlog.get_logger(__name__)

# Upper bound on concurrent per-cluster "get" checks for one restricted listing
MAX_CONCURRENT_CHECKS = 8


class ClusterInventory:
    """In-memory cache of clusters and what is deployed on them.

    Writers replace whole snapshots; readers grab the current snapshot under
    the lock and work on it without holding the lock, so no lock is ever held
    across a permission check.
    """

    def __init__(self, permissions: PermissionChecker) -> None:
        self._permissions = permissions
        self._lock = threading.Lock()
        self._clusters: dict[ClusterType, dict[ClusterRef, ClusterInfo]] = {t: {} for t in ClusterType}
        self._helm_releases: dict[ClusterRef, tuple[HelmRelease, ...]] = {}
        self._resources: dict[ClusterRef, tuple[Resource, ...]] = {}
        self._profile_statuses: dict[ClusterRef, tuple[ClusterProfileStatus, ...]] = {}

    # -- writers ---------------------------------------------------------

    def replace_clusters(self, cluster_type: ClusterType, clusters: Mapping[ClusterRef, ClusterInfo]) -> None:
        snapshot = {ref: info for ref, info in clusters.items() if ref.cluster_type is cluster_type}
        with self._lock:
            self._clusters[cluster_type] = snapshot

    def upsert_cluster(self, ref: ClusterRef, info: ClusterInfo) -> None:
        with self._lock:
            snapshot = dict(self._clusters[ref.cluster_type])
            snapshot[ref] = info
            self._clusters[ref.cluster_type] = snapshot

    def remove_cluster(self, ref: ClusterRef) -> None:
        with self._lock:
            snapshot = dict(self._clusters[ref.cluster_type])
            snapshot.pop(ref, None)
            self._clusters[ref.cluster_type] = snapshot
            self._helm_releases = {k: v for k, v in self._helm_releases.items() if k != ref}
            self._resources = {k: v for k, v in self._resources.items() if k != ref}
            self._profile_statuses = {k: v for k, v in self._profile_statuses.items() if k != ref}

    def replace_deployments(
        self,
        helm_releases: Mapping[ClusterRef, Sequence[HelmRelease]],
        resources: Mapping[ClusterRef, Sequence[Resource]],
    ) -> None:
        helm_snapshot = {ref: tuple(items) for ref, items in helm_releases.items()}
        resource_snapshot = {ref: tuple(items) for ref, items in resources.items()}
        with self._lock:
            self._helm_releases = helm_snapshot
            self._resources = resource_snapshot

    def replace_profile_statuses(self, statuses: Mapping[ClusterRef, Sequence[ClusterProfileStatus]]) -> None:
        snapshot = {ref: tuple(items) for ref, items in statuses.items()}
        with self._lock:
            self._profile_statuses = snapshot

    # -- readers ---------------------------------------------------------

    async def get_clusters(self, cluster_type: ClusterType, access: ListAccess) -> Mapping[ClusterRef, ClusterInfo]:
        """Clusters of ``cluster_type`` the caller may see.

        Unrestricted callers get everything. Restricted callers get only the
        clusters for which a ``get`` check on their identity succeeds.
        """
        with self._lock:
            snapshot = self._clusters[cluster_type]

        if isinstance(access, Unrestricted):
            return dict(snapshot)
        if not isinstance(access, RestrictedTo):
            raise TypeError(f"unsupported access scope: {access!r}")

        semaphore = asyncio.Semaphore(MAX_CONCURRENT_CHECKS)

        async def _visible(ref: ClusterRef) -> bool:
            async with semaphore:
                return await self._permissions.is_allowed(
                    access.identity,
                    "get",
                    ref.cluster_type,
                    namespace=ref.namespace,
                    name=ref.name,
                )

        refs = list(snapshot)
        verdicts = await asyncio.gather(*(_visible(ref) for ref in refs))
        visible = {ref: snapshot[ref] for ref, allowed in zip(refs, verdicts) if allowed}
        logger.debug(
            "inventory.restricted_listing",
            username=access.identity.username,
            cluster_type=cluster_type.value,
            total=len(refs),
            visible=len(visible),
        )
        return visible

    async def get_helm_releases(self, cluster: ClusterRef) -> Sequence[HelmRelease]:
        with self._lock:
            return list(self._helm_releases.get(cluster, ()))

    async def get_resources(self, cluster: ClusterRef) -> Sequence[Resource]:
        with self._lock:
            return list(self._resources.get(cluster, ()))

    async def get_profile_statuses(self, cluster: ClusterRef) -> Sequence[ClusterProfileStatus]:
        with self._lock:
            return list(self._profile_statuses.get(cluster, ()))
