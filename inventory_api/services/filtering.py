from __future__ import annotations

from collections.abc import Mapping

from inventory_api.models import ClusterRef
from inventory_api.schemas.inventory import ClusterInfo, ManagedCluster
from inventory_api.services.query_params import ClusterFilters


def cluster_matches(ref: ClusterRef, info: ClusterInfo, filters: ClusterFilters) -> bool:
    if filters.namespace and filters.namespace not in ref.namespace:
        return False
    if filters.name and filters.name not in ref.name:
        return False
    if not filters.label_selector.empty() and not filters.label_selector.matches(info.labels):
        return False
    return True


def project(inventory: Mapping[ClusterRef, ClusterInfo], filters: ClusterFilters) -> list[ManagedCluster]:
    """Turn a cluster map into result rows, keeping only those matching ``filters``.

    The map must already be scoped to what the caller may see; nothing here
    checks permissions. Order of the returned rows is unspecified.
    """
    return [
        ManagedCluster(namespace=ref.namespace, name=ref.name, cluster_info=info)
        for ref, info in inventory.items()
        if cluster_matches(ref, info, filters)
    ]
