"""Deterministic ordering and bounds-checked windows over query results.

Results are always sorted before they are windowed so that paging through the
same snapshot with increasing ``skip`` never repeats or drops a row.
"""
from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from inventory_api.exceptions import InvalidRange
from inventory_api.schemas.inventory import HelmRelease, ManagedCluster, ProfileStatusRow, Resource

T = TypeVar("T")

DEFAULT_LIMIT = 6


@dataclass(frozen=True)
class PageWindow:
    limit: int = DEFAULT_LIMIT
    skip: int = 0


def cluster_sort_key(cluster: ManagedCluster) -> tuple[str, str]:
    return cluster.namespace, cluster.name


def helm_release_sort_key(release: HelmRelease) -> tuple[str, str, str]:
    return release.namespace, release.release_name, release.chart_version


def resource_sort_key(resource: Resource) -> tuple[str, str, str, str]:
    return resource.group, resource.kind, resource.namespace, resource.name


def profile_status_sort_key(row: ProfileStatusRow) -> tuple[str, str, str, str, str, str]:
    return (
        row.profile_name,
        row.profile_type,
        row.cluster_type.value,
        row.cluster_namespace,
        row.cluster_name,
        row.feature_id,
    )


def sort_items(items: Iterable[T], key: Callable[[T], Any]) -> list[T]:
    # sorted() is stable, so equal keys keep inventory order
    return sorted(items, key=key)


def sort_clusters(clusters: Iterable[ManagedCluster]) -> list[ManagedCluster]:
    return sort_items(clusters, cluster_sort_key)


def sort_helm_releases(releases: Iterable[HelmRelease]) -> list[HelmRelease]:
    return sort_items(releases, helm_release_sort_key)


def sort_resources(resources: Iterable[Resource]) -> list[Resource]:
    return sort_items(resources, resource_sort_key)


def sort_profile_statuses(rows: Iterable[ProfileStatusRow]) -> list[ProfileStatusRow]:
    return sort_items(rows, profile_status_sort_key)


def window(items: Sequence[T], page: PageWindow) -> list[T]:
    """Return ``items[skip:skip+limit]``.

    Raises InvalidRange for negative bounds. Skipping past the end is not an
    error: clients probe beyond the last page and get an empty list back.
    """
    if page.limit < 0:
        raise InvalidRange("limit cannot be negative")
    if page.skip < 0:
        raise InvalidRange("skip cannot be negative")
    if page.skip >= len(items):
        return []
    return list(items[page.skip : min(page.skip + page.limit, len(items))])
