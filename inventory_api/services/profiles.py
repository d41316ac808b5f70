from __future__ import annotations

from collections.abc import Iterable

from inventory_api.schemas.inventory import ClusterProfileStatus, ProfileStatusRow

FAILED_STATUSES = frozenset({"Failed", "FailedNonRetriable"})


def is_failure(status: str) -> bool:
    return status in FAILED_STATUSES


def flatten(statuses: Iterable[ClusterProfileStatus], failed_only: bool = False) -> list[ProfileStatusRow]:
    """Expand each profile status into one row per feature summary."""
    rows: list[ProfileStatusRow] = []
    for status in statuses:
        for feature in status.summary:
            if failed_only and not is_failure(feature.status):
                continue
            rows.append(
                ProfileStatusRow(
                    profile_name=status.profile_name,
                    profile_type=status.profile_type,
                    cluster_type=status.cluster_type,
                    cluster_namespace=status.cluster_namespace,
                    cluster_name=status.cluster_name,
                    feature_id=feature.feature_id,
                    status=feature.status,
                    failure_message=feature.failure_message,
                )
            )
    return rows
