from inventory_api.models.inventory import (
    CLUSTER_RESOURCES,
    ClusterKindResource,
    ClusterRef,
    ClusterType,
    Identity,
    ListAccess,
    RestrictedTo,
    Unrestricted,
)

__all__ = [
    "CLUSTER_RESOURCES",
    "ClusterKindResource",
    "ClusterRef",
    "ClusterType",
    "Identity",
    "ListAccess",
    "RestrictedTo",
    "Unrestricted",
]
