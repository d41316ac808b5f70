from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class ClusterType(str, Enum):
    CAPI = "Capi"
    SVELTOS = "Sveltos"

    @classmethod
    def parse(cls, value: str) -> "ClusterType | None":
        """Case-insensitive lookup; returns None for unknown literals."""
        for member in cls:
            if member.value.lower() == value.lower():
                return member
        return None


@dataclass(frozen=True)
class ClusterKindResource:
    """API coordinates used when asking the permission system about a cluster kind."""

    group: str
    version: str
    resource: str


CLUSTER_RESOURCES: dict[ClusterType, ClusterKindResource] = {
    ClusterType.CAPI: ClusterKindResource(group="cluster.x-k8s.io", version="v1beta1", resource="clusters"),
    ClusterType.SVELTOS: ClusterKindResource(
        group="lib.projectsveltos.io", version="v1beta1", resource="sveltosclusters"
    ),
}


@dataclass(frozen=True)
class ClusterRef:
    namespace: str
    name: str
    cluster_type: ClusterType

    def __str__(self) -> str:
        return f"{self.cluster_type.value}:{self.namespace}/{self.name}"


@dataclass(frozen=True)
class Identity:
    username: str
    groups: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.username:
            raise ValueError("identity requires a non-empty username")


@dataclass(frozen=True)
class Unrestricted:
    """The caller may list every cluster of the kind."""


@dataclass(frozen=True)
class RestrictedTo:
    """The caller only sees clusters it is individually allowed to get."""

    identity: Identity


ListAccess = Union[Unrestricted, RestrictedTo]
