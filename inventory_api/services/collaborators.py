"""Interfaces of the services this API delegates to.

The identity provider and permission checker are backed by the Kubernetes API
server in production (see ``kube_reviews``); the inventory manager by the
in-memory ``ClusterInventory``. Tests substitute fakes.
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol, runtime_checkable

from inventory_api.models import ClusterRef, ClusterType, Identity, ListAccess
from inventory_api.schemas.inventory import ClusterInfo, ClusterProfileStatus, HelmRelease, Resource


class CollaboratorError(Exception):
    """A collaborator could not be reached or answered with an API error."""


class TokenRejected(CollaboratorError):
    """The identity provider refused the presented token."""


@runtime_checkable
class IdentityProvider(Protocol):
    async def whoami(self, token: str) -> Identity:
        ...


@runtime_checkable
class PermissionChecker(Protocol):
    async def is_allowed(
        self,
        identity: Identity,
        verb: str,
        cluster_type: ClusterType,
        namespace: str | None = None,
        name: str | None = None,
    ) -> bool:
        ...


@runtime_checkable
class InventoryManager(Protocol):
    async def get_clusters(self, cluster_type: ClusterType, access: ListAccess) -> Mapping[ClusterRef, ClusterInfo]:
        ...

    async def get_helm_releases(self, cluster: ClusterRef) -> Sequence[HelmRelease]:
        ...

    async def get_resources(self, cluster: ClusterRef) -> Sequence[Resource]:
        ...

    async def get_profile_statuses(self, cluster: ClusterRef) -> Sequence[ClusterProfileStatus]:
        ...
