from __future__ import annotations

import structlog

from inventory_api.exceptions import PermissionDenied, UpstreamUnavailable
from inventory_api.models import ClusterRef, ClusterType, Identity, ListAccess, RestrictedTo, Unrestricted
from inventory_api.services.collaborators import CollaboratorError, PermissionChecker

logger = structlog.get_logger(__name__)


class AuthorizationDelegate:
    """Asks the permission system about cluster access.

    ``can_list_kind`` (list across all namespaces) and ``can_access_cluster``
    (get one named cluster) are separate questions: a caller without list
    rights may still hold get rights on individual clusters.
    """

    def __init__(self, checker: PermissionChecker) -> None:
        self._checker = checker

    async def can_list_kind(self, identity: Identity, cluster_type: ClusterType) -> ListAccess:
        try:
            allowed = await self._checker.is_allowed(identity, "list", cluster_type)
        except CollaboratorError as exc:
            logger.warning("authz.list_check_failed", cluster_type=cluster_type.value, error=str(exc))
            raise UpstreamUnavailable("failed to verify permissions", status_code=401) from exc
        logger.debug("authz.list_check", username=identity.username, cluster_type=cluster_type.value, allowed=allowed)
        return Unrestricted() if allowed else RestrictedTo(identity)

    async def can_access_cluster(self, identity: Identity, cluster: ClusterRef) -> bool:
        try:
            allowed = await self._checker.is_allowed(
                identity,
                "get",
                cluster.cluster_type,
                namespace=cluster.namespace,
                name=cluster.name,
            )
        except CollaboratorError as exc:
            logger.warning("authz.get_check_failed", cluster=str(cluster), error=str(exc))
            raise UpstreamUnavailable("failed to verify permissions", status_code=401) from exc
        logger.debug("authz.get_check", username=identity.username, cluster=str(cluster), allowed=allowed)
        return allowed

    async def require_cluster_access(self, identity: Identity, cluster: ClusterRef) -> None:
        if not await self.can_access_cluster(identity, cluster):
            raise PermissionDenied("no permissions to access this cluster")
