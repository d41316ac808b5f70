import structlog
from fastapi import APIRouter, Depends, Request

from inventory_api.dependencies import (
    abandon_if_disconnected,
    get_authorization_delegate,
    get_cluster_ref,
    get_current_identity,
    get_failed_only,
    get_inventory_manager,
    get_page_window,
)
from inventory_api.exceptions import UpstreamUnavailable
from inventory_api.models import ClusterRef, Identity
from inventory_api.schemas.inventory import ClusterStatusResult
from inventory_api.services.authorization import AuthorizationDelegate
from inventory_api.services.collaborators import CollaboratorError, InventoryManager
from inventory_api.services.pagination import PageWindow, sort_profile_statuses, window
from inventory_api.services.profiles import flatten

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["status"])


@router.get(
    "/getClusterStatus",
    response_model=ClusterStatusResult,
    summary="Profiles matching a cluster and the status of each of their features",
)
async def cluster_status(
    request: Request,
    failed_only: bool = Depends(get_failed_only),
    page: PageWindow = Depends(get_page_window),
    cluster: ClusterRef = Depends(get_cluster_ref),
    identity: Identity = Depends(get_current_identity),
    authz: AuthorizationDelegate = Depends(get_authorization_delegate),
    inventory: InventoryManager = Depends(get_inventory_manager),
) -> ClusterStatusResult:
    logger.debug("status.list", cluster=str(cluster), limit=page.limit, skip=page.skip, failed=failed_only)
    await authz.require_cluster_access(identity, cluster)
    await abandon_if_disconnected(request)

    try:
        statuses = await inventory.get_profile_statuses(cluster)
    except CollaboratorError as exc:
        logger.warning("status.fetch_failed", cluster=str(cluster), error=str(exc))
        raise UpstreamUnavailable("failed to get cluster status", status_code=400) from exc

    rows = sort_profile_statuses(flatten(statuses, failed_only))
    return ClusterStatusResult(total_resources=len(rows), profiles=window(rows, page))
