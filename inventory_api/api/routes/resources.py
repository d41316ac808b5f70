import structlog
from fastapi import APIRouter, Depends, Request

from inventory_api.dependencies import (
    abandon_if_disconnected,
    get_authorization_delegate,
    get_cluster_ref,
    get_current_identity,
    get_inventory_manager,
    get_page_window,
)
from inventory_api.exceptions import UpstreamUnavailable
from inventory_api.models import ClusterRef, Identity
from inventory_api.schemas.inventory import ResourceResult
from inventory_api.services.authorization import AuthorizationDelegate
from inventory_api.services.collaborators import CollaboratorError, InventoryManager
from inventory_api.services.pagination import PageWindow, sort_resources, window

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["resources"])


@router.get("/resources", response_model=ResourceResult, summary="Kubernetes resources deployed in a managed cluster")
async def deployed_resources(
    request: Request,
    cluster: ClusterRef = Depends(get_cluster_ref),
    page: PageWindow = Depends(get_page_window),
    identity: Identity = Depends(get_current_identity),
    authz: AuthorizationDelegate = Depends(get_authorization_delegate),
    inventory: InventoryManager = Depends(get_inventory_manager),
) -> ResourceResult:
    logger.debug("resources.list", cluster=str(cluster), limit=page.limit, skip=page.skip)
    await authz.require_cluster_access(identity, cluster)
    await abandon_if_disconnected(request)

    try:
        resources = await inventory.get_resources(cluster)
    except CollaboratorError as exc:
        logger.warning("resources.fetch_failed", cluster=str(cluster), error=str(exc))
        raise UpstreamUnavailable("failed to get resources", status_code=400) from exc

    ordered = sort_resources(resources)
    return ResourceResult(total_resources=len(ordered), resources=window(ordered, page))
