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
from inventory_api.schemas.inventory import HelmReleaseResult
from inventory_api.services.authorization import AuthorizationDelegate
from inventory_api.services.collaborators import CollaboratorError, InventoryManager
from inventory_api.services.pagination import PageWindow, sort_helm_releases, window

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["helm"])


@router.get("/helmcharts", response_model=HelmReleaseResult, summary="Helm releases deployed in a managed cluster")
async def deployed_helm_charts(
    request: Request,
    cluster: ClusterRef = Depends(get_cluster_ref),
    page: PageWindow = Depends(get_page_window),
    identity: Identity = Depends(get_current_identity),
    authz: AuthorizationDelegate = Depends(get_authorization_delegate),
    inventory: InventoryManager = Depends(get_inventory_manager),
) -> HelmReleaseResult:
    logger.debug("helm.list", cluster=str(cluster), limit=page.limit, skip=page.skip)
    await authz.require_cluster_access(identity, cluster)
    await abandon_if_disconnected(request)

    try:
        releases = await inventory.get_helm_releases(cluster)
    except CollaboratorError as exc:
        logger.warning("helm.fetch_failed", cluster=str(cluster), error=str(exc))
        raise UpstreamUnavailable("failed to get helm releases", status_code=400) from exc

    ordered = sort_helm_releases(releases)
    return HelmReleaseResult(total_helm_releases=len(ordered), helm_releases=window(ordered, page))
