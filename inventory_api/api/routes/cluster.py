import structlog
from fastapi import APIRouter, Depends, Request

from inventory_api.dependencies import (
    abandon_if_disconnected,
    get_authorization_delegate,
    get_cluster_filters,
    get_current_identity,
    get_inventory_manager,
    get_page_window,
)
from inventory_api.exceptions import UpstreamUnavailable
from inventory_api.models import ClusterType, Identity
from inventory_api.schemas.inventory import ClusterResult
from inventory_api.services.authorization import AuthorizationDelegate
from inventory_api.services.collaborators import CollaboratorError, InventoryManager
from inventory_api.services.filtering import project
from inventory_api.services.pagination import PageWindow, sort_clusters, window
from inventory_api.services.query_params import ClusterFilters

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["clusters"])


async def list_managed_clusters(
    cluster_type: ClusterType,
    request: Request,
    page: PageWindow,
    filters: ClusterFilters,
    identity: Identity,
    authz: AuthorizationDelegate,
    inventory: InventoryManager,
) -> ClusterResult:
    logger.debug(
        "clusters.list",
        cluster_type=cluster_type.value,
        limit=page.limit,
        skip=page.skip,
        namespace=filters.namespace,
        name=filters.name,
        labels=str(filters.label_selector),
    )
    access = await authz.can_list_kind(identity, cluster_type)
    await abandon_if_disconnected(request)

    try:
        clusters = await inventory.get_clusters(cluster_type, access)
    except CollaboratorError as exc:
        logger.warning("clusters.scope_failed", cluster_type=cluster_type.value, error=str(exc))
        raise UpstreamUnavailable("failed to verify permissions", status_code=401) from exc

    rows = sort_clusters(project(clusters, filters))
    managed = window(rows, page)
    await abandon_if_disconnected(request)
    return ClusterResult(total_clusters=len(rows), managed_clusters=managed)


@router.get("/capiclusters", response_model=ClusterResult, summary="List managed ClusterAPI clusters")
async def capi_clusters(
    request: Request,
    page: PageWindow = Depends(get_page_window),
    filters: ClusterFilters = Depends(get_cluster_filters),
    identity: Identity = Depends(get_current_identity),
    authz: AuthorizationDelegate = Depends(get_authorization_delegate),
    inventory: InventoryManager = Depends(get_inventory_manager),
) -> ClusterResult:
    return await list_managed_clusters(ClusterType.CAPI, request, page, filters, identity, authz, inventory)


@router.get("/sveltosclusters", response_model=ClusterResult, summary="List managed SveltosClusters")
async def sveltos_clusters(
    request: Request,
    page: PageWindow = Depends(get_page_window),
    filters: ClusterFilters = Depends(get_cluster_filters),
    identity: Identity = Depends(get_current_identity),
    authz: AuthorizationDelegate = Depends(get_authorization_delegate),
    inventory: InventoryManager = Depends(get_inventory_manager),
) -> ClusterResult:
    return await list_managed_clusters(ClusterType.SVELTOS, request, page, filters, identity, authz, inventory)
