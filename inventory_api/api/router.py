from fastapi import APIRouter

from inventory_api.api.routes import cluster, health, helm, resources, status

# Public router (no auth required): liveness only
public_router = APIRouter()
public_router.include_router(health.router)

# Inventory router: every handler authenticates the caller itself, after
# its query parameters have been validated
api_router = APIRouter()
api_router.include_router(cluster.router)
api_router.include_router(helm.router)
api_router.include_router(resources.router)
api_router.include_router(status.router)
