from functools import lru_cache

import structlog
from fastapi import Depends, Request

from inventory_api.config import Settings, get_settings
from inventory_api.core.request_context import username_var
from inventory_api.exceptions import RequestAbandoned
from inventory_api.models import ClusterRef, Identity
from inventory_api.services.authentication import AuthenticationGateway
from inventory_api.services.authorization import AuthorizationDelegate
from inventory_api.services.collaborators import IdentityProvider, InventoryManager, PermissionChecker
from inventory_api.services.inventory import ClusterInventory
from inventory_api.services.kube_reviews import KubernetesReviewClient
from inventory_api.services.pagination import PageWindow
from inventory_api.services.query_params import (
    ClusterFilters,
    parse_cluster_filters,
    parse_cluster_ref,
    parse_failed_only,
    parse_page_window,
)


@lru_cache(maxsize=1)
def get_review_client() -> KubernetesReviewClient:
    return KubernetesReviewClient(get_settings())


def get_identity_provider() -> IdentityProvider:
    return get_review_client()


def get_permission_checker() -> PermissionChecker:
    return get_review_client()


@lru_cache(maxsize=1)
def get_cluster_inventory() -> ClusterInventory:
    return ClusterInventory(get_permission_checker())


def get_inventory_manager() -> InventoryManager:
    return get_cluster_inventory()


def get_authentication_gateway(
    identity_provider: IdentityProvider = Depends(get_identity_provider),
) -> AuthenticationGateway:
    return AuthenticationGateway(identity_provider)


def get_authorization_delegate(
    checker: PermissionChecker = Depends(get_permission_checker),
) -> AuthorizationDelegate:
    return AuthorizationDelegate(checker)


# Query parameters. Declared before the identity in handler signatures so
# malformed requests are rejected without calling the identity provider.
def get_page_window(request: Request, settings: Settings = Depends(get_settings)) -> PageWindow:
    return parse_page_window(request.query_params, settings.default_page_size)


def get_cluster_filters(request: Request) -> ClusterFilters:
    return parse_cluster_filters(request.query_params)


def get_cluster_ref(request: Request) -> ClusterRef:
    return parse_cluster_ref(request.query_params)


def get_failed_only(request: Request) -> bool:
    return parse_failed_only(request.query_params)


async def get_current_identity(
    request: Request,
    gateway: AuthenticationGateway = Depends(get_authentication_gateway),
) -> Identity:
    identity = await gateway.authenticate_headers(request.headers)
    structlog.contextvars.bind_contextvars(username=identity.username)
    username_var.set(identity.username)
    return identity


async def abandon_if_disconnected(request: Request) -> None:
    if await request.is_disconnected():
        raise RequestAbandoned()
