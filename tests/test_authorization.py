"""Tests for the authorization delegate."""

from __future__ import annotations

import asyncio

import pytest

from inventory_api.exceptions import PermissionDenied, UpstreamUnavailable
from inventory_api.models import ClusterType, Identity, RestrictedTo, Unrestricted
from inventory_api.services.authorization import AuthorizationDelegate

from .conftest import PRODUCTION, STAGING, TEAM_A_C1, TEAM_B_C2

ADMIN = Identity("admin")
TENANT = Identity("tenant")


def test_list_rights_give_unrestricted_access(permissions) -> None:
    access = asyncio.run(AuthorizationDelegate(permissions).can_list_kind(ADMIN, ClusterType.SVELTOS))
    assert access == Unrestricted()


def test_without_list_rights_access_is_restricted(permissions) -> None:
    access = asyncio.run(AuthorizationDelegate(permissions).can_list_kind(TENANT, ClusterType.SVELTOS))
    assert isinstance(access, RestrictedTo)
    assert access.identity == TENANT


def test_list_check_asks_about_the_kind(permissions) -> None:
    asyncio.run(AuthorizationDelegate(permissions).can_list_kind(TENANT, ClusterType.CAPI))
    assert permissions.calls == [("tenant", "list", ClusterType.CAPI, None, None)]


def test_can_access_cluster(permissions) -> None:
    delegate = AuthorizationDelegate(permissions)
    assert asyncio.run(delegate.can_access_cluster(TENANT, TEAM_A_C1)) is True
    assert asyncio.run(delegate.can_access_cluster(TENANT, TEAM_B_C2)) is False
    assert asyncio.run(delegate.can_access_cluster(TENANT, PRODUCTION)) is True
    assert asyncio.run(delegate.can_access_cluster(TENANT, STAGING)) is False


def test_require_cluster_access_denied(permissions) -> None:
    delegate = AuthorizationDelegate(permissions)
    with pytest.raises(PermissionDenied, match="no permissions to access this cluster") as excinfo:
        asyncio.run(delegate.require_cluster_access(TENANT, TEAM_B_C2))
    assert excinfo.value.status_code == 401


def test_checker_failure_is_reported_as_401(permissions) -> None:
    permissions.fail = True
    delegate = AuthorizationDelegate(permissions)
    with pytest.raises(UpstreamUnavailable) as excinfo:
        asyncio.run(delegate.can_list_kind(ADMIN, ClusterType.SVELTOS))
    assert excinfo.value.status_code == 401
    with pytest.raises(UpstreamUnavailable):
        asyncio.run(delegate.can_access_cluster(ADMIN, TEAM_A_C1))
