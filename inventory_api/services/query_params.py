from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field

from inventory_api.exceptions import InvalidQueryParameter
from inventory_api.models import ClusterRef, ClusterType
from inventory_api.services.pagination import DEFAULT_LIMIT, PageWindow
from inventory_api.services.selectors import EVERYTHING, LabelSelector, SelectorParseError, parse_selector

_INT_RE = re.compile(r"[+-]?[0-9]+")
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


@dataclass(frozen=True)
class ClusterFilters:
    namespace: str = ""
    name: str = ""
    label_selector: LabelSelector = field(default=EVERYTHING)


def _parse_int(raw: str | None, default: int, param: str) -> int:
    if raw is None or raw == "":
        return default
    if not _INT_RE.fullmatch(raw):
        raise InvalidQueryParameter(f"invalid {param} parameter")
    return int(raw)


def parse_page_window(query: Mapping[str, str], default_limit: int = DEFAULT_LIMIT) -> PageWindow:
    """Read ``limit`` and ``skip``. Sign is checked later, when the window is applied."""
    limit = _parse_int(query.get("limit"), default_limit, "limit")
    skip = _parse_int(query.get("skip"), 0, "skip")
    return PageWindow(limit=limit, skip=skip)


def parse_failed_only(query: Mapping[str, str]) -> bool:
    raw = query.get("failed")
    if raw is None or raw == "":
        return False
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise InvalidQueryParameter("invalid failed parameter")


def parse_cluster_filters(query: Mapping[str, str]) -> ClusterFilters:
    try:
        selector = parse_selector(query.get("labels"))
    except SelectorParseError as exc:
        raise InvalidQueryParameter("invalid labels parameter") from exc
    return ClusterFilters(
        namespace=query.get("namespace") or "",
        name=query.get("name") or "",
        label_selector=selector,
    )


def parse_cluster_ref(query: Mapping[str, str]) -> ClusterRef:
    """Identify the single cluster a per-cluster endpoint is about."""
    namespace = query.get("namespace") or ""
    name = query.get("name") or ""
    raw_type = query.get("type") or ""

    if not namespace:
        raise InvalidQueryParameter("namespace is required")
    if not name:
        raise InvalidQueryParameter("name is required")
    if not raw_type:
        raise InvalidQueryParameter("cluster type is required")

    cluster_type = ClusterType.parse(raw_type)
    if cluster_type is None:
        raise InvalidQueryParameter("cluster type is incorrect")
    return ClusterRef(namespace=namespace, name=name, cluster_type=cluster_type)
