from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from inventory_api.models import ClusterType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ClusterInfo(CamelModel):
    labels: dict[str, str] = Field(default_factory=dict)
    version: str = ""
    ready: bool = False
    failure_message: str | None = None


class ManagedCluster(CamelModel):
    namespace: str
    name: str
    cluster_info: ClusterInfo


class ClusterResult(CamelModel):
    total_clusters: int
    managed_clusters: list[ManagedCluster]


class HelmRelease(CamelModel):
    repo_url: str = Field(default="", alias="repoURL")
    release_name: str
    namespace: str
    chart_version: str = ""
    icon: str = ""
    last_applied_time: str | None = None
    profile_name: str = ""


class HelmReleaseResult(CamelModel):
    total_helm_releases: int
    helm_releases: list[HelmRelease]


class Resource(CamelModel):
    name: str
    namespace: str = ""
    group: str = ""
    kind: str
    version: str = ""
    last_applied_time: str | None = None
    profile_names: list[str] = Field(default_factory=list)


class ResourceResult(CamelModel):
    total_resources: int
    resources: list[Resource]


class ClusterFeatureSummary(CamelModel):
    feature_id: str = Field(alias="featureID")
    status: str
    failure_message: str | None = None


class ClusterProfileStatus(CamelModel):
    """Status of one profile against one cluster, one entry per feature."""

    profile_name: str
    profile_type: str
    cluster_type: ClusterType
    cluster_namespace: str
    cluster_name: str
    summary: list[ClusterFeatureSummary] = Field(default_factory=list)


class ProfileStatusRow(CamelModel):
    profile_name: str
    profile_type: str
    cluster_type: ClusterType
    cluster_namespace: str
    cluster_name: str
    feature_id: str = Field(alias="featureID")
    status: str
    failure_message: str | None = None


class ClusterStatusResult(CamelModel):
    total_resources: int
    profiles: list[ProfileStatusRow]
