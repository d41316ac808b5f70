from __future__ import annotations

import asyncio
import copy
import os

import structlog
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from inventory_api.config import Settings, get_settings
from inventory_api.models import CLUSTER_RESOURCES, ClusterType, Identity
from inventory_api.services.collaborators import CollaboratorError, TokenRejected

logger = structlog.get_logger(__name__)


class KubernetesReviewClient:
    """Identity provider and permission checker backed by the API server.

    ``whoami`` sends a SelfSubjectReview authenticated with the caller's own
    bearer token, so a token only passes if the API server accepts it.
    ``is_allowed`` sends a SubjectAccessReview with the service credential on
    behalf of that identity. Verdicts are never cached.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._client_lock = asyncio.Lock()
        self._service_config: client.Configuration | None = None
        self._api_client: client.ApiClient | None = None

    async def whoami(self, token: str) -> Identity:
        service_config = await self._ensure_service_config()
        caller_config = self._caller_configuration(service_config, token)

        def _do() -> client.V1SelfSubjectReview:
            with client.ApiClient(caller_config) as api_client:
                auth = client.AuthenticationV1Api(api_client)
                return auth.create_self_subject_review(
                    body=client.V1SelfSubjectReview(),
                    _request_timeout=self.settings.request_timeout_seconds,
                )

        try:
            review = await asyncio.to_thread(_do)
        except ApiException as exc:
            if exc.status in (401, 403):
                logger.info("kubernetes.self_review_rejected", status=exc.status)
                raise TokenRejected("token rejected by the API server") from exc
            logger.warning("kubernetes.self_review_error", status=exc.status, reason=exc.reason)
            raise CollaboratorError("self subject review failed") from exc
        except Exception as exc:
            logger.warning("kubernetes.self_review_error", error=str(exc))
            raise CollaboratorError("self subject review failed") from exc

        user_info = getattr(getattr(review, "status", None), "user_info", None)
        username = getattr(user_info, "username", None) or ""
        if not username:
            raise TokenRejected("self subject review returned no username")
        groups = tuple(getattr(user_info, "groups", None) or ())
        return Identity(username=username, groups=groups)

    async def is_allowed(
        self,
        identity: Identity,
        verb: str,
        cluster_type: ClusterType,
        namespace: str | None = None,
        name: str | None = None,
    ) -> bool:
        await self._ensure_service_config()
        target = CLUSTER_RESOURCES[cluster_type]

        def _do() -> bool:
            auth = client.AuthorizationV1Api(self._api_client)
            attrs = client.V1ResourceAttributes(
                verb=verb,
                group=target.group,
                version=target.version,
                resource=target.resource,
                namespace=namespace,
                name=name,
            )
            sar = client.V1SubjectAccessReview(
                spec=client.V1SubjectAccessReviewSpec(
                    user=identity.username,
                    groups=list(identity.groups) or None,
                    resource_attributes=attrs,
                )
            )
            resp = auth.create_subject_access_review(
                body=sar,
                _request_timeout=self.settings.request_timeout_seconds,
            )
            status = getattr(resp, "status", None)
            return bool(getattr(status, "allowed", False))

        try:
            return await asyncio.to_thread(_do)
        except Exception as exc:
            logger.warning(
                "kubernetes.sar_error",
                verb=verb,
                resource=target.resource,
                namespace=namespace,
                name=name,
                error=str(exc),
            )
            raise CollaboratorError("subject access review failed") from exc

    async def service_api_client(self) -> client.ApiClient:
        """ApiClient authenticated with the service credential."""
        await self._ensure_service_config()
        assert self._api_client is not None
        return self._api_client

    async def _ensure_service_config(self) -> client.Configuration:
        if self._service_config is not None:
            return self._service_config

        async with self._client_lock:
            if self._service_config is not None:
                return self._service_config

            service_config = await asyncio.to_thread(self._load_service_config)
            self._service_config = service_config
            self._api_client = client.ApiClient(service_config)
            return service_config

    def _load_service_config(self) -> client.Configuration:
        service_config = client.Configuration()
        try:
            if self.settings.service_account_token_path:
                config.load_incluster_config(client_configuration=service_config)
            else:
                config.load_kube_config(
                    config_file=self.settings.kube_config_path,
                    context=self.settings.kube_context,
                    client_configuration=service_config,
                )
        except ConfigException as exc:
            logger.warning("kubernetes.config_missing", error=str(exc))
            raise CollaboratorError("kubernetes configuration unavailable") from exc

        if self.settings.kube_api_host:
            service_config.host = self.settings.kube_api_host
        return service_config

    def _caller_configuration(self, service_config: client.Configuration, token: str) -> client.Configuration:
        """Same API server and trust roots as the service, but the caller's token as the only credential."""
        caller = copy.deepcopy(service_config)
        caller.api_key = {"authorization": f"Bearer {token}"}
        caller.api_key_prefix = {}
        caller.refresh_api_key_hook = None
        caller.cert_file = None
        caller.key_file = None

        ca_file = self.settings.kube_ca_file
        if ca_file and os.path.exists(ca_file):
            caller.ssl_ca_cert = ca_file
        return caller

    def close(self) -> None:
        if self._api_client is not None:
            self._api_client.close()
            self._api_client = None
        self._service_config = None
