from __future__ import annotations

from collections.abc import Mapping

import structlog

from inventory_api.exceptions import InvalidCredential, MalformedCredential, MissingCredential
from inventory_api.models import Identity
from inventory_api.services.collaborators import CollaboratorError, IdentityProvider, TokenRejected

logger = structlog.get_logger(__name__)

BEARER_PREFIX = "Bearer "


def extract_token(headers: Mapping[str, str]) -> str:
    """Return the token from ``Authorization: Bearer <token>``."""
    header = headers.get("Authorization") or headers.get("authorization")
    if not header:
        raise MissingCredential("authorization header is missing")
    if not header.startswith(BEARER_PREFIX):
        raise MalformedCredential("authorization header must use the Bearer scheme")
    token = header[len(BEARER_PREFIX):].strip()
    if not token:
        raise MalformedCredential("token is missing")
    return token


class AuthenticationGateway:
    def __init__(self, identity_provider: IdentityProvider) -> None:
        self._identity_provider = identity_provider

    async def authenticate(self, token: str) -> Identity:
        try:
            identity = await self._identity_provider.whoami(token)
        except TokenRejected as exc:
            logger.info("auth.token_rejected", error=str(exc))
            raise InvalidCredential("failed to validate token") from exc
        except CollaboratorError as exc:
            logger.warning("auth.identity_provider_unavailable", error=str(exc))
            raise InvalidCredential("failed to validate token") from exc
        logger.debug("auth.authenticated", username=identity.username)
        return identity

    async def authenticate_headers(self, headers: Mapping[str, str]) -> Identity:
        return await self.authenticate(extract_token(headers))
