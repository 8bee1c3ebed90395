"""Static authorizers."""

from collections.abc import Mapping
from typing import Any

from entitykit.entity.protocols import Actor, AuthorizationResult, Tenant
from entitykit.observability.logging import get_logger

log = get_logger(__name__)


class AllowAllAuthorizer:
    """Authorizes every call."""

    async def authorize(
        self,
        *,
        entity_name: str,
        crud_type: str,
        identifiers: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
        actor: Actor = None,
        tenant: Tenant = None,
    ) -> AuthorizationResult:
        return AuthorizationResult(passed=True)


class DenyAllAuthorizer:
    """Refuses every call, optionally with a fixed reason."""

    def __init__(self, reason: str = "Access denied") -> None:
        self.reason = reason

    async def authorize(
        self,
        *,
        entity_name: str,
        crud_type: str,
        identifiers: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
        actor: Actor = None,
        tenant: Tenant = None,
    ) -> AuthorizationResult:
        log.debug("authorization.denied", entity_name=entity_name, crud_type=crud_type)
        return AuthorizationResult(passed=False, errors=[self.reason])
