"""FastAPI dependency functions for authentication, quotas and scopes."""

import logging

from fastapi import Depends, Request

from gateway.core import metrics
from gateway.core.api_keys import Principal
from gateway.core.exceptions import ForbiddenError, RateLimitedError, UnauthorizedError
from gateway.core.rate_limit import RequestClass
from gateway.core.services import ServiceContainer

logger = logging.getLogger(__name__)


def get_container(request: Request) -> ServiceContainer:
    """Get the service container from app state."""
    return request.app.state.container


async def authenticate(request: Request, container: ServiceContainer = Depends(get_container)) -> Principal:
    """
    Resolve the bearer credential and charge one unit of the key's quota.

    The principal (or the rejected key_id) is left on ``request.state`` for
    the audit middleware.

    Raises:
        UnauthorizedError: Credential rejected
        RateLimitedError: Quota for this request class exhausted
        InternalError: Key store unavailable
    """
    try:
        principal = await container.key_validator.validate(request.headers.get("Authorization"))
    except UnauthorizedError as e:
        request.state.key_id = e.key_id
        raise
    request.state.principal = principal

    request_class = RequestClass.for_method(request.method)
    decision = container.rate_limiter.check(principal.key_id, request_class)
    if not decision.allowed:
        metrics.record_rate_limit_rejection(request_class.value)
        logger.info(
            "Rate limit exceeded for key %s (%s, limit %d/window)",
            principal.key_id, request_class.value, decision.limit,
        )
        raise RateLimitedError(decision.retry_after_seconds)
    return principal


def require_scope(scope: str):
    """Dependency factory: authenticate, then require ``scope``."""

    async def _check(principal: Principal = Depends(authenticate)) -> Principal:
        if not principal.has_scope(scope):
            raise ForbiddenError(scope)
        return principal

    return _check
