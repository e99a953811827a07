"""FastAPI dependencies shared by the API routes.

Provides:
- The process-wide RelayService instance (set by the app lifespan)
- Token checks for ingestion (X-Internal-Token) and admin routes (X-Admin-Token)
"""

from __future__ import annotations

import hmac
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from hookrelay.exceptions import AuthenticationError
from hookrelay.logging import get_logger
from hookrelay.service import RelayService

logger = get_logger(__name__)

# Service instance (set by app lifespan)
_service: RelayService | None = None


def set_service(service: RelayService | None) -> None:
    """Set the global service instance."""
    global _service
    _service = service


def current_service() -> RelayService | None:
    return _service


async def get_service() -> RelayService:
    """Dependency to get the RelayService instance."""
    if _service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return _service


ServiceDep = Annotated[RelayService, Depends(get_service)]


def check_token(expected: str | None, provided: str | None, header: str, env: str) -> None:
    """Compare a request token against the configured one in constant time.

    Args:
        expected: Configured token, or None if unset.
        provided: Value of the request header, if any.
        header: Header name, used in the error message.
        env: Deployment environment.

    Raises:
        AuthenticationError: If the token is missing or wrong, or if no token
            is configured in production.
    """
    if expected is None:
        if env == "production":
            raise AuthenticationError(f"{header} is not configured")
        return

    if provided is None or not hmac.compare_digest(provided.encode(), expected.encode()):
        raise AuthenticationError(f"Missing or invalid {header}")


async def require_internal_token(
    service: ServiceDep,
    x_internal_token: Annotated[str | None, Header()] = None,
) -> None:
    """Guard for event ingestion."""
    settings = service.settings
    check_token(settings.internal_api_token, x_internal_token, "X-Internal-Token", settings.env)


async def require_admin_token(
    service: ServiceDep,
    x_admin_token: Annotated[str | None, Header()] = None,
) -> None:
    """Guard for admin routes."""
    settings = service.settings
    check_token(settings.admin_api_token, x_admin_token, "X-Admin-Token", settings.env)


InternalAuth = Depends(require_internal_token)
AdminAuth = Depends(require_admin_token)
