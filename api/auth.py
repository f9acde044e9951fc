"""
Bearer-token guard for the FastAPI API.

Every route depends on ``resolve_principal``. A request without a token is
anonymous and proceeds; a request with a token that fails verification is
rejected with 401 before any business logic runs. Operations that mutate
user state check for a present principal themselves.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from accounts.errors import Unauthenticated
from accounts.models import Principal
from accounts.tokens import TokenService
from utilities.config import config
from utilities.logger import AccountLogger

# Security scheme; a missing header is a legitimate anonymous request
security = HTTPBearer(auto_error=False)

token_service: Optional[TokenService] = None
account_logger = AccountLogger("auth_guard")


def get_token_service() -> TokenService:
    """Return the process-wide token service, built from settings on first use."""
    global token_service
    if token_service is None:
        token_service = TokenService.from_config(config)
    return token_service


async def resolve_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    tokens: TokenService = Depends(get_token_service),
) -> Optional[Principal]:
    """
    Resolve the request principal from the Authorization header.

    Args:
        request: Incoming request; the principal is attached to ``request.state``
        credentials: Bearer credentials, if any were sent
        tokens: Token service used for verification

    Returns:
        Principal for a valid token, None for anonymous requests

    Raises:
        Unauthenticated: If a token is present but invalid
    """
    request.state.principal = None
    if credentials is None:
        # HTTPBearer also yields None for a present but unusable header.
        if request.headers.get("Authorization") is not None:
            account_logger.log_token_rejected("Malformed authorization header")
            raise Unauthenticated("Invalid token")
        return None

    try:
        principal = tokens.verify(credentials.credentials)
    except Unauthenticated as e:
        account_logger.log_token_rejected(e.message)
        raise

    request.state.principal = principal
    return principal


def get_request_principal(request: Request) -> Optional[Principal]:
    """Principal attached by the guard, or None."""
    return getattr(request.state, "principal", None)
