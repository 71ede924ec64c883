# =============================================================================
# Request Dependencies
# =============================================================================
# FastAPI dependencies for operator authentication and the deploy session.
# =============================================================================

import secrets

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from awx_deploy.auth.providers import AuthenticatedUser, BasicAuthProvider
from awx_deploy.config import Settings, get_settings
from awx_deploy.services.session_store import AttemptContext, get_session_store

security = HTTPBasic()


def get_auth_provider(settings: Settings = Depends(get_settings)) -> BasicAuthProvider:
    """Build the provider from the configured operator accounts."""
    accounts = dict(settings.operator_accounts)
    accounts.setdefault(settings.webapp_username, settings.webapp_password)
    return BasicAuthProvider(accounts)


def get_current_user(
    credentials: HTTPBasicCredentials = Depends(security),
    auth_provider: BasicAuthProvider = Depends(get_auth_provider),
) -> AuthenticatedUser:
    """
    Validate HTTP Basic Auth credentials and return the operator.

    Raises:
        HTTPException: 401 Unauthorized if credentials are invalid.
    """
    user = auth_provider.authenticate(
        {
            "username": credentials.username,
            "password": credentials.password,
        }
    )

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return user


def get_attempt_context(
    request: Request,
    response: Response,
    settings: Settings = Depends(get_settings),
) -> AttemptContext:
    """
    Resolve the caller's deploy session from its cookie.

    A session id is minted (and set on the response) on first use.
    """
    cookie_name = settings.session_cookie_name
    session_id = request.cookies.get(cookie_name)
    if not session_id:
        session_id = secrets.token_urlsafe(24)
        response.set_cookie(cookie_name, session_id, httponly=True, samesite="strict")
    return AttemptContext(get_session_store(), session_id)
