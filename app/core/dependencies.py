from typing import Optional
from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from app.core.security import AuthContext
from app.services.report import ReportSession, ReportSessionRegistry
from app.services.sources import UpstreamClient

bearer_scheme = HTTPBearer(auto_error=False)


async def get_auth_context(
    x_user_email: Optional[str] = Header(None),
    x_user_password: Optional[str] = Header(None),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthContext:
    """Build the credentials forwarded upstream from the caller's request."""
    auth = AuthContext(
        email=x_user_email,
        password=x_user_password,
        token=credentials.credentials if credentials else None,
    )
    if not auth.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Please log in to view the report",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth


def get_upstream_client(request: Request) -> UpstreamClient:
    return UpstreamClient(request.app.state.upstream_http)


def get_session_registry(request: Request) -> ReportSessionRegistry:
    return request.app.state.report_sessions


async def get_report_session(
    auth: AuthContext = Depends(get_auth_context),
    client: UpstreamClient = Depends(get_upstream_client),
    registry: ReportSessionRegistry = Depends(get_session_registry),
) -> ReportSession:
    return registry.get(client, auth)
