"""FastAPI dependency injection providers."""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import StatboardConfig, get_config
from .database import get_session, get_session_factory
from .utils.logging import bind_request_context, get_logger
from .utils.security import decode_access_token

_dep_logger = get_logger("dependencies")

security_scheme = HTTPBearer(auto_error=False)

_config_instance: StatboardConfig | None = None
_dashboard_service = None


def get_app_config() -> StatboardConfig:
    """Get the application config singleton."""
    global _config_instance
    if _config_instance is None:
        _config_instance = get_config()
    return _config_instance


async def get_db(config: StatboardConfig = Depends(get_app_config)):
    """Get an async database session."""
    async for session in get_session(config):
        yield session


async def get_current_tenant(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    config: StatboardConfig = Depends(get_app_config),
) -> str:
    """Validate the Bearer JWT and return the tenant it is scoped to."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(
        credentials.credentials,
        config.secret_key,
        config.jwt_algorithm,
    )
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    tenant_id = payload.get(config.tenant_claim)
    if not isinstance(tenant_id, str) or not tenant_id:
        _dep_logger.debug("token_missing_tenant_claim", claim=config.tenant_claim)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Token carries no {config.tenant_claim!r} claim",
            headers={"WWW-Authenticate": "Bearer"},
        )

    request.state.tenant_id = tenant_id
    bind_request_context(tenant=tenant_id)
    return tenant_id


def get_dashboard_service():
    """Get the dashboard service singleton."""
    global _dashboard_service
    if _dashboard_service is None:
        from .widgets.interpreter import DataBindingInterpreter
        from .widgets.record_store import SQLRecordStore
        from .widgets.service import DashboardService
        from .widgets.store import ModuleStore

        config = get_app_config()
        factory = get_session_factory(config)
        record_store = SQLRecordStore(
            factory,
            allowed_sources=config.widget_allowed_sources,
            max_limit=config.widget_query_max_limit,
        )
        _dashboard_service = DashboardService(
            store=ModuleStore(db_session_factory=factory),
            interpreter=DataBindingInterpreter(
                record_store, display_cap=config.widget_table_display_cap
            ),
        )
    return _dashboard_service
