from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from orderhub.core.database import get_async_session
from orderhub.auth.jwt_handler import decode_access_token
from orderhub.auth.policy import AccessPolicy
from orderhub.models.auth.user import User
from orderhub.services.delivery.driver_notifier import DriverNotifier
from orderhub.services.order.status_catalog import StatusCatalog
from orderhub.services.payment.paystack_gateway import PaystackGateway
import logging

security = HTTPBearer()
logger = logging.getLogger(__name__)

def _unauthorized(detail: str = "Invalid authentication credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )

async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session: AsyncSession = Depends(get_async_session)
) -> User:
    """Get current authenticated user"""
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized()

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise _unauthorized()

    user = await session.get(User, user_id)
    if user is None or user.is_deleted or not user.is_active:
        raise _unauthorized("User not found or inactive")

    request.state.current_user = user
    return user

async def get_access_policy(current_user: User = Depends(get_current_user)) -> AccessPolicy:
    return AccessPolicy(current_user)

def require_action(action: str):
    """
    Dependency to require the caller's role to allow ``action``

    Examples:
        current_user = Depends(require_action("delivery:assign"))
    """
    async def checker(current_user: User = Depends(get_current_user)) -> User:
        AccessPolicy(current_user).require(action)
        return current_user
    return checker

async def get_status_catalog(
    request: Request,
    session: AsyncSession = Depends(get_async_session)
) -> StatusCatalog:
    """Status catalog, loaded once per process and kept on app state"""
    catalog = getattr(request.app.state, "status_catalog", None)
    if catalog is None:
        catalog = await StatusCatalog.load(session)
        request.app.state.status_catalog = catalog
        logger.info(f"Status catalog loaded with {len(catalog)} statuses")
    return catalog

def get_payment_gateway() -> PaystackGateway:
    return PaystackGateway()

def get_driver_notifier() -> DriverNotifier:
    return DriverNotifier()
