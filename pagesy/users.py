import logging
import uuid
from typing import Optional

from fastapi import Depends
from fastapi_users import BaseUserManager, FastAPIUsers, UUIDIDMixin
from fastapi_users.authentication import CookieTransport, AuthenticationBackend, JWTStrategy
from fastapi_users.db import SQLAlchemyUserDatabase
from starlette.websockets import WebSocket

from .models import User
from .database import get_db, async_session_maker
from .settings.config import settings


logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "access_token"

SECRET = settings.JWT_SECRET.strip()
if not SECRET:
    raise RuntimeError("JWT_SECRET environment variable must be set to a strong value.")

# -------------------------
# Database Dependency
# -------------------------
async def get_user_db(session=Depends(get_db)):
    yield SQLAlchemyUserDatabase(session, User)

# -------------------------
# User Manager
# -------------------------
class UserManager(UUIDIDMixin, BaseUserManager[User, uuid.UUID]):
    # registration and password flows live outside this service; the manager
    # is only used to resolve the user behind a cookie
    reset_password_token_secret = SECRET
    verification_token_secret = SECRET

async def get_user_manager(user_db=Depends(get_user_db)):
    yield UserManager(user_db)

# -------------------------
# Authentication Backend
# -------------------------
cookie_transport = CookieTransport(
    cookie_name=ACCESS_TOKEN_COOKIE,
    cookie_max_age=settings.JWT_LIFETIME_SECONDS,
    cookie_secure=settings.COOKIE_SECURE,
    cookie_httponly=True,
)

def get_jwt_strategy() -> JWTStrategy:
    return JWTStrategy(secret=SECRET, lifetime_seconds=settings.JWT_LIFETIME_SECONDS)

auth_backend = AuthenticationBackend(
    name="jwt",
    transport=cookie_transport,
    get_strategy=get_jwt_strategy,
)

# -------------------------
# FastAPI Users instance
# -------------------------
fastapi_users = FastAPIUsers[User, uuid.UUID](
    get_user_manager,
    [auth_backend],
)

# Dependency to get currently active user; banned (inactive) users get a 401
current_active_user = fastapi_users.current_user(active=True)


async def authenticate_websocket(websocket: WebSocket) -> Optional[User]:
    """Resolve the active user behind the ``access_token`` cookie of an upgrade request.

    Uses a short-lived session so a long-lived socket does not pin a pooled connection.
    """
    token = websocket.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token:
        return None
    async with async_session_maker() as session:
        manager = UserManager(SQLAlchemyUserDatabase(session, User))
        user = await get_jwt_strategy().read_token(token, manager)
    if user is None or not user.is_active:
        logger.debug("websocket upgrade refused: invalid token or inactive user")
        return None
    return user
