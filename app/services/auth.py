"""
Principal resolution.

Token verification happens upstream; the gateway forwards the identity
provider's user id and profile hints as request headers.
"""
import os

from dotenv import load_dotenv
from fastapi import Request

from app.models.requests import ProfileHints
from app.models.schemas import UserModel
from app.services.user_store import UserStore
from app.utils.exceptions import AuthenticationError
from app.utils.logging_config import get_logger

load_dotenv()

AUTH_USER_ID_HEADER = os.getenv("AUTH_USER_ID_HEADER", "X-User-Id")
AUTH_USER_NAME_HEADER = os.getenv("AUTH_USER_NAME_HEADER", "X-User-Name")
AUTH_USER_EMAIL_HEADER = os.getenv("AUTH_USER_EMAIL_HEADER", "X-User-Email")

logger = get_logger(__name__)


def get_auth_id(request: Request) -> str:
    auth_id = (request.headers.get(AUTH_USER_ID_HEADER) or "").strip()
    if not auth_id:
        logger.warning(
            "Request without principal",
            extra={"request_id": getattr(request.state, "request_id", "unknown"), "path": request.url.path}
        )
        raise AuthenticationError("Unauthorized")
    return auth_id


async def get_current_user(request: Request) -> UserModel:
    """FastAPI dependency: the calling user, created on first access"""
    auth_id = get_auth_id(request)
    hints = ProfileHints(
        name=request.headers.get(AUTH_USER_NAME_HEADER),
        email=request.headers.get(AUTH_USER_EMAIL_HEADER),
    )
    return await UserStore.get_or_create(auth_id, hints)
