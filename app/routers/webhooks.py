from fastapi import APIRouter, Request

from app.models.requests import UserCreatedEvent
from app.services.user_store import UserStore
from app.utils.logging_config import get_logger

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = get_logger(__name__)


@router.post("/user-created")
async def user_created(event: UserCreatedEvent, request: Request):
    """Account-created event from the identity provider"""
    request_id = getattr(request.state, 'request_id', 'unknown')
    user, created = await UserStore.register_from_event(event)

    if created:
        logger.info("Registered user from webhook", extra={"request_id": request_id, "user_id": user.user_id})
    return {"user_id": user.user_id, "created": created}
