from fastapi import APIRouter, Depends, Query, Request
from typing import List

from app.models.requests import EndorseRequest
from app.models.schemas import EndorsementModel, EndorsementView, UserModel
from app.services.auth import get_current_user
from app.services.endorsement_ledger import EndorsementLedger
from app.utils.logging_config import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.post("/", response_model=EndorsementModel, status_code=201)
async def create_endorsement(
    payload: EndorseRequest,
    request: Request,
    current_user: UserModel = Depends(get_current_user)
):
    """Endorse another member for a skill on their profile"""
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.info(
        "Creating endorsement",
        extra={"request_id": request_id, "endorsed_user_id": payload.endorsed_user_id, "skill_id": payload.skill_id}
    )
    return await EndorsementLedger.create(current_user.user_id, payload.endorsed_user_id, payload.skill_id)


@router.get("/received/{user_id}", response_model=List[EndorsementView])
async def list_received(user_id: str):
    """Endorsements received by a user"""
    return await EndorsementLedger.list_received_by(user_id)


@router.get("/given/{user_id}", response_model=List[EndorsementView])
async def list_given(user_id: str):
    """Endorsements given by a user"""
    return await EndorsementLedger.list_given_by(user_id)


@router.get("/can-endorse")
async def can_endorse(
    endorsed_user_id: str = Query(..., description="User who would receive the endorsement"),
    skill_id: str = Query(..., description="Skill to endorse"),
    current_user: UserModel = Depends(get_current_user)
):
    allowed = await EndorsementLedger.can_endorse(current_user.user_id, endorsed_user_id, skill_id)
    return {"can_endorse": allowed}


@router.delete("/{endorsement_id}")
async def revoke_endorsement(endorsement_id: str, current_user: UserModel = Depends(get_current_user)):
    """Revoke an endorsement; only the endorser may do this"""
    await EndorsementLedger.revoke(current_user.user_id, endorsement_id)
    return {"message": "Endorsement deleted successfully"}
