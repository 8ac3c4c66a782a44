from fastapi import APIRouter, Depends, Query, Request
from typing import List, Optional

from app.models.requests import AddSkillRequest, ProfileUpdate, SearchCriteria, UpdateSkillRatingRequest
from app.models.schemas import PublicUser, UserModel
from app.services.auth import get_current_user
from app.services.user_store import UserStore
from app.utils.logging_config import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/me", response_model=UserModel)
async def get_me(current_user: UserModel = Depends(get_current_user)):
    """Current user's profile, created on first access"""
    return current_user


@router.put("/me", response_model=UserModel)
async def update_me(
    update: ProfileUpdate,
    request: Request,
    current_user: UserModel = Depends(get_current_user)
):
    """Update name, availability or contact info; omitted fields are left alone"""
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.info("Updating profile", extra={"request_id": request_id, "user_id": current_user.user_id})
    return await UserStore.update_profile(current_user.user_id, update)


@router.post("/me/skills", response_model=UserModel)
async def add_skill(payload: AddSkillRequest, current_user: UserModel = Depends(get_current_user)):
    """Add a self-rated skill; adding a skill already on the profile changes nothing"""
    return await UserStore.add_skill(current_user.user_id, payload.skill_name, payload.rating)


@router.put("/me/skills/{skill_id}", response_model=UserModel)
async def update_skill_rating(
    skill_id: str,
    payload: UpdateSkillRatingRequest,
    current_user: UserModel = Depends(get_current_user)
):
    return await UserStore.update_skill_rating(current_user.user_id, skill_id, payload.rating)


@router.delete("/me/skills/{skill_id}", response_model=UserModel)
async def remove_skill(skill_id: str, current_user: UserModel = Depends(get_current_user)):
    """Remove a skill and the endorsements received for it"""
    return await UserStore.remove_skill(current_user.user_id, skill_id)


@router.get("/search", response_model=List[PublicUser])
async def search_users(
    request: Request,
    skills: Optional[str] = Query(None, description="Skill names (comma-separated, case-insensitive)"),
    min_rating: Optional[int] = Query(None, description="Minimum self-rating for the matched skill"),
    max_rating: Optional[int] = Query(None, description="Maximum self-rating for the matched skill"),
    available_for_hire: Optional[bool] = Query(None, description="Only members open to offers")
):
    """Search members by skill, rating window and availability"""
    request_id = getattr(request.state, 'request_id', 'unknown')
    criteria = SearchCriteria(
        skill_names=[s.strip() for s in skills.split(",")] if skills else [],
        min_rating=min_rating,
        max_rating=max_rating,
        available_for_hire=available_for_hire,
    )
    results = await UserStore.search(criteria)
    logger.info(
        f"Member search returned {len(results)} users",
        extra={"request_id": request_id, "result_count": len(results)}
    )
    return results


@router.get("/{user_id}", response_model=PublicUser)
async def get_user(user_id: str):
    return await UserStore.get_public_profile(user_id)
