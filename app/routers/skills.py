from fastapi import APIRouter
from typing import List

from app.models.schemas import SkillModel
from app.services.skill_catalog import SkillCatalog

router = APIRouter()


@router.get("/", response_model=List[SkillModel])
async def list_skills():
    """All skills in the catalog, by name"""
    return await SkillCatalog.list_skills()


@router.get("/{skill_id}", response_model=SkillModel)
async def get_skill(skill_id: str):
    return await SkillCatalog.find_by_id(skill_id)
