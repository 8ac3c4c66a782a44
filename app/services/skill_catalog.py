"""
Skill Catalog: the shared, deduplicated registry of skill names
"""
from typing import Dict, Iterable, List

from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from app.models.schemas import SkillModel
from app.services.db import skills_coll
from app.utils.exceptions import ConflictError, NotFoundError, ValidationError
from app.utils.logging_config import get_logger

logger = get_logger(__name__)


class SkillCatalog:
    """Get-or-create access to skills, guarded by the unique index on name"""

    @staticmethod
    def _clean_name(name: str) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("Skill name cannot be empty", field="skill_name", value=name)
        return cleaned

    @staticmethod
    async def find_by_name(name: str):
        doc = await skills_coll.find_one({"name": name})
        return SkillModel(**doc) if doc else None

    @staticmethod
    async def resolve_or_create(name: str) -> SkillModel:
        """Exact, case-sensitive lookup; insert the skill when it is new.

        Raises ConflictError if a concurrent insert of the same name won.
        """
        name = SkillCatalog._clean_name(name)

        existing = await SkillCatalog.find_by_name(name)
        if existing:
            return existing

        skill = SkillModel(name=name)
        try:
            await skills_coll.insert_one(skill.dict())
        except DuplicateKeyError as e:
            logger.info(f"Concurrent create lost the race for skill '{name}'")
            raise ConflictError(
                f"Skill '{name}' was created concurrently",
                resource="skill",
                cause=e
            )

        logger.info(f"Created skill '{name}'", extra={"skill_id": skill.skill_id})
        return skill

    @staticmethod
    async def resolve_skill(name: str) -> SkillModel:
        """resolve_or_create, repeating the lookup once after a lost race"""
        try:
            return await SkillCatalog.resolve_or_create(name)
        except ConflictError:
            skill = await SkillCatalog.find_by_name(SkillCatalog._clean_name(name))
            if skill is None:
                raise
            return skill

    @staticmethod
    async def find_by_id(skill_id: str) -> SkillModel:
        doc = await skills_coll.find_one({"skill_id": skill_id})
        if not doc:
            raise NotFoundError("Skill not found", resource="skill", resource_id=skill_id)
        return SkillModel(**doc)

    @staticmethod
    async def list_skills() -> List[SkillModel]:
        cursor = skills_coll.find({}).sort("name", ASCENDING)
        docs = await cursor.to_list(length=None)
        return [SkillModel(**doc) for doc in docs]

    @staticmethod
    async def find_matching_ids(query: Dict) -> List[str]:
        cursor = skills_coll.find(query, {"skill_id": 1})
        docs = await cursor.to_list(length=None)
        return [doc["skill_id"] for doc in docs]

    @staticmethod
    async def names_by_id(skill_ids: Iterable[str]) -> Dict[str, str]:
        """Batch lookup used to expand skill names for display"""
        ids = list(set(skill_ids))
        if not ids:
            return {}
        cursor = skills_coll.find({"skill_id": {"$in": ids}}, {"skill_id": 1, "name": 1})
        docs = await cursor.to_list(length=None)
        return {doc["skill_id"]: doc["name"] for doc in docs}
