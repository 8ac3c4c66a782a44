"""
Job Postings Store
"""
from datetime import datetime
from typing import List

from pymongo import DESCENDING, ReturnDocument

from app.models.requests import JobCreate, JobUpdate, SkillRequirementInput
from app.models.schemas import (
    JobMatch,
    JobModel,
    JobView,
    SkillRequirement,
    SkillRequirementView,
)
from app.services.db import jobs_coll
from app.services.matching import job_matches, unmet_requirements, validate_rating
from app.services.ownership import require_owner
from app.services.skill_catalog import SkillCatalog
from app.services.user_store import UserStore
from app.utils.exceptions import ExceptionContext, NotFoundError, ValidationError
from app.utils.logging_config import PerformanceMonitor, get_logger

logger = get_logger(__name__)


def _require_text(value: str, field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field} is required", field=field)
    return cleaned


class JobStore:

    @staticmethod
    def _validate_requirements(requirements: List[SkillRequirementInput]) -> None:
        if not requirements:
            raise ValidationError(
                "At least one required skill must be specified",
                field="required_skills"
            )

        for req in requirements:
            validate_rating(req.min_rating, "min_rating")
            if not req.skill_id and not (req.skill_name and req.skill_name.strip()):
                raise ValidationError(
                    "Each required skill must have a skill_id or a skill_name",
                    field="required_skills"
                )

    @staticmethod
    async def _resolve_requirements(requirements: List[SkillRequirementInput]) -> List[SkillRequirement]:
        """Map validated requirement inputs onto catalog skill ids, creating new skills by name."""
        resolved = []
        seen = set()
        for req in requirements:
            if req.skill_id:
                try:
                    skill = await SkillCatalog.find_by_id(req.skill_id)
                except NotFoundError:
                    raise ValidationError("Unknown skill", field="skill_id", value=req.skill_id)
            else:
                skill = await SkillCatalog.resolve_skill(req.skill_name)

            if skill.skill_id in seen:
                raise ValidationError("Duplicate required skill", field="required_skills", value=skill.name)
            seen.add(skill.skill_id)
            resolved.append(SkillRequirement(skill_id=skill.skill_id, min_rating=req.min_rating))
        return resolved

    @staticmethod
    def _check_contact(contact_info) -> None:
        _require_text(contact_info.email, "contact_info.email")
        _require_text(contact_info.company, "contact_info.company")

    @staticmethod
    async def create(poster_user_id: str, payload: JobCreate) -> JobModel:
        title = _require_text(payload.title, "title")
        description = _require_text(payload.description, "description")
        JobStore._check_contact(payload.contact_info)
        JobStore._validate_requirements(payload.required_skills)

        # No catalog writes on behalf of an unknown poster
        await UserStore.get_user(poster_user_id)
        required_skills = await JobStore._resolve_requirements(payload.required_skills)

        job = JobModel(
            title=title,
            description=description,
            required_skills=required_skills,
            posted_by_id=poster_user_id,
            contact_info=payload.contact_info,
        )
        with ExceptionContext("create_job", logger, collection="jobs", user_id=poster_user_id):
            await jobs_coll.insert_one(job.dict())

        logger.info("Job created", extra={"job_id": job.job_id, "user_id": poster_user_id})
        return job

    @staticmethod
    async def get_job(job_id: str) -> JobModel:
        doc = await jobs_coll.find_one({"job_id": job_id})
        if not doc:
            raise NotFoundError("Job not found", resource="job", resource_id=job_id)
        return JobModel(**doc)

    @staticmethod
    async def update(requesting_user_id: str, job_id: str, payload: JobUpdate) -> JobModel:
        """Replace only the provided fields; required skills are replaced as a whole."""
        job = await JobStore.get_job(job_id)
        require_owner(requesting_user_id, job.dict(), "posted_by_id", "job")

        fields = payload.dict(exclude_unset=True)
        update_data = {}
        if "title" in fields:
            update_data["title"] = _require_text(fields["title"], "title")
        if "description" in fields:
            update_data["description"] = _require_text(fields["description"], "description")
        if "required_skills" in fields:
            JobStore._validate_requirements(payload.required_skills)
            resolved = await JobStore._resolve_requirements(payload.required_skills)
            update_data["required_skills"] = [r.dict() for r in resolved]
        if "contact_info" in fields:
            if payload.contact_info is None:
                raise ValidationError("contact_info cannot be null", field="contact_info")
            JobStore._check_contact(payload.contact_info)
            update_data["contact_info"] = payload.contact_info.dict()

        if not update_data:
            raise ValidationError("No update data provided")
        update_data["updated_at"] = datetime.utcnow()

        with ExceptionContext("update_job", logger, collection="jobs", job_id=job_id):
            doc = await jobs_coll.find_one_and_update(
                {"job_id": job_id},
                {"$set": update_data},
                return_document=ReturnDocument.AFTER
            )
        if not doc:
            raise NotFoundError("Job not found", resource="job", resource_id=job_id)

        logger.info("Job updated", extra={"job_id": job_id, "fields": sorted(update_data)})
        return JobModel(**doc)

    @staticmethod
    async def delete(requesting_user_id: str, job_id: str) -> None:
        job = await JobStore.get_job(job_id)
        require_owner(requesting_user_id, job.dict(), "posted_by_id", "job")

        with ExceptionContext("delete_job", logger, collection="jobs", job_id=job_id):
            await jobs_coll.delete_one({"job_id": job_id})
        logger.info("Job deleted", extra={"job_id": job_id})

    @staticmethod
    async def _expand(jobs: List[JobModel]) -> List[JobView]:
        skill_names = await SkillCatalog.names_by_id(
            req.skill_id for job in jobs for req in job.required_skills
        )
        poster_names = await UserStore.names_by_id(job.posted_by_id for job in jobs)
        views = []
        for job in jobs:
            data = job.dict()
            data["required_skills"] = [
                SkillRequirementView(**req.dict(), skill_name=skill_names.get(req.skill_id))
                for req in job.required_skills
            ]
            data["posted_by_name"] = poster_names.get(job.posted_by_id)
            views.append(JobView(**data))
        return views

    @staticmethod
    async def _find(query: dict) -> List[JobModel]:
        cursor = jobs_coll.find(query).sort("created_at", DESCENDING)
        docs = await cursor.to_list(length=None)
        return [JobModel(**doc) for doc in docs]

    @staticmethod
    async def list_all() -> List[JobView]:
        with PerformanceMonitor("list_all_jobs", logger):
            return await JobStore._expand(await JobStore._find({}))

    @staticmethod
    async def list_by_poster(user_id: str) -> List[JobView]:
        await UserStore.get_user(user_id)
        return await JobStore._expand(await JobStore._find({"posted_by_id": user_id}))

    @staticmethod
    async def get_job_view(job_id: str) -> JobView:
        job = await JobStore.get_job(job_id)
        return (await JobStore._expand([job]))[0]

    @staticmethod
    async def check_match(job_id: str, user_id: str) -> JobMatch:
        """Whether the user meets every requirement, and which ones they miss"""
        job = await JobStore.get_job(job_id)
        user = await UserStore.get_user(user_id)

        missing = unmet_requirements(job, user.skills)
        names = await SkillCatalog.names_by_id(req.skill_id for req in missing)
        return JobMatch(
            job_id=job.job_id,
            user_id=user.user_id,
            matches=not missing,
            unmet_requirements=[
                SkillRequirementView(**req.dict(), skill_name=names.get(req.skill_id))
                for req in missing
            ],
        )

    @staticmethod
    async def list_matching_jobs(user_id: str) -> List[JobView]:
        user = await UserStore.get_user(user_id)
        with PerformanceMonitor("list_matching_jobs", logger):
            jobs = [job for job in await JobStore._find({}) if job_matches(job, user.skills)]
        return await JobStore._expand(jobs)
