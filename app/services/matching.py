import re
from typing import Any, Dict, List, Optional

from app.models.requests import SearchCriteria
from app.models.schemas import JobModel, SkillEntry, SkillRequirement
from app.utils.exceptions import ValidationError

MIN_RATING = 1
MAX_RATING = 10


def validate_rating(value: Any, field: str = "rating") -> int:
    # bool is an int subclass; True must not pass as a rating of 1
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", field=field, value=value)
    if not MIN_RATING <= value <= MAX_RATING:
        raise ValidationError(
            f"{field} must be between {MIN_RATING} and {MAX_RATING}",
            field=field, value=value
        )
    return value


def ratings_by_skill(user_skills: List[SkillEntry]) -> Dict[str, int]:
    return {entry.skill_id: entry.rating for entry in user_skills}


def unmet_requirements(job: JobModel, user_skills: List[SkillEntry]) -> List[SkillRequirement]:
    """Requirements the user lacks or rates below the job's minimum"""
    ratings = ratings_by_skill(user_skills)
    return [
        req for req in job.required_skills
        if ratings.get(req.skill_id, 0) < req.min_rating
    ]


def job_matches(job: JobModel, user_skills: List[SkillEntry]) -> bool:
    """True only when every required skill is present at or above min_rating"""
    return not unmet_requirements(job, user_skills)


def skill_name_query(names: List[str]) -> Optional[Dict[str, Any]]:
    """Case-insensitive substring match against catalog names"""
    patterns = [n.strip() for n in names if n and n.strip()]
    if not patterns:
        return None
    return {"$or": [
        {"name": {"$regex": re.escape(p), "$options": "i"}} for p in patterns
    ]}


def check_rating_window(criteria: SearchCriteria) -> None:
    if criteria.min_rating is not None:
        validate_rating(criteria.min_rating, "min_rating")
    if criteria.max_rating is not None:
        validate_rating(criteria.max_rating, "max_rating")
    if (
        criteria.min_rating is not None
        and criteria.max_rating is not None
        and criteria.min_rating > criteria.max_rating
    ):
        raise ValidationError(
            "min_rating cannot exceed max_rating",
            field="min_rating", value=criteria.min_rating
        )


def build_user_search_query(criteria: SearchCriteria, skill_ids: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Build the users filter for a member search.

    skill_ids is None when no skill names were requested; then the rating
    window, if any, applies to any of the user's entries. Skill and rating
    conditions sit in one $elemMatch so they must hold for the same entry.
    """
    query: Dict[str, Any] = {}

    entry: Dict[str, Any] = {}
    if skill_ids is not None:
        entry["skill_id"] = {"$in": list(skill_ids)}

    rating: Dict[str, int] = {}
    if criteria.min_rating is not None:
        rating["$gte"] = criteria.min_rating
    if criteria.max_rating is not None:
        rating["$lte"] = criteria.max_rating
    if rating:
        entry["rating"] = rating

    if entry:
        query["skills"] = {"$elemMatch": entry}

    if criteria.available_for_hire is not None:
        query["available_for_hire"] = criteria.available_for_hire

    return query
