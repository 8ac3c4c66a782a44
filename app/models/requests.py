from pydantic import BaseModel
from typing import List, Optional

from app.models.schemas import ContactInfo, JobContactInfo

# Request payloads. Range checks on ratings live in the services so that a bad
# rating is reported the same way whether it comes over HTTP or not.


class ProfileHints(BaseModel):
    """Identity details supplied by the auth provider"""
    name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None


class ProfileUpdate(BaseModel):
    """Partial profile update; only fields present in the payload are applied"""
    name: Optional[str] = None
    available_for_hire: Optional[bool] = None
    contact_info: Optional[ContactInfo] = None


class AddSkillRequest(BaseModel):
    skill_name: str
    rating: int


class UpdateSkillRatingRequest(BaseModel):
    rating: int


class EndorseRequest(BaseModel):
    endorsed_user_id: str
    skill_id: str


class SkillRequirementInput(BaseModel):
    """A job requirement referencing a catalog skill by id or by name"""
    skill_id: Optional[str] = None
    skill_name: Optional[str] = None
    min_rating: int


class JobCreate(BaseModel):
    title: str
    description: str
    required_skills: List[SkillRequirementInput]
    contact_info: JobContactInfo


class JobUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    required_skills: Optional[List[SkillRequirementInput]] = None
    contact_info: Optional[JobContactInfo] = None


class SearchCriteria(BaseModel):
    skill_names: List[str] = []
    min_rating: Optional[int] = None
    max_rating: Optional[int] = None
    available_for_hire: Optional[bool] = None


# -------- Identity provider webhook --------
class EmailAddress(BaseModel):
    email_address: str


class UserCreatedData(BaseModel):
    id: str
    email_addresses: List[EmailAddress] = []
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None


class UserCreatedEvent(BaseModel):
    type: Optional[str] = None
    data: UserCreatedData
