from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
import uuid


def new_id() -> str:
    return str(uuid.uuid4())


# -------- Skills --------
class SkillModel(BaseModel):
    skill_id: str = Field(default_factory=new_id)
    name: str


# -------- Users --------
class ContactInfo(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None


class SkillEntry(BaseModel):
    skill_id: str
    rating: int
    endorser_ids: List[str] = []


class UserModel(BaseModel):
    user_id: str = Field(default_factory=new_id)
    auth_id: str
    name: str = ""
    email: Optional[str] = None
    available_for_hire: bool = False
    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    skills: List[SkillEntry] = []
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class SkillEntryView(BaseModel):
    skill_id: str
    skill_name: Optional[str] = None
    rating: int
    endorser_ids: List[str] = []
    endorsement_count: int = 0


class PublicUser(BaseModel):
    """User as shown to other members: no auth id, email or contact info"""
    user_id: str
    name: str
    available_for_hire: bool
    skills: List[SkillEntryView] = []


# -------- Endorsements --------
class EndorsementModel(BaseModel):
    endorsement_id: str = Field(default_factory=new_id)
    skill_id: str
    endorsed_user_id: str
    endorsed_by_id: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class EndorsementView(EndorsementModel):
    skill_name: Optional[str] = None
    endorsed_user_name: Optional[str] = None
    endorsed_by_name: Optional[str] = None


# -------- Jobs --------
class JobContactInfo(BaseModel):
    email: str
    company: str
    phone: Optional[str] = None


class SkillRequirement(BaseModel):
    skill_id: str
    min_rating: int


class JobModel(BaseModel):
    job_id: str = Field(default_factory=new_id)
    title: str
    description: str
    required_skills: List[SkillRequirement]
    posted_by_id: str
    contact_info: JobContactInfo
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class SkillRequirementView(SkillRequirement):
    skill_name: Optional[str] = None


class JobView(JobModel):
    required_skills: List[SkillRequirementView]
    posted_by_name: Optional[str] = None


class JobMatch(BaseModel):
    job_id: str
    user_id: str
    matches: bool
    unmet_requirements: List[SkillRequirementView] = []
