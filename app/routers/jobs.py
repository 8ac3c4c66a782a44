from fastapi import APIRouter, Depends, Request
from typing import List

from app.models.requests import JobCreate, JobUpdate
from app.models.schemas import JobMatch, JobModel, JobView, UserModel
from app.services.auth import get_current_user
from app.services.job_store import JobStore
from app.utils.logging_config import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.post("/", response_model=JobModel, status_code=201)
async def create_job(
    payload: JobCreate,
    request: Request,
    current_user: UserModel = Depends(get_current_user)
):
    """Post a job with at least one required skill"""
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.info("Creating job", extra={"request_id": request_id, "user_id": current_user.user_id})
    return await JobStore.create(current_user.user_id, payload)


@router.get("/", response_model=List[JobView])
async def list_jobs():
    """All jobs, newest first"""
    return await JobStore.list_all()


@router.get("/matching", response_model=List[JobView])
async def list_matching_jobs(current_user: UserModel = Depends(get_current_user)):
    """Jobs whose every requirement the current user meets"""
    return await JobStore.list_matching_jobs(current_user.user_id)


@router.get("/user/{user_id}", response_model=List[JobView])
async def list_jobs_by_user(user_id: str):
    return await JobStore.list_by_poster(user_id)


@router.get("/{job_id}", response_model=JobView)
async def get_job(job_id: str):
    return await JobStore.get_job_view(job_id)


@router.get("/{job_id}/match", response_model=JobMatch)
async def check_job_match(job_id: str, current_user: UserModel = Depends(get_current_user)):
    return await JobStore.check_match(job_id, current_user.user_id)


@router.put("/{job_id}", response_model=JobModel)
async def update_job(job_id: str, payload: JobUpdate, current_user: UserModel = Depends(get_current_user)):
    """Update a job you posted; provided fields replace the stored ones"""
    return await JobStore.update(current_user.user_id, job_id, payload)


@router.delete("/{job_id}")
async def delete_job(job_id: str, current_user: UserModel = Depends(get_current_user)):
    await JobStore.delete(current_user.user_id, job_id)
    return {"message": "Job deleted successfully"}
