"""
/api/jobs
=========
Job lifecycle endpoints used by the dashboard.

    POST   /api/jobs                 → start a clone job
    GET    /api/jobs                 → recent jobs, newest first
    GET    /api/jobs/{id}            → full job record
    POST   /api/jobs/{id}/pause      → suspend at the next checkpoint
    POST   /api/jobs/{id}/continue   → release a pause
    POST   /api/jobs/{id}/accept     → stop iterating and deploy as-is
    POST   /api/jobs/{id}/cancel     → abort
    POST   /api/jobs/{id}/iterate    → one more pass
    DELETE /api/jobs/{id}            → cancel, tear down and forget

Handlers are ``async def`` so control signals are set on the event loop.
Domain errors are mapped to HTTP status codes by ``to_http_exception``.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from cloneforge.api.deps import get_job_service
from cloneforge.core.errors import (
    CloneForgeError,
    ConfigError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from cloneforge.models.job import Job
from cloneforge.services.job_service import JobService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["Jobs"])


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------
class CreateJobRequest(BaseModel):
    # Optional so a missing name is reported as a 400, not a schema 422
    target_name: Optional[str] = None
    custom_name: Optional[str] = None
    description: Optional[str] = None
    source_url: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    github_owner: Optional[str] = None
    render_api_key: Optional[str] = None


class CreateJobResponse(BaseModel):
    job_id: str
    status: str


class DeleteJobResponse(BaseModel):
    deleted: bool
    errors: List[str] = []


_STATUS_CODES = {
    ValidationError: 400,
    ConfigError: 400,
    NotFoundError: 404,
    PreconditionError: 409,
}


def to_http_exception(exc: CloneForgeError) -> HTTPException:
    for error_type, status_code in _STATUS_CODES.items():
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.post("", response_model=CreateJobResponse)
async def create_job(request: CreateJobRequest, service: JobService = Depends(get_job_service)):
    try:
        job = await service.create(
            target_name=request.target_name,
            custom_name=request.custom_name,
            description=request.description,
            source_url=request.source_url,
            api_key=request.anthropic_api_key,
            github_owner=request.github_owner,
            render_api_key=request.render_api_key,
        )
    except CloneForgeError as e:
        logger.warning("Job creation rejected: %s", e)
        raise to_http_exception(e)
    return CreateJobResponse(job_id=job.id, status=job.status.value)


@router.get("", response_model=List[Job])
async def list_jobs(service: JobService = Depends(get_job_service)):
    return service.list()


@router.get("/{job_id}", response_model=Job)
async def get_job(job_id: str, service: JobService = Depends(get_job_service)):
    try:
        return service.get(job_id)
    except CloneForgeError as e:
        raise to_http_exception(e)


@router.post("/{job_id}/pause", response_model=Job)
async def pause_job(job_id: str, service: JobService = Depends(get_job_service)):
    try:
        return service.pause(job_id)
    except CloneForgeError as e:
        raise to_http_exception(e)


@router.post("/{job_id}/continue", response_model=Job)
async def continue_job(job_id: str, service: JobService = Depends(get_job_service)):
    try:
        return service.resume(job_id)
    except CloneForgeError as e:
        raise to_http_exception(e)


@router.post("/{job_id}/accept", response_model=Job)
async def accept_job(job_id: str, service: JobService = Depends(get_job_service)):
    try:
        return service.accept(job_id)
    except CloneForgeError as e:
        raise to_http_exception(e)


@router.post("/{job_id}/cancel", response_model=Job)
async def cancel_job(job_id: str, service: JobService = Depends(get_job_service)):
    try:
        return await service.cancel(job_id)
    except CloneForgeError as e:
        raise to_http_exception(e)


@router.post("/{job_id}/iterate", response_model=Job)
async def iterate_job(job_id: str, service: JobService = Depends(get_job_service)):
    try:
        return await service.iterate(job_id)
    except CloneForgeError as e:
        raise to_http_exception(e)


@router.delete("/{job_id}", response_model=DeleteJobResponse)
async def delete_job(job_id: str, service: JobService = Depends(get_job_service)):
    try:
        errors = await service.delete(job_id)
    except CloneForgeError as e:
        raise to_http_exception(e)
    return DeleteJobResponse(deleted=True, errors=errors)
