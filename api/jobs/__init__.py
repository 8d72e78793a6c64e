"""Job lifecycle endpoints.

Reads are public. Creating a job requires an employer token; updating
one requires the caller to be the job's employer (assignment) or its
assigned worker (completion).
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from auth import AuthenticatedIdentity, get_current_user
from jobs import Job, JobFields, JobStatus, JobUpdate
from ..services import Services, get_services

router = APIRouter(
    prefix="/jobs",
    tags=["Jobs"]
)

@router.post("", response_model=Job, status_code=201)
async def create_job(
    fields: JobFields,
    identity: AuthenticatedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Post a new OPEN job as the authenticated employer."""
    return await services.jobs.create(identity.wallet, identity.role, fields)

@router.put("/{job_id}", response_model=Job)
async def update_job(
    job_id: str,
    update: JobUpdate,
    identity: AuthenticatedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Assign a worker (``employeeAddress``) or mark the job finished (``finish``).

    Exactly one of the two fields must be supplied.
    """
    return await services.jobs.update(job_id, update, identity.wallet)

@router.get("", response_model=List[Job])
async def list_jobs(
    employer: Optional[str] = None,
    worker: Optional[str] = None,
    status: Optional[JobStatus] = None,
    tag: Optional[str] = None,
    page: int = Query(1),
    limit: int = Query(50),
    services: Services = Depends(get_services)
):
    """List jobs newest first."""
    return await services.jobs.list(
        employer=employer,
        worker=worker,
        status=status,
        tag=tag,
        page=page,
        limit=limit
    )

@router.get("/{job_id}", response_model=Job)
async def get_job(job_id: str, services: Services = Depends(get_services)):
    """Get a single job."""
    return await services.jobs.get(job_id)

__all__ = ['router']
