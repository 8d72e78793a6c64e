"""Jobs module for the job lifecycle state machine.

A job moves OPEN -> IN_PROGRESS -> FINISHED and nowhere else:

- assign: employer only, job OPEN with no worker set
- finish: assigned worker only, job IN_PROGRESS

Each transition is atomic per job, so under concurrent assignment
exactly one caller wins and the rest get InvalidTransition.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Union
from uuid import UUID, uuid4

from database import get_pool
from errors import Forbidden, InvalidTransition, NotFound, ValidationError
from identities import Role, normalize_address
from utils import KeyedLock, page_bounds, utcnow
from .models import Job, JobFields, JobStatus, JobUpdate, PaymentType

logger = logging.getLogger(__name__)

JOB_COLUMNS = '''
    id, payment_type, title, description, tags, employer_address,
    worker_address, status, created_at, updated_at
'''

def parse_job_id(job_id: Union[str, UUID]) -> UUID:
    """Parse a job id, treating malformed ids as not found."""
    if isinstance(job_id, UUID):
        return job_id
    try:
        return UUID(str(job_id))
    except ValueError:
        raise NotFound(f"Job {job_id} not found")

def check_assignment(job: Job, worker: str, actor: str) -> None:
    """Raise the error an assignment of ``job`` by ``actor`` must fail with, if any."""
    if actor != job.employer_address:
        raise Forbidden("Only the job's employer may assign a worker")
    if job.status != JobStatus.OPEN or job.worker_address is not None:
        raise InvalidTransition(f"Job is {job.status.value}, not OPEN")
    if worker == job.employer_address:
        raise ValidationError("Employer cannot assign themselves")

def check_completion(job: Job, actor: str) -> None:
    """Raise the error a completion of ``job`` by ``actor`` must fail with, if any."""
    if job.worker_address is None or actor != job.worker_address:
        raise Forbidden("Only the assigned worker may finish this job")
    if job.status != JobStatus.IN_PROGRESS:
        raise InvalidTransition(f"Job is {job.status.value}, not IN_PROGRESS")

class BaseJobStore(ABC):
    """Interface for job persistence and transitions."""

    async def create(self, employer: str, role: Role, fields: JobFields) -> Job:
        """Create an OPEN job owned by ``employer``.

        Raises:
            Forbidden: If the caller's role is not employer
        """
        if role != Role.EMPLOYER:
            raise Forbidden("Only employers may post jobs")
        job = await self._insert(employer, fields)
        logger.info(f"Job {job.id} created by {employer}")
        return job

    async def assign(self, job_id, worker: str, actor: str) -> Job:
        """Assign ``worker`` to an OPEN job (OPEN -> IN_PROGRESS).

        Raises:
            NotFound: If the job does not exist
            Forbidden: If ``actor`` is not the job's employer
            InvalidTransition: If the job is not OPEN or already has a worker
            ValidationError: If the worker address is malformed or is the employer
        """
        job_id = parse_job_id(job_id)
        worker = normalize_address(worker, field="employeeAddress")
        job = await self._assign(job_id, worker, actor)
        logger.info(f"Job {job_id} assigned to {worker}")
        return job

    async def finish(self, job_id, actor: str) -> Job:
        """Mark an IN_PROGRESS job finished (IN_PROGRESS -> FINISHED).

        Raises:
            NotFound: If the job does not exist
            Forbidden: If ``actor`` is not the assigned worker
            InvalidTransition: If the job is not IN_PROGRESS
        """
        job_id = parse_job_id(job_id)
        job = await self._finish(job_id, actor)
        logger.info(f"Job {job_id} finished by {actor}")
        return job

    async def update(self, job_id, update: JobUpdate, actor: str) -> Job:
        """Apply a PUT /jobs/{id} body: exactly one of assignment or finish."""
        wants_assign = update.employee_address is not None
        wants_finish = bool(update.finish)
        if wants_assign == wants_finish:
            raise ValidationError("Provide exactly one of employeeAddress or finish")
        if wants_assign:
            return await self.assign(job_id, update.employee_address, actor)
        return await self.finish(job_id, actor)

    async def get(self, job_id) -> Job:
        """Get a job by id.

        Raises:
            NotFound: If the job does not exist
        """
        job = await self._fetch(parse_job_id(job_id))
        if job is None:
            raise NotFound(f"Job {job_id} not found")
        return job

    @abstractmethod
    async def list(
        self,
        employer: Optional[str] = None,
        worker: Optional[str] = None,
        status: Optional[JobStatus] = None,
        tag: Optional[str] = None,
        page: int = 1,
        limit: int = 50
    ) -> List[Job]:
        """List jobs newest first, optionally filtered."""

    @abstractmethod
    async def _insert(self, employer: str, fields: JobFields) -> Job:
        pass

    @abstractmethod
    async def _assign(self, job_id: UUID, worker: str, actor: str) -> Job:
        pass

    @abstractmethod
    async def _finish(self, job_id: UUID, actor: str) -> Job:
        pass

    @abstractmethod
    async def _fetch(self, job_id: UUID) -> Optional[Job]:
        pass

class JobManager(BaseJobStore):
    """Job store backed by the ``jobs`` table.

    Transitions are single conditional UPDATEs, so the database decides
    the winner of a race.
    """

    def __init__(self, pool=None):
        """Initialize the job manager.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
        """
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def _insert(self, employer: str, fields: JobFields) -> Job:
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f'''
                INSERT INTO jobs (
                    payment_type, title, description, tags, employer_address, status
                ) VALUES ($1, $2, $3, $4, $5, 'OPEN')
                RETURNING {JOB_COLUMNS}
                ''',
                fields.payment_type.value,
                fields.title,
                fields.description,
                fields.tags,
                employer
            )
        return _row_to_job(row)

    async def _assign(self, job_id: UUID, worker: str, actor: str) -> Job:
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f'''
                UPDATE jobs
                SET worker_address = $2, status = 'IN_PROGRESS', updated_at = now()
                WHERE id = $1
                AND employer_address = $3
                AND employer_address != $2
                AND status = 'OPEN'
                AND worker_address IS NULL
                RETURNING {JOB_COLUMNS}
                ''',
                job_id,
                worker,
                actor
            )
            if row:
                return _row_to_job(row)

            current = await self._fetch_with(conn, job_id)

        if current is None:
            raise NotFound(f"Job {job_id} not found")
        check_assignment(current, worker, actor)
        # The row changed between the UPDATE and the re-read
        raise InvalidTransition("Job was modified concurrently")

    async def _finish(self, job_id: UUID, actor: str) -> Job:
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f'''
                UPDATE jobs
                SET status = 'FINISHED', updated_at = now()
                WHERE id = $1
                AND worker_address = $2
                AND status = 'IN_PROGRESS'
                RETURNING {JOB_COLUMNS}
                ''',
                job_id,
                actor
            )
            if row:
                return _row_to_job(row)

            current = await self._fetch_with(conn, job_id)

        if current is None:
            raise NotFound(f"Job {job_id} not found")
        check_completion(current, actor)
        raise InvalidTransition("Job was modified concurrently")

    async def _fetch(self, job_id: UUID) -> Optional[Job]:
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            return await self._fetch_with(conn, job_id)

    async def _fetch_with(self, conn, job_id: UUID) -> Optional[Job]:
        row = await conn.fetchrow(
            f'SELECT {JOB_COLUMNS} FROM jobs WHERE id = $1',
            job_id
        )
        return _row_to_job(row) if row else None

    async def list(
        self,
        employer: Optional[str] = None,
        worker: Optional[str] = None,
        status: Optional[JobStatus] = None,
        tag: Optional[str] = None,
        page: int = 1,
        limit: int = 50
    ) -> List[Job]:
        offset, limit = page_bounds(page, limit)
        await self.ensure_pool()

        query = f'SELECT {JOB_COLUMNS} FROM jobs WHERE true'
        params = []

        if employer:
            params.append(normalize_address(employer, field="employer"))
            query += f" AND employer_address = ${len(params)}"
        if worker:
            params.append(normalize_address(worker, field="worker"))
            query += f" AND worker_address = ${len(params)}"
        if status:
            params.append(JobStatus(status).value)
            query += f" AND status = ${len(params)}"
        if tag:
            params.append(tag.strip().lower())
            query += f" AND ${len(params)} = ANY(tags)"

        params.extend([limit, offset])
        query += f" ORDER BY created_at DESC, id LIMIT ${len(params) - 1} OFFSET ${len(params)}"

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [_row_to_job(row) for row in rows]

class MemoryJobStore(BaseJobStore):
    """In-process job store with a lock per job. State is lost on restart."""

    def __init__(self):
        self._jobs: Dict[UUID, Job] = {}
        self._locks = KeyedLock()

    async def _insert(self, employer: str, fields: JobFields) -> Job:
        now = utcnow()
        job = Job(
            id=uuid4(),
            payment_type=fields.payment_type,
            title=fields.title,
            description=fields.description,
            tags=list(fields.tags),
            employer_address=employer,
            worker_address=None,
            status=JobStatus.OPEN,
            created_at=now,
            updated_at=now
        )
        self._jobs[job.id] = job
        return job

    async def _assign(self, job_id: UUID, worker: str, actor: str) -> Job:
        async with self._locks.hold(job_id):
            job = self._jobs.get(job_id)
            if job is None:
                raise NotFound(f"Job {job_id} not found")
            check_assignment(job, worker, actor)
            job = job.model_copy(update={
                'worker_address': worker,
                'status': JobStatus.IN_PROGRESS,
                'updated_at': utcnow()
            })
            self._jobs[job_id] = job
            return job

    async def _finish(self, job_id: UUID, actor: str) -> Job:
        async with self._locks.hold(job_id):
            job = self._jobs.get(job_id)
            if job is None:
                raise NotFound(f"Job {job_id} not found")
            check_completion(job, actor)
            job = job.model_copy(update={
                'status': JobStatus.FINISHED,
                'updated_at': utcnow()
            })
            self._jobs[job_id] = job
            return job

    async def _fetch(self, job_id: UUID) -> Optional[Job]:
        return self._jobs.get(job_id)

    async def list(
        self,
        employer: Optional[str] = None,
        worker: Optional[str] = None,
        status: Optional[JobStatus] = None,
        tag: Optional[str] = None,
        page: int = 1,
        limit: int = 50
    ) -> List[Job]:
        offset, limit = page_bounds(page, limit)
        if employer:
            employer = normalize_address(employer, field="employer")
        if worker:
            worker = normalize_address(worker, field="worker")
        if tag:
            tag = tag.strip().lower()

        # dicts keep insertion order, so reversing gives newest first on ties
        jobs = [
            job for job in reversed(list(self._jobs.values()))
            if (not employer or job.employer_address == employer)
            and (not worker or job.worker_address == worker)
            and (not status or job.status == JobStatus(status))
            and (not tag or tag in job.tags)
        ]
        jobs.sort(key=lambda job: job.created_at, reverse=True)
        return jobs[offset:offset + limit]

def _row_to_job(row) -> Job:
    return Job(
        id=row['id'],
        payment_type=PaymentType(row['payment_type']),
        title=row['title'],
        description=row['description'],
        tags=sorted(row['tags'] or []),
        employer_address=row['employer_address'],
        worker_address=row['worker_address'],
        status=JobStatus(row['status']),
        created_at=row['created_at'],
        updated_at=row['updated_at']
    )

__all__ = [
    'Job',
    'JobFields',
    'JobUpdate',
    'JobStatus',
    'PaymentType',
    'BaseJobStore',
    'JobManager',
    'MemoryJobStore',
]
