"""Tests for the job lifecycle store."""

import asyncio
import uuid

import pytest
import pytest_asyncio
from pydantic import ValidationError as PydanticValidationError

from errors import Forbidden, InvalidTransition, NotFound, ValidationError
from identities import Role
from jobs import JobFields, JobStatus, JobUpdate, MemoryJobStore, PaymentType

EMPLOYER = "0x" + "a1" * 20
OTHER_EMPLOYER = "0x" + "a2" * 20
WORKER = "0x" + "b1" * 20
OTHER_WORKER = "0x" + "b2" * 20

SAMPLE_JOB = JobFields(
    title="Build a landing page",
    description="Static page, two sections",
    payment_type=PaymentType.ONE_OFF,
    tags=["Web", "design", " web "]
)

@pytest_asyncio.fixture
async def store():
    return MemoryJobStore()

@pytest_asyncio.fixture
async def job(store):
    return await store.create(EMPLOYER, Role.EMPLOYER, SAMPLE_JOB)

@pytest.mark.asyncio
async def test_create_job(job):
    """Test a new job is OPEN with normalized tags."""
    assert job.status == JobStatus.OPEN
    assert job.employer_address == EMPLOYER
    assert job.worker_address is None
    assert job.tags == ["design", "web"]
    assert job.payment_type == PaymentType.ONE_OFF

@pytest.mark.asyncio
async def test_only_employers_create(store):
    """Test workers cannot post jobs."""
    with pytest.raises(Forbidden):
        await store.create(WORKER, Role.WORKER, SAMPLE_JOB)

def test_job_fields_validation():
    """Test titles must be non-blank and payment types known."""
    with pytest.raises(PydanticValidationError):
        JobFields(title="   ", payment_type=PaymentType.WEEKLY)
    with pytest.raises(PydanticValidationError):
        JobFields(title="ok", payment_type="HOURLY")

@pytest.mark.asyncio
async def test_full_lifecycle(store, job):
    """Test OPEN -> IN_PROGRESS -> FINISHED."""
    assigned = await store.assign(job.id, WORKER, EMPLOYER)
    assert assigned.status == JobStatus.IN_PROGRESS
    assert assigned.worker_address == WORKER

    finished = await store.finish(job.id, WORKER)
    assert finished.status == JobStatus.FINISHED
    assert (await store.get(job.id)).status == JobStatus.FINISHED

@pytest.mark.asyncio
async def test_assign_normalizes_worker(store, job):
    """Test mixed-case worker addresses are stored lower-cased."""
    assigned = await store.assign(str(job.id), WORKER.upper().replace("0X", "0x"), EMPLOYER)
    assert assigned.worker_address == WORKER

@pytest.mark.asyncio
async def test_assign_requires_employer(store, job):
    """Test only the job's employer can assign."""
    with pytest.raises(Forbidden):
        await store.assign(job.id, WORKER, OTHER_EMPLOYER)
    with pytest.raises(Forbidden):
        await store.assign(job.id, WORKER, WORKER)
    assert (await store.get(job.id)).status == JobStatus.OPEN

@pytest.mark.asyncio
async def test_assign_twice(store, job):
    """Test a job can only be assigned while OPEN."""
    await store.assign(job.id, WORKER, EMPLOYER)
    with pytest.raises(InvalidTransition):
        await store.assign(job.id, OTHER_WORKER, EMPLOYER)

    await store.finish(job.id, WORKER)
    with pytest.raises(InvalidTransition):
        await store.assign(job.id, OTHER_WORKER, EMPLOYER)

@pytest.mark.asyncio
async def test_employer_cannot_assign_self(store, job):
    """Test the employer is not a valid worker for their own job."""
    with pytest.raises(ValidationError):
        await store.assign(job.id, EMPLOYER, EMPLOYER)

@pytest.mark.asyncio
async def test_assign_invalid_address(store, job):
    """Test malformed worker addresses are rejected."""
    with pytest.raises(ValidationError):
        await store.assign(job.id, "0x123", EMPLOYER)

@pytest.mark.asyncio
async def test_finish_before_assignment(store, job):
    """Test nobody can finish an unassigned job."""
    with pytest.raises(Forbidden):
        await store.finish(job.id, WORKER)
    with pytest.raises(Forbidden):
        await store.finish(job.id, EMPLOYER)

@pytest.mark.asyncio
async def test_finish_requires_assigned_worker(store, job):
    """Test only the assigned worker can finish."""
    await store.assign(job.id, WORKER, EMPLOYER)

    with pytest.raises(Forbidden):
        await store.finish(job.id, OTHER_WORKER)
    with pytest.raises(Forbidden):
        await store.finish(job.id, EMPLOYER)

@pytest.mark.asyncio
async def test_finish_twice(store, job):
    """Test FINISHED is terminal."""
    await store.assign(job.id, WORKER, EMPLOYER)
    await store.finish(job.id, WORKER)

    with pytest.raises(InvalidTransition):
        await store.finish(job.id, WORKER)

@pytest.mark.asyncio
async def test_unknown_job(store):
    """Test missing and malformed ids are not found."""
    with pytest.raises(NotFound):
        await store.get(uuid.uuid4())
    with pytest.raises(NotFound):
        await store.get("not-a-uuid")
    with pytest.raises(NotFound):
        await store.assign(uuid.uuid4(), WORKER, EMPLOYER)
    with pytest.raises(NotFound):
        await store.finish(uuid.uuid4(), WORKER)

@pytest.mark.asyncio
async def test_concurrent_assign(store, job):
    """Test exactly one of many concurrent assignments wins."""
    workers = ["0x" + f"{i:02x}" * 20 for i in range(1, 11)]

    results = await asyncio.gather(
        *(store.assign(job.id, worker, EMPLOYER) for worker in workers),
        return_exceptions=True
    )

    winners = [result for result in results if not isinstance(result, Exception)]
    assert len(winners) == 1
    assert all(isinstance(result, InvalidTransition) for result in results if result not in winners)

    stored = await store.get(job.id)
    assert stored.status == JobStatus.IN_PROGRESS
    assert stored.worker_address == winners[0].worker_address

@pytest.mark.asyncio
async def test_update_dispatch(store, job):
    """Test PUT bodies must carry exactly one action."""
    with pytest.raises(ValidationError):
        await store.update(job.id, JobUpdate(), EMPLOYER)
    with pytest.raises(ValidationError):
        await store.update(job.id, JobUpdate(employeeAddress=WORKER, finish=True), EMPLOYER)

    assigned = await store.update(job.id, JobUpdate(employeeAddress=WORKER), EMPLOYER)
    assert assigned.status == JobStatus.IN_PROGRESS
    finished = await store.update(job.id, JobUpdate(finish=True), WORKER)
    assert finished.status == JobStatus.FINISHED

@pytest.mark.asyncio
async def test_list_jobs(store, job):
    """Test listing is newest first and filterable."""
    second = await store.create(
        OTHER_EMPLOYER, Role.EMPLOYER,
        JobFields(title="Weekly support", payment_type=PaymentType.WEEKLY, tags=["support"])
    )
    await store.assign(second.id, WORKER, OTHER_EMPLOYER)

    assert [j.id for j in await store.list()] == [second.id, job.id]
    assert [j.id for j in await store.list(employer=EMPLOYER)] == [job.id]
    assert [j.id for j in await store.list(worker=WORKER)] == [second.id]
    assert [j.id for j in await store.list(status=JobStatus.OPEN)] == [job.id]
    assert [j.id for j in await store.list(tag="WEB")] == [job.id]
    assert [j.id for j in await store.list(page=2, limit=1)] == [job.id]
    assert await store.list(page=3, limit=1) == []

@pytest.mark.asyncio
async def test_list_pagination_bounds(store):
    """Test page and limit are validated."""
    with pytest.raises(ValidationError):
        await store.list(page=0)
    with pytest.raises(ValidationError):
        await store.list(limit=101)
