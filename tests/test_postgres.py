"""Tests for the database-backed stores.

These run against the database configured in settings.conf and are
skipped when it cannot be reached.
"""

import asyncio
import secrets
from datetime import timedelta
from uuid import uuid4

import asyncpg
import pytest
import pytest_asyncio

from database import DatabaseError, init_db, close as close_db
from errors import Forbidden, InvalidTransition, NotFound
from identities import IdentityStore, Role
from jobs import JobFields, JobManager, JobStatus, PaymentType
from messages import MessageStore
from utils import utcnow

_unreachable = []

def new_wallet() -> str:
    return "0x" + secrets.token_hex(20)

def new_dispute() -> str:
    return str(uuid4().int)

@pytest_asyncio.fixture
async def db_pool():
    """Create and return a database connection pool."""
    if _unreachable:
        pytest.skip(_unreachable[0])
    try:
        pool = await init_db()
    except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, DatabaseError) as e:
        _unreachable.append(f"database unavailable: {e}")
        pytest.skip(_unreachable[0])
    yield pool
    await close_db()

@pytest_asyncio.fixture
async def job_manager(db_pool):
    """Create and return a JobManager instance."""
    return JobManager(db_pool)

@pytest.fixture
def employer():
    return new_wallet()

@pytest_asyncio.fixture
async def open_job(job_manager, employer):
    """Create and return an OPEN job."""
    return await job_manager.create(
        employer,
        Role.EMPLOYER,
        JobFields(title="Audit contract", payment_type=PaymentType.ONE_OFF, tags=["Solidity"])
    )

@pytest.mark.asyncio
async def test_create_and_get_job(job_manager, open_job, employer):
    """Test a created job is stored OPEN and readable."""
    assert open_job.status == JobStatus.OPEN
    assert open_job.worker_address is None
    assert open_job.tags == ["solidity"]

    fetched = await job_manager.get(open_job.id)
    assert fetched == open_job

    jobs = await job_manager.list(employer=employer)
    assert [job.id for job in jobs] == [open_job.id]

@pytest.mark.asyncio
async def test_job_lifecycle(job_manager, open_job, employer):
    """Test OPEN -> IN_PROGRESS -> FINISHED through the database."""
    worker = new_wallet()

    job = await job_manager.assign(open_job.id, worker.upper().replace("0X", "0x"), employer)
    assert job.status == JobStatus.IN_PROGRESS
    assert job.worker_address == worker

    job = await job_manager.finish(open_job.id, worker)
    assert job.status == JobStatus.FINISHED

    with pytest.raises(InvalidTransition):
        await job_manager.finish(open_job.id, worker)

@pytest.mark.asyncio
async def test_assign_by_other_wallet(job_manager, open_job):
    """Test only the employer may assign."""
    with pytest.raises(Forbidden):
        await job_manager.assign(open_job.id, new_wallet(), new_wallet())

    job = await job_manager.get(open_job.id)
    assert job.status == JobStatus.OPEN

@pytest.mark.asyncio
async def test_assign_after_assignment(job_manager, open_job, employer):
    """Test an assigned job cannot be assigned again."""
    worker = new_wallet()
    await job_manager.assign(open_job.id, worker, employer)

    with pytest.raises(InvalidTransition):
        await job_manager.assign(open_job.id, new_wallet(), employer)

    job = await job_manager.get(open_job.id)
    assert job.worker_address == worker

@pytest.mark.asyncio
async def test_finish_before_assignment(job_manager, open_job, employer):
    """Test nobody can finish an OPEN job."""
    with pytest.raises(Forbidden):
        await job_manager.finish(open_job.id, new_wallet())
    with pytest.raises(Forbidden):
        await job_manager.finish(open_job.id, employer)

@pytest.mark.asyncio
async def test_unknown_job(job_manager, employer):
    """Test transitions on a missing job raise NotFound."""
    with pytest.raises(NotFound):
        await job_manager.assign(uuid4(), new_wallet(), employer)
    with pytest.raises(NotFound):
        await job_manager.finish(uuid4(), new_wallet())

@pytest.mark.asyncio
async def test_concurrent_assign(job_manager, open_job, employer):
    """Test exactly one of several concurrent assignments wins."""
    workers = [new_wallet() for _ in range(5)]

    results = await asyncio.gather(
        *(job_manager.assign(open_job.id, worker, employer) for worker in workers),
        return_exceptions=True
    )

    winners = [result for result in results if not isinstance(result, Exception)]
    losers = [result for result in results if isinstance(result, Exception)]
    assert len(winners) == 1
    assert all(isinstance(error, InvalidTransition) for error in losers)

    job = await job_manager.get(open_job.id)
    assert job.status == JobStatus.IN_PROGRESS
    assert job.worker_address == winners[0].worker_address

@pytest.mark.asyncio
async def test_identity_first_writer_wins(db_pool):
    """Test a second create keeps the first profile."""
    store = IdentityStore(db_pool)
    wallet = new_wallet()

    identity, created = await store.create_if_absent(wallet, "Alice", Role.EMPLOYER)
    assert created
    assert identity.display_name == "Alice"

    identity, created = await store.create_if_absent(wallet, "Mallory", Role.WORKER)
    assert not created
    assert identity.display_name == "Alice"
    assert identity.role == Role.EMPLOYER

    assert await store.get(wallet) == identity
    assert await store.exists(wallet)
    assert not await store.exists(new_wallet())

@pytest.mark.asyncio
async def test_concurrent_identity_creation(db_pool):
    """Test racing creates store exactly one identity."""
    store = IdentityStore(db_pool)
    wallet = new_wallet()

    results = await asyncio.gather(
        *(store.create_if_absent(wallet, f"Name {i}", Role.WORKER) for i in range(5))
    )

    assert sum(created for _, created in results) == 1
    assert len({identity.display_name for identity, _ in results}) == 1

@pytest.mark.asyncio
async def test_messages_oldest_first(db_pool, clock):
    """Test a conversation lists oldest first."""
    store = MessageStore(db_pool, clock=clock)
    conversation_id = new_dispute()
    sender = new_wallet()

    for content in ("first", "second", "third"):
        await store.append(conversation_id, sender, content)
        clock.advance(seconds=1)

    messages = await store.list(conversation_id)
    assert [m.content for m in messages] == ["first", "second", "third"]
    assert [m.content for m in await store.list(conversation_id, page=2, limit=2)] == ["third"]

@pytest.mark.asyncio
async def test_message_retention(db_pool, clock):
    """Test expired messages are hidden and then deleted by the sweep."""
    conversation_id = new_dispute()
    sender = new_wallet()

    clock.now = utcnow() - timedelta(days=15)
    store = MessageStore(db_pool, clock=clock)
    await store.append(conversation_id, sender, "stale")
    clock.now = utcnow()
    await store.append(conversation_id, sender, "fresh")

    assert [m.content for m in await store.list(conversation_id)] == ["fresh"]

    assert await store.purge_expired() >= 1
    async with db_pool.acquire() as conn:
        remaining = await conn.fetch(
            'SELECT content FROM messages WHERE conversation_id = $1',
            conversation_id
        )
    assert [row['content'] for row in remaining] == ["fresh"]

@pytest.mark.asyncio
async def test_messages_for_participant(db_pool, clock):
    """Test direct messages are listed for both wallets, newest first."""
    store = MessageStore(db_pool, clock=clock)
    alice, bob = new_wallet(), new_wallet()
    conversation_id = ":".join(sorted([alice, bob]))

    await store.append(conversation_id, alice, "hi bob", receiver=bob)
    clock.advance(seconds=1)
    await store.append(conversation_id, bob, "hi alice", receiver=alice)
    await store.append(new_dispute(), alice, "dispute note")

    for wallet in (alice, bob):
        messages = await store.list_for_participant(wallet)
        assert [m.content for m in messages] == ["hi alice", "hi bob"]
