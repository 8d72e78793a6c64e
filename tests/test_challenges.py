"""Tests for the challenge registry."""

import asyncio
from datetime import timedelta

import pytest

from auth import ChallengeRegistry, ChallengeExpired, SignatureMismatch
from auth.challenges import CHALLENGE_PREFIX

@pytest.fixture
def registry(clock):
    return ChallengeRegistry(ttl=timedelta(minutes=10), clock=clock)

@pytest.mark.asyncio
async def test_issue_challenge(registry, clock, make_wallet):
    """Test a challenge carries signable text and a ten minute expiry."""
    wallet = make_wallet()
    challenge = await registry.issue(wallet.normalized)

    assert challenge.wallet == wallet.normalized
    assert challenge.nonce.startswith(CHALLENGE_PREFIX)
    assert len(challenge.nonce) == len(CHALLENGE_PREFIX) + 64
    assert challenge.expires_at == clock() + timedelta(minutes=10)
    assert registry.peek(wallet.normalized) == challenge

@pytest.mark.asyncio
async def test_challenge_is_single_use(registry, make_wallet):
    """Test a challenge can only be redeemed once."""
    wallet = make_wallet()
    challenge = await registry.issue(wallet.normalized)
    signature = wallet.sign(challenge.nonce)

    assert await registry.redeem(wallet.normalized, signature)

    with pytest.raises(ChallengeExpired):
        await registry.redeem(wallet.normalized, signature)

@pytest.mark.asyncio
async def test_signature_from_other_wallet(registry, make_wallet):
    """Test a valid signature from a different wallet is rejected."""
    wallet, impostor = make_wallet(), make_wallet()
    challenge = await registry.issue(wallet.normalized)

    with pytest.raises(SignatureMismatch):
        await registry.redeem(wallet.normalized, impostor.sign(challenge.nonce))

    # A failed attempt does not burn the challenge
    assert await registry.redeem(wallet.normalized, wallet.sign(challenge.nonce))

@pytest.mark.asyncio
async def test_malformed_signature(registry, make_wallet):
    """Test garbage signatures map to SignatureMismatch."""
    wallet = make_wallet()
    await registry.issue(wallet.normalized)

    for signature in ("0xdeadbeef", "not-hex", ""):
        with pytest.raises(SignatureMismatch):
            await registry.redeem(wallet.normalized, signature)

@pytest.mark.asyncio
async def test_reissue_replaces_challenge(registry, make_wallet):
    """Test only the most recently issued challenge is redeemable."""
    wallet = make_wallet()
    first = await registry.issue(wallet.normalized)
    second = await registry.issue(wallet.normalized)
    assert first.nonce != second.nonce

    with pytest.raises(SignatureMismatch):
        await registry.redeem(wallet.normalized, wallet.sign(first.nonce))

    assert await registry.redeem(wallet.normalized, wallet.sign(second.nonce))

@pytest.mark.asyncio
async def test_expired_challenge(registry, clock, make_wallet):
    """Test an expired challenge is rejected and discarded."""
    wallet = make_wallet()
    challenge = await registry.issue(wallet.normalized)
    clock.advance(minutes=10)

    assert registry.peek(wallet.normalized) is None
    with pytest.raises(ChallengeExpired):
        await registry.redeem(wallet.normalized, wallet.sign(challenge.nonce))
    assert len(registry) == 0

@pytest.mark.asyncio
async def test_redeem_without_challenge(registry, make_wallet):
    """Test redeeming before any challenge was issued."""
    wallet = make_wallet()
    with pytest.raises(ChallengeExpired):
        await registry.redeem(wallet.normalized, wallet.sign("anything"))

@pytest.mark.asyncio
async def test_concurrent_redeem(registry, make_wallet):
    """Test exactly one of two concurrent redemptions succeeds."""
    wallet = make_wallet()
    challenge = await registry.issue(wallet.normalized)
    signature = wallet.sign(challenge.nonce)

    results = await asyncio.gather(
        registry.redeem(wallet.normalized, signature),
        registry.redeem(wallet.normalized, signature),
        return_exceptions=True
    )

    assert results.count(True) == 1
    assert sum(isinstance(result, ChallengeExpired) for result in results) == 1

@pytest.mark.asyncio
async def test_purge_expired(registry, clock, make_wallet):
    """Test the reaper only evicts expired challenges."""
    stale = make_wallet()
    await registry.issue(stale.normalized)
    clock.advance(minutes=6)
    fresh = make_wallet()
    await registry.issue(fresh.normalized)
    clock.advance(minutes=5)

    assert await registry.purge_expired() == 1
    assert registry.peek(stale.normalized) is None
    assert registry.peek(fresh.normalized) is not None
