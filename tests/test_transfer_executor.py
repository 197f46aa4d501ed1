"""
Tests for the transfer executor's expiry retry loop.
"""

import asyncio

import pytest

from periodic_transfer.errors import (
    RetryExhaustedError,
    TransferError,
    TransferExpiryError,
)
from periodic_transfer.transfer_executor import TransferExecutor
from tests.helpers import FakeSession


def expired():
    return TransferExpiryError("Signature has expired: block height exceeded")


@pytest.mark.asyncio
async def test_first_attempt_success(clock, sender, destination):
    session = FakeSession(outcomes=["5sig"])
    executor = TransferExecutor(session, clock=clock)

    result = await executor.execute(sender, destination, 100_000)

    assert result.success
    assert result.signature == "5sig"
    assert result.attempts == 1
    assert result.error is None
    assert session.submissions[0].lamports == 100_000
    assert session.submissions[0].destination == destination
    assert session.submissions[0].sender is sender


@pytest.mark.asyncio
async def test_three_expiries_then_success(clock, sender, destination):
    """Four submissions, each against its own blockhash"""
    session = FakeSession(outcomes=[expired(), expired(), expired(), "final-sig"])
    executor = TransferExecutor(session, clock=clock)

    result = await executor.execute(sender, destination, 100_000)

    assert result.success
    assert result.signature == "final-sig"
    assert result.attempts == 4
    assert len(session.submissions) == 4
    assert len(session.tokens) == 4
    assert len(set(result.blockhashes)) == 4

    used = [request.token for request in session.submissions]
    assert used == session.tokens


@pytest.mark.parametrize("expiries", [0, 1, 5])
@pytest.mark.asyncio
async def test_retry_converges_after_n_expiries(clock, sender, destination, expiries):
    session = FakeSession(outcomes=[expired() for _ in range(expiries)] + ["ok"])
    executor = TransferExecutor(session, max_attempts=None, clock=clock)

    result = await executor.execute(sender, destination, 1)

    assert result.success
    assert result.attempts == expiries + 1
    assert len(set(result.blockhashes)) == expiries + 1


@pytest.mark.asyncio
async def test_terminal_error_is_not_retried(clock, sender, destination):
    session = FakeSession(outcomes=[TransferError("insufficient funds for fee"), "never"])
    executor = TransferExecutor(session, clock=clock)

    result = await executor.execute(sender, destination, 100_000)

    assert not result.success
    assert result.attempts == 1
    assert len(session.submissions) == 1
    assert isinstance(result.error, TransferError)
    assert not isinstance(result.error, RetryExhaustedError)
    assert "insufficient funds" in result.error_message


@pytest.mark.asyncio
async def test_unclassified_exception_becomes_terminal(clock, sender, destination):
    session = FakeSession(outcomes=[RuntimeError("boom")])
    executor = TransferExecutor(session, clock=clock)

    result = await executor.execute(sender, destination, 100_000)

    assert not result.success
    assert isinstance(result.error, TransferError)
    assert isinstance(result.error.cause, RuntimeError)


@pytest.mark.asyncio
async def test_attempt_ceiling(clock, sender, destination):
    session = FakeSession(outcomes=[expired() for _ in range(10)])
    executor = TransferExecutor(session, max_attempts=3, clock=clock)

    result = await executor.execute(sender, destination, 100_000)

    assert not result.success
    assert isinstance(result.error, RetryExhaustedError)
    assert result.error.attempts == 3
    assert len(session.submissions) == 3


@pytest.mark.asyncio
async def test_elapsed_ceiling(clock, sender, destination):
    session = FakeSession(outcomes=[expired() for _ in range(10)])
    executor = TransferExecutor(
        session,
        max_attempts=None,
        max_elapsed_seconds=25.0,
        retry_delay_seconds=10.0,
        clock=clock,
    )

    result = await executor.execute(sender, destination, 100_000)

    # Expiries at t=0, 10, 20 retry; the one at t=30 gives up
    assert isinstance(result.error, RetryExhaustedError)
    assert result.attempts == 4
    assert clock.sleeps == [10.0, 10.0, 10.0]
    assert result.elapsed_seconds == 30.0


@pytest.mark.asyncio
async def test_blockhash_fetch_failure_is_terminal(clock, sender, destination):
    session = FakeSession()
    session.token_error = TransferError("Could not fetch recent blockhash: timeout")
    executor = TransferExecutor(session, clock=clock)

    result = await executor.execute(sender, destination, 100_000)

    assert not result.success
    assert session.submissions == []
    assert "blockhash" in result.error_message


@pytest.mark.asyncio
async def test_cancellation_propagates(sender, destination):
    class HangingSession(FakeSession):
        async def submit_and_confirm(self, request, signers=None):
            self.submissions.append(request)
            await asyncio.Event().wait()

    session = HangingSession()
    executor = TransferExecutor(session)
    task = asyncio.create_task(executor.execute(sender, destination, 100_000))

    await asyncio.sleep(0)
    assert len(session.submissions) == 1
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_result_to_dict(clock, sender, destination):
    session = FakeSession(outcomes=[expired()])
    executor = TransferExecutor(session, max_attempts=1, clock=clock)

    data = (await executor.execute(sender, destination, 42)).to_dict()

    assert data['success'] is False
    assert data['lamports'] == 42
    assert data['destination'] == str(destination)
    assert "gave up after 1 attempts" in data['error']
    assert isinstance(data['completed_at'], str)
