"""
Transfer Scheduler

Fires once at startup and then every interval. Each tick:
1. Fetch sender balance (failure -> tick skipped)
2. Admission check: balance >= amount + reserve
3. Run the executor, log the outcome

Only one tick runs at a time; a firing that lands while the previous tick
is still busy (e.g. stuck in expiry retries) is skipped.
"""

import asyncio
from collections import Counter
from enum import Enum
from typing import Optional

from loguru import logger
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .clock import Clock, SystemClock
from .config import ScheduleConfig, lamports_to_sol
from .errors import BalanceQueryError
from .network_session import SolanaSession
from .transfer_executor import TransferExecutor


class TickOutcome(Enum):
    TRANSFERRED = 'transferred'
    FAILED = 'failed'
    INSUFFICIENT_BALANCE = 'insufficient_balance'
    BALANCE_ERROR = 'balance_error'
    BUSY = 'busy'


def admits(balance: int, amount: int, reserve: int) -> bool:
    """True if sending amount still leaves reserve in the account"""
    return balance >= amount + reserve


class TransferScheduler:
    """
    Periodic transfer scheduler

    Features:
    - Immediate first tick, fixed cadence afterwards
    - Balance-gated admission
    - Single-flight ticks
    - Injectable clock for tests
    """

    def __init__(
        self,
        session: SolanaSession,
        executor: TransferExecutor,
        sender: Keypair,
        destination: Pubkey,
        config: ScheduleConfig,
        clock: Optional[Clock] = None
    ):
        self.session = session
        self.executor = executor
        self.sender = sender
        self.destination = destination
        self.config = config
        self.clock = clock or SystemClock()

        self.stats: Counter = Counter()
        self._inflight: Optional[asyncio.Task] = None
        self._stopping = False

    @property
    def busy(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def tick(self) -> TickOutcome:
        """Run one admission check and, if admitted, one transfer"""
        try:
            outcome = await self._tick()
        except Exception as e:
            logger.exception(f"❌ Error during balance check or transaction: {e}")
            outcome = TickOutcome.FAILED

        self.stats[outcome] += 1
        return outcome

    async def _tick(self) -> TickOutcome:
        try:
            balance = await self.session.get_balance(self.sender.pubkey())
        except BalanceQueryError as e:
            logger.error(f"❌ Error during balance check: {e}")
            return TickOutcome.BALANCE_ERROR

        logger.info(f"Current Balance: {balance} lamports ({lamports_to_sol(balance)} SOL)")

        amount = self.config.transfer_lamports
        if not admits(balance, amount, self.config.reserve_lamports):
            logger.info(
                f"❌ Balance too low for transaction and rent exemption "
                f"(need {self.config.required_balance} lamports). Skipping transaction."
            )
            return TickOutcome.INSUFFICIENT_BALANCE

        logger.info(f"Sending {amount} lamports ({lamports_to_sol(amount)} SOL) to {self.destination}...")
        result = await self.executor.execute(self.sender, self.destination, amount)

        if result.success:
            return TickOutcome.TRANSFERRED
        return TickOutcome.FAILED

    def _fire(self):
        if self.busy:
            logger.warning("⚠ Previous transfer still in progress, skipping this tick")
            self.stats[TickOutcome.BUSY] += 1
            return
        self._inflight = asyncio.create_task(self.tick())

    def stop(self):
        """Stop after the current sleep; a running tick is allowed to finish"""
        self._stopping = True

    async def run_forever(self):
        """
        Fire immediately, then every interval until stop() or cancellation

        The cadence is anchored at the start time, so a slow tick does not
        shift later firings.
        """
        interval = self.config.interval_seconds
        logger.info(
            f"--- Monitoring wallet and sending {lamports_to_sol(self.config.transfer_lamports)} SOL "
            f"every {self.config.interval_minutes} minutes ---"
        )

        self._stopping = False
        next_fire = self.clock.monotonic()

        try:
            while not self._stopping:
                self._fire()
                next_fire += interval
                await self.clock.sleep(max(0.0, next_fire - self.clock.monotonic()))

            if self._inflight is not None:
                await self._inflight

        except asyncio.CancelledError:
            if self.busy:
                logger.warning("Schedule cancelled with a transfer in flight, ledger state decides the outcome")
                self._inflight.cancel()
                await asyncio.gather(self._inflight, return_exceptions=True)
            raise

        finally:
            logger.info(f"Scheduler stopped: {self.summary()}")

    def summary(self) -> str:
        return ', '.join(f"{outcome.value}={self.stats[outcome]}" for outcome in TickOutcome)


async def graceful_shutdown(
    schedule_task: Optional[asyncio.Task],
    session: SolanaSession,
    timeout: float = 15.0
):
    """
    Cancel the running schedule and close the RPC client

    Args:
        schedule_task: Task running TransferScheduler.run_forever
        session: Session to close
        timeout: Maximum time to wait for each step (seconds)
    """
    logger.info("Starting graceful shutdown...")

    if schedule_task is not None and not schedule_task.done():
        schedule_task.cancel()
        try:
            await asyncio.wait_for(asyncio.gather(schedule_task, return_exceptions=True), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Schedule did not stop within {timeout}s")

    try:
        await asyncio.wait_for(session.close(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"RPC client close timeout after {timeout}s")

    logger.info("✓ Graceful shutdown complete")
