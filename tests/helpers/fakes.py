"""In-memory fakes for the RPC session and the clock"""

import asyncio
from typing import Callable, List, Optional

from solders.hash import Hash

from periodic_transfer.clock import Clock
from periodic_transfer.network_session import ValidityToken


class FakeClock(Clock):
    """Virtual time: sleep() advances instantly and yields once to the loop"""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []
        self.on_sleep: Optional[Callable[[], None]] = None

    def monotonic(self) -> float:
        return self.now

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_sleep:
            self.on_sleep()
        await asyncio.sleep(0)


class FakeSession:
    """
    Scripted stand-in for SolanaSession

    balance: int returned by get_balance, or an exception to raise
    outcomes: per-submission results, a signature string or an exception
    """

    def __init__(self, balance=0, outcomes=None):
        self.balance = balance
        self.outcomes = list(outcomes or [])
        self.balance_calls = 0
        self.tokens: List[ValidityToken] = []
        self.submissions = []
        self.token_error: Optional[Exception] = None
        self.balance_gate: Optional[asyncio.Event] = None
        self.closed = False

    async def get_balance(self, pubkey) -> int:
        self.balance_calls += 1
        if self.balance_gate is not None:
            await self.balance_gate.wait()
        if isinstance(self.balance, Exception):
            raise self.balance
        return self.balance

    async def get_recent_validity_token(self) -> ValidityToken:
        if self.token_error is not None:
            raise self.token_error
        n = len(self.tokens) + 1
        token = ValidityToken(blockhash=Hash(bytes([n]) * 32), last_valid_block_height=1000 + n)
        self.tokens.append(token)
        return token

    async def submit_and_confirm(self, request, signers=None) -> str:
        self.submissions.append(request)
        outcome = self.outcomes.pop(0) if self.outcomes else f"sig-{len(self.submissions)}"
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self):
        self.closed = True
