"""
Transfer Executor

Submits one logical transfer, resubmitting with a fresh blockhash whenever
the previous attempt expires:

    Building -> Submitted -> Confirmed
                          -> Expired -> Building (bounded)
                          -> Failed
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Dict, List, Optional

from loguru import logger
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .clock import Clock, SystemClock
from .errors import RetryExhaustedError, TransferError, TransferExpiryError
from .network_session import SolanaSession, TransferRequest


@dataclass
class TransferResult:
    """Transfer result"""
    success: bool
    lamports: int
    destination: str
    signature: Optional[str] = None
    attempts: int = 0
    blockhashes: List[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    error: Optional[TransferError] = None
    completed_at: Optional[datetime] = None

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error else None

    def to_dict(self) -> Dict:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data['blockhashes'] = list(self.blockhashes)
        data['error'] = self.error_message
        if self.completed_at:
            data['completed_at'] = self.completed_at.isoformat()
        return data


class TransferExecutor:
    """
    Single-transfer executor with expiry retry

    Retry settings:
    - max_attempts: total submissions per execute() (None = unbounded)
    - max_elapsed_seconds: wall-clock ceiling per execute() (None = unbounded)
    - retry_delay_seconds: pause before fetching the next blockhash
    """

    def __init__(
        self,
        session: SolanaSession,
        max_attempts: Optional[int] = 10,
        max_elapsed_seconds: Optional[float] = 300.0,
        retry_delay_seconds: float = 0.0,
        clock: Optional[Clock] = None
    ):
        self.session = session
        self.max_attempts = max_attempts
        self.max_elapsed_seconds = max_elapsed_seconds
        self.retry_delay_seconds = retry_delay_seconds
        self.clock = clock or SystemClock()

    def _exhausted(self, attempts: int, elapsed: float) -> bool:
        if self.max_attempts is not None and attempts >= self.max_attempts:
            return True
        if self.max_elapsed_seconds is not None and elapsed >= self.max_elapsed_seconds:
            return True
        return False

    async def execute(
        self,
        sender: Keypair,
        destination: Pubkey,
        lamports: int
    ) -> TransferResult:
        """
        Transfer lamports from sender to destination

        Args:
            sender: Fee payer and signer
            destination: Recipient address
            lamports: Amount to send

        Returns:
            TransferResult (success with signature, or the terminal error)
        """
        start = self.clock.monotonic()
        attempts = 0
        blockhashes: List[str] = []
        signature = None
        error: Optional[TransferError] = None

        while True:
            attempts += 1
            try:
                token = await self.session.get_recent_validity_token()
                blockhashes.append(str(token))

                request = TransferRequest(
                    sender=sender,
                    destination=destination,
                    lamports=lamports,
                    token=token,
                )
                signature = await self.session.submit_and_confirm(request, [sender])
                break

            except TransferExpiryError as e:
                elapsed = self.clock.monotonic() - start
                if self._exhausted(attempts, elapsed):
                    error = RetryExhaustedError(attempts, elapsed, e)
                    break

                logger.warning(f"Transaction expired (attempt {attempts}). Retrying with a new blockhash...")
                if self.retry_delay_seconds:
                    await self.clock.sleep(self.retry_delay_seconds)

            except TransferError as e:
                error = e
                break

            except Exception as e:
                # Unclassified failure from the session
                error = TransferError(f"Unexpected transfer failure: {e}", e)
                break

        elapsed = self.clock.monotonic() - start

        result = TransferResult(
            success=error is None,
            lamports=lamports,
            destination=str(destination),
            signature=signature,
            attempts=attempts,
            blockhashes=blockhashes,
            elapsed_seconds=elapsed,
            error=error,
            completed_at=datetime.now(timezone.utc),
        )

        if result.success:
            logger.info(f"✅ Transaction successful! Signature: {signature}")
        else:
            logger.error(f"❌ Error sending SOL: {error}")

        return result
