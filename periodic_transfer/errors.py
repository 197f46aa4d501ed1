"""
Periodic Transfer Errors

Error taxonomy for the transfer scheduler:
- ValidationError: bad startup input (key, address, interval, config file)
- BalanceQueryError: balance lookup failed, the tick is skipped
- TransferExpiryError: blockhash expired, the executor resubmits
- TransferError: terminal submission/confirmation failure
- RetryExhaustedError: expiry retries ran past their ceiling
"""

from typing import Optional


# Substrings the RPC node uses when a transaction's blockhash is no longer valid
EXPIRY_MARKERS = (
    # confirm loop ran past last_valid_block_height
    'block height exceeded',
    # preflight rejected a blockhash the node no longer knows; a fresh one fixes it
    'blockhash not found',
)


class PeriodicTransferError(Exception):
    """Base class for all periodic transfer errors"""


class ValidationError(PeriodicTransferError):
    """Startup input could not be accepted"""


class BalanceQueryError(PeriodicTransferError):
    """Balance could not be fetched from the RPC endpoint"""


class TransferError(PeriodicTransferError):
    """Transfer failed and will not be retried"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class TransferExpiryError(TransferError):
    """Transaction blockhash expired before confirmation"""


class RetryExhaustedError(TransferError):
    """Expiry retries hit the attempt or elapsed-time ceiling"""

    def __init__(
        self,
        attempts: int,
        elapsed_seconds: float,
        cause: Optional[BaseException] = None
    ):
        super().__init__(
            f"Transaction kept expiring: gave up after {attempts} attempts "
            f"({elapsed_seconds:.1f}s)",
            cause
        )
        self.attempts = attempts
        self.elapsed_seconds = elapsed_seconds


def is_expiry_error(exc: BaseException) -> bool:
    """
    Check whether an RPC failure means the blockhash window has passed

    Args:
        exc: Exception raised by send or confirm

    Returns:
        True if a resubmission with a fresh blockhash can succeed
    """
    if isinstance(exc, TransferExpiryError):
        return True

    message = str(exc).lower()
    return any(marker in message for marker in EXPIRY_MARKERS)
