"""
Periodic Transfer

Sends a fixed amount of SOL to a fixed recipient on a fixed interval.

Components:
- scheduler: Immediate + periodic ticks, balance-gated admission, single-flight
- transfer_executor: One transfer with bounded expiry retry
- network_session: Solana RPC session (balance, blockhash, send + confirm)
- config: Schedule settings, YAML overrides, key/address/interval parsing
- errors: Error taxonomy
- cli: Command-line entry point

Tick flow:
1. Balance check - skip tick if RPC fails
2. Admission - balance >= amount + reserve
3. Transfer - fresh blockhash, send, confirm
4. Expiry retry - new blockhash, bounded by attempts and elapsed time
"""

from .clock import Clock, SystemClock
from .config import (
    ScheduleConfig,
    load_config,
    parse_keypair,
    parse_destination,
    parse_interval,
)
from .errors import (
    PeriodicTransferError,
    ValidationError,
    BalanceQueryError,
    TransferError,
    TransferExpiryError,
    RetryExhaustedError,
)
from .network_session import (
    SolanaSession,
    TransferRequest,
    ValidityToken,
)
from .transfer_executor import (
    TransferExecutor,
    TransferResult,
)
from .scheduler import (
    TransferScheduler,
    TickOutcome,
    admits,
    graceful_shutdown,
)

__all__ = [
    # Scheduling
    'TransferScheduler',
    'TickOutcome',
    'admits',
    'graceful_shutdown',
    'Clock',
    'SystemClock',

    # Execution
    'TransferExecutor',
    'TransferResult',

    # Network
    'SolanaSession',
    'TransferRequest',
    'ValidityToken',

    # Configuration
    'ScheduleConfig',
    'load_config',
    'parse_keypair',
    'parse_destination',
    'parse_interval',

    # Errors
    'PeriodicTransferError',
    'ValidationError',
    'BalanceQueryError',
    'TransferError',
    'TransferExpiryError',
    'RetryExhaustedError',
]

__version__ = '1.0.0'
