"""
Solana Network Session

Thin async wrapper around the solana-py RPC client. Every failure is
classified here so callers only see BalanceQueryError, TransferExpiryError
or TransferError.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Sequence

from loguru import logger
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.core import TransactionExpiredBlockheightExceededError
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from .errors import (
    BalanceQueryError,
    TransferError,
    TransferExpiryError,
    is_expiry_error,
)


@dataclass(frozen=True)
class ValidityToken:
    """Recent blockhash and the last block height it is accepted at"""
    blockhash: Hash
    last_valid_block_height: int

    def __str__(self):
        return str(self.blockhash)


@dataclass(frozen=True)
class TransferRequest:
    """Single lamport transfer, built fresh for every submission attempt"""
    sender: Keypair
    destination: Pubkey
    lamports: int
    token: ValidityToken

    def to_transaction(self, signers: Optional[Sequence[Keypair]] = None) -> Transaction:
        """Build and sign the system-program transfer, sender pays the fee"""
        instruction = transfer(
            TransferParams(
                from_pubkey=self.sender.pubkey(),
                to_pubkey=self.destination,
                lamports=self.lamports,
            )
        )
        message = Message.new_with_blockhash(
            [instruction],
            self.sender.pubkey(),
            self.token.blockhash
        )
        return Transaction(list(signers or [self.sender]), message, self.token.blockhash)


class SolanaSession:
    """
    Shared RPC session for the process lifetime

    Features:
    - Balance lookup
    - Recent blockhash (validity token) fetch
    - Send + confirm with expiry classification
    - Reachability probe at startup
    """

    def __init__(
        self,
        rpc_url: str,
        commitment: str = 'finalized',
        client: Optional[AsyncClient] = None,
        timeout: float = 30.0
    ):
        """
        Initialize session

        Args:
            rpc_url: JSON-RPC endpoint
            commitment: Commitment level for reads and confirmation
            client: Pre-built client (tests inject a fake here)
            timeout: HTTP timeout per request (seconds)
        """
        self.rpc_url = rpc_url
        self.commitment = Commitment(commitment)
        self.client = client or AsyncClient(rpc_url, commitment=self.commitment, timeout=timeout)

        logger.info(f"Solana session initialized ({rpc_url}, commitment={commitment})")

    async def __aenter__(self) -> 'SolanaSession':
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def check_health(self) -> bool:
        """Return True if the endpoint answers, never raises"""
        try:
            connected = await self.client.is_connected()
        except Exception as e:
            logger.warning(f"⚠ RPC endpoint {self.rpc_url} unreachable: {e}")
            return False

        if connected:
            logger.info(f"✓ RPC endpoint {self.rpc_url} reachable")
        else:
            logger.warning(f"⚠ RPC endpoint {self.rpc_url} did not report healthy")
        return bool(connected)

    async def get_balance(self, pubkey: Pubkey) -> int:
        """
        Fetch balance in lamports

        Raises:
            BalanceQueryError: endpoint unreachable or returned an error
        """
        try:
            resp = await self.client.get_balance(pubkey, commitment=self.commitment)
            return int(resp.value)
        except Exception as e:
            raise BalanceQueryError(f"Balance query for {pubkey} failed: {e}") from e

    async def get_recent_validity_token(self) -> ValidityToken:
        """
        Fetch a fresh blockhash

        Raises:
            TransferError: blockhash could not be fetched
        """
        try:
            resp = await self.client.get_latest_blockhash(commitment=self.commitment)
        except Exception as e:
            raise TransferError(f"Could not fetch recent blockhash: {e}", e) from e

        return ValidityToken(
            blockhash=resp.value.blockhash,
            last_valid_block_height=resp.value.last_valid_block_height,
        )

    async def submit_and_confirm(
        self,
        request: TransferRequest,
        signers: Optional[List[Keypair]] = None
    ) -> str:
        """
        Send the transfer and wait until it reaches the session commitment

        Args:
            request: Transfer built against a validity token
            signers: Signing keypairs (defaults to the sender)

        Returns:
            Transaction signature (Base58)

        Raises:
            TransferExpiryError: blockhash expired before confirmation
            TransferError: any other send/confirm failure
        """
        transaction = request.to_transaction(signers)

        try:
            resp = await self.client.send_transaction(
                transaction,
                opts=TxOpts(skip_confirmation=True, preflight_commitment=self.commitment)
            )
            signature = resp.value
            logger.debug(f"Submitted {signature}, waiting for {self.commitment} confirmation")

            status_resp = await self.client.confirm_transaction(
                signature,
                commitment=self.commitment,
                last_valid_block_height=request.token.last_valid_block_height
            )
        except asyncio.CancelledError:
            raise
        except TransactionExpiredBlockheightExceededError as e:
            raise TransferExpiryError(f"Transaction expired: {e}", e) from e
        except Exception as e:
            if is_expiry_error(e):
                raise TransferExpiryError(f"Transaction expired: {e}", e) from e
            raise TransferError(f"Transaction failed: {e}", e) from e

        statuses = getattr(status_resp, 'value', None) or []
        status = statuses[0] if statuses else None
        if status is not None and status.err is not None:
            raise TransferError(f"Transaction {signature} failed on chain: {status.err}")

        return str(signature)

    async def close(self):
        """Close the underlying HTTP client"""
        try:
            await self.client.close()
            logger.debug("✓ RPC client closed")
        except (RuntimeError, ConnectionError) as e:
            if "Event loop is closed" in str(e):
                logger.warning("Event loop closed during RPC client cleanup")
            else:
                logger.debug(f"RPC client already closed: {e}")
