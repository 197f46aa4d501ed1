"""
Periodic Transfer Configuration

Schedule settings (frozen dataclass), optional YAML overrides and parsing of
the three startup inputs: signing key, recipient address, interval.
"""

import math
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import base58
import yaml
from loguru import logger
from solana.constants import LAMPORTS_PER_SOL
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .errors import ValidationError


# Public RPC endpoints per cluster
CLUSTER_URLS = {
    'mainnet-beta': 'https://api.mainnet-beta.solana.com',
    'devnet': 'https://api.devnet.solana.com',
    'testnet': 'https://api.testnet.solana.com',
}

COMMITMENTS = ('processed', 'confirmed', 'finalized')

DEFAULT_TRANSFER_LAMPORTS = 100_000  # 0.0001 SOL
DEFAULT_RESERVE_LAMPORTS = 2_039_280  # 0.00203928 SOL rent exemption


def lamports_to_sol(lamports: int) -> float:
    return lamports / LAMPORTS_PER_SOL


# YAML turns `true` into a bool, which is also an int
def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class ScheduleConfig:
    """Immutable schedule settings, built once at startup"""
    interval_minutes: float = 1.0
    transfer_lamports: int = DEFAULT_TRANSFER_LAMPORTS
    reserve_lamports: int = DEFAULT_RESERVE_LAMPORTS

    # Expiry retry ceilings (None = unbounded)
    max_attempts: Optional[int] = 10
    max_elapsed_seconds: Optional[float] = 300.0
    retry_delay_seconds: float = 0.0

    rpc_url: str = CLUSTER_URLS['mainnet-beta']
    commitment: str = 'finalized'

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60

    @property
    def required_balance(self) -> int:
        return self.transfer_lamports + self.reserve_lamports

    def validate(self) -> 'ScheduleConfig':
        """
        Check every field, raising ValidationError on the first bad one

        Returns:
            self, so calls can be chained
        """
        if not _is_number(self.interval_minutes):
            raise ValidationError(f"Interval must be a number, got {self.interval_minutes!r}")
        if not math.isfinite(self.interval_minutes) or self.interval_minutes <= 0:
            raise ValidationError("Invalid time interval! Please enter a positive number.")

        if not _is_int(self.transfer_lamports) or self.transfer_lamports <= 0:
            raise ValidationError(f"Transfer amount must be a positive integer, got {self.transfer_lamports!r}")

        if not _is_int(self.reserve_lamports) or self.reserve_lamports < 0:
            raise ValidationError(f"Reserve must be a non-negative integer, got {self.reserve_lamports!r}")

        if self.max_attempts is not None and (not _is_int(self.max_attempts) or self.max_attempts < 1):
            raise ValidationError(f"max_attempts must be at least 1, got {self.max_attempts!r}")

        if self.max_elapsed_seconds is not None and (
            not _is_number(self.max_elapsed_seconds) or not self.max_elapsed_seconds > 0
        ):
            raise ValidationError(f"max_elapsed_seconds must be positive, got {self.max_elapsed_seconds!r}")

        if not _is_number(self.retry_delay_seconds) or not self.retry_delay_seconds >= 0:
            raise ValidationError(f"retry_delay_seconds cannot be negative, got {self.retry_delay_seconds!r}")

        if not isinstance(self.rpc_url, str) or not self.rpc_url.startswith(('http://', 'https://')):
            raise ValidationError(f"RPC URL must be http(s), got {self.rpc_url!r}")

        if not isinstance(self.commitment, str) or self.commitment not in COMMITMENTS:
            raise ValidationError(f"Unknown commitment {self.commitment!r} (expected one of {COMMITMENTS})")

        return self


def load_config(
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None
) -> ScheduleConfig:
    """
    Load schedule config from defaults, an optional YAML file and overrides

    Args:
        config_path: Path to YAML file (missing file falls back to defaults)
        overrides: Values that win over the file, None values are ignored

    Returns:
        Validated ScheduleConfig
    """
    known = {f.name for f in fields(ScheduleConfig)}
    values: Dict[str, Any] = {}

    if config_path:
        config_file = Path(config_path)
        if config_file.exists():
            try:
                with open(config_file, 'r', encoding='utf-8') as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValidationError(f"Could not parse config file {config_path}: {e}") from e

            if not isinstance(data, dict):
                raise ValidationError(f"Config file {config_path} must contain a mapping")

            # Accept `cluster: devnet` as shorthand for rpc_url
            if 'cluster' in data:
                data.setdefault('rpc_url', resolve_rpc_url(data.pop('cluster')))

            for key, value in data.items():
                if key in known:
                    values[key] = value
                else:
                    logger.warning(f"Ignoring unknown config key '{key}' in {config_path}")

            if values:
                logger.info(f"Loaded custom settings from config: {values}")
        else:
            logger.warning(f"Config file {config_path} not found, using defaults")

    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    return replace(ScheduleConfig(), **values).validate()


def resolve_rpc_url(cluster_or_url: str) -> str:
    """Map a cluster name to its public endpoint, pass URLs through"""
    if not isinstance(cluster_or_url, str):
        raise ValidationError(f"Cluster must be a name or URL, got {cluster_or_url!r}")
    if cluster_or_url in CLUSTER_URLS:
        return CLUSTER_URLS[cluster_or_url]
    if cluster_or_url.startswith(('http://', 'https://')):
        return cluster_or_url
    raise ValidationError(
        f"Unknown cluster {cluster_or_url!r} (expected one of {list(CLUSTER_URLS)} or an http(s) URL)"
    )


def parse_keypair(private_key: str) -> Keypair:
    """
    Decode a Base58 secret key into a Keypair

    Accepts the 64-byte secret key (as exported by Phantom/Solflare)
    or a bare 32-byte seed.
    """
    try:
        raw = base58.b58decode(private_key.strip())
    except ValueError as e:
        raise ValidationError("Invalid private key! Please make sure it is Base58-encoded.") from e

    try:
        if len(raw) == 64:
            return Keypair.from_bytes(raw)
        if len(raw) == 32:
            return Keypair.from_seed(raw)
    except ValueError as e:
        raise ValidationError(f"Invalid private key: {e}") from e

    raise ValidationError(f"Invalid private key! Expected 64 bytes, got {len(raw)}.")


def generate_keypair() -> Keypair:
    keypair = Keypair()
    logger.info(f"Generated new wallet: {keypair.pubkey()}")
    return keypair


def parse_destination(address: str) -> Pubkey:
    try:
        return Pubkey.from_string(address.strip())
    except ValueError as e:
        raise ValidationError(
            "Invalid recipient address! Please make sure it is Base58-encoded."
        ) from e


def parse_interval(value: str) -> float:
    """Parse the interval in minutes, rejecting non-positive and non-finite values"""
    try:
        minutes = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError("Invalid time interval! Please enter a positive number.") from e

    if not math.isfinite(minutes) or minutes <= 0:
        raise ValidationError("Invalid time interval! Please enter a positive number.")

    return minutes
