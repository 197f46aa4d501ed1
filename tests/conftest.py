"""
Pytest fixtures for the periodic transfer tests.

Session and clock fakes live in tests.helpers so no test touches the
network or waits on wall-clock time.
"""

import pytest
from solders.keypair import Keypair

from periodic_transfer.config import ScheduleConfig
from tests.helpers import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sender():
    return Keypair()


@pytest.fixture
def destination():
    return Keypair().pubkey()


@pytest.fixture
def config():
    return ScheduleConfig(
        interval_minutes=1.0,
        transfer_lamports=100_000,
        reserve_lamports=20_000,
    )
