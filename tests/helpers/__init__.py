"""Test helpers package"""

from .fakes import FakeClock, FakeSession


__all__ = [
    'FakeClock',
    'FakeSession',
]
