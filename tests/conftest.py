"""
Pytest configuration for local imports and shared fixtures
"""

import asyncio
import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))


class FakeClock:
    """Clock whose sleep advances time instantly"""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def item():
    return {"id": 1, "barcode": "8901234", "name": "Silk Saree", "selling_price": 2499, "sku": "SS-01"}
