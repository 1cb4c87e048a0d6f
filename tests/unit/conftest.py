"""
Shared fixtures: an in-memory pool contract standing in for Starknet storage.
"""

import asyncio

import pytest

from obelysk_privacy.merkle.lean_imt import rebuild_tree


class FakePoolReader:
    """StorageReader over a Python list of leaves, with call accounting."""

    def __init__(self, leaves, delay: float = 0.0):
        self.leaves = list(leaves)
        self.delay = delay
        self.root_override = None
        self.count_calls = 0
        self.node_calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def read_leaf_count(self) -> int:
        self.count_calls += 1
        return len(self.leaves)

    async def read_node(self, level: int, index: int) -> int:
        self.node_calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if level != 0:
                raise AssertionError("prover should only read leaves")
            return self.leaves[index] if index < len(self.leaves) else 0
        finally:
            self.in_flight -= 1

    async def read_root(self) -> int:
        if self.root_override is not None:
            return self.root_override
        return rebuild_tree(self.leaves).root


@pytest.fixture
def leaves():
    return [0x1000 + i for i in range(7)]


@pytest.fixture
def fake_reader(leaves):
    return FakePoolReader(leaves)


@pytest.fixture
def make_reader():
    return FakePoolReader
