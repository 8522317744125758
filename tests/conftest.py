"""Shared pytest fixtures for all test modules."""

import pytest

from fakes import ALICE_NODE
from mintstats.cache import MemoryCacheStore
from mintstats.listing.types import (
    ListingConfig,
    ListingType,
    NameHasher,
    static_node_hasher,
)


@pytest.fixture
def alice_listing() -> ListingConfig:
    return ListingConfig(
        parent_name="alice.eth",
        chain_id=1,
        listing_type=ListingType.L1,
    )

@pytest.fixture
def bob_listing() -> ListingConfig:
    return ListingConfig(
        parent_name="bob.eth",
        chain_id=8453,
        listing_type=ListingType.L2,
    )

@pytest.fixture
def hasher() -> NameHasher:
    return static_node_hasher(ALICE_NODE)

@pytest.fixture
def memory_cache() -> MemoryCacheStore:
    return MemoryCacheStore()
