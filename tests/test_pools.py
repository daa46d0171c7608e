"""
Tests for the Pool Registry.

Validates:
- Lookup in both pair orderings, with the reversed flag
- First match wins
- Not-found errors carry the registry dump
- Default registries per network
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from spendguard.core.errors import PairContractNotFound
from spendguard.core.schema import (
    LOCAL_DENOM,
    MAINNET_AXLUSDC_IBC,
    MAINNET_DENOM,
    MAINNET_DEX_DENOM,
    PoolDialect,
)
from spendguard.pricing.pools import (
    LOCAL_POOLS,
    MAINNET_POOLS,
    PoolDescriptor,
    PoolRegistry,
)


class TestPoolRegistry:
    """Test pool lookup by unordered denomination pair."""

    def setup_method(self):
        self.registry = PoolRegistry(LOCAL_POOLS)

    def test_find_pool_natural_order(self):
        pool, reversed_order = self.registry.find_pool(LOCAL_DENOM, MAINNET_AXLUSDC_IBC)
        assert pool.contract_addr == "local_ujuno_to_usdc_fake"
        assert reversed_order is False

    def test_find_pool_reversed_order(self):
        pool, reversed_order = self.registry.find_pool(MAINNET_AXLUSDC_IBC, LOCAL_DENOM)
        assert pool.contract_addr == "local_ujuno_to_usdc_fake"
        assert reversed_order is True

    def test_find_pool_first_match_wins(self):
        shadow = PoolDescriptor(
            contract_addr="second",
            denom1=MAINNET_DEX_DENOM,
            denom2=LOCAL_DENOM,
            query_format=PoolDialect.PRICE_RATIO,
        )
        registry = PoolRegistry([*LOCAL_POOLS, shadow])
        pool, reversed_order = registry.find_pool(MAINNET_DEX_DENOM, LOCAL_DENOM)
        assert pool.contract_addr == "local_ujuno_to_uloop_fake"
        assert reversed_order is True

    def test_missing_pair_carries_registry_dump(self):
        with pytest.raises(PairContractNotFound) as exc_info:
            self.registry.find_pool("uatom", MAINNET_AXLUSDC_IBC)
        err = exc_info.value
        assert err.denom_a == "uatom"
        assert len(err.registry_dump) == len(LOCAL_POOLS)
        assert "local_ujuno_to_usdc_fake" in str(err)

    def test_has_pool_ignores_order(self):
        assert self.registry.has_pool(MAINNET_AXLUSDC_IBC, MAINNET_DEX_DENOM)
        assert self.registry.has_pool(MAINNET_DEX_DENOM, MAINNET_AXLUSDC_IBC)
        assert not self.registry.has_pool("uatom", MAINNET_DEX_DENOM)

    def test_descriptors_are_immutable(self):
        pool = LOCAL_POOLS[0]
        with pytest.raises(ValidationError):
            pool.denom1 = "something-else"


class TestDefaultRegistries:
    """Test the per-network default pool lists."""

    def test_mainnet_defaults(self):
        registry = PoolRegistry.for_network("juno-1")
        assert registry.pools == MAINNET_POOLS
        pool, reversed_order = registry.find_pool(MAINNET_DENOM, MAINNET_AXLUSDC_IBC)
        assert pool.query_format == PoolDialect.PRICE_RATIO
        assert reversed_order is False

    def test_testnet_defaults_use_testnet_denom(self):
        registry = PoolRegistry.for_network("uni-3")
        assert len(registry) == 3
        assert registry.has_pool("ujunox", MAINNET_AXLUSDC_IBC)

    def test_local_defaults(self):
        registry = PoolRegistry.for_network("local")
        assert [p.contract_addr for p in registry.pools] == [
            "local_usdc_to_uloop_fake",
            "local_ujuno_to_uloop_fake",
            "local_ujuno_to_usdc_fake",
        ]

    def test_unsupported_network(self):
        with pytest.raises(ValueError, match="unsupported chain id"):
            PoolRegistry.for_network("cosmoshub-4")
