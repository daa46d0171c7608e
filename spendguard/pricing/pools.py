"""
Pool Registry — the admin-curated list of market pools used for pricing.

There is no routing: every supported denomination pair is priced by exactly
one registered pool. Lookups ignore pair order and return whether the
caller's order was the reverse of the pool's.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel

from spendguard.core.errors import PairContractNotFound
from spendguard.core.schema import (
    LOCAL_DENOM,
    LOCAL_ID,
    MAINNET_AXLUSDC_IBC,
    MAINNET_DENOM,
    MAINNET_DEX_DENOM,
    MAINNET_ID,
    TESTNET_DENOM,
    TESTNET_ID,
    PoolDialect,
)

logger = logging.getLogger(__name__)

TESTNET_DUMMY_CONTRACT = "juno14hy9h05scz48n4l5qkq5x8hppkr4u9xez88nn30fu7l32pg3y38q3r3mgx"


class PoolDescriptor(BaseModel):
    """A registered market pool. Immutable once registered."""

    model_config = {"frozen": True}

    contract_addr: str
    denom1: str
    denom2: str
    query_format: PoolDialect

    def get_denoms(self) -> tuple[str, str]:
        return (self.denom1, self.denom2)


class PoolRegistry:
    """Ordered pool list; the first pool matching a pair wins."""

    def __init__(self, pools: list[PoolDescriptor] | None = None) -> None:
        self.pools: list[PoolDescriptor] = list(pools or [])

    @classmethod
    def for_network(cls, network: str) -> PoolRegistry:
        """Default registry for a home network (`juno-1`, `uni-3` or `local`)."""
        defaults = DEFAULT_POOLS.get(network)
        if defaults is None:
            raise ValueError(f"Failed to init pair contracts; unsupported chain id {network!r}")
        return cls(defaults)

    def find_pool(self, denom_x: str, denom_y: str) -> tuple[PoolDescriptor, bool]:
        """
        Locate the pool pricing `denom_x` against `denom_y`.

        Returns:
            (pool, reversed) where `reversed` is True when the pool lists the
            pair as (denom_y, denom_x).

        Raises:
            PairContractNotFound: No pool is registered for the pair. The
                error carries the whole registry for diagnosis.
        """
        for pool in self.pools:
            if pool.denom1 == denom_x and pool.denom2 == denom_y:
                return pool, False
            if pool.denom2 == denom_x and pool.denom1 == denom_y:
                return pool, True
        raise PairContractNotFound(denom_x, denom_y, self.dump())

    def has_pool(self, denom_x: str, denom_y: str) -> bool:
        return any(
            {pool.denom1, pool.denom2} == {denom_x, denom_y} for pool in self.pools
        )

    def dump(self) -> list[dict]:
        return [pool.model_dump(mode="json") for pool in self.pools]

    def __len__(self) -> int:
        return len(self.pools)


# ════════════════════════════════════════════════════════════════
# Default Registries
# ════════════════════════════════════════════════════════════════

MAINNET_POOLS = [
    PoolDescriptor(
        contract_addr="juno1utkr0ep06rkxgsesq6uryug93daklyd6wneesmtvxjkz0xjlte9qdj2s8q",
        denom1=MAINNET_AXLUSDC_IBC,
        denom2=MAINNET_DEX_DENOM,
        query_format=PoolDialect.SIMULATION,
    ),
    PoolDescriptor(
        contract_addr="juno1qc8mrs3hmxm0genzrd92akja5r0v7mfm6uuwhktvzphhz9ygkp8ssl4q07",
        denom1=MAINNET_DENOM,
        denom2=MAINNET_DEX_DENOM,
        query_format=PoolDialect.SIMULATION,
    ),
    PoolDescriptor(
        contract_addr="juno1ctsmp54v79x7ea970zejlyws50cj9pkrmw49x46085fn80znjmpqz2n642",
        denom1=MAINNET_DENOM,
        denom2=MAINNET_AXLUSDC_IBC,
        query_format=PoolDialect.PRICE_RATIO,
    ),
]

TESTNET_POOLS = [
    PoolDescriptor(
        contract_addr=TESTNET_DUMMY_CONTRACT,
        denom1=MAINNET_AXLUSDC_IBC,
        denom2=MAINNET_DEX_DENOM,
        query_format=PoolDialect.SIMULATION,
    ),
    PoolDescriptor(
        contract_addr=TESTNET_DUMMY_CONTRACT,
        denom1=TESTNET_DENOM,
        denom2=MAINNET_DEX_DENOM,
        query_format=PoolDialect.SIMULATION,
    ),
    PoolDescriptor(
        contract_addr=TESTNET_DUMMY_CONTRACT,
        denom1=TESTNET_DENOM,
        denom2=MAINNET_AXLUSDC_IBC,
        query_format=PoolDialect.PRICE_RATIO,
    ),
]

LOCAL_POOLS = [
    PoolDescriptor(
        contract_addr="local_usdc_to_uloop_fake",
        denom1=MAINNET_AXLUSDC_IBC,
        denom2=MAINNET_DEX_DENOM,
        query_format=PoolDialect.SIMULATION,
    ),
    PoolDescriptor(
        contract_addr="local_ujuno_to_uloop_fake",
        denom1=LOCAL_DENOM,
        denom2=MAINNET_DEX_DENOM,
        query_format=PoolDialect.SIMULATION,
    ),
    PoolDescriptor(
        contract_addr="local_ujuno_to_usdc_fake",
        denom1=LOCAL_DENOM,
        denom2=MAINNET_AXLUSDC_IBC,
        query_format=PoolDialect.PRICE_RATIO,
    ),
]

DEFAULT_POOLS: dict[str, list[PoolDescriptor]] = {
    MAINNET_ID: MAINNET_POOLS,
    TESTNET_ID: TESTNET_POOLS,
    LOCAL_ID: LOCAL_POOLS,
}
