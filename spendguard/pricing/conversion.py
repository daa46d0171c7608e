"""
Conversion Engine — normalizes any registered denomination to the reference
stablecoin.

Two modes:

- value mode (`want_target_amount=False`): "what is this spend worth in
  reference units". Used by every limit check.
- target mode (`want_target_amount=True`): "how much of this token equals
  exactly N reference units". The input coin carries the token's denom and
  N as its amount; the result is denominated in that token. Used for fee
  debt repayment.

The reference stablecoin converts to itself without a query, carrying a
synthetic one-entry provenance.
"""

from __future__ import annotations

import logging

from spendguard.core.schema import Coin
from spendguard.integrations.chain_client import ChainQuerier
from spendguard.pricing.dialects import PoolQueryExecutor
from spendguard.pricing.pools import PoolRegistry
from spendguard.pricing.sourced import SourcedAmount

logger = logging.getLogger(__name__)


class ConversionEngine:
    """Prices coins against the reference denomination through a pool registry."""

    def __init__(
        self,
        registry: PoolRegistry,
        querier: ChainQuerier,
        reference_denom: str,
    ) -> None:
        self.registry = registry
        self.executor = PoolQueryExecutor(querier)
        self.reference_denom = reference_denom

    def convert_to_reference(self, coin: Coin, want_target_amount: bool = False) -> SourcedAmount:
        """
        Convert `coin` through the single pool registered for its pair with
        the reference denomination.

        Raises:
            PairContractNotFound: No pool is registered for the pair.
            PriceCheckFailed: The pool query failed.
        """
        if coin.denom == self.reference_denom:
            return SourcedAmount.identity(coin)

        if want_target_amount:
            converted = self.simulate_reverse_swap((self.reference_denom, coin.denom), coin.amount)
        else:
            converted = self.simulate_swap((coin.denom, self.reference_denom), coin.amount)

        logger.info(
            "Converted %s %s to %s %s (target=%s)",
            coin.amount, coin.denom, converted.coin.amount, converted.coin.denom,
            want_target_amount,
        )
        return converted

    def simulate_swap(self, denoms: tuple[str, str], amount: int) -> SourcedAmount:
        return self.get_price_from_simulation(denoms, amount, False, False)

    def simulate_reverse_swap(self, denoms: tuple[str, str], amount: int) -> SourcedAmount:
        return self.get_price_from_simulation(denoms, amount, True, True)

    def get_price_from_simulation(
        self,
        denoms: tuple[str, str],
        amount: int,
        target_amount: bool,
        reverse_message_type: bool,
    ) -> SourcedAmount:
        pool, reversed_order = self.registry.find_pool(*denoms)
        return self.executor.query_pool(
            pool,
            amount,
            reversed_order=reversed_order,
            amount_is_target=target_amount,
            reverse_message_type=reverse_message_type,
        )

    def can_convert(self, denom: str) -> bool:
        return denom == self.reference_denom or self.registry.has_pool(denom, self.reference_denom)
