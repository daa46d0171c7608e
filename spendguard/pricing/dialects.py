"""
Price Query Dialects — how to ask a market pool for a price, and how to
read its answer.

Pools speak one of two incompatible conventions:

- SIMULATION: one message whose type is switched between `simulation`
  (offer an asset, get the return) and `reverse_simulation` (ask for an
  asset, get the required offer). Both wrap an asset plus amount.
- PRICE_RATIO: two distinct bare-amount messages,
  `token1_for_token2_price` and `token2_for_token1_price`.

Callers never branch on the dialect. They hand the executor three
independent booleans (is the amount a target, does the message type run
backwards, did the registry lookup come back reversed) and the executor
XORs them into one `flip_assets` decision. That decision picks which side
of the pool is offered and which side is returned, so one code path
serves every (pair order, direction) combination.

The message type is chosen per dialect. PRICE_RATIO has no direction
other than the sides, so `flip_assets` also picks between its two
messages. SIMULATION names the side in the asset it carries, so its
`simulation` / `reverse_simulation` choice follows `amount_is_target`
alone and `flip_assets` only picks the denom placed in that asset.
"""

from __future__ import annotations

import enum
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field

from spendguard.core.errors import ChainQueryError, PriceCheckFailed
from spendguard.core.schema import Coin, PoolDialect
from spendguard.integrations.chain_client import ChainQuerier
from spendguard.pricing.pools import PoolDescriptor
from spendguard.pricing.sourced import Source, SourcedAmount

logger = logging.getLogger(__name__)


class DexQueryType(str, enum.Enum):
    """Every pool price message, across both dialects."""

    SIMULATION = "simulation"
    REVERSE_SIMULATION = "reverse_simulation"
    TOKEN1_FOR_TOKEN2_PRICE = "token1_for_token2_price"
    TOKEN2_FOR_TOKEN1_PRICE = "token2_for_token1_price"

    def reversed(self) -> DexQueryType:
        return _REVERSED_TYPES[self]


_REVERSED_TYPES = {
    DexQueryType.SIMULATION: DexQueryType.REVERSE_SIMULATION,
    DexQueryType.REVERSE_SIMULATION: DexQueryType.SIMULATION,
    DexQueryType.TOKEN1_FOR_TOKEN2_PRICE: DexQueryType.TOKEN2_FOR_TOKEN1_PRICE,
    DexQueryType.TOKEN2_FOR_TOKEN1_PRICE: DexQueryType.TOKEN1_FOR_TOKEN2_PRICE,
}


class DexQuery(BaseModel):
    """A tagged price request, not yet in any pool's wire shape."""

    ty: DexQueryType
    denom: str
    amount: int = Field(ge=0)

    def formatted(self, reverse: bool = False) -> dict[str, Any]:
        """
        Render the wire message, swapping the message type first if `reverse`.

        Amounts go out as strings, as pool contracts expect for 128-bit
        integers. Native tokens only.
        """
        ty = self.ty.reversed() if reverse else self.ty
        asset = {"amount": str(self.amount), "info": {"native_token": {"denom": self.denom}}}

        if ty == DexQueryType.SIMULATION:
            return {"simulation": {"offer_asset": asset}}
        if ty == DexQueryType.REVERSE_SIMULATION:
            return {"reverse_simulation": {"ask_asset": asset}}
        if ty == DexQueryType.TOKEN1_FOR_TOKEN2_PRICE:
            return {"token1_for_token2_price": {"token1_amount": str(self.amount)}}
        return {"token2_for_token1_price": {"token2_amount": str(self.amount)}}


@dataclass(frozen=True)
class FormattedQuery:
    """A query ready to send, plus what its answer will be denominated in."""

    query_type: DexQueryType
    query: dict[str, Any]
    offered_denom: str
    response_denom: str

    @property
    def serialized(self) -> str:
        return json.dumps(self.query, separators=(",", ":"))


def _uint(response: dict[str, Any], key: str) -> int:
    value = response[key]
    amount = int(value)
    if amount < 0:
        raise ValueError(f"negative {key} in pool response: {value!r}")
    return amount


# ════════════════════════════════════════════════════════════════
# Dialects
# ════════════════════════════════════════════════════════════════


class PriceDialect(ABC):
    """Formats price queries for, and reads responses from, one pool dialect."""

    @abstractmethod
    def format_query(
        self,
        pool: PoolDescriptor,
        amount: int,
        flip_assets: bool,
        amount_is_target: bool,
    ) -> FormattedQuery:
        ...

    @abstractmethod
    def interpret_response(self, formatted: FormattedQuery, response: dict[str, Any]) -> int:
        """Reduce a pool response to one magnitude in `formatted.response_denom`."""
        ...

    @staticmethod
    def _sides(pool: PoolDescriptor, flip_assets: bool) -> tuple[str, str]:
        if flip_assets:
            return pool.denom2, pool.denom1
        return pool.denom1, pool.denom2


class SimulationDialect(PriceDialect):
    """
    `simulation` / `reverse_simulation`.

    A forward simulation costs `return_amount + commission_amount`; a
    reverse one costs `offer_amount + commission_amount`. The commission is
    counted so the spend check is never below the true cost.
    """

    def format_query(self, pool, amount, flip_assets, amount_is_target):
        offered, response = self._sides(pool, flip_assets)
        query = DexQuery(ty=DexQueryType.SIMULATION, denom=offered, amount=amount)
        query_type = query.ty.reversed() if amount_is_target else query.ty
        return FormattedQuery(
            query_type=query_type,
            query=query.formatted(reverse=amount_is_target),
            offered_denom=offered,
            response_denom=response,
        )

    def interpret_response(self, formatted, response):
        if formatted.query_type == DexQueryType.REVERSE_SIMULATION:
            return _uint(response, "offer_amount") + _uint(response, "commission_amount")
        return _uint(response, "return_amount") + _uint(response, "commission_amount")


class PriceRatioDialect(PriceDialect):
    """`token1_for_token2_price` / `token2_for_token1_price`; no commission field."""

    def format_query(self, pool, amount, flip_assets, amount_is_target):
        offered, response = self._sides(pool, flip_assets)
        query = DexQuery(ty=DexQueryType.TOKEN1_FOR_TOKEN2_PRICE, denom=offered, amount=amount)
        query_type = query.ty.reversed() if flip_assets else query.ty
        return FormattedQuery(
            query_type=query_type,
            query=query.formatted(reverse=flip_assets),
            offered_denom=offered,
            response_denom=response,
        )

    def interpret_response(self, formatted, response):
        if formatted.query_type == DexQueryType.TOKEN2_FOR_TOKEN1_PRICE:
            return _uint(response, "token1_amount")
        return _uint(response, "token2_amount")


DIALECTS: dict[PoolDialect, PriceDialect] = {
    PoolDialect.SIMULATION: SimulationDialect(),
    PoolDialect.PRICE_RATIO: PriceRatioDialect(),
}


def dialect_for(pool: PoolDescriptor) -> PriceDialect:
    return DIALECTS[pool.query_format]


def flip_assets(amount_is_target: bool, reverse_message_type: bool, reversed_order: bool) -> bool:
    """The single side-selection decision derived from the three inputs."""
    return amount_is_target ^ reverse_message_type ^ reversed_order


# ════════════════════════════════════════════════════════════════
# Execution
# ════════════════════════════════════════════════════════════════


class PoolQueryExecutor:
    """Sends one formatted price query to one pool and wraps the answer."""

    def __init__(self, querier: ChainQuerier) -> None:
        self.querier = querier

    def query_pool(
        self,
        pool: PoolDescriptor,
        amount: int,
        reversed_order: bool,
        amount_is_target: bool,
        reverse_message_type: bool,
    ) -> SourcedAmount:
        """
        Price `amount` through `pool`.

        Returns:
            The tallied amount in the pool's response denomination, with a
            single source recording the pool and the exact query sent.

        Raises:
            PriceCheckFailed: The query failed or the response could not be
                read. Carries the serialized query, the pool address and the
                underlying failure text.
        """
        flip = flip_assets(amount_is_target, reverse_message_type, reversed_order)
        dialect = dialect_for(pool)
        formatted = dialect.format_query(pool, amount, flip, amount_is_target)
        serialized = formatted.serialized

        logger.debug(
            "Price query to %s: %s (reversed=%s, target=%s, reverse_type=%s)",
            pool.contract_addr, serialized, reversed_order, amount_is_target,
            reverse_message_type,
        )

        try:
            response = self.querier.query_smart(pool.contract_addr, formatted.query)
            tally = dialect.interpret_response(formatted, response)
        except (ChainQueryError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Price query to %s failed: %s", pool.contract_addr, exc)
            raise PriceCheckFailed(serialized, pool.contract_addr, str(exc)) from exc

        return SourcedAmount(
            coin=Coin(denom=formatted.response_denom, amount=tally),
            sources=[Source(contract_addr=pool.contract_addr, query_msg=serialized)],
        )
