"""Amounts that carry the chain of pool queries used to derive them."""

from __future__ import annotations

from pydantic import BaseModel, Field

from spendguard.core.schema import Coin

IDENTITY_SOURCE = "identity conversion"


class Source(BaseModel):
    """One pool query: where it went and exactly what was asked."""

    contract_addr: str
    query_msg: str


class SourcedAmount(BaseModel):
    """
    An amount plus its provenance.

    Provenance is append-only within one conversion chain. Merging two
    sourced amounts concatenates their sources, preserving order.
    """

    coin: Coin
    sources: list[Source] = Field(default_factory=list)

    @classmethod
    def identity(cls, coin: Coin) -> SourcedAmount:
        return cls(
            coin=coin,
            sources=[
                Source(
                    contract_addr=IDENTITY_SOURCE,
                    query_msg=f"converted {coin.amount} {coin.denom} to {coin.amount} {coin.denom}",
                )
            ],
        )

    def append_sources(self, other: SourcedAmount) -> None:
        self.sources.extend(s.model_copy() for s in other.sources)

    def merge(self, other: SourcedAmount, coin: Coin) -> SourcedAmount:
        """New amount `coin` whose provenance is ours followed by `other`'s."""
        return SourcedAmount(coin=coin, sources=[*self.sources, *other.sources])

    def to_attributes(self) -> list[tuple[str, str]]:
        return [(f"query to contract {s.contract_addr}", s.query_msg) for s in self.sources]
