"""
Proxy Schema — Pydantic models for the entities shared across the engine.

These models are the canonical data structures for amounts, spend limits,
authorization rules, signers and the outbound message envelope. The state
record that bundles them lives in `spendguard.core.state`.

The outbound message envelope is a closed tagged variant: a native send, a
native burn, a contract call, or some other chain operation (staking,
governance, distribution, ...). Anything the engine cannot price falls into
the last arm.
"""

from __future__ import annotations

import enum
import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, model_validator


# ════════════════════════════════════════════════════════════════
# Network Constants
# ════════════════════════════════════════════════════════════════

MAINNET_AXLUSDC_IBC = "ibc/EAC38D55372F38F1AFD68DF7FE9EF762DCF69F26520643CF3F9D292A738D8034"
MAINNET_DENOM = "ujuno"
MAINNET_DEX_DENOM = "uloop"
TESTNET_DENOM = "ujunox"
LOCAL_DENOM = "testtokens"

MAINNET_ID = "juno-1"
TESTNET_ID = "uni-3"
LOCAL_ID = "local"


# ════════════════════════════════════════════════════════════════
# Enumerations
# ════════════════════════════════════════════════════════════════


class PeriodType(str, enum.Enum):
    """Recurrence unit of a spend limit. Multiples give weekly or yearly windows."""

    DAYS = "DAYS"
    MONTHS = "MONTHS"


class PoolDialect(str, enum.Enum):
    """Price query conventions spoken by market pool contracts."""

    SIMULATION = "simulation"  # simulation / reverse_simulation, tagged by `ty`
    PRICE_RATIO = "price_ratio"  # token1_for_token2_price / token2_for_token1_price


# ════════════════════════════════════════════════════════════════
# Amounts and Limits
# ════════════════════════════════════════════════════════════════


class Coin(BaseModel):
    """An amount of a single denomination, in the denomination's base units."""

    model_config = {"frozen": True}

    denom: str
    amount: int = Field(ge=0)

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"


class CoinLimit(BaseModel):
    """
    A recurring spend limit: total per period and what is left of it.

    `limit_remaining` can never exceed `amount`. This holds at construction
    and on every assignment.
    """

    model_config = {"validate_assignment": True}

    denom: str
    amount: int = Field(ge=0, description="Total spendable per period")
    limit_remaining: int = Field(ge=0, description="Left to spend in the current period")

    @model_validator(mode="after")
    def _remaining_within_total(self) -> CoinLimit:
        if self.limit_remaining > self.amount:
            raise ValueError(
                f"limit_remaining ({self.limit_remaining}) exceeds amount ({self.amount})"
            )
        return self


# ════════════════════════════════════════════════════════════════
# Authorization Rules
# ════════════════════════════════════════════════════════════════


class AuthorizationRule(BaseModel):
    """
    Permission for `actor` to call `message_name` on `contract`.

    `fields` optionally pins message fields to required values. A message
    matches when every pinned field is present with an equal value; other
    fields are ignored.
    """

    model_config = {"frozen": True}

    actor: str
    contract: str
    message_name: str
    fields: list[tuple[str, str]] | None = None

    def key(self) -> tuple[str, str, str, frozenset[tuple[str, str]] | None]:
        """Identity used for add/remove. Field lists compare as exact sets."""
        fields = frozenset(self.fields) if self.fields else None
        return (self.actor, self.contract, self.message_name, fields)


class Signer(BaseModel):
    """A member of the owner multisig. `ty` is free-form and set by the client."""

    address: str
    ty: str


# ════════════════════════════════════════════════════════════════
# Outbound Message Envelope
# ════════════════════════════════════════════════════════════════


class BankSend(BaseModel):
    type: Literal["bank_send"] = "bank_send"
    to_address: str
    amount: list[Coin]


class BankBurn(BaseModel):
    type: Literal["bank_burn"] = "bank_burn"
    amount: list[Coin]


class WasmExecute(BaseModel):
    """A contract call. `msg` is the JSON payload as sent to the contract."""

    type: Literal["wasm_execute"] = "wasm_execute"
    contract_addr: str
    msg: str
    funds: list[Coin] = Field(default_factory=list)

    @classmethod
    def from_payload(
        cls,
        contract_addr: str,
        payload: dict[str, Any],
        funds: list[Coin] | None = None,
    ) -> WasmExecute:
        return cls(
            contract_addr=contract_addr,
            msg=json.dumps(payload, separators=(",", ":")),
            funds=funds or [],
        )


class ChainOperation(BaseModel):
    """Staking, governance, distribution, IBC and anything else."""

    type: Literal["chain_operation"] = "chain_operation"
    kind: str = Field(description="e.g. 'staking_delegate', 'gov_vote'")
    payload: dict[str, Any] = Field(default_factory=dict)


OutboundMessage = Annotated[
    Union[BankSend, BankBurn, WasmExecute, ChainOperation],
    Field(discriminator="type"),
]
