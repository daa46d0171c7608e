"""
Dispatch Classifier — tags each outbound instruction and extracts the value
it moves.

Classification is a pure function of the message. Native sends and burns
carry their coins directly. Contract calls are decoded as known token
instructions where possible; a token instruction that moves the caller's
tokens contributes a coin whose denom is the token contract's address.
Payloads that are not a known token instruction are not an error: they
classify with no instruction and only their attached funds, and it is up to
the authorization matcher to allow them. Other chain operations (staking,
governance, ...) carry nothing the limit engine can price.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from spendguard.core.schema import BankBurn, BankSend, ChainOperation, Coin, WasmExecute

logger = logging.getLogger(__name__)


class MessageKind(str, enum.Enum):
    BANK_SEND = "bank_send"
    BANK_BURN = "bank_burn"
    EXECUTE_WASM = "execute_wasm"
    UNKNOWN = "unknown"


class TokenInstruction(str, enum.Enum):
    """Fungible-token contract instructions, keyed by their wire name."""

    TRANSFER = "transfer"
    BURN = "burn"
    SEND = "send"
    INCREASE_ALLOWANCE = "increase_allowance"
    DECREASE_ALLOWANCE = "decrease_allowance"
    TRANSFER_FROM = "transfer_from"
    SEND_FROM = "send_from"
    BURN_FROM = "burn_from"
    MINT = "mint"
    UPDATE_MARKETING = "update_marketing"
    UPLOAD_LOGO = "upload_logo"

    @property
    def moves_own_funds(self) -> bool:
        return self in VALUE_INSTRUCTIONS


# instructions whose `amount` comes out of the caller's own balance
VALUE_INSTRUCTIONS = frozenset({
    TokenInstruction.TRANSFER,
    TokenInstruction.BURN,
    TokenInstruction.SEND,
    TokenInstruction.INCREASE_ALLOWANCE,
})

_REQUIRED_FIELDS: dict[TokenInstruction, tuple[str, ...]] = {
    TokenInstruction.TRANSFER: ("recipient", "amount"),
    TokenInstruction.BURN: ("amount",),
    TokenInstruction.SEND: ("contract", "amount", "msg"),
    TokenInstruction.INCREASE_ALLOWANCE: ("spender", "amount"),
    TokenInstruction.DECREASE_ALLOWANCE: ("spender", "amount"),
    TokenInstruction.TRANSFER_FROM: ("owner", "recipient", "amount"),
    TokenInstruction.SEND_FROM: ("owner", "contract", "amount", "msg"),
    TokenInstruction.BURN_FROM: ("owner", "amount"),
    TokenInstruction.MINT: ("recipient", "amount"),
    TokenInstruction.UPDATE_MARKETING: (),
    TokenInstruction.UPLOAD_LOGO: (),
}


@dataclass
class ClassifiedMessage:
    """A tagged outbound instruction and the coins it moves."""

    kind: MessageKind
    funds: list[Coin] = field(default_factory=list)
    token_instruction: TokenInstruction | None = None
    contract_addr: str | None = None
    message_name: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def is_priceable(self) -> bool:
        """True when the limit engine can account for everything it moves."""
        if self.kind in (MessageKind.BANK_SEND, MessageKind.BANK_BURN):
            return True
        return (
            self.kind == MessageKind.EXECUTE_WASM
            and self.token_instruction is not None
            and self.token_instruction.moves_own_funds
        )


def _parse_amount(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, str) and value.isascii() and value.isdigit():
        return int(value)
    return None


def decode_token_instruction(
    payload: str | bytes,
) -> tuple[TokenInstruction, dict[str, Any]] | None:
    """
    Decode a contract call payload as a known token instruction.

    Returns None for anything that is not exactly one recognised
    instruction with its required fields and a well-formed amount.
    """
    try:
        value = json.loads(payload)
    except (TypeError, ValueError):
        return None
    if not isinstance(value, dict) or len(value) != 1:
        return None

    (name, body), = value.items()
    try:
        instruction = TokenInstruction(name)
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    if any(required not in body for required in _REQUIRED_FIELDS[instruction]):
        return None
    if "amount" in _REQUIRED_FIELDS[instruction] and _parse_amount(body["amount"]) is None:
        return None
    return instruction, body


def classify(message: BankSend | BankBurn | WasmExecute | ChainOperation) -> ClassifiedMessage:
    """Tag one outbound instruction. Never raises for a well-typed message."""
    if isinstance(message, BankSend):
        return ClassifiedMessage(kind=MessageKind.BANK_SEND, funds=list(message.amount))

    if isinstance(message, BankBurn):
        return ClassifiedMessage(kind=MessageKind.BANK_BURN, funds=list(message.amount))

    if isinstance(message, WasmExecute):
        funds = list(message.funds)
        decoded = decode_token_instruction(message.msg)
        if decoded is None:
            logger.debug("Contract call to %s is not a token instruction", message.contract_addr)
            return ClassifiedMessage(
                kind=MessageKind.EXECUTE_WASM,
                funds=funds,
                contract_addr=message.contract_addr,
            )

        instruction, body = decoded
        if instruction.moves_own_funds:
            funds.append(Coin(denom=message.contract_addr, amount=_parse_amount(body["amount"])))
        return ClassifiedMessage(
            kind=MessageKind.EXECUTE_WASM,
            funds=funds,
            token_instruction=instruction,
            contract_addr=message.contract_addr,
            message_name=instruction.value,
            fields=body,
        )

    return ClassifiedMessage(kind=MessageKind.UNKNOWN)
