"""
Proxy Errors — the failure taxonomy of the spend-authorization engine.

Every failure aborts the enclosing call; the host discards all state
mutations made during that call. Nothing here is recovered locally.

Groups:
- Authorization: caller or instruction not permitted
- Limit: spend exceeds the remaining limit, or the limit itself is invalid
- Conversion: no pool for a denomination pair, or the price query failed
- Period arithmetic: rollover could not be computed
- Duplicate / NotFound: rule and permissioned-address bookkeeping
"""

from __future__ import annotations

from typing import Any


class ProxyError(Exception):
    """Base class for every error raised by the proxy engine."""

    message = "Proxy error."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


# ── Authorization ──────────────────────────────────────────────


class Unauthorized(ProxyError):
    message = "Caller is not owner."


class NoSuchAuthorization(ProxyError):
    message = "Not an authorized action"


class AuthorizationExists(ProxyError):
    message = (
        "An identical authorization already exists. Remove it first in order to update it."
    )


class BadMessageType(ProxyError):
    """A non-owner tried to dispatch something the limit engine cannot price."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(
            f"Spend-limited transactions are not allowed to be {kind}; they must be "
            f"native sends or token transfers, or be covered by an authorization."
        )


class SpendNotAuthorized(ProxyError):
    message = (
        "This address is not permitted to spend this token, or to spend this many of this token."
    )


class CallerIsNotPendingOwner(ProxyError):
    message = "Caller is not pending new owner. Propose new owner first."


class UpdateDelayActive(ProxyError):
    message = "Owner update safety delay has not yet passed"


# ── Limit ──────────────────────────────────────────────────────


class CannotSpendMoreThanLimit(ProxyError):
    def __init__(self, amount: int | str, denom: str) -> None:
        self.amount = str(amount)
        self.denom = denom
        super().__init__(
            "You cannot spend more than your available spend limit. "
            f"Trying to spend {self.amount} {self.denom}"
        )


class MultiSpendLimitsNotSupported(ProxyError):
    message = (
        "Multiple spend limits are no longer supported. "
        "Remove this wallet and re-add with a USD spend limit."
    )


class CannotSpendZero(ProxyError):
    message = "Cannot send 0 funds"


# ── Conversion ─────────────────────────────────────────────────


class ChainQueryError(ProxyError):
    """Raised by a chain querier when a smart query cannot be answered."""


class PairContractNotFound(ProxyError):
    def __init__(self, denom_a: str, denom_b: str, registry_dump: list[Any]) -> None:
        self.denom_a = denom_a
        self.denom_b = denom_b
        self.registry_dump = registry_dump
        super().__init__(
            f"Pair contract for asset {denom_a} to {denom_b} not found, DUMP: {registry_dump}"
        )


class PriceCheckFailed(ProxyError):
    def __init__(self, query: str, contract_addr: str, cause: str) -> None:
        self.query = query
        self.contract_addr = contract_addr
        self.cause = cause
        super().__init__(
            "Unable to get current asset price to check spend limit for asset. "
            "If this transaction is urgent, use your multisig to sign. "
            f"SUBMSG: {query} CONTRACT: {contract_addr} ERROR: {cause}"
        )


class RepayFeesFirst(ProxyError):
    def __init__(self, debt: int) -> None:
        self.debt = debt
        super().__init__(f"Please repay your fee debt (USD {debt}) before sending funds.")


# ── Period arithmetic ──────────────────────────────────────────


class DayUpdateError(ProxyError):
    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Failed to advance the reset day: {detail}")


class MonthUpdateError(ProxyError):
    message = "Failed to advance the reset month"


# ── Duplicate / NotFound ───────────────────────────────────────


class PermissionedAddressExists(ProxyError):
    message = (
        "This address is already authorized as a permissioned address. "
        "Remove it first in order to update it."
    )


class PermissionedAddressDoesNotExist(ProxyError):
    message = "This address is not authorized as a spend limit permissioned address."
