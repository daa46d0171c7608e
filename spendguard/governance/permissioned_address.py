"""
Permissioned Addresses — recurring spend limits for non-owner accounts.

A permissioned address may spend up to a fixed amount of the reference
stablecoin per period. Periods are a multiple of days or of months. When the
block time passes the stored reset time, the next spend first rolls the
period over: the remaining limit refills and a new reset time is computed.

Rollover granularity differs between the two period kinds:

- DAYS: the new reset time is `now` plus N days, keeping the time of day.
- MONTHS: the new reset time is the first day of the month N months after
  `now`, at midnight UTC.

Every spend is converted to the reference stablecoin before it is checked.
Checks happen before any debit, so a rejected spend leaves the limit
untouched. A batch of spends is checked in full before anything is
committed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, Field

from spendguard.core.errors import (
    CannotSpendMoreThanLimit,
    DayUpdateError,
    MonthUpdateError,
    MultiSpendLimitsNotSupported,
)
from spendguard.core.schema import AuthorizationRule, Coin, CoinLimit, PeriodType
from spendguard.pricing.conversion import ConversionEngine
from spendguard.pricing.sourced import SourcedAmount

logger = logging.getLogger(__name__)

# month index (1-12) plus period multiple may not exceed this
MAX_WORKING_MONTH = 268


class PermissionedAddress(BaseModel):
    """
    A non-owner account allowed to spend up to a recurring limit.

    `spend_limits` is a list because older records carried one limit per
    denomination. Such records still load but fail `assert_is_valid`; they
    are never migrated automatically.
    """

    address: str
    current_period_reset: int = Field(ge=0, description="Next reset, epoch seconds")
    period_type: PeriodType
    period_multiple: int = Field(ge=1, le=65535)
    spend_limits: list[CoinLimit]
    is_default_stablecoin_limit: bool = False
    authorizations: list[AuthorizationRule] | None = None

    # ── Validity ───────────────────────────────────────────────

    def assert_is_valid(self, reference_denom: str) -> None:
        """
        Require exactly one spend limit, denominated in `reference_denom`.

        Raises:
            MultiSpendLimitsNotSupported: The record is not a valid
                single-stablecoin limit.
        """
        if (
            not self.is_default_stablecoin_limit
            or len(self.spend_limits) != 1
            or self.spend_limits[0].denom != reference_denom
        ):
            raise MultiSpendLimitsNotSupported()

    @property
    def limit(self) -> CoinLimit:
        return self.spend_limits[0]

    # ── Period rollover ────────────────────────────────────────

    def should_reset(self, now: int) -> bool:
        """True once `now` is strictly past the stored reset time."""
        return now > self.current_period_reset

    def next_reset_after(self, now: int) -> int:
        """
        Compute the reset time following `now` for this address's period.

        Raises:
            DayUpdateError: Day arithmetic overflowed.
            MonthUpdateError: Month arithmetic overflowed or produced no
                valid date.
        """
        current = datetime.fromtimestamp(now, tz=timezone.utc)

        if self.period_type == PeriodType.DAYS:
            try:
                new_dt = current + timedelta(days=self.period_multiple)
            except OverflowError as exc:
                raise DayUpdateError(str(exc)) from exc
            return int(new_dt.timestamp())

        if current.month + self.period_multiple > MAX_WORKING_MONTH:
            raise MonthUpdateError()
        year_increment, month_index = divmod(current.month - 1 + self.period_multiple, 12)
        try:
            new_dt = datetime(current.year + year_increment, month_index + 1, 1, tzinfo=timezone.utc)
        except ValueError as exc:
            raise MonthUpdateError() from exc
        return int(new_dt.timestamp())

    def reset_period(self, now: int) -> None:
        """Refill the limit and move the reset time past `now`."""
        next_reset = self.next_reset_after(now)
        self.reset_limits()
        self.current_period_reset = next_reset
        logger.info(
            "Spend limit period rolled over for %s; next reset at %d",
            self.address, next_reset,
        )

    # ── Limit bookkeeping ──────────────────────────────────────

    def reset_limits(self) -> None:
        self.limit.limit_remaining = self.limit.amount

    def update_spend_limit(self, new_limit: CoinLimit) -> None:
        """Replace all limits with `new_limit`; only one limit is supported."""
        self.spend_limits = [new_limit]

    def simulate_reduce_limit(
        self,
        converter: ConversionEngine,
        spend: Coin,
        reset: bool = False,
    ) -> tuple[int, SourcedAmount]:
        """
        Price `spend` and compute what would remain of the limit.

        When `reset` is True the check runs against the full period amount,
        as it would right after a rollover.

        Returns:
            (remaining after the spend, converted spend)

        Raises:
            CannotSpendMoreThanLimit: The converted spend exceeds the limit.
        """
        converted = converter.convert_to_reference(spend, want_target_amount=False)
        available = self.limit.amount if reset else self.limit.limit_remaining
        if converted.coin.amount > available:
            raise CannotSpendMoreThanLimit(converted.coin.amount, converted.coin.denom)
        return available - converted.coin.amount, converted

    def reduce_limit(self, converter: ConversionEngine, spend: Coin) -> SourcedAmount:
        """Check then debit a single spend."""
        remaining, converted = self.simulate_reduce_limit(converter, spend)
        self.limit.limit_remaining = remaining
        logger.info(
            "Spend limit reduced for %s by %d; %d remaining",
            self.address, converted.coin.amount, remaining,
        )
        return converted

    def reduce_limit_direct(self, reduction: Coin) -> None:
        """
        Debit an amount already expressed in the reference stablecoin.

        Raises:
            CannotSpendMoreThanLimit: The reduction exceeds what remains.
        """
        if reduction.amount > self.limit.limit_remaining:
            raise CannotSpendMoreThanLimit(reduction.amount, reduction.denom)
        self.limit.limit_remaining -= reduction.amount

    def _tally_spend_vec(
        self,
        converter: ConversionEngine,
        spends: list[Coin],
        available: int,
    ) -> SourcedAmount:
        tally = SourcedAmount(coin=Coin(denom=self.limit.denom, amount=0))
        for spend in spends:
            converted = converter.convert_to_reference(spend, want_target_amount=False)
            total = tally.coin.amount + converted.coin.amount
            if total > available:
                raise CannotSpendMoreThanLimit(converted.coin.amount, converted.coin.denom)
            tally = tally.merge(converted, Coin(denom=self.limit.denom, amount=total))
        return tally

    def check_spend_vec(
        self,
        converter: ConversionEngine,
        spends: list[Coin],
        should_reset: bool = False,
    ) -> SourcedAmount:
        """Price a batch and check it against the limit without debiting."""
        available = self.limit.amount if should_reset else self.limit.limit_remaining
        return self._tally_spend_vec(converter, spends, available)

    def process_spend_vec(self, converter: ConversionEngine, spends: list[Coin]) -> SourcedAmount:
        """
        Price and debit a batch of spends atomically.

        Each spend is converted in order and added to a running tally. If the
        tally would exceed the remaining limit at any point the whole batch
        fails and nothing is debited.

        Returns:
            The batch total in the reference stablecoin, carrying the
            provenance of every conversion in order.
        """
        tally = self._tally_spend_vec(converter, spends, self.limit.limit_remaining)
        self.limit.limit_remaining -= tally.coin.amount
        logger.info(
            "Spend limit reduced for %s by %d over %d spend(s); %d remaining",
            self.address, tally.coin.amount, len(spends), self.limit.limit_remaining,
        )
        return tally
