"""
Tests for the runtime wiring of store, querier and engine.

Validates:
- Calls before instantiation are refused
- Accepted calls are persisted
- Refused calls leave the stored record untouched
- structlog events and library log records share one format
"""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from fakes import REF, FakeQuerier
from spendguard.config import SpendGuardSettings
from spendguard.core.errors import CannotSpendMoreThanLimit, Unauthorized
from spendguard.core.schema import LOCAL_DENOM, BankSend, Coin, CoinLimit, PeriodType
from spendguard.governance.permissioned_address import PermissionedAddress
from spendguard.ledger.store import StateStore
from spendguard.runtime import ProxyRuntime, StateNotInitialized, configure_logging

NOW = 1_654_257_600


def make_wallet() -> PermissionedAddress:
    return PermissionedAddress(
        address="juno1permissioned",
        current_period_reset=NOW + 86_400,
        period_type=PeriodType.DAYS,
        period_multiple=1,
        spend_limits=[CoinLimit(denom=REF, amount=1_000_000, limit_remaining=1_000_000)],
        is_default_stablecoin_limit=True,
    )


def send(denom: str, amount: int) -> BankSend:
    return BankSend(to_address="juno1recipient", amount=[Coin(denom=denom, amount=amount)])


class TestProxyRuntime:
    @pytest.fixture(autouse=True)
    def _runtime(self, tmp_path):
        self.config = SpendGuardSettings(
            reference_denom=REF,
            home_network="local",
            database_url=f"sqlite:///{tmp_path / 'spendguard.db'}",
            log_format="console",
        )
        configure_logging(self.config)
        self.store = StateStore(self.config.database_url)
        self.store.initialize()
        self.runtime = ProxyRuntime(self.store, FakeQuerier(), self.config)

    def remaining(self) -> int:
        state = self.store.load(self.config.state_slot)
        return state.get_permissioned_address("juno1permissioned").limit.limit_remaining

    def test_requires_instantiation(self):
        with pytest.raises(StateNotInitialized):
            self.runtime.execute("juno1owner", [send(REF, 1)], NOW)

    def test_accepted_spend_is_persisted(self):
        self.runtime.instantiate("juno1owner", "juno1feerepay", permissioned_addresses=[make_wallet()])
        response = self.runtime.execute("juno1permissioned", [send(LOCAL_DENOM, 1_000)], NOW)
        assert len(response.messages) == 1
        assert self.remaining() == 900_000

    def test_refused_spend_is_not_persisted(self):
        self.runtime.instantiate("juno1owner", "juno1feerepay", permissioned_addresses=[make_wallet()])
        with pytest.raises(CannotSpendMoreThanLimit):
            self.runtime.execute(
                "juno1permissioned", [send(REF, 600_000), send(REF, 600_000)], NOW
            )
        assert self.remaining() == 1_000_000

    def test_can_spend_does_not_persist(self):
        self.runtime.instantiate("juno1owner", "juno1feerepay", permissioned_addresses=[make_wallet()])
        assert self.runtime.can_spend("juno1permissioned", [send(REF, 10)], NOW).can_spend
        assert self.remaining() == 1_000_000

    def test_management_round_trips(self):
        self.runtime.instantiate("juno1owner", "juno1feerepay")
        self.runtime.add_permissioned_address("juno1owner", make_wallet())
        with pytest.raises(Unauthorized):
            self.runtime.rm_permissioned_address("juno1permissioned", "juno1permissioned")
        assert self.remaining() == 1_000_000

        self.runtime.propose_update_owner("juno1owner", "juno1next", NOW)
        self.runtime.confirm_update_owner("juno1next", NOW)
        assert self.store.load(self.config.state_slot).owner == "juno1next"


class TestConfigureLogging:
    def test_both_streams_render_as_json(self, capsys):
        configure_logging(SpendGuardSettings(log_format="json", log_level="INFO"))
        logging.getLogger("spendguard.pricing.conversion").info("Converted %d units", 5)
        structlog.get_logger("spendguard.runtime").info("spendguard.runtime.executed", forwarded=1)
        logging.getLogger("spendguard.pricing.conversion").debug("below the configured level")

        lines = [json.loads(line) for line in capsys.readouterr().err.splitlines() if line]
        assert [line["event"] for line in lines] == [
            "Converted 5 units",
            "spendguard.runtime.executed",
        ]
        assert all(line["level"] == "info" for line in lines)
        assert lines[0]["logger"] == "spendguard.pricing.conversion"
        assert lines[1]["forwarded"] == 1

    def test_reconfiguring_keeps_a_single_handler(self):
        configure_logging(SpendGuardSettings(log_format="console"))
        configure_logging(SpendGuardSettings(log_format="console"))
        names = [h.get_name() for h in logging.getLogger().handlers]
        assert names.count("spendguard") == 1
