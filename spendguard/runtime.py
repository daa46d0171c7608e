"""
Spendguard Runtime — wires settings, storage, chain access and the engine.

Each call loads the state record once, runs the engine against it, and saves
it once, only if the engine accepted the whole call. A refused call leaves
the stored record exactly as it was.
"""

from __future__ import annotations

import logging

import structlog

from spendguard.config import SpendGuardSettings, settings
from spendguard.core.errors import ProxyError
from spendguard.core.schema import AuthorizationRule, OutboundMessage, Signer
from spendguard.core.state import ProxyState
from spendguard.governance.permissioned_address import PermissionedAddress
from spendguard.governance.proxy import CanSpendResponse, ExecuteResponse, ProxyEngine
from spendguard.integrations.chain_client import ChainQuerier, LcdQuerier
from spendguard.ledger.store import StateStore

logger = logging.getLogger(__name__)


_HANDLER_NAME = "spendguard"


def configure_logging(config: SpendGuardSettings = settings) -> None:
    """
    Configure structured logging.

    structlog events and plain `logging` records from library modules share
    one root handler and one renderer, so both come out in the same format.
    """
    level = logging.getLevelName(config.log_level)
    timestamper = structlog.processors.TimeStamper(fmt="iso")
    renderer = (
        structlog.dev.ConsoleRenderer()
        if config.log_format != "json"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            timestamper,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[
                structlog.processors.add_log_level,
                structlog.stdlib.add_logger_name,
                timestamper,
            ],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)


class StateNotInitialized(ProxyError):
    message = "No proxy state stored; instantiate first."


class ProxyRuntime:
    """
    One proxy, backed by a state store and a chain querier.

    Usage:
        runtime = ProxyRuntime.from_settings()
        runtime.instantiate(owner=..., fee_repay_address=...)
        response = runtime.execute(sender, msgs, now=block_time)
    """

    def __init__(
        self,
        store: StateStore,
        querier: ChainQuerier,
        config: SpendGuardSettings = settings,
    ) -> None:
        self.store = store
        self.config = config
        self.engine = ProxyEngine(querier, config.reference_denom)
        self.log = structlog.get_logger().bind(slot=config.state_slot)

    @classmethod
    def from_settings(cls, config: SpendGuardSettings = settings) -> ProxyRuntime:
        store = StateStore(config.database_url)
        store.initialize()
        querier = LcdQuerier(config.lcd_url, timeout=config.lcd_timeout_seconds)
        return cls(store, querier, config)

    def _load(self) -> ProxyState:
        state = self.store.load(self.config.state_slot)
        if state is None:
            raise StateNotInitialized()
        return state

    def _save(self, state: ProxyState) -> None:
        self.store.save(state, self.config.state_slot)

    def instantiate(
        self,
        owner: str,
        fee_repay_address: str,
        permissioned_addresses: list[PermissionedAddress] | None = None,
        signers: list[Signer] | None = None,
        fee_debt: int = 0,
        update_delay_seconds: int = 0,
    ) -> ExecuteResponse:
        state, response = self.engine.instantiate(
            owner=owner,
            fee_repay_address=fee_repay_address,
            home_network=self.config.home_network,
            permissioned_addresses=permissioned_addresses,
            signers=signers,
            fee_debt=fee_debt,
            update_delay_seconds=update_delay_seconds,
        )
        self._save(state)
        self.log.info("spendguard.runtime.instantiated", owner=owner)
        return response

    def execute(
        self,
        sender: str,
        msgs: list[OutboundMessage],
        now: int,
        simulate: bool = False,
    ) -> ExecuteResponse:
        state = self._load()
        try:
            response = self.engine.execute(state, sender, msgs, now, simulate=simulate)
        except ProxyError as exc:
            self.log.warning(
                "spendguard.runtime.execute_refused",
                sender=sender, error=type(exc).__name__, reason=str(exc),
            )
            raise
        self._save(state)
        self.log.info(
            "spendguard.runtime.executed",
            sender=sender, forwarded=len(response.messages),
        )
        return response

    def can_spend(self, sender: str, msgs: list[OutboundMessage], now: int) -> CanSpendResponse:
        return self.engine.can_spend(self._load(), sender, msgs, now)

    def add_permissioned_address(self, sender: str, wallet: PermissionedAddress) -> ExecuteResponse:
        state = self._load()
        response = self.engine.add_permissioned_address(state, sender, wallet)
        self._save(state)
        return response

    def rm_permissioned_address(self, sender: str, address: str) -> ExecuteResponse:
        state = self._load()
        response = self.engine.rm_permissioned_address(state, sender, address)
        self._save(state)
        return response

    def add_authorization(self, sender: str, rule: AuthorizationRule) -> ExecuteResponse:
        state = self._load()
        response = self.engine.add_authorization(state, sender, rule)
        self._save(state)
        return response

    def rm_authorization(self, sender: str, rule: AuthorizationRule) -> ExecuteResponse:
        state = self._load()
        response = self.engine.rm_authorization(state, sender, rule)
        self._save(state)
        return response

    def propose_update_owner(self, sender: str, new_owner: str, now: int) -> ExecuteResponse:
        state = self._load()
        response = self.engine.propose_update_owner(state, sender, new_owner, now)
        self._save(state)
        return response

    def confirm_update_owner(self, sender: str, now: int) -> ExecuteResponse:
        state = self._load()
        response = self.engine.confirm_update_owner(state, sender, now)
        self._save(state)
        return response

    def cancel_update_owner(self, sender: str) -> ExecuteResponse:
        state = self._load()
        response = self.engine.cancel_update_owner(state, sender)
        self._save(state)
        return response
