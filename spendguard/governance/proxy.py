"""
Proxy Engine — decides, for every outbound instruction, whether the caller
may issue it.

Per instruction, in order:

1. The owner passes unconditionally (after any fee debt repayment is
   attached to the first native send).
2. A contract call without attached funds is tried against the
   authorization rules: the global set plus the caller's own rules.
3. Anything else must be a value transfer the limit engine can price. It is
   converted to the reference stablecoin and debited from the caller's
   recurring spend limit. Chain operations and unpriceable contract calls
   are rejected.

The engine works on an explicit `ProxyState`. `execute` is all-or-nothing:
it runs against a working copy and writes the copy back only if every
instruction passed. Owner management, permissioned-address management and
rule management are owner-only and live here too.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from spendguard.core.errors import (
    BadMessageType,
    CallerIsNotPendingOwner,
    CannotSpendZero,
    NoSuchAuthorization,
    PermissionedAddressDoesNotExist,
    PermissionedAddressExists,
    ProxyError,
    RepayFeesFirst,
    SpendNotAuthorized,
    Unauthorized,
    UpdateDelayActive,
)
from spendguard.core.schema import (
    AuthorizationRule,
    BankSend,
    ChainOperation,
    Coin,
    OutboundMessage,
    Signer,
    WasmExecute,
)
from spendguard.core.state import ProxyState
from spendguard.governance.authorizations import AuthorizationMatcher
from spendguard.governance.dispatch import ClassifiedMessage, MessageKind, classify
from spendguard.governance.permissioned_address import PermissionedAddress
from spendguard.integrations.chain_client import ChainQuerier
from spendguard.pricing.conversion import ConversionEngine
from spendguard.pricing.pools import PoolRegistry
from spendguard.pricing.sourced import SourcedAmount

logger = logging.getLogger(__name__)


@dataclass
class ExecuteResponse:
    """Messages to forward, plus audit attributes describing every decision."""

    messages: list[OutboundMessage] = field(default_factory=list)
    attributes: list[tuple[str, str]] = field(default_factory=list)

    def add_attribute(self, key: str, value: str) -> ExecuteResponse:
        self.attributes.append((key, value))
        return self

    def add_sources(self, sourced: SourcedAmount) -> ExecuteResponse:
        self.attributes.extend(sourced.to_attributes())
        return self


@dataclass
class CanSpendResponse:
    can_spend: bool
    reason: str


class ProxyEngine:
    """
    Spend-authorization engine for one account proxy.

    Usage:
        engine = ProxyEngine(querier, reference_denom)
        state, _ = engine.instantiate(owner="juno1owner...", ...)
        response = engine.execute(state, sender, [BankSend(...)], now=block_time)
    """

    def __init__(self, querier: ChainQuerier, reference_denom: str) -> None:
        self.querier = querier
        self.reference_denom = reference_denom

    def converter_for(self, state: ProxyState) -> ConversionEngine:
        return ConversionEngine(
            PoolRegistry(state.pair_contracts), self.querier, self.reference_denom
        )

    # ════════════════════════════════════════════════════════════
    # Instantiation
    # ════════════════════════════════════════════════════════════

    def instantiate(
        self,
        owner: str,
        fee_repay_address: str,
        home_network: str,
        permissioned_addresses: list[PermissionedAddress] | None = None,
        signers: list[Signer] | None = None,
        fee_debt: int = 0,
        update_delay_seconds: int = 0,
    ) -> tuple[ProxyState, ExecuteResponse]:
        """
        Build a fresh state with the home network's default pool registry.

        Raises:
            MultiSpendLimitsNotSupported: An initial permissioned address is
                not a single reference-stablecoin limit.
            PermissionedAddressExists: An address is listed twice.
            ValueError: `home_network` has no default pool registry.
        """
        registry = PoolRegistry.for_network(home_network)
        seen: set[str] = set()
        for wallet in permissioned_addresses or []:
            wallet.assert_is_valid(self.reference_denom)
            if wallet.address in seen:
                raise PermissionedAddressExists()
            seen.add(wallet.address)

        state = ProxyState(
            owner=owner,
            update_delay_seconds=update_delay_seconds,
            signers=list(signers or []),
            permissioned_addresses=list(permissioned_addresses or []),
            pair_contracts=list(registry.pools),
            fee_debt=fee_debt,
            fee_repay_address=fee_repay_address,
            home_network=home_network,
        )
        response = ExecuteResponse().add_attribute("action", "instantiate")
        for signer in state.signers:
            response.add_attribute("signer", signer.address)
        logger.info(
            "Proxy instantiated for owner %s on %s with %d pool(s)",
            owner, home_network, len(registry),
        )
        return state, response

    # ════════════════════════════════════════════════════════════
    # Execution
    # ════════════════════════════════════════════════════════════

    def execute(
        self,
        state: ProxyState,
        sender: str,
        msgs: list[OutboundMessage],
        now: int,
        simulate: bool = False,
    ) -> ExecuteResponse:
        """
        Authorize and forward `msgs` on behalf of `sender` at block time `now`.

        With `simulate` the decisions and state changes are the same but no
        messages are forwarded.

        Raises:
            ProxyError: Any instruction was refused. `state` is untouched.
        """
        working = state.model_copy(deep=True)
        converter = self.converter_for(working)
        matcher = AuthorizationMatcher(working.authorizations)
        response = ExecuteResponse()

        for msg in msgs:
            classified = classify(msg)
            if working.is_owner(sender):
                self._execute_as_owner(working, converter, msg, classified, response, simulate)
            else:
                self._execute_as_permissioned(
                    working, converter, matcher, sender, msg, classified, response, simulate, now,
                )

        for name in ProxyState.model_fields:
            setattr(state, name, getattr(working, name))
        return response

    def _execute_as_owner(
        self,
        state: ProxyState,
        converter: ConversionEngine,
        msg: OutboundMessage,
        classified: ClassifiedMessage,
        response: ExecuteResponse,
        simulate: bool,
    ) -> None:
        repayment = None
        if classified.kind == MessageKind.BANK_SEND and state.fee_debt > 0 and classified.funds:
            repayment = self._repay_fee_debt(state, converter, classified.funds[0], response)
        response.add_attribute("action", "execute_execute")
        if not simulate:
            response.messages.append(msg)
            if repayment is not None:
                response.messages.append(repayment)

    def _execute_as_permissioned(
        self,
        state: ProxyState,
        converter: ConversionEngine,
        matcher: AuthorizationMatcher,
        sender: str,
        msg: OutboundMessage,
        classified: ClassifiedMessage,
        response: ExecuteResponse,
        simulate: bool,
        now: int,
    ) -> None:
        wallet = state.get_permissioned_address(sender)

        # attached funds always go through the spend limit
        if isinstance(msg, WasmExecute) and not msg.funds:
            extra_rules = wallet.authorizations if wallet is not None else None
            result = matcher.check(sender, msg.contract_addr, msg.msg, extra_rules)
            if result.matched:
                response.add_attribute("action", "execute_authorized_action")
                if not simulate:
                    response.messages.append(msg)
                return

        if isinstance(msg, ChainOperation):
            raise BadMessageType(msg.kind)
        if not classified.is_priceable:
            if classified.token_instruction is None:
                raise NoSuchAuthorization()
            raise SpendNotAuthorized()
        if not any(coin.amount for coin in classified.funds):
            raise CannotSpendZero()
        if wallet is None:
            raise PermissionedAddressDoesNotExist()
        wallet.assert_is_valid(self.reference_denom)

        repayment = None
        if classified.kind == MessageKind.BANK_SEND and state.fee_debt > 0:
            repayment = self._repay_fee_debt(state, converter, classified.funds[0], response)

        if wallet.should_reset(now):
            wallet.reset_period(now)
        reduction = wallet.process_spend_vec(converter, classified.funds)

        response.add_attribute("action", "execute_spend_limit")
        response.add_attribute("spend_limit_reduction", str(reduction.coin.amount))
        response.add_sources(reduction)
        if not simulate:
            response.messages.append(msg)
            if repayment is not None:
                response.messages.append(repayment)

    def _repay_fee_debt(
        self,
        state: ProxyState,
        converter: ConversionEngine,
        asset: Coin,
        response: ExecuteResponse,
    ) -> BankSend:
        """
        Price the whole fee debt in `asset`'s denomination and zero it.

        Returns:
            The native send that repays the debt.

        Raises:
            RepayFeesFirst: No pool can price the debt in this denomination.
        """
        debt = state.fee_debt
        if not converter.can_convert(asset.denom):
            raise RepayFeesFirst(debt)
        repayment = converter.convert_to_reference(
            Coin(denom=asset.denom, amount=debt), want_target_amount=True
        )
        state.fee_debt = 0
        response.add_attribute("note", "repaying one-time fee debt")
        response.add_sources(repayment)
        logger.info(
            "Fee debt of %d repaid with %s %s", debt, repayment.coin.amount, repayment.coin.denom
        )
        return BankSend(to_address=state.fee_repay_address, amount=[repayment.coin])

    def can_spend(
        self,
        state: ProxyState,
        sender: str,
        msgs: list[OutboundMessage],
        now: int,
    ) -> CanSpendResponse:
        """Dry-run `execute` on a copy of `state`; never mutates it."""
        try:
            self.execute(state.model_copy(deep=True), sender, msgs, now, simulate=True)
        except ProxyError as exc:
            return CanSpendResponse(can_spend=False, reason=str(exc))
        return CanSpendResponse(can_spend=True, reason="")

    def can_execute(self, state: ProxyState, sender: str) -> bool:
        return state.is_owner(sender)

    # ════════════════════════════════════════════════════════════
    # Owner handover
    # ════════════════════════════════════════════════════════════

    @staticmethod
    def _require_owner(state: ProxyState, sender: str) -> None:
        if not state.is_owner(sender):
            raise Unauthorized()

    def propose_update_owner(
        self, state: ProxyState, sender: str, new_owner: str, now: int
    ) -> ExecuteResponse:
        self._require_owner(state, sender)
        state.pending_owner = new_owner
        state.pending_since = now
        logger.info("Owner update proposed: %s -> %s", state.owner, new_owner)
        return ExecuteResponse().add_attribute("action", "propose_update_owner")

    def confirm_update_owner(self, state: ProxyState, sender: str, now: int) -> ExecuteResponse:
        """
        Raises:
            CallerIsNotPendingOwner: `sender` was not proposed.
            UpdateDelayActive: The activation delay has not yet elapsed.
        """
        if not state.is_pending_owner(sender):
            raise CallerIsNotPendingOwner()
        if now < (state.pending_since or 0) + state.update_delay_seconds:
            raise UpdateDelayActive()
        previous = state.owner
        state.owner = sender
        state.pending_owner = None
        state.pending_since = None
        logger.info("Owner updated: %s -> %s", previous, sender)
        return ExecuteResponse().add_attribute("action", "confirm_update_owner")

    def cancel_update_owner(self, state: ProxyState, sender: str) -> ExecuteResponse:
        """Either the owner or the pending owner may withdraw a proposal."""
        if not (state.is_owner(sender) or state.is_pending_owner(sender)):
            raise Unauthorized()
        state.pending_owner = None
        state.pending_since = None
        logger.info("Owner update cancelled by %s", sender)
        return ExecuteResponse().add_attribute("action", "cancel_update_owner")

    # ════════════════════════════════════════════════════════════
    # Permissioned addresses and rules
    # ════════════════════════════════════════════════════════════

    def add_permissioned_address(
        self, state: ProxyState, sender: str, wallet: PermissionedAddress
    ) -> ExecuteResponse:
        self._require_owner(state, sender)
        wallet.assert_is_valid(self.reference_denom)
        if state.get_permissioned_address(wallet.address) is not None:
            raise PermissionedAddressExists()
        state.permissioned_addresses.append(wallet)
        logger.info("Permissioned address added: %s", wallet.address)
        return ExecuteResponse().add_attribute("action", "add_permissioned_address")

    def rm_permissioned_address(
        self, state: ProxyState, sender: str, address: str
    ) -> ExecuteResponse:
        self._require_owner(state, sender)
        wallet = state.get_permissioned_address(address)
        if wallet is None:
            raise PermissionedAddressDoesNotExist()
        state.permissioned_addresses.remove(wallet)
        logger.info("Permissioned address removed: %s", address)
        return ExecuteResponse().add_attribute("action", "rm_permissioned_address")

    def add_authorization(
        self, state: ProxyState, sender: str, rule: AuthorizationRule
    ) -> ExecuteResponse:
        self._require_owner(state, sender)
        matcher = AuthorizationMatcher(state.authorizations)
        matcher.add_rule(rule)
        state.authorizations = matcher.rules
        return ExecuteResponse().add_attribute("action", "add_authorization")

    def rm_authorization(
        self, state: ProxyState, sender: str, rule: AuthorizationRule
    ) -> ExecuteResponse:
        self._require_owner(state, sender)
        matcher = AuthorizationMatcher(state.authorizations)
        matcher.remove_rule(rule)
        state.authorizations = matcher.rules
        return ExecuteResponse().add_attribute("action", "rm_authorization")

    def list_authorizations(
        self,
        state: ProxyState,
        actor: str | None = None,
        contract: str | None = None,
        start_after: int | None = None,
        limit: int | None = None,
    ) -> list[AuthorizationRule]:
        return AuthorizationMatcher(state.authorizations).list_rules(
            actor=actor, contract=contract, start_after=start_after, limit=limit
        )
