"""
Proxy State — the single record the engine loads, mutates and saves per call.

The record bundles owner bookkeeping, the permissioned-address list, the
global authorization rules, the pool registry and the accrued fee debt. It
is passed explicitly into every engine operation and is never held as
module state.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from spendguard.core.schema import AuthorizationRule, Signer
from spendguard.governance.permissioned_address import PermissionedAddress
from spendguard.pricing.pools import PoolDescriptor


class ProxyState(BaseModel):
    owner: str
    pending_owner: str | None = None
    pending_since: int | None = Field(
        default=None, description="Epoch seconds when the pending owner was proposed"
    )
    update_delay_seconds: int = Field(default=0, ge=0)
    signers: list[Signer] = Field(default_factory=list)
    permissioned_addresses: list[PermissionedAddress] = Field(default_factory=list)
    authorizations: list[AuthorizationRule] = Field(default_factory=list)
    pair_contracts: list[PoolDescriptor] = Field(default_factory=list)
    fee_debt: int = Field(default=0, ge=0, description="Owed, in reference units")
    fee_repay_address: str
    home_network: str

    def is_owner(self, address: str) -> bool:
        return self.owner == address

    def is_pending_owner(self, address: str) -> bool:
        return self.pending_owner is not None and self.pending_owner == address

    def get_permissioned_address(self, address: str) -> PermissionedAddress | None:
        for wallet in self.permissioned_addresses:
            if wallet.address == address:
                return wallet
        return None
