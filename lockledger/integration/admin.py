"""
Single-administrator ownership primitive.

- one owner; `is_administrator(caller)` is the capability check the ledgers use
- two-step transfer: the owner nominates (`give_ownership`), the nominee
  accepts (`accept_ownership`)
- `renounce_ownership` leaves the component without an administrator

Emits `OwnershipChanged(previous, new)` through the owning ledger's event sink.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from ..core.errors import OnlyAdministrator, OnlyPendingOwner, ZeroAddress
from ..state.canonical import ZERO_ADDRESS, canonical_address
from .events import LedgerEvent, OwnershipChanged

logger = logging.getLogger(__name__)


class Ownable:
    def __init__(self, owner: str, emit: Optional[Callable[[LedgerEvent], None]] = None):
        owner = canonical_address(owner, name="owner")
        if owner == ZERO_ADDRESS:
            raise ZeroAddress("owner must not be the zero address")
        self._owner = owner
        self._pending: str = ZERO_ADDRESS
        self._emit = emit or (lambda event: None)

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def pending_owner(self) -> str:
        return self._pending

    def is_administrator(self, caller: str) -> bool:
        if self._owner == ZERO_ADDRESS:
            return False
        return canonical_address(caller) == self._owner

    def require_administrator(self, caller: str) -> None:
        if not self.is_administrator(caller):
            raise OnlyAdministrator(f"{caller} is not the administrator")

    def give_ownership(self, caller: str, new_owner: str) -> None:
        self.require_administrator(caller)
        new_owner = canonical_address(new_owner, name="new_owner")
        if new_owner == ZERO_ADDRESS:
            raise ZeroAddress("use renounce_ownership to drop the administrator")
        self._pending = new_owner
        logger.info("Ownership offered from %s to %s", self._owner, new_owner)

    def accept_ownership(self, caller: str) -> None:
        caller = canonical_address(caller)
        if self._pending == ZERO_ADDRESS or caller != self._pending:
            raise OnlyPendingOwner(f"{caller} is not the pending owner")
        previous = self._owner
        self._owner = caller
        self._pending = ZERO_ADDRESS
        logger.info("Ownership changed from %s to %s", previous, caller)
        self._emit(OwnershipChanged(previous=previous, new=caller))

    def renounce_ownership(self, caller: str) -> None:
        self.require_administrator(caller)
        previous = self._owner
        self._owner = ZERO_ADDRESS
        self._pending = ZERO_ADDRESS
        logger.info("Ownership renounced by %s", previous)
        self._emit(OwnershipChanged(previous=previous, new=ZERO_ADDRESS))
