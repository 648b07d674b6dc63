"""
Fungible-token collaborator.

The ledgers only need the narrow interface in `TokenCollaborator`. The acting
identity is passed explicitly (``sender`` / ``spender`` / ``owner``) because
there is no ambient message sender in-process.

`InMemoryToken` is a deterministic implementation of that interface used by the
tests, the demo tool and embedding applications that do not have a real token.
"""

from __future__ import annotations

from typing import Dict, Protocol, Tuple, runtime_checkable

from ..core.math import MAX_UINT256
from ..state.canonical import ZERO_ADDRESS, canonical_address, derive_address


Address = str
Amount = int


@runtime_checkable
class TokenCollaborator(Protocol):
    address: Address
    name: str
    symbol: str
    decimals: int

    def balance_of(self, account: Address) -> Amount: ...

    def transfer(self, sender: Address, to: Address, amount: Amount) -> bool: ...

    def transfer_from(self, spender: Address, owner: Address, to: Address, amount: Amount) -> bool: ...

    def approve(self, owner: Address, spender: Address, amount: Amount) -> bool: ...

    def allowance(self, owner: Address, spender: Address) -> Amount: ...


def _check_amount(amount: Amount) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        raise ValueError(f"amount must be a non-negative int: {amount!r}")
    if amount > MAX_UINT256:
        raise ValueError("amount exceeds uint256")


class InMemoryToken:
    """
    Deterministic balance/allowance table for one fungible token.

    Insufficient balance or allowance is reported by returning False, never by
    partially applying a transfer. Malformed input (bad address, negative
    amount) raises ValueError.
    """

    def __init__(self, name: str, symbol: str, decimals: int = 18, address: Address | None = None):
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.address = canonical_address(address) if address else derive_address(f"token:{symbol}")
        self.total_supply: Amount = 0
        self._balances: Dict[Address, Amount] = {}
        self._allowances: Dict[Tuple[Address, Address], Amount] = {}

    def balance_of(self, account: Address) -> Amount:
        return self._balances.get(canonical_address(account), 0)

    def allowance(self, owner: Address, spender: Address) -> Amount:
        return self._allowances.get((canonical_address(owner), canonical_address(spender)), 0)

    def mint(self, to: Address, amount: Amount) -> None:
        _check_amount(amount)
        to = canonical_address(to)
        if to == ZERO_ADDRESS:
            raise ValueError("cannot mint to the zero address")
        self._balances[to] = self._balances.get(to, 0) + amount
        self.total_supply += amount

    def approve(self, owner: Address, spender: Address, amount: Amount) -> bool:
        _check_amount(amount)
        key = (canonical_address(owner), canonical_address(spender))
        if amount == 0:
            self._allowances.pop(key, None)
        else:
            self._allowances[key] = amount
        return True

    def transfer(self, sender: Address, to: Address, amount: Amount) -> bool:
        _check_amount(amount)
        return self._move(canonical_address(sender), canonical_address(to), amount)

    def transfer_from(self, spender: Address, owner: Address, to: Address, amount: Amount) -> bool:
        _check_amount(amount)
        owner = canonical_address(owner)
        key = (owner, canonical_address(spender))
        allowed = self._allowances.get(key, 0)
        if allowed < amount:
            return False
        if self._balances.get(owner, 0) < amount:
            return False
        if not self._move(owner, canonical_address(to), amount):
            return False
        if allowed != MAX_UINT256:
            self.approve(owner, key[1], allowed - amount)
        return True

    def _move(self, sender: Address, to: Address, amount: Amount) -> bool:
        if to == ZERO_ADDRESS:
            raise ValueError("cannot transfer to the zero address")
        balance = self._balances.get(sender, 0)
        if balance < amount:
            return False
        if amount == 0:
            return True
        remaining = balance - amount
        if remaining:
            self._balances[sender] = remaining
        else:
            # Remove zero balances to keep table sparse
            self._balances.pop(sender, None)
        self._balances[to] = self._balances.get(to, 0) + amount
        return True

    def __repr__(self) -> str:
        return f"InMemoryToken({self.symbol}, {len(self._balances)} holders)"
