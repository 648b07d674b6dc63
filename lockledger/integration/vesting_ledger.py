"""
Vesting ledger shell.

Escrows administrator-funded grants and releases them linearly. Also exposes a
read-mostly fungible-token facade (`name`, `symbol`, `balance_of`, ...) so
wallets can display unclaimed balances; `transfer` on the facade is a claim.

A claim-to-stake commits the vesting side first and then calls the staking
ledger. Staking either rejects before it moves anything, which rolls the
vesting side back, or commits; it never fails after committing.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, List, Mapping, Optional

from ..core.errors import TransferFailed, error_for_code
from ..core.invariants import check_vesting_ledger
from ..core.math import MAX_UINT256, claimable_at
from ..core.types import StepResult, VestingAccount, VestingAction, VestingCommand, VestingState
from ..core.vesting import init_vesting_state, step
from ..state.canonical import canonical_address, derive_address
from ..state.vests import Vest
from .admin import Ownable
from .clock import TimeProvider, system_time
from .config import LedgerConfig
from .events import Claimed, LedgerEvent, VestingAdded
from .token import TokenCollaborator

if TYPE_CHECKING:
    from .staking_ledger import StakingLedger

logger = logging.getLogger(__name__)


class VestingLedger:
    """Linear-release grants, with an optional hand-off into a staking ledger."""

    def __init__(
        self,
        token: TokenCollaborator,
        owner: str,
        *,
        time_provider: Optional[TimeProvider] = None,
        config: Optional[LedgerConfig] = None,
        address: Optional[str] = None,
    ):
        self.token = token
        self.address = canonical_address(address) if address else derive_address(f"vesting:{token.address}")
        self.config = config or LedgerConfig()
        self._limits = self.config.limits()
        self._time = time_provider or system_time
        self._state: VestingState = init_vesting_state()
        self._accounts: dict[str, VestingAccount] = {}
        self._staking: Optional["StakingLedger"] = None
        self.events: List[LedgerEvent] = []
        self._subscribers: List[Callable[[LedgerEvent], None]] = []
        self.ownership = Ownable(owner, emit=self._emit)

    @property
    def state(self) -> VestingState:
        return self._state

    @property
    def accounts(self) -> Mapping[str, VestingAccount]:
        return MappingProxyType(self._accounts)

    @property
    def token_address(self) -> str:
        return self.token.address

    @property
    def stake_address(self) -> Optional[str]:
        return self._state.stake_contract

    def subscribe(self, callback: Callable[[LedgerEvent], None]) -> None:
        self._subscribers.append(callback)

    def _emit(self, event: LedgerEvent) -> None:
        # Runs after a commit: a failing subscriber must not turn it into an error.
        self.events.append(event)
        for callback in self._subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception("Subscriber %r failed on %s", callback, type(event).__name__)

    def audit(self) -> list[str]:
        """Check the laws that span every account; returns violated invariant IDs."""
        return check_vesting_ledger(self._state, self._accounts)

    def _run(self, action: VestingAction, args: dict[str, Any], *, account_of: Optional[str] = None) -> StepResult:
        account = self._accounts.get(account_of) if account_of else None
        result = step(
            self._state, VestingCommand(action, args), now=self._time(), limits=self._limits, account=account
        )
        if not result.ok:
            logger.debug("Vesting %s rejected: %s", action.value, result.error)
            raise error_for_code(result.error or "LedgerError")
        return result

    def _install(self, state: VestingState, owner: Optional[str], account: Optional[VestingAccount]) -> None:
        self._state = state
        if owner is None:
            return
        if account is None or account.is_empty():
            self._accounts.pop(owner, None)
        else:
            self._accounts[owner] = account

    def _commit(
        self, result: StepResult, move: Callable[[], bool], what: str, *, owner: Optional[str] = None
    ) -> None:
        previous = self._state
        previous_account = self._accounts.get(owner) if owner else None
        self._install(result.state, owner, result.account)
        try:
            ok = move()
        except Exception:
            self._install(previous, owner, previous_account)
            raise
        if not ok:
            self._install(previous, owner, previous_account)
            logger.warning("Token %s refused %s", self.token.address, what)
            raise TransferFailed(f"token refused {what}")

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def add_lock(
        self,
        caller: str,
        beneficiary: str,
        *,
        start_amount: int,
        total_amount: int,
        start_date: int,
        end_date: int,
    ) -> Vest:
        """Escrow `total_amount` from `caller` as a new grant for `beneficiary`."""
        caller = canonical_address(caller, name="caller")
        beneficiary = canonical_address(beneficiary, name="beneficiary")
        result = self._run(
            VestingAction.ADD_LOCK,
            {
                "auth_ok": self.ownership.is_administrator(caller),
                "beneficiary": beneficiary,
                "start_amount": start_amount,
                "total_amount": total_amount,
                "start_date": start_date,
                "end_date": end_date,
            },
            account_of=beneficiary,
        )
        amount = result.effects["pull_amount"]
        self._commit(
            result,
            lambda: self.token.transfer_from(self.address, caller, self.address, amount),
            "grant escrow pull",
            owner=beneficiary,
        )
        logger.info("Vest of %d added for %s (%d..%d)", total_amount, beneficiary, start_date, end_date)
        self._emit(
            VestingAdded(
                beneficiary=beneficiary,
                start_amount=start_amount,
                total_amount=total_amount,
                start_date=start_date,
                end_date=end_date,
            )
        )
        return self._accounts[beneficiary].vests[-1]

    def set_stake_address(self, caller: str, staking: "StakingLedger") -> None:
        """One-time binding to the staking ledger that `claim2stake` deposits into."""
        caller = canonical_address(caller, name="caller")
        result = self._run(
            VestingAction.SET_STAKE_CONTRACT,
            {
                "auth_ok": self.ownership.is_administrator(caller),
                "stake_contract": staking.address,
                "counterpart_ok": (
                    staking.vesting_address == self.address and staking.token_address == self.token_address
                ),
            },
        )
        self._commit(
            result,
            lambda: self.token.approve(self.address, staking.address, MAX_UINT256),
            "staking allowance",
        )
        self._staking = staking
        logger.info("Stake contract set to %s", staking.address)

    # ------------------------------------------------------------------
    # Callers
    # ------------------------------------------------------------------

    def claim(self, caller: str) -> int:
        """Withdraw everything released so far across all of `caller`'s grants."""
        caller = canonical_address(caller, name="caller")
        result = self._run(VestingAction.CLAIM, {"caller": caller}, account_of=caller)
        payout = result.effects["payout"]
        self._commit(
            result, lambda: self.token.transfer(self.address, caller, payout), "claim payout", owner=caller
        )
        logger.info("Claim of %d by %s", payout, caller)
        self._emit(Claimed(caller=caller, amount=payout))
        return payout

    def claim2stake(self, caller: str) -> int:
        """Claim like `claim`, but deposit the payout into the bound staking pool."""
        caller = canonical_address(caller, name="caller")
        result = self._run(VestingAction.CLAIM_TO_STAKE, {"caller": caller}, account_of=caller)
        payout = result.effects["payout"]
        staking = self._staking

        def _stake() -> bool:
            staking.claim2stake(self.address, caller, payout)
            return True

        self._commit(result, _stake, "claim-to-stake deposit", owner=caller)
        logger.info("Claim of %d by %s staked in %s", payout, caller, staking.address)
        self._emit(Claimed(caller=caller, amount=payout))
        return payout

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def vested(self) -> int:
        return self._state.vested_total

    def vestings(self, caller: str) -> tuple[Vest, ...]:
        account = self._accounts.get(canonical_address(caller, name="caller"))
        return account.vests if account else ()

    def vesting_count(self, caller: str) -> int:
        return len(self.vestings(caller))

    def vesting(self, caller: str, index: int) -> Vest:
        items = self.vestings(caller)
        if not isinstance(index, int) or not (0 <= index < len(items)):
            raise error_for_code("InvalidArgument", f"no vest at index {index}")
        return items[index]

    def claimable(self, caller: str) -> int:
        now = self._time()
        return sum(claimable_at(v, now) for v in self.vestings(caller))

    # ------------------------------------------------------------------
    # Token facade
    # ------------------------------------------------------------------

    def name(self) -> str:
        return "vested " + self.token.name

    def symbol(self) -> str:
        return "v" + self.token.symbol

    def decimals(self) -> int:
        return self.token.decimals

    def total_supply(self) -> int:
        return self._state.vested_total

    def balance_of(self, caller: str) -> int:
        return sum(v.unclaimed for v in self.vestings(caller))

    def transfer(self, caller: str, to: str = "", amount: int = 0) -> bool:
        """Wallet-compatible claim trigger; `to` and `amount` are ignored."""
        self.claim(caller)
        return True

    def __repr__(self) -> str:
        return f"VestingLedger({self.address}, vested={self._state.vested_total})"
