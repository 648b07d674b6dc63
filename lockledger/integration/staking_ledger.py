"""
Staking ledger shell.

Owns the committed `StakingState` and the per-caller `StakerAccount` table,
samples the clock once per call, runs the pure kernel against the book and the
one account it concerns, and moves tokens through the collaborator. The
kernel's post-state is installed before the token call and rolled back if the
call fails, so no entry point is ever partially applied. Subscribers are
notified only after a commit, and their errors are logged, never raised.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Callable, List, Mapping, Optional

from ..core.errors import NothingToRecover, TransferFailed, WrongPoolIndex, error_for_code
from ..core.invariants import check_staking_ledger
from ..core.staking import init_staking_state, step
from ..core.types import StakerAccount, StakingAction, StakingCommand, StakingState, StepResult
from ..state.canonical import ZERO_ADDRESS, canonical_address, derive_address
from ..state.pools import BridgeTarget, Pool
from ..state.positions import Position, matured_total, open_total
from .admin import Ownable
from .clock import TimeProvider, system_time
from .config import LedgerConfig
from .events import Deposit, LedgerEvent, PoolAdded, RewardsReclaimed, Withdraw
from .token import TokenCollaborator

logger = logging.getLogger(__name__)


class StakingLedger:
    """Reward pools and time-locked positions backed by one token."""

    def __init__(
        self,
        token: TokenCollaborator,
        vesting_address: str,
        owner: str,
        *,
        time_provider: Optional[TimeProvider] = None,
        config: Optional[LedgerConfig] = None,
        address: Optional[str] = None,
    ):
        self.token = token
        self.address = canonical_address(address) if address else derive_address(f"staking:{token.address}")
        self.vesting_address = canonical_address(vesting_address, name="vesting_address")
        self.config = config or LedgerConfig()
        self._limits = self.config.limits()
        self._time = time_provider or system_time
        self._state: StakingState = init_staking_state()
        self._accounts: dict[str, StakerAccount] = {}
        self.events: List[LedgerEvent] = []
        self._subscribers: List[Callable[[LedgerEvent], None]] = []
        self.ownership = Ownable(owner, emit=self._emit)

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @property
    def state(self) -> StakingState:
        return self._state

    @property
    def accounts(self) -> Mapping[str, StakerAccount]:
        return MappingProxyType(self._accounts)

    @property
    def token_address(self) -> str:
        return self.token.address

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
        return check_staking_ledger(self._state, self._accounts)

    def _run(self, action: StakingAction, args: dict[str, Any], *, account_of: Optional[str] = None) -> StepResult:
        account = self._accounts.get(account_of) if account_of else None
        result = step(
            self._state, StakingCommand(action, args), now=self._time(), limits=self._limits, account=account
        )
        if not result.ok:
            logger.debug("Staking %s rejected: %s", action.value, result.error)
            raise error_for_code(result.error or "LedgerError")
        return result

    def _install(self, state: StakingState, owner: Optional[str], account: Optional[StakerAccount]) -> None:
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

    def _pull(self, owner: str, amount: int) -> Callable[[], bool]:
        return lambda: self.token.transfer_from(self.address, owner, self.address, amount)

    def _push(self, to: str, amount: int) -> Callable[[], bool]:
        return lambda: self.token.transfer(self.address, to, amount)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def create_pool(
        self,
        caller: str,
        *,
        min_stake: int,
        max_stake: int,
        start_time: int,
        end_time: int,
        reward_permille: int,
        lock_period: int,
        max_total_staked: int,
    ) -> int:
        """Create a pool, pulling its full reward reserve from `caller`. Returns the pool index."""
        caller = canonical_address(caller, name="caller")
        result = self._run(
            StakingAction.CREATE_POOL,
            {
                "auth_ok": self.ownership.is_administrator(caller),
                "min_stake": min_stake,
                "max_stake": max_stake,
                "start_time": start_time,
                "end_time": end_time,
                "reward_permille": reward_permille,
                "lock_period": lock_period,
                "max_total_staked": max_total_staked,
            },
        )
        fx = result.effects
        self._commit(result, self._pull(caller, fx["pull_amount"]), "reward reserve pull")
        logger.info("Pool %d created (%s), reserved %d", fx["pool_id"], fx["pool_hash"], fx["reward"])
        self._emit(PoolAdded(pool_id=fx["pool_id"], pool_hash=fx["pool_hash"], reward=fx["reward"]))
        return fx["pool_id"]

    def reclaim_rewards(self, caller: str) -> int:
        """Remove every expired pool and send its unused reserve to the administrator."""
        caller = canonical_address(caller, name="caller")
        result = self._run(StakingAction.RECLAIM_EXPIRED, {"auth_ok": self.ownership.is_administrator(caller)})
        fx = result.effects
        self._commit(result, self._push(caller, fx["payout"]), "reclaim payout")
        logger.info("Reclaimed %d from %d expired pools", fx["payout"], fx["pools_removed"])
        self._emit(RewardsReclaimed(amount=fx["payout"], pools_removed=fx["pools_removed"]))
        return fx["payout"]

    def update_c2s_pool(self, caller: str, index: int) -> BridgeTarget:
        """Bind the pool that vesting claims are deposited into."""
        caller = canonical_address(caller, name="caller")
        result = self._run(
            StakingAction.SET_BRIDGE_POOL,
            {"auth_ok": self.ownership.is_administrator(caller), "index": index},
        )
        self._state = result.state
        logger.info("Claim-to-stake pool set to %d (%s)", index, result.effects["pool_hash"])
        return result.state.bridge

    def recover_surplus(self, caller: str, amount: int = 0) -> int:
        """Send tokens held above the accounted totals to the administrator; 0 means all of it."""
        caller = canonical_address(caller, name="caller")
        self.ownership.require_administrator(caller)
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
            raise error_for_code("InvalidArgument", "amount must be a non-negative int")
        accounted = self._state.total_staked_and_reward + self._state.total_free_rewards
        surplus = self.token.balance_of(self.address) - accounted
        if surplus <= 0 or amount > surplus:
            logger.debug("Recover of %d rejected, surplus is %d", amount, max(surplus, 0))
            raise NothingToRecover(f"surplus is {max(surplus, 0)}")
        amount = amount or surplus
        if not self.token.transfer(self.address, caller, amount):
            logger.warning("Token %s refused surplus transfer", self.token.address)
            raise TransferFailed("token refused surplus transfer")
        logger.info("Recovered %d surplus tokens to %s", amount, caller)
        return amount

    # ------------------------------------------------------------------
    # Callers
    # ------------------------------------------------------------------

    def deposit(self, caller: str, pool_id: int, amount: int) -> Position:
        """Stake `amount` principal in pool `pool_id`."""
        caller = canonical_address(caller, name="caller")
        result = self._run(
            StakingAction.DEPOSIT, {"caller": caller, "pool_id": pool_id, "amount": amount}, account_of=caller
        )
        return self._finish_deposit(result, payer=caller)

    def claim2stake(self, sender: str, caller: str, amount: int) -> Position:
        """Deposit `amount` into the bound pool for `caller`, funded by the vesting ledger."""
        sender = canonical_address(sender, name="sender")
        caller = canonical_address(caller, name="caller")
        sender_ok = self.vesting_address != ZERO_ADDRESS and sender == self.vesting_address
        result = self._run(
            StakingAction.CLAIM_TO_STAKE,
            {"sender_ok": sender_ok, "caller": caller, "amount": amount},
            account_of=caller,
        )
        return self._finish_deposit(result, payer=sender)

    def _finish_deposit(self, result: StepResult, *, payer: str) -> Position:
        fx = result.effects
        self._commit(result, self._pull(payer, fx["pull_amount"]), "principal pull", owner=fx["caller"])
        logger.info(
            "Deposit of %d by %s in pool %d, unlocks at %d", fx["amount"], fx["caller"], fx["pool_id"], fx["unlock_time"]
        )
        self._emit(
            Deposit(caller=fx["caller"], pool_id=fx["pool_id"], amount=fx["amount"], unlock_time=fx["unlock_time"])
        )
        return self._accounts[fx["caller"]].positions[-1]

    def claim(self, caller: str) -> int:
        """Withdraw every matured position of `caller`."""
        caller = canonical_address(caller, name="caller")
        result = self._run(StakingAction.CLAIM_ALL, {"caller": caller}, account_of=caller)
        return self._finish_claim(result)

    claim_all = claim

    def claim_stake(self, caller: str, index: int) -> int:
        """Withdraw the single matured position at `index`."""
        caller = canonical_address(caller, name="caller")
        result = self._run(StakingAction.CLAIM_ONE, {"caller": caller, "index": index}, account_of=caller)
        return self._finish_claim(result)

    claim_one = claim_stake

    def _finish_claim(self, result: StepResult) -> int:
        fx = result.effects
        self._commit(result, self._push(fx["caller"], fx["payout"]), "withdraw payout", owner=fx["caller"])
        logger.info("Withdraw of %d by %s (%d positions)", fx["payout"], fx["caller"], fx["positions_claimed"])
        self._emit(Withdraw(caller=fx["caller"], amount=fx["payout"]))
        return fx["payout"]

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def pool_count(self) -> int:
        return len(self._state.pools)

    def pool_info(self, index: int) -> Pool:
        if not isinstance(index, int) or not (0 <= index < len(self._state.pools)):
            raise WrongPoolIndex(f"no pool at index {index}")
        return self._state.pools[index]

    def pools(self) -> tuple[Pool, ...]:
        return self._state.pools

    def rewards_available(self) -> int:
        return self._state.total_free_rewards

    def total_staked_tokens(self) -> int:
        return self._state.total_staked_and_reward

    def user_stakes(self, caller: str) -> tuple[Position, ...]:
        account = self._accounts.get(canonical_address(caller, name="caller"))
        return account.positions if account else ()

    def user_stake_count(self, caller: str) -> int:
        return len(self.user_stakes(caller))

    def claimable(self, caller: str) -> int:
        return matured_total(self.user_stakes(caller), self._time())

    def staked_with_rewards(self, caller: str) -> int:
        return open_total(self.user_stakes(caller))

    def c2s_configured(self) -> bool:
        return self._state.bridge is not None

    def bridge_target(self) -> Optional[BridgeTarget]:
        return self._state.bridge

    def __repr__(self) -> str:
        return f"StakingLedger({self.address}, pools={len(self._state.pools)})"
