"""Exception types for the staking and vesting ledgers.

Kernels report rejections as ``StepResult.error`` codes; ``step_or_raise()``
and the ledger shells turn a code back into the matching class through
``error_for_code()``. Every class's ``code`` equals its name.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for every named ledger failure."""

    code = "LedgerError"

    def __init_subclass__(cls, **kwargs) -> None:
        super().__init_subclass__(**kwargs)
        cls.code = cls.__name__

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.code
        super().__init__(self.message)


class ValidationError(LedgerError):
    """Caller-correctable input problem."""


class PreconditionError(LedgerError):
    """Nothing to do, or the ledger is not configured for the request."""


class AuthorizationError(LedgerError):
    """Caller lacks the required capability."""


class TransferFailed(LedgerError):
    """The token collaborator refused a pull or push."""


class InvariantViolation(LedgerError):
    """A post-state violates one or more ledger invariants."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(f"invariant violations: {', '.join(violations)}")


# -- input validation --------------------------------------------------------

class WrongPoolIndex(ValidationError):
    pass


class WrongStakeIndex(ValidationError):
    pass


class PoolMinStake(ValidationError):
    pass


class PoolMaxStake(ValidationError):
    pass


class PoolIsFull(ValidationError):
    pass


class PoolNotYetOpen(ValidationError):
    pass


class AlreadyClosed(ValidationError):
    pass


class ZeroAmount(ValidationError):
    pass


class ZeroAddress(ValidationError):
    pass


class TimestampsMisconfigured(ValidationError):
    pass


class StartDateInPast(ValidationError):
    pass


class PoolMisconfigured(ValidationError):
    pass


class StartAmountExceedsTotal(ValidationError):
    pass


class CapacityExceeded(ValidationError):
    pass


class InvalidArgument(ValidationError):
    """Command argument has the wrong type or domain."""


# -- state preconditions -----------------------------------------------------

class NoStakesForCaller(PreconditionError):
    pass


class NoLocksForCaller(PreconditionError):
    pass


class NothingToClaim(PreconditionError):
    pass


class NothingToReclaim(PreconditionError):
    pass


class NothingToRecover(PreconditionError):
    pass


class PoolHashMismatch(PreconditionError):
    pass


class StakeContractNotSet(PreconditionError):
    pass


class BridgePoolNotSet(PreconditionError):
    pass


class ContractAlreadySet(PreconditionError):
    pass


class CounterpartMismatch(PreconditionError):
    pass


# -- authorization -----------------------------------------------------------

class OnlyAdministrator(AuthorizationError):
    pass


class OnlyPendingOwner(AuthorizationError):
    pass


class OnlyVestingContract(AuthorizationError):
    pass


def _collect(base: type[LedgerError]) -> dict[str, type[LedgerError]]:
    out: dict[str, type[LedgerError]] = {}
    for sub in base.__subclasses__():
        out[sub.code] = sub
        out.update(_collect(sub))
    return out


ERRORS_BY_CODE: dict[str, type[LedgerError]] = _collect(LedgerError)


def error_for_code(code: str, message: str | None = None) -> LedgerError:
    """Instantiate the named error for a kernel rejection code."""
    if code.startswith("invariant:"):
        return InvariantViolation(code.removeprefix("invariant:").split(","))
    cls = ERRORS_BY_CODE.get(code)
    if cls is None or cls is InvariantViolation:
        return LedgerError(message or code)
    return cls(message)
