"""
Expected post-conditions, evaluated against observed balances, addresses and
call outcomes.

The withdraw-at-goal behaviour has two competing specifications, kept apart
on purpose:

  naive   what the source leads you to believe: at the goal, the owner
          withdraws everything.
  defect  what the historical bytecode does: the owner's withdraw always
          reverts, burning the whole gas limit, and the savings stay locked
          until the password-gated recovery is used.

A variant may satisfy one of them, never both.
"""

from .driver import Mined, Reverted
from .errors import InvariantViolation, UnexpectedRevert
from .helpmesave import ZERO_ADDRESS
from .reconcile import assert_balance, expected_balance_after, expected_contract_balance
from .variants import DEFECT, NAIVE


def expect_mined(outcome):
    if isinstance(outcome, Reverted):
        raise UnexpectedRevert(outcome.method, outcome)
    return outcome.receipt


def expect_revert(outcome, gas_limit=None):
    """A reverted call still pays for gas; for these throws, all of it."""
    if isinstance(outcome, Mined):
        raise InvariantViolation(f"{outcome.method} was expected to revert but succeeded (tx {outcome.receipt.tx_hash})")
    receipt = outcome.receipt
    if gas_limit is not None and receipt.gas_limit != gas_limit:
        raise InvariantViolation(f"{outcome.method} was sent with gas {receipt.gas_limit}, configured {gas_limit}")
    if not receipt.exhausted_gas:
        raise InvariantViolation(
            f"{outcome.method} reverted after {receipt.gas_used} of {receipt.gas_limit} gas; expected the full limit"
        )
    return receipt


def expect_owner_unset(owner):
    if owner != ZERO_ADDRESS:
        raise InvariantViolation(f"owner should be unset right after deploy, reads {owner}")


def expect_owner_claimed(owner, claimant, goal, expected_goal):
    if owner != claimant:
        raise InvariantViolation(f"owner reads {owner}, expected claimant {claimant}")
    if goal != expected_goal:
        raise InvariantViolation(f"saving goal reads {goal} wei, expected {expected_goal} wei")


def expect_sender_balance(label, observed, before, receipt, value_sent=0, value_received=0):
    return assert_balance(label, observed, expected_balance_after(before, receipt, value_sent, value_received))


def expect_contract_balance(label, observed, before, value_in=0, value_out=0):
    return assert_balance(label, observed, expected_contract_balance(before, value_in, value_out))


class WithdrawSpec:
    name = None

    def check(self, outcome, owner_before, owner_after, contract_before, contract_after, gas_limit):
        raise NotImplementedError


class NaiveWithdraw(WithdrawSpec):
    name = NAIVE

    def check(self, outcome, owner_before, owner_after, contract_before, contract_after, gas_limit):
        receipt = expect_mined(outcome)
        expect_contract_balance("contract after owner withdraw", contract_after, contract_before, value_out=contract_before)
        expect_sender_balance("owner after withdraw", owner_after, owner_before, receipt, value_received=contract_before)


class DefectWithdraw(WithdrawSpec):
    name = DEFECT

    def check(self, outcome, owner_before, owner_after, contract_before, contract_after, gas_limit):
        receipt = expect_revert(outcome, gas_limit)
        expect_contract_balance("contract after reverted withdraw", contract_after, contract_before)
        expect_sender_balance("owner after reverted withdraw", owner_after, owner_before, receipt)


WITHDRAW_SPECS = {
    NAIVE: NaiveWithdraw(),
    DEFECT: DefectWithdraw(),
}


def withdraw_spec(name) -> WithdrawSpec:
    try:
        return WITHDRAW_SPECS[name]
    except KeyError:
        raise ValueError(f"unknown withdraw specification {name!r}")


def check_exclusive(variant_tag, naive_passed: bool, defect_passed: bool):
    if naive_passed and defect_passed:
        raise InvariantViolation(f"{variant_tag}: naive and defect withdraw specifications both passed")
    if not naive_passed and not defect_passed:
        raise InvariantViolation(f"{variant_tag}: neither withdraw specification passed")
