"""
The fixed HelpMeSave scenario matrix.

Each scenario script issues its transactions one after another against a
ready instance and returns the checks to evaluate afterwards. Observations
(balances, accessor reads, outcomes) are taken while the script runs; the
checks only compare them. A setup step that fails (say, the deposit that
should bring the contract to its goal reverts) stops the script at once.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from .accounts import FixtureAccount
from .chain import ChainSession
from .driver import ContractInstance, TransactionDriver
from .helpmesave import (
    DEPOSIT,
    GOAL_ACCESSOR,
    OWNER_ACCESSOR,
    OWNERSHIP_CLAIM,
    RECOVERY,
    RECOVERY_PASSWORD,
    SAVING_GOAL,
    WITHDRAW,
    WRONG_PASSWORD,
)
from .invariants import (
    expect_contract_balance,
    expect_mined,
    expect_owner_claimed,
    expect_owner_unset,
    expect_revert,
    expect_sender_balance,
    withdraw_spec,
)
from .variants import DEFECT, NAIVE, ContractVariant

# Deposit used by the deposit and recovery scenarios, in wei
SMALL_DEPOSIT = 1000

# The defect must hold for any gas limit up to the configured one
DEFECT_GAS_SWEEP = (100_000, 1_000_000, 3_000_000)

Check = Tuple[str, Callable[[], object]]


@dataclass
class ScenarioContext:
    session: ChainSession
    driver: TransactionDriver
    instance: ContractInstance
    saver: FixtureAccount
    other: FixtureAccount
    gas_limit: int

    def balance(self, who) -> int:
        address = who.address if hasattr(who, "address") else who
        return self.session.balance_of(address)

    def call(self, method, args=(), *, sender, value=0, gas_limit=None):
        return self.driver.call(
            self.instance, method, args,
            sender=sender, value=value, gas_limit=self.gas_limit if gas_limit is None else gas_limit,
        )

    def read(self, accessor):
        return self.driver.read(self.instance, accessor, caller=self.saver)


@dataclass(frozen=True)
class Scenario:
    name: str
    description: str
    script: Callable[[ScenarioContext], List[Check]] = field(repr=False)
    requires_fresh_deploy: bool = False
    withdraw_spec: Optional[str] = None

    def applies_to(self, variant: ContractVariant, cross_check: bool = False) -> Tuple[bool, Optional[str]]:
        if self.requires_fresh_deploy and not variant.deployable:
            return False, f"{variant.tag} is a pre-existing instance; nothing to construct"
        if self.withdraw_spec and self.withdraw_spec != variant.withdraw_spec and not cross_check:
            return False, f"{variant.tag} is held to the {variant.withdraw_spec} withdraw specification"
        return True, None


def reach_goal_and_claim(ctx: ScenarioContext, amount: int):
    """Deposit `amount` and claim ownership, both as the saver."""
    expect_mined(ctx.call(DEPOSIT, sender=ctx.saver, value=amount))
    expect_mined(ctx.call(OWNERSHIP_CLAIM, sender=ctx.saver))


def constructor_leaves_owner_unset(ctx: ScenarioContext) -> List[Check]:
    owner = ctx.read(OWNER_ACCESSOR)
    deployer_after = ctx.balance(ctx.saver)
    receipt = ctx.instance.deploy_receipt
    return [
        ("owner is the zero address", lambda: expect_owner_unset(owner)),
        ("deployer paid only gas", lambda: expect_sender_balance(
            "deployer after deploy", deployer_after, ctx.saver.balance, receipt)),
    ]


def ownership_claim(ctx: ScenarioContext) -> List[Check]:
    before = ctx.balance(ctx.saver)
    outcome = ctx.call(OWNERSHIP_CLAIM, sender=ctx.saver)
    owner = ctx.read(OWNER_ACCESSOR)
    goal = ctx.read(GOAL_ACCESSOR)
    after = ctx.balance(ctx.saver)
    return [
        ("claim succeeded", lambda: expect_mined(outcome)),
        ("caller owns the wallet with a 1000 ether goal", lambda: expect_owner_claimed(
            owner, ctx.saver.address, goal, SAVING_GOAL)),
        ("claimant paid only gas", lambda: expect_sender_balance(
            "claimant after claim", after, before, outcome.receipt)),
    ]


def deposit(ctx: ScenarioContext) -> List[Check]:
    saver_before = ctx.balance(ctx.saver)
    contract_before = ctx.balance(ctx.instance.address)
    outcome = ctx.call(DEPOSIT, sender=ctx.saver, value=SMALL_DEPOSIT)
    contract_after = ctx.balance(ctx.instance.address)
    saver_after = ctx.balance(ctx.saver)
    return [
        ("deposit succeeded", lambda: expect_mined(outcome)),
        ("contract credited", lambda: expect_contract_balance(
            "contract after deposit", contract_after, contract_before, value_in=SMALL_DEPOSIT)),
        ("saver debited value plus gas", lambda: expect_sender_balance(
            "saver after deposit", saver_after, saver_before, outcome.receipt, value_sent=SMALL_DEPOSIT)),
    ]


def withdraw_by_non_owner(ctx: ScenarioContext) -> List[Check]:
    reach_goal_and_claim(ctx, SAVING_GOAL)
    other_before = ctx.balance(ctx.other)
    contract_before = ctx.balance(ctx.instance.address)
    outcome = ctx.call(WITHDRAW, sender=ctx.other)
    other_after = ctx.balance(ctx.other)
    contract_after = ctx.balance(ctx.instance.address)
    return [
        ("withdraw call mined", lambda: expect_mined(outcome)),
        ("contract keeps the savings", lambda: expect_contract_balance(
            "contract after non-owner withdraw", contract_after, contract_before)),
        # Yes, because you got nothing actually.
        ("non-owner paid only gas", lambda: expect_sender_balance(
            "non-owner after withdraw", other_after, other_before, outcome.receipt)),
    ]


def _withdraw_at_goal(ctx: ScenarioContext, spec_name: str, gas_limits) -> List[Check]:
    spec = withdraw_spec(spec_name)
    reach_goal_and_claim(ctx, SAVING_GOAL)
    checks = []
    for gas_limit in gas_limits:
        owner_before = ctx.balance(ctx.saver)
        contract_before = ctx.balance(ctx.instance.address)
        outcome = ctx.call(WITHDRAW, sender=ctx.saver, gas_limit=gas_limit)
        owner_after = ctx.balance(ctx.saver)
        contract_after = ctx.balance(ctx.instance.address)
        checks.append((
            f"{spec_name} owner withdraw with gas {gas_limit}",
            lambda o=outcome, ob=owner_before, oa=owner_after, cb=contract_before, ca=contract_after, g=gas_limit:
                spec.check(o, ob, oa, cb, ca, g),
        ))
    return checks


def withdraw_by_owner_naive(ctx: ScenarioContext) -> List[Check]:
    return _withdraw_at_goal(ctx, NAIVE, (ctx.gas_limit,))


def withdraw_by_owner_defect(ctx: ScenarioContext) -> List[Check]:
    limits = [g for g in DEFECT_GAS_SWEEP if g < ctx.gas_limit] + [ctx.gas_limit]
    return _withdraw_at_goal(ctx, DEFECT, limits)


def recovery_by_non_owner(ctx: ScenarioContext) -> List[Check]:
    reach_goal_and_claim(ctx, SMALL_DEPOSIT)
    other_before = ctx.balance(ctx.other)
    contract_before = ctx.balance(ctx.instance.address)
    outcome = ctx.call(RECOVERY, (RECOVERY_PASSWORD,), sender=ctx.other)
    other_after = ctx.balance(ctx.other)
    contract_after = ctx.balance(ctx.instance.address)
    return [
        ("recovery call mined", lambda: expect_mined(outcome)),
        ("contract balance unchanged", lambda: expect_contract_balance(
            "contract after non-owner recovery", contract_after, contract_before)),
        ("non-owner paid only gas", lambda: expect_sender_balance(
            "non-owner after recovery", other_after, other_before, outcome.receipt)),
    ]


def recovery_with_wrong_password(ctx: ScenarioContext) -> List[Check]:
    reach_goal_and_claim(ctx, SMALL_DEPOSIT)
    owner_before = ctx.balance(ctx.saver)
    contract_before = ctx.balance(ctx.instance.address)
    outcome = ctx.call(RECOVERY, (WRONG_PASSWORD,), sender=ctx.saver)
    owner_after = ctx.balance(ctx.saver)
    contract_after = ctx.balance(ctx.instance.address)
    return [
        ("recovery reverted using the whole gas limit", lambda: expect_revert(outcome, ctx.gas_limit)),
        ("contract balance unchanged", lambda: expect_contract_balance(
            "contract after failed recovery", contract_after, contract_before)),
        ("owner paid only gas", lambda: expect_sender_balance(
            "owner after failed recovery", owner_after, owner_before, outcome.receipt)),
    ]


def recovery_by_owner(ctx: ScenarioContext) -> List[Check]:
    reach_goal_and_claim(ctx, SMALL_DEPOSIT)
    owner_before = ctx.balance(ctx.saver)
    contract_before = ctx.balance(ctx.instance.address)
    outcome = ctx.call(RECOVERY, (RECOVERY_PASSWORD,), sender=ctx.saver)
    owner_after = ctx.balance(ctx.saver)
    contract_after = ctx.balance(ctx.instance.address)

    # destroyed: a repeat may succeed as a no-op or fail, it never pays out
    again = ctx.call(RECOVERY, (RECOVERY_PASSWORD,), sender=ctx.saver)
    owner_final = ctx.balance(ctx.saver)
    contract_final = ctx.balance(ctx.instance.address)
    return [
        ("recovery succeeded", lambda: expect_mined(outcome)),
        ("contract drained", lambda: expect_contract_balance(
            "contract after recovery", contract_after, contract_before, value_out=contract_before)),
        ("owner collected the balance minus gas", lambda: expect_sender_balance(
            "owner after recovery", owner_after, owner_before, outcome.receipt, value_received=contract_before)),
        ("destroyed wallet stays empty", lambda: expect_contract_balance(
            "contract after repeated recovery", contract_final, 0)),
        ("repeated recovery pays nothing", lambda: expect_sender_balance(
            "owner after repeated recovery", owner_final, owner_after, again.receipt)),
    ]


SCENARIOS = (
    Scenario("constructor", "deploy does not assign an owner",
             constructor_leaves_owner_unset, requires_fresh_deploy=True),
    Scenario("ownership-claim", "MyTestWallet7() makes the caller owner with a 1000 ether goal",
             ownership_claim),
    Scenario("deposit", "deposit() credits the contract", deposit),
    Scenario("withdraw-non-owner", "at the goal, a non-owner withdraw moves nothing",
             withdraw_by_non_owner),
    Scenario("withdraw-owner-naive", "at the goal, the owner withdraws everything",
             withdraw_by_owner_naive, withdraw_spec=NAIVE),
    Scenario("withdraw-owner-defect", "at the goal, the owner withdraw always reverts",
             withdraw_by_owner_defect, withdraw_spec=DEFECT),
    Scenario("recovery-non-owner", "the password alone does not let others destruct",
             recovery_by_non_owner),
    Scenario("recovery-wrong-password", "the owner cannot destruct without the password",
             recovery_with_wrong_password),
    Scenario("recovery-owner", "the owner destructs with the password and collects everything",
             recovery_by_owner),
)


def scenario_named(name: str) -> Scenario:
    for scenario in SCENARIOS:
        if scenario.name == name:
            return scenario
    raise KeyError(name)
