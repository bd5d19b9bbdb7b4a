from pathlib import Path

import pytest

from savings_harness.driver import Mined, Reverted, check_gas_limit
from savings_harness.errors import DeployError
from savings_harness.helpmesave import (
    DEPOSIT,
    GOAL_ACCESSOR,
    OWNER_ACCESSOR,
    OWNERSHIP_CLAIM,
    RECOVERY,
    WRONG_PASSWORD,
    ZERO_ADDRESS,
)
from savings_harness.variants import compiled_variant, forked_reference_variant, literal_historical_variant

ARTIFACT = Path(__file__).resolve().parent / "fixtures" / "HelpMeSave.json"
GAS = 3_000_000


@pytest.fixture
def instance(driver, saver):
    return driver.deploy(literal_historical_variant(), saver, GAS)


def test_deploy_leaves_owner_and_goal_unset(driver, instance):
    assert driver.read(instance, OWNER_ACCESSOR) == ZERO_ADDRESS
    assert driver.read(instance, GOAL_ACCESSOR) == 0
    assert instance.deploy_receipt.success
    assert instance.deploy_receipt.gas_limit == GAS


def test_deployer_pays_exactly_the_gas(session, saver, instance):
    receipt = instance.deploy_receipt
    assert session.balance_of(saver.address) == saver.balance - receipt.gas_used * receipt.gas_price


def test_attach_to_deployed_instance(driver, instance):
    attached = driver.attach(instance.variant, instance.address)
    assert attached.address == instance.address
    assert attached.deploy_receipt is None


def test_attach_without_code_fails(driver):
    with pytest.raises(DeployError):
        driver.attach(forked_reference_variant("0x" + "42" * 20))


def test_forked_reference_cannot_be_deployed(driver, saver):
    with pytest.raises(DeployError):
        driver.deploy(forked_reference_variant("0x" + "42" * 20), saver, GAS)


def test_successful_call_is_mined(driver, saver, session, instance):
    outcome = driver.call(instance, DEPOSIT, sender=saver, value=1000, gas_limit=GAS)
    assert isinstance(outcome, Mined) and outcome.ok
    assert session.balance_of(instance.address) == 1000


def test_revert_is_an_outcome_not_an_exception(driver, saver, instance):
    driver.call(instance, OWNERSHIP_CLAIM, sender=saver, gas_limit=GAS)
    outcome = driver.call(instance, RECOVERY, (WRONG_PASSWORD,), sender=saver, gas_limit=GAS)
    assert isinstance(outcome, Reverted) and not outcome.ok
    assert outcome.receipt.gas_used == GAS
    assert outcome.receipt.exhausted_gas


def test_transaction_lookup_reports_input_and_target(driver, session, saver, instance):
    outcome = driver.call(instance, OWNERSHIP_CLAIM, sender=saver, gas_limit=GAS)
    tx = session.transaction_by_hash(outcome.receipt.tx_hash)
    assert tx["to"] == instance.address
    assert tx["input"][:4].hex() == "22d122a9"
    assert tx["blockNumber"] == outcome.receipt.block_number
    assert session.receipt_of(outcome.receipt.tx_hash) == outcome.receipt


def test_fee_params_carry_a_price(driver):
    fees = driver.fee_params()
    assert "gasPrice" in fees or fees["maxFeePerGas"] >= fees["maxPriorityFeePerGas"]


@pytest.mark.parametrize("bad", [0, -1, None, 1.5, True])
def test_gas_limit_must_be_positive_int(bad):
    with pytest.raises(ValueError):
        check_gas_limit(bad)


def test_call_rejects_bad_gas_before_sending(driver, saver, session, instance):
    nonce = session.w3.eth.get_transaction_count(saver.address)
    with pytest.raises(ValueError):
        driver.call(instance, DEPOSIT, sender=saver, value=1, gas_limit=0)
    assert session.w3.eth.get_transaction_count(saver.address) == nonce


def test_reads_come_from_a_funded_fixture_account(session, driver, other, instance):
    assert session.w3.eth.default_account == session.accounts[0].address
    assert instance.contract.functions.me().call() == ZERO_ADDRESS
    assert driver.read(instance, OWNER_ACCESSOR, caller=other) == ZERO_ADDRESS


def test_deploy_takes_explicit_bytecode(driver, session, saver):
    compiled = compiled_variant(ARTIFACT)
    from_artifact = driver.deploy(compiled, saver, GAS)
    swapped = driver.deploy(literal_historical_variant(), saver, GAS, bytecode=compiled.bytecode)
    assert session.code_at(swapped.address) == session.code_at(from_artifact.address)
    assert session.code_at(swapped.address) != session.code_at(driver.deploy(literal_historical_variant(), saver, GAS).address)
