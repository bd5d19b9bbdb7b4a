"""Runs against a real archive node through a local anvil fork."""

import os

import pytest

from savings_harness.canonical import MAINNET_FORK, verify_canonical_facts
from savings_harness.chain import ForkedChainConfig, remote_web3, start_session
from savings_harness.config import Settings
from savings_harness.runner import RunState, ScenarioRunner
from savings_harness.variants import FORKED_REFERENCE, VariantRegistry, forked_reference_variant

pytestmark = pytest.mark.network


@pytest.fixture
def fork_settings():
    return Settings.from_env()


def test_remote_history_matches_canonical_facts(fork_settings):
    w3 = remote_web3(fork_settings.fork_url, fork_settings.rpc_timeout)
    facts = verify_canonical_facts(w3)
    assert facts["deploy_address"] == MAINNET_FORK.deploy_address


def test_fork_seeds_fixture_balances(fork_settings, accounts):
    config = ForkedChainConfig(
        accounts=accounts,
        fork_url=fork_settings.fork_url,
        anvil_bin=fork_settings.anvil_bin,
        start_timeout=fork_settings.fork_start_timeout,
    )
    with start_session(config) as session:
        assert session.w3.eth.block_number >= MAINNET_FORK.block_number
        for acct in accounts:
            assert session.balance_of(acct.address) == acct.balance
        assert len(session.code_at(MAINNET_FORK.deploy_address)) > 0
    assert session.process is None


def test_forked_reference_matches_the_defect(fork_settings, accounts):
    registry = VariantRegistry([forked_reference_variant(MAINNET_FORK.deploy_address)])
    report = ScenarioRunner(registry, fork_settings, accounts).run([FORKED_REFERENCE])

    by_name = {r.scenario: r for r in report.results}
    assert by_name["constructor"].status == RunState.SKIPPED
    assert by_name["withdraw-owner-naive"].status == RunState.SKIPPED
    assert by_name["withdraw-owner-defect"].passed, by_name["withdraw-owner-defect"].detail
    assert report.exit_code == 0, [r.detail for r in report.failures]
    assert report.canonical["block_number"] == MAINNET_FORK.block_number


@pytest.mark.skipif(not os.getenv("HELPMESAVE_ARTIFACT"), reason="HELPMESAVE_ARTIFACT not set")
def test_compiled_and_forked_disagree_only_on_withdraw(fork_settings):
    from savings_harness.variants import default_registry

    report = ScenarioRunner(default_registry(fork_settings), fork_settings, cross_check=True).run()
    assert report.exit_code == 0, [r.detail for r in report.failures]
