"""Shared fixtures: fixture accounts, a local chain, and the variant registry."""

import os

from pathlib import Path

import pytest

from savings_harness.accounts import derive_accounts
from savings_harness.chain import LocalChainConfig, start_session
from savings_harness.config import Settings
from savings_harness.driver import TransactionDriver
from savings_harness.variants import (
    BytecodeSlot,
    VariantRegistry,
    compiled_variant,
    literal_historical_variant,
)

FIXTURES = Path(__file__).resolve().parent / "fixtures"
ARTIFACT = FIXTURES / "HelpMeSave.json"


def pytest_collection_modifyitems(config, items):
    if os.getenv("FORK_NODE_URL"):
        return
    skip = pytest.mark.skip(reason="FORK_NODE_URL not set")
    for item in items:
        if "network" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def accounts():
    return derive_accounts()


@pytest.fixture
def saver(accounts):
    return accounts[0]


@pytest.fixture
def other(accounts):
    return accounts[1]


@pytest.fixture
def settings():
    return Settings(artifact_path=str(ARTIFACT))


@pytest.fixture
def registry():
    return VariantRegistry(
        [compiled_variant(ARTIFACT), literal_historical_variant()],
        slot=BytecodeSlot("0xdefault"),
    )


@pytest.fixture
def session(accounts):
    with start_session(LocalChainConfig(accounts=accounts)) as session:
        yield session


@pytest.fixture
def driver(session):
    return TransactionDriver(session)
