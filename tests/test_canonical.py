from types import SimpleNamespace

import pytest

from hexbytes import HexBytes

from savings_harness.canonical import (
    MAINNET_FORK,
    encode_recovery_input,
    selector_of,
    verify_canonical_facts,
)
from savings_harness.errors import CanonicalFactMismatch
from savings_harness.helpmesave import REAL_BYTECODE, RECOVERY_PASSWORD


class FakeEth:
    """Answers only the three lookups the canonical check makes."""

    def __init__(self, transactions, receipts):
        self.transactions = transactions
        self.receipts = receipts

    def get_transaction(self, tx_hash):
        return self.transactions[tx_hash]

    def get_transaction_receipt(self, tx_hash):
        return self.receipts[tx_hash]


def fake_w3(**overrides):
    deploy = {"blockNumber": MAINNET_FORK.block_number, "input": HexBytes(REAL_BYTECODE)}
    receipt = {"contractAddress": MAINNET_FORK.deploy_address.lower()}
    recovery = {
        "blockNumber": MAINNET_FORK.block_number + 1000,
        "input": HexBytes("0x2b079b2e" + "98652370388425360742325".rjust(64, "0")),
    }
    deploy.update(overrides.get("deploy", {}))
    receipt.update(overrides.get("receipt", {}))
    recovery.update(overrides.get("recovery", {}))
    eth = FakeEth(
        {MAINNET_FORK.deploy_tx: deploy, MAINNET_FORK.recovery_tx: recovery},
        {MAINNET_FORK.deploy_tx: receipt},
    )
    return SimpleNamespace(eth=eth)


def test_recovery_selector():
    assert selector_of("recovery(uint256)").hex() == "2b079b2e"
    assert selector_of("withdraw()").hex() == "3ccfd60b"


def test_recovery_input_encoding():
    encoded = encode_recovery_input("recovery(uint256)", RECOVERY_PASSWORD)
    assert len(encoded) == 36
    assert encoded[:4] == HexBytes("0x2b079b2e")
    assert int.from_bytes(encoded[4:], "big") == 0x98652370388425360742325


def test_matching_history_passes():
    facts = verify_canonical_facts(fake_w3())
    assert facts["block_number"] == 2719426
    assert facts["deploy_address"] == "0x17683235257f2089E3E4aCC9497f25386a529507"
    assert facts["recovery_input"].startswith("0x2b079b2e")


def test_wrong_block_is_fatal():
    with pytest.raises(CanonicalFactMismatch) as exc:
        verify_canonical_facts(fake_w3(deploy={"blockNumber": 2719427}))
    assert exc.value.fact == "deploy.blockNumber"


def test_altered_creation_input_is_fatal():
    tampered = HexBytes(REAL_BYTECODE[:-2] + "00")
    with pytest.raises(CanonicalFactMismatch) as exc:
        verify_canonical_facts(fake_w3(deploy={"input": tampered}))
    assert exc.value.fact == "deploy.input"


def test_wrong_created_address_is_fatal():
    with pytest.raises(CanonicalFactMismatch) as exc:
        verify_canonical_facts(fake_w3(receipt={"contractAddress": "0x" + "11" * 20}))
    assert exc.value.fact == "deploy.contractAddress"


def test_missing_created_address_is_fatal():
    with pytest.raises(CanonicalFactMismatch):
        verify_canonical_facts(fake_w3(receipt={"contractAddress": None}))


def test_wrong_recovery_password_is_fatal():
    bad = HexBytes("0x2b079b2e" + "00" * 31 + "01")
    with pytest.raises(CanonicalFactMismatch) as exc:
        verify_canonical_facts(fake_w3(recovery={"input": bad}))
    assert exc.value.fact == "recovery.input"
