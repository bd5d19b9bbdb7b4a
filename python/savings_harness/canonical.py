"""
Canonical on-chain facts a forked run must reproduce before any scenario.

Checks, against the remote node:
 - the deployment transaction sits in the pinned block and carries the
   literal creation bytecode
 - its receipt created the contract at the known address
 - the recovery transaction input is recovery(uint256) with the known password

A mismatch means the forked environment cannot be trusted: it raises
CanonicalFactMismatch and the whole forked run is aborted.
"""

from dataclasses import dataclass

from eth_utils import keccak, to_checksum_address
from hexbytes import HexBytes

from .errors import CanonicalFactMismatch
from .helpmesave import REAL_BYTECODE, RECOVERY_PASSWORD
from .utils import log


@dataclass(frozen=True)
class ChainFork:
    block_number: int
    deploy_tx: str
    deploy_input: str
    deploy_address: str
    recovery_tx: str
    recovery_signature: str
    recovery_password: int


# https://etherscan.io/tx/0xcd868f3e799e03c22e52f6f6aa47471685919b817bdc2567917549ed81c75427
# https://etherscan.io/tx/0x3ddfa99be402ee008ca3299bb0d1927e0da50cf99cd0181ac14ea1007f082e9c
MAINNET_FORK = ChainFork(
    block_number=2719426,
    deploy_tx="0xcd868f3e799e03c22e52f6f6aa47471685919b817bdc2567917549ed81c75427",
    deploy_input=REAL_BYTECODE,
    deploy_address="0x17683235257f2089E3E4aCC9497f25386a529507",
    recovery_tx="0x3ddfa99be402ee008ca3299bb0d1927e0da50cf99cd0181ac14ea1007f082e9c",
    recovery_signature="recovery(uint256)",
    recovery_password=RECOVERY_PASSWORD,
)


def selector_of(sig: str) -> bytes:
    return keccak(text=sig)[:4]


def encode_recovery_input(signature: str, password: int) -> HexBytes:
    """4-byte selector followed by the password as one 32-byte word."""
    return HexBytes(selector_of(signature) + password.to_bytes(32, "big"))


def _expect(fact, expected, observed):
    if expected != observed:
        raise CanonicalFactMismatch(fact, expected, observed)


def verify_canonical_facts(w3, fork: ChainFork = MAINNET_FORK):
    """Raise CanonicalFactMismatch unless every recorded fact matches the node's history."""
    deploy = w3.eth.get_transaction(fork.deploy_tx)
    _expect("deploy.blockNumber", fork.block_number, deploy["blockNumber"])
    _expect("deploy.input", HexBytes(fork.deploy_input), HexBytes(deploy["input"]))

    receipt = w3.eth.get_transaction_receipt(fork.deploy_tx)
    created = receipt["contractAddress"]
    _expect(
        "deploy.contractAddress",
        to_checksum_address(fork.deploy_address),
        to_checksum_address(created) if created else None,
    )

    recovery = w3.eth.get_transaction(fork.recovery_tx)
    _expect(
        "recovery.input",
        encode_recovery_input(fork.recovery_signature, fork.recovery_password),
        HexBytes(recovery["input"]),
    )

    log(f"Canonical facts confirmed at block {fork.block_number} for {fork.deploy_address}")
    return {
        "block_number": deploy["blockNumber"],
        "deploy_address": to_checksum_address(created),
        "recovery_input": HexBytes(recovery["input"]).to_0x_hex(),
    }
