"""Deterministic test accounts seeded into every chain session."""

from dataclasses import dataclass, field
from typing import List, Sequence

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_keys import keys
from eth_utils import decode_hex

from .errors import UnderfundedFixture
from .helpmesave import SAVING_GOAL

SECRET_KEYS = (
    "0x0011223344556677889900112233445566778899001122334455667788990011",
    "0x1122334455667788990011223344556677889900112233445566778899001122",
)

# We are going to reach the saving goal twice
INITIAL_BALANCE = SAVING_GOAL * 3


@dataclass(frozen=True)
class FixtureAccount:
    address: str
    balance: int
    signer: LocalAccount = field(repr=False, compare=False)

    @property
    def canonical_address(self) -> bytes:
        return decode_hex(self.address)

    @property
    def private_key(self) -> str:
        return self.signer.key.to_0x_hex()


def derive_address(secret_key: str) -> str:
    return keys.PrivateKey(decode_hex(secret_key)).public_key.to_checksum_address()


def derive_accounts(secret_keys: Sequence[str] = SECRET_KEYS, balance: int = INITIAL_BALANCE) -> List[FixtureAccount]:
    if not isinstance(balance, int) or isinstance(balance, bool):
        raise TypeError(f"balance must be an int amount of wei, got {type(balance).__name__}")
    if balance <= SAVING_GOAL * 2:
        raise UnderfundedFixture(f"starting balance {balance} wei cannot reach the saving goal twice")
    accounts = []
    for key in secret_keys:
        signer = Account.from_key(key)
        address = derive_address(key)
        accounts.append(FixtureAccount(address=address, balance=balance, signer=signer))
    return accounts
