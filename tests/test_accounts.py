import pytest

from eth_account import Account

from savings_harness.accounts import INITIAL_BALANCE, SECRET_KEYS, derive_accounts, derive_address
from savings_harness.errors import UnderfundedFixture
from savings_harness.helpmesave import SAVING_GOAL


def test_addresses_match_the_signing_keys():
    accounts = derive_accounts()
    assert len(accounts) == 2
    for key, acct in zip(SECRET_KEYS, accounts):
        assert acct.address == Account.from_key(key).address
        assert acct.address == derive_address(key)
        assert acct.private_key == key


def test_accounts_are_distinct_and_funded():
    a, b = derive_accounts()
    assert a.address != b.address
    assert a.balance == b.balance == INITIAL_BALANCE == 3 * SAVING_GOAL


def test_canonical_address_is_twenty_bytes():
    acct = derive_accounts()[0]
    assert len(acct.canonical_address) == 20


def test_private_key_is_not_in_repr():
    acct = derive_accounts()[0]
    assert SECRET_KEYS[0][2:] not in repr(acct)


def test_balance_must_cover_the_goal_twice():
    with pytest.raises(UnderfundedFixture):
        derive_accounts(balance=2 * SAVING_GOAL)
    assert derive_accounts(balance=2 * SAVING_GOAL + 1)[0].balance == 2 * SAVING_GOAL + 1


@pytest.mark.parametrize("balance", [3000.0, True, "3000"])
def test_balance_must_be_integer_wei(balance):
    with pytest.raises(TypeError):
        derive_accounts(balance=balance)
