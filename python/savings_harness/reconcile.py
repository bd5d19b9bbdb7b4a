"""
Exact balance predictions.

Everything here is integer wei. Floats never enter the arithmetic: a
single-wei rounding error has to surface as a BalanceMismatch.
"""

from decimal import Decimal

from .errors import BalanceMismatch


def _wei(name, amount) -> int:
    if isinstance(amount, bool):
        raise TypeError(f"{name} must be integer wei, got bool")
    if isinstance(amount, int):
        return amount
    if isinstance(amount, Decimal) and amount == amount.to_integral_value():
        return int(amount)
    raise TypeError(f"{name} must be integer wei, got {type(amount).__name__} {amount!r}")


def gas_cost(receipt) -> int:
    return _wei("gasUsed", receipt.gas_used) * _wei("gasPrice", receipt.gas_price)


def expected_balance_after(before, receipt, value_sent=0, value_received=0) -> int:
    """Sender's balance after the transaction: before - gasUsed*gasPrice - value_sent + value_received."""
    return (
        _wei("before", before)
        - gas_cost(receipt)
        - _wei("value_sent", value_sent)
        + _wei("value_received", value_received)
    )


def expected_contract_balance(before, value_in=0, value_out=0) -> int:
    # the contract never pays gas
    return _wei("before", before) + _wei("value_in", value_in) - _wei("value_out", value_out)


def assert_balance(label: str, observed, expected):
    observed = _wei(label, observed)
    expected = _wei(label, expected)
    if observed != expected:
        raise BalanceMismatch(label, expected, observed)
    return observed
