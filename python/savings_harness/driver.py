"""
Transaction driver: deploy, attach, call, read.

Every transaction is signed locally, sent raw, and waited on before the
driver returns, so calls issued by one scenario are strictly sequential.
A call that reverts on-chain comes back as a Reverted outcome, not as an
exception; the caller decides whether that revert was expected.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Union

from web3 import Web3
from web3.contract import Contract

from . import config
from .accounts import FixtureAccount
from .chain import ChainSession, Receipt
from .errors import DeployError
from .helpmesave import SAVING_GOAL
from .utils import log
from .variants import ContractVariant


@dataclass(frozen=True)
class ContractInstance:
    address: str
    variant: ContractVariant
    contract: Contract
    saving_goal: int = SAVING_GOAL
    deploy_receipt: Optional[Receipt] = None


@dataclass(frozen=True)
class Mined:
    method: str
    receipt: Receipt

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Reverted:
    method: str
    receipt: Receipt

    @property
    def ok(self) -> bool:
        return False


CallOutcome = Union[Mined, Reverted]


def check_gas_limit(gas_limit) -> int:
    # no "unlimited" mode: under-gas failures must stay distinguishable
    if isinstance(gas_limit, bool) or not isinstance(gas_limit, int) or gas_limit <= 0:
        raise ValueError(f"gas limit must be a positive integer, got {gas_limit!r}")
    return gas_limit


class TransactionDriver:
    def __init__(self, session: ChainSession, priority_fee_gwei: int = config.PRIORITY_FEE_GWEI):
        self.session = session
        self.w3: Web3 = session.w3
        self.priority_fee_gwei = priority_fee_gwei

    def fee_params(self) -> dict:
        """EIP-1559 fees when the head block carries a base fee, legacy gasPrice otherwise."""
        with self.session.io_guard("fee lookup"):
            latest = self.w3.eth.get_block("latest")
            base = latest.get("baseFeePerGas")
            if base is None:
                return {"gasPrice": self.w3.eth.gas_price}
        priority = Web3.to_wei(self.priority_fee_gwei, "gwei")
        return {"maxPriorityFeePerGas": priority, "maxFeePerGas": base * 2 + priority}

    def _tx_params(self, sender: FixtureAccount, value: int, gas_limit: int) -> dict:
        with self.session.io_guard(f"nonce of {sender.address}"):
            nonce = self.w3.eth.get_transaction_count(sender.address)
            chain_id = self.w3.eth.chain_id
        params = {
            "from": sender.address,
            "nonce": nonce,
            "chainId": chain_id,
            "gas": check_gas_limit(gas_limit),
            "value": value,
        }
        params.update(self.fee_params())
        return params

    def _sign_and_send(self, sender: FixtureAccount, tx: dict) -> Receipt:
        signed = sender.signer.sign_transaction(tx)
        tx_hash = self.session.send_raw(signed.raw_transaction)
        return self.session.wait_for_receipt(tx_hash)

    def deploy(
        self,
        variant: ContractVariant,
        sender: FixtureAccount,
        gas_limit: int,
        bytecode: Optional[str] = None,
    ) -> ContractInstance:
        """Deploy `bytecode`, or the variant's own when none is given."""
        bytecode = bytecode or variant.bytecode
        if not variant.deployable or not bytecode:
            raise DeployError(f"variant {variant.tag} has no local bytecode to deploy; attach instead")
        factory = self.w3.eth.contract(abi=variant.abi, bytecode=bytecode)
        tx = factory.constructor().build_transaction(self._tx_params(sender, 0, gas_limit))
        receipt = self._sign_and_send(sender, tx)
        if not receipt.success:
            reason = "exhausted its gas" if receipt.exhausted_gas else "reverted"
            raise DeployError(f"{variant.tag} constructor {reason} (tx {receipt.tx_hash})", receipt)
        if not receipt.contract_address:
            raise DeployError(f"{variant.tag} deploy produced no contract address (tx {receipt.tx_hash})", receipt)
        address = Web3.to_checksum_address(receipt.contract_address)
        log(f"Deployed {variant.tag} at {address} in block {receipt.block_number}")
        return ContractInstance(
            address=address,
            variant=variant,
            contract=self.w3.eth.contract(address=address, abi=variant.abi),
            deploy_receipt=receipt,
        )

    def attach(self, variant: ContractVariant, address: Optional[str] = None) -> ContractInstance:
        address = Web3.to_checksum_address(address or variant.attach_address)
        if len(self.session.code_at(address)) == 0:
            raise DeployError(f"no code at {address} for variant {variant.tag}")
        log(f"Attached {variant.tag} at {address}")
        return ContractInstance(address=address, variant=variant, contract=self.w3.eth.contract(address=address, abi=variant.abi))

    def call(
        self,
        instance: ContractInstance,
        method: str,
        args: Sequence = (),
        *,
        sender: FixtureAccount,
        value: int = 0,
        gas_limit: int,
    ) -> CallOutcome:
        fn = getattr(instance.contract.functions, method)(*args)
        tx = fn.build_transaction(self._tx_params(sender, value, gas_limit))
        receipt = self._sign_and_send(sender, tx)
        if receipt.success:
            log(f"[SUCCESS] {method} from {sender.address} on {instance.variant.tag}: {receipt.tx_hash}")
            return Mined(method, receipt)
        log(f"[REVERT]  {method} from {sender.address} on {instance.variant.tag}: {receipt.tx_hash} "
            f"(gasUsed {receipt.gas_used}/{receipt.gas_limit})")
        return Reverted(method, receipt)

    def read(self, instance: ContractInstance, accessor: str, *args, caller: Optional[FixtureAccount] = None):
        # eth_call without a funded sender fails gas validation on eth-tester
        caller = caller or self.session.accounts[0]
        with self.session.io_guard(f"{accessor}() on {instance.address}"):
            return getattr(instance.contract.functions, accessor)(*args).call({"from": caller.address})
