"""
Ephemeral chain sessions.

  LocalChainSession   eth-tester / py-evm chain whose genesis seeds the
                      fixture accounts; one block is mined per transaction.
  ForkedChainSession  a fresh anvil process forking the remote node at the
                      pinned block, fixture balances set with anvil_setBalance.

A session belongs to exactly one scenario run and is never shared.
"""

import socket
import subprocess
import threading
import time

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional, Sequence

import requests

from eth_tester import EthereumTester, PyEVMBackend
from hexbytes import HexBytes
from web3 import Web3
from web3 import exceptions as w3_ex
from web3.providers.eth_tester import EthereumTesterProvider

from . import config
from .accounts import FixtureAccount
from .canonical import ChainFork, MAINNET_FORK
from .errors import AnvilExited, ForkUnreachable
from .utils import log

# anvil starts are serialized so parallel sessions never pick the same port
_ANVIL_START_LOCK = threading.Lock()
ANVIL_PORT_ATTEMPTS = 3


@dataclass(frozen=True)
class Receipt:
    tx_hash: str
    block_number: int
    gas_used: int
    gas_price: int
    gas_limit: int
    success: bool
    contract_address: Optional[str] = None

    @property
    def gas_cost(self) -> int:
        return self.gas_used * self.gas_price

    @property
    def exhausted_gas(self) -> bool:
        return self.gas_used == self.gas_limit


@dataclass(frozen=True)
class LocalChainConfig:
    accounts: Sequence[FixtureAccount]


@dataclass(frozen=True)
class ForkedChainConfig:
    accounts: Sequence[FixtureAccount]
    fork_url: str
    fork: ChainFork = MAINNET_FORK
    anvil_bin: str = config.ANVIL_BIN
    start_timeout: int = config.FORK_START_TIMEOUT
    rpc_timeout: int = config.RPC_TIMEOUT


class ChainSession:
    mode = None

    def __init__(self, accounts: Sequence[FixtureAccount], receipt_timeout: int = config.RECEIPT_TIMEOUT):
        self.accounts = list(accounts)
        self.receipt_timeout = receipt_timeout
        self.w3: Optional[Web3] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def close(self):
        pass

    @contextmanager
    def io_guard(self, what: str):
        yield

    def balance_of(self, address: str) -> int:
        with self.io_guard(f"balance of {address}"):
            return self.w3.eth.get_balance(Web3.to_checksum_address(address))

    def code_at(self, address: str) -> HexBytes:
        with self.io_guard(f"code at {address}"):
            return HexBytes(self.w3.eth.get_code(Web3.to_checksum_address(address)))

    def transaction_by_hash(self, tx_hash) -> dict:
        with self.io_guard(f"transaction {tx_hash}"):
            tx = self.w3.eth.get_transaction(tx_hash)
        return {"blockNumber": tx["blockNumber"], "input": HexBytes(tx["input"]), "to": tx.get("to")}

    def send_raw(self, raw) -> HexBytes:
        with self.io_guard("raw transaction submission"):
            return self.w3.eth.send_raw_transaction(raw)

    def wait_for_receipt(self, tx_hash) -> Receipt:
        with self.io_guard(f"receipt of {HexBytes(tx_hash).to_0x_hex()}"):
            self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.receipt_timeout, poll_latency=config.RECEIPT_POLL_LATENCY
            )
        return self.receipt_of(tx_hash)

    def receipt_of(self, tx_hash) -> Receipt:
        with self.io_guard(f"receipt of {HexBytes(tx_hash).to_0x_hex()}"):
            rec = self.w3.eth.get_transaction_receipt(tx_hash)
            tx = self.w3.eth.get_transaction(tx_hash)
        # older nodes only report the price on the transaction itself
        gas_price = rec.get("effectiveGasPrice")
        if gas_price is None:
            gas_price = tx["gasPrice"]
        return Receipt(
            tx_hash=HexBytes(rec["transactionHash"]).to_0x_hex(),
            block_number=rec["blockNumber"],
            gas_used=int(rec["gasUsed"]),
            gas_price=int(gas_price),
            gas_limit=int(tx["gas"]),
            success=rec["status"] == 1,
            contract_address=rec.get("contractAddress"),
        )


class LocalChainSession(ChainSession):
    mode = "local"

    def __init__(self, chain_config: LocalChainConfig, receipt_timeout: int = config.RECEIPT_TIMEOUT):
        super().__init__(chain_config.accounts, receipt_timeout)
        genesis_state = {
            acct.canonical_address: {"balance": acct.balance, "nonce": 0, "code": b"", "storage": {}}
            for acct in self.accounts
        }
        self.tester = EthereumTester(backend=PyEVMBackend(genesis_state=genesis_state))
        self.w3 = Web3(EthereumTesterProvider(self.tester))
        # the tester's built-in accounts are not in this genesis and hold nothing
        self.w3.eth.default_account = self.accounts[0].address


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def remote_web3(url: str, timeout: int = config.RPC_TIMEOUT) -> Web3:
    """Connected provider for the remote node, or ForkUnreachable."""
    w3 = Web3(Web3.HTTPProvider(url, request_kwargs={"timeout": timeout}))
    if not w3.is_connected():
        raise ForkUnreachable(f"remote node {url} is not reachable")
    return w3


class ForkedChainSession(ChainSession):
    mode = "forked"

    def __init__(self, chain_config: ForkedChainConfig, receipt_timeout: int = config.RECEIPT_TIMEOUT):
        super().__init__(chain_config.accounts, receipt_timeout)
        self.chain_config = chain_config
        self.process = None
        self.port = None
        remote_web3(chain_config.fork_url, chain_config.rpc_timeout)

        try:
            with _ANVIL_START_LOCK:
                self._launch()
            self._seed_balances()
        except BaseException:
            self.close()
            raise
        log(f"Forked {chain_config.fork_url} at block {chain_config.fork.block_number} on port {self.port}")

    def _launch(self):
        """Start anvil on a free port; another process may take the port first, so retry on that."""
        for attempt in range(1, ANVIL_PORT_ATTEMPTS + 1):
            self.port = _free_port()
            cmd = [
                self.chain_config.anvil_bin,
                "--fork-url", self.chain_config.fork_url,
                "--fork-block-number", str(self.chain_config.fork.block_number),
                "--port", str(self.port),
                "--silent",
            ]
            try:
                self.process = subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE, text=True)
            except FileNotFoundError:
                raise ForkUnreachable(f"anvil executable {self.chain_config.anvil_bin!r} not found")
            self.w3 = Web3(Web3.HTTPProvider(
                f"http://127.0.0.1:{self.port}", request_kwargs={"timeout": self.chain_config.rpc_timeout}
            ))
            try:
                self._wait_until_ready()
                return
            except AnvilExited as e:
                self.close()
                if not e.port_in_use or attempt == ANVIL_PORT_ATTEMPTS:
                    raise
                log(f"[WARN] port {self.port} taken before anvil bound it, retrying ({attempt}/{ANVIL_PORT_ATTEMPTS})")

    def _wait_until_ready(self):
        deadline = time.time() + self.chain_config.start_timeout
        while True:
            code = self.process.poll()
            if code is not None:
                stderr = self.process.stderr.read() if self.process.stderr else ""
                raise AnvilExited(code, stderr)
            if self.w3.is_connected():
                return
            if time.time() > deadline:
                raise ForkUnreachable(f"anvil fork not ready after {self.chain_config.start_timeout}s")
            time.sleep(0.25)

    def _seed_balances(self):
        for acct in self.accounts:
            with self.io_guard(f"seeding {acct.address}"):
                res = self.w3.provider.make_request("anvil_setBalance", [acct.address, hex(acct.balance)])
            if res.get("error"):
                raise ForkUnreachable(f"anvil_setBalance failed for {acct.address}: {res['error']}")

    @contextmanager
    def io_guard(self, what: str):
        try:
            yield
        except (requests.exceptions.RequestException, w3_ex.TimeExhausted) as e:
            raise ForkUnreachable(f"forked session timed out or lost connection during {what}: {e}") from e

    def close(self):
        if self.process is None:
            return
        if self.process.poll() is None:
            self.process.terminate()
            try:
                self.process.wait(timeout=10)
            except subprocess.TimeoutExpired:
                self.process.kill()
                self.process.wait()
        if self.process.stderr:
            self.process.stderr.close()
        self.process = None


def start_session(chain_config, receipt_timeout: int = config.RECEIPT_TIMEOUT) -> ChainSession:
    if isinstance(chain_config, ForkedChainConfig):
        return ForkedChainSession(chain_config, receipt_timeout)
    if isinstance(chain_config, LocalChainConfig):
        return LocalChainSession(chain_config, receipt_timeout)
    raise TypeError(f"unsupported chain config {type(chain_config).__name__}")
