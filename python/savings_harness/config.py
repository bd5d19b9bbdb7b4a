"""
Harness configuration.

Every setting comes from the environment (a local .env file is loaded
first), see .env.example for the full list.
"""

import os

from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

# -------------------------
# Defaults
# -------------------------
GAS_LIMIT = 3_000_000
PRIORITY_FEE_GWEI = 2
RPC_TIMEOUT = 60  # seconds per HTTP request
RECEIPT_TIMEOUT = 120  # seconds to wait for a receipt
RECEIPT_POLL_LATENCY = 0.1
FORK_START_TIMEOUT = 30  # seconds for anvil to answer
ANVIL_BIN = "anvil"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise SystemExit(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    artifact_path: Optional[str] = None
    fork_url: Optional[str] = None
    anvil_bin: str = ANVIL_BIN
    gas_limit: int = GAS_LIMIT
    priority_fee_gwei: int = PRIORITY_FEE_GWEI
    rpc_timeout: int = RPC_TIMEOUT
    receipt_timeout: int = RECEIPT_TIMEOUT
    fork_start_timeout: int = FORK_START_TIMEOUT
    workers: int = 1
    report_path: Optional[str] = None

    @classmethod
    def from_env(cls):
        return cls(
            artifact_path=os.getenv("HELPMESAVE_ARTIFACT") or None,
            fork_url=os.getenv("FORK_NODE_URL") or None,
            anvil_bin=os.getenv("ANVIL_BIN", ANVIL_BIN),
            gas_limit=_env_int("GAS_LIMIT", GAS_LIMIT),
            priority_fee_gwei=_env_int("PRIORITY_FEE_GWEI", PRIORITY_FEE_GWEI),
            rpc_timeout=_env_int("RPC_TIMEOUT", RPC_TIMEOUT),
            receipt_timeout=_env_int("RECEIPT_TIMEOUT", RECEIPT_TIMEOUT),
            fork_start_timeout=_env_int("FORK_START_TIMEOUT", FORK_START_TIMEOUT),
            workers=_env_int("HARNESS_WORKERS", 1),
            report_path=os.getenv("REPORT_PATH") or None,
        )
