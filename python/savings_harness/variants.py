"""
Contract variants under test and the shared active-bytecode slot.

A variant is one binary rendition of HelpMeSave:
  - compiled            locally compiled artifact, deployable
  - literal-historical  the exact mainnet creation bytecode, deployable
  - forked-reference    no bytecode, attaches to the mainnet instance on a fork
"""

import threading

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .canonical import MAINNET_FORK
from .errors import ArtifactError, UnknownVariant
from .helpmesave import HELPMESAVE_ABI, REAL_BYTECODE
from .utils import load_json, log

COMPILED = "compiled"
LITERAL_HISTORICAL = "literal-historical"
FORKED_REFERENCE = "forked-reference"

# Which withdraw specification a variant is expected to satisfy
NAIVE = "naive"
DEFECT = "defect"


@dataclass(frozen=True)
class ContractVariant:
    tag: str
    abi: list
    bytecode: Optional[str]
    mutable: bool
    withdraw_spec: str
    attach_address: Optional[str] = None

    @property
    def deployable(self) -> bool:
        return self.mutable and self.bytecode is not None


def load_artifact(path):
    """Return (abi, bytecode) from a truffle or forge artifact."""
    full_path = Path(path).expanduser().resolve()
    try:
        data = load_json(full_path)
    except FileNotFoundError:
        raise ArtifactError(f"could not find artifact at {full_path}")
    except ValueError as e:
        raise ArtifactError(f"artifact {full_path} is not valid JSON: {e}")

    abi = data.get("abi") or data.get("output", {}).get("abi")
    if not isinstance(abi, list):
        raise ArtifactError(f"artifact {full_path} has no ABI list")

    # truffle: unlinked_binary / bytecode string, forge: bytecode.object
    bytecode = data.get("unlinked_binary")
    if not bytecode:
        raw = data.get("bytecode")
        bytecode = raw.get("object") if isinstance(raw, dict) else raw
    if not isinstance(bytecode, str) or bytecode in ("", "0x"):
        raise ArtifactError(f"artifact {full_path} has no creation bytecode")
    if not bytecode.startswith("0x"):
        bytecode = "0x" + bytecode
    return abi, bytecode


class BytecodeSlot:
    """
    The one bytecode field a deployer reads by default.

    The slot belongs to whoever created it; borrowers swap it through
    VariantRegistry.activated() and always put the default back.
    """

    def __init__(self, default: Optional[str] = None):
        self.default = default
        self.value = default
        self.lock = threading.RLock()


class VariantRegistry:
    def __init__(self, variants: Iterable[ContractVariant] = (), slot: Optional[BytecodeSlot] = None):
        self._variants: Dict[str, ContractVariant] = {}
        self.slot = slot if slot is not None else BytecodeSlot()
        for variant in variants:
            self.register(variant)

    def register(self, variant: ContractVariant):
        self._variants[variant.tag] = variant

    @property
    def tags(self) -> List[str]:
        return list(self._variants)

    def select(self, tag: str) -> ContractVariant:
        try:
            return self._variants[tag]
        except KeyError:
            raise UnknownVariant(tag, self._variants)

    @property
    def active_bytecode(self) -> Optional[str]:
        return self.slot.value

    @contextmanager
    def activated(self, tag: str):
        """Hold the shared slot with this variant's bytecode, restoring the previous value on exit."""
        variant = self.select(tag)
        with self.slot.lock:
            previous = self.slot.value
            self.slot.value = variant.bytecode
            try:
                yield variant
            finally:
                self.slot.value = previous


def compiled_variant(artifact_path) -> ContractVariant:
    abi, bytecode = load_artifact(artifact_path)
    log(f"Loaded compiled artifact {artifact_path} ({len(abi)} ABI entries)")
    return ContractVariant(tag=COMPILED, abi=abi, bytecode=bytecode, mutable=True, withdraw_spec=NAIVE)


def literal_historical_variant() -> ContractVariant:
    return ContractVariant(
        tag=LITERAL_HISTORICAL,
        abi=HELPMESAVE_ABI,
        bytecode=REAL_BYTECODE,
        mutable=True,
        withdraw_spec=DEFECT,
    )


def forked_reference_variant(address: str) -> ContractVariant:
    return ContractVariant(
        tag=FORKED_REFERENCE,
        abi=HELPMESAVE_ABI,
        bytecode=None,
        mutable=False,
        withdraw_spec=DEFECT,
        attach_address=address,
    )


def default_registry(settings, slot: Optional[BytecodeSlot] = None) -> VariantRegistry:
    """compiled (when an artifact is configured), literal-historical, forked-reference (when a node is configured)."""
    registry = VariantRegistry(slot=slot)
    if settings.artifact_path:
        registry.register(compiled_variant(settings.artifact_path))
    registry.register(literal_historical_variant())
    if settings.fork_url:
        registry.register(forked_reference_variant(MAINNET_FORK.deploy_address))
    return registry
