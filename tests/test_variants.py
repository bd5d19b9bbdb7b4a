import json
import threading

from pathlib import Path

import pytest

from savings_harness.canonical import MAINNET_FORK
from savings_harness.config import Settings
from savings_harness.errors import ArtifactError, UnknownVariant
from savings_harness.helpmesave import HELPMESAVE_ABI, REAL_BYTECODE
from savings_harness.variants import (
    COMPILED,
    DEFECT,
    FORKED_REFERENCE,
    LITERAL_HISTORICAL,
    NAIVE,
    default_registry,
    load_artifact,
)

ARTIFACT = Path(__file__).resolve().parent / "fixtures" / "HelpMeSave.json"


def test_registry_selects_known_tags(registry):
    assert registry.tags == [COMPILED, LITERAL_HISTORICAL]
    assert registry.select(LITERAL_HISTORICAL).bytecode == REAL_BYTECODE


def test_unknown_tag_is_fatal(registry):
    with pytest.raises(UnknownVariant) as exc:
        registry.select("solc-0.8")
    assert exc.value.tag == "solc-0.8"
    assert COMPILED in str(exc.value)


def test_activation_swaps_and_restores_the_slot(registry):
    assert registry.active_bytecode == "0xdefault"
    with registry.activated(LITERAL_HISTORICAL) as variant:
        assert variant.tag == LITERAL_HISTORICAL
        assert registry.active_bytecode == REAL_BYTECODE
    assert registry.active_bytecode == "0xdefault"


def test_slot_restored_when_the_body_raises(registry):
    with pytest.raises(RuntimeError):
        with registry.activated(COMPILED):
            raise RuntimeError("deploy blew up")
    assert registry.active_bytecode == "0xdefault"


def test_slot_restored_when_nested(registry):
    with registry.activated(COMPILED):
        compiled = registry.active_bytecode
        with registry.activated(LITERAL_HISTORICAL):
            assert registry.active_bytecode == REAL_BYTECODE
        assert registry.active_bytecode == compiled
    assert registry.active_bytecode == "0xdefault"


def test_activation_is_exclusive_across_threads(registry):
    seen = []

    def borrow(tag):
        with registry.activated(tag) as variant:
            seen.append(registry.active_bytecode == variant.bytecode)

    threads = [threading.Thread(target=borrow, args=(tag,)) for tag in [COMPILED, LITERAL_HISTORICAL] * 10]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert all(seen) and len(seen) == 20
    assert registry.active_bytecode == "0xdefault"


def test_variant_withdraw_assignments(registry):
    assert registry.select(COMPILED).withdraw_spec == NAIVE
    assert registry.select(LITERAL_HISTORICAL).withdraw_spec == DEFECT


def test_fixture_artifact_differs_from_the_historical_bytecode():
    abi, bytecode = load_artifact(ARTIFACT)
    assert [e.get("name") for e in abi] == [e.get("name") for e in HELPMESAVE_ABI]
    assert bytecode.startswith("0x")
    assert bytecode != REAL_BYTECODE
    assert len(bytecode) == len(REAL_BYTECODE)


def test_forge_artifact_layout(tmp_path):
    path = tmp_path / "HelpMeSave.json"
    path.write_text(json.dumps({"abi": HELPMESAVE_ABI, "bytecode": {"object": "6060604052"}}))
    abi, bytecode = load_artifact(path)
    assert bytecode == "0x6060604052"


def test_missing_artifact(tmp_path):
    with pytest.raises(ArtifactError):
        load_artifact(tmp_path / "nope.json")


def test_artifact_without_bytecode(tmp_path):
    path = tmp_path / "HelpMeSave.json"
    path.write_text(json.dumps({"abi": HELPMESAVE_ABI, "bytecode": "0x"}))
    with pytest.raises(ArtifactError):
        load_artifact(path)


def test_artifact_with_broken_json(tmp_path):
    path = tmp_path / "HelpMeSave.json"
    path.write_text("{not json")
    with pytest.raises(ArtifactError):
        load_artifact(path)


def test_default_registry_follows_settings():
    assert default_registry(Settings()).tags == [LITERAL_HISTORICAL]

    registry = default_registry(Settings(artifact_path=str(ARTIFACT), fork_url="http://127.0.0.1:8545"))
    assert registry.tags == [COMPILED, LITERAL_HISTORICAL, FORKED_REFERENCE]
    forked = registry.select(FORKED_REFERENCE)
    assert not forked.deployable
    assert forked.attach_address == MAINNET_FORK.deploy_address
