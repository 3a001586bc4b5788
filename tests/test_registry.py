import json

import pytest

from synthdeploy.registry import (
    DeploymentRegistry,
    RegistryEntry,
    read_registry,
    registry_from_deployments,
    write_registry,
)
from synthdeploy.types import ContractIdentifier, DeployedInstance
from tests.conftest import DEPLOYER_ADDRESS, address

ABI = [
    {"type": "function", "name": "setTarget", "inputs": [], "outputs": []},
    {"type": "constructor", "inputs": []},
]


def instance(identifier, n, is_new=True):
    return DeployedInstance(
        identifier=ContractIdentifier.parse(identifier),
        address=address(n),
        abi=ABI,
        bytecode="6080",
        is_new=is_new,
        tx_hash=f"0x{n:064x}" if is_new else None,
    )


def test_registry_is_append_only(registry):
    registry.add(instance("Proxy.sUSD", 1))
    with pytest.raises(DeploymentRegistry.DuplicateEntry):
        registry.add(instance("Proxy.sUSD", 2))
    assert registry.address(ContractIdentifier("Proxy", "sUSD")) == address(1)


def test_registry_lookup(registry):
    registry.add(instance("SafeDecimalMath", 1))
    registry.add(instance("Depot", 2, is_new=False))

    assert registry.is_new(ContractIdentifier("SafeDecimalMath"))
    assert not registry.is_new(ContractIdentifier("Depot"))
    assert not registry.is_new(ContractIdentifier("Synthetix"))
    assert registry.library_addresses(["SafeDecimalMath", "Other"]) == {"SafeDecimalMath": address(1)}
    assert [i.identifier for i in registry] == [
        ContractIdentifier("SafeDecimalMath"),
        ContractIdentifier("Depot"),
    ]

    with pytest.raises(KeyError, match="has not been deployed yet"):
        registry.get(ContractIdentifier("Synthetix"))


def test_write_and_read_registry(tmp_path, registry):
    registry.add(instance("SafeDecimalMath", 1))
    registry.add(instance("Proxy.sUSD", 2, is_new=False))
    filepath = tmp_path / "registry.json"

    output = registry_from_deployments(registry, filepath, chain_id=3, deployer=DEPLOYER_ADDRESS)
    assert output == filepath

    data = json.loads(filepath.read_text())
    assert list(data["3"]) == ["SafeDecimalMath", "Proxy.sUSD"]
    assert [item["type"] for item in data["3"]["SafeDecimalMath"]["abi"]] == [
        "constructor",
        "function",
    ]

    entries = read_registry(filepath)
    assert entries[0] == RegistryEntry(
        chain_id=3,
        name="SafeDecimalMath",
        address=address(1),
        abi=data["3"]["SafeDecimalMath"]["abi"],
        tx_hash=f"0x{1:064x}",
        deployer=DEPLOYER_ADDRESS,
    )
    assert entries[1].deployer is None
    assert entries[1].tx_hash is None


def test_write_registry_does_not_overwrite_chain(tmp_path):
    filepath = tmp_path / "registry.json"
    entry = RegistryEntry(
        chain_id=3, name="Depot", address=address(1), abi=[], tx_hash=None, deployer=None
    )
    write_registry([entry], filepath)
    assert write_registry([entry._replace(chain_id=1)], filepath) == filepath
    assert set(json.loads(filepath.read_text())) == {"1", "3"}

    unmerged = write_registry([entry._replace(address=address(2))], filepath)
    assert unmerged == tmp_path / "registry.unmerged.json"
    assert json.loads(filepath.read_text())["3"]["Depot"]["address"] == address(1)
