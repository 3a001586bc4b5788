import json
from collections import OrderedDict, defaultdict
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional

from eth_typing import ABI, ChecksumAddress
from eth_utils import to_checksum_address

from synthdeploy.types import ContractIdentifier, DeployedInstance

ChainId = int

STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class DeploymentRegistry:
    """
    The contracts resolved during a run, keyed by identifier.
    Entries are only ever added, never replaced or removed.
    """

    class DuplicateEntry(Exception):
        """Raised when an identifier is recorded twice"""

    def __init__(self):
        self._instances: Dict[ContractIdentifier, DeployedInstance] = OrderedDict()

    def add(self, instance: DeployedInstance) -> DeployedInstance:
        if instance.identifier in self._instances:
            raise self.DuplicateEntry(f"{instance.identifier} is already in the registry")
        self._instances[instance.identifier] = instance
        return instance

    def get(self, identifier: ContractIdentifier) -> DeployedInstance:
        try:
            return self._instances[identifier]
        except KeyError:
            raise KeyError(f"{identifier} has not been deployed yet")

    def address(self, identifier: ContractIdentifier) -> ChecksumAddress:
        return self.get(identifier).address

    def is_new(self, identifier: ContractIdentifier) -> bool:
        """True if the identifier was deployed (not bound to an existing instance) in this run."""
        instance = self._instances.get(identifier)
        return instance is not None and instance.is_new

    def library_addresses(self, libraries: Iterable[str]) -> Dict[str, ChecksumAddress]:
        """Addresses of the given shared libraries that are already in the registry."""
        addresses = OrderedDict()
        for library in libraries:
            identifier = ContractIdentifier(library)
            if identifier in self._instances:
                addresses[library] = self._instances[identifier].address
        return addresses

    def __iter__(self) -> Iterator[DeployedInstance]:
        return iter(list(self._instances.values()))

    def __len__(self) -> int:
        return len(self._instances)


class RegistryEntry(NamedTuple):
    """Represents a single entry in a written contract registry."""

    chain_id: ChainId
    name: str
    address: ChecksumAddress
    abi: ABI
    tx_hash: Optional[str]
    deployer: Optional[str]


def _get_entries(
    instances: Iterable[DeployedInstance], chain_id: ChainId, deployer: Optional[str]
) -> List[RegistryEntry]:
    entries = list()
    for instance in instances:
        entry = RegistryEntry(
            chain_id=chain_id,
            name=str(instance.identifier),
            address=to_checksum_address(instance.address),
            abi=list(instance.abi),
            tx_hash=instance.tx_hash,
            deployer=deployer if instance.is_new else None,
        )
        entries.append(entry)
    return entries


def read_registry(filepath: Path) -> List[RegistryEntry]:
    with open(filepath, "r") as file:
        data = json.load(file)
    registry_entries = list()
    for chain_id, entries in data.items():
        for contract_name, artifacts in entries.items():
            registry_entry = RegistryEntry(
                chain_id=int(chain_id),
                name=contract_name,
                address=artifacts["address"],
                abi=artifacts["abi"],
                tx_hash=artifacts.get("tx_hash"),
                deployer=artifacts.get("deployer"),
            )
            registry_entries.append(registry_entry)
    return registry_entries


def write_registry(entries: List[RegistryEntry], filepath: Path) -> Path:
    """Writes a contract registry to a file, merging it into an existing one if possible."""
    if not entries:
        print("No entries provided.")
        return filepath

    data = defaultdict(OrderedDict)
    for entry in entries:
        entry_abi = list(entry.abi)
        entry_abi.sort(key=lambda d: (d["type"], d.get("name", "")))

        data[str(entry.chain_id)][entry.name] = {
            "address": entry.address,
            "abi": entry_abi,
            "tx_hash": entry.tx_hash,
            "deployer": entry.deployer,
        }

    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    if filepath.exists():
        print(f"Updating existing registry at {filepath}.")
        with open(filepath, "r") as file:
            existing_data = json.load(file)

        if any(chain_id in existing_data for chain_id in data):
            filepath = filepath.with_suffix(".unmerged.json")
            print(
                "Cannot merge registries with overlapping chain IDs.\n"
                f"Writing to {filepath} to avoid overwriting existing data."
            )
        else:
            existing_data.update(data)
            data = existing_data
    else:
        print(f"Creating new registry at {filepath}.")

    with open(filepath, "w") as file:
        json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)

    return filepath


def registry_from_deployments(
    registry: DeploymentRegistry,
    output_filepath: Path,
    chain_id: ChainId,
    deployer: Optional[str] = None,
) -> Path:
    """Writes every resolved instance of a run to a registry file."""
    entries = _get_entries(instances=registry, chain_id=chain_id, deployer=deployer)
    output_filepath = write_registry(entries=entries, filepath=output_filepath)
    print(f"(i) Registry written to {output_filepath}!")
    return output_filepath
