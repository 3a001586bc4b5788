import os
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, Iterable, NamedTuple, Optional, Tuple

import yaml
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from web3 import Web3

from synthdeploy.constants import (
    ARTIFACTS_DIR,
    CONTRACT_DEPLOYMENT_GAS_LIMIT,
    CONTRACT_ROOT,
    ETHERSCAN_API_KEY_ENVVAR,
    ETHERSCAN_MAINNET_API_URL,
    ETHERSCAN_TESTNET_API_URL,
    FLATTENED_CONTRACTS_DIR,
    GAS_PRICE_GWEI,
    LIBRARIES,
    LIBRARY_ROOT,
    MAX_POLL_ATTEMPTS,
    METHOD_CALL_GAS_LIMIT,
    OPTIMIZER_RUNS,
    POLL_INTERVAL,
    SKIP_VERIFICATION,
    SYNTHS,
)
from synthdeploy.types import ContractConfiguration, ContractIdentifier

ACTION_KEY = "action"
EXISTING_INSTANCE_KEY = "existing_instance"


class DeploymentConfigError(ValueError):
    pass


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


class Settings(NamedTuple):
    """Global settings of a deployment run."""

    network: str
    chain_id: Optional[int] = None
    contract_deployment_gas_limit: int = CONTRACT_DEPLOYMENT_GAS_LIMIT
    method_call_gas_limit: int = METHOD_CALL_GAS_LIMIT
    gas_price: str = GAS_PRICE_GWEI  # gwei
    save_flattened_contracts: bool = True
    flattened_contracts_dir: Path = FLATTENED_CONTRACTS_DIR
    verify_contracts: bool = True
    library_root: Path = LIBRARY_ROOT
    contract_root: Path = CONTRACT_ROOT
    libraries: Tuple[str, ...] = LIBRARIES
    skip_verification: Tuple[str, ...] = SKIP_VERIFICATION
    synths: Tuple[str, ...] = SYNTHS
    optimizer_runs: int = OPTIMIZER_RUNS
    solc_version: Optional[str] = None
    poll_interval: float = POLL_INTERVAL
    max_poll_attempts: int = MAX_POLL_ATTEMPTS
    explorer_url: Optional[str] = None
    registry_filepath: Optional[Path] = None

    @property
    def gas_price_wei(self) -> int:
        return Web3.to_wei(self.gas_price, "gwei")

    @property
    def etherscan_url(self) -> str:
        if self.explorer_url:
            return self.explorer_url
        if not self.network or self.network == "mainnet":
            return ETHERSCAN_MAINNET_API_URL
        return ETHERSCAN_TESTNET_API_URL.format(network=self.network)


PATH_SETTINGS = ("flattened_contracts_dir", "library_root", "contract_root")
LIST_SETTINGS = ("libraries", "skip_verification")


class ContractsConfig:
    """
    Flat table of contract configurations keyed by identifier.
    Namespaced entries may be written either nested (Proxy: {sUSD: ...})
    or dotted (Proxy.sUSD: ...) in the configuration file.
    """

    def __init__(self, entries: Dict[ContractIdentifier, ContractConfiguration]):
        self.entries = entries

    def __len__(self) -> int:
        return len(self.entries)

    @classmethod
    def from_dict(cls, contracts: Dict[str, Any]) -> "ContractsConfig":
        entries = OrderedDict()
        for key, value in contracts.items():
            try:
                identifier = ContractIdentifier.parse(str(key))
            except ValueError as e:
                raise DeploymentConfigError(str(e))
            if not isinstance(value, dict):
                raise DeploymentConfigError(f"Malformed settings for contract: {identifier}")

            if identifier.namespace is None and _is_namespace_table(value):
                for namespace, namespace_value in value.items():
                    namespaced = ContractIdentifier(name=identifier.name, namespace=str(namespace))
                    cls._add(entries, namespaced, namespace_value)
            else:
                cls._add(entries, identifier, value)
        return cls(entries=entries)

    @staticmethod
    def _add(entries: Dict, identifier: ContractIdentifier, value: Any) -> None:
        if not isinstance(value, dict):
            raise DeploymentConfigError(f"Malformed settings for contract: {identifier}")
        if identifier in entries:
            raise DeploymentConfigError(f"Duplicate settings for contract: {identifier}")
        entries[identifier] = ContractConfiguration(
            identifier=identifier,
            action=value.get(ACTION_KEY),
            existing_instance=_checksum(value.get(EXISTING_INSTANCE_KEY), identifier),
        )

    def resolve(self, identifier: ContractIdentifier) -> ContractConfiguration:
        try:
            return self.entries[identifier]
        except KeyError:
            raise DeploymentConfigError(f"No settings for contract: {identifier}")

    def action(self, identifier: ContractIdentifier) -> str:
        return self.resolve(identifier).action


def _is_namespace_table(value: Dict) -> bool:
    """True if every value of the mapping is itself a contract settings mapping."""
    if ACTION_KEY in value or EXISTING_INSTANCE_KEY in value:
        return False
    return all(isinstance(v, dict) for v in value.values())


def _checksum(address: Optional[str], identifier: ContractIdentifier) -> Optional[ChecksumAddress]:
    if address is None or address == "":
        return None
    if not isinstance(address, str):
        # YAML reads an unquoted 0x... literal as an integer
        raise DeploymentConfigError(
            f"Invalid address {address!r} for contract: {identifier}; "
            f"addresses must be quoted strings in the deployment config"
        )
    try:
        return to_checksum_address(address)
    except ValueError:
        raise DeploymentConfigError(f"Invalid address '{address}' for contract: {identifier}")


def get_registry_filepath(config: Dict) -> Optional[Path]:
    """Returns the filepath of the registry artifact, if configured."""
    artifact_config = config.get("artifacts") or {}
    filename = artifact_config.get("filename")
    if not filename:
        return None
    artifact_dir = Path(artifact_config.get("dir", ARTIFACTS_DIR))
    return artifact_dir / filename


def _settings_from_config(config: Dict) -> Settings:
    deployment = config.get("deployment") or {}
    network = deployment.get("network")
    if not network:
        raise DeploymentConfigError("network is not set in the deployment config.")

    chain_id = deployment.get("chain_id")
    overrides = dict(config.get("settings") or {})
    unknown = set(overrides) - set(Settings._fields)
    if unknown:
        raise DeploymentConfigError(f"Unknown settings: {', '.join(sorted(unknown))}")
    for name in PATH_SETTINGS:
        if name in overrides:
            overrides[name] = Path(overrides[name])
    for name in LIST_SETTINGS:
        if name in overrides:
            overrides[name] = tuple(str(item) for item in overrides[name] or ())

    synths = config.get("synths")
    if synths is not None:
        overrides["synths"] = tuple(str(s) for s in synths)

    return Settings(
        network=network,
        chain_id=int(chain_id) if chain_id is not None else None,
        registry_filepath=get_registry_filepath(config),
        **overrides,
    )


class DeploymentConfig(NamedTuple):
    settings: Settings
    contracts: ContractsConfig

    @classmethod
    def from_dict(cls, config: Dict) -> "DeploymentConfig":
        if not config:
            raise DeploymentConfigError("Deployment config is empty.")
        contracts = config.get("contracts")
        if not contracts:
            raise DeploymentConfigError("Deployment config missing 'contracts' field.")
        return cls(
            settings=_settings_from_config(config),
            contracts=ContractsConfig.from_dict(contracts),
        )

    @classmethod
    def from_yaml(cls, filepath: Path) -> "DeploymentConfig":
        print(f"Loading deployment config {filepath}...")
        return cls.from_dict(_load_yaml(filepath))


def get_etherscan_api_key(settings: Settings) -> Optional[str]:
    """Returns the explorer API key; required only when verification is enabled."""
    api_key = os.environ.get(ETHERSCAN_API_KEY_ENVVAR)
    if settings.verify_contracts and not api_key:
        raise DeploymentConfigError(f"{ETHERSCAN_API_KEY_ENVVAR} is not set.")
    return api_key


def deployment_actions(
    contracts: ContractsConfig, identifiers: Iterable[ContractIdentifier]
) -> Dict[ContractIdentifier, str]:
    return OrderedDict((identifier, contracts.action(identifier)) for identifier in identifiers)
