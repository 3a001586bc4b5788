from typing import Callable, Dict, Iterable, List, Optional, Sequence

from synthdeploy.compiler import Compiler
from synthdeploy.config import (
    DeploymentConfig,
    DeploymentConfigError,
    deployment_actions,
    get_etherscan_api_key,
)
from synthdeploy.deployer import Deployer, DeploymentStep
from synthdeploy.explorer import EtherscanClient
from synthdeploy.ledger import LedgerClient
from synthdeploy.linker import link
from synthdeploy.registry import DeploymentRegistry, RegistryEntry, registry_from_deployments
from synthdeploy.sources import SourceAggregator, save_flattened
from synthdeploy.types import (
    CompiledArtifact,
    ContractIdentifier,
    ContractName,
    DeployedInstance,
    FlattenedSources,
    VerificationRecord,
)
from synthdeploy.verification import RetryPolicy, VerificationPoller
from synthdeploy.wiring import WiringEngine, WiringStep


def _print_rows(rows: List[Sequence[str]]) -> None:
    if not rows:
        return
    widths = [max(len(str(row[i])) for row in rows) for i in range(len(rows[0]))]
    for row in rows:
        print("  ".join(str(cell).ljust(width) for cell, width in zip(row, widths)).rstrip())


def print_deployment_report(registry: DeploymentRegistry) -> None:
    print("\n\n Successfully deployed all contracts:\n")
    _print_rows([(str(instance.identifier), instance.address) for instance in registry])


def print_verification_report(records: Iterable[VerificationRecord]) -> None:
    print("\nVerification state")
    _print_rows(
        [
            (str(record.identifier), record.address, record.status.label, record.reason or "")
            for record in records
        ]
    )


class Pipeline:
    """
    Builds, deploys, wires and verifies a suite of contracts.
    All state of a run (flattened sources, artifacts, deployed instances) lives here.
    """

    def __init__(
        self,
        config: DeploymentConfig,
        ledger: LedgerClient,
        compiler: Optional[Compiler] = None,
        aggregator: Optional[SourceAggregator] = None,
        explorer: Optional[EtherscanClient] = None,
    ):
        self.settings = config.settings
        self.contracts = config.contracts
        self.ledger = ledger
        self.compiler = compiler or Compiler(
            optimizer_runs=self.settings.optimizer_runs, solc_version=self.settings.solc_version
        )
        self.aggregator = aggregator or SourceAggregator(
            library_root=self.settings.library_root, contract_root=self.settings.contract_root
        )
        if explorer is None and self.settings.verify_contracts:
            explorer = EtherscanClient(
                api_url=self.settings.etherscan_url,
                api_key=get_etherscan_api_key(self.settings),
            )
        self.explorer = explorer

        self.flattened: FlattenedSources = dict()
        self.artifacts: Dict[ContractName, CompiledArtifact] = dict()
        self.registry = DeploymentRegistry()
        self.deployer = Deployer(
            contracts=self.contracts,
            artifacts=self.artifacts,
            registry=self.registry,
            ledger=self.ledger,
            settings=self.settings,
        )
        self.wiring = WiringEngine(deployer=self.deployer)
        self.verifier: Optional[VerificationPoller] = None

    def build(self) -> Dict[ContractName, CompiledArtifact]:
        print("Starting build...")
        self.flattened.update(self.aggregator.flatten_all())
        artifacts, _ = self.compiler.compile(self.flattened)
        self.artifacts.update(artifacts)
        return self.artifacts

    def validate(self, steps: Sequence[DeploymentStep], wiring: Sequence[WiringStep]) -> None:
        self.deployer.validate(steps)
        self.wiring.validate(wiring, [step.identifier for step in steps])

    def deploy(self, steps: Sequence[DeploymentStep]) -> DeploymentRegistry:
        print("Deploying contracts...")
        self.deployer.deploy_all(steps)
        print_deployment_report(self.registry)
        return self.registry

    def wire(self, steps: Sequence[WiringStep]) -> List[WiringStep]:
        print("\nWiring contracts...")
        return self.wiring.run(steps)

    def save_flattened(self) -> None:
        if self.settings.save_flattened_contracts:
            save_flattened(self.flattened, self.settings.flattened_contracts_dir)

    def write_registry(self, chain_id: Optional[int] = None) -> None:
        filepath = self.settings.registry_filepath
        chain_id = chain_id if chain_id is not None else self.settings.chain_id
        if not filepath or chain_id is None or not len(self.registry):
            return
        registry_from_deployments(
            registry=self.registry,
            output_filepath=filepath,
            chain_id=chain_id,
            deployer=self.ledger.address,
        )

    def restore(self, entries: Iterable[RegistryEntry]) -> DeploymentRegistry:
        """Loads the instances of a previous run from its written registry."""
        entries = list(entries)
        libraries = {
            entry.name: entry.address for entry in entries if entry.name in self.settings.libraries
        }
        for entry in entries:
            identifier = ContractIdentifier.parse(entry.name)
            try:
                artifact = self.artifacts[identifier.name]
            except KeyError:
                raise DeploymentConfigError(f"Unknown contract: {identifier.name}")
            self.registry.add(
                DeployedInstance(
                    identifier=identifier,
                    address=entry.address,
                    abi=entry.abi,
                    bytecode=link(artifact, libraries),
                    is_new=False,
                    tx_hash=entry.tx_hash,
                )
            )
        return self.registry

    def create_verifier(self) -> VerificationPoller:
        self.verifier = VerificationPoller(
            explorer=self.explorer,
            registry=self.registry,
            flattened=self.flattened,
            compiler_version=self.compiler.version if self.settings.verify_contracts else "",
            libraries=self.settings.libraries,
            skip=self.settings.skip_verification,
            enabled=self.settings.verify_contracts,
            optimizer_runs=self.settings.optimizer_runs,
            policy=RetryPolicy(
                interval=self.settings.poll_interval,
                max_attempts=self.settings.max_poll_attempts,
            ),
        )
        return self.verifier

    def verify(self) -> List[VerificationRecord]:
        records = self.create_verifier().run()
        print_verification_report(records)
        return records

    def run(
        self,
        steps: Sequence[DeploymentStep],
        wiring: Sequence[WiringStep],
        chain_id: Optional[int] = None,
        confirm: Optional[Callable[[Dict[ContractIdentifier, str]], None]] = None,
    ) -> List[VerificationRecord]:
        """Build, deploy, wire and verify. Any error before verification is fatal."""
        self.build()
        self.validate(steps, wiring)
        if confirm is not None:
            confirm(deployment_actions(self.contracts, [step.identifier for step in steps]))
        self.deploy(steps)
        self.wire(wiring)
        self.write_registry(chain_id=chain_id)
        self.save_flattened()
        return self.verify()
