from typing import Any, Dict, Iterable, NamedTuple, Optional, Sequence, Tuple

from synthdeploy.config import ContractsConfig, DeploymentConfigError, Settings
from synthdeploy.ledger import LedgerClient, SendParameters
from synthdeploy.linker import link
from synthdeploy.params import ResolutionContext, referenced_contracts, resolve_params
from synthdeploy.registry import DeploymentRegistry
from synthdeploy.types import (
    Action,
    CompiledArtifact,
    ContractConfiguration,
    ContractIdentifier,
    ContractName,
    DeployedInstance,
)


class DeploymentStep(NamedTuple):
    identifier: ContractIdentifier
    constructor_args: Tuple[Any, ...] = ()


class Deployer:
    """
    Resolves each contract's configuration and either binds to an existing
    instance or deploys a new one, recording the result in the registry.
    """

    def __init__(
        self,
        contracts: ContractsConfig,
        artifacts: Dict[ContractName, CompiledArtifact],
        registry: DeploymentRegistry,
        ledger: LedgerClient,
        settings: Settings,
    ):
        self.contracts = contracts
        self.artifacts = artifacts
        self.registry = registry
        self.ledger = ledger
        self.settings = settings

    @property
    def context(self) -> ResolutionContext:
        return ResolutionContext(registry=self.registry, deployer_address=self.ledger.address)

    def send_parameters(self, contract_deployment: bool = False) -> SendParameters:
        if contract_deployment:
            gas_limit = self.settings.contract_deployment_gas_limit
        else:
            gas_limit = self.settings.method_call_gas_limit
        return SendParameters(
            sender=self.ledger.address,
            gas_limit=gas_limit,
            gas_price=self.settings.gas_price_wei,
        )

    def resolve(self, identifier: ContractIdentifier) -> ContractConfiguration:
        return self.contracts.resolve(identifier)

    def _get_artifact(self, identifier: ContractIdentifier) -> CompiledArtifact:
        try:
            return self.artifacts[identifier.name]
        except KeyError:
            raise DeploymentConfigError(f"Unknown contract: {identifier.name}")

    @staticmethod
    def _check_configuration(configuration: ContractConfiguration) -> None:
        identifier = configuration.identifier
        if configuration.action == Action.USE_EXISTING:
            if not configuration.existing_instance:
                raise DeploymentConfigError(
                    f"Settings for contract: {identifier} specify an existing contract, "
                    "but do not give an address."
                )
        elif configuration.action != Action.DEPLOY:
            raise DeploymentConfigError(
                f"Unknown action for contract {identifier}: {configuration.action}"
            )

    def validate(self, steps: Iterable[DeploymentStep]) -> None:
        """
        Checks the whole plan before anything is sent: every identifier is
        configured and compiled, and only references contracts resolved before it.
        """
        print("Validating deployment plan...")
        resolved = set()
        for step in steps:
            configuration = self.resolve(step.identifier)
            self._check_configuration(configuration)
            self._get_artifact(step.identifier)
            for reference in referenced_contracts(step.constructor_args):
                if reference not in resolved:
                    raise DeploymentConfigError(
                        f"{step.identifier} references {reference} before it is deployed"
                    )
            if step.identifier in resolved:
                raise DeploymentConfigError(f"{step.identifier} appears twice in the plan")
            resolved.add(step.identifier)

    def deploy(
        self, identifier: ContractIdentifier, constructor_args: Optional[Sequence[Any]] = None
    ) -> DeployedInstance:
        print(f" - Deploying {identifier}")

        configuration = self.resolve(identifier)
        artifact = self._get_artifact(identifier)

        # a no-op for bytecode that does not reference any library
        libraries = self.registry.library_addresses(self.settings.libraries)
        bytecode = link(artifact, libraries)

        self._check_configuration(configuration)
        if configuration.action == Action.USE_EXISTING:
            print("   - Using existing instance")
            contract = self.ledger.bind(
                name=artifact.name, abi=artifact.abi, address=configuration.existing_instance
            )
            instance = DeployedInstance(
                identifier=identifier,
                address=configuration.existing_instance,
                abi=artifact.abi,
                bytecode=bytecode,
                is_new=False,
                contract=contract,
            )
        else:
            print("   - Deploying new instance...")
            resolved_args = resolve_params(constructor_args or [], self.context)
            deployment = self.ledger.deploy_contract(
                name=artifact.name,
                abi=artifact.abi,
                bytecode=bytecode,
                constructor_args=resolved_args,
                params=self.send_parameters(contract_deployment=True),
            )
            instance = DeployedInstance(
                identifier=identifier,
                address=deployment.address,
                abi=artifact.abi,
                bytecode=bytecode,
                is_new=True,
                tx_hash=deployment.tx_hash,
                contract=deployment.contract,
            )

        print(f"   - {instance.address}")
        return self.registry.add(instance)

    def deploy_all(self, steps: Iterable[DeploymentStep]) -> DeploymentRegistry:
        for step in steps:
            self.deploy(step.identifier, step.constructor_args)
        return self.registry

    def transact(self, instance: DeployedInstance, method: str, *args) -> Any:
        resolved_args = resolve_params(args, self.context)
        pretty_args = ", ".join(str(arg) for arg in resolved_args)
        target = f"{instance.identifier}[{instance.address[:10]}]"
        print(f"Transacting {target}.{method}({pretty_args})")
        return self.ledger.invoke(
            contract=instance.contract,
            method=method,
            args=resolved_args,
            params=self.send_parameters(),
        )
