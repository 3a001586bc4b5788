from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Set

from synthdeploy.registry import DeploymentRegistry
from synthdeploy.types import ContractIdentifier


class ResolutionContext:
    """What a variable may be resolved against: the deployer and the contracts deployed so far."""

    def __init__(self, registry: DeploymentRegistry, deployer_address: str):
        self.registry = registry
        self.deployer_address = deployer_address


# Variables


class Variable(ABC):
    @abstractmethod
    def resolve(self, context: ResolutionContext) -> Any:
        raise NotImplementedError


class DeployerAccount(Variable):
    """The address of the account sending every transaction."""

    def resolve(self, context: ResolutionContext) -> Any:
        return context.deployer_address

    def __repr__(self) -> str:
        return "$deployer"


class ContractAddress(Variable):
    """The address of a contract resolved earlier in the same run."""

    def __init__(self, identifier):
        if isinstance(identifier, str):
            identifier = ContractIdentifier.parse(identifier)
        self.identifier = identifier

    def resolve(self, context: ResolutionContext) -> Any:
        return context.registry.address(self.identifier)

    def __repr__(self) -> str:
        return f"${self.identifier}"

    def __eq__(self, other) -> bool:
        return isinstance(other, ContractAddress) and other.identifier == self.identifier

    def __hash__(self) -> int:
        return hash(self.identifier)


def resolve_param(value: Any, context: ResolutionContext) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [resolve_param(v, context) for v in value]

    if isinstance(value, Variable):
        return value.resolve(context)

    return value  # literally a value


def resolve_params(values: Iterable[Any], context: ResolutionContext) -> List[Any]:
    return [resolve_param(value, context) for value in values]


def referenced_contracts(values: Iterable[Any]) -> Set[ContractIdentifier]:
    """Identifiers of all contracts referenced by the given parameter values."""
    references = set()
    for value in values:
        if isinstance(value, list):
            references.update(referenced_contracts(value))
        elif isinstance(value, ContractAddress):
            references.add(value.identifier)
    return references
