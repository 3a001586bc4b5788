from typing import Any, Callable, Iterable, List, NamedTuple, Optional, Tuple

from synthdeploy.config import DeploymentConfigError
from synthdeploy.deployer import Deployer
from synthdeploy.params import referenced_contracts
from synthdeploy.registry import DeploymentRegistry
from synthdeploy.types import ContractIdentifier


class WiringStep(NamedTuple):
    """
    A single administrative call connecting two contracts, e.g. pointing
    a proxy at its target.

    The call is sent if any of the trigger contracts was freshly deployed in
    this run; by default the triggers are the target plus every contract
    referenced in the arguments. A condition, when given, replaces that rule.
    """

    target: ContractIdentifier
    method: str
    args: Tuple[Any, ...] = ()
    triggers: Optional[Tuple[ContractIdentifier, ...]] = None
    condition: Optional[Callable[[DeploymentRegistry], bool]] = None
    description: Optional[str] = None

    def endpoints(self) -> Tuple[ContractIdentifier, ...]:
        if self.triggers is not None:
            return self.triggers
        references = sorted(referenced_contracts(self.args), key=str)
        return (self.target, *[r for r in references if r != self.target])

    def __str__(self) -> str:
        return self.description or f"Calling {self.method} on {self.target}"


def any_deployed(*identifiers: ContractIdentifier) -> Callable[[DeploymentRegistry], bool]:
    def condition(registry: DeploymentRegistry) -> bool:
        return any(registry.is_new(identifier) for identifier in identifiers)

    return condition


class WiringEngine:
    """Issues the administrative calls needed to connect freshly deployed contracts."""

    def __init__(self, deployer: Deployer):
        self.deployer = deployer

    @property
    def registry(self) -> DeploymentRegistry:
        return self.deployer.registry

    @staticmethod
    def validate(steps: Iterable[WiringStep], identifiers: Iterable[ContractIdentifier]) -> None:
        """Checks that every contract a wiring step touches is part of the deployment plan."""
        known = set(identifiers)
        for step in steps:
            touched = {step.target, *referenced_contracts(step.args), *(step.triggers or ())}
            missing = sorted(str(identifier) for identifier in touched - known)
            if missing:
                raise DeploymentConfigError(
                    f"Wiring step '{step}' references contracts outside the plan: "
                    f"{', '.join(missing)}"
                )

    def should_wire(self, step: WiringStep) -> bool:
        if step.condition is not None:
            return step.condition(self.registry)
        return any_deployed(*step.endpoints())(self.registry)

    def wire(self, step: WiringStep) -> Any:
        print(f"{step}...")
        target = self.registry.get(step.target)
        return self.deployer.transact(target, step.method, *step.args)

    def run(self, steps: Iterable[WiringStep]) -> List[WiringStep]:
        """Sends the required wiring calls in order, each one confirmed before the next."""
        executed = list()
        for step in steps:
            if not self.should_wire(step):
                continue
            self.wire(step)
            executed.append(step)
        print(f"(i) Sent {len(executed)} wiring transaction(s).")
        return executed
