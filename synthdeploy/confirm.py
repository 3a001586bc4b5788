from typing import Dict

from synthdeploy.types import Action, ContractIdentifier


def _continue() -> None:
    """Asks the user to continue."""
    answer = input("Continue Y/N? ")
    if answer.lower().strip() == "n":
        print("Aborting deployment!")
        exit(-1)


def _confirm_plan(actions: Dict[ContractIdentifier, str]) -> None:
    """Shows which contracts will be deployed and which bound, then asks to continue."""
    deployments = [identifier for identifier, action in actions.items() if action == Action.DEPLOY]
    print(f"\n{len(deployments)} of {len(actions)} contracts will be deployed:")
    for identifier, action in actions.items():
        print(f"\t{identifier}: {action}")
    _continue()
