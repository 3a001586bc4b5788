#!/usr/bin/python3

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, network_option
from ape.cli.choices import select_account

from synthdeploy.ape_ledger import ApeLedger
from synthdeploy.compiler import CompilationError
from synthdeploy.config import DeploymentConfig, DeploymentConfigError
from synthdeploy.confirm import _confirm_plan
from synthdeploy.ledger import TransactionFailure
from synthdeploy.linker import UnresolvedLibraryError
from synthdeploy.options import autosign_option, config_option, verify_option
from synthdeploy.pipeline import Pipeline
from synthdeploy.plan import deployment_plan, wiring_plan
from synthdeploy.registry import DeploymentRegistry
from synthdeploy.sources import ImportResolutionError

FATAL_ERRORS = (
    DeploymentConfigError,
    ImportResolutionError,
    CompilationError,
    UnresolvedLibraryError,
    TransactionFailure,
    DeploymentRegistry.DuplicateEntry,
)


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@config_option
@autosign_option
@verify_option
def cli(network, config_filepath, autosign, verify):
    """Build, deploy, wire and verify the synthetic-asset system."""
    try:
        config = DeploymentConfig.from_yaml(config_filepath)
    except DeploymentConfigError as e:
        raise click.ClickException(str(e))

    if verify is not None:
        config = config._replace(settings=config.settings._replace(verify_contracts=verify))

    settings = config.settings
    chain_id = networks.active_provider.chain_id
    if settings.chain_id is not None and settings.chain_id != chain_id:
        raise click.ClickException(
            f"chain_id in config file ({settings.chain_id}) does not match "
            f"chain_id of current network ({chain_id})."
        )

    ledger = ApeLedger(account=select_account(), autosign=autosign)
    print(
        f"Account: {ledger.address}",
        f"Config: {config_filepath}",
        f"Verify: {settings.verify_contracts}",
        f"Network: {networks.active_provider.network.name}",
        f"Chain ID: {chain_id}",
        f"Gas Price: {settings.gas_price} gwei",
        sep="\n",
    )

    try:
        pipeline = Pipeline(config=config, ledger=ledger)
        pipeline.run(
            steps=deployment_plan(settings.synths),
            wiring=wiring_plan(settings.synths),
            chain_id=chain_id,
            confirm=None if autosign else _confirm_plan,
        )
    except FATAL_ERRORS as e:
        raise click.ClickException(str(e))


if __name__ == "__main__":
    cli()
