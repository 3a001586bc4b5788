#!/usr/bin/python3

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, network_option

from synthdeploy.compiler import CompilationError
from synthdeploy.config import DeploymentConfig, DeploymentConfigError
from synthdeploy.linker import UnresolvedLibraryError
from synthdeploy.options import config_option, contract_option, registry_filepath_option
from synthdeploy.pipeline import Pipeline
from synthdeploy.registry import read_registry
from synthdeploy.sources import ImportResolutionError


class _NoLedger:
    """Verification never transacts."""

    address = None


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@config_option
@registry_filepath_option
@contract_option
def cli(network, config_filepath, registry_filepath, identifiers):
    """Verify contracts of a previous deployment using its registry."""
    try:
        config = DeploymentConfig.from_yaml(config_filepath)
        config = config._replace(settings=config.settings._replace(verify_contracts=True))
        pipeline = Pipeline(config=config, ledger=_NoLedger())
        pipeline.build()
    except (DeploymentConfigError, ImportResolutionError, CompilationError) as e:
        raise click.ClickException(str(e))

    chain_id = networks.active_provider.chain_id
    entries = [e for e in read_registry(registry_filepath) if e.chain_id == chain_id]
    if not entries:
        raise click.ClickException(f"No contracts for chain {chain_id} in {registry_filepath}")

    if identifiers:
        known = {entry.name for entry in entries}
        for identifier in identifiers:
            if identifier not in known:
                raise click.ClickException(
                    f"Contract '{identifier}' not found in registry, '{registry_filepath}', "
                    f"for chain {chain_id}"
                )
        libraries = set(config.settings.libraries)
        entries = [e for e in entries if e.name in identifiers or e.name in libraries]

    try:
        pipeline.restore(entries)
    except (DeploymentConfigError, UnresolvedLibraryError) as e:
        raise click.ClickException(str(e))

    pipeline.verify()


if __name__ == "__main__":
    cli()
