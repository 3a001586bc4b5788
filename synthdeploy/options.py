from pathlib import Path

import click

config_option = click.option(
    "--config",
    "-c",
    "config_filepath",
    help="Deployment configuration YAML file",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=True,
)

autosign_option = click.option(
    "--autosign",
    help="Sign transactions without prompting",
    is_flag=True,
    default=False,
)

verify_option = click.option(
    "--verify/--no-verify",
    help="Override the verify_contracts setting of the configuration",
    default=None,
)

registry_filepath_option = click.option(
    "--registry-filepath",
    "-f",
    help="Registry of a previous deployment",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=True,
)

contract_option = click.option(
    "--contract",
    "-i",
    "identifiers",
    help="Identifier of a contract to verify, e.g. 'Proxy.sUSD'; all contracts if omitted",
    type=click.STRING,
    multiple=True,
)
