from pathlib import Path

import click

from walletdeploy.constants import DEPLOYMENT_TARGETS

target_network_option = click.option(
    "--target-network",
    "-t",
    help="Wallet deployment target; selects the configuration and artifact store",
    type=click.Choice(DEPLOYMENT_TARGETS),
    required=True,
)

autosign_option = click.option(
    "--autosign",
    help="Sign transactions without asking for confirmation.",
    is_flag=True,
    default=False,
)

verify_option = click.option(
    "--verify/--no-verify",
    help="Publish the new contracts to the block explorer.",
    default=False,
)

artifacts_url_option = click.option(
    "--artifacts-url",
    help="Base URL of the remote ABI and version store; local artifacts are used otherwise.",
    type=click.STRING,
    required=False,
)

config_option = click.option(
    "--config",
    "config_filepath",
    help="Configuration file overriding the target's default one.",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=False,
)
