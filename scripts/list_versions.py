#!/usr/bin/python3

import click

from walletdeploy.migration import artifact_store_for
from walletdeploy.options import artifacts_url_option, target_network_option
from walletdeploy.types import MinInt
from walletdeploy.versions import VersionStore


@click.command(name="list-versions")
@target_network_option
@artifacts_url_option
@click.option(
    "--count",
    "-n",
    help="Number of most recent versions to show",
    type=MinInt(1),
    required=False,
)
def cli(target_network, artifacts_url, count):
    """List the published wallet versions of a deployment target, most recent first."""
    store = VersionStore(artifact_store_for(target_network, url=artifacts_url))
    manifests = store.load(count) if count else store.all()
    if not manifests:
        click.secho(f"No published versions for {target_network}", fg="yellow")
        return

    for manifest in manifests:
        click.secho(f"\n{manifest.version} {manifest.fingerprint}", fg="green")
        for index, module in enumerate(manifest.modules, start=1):
            click.secho(f"    {index}. {module.name} {module.address}", fg="cyan")


if __name__ == "__main__":
    cli()
