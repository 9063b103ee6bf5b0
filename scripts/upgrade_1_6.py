#!/usr/bin/python3

from typing import List, Optional

import click
from ape.api import AccountAPI
from ape.cli import ConnectedProviderCommand, account_option, network_option
from ape.contracts import ContractInstance
from ape.utils import ZERO_ADDRESS

from walletdeploy.config import Configurator
from walletdeploy.constants import (
    DEFAULT_TRANSFER_LIMIT,
    KOVAN,
    KOVAN_FORK,
    MODULE_REGISTRY,
    MULTISIG_WALLET,
    PROD,
    STAGING,
    TEST,
)
from walletdeploy.migration import (
    Infrastructure,
    MigrationContext,
    MigrationState,
    UpgradeDefinition,
    build_context,
    run_migration,
    warn_unsupported_target,
)
from walletdeploy.options import (
    artifacts_url_option,
    autosign_option,
    config_option,
    target_network_option,
    verify_option,
)

TARGET_VERSION = "1.6.0"
MODULES_TO_ENABLE = ["ApprovedTransfer", "RecoveryManager", "MakerV2Manager", "TransferManager"]
MODULES_TO_DISABLE = ["UniswapManager"]

BACKWARD_COMPATIBILITY = 1

# MakerV2Manager relies on the MCD deployment of these targets
MAKER_TARGETS = [KOVAN, KOVAN_FORK, STAGING, PROD]
# targets whose current TransferManager holds limits to migrate
PREVIOUS_TRANSFER_MANAGER_TARGETS = [TEST, STAGING, PROD]


def deploy_infrastructure(ctx: MigrationContext, state: MigrationState) -> Infrastructure:
    """Deploys the MakerRegistry and hands it over to the multisig."""
    deployer, config = ctx.deployer, state.config

    scd_mcd_migration = deployer.wrap(
        ctx.container("ScdMcdMigration"), config.defi["maker"]["migration"]
    )
    vat = scd_mcd_migration.vat()
    maker_registry = deployer.deploy(ctx.container("MakerRegistry"), vat)

    weth_join = scd_mcd_migration.wethJoin()
    deployer.transact(
        maker_registry.addCollateral,
        weth_join,
        description=f"Adding join adapter {weth_join} to the MakerRegistry",
    )
    deployer.transact(
        maker_registry.changeOwner,
        config.contracts[MULTISIG_WALLET],
        description="Set the MultiSig as the owner of the MakerRegistry",
    )

    token_price_provider = deployer.wrap(
        ctx.container("TokenPriceProvider"), config.contracts["TokenPriceProvider"]
    )
    return Infrastructure(
        deployed={"MakerRegistry": maker_registry},
        existing={"TokenPriceProvider": token_price_provider},
    )


def deploy_modules(ctx: MigrationContext, state: MigrationState) -> List[ContractInstance]:
    deployer, config = ctx.deployer, state.config
    module_registry = config.contracts[MODULE_REGISTRY]
    guardian_storage = config.modules["GuardianStorage"]

    approved_transfer = deployer.deploy(
        ctx.container("ApprovedTransfer"),
        module_registry,
        guardian_storage,
    )

    recovery_manager = deployer.deploy(
        ctx.container("RecoveryManager"),
        module_registry,
        guardian_storage,
        config.setting("recovery_period"),
        config.setting("lock_period"),
        config.setting("security_period"),
        config.setting("security_window"),
    )

    maker = config.defi["maker"]
    maker_v2_manager = deployer.deploy(
        ctx.container("MakerV2Manager"),
        module_registry,
        guardian_storage,
        maker["migration"],
        maker["pot"],
        maker["jug"],
        state.infrastructure_contract("MakerRegistry").address,
        config.defi["uniswap"]["factory"],
    )

    if ctx.target in PREVIOUS_TRANSFER_MANAGER_TARGETS:
        previous_transfer_manager = config.modules["TransferManager"]
    else:
        previous_transfer_manager = ZERO_ADDRESS
    transfer_manager = deployer.deploy(
        ctx.container("TransferManager"),
        module_registry,
        config.modules["TransferStorage"],
        guardian_storage,
        state.infrastructure_contract("TokenPriceProvider").address,
        config.setting("security_period"),
        config.setting("security_window"),
        int(config.setting("default_limit", DEFAULT_TRANSFER_LIMIT)),
        previous_transfer_manager,
    )

    return [approved_transfer, recovery_manager, maker_v2_manager, transfer_manager]


UPGRADE_1_6 = UpgradeDefinition(
    target_version=TARGET_VERSION,
    modules_to_enable=MODULES_TO_ENABLE,
    modules_to_disable=MODULES_TO_DISABLE,
    deploy_infrastructure=deploy_infrastructure,
    deploy_modules=deploy_modules,
    backward_compatibility=BACKWARD_COMPATIBILITY,
    supported_targets=MAKER_TARGETS,
    unsupported_target_warning="The MakerManagerV2 module is not fully functional",
)


def deploy(
    network: str,
    account: Optional[AccountAPI] = None,
    autosign: bool = False,
    verify: bool = False,
    artifacts_url: Optional[str] = None,
    config_filepath=None,
) -> MigrationState:
    """Upgrades the wallet module set of a deployment target to 1.6.0."""
    warn_unsupported_target(UPGRADE_1_6, network)
    configurator = Configurator(config_filepath) if config_filepath else None
    ctx, config = build_context(
        target=network,
        account=account,
        autosign=autosign,
        verify=verify,
        artifacts_url=artifacts_url,
        configurator=configurator,
    )
    return run_migration(ctx, UPGRADE_1_6, config)


@click.command(cls=ConnectedProviderCommand, name="upgrade-1-6")
@account_option()
@network_option(required=True)
@target_network_option
@autosign_option
@verify_option
@artifacts_url_option
@config_option
def cli(account, network, target_network, autosign, verify, artifacts_url, config_filepath):
    """Upgrade the wallet modules of a deployment target to version 1.6.0."""
    click.echo(f"Connected to {network.name} network.")
    state = deploy(
        network=target_network,
        account=account,
        autosign=autosign,
        verify=verify,
        artifacts_url=artifacts_url,
        config_filepath=config_filepath,
    )
    manifest = state.plan.manifest
    click.secho(
        f"\nVersion {manifest.version} ({manifest.fingerprint}) published "
        f"with {len(state.upgraders)} upgrader(s).",
        fg="green",
    )


if __name__ == "__main__":
    cli()
