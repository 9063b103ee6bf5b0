"""
Upgrade pipeline for the wallet module set.

A run is a fixed sequence of stages. Each stage takes the immutable
MigrationState, performs its remote calls through the collaborators held by a
MigrationContext, and returns the next state. Nothing is retried or rolled
back: the first failing call aborts the run.
"""

import time
from types import MappingProxyType
from typing import Callable, List, Mapping, NamedTuple, Optional, Sequence, Tuple

import click
from ape import networks
from ape.api import AccountAPI
from ape.contracts import ContractContainer, ContractInstance

from walletdeploy.catalog import AbiUploader
from walletdeploy.confirm import _confirm_network_target
from walletdeploy.config import ConfigUpdate, Configurator, WalletConfig
from walletdeploy.constants import (
    ARTIFACTS_DIR,
    CONTRACTS_CATEGORY,
    MODULE_REGISTRY,
    MODULES_CATEGORY,
    MULTISIG_WALLET,
    SIMPLE_UPGRADER,
)
from walletdeploy.multisig import MultisigExecutor
from walletdeploy.params import Deployer
from walletdeploy.storage import ArtifactStore, FilesystemStore, HttpStore
from walletdeploy.upgrade import UpgradeDiff, UpgradePlan, plan_upgrade
from walletdeploy.utils import (
    ascii_to_bytes32,
    get_contract_container,
    git_revision,
    is_local_network,
)
from walletdeploy.versions import ModuleDescriptor, VersionStore


class MigrationContext(NamedTuple):
    """External collaborators a migration talks to."""

    target: str
    deployer: Deployer
    configurator: Configurator
    abi_uploader: AbiUploader
    version_store: VersionStore
    get_container: Callable[[str], ContractContainer] = get_contract_container
    revision: Callable[[], str] = git_revision
    clock: Callable[[], float] = time.time
    multisig_executor: Callable[..., MultisigExecutor] = MultisigExecutor

    def container(self, name: str) -> ContractContainer:
        return self.get_container(name)


class UpgraderDeployment(NamedTuple):
    name: str
    address: str
    diff: UpgradeDiff


class MigrationState(NamedTuple):
    config: WalletConfig
    module_registry: Optional[ContractInstance] = None
    multisig: Optional[MultisigExecutor] = None
    infrastructure: Tuple[Tuple[str, ContractInstance], ...] = ()
    existing: Tuple[Tuple[str, ContractInstance], ...] = ()
    modules: Tuple[ContractInstance, ...] = ()
    config_update: ConfigUpdate = ConfigUpdate()
    plan: Optional[UpgradePlan] = None
    upgraders: Tuple[UpgraderDeployment, ...] = ()

    def infrastructure_contract(self, name: str) -> ContractInstance:
        """A contract deployed by this run, or an existing one it wrapped."""
        return dict(self.existing + self.infrastructure)[name]

    @property
    def module_descriptors(self) -> Tuple[ModuleDescriptor, ...]:
        return tuple(
            ModuleDescriptor(name=m.contract_type.name, address=m.address) for m in self.modules
        )


class Infrastructure(NamedTuple):
    """Contracts deployed by the infrastructure phase and the existing ones it wraps."""

    deployed: Mapping[str, ContractInstance]
    existing: Mapping[str, ContractInstance] = MappingProxyType({})


InfrastructureHook = Callable[[MigrationContext, MigrationState], Infrastructure]
ModulesHook = Callable[[MigrationContext, MigrationState], Sequence[ContractInstance]]


class UpgradeDefinition(NamedTuple):
    """What a given release enables, disables and deploys."""

    target_version: str
    modules_to_enable: Sequence[str]
    modules_to_disable: Sequence[str]
    deploy_infrastructure: InfrastructureHook
    deploy_modules: ModulesHook
    backward_compatibility: int = 1
    supported_targets: Sequence[str] = ()
    unsupported_target_warning: str = ""


def warn_unsupported_target(definition: UpgradeDefinition, target: str) -> bool:
    """Prints a warning for targets outside the supported list; the run goes on."""
    if not definition.supported_targets or target in definition.supported_targets:
        return False
    message = definition.unsupported_target_warning or (
        f"{definition.target_version} is not supported"
    )
    rule = "-" * 72
    click.secho(rule, fg="yellow", err=True)
    click.secho(f"WARNING: {message} on {target}", fg="yellow", err=True)
    click.secho(rule, fg="yellow", err=True)
    return True


def artifact_store_for(target: str, url: Optional[str] = None) -> ArtifactStore:
    if url:
        return HttpStore(url)
    return FilesystemStore(ARTIFACTS_DIR / target)


#
# Stages
#


def setup(ctx: MigrationContext, state: MigrationState) -> MigrationState:
    """Wraps the module registry and the multisig wallet the upgrade goes through."""
    config = state.config
    module_registry = ctx.deployer.wrap(
        ctx.container(MODULE_REGISTRY), config.contracts[MODULE_REGISTRY]
    )
    multisig_wallet = ctx.deployer.wrap(
        ctx.container(MULTISIG_WALLET), config.contracts[MULTISIG_WALLET]
    )
    multisig = ctx.multisig_executor(
        multisig=multisig_wallet,
        transactor=ctx.deployer,
        autosign=bool(config.multisig.get("autosign", False)),
    )
    return state._replace(module_registry=module_registry, multisig=multisig)


def deploy_infrastructure(
    ctx: MigrationContext, state: MigrationState, definition: UpgradeDefinition
) -> MigrationState:
    click.secho("\nDeploying infrastructure contracts", fg="green")
    result = definition.deploy_infrastructure(ctx, state)
    infrastructure = tuple(result.deployed.items())
    update = state.config_update.merge(
        ConfigUpdate(infrastructure={name: c.address for name, c in infrastructure})
    )
    return state._replace(
        infrastructure=infrastructure,
        existing=tuple(result.existing.items()),
        config_update=update,
    )


def deploy_modules(
    ctx: MigrationContext, state: MigrationState, definition: UpgradeDefinition
) -> MigrationState:
    click.secho("\nDeploying modules", fg="green")
    modules = tuple(definition.deploy_modules(ctx, state))
    update = state.config_update.merge(
        ConfigUpdate(modules={m.contract_type.name: m.address for m in modules})
    )
    return state._replace(modules=modules, config_update=update)


def publish_abis(ctx: MigrationContext, state: MigrationState) -> MigrationState:
    """Stamps the revision into the pending config update and uploads every new ABI."""
    click.secho("\nUploading ABIs", fg="green")
    update = state.config_update.merge(ConfigUpdate(git_commit=ctx.revision()))
    uploads = [(module, MODULES_CATEGORY) for module in state.modules]
    uploads.extend((contract, CONTRACTS_CATEGORY) for _, contract in state.infrastructure)
    ctx.abi_uploader.upload_all(uploads)
    return state._replace(config_update=update)


def register_modules(ctx: MigrationContext, state: MigrationState) -> MigrationState:
    click.secho("\nRegistering modules", fg="green")
    for module in state.modules:
        state.multisig.execute_call(
            state.module_registry,
            "registerModule",
            [module.address, ascii_to_bytes32(module.contract_type.name)],
        )
    return state


def plan_upgraders(
    ctx: MigrationContext, state: MigrationState, definition: UpgradeDefinition
) -> MigrationState:
    versions = ctx.version_store.load(definition.backward_compatibility)
    plan = plan_upgrade(
        versions=versions,
        new_modules=state.module_descriptors,
        modules_to_enable=definition.modules_to_enable,
        modules_to_disable=definition.modules_to_disable,
        target_version=definition.target_version,
        created_at=int(ctx.clock()),
    )
    click.echo(
        f"\nNew version {plan.manifest.version} ({plan.manifest.fingerprint}) "
        f"with {len(plan.manifest.modules)} modules, upgradable from "
        f"{', '.join(d.source.version for d in plan.diffs) or 'no previous version'}"
    )
    return state._replace(plan=plan)


def deploy_upgraders(ctx: MigrationContext, state: MigrationState) -> MigrationState:
    click.secho("\nDeploying upgraders", fg="green")
    upgrader_container = ctx.container(SIMPLE_UPGRADER)
    upgraders: List[UpgraderDeployment] = list()
    for diff in state.plan.diffs:
        name = diff.upgrader_name
        click.echo(
            f"Upgrader {name}: {diff.source.version} -> {state.plan.manifest.version}, "
            f"removing {len(diff.to_remove)} and adding {len(diff.to_add)} modules"
        )
        upgrader = ctx.deployer.deploy(
            upgrader_container,
            state.module_registry.address,
            diff.addresses_to_remove,
            diff.addresses_to_add,
        )
        encoded_name = ascii_to_bytes32(name)
        state.multisig.execute_call(
            state.module_registry, "registerModule", [upgrader.address, encoded_name]
        )
        state.multisig.execute_call(
            state.module_registry, "registerUpgrader", [upgrader.address, encoded_name]
        )
        upgraders.append(UpgraderDeployment(name=name, address=upgrader.address, diff=diff))
    return state._replace(upgraders=tuple(upgraders))


def publish_version(ctx: MigrationContext, state: MigrationState) -> MigrationState:
    ctx.version_store.upload(state.plan.manifest)
    return state


def save_config(ctx: MigrationContext, state: MigrationState) -> MigrationState:
    """Applies the accumulated update to the snapshot in one step and persists it."""
    config = state.config.apply(state.config_update)
    ctx.configurator.save(config)
    return state._replace(config=config)


def run_migration(
    ctx: MigrationContext, definition: UpgradeDefinition, config: WalletConfig
) -> MigrationState:
    state = MigrationState(config=config)
    state = setup(ctx, state)
    state = deploy_infrastructure(ctx, state, definition)
    state = deploy_modules(ctx, state, definition)
    state = publish_abis(ctx, state)
    state = register_modules(ctx, state)
    state = plan_upgraders(ctx, state, definition)
    state = deploy_upgraders(ctx, state)
    state = publish_version(ctx, state)
    state = save_config(ctx, state)

    ctx.deployer.finalize(
        deployments=[c for _, c in state.infrastructure] + list(state.modules)
    )
    return state


def build_context(
    target: str,
    account: Optional[AccountAPI] = None,
    autosign: bool = False,
    verify: bool = False,
    artifacts_url: Optional[str] = None,
    configurator: Optional[Configurator] = None,
) -> Tuple[MigrationContext, WalletConfig]:
    """Wires the ape-backed collaborators for a deployment target."""
    configurator = configurator or Configurator.for_target(target)
    config = configurator.load()
    chain_id = networks.provider.network.chain_id
    configurator.check_chain_id(config, chain_id, live=not is_local_network())
    deployer = Deployer(
        account=account,
        autosign=autosign,
        gas_price=config.deployment.get("gas_price"),
        verify=verify,
    )
    if not autosign:
        _confirm_network_target(target, chain_id)
    store = artifact_store_for(target, url=artifacts_url)
    ctx = MigrationContext(
        target=target,
        deployer=deployer,
        configurator=configurator,
        abi_uploader=AbiUploader(store),
        version_store=VersionStore(store),
    )
    return ctx, config

