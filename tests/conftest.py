import pytest
import yaml
from eth_utils import to_checksum_address
from ethpm_types import ContractType

from walletdeploy.catalog import AbiUploader
from walletdeploy.config import Configurator
from walletdeploy.migration import MigrationContext
from walletdeploy.storage import FilesystemStore
from walletdeploy.versions import ModuleDescriptor, VersionManifest, VersionStore

GIT_COMMIT = "4c1d3f0e6c27b2b0cbd1ad1b6cbe3cc9e3d4a0f1"
NOW = 1_600_000_000


# Utility functions
def address(n: int) -> str:
    return to_checksum_address(f"0x{n:040x}")


def module(name: str, n: int) -> ModuleDescriptor:
    return ModuleDescriptor(name=name, address=address(n))


def contract_type(name: str) -> ContractType:
    return ContractType.model_validate(
        {
            "contractName": name,
            "abi": [
                {
                    "type": "function",
                    "name": "init",
                    "stateMutability": "nonpayable",
                    "inputs": [{"name": "_wallet", "type": "address"}],
                    "outputs": [],
                },
                {
                    "type": "event",
                    "name": "ModuleCreated",
                    "anonymous": False,
                    "inputs": [{"name": "name", "type": "bytes32", "indexed": False}],
                },
            ],
        }
    )


class FakeMethod:
    def __init__(self, contract, name):
        self.contract = contract
        self.name = name

    def encode_input(self, *args):
        return self.name.encode() + b"".join(str(a).encode() for a in args)


class FakeContract:
    """Stands in for an ape ContractInstance."""

    def __init__(self, name, address, views=None, receipt=None):
        self.contract_type = contract_type(name)
        self.address = address
        self.receipt = receipt
        self._views = views or dict()

    def __getattr__(self, item):
        views = self.__dict__.get("_views", {})
        if item in views:
            value = views[item]
            return lambda *args: value
        return FakeMethod(self, item)

    def __repr__(self):
        return f"<{self.contract_type.name} {self.address}>"


class FakeDeployer:
    """Records deployments and transactions instead of sending them."""

    def __init__(self, views=None, first_address=0x1000):
        self.views = views or dict()
        self._next_address = first_address
        self.deployed = list()
        self.wrapped = list()
        self.transactions = list()
        self.multisig_calls = list()
        self.finalized = None
        self.log = list()

    def deploy(self, container, *args):
        instance = FakeContract(container, address(self._next_address))
        self._next_address += 1
        self.deployed.append((container, args, instance))
        self.log.append(("deploy", container))
        return instance

    def wrap(self, container, address):
        self.wrapped.append((container, address))
        self.log.append(("wrap", container))
        return FakeContract(container, address, views=self.views.get(container))

    def transact(self, method, *args, description=None):
        self.transactions.append((method.contract.contract_type.name, method.name, args))

    def finalize(self, deployments):
        self.finalized = list(deployments)

    def deployed_named(self, name):
        return [instance for container, _, instance in self.deployed if container == name]


class FakeMultisigExecutor:
    def __init__(self, multisig, transactor, autosign=False):
        self.multisig = multisig
        self.transactor = transactor
        self.autosign = autosign

    def execute_call(self, contract, method_name, args):
        self.transactor.multisig_calls.append((contract.contract_type.name, method_name, args))


# Fixtures
@pytest.fixture
def artifact_store(tmp_path):
    return FilesystemStore(tmp_path / "artifacts")


@pytest.fixture
def version_store(artifact_store):
    return VersionStore(artifact_store)


@pytest.fixture
def wallet_config_data():
    return {
        "deployment": {"chain_id": 42},
        "contracts": {
            "ModuleRegistry": address(0xA1),
            "MultiSigWallet": address(0xA2),
            "TokenPriceProvider": address(0xA3),
        },
        "modules": {
            "GuardianStorage": address(0xB1),
            "TransferStorage": address(0xB2),
            "TransferManager": address(0xB3),
        },
        "defi": {
            "maker": {"migration": address(0xC1), "pot": address(0xC2), "jug": address(0xC3)},
            "uniswap": {"factory": address(0xC4)},
        },
        "settings": {
            "recovery_period": 36,
            "lock_period": 24,
            "security_period": 12,
            "security_window": 6,
        },
        "multisig": {"autosign": True},
    }


@pytest.fixture
def config_filepath(tmp_path, wallet_config_data):
    filepath = tmp_path / "config" / "test.yml"
    filepath.parent.mkdir()
    with open(filepath, "w") as file:
        yaml.safe_dump(wallet_config_data, file)
    return filepath


@pytest.fixture
def configurator(config_filepath):
    return Configurator(config_filepath)


@pytest.fixture
def deployer():
    return FakeDeployer(
        views={"ScdMcdMigration": {"vat": address(0xD1), "wethJoin": address(0xD2)}}
    )


@pytest.fixture
def make_context(deployer, configurator, artifact_store, version_store):
    def _make_context(target="test"):
        return MigrationContext(
            target=target,
            deployer=deployer,
            configurator=configurator,
            abi_uploader=AbiUploader(artifact_store),
            version_store=version_store,
            get_container=lambda name: name,
            revision=lambda: GIT_COMMIT,
            clock=lambda: NOW,
            multisig_executor=FakeMultisigExecutor,
        )

    return _make_context


@pytest.fixture
def published_version(version_store):
    manifest = VersionManifest.create(
        version="1.5.0",
        modules=[
            module("GuardianManager", 0x11),
            module("UniswapManager", 0x12),
            module("ApprovedTransfer", 0x13),
            module("RecoveryManager", 0x14),
            module("TransferManager", 0x15),
        ],
        created_at=NOW - 100,
    )
    version_store.upload(manifest)
    return manifest
