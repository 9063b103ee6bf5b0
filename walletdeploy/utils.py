import json
import os
import subprocess
from pathlib import Path
from typing import List

import yaml
from ape import networks, project
from ape.contracts import ContractContainer, ContractInstance
from eth_utils import to_bytes
from ethpm_types import ContractType

from walletdeploy.constants import BUILD_DIR, LOCAL_NETWORKS


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def is_local_network() -> bool:
    return networks.provider.network.name in LOCAL_NETWORKS


def git_revision() -> str:
    """Returns the commit hash checked out in the working directory."""
    output = subprocess.check_output(["git", "rev-parse", "HEAD"])
    return output.decode("utf8").strip()


def ascii_to_bytes32(value: str) -> bytes:
    """Right-pads a short string into a bytes32 value, as registry names are stored."""
    encoded = to_bytes(text=value)
    if len(encoded) > 32:
        raise ValueError(f"'{value}' is too long to fit into bytes32")
    return encoded.ljust(32, b"\x00")


def check_etherscan_plugin() -> None:
    """
    Checks that the ape-etherscan plugin is installed and that
    the appropriate API key environment variable is set.
    """
    if is_local_network():
        # unnecessary for local deployment
        return
    try:
        from ape_etherscan.utils import API_KEY_ENV_KEY_MAP
    except ImportError:
        raise ImportError("Please install the ape-etherscan plugin to use this script.")
    ecosystem_name = networks.provider.network.ecosystem.name
    explorer_envvar = API_KEY_ENV_KEY_MAP.get(ecosystem_name)
    api_key = os.environ.get(explorer_envvar)
    if not api_key:
        raise ValueError(f"{explorer_envvar} is not set.")


def check_infura_plugin() -> None:
    """Checks that the ape-infura plugin is installed."""
    if is_local_network():
        return  # unnecessary for local deployment
    if networks.provider.name != "infura":
        return  # unnecessary when using a provider different than infura
    try:
        from ape_infura.provider import _ENVIRONMENT_VARIABLE_NAMES
    except ImportError:
        raise ImportError("Please install the ape-infura plugin to use this script.")
    for envvar in _ENVIRONMENT_VARIABLE_NAMES:
        if os.environ.get(envvar):
            break
    else:
        raise ValueError(
            f"No Infura API key found in "
            f"environment variables: {', '.join(_ENVIRONMENT_VARIABLE_NAMES)}"
        )


def check_plugins() -> None:
    print("Checking plugins...")
    check_etherscan_plugin()
    check_infura_plugin()


def verify_contracts(contracts: List[ContractInstance]) -> None:
    explorer = networks.provider.network.explorer
    for instance in contracts:
        print(f"(i) Verifying {instance.contract_type.name}...")
        explorer.publish_contract(instance.address)


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            return getattr(dependency_api, contract)
        except AttributeError:
            continue
    raise ValueError(f"No contract found with name '{contract}'.")


def load_build_artifact(contract: str, build_dir: Path = BUILD_DIR) -> ContractType:
    """Reads a truffle-style JSON artifact ({contractName, abi, bytecode}) from the build dir."""
    artifact = _load_json(build_dir / f"{contract}.json")
    return ContractType.model_validate(
        {
            "contractName": artifact.get("contractName", contract),
            "abi": artifact["abi"],
            "deploymentBytecode": {"bytecode": artifact.get("bytecode")},
        }
    )


def get_contract_container(contract: str) -> ContractContainer:
    try:
        return getattr(project, contract)
    except AttributeError:
        pass
    # not in root project; check dependencies, then prebuilt wallet artifacts
    try:
        return _get_dependency_contract_container(contract)
    except ValueError:
        if not (BUILD_DIR / f"{contract}.json").exists():
            raise
    return ContractContainer(load_build_artifact(contract))
