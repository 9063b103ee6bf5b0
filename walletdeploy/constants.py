from pathlib import Path

import walletdeploy

#
# Filesystem
#

DEPLOYMENT_DIR = Path(walletdeploy.__file__).parent
CONFIG_DIR = DEPLOYMENT_DIR / "config"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"
BUILD_DIR = DEPLOYMENT_DIR.parent / "build"

#
# Deployment targets
#

GANACHE = "ganache"
TEST = "test"
KOVAN = "kovan"
KOVAN_FORK = "kovan-fork"
STAGING = "staging"
PROD = "prod"

DEPLOYMENT_TARGETS = [GANACHE, TEST, KOVAN, KOVAN_FORK, STAGING, PROD]

LOCAL_NETWORKS = ["local"]

#
# Artifact catalog
#

ABI_PREFIX = "abi"
VERSIONS_PREFIX = "versions"
MODULES_CATEGORY = "modules"
CONTRACTS_CATEGORY = "contracts"
ABI_CATEGORIES = [MODULES_CATEGORY, CONTRACTS_CATEGORY]

#
# Contracts
#

MODULE_REGISTRY = "ModuleRegistry"
MULTISIG_WALLET = "MultiSigWallet"
SIMPLE_UPGRADER = "SimpleUpgrader"

# 1 ether
DEFAULT_TRANSFER_LIMIT = 10**18

# abi.encodePacked(byte(0x19), byte(0)) prefix of MultiSigWallet.execute
MULTISIG_HASH_PREFIX = b"\x19\x00"
