"""
Published versions of the wallet module set.

A version manifest lists the modules a wallet on that version has enabled.
Manifests are identified by a fingerprint of their module addresses, which
is also used to name the upgraders moving wallets between versions.
"""

import time
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence

from eth_typing import ChecksumAddress
from eth_utils import keccak, to_canonical_address, to_checksum_address
from semver import Version

from walletdeploy.constants import VERSIONS_PREFIX
from walletdeploy.storage import ArtifactStore


class ModuleDescriptor(NamedTuple):
    name: str
    address: ChecksumAddress

    @classmethod
    def from_dict(cls, data: Dict) -> "ModuleDescriptor":
        return cls(name=data["name"], address=to_checksum_address(data["address"]))

    def to_dict(self) -> Dict:
        return {"name": self.name, "address": self.address}


def version_fingerprint(modules: Iterable[ModuleDescriptor]) -> str:
    """
    Returns the first four bytes of the keccak256 of the module addresses,
    concatenated in descending numeric order. Only the set of addresses
    matters: names and ordering of the input do not change the result.
    """
    addresses = sorted(
        (to_canonical_address(module.address) for module in modules),
        key=lambda address: int.from_bytes(address, "big"),
        reverse=True,
    )
    digest = keccak(b"".join(addresses))
    return "0x" + digest[:4].hex()


def next_version(latest: str, target: str) -> str:
    """The target version, unless the latest published one already reached it."""
    try:
        latest_version, target_version = Version.parse(latest), Version.parse(target)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid version: {e}")
    if latest_version < target_version:
        return target
    if latest_version.prerelease:
        # a pre-release is bumped to its release
        return str(latest_version.finalize_version())
    return str(latest_version.bump_patch())


class VersionManifest(NamedTuple):
    version: str
    created_at: int
    modules: Sequence[ModuleDescriptor]
    fingerprint: str

    @classmethod
    def create(
        cls, version: str, modules: Sequence[ModuleDescriptor], created_at: Optional[int] = None
    ) -> "VersionManifest":
        modules = tuple(modules)
        return cls(
            version=version,
            created_at=int(time.time()) if created_at is None else created_at,
            modules=modules,
            fingerprint=version_fingerprint(modules),
        )

    @classmethod
    def from_dict(cls, data: Dict) -> "VersionManifest":
        try:
            return cls(
                version=data["version"],
                created_at=int(data["createdAt"]),
                modules=tuple(ModuleDescriptor.from_dict(m) for m in data["modules"]),
                fingerprint=data["fingerprint"],
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed version manifest: {e}")

    def to_dict(self) -> Dict:
        return {
            "version": self.version,
            "createdAt": self.created_at,
            "modules": [module.to_dict() for module in self.modules],
            "fingerprint": self.fingerprint,
        }

    @property
    def addresses(self) -> List[ChecksumAddress]:
        return [module.address for module in self.modules]


class VersionStore:
    """Loads and publishes version manifests, one document per version."""

    def __init__(self, store: ArtifactStore):
        self.store = store

    @staticmethod
    def _key(version: str) -> str:
        return f"{VERSIONS_PREFIX}/{version}.json"

    def all(self) -> List[VersionManifest]:
        """All published manifests, most recent first."""
        manifests = [
            VersionManifest.from_dict(self.store.read(key))
            for key in self.store.list(VERSIONS_PREFIX)
        ]
        manifests.sort(key=lambda m: m.created_at, reverse=True)
        return manifests

    def load(self, count: int) -> List[VersionManifest]:
        """The `count` most recent manifests, most recent first."""
        return self.all()[:count]

    def upload(self, manifest: VersionManifest) -> str:
        location = self.store.write(self._key(manifest.version), manifest.to_dict())
        print(f"(i) Version {manifest.version} ({manifest.fingerprint}) uploaded to {location}")
        return location
