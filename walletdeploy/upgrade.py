from typing import List, NamedTuple, Optional, Sequence

from eth_typing import ChecksumAddress

from walletdeploy.versions import ModuleDescriptor, VersionManifest, next_version


class UpgradeDiff(NamedTuple):
    """Modules an upgrader removes from and adds to a wallet on `source`."""

    source: VersionManifest
    to_add: Sequence[ModuleDescriptor]
    to_remove: Sequence[ModuleDescriptor]
    target_fingerprint: str

    @property
    def upgrader_name(self) -> str:
        return f"{self.source.fingerprint}_{self.target_fingerprint}"

    @property
    def addresses_to_add(self) -> List[ChecksumAddress]:
        return [module.address for module in self.to_add]

    @property
    def addresses_to_remove(self) -> List[ChecksumAddress]:
        return [module.address for module in self.to_remove]


class UpgradePlan(NamedTuple):
    manifest: VersionManifest
    diffs: Sequence[UpgradeDiff]


def diff_against_target(version: VersionManifest, target: VersionManifest) -> UpgradeDiff:
    """Upgrade path taking a wallet on `version` straight to `target`."""
    version_addresses = set(version.addresses)
    target_addresses = set(target.addresses)
    to_add = [m for m in target.modules if m.address not in version_addresses]
    to_remove = [m for m in version.modules if m.address not in target_addresses]
    return UpgradeDiff(
        source=version,
        to_add=tuple(to_add),
        to_remove=tuple(to_remove),
        target_fingerprint=target.fingerprint,
    )


def plan_upgrade(
    versions: Sequence[VersionManifest],
    new_modules: Sequence[ModuleDescriptor],
    modules_to_enable: Sequence[str],
    modules_to_disable: Sequence[str],
    target_version: str,
    created_at: Optional[int] = None,
) -> UpgradePlan:
    """
    Computes the next version manifest and one upgrade diff per historical version.

    `versions` are the published manifests within the backward compatibility
    window, most recent first. The latest one is turned into the target by
    dropping every module named in the disable or enable lists (the latter are
    redeployed) and appending the new modules. Older versions are then diffed
    directly against that target.
    """
    new_modules = tuple(new_modules)
    if not versions:
        manifest = VersionManifest.create(target_version, new_modules, created_at=created_at)
        return UpgradePlan(manifest=manifest, diffs=())

    latest = versions[0]
    names_to_remove = set(modules_to_disable) | set(modules_to_enable)
    to_remove = tuple(m for m in latest.modules if m.name in names_to_remove)
    to_keep = tuple(m for m in latest.modules if m.name not in names_to_remove)
    manifest = VersionManifest.create(
        version=next_version(latest.version, target_version),
        modules=to_keep + new_modules,
        created_at=created_at,
    )

    diffs = [
        UpgradeDiff(
            source=latest,
            to_add=new_modules,
            to_remove=to_remove,
            target_fingerprint=manifest.fingerprint,
        )
    ]
    for version in versions[1:]:
        diffs.append(diff_against_target(version, manifest))
    return UpgradePlan(manifest=manifest, diffs=tuple(diffs))
