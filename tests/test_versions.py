import pytest
from eth_utils import keccak, to_canonical_address

from tests.conftest import NOW, address, module
from walletdeploy.versions import (
    ModuleDescriptor,
    VersionManifest,
    next_version,
    version_fingerprint,
)


def test_fingerprint_format():
    fingerprint = version_fingerprint([module("A", 1), module("B", 2)])
    assert fingerprint.startswith("0x")
    assert len(fingerprint) == 10
    assert fingerprint == fingerprint.lower()


def test_fingerprint_hashes_addresses_in_descending_order():
    high, low = address(0xFF00), address(0x0F)
    expected = "0x" + keccak(to_canonical_address(high) + to_canonical_address(low))[:4].hex()
    assert version_fingerprint([module("Low", 0x0F), module("High", 0xFF00)]) == expected
    assert version_fingerprint([module("High", 0xFF00), module("Low", 0x0F)]) == expected


def test_fingerprint_ignores_order_and_names():
    modules = [module("A", 1), module("B", 2), module("C", 3)]
    fingerprint = version_fingerprint(modules)
    assert version_fingerprint(reversed(modules)) == fingerprint
    renamed = [ModuleDescriptor(name=f"X{i}", address=m.address) for i, m in enumerate(modules)]
    assert version_fingerprint(renamed) == fingerprint


def test_fingerprint_depends_on_addresses():
    assert version_fingerprint([module("A", 1)]) != version_fingerprint([module("A", 2)])


def test_fingerprint_accepts_lowercase_addresses():
    lower = ModuleDescriptor(name="A", address=address(0xABCDEF).lower())
    assert version_fingerprint([lower]) == version_fingerprint([module("A", 0xABCDEF)])


@pytest.mark.parametrize(
    "latest, target, expected",
    [
        ("1.5.2", "1.6.0", "1.6.0"),
        ("1.6.0", "1.6.0", "1.6.1"),
        ("1.6.3", "1.6.0", "1.6.4"),
        ("2.0.0", "1.6.0", "2.0.1"),
        ("1.6.0-rc.1", "1.6.0", "1.6.0"),
        ("1.7.0-rc.1", "1.6.0", "1.7.0"),
        ("1.6.0-1", "1.6.0", "1.6.0"),
        ("1.7.0-x.7.z.92", "1.6.0", "1.7.0"),
        ("1.6.0+build.5", "1.6.0", "1.6.1"),
    ],
)
def test_next_version(latest, target, expected):
    assert next_version(latest, target) == expected


def test_next_version_rejects_garbage():
    with pytest.raises(ValueError):
        next_version("latest", "1.6.0")
    with pytest.raises(ValueError):
        next_version("1.6", "1.6.0")


def test_manifest_wire_format():
    manifest = VersionManifest.create("1.6.0", [module("A", 1)], created_at=NOW)
    data = manifest.to_dict()
    assert data == {
        "version": "1.6.0",
        "createdAt": NOW,
        "modules": [{"name": "A", "address": address(1)}],
        "fingerprint": version_fingerprint([module("A", 1)]),
    }
    assert VersionManifest.from_dict(data) == manifest


def test_malformed_manifest():
    with pytest.raises(ValueError, match="Malformed"):
        VersionManifest.from_dict({"version": "1.0.0", "modules": []})


def test_version_store_loads_most_recent_first(version_store):
    for i, version in enumerate(["1.3.0", "1.5.0", "1.4.0"]):
        created_at = {"1.3.0": NOW - 300, "1.4.0": NOW - 200, "1.5.0": NOW - 100}[version]
        manifest = VersionManifest.create(version, [module("A", i + 1)], created_at=created_at)
        version_store.upload(manifest)

    assert [m.version for m in version_store.all()] == ["1.5.0", "1.4.0", "1.3.0"]
    assert [m.version for m in version_store.load(2)] == ["1.5.0", "1.4.0"]
    assert [m.version for m in version_store.load(1)] == ["1.5.0"]


def test_version_store_empty(version_store):
    assert version_store.load(1) == []
