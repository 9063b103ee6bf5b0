import json

import click
import pytest
from click.testing import CliRunner

from walletdeploy import utils
from walletdeploy.types import MinInt
from walletdeploy.utils import ascii_to_bytes32, load_build_artifact


def test_ascii_to_bytes32():
    encoded = ascii_to_bytes32("TransferManager")
    assert len(encoded) == 32
    assert encoded.startswith(b"TransferManager")
    assert encoded[len("TransferManager"):] == b"\x00" * (32 - len("TransferManager"))


def test_upgrader_name_fits_bytes32():
    name = "0x1a2b3c4d_0x5e6f7a8b"
    assert ascii_to_bytes32(name).rstrip(b"\x00").decode() == name


def test_ascii_to_bytes32_too_long():
    with pytest.raises(ValueError, match="too long"):
        ascii_to_bytes32("x" * 33)


def test_load_build_artifact(tmp_path):
    artifact = {
        "contractName": "SimpleUpgrader",
        "abi": [
            {
                "type": "constructor",
                "stateMutability": "nonpayable",
                "inputs": [
                    {"name": "_registry", "type": "address"},
                    {"name": "_toDisable", "type": "address[]"},
                    {"name": "_toEnable", "type": "address[]"},
                ],
            }
        ],
        "bytecode": "0x6080",
    }
    (tmp_path / "SimpleUpgrader.json").write_text(json.dumps(artifact))

    contract_type = load_build_artifact("SimpleUpgrader", build_dir=tmp_path)
    assert contract_type.name == "SimpleUpgrader"
    assert [i.name for i in contract_type.constructor.inputs] == [
        "_registry",
        "_toDisable",
        "_toEnable",
    ]


def test_git_revision(monkeypatch):
    monkeypatch.setattr(utils.subprocess, "check_output", lambda args: b"deadbeef\n")
    assert utils.git_revision() == "deadbeef"


def test_min_int():
    @click.command()
    @click.option("--count", type=MinInt(1))
    def command(count):
        click.echo(count)

    runner = CliRunner()
    assert runner.invoke(command, ["--count", "2"]).output.strip() == "2"
    result = runner.invoke(command, ["--count", "0"])
    assert result.exit_code != 0
    assert "less than the minimum" in result.output
