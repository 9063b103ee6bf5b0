from typing import Any, Callable, Sequence, Tuple

import click
from ape.api import ReceiptAPI
from ape.contracts import ContractInstance
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_typing import ChecksumAddress
from eth_utils import keccak, to_bytes, to_canonical_address, to_checksum_address
from hexbytes import HexBytes

from walletdeploy.constants import MULTISIG_HASH_PREFIX
from walletdeploy.params import Transactor


def multisig_message_hash(
    multisig_address: str, to: str, value: int, data: bytes, nonce: int
) -> bytes:
    """Hash the MultiSigWallet owners sign to approve `execute(to, value, data)`."""
    return keccak(
        MULTISIG_HASH_PREFIX
        + to_canonical_address(multisig_address)
        + to_canonical_address(to)
        + value.to_bytes(32, "big")
        + bytes(data)
        + nonce.to_bytes(32, "big")
    )


def recover_signer(message_hash: bytes, signature: bytes) -> ChecksumAddress:
    signable = encode_defunct(primitive=message_hash)
    return to_checksum_address(Account.recover_message(signable, signature=signature))


def pack_signatures(signatures: Sequence[Tuple[ChecksumAddress, bytes]]) -> bytes:
    """Concatenates r|s|v signatures, ordered by ascending signer address."""
    ordered = sorted(signatures, key=lambda item: int(item[0], 16))
    return b"".join(signature for _, signature in ordered)


def _prompt_signature(message_hash: bytes, index: int, threshold: int) -> bytes:
    value = click.prompt(
        f"Signature {index + 1}/{threshold} for message hash {HexBytes(message_hash).hex()}"
    )
    return to_bytes(hexstr=value.strip())


class MultisigExecutor:
    """Submits calls through the MultiSigWallet once enough owners have signed them."""

    class SignatureError(Exception):
        """Raised when collected signatures cannot authorize a call"""

    def __init__(
        self,
        multisig: ContractInstance,
        transactor: Transactor,
        autosign: bool = False,
        prompt: Callable[[bytes, int, int], bytes] = _prompt_signature,
    ):
        self.multisig = multisig
        self.transactor = transactor
        self.autosign = autosign
        self._prompt = prompt

    def _sign(self, message_hash: bytes) -> bytes:
        account = self.transactor.get_account()
        signature = account.sign_message(encode_defunct(primitive=message_hash))
        if signature is None:
            raise self.SignatureError(f"{account.address} declined to sign {message_hash.hex()}")
        return signature.encode_rsv()

    def collect_signatures(self, message_hash: bytes) -> bytes:
        threshold = self.multisig.threshold()
        signatures = dict()
        if self.autosign:
            own_signature = self._sign(message_hash)
            signatures[recover_signer(message_hash, own_signature)] = own_signature

        while len(signatures) < threshold:
            signature = self._prompt(message_hash, len(signatures), threshold)
            signer = recover_signer(message_hash, signature)
            if signer in signatures:
                click.secho(f"Already have a signature from {signer}", fg="yellow")
                continue
            signatures[signer] = signature

        strangers = [signer for signer in signatures if not self.multisig.isOwner(signer)]
        if strangers:
            raise self.SignatureError(f"Signers are not multisig owners: {strangers}")
        return pack_signatures(list(signatures.items()))

    def execute_call(
        self, contract: ContractInstance, method_name: str, args: Sequence[Any], value: int = 0
    ) -> ReceiptAPI:
        data = getattr(contract, method_name).encode_input(*args)
        nonce = self.multisig.nonce()
        message_hash = multisig_message_hash(
            multisig_address=self.multisig.address,
            to=contract.address,
            value=value,
            data=data,
            nonce=nonce,
        )
        click.echo(
            f"\nMultisig call {contract.contract_type.name}.{method_name} "
            f"(nonce {nonce}, hash {HexBytes(message_hash).hex()})"
        )
        signatures = self.collect_signatures(message_hash)
        return self.transactor.transact(
            self.multisig.execute,
            contract.address,
            value,
            data,
            signatures,
            description=f"{contract.contract_type.name}.{method_name} via MultiSigWallet",
        )
