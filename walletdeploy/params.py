import typing
from collections import OrderedDict
from typing import Any, List, Optional

from ape import networks
from ape.api import AccountAPI, ReceiptAPI
from ape.cli.choices import select_account
from ape.contracts.base import ContractContainer, ContractInstance, ContractTransactionHandler
from ethpm_types import MethodABI
from web3.auto import w3

from walletdeploy.confirm import _confirm_resolution, _continue
from walletdeploy.utils import check_plugins, verify_contracts


class InvalidArguments(ValueError):
    """Raised when call or constructor arguments do not match the ABI"""


def _validate_method_args(
    method_abis: List[MethodABI], args: typing.Sequence[Any]
) -> typing.Dict[str, Any]:
    """Validates the transaction arguments against the function ABI."""
    if len(method_abis) == 0:
        raise InvalidArguments("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi.inputs) == len(args)]
    for abi in abis_matching_args_length:
        named_args = {}
        for arg, abi_input in zip(args, abi.inputs):
            if not w3.is_encodable(abi_input.type, arg):
                break
            named_args[abi_input.name] = arg
        else:
            return named_args
    raise InvalidArguments(
        f"Could not find ABI for '{method_abis[0].name}' with {len(args)} arg(s) and given type(s)"
    )


def _constructor_params(container: ContractContainer, args: typing.Sequence[Any]) -> OrderedDict:
    """Names the constructor arguments after the ABI and checks their types."""
    contract_name = container.contract_type.name
    abi_inputs = container.contract_type.constructor.inputs
    if len(args) != len(abi_inputs):
        raise InvalidArguments(
            f"Constructor parameters length mismatch - "
            f"{contract_name} ABI requires {len(abi_inputs)}, Got {len(args)}."
        )

    params = OrderedDict()
    for position, (abi_input, value) in enumerate(zip(abi_inputs, args)):
        if not w3.is_encodable(abi_input.type, value):
            raise InvalidArguments(
                f"Constructor param '{abi_input.name}' at position {position} has a value "
                f"'{value}' whose type does not match expected ABI type '{abi_input.type}'"
            )
        params[abi_input.name or f"arg{position}"] = value
    return params


class Transactor:
    """
    Represents an ape account plus validated/annotated transaction execution.
    """

    def __init__(
        self,
        account: Optional[AccountAPI] = None,
        autosign: bool = False,
        gas_price: Optional[int] = None,
    ):
        if account is None:
            self._account = select_account()
        else:
            self._account = account
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign
        self._account.set_autosign(autosign)
        self._overrides = {"gas_price": gas_price} if gas_price else {}

    @property
    def autosign(self) -> bool:
        return self._autosign

    def get_account(self) -> AccountAPI:
        """Returns the transactor account."""
        return self._account

    def transact(
        self, method: ContractTransactionHandler, *args, description: Optional[str] = None
    ) -> ReceiptAPI:
        named_args = _validate_method_args(method_abis=method.abis, args=args)
        base_message = (
            f"\nTransacting {method.contract.contract_type.name}"
            f"[{method.contract.address[:10]}].{method}"
        )
        if named_args:
            pretty_args = "\n\t".join(f"{k}={v}" for k, v in named_args.items())
            message = f"{base_message} with arguments:\n\t{pretty_args}"
        else:
            message = f"{base_message} with no arguments"
        if description:
            message = f"{message}\n({description})"
        print(message)
        if not self._autosign:
            _continue()

        receipt = method(*args, sender=self._account, **self._overrides)
        print(f"(i) Confirmed in block {receipt.block_number} ({receipt.txn_hash})")
        return receipt


class Deployer(Transactor):
    """
    Represents an ape account deploying and wrapping the wallet contracts,
    plus validated/annotated execution.
    """

    def __init__(
        self,
        account: Optional[AccountAPI] = None,
        autosign: bool = False,
        gas_price: Optional[int] = None,
        verify: bool = False,
    ):
        super().__init__(account=account, autosign=autosign, gas_price=gas_price)
        check_plugins()
        self.verify = verify
        self._print_deployment_info()

    def deploy(self, container: ContractContainer, *args) -> ContractInstance:
        contract_name = container.contract_type.name
        params = _constructor_params(container, args)
        if not self._autosign:
            _confirm_resolution(params, contract_name)
        instance = self._account.deploy(container, *args, **self._overrides)
        print(f"(i) {contract_name} deployed to {instance.address}")
        return instance

    def wrap(self, container: ContractContainer, address: str) -> ContractInstance:
        """Binds an already deployed contract."""
        return container.at(address)

    def finalize(self, deployments: List[ContractInstance]) -> None:
        """Optionally publishes the deployments to block explorers."""
        if self.verify:
            verify_contracts(contracts=deployments)

    def _print_deployment_info(self):
        print(
            f"Account: {self.get_account().address}",
            f"Verify: {self.verify}",
            f"Ecosystem: {networks.provider.network.ecosystem.name}",
            f"Network: {networks.provider.network.name}",
            f"Chain ID: {networks.provider.network.chain_id}",
            f"Gas Price: {self._overrides.get('gas_price', networks.provider.gas_price)}",
            sep="\n",
        )
