from collections import OrderedDict

from ape.utils import ZERO_ADDRESS


def _abort_unless_confirmed(question: str) -> None:
    """Exits the run when the operator answers 'n'."""
    answer = input(f"{question} Y/N? ")
    if answer.lower().strip() == "n":
        print("Aborting upgrade!")
        exit(-1)


def _continue() -> None:
    _abort_unless_confirmed("Continue")


def _confirm_network_target(target: str, chain_id: int) -> None:
    _abort_unless_confirmed(f"Run the upgrade for '{target}' on chain {chain_id}?")


def _confirm_resolution(resolved_params: OrderedDict, contract_name: str) -> None:
    """Shows the constructor arguments of a contract and asks for confirmation."""
    if not resolved_params:
        print(f"\n(i) No constructor parameters for {contract_name}")
        _abort_unless_confirmed(f"Deploy {contract_name}")
        return

    print(f"\nConstructor parameters for {contract_name}")
    for name, value in resolved_params.items():
        print(f"\t{name}={value}")
    _abort_unless_confirmed(f"Deploy {contract_name}")

    if ZERO_ADDRESS in resolved_params.values():
        _abort_unless_confirmed("Zero Address detected for deployment parameter; Continue?")
