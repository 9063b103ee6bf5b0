from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

from ape.contracts import ContractInstance
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from eth_typing import ABI

from walletdeploy.constants import ABI_CATEGORIES, ABI_PREFIX
from walletdeploy.storage import ArtifactStore


class CatalogEntry(NamedTuple):
    """Interface description of a deployed contract, as published to the ABI catalog."""

    name: str
    address: ChecksumAddress
    abi: ABI
    chain_id: Optional[int] = None
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    deployer: Optional[str] = None

    def to_dict(self) -> Dict:
        abi = list(self.abi)
        abi.sort(key=lambda d: (d["type"], d.get("name", "")))
        return {
            "name": self.name,
            "address": self.address,
            "abi": abi,
            "chain_id": self.chain_id,
            "tx_hash": self.tx_hash,
            "block_number": self.block_number,
            "deployer": self.deployer,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "CatalogEntry":
        return cls(**{field: data.get(field) for field in cls._fields})


def _get_abi(contract_instance: ContractInstance) -> ABI:
    """Returns the ABI of a contract instance."""
    contract_abi = list()
    for entry in contract_instance.contract_type.abi:
        contract_abi.append(entry.model_dump(mode="json", by_alias=True, exclude_none=True))
    return contract_abi


def catalog_entry(contract_instance: ContractInstance) -> CatalogEntry:
    receipt = getattr(contract_instance, "receipt", None)
    entry = CatalogEntry(
        name=contract_instance.contract_type.name,
        address=to_checksum_address(contract_instance.address),
        abi=_get_abi(contract_instance),
    )
    if receipt is None:
        return entry
    return entry._replace(
        chain_id=receipt.chain_id,
        tx_hash=receipt.txn_hash,
        block_number=int(receipt.block_number),
        deployer=receipt.transaction.sender,
    )


class AbiUploader:
    """Publishes contract interface descriptions under abi/<category>/<name>.json."""

    def __init__(self, store: ArtifactStore, max_workers: int = 8):
        self.store = store
        self.max_workers = max_workers

    @staticmethod
    def _key(category: str, name: str) -> str:
        if category not in ABI_CATEGORIES:
            raise ValueError(f"Unknown ABI category '{category}'; expected one of {ABI_CATEGORIES}")
        return f"{ABI_PREFIX}/{category}/{name}.json"

    def upload(self, contract_instance: ContractInstance, category: str) -> str:
        entry = catalog_entry(contract_instance)
        location = self.store.write(self._key(category, entry.name), entry.to_dict())
        print(f"(i) Uploaded {entry.name} ABI to {location}")
        return location

    def upload_all(self, uploads: Sequence[Tuple[ContractInstance, str]]) -> List[str]:
        """Uploads several ABIs at once; the first failure is raised once all have finished."""
        if not uploads:
            return list()
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(self.upload, instance, category) for instance, category in uploads
            ]
        return [future.result() for future in futures]

    def download(self, name: str, category: str) -> CatalogEntry:
        return CatalogEntry.from_dict(self.store.read(self._key(category, name)))
