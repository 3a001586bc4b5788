from abc import ABC, abstractmethod
from typing import Any, List, NamedTuple, Optional

from eth_typing import ABI, ChecksumAddress


class TransactionFailure(Exception):
    """Raised when a deployment or method call transaction fails or does not confirm."""


class SendParameters(NamedTuple):
    sender: ChecksumAddress
    gas_limit: int
    gas_price: int  # wei


class Deployment(NamedTuple):
    """A confirmed contract-creation transaction."""

    address: ChecksumAddress
    tx_hash: Optional[str]
    contract: Any


class LedgerClient(ABC):
    """Submits signed transactions and waits for their confirmation."""

    @property
    @abstractmethod
    def address(self) -> ChecksumAddress:
        """Address of the account signing every transaction."""
        raise NotImplementedError

    @abstractmethod
    def deploy_contract(
        self,
        name: str,
        abi: ABI,
        bytecode: str,
        constructor_args: List[Any],
        params: SendParameters,
    ) -> Deployment:
        raise NotImplementedError

    @abstractmethod
    def bind(self, name: str, abi: ABI, address: ChecksumAddress) -> Any:
        """Returns a handle on an already deployed contract; no transaction is sent."""
        raise NotImplementedError

    @abstractmethod
    def invoke(self, contract: Any, method: str, args: List[Any], params: SendParameters) -> Any:
        raise NotImplementedError
