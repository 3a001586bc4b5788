from typing import Any, List

from ape.api import AccountAPI
from ape.contracts import ContractContainer, ContractInstance
from ape.exceptions import ApeException
from eth_typing import ABI, ChecksumAddress
from ethpm_types import ContractType

from synthdeploy.ledger import Deployment, LedgerClient, SendParameters, TransactionFailure


def _contract_container(name: str, abi: ABI, bytecode: str = "") -> ContractContainer:
    contract_data = {"contractName": name, "abi": abi}
    if bytecode:
        contract_data["deploymentBytecode"] = {"bytecode": f"0x{bytecode}"}
    return ContractContainer(ContractType.model_validate(contract_data))


class ApeLedger(LedgerClient):
    """Ledger client backed by an ape account on the connected provider."""

    def __init__(self, account: AccountAPI, autosign: bool = False):
        self._account = account
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
            self._account.set_autosign(autosign)

    @property
    def address(self) -> ChecksumAddress:
        return self._account.address

    @staticmethod
    def _transaction_kwargs(params: SendParameters) -> dict:
        return {"gas_limit": params.gas_limit, "gas_price": params.gas_price}

    def deploy_contract(
        self,
        name: str,
        abi: ABI,
        bytecode: str,
        constructor_args: List[Any],
        params: SendParameters,
    ) -> Deployment:
        container = _contract_container(name, abi, bytecode)
        try:
            instance = self._account.deploy(
                container, *constructor_args, **self._transaction_kwargs(params)
            )
        except ApeException as e:
            raise TransactionFailure(f"Deployment of {name} failed: {e}") from e

        receipt = instance.receipt
        return Deployment(address=instance.address, tx_hash=receipt.txn_hash, contract=instance)

    def bind(self, name: str, abi: ABI, address: ChecksumAddress) -> ContractInstance:
        container = _contract_container(name, abi)
        return container.at(address)

    def invoke(
        self, contract: ContractInstance, method: str, args: List[Any], params: SendParameters
    ) -> Any:
        handler = getattr(contract, method)
        try:
            receipt = handler(*args, sender=self._account, **self._transaction_kwargs(params))
        except ApeException as e:
            raise TransactionFailure(f"{method} on {contract.address} failed: {e}") from e

        if receipt.failed:
            raise TransactionFailure(f"{method} on {contract.address} reverted")
        return receipt
