from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional

from eth_typing import ABI, ChecksumAddress

ContractName = str
SourcePath = str
FlattenedSources = Dict[SourcePath, str]


class ContractIdentifier(NamedTuple):
    """
    A contract name, optionally qualified by a namespace
    (e.g. the per-asset instances of a templated contract, 'Proxy.sUSD').
    """

    name: ContractName
    namespace: Optional[str] = None

    NAMESPACE_DELIMITER = "."

    @classmethod
    def parse(cls, value: str) -> "ContractIdentifier":
        name, _, namespace = value.partition(cls.NAMESPACE_DELIMITER)
        if not name or cls.NAMESPACE_DELIMITER in namespace:
            raise ValueError(f"Malformed contract identifier '{value}'")
        return cls(name=name, namespace=namespace or None)

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.name}{self.NAMESPACE_DELIMITER}{self.namespace}"
        return self.name


class Action:
    DEPLOY = "deploy"
    USE_EXISTING = "use-existing"


class ContractConfiguration(NamedTuple):
    identifier: ContractIdentifier
    action: str
    existing_instance: Optional[ChecksumAddress] = None


class CompiledArtifact(NamedTuple):
    """Compiled output for a single contract; bytecode may contain library placeholders."""

    name: ContractName
    source_path: SourcePath
    abi: ABI
    bytecode: str
    link_references: Optional[Dict[str, Dict[str, List[Dict[str, int]]]]] = None


class DeployedInstance(NamedTuple):
    identifier: ContractIdentifier
    address: ChecksumAddress
    abi: ABI
    bytecode: str  # linked
    is_new: bool
    tx_hash: Optional[str] = None
    contract: Any = None  # ledger handle


class VerificationStatus(Enum):
    SKIPPED = "skipped"
    ALREADY_VERIFIED = "already-verified"
    NEWLY_VERIFIED = "newly-verified"
    UNABLE_TO_VERIFY = "unable-to-verify"

    @property
    def label(self) -> str:
        return {
            VerificationStatus.SKIPPED: "Skipped Verification",
            VerificationStatus.ALREADY_VERIFIED: "Already verified",
            VerificationStatus.NEWLY_VERIFIED: "Successfully verified",
            VerificationStatus.UNABLE_TO_VERIFY: "Unable to verify",
        }[self]


class VerificationRecord(NamedTuple):
    identifier: ContractIdentifier
    address: ChecksumAddress
    status: VerificationStatus
    reason: Optional[str] = None
