import posixpath
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, Iterable, List, NamedTuple, Optional

from eth_utils import remove_0x_prefix

from synthdeploy.constants import (
    ALREADY_VERIFIED,
    BYTECODE_SUFFIX_LENGTH,
    FAIL_UNABLE_TO_VERIFY,
    MAX_POLL_ATTEMPTS,
    OPTIMIZER_RUNS,
    PASS_VERIFIED,
    POLL_INTERVAL,
    SOURCE_EXTENSION,
)
from synthdeploy.explorer import EtherscanClient, ExplorerError
from synthdeploy.registry import DeploymentRegistry
from synthdeploy.types import (
    DeployedInstance,
    FlattenedSources,
    VerificationRecord,
    VerificationStatus,
)


class ConstructorArgumentsNotFound(ValueError):
    """Raised when the compiled code cannot be located in the creation transaction input."""


class RetryPolicy(NamedTuple):
    """Bounds the polling of a pending verification."""

    interval: float = POLL_INTERVAL
    max_attempts: int = MAX_POLL_ATTEMPTS


def extract_constructor_arguments(
    creation_input: str, bytecode: str, suffix_length: int = BYTECODE_SUFFIX_LENGTH
) -> str:
    """
    Returns the ABI-encoded constructor arguments of a creation transaction:
    everything in its input after the trailing characters of the compiled code.
    """
    creation_input = remove_0x_prefix(creation_input).lower()
    code = remove_0x_prefix(bytecode).lower()
    if code and creation_input.startswith(code):
        return creation_input[len(code) :]

    suffix = code[-suffix_length:]
    if not suffix:
        raise ConstructorArgumentsNotFound("Compiled code not found in creation transaction input")
    # the suffix cannot end before the compiled code does
    index = creation_input.find(suffix, max(0, len(code) - len(suffix)))
    if index < 0:
        index = creation_input.find(suffix)
    if index < 0:
        raise ConstructorArgumentsNotFound("Compiled code not found in creation transaction input")
    return creation_input[index + len(suffix) :]


class VerificationPoller:
    """
    Publishes the source of every contract in the registry to the explorer,
    one contract at a time, and reports the outcome for each of them.
    """

    def __init__(
        self,
        explorer: EtherscanClient,
        registry: DeploymentRegistry,
        flattened: FlattenedSources,
        compiler_version: str,
        libraries: Iterable[str] = (),
        skip: Iterable[str] = (),
        enabled: bool = True,
        optimizer_runs: int = OPTIMIZER_RUNS,
        policy: RetryPolicy = RetryPolicy(),
    ):
        self.explorer = explorer
        self.registry = registry
        self.flattened = flattened
        self.compiler_version = compiler_version
        self.libraries = list(libraries)
        self.skip = set(skip)
        self.enabled = enabled
        self.optimizer_runs = optimizer_runs
        self.policy = policy
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Stops verification after the current explorer request."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _record(
        self, instance: DeployedInstance, status: VerificationStatus, reason: Optional[str] = None
    ) -> VerificationRecord:
        return VerificationRecord(
            identifier=instance.identifier, address=instance.address, status=status, reason=reason
        )

    def _source(self, contract_name: str) -> str:
        filename = f"{contract_name}{SOURCE_EXTENSION}"
        for path, content in self.flattened.items():
            if posixpath.basename(path) == filename:
                return content
        raise KeyError(f"No flattened source for {contract_name}")

    def _library_bindings(self) -> Dict[str, str]:
        bindings = dict()
        library_addresses = self.registry.library_addresses(self.libraries)
        for index, (name, address) in enumerate(library_addresses.items(), start=1):
            bindings[f"libraryname{index}"] = name
            bindings[f"libraryaddress{index}"] = address
        return bindings

    def _constructor_arguments(self, instance: DeployedInstance) -> str:
        if instance.identifier.name in self.libraries:
            return ""  # libraries have no constructor
        creation_input = self.explorer.get_creation_input(instance.address)
        constructor_arguments = extract_constructor_arguments(creation_input, instance.bytecode)
        print("Constructor arguments", constructor_arguments)
        return constructor_arguments

    def _submit(self, instance: DeployedInstance) -> VerificationRecord:
        contract_name = instance.identifier.name
        result = self.explorer.submit_verification(
            contractaddress=instance.address,
            sourceCode=self._source(contract_name),
            contractname=contract_name,
            constructorArguements=self._constructor_arguments(instance),
            compilerversion=self.compiler_version,
            optimizationUsed=1,
            runs=self.optimizer_runs,
            **self._library_bindings(),
        )
        print("Got result:", result["result"])

        if result["result"] == ALREADY_VERIFIED:
            # a previous submission won the race
            return self._record(instance, VerificationStatus.NEWLY_VERIFIED)
        if result.get("status") != "1":
            return self._record(instance, VerificationStatus.UNABLE_TO_VERIFY, result["result"])

        return self._poll(instance, guid=result["result"])

    def _poll(self, instance: DeployedInstance, guid: str) -> VerificationRecord:
        for attempt in range(1, self.policy.max_attempts + 1):
            print("Checking verification status...")
            status = self.explorer.check_verification_status(guid)
            print(f"Got {status}")

            if status == PASS_VERIFIED:
                return self._record(instance, VerificationStatus.NEWLY_VERIFIED)
            if status == FAIL_UNABLE_TO_VERIFY:
                print("Unable to verify\nMoving to next contract")
                return self._record(instance, VerificationStatus.UNABLE_TO_VERIFY, status)
            if attempt == self.policy.max_attempts:
                break

            print(f"Sleeping for {self.policy.interval} seconds and re-checking.")
            if self._cancelled.wait(self.policy.interval):
                return self._record(
                    instance, VerificationStatus.UNABLE_TO_VERIFY, "verification cancelled"
                )

        return self._record(
            instance,
            VerificationStatus.UNABLE_TO_VERIFY,
            f"still pending after {self.policy.max_attempts} status checks",
        )

    def verify(self, instance: DeployedInstance) -> VerificationRecord:
        identifier = instance.identifier
        if not self.enabled:
            return self._record(instance, VerificationStatus.SKIPPED, "verification disabled")
        if identifier.name in self.skip:
            return self._record(instance, VerificationStatus.SKIPPED)

        try:
            if self.explorer.is_verified(instance.address):
                return self._record(instance, VerificationStatus.ALREADY_VERIFIED)

            print(f"Contract {identifier} not yet verified. Verifying...")
            return self._submit(instance)
        except (ExplorerError, ConstructorArgumentsNotFound, KeyError) as e:
            print(f"Unable to verify {identifier}: {e}")
            return self._record(instance, VerificationStatus.UNABLE_TO_VERIFY, str(e))

    def run(self) -> List[VerificationRecord]:
        if not self.enabled:
            print("Verification disabled in settings.")

        records = list()
        for instance in self.registry:
            if self.cancelled:
                records.append(
                    self._record(instance, VerificationStatus.SKIPPED, "verification cancelled")
                )
                continue
            records.append(self.verify(instance))
        return records

    def start(self) -> "Future[List[VerificationRecord]]":
        """Runs verification in a background worker; cancel() aborts it."""
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="verification")
        future = executor.submit(self.run)
        executor.shutdown(wait=False)
        return future
