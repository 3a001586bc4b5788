import pytest
from eth_utils import to_checksum_address

from synthdeploy.compiler import Compiler, contract_name_from_path
from synthdeploy.config import ContractsConfig, Settings
from synthdeploy.constants import PASS_VERIFIED
from synthdeploy.deployer import Deployer
from synthdeploy.explorer import ExplorerError
from synthdeploy.ledger import Deployment, LedgerClient
from synthdeploy.linker import _label
from synthdeploy.registry import DeploymentRegistry
from synthdeploy.types import CompiledArtifact

# Common constants
DEPLOYER_ADDRESS = to_checksum_address("0x" + "de" * 20)
SOLC_VERSION = "0.4.25+commit.59dbf8f1"
GUID = "ezq878u486pzijkvvmerl6a9mzwhv6sefgvqi5tkwceejc7tvn"


# Utility functions
def address(n):
    return to_checksum_address(f"0x{n:040x}")


def make_settings(**overrides):
    values = dict(
        network="testnet",
        chain_id=1337,
        verify_contracts=False,
        save_flattened_contracts=False,
        libraries=[],
        skip_verification=[],
        synths=[],
        poll_interval=0,
        max_poll_attempts=3,
    )
    values.update(overrides)
    return Settings(**values)


def make_artifact(name, bytecode="6080", link_references=None, abi=None):
    return CompiledArtifact(
        name=name,
        source_path=f"{name}.sol",
        abi=abi or [],
        bytecode=bytecode,
        link_references=link_references or {},
    )


def library_bytecode(body, library):
    """Bytecode with a legacy placeholder for the given library."""
    return body + _label(f"{library}.sol:{library}") + body


def contracts_config(actions):
    return ContractsConfig.from_dict(actions)


def fake_compile_backend(table, errors=()):
    """
    Returns a compile function emitting table[name] = (bytecode, link_references)
    for every source file named after a contract in the table.
    """

    def compile_standard(input_data, solc_version=None):
        compile_standard.inputs.append(input_data)
        contracts = dict()
        for source_path in input_data["sources"]:
            name = contract_name_from_path(source_path)
            if name not in table:
                continue
            bytecode, link_references = table[name]
            contracts[source_path] = {
                name: {
                    "abi": [{"type": "constructor", "inputs": []}],
                    "evm": {"bytecode": {"object": bytecode, "linkReferences": link_references}},
                }
            }
        return {"contracts": contracts, "errors": list(errors)}

    compile_standard.inputs = list()
    return compile_standard


def fake_compiler(table, errors=()):
    return Compiler(
        compile_standard=fake_compile_backend(table, errors),
        get_version=lambda solc_version: SOLC_VERSION,
    )


class FakeContract:
    def __init__(self, name, address):
        self.name = name
        self.address = address


class FakeLedger(LedgerClient):
    """Assigns sequential addresses and records every transaction."""

    def __init__(self, start=0x1000):
        self._next = start
        self.deployments = list()
        self.calls = list()
        self.bound = list()

    @property
    def address(self):
        return DEPLOYER_ADDRESS

    @property
    def transactions(self):
        return self.deployments + self.calls

    def deploy_contract(self, name, abi, bytecode, constructor_args, params):
        contract_address = address(self._next)
        tx_hash = f"0x{self._next:064x}"
        self._next += 1
        self.deployments.append((name, bytecode, list(constructor_args), params))
        return Deployment(
            address=contract_address,
            tx_hash=tx_hash,
            contract=FakeContract(name, contract_address),
        )

    def bind(self, name, abi, address):
        self.bound.append((name, address))
        return FakeContract(name, address)

    def invoke(self, contract, method, args, params):
        self.calls.append((contract.name, contract.address, method, list(args)))
        return None


class FakeExplorer:
    """Scripted explorer answers; counts every request."""

    def __init__(
        self,
        verified=(),
        statuses=(PASS_VERIFIED,),
        submit_result=None,
        creation_inputs=None,
    ):
        self.verified = set(verified)
        self.statuses = list(statuses)
        self.submit_result = submit_result or {"status": "1", "message": "OK", "result": GUID}
        self.creation_inputs = creation_inputs or dict()
        self.abi_requests = list()
        self.submissions = list()
        self.status_checks = 0

    def is_verified(self, address):
        self.abi_requests.append(address)
        return address in self.verified

    def get_creation_input(self, address):
        try:
            return self.creation_inputs[address]
        except KeyError:
            raise ExplorerError(f"Could not find contract creation transaction for {address}")

    def submit_verification(self, **payload):
        self.submissions.append(payload)
        return self.submit_result

    def check_verification_status(self, guid):
        self.status_checks += 1
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]


# Fixtures
@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def registry():
    return DeploymentRegistry()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def deployer_factory(ledger, registry):
    def factory(contracts, artifacts, **settings_overrides):
        return Deployer(
            contracts=contracts_config(contracts),
            artifacts={artifact.name: artifact for artifact in artifacts},
            registry=registry,
            ledger=ledger,
            settings=make_settings(**settings_overrides),
        )

    return factory
