import pytest

from synthdeploy.constants import ALREADY_VERIFIED, FAIL_UNABLE_TO_VERIFY, PASS_VERIFIED
from synthdeploy.types import ContractIdentifier, DeployedInstance, VerificationStatus
from synthdeploy.verification import (
    ConstructorArgumentsNotFound,
    RetryPolicy,
    VerificationPoller,
    extract_constructor_arguments,
)
from tests.conftest import SOLC_VERSION, FakeExplorer, address

PENDING = "Pending in queue"


def bytecode(seed):
    return "6080" + "".join(f"{(seed + i) % 256:02x}" for i in range(40))


LIBRARY_BYTECODE = bytecode(0x10)
DEPOT_BYTECODE = bytecode(0x80)
CONSTRUCTOR_ARGS = "00" * 12 + "de" * 20

FLATTENED = {
    "SafeDecimalMath.sol": "library SafeDecimalMath {}\n",
    "Depot.sol": "contract Depot {}\n",
    "ExchangeRates.sol": "contract ExchangeRates {}\n",
}


def instance(name, n, bytecode):
    return DeployedInstance(
        identifier=ContractIdentifier(name),
        address=address(n),
        abi=[],
        bytecode=bytecode,
        is_new=True,
    )


@pytest.fixture
def depot(registry):
    return registry.add(instance("Depot", 2, DEPOT_BYTECODE))


def creation_inputs(*instances):
    return {i.address: f"0x{i.bytecode}{CONSTRUCTOR_ARGS}" for i in instances}


def poller(registry, explorer, **kwargs):
    kwargs.setdefault("policy", RetryPolicy(interval=0, max_attempts=3))
    return VerificationPoller(
        explorer=explorer,
        registry=registry,
        flattened=FLATTENED,
        compiler_version=f"v{SOLC_VERSION}",
        **kwargs,
    )


def statuses(records):
    return [record.status for record in records]


def test_extract_constructor_arguments():
    bytecode = "60806040" + "12" * 30
    creation_input = f"0x{bytecode}{CONSTRUCTOR_ARGS}"
    assert extract_constructor_arguments(creation_input, bytecode) == CONSTRUCTOR_ARGS
    assert extract_constructor_arguments(f"0x{bytecode}", bytecode) == ""


def test_extract_constructor_arguments_repeated_tail():
    # metadata tails repeated inside the code must not cut the arguments short
    tail = "a165627a7a72305820" + "ab" * 16
    assert len(tail) == 50
    bytecode = "6080" + tail + "6040" + tail
    creation_input = f"0x{bytecode}{CONSTRUCTOR_ARGS}"
    assert extract_constructor_arguments(creation_input, bytecode) == CONSTRUCTOR_ARGS

    # differently linked code: only the trailing characters match
    relinked = "6080" + tail + "6041" + tail
    creation_input = f"0x{relinked}{CONSTRUCTOR_ARGS}"
    assert extract_constructor_arguments(creation_input, bytecode) == CONSTRUCTOR_ARGS


def test_extract_constructor_arguments_after_padding():
    suffix = bytecode(0x40)[-50:]
    creation_input = f"0x{'00' * 7}{suffix}{CONSTRUCTOR_ARGS}"
    assert extract_constructor_arguments(creation_input, "ff" + suffix) == CONSTRUCTOR_ARGS


def test_extract_constructor_arguments_not_found():
    with pytest.raises(ConstructorArgumentsNotFound):
        extract_constructor_arguments("0x6080", "60806040" + "12" * 30)


def test_already_verified(registry, depot):
    explorer = FakeExplorer(verified={depot.address})
    records = poller(registry, explorer).run()

    assert statuses(records) == [VerificationStatus.ALREADY_VERIFIED]
    assert explorer.submissions == []


def test_submit_and_poll(registry, depot):
    explorer = FakeExplorer(
        statuses=(PENDING, PASS_VERIFIED), creation_inputs=creation_inputs(depot)
    )
    records = poller(registry, explorer).run()

    assert statuses(records) == [VerificationStatus.NEWLY_VERIFIED]
    assert explorer.status_checks == 2

    payload = explorer.submissions[0]
    assert payload["contractaddress"] == depot.address
    assert payload["contractname"] == "Depot"
    assert payload["sourceCode"] == FLATTENED["Depot.sol"]
    assert payload["constructorArguements"] == CONSTRUCTOR_ARGS
    assert payload["compilerversion"] == f"v{SOLC_VERSION}"
    assert payload["optimizationUsed"] == 1
    assert payload["runs"] == 200


def test_failed_verification_stops_polling(registry, depot):
    explorer = FakeExplorer(
        statuses=(FAIL_UNABLE_TO_VERIFY, PENDING, PASS_VERIFIED),
        creation_inputs=creation_inputs(depot),
    )
    (record,) = poller(registry, explorer).run()

    assert record.status == VerificationStatus.UNABLE_TO_VERIFY
    assert record.reason == FAIL_UNABLE_TO_VERIFY
    assert explorer.status_checks == 1


def test_submission_races_earlier_submission(registry, depot):
    explorer = FakeExplorer(
        submit_result={"status": "0", "message": "NOTOK", "result": ALREADY_VERIFIED},
        creation_inputs=creation_inputs(depot),
    )
    records = poller(registry, explorer).run()

    assert statuses(records) == [VerificationStatus.NEWLY_VERIFIED]
    assert explorer.status_checks == 0


def test_rejected_submission(registry, depot):
    explorer = FakeExplorer(
        submit_result={"status": "0", "message": "NOTOK", "result": "Invalid API Key"},
        creation_inputs=creation_inputs(depot),
    )
    (record,) = poller(registry, explorer).run()

    assert record.status == VerificationStatus.UNABLE_TO_VERIFY
    assert record.reason == "Invalid API Key"
    assert explorer.status_checks == 0


def test_polling_is_bounded(registry, depot):
    explorer = FakeExplorer(statuses=(PENDING,), creation_inputs=creation_inputs(depot))
    (record,) = poller(registry, explorer).run()

    assert record.status == VerificationStatus.UNABLE_TO_VERIFY
    assert "still pending after 3" in record.reason
    assert explorer.status_checks == 3


def test_missing_creation_transaction_moves_on(registry):
    first = registry.add(instance("Depot", 2, DEPOT_BYTECODE))
    second = registry.add(instance("ExchangeRates", 3, DEPOT_BYTECODE))
    explorer = FakeExplorer(creation_inputs=creation_inputs(second))

    records = poller(registry, explorer).run()
    assert [r.identifier for r in records] == [first.identifier, second.identifier]
    assert statuses(records) == [
        VerificationStatus.UNABLE_TO_VERIFY,
        VerificationStatus.NEWLY_VERIFIED,
    ]
    assert len(explorer.submissions) == 1


def test_libraries(registry):
    library = registry.add(instance("SafeDecimalMath", 1, LIBRARY_BYTECODE))
    depot = registry.add(instance("Depot", 2, DEPOT_BYTECODE))
    explorer = FakeExplorer(creation_inputs=creation_inputs(depot))

    records = poller(registry, explorer, libraries=["SafeDecimalMath"]).run()
    assert statuses(records) == [VerificationStatus.NEWLY_VERIFIED] * 2

    library_payload, depot_payload = explorer.submissions
    assert library_payload["constructorArguements"] == ""
    assert depot_payload["libraryname1"] == "SafeDecimalMath"
    assert depot_payload["libraryaddress1"] == library.address


def test_skip_list(registry, depot):
    rates = registry.add(instance("ExchangeRates", 3, DEPOT_BYTECODE))
    explorer = FakeExplorer(verified={depot.address})

    records = poller(registry, explorer, skip=["ExchangeRates"]).run()
    assert statuses(records) == [
        VerificationStatus.ALREADY_VERIFIED,
        VerificationStatus.SKIPPED,
    ]
    assert explorer.abi_requests == [depot.address]
    assert rates.address not in explorer.abi_requests


def test_disabled(registry, depot):
    explorer = FakeExplorer()
    records = poller(registry, explorer, enabled=False).run()

    assert statuses(records) == [VerificationStatus.SKIPPED]
    assert explorer.abi_requests == []
    assert explorer.submissions == []


def test_cancelled(registry, depot):
    explorer = FakeExplorer()
    verifier = poller(registry, explorer)
    verifier.cancel()

    (record,) = verifier.run()
    assert record.status == VerificationStatus.SKIPPED
    assert record.reason == "verification cancelled"
    assert explorer.abi_requests == []


def test_background_verification(registry, depot):
    explorer = FakeExplorer(verified={depot.address})
    future = poller(registry, explorer).start()

    records = future.result(timeout=10)
    assert statuses(records) == [VerificationStatus.ALREADY_VERIFIED]
