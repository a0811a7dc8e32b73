"""
Test cheatcode handlers against an in-memory chain
"""

import json

import pytest

from starknet_devtools.chain_client import ChainError
from starknet_devtools.constants import DEFAULT_MAX_FEE, UDC_ADDRESS, UDC_DEPLOY_SELECTOR
from starknet_devtools.handlers import CheatcodeHandlers
from starknet_devtools.hashing import (
    generate_declare_tx_id,
    generate_deploy_tx_id,
    generate_invoke_tx_id,
)
from starknet_devtools.responses import (
    DeclareResponse,
    InvokeResponse,
    ProviderError,
    TransactionStatusResponse,
    WaitForTransactionError,
)
from starknet_devtools.script import ScriptExecutionContext
from starknet_devtools.serde import BufferReader, serialize_byte_array
from starknet_devtools.state_file import FileTransactionStore
from starknet_devtools.util import (
    AccountNotDefinedError,
    CheatcodeDecodeError,
    str_to_felt,
)

from .shared import (
    ACCOUNT_ADDRESS,
    CONTRACT_ADDRESS,
    FIRST_TX_HASH,
    FUNCTION_SELECTOR,
    TOKEN_CLASS_HASH,
    TOKEN_CONTRACT_NAME,
)
from .util import (
    FakeChainClient,
    call_args,
    declare_args,
    deploy_args,
    invoke_args,
    make_account,
)

OK = 0
ERR = 1


def handle(context, selector, args):
    """Runs the handler of `selector` like the dispatcher does"""
    handlers = CheatcodeHandlers(context)
    return getattr(handlers, selector)(BufferReader(args))


@pytest.mark.cheatcodes
def test_declare_then_skip_on_rerun(context, chain, artifacts, state_file_path):
    """A second run with the same state file does not contact the chain"""
    first = handle(context, "declare", declare_args(TOKEN_CONTRACT_NAME))

    assert first == [OK, 0, TOKEN_CLASS_HASH, FIRST_TX_HASH]
    assert chain.sent_kinds() == ["declare"]
    store = FileTransactionStore(state_file_path)
    assert store.lookup(generate_declare_tx_id(TOKEN_CONTRACT_NAME)) == DeclareResponse(
        class_hash=TOKEN_CLASS_HASH, transaction_hash=FIRST_TX_HASH
    )

    second_chain = FakeChainClient()
    with ScriptExecutionContext(
        client=second_chain, artifacts=artifacts, store=store, account=make_account()
    ) as second_context:
        second = handle(second_context, "declare", declare_args(TOKEN_CONTRACT_NAME))

    assert second == first
    assert second_chain.sent == []
    assert second_chain.status_queries == []


@pytest.mark.cheatcodes
def test_declare_over_failed_entry(context, chain, state_file_path):
    """A failed attempt left in the state file is sent again and then recorded"""
    tx_id = generate_declare_tx_id(TOKEN_CONTRACT_NAME)
    with open(state_file_path, mode="w", encoding="utf-8") as state_file:
        json.dump(
            {
                "version": 1,
                "transactions": {
                    tx_id: {"name": "declare", "output": {"error": "reverted"}, "status": "error"}
                },
            },
            state_file,
        )
    store = FileTransactionStore(state_file_path)

    with ScriptExecutionContext(
        client=chain, artifacts=context.artifacts, store=store, account=make_account()
    ) as retry_context:
        result = handle(retry_context, "declare", declare_args(TOKEN_CONTRACT_NAME))

    assert result == [OK, 0, TOKEN_CLASS_HASH, FIRST_TX_HASH]
    assert chain.sent_kinds() == ["declare"]
    assert FileTransactionStore(state_file_path).lookup(tx_id) == DeclareResponse(
        class_hash=TOKEN_CLASS_HASH, transaction_hash=FIRST_TX_HASH
    )


@pytest.mark.cheatcodes
def test_declare_waits_for_acceptance(context, chain):
    """The declare transaction is polled until accepted"""
    handle(context, "declare", declare_args(TOKEN_CONTRACT_NAME))

    assert chain.status_queries == [FIRST_TX_HASH]


@pytest.mark.cheatcodes
def test_declare_uses_fee_and_nonce(context, chain):
    """Max fee and nonce from the script are passed on; the default fee is used otherwise"""
    handle(context, "declare", declare_args(TOKEN_CONTRACT_NAME, max_fee=123, nonce=4))

    _, details = chain.sent[0]
    assert details["max_fee"] == 123
    assert details["nonce"] == 4


@pytest.mark.cheatcodes
def test_declare_of_declared_class(context, chain, state_file_path):
    """A class already on chain is reported and recorded as already declared"""
    chain.declared_classes.add(TOKEN_CLASS_HASH)

    result = handle(context, "declare", declare_args(TOKEN_CONTRACT_NAME))

    assert result == [OK, 1, TOKEN_CLASS_HASH]
    assert chain.sent == []
    assert FileTransactionStore(state_file_path).lookup(
        generate_declare_tx_id(TOKEN_CONTRACT_NAME)
    ) is not None


@pytest.mark.cheatcodes
def test_declare_of_unknown_contract(context, chain, state_file_path):
    """A contract missing from the artifacts is an error value, not a crash"""
    result = handle(context, "declare", declare_args("Missing"))

    assert result[:2] == [ERR, 1]
    assert chain.sent == []
    assert FileTransactionStore(state_file_path).lookup(generate_declare_tx_id("Missing")) is None


@pytest.mark.cheatcodes
def test_failure_is_not_recorded(context, chain, artifacts, state_file_path):
    """A failed transaction is retried by the next run"""
    chain.failure = ChainError("Node is down")

    result = handle(context, "declare", declare_args(TOKEN_CONTRACT_NAME))

    message = serialize_byte_array("Node is down")
    assert result == [ERR, 3, ProviderError.UNKNOWN, *message]
    store = FileTransactionStore(state_file_path)
    assert store.lookup(generate_declare_tx_id(TOKEN_CONTRACT_NAME)) is None

    retry_chain = FakeChainClient()
    with ScriptExecutionContext(
        client=retry_chain, artifacts=artifacts, store=store, account=make_account()
    ) as retry_context:
        retried = handle(retry_context, "declare", declare_args(TOKEN_CONTRACT_NAME))

    assert retried[0] == OK
    assert retry_chain.sent_kinds() == ["declare"]


@pytest.mark.cheatcodes
def test_reverted_transaction_is_not_recorded(context, chain, state_file_path):
    """A reverted invoke is returned as an error and not recorded"""
    chain.statuses[FIRST_TX_HASH] = TransactionStatusResponse(
        finality_status="ACCEPTED_ON_L2", execution_status="REVERTED"
    )

    result = handle(context, "invoke", invoke_args(CONTRACT_ADDRESS, FUNCTION_SELECTOR, [1]))

    expected_error = WaitForTransactionError(
        f"Transaction {hex(FIRST_TX_HASH)} has been reverted"
    )
    assert result == [ERR, *expected_error.to_felts()]
    assert FileTransactionStore(state_file_path).lookup(
        generate_invoke_tx_id(CONTRACT_ADDRESS, FUNCTION_SELECTOR, [1])
    ) is None


@pytest.mark.cheatcodes
@pytest.mark.parametrize(
    "chain_error, expected_payload",
    [
        (ChainError("Contract not found", rpc_code=20), [ProviderError.STARKNET_ERROR, 20]),
        (ChainError("Too many requests", rate_limited=True), [ProviderError.RATE_LIMITED]),
    ],
)
def test_chain_errors_are_provider_errors(context, chain, chain_error, expected_payload):
    """Errors of the node are returned to the script with their kind"""
    chain.failure = chain_error

    result = handle(context, "invoke", invoke_args(CONTRACT_ADDRESS, FUNCTION_SELECTOR, []))

    assert result[:2] == [ERR, 3]
    assert result[2 : 2 + len(expected_payload)] == expected_payload


@pytest.mark.cheatcodes
def test_deploy_unique_and_non_unique_are_separate(context, chain, state_file_path):
    """Deployments differing only in uniqueness are both sent and both recorded"""
    unique = handle(context, "deploy", deploy_args(TOKEN_CLASS_HASH, [1, 2], salt=0x5, unique=True))
    non_unique = handle(
        context, "deploy", deploy_args(TOKEN_CLASS_HASH, [1, 2], salt=0x5, unique=False)
    )

    assert unique[0] == OK and non_unique[0] == OK
    # deployed addresses differ
    assert unique[1] != non_unique[1]
    assert chain.sent_kinds() == ["invoke", "invoke"]

    store = FileTransactionStore(state_file_path)
    assert store.lookup(generate_deploy_tx_id(TOKEN_CLASS_HASH, [1, 2], 0x5, True)) is not None
    assert store.lookup(generate_deploy_tx_id(TOKEN_CLASS_HASH, [1, 2], 0x5, False)) is not None


@pytest.mark.cheatcodes
def test_deploy_calls_universal_deployer(context, chain):
    """Deployments are sent as calls of the Universal Deployer Contract"""
    handle(context, "deploy", deploy_args(TOKEN_CLASS_HASH, [1, 2], salt=0x5, unique=True))

    _, details = chain.sent[0]
    (udc_call,) = details["calls"]
    assert udc_call.to == UDC_ADDRESS
    assert udc_call.selector == UDC_DEPLOY_SELECTOR
    assert udc_call.calldata == [TOKEN_CLASS_HASH, 0x5, 1, 2, 1, 2]
    assert details["max_fee"] == DEFAULT_MAX_FEE
    assert details["sender"] == ACCOUNT_ADDRESS


@pytest.mark.cheatcodes
def test_invoke_is_skipped_on_rerun(context, chain):
    """The same invoke is sent once"""
    args = invoke_args(CONTRACT_ADDRESS, FUNCTION_SELECTOR, [7, 8], max_fee=99)

    first = handle(context, "invoke", args)
    second = handle(context, "invoke", args)

    assert first == second == [OK, *InvokeResponse(transaction_hash=FIRST_TX_HASH).to_felts()]
    assert chain.sent_kinds() == ["invoke"]
    _, details = chain.sent[0]
    (call,) = details["calls"]
    assert (call.to, call.selector, call.calldata) == (CONTRACT_ADDRESS, FUNCTION_SELECTOR, [7, 8])
    assert details["max_fee"] == 99


@pytest.mark.cheatcodes
def test_call_is_never_cached(context, chain, state_file_path):
    """Read-only calls always reach the chain and are not recorded"""
    chain.call_result = [10, 20]
    args = call_args(CONTRACT_ADDRESS, FUNCTION_SELECTOR, [1])

    assert handle(context, "call", args) == [OK, 2, 10, 20]
    assert handle(context, "call", args) == [OK, 2, 10, 20]
    assert len(chain.calls) == 2
    assert chain.calls[0] == (CONTRACT_ADDRESS, FUNCTION_SELECTOR, [1], "pending")

    with open(state_file_path, encoding="utf-8") as state_file:
        assert '"transactions": {}' in state_file.read()


@pytest.mark.cheatcodes
def test_get_nonce(context, chain):
    """The nonce of the script account is returned as a single felt"""
    chain.nonces[("latest", ACCOUNT_ADDRESS)] = 3

    assert handle(context, "get_nonce", [str_to_felt("latest")]) == [3]


@pytest.mark.cheatcodes
def test_get_nonce_failure_is_fatal(context, chain):
    """Chain failures while reading the nonce end the run"""
    chain.failure = ChainError("Too many requests", rate_limited=True)

    with pytest.raises(ChainError):
        handle(context, "get_nonce", [str_to_felt("pending")])


@pytest.mark.cheatcodes
def test_tx_status(context, chain):
    """Transaction status is read from the chain"""
    chain.statuses[0x77] = TransactionStatusResponse(finality_status="REJECTED")

    assert handle(context, "tx_status", [0x77]) == [OK, 1, 1]
    assert handle(context, "tx_status", [0x78]) == [OK, 2, 0, 0]


@pytest.mark.cheatcodes
def test_transactions_need_account(chain, artifacts):
    """Sending a transaction without an account ends the run"""
    with ScriptExecutionContext(client=chain, artifacts=artifacts) as context:
        with pytest.raises(AccountNotDefinedError):
            handle(context, "invoke", invoke_args(CONTRACT_ADDRESS, FUNCTION_SELECTOR, []))
        with pytest.raises(AccountNotDefinedError):
            handle(context, "get_nonce", [str_to_felt("pending")])

    assert chain.sent == []


@pytest.mark.cheatcodes
@pytest.mark.parametrize(
    "selector, args",
    [
        ("declare", serialize_byte_array(TOKEN_CONTRACT_NAME)),
        ("deploy", [TOKEN_CLASS_HASH, 1, 1, 1, 2, 1, 1]),
        ("invoke", [*invoke_args(CONTRACT_ADDRESS, FUNCTION_SELECTOR, []), 0]),
        ("call", [CONTRACT_ADDRESS, FUNCTION_SELECTOR, 5, 1]),
        ("tx_status", []),
    ],
)
def test_malformed_arguments_are_fatal(context, chain, selector, args):
    """Arguments not matching the layout of the cheatcode end the run"""
    with pytest.raises(CheatcodeDecodeError):
        handle(context, selector, args)

    assert chain.sent == []
    assert chain.calls == []
