"""
Fakes of the chain and of the interpreter, and builders of cheatcode arguments.
"""

import itertools
from typing import Callable, List, Optional, Sequence

from starknet_devtools.account import Account
from starknet_devtools.chain_client import ChainClient
from starknet_devtools.interpreter import (
    AssembledProgram,
    EntryCodeConfig,
    Hint,
    RunResult,
    ScriptFunction,
    ScriptProgram,
    WrapperInfo,
)
from starknet_devtools.responses import TransactionStatusResponse
from starknet_devtools.serde import serialize_byte_array, serialize_option

from .shared import (
    ACCOUNT_ADDRESS,
    ACCOUNT_PRIVATE_KEY,
    FIRST_TX_HASH,
    SCRIPT_FUNCTION,
    SEPOLIA_CHAIN_ID,
)

ACCEPTED = TransactionStatusResponse(
    finality_status="ACCEPTED_ON_L2", execution_status="SUCCEEDED"
)


def make_account() -> Account:
    """Account used by the scripts under test"""
    return Account(address=ACCOUNT_ADDRESS, private_key=ACCOUNT_PRIVATE_KEY)


class FakeArtifacts:
    """Stands in for ContractArtifacts where only the class hash matters"""

    def __init__(self, class_hash: int):
        self.class_hash = class_hash
        self.sierra = "{}"


class FakeChainClient(ChainClient):
    """
    In-memory chain. Records every request; transactions are accepted unless
    `failure` is set or a status is configured in `statuses`.
    """

    def __init__(self, chain_id: int = SEPOLIA_CHAIN_ID):
        self.chain_id = chain_id
        self.declared_classes = set()
        self.statuses = {}
        self.nonces = {}
        self.call_result: List[int] = []
        self.failure: Optional[Exception] = None
        self.sent = []
        self.calls = []
        self.status_queries = []
        self.__tx_hashes = itertools.count(FIRST_TX_HASH)

    def sent_kinds(self) -> List[str]:
        """Kinds of the transactions sent so far"""
        return [kind for kind, _ in self.sent]

    def _send(self, kind: str, details: dict) -> int:
        if self.failure is not None:
            raise self.failure
        self.sent.append((kind, details))
        return next(self.__tx_hashes)

    async def call(self, contract_address, function_selector, calldata, block_id="pending"):
        if self.failure is not None:
            raise self.failure
        self.calls.append((contract_address, function_selector, list(calldata), block_id))
        return list(self.call_result)

    async def get_nonce(self, block_id, contract_address):
        if self.failure is not None:
            raise self.failure
        return self.nonces.get((block_id, contract_address), 0)

    async def get_transaction_status(self, transaction_hash):
        self.status_queries.append(transaction_hash)
        return self.statuses.get(transaction_hash, ACCEPTED)

    async def get_chain_id(self):
        return self.chain_id

    async def is_class_declared(self, class_hash):
        return class_hash in self.declared_classes

    async def declare(self, account, artifacts, max_fee, nonce=None):
        transaction_hash = self._send(
            "declare",
            {"class_hash": artifacts.class_hash, "max_fee": max_fee, "nonce": nonce},
        )
        self.declared_classes.add(artifacts.class_hash)
        return transaction_hash

    async def invoke(self, account, calls, max_fee, nonce=None):
        return self._send(
            "invoke",
            {"calls": list(calls), "max_fee": max_fee, "nonce": nonce, "sender": account.address},
        )


class FakeProgram(ScriptProgram):
    """
    Script program whose run is the `body` callable. The body receives the runtime
    and issues cheatcodes against it like the interpreter would on hint traps.
    """

    def __init__(
        self,
        body: Callable[..., RunResult],
        function_names: Sequence[str] = (SCRIPT_FUNCTION,),
        builtins: Sequence[str] = ("range_check",),
        param_types: Sequence[str] = (),
    ):
        self.body = body
        self.function_names = list(function_names)
        self.builtins = list(builtins)
        self.param_types = list(param_types)
        self.entry_code_config: Optional[EntryCodeConfig] = None
        self.assembled_with = None
        self.runs = []

    def find_function(self, name_suffix):
        for name in self.function_names:
            if name.endswith(name_suffix):
                return ScriptFunction(name=name, param_types=self.param_types)
        return None

    def create_wrapper_info(self, function, config):
        self.entry_code_config = config
        return WrapperInfo(header=[0x40780017FFF7FFF, 1], builtins=list(self.builtins))

    def assemble(self, header, footer):
        self.assembled_with = (list(header), list(footer))
        return AssembledProgram(
            bytecode=[*header, 0x1104800180018000, *footer],
            hints=[(2, [Hint("cheatcode")]), (3, [Hint("syscall"), Hint("cheatcode")])],
        )

    def run_function(self, function, runtime, hints_dict, bytecode, builtins):
        self.runs.append(
            {
                "function": function,
                "runtime": runtime,
                "hints_dict": hints_dict,
                "bytecode": bytecode,
                "builtins": builtins,
            }
        )
        return self.body(runtime)


def returning(*values: int) -> Callable[..., RunResult]:
    """Body of a script which returns `values` without any cheatcodes"""
    return lambda runtime: RunResult(panicked=False, values=list(values))


def _optional(value: Optional[int]) -> List[int]:
    return serialize_option(None if value is None else [value])


def call_args(contract_address: int, selector: int, calldata: List[int]) -> List[int]:
    """Arguments of the `call` cheatcode"""
    return [contract_address, selector, len(calldata), *calldata]


def declare_args(
    contract_name: str, max_fee: Optional[int] = None, nonce: Optional[int] = None
) -> List[int]:
    """Arguments of the `declare` cheatcode"""
    return [*serialize_byte_array(contract_name), *_optional(max_fee), *_optional(nonce)]


# pylint: disable=too-many-arguments
def deploy_args(
    class_hash: int,
    constructor_calldata: List[int],
    salt: Optional[int] = None,
    unique: bool = False,
    max_fee: Optional[int] = None,
    nonce: Optional[int] = None,
) -> List[int]:
    """Arguments of the `deploy` cheatcode"""
    return [
        class_hash,
        len(constructor_calldata),
        *constructor_calldata,
        *_optional(salt),
        int(unique),
        *_optional(max_fee),
        *_optional(nonce),
    ]


def invoke_args(
    contract_address: int,
    selector: int,
    calldata: List[int],
    max_fee: Optional[int] = None,
    nonce: Optional[int] = None,
) -> List[int]:
    """Arguments of the `invoke` cheatcode"""
    return [
        *call_args(contract_address, selector, calldata),
        *_optional(max_fee),
        *_optional(nonce),
    ]
