"""
Handlers of script cheatcodes.
Handlers of transactions consult the state file first and record their outcome after
the transaction is accepted, so a re-run script skips what already succeeded.
"""

import logging
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional, Union

from .account import Account, Call
from .chain_client import ChainError
from .hashing import generate_declare_tx_id, generate_deploy_tx_id, generate_invoke_tx_id
from .responses import (
    AlreadyDeclaredResponse,
    CallResponse,
    ContractArtifactsNotFound,
    DeclareResponse,
    InvokeResponse,
    NonceResponse,
    ProviderError,
    ScriptCommandError,
    ScriptResponse,
)
from .serde import BufferReader, FeeSettings, serialize_result
from .util import AccountNotDefinedError

if TYPE_CHECKING:
    from .script import ScriptExecutionContext

logger = logging.getLogger(__name__)

Outcome = Union[ScriptResponse, ScriptCommandError]


def provider_error_from(error: ChainError) -> ProviderError:
    """Converts a failure of the chain client to the error returned to the script"""
    if error.rate_limited:
        return ProviderError(error.message, kind=ProviderError.RATE_LIMITED)
    if error.rpc_code is not None:
        return ProviderError(
            error.message, kind=ProviderError.STARKNET_ERROR, code=error.rpc_code
        )
    return ProviderError(error.message, kind=ProviderError.UNKNOWN)


def _to_result(outcome: Outcome) -> List[int]:
    if isinstance(outcome, ScriptCommandError):
        return serialize_result(err=outcome.to_felts())
    return serialize_result(ok=outcome.to_felts())


class CheatcodeHandlers:
    """
    Each handler decodes its arguments from the reader, performs the operation and
    returns the serialized `Result` written back to the script.
    """

    def __init__(self, context: "ScriptExecutionContext"):
        self.context = context

    def _account(self) -> Account:
        if self.context.account is None:
            raise AccountNotDefinedError()
        return self.context.account

    def _max_fee(self, fee_settings: FeeSettings) -> int:
        if fee_settings.max_fee is None:
            return self.context.max_fee
        return fee_settings.max_fee

    def _run(self, coroutine: Awaitable[ScriptResponse]) -> Outcome:
        """Drives the operation to completion; returns its response or the error for the script"""
        try:
            return self.context.block_on(coroutine)
        except ScriptCommandError as error:
            return error
        except ChainError as error:
            return provider_error_from(error)

    def _execute(self, coroutine: Awaitable[ScriptResponse]) -> List[int]:
        return _to_result(self._run(coroutine))

    def _execute_tracked(
        self,
        tx_id: str,
        selector: str,
        operation: Callable[[Account], Awaitable[ScriptResponse]],
    ) -> List[int]:
        recorded = self.context.store.lookup(tx_id)
        if recorded is not None:
            logger.info("Skipping %s %s: already succeeded", selector, tx_id)
            return _to_result(recorded)

        outcome = self._run(operation(self._account()))
        if isinstance(outcome, ScriptCommandError):
            # not recorded, so the next run retries it
            logger.warning("%s %s failed: %s", selector, tx_id, outcome.message)
        else:
            self.context.store.record(tx_id, selector, outcome)
        return _to_result(outcome)

    def call(self, input_reader: BufferReader) -> List[int]:
        """Calls a contract function without a transaction; never cached"""
        contract_address = input_reader.read_felt()
        function_selector = input_reader.read_felt()
        calldata = input_reader.read_array()
        input_reader.assert_consumed()

        async def _call():
            data = await self.context.client.call(
                contract_address, function_selector, calldata, block_id="pending"
            )
            return CallResponse(data=data)

        return self._execute(_call())

    def declare(self, input_reader: BufferReader) -> List[int]:
        """Declares a contract of the package, identified by its name"""
        contract_name = input_reader.read_byte_array()
        fee_settings = input_reader.read_fee_settings()
        nonce = input_reader.read_option(input_reader.read_felt)
        input_reader.assert_consumed()

        async def _declare(account: Account):
            artifacts = self.context.artifacts.get(contract_name)
            if artifacts is None:
                raise ContractArtifactsNotFound(
                    f"Failed to find {contract_name} artifact in starknet_artifacts.json "
                    "file. Please make sure you have specified correct package using "
                    "`--package` flag."
                )

            client = self.context.client
            class_hash = artifacts.class_hash
            if await client.is_class_declared(class_hash):
                logger.info("Class %s is already declared", hex(class_hash))
                return AlreadyDeclaredResponse(class_hash=class_hash)

            transaction_hash = await client.declare(
                account, artifacts, self._max_fee(fee_settings), nonce
            )
            await client.wait_for_tx(transaction_hash, self.context.wait_params)
            return DeclareResponse(class_hash=class_hash, transaction_hash=transaction_hash)

        return self._execute_tracked(
            generate_declare_tx_id(contract_name), "declare", _declare
        )

    def deploy(self, input_reader: BufferReader) -> List[int]:
        """Deploys a declared class through the Universal Deployer Contract"""
        class_hash = input_reader.read_felt()
        constructor_calldata = input_reader.read_array()
        salt: Optional[int] = input_reader.read_option(input_reader.read_felt)
        unique = input_reader.read_bool()
        fee_settings = input_reader.read_fee_settings()
        nonce = input_reader.read_option(input_reader.read_felt)
        input_reader.assert_consumed()

        async def _deploy(account: Account):
            client = self.context.client
            response = await client.deploy(
                account,
                class_hash,
                constructor_calldata,
                salt,
                unique,
                self._max_fee(fee_settings),
                nonce,
            )
            await client.wait_for_tx(response.transaction_hash, self.context.wait_params)
            return response

        return self._execute_tracked(
            generate_deploy_tx_id(class_hash, constructor_calldata, salt, unique),
            "deploy",
            _deploy,
        )

    def invoke(self, input_reader: BufferReader) -> List[int]:
        """Sends a transaction calling a contract function"""
        contract_address = input_reader.read_felt()
        function_selector = input_reader.read_felt()
        calldata = input_reader.read_array()
        fee_settings = input_reader.read_fee_settings()
        nonce = input_reader.read_option(input_reader.read_felt)
        input_reader.assert_consumed()

        async def _invoke(account: Account):
            client = self.context.client
            transaction_hash = await client.invoke(
                account,
                [Call(to=contract_address, selector=function_selector, calldata=calldata)],
                self._max_fee(fee_settings),
                nonce,
            )
            await client.wait_for_tx(transaction_hash, self.context.wait_params)
            return InvokeResponse(transaction_hash=transaction_hash)

        return self._execute_tracked(
            generate_invoke_tx_id(contract_address, function_selector, calldata),
            "invoke",
            _invoke,
        )

    def get_nonce(self, input_reader: BufferReader) -> List[int]:
        """
        Returns the nonce of the script account at the given block as a bare felt.
        Failures of the chain end the run.
        """
        block_id = input_reader.read_short_string()
        input_reader.assert_consumed()
        account = self._account()

        nonce = self.context.block_on(
            self.context.client.get_nonce(block_id, account.address)
        )
        return NonceResponse(nonce=nonce).to_felts()

    def tx_status(self, input_reader: BufferReader) -> List[int]:
        """Returns the status of a transaction; never cached"""
        transaction_hash = input_reader.read_felt()
        input_reader.assert_consumed()
        return self._execute(self.context.client.get_transaction_status(transaction_hash))
