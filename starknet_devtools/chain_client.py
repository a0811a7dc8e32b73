"""
Contains classes that provide access to the chain the scripts send transactions to.
"""
import asyncio
import itertools
import logging
import secrets
import time
from typing import Any, Callable, List, Optional

import aiohttp
from starkware.crypto.signature.fast_pedersen_hash import pedersen_hash
from starkware.starknet.core.os.contract_address.contract_address import (
    calculate_contract_address_from_hash,
)

from .account import Account, Call
from .artifacts import ContractArtifacts
from .config import WaitParams
from .constants import (
    FIELD_PRIME,
    SUPPORTED_DECLARE_TX_VERSION,
    SUPPORTED_TX_VERSION,
    UDC_ADDRESS,
    UDC_DEPLOY_SELECTOR,
)
from .responses import (
    DeployResponse,
    ExecutionStatus,
    FinalityStatus,
    TransactionStatusResponse,
    WaitForTransactionError,
)
from .util import ScriptErrorCode, StarknetDevtoolsException, to_hex_array, to_int_array

logger = logging.getLogger(__name__)

# JSON-RPC error codes of the Starknet API
CLASS_HASH_NOT_FOUND = 28
TXN_HASH_NOT_FOUND = 29

HTTP_TOO_MANY_REQUESTS = 429
DEFAULT_REQUEST_TIMEOUT = 60  # seconds


class ChainError(StarknetDevtoolsException):
    """
    Transport failure or a request refused by the node.
    `rpc_code` holds the JSON-RPC error code if the node replied with one.
    """

    def __init__(
        self, message: str, rpc_code: Optional[int] = None, rate_limited: bool = False
    ):
        super().__init__(code=ScriptErrorCode.CHAIN_ERROR, message=message)
        self.rpc_code = rpc_code
        self.rate_limited = rate_limited


def parse_result(method: str, result: Any, parse: Callable[[Any], Any]):
    """Applies `parse` to the result of `method`; a malformed result is a chain error"""
    try:
        return parse(result)
    except (TypeError, KeyError, ValueError, AttributeError) as error:
        raise ChainError(f"Invalid result of {method}: {result!r}") from error


def transaction_status_from(result: dict) -> TransactionStatusResponse:
    """Builds the status response, rejecting statuses unknown to scripts"""
    finality_status = result["finality_status"]
    execution_status = result.get("execution_status")
    if finality_status not in FinalityStatus.__members__:
        raise ValueError(f"Unknown finality status {finality_status}")
    if execution_status is not None and execution_status not in ExecutionStatus.__members__:
        raise ValueError(f"Unknown execution status {execution_status}")
    return TransactionStatusResponse(
        finality_status=finality_status, execution_status=execution_status
    )


def _transaction_hash(result: dict) -> int:
    return int(result["transaction_hash"], 16)


class ChainClient:
    """
    Abstraction of a Starknet node.
    """

    async def call(
        self,
        contract_address: int,
        function_selector: int,
        calldata: List[int],
        block_id: str = "pending",
    ) -> List[int]:
        """Calls the function without sending a transaction; returns its result"""
        raise NotImplementedError

    async def get_nonce(self, block_id: str, contract_address: int) -> int:
        """Returns the nonce of the contract at the given block"""
        raise NotImplementedError

    async def get_transaction_status(self, transaction_hash: int) -> TransactionStatusResponse:
        """Returns the finality and execution status of the transaction"""
        raise NotImplementedError

    async def get_chain_id(self) -> int:
        """Returns the chain id of the network"""
        raise NotImplementedError

    async def is_class_declared(self, class_hash: int) -> bool:
        """Returns True if a class with the hash is already declared"""
        raise NotImplementedError

    async def declare(
        self,
        account: Account,
        artifacts: ContractArtifacts,
        max_fee: int,
        nonce: Optional[int] = None,
    ) -> int:
        """Sends a declare transaction of the contract class; returns its hash"""
        raise NotImplementedError

    async def invoke(
        self,
        account: Account,
        calls: List[Call],
        max_fee: int,
        nonce: Optional[int] = None,
    ) -> int:
        """Sends an invoke transaction executing `calls`; returns its hash"""
        raise NotImplementedError

    # pylint: disable=too-many-arguments
    async def deploy(
        self,
        account: Account,
        class_hash: int,
        constructor_calldata: List[int],
        salt: Optional[int],
        unique: bool,
        max_fee: int,
        nonce: Optional[int] = None,
    ) -> DeployResponse:
        """
        Deploys the class through the Universal Deployer Contract.
        A random salt is used if none is given.
        """
        if salt is None:
            salt = secrets.randbelow(FIELD_PRIME)

        deploy_call = Call(
            to=UDC_ADDRESS,
            selector=UDC_DEPLOY_SELECTOR,
            calldata=[
                class_hash,
                salt,
                int(unique),
                len(constructor_calldata),
                *constructor_calldata,
            ],
        )
        transaction_hash = await self.invoke(account, [deploy_call], max_fee, nonce)

        if unique:
            address_salt = pedersen_hash(account.address, salt)
            deployer_address = UDC_ADDRESS
        else:
            address_salt = salt
            deployer_address = 0

        contract_address = calculate_contract_address_from_hash(
            salt=address_salt,
            class_hash=class_hash,
            constructor_calldata=constructor_calldata,
            deployer_address=deployer_address,
        )
        return DeployResponse(
            contract_address=contract_address, transaction_hash=transaction_hash
        )

    async def wait_for_tx(
        self, transaction_hash: int, wait_params: WaitParams
    ) -> TransactionStatusResponse:
        """
        Polls the transaction status until it is accepted.
        Raises WaitForTransactionError if it is rejected, reverted or the time runs out.
        """
        deadline = time.monotonic() + wait_params.timeout
        while True:
            try:
                status = await self.get_transaction_status(transaction_hash)
            except ChainError as error:
                # the node may not know the transaction yet
                if error.rpc_code != TXN_HASH_NOT_FOUND:
                    raise
                status = None

            if status is not None:
                if status.finality_status == FinalityStatus.REJECTED.name:
                    raise WaitForTransactionError(
                        f"Transaction {hex(transaction_hash)} has been rejected"
                    )
                if status.execution_status == ExecutionStatus.REVERTED.name:
                    raise WaitForTransactionError(
                        f"Transaction {hex(transaction_hash)} has been reverted"
                    )
                if status.finality_status in (
                    FinalityStatus.ACCEPTED_ON_L2.name,
                    FinalityStatus.ACCEPTED_ON_L1.name,
                ):
                    return status

            if time.monotonic() >= deadline:
                raise WaitForTransactionError(timed_out=True)
            logger.debug(
                "Waiting for transaction %s to be accepted", hex(transaction_hash)
            )
            await asyncio.sleep(wait_params.retry_interval)


class RpcChainClient(ChainClient):
    """
    Talks to a node through the Starknet JSON-RPC API.
    """

    def __init__(self, url: str, request_timeout: int = DEFAULT_REQUEST_TIMEOUT):
        self.url = url
        self.__request_timeout = request_timeout
        self.__request_ids = itertools.count()
        self.__chain_id: Optional[int] = None

    async def _rpc_request(self, method: str, params: dict):
        payload = {
            "jsonrpc": "2.0",
            "id": next(self.__request_ids),
            "method": method,
            "params": params,
        }
        timeout = aiohttp.ClientTimeout(total=self.__request_timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.url, json=payload) as response:
                    if response.status == HTTP_TOO_MANY_REQUESTS:
                        raise ChainError(
                            f"Request {method} rate limited by {self.url}",
                            rate_limited=True,
                        )
                    body = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as error:
            raise ChainError(
                f"Failed to send {method} request to {self.url}: {error}"
            ) from error

        if not isinstance(body, dict):
            raise ChainError(f"Invalid response to {method}: {body!r}")
        if "error" in body:
            error = body["error"]
            if not isinstance(error, dict):
                raise ChainError(f"Invalid error in response to {method}: {error!r}")
            message = error.get("message", "")
            if "data" in error:
                message += f": {error['data']}"
            raise ChainError(message, rpc_code=error.get("code"))
        return body.get("result")

    async def call(
        self,
        contract_address: int,
        function_selector: int,
        calldata: List[int],
        block_id: str = "pending",
    ) -> List[int]:
        result = await self._rpc_request(
            "starknet_call",
            {
                "request": {
                    "contract_address": hex(contract_address),
                    "entry_point_selector": hex(function_selector),
                    "calldata": to_hex_array(calldata),
                },
                "block_id": block_id,
            },
        )
        return parse_result("starknet_call", result, to_int_array)

    async def get_nonce(self, block_id: str, contract_address: int) -> int:
        result = await self._rpc_request(
            "starknet_getNonce",
            {"block_id": block_id, "contract_address": hex(contract_address)},
        )
        return parse_result("starknet_getNonce", result, lambda nonce: int(nonce, 16))

    async def get_transaction_status(self, transaction_hash: int) -> TransactionStatusResponse:
        result = await self._rpc_request(
            "starknet_getTransactionStatus",
            {"transaction_hash": hex(transaction_hash)},
        )
        return parse_result(
            "starknet_getTransactionStatus", result, transaction_status_from
        )

    async def get_chain_id(self) -> int:
        if self.__chain_id is None:
            result = await self._rpc_request("starknet_chainId", {})
            self.__chain_id = parse_result(
                "starknet_chainId", result, lambda chain_id: int(chain_id, 16)
            )
        return self.__chain_id

    async def is_class_declared(self, class_hash: int) -> bool:
        try:
            await self._rpc_request(
                "starknet_getClass",
                {"block_id": "pending", "class_hash": hex(class_hash)},
            )
        except ChainError as error:
            if error.rpc_code == CLASS_HASH_NOT_FOUND:
                return False
            raise
        return True

    async def _resolve_nonce(self, account: Account, nonce: Optional[int]) -> int:
        if nonce is not None:
            return nonce
        return await self.get_nonce("pending", account.address)

    async def declare(
        self,
        account: Account,
        artifacts: ContractArtifacts,
        max_fee: int,
        nonce: Optional[int] = None,
    ) -> int:
        nonce = await self._resolve_nonce(account, nonce)
        class_hash = artifacts.class_hash
        compiled_class_hash = artifacts.compiled_class_hash
        transaction_hash = account.declare_transaction_hash(
            class_hash=class_hash,
            compiled_class_hash=compiled_class_hash,
            max_fee=max_fee,
            chain_id=await self.get_chain_id(),
            nonce=nonce,
        )

        logger.info("Declaring class %s", hex(class_hash))
        result = await self._rpc_request(
            "starknet_addDeclareTransaction",
            {
                "declare_transaction": {
                    "type": "DECLARE",
                    "version": hex(SUPPORTED_DECLARE_TX_VERSION),
                    "sender_address": hex(account.address),
                    "compiled_class_hash": hex(compiled_class_hash),
                    "max_fee": hex(max_fee),
                    "signature": to_hex_array(account.sign(transaction_hash)),
                    "nonce": hex(nonce),
                    "contract_class": artifacts.rpc_contract_class(),
                }
            },
        )
        return parse_result("starknet_addDeclareTransaction", result, _transaction_hash)

    async def invoke(
        self,
        account: Account,
        calls: List[Call],
        max_fee: int,
        nonce: Optional[int] = None,
    ) -> int:
        nonce = await self._resolve_nonce(account, nonce)
        calldata = Account.execute_calldata(calls)
        transaction_hash = account.invoke_transaction_hash(
            calldata=calldata,
            max_fee=max_fee,
            chain_id=await self.get_chain_id(),
            nonce=nonce,
        )

        logger.info("Sending invoke transaction from %s", hex(account.address))
        result = await self._rpc_request(
            "starknet_addInvokeTransaction",
            {
                "invoke_transaction": {
                    "type": "INVOKE",
                    "version": hex(SUPPORTED_TX_VERSION),
                    "sender_address": hex(account.address),
                    "calldata": to_hex_array(calldata),
                    "max_fee": hex(max_fee),
                    "signature": to_hex_array(account.sign(transaction_hash)),
                    "nonce": hex(nonce),
                }
            },
        )
        return parse_result("starknet_addInvokeTransaction", result, _transaction_hash)
