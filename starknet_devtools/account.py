"""
Account class sending the transactions of a script.
"""

import json
import os
from dataclasses import dataclass, field
from typing import List

from starkware.cairo.common.hash_state import compute_hash_on_elements
from starkware.crypto.signature.signature import private_to_stark_key, sign

from .constants import SUPPORTED_DECLARE_TX_VERSION, SUPPORTED_TX_VERSION
from .util import AccountsFileError, str_to_felt

INVOKE_PREFIX = str_to_felt("invoke")
DECLARE_PREFIX = str_to_felt("declare")


@dataclass(frozen=True)
class Call:
    """Single call executed by the account"""

    to: int
    selector: int
    calldata: List[int] = field(default_factory=list)


class Account:
    """Account contract the script signs transactions with."""

    def __init__(self, address: int, private_key: int):
        self.address = address
        self.private_key = private_key
        self.public_key = private_to_stark_key(private_key)

    @classmethod
    def from_accounts_file(cls, path: str, name: str, network: str) -> "Account":
        """
        Loads the account `name` of `network` from an accounts file shaped as
        `{network: {name: {"address": ..., "private_key": ...}}}`.
        """
        path = os.path.abspath(os.path.expanduser(path))
        try:
            with open(path, mode="r", encoding="utf-8") as accounts_file:
                accounts = json.load(accounts_file)
        except (OSError, json.JSONDecodeError) as error:
            raise AccountsFileError(f"Cannot load accounts file {path}: {error}") from error

        try:
            account = accounts[network][name]
            return cls(
                address=int(account["address"], 16),
                private_key=int(account["private_key"], 16),
            )
        except KeyError as error:
            raise AccountsFileError(
                f"Account {name} not found under network {network} in {path}"
            ) from error

    def sign(self, message_hash: int) -> List[int]:
        """Signs the message hash and returns the signature as [r, s]"""
        signature_r, signature_s = sign(msg_hash=message_hash, priv_key=self.private_key)
        return [signature_r, signature_s]

    @staticmethod
    def execute_calldata(calls: List[Call]) -> List[int]:
        """Calldata of `__execute__` running `calls` in order"""
        calldata = [len(calls)]
        for call in calls:
            calldata.extend([call.to, call.selector, len(call.calldata), *call.calldata])
        return calldata

    def invoke_transaction_hash(
        self, calldata: List[int], max_fee: int, chain_id: int, nonce: int
    ) -> int:
        """Hash of the invoke transaction executing `calldata`"""
        return compute_hash_on_elements(
            [
                INVOKE_PREFIX,
                SUPPORTED_TX_VERSION,
                self.address,
                0,  # entry point selector is not used
                compute_hash_on_elements(calldata),
                max_fee,
                chain_id,
                nonce,
            ]
        )

    # pylint: disable=too-many-arguments
    def declare_transaction_hash(
        self,
        class_hash: int,
        compiled_class_hash: int,
        max_fee: int,
        chain_id: int,
        nonce: int,
    ) -> int:
        """Hash of the transaction declaring `class_hash`"""
        return compute_hash_on_elements(
            [
                DECLARE_PREFIX,
                SUPPORTED_DECLARE_TX_VERSION,
                self.address,
                0,  # entry point selector is not used
                compute_hash_on_elements([class_hash]),
                max_fee,
                chain_id,
                nonce,
                compiled_class_hash,
            ]
        )
