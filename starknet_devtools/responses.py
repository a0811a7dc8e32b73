"""
Outcomes of script cheatcodes: successful responses, which are also what the state file
records, and the errors returned to the script instead of aborting it.
"""

from dataclasses import field
from enum import Enum
from typing import Dict, List, Optional, Type

import marshmallow.fields as mfields
import marshmallow_dataclass
from marshmallow import EXCLUDE, ValidationError
from starkware.starkware_utils.marshmallow_dataclass_fields import IntAsHex
from starkware.starkware_utils.validated_dataclass import ValidatedMarshmallowDataclass

from .serde import serialize_byte_array, serialize_option

felt_metadata = dict(marshmallow_field=IntAsHex(required=True))
felt_list_metadata = dict(
    marshmallow_field=mfields.List(IntAsHex(), required=True)
)


class ScriptResponse(ValidatedMarshmallowDataclass):
    """Base of responses handed back to the script"""

    def to_felts(self) -> List[int]:
        """Serializes the response as the script expects it"""
        raise NotImplementedError

    def to_document(self) -> dict:
        """Dumps the response to JSON-compatible dict tagged with its type"""
        return {"type": type(self).__name__, **self.dump()}


@marshmallow_dataclass.dataclass(frozen=True)
class DeclareResponse(ScriptResponse):
    """Class declared by the script"""

    class_hash: int = field(metadata=felt_metadata)
    transaction_hash: int = field(metadata=felt_metadata)

    def to_felts(self) -> List[int]:
        # DeclareResult::Success
        return [0, self.class_hash, self.transaction_hash]


@marshmallow_dataclass.dataclass(frozen=True)
class AlreadyDeclaredResponse(ScriptResponse):
    """Class was declared before the script tried to declare it"""

    class_hash: int = field(metadata=felt_metadata)

    def to_felts(self) -> List[int]:
        # DeclareResult::AlreadyDeclared
        return [1, self.class_hash]


@marshmallow_dataclass.dataclass(frozen=True)
class DeployResponse(ScriptResponse):
    """Contract deployed by the script"""

    contract_address: int = field(metadata=felt_metadata)
    transaction_hash: int = field(metadata=felt_metadata)

    def to_felts(self) -> List[int]:
        return [self.contract_address, self.transaction_hash]


@marshmallow_dataclass.dataclass(frozen=True)
class InvokeResponse(ScriptResponse):
    """Invoke transaction sent by the script"""

    transaction_hash: int = field(metadata=felt_metadata)

    def to_felts(self) -> List[int]:
        return [self.transaction_hash]


@marshmallow_dataclass.dataclass(frozen=True)
class CallResponse(ScriptResponse):
    """Return data of a read-only call"""

    data: List[int] = field(metadata=felt_list_metadata)

    def to_felts(self) -> List[int]:
        return [len(self.data), *self.data]


@marshmallow_dataclass.dataclass(frozen=True)
class NonceResponse(ScriptResponse):
    """Nonce of the script account"""

    nonce: int = field(metadata=felt_metadata)

    def to_felts(self) -> List[int]:
        return [self.nonce]


class FinalityStatus(Enum):
    """Finality status of a transaction; values are the Cairo variant indices"""

    RECEIVED = 0
    REJECTED = 1
    ACCEPTED_ON_L2 = 2
    ACCEPTED_ON_L1 = 3


class ExecutionStatus(Enum):
    """Execution status of a transaction; values are the Cairo variant indices"""

    SUCCEEDED = 0
    REVERTED = 1


@marshmallow_dataclass.dataclass(frozen=True)
class TransactionStatusResponse(ScriptResponse):
    """Status of a transaction as reported by the chain"""

    finality_status: str
    execution_status: Optional[str] = None

    def to_felts(self) -> List[int]:
        execution_status = (
            None
            if self.execution_status is None
            else [ExecutionStatus[self.execution_status].value]
        )
        return [
            FinalityStatus[self.finality_status].value,
            *serialize_option(execution_status),
        ]


RESPONSE_TYPES: Dict[str, Type[ScriptResponse]] = {
    response_type.__name__: response_type
    for response_type in (
        DeclareResponse,
        AlreadyDeclaredResponse,
        DeployResponse,
        InvokeResponse,
        CallResponse,
        NonceResponse,
        TransactionStatusResponse,
    )
}


def load_response(document: dict) -> ScriptResponse:
    """
    Reconstructs a response dumped with `ScriptResponse.to_document`.
    Fields unknown to this version are ignored.
    Raises ValueError if the document is not a known response.
    """
    if not isinstance(document, dict):
        raise ValueError(f"Expected a response object, got: {document!r}")

    response_type = RESPONSE_TYPES.get(document.get("type"))
    if response_type is None:
        raise ValueError(f"Unknown response type: {document.get('type')!r}")

    response_fields = {key: value for key, value in document.items() if key != "type"}
    try:
        return response_type.Schema(unknown=EXCLUDE).load(response_fields)
    except ValidationError as error:
        raise ValueError(f"Invalid {response_type.__name__}: {error}") from error


class ScriptCommandError(Exception):
    """
    Error of a cheatcode which is returned to the script as `Err`.
    The script decides whether it is fatal; re-running the script retries the operation.
    """

    VARIANT: int = None

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def payload(self) -> List[int]:
        """Serialized data following the variant index"""
        return serialize_byte_array(self.message)

    def to_felts(self) -> List[int]:
        """Serializes the error as the script expects it"""
        return [self.VARIANT, *self.payload()]


class UnknownError(ScriptCommandError):
    """Error without a more specific category"""

    VARIANT = 0


class ContractArtifactsNotFound(ScriptCommandError):
    """Declared contract is not among the package artifacts"""

    VARIANT = 1


class WaitForTransactionError(ScriptCommandError):
    """Transaction was sent but did not succeed in time"""

    VARIANT = 2

    def __init__(self, message: str = "", timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out

    def payload(self) -> List[int]:
        if self.timed_out:
            return [1]
        return [0, *serialize_byte_array(self.message)]


class ProviderError(ScriptCommandError):
    """The chain node refused or failed to serve the request"""

    VARIANT = 3

    STARKNET_ERROR = 0
    RATE_LIMITED = 1
    UNKNOWN = 2

    def __init__(self, message: str = "", kind: int = UNKNOWN, code: int = 0):
        super().__init__(message)
        self.kind = kind
        self.code = code

    def payload(self) -> List[int]:
        if self.kind == self.STARKNET_ERROR:
            return [self.kind, self.code, *serialize_byte_array(self.message)]
        if self.kind == self.RATE_LIMITED:
            return [self.kind]
        return [self.kind, *serialize_byte_array(self.message)]


@marshmallow_dataclass.dataclass(frozen=True)
class ScriptRunResponse(ValidatedMarshmallowDataclass):
    """Result of a complete script run"""

    status: str
    message: Optional[str] = None

    SUCCESS = "success"
    PANICKED = "script panicked"
