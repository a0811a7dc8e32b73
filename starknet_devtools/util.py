"""
Utility functions and exceptions used across the project.
"""
import sys
from enum import auto
from typing import List

from starkware.starkware_utils.error_handling import ErrorCode, StarkException

from .constants import FIELD_PRIME


class ScriptErrorCode(ErrorCode):
    """Error codes of failures which abort a script run"""

    CHEATCODE_DECODE_ERROR = auto()
    UNKNOWN_CHEATCODE = auto()
    ENTRY_POINT_NOT_FOUND = auto()
    UNSUPPORTED_SYSCALL = auto()
    STATE_FILE_ERROR = auto()
    ACCOUNT_NOT_DEFINED = auto()
    ACCOUNTS_FILE_ERROR = auto()
    ARTIFACTS_ERROR = auto()
    CHAIN_ERROR = auto()
    COMPILATION_FAILED = auto()


class StarknetDevtoolsException(StarkException):
    """
    Exception raised across the project.
    Indicates the raised issue is related to script execution.
    """

    def __init__(self, code: ErrorCode, message: str = None):
        super().__init__(code=code, message=message)


class CheatcodeDecodeError(StarknetDevtoolsException):
    """The argument buffer of a cheatcode does not match the expected layout"""

    def __init__(self, message: str):
        super().__init__(code=ScriptErrorCode.CHEATCODE_DECODE_ERROR, message=message)


class UnknownCheatcodeError(StarknetDevtoolsException):
    """No layer of the runtime handles the cheatcode"""

    def __init__(self, selector: str):
        super().__init__(
            code=ScriptErrorCode.UNKNOWN_CHEATCODE,
            message=f"Function with selector '{selector}' is not supported in this runtime",
        )
        self.selector = selector


class EntryPointNotFoundError(StarknetDevtoolsException):
    """The script function could not be found in the program"""

    def __init__(self, function_name: str):
        super().__init__(
            code=ScriptErrorCode.ENTRY_POINT_NOT_FOUND,
            message=f"Failed to find {function_name} function in script - please make sure "
            "`sierra-replace-ids` is not set to `false` for `dev` profile in script's Scarb.toml",
        )


class UnsupportedSyscallError(StarknetDevtoolsException):
    """Starknet syscalls have no chain state to run against inside a script"""

    def __init__(self, selector: str = None):
        message = "Starknet syscalls are not supported in scripts"
        if selector:
            message += f" (attempted: {selector})"
        super().__init__(code=ScriptErrorCode.UNSUPPORTED_SYSCALL, message=message)


class StateFileError(StarknetDevtoolsException):
    """State file cannot be read, parsed or written"""

    def __init__(self, message: str):
        super().__init__(code=ScriptErrorCode.STATE_FILE_ERROR, message=message)


class AccountNotDefinedError(StarknetDevtoolsException):
    """A transaction was requested but no account was configured"""

    def __init__(self):
        super().__init__(
            code=ScriptErrorCode.ACCOUNT_NOT_DEFINED,
            message="Account not defined. Please ensure the correct account is passed "
            "to `script run` command",
        )


class AccountsFileError(StarknetDevtoolsException):
    """Accounts file cannot be read or lacks the requested account"""

    def __init__(self, message: str):
        super().__init__(code=ScriptErrorCode.ACCOUNTS_FILE_ERROR, message=message)


class ArtifactsError(StarknetDevtoolsException):
    """Contract artifacts are missing or invalid"""

    def __init__(self, message: str):
        super().__init__(code=ScriptErrorCode.ARTIFACTS_ERROR, message=message)


def fixed_length_hex(arg: int) -> str:
    """
    Converts the int input to a hex output of fixed length
    """
    return f"0x{arg:064x}"


def to_int_array(values: List[str]) -> List[int]:
    """Convert to List of ints"""
    return [int(numeric, 16) for numeric in values]


def to_hex_array(values: List[int]) -> List[str]:
    """Convert to List of 0x-prefixed hex strings"""
    return [hex(value) for value in values]


def str_to_felt(text: str) -> int:
    """Converts string to felt."""
    return int.from_bytes(bytes(text, "ascii"), "big")


def assert_felt(value: int) -> int:
    """Raises ValueError if `value` is not a field element"""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Expected a felt, got: {value!r}")
    if not 0 <= value < FIELD_PRIME:
        raise ValueError(f"Value {value} is out of felt range")
    return value


def warn(msg: str, file=None):
    """Log a warning"""
    print(f"\033[93m{msg}\033[0m", file=file or sys.stderr)

