"""
Runtime the interpreter traps into on cheatcodes and syscalls of a script.
Runtimes are layered: each layer may handle a cheatcode or forward it to the layer below.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Sequence, Union

from starkware.cairo.lang.vm.relocatable import RelocatableValue

from .constants import SCRIPT_GAS_SENTINEL
from .serde import BufferReader
from .util import UnknownCheatcodeError, UnsupportedSyscallError

if TYPE_CHECKING:
    from .handlers import CheatcodeHandlers
    from .interpreter import Hint

logger = logging.getLogger(__name__)

SCRIPT_CHEATCODES = frozenset(
    ["call", "declare", "deploy", "invoke", "get_nonce", "tx_status"]
)


@dataclass(frozen=True)
class Handled:
    """Cheatcode handled; `values` are written back to the interpreter memory"""

    values: List[int]


@dataclass(frozen=True)
class Forwarded:
    """Cheatcode or syscall left to the runtime below"""


HandlingResult = Union[Handled, Forwarded]


class ExtensionLogic:
    """
    Base of runtime extensions. Forwards everything unless overridden.
    """

    def handle_cheatcode(
        self, selector: str, input_reader: BufferReader, extended_runtime: Any
    ) -> HandlingResult:
        """Handles the cheatcode `selector` reading its arguments from `input_reader`"""
        return Forwarded()

    def override_system_call(
        self, selector: str, vm: Any, extended_runtime: Any
    ) -> HandlingResult:
        """Handles the syscall `selector` instead of the runtime below"""
        return Forwarded()


class CastScriptExtension(ExtensionLogic):
    """
    Extension owning the cheatcodes of scripts.
    Scripts run without chain state, so every syscall is rejected.
    """

    def __init__(self, handlers: "CheatcodeHandlers"):
        self.handlers = handlers

    def handle_cheatcode(
        self, selector: str, input_reader: BufferReader, extended_runtime: Any
    ) -> HandlingResult:
        if selector == "call":
            return Handled(self.handlers.call(input_reader))
        elif selector == "declare":
            return Handled(self.handlers.declare(input_reader))
        elif selector == "deploy":
            return Handled(self.handlers.deploy(input_reader))
        elif selector == "invoke":
            return Handled(self.handlers.invoke(input_reader))
        elif selector == "get_nonce":
            return Handled(self.handlers.get_nonce(input_reader))
        elif selector == "tx_status":
            return Handled(self.handlers.tx_status(input_reader))
        return Forwarded()

    def override_system_call(
        self, selector: str, vm: Any, extended_runtime: Any
    ) -> HandlingResult:
        raise UnsupportedSyscallError(selector)


@dataclass
class ScriptRuntime:
    """
    Innermost runtime of a script. Knows no cheatcodes and has no chain state for syscalls.
    `user_args` are the arguments the script function is called with.
    """

    syscall_ptr: RelocatableValue
    string_to_hint: Dict[str, "Hint"] = field(default_factory=dict)
    user_args: List[List[int]] = field(
        default_factory=lambda: [[SCRIPT_GAS_SENTINEL]]
    )

    def handle_cheatcode(self, selector: str, buffer: Sequence[int]) -> List[int]:
        """No cheatcode reaches this layer successfully"""
        raise UnknownCheatcodeError(selector)

    def handle_syscall(self, selector: str, vm: Any) -> List[int]:
        """Syscalls need chain state, which scripts do not have"""
        raise UnsupportedSyscallError(selector)


class ExtendedRuntime:
    """
    Runtime passing traps to `extension` first and to `extended_runtime` if forwarded.
    """

    def __init__(self, extension: ExtensionLogic, extended_runtime):
        self.extension = extension
        self.extended_runtime = extended_runtime

    @property
    def user_args(self) -> List[List[int]]:
        """Arguments of the called function, provided by the innermost runtime"""
        return self.extended_runtime.user_args

    def handle_cheatcode(self, selector: str, buffer: Sequence[int]) -> List[int]:
        """
        Executes the cheatcode trap of the interpreter.
        Raises UnknownCheatcodeError if no layer handles `selector`.
        """
        logger.debug("Handling cheatcode %s", selector)
        result = self.extension.handle_cheatcode(
            selector, BufferReader(buffer), self.extended_runtime
        )
        if isinstance(result, Handled):
            return result.values
        return self.extended_runtime.handle_cheatcode(selector, buffer)

    def handle_syscall(self, selector: str, vm: Any) -> List[int]:
        """Executes the syscall trap of the interpreter"""
        result = self.extension.override_system_call(selector, vm, self.extended_runtime)
        if isinstance(result, Handled):
            return result.values
        return self.extended_runtime.handle_syscall(selector, vm)
