"""
Boundary of the Cairo interpreter executing scripts.
The interpreter itself is provided by the caller; this module defines what the script
driver expects from it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


class InterpreterError(Exception):
    """
    Fault of the interpreter itself, e.g. an invalid memory access.
    Distinct from a script panic, which is a regular result of the run.
    """


@dataclass(frozen=True)
class Hint:
    """Hint embedded in the assembled program"""

    code: str

    def representing_string(self) -> str:
        """String the hint is registered under in the hint table"""
        return self.code


@dataclass(frozen=True)
class ScriptFunction:
    """Function of the loaded program"""

    name: str
    param_types: List[str] = field(default_factory=list)

    def has_segment_arena(self) -> bool:
        """Whether the function takes the segment arena builtin"""
        return "SegmentArena" in self.param_types


@dataclass(frozen=True)
class EntryCodeConfig:
    """Configuration of the code wrapping the called function"""

    testing: bool = False

    @classmethod
    def for_testing(cls) -> "EntryCodeConfig":
        """Entry code which does not finalize builtins, as used for tests and scripts"""
        return cls(testing=True)


@dataclass(frozen=True)
class WrapperInfo:
    """Entry code calling the function and the builtins it needs, in order"""

    header: List[int]
    builtins: List[str]


@dataclass(frozen=True)
class AssembledProgram:
    """Bytecode of the program and its hints keyed by pc offset"""

    bytecode: List[int]
    hints: List[Tuple[int, List[Hint]]]


@dataclass(frozen=True)
class RunResult:
    """Values the function returned, or panicked with if `panicked` is set"""

    panicked: bool
    values: List[int]


class ScriptProgram:
    """
    Loaded script program executed by an external interpreter.
    """

    def find_function(self, name_suffix: str) -> Optional[ScriptFunction]:
        """Returns the function whose name ends with `name_suffix`, if any"""
        raise NotImplementedError

    def create_wrapper_info(
        self, function: ScriptFunction, config: EntryCodeConfig
    ) -> WrapperInfo:
        """Builds the entry code calling `function`"""
        raise NotImplementedError

    def assemble(self, header: List[int], footer: List[int]) -> AssembledProgram:
        """Assembles the program surrounded by `header` and `footer`"""
        raise NotImplementedError

    # pylint: disable=too-many-arguments
    def run_function(
        self,
        function: ScriptFunction,
        runtime: Any,
        hints_dict: Dict[int, list],
        bytecode: List[int],
        builtins: List[str],
    ) -> RunResult:
        """
        Runs `function` to completion. Hints are executed by `runtime`, which also
        provides the arguments of the function through `runtime.user_args`.
        Raises InterpreterError on a fault of the interpreter.
        """
        raise NotImplementedError
