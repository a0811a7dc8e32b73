"""Compilation of sierra contract classes declared by scripts"""

import json
import os
import subprocess
import tempfile
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List

from marshmallow import EXCLUDE, ValidationError
from starkware.starknet.services.api.contract_class.contract_class import (
    CompiledClass,
    ContractClass,
)
from starkware.starknet.services.api.contract_class.contract_class_utils import (
    compile_contract_class,
)
from starkware.starkware_utils.error_handling import StarkException

from .util import ScriptErrorCode, StarknetDevtoolsException

if TYPE_CHECKING:
    from .config import ScriptConfig

ALLOWED_LIBFUNCS_LIST = "experimental_v0.1.0"


class ContractClassCompiler(ABC):
    """Base class of contract class compilers"""

    @abstractmethod
    def compile_contract_class(self, contract_class: ContractClass) -> CompiledClass:
        """Take the sierra and return the compiled instance"""


class DefaultContractClassCompiler(ContractClassCompiler):
    """Uses the compiler bundled with cairo-lang"""

    def compile_contract_class(self, contract_class: ContractClass) -> CompiledClass:
        hint_msg = "\nConsider passing --sierra-compiler-path or providing the casm artifact."

        try:
            return compile_contract_class(
                contract_class,
                compiler_args="--add-pythonic-hints "
                f"--allowed-libfuncs-list-name {ALLOWED_LIBFUNCS_LIST}",
            )
        except PermissionError as permission_error:
            raise StarknetDevtoolsException(
                code=ScriptErrorCode.COMPILATION_FAILED,
                message=f"{permission_error}{hint_msg}",
            ) from permission_error
        except StarkException as stark_exception:
            raise StarknetDevtoolsException(
                code=ScriptErrorCode.COMPILATION_FAILED,
                message=f"{stark_exception.message}{hint_msg}",
            ) from stark_exception


class BinaryContractClassCompiler(ContractClassCompiler):
    """Sierra compiler relying on the starknet-sierra-compile binary executable"""

    def __init__(self, executable_path: str):
        self._compiler_command = [executable_path]

    def get_sierra_compiler_command(self) -> List[str]:
        """Returns the shell command of the sierra compiler"""
        return self._compiler_command

    def compile_contract_class(self, contract_class: ContractClass) -> CompiledClass:
        with tempfile.TemporaryDirectory() as tmp_dir:
            contract_json = os.path.join(tmp_dir, "contract.json")
            contract_casm = os.path.join(tmp_dir, "contract.casm")

            with open(contract_json, mode="w", encoding="utf-8") as tmp_file:
                dumped = contract_class.dump()
                dumped["abi"] = json.loads(dumped["abi"])
                json.dump(dumped, tmp_file)

            compilation = subprocess.run(
                [
                    *self.get_sierra_compiler_command(),
                    "--allowed-libfuncs-list-name",
                    ALLOWED_LIBFUNCS_LIST,
                    "--add-pythonic-hints",
                    contract_json,
                    contract_casm,
                ],
                capture_output=True,
                check=False,
            )
            if compilation.returncode:
                stderr = compilation.stderr.decode("utf-8")
                raise StarknetDevtoolsException(
                    code=ScriptErrorCode.COMPILATION_FAILED,
                    message=f"Failed compilation to casm! {stderr}",
                )

            with open(contract_casm, encoding="utf-8") as casm_file:
                try:
                    return CompiledClass.Schema(unknown=EXCLUDE).load(json.load(casm_file))
                except (json.JSONDecodeError, ValidationError) as error:
                    raise StarknetDevtoolsException(
                        code=ScriptErrorCode.COMPILATION_FAILED,
                        message=f"Compiler produced invalid casm: {error}",
                    ) from error


def select_compiler(config: "ScriptConfig") -> ContractClassCompiler:
    """Selects the compiler according to the config of the run"""
    if config.sierra_compiler_path:
        return BinaryContractClassCompiler(config.sierra_compiler_path)

    return DefaultContractClassCompiler()
