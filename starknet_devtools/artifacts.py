"""Contract artifacts produced by scarb for the script package"""

import json
import logging
import os
from functools import cached_property
from typing import Dict, Optional

from marshmallow import EXCLUDE, ValidationError
from starkware.starknet.core.os.contract_class.class_hash import compute_class_hash
from starkware.starknet.core.os.contract_class.compiled_class_hash import (
    compute_compiled_class_hash,
)
from starkware.starknet.services.api.contract_class.contract_class import (
    CompiledClass,
    ContractClass,
)

from .compiler import ContractClassCompiler, DefaultContractClassCompiler
from .constants import DEFAULT_PROFILE, SCRIPT_LIB_ARTIFACT_NAME
from .util import ArtifactsError

logger = logging.getLogger(__name__)


class ContractArtifacts:
    """Sierra and casm of a single contract, as JSON text"""

    def __init__(
        self,
        sierra: str,
        casm: str = "",
        compiler: Optional[ContractClassCompiler] = None,
    ):
        self.sierra = sierra
        self.casm = casm
        self.compiler = compiler or DefaultContractClassCompiler()

    def __eq__(self, other):
        return (
            isinstance(other, ContractArtifacts)
            and self.sierra == other.sierra
            and self.casm == other.casm
        )

    def sierra_dict(self) -> dict:
        """Loaded sierra with the abi as a JSON string, as the RPC API expects it"""
        try:
            sierra = json.loads(self.sierra)
        except json.JSONDecodeError as error:
            raise ArtifactsError(f"Invalid sierra artifact: {error}") from error

        sierra.pop("sierra_program_debug_info", None)
        if not isinstance(sierra.get("abi"), str):
            sierra["abi"] = json.dumps(sierra.get("abi", []))
        return sierra

    @cached_property
    def contract_class(self) -> ContractClass:
        """Contract class loaded from the sierra"""
        try:
            return ContractClass.load(self.sierra_dict())
        except ValidationError as error:
            raise ArtifactsError(f"Invalid sierra artifact: {error}") from error

    @cached_property
    def compiled_class(self) -> CompiledClass:
        """Compiled class loaded from the casm; compiled from the sierra if casm is missing"""
        if not self.casm:
            logger.info("No casm artifact found, compiling sierra")
            return self.compiler.compile_contract_class(self.contract_class)

        try:
            return CompiledClass.Schema(unknown=EXCLUDE).load(json.loads(self.casm))
        except (json.JSONDecodeError, ValidationError) as error:
            raise ArtifactsError(f"Invalid casm artifact: {error}") from error

    @cached_property
    def class_hash(self) -> int:
        """Hash of the sierra contract class"""
        return compute_class_hash(self.contract_class)

    @cached_property
    def compiled_class_hash(self) -> int:
        """Hash of the compiled class"""
        return compute_compiled_class_hash(self.compiled_class)

    def rpc_contract_class(self) -> dict:
        """Contract class in the shape of RPC declare transactions"""
        sierra = self.sierra_dict()
        return {
            "sierra_program": sierra["sierra_program"],
            "contract_class_version": sierra["contract_class_version"],
            "entry_points_by_type": sierra["entry_points_by_type"],
            "abi": sierra["abi"],
        }


def _read_file(path: str) -> str:
    try:
        with open(path, mode="r", encoding="utf-8") as artifact_file:
            return artifact_file.read()
    except OSError as error:
        raise ArtifactsError(f"Cannot read artifact {path}: {error}") from error


def load_package_artifacts(
    target_dir: str,
    package: str,
    compiler: Optional[ContractClassCompiler] = None,
) -> Dict[str, ContractArtifacts]:
    """
    Loads artifacts of all contracts of `package`, keyed by contract name,
    from the `<package>.starknet_artifacts.json` index written by scarb.
    """
    profile_dir = os.path.join(target_dir, DEFAULT_PROFILE)
    index_path = os.path.join(profile_dir, f"{package}.starknet_artifacts.json")
    if not os.path.isfile(index_path):
        logger.debug("No contract artifacts index at %s", index_path)
        return {}

    artifacts = {}
    try:
        for contract in json.loads(_read_file(index_path))["contracts"]:
            paths = contract["artifacts"]
            casm_path = paths.get("casm")
            artifacts[contract["contract_name"]] = ContractArtifacts(
                sierra=_read_file(os.path.join(profile_dir, paths["sierra"])),
                casm=_read_file(os.path.join(profile_dir, casm_path)) if casm_path else "",
                compiler=compiler,
            )
    except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as error:
        raise ArtifactsError(f"Invalid artifacts index {index_path}: {error}") from error
    return artifacts


def inject_lib_artifact(
    artifacts: Dict[str, ContractArtifacts], target_dir: str, package: str
) -> Dict[str, ContractArtifacts]:
    """
    Returns a copy of `artifacts` extended with the sierra of the script library itself.
    The passed dict is not modified.
    """
    sierra_path = os.path.join(target_dir, DEFAULT_PROFILE, f"{package}.sierra.json")
    if not os.path.isfile(sierra_path):
        raise ArtifactsError(
            f"Failed to find script artifact {sierra_path}; make sure the package is built"
        )

    with_lib = dict(artifacts)
    with_lib[SCRIPT_LIB_ARTIFACT_NAME] = ContractArtifacts(sierra=_read_file(sierra_path))
    return with_lib
